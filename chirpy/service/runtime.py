from __future__ import annotations

import threading
from typing import Optional, Union

from chirpy.config import get_settings, reset_settings_cache
from chirpy.logging import get_logger
from chirpy.service.passwords import CredentialHasher
from chirpy.service.sessions import SessionManager
from chirpy.storage.memory import MemoryStore
from chirpy.storage.postgres import PostgresStore

logger = get_logger(__name__)


class Runtime:
    """Holds the store and session manager shared by request handlers."""

    def __init__(self):
        self.settings = get_settings()
        store_type = "memory" if self.settings.use_memory_store else "postgres"
        logger.info("runtime_init_started", store_type=store_type)

        try:
            self.store: Union[MemoryStore, PostgresStore] = (
                MemoryStore(state_dir=self.settings.state_dir)
                if self.settings.use_memory_store
                else PostgresStore(self.settings.database_url)
            )
        except Exception as exc:
            logger.error(
                "runtime_store_init_failed",
                store_type=store_type,
                error_type=type(exc).__name__,
            )
            raise

        self.hasher = CredentialHasher()
        self.sessions = SessionManager.from_settings(
            self.store, self.settings, hasher=self.hasher
        )
        logger.info("runtime_init_completed", store_type=store_type)

    def close(self) -> None:
        self.store.close()
        logger.info("runtime_closed")


runtime: Optional[Runtime] = None
_runtime_lock = threading.Lock()


def get_runtime() -> Runtime:
    """Get or create the Runtime singleton in a thread-safe manner."""
    global runtime
    if runtime is not None:
        return runtime
    with _runtime_lock:
        if runtime is None:
            runtime = Runtime()
        return runtime


def reset_runtime_for_tests() -> Runtime:
    """Reinitialize the runtime singleton for isolated test runs."""
    global runtime

    with _runtime_lock:
        if runtime is not None:
            runtime.close()
        reset_settings_cache()
        runtime = Runtime()
        return runtime
