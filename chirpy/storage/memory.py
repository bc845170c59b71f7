from __future__ import annotations

import json
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from chirpy.logging import get_logger
from chirpy.storage.errors import ConstraintViolation, PersistenceError
from chirpy.storage.models import RefreshToken, User, utcnow


class MemoryStore:
    """In-process backing store for development and tests.

    When ``state_dir`` is given every write is snapshotted to
    ``<state_dir>/memory_store.json`` and reloaded on start-up.
    """

    def __init__(self, state_dir: str | None = None) -> None:
        self.logger = get_logger(__name__)
        self.users: Dict[uuid.UUID, User] = {}
        self.refresh_tokens: Dict[str, RefreshToken] = {}
        # RLock so helpers can re-enter while a write holds the lock
        self._data_lock = threading.RLock()
        self.state_dir = Path(state_dir) if state_dir else None
        if self.state_dir is not None:
            self.state_dir.mkdir(parents=True, exist_ok=True)
            self._load_state()

    def _state_path(self) -> Path:
        assert self.state_dir is not None
        return self.state_dir / "memory_store.json"

    @staticmethod
    def _serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
        return dt.isoformat() if dt else None

    @staticmethod
    def _deserialize_datetime(raw: Optional[str]) -> Optional[datetime]:
        return datetime.fromisoformat(raw) if raw else None

    # users
    def create_user(self, email: str, hashed_password: str) -> User:
        with self._data_lock:
            if any(existing.email == email for existing in self.users.values()):
                raise ConstraintViolation("email already exists", {"field": "email"})
            user = User.new(email, hashed_password)
            self.users[user.id] = user
            self._persist_state()
            return user

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._data_lock:
            return next((u for u in self.users.values() if u.email == email), None)

    def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        with self._data_lock:
            return self.users.get(user_id)

    def update_user(
        self, user_id: uuid.UUID, email: str, hashed_password: str
    ) -> Optional[User]:
        with self._data_lock:
            user = self.users.get(user_id)
            if not user:
                return None
            if any(
                other.email == email and other.id != user_id
                for other in self.users.values()
            ):
                raise ConstraintViolation("email already exists", {"field": "email"})
            user.email = email
            user.hashed_password = hashed_password
            user.updated_at = utcnow()
            self._persist_state()
            return user

    # refresh tokens
    def create_refresh_token(
        self,
        token: str,
        user_id: uuid.UUID,
        created_at: datetime,
        expires_at: datetime,
    ) -> RefreshToken:
        with self._data_lock:
            if user_id not in self.users:
                raise ConstraintViolation("user does not exist", {"user_id": str(user_id)})
            if token in self.refresh_tokens:
                raise ConstraintViolation("refresh token already exists", {"field": "token"})
            record = RefreshToken(
                token=token,
                user_id=user_id,
                created_at=created_at,
                updated_at=created_at,
                expires_at=expires_at,
            )
            self.refresh_tokens[token] = record
            self._persist_state()
            return record

    def get_refresh_token(self, token: str) -> Optional[RefreshToken]:
        with self._data_lock:
            return self.refresh_tokens.get(token)

    def revoke_refresh_token(
        self, token: str, revoked_at: datetime
    ) -> Optional[RefreshToken]:
        """Set ``revoked_at`` if still null; return the row or None if unknown."""
        with self._data_lock:
            record = self.refresh_tokens.get(token)
            if not record:
                return None
            if record.revoked_at is None:
                record.revoked_at = revoked_at
                record.updated_at = revoked_at
                self._persist_state()
            return record

    def close(self) -> None:
        return None

    def _persist_state(self) -> None:
        if self.state_dir is None:
            return
        state = {
            "users": [
                {
                    "id": str(u.id),
                    "email": u.email,
                    "hashed_password": u.hashed_password,
                    "created_at": self._serialize_datetime(u.created_at),
                    "updated_at": self._serialize_datetime(u.updated_at),
                }
                for u in self.users.values()
            ],
            "refresh_tokens": [
                {
                    "token": rt.token,
                    "user_id": str(rt.user_id),
                    "created_at": self._serialize_datetime(rt.created_at),
                    "updated_at": self._serialize_datetime(rt.updated_at),
                    "expires_at": self._serialize_datetime(rt.expires_at),
                    "revoked_at": self._serialize_datetime(rt.revoked_at),
                }
                for rt in self.refresh_tokens.values()
            ],
        }
        path = self._state_path()
        try:
            path.write_text(json.dumps(state, indent=2))
        except OSError as exc:
            raise PersistenceError(f"failed to persist in-memory state: {exc}") from exc

    def _load_state(self) -> bool:
        path = self._state_path()
        try:
            data = json.loads(path.read_text())
        except FileNotFoundError:
            return False
        self.users = {}
        for entry in data.get("users", []):
            user = User(
                id=uuid.UUID(entry["id"]),
                email=entry["email"],
                hashed_password=entry["hashed_password"],
                created_at=self._deserialize_datetime(entry["created_at"]),
                updated_at=self._deserialize_datetime(entry["updated_at"]),
            )
            self.users[user.id] = user
        self.refresh_tokens = {}
        for entry in data.get("refresh_tokens", []):
            record = RefreshToken(
                token=entry["token"],
                user_id=uuid.UUID(entry["user_id"]),
                created_at=self._deserialize_datetime(entry["created_at"]),
                updated_at=self._deserialize_datetime(entry.get("updated_at")),
                expires_at=self._deserialize_datetime(entry["expires_at"]),
                revoked_at=self._deserialize_datetime(entry.get("revoked_at")),
            )
            self.refresh_tokens[record.token] = record
        self.logger.info(
            "memory_store_loaded",
            users=len(self.users),
            refresh_tokens=len(self.refresh_tokens),
        )
        return True
