"""Tests for the in-process store, including its JSON snapshot."""

import threading
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from chirpy.storage.errors import ConstraintViolation, PersistenceError
from chirpy.storage.memory import MemoryStore

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _add_token(store, user_id, token="tok"):
    return store.create_refresh_token(token, user_id, NOW, NOW + timedelta(days=60))


class TestUsers:
    def test_create_and_fetch(self):
        store = MemoryStore()
        user = store.create_user("a@example.com", "hash")
        assert store.get_user(user.id) is user
        assert store.get_user_by_email("a@example.com") is user
        assert store.get_user_by_email("b@example.com") is None

    def test_duplicate_email(self):
        store = MemoryStore()
        store.create_user("a@example.com", "hash")
        with pytest.raises(ConstraintViolation):
            store.create_user("a@example.com", "hash2")

    def test_update_unknown_user(self):
        assert MemoryStore().update_user(uuid.uuid4(), "a@example.com", "h") is None

    def test_hashed_password_not_in_repr(self):
        user = MemoryStore().create_user("a@example.com", "$argon2id$secret")
        assert "$argon2id$secret" not in repr(user)


class TestRefreshTokens:
    def test_requires_known_user(self):
        with pytest.raises(ConstraintViolation):
            _add_token(MemoryStore(), uuid.uuid4())

    def test_duplicate_token(self):
        store = MemoryStore()
        user = store.create_user("a@example.com", "hash")
        _add_token(store, user.id)
        with pytest.raises(ConstraintViolation):
            _add_token(store, user.id)

    def test_revoke_unknown(self):
        assert MemoryStore().revoke_refresh_token("missing", NOW) is None

    def test_concurrent_revoke_keeps_single_timestamp(self):
        store = MemoryStore()
        user = store.create_user("a@example.com", "hash")
        _add_token(store, user.id)
        stamps = [NOW + timedelta(seconds=i) for i in range(16)]
        threads = [
            threading.Thread(target=store.revoke_refresh_token, args=("tok", stamp))
            for stamp in stamps
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        revoked_at = store.get_refresh_token("tok").revoked_at
        assert revoked_at in stamps
        assert store.revoke_refresh_token("tok", NOW + timedelta(days=1)).revoked_at == revoked_at


class TestSnapshot:
    def test_state_survives_restart(self, tmp_path):
        store = MemoryStore(state_dir=str(tmp_path))
        user = store.create_user("a@example.com", "hash")
        _add_token(store, user.id)
        store.revoke_refresh_token("tok", NOW + timedelta(hours=1))

        reloaded = MemoryStore(state_dir=str(tmp_path))
        assert reloaded.get_user(user.id).email == "a@example.com"
        record = reloaded.get_refresh_token("tok")
        assert record.user_id == user.id
        assert record.expires_at == NOW + timedelta(days=60)
        assert record.revoked_at == NOW + timedelta(hours=1)

    def test_write_failure_is_persistence_error(self, tmp_path, monkeypatch):
        store = MemoryStore(state_dir=str(tmp_path))

        def fail(self, *args, **kwargs):
            raise OSError("read-only filesystem")

        monkeypatch.setattr("pathlib.Path.write_text", fail)
        with pytest.raises(PersistenceError):
            store.create_user("a@example.com", "hash")
