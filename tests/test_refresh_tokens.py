"""Tests for the refresh token lifecycle: create, lookup, revoke, expire."""

import re
from datetime import timedelta

import pytest

from chirpy.service.errors import RefreshTokenNotFound
from chirpy.service.refresh_tokens import RefreshTokenStore
from chirpy.storage.memory import MemoryStore


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def user(store):
    return store.create_user("walt@breakingbad.com", "$argon2id$placeholder")


@pytest.fixture
def refresh_tokens(store, clock):
    return RefreshTokenStore(store, clock=clock)


class TestCreate:
    def test_token_is_64_hex_chars(self, refresh_tokens, user):
        token = refresh_tokens.create(user.id)
        assert re.fullmatch(r"[0-9a-f]{64}", token)

    def test_tokens_are_unique(self, refresh_tokens, user):
        tokens = {refresh_tokens.create(user.id) for _ in range(20)}
        assert len(tokens) == 20

    def test_record_has_sixty_day_expiry(self, refresh_tokens, user, clock):
        token = refresh_tokens.create(user.id)
        record = refresh_tokens.lookup(token)
        assert record.user_id == user.id
        assert record.created_at == clock.now
        assert record.expires_at == clock.now + timedelta(days=60)
        assert record.revoked_at is None
        assert refresh_tokens.is_usable(record)


class TestLookup:
    def test_unknown_token(self, refresh_tokens):
        with pytest.raises(RefreshTokenNotFound):
            refresh_tokens.lookup("0" * 64)


class TestRevoke:
    def test_revoke_sets_revoked_at(self, refresh_tokens, user, clock):
        token = refresh_tokens.create(user.id)
        clock.advance(timedelta(minutes=5))
        record = refresh_tokens.revoke(token)
        assert record.revoked_at == clock.now
        assert not refresh_tokens.is_usable(refresh_tokens.lookup(token))

    def test_second_revoke_keeps_first_timestamp(self, refresh_tokens, user, clock):
        token = refresh_tokens.create(user.id)
        first = refresh_tokens.revoke(token).revoked_at
        clock.advance(timedelta(hours=1))
        second = refresh_tokens.revoke(token).revoked_at
        assert second == first

    def test_unknown_token(self, refresh_tokens):
        with pytest.raises(RefreshTokenNotFound):
            refresh_tokens.revoke("missing")


class TestExpiry:
    def test_usable_until_expires_at(self, refresh_tokens, user, clock):
        token = refresh_tokens.create(user.id)
        record = refresh_tokens.lookup(token)
        clock.advance(timedelta(days=60) - timedelta(seconds=1))
        assert refresh_tokens.is_usable(record)
        clock.advance(timedelta(seconds=1))
        assert not refresh_tokens.is_usable(record)

    def test_expired_record_still_stored(self, refresh_tokens, user, clock):
        token = refresh_tokens.create(user.id)
        clock.advance(timedelta(days=61))
        assert refresh_tokens.lookup(token).user_id == user.id

    def test_custom_ttl(self, store, user, clock):
        short = RefreshTokenStore(store, ttl=timedelta(hours=1), clock=clock)
        record = short.lookup(short.create(user.id))
        assert record.expires_at == clock.now + timedelta(hours=1)
