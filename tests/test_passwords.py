"""Tests for argon2id credential hashing."""

import pytest

from chirpy.service.errors import HashingError
from chirpy.service.passwords import CredentialHasher


class TestCredentialHasher:
    def test_hash_then_verify_round_trip(self):
        hasher = CredentialHasher()
        password_hash = hasher.hash("password")
        assert password_hash.startswith("$argon2id$")
        assert hasher.verify("password", password_hash) is True

    def test_same_password_gets_distinct_salts(self):
        hasher = CredentialHasher()
        first = hasher.hash("password")
        second = hasher.hash("password")
        assert first != second
        assert hasher.verify("password", first)
        assert hasher.verify("password", second)

    def test_cross_password_rejected(self):
        hasher = CredentialHasher()
        hash_a = hasher.hash("correctPassword123!")
        hash_b = hasher.hash("anotherPassword456!")
        assert hasher.verify("correctPassword123!", hash_b) is False
        assert hasher.verify("anotherPassword456!", hash_a) is False

    def test_empty_password_still_hashes(self):
        hasher = CredentialHasher()
        password_hash = hasher.hash("")
        assert hasher.verify("", password_hash)
        assert not hasher.verify("x", password_hash)

    def test_empty_hash_rejected(self):
        assert CredentialHasher().verify("password", "") is False

    def test_malformed_hash_rejected(self):
        hasher = CredentialHasher()
        assert hasher.verify("password", "invalidhash") is False
        assert hasher.verify("password", "$bcrypt$whatever") is False

    def test_needs_rehash(self):
        hasher = CredentialHasher()
        assert hasher.needs_rehash(hasher.hash("password")) is False
        assert hasher.needs_rehash("invalidhash") is True

    @pytest.mark.parametrize("password_hash", ["$argon2id$é", "пароль"])
    def test_non_ascii_hash_rejected(self, password_hash):
        assert CredentialHasher().verify("password", password_hash) is False

    def test_unencodable_password_rejected(self):
        hasher = CredentialHasher()
        assert hasher.verify("\ud800", hasher.hash("password")) is False

    def test_unencodable_password_hash_is_typed_failure(self):
        with pytest.raises(HashingError) as excinfo:
            CredentialHasher().hash("\ud800")
        assert excinfo.value.status_code == 500
