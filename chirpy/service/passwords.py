from __future__ import annotations

from argon2 import PasswordHasher, Type
from argon2.exceptions import HashingError as Argon2HashingError
from argon2.exceptions import InvalidHashError, VerificationError

from chirpy.logging import get_logger
from chirpy.service.errors import HashingError

logger = get_logger(__name__)


class CredentialHasher:
    """One-way argon2id password hashing.

    Hashes are PHC strings (``$argon2id$v=19$m=...,t=...,p=...$salt$digest``)
    so the parameters and the per-call random salt travel with the hash.
    Cost parameters are the argon2-cffi defaults.
    """

    algorithm = "argon2id"

    def __init__(self) -> None:
        self._pwd_hasher = PasswordHasher(type=Type.ID)

    def hash(self, password: str) -> str:
        try:
            return self._pwd_hasher.hash(password)
        # UnicodeEncodeError (a ValueError) for passwords with lone surrogates
        except (Argon2HashingError, ValueError) as exc:
            logger.error("password_hash_failed", error_type=type(exc).__name__)
            raise HashingError("password hashing failed") from exc

    def verify(self, password: str, password_hash: str) -> bool:
        """Return True only when ``password`` matches ``password_hash``.

        Empty, malformed, non-ASCII or foreign hashes and passwords that cannot
        be encoded as UTF-8 yield False instead of raising.
        """
        if not password_hash:
            return False
        try:
            return self._pwd_hasher.verify(password_hash, password)
        except (InvalidHashError, VerificationError, ValueError):
            return False

    def needs_rehash(self, password_hash: str) -> bool:
        try:
            return self._pwd_hasher.check_needs_rehash(password_hash)
        except (InvalidHashError, ValueError):
            return True
