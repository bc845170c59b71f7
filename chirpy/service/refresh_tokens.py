from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from chirpy.logging import get_logger
from chirpy.service.errors import RefreshTokenNotFound
from chirpy.storage.models import RefreshToken

logger = get_logger(__name__)

DEFAULT_REFRESH_TTL = timedelta(days=60)
_TOKEN_BYTES = 32


class RefreshTokenRepository(Protocol):
    def create_refresh_token(
        self,
        token: str,
        user_id: uuid.UUID,
        created_at: datetime,
        expires_at: datetime,
    ) -> RefreshToken: ...

    def get_refresh_token(self, token: str) -> Optional[RefreshToken]: ...

    def revoke_refresh_token(
        self, token: str, revoked_at: datetime
    ) -> Optional[RefreshToken]: ...


class RefreshTokenStore:
    """Lifecycle of opaque refresh tokens on top of the persistence layer.

    Tokens are never deleted here. Expiry is checked lazily via
    :meth:`is_usable`; revocation is monotonic and enforced by the
    repository's compare-and-set.
    """

    def __init__(
        self,
        repository: RefreshTokenRepository,
        *,
        ttl: timedelta = DEFAULT_REFRESH_TTL,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.repository = repository
        self.ttl = ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _now(self) -> datetime:
        return self._clock()

    def create(self, user_id: uuid.UUID) -> str:
        token = secrets.token_hex(_TOKEN_BYTES)
        now = self._now()
        self.repository.create_refresh_token(
            token=token,
            user_id=user_id,
            created_at=now,
            expires_at=now + self.ttl,
        )
        logger.info("refresh_token_created", user_id=str(user_id))
        return token

    def lookup(self, token: str) -> RefreshToken:
        record = self.repository.get_refresh_token(token)
        if record is None:
            raise RefreshTokenNotFound("refresh token not found")
        return record

    def revoke(self, token: str) -> RefreshToken:
        record = self.repository.revoke_refresh_token(token, self._now())
        if record is None:
            raise RefreshTokenNotFound("refresh token not found")
        logger.info("refresh_token_revoked", user_id=str(record.user_id))
        return record

    def is_usable(self, record: RefreshToken) -> bool:
        return record.is_active(self._now())
