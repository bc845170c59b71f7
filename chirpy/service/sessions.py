from __future__ import annotations

import contextlib
import hmac
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, Mapping, Optional, Protocol

from chirpy.config import Settings
from chirpy.logging import get_logger
from chirpy.service.credentials import extract_api_key, extract_bearer
from chirpy.service.errors import (
    ConflictError,
    ForbiddenError,
    InternalFailureError,
    InvalidCredentialsError,
    InvalidTokenError,
    MissingCredentialError,
    RefreshTokenNotFound,
    UnauthorizedError,
)
from chirpy.service.passwords import CredentialHasher
from chirpy.service.refresh_tokens import (
    DEFAULT_REFRESH_TTL,
    RefreshTokenRepository,
    RefreshTokenStore,
)
from chirpy.service.tokens import AccessTokenCodec
from chirpy.storage.errors import ConstraintViolation, PersistenceError
from chirpy.storage.models import User

logger = get_logger(__name__)

DEFAULT_ACCESS_TTL = timedelta(hours=1)


class AuthStore(RefreshTokenRepository, Protocol):
    def create_user(self, email: str, hashed_password: str) -> User: ...

    def get_user_by_email(self, email: str) -> Optional[User]: ...

    def get_user(self, user_id: uuid.UUID) -> Optional[User]: ...

    def update_user(
        self, user_id: uuid.UUID, email: str, hashed_password: str
    ) -> Optional[User]: ...


@dataclass
class LoginResult:
    user_id: uuid.UUID
    access_token: str
    refresh_token: str


class SessionManager:
    """Login, refresh, revoke and request authorization.

    Outward failures are collapsed: an unknown email and a wrong
    password are both ``InvalidCredentialsError``; an unknown, expired or
    revoked refresh token is always ``InvalidTokenError``; any problem with an
    access token is ``UnauthorizedError``.
    """

    def __init__(
        self,
        store: AuthStore,
        *,
        jwt_secret: str | bytes,
        api_key: str | None = None,
        issuer: str = "chirpy",
        access_ttl: timedelta = DEFAULT_ACCESS_TTL,
        refresh_ttl: timedelta = DEFAULT_REFRESH_TTL,
        hasher: Optional[CredentialHasher] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self._jwt_secret = jwt_secret
        self._api_key = api_key
        self.access_ttl = access_ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.hasher = hasher or CredentialHasher()
        self.codec = AccessTokenCodec(issuer, clock=self._clock)
        self.refresh_tokens = RefreshTokenStore(store, ttl=refresh_ttl, clock=self._clock)
        self._dummy_hash: Optional[str] = None

    @classmethod
    def from_settings(
        cls, store: AuthStore, settings: Settings, **kwargs
    ) -> "SessionManager":
        return cls(
            store,
            jwt_secret=settings.jwt_secret,
            api_key=settings.api_key,
            issuer=settings.jwt_issuer,
            access_ttl=settings.access_token_ttl,
            refresh_ttl=settings.refresh_token_ttl,
            **kwargs,
        )

    @contextlib.contextmanager
    def _persistence_guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except (PersistenceError, ConstraintViolation) as exc:
            logger.error(
                "auth_persistence_failed",
                operation=operation,
                error_type=type(exc).__name__,
            )
            raise InternalFailureError("internal error") from exc

    def _reject_login(self) -> InvalidCredentialsError:
        logger.info("login_failed")
        return InvalidCredentialsError("incorrect email or password")

    def _equalize_timing(self, password: str) -> None:
        # Unknown emails still pay for one argon2 verify
        if self._dummy_hash is None:
            self._dummy_hash = self.hasher.hash(uuid.uuid4().hex)
        self.hasher.verify(password, self._dummy_hash)

    def login(self, email: str, password: str) -> LoginResult:
        with self._persistence_guard("login"):
            user = self.store.get_user_by_email(email)
        if user is None:
            self._equalize_timing(password)
            raise self._reject_login()
        if not self.hasher.verify(password, user.hashed_password):
            raise self._reject_login()

        # The refresh token row must exist before an access token is minted
        with self._persistence_guard("login"):
            refresh_token = self.refresh_tokens.create(user.id)
        access_token = self.codec.issue(user.id, self._jwt_secret, self.access_ttl)
        logger.info("login_succeeded", user_id=str(user.id))
        return LoginResult(
            user_id=user.id,
            access_token=access_token,
            refresh_token=refresh_token,
        )

    def refresh(self, refresh_token: str) -> str:
        """Mint a new access token for the owner of an active refresh token."""
        if not refresh_token:
            raise InvalidTokenError("invalid token")
        try:
            with self._persistence_guard("refresh"):
                record = self.refresh_tokens.lookup(refresh_token)
        except RefreshTokenNotFound:
            logger.info("refresh_rejected")
            raise InvalidTokenError("invalid token") from None
        if not self.refresh_tokens.is_usable(record):
            logger.info("refresh_rejected", user_id=str(record.user_id))
            raise InvalidTokenError("invalid token")
        return self.codec.issue(record.user_id, self._jwt_secret, self.access_ttl)

    def revoke(self, refresh_token: str) -> None:
        if not refresh_token:
            raise InvalidTokenError("invalid token")
        try:
            with self._persistence_guard("revoke"):
                self.refresh_tokens.revoke(refresh_token)
        except RefreshTokenNotFound:
            logger.info("revoke_rejected")
            raise InvalidTokenError("invalid token") from None

    def refresh_from_headers(self, headers: Mapping[str, str]) -> str:
        return self.refresh(self._bearer_or_invalid(headers))

    def revoke_from_headers(self, headers: Mapping[str, str]) -> None:
        self.revoke(self._bearer_or_invalid(headers))

    def _bearer_or_invalid(self, headers: Mapping[str, str]) -> str:
        try:
            return extract_bearer(headers)
        except MissingCredentialError:
            raise InvalidTokenError("invalid token") from None

    def authorize(self, headers: Mapping[str, str]) -> uuid.UUID:
        try:
            token = extract_bearer(headers)
            return self.codec.verify(token, self._jwt_secret)
        except (MissingCredentialError, InvalidTokenError):
            raise UnauthorizedError("unauthorized") from None

    def authorize_ownership(self, user_id: uuid.UUID, owner_id: uuid.UUID) -> None:
        if user_id != owner_id:
            logger.info("ownership_denied", user_id=str(user_id))
            raise ForbiddenError("forbidden")

    def authorize_owner(
        self, headers: Mapping[str, str], owner_id: uuid.UUID
    ) -> uuid.UUID:
        user_id = self.authorize(headers)
        self.authorize_ownership(user_id, owner_id)
        return user_id

    def authorize_api_key(self, headers: Mapping[str, str]) -> None:
        """Check a service-to-service ``ApiKey`` header against the configured key."""
        try:
            presented = extract_api_key(headers)
        except MissingCredentialError:
            raise UnauthorizedError("unauthorized") from None
        if self._api_key is None:
            logger.warning("api_key_not_configured")
            raise UnauthorizedError("unauthorized")
        if not hmac.compare_digest(presented.encode("utf-8"), self._api_key.encode("utf-8")):
            logger.info("api_key_rejected")
            raise UnauthorizedError("unauthorized")

    def register(self, email: str, password: str) -> User:
        hashed = self.hasher.hash(password)
        with self._persistence_guard("register"):
            try:
                user = self.store.create_user(email, hashed)
            except ConstraintViolation:
                raise ConflictError("email already registered") from None
        logger.info("user_registered", user_id=str(user.id))
        return user

    def update_credentials(
        self, user_id: uuid.UUID, email: str, password: str
    ) -> User:
        hashed = self.hasher.hash(password)
        with self._persistence_guard("update_credentials"):
            try:
                user = self.store.update_user(user_id, email, hashed)
            except ConstraintViolation:
                raise ConflictError("email already registered") from None
        if user is None:
            raise UnauthorizedError("unauthorized")
        logger.info("user_credentials_updated", user_id=str(user.id))
        return user
