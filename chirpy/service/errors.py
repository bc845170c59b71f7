from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer exceptions mapped to HTTP responses.

    Each subclass carries the HTTP ``status_code`` the boundary layer should
    answer with and a stable ``error_code``:

    - invalid_credentials (401)
    - invalid_token (401)
    - missing_credential (401)
    - unauthorized (401)
    - forbidden (403)
    - conflict (409)
    - server_error (500)

    Messages are deliberately generic. They must not say whether an email is
    registered or whether a refresh token is unknown, expired or revoked.
    """

    status_code: int = 400
    error_code: str = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[dict] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.detail = detail or {}


class AuthenticationError(ServiceError):
    """Authentication failed or missing (401)."""
    status_code = 401
    error_code = "unauthorized"


class UnauthorizedError(AuthenticationError):
    """Caller presented no valid access token."""


class InvalidCredentialsError(AuthenticationError):
    """Email/password pair rejected."""
    error_code = "invalid_credentials"


class InvalidTokenError(AuthenticationError):
    """Token failed verification, or refresh token is not usable."""
    error_code = "invalid_token"


class MissingCredentialError(AuthenticationError):
    """Authorization header absent or not in the expected scheme."""
    error_code = "missing_credential"


class ForbiddenError(ServiceError):
    """Access denied - caller does not own the resource (403)."""
    status_code = 403
    error_code = "forbidden"


class NotFoundError(ServiceError):
    """Requested resource not found (404)."""
    status_code = 404
    error_code = "not_found"


class RefreshTokenNotFound(NotFoundError):
    """No refresh token row matches the presented string."""


class ConflictError(ServiceError):
    """Resource conflict, e.g., duplicate email (409)."""
    status_code = 409
    error_code = "conflict"


class InternalFailureError(ServiceError):
    """Internal failure (500): hashing, signing or persistence broke."""
    status_code = 500
    error_code = "server_error"


class HashingError(InternalFailureError):
    pass


class SigningError(InternalFailureError):
    pass


__all__ = [
    "ServiceError",
    "AuthenticationError",
    "UnauthorizedError",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "MissingCredentialError",
    "ForbiddenError",
    "NotFoundError",
    "RefreshTokenNotFound",
    "ConflictError",
    "InternalFailureError",
    "HashingError",
    "SigningError",
]
