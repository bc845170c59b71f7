from __future__ import annotations

import base64
import hashlib
import hmac
import json
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from chirpy.logging import get_logger
from chirpy.service.errors import InvalidTokenError, SigningError

logger = get_logger(__name__)

Clock = Callable[[], datetime]

_HEADER = {"alg": "HS256", "typ": "JWT"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _key_bytes(secret: str | bytes) -> bytes:
    return secret if isinstance(secret, bytes) else secret.encode("utf-8")


class AccessTokenCodec:
    """Issue and verify short-lived HS256 access tokens.

    Claims are ``iss``, ``sub`` (user UUID), ``iat`` and ``exp`` in whole
    seconds, so two tokens minted for the same user within one second are
    identical. Tokens are stateless: there is no revocation list.
    """

    def __init__(self, issuer: str = "chirpy", *, clock: Optional[Clock] = None) -> None:
        self.issuer = issuer
        self._clock = clock or _utcnow

    def _encode_segment(self, data: bytes) -> str:
        return base64.urlsafe_b64encode(data).decode("utf-8").rstrip("=")

    def _decode_segment(self, segment: str) -> bytes:
        padding = "=" * ((4 - len(segment) % 4) % 4)
        return base64.urlsafe_b64decode(segment + padding)

    def _sign(self, signing_input: str, secret: str | bytes) -> str:
        digest = hmac.new(
            _key_bytes(secret), signing_input.encode("ascii"), hashlib.sha256
        ).digest()
        return self._encode_segment(digest)

    def issue(self, user_id: uuid.UUID, secret: str | bytes, ttl: timedelta) -> str:
        now = self._clock()
        payload = {
            "iss": self.issuer,
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }
        try:
            header_enc = self._encode_segment(
                json.dumps(_HEADER, separators=(",", ":")).encode()
            )
            payload_enc = self._encode_segment(
                json.dumps(payload, separators=(",", ":")).encode()
            )
            signing_input = f"{header_enc}.{payload_enc}"
            return f"{signing_input}.{self._sign(signing_input, secret)}"
        except (TypeError, ValueError) as exc:
            logger.error("access_token_sign_failed", error_type=type(exc).__name__)
            raise SigningError("failed to sign access token") from exc

    def verify(self, token: str, secret: str | bytes) -> uuid.UUID:
        """Return the token's subject, or raise InvalidTokenError."""
        payload = self._decode(token, secret)
        if payload is None:
            raise InvalidTokenError("invalid token")
        try:
            return uuid.UUID(str(payload.get("sub")))
        except ValueError:
            logger.warning("access_token_subject_invalid")
            raise InvalidTokenError("invalid token") from None

    def _decode(self, token: str, secret: str | bytes) -> Optional[dict[str, Any]]:
        try:
            header_b64, payload_b64, sig_b64 = token.split(".")
        except ValueError:
            return None

        # Only HS256 is accepted; anything else is treated as forged
        try:
            header = json.loads(self._decode_segment(header_b64))
        except (ValueError, UnicodeDecodeError):
            logger.warning("access_token_header_decode_failed")
            return None
        if not isinstance(header, dict) or header.get("alg") != "HS256":
            logger.warning("access_token_invalid_algorithm")
            return None

        try:
            expected_sig = self._sign(f"{header_b64}.{payload_b64}", secret)
        except UnicodeEncodeError:
            return None
        if not hmac.compare_digest(expected_sig.encode(), sig_b64.encode("utf-8")):
            return None
        try:
            payload = json.loads(self._decode_segment(payload_b64))
        except (ValueError, UnicodeDecodeError) as exc:
            logger.warning("access_token_payload_decode_failed", error=str(exc))
            return None
        if not isinstance(payload, dict):
            return None
        if payload.get("iss") != self.issuer:
            return None
        exp = payload.get("exp")
        if exp is None or isinstance(exp, bool):
            return None
        try:
            exp_ts = float(exp)
        except (TypeError, ValueError):
            return None
        if exp_ts <= self._clock().timestamp():
            return None
        return payload
