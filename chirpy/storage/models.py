from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class User:
    id: uuid.UUID
    email: str
    hashed_password: str = field(repr=False)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def new(cls, email: str, hashed_password: str) -> "User":
        now = utcnow()
        return cls(
            id=uuid.uuid4(),
            email=email,
            hashed_password=hashed_password,
            created_at=now,
            updated_at=now,
        )


@dataclass
class RefreshToken:
    """Persisted refresh token row.

    ``revoked_at`` is written at most once; stores must never overwrite a
    non-null value.
    """

    token: str = field(repr=False)
    user_id: uuid.UUID
    created_at: datetime
    expires_at: datetime
    updated_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None

    def is_active(self, now: Optional[datetime] = None) -> bool:
        current = now or utcnow()
        return self.revoked_at is None and self.expires_at > current
