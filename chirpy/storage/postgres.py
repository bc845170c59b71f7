from __future__ import annotations

import contextlib
import uuid
from datetime import datetime
from typing import Any, Iterator, Optional

import psycopg
from psycopg import errors
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from chirpy.logging import get_logger
from chirpy.storage.errors import ConstraintViolation, PersistenceError
from chirpy.storage.models import RefreshToken, User, utcnow

_REQUIRED_TABLES = ("users", "refresh_tokens")


class PostgresStore:
    """Postgres-backed store for user credentials and refresh tokens."""

    def __init__(self, dsn: str, *, min_size: int = 1, max_size: int = 10) -> None:
        self.dsn = dsn
        self.logger = get_logger(__name__)
        self.pool = ConnectionPool(
            self.dsn,
            min_size=min_size,
            max_size=max_size,
            kwargs={"row_factory": dict_row, "autocommit": False},
        )
        self._verify_required_schema()

    def _connect(self):
        return self.pool.connection()

    @contextlib.contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except errors.UniqueViolation as exc:
            raise ConstraintViolation(
                "unique constraint violated", {"operation": operation}
            ) from exc
        except errors.ForeignKeyViolation as exc:
            raise ConstraintViolation(
                "referenced row missing", {"operation": operation}
            ) from exc
        except psycopg.Error as exc:
            self.logger.error(
                "postgres_operation_failed",
                operation=operation,
                error_type=type(exc).__name__,
            )
            raise PersistenceError(
                f"{operation} failed", {"operation": operation}
            ) from exc

    def _verify_required_schema(self) -> None:
        """Ensure the tables this store reads and writes exist."""

        with self._translate_errors("verify_schema"), self._connect() as conn:
            missing_tables = []
            for table in _REQUIRED_TABLES:
                row = conn.execute(
                    "SELECT to_regclass(%s) AS oid", (f"public.{table}",)
                ).fetchone()
                if not row or not row.get("oid"):
                    missing_tables.append(table)
        if missing_tables:
            raise RuntimeError(
                "Missing required Postgres tables: {}. Apply the database migrations first.".format(
                    ", ".join(sorted(missing_tables))
                )
            )

    @staticmethod
    def _user_from_row(row: dict[str, Any]) -> User:
        return User(
            id=uuid.UUID(str(row["id"])),
            email=row["email"],
            hashed_password=row["hashed_password"],
            created_at=row.get("created_at") or utcnow(),
            updated_at=row.get("updated_at") or utcnow(),
        )

    @staticmethod
    def _refresh_from_row(row: dict[str, Any]) -> RefreshToken:
        return RefreshToken(
            token=row["token"],
            user_id=uuid.UUID(str(row["user_id"])),
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
            expires_at=row["expires_at"],
            revoked_at=row.get("revoked_at"),
        )

    # users
    def create_user(self, email: str, hashed_password: str) -> User:
        user = User.new(email, hashed_password)
        try:
            with self._translate_errors("create_user"), self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO users (id, created_at, updated_at, email, hashed_password)
                    VALUES (%s, %s, %s, %s, %s)
                    """,
                    (user.id, user.created_at, user.updated_at, email, hashed_password),
                )
        except ConstraintViolation:
            raise ConstraintViolation("email already exists", {"field": "email"})
        return user

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._translate_errors("get_user_by_email"), self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = %s", (email,)
            ).fetchone()
        if not row:
            return None
        return self._user_from_row(row)

    def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        with self._translate_errors("get_user"), self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE id = %s", (user_id,)
            ).fetchone()
        if not row:
            return None
        return self._user_from_row(row)

    def update_user(
        self, user_id: uuid.UUID, email: str, hashed_password: str
    ) -> Optional[User]:
        try:
            with self._translate_errors("update_user"), self._connect() as conn:
                row = conn.execute(
                    """
                    UPDATE users
                    SET email = %s, hashed_password = %s, updated_at = %s
                    WHERE id = %s
                    RETURNING *
                    """,
                    (email, hashed_password, utcnow(), user_id),
                ).fetchone()
        except ConstraintViolation:
            raise ConstraintViolation("email already exists", {"field": "email"})
        if not row:
            return None
        return self._user_from_row(row)

    # refresh tokens
    def create_refresh_token(
        self,
        token: str,
        user_id: uuid.UUID,
        created_at: datetime,
        expires_at: datetime,
    ) -> RefreshToken:
        with self._translate_errors("create_refresh_token"), self._connect() as conn:
            row = conn.execute(
                """
                INSERT INTO refresh_tokens (token, created_at, updated_at, user_id, expires_at)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING *
                """,
                (token, created_at, created_at, user_id, expires_at),
            ).fetchone()
        return self._refresh_from_row(row)

    def get_refresh_token(self, token: str) -> Optional[RefreshToken]:
        with self._translate_errors("get_refresh_token"), self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM refresh_tokens WHERE token = %s", (token,)
            ).fetchone()
        if not row:
            return None
        return self._refresh_from_row(row)

    def revoke_refresh_token(
        self, token: str, revoked_at: datetime
    ) -> Optional[RefreshToken]:
        """Compare-and-set ``revoked_at``; an already revoked row is returned unchanged."""
        with self._translate_errors("revoke_refresh_token"), self._connect() as conn:
            row = conn.execute(
                """
                UPDATE refresh_tokens
                SET revoked_at = %s, updated_at = %s
                WHERE token = %s AND revoked_at IS NULL
                RETURNING *
                """,
                (revoked_at, revoked_at, token),
            ).fetchone()
            if row is None:
                row = conn.execute(
                    "SELECT * FROM refresh_tokens WHERE token = %s", (token,)
                ).fetchone()
        if not row:
            return None
        return self._refresh_from_row(row)

    def close(self) -> None:
        self.pool.close()
