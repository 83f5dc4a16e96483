"""Database repository for user account data."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account import Account, Role
from .domain.contracts import AccountFilter, NewAccountRecord, StoreConflict, StoreError

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id BIGSERIAL PRIMARY KEY,
    first_name VARCHAR(50) NOT NULL,
    last_name VARCHAR(50) NOT NULL,
    middle_name VARCHAR(50),
    birth_date DATE NOT NULL,
    email VARCHAR(255) NOT NULL,
    password_hash VARCHAR(255) NOT NULL,
    role VARCHAR(16) NOT NULL DEFAULT 'user' CHECK (role IN ('admin', 'user')),
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE UNIQUE INDEX IF NOT EXISTS users_email_lower_key ON users (LOWER(email));
CREATE INDEX IF NOT EXISTS users_role_idx ON users (role);
CREATE INDEX IF NOT EXISTS users_is_active_idx ON users (is_active);
"""

_COLUMNS = (
    "id, first_name, last_name, middle_name, birth_date, email, password_hash, "
    "role, is_active, created_at, updated_at"
)

# Fields the domain may change through ``update``; values are column names.
_UPDATABLE = {
    "first_name": "first_name",
    "last_name": "last_name",
    "middle_name": "middle_name",
    "birth_date": "birth_date",
    "email": "email",
    "password_hash": "password_hash",
    "is_active": "is_active",
}


class AccountRepository:
    """Postgres-backed account persistence."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def ensure_schema(self) -> None:
        """Create the ``users`` table and its indexes when missing."""
        with self._translate_errors("schema creation"):
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(SCHEMA_SQL)
                conn.commit()

    def find_by_id(self, account_id: int) -> Account | None:
        """Fetch an account by primary key or return ``None``."""
        return self._fetch_one(f"SELECT {_COLUMNS} FROM users WHERE id = %s", (account_id,))

    def find_by_email(self, email: str) -> Account | None:
        """Fetch an account by email, compared case-insensitively."""
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM users WHERE LOWER(email) = LOWER(%s)", (email,)
        )

    def create(self, record: NewAccountRecord) -> Account:
        """Insert a new account and return it with its server-assigned fields."""
        now = datetime.now(timezone.utc)
        with self._translate_errors("insert"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO users (first_name, last_name, middle_name, birth_date, email,
                                           password_hash, role, is_active, created_at, updated_at)
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                        RETURNING {_COLUMNS}
                        """,
                        (
                            record.first_name,
                            record.last_name,
                            record.middle_name,
                            record.birth_date,
                            record.email,
                            record.password_hash,
                            record.role.value,
                            record.is_active,
                            now,
                            now,
                        ),
                    )
                    row = cur.fetchone()
                conn.commit()
        return self._map_record(row)

    def update(self, account_id: int, changes: dict[str, Any]) -> Account | None:
        """Apply a partial update and return the updated account, or ``None`` if absent."""
        unknown = set(changes) - set(_UPDATABLE)
        if unknown:
            raise ValueError(f"unsupported account fields: {sorted(unknown)}")

        assignments = [f"{_UPDATABLE[name]} = %s" for name in changes]
        params: list[Any] = list(changes.values())
        assignments.append("updated_at = %s")
        params.append(datetime.now(timezone.utc))
        params.append(account_id)

        query = f"""
            UPDATE users
            SET {", ".join(assignments)}
            WHERE id = %s
            RETURNING {_COLUMNS}
        """
        with self._translate_errors("update"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
                conn.commit()
        if not row:
            return None
        return self._map_record(row)

    def delete(self, account_id: int) -> bool:
        """Hard-delete the account; return ``False`` when nothing was removed."""
        with self._translate_errors("delete"):
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("DELETE FROM users WHERE id = %s", (account_id,))
                    deleted = cur.rowcount > 0
                conn.commit()
        return deleted

    def find_and_count(
        self, account_filter: AccountFilter, *, offset: int, limit: int
    ) -> tuple[list[Account], int]:
        """Return one newest-first page of accounts plus the total matching count."""
        clauses: list[str] = []
        params: list[Any] = []
        if account_filter.role is not None:
            clauses.append("role = %s")
            params.append(account_filter.role.value)
        if account_filter.is_active is not None:
            clauses.append("is_active = %s")
            params.append(account_filter.is_active)
        where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._translate_errors("paginated select"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(f"SELECT COUNT(*) FROM users {where_sql}", params)
                    total = cur.fetchone()[0]
                    cur.execute(
                        f"""
                        SELECT {_COLUMNS}
                        FROM users
                        {where_sql}
                        ORDER BY created_at DESC, id DESC
                        LIMIT %s OFFSET %s
                        """,
                        [*params, limit, offset],
                    )
                    rows = cur.fetchall()
        return [self._map_record(row) for row in rows], int(total)

    def _fetch_one(self, query: str, params: tuple[Any, ...]) -> Account | None:
        with self._translate_errors("select"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
        if not row:
            return None
        return self._map_record(row)

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        """Keep psycopg exceptions inside the repository."""
        try:
            yield
        except pg_errors.UniqueViolation as exc:
            raise StoreConflict(f"unique constraint violated during {operation}") from exc
        except psycopg.Error as exc:
            logger.error("postgres %s failed: %s", operation, exc)
            raise StoreError(f"database error during {operation}") from exc

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            id=row[0],
            first_name=row[1],
            last_name=row[2],
            middle_name=row[3],
            birth_date=row[4],
            email=row[5],
            password_hash=row[6],
            role=Role(row[7]),
            is_active=row[8],
            created_at=row[9],
            updated_at=row[10],
        )
