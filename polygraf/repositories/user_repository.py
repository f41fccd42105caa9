"""User claim repository for database operations."""

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from common.logging_config import get_logger
from polygraf.database import use_connection
from polygraf.utils import parse_iso, to_iso

logger = get_logger(__name__)


@dataclass
class IdentityClaim:
    user_id: str
    role: str
    linked_token: Optional[str]
    created_at: datetime
    last_login_at: datetime
    is_guest: bool = False
    # Bearer credential of the identity; returned to the caller, never stored here.
    session_key: Optional[str] = None


def _row_to_claim(row: sqlite3.Row) -> IdentityClaim:
    return IdentityClaim(
        user_id=row["user_id"],
        role=row["role"],
        linked_token=row["linked_token"],
        created_at=parse_iso(row["created_at"]),
        last_login_at=parse_iso(row["last_login_at"]),
        is_guest=bool(row["is_guest"]),
    )


class UserRepository:
    @staticmethod
    def upsert_claim(
        user_id: str,
        role: str,
        now: datetime,
        linked_token: Optional[str] = None,
        is_guest: bool = False,
        conn=None,
    ) -> IdentityClaim:
        """
        Create or merge the claim for an identity.

        An existing row keeps its created_at and its linked_token when no new
        token is given; role, guest flag and last login are overwritten.
        """
        logger.debug(f"Upserting claim [user_id={user_id}] role={role}")
        with use_connection(conn) as conn:
            conn.execute(
                """
                INSERT INTO users (user_id, role, linked_token, is_guest, created_at, last_login_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    role = excluded.role,
                    linked_token = COALESCE(excluded.linked_token, users.linked_token),
                    is_guest = excluded.is_guest,
                    last_login_at = excluded.last_login_at
                """,
                (user_id, role, linked_token, int(is_guest), to_iso(now), to_iso(now))
            )
            row = conn.execute(
                """
                SELECT user_id, role, linked_token, is_guest, created_at, last_login_at
                FROM users WHERE user_id = ?
                """,
                (user_id,)
            ).fetchone()
        return _row_to_claim(row)

    @staticmethod
    def get_by_user_id(user_id: str, conn=None) -> Optional[IdentityClaim]:
        with use_connection(conn) as conn:
            row = conn.execute(
                """
                SELECT user_id, role, linked_token, is_guest, created_at, last_login_at
                FROM users WHERE user_id = ?
                """,
                (user_id,)
            ).fetchone()
        return _row_to_claim(row) if row else None
