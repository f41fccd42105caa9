"""Access token repository for database operations."""

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from common.logging_config import get_logger
from polygraf.database import use_connection
from polygraf.utils import generate_uuid, parse_iso, to_iso

logger = get_logger(__name__)

_TOKEN_COLUMNS = """token_id, token, role, used, used_by, used_at, created_at,
                    expires_at, description, created_by"""


@dataclass
class AccessToken:
    token_id: str
    token: str
    role: str
    used: bool
    used_by: Optional[str]
    used_at: Optional[datetime]
    created_at: datetime
    expires_at: Optional[datetime] = None
    description: Optional[str] = None
    created_by: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now


@dataclass
class TokenAuditEntry:
    audit_id: str
    token_id: str
    event: str
    actor: Optional[str]
    timestamp: datetime


def _row_to_token(row: sqlite3.Row) -> AccessToken:
    return AccessToken(
        token_id=row["token_id"],
        token=row["token"],
        role=row["role"],
        used=bool(row["used"]),
        used_by=row["used_by"],
        used_at=parse_iso(row["used_at"]),
        created_at=parse_iso(row["created_at"]),
        expires_at=parse_iso(row["expires_at"]),
        description=row["description"],
        created_by=row["created_by"],
    )


class TokenRepository:
    @staticmethod
    def create_token(token: AccessToken, conn=None) -> AccessToken:
        logger.debug(f"Creating access token [token_id={token.token_id}] role={token.role}")
        with use_connection(conn) as conn:
            conn.execute(
                f"""
                INSERT INTO access_tokens ({_TOKEN_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    token.token_id,
                    token.token,
                    token.role,
                    int(token.used),
                    token.used_by,
                    to_iso(token.used_at),
                    to_iso(token.created_at),
                    to_iso(token.expires_at),
                    token.description,
                    token.created_by,
                )
            )
        return token

    @staticmethod
    def get_by_token(token_string: str, conn=None) -> Optional[AccessToken]:
        """
        Exact-match lookup. Tokens are unique, so at most one row is read.
        """
        with use_connection(conn) as conn:
            row = conn.execute(
                f"SELECT {_TOKEN_COLUMNS} FROM access_tokens WHERE token = ? LIMIT 1",
                (token_string,)
            ).fetchone()
        return _row_to_token(row) if row else None

    @staticmethod
    def get_by_id(token_id: str, conn=None) -> Optional[AccessToken]:
        with use_connection(conn) as conn:
            row = conn.execute(
                f"SELECT {_TOKEN_COLUMNS} FROM access_tokens WHERE token_id = ?",
                (token_id,)
            ).fetchone()
        return _row_to_token(row) if row else None

    @staticmethod
    def mark_used(token_id: str, used_by: str, used_at: datetime, conn) -> bool:
        """
        Set the terminal used state. The ``used = 0`` guard makes the update a
        no-op for a token that is already used.

        Returns:
            True if the token transitioned to used
        """
        cursor = conn.execute(
            """
            UPDATE access_tokens
            SET used = 1, used_by = ?, used_at = ?
            WHERE token_id = ? AND used = 0
            """,
            (used_by, to_iso(used_at), token_id)
        )
        return cursor.rowcount == 1

    @staticmethod
    def list_tokens(include_used: bool = True, conn=None) -> List[AccessToken]:
        query = f"SELECT {_TOKEN_COLUMNS} FROM access_tokens"
        if not include_used:
            query += " WHERE used = 0"
        query += " ORDER BY created_at DESC"
        with use_connection(conn) as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_token(row) for row in rows]

    @staticmethod
    def delete_token(token_id: str, conn=None) -> bool:
        with use_connection(conn) as conn:
            cursor = conn.execute(
                "DELETE FROM access_tokens WHERE token_id = ? AND used = 0",
                (token_id,)
            )
        return cursor.rowcount == 1

    @staticmethod
    def add_audit_entry(token_id: str, event: str, actor: Optional[str], timestamp: datetime, conn=None) -> None:
        with use_connection(conn) as conn:
            conn.execute(
                """
                INSERT INTO token_audit (audit_id, token_id, event, actor, timestamp)
                VALUES (?, ?, ?, ?, ?)
                """,
                (generate_uuid(), token_id, event, actor, to_iso(timestamp))
            )

    @staticmethod
    def get_audit_entries(token_id: str) -> List[TokenAuditEntry]:
        with use_connection() as conn:
            rows = conn.execute(
                """
                SELECT audit_id, token_id, event, actor, timestamp
                FROM token_audit
                WHERE token_id = ?
                ORDER BY timestamp
                """,
                (token_id,)
            ).fetchall()
        return [
            TokenAuditEntry(
                audit_id=row["audit_id"],
                token_id=row["token_id"],
                event=row["event"],
                actor=row["actor"],
                timestamp=parse_iso(row["timestamp"]),
            )
            for row in rows
        ]
