"""Anonymous identity issuance.

The redemption flow only needs three things from an identity backend: mint a
fresh anonymous identity, revoke one, and resolve a presented session key back
to its identity. ``LocalIdentityProvider`` keeps identities in the same SQLite
database as everything else.
"""

import sqlite3
from dataclasses import dataclass
from typing import Optional, Protocol

from common.constants import SESSION_KEY_PREFIX
from common.logging_config import get_logger
from polygraf.database import use_connection
from polygraf.exceptions import IdentityIssuanceFailedError
from polygraf.utils import generate_uuid, to_iso, utc_now

logger = get_logger(__name__)


@dataclass(frozen=True)
class Identity:
    identity_id: str
    session_key: str


class IdentityProvider(Protocol):
    def issue_anonymous_identity(self) -> Identity:
        ...

    def revoke(self, identity_id: str) -> None:
        ...

    def resolve_session(self, session_key: str) -> Optional[str]:
        ...


def generate_session_key() -> str:
    return f"{SESSION_KEY_PREFIX}{generate_uuid()}"


class LocalIdentityProvider:
    def issue_anonymous_identity(self) -> Identity:
        """
        Create a new identity with a fresh bearer session key.

        Raises:
            IdentityIssuanceFailedError: If the identity could not be persisted
        """
        identity = Identity(identity_id=generate_uuid(), session_key=generate_session_key())
        try:
            with use_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO identities (identity_id, session_key, created_at)
                    VALUES (?, ?, ?)
                    """,
                    (identity.identity_id, identity.session_key, to_iso(utc_now()))
                )
        except sqlite3.Error as e:
            logger.error(f"Failed to issue identity: {e}", exc_info=True)
            raise IdentityIssuanceFailedError() from e

        logger.info(f"Issued anonymous identity [identity_id={identity.identity_id}]")
        return identity

    def revoke(self, identity_id: str) -> None:
        with use_connection() as conn:
            conn.execute("DELETE FROM identities WHERE identity_id = ?", (identity_id,))
        logger.info(f"Revoked identity [identity_id={identity_id}]")

    def resolve_session(self, session_key: str) -> Optional[str]:
        with use_connection() as conn:
            row = conn.execute(
                "SELECT identity_id FROM identities WHERE session_key = ?",
                (session_key,)
            ).fetchone()
        return row["identity_id"] if row else None
