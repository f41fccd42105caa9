"""Database schema, connection management and transactional primitives for SQLite."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Tuple

from common.logging_config import get_logger
from polygraf.config import BATCH_WRITE_LIMIT, BUSY_TIMEOUT_SECONDS, DATABASE_PATH
from polygraf.exceptions import StorageFailureError, TransactionAbortedError

logger = get_logger(__name__)


def _migrate_objects_add_linked_entities(cursor: sqlite3.Cursor) -> None:
    """
    Add the linked_entities column to objects tables created before it existed.
    """
    cursor.execute("PRAGMA table_info(objects)")
    columns = {row[1] for row in cursor.fetchall()}

    if "linked_entities" not in columns:
        cursor.execute("ALTER TABLE objects ADD COLUMN linked_entities TEXT NOT NULL DEFAULT '[]'")


def init_database() -> None:
    """
    Initialize database and create tables if they don't exist.
    """
    db_path = Path(DATABASE_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection() as conn:
        cursor = conn.cursor()

        cursor.execute("PRAGMA journal_mode=WAL")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS access_tokens (
                token_id TEXT PRIMARY KEY,
                token TEXT NOT NULL,
                role TEXT NOT NULL,
                used INTEGER NOT NULL DEFAULT 0,
                used_by TEXT,
                used_at TEXT,
                created_at TEXT NOT NULL,
                expires_at TEXT,
                description TEXT,
                created_by TEXT
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS token_audit (
                audit_id TEXT PRIMARY KEY,
                token_id TEXT NOT NULL,
                event TEXT NOT NULL,
                actor TEXT,
                timestamp TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS identities (
                identity_id TEXT PRIMARY KEY,
                session_key TEXT UNIQUE NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                role TEXT NOT NULL,
                linked_token TEXT,
                is_guest INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                last_login_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS objects (
                object_id TEXT PRIMARY KEY,
                display_name TEXT NOT NULL,
                mime_type TEXT NOT NULL,
                byte_size INTEGER NOT NULL,
                owner_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                inline_payload TEXT,
                chunk_count INTEGER,
                linked_entities TEXT NOT NULL DEFAULT '[]',
                CHECK ((inline_payload IS NULL) != (chunk_count IS NULL))
            )
        """)

        _migrate_objects_add_linked_entities(cursor)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS object_chunks (
                object_id TEXT NOT NULL,
                chunk_index INTEGER NOT NULL,
                data TEXT NOT NULL,
                PRIMARY KEY(object_id, chunk_index)
            )
        """)

        cursor.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_access_tokens_token ON access_tokens(token)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_access_tokens_created_at ON access_tokens(created_at)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_token_audit_token_id ON token_audit(token_id)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_objects_created_at ON objects(created_at)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_objects_owner ON objects(owner_id)
        """)

        conn.commit()


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for plain database connections (implicit transactions).
    """
    conn = sqlite3.connect(DATABASE_PATH, timeout=BUSY_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def use_connection(conn: Optional[sqlite3.Connection] = None) -> Generator[sqlite3.Connection, None, None]:
    """
    Yield the caller's connection, or open a new one that commits on exit.
    """
    if conn is not None:
        yield conn
        return
    with get_db_connection() as own_conn:
        yield own_conn
        own_conn.commit()


def _is_contention(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return "locked" in message or "busy" in message


@contextmanager
def transaction(immediate: bool = True) -> Generator[sqlite3.Connection, None, None]:
    """
    Open a single isolation scope.

    With ``immediate=True`` the write lock is taken at BEGIN, so a value read
    inside the block cannot change before the block commits. With
    ``immediate=False`` the block is a deferred read snapshot.

    Commits when the block exits normally and rolls back on any exception.
    Lock contention is raised as TransactionAbortedError, other backend
    failures as StorageFailureError.
    """
    conn = sqlite3.connect(DATABASE_PATH, timeout=BUSY_TIMEOUT_SECONDS, isolation_level=None)
    conn.row_factory = sqlite3.Row
    try:
        try:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            yield conn
            conn.commit()
        except sqlite3.OperationalError as e:
            if conn.in_transaction:
                conn.rollback()
            if _is_contention(e):
                logger.warning(f"Transaction aborted under contention: {e}")
                raise TransactionAbortedError() from e
            logger.error(f"Transaction failed: {e}", exc_info=True)
            raise StorageFailureError() from e
        except BaseException:
            if conn.in_transaction:
                conn.rollback()
            raise
    finally:
        conn.close()


def read_snapshot():
    """
    Deferred transaction for consistent multi-statement reads.
    """
    return transaction(immediate=False)


class WriteBatch:
    """
    A set of writes that become visible together or not at all.

    Writes are staged as (statement, params) pairs and applied inside one
    transaction on commit. The number of writes is bounded by ``max_writes``.
    """

    def __init__(self, max_writes: Optional[int] = None):
        self.max_writes = BATCH_WRITE_LIMIT if max_writes is None else max_writes
        self._writes: List[Tuple[str, tuple]] = []
        self._committed = False

    def add(self, statement: str, params: tuple = ()) -> "WriteBatch":
        if self._committed:
            raise StorageFailureError("Batch already committed")
        if len(self._writes) >= self.max_writes:
            raise StorageFailureError(f"Batch exceeds {self.max_writes} writes")
        self._writes.append((statement, params))
        return self

    def __len__(self) -> int:
        return len(self._writes)

    def commit(self) -> None:
        if self._committed:
            raise StorageFailureError("Batch already committed")
        if not self._writes:
            self._committed = True
            return

        try:
            with transaction() as conn:
                for statement, params in self._writes:
                    conn.execute(statement, params)
        except sqlite3.IntegrityError as e:
            logger.error(f"Batch rejected by integrity constraint: {e}", exc_info=True)
            raise StorageFailureError() from e

        self._committed = True
        logger.debug(f"Committed batch of {len(self._writes)} writes")


def row_to_dict(row: Optional[sqlite3.Row]) -> Optional[Dict[str, Any]]:
    """
    Convert a sqlite3.Row to a plain dict (None passes through).
    """
    if row is None:
        return None
    return dict(row)


def get_row_value(row: sqlite3.Row, column: str, default: Any = None) -> Any:
    """
    Read a column from a row, falling back to default when the column is
    absent or NULL.
    """
    if column not in row.keys():
        return default
    value = row[column]
    return default if value is None else value
