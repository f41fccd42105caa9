"""Tests for the transactional store primitives."""

import sqlite3
import threading
import time

import pytest

from polygraf import database
from polygraf.database import (
    WriteBatch,
    get_db_connection,
    get_row_value,
    read_snapshot,
    row_to_dict,
    transaction,
)
from polygraf.exceptions import StorageFailureError, TransactionAbortedError


def _insert_identity(conn, identity_id):
    conn.execute(
        "INSERT INTO identities (identity_id, session_key, created_at) VALUES (?, ?, ?)",
        (identity_id, f"pgs_{identity_id}", "2024-01-01T00:00:00.000000+00:00")
    )


def _count_identities():
    with get_db_connection() as conn:
        return conn.execute("SELECT COUNT(*) FROM identities").fetchone()[0]


class TestDatabaseHelpers:
    """Test database helper functions."""

    def test_row_to_dict_with_valid_row(self, test_db):
        with get_db_connection() as conn:
            _insert_identity(conn, "id-1")
            conn.commit()
            row = conn.execute("SELECT * FROM identities").fetchone()

        result = row_to_dict(row)
        assert result["identity_id"] == "id-1"
        assert isinstance(result, dict)

    def test_row_to_dict_with_none(self):
        assert row_to_dict(None) is None

    def test_get_row_value_falls_back_to_default(self, test_db):
        with get_db_connection() as conn:
            conn.execute(
                "INSERT INTO access_tokens (token_id, token, role, created_at) VALUES (?, ?, ?, ?)",
                ("t1", "KEY-AAAA-BBBB-CCCC", "user", "2024-01-01T00:00:00.000000+00:00")
            )
            conn.commit()
            row = conn.execute("SELECT * FROM access_tokens").fetchone()

        assert get_row_value(row, "role") == "user"
        assert get_row_value(row, "expires_at", "never") == "never"
        assert get_row_value(row, "no_such_column", 42) == 42


class TestSchema:
    """Test schema constraints."""

    def test_object_must_be_inline_or_chunked(self, test_db):
        with get_db_connection() as conn:
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    """
                    INSERT INTO objects (object_id, display_name, mime_type, byte_size, owner_id,
                                         created_at, inline_payload, chunk_count)
                    VALUES ('o1', 'n', 'text/plain', 1, 'u', 'now', 'abc', 2)
                    """
                )
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    """
                    INSERT INTO objects (object_id, display_name, mime_type, byte_size, owner_id,
                                         created_at, inline_payload, chunk_count)
                    VALUES ('o2', 'n', 'text/plain', 1, 'u', 'now', NULL, NULL)
                    """
                )

    def test_init_database_is_idempotent(self, test_db):
        database.init_database()
        database.init_database()

    def test_init_database_adds_linked_entities_to_existing_objects_table(self, tmp_path, monkeypatch):
        db_path = tmp_path / "old.db"
        monkeypatch.setattr("polygraf.database.DATABASE_PATH", str(db_path))
        conn = sqlite3.connect(db_path)
        conn.execute("""
            CREATE TABLE objects (
                object_id TEXT PRIMARY KEY,
                display_name TEXT NOT NULL,
                mime_type TEXT NOT NULL,
                byte_size INTEGER NOT NULL,
                owner_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                inline_payload TEXT,
                chunk_count INTEGER
            )
        """)
        conn.execute(
            "INSERT INTO objects VALUES ('o1', 'a.txt', 'text/plain', 3, 'owner-1', "
            "'2024-01-01T00:00:00.000000+00:00', 'abc', NULL)"
        )
        conn.commit()
        conn.close()

        database.init_database()

        with get_db_connection() as conn:
            row = conn.execute("SELECT linked_entities FROM objects WHERE object_id = 'o1'").fetchone()
        assert row["linked_entities"] == "[]"


class TestTransaction:
    """Test the read-modify-write isolation scope."""

    def test_commits_on_success(self, test_db):
        with transaction() as conn:
            _insert_identity(conn, "id-1")

        assert _count_identities() == 1

    def test_rolls_back_on_error(self, test_db):
        with pytest.raises(RuntimeError):
            with transaction() as conn:
                _insert_identity(conn, "id-1")
                raise RuntimeError("boom")

        assert _count_identities() == 0

    def test_contention_raises_transaction_aborted(self, test_db, monkeypatch):
        monkeypatch.setattr("polygraf.database.BUSY_TIMEOUT_SECONDS", 0.05)

        with transaction():
            with pytest.raises(TransactionAbortedError) as exc_info:
                with transaction():
                    pass

        assert exc_info.value.retryable is True

    def test_immediate_transactions_serialize(self, test_db):
        """A second writer waits for the first one instead of interleaving."""
        order = []
        first_inside = threading.Event()

        def first():
            with transaction() as conn:
                first_inside.set()
                _insert_identity(conn, "first")
                time.sleep(0.2)
                order.append("first-commit")

        def second():
            first_inside.wait()
            with transaction() as conn:
                order.append("second-begin")
                _insert_identity(conn, "second")

        threads = [threading.Thread(target=first), threading.Thread(target=second)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert order == ["first-commit", "second-begin"]
        assert _count_identities() == 2

    def test_read_snapshot_sees_committed_rows(self, test_db):
        with transaction() as conn:
            _insert_identity(conn, "id-1")

        with read_snapshot() as conn:
            rows = conn.execute("SELECT identity_id FROM identities").fetchall()

        assert [row["identity_id"] for row in rows] == ["id-1"]


class TestWriteBatch:
    """Test all-or-nothing batches."""

    def _stmt(self):
        return "INSERT INTO identities (identity_id, session_key, created_at) VALUES (?, ?, ?)"

    def test_commit_applies_all_writes(self, test_db):
        batch = WriteBatch()
        for i in range(3):
            batch.add(self._stmt(), (f"id-{i}", f"pgs_{i}", "now"))

        assert len(batch) == 3
        batch.commit()
        assert _count_identities() == 3

    def test_failed_write_discards_whole_batch(self, test_db):
        batch = WriteBatch()
        batch.add(self._stmt(), ("id-1", "pgs_1", "now"))
        batch.add(self._stmt(), ("id-1", "pgs_2", "now"))

        with pytest.raises(StorageFailureError):
            batch.commit()

        assert _count_identities() == 0

    def test_uncommitted_batch_writes_nothing(self, test_db):
        batch = WriteBatch()
        batch.add(self._stmt(), ("id-1", "pgs_1", "now"))

        assert _count_identities() == 0

    def test_rejects_writes_beyond_limit(self, test_db):
        batch = WriteBatch(max_writes=2)
        batch.add(self._stmt(), ("id-1", "pgs_1", "now"))
        batch.add(self._stmt(), ("id-2", "pgs_2", "now"))

        with pytest.raises(StorageFailureError):
            batch.add(self._stmt(), ("id-3", "pgs_3", "now"))

    def test_cannot_commit_twice(self, test_db):
        batch = WriteBatch()
        batch.add(self._stmt(), ("id-1", "pgs_1", "now"))
        batch.commit()

        with pytest.raises(StorageFailureError):
            batch.commit()
        with pytest.raises(StorageFailureError):
            batch.add(self._stmt(), ("id-2", "pgs_2", "now"))
