"""Stored object metadata repository for database operations."""

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from common.logging_config import get_logger
from common.types import StoredObjectMetadata
from polygraf.database import WriteBatch, use_connection
from polygraf.utils import parse_iso, to_iso

logger = get_logger(__name__)

_METADATA_COLUMNS = (
    "object_id, display_name, mime_type, byte_size, owner_id, created_at, chunk_count, linked_entities"
)


@dataclass
class ObjectRecord:
    metadata: StoredObjectMetadata
    inline_payload: Optional[str]


def _row_to_metadata(row: sqlite3.Row) -> StoredObjectMetadata:
    return StoredObjectMetadata(
        object_id=row["object_id"],
        display_name=row["display_name"],
        mime_type=row["mime_type"],
        byte_size=row["byte_size"],
        owner_id=row["owner_id"],
        created_at=parse_iso(row["created_at"]),
        chunk_count=row["chunk_count"],
        linked_entities=tuple(json.loads(row["linked_entities"])),
    )


class ObjectRepository:
    @staticmethod
    def stage_create(
        batch: WriteBatch,
        metadata: StoredObjectMetadata,
        inline_payload: Optional[str] = None,
    ) -> None:
        """
        Stage the metadata row. Exactly one of inline_payload and
        metadata.chunk_count must be set.
        """
        if (inline_payload is None) == (metadata.chunk_count is None):
            raise ValueError("Object must be either inline or chunked")
        batch.add(
            """
            INSERT INTO objects (object_id, display_name, mime_type, byte_size, owner_id,
                                 created_at, inline_payload, chunk_count, linked_entities)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                metadata.object_id,
                metadata.display_name,
                metadata.mime_type,
                metadata.byte_size,
                metadata.owner_id,
                to_iso(metadata.created_at),
                inline_payload,
                metadata.chunk_count,
                json.dumps(list(metadata.linked_entities)),
            )
        )

    @staticmethod
    def get_record(object_id: str, conn=None) -> Optional[ObjectRecord]:
        with use_connection(conn) as conn:
            row = conn.execute(
                f"SELECT {_METADATA_COLUMNS}, inline_payload FROM objects WHERE object_id = ?",
                (object_id,)
            ).fetchone()
        if row is None:
            return None
        return ObjectRecord(metadata=_row_to_metadata(row), inline_payload=row["inline_payload"])

    @staticmethod
    def get_metadata(object_id: str, conn=None) -> Optional[StoredObjectMetadata]:
        with use_connection(conn) as conn:
            row = conn.execute(
                f"SELECT {_METADATA_COLUMNS} FROM objects WHERE object_id = ?",
                (object_id,)
            ).fetchone()
        return _row_to_metadata(row) if row else None

    @staticmethod
    def list_objects(
        limit: int,
        before: Optional[datetime] = None,
        before_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        linked_entity: Optional[str] = None,
    ) -> List[StoredObjectMetadata]:
        """
        List metadata newest first, ties broken by object_id.

        The cursor is the (created_at, object_id) pair of the last row already
        seen. ``before`` without ``before_id`` excludes that whole instant.
        """
        conditions = []
        params: list = []
        if before is not None and before_id is not None:
            conditions.append("(created_at < ? OR (created_at = ? AND object_id < ?))")
            params.extend([to_iso(before), to_iso(before), before_id])
        elif before is not None:
            conditions.append("created_at < ?")
            params.append(to_iso(before))
        if owner_id is not None:
            conditions.append("owner_id = ?")
            params.append(owner_id)
        if linked_entity is not None:
            conditions.append("EXISTS (SELECT 1 FROM json_each(objects.linked_entities) WHERE value = ?)")
            params.append(linked_entity)

        query = f"SELECT {_METADATA_COLUMNS} FROM objects"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY created_at DESC, object_id DESC LIMIT ?"
        params.append(limit)

        with use_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_metadata(row) for row in rows]

    @staticmethod
    def update_fields(
        object_id: str,
        display_name: Optional[str] = None,
        linked_entities: Optional[Sequence[str]] = None,
    ) -> bool:
        """
        Update display fields. Fields left as None keep their stored value.

        Returns:
            False if the object does not exist
        """
        assignments = []
        params: list = []
        if display_name is not None:
            assignments.append("display_name = ?")
            params.append(display_name)
        if linked_entities is not None:
            assignments.append("linked_entities = ?")
            params.append(json.dumps(list(linked_entities)))
        if not assignments:
            raise ValueError("Nothing to update")

        params.append(object_id)
        with use_connection() as conn:
            cursor = conn.execute(
                f"UPDATE objects SET {', '.join(assignments)} WHERE object_id = ?",
                params
            )
        return cursor.rowcount == 1

    @staticmethod
    def delete_object(object_id: str, conn) -> bool:
        cursor = conn.execute("DELETE FROM objects WHERE object_id = ?", (object_id,))
        return cursor.rowcount == 1
