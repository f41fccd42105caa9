"""Chunk repository for database operations."""

from dataclasses import dataclass
from typing import List

from common.logging_config import get_logger
from polygraf.database import WriteBatch, use_connection

logger = get_logger(__name__)


@dataclass
class Chunk:
    object_id: str
    chunk_index: int
    data: str


class ChunkRepository:
    @staticmethod
    def stage_chunks(batch: WriteBatch, chunks: List[Chunk]) -> None:
        if not chunks:
            return

        logger.debug(f"Staging {len(chunks)} chunks for object_id={chunks[0].object_id}")
        for chunk in chunks:
            batch.add(
                """
                INSERT INTO object_chunks (object_id, chunk_index, data)
                VALUES (?, ?, ?)
                """,
                (chunk.object_id, chunk.chunk_index, chunk.data)
            )

    @staticmethod
    def get_chunks_by_object(object_id: str, conn=None) -> List[Chunk]:
        with use_connection(conn) as conn:
            rows = conn.execute(
                """
                SELECT object_id, chunk_index, data
                FROM object_chunks
                WHERE object_id = ?
                ORDER BY chunk_index
                """,
                (object_id,)
            ).fetchall()

        return [
            Chunk(
                object_id=row["object_id"],
                chunk_index=row["chunk_index"],
                data=row["data"],
            )
            for row in rows
        ]

    @staticmethod
    def delete_chunks(object_id: str, conn) -> int:
        cursor = conn.execute("DELETE FROM object_chunks WHERE object_id = ?", (object_id,))
        deleted = cursor.rowcount
        logger.debug(f"Deleted {deleted} chunks [object_id={object_id}]")
        return deleted
