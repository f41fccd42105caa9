"""Chunked object store service.

Payloads are stored as encoded text. A payload no longer than the chunk size is
kept inline on the metadata row; a longer one is cut into contiguous chunks.
Either way every row of an object is written by a single WriteBatch, so a
reader never sees a partially written object.
"""

import math
from datetime import datetime
from typing import List, Optional, Sequence

from common.encoding import decoded_size
from common.logging_config import get_logger
from common.types import StoredObjectMetadata, StoredPayload
from polygraf.config import BATCH_WRITE_LIMIT, OBJECT_CHUNK_SIZE
from polygraf.database import WriteBatch, read_snapshot, transaction
from polygraf.exceptions import CorruptObjectError, ObjectNotFoundError, ObjectTooLargeError
from polygraf.repositories.chunk_repository import Chunk, ChunkRepository
from polygraf.repositories.object_repository import ObjectRepository
from polygraf.utils import generate_uuid, utc_now

logger = get_logger(__name__)


class ObjectService:
    def __init__(self, chunk_size: Optional[int] = None, max_batch_writes: Optional[int] = None):
        self.chunk_size = chunk_size or OBJECT_CHUNK_SIZE
        self.max_batch_writes = max_batch_writes or BATCH_WRITE_LIMIT
        self.object_repo = ObjectRepository()
        self.chunk_repo = ChunkRepository()

    def _split_into_chunks(self, object_id: str, payload: str) -> List[Chunk]:
        return [
            Chunk(
                object_id=object_id,
                chunk_index=index,
                data=payload[index * self.chunk_size:(index + 1) * self.chunk_size],
            )
            for index in range(math.ceil(len(payload) / self.chunk_size))
        ]

    def put(
        self,
        owner_id: str,
        display_name: str,
        mime_type: str,
        encoded_payload: str,
        byte_size: Optional[int] = None,
        linked_entities: Sequence[str] = (),
    ) -> str:
        """
        Store an encoded payload and return its new object id.

        Raises:
            ObjectTooLargeError: If the object needs more writes than one batch allows
            StorageFailureError: If the batch could not be committed
        """
        object_id = generate_uuid()
        if byte_size is None:
            byte_size = decoded_size(encoded_payload)

        inline = len(encoded_payload) <= self.chunk_size
        chunks: List[Chunk] = []
        if not inline:
            chunk_count = math.ceil(len(encoded_payload) / self.chunk_size)
            if chunk_count + 1 > self.max_batch_writes:
                logger.warning(
                    f"Rejecting object '{display_name}': {chunk_count} chunks exceed "
                    f"batch limit of {self.max_batch_writes} writes"
                )
                raise ObjectTooLargeError(
                    f"Object needs {chunk_count + 1} writes, limit is {self.max_batch_writes}"
                )
            chunks = self._split_into_chunks(object_id, encoded_payload)

        metadata = StoredObjectMetadata(
            object_id=object_id,
            display_name=display_name,
            mime_type=mime_type,
            byte_size=byte_size,
            owner_id=owner_id,
            created_at=utc_now(),
            chunk_count=None if inline else len(chunks),
            linked_entities=tuple(linked_entities),
        )

        batch = WriteBatch(max_writes=self.max_batch_writes)
        self.object_repo.stage_create(
            batch,
            metadata,
            inline_payload=encoded_payload if inline else None,
        )
        self.chunk_repo.stage_chunks(batch, chunks)
        batch.commit()

        if inline:
            logger.info(f"Stored inline object [object_id={object_id}] size={byte_size}")
        else:
            logger.info(
                f"Stored chunked object [object_id={object_id}] "
                f"chunks={len(chunks)} size={byte_size}"
            )
        return object_id

    def get(self, object_id: str) -> StoredPayload:
        """
        Reassemble a stored object.

        Raises:
            ObjectNotFoundError: If no such object exists
            CorruptObjectError: If the stored chunks disagree with the metadata
        """
        with read_snapshot() as conn:
            record = self.object_repo.get_record(object_id, conn=conn)
            if record is None:
                raise ObjectNotFoundError(f"Object {object_id} not found")

            if not record.metadata.is_chunked:
                return StoredPayload(metadata=record.metadata, payload=record.inline_payload)

            chunks = self.chunk_repo.get_chunks_by_object(object_id, conn=conn)

        expected = record.metadata.chunk_count
        if len(chunks) != expected:
            logger.error(
                f"Chunk count mismatch [object_id={object_id}] "
                f"expected={expected} found={len(chunks)}"
            )
            raise CorruptObjectError(
                f"Object {object_id} has {len(chunks)} chunks, expected {expected}"
            )
        for position, chunk in enumerate(chunks):
            if chunk.chunk_index != position:
                logger.error(
                    f"Chunk index gap [object_id={object_id}] "
                    f"position={position} index={chunk.chunk_index}"
                )
                raise CorruptObjectError(f"Object {object_id} is missing chunk {position}")

        payload = "".join(chunk.data for chunk in chunks)
        return StoredPayload(metadata=record.metadata, payload=payload)

    def get_metadata(self, object_id: str) -> StoredObjectMetadata:
        metadata = self.object_repo.get_metadata(object_id)
        if metadata is None:
            raise ObjectNotFoundError(f"Object {object_id} not found")
        return metadata

    def delete(self, object_id: str) -> bool:
        """
        Delete an object and all of its chunks together.

        Returns:
            False if the object did not exist
        """
        with transaction() as conn:
            deleted_chunks = self.chunk_repo.delete_chunks(object_id, conn)
            deleted = self.object_repo.delete_object(object_id, conn)

        if deleted:
            logger.info(f"Deleted object [object_id={object_id}] chunks={deleted_chunks}")
        else:
            logger.debug(f"Delete of missing object is a no-op [object_id={object_id}]")
        return deleted

    def update_metadata(
        self,
        object_id: str,
        display_name: Optional[str] = None,
        linked_entities: Optional[Sequence[str]] = None,
    ) -> StoredObjectMetadata:
        """
        Rename an object or replace its linked entities. The payload and chunk
        layout are never touched.

        Raises:
            ValueError: If neither field is given
            ObjectNotFoundError: If no such object exists
        """
        if display_name is None and linked_entities is None:
            raise ValueError("Nothing to update")
        if not self.object_repo.update_fields(
            object_id, display_name=display_name, linked_entities=linked_entities
        ):
            raise ObjectNotFoundError(f"Object {object_id} not found")
        logger.info(f"Updated object metadata [object_id={object_id}]")
        return self.get_metadata(object_id)

    def list_objects(
        self,
        limit: int,
        before: Optional[datetime] = None,
        before_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        linked_entity: Optional[str] = None,
    ) -> List[StoredObjectMetadata]:
        return self.object_repo.list_objects(
            limit=limit,
            before=before,
            before_id=before_id,
            owner_id=owner_id,
            linked_entity=linked_entity,
        )
