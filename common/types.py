"""Shared data type definitions (StoredObjectMetadata, StoredPayload)."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class StoredObjectMetadata:
    """
    Metadata for a stored object, without its payload.
    """
    object_id: str
    display_name: str
    mime_type: str
    byte_size: int
    owner_id: str
    created_at: datetime
    chunk_count: Optional[int] = None
    linked_entities: Tuple[str, ...] = ()

    @property
    def is_chunked(self) -> bool:
        return self.chunk_count is not None


@dataclass(frozen=True)
class StoredPayload:
    """
    A stored object together with its reassembled encoded payload.
    """
    metadata: StoredObjectMetadata
    payload: str

    @property
    def display_name(self) -> str:
        return self.metadata.display_name

    @property
    def mime_type(self) -> str:
        return self.metadata.mime_type
