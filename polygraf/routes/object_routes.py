"""Stored object API routes."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from common.types import StoredObjectMetadata
from polygraf.auth import get_current_claim
from polygraf.config import DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT
from polygraf.repositories.user_repository import IdentityClaim
from polygraf.schemas.objects import (
    DeleteObjectResponse,
    ListObjectsResponse,
    ObjectMetadataResponse,
    ObjectPayloadResponse,
    PutObjectRequest,
    PutObjectResponse,
    UpdateObjectRequest
)
from polygraf.services.object_service import ObjectService
from polygraf.utils import to_iso

router = APIRouter(prefix="/objects", tags=["Objects"])


def _metadata_fields(metadata: StoredObjectMetadata) -> dict:
    return {
        "object_id": metadata.object_id,
        "display_name": metadata.display_name,
        "mime_type": metadata.mime_type,
        "byte_size": metadata.byte_size,
        "owner_id": metadata.owner_id,
        "created_at": to_iso(metadata.created_at),
        "chunk_count": metadata.chunk_count,
        "linked_entities": list(metadata.linked_entities),
    }


@router.post("", response_model=PutObjectResponse, status_code=status.HTTP_201_CREATED)
def put_object(
    request: PutObjectRequest,
    claim: IdentityClaim = Depends(get_current_claim)
):
    """
    Store an encoded payload.

    Parameters:
        - display_name: Name shown to users
        - mime_type: Content type of the decoded payload
        - payload: Base64 text or a data URL
        - byte_size: Optional decoded size; computed from the payload when omitted
        - linked_entities: Optional ids of records this object is attached to
        - Authorization header: Bearer <session_key> (required)

    Returns:
        - object_id: UUID of the stored object
        - chunk_count: Number of chunks, null for inline objects
        - byte_size: Decoded size in bytes

    Raises:
        - 401: Invalid or missing session key
        - 413: Object needs more writes than one atomic batch allows
        - 503: Storage failure (retryable)
    """
    object_service = ObjectService()
    object_id = object_service.put(
        owner_id=claim.user_id,
        display_name=request.display_name,
        mime_type=request.mime_type,
        encoded_payload=request.payload,
        byte_size=request.byte_size,
        linked_entities=request.linked_entities,
    )
    metadata = object_service.get_metadata(object_id)

    return PutObjectResponse(
        object_id=object_id,
        chunk_count=metadata.chunk_count,
        byte_size=metadata.byte_size,
    )


@router.get("", response_model=ListObjectsResponse)
def list_objects(
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1, le=MAX_LIST_LIMIT),
    before: Optional[datetime] = Query(None, description="Return objects created before this time"),
    before_id: Optional[str] = Query(None, description="object_id of the last object already seen at ``before``"),
    mine: bool = Query(False, description="Only list objects owned by the caller"),
    linked_entity: Optional[str] = Query(None, description="Only list objects linked to this entity"),
    claim: IdentityClaim = Depends(get_current_claim)
):
    """
    List object metadata, newest first.

    Pass the returned next_before and next_before_id as ``before`` and
    ``before_id`` to fetch the next page.

    Raises:
        - 401: Invalid or missing session key
    """
    object_service = ObjectService()
    objects = object_service.list_objects(
        limit=limit,
        before=before,
        before_id=before_id,
        owner_id=claim.user_id if mine else None,
        linked_entity=linked_entity,
    )

    next_before = next_before_id = None
    if len(objects) == limit:
        next_before = to_iso(objects[-1].created_at)
        next_before_id = objects[-1].object_id
    return ListObjectsResponse(
        objects=[ObjectMetadataResponse(**_metadata_fields(metadata)) for metadata in objects],
        next_before=next_before,
        next_before_id=next_before_id,
    )


@router.get("/{object_id}", response_model=ObjectPayloadResponse)
def get_object(
    object_id: str,
    claim: IdentityClaim = Depends(get_current_claim)
):
    """
    Fetch a stored object with its reassembled payload.

    Raises:
        - 401: Invalid or missing session key
        - 404: Object not found
        - 500: Stored chunks are corrupt
    """
    object_service = ObjectService()
    stored = object_service.get(object_id)

    return ObjectPayloadResponse(**_metadata_fields(stored.metadata), payload=stored.payload)


@router.patch("/{object_id}", response_model=ObjectMetadataResponse)
def update_object(
    object_id: str,
    request: UpdateObjectRequest,
    claim: IdentityClaim = Depends(get_current_claim)
):
    """
    Rename a stored object or replace its linked entities.

    Parameters:
        - display_name: New name (optional)
        - linked_entities: Replacement list of linked entity ids (optional)

    Raises:
        - 401: Invalid or missing session key
        - 404: Object not found
    """
    object_service = ObjectService()
    metadata = object_service.update_metadata(
        object_id,
        display_name=request.display_name,
        linked_entities=request.linked_entities,
    )

    return ObjectMetadataResponse(**_metadata_fields(metadata))


@router.delete("/{object_id}", response_model=DeleteObjectResponse)
def delete_object(
    object_id: str,
    claim: IdentityClaim = Depends(get_current_claim)
):
    """
    Delete a stored object. Deleting a missing object is not an error.

    Returns:
        - object_id: The requested id
        - deleted: False if the object did not exist

    Raises:
        - 401: Invalid or missing session key
        - 503: Storage failure (retryable)
    """
    object_service = ObjectService()
    deleted = object_service.delete(object_id)

    return DeleteObjectResponse(object_id=object_id, deleted=deleted)
