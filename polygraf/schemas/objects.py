"""Pydantic schemas for stored object endpoints."""

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class PutObjectRequest(BaseModel):
    """Request model for object upload. The payload is base64 or a data URL."""
    display_name: str = Field(..., min_length=1)
    mime_type: str = "application/octet-stream"
    payload: str
    byte_size: Optional[int] = Field(default=None, ge=0)
    linked_entities: List[str] = Field(default_factory=list)


class PutObjectResponse(BaseModel):
    """Response model for object upload."""
    object_id: str
    chunk_count: Optional[int] = None
    byte_size: int


class ObjectMetadataResponse(BaseModel):
    """Response model for object metadata."""
    object_id: str
    display_name: str
    mime_type: str
    byte_size: int
    owner_id: str
    created_at: str
    chunk_count: Optional[int] = None
    linked_entities: List[str] = Field(default_factory=list)


class ObjectPayloadResponse(ObjectMetadataResponse):
    """Response model for a reassembled object."""
    payload: str


class ListObjectsResponse(BaseModel):
    """Response model for object listing."""
    objects: List[ObjectMetadataResponse]
    next_before: Optional[str] = None
    next_before_id: Optional[str] = None


class UpdateObjectRequest(BaseModel):
    """Request model for renaming an object or relinking it to other entities."""
    display_name: Optional[str] = Field(default=None, min_length=1)
    linked_entities: Optional[List[str]] = None

    @model_validator(mode="after")
    def _require_a_field(self) -> "UpdateObjectRequest":
        if self.display_name is None and self.linked_entities is None:
            raise ValueError("display_name or linked_entities is required")
        return self


class DeleteObjectResponse(BaseModel):
    """Response model for object deletion."""
    object_id: str
    deleted: bool
