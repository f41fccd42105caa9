"""Pydantic schemas for API requests and responses."""

from polygraf.schemas.auth import (
    RedeemRequest,
    SessionResponse,
    ClaimResponse
)
from polygraf.schemas.tokens import (
    GenerateTokenRequest,
    AccessTokenResponse,
    ListTokensResponse,
    RevokeTokenResponse
)
from polygraf.schemas.objects import (
    PutObjectRequest,
    PutObjectResponse,
    ObjectMetadataResponse,
    ObjectPayloadResponse,
    ListObjectsResponse,
    UpdateObjectRequest,
    DeleteObjectResponse
)
from polygraf.schemas.common import ErrorResponse

__all__ = [
    "RedeemRequest",
    "SessionResponse",
    "ClaimResponse",
    "GenerateTokenRequest",
    "AccessTokenResponse",
    "ListTokensResponse",
    "RevokeTokenResponse",
    "PutObjectRequest",
    "PutObjectResponse",
    "ObjectMetadataResponse",
    "ObjectPayloadResponse",
    "ListObjectsResponse",
    "UpdateObjectRequest",
    "DeleteObjectResponse",
    "ErrorResponse"
]
