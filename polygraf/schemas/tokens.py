"""Pydantic schemas for access token administration endpoints."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class GenerateTokenRequest(BaseModel):
    """Request model for access token generation."""
    role: Literal["user", "admin", "guest"] = "user"
    expires_in_days: Optional[int] = Field(default=None, gt=0)
    description: Optional[str] = None


class AccessTokenResponse(BaseModel):
    """Response model for an access token."""
    token_id: str
    token: str
    role: str
    used: bool
    used_by: Optional[str] = None
    used_at: Optional[str] = None
    created_at: str
    expires_at: Optional[str] = None
    description: Optional[str] = None


class ListTokensResponse(BaseModel):
    """Response model for access token listing."""
    tokens: List[AccessTokenResponse]


class RevokeTokenResponse(BaseModel):
    """Response model for access token revocation."""
    token_id: str
    revoked: bool
