"""Pydantic schemas for authentication endpoints."""

from typing import Optional

from pydantic import BaseModel, Field


class RedeemRequest(BaseModel):
    """Request model for access token redemption."""
    token: str = Field(..., min_length=1)


class SessionResponse(BaseModel):
    """Response model for a newly issued session."""
    user_id: str
    role: str
    session_key: str
    linked_token: Optional[str] = None
    is_guest: bool = False


class ClaimResponse(BaseModel):
    """Response model for the current identity claim."""
    user_id: str
    role: str
    linked_token: Optional[str] = None
    is_guest: bool = False
    created_at: str
    last_login_at: str
