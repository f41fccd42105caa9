"""Access token administration API routes."""

from fastapi import APIRouter, Depends, Query, status

from polygraf.auth import require_admin
from polygraf.repositories.token_repository import AccessToken
from polygraf.repositories.user_repository import IdentityClaim
from polygraf.schemas.tokens import (
    AccessTokenResponse,
    GenerateTokenRequest,
    ListTokensResponse,
    RevokeTokenResponse
)
from polygraf.services.token_service import TokenService
from polygraf.utils import to_iso

router = APIRouter(prefix="/tokens", tags=["Tokens"])


def _token_response(token: AccessToken) -> AccessTokenResponse:
    return AccessTokenResponse(
        token_id=token.token_id,
        token=token.token,
        role=token.role,
        used=token.used,
        used_by=token.used_by,
        used_at=to_iso(token.used_at),
        created_at=to_iso(token.created_at),
        expires_at=to_iso(token.expires_at),
        description=token.description,
    )


@router.post("", response_model=AccessTokenResponse, status_code=status.HTTP_201_CREATED)
def generate_token(
    request: GenerateTokenRequest,
    admin: IdentityClaim = Depends(require_admin)
):
    """
    Generate a new single-use access token.

    Parameters:
        - role: Role granted on redemption ("user", "admin" or "guest")
        - expires_in_days: Optional validity window in days
        - description: Optional note
        - Authorization header: Bearer <session_key> of an admin (required)

    Raises:
        - 422: Unknown role or non-positive expires_in_days
        - 401: Invalid or missing session key
        - 403: Caller is not an admin
        - 503: No unique token string could be generated (retryable)
    """
    token_service = TokenService()
    token = token_service.generate_token(
        role=request.role,
        expires_in_days=request.expires_in_days,
        description=request.description,
        created_by=admin.user_id,
    )

    return _token_response(token)


@router.get("", response_model=ListTokensResponse)
def list_tokens(
    include_used: bool = Query(True, description="Include already redeemed tokens"),
    admin: IdentityClaim = Depends(require_admin)
):
    """
    List access tokens, newest first.

    Raises:
        - 401: Invalid or missing session key
        - 403: Caller is not an admin
    """
    token_service = TokenService()
    tokens = token_service.list_tokens(include_used=include_used)

    return ListTokensResponse(tokens=[_token_response(token) for token in tokens])


@router.delete("/{token_id}", response_model=RevokeTokenResponse)
def revoke_token(
    token_id: str,
    admin: IdentityClaim = Depends(require_admin)
):
    """
    Revoke an unused access token.

    Raises:
        - 401: Invalid or missing session key
        - 403: Caller is not an admin
        - 404: Token not found
        - 409: Token already redeemed
    """
    token_service = TokenService()
    token_service.revoke_token(token_id, actor=admin.user_id)

    return RevokeTokenResponse(token_id=token_id, revoked=True)
