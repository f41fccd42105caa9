"""Authentication API routes."""

from fastapi import APIRouter, Depends

from polygraf.auth import get_current_claim
from polygraf.repositories.user_repository import IdentityClaim
from polygraf.schemas.auth import ClaimResponse, RedeemRequest, SessionResponse
from polygraf.service_locator import get_identity_provider
from polygraf.services.redemption_service import RedemptionService
from polygraf.utils import to_iso

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _session_response(claim: IdentityClaim) -> SessionResponse:
    return SessionResponse(
        user_id=claim.user_id,
        role=claim.role,
        session_key=claim.session_key,
        linked_token=claim.linked_token,
        is_guest=claim.is_guest,
    )


@router.post("/redeem", response_model=SessionResponse)
def redeem(request: RedeemRequest):
    """
    Redeem a single-use access token for a new session.

    Parameters:
        - token: Access token string (e.g., "KEY-ABCD-EFGH-JKMN")

    Returns:
        - user_id: Identity issued for this session
        - role: Role granted by the token
        - session_key: Bearer credential with 'pgs_' prefix
        - linked_token: The redeemed token
        - is_guest: True for guest sessions

    Raises:
        - 404: Token not found
        - 409: Token already used
        - 410: Token expired
        - 502: Identity could not be issued
        - 503: Conflict or storage failure (retryable)
    """
    redemption_service = RedemptionService(get_identity_provider())
    claim = redemption_service.redeem(request.token)

    return _session_response(claim)


@router.post("/guest", response_model=SessionResponse)
def guest_login():
    """
    Start a guest session without consuming a token.

    Returns:
        - Same shape as /auth/redeem with role "guest"

    Raises:
        - 403: Guest access is disabled
    """
    redemption_service = RedemptionService(get_identity_provider())
    claim = redemption_service.login_as_guest()

    return _session_response(claim)


@router.get("/me", response_model=ClaimResponse)
def whoami(claim: IdentityClaim = Depends(get_current_claim)):
    """
    Return the claim of the current session.

    Parameters:
        - Authorization header: Bearer <session_key> (required)

    Raises:
        - 401: Invalid or missing session key
    """
    return ClaimResponse(
        user_id=claim.user_id,
        role=claim.role,
        linked_token=claim.linked_token,
        is_guest=claim.is_guest,
        created_at=to_iso(claim.created_at),
        last_login_at=to_iso(claim.last_login_at),
    )
