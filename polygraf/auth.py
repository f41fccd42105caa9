"""Authentication dependencies for the HTTP API."""

from typing import Optional

from fastapi import Depends, Header, Request

from common.constants import ROLE_ADMIN
from common.logging_config import get_logger
from polygraf.exceptions import InvalidSessionError, UnauthorizedAccessError
from polygraf.repositories.user_repository import IdentityClaim, UserRepository
from polygraf.service_locator import get_identity_provider

logger = get_logger(__name__)


def get_current_claim(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> IdentityClaim:
    """
    FastAPI dependency to resolve the bearer session key to a claim.

    Args:
        authorization: Authorization header value (format: "Bearer <session_key>")

    Returns:
        The caller's IdentityClaim

    Raises:
        InvalidSessionError: If the header is missing, malformed, or the session was revoked
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise InvalidSessionError("Invalid authorization header format")

    session_key = authorization[len("Bearer "):].strip()
    identity_id = get_identity_provider().resolve_session(session_key)
    if identity_id is None:
        raise InvalidSessionError()

    claim = UserRepository.get_by_user_id(identity_id)
    if claim is None:
        logger.warning(f"Session without claim [user_id={identity_id}]")
        raise InvalidSessionError()

    request.state.user_id = claim.user_id
    return claim


def require_admin(claim: IdentityClaim = Depends(get_current_claim)) -> IdentityClaim:
    if claim.role != ROLE_ADMIN:
        raise UnauthorizedAccessError("Administrator role required")
    return claim
