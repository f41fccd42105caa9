"""Service layer for business logic."""

from polygraf.services.object_service import ObjectService
from polygraf.services.redemption_service import RedemptionService
from polygraf.services.token_service import TokenService

__all__ = [
    "ObjectService",
    "RedemptionService",
    "TokenService",
]
