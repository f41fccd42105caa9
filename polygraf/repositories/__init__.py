"""Repository layer for data access."""

from polygraf.repositories.token_repository import TokenRepository
from polygraf.repositories.user_repository import UserRepository
from polygraf.repositories.object_repository import ObjectRepository
from polygraf.repositories.chunk_repository import ChunkRepository

__all__ = [
    "TokenRepository",
    "UserRepository",
    "ObjectRepository",
    "ChunkRepository",
]
