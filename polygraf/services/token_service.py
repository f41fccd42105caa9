"""Access token administration: generation, listing and revocation."""

import re
import secrets
import sqlite3
from datetime import timedelta
from typing import List, Optional

from common.constants import (
    ACCESS_TOKEN_ALPHABET,
    ACCESS_TOKEN_GROUP_LENGTH,
    ACCESS_TOKEN_GROUPS,
    ACCESS_TOKEN_PREFIX,
    ROLE_USER,
    ROLES,
)
from common.logging_config import get_logger
from polygraf.exceptions import (
    AccessTokenAlreadyUsedError,
    AccessTokenNotFoundError,
    StorageFailureError,
)
from polygraf.repositories.token_repository import AccessToken, TokenRepository
from polygraf.utils import generate_uuid, utc_now

logger = get_logger(__name__)

TOKEN_PATTERN = re.compile(
    rf"^{ACCESS_TOKEN_PREFIX}"
    + rf"(-[{ACCESS_TOKEN_ALPHABET}]{{{ACCESS_TOKEN_GROUP_LENGTH}}})" * ACCESS_TOKEN_GROUPS
    + "$"
)

MAX_GENERATION_ATTEMPTS = 5


def generate_token_string() -> str:
    groups = [
        "".join(secrets.choice(ACCESS_TOKEN_ALPHABET) for _ in range(ACCESS_TOKEN_GROUP_LENGTH))
        for _ in range(ACCESS_TOKEN_GROUPS)
    ]
    return "-".join([ACCESS_TOKEN_PREFIX, *groups])


class TokenService:
    def __init__(self):
        self.token_repo = TokenRepository()

    @staticmethod
    def is_valid_token_format(token: str) -> bool:
        return bool(TOKEN_PATTERN.match(token))

    def generate_token(
        self,
        role: str = ROLE_USER,
        expires_in_days: Optional[int] = None,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> AccessToken:
        """
        Create a new unused access token.

        Args:
            role: Role granted on redemption
            expires_in_days: Validity window; None means the token never expires
            description: Free-text note for administrators
            created_by: user_id of the issuing administrator

        Returns:
            The stored AccessToken

        Raises:
            ValueError: If the role is unknown or expires_in_days is not positive
            StorageFailureError: If every generated string collided with an existing one
        """
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        if expires_in_days is not None and expires_in_days <= 0:
            raise ValueError("expires_in_days must be positive")

        now = utc_now()
        expires_at = now + timedelta(days=expires_in_days) if expires_in_days else None

        for attempt in range(1, MAX_GENERATION_ATTEMPTS + 1):
            token = AccessToken(
                token_id=generate_uuid(),
                token=generate_token_string(),
                role=role,
                used=False,
                used_by=None,
                used_at=None,
                created_at=now,
                expires_at=expires_at,
                description=description,
                created_by=created_by,
            )
            try:
                self.token_repo.create_token(token)
            except sqlite3.IntegrityError:
                logger.warning(f"Token collision on attempt {attempt}, regenerating")
                continue

            self.token_repo.add_audit_entry(token.token_id, "generated", created_by, now)
            logger.info(f"Generated access token [token_id={token.token_id}] role={role}")
            return token

        logger.error(f"Token generation gave up after {MAX_GENERATION_ATTEMPTS} collisions")
        raise StorageFailureError(
            f"Could not generate a unique token after {MAX_GENERATION_ATTEMPTS} attempts"
        )

    def list_tokens(self, include_used: bool = True) -> List[AccessToken]:
        return self.token_repo.list_tokens(include_used=include_used)

    def revoke_token(self, token_id: str, actor: Optional[str] = None) -> None:
        """
        Delete an unused token.

        Raises:
            AccessTokenNotFoundError: If the token does not exist
            AccessTokenAlreadyUsedError: If the token was already redeemed
        """
        if not self.token_repo.delete_token(token_id):
            existing = self.token_repo.get_by_id(token_id)
            if existing is None:
                raise AccessTokenNotFoundError()
            raise AccessTokenAlreadyUsedError("Redeemed tokens cannot be revoked")

        self.token_repo.add_audit_entry(token_id, "revoked", actor, utc_now())
        logger.info(f"Revoked access token [token_id={token_id}]")

    def ensure_token(self, token: str, role: str) -> AccessToken:
        """
        Create a token with a fixed string unless it already exists.
        """
        existing = self.token_repo.get_by_token(token)
        if existing is not None:
            return existing

        created = AccessToken(
            token_id=generate_uuid(),
            token=token,
            role=role,
            used=False,
            used_by=None,
            used_at=None,
            created_at=utc_now(),
            description="bootstrap",
        )
        try:
            self.token_repo.create_token(created)
        except sqlite3.IntegrityError:
            return self.token_repo.get_by_token(token)

        self.token_repo.add_audit_entry(created.token_id, "generated", None, created.created_at)
        logger.info(f"Ensured bootstrap token [token_id={created.token_id}] role={role}")
        return created
