"""Single-use access token redemption."""

from typing import Optional

from common.constants import ROLE_GUEST
from common.logging_config import get_logger
from polygraf import config
from polygraf.database import transaction
from polygraf.exceptions import (
    AccessTokenAlreadyUsedError,
    AccessTokenExpiredError,
    AccessTokenNotFoundError,
    GuestAccessDisabledError,
    IdentityIssuanceFailedError,
)
from polygraf.identity import Identity, IdentityProvider
from polygraf.repositories.token_repository import TokenRepository
from polygraf.repositories.user_repository import IdentityClaim, UserRepository
from polygraf.utils import utc_now

logger = get_logger(__name__)


class RedemptionService:
    def __init__(self, identity_provider: IdentityProvider):
        self.identity_provider = identity_provider
        self.token_repo = TokenRepository()
        self.user_repo = UserRepository()

    def redeem(self, token_string: str) -> IdentityClaim:
        """
        Exchange an access token for a new identity bound to the token's role.

        The token is checked once up front, an identity is issued, and then the
        token is re-read and consumed inside one transaction. A concurrent
        redeemer that consumed the token in between makes the re-read fail, so
        at most one call per token ever succeeds. The issued identity is
        revoked again on every failure after issuance.

        Args:
            token_string: The access token as presented by the caller

        Returns:
            The stored claim with the new identity's session key attached

        Raises:
            AccessTokenNotFoundError: If no token matches
            AccessTokenAlreadyUsedError: If the token was redeemed before or concurrently
            AccessTokenExpiredError: If the token is past its expiry
            IdentityIssuanceFailedError: If no identity could be issued
            TransactionAbortedError: If the transaction lost under contention
        """
        if self._is_guest_token(token_string):
            return self.login_as_guest()

        token = self.token_repo.get_by_token(token_string)
        if token is None:
            logger.warning("Redemption failed: token not found")
            raise AccessTokenNotFoundError()
        if token.used:
            logger.warning(f"Redemption failed: token already used [token_id={token.token_id}]")
            raise AccessTokenAlreadyUsedError()
        if token.is_expired(utc_now()):
            logger.warning(f"Redemption failed: token expired [token_id={token.token_id}]")
            raise AccessTokenExpiredError()

        identity = self._issue_identity()

        try:
            now = utc_now()
            with transaction() as conn:
                current = self.token_repo.get_by_id(token.token_id, conn=conn)
                if current is None or current.used:
                    raise AccessTokenAlreadyUsedError()

                if not self.token_repo.mark_used(token.token_id, identity.identity_id, now, conn):
                    raise AccessTokenAlreadyUsedError()

                claim = self.user_repo.upsert_claim(
                    user_id=identity.identity_id,
                    role=token.role,
                    now=now,
                    linked_token=token_string,
                    conn=conn,
                )
                self.token_repo.add_audit_entry(
                    token.token_id, "redeemed", identity.identity_id, now, conn=conn
                )
        except Exception as e:
            logger.warning(
                f"Redemption failed after identity issuance [token_id={token.token_id}]: "
                f"{type(e).__name__}"
            )
            self._discard_identity(identity)
            raise

        logger.info(
            f"Token redeemed [token_id={token.token_id}] "
            f"[user_id={identity.identity_id}] role={claim.role}"
        )
        claim.session_key = identity.session_key
        return claim

    def login_as_guest(self) -> IdentityClaim:
        """
        Issue a guest identity. No token row is consumed.

        Raises:
            GuestAccessDisabledError: If no guest token is configured
        """
        if not config.GUEST_ACCESS_TOKEN:
            raise GuestAccessDisabledError()

        identity = self._issue_identity()
        try:
            with transaction() as conn:
                claim = self.user_repo.upsert_claim(
                    user_id=identity.identity_id,
                    role=ROLE_GUEST,
                    now=utc_now(),
                    is_guest=True,
                    conn=conn,
                )
        except Exception:
            self._discard_identity(identity)
            raise

        logger.info(f"Guest session started [user_id={identity.identity_id}]")
        claim.session_key = identity.session_key
        return claim

    def get_claim(self, user_id: str) -> Optional[IdentityClaim]:
        return self.user_repo.get_by_user_id(user_id)

    def _is_guest_token(self, token_string: str) -> bool:
        guest_token = config.GUEST_ACCESS_TOKEN
        return bool(guest_token) and token_string.strip().upper() == guest_token

    def _issue_identity(self) -> Identity:
        try:
            return self.identity_provider.issue_anonymous_identity()
        except IdentityIssuanceFailedError:
            raise
        except Exception as e:
            logger.error(f"Identity provider failed: {e}", exc_info=True)
            raise IdentityIssuanceFailedError() from e

    def _discard_identity(self, identity: Identity) -> None:
        try:
            self.identity_provider.revoke(identity.identity_id)
        except Exception as e:
            # The redemption error is the one the caller sees.
            logger.error(
                f"Failed to revoke identity [user_id={identity.identity_id}]: {e}",
                exc_info=True,
            )
