"""Tests for single-use access token redemption."""

import sqlite3
import threading
from datetime import timedelta
from unittest.mock import patch

import pytest

from polygraf.database import get_db_connection
from polygraf.exceptions import (
    AccessTokenAlreadyUsedError,
    AccessTokenExpiredError,
    AccessTokenNotFoundError,
    GuestAccessDisabledError,
    IdentityIssuanceFailedError,
    StorageFailureError,
)
from polygraf.identity import Identity, LocalIdentityProvider
from polygraf.repositories.token_repository import AccessToken, TokenRepository
from polygraf.repositories.user_repository import UserRepository
from polygraf.services.redemption_service import RedemptionService
from polygraf.utils import utc_now


class RecordingIdentityProvider(LocalIdentityProvider):
    """Local provider that records calls and can be told to fail."""

    def __init__(self, fail_issue=False, fail_revoke=False, barrier=None):
        self.fail_issue = fail_issue
        self.fail_revoke = fail_revoke
        self.barrier = barrier
        self.issued = []
        self.revoked = []

    def issue_anonymous_identity(self) -> Identity:
        if self.fail_issue:
            raise RuntimeError("provider down")
        identity = super().issue_anonymous_identity()
        self.issued.append(identity.identity_id)
        if self.barrier is not None:
            self.barrier.wait(timeout=5)
        return identity

    def revoke(self, identity_id: str) -> None:
        self.revoked.append(identity_id)
        if self.fail_revoke:
            raise RuntimeError("revoke failed")
        super().revoke(identity_id)


def create_token(token="KEY-AAAA-BBBB-CCCC", role="user", expires_at=None, token_id="t1"):
    return TokenRepository.create_token(AccessToken(
        token_id=token_id,
        token=token,
        role=role,
        used=False,
        used_by=None,
        used_at=None,
        created_at=utc_now(),
        expires_at=expires_at,
    ))


def identity_count():
    with get_db_connection() as conn:
        return conn.execute("SELECT COUNT(*) FROM identities").fetchone()[0]


@pytest.fixture
def provider():
    return RecordingIdentityProvider()


@pytest.fixture
def service(provider):
    return RedemptionService(provider)


class TestRedeem:
    """Happy path and terminal failures."""

    def test_redeem_success(self, test_db, service, provider):
        create_token(role="admin")

        claim = service.redeem("KEY-AAAA-BBBB-CCCC")

        assert claim.user_id == provider.issued[0]
        assert claim.role == "admin"
        assert claim.linked_token == "KEY-AAAA-BBBB-CCCC"
        assert claim.session_key.startswith("pgs_")
        assert provider.resolve_session(claim.session_key) == claim.user_id

        token = TokenRepository.get_by_id("t1")
        assert token.used is True
        assert token.used_by == claim.user_id
        assert token.used_at is not None

    def test_redeem_writes_one_audit_entry(self, test_db, service):
        create_token()

        claim = service.redeem("KEY-AAAA-BBBB-CCCC")

        entries = TokenRepository.get_audit_entries("t1")
        assert [(e.event, e.actor) for e in entries] == [("redeemed", claim.user_id)]

    def test_unknown_token(self, test_db, service, provider):
        with pytest.raises(AccessTokenNotFoundError):
            service.redeem("KEY-ZZZZ-ZZZZ-ZZZZ")

        assert provider.issued == []

    def test_used_token_always_fails_with_already_used(self, test_db, service):
        create_token()
        service.redeem("KEY-AAAA-BBBB-CCCC")

        for _ in range(3):
            with pytest.raises(AccessTokenAlreadyUsedError):
                service.redeem("KEY-AAAA-BBBB-CCCC")

    def test_expired_token(self, test_db, service, provider):
        create_token(expires_at=utc_now() - timedelta(minutes=1))

        with pytest.raises(AccessTokenExpiredError):
            service.redeem("KEY-AAAA-BBBB-CCCC")

        assert provider.issued == []
        assert TokenRepository.get_by_id("t1").used is False

    def test_future_expiry_is_accepted(self, test_db, service):
        create_token(expires_at=utc_now() + timedelta(days=1))

        claim = service.redeem("KEY-AAAA-BBBB-CCCC")

        assert claim.role == "user"

    def test_error_kinds_have_distinct_codes_and_messages(self):
        errors = [
            AccessTokenNotFoundError(),
            AccessTokenAlreadyUsedError(),
            AccessTokenExpiredError(),
            IdentityIssuanceFailedError(),
        ]

        assert len({e.code for e in errors}) == len(errors)
        assert len({str(e) for e in errors}) == len(errors)

    def test_get_claim(self, test_db, service):
        create_token()
        claim = service.redeem("KEY-AAAA-BBBB-CCCC")

        stored = service.get_claim(claim.user_id)

        assert stored.role == "user"
        assert stored.session_key is None
        assert service.get_claim("nobody") is None


class TestCompensation:
    """The issued identity is discarded on every failure after issuance."""

    def test_issuance_failure(self, test_db):
        create_token()
        service = RedemptionService(RecordingIdentityProvider(fail_issue=True))

        with pytest.raises(IdentityIssuanceFailedError) as exc_info:
            service.redeem("KEY-AAAA-BBBB-CCCC")

        assert exc_info.value.retryable is True
        assert TokenRepository.get_by_id("t1").used is False

    def test_transaction_failure_revokes_identity(self, test_db, service, provider):
        create_token()

        with patch.object(
            UserRepository, "upsert_claim", side_effect=sqlite3.OperationalError("disk I/O error")
        ):
            with pytest.raises(StorageFailureError):
                service.redeem("KEY-AAAA-BBBB-CCCC")

        assert provider.revoked == provider.issued
        assert identity_count() == 0
        token = TokenRepository.get_by_id("t1")
        assert token.used is False
        assert token.used_by is None
        assert TokenRepository.get_audit_entries("t1") == []

    def test_revoke_failure_surfaces_original_error(self, test_db):
        create_token()
        provider = RecordingIdentityProvider(fail_revoke=True)
        service = RedemptionService(provider)

        with patch.object(
            UserRepository, "upsert_claim", side_effect=sqlite3.OperationalError("disk I/O error")
        ):
            with pytest.raises(StorageFailureError):
                service.redeem("KEY-AAAA-BBBB-CCCC")

        assert provider.revoked == provider.issued

    def test_token_consumed_between_check_and_transaction(self, test_db, service, provider):
        create_token()
        real_get_by_id = TokenRepository.get_by_id

        def consumed_elsewhere(token_id, conn=None):
            token = real_get_by_id(token_id, conn=conn)
            token.used = True
            return token

        with patch.object(TokenRepository, "get_by_id", side_effect=consumed_elsewhere):
            with pytest.raises(AccessTokenAlreadyUsedError):
                service.redeem("KEY-AAAA-BBBB-CCCC")

        assert provider.revoked == provider.issued
        assert identity_count() == 0


class TestConcurrentRedeem:
    """At most one of several racing redeemers wins."""

    def test_two_concurrent_redeems(self, test_db):
        create_token()
        # Both callers pass the initial check before either reaches the transaction.
        provider = RecordingIdentityProvider(barrier=threading.Barrier(2))
        service = RedemptionService(provider)
        results = []
        lock = threading.Lock()

        def attempt():
            try:
                outcome = service.redeem("KEY-AAAA-BBBB-CCCC")
            except AccessTokenAlreadyUsedError as e:
                outcome = e
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        claims = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, AccessTokenAlreadyUsedError)]
        assert len(claims) == 1
        assert len(failures) == 1
        assert len(provider.issued) == 2

        token = TokenRepository.get_by_id("t1")
        assert token.used is True
        assert token.used_by == claims[0].user_id
        assert provider.revoked == [i for i in provider.issued if i != claims[0].user_id]
        assert identity_count() == 1

    def test_many_concurrent_redeems(self, test_db):
        create_token()
        service = RedemptionService(RecordingIdentityProvider())
        successes = []
        lock = threading.Lock()

        def attempt():
            try:
                claim = service.redeem("KEY-AAAA-BBBB-CCCC")
            except AccessTokenAlreadyUsedError:
                return
            with lock:
                successes.append(claim)

        threads = [threading.Thread(target=attempt) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(successes) == 1


class TestGuestAccess:
    """Guest sessions never consume a token."""

    def test_guest_disabled_by_default(self, test_db, service):
        with pytest.raises(GuestAccessDisabledError):
            service.login_as_guest()

    def test_guest_login(self, test_db, service, guest_enabled):
        claim = service.login_as_guest()

        assert claim.role == "guest"
        assert claim.is_guest is True
        assert claim.session_key.startswith("pgs_")
        assert TokenRepository.list_tokens() == []

    def test_redeem_with_guest_token(self, test_db, service, guest_enabled):
        claim = service.redeem("  guest-demo-001 ")

        assert claim.is_guest is True
        assert claim.linked_token is None

    def test_guest_token_is_plain_token_when_disabled(self, test_db, service):
        with pytest.raises(AccessTokenNotFoundError):
            service.redeem("GUEST-DEMO-001")
