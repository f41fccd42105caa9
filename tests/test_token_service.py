"""Tests for access token administration."""

import re
from datetime import timedelta
from unittest.mock import patch

import pytest

from polygraf.exceptions import (
    AccessTokenAlreadyUsedError,
    AccessTokenNotFoundError,
    StorageFailureError,
)
from polygraf.identity import LocalIdentityProvider
from polygraf.repositories.token_repository import TokenRepository
from polygraf.services.redemption_service import RedemptionService
from polygraf.services.token_service import TokenService, generate_token_string
from polygraf.utils import utc_now

TOKEN_RE = re.compile(r"^KEY-[A-Z2-9]{4}-[A-Z2-9]{4}-[A-Z2-9]{4}$")


@pytest.fixture
def service():
    return TokenService()


def test_generated_strings_match_format():
    for _ in range(200):
        token = generate_token_string()
        assert TOKEN_RE.match(token)
        assert not set(token[4:].replace("-", "")) & set("01ILO")


@pytest.mark.parametrize("token, valid", [
    ("KEY-ABCD-EFGH-JKMN", True),
    ("KEY-2345-6789-ABCD", True),
    ("KEY-ABCD-EFGH-JKM", False),
    ("KEY-ABCD-EFGH-JKMO", False),
    ("key-abcd-efgh-jkmn", False),
    ("KEY-ABCD-EFGH-JKMN-PQRS", False),
    ("GUEST-DEMO-001", False),
])
def test_is_valid_token_format(token, valid):
    assert TokenService.is_valid_token_format(token) is valid


def test_generate_token(test_db, service):
    token = service.generate_token(role="admin", description="ops", created_by="admin-1")

    assert TOKEN_RE.match(token.token)
    assert token.role == "admin"
    assert token.used is False
    assert token.expires_at is None

    stored = TokenRepository.get_by_token(token.token)
    assert stored.token_id == token.token_id
    assert stored.created_by == "admin-1"
    assert [e.event for e in TokenRepository.get_audit_entries(token.token_id)] == ["generated"]


def test_generate_token_with_expiry(test_db, service):
    before = utc_now()

    token = service.generate_token(expires_in_days=7)

    assert before + timedelta(days=7) <= token.expires_at <= utc_now() + timedelta(days=7)


@pytest.mark.parametrize("kwargs", [{"role": "superuser"}, {"expires_in_days": 0}])
def test_generate_token_rejects_bad_input(test_db, service, kwargs):
    with pytest.raises(ValueError):
        service.generate_token(**kwargs)


def test_generate_token_retries_on_collision(test_db, service):
    existing = service.generate_token()
    strings = iter([existing.token, "KEY-NEWW-NEWW-NEWW"])

    with patch("polygraf.services.token_service.generate_token_string", side_effect=lambda: next(strings)):
        token = service.generate_token()

    assert token.token == "KEY-NEWW-NEWW-NEWW"
    assert len(service.list_tokens()) == 2


def test_generate_token_gives_up_after_repeated_collisions(test_db, service):
    existing = service.generate_token()

    with patch("polygraf.services.token_service.generate_token_string", return_value=existing.token):
        with pytest.raises(StorageFailureError) as exc_info:
            service.generate_token()

    assert exc_info.value.code == "STORAGE_FAILURE"
    assert len(service.list_tokens()) == 1


def test_list_tokens(test_db, service):
    first = service.generate_token()
    second = service.generate_token()
    RedemptionService(LocalIdentityProvider()).redeem(first.token)

    assert {t.token_id for t in service.list_tokens()} == {first.token_id, second.token_id}
    assert [t.token_id for t in service.list_tokens(include_used=False)] == [second.token_id]


def test_revoke_unused_token(test_db, service):
    token = service.generate_token()

    service.revoke_token(token.token_id, actor="admin-1")

    assert TokenRepository.get_by_id(token.token_id) is None
    events = [(e.event, e.actor) for e in TokenRepository.get_audit_entries(token.token_id)]
    assert events == [("generated", None), ("revoked", "admin-1")]


def test_revoke_missing_token(test_db, service):
    with pytest.raises(AccessTokenNotFoundError):
        service.revoke_token("missing")


def test_revoke_used_token(test_db, service):
    token = service.generate_token()
    RedemptionService(LocalIdentityProvider()).redeem(token.token)

    with pytest.raises(AccessTokenAlreadyUsedError):
        service.revoke_token(token.token_id)

    assert TokenRepository.get_by_id(token.token_id).used is True


def test_ensure_token_is_idempotent(test_db, service):
    first = service.ensure_token("KEY-ADMN-ADMN-ADMN", "admin")
    second = service.ensure_token("KEY-ADMN-ADMN-ADMN", "admin")

    assert first.token_id == second.token_id
    assert len(service.list_tokens()) == 1
