from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import HTTPException

from app.core.roles import TokenType
from app.core.security import (
    TokenError,
    create_access_token,
    create_purpose_token,
    decode_access_token,
    decode_purpose_token,
    hash_password,
    verify_password,
)
from app.core.slugs import slugify


def test_password_hash_round_trip():
    hashed = hash_password("Sup3rSecret!")
    assert hashed != "Sup3rSecret!"
    assert verify_password("Sup3rSecret!", hashed)
    assert not verify_password("wrong", hashed)


def test_verify_password_rejects_missing_or_corrupt_hash():
    assert not verify_password("anything", None)
    assert not verify_password("anything", "")
    assert not verify_password("anything", "not-a-bcrypt-hash")


def test_access_token_carries_session_claims():
    token = create_access_token(
        user_id=7,
        email="ada@acme.com",
        role="admin",
        tenant_id=3,
        tenant_slug="acme",
    )
    payload = decode_access_token(token)
    assert payload["sub"] == "7"
    assert payload["type"] == "session"
    assert payload["tenant_id"] == 3
    assert payload["tenant_slug"] == "acme"


def test_access_token_tolerates_bearer_prefix_and_quotes():
    token = create_access_token(user_id=1, email="a@acme.com", role="member", tenant_id=1, tenant_slug="acme")
    assert decode_access_token(f'"Bearer {token}"')["sub"] == "1"


def test_purpose_token_is_not_a_session():
    token = create_purpose_token(TokenType.PASSWORD_RESET, {"sub": 1}, timedelta(hours=1))
    with pytest.raises(HTTPException) as exc:
        decode_access_token(token)
    assert exc.value.status_code == 401


def test_purpose_token_type_must_match():
    token = create_purpose_token(TokenType.INVITATION, {"email": "x@acme.com"}, timedelta(days=7))
    assert decode_purpose_token(token, TokenType.INVITATION)["email"] == "x@acme.com"

    with pytest.raises(TokenError) as exc:
        decode_purpose_token(token, TokenType.EMAIL_VERIFICATION)
    assert exc.value.expired is False


def test_purpose_token_type_cannot_be_overridden_by_claims():
    token = create_purpose_token(TokenType.INVITATION, {"type": "session"}, timedelta(days=1))
    assert decode_purpose_token(token, TokenType.INVITATION)["type"] == "invitation"


def test_same_claims_give_distinct_tokens():
    a = create_purpose_token(TokenType.PASSWORD_RESET, {"sub": 1}, timedelta(hours=1))
    b = create_purpose_token(TokenType.PASSWORD_RESET, {"sub": 1}, timedelta(hours=1))
    assert a != b


def test_expired_purpose_token():
    token = create_purpose_token(TokenType.PASSWORD_RESET, {"sub": 1}, timedelta(seconds=-10))
    with pytest.raises(TokenError) as exc:
        decode_purpose_token(token, TokenType.PASSWORD_RESET)
    assert exc.value.expired is True


def test_garbage_tokens():
    with pytest.raises(TokenError):
        decode_purpose_token("not.a.jwt", TokenType.INVITATION)
    with pytest.raises(TokenError):
        decode_purpose_token("   ", TokenType.INVITATION)
    with pytest.raises(HTTPException):
        decode_access_token("not.a.jwt")


@pytest.mark.parametrize(
    "name, slug",
    [
        ("Acme Corp", "acme-corp"),
        ("Acme Corp!", "acme-corp"),
        ("  Globex   International  ", "globex-international"),
        ("Ünïcode Café", "ncode-caf"),
        ("x" * 80, "x" * 50),
        ("!!!", ""),
    ],
)
def test_slugify(name, slug):
    assert slugify(name) == slug
