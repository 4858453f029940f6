"""Tests for the token signer."""

import pytest

from kwik_auth.errors import ExpiredTokenError, InvalidSignatureError, MalformedTokenError
from kwik_auth.services.jwt import UNSUBSCRIBE_PURPOSE, TokenSigner


def test_round_trip_returns_claims(signer: TokenSigner):
    token = signer.issue({"sub": "42"}, signer.access_context, ttl=60)
    claims = signer.verify(token, signer.access_context)
    assert claims["sub"] == "42"
    assert claims["exp"] - claims["iat"] == 60
    assert claims["jti"]


def test_expired_token_fails_with_expiry_error(signer: TokenSigner):
    token = signer.issue({"sub": "42"}, signer.access_context, ttl=-5)
    with pytest.raises(ExpiredTokenError):
        signer.verify(token, signer.access_context)


def test_contexts_use_independent_secrets(signer: TokenSigner):
    access_token, refresh_token = signer.issue_pair("7")
    with pytest.raises(InvalidSignatureError):
        signer.verify(access_token, signer.refresh_context)
    with pytest.raises(InvalidSignatureError):
        signer.verify(refresh_token, signer.access_context)
    assert signer.verify(refresh_token, signer.refresh_context)["sub"] == "7"


def test_refresh_lifetime_exceeds_access_lifetime(signer: TokenSigner):
    access_token, refresh_token = signer.issue_pair("7")
    access = signer.verify(access_token, signer.access_context)
    refresh = signer.verify(refresh_token, signer.refresh_context)
    assert refresh["exp"] - refresh["iat"] > access["exp"] - access["iat"]


def test_tampered_token_fails_signature(signer: TokenSigner):
    token = signer.issue({"sub": "1"}, signer.access_context)
    header, payload, signature = token.split(".")
    forged = signer.issue({"sub": "2"}, signer.access_context).split(".")[1]
    with pytest.raises(InvalidSignatureError):
        signer.verify(f"{header}.{forged}.{signature}", signer.access_context)


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b"])
def test_malformed_token(signer: TokenSigner, token: str):
    with pytest.raises(MalformedTokenError):
        signer.verify(token, signer.access_context)


def test_pairs_issued_in_the_same_second_differ(signer: TokenSigner):
    first = signer.issue_pair("9")
    second = signer.issue_pair("9")
    assert first[0] != second[0]
    assert first[1] != second[1]


def test_signer_does_not_enforce_purpose(signer: TokenSigner):
    token = signer.issue({"email": "a@example.com", "purpose": UNSUBSCRIBE_PURPOSE}, signer.purpose_context)
    claims = signer.verify(token, signer.access_context)
    assert claims["purpose"] == UNSUBSCRIBE_PURPOSE
    assert "sub" not in claims
