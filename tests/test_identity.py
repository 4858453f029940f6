"""Tests for identity normalization."""

from kwik_auth.models.account import Account, Role
from kwik_auth.services.identity import (
    identity_from_account,
    identity_from_oauth,
    identity_from_signup,
    oauth_username_candidates,
    session_payload,
)
from tests.factories import make_oauth_profile, make_signup


def test_signup_shape_normalizes_email():
    identity = identity_from_signup(make_signup(email="  Mixed@Example.COM "))
    assert identity.id is None
    assert identity.email == "mixed@example.com"
    assert identity.username == "tester"
    assert identity.email_verified is False
    assert identity.newsletter_opt_in is True


def test_account_shape_exposes_canonical_fields():
    account = Account(
        id=3,
        email="a@example.com",
        username="alice",
        first_name="Alice",
        last_name=None,
        role=Role.ADMIN,
        avatar=None,
        email_verified=True,
        newsletter_opt_in=False,
        password_hash="x",
    )
    data = identity_from_account(account).model_dump(by_alias=True)
    assert data == {
        "id": 3,
        "email": "a@example.com",
        "username": "alice",
        "firstName": "Alice",
        "lastName": None,
        "role": Role.ADMIN,
        "avatar": None,
        "emailVerified": True,
        "newsletterOptIn": False,
    }


def test_oauth_shape_is_pre_verified():
    identity = identity_from_oauth(make_oauth_profile(emails=["First@Example.com", "second@example.com"]))
    assert identity.email == "first@example.com"
    assert identity.username == "OAuth Person"
    assert identity.first_name == "OAuth"
    assert identity.avatar == "https://img.example.com/a.png"
    assert identity.email_verified is True
    assert identity.newsletter_opt_in is False


def test_oauth_username_falls_back_to_email():
    profile = make_oauth_profile(display_name=None)
    assert oauth_username_candidates(profile) == ["oauth@example.com"]
    assert identity_from_oauth(profile).username == "oauth@example.com"


def test_shapes_agree_across_origins():
    fields = set(identity_from_signup(make_signup()).model_dump())
    assert fields == set(identity_from_oauth(make_oauth_profile()).model_dump())


def test_session_payload_flags_pending_terms_only_when_needed():
    identity = identity_from_oauth(make_oauth_profile())

    plain = session_payload(identity, "access", "refresh")
    wire = plain.model_dump(by_alias=True, exclude_unset=True)
    assert wire["accessToken"] == "access"
    assert wire["refreshToken"] == "refresh"
    assert "needsTermsAcceptance" not in wire

    pending = session_payload(identity, "access", "refresh", needs_terms_acceptance=True)
    assert pending.model_dump(by_alias=True, exclude_unset=True)["needsTermsAcceptance"] is True
