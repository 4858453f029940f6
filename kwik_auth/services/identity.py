"""Identity normalization.

Local signups, stored accounts and OAuth provider profiles all arrive in
different shapes. The functions here map each of them onto the same canonical
``UserIdentity`` so every flow answers with identical fields. Nothing in this
module touches the database or the network.
"""

from dataclasses import dataclass, field
from datetime import datetime

from kwik_auth.models.account import Account, Role
from kwik_auth.schemas.auth import SessionPayload, SignupRequest, UserIdentity


@dataclass
class OAuthProfile:
    """Profile as reported by an OAuth provider."""

    provider: str
    emails: list[str] = field(default_factory=list)
    display_name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    avatar_url: str | None = None


@dataclass
class AccountDraft:
    """Fields needed to create an Account, before it has an id."""

    email: str
    password_hash: str
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    avatar: str | None = None
    role: Role = Role.USER
    email_verified: bool = False
    verification_token: str | None = None
    verification_token_expires_at: datetime | None = None
    terms_accepted: bool = False
    terms_accepted_at: datetime | None = None
    newsletter_opt_in: bool = False


def normalize_email(email: str) -> str:
    return email.strip().lower()


def identity_from_account(account: Account) -> UserIdentity:
    return UserIdentity(
        id=account.id,
        email=account.email,
        username=account.username,
        first_name=account.first_name,
        last_name=account.last_name,
        role=account.role,
        avatar=account.avatar,
        email_verified=account.email_verified,
        newsletter_opt_in=account.newsletter_opt_in,
    )


def identity_from_signup(request: SignupRequest) -> UserIdentity:
    """Shape a local signup before it is persisted (``id`` is unset)."""
    return UserIdentity(
        id=None,
        email=normalize_email(request.email),
        username=request.username.strip(),
        first_name=request.first_name.strip(),
        last_name=request.last_name.strip() if request.last_name else None,
        role=Role.USER,
        avatar=request.avatar_url,
        email_verified=False,
        newsletter_opt_in=request.newsletter_opt_in,
    )


def oauth_username_candidates(profile: OAuthProfile) -> list[str]:
    """Usernames to try for a new OAuth account, in order of preference."""
    candidates = []
    if profile.display_name and profile.display_name.strip():
        candidates.append(profile.display_name.strip())
    if profile.emails:
        candidates.append(normalize_email(profile.emails[0]))
    return candidates


def identity_from_oauth(profile: OAuthProfile) -> UserIdentity:
    """Shape an OAuth profile. Provider-attested emails count as verified."""
    candidates = oauth_username_candidates(profile)
    first_name = profile.given_name or profile.display_name
    return UserIdentity(
        id=None,
        email=normalize_email(profile.emails[0]),
        username=candidates[0] if candidates else None,
        first_name=first_name.strip() if first_name else None,
        last_name=profile.family_name,
        role=Role.USER,
        avatar=profile.avatar_url,
        email_verified=True,
        newsletter_opt_in=False,
    )


def draft_from_identity(identity: UserIdentity, password_hash: str, **extra) -> AccountDraft:
    return AccountDraft(
        email=identity.email,
        password_hash=password_hash,
        username=identity.username,
        first_name=identity.first_name,
        last_name=identity.last_name,
        avatar=identity.avatar,
        role=identity.role,
        email_verified=identity.email_verified,
        newsletter_opt_in=identity.newsletter_opt_in,
        **extra,
    )


def session_payload(
    identity: UserIdentity,
    access_token: str,
    refresh_token: str,
    needs_terms_acceptance: bool = False,
) -> SessionPayload:
    """Attach a token pair to an identity.

    ``needsTermsAcceptance`` is only set when true; its absence tells the
    client the session is usable right away.
    """
    fields = identity.model_dump()
    fields.update(access_token=access_token, refresh_token=refresh_token)
    if needs_terms_acceptance:
        fields["needs_terms_acceptance"] = True
    return SessionPayload(**fields)
