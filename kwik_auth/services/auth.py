"""Authentication service.

Owns the account lifecycle: registration, email verification, password and
OAuth sign-in, refresh-token rotation, sign-out, password reset and the
OAuth terms-acceptance step. All persistent state lives behind the
``CredentialStore``; this class only applies the rules.

Sign-out clears the stored refresh-token digest. Access tokens already issued
stay valid until they expire, there is no revocation list for them.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Protocol

from kwik_auth.config import Settings
from kwik_auth.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InputError,
    NotFoundError,
    TokenError,
    UnauthorizedError,
)
from kwik_auth.models.account import Account, Role, utcnow
from kwik_auth.schemas.auth import MessageResponse, SessionPayload, SignupRequest, UpdateProfileRequest, UserIdentity
from kwik_auth.services.hasher import SecretHasher
from kwik_auth.services.identity import (
    OAuthProfile,
    draft_from_identity,
    identity_from_account,
    identity_from_oauth,
    identity_from_signup,
    normalize_email,
    oauth_username_candidates,
    session_payload,
)
from kwik_auth.services.jwt import UNSUBSCRIBE_PURPOSE, TokenSigner
from kwik_auth.storage.accounts import CredentialStore

logger = logging.getLogger("kwik_auth")

FORGOT_PASSWORD_MESSAGE = "If your email exists in our system, you will receive a password reset link."
INVALID_CREDENTIALS = "Invalid email or password"
EMAIL_NOT_VERIFIED = "Email not verified. Please check your inbox for the verification email."
INVALID_VERIFICATION_TOKEN = "Invalid or expired verification token"
INVALID_RESET_TOKEN = "Invalid or expired reset token"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
INVALID_UNSUBSCRIBE_TOKEN = "Invalid or expired unsubscribe link"
TERMS_REQUIRED = "Terms and Privacy Policy must be accepted"


class Notifier(Protocol):
    def send_verification_email(self, email: str, token: str, display_name: str) -> None: ...

    def send_password_reset_email(self, email: str, token: str, display_name: str) -> None: ...


class ChallengeVerifier(Protocol):
    def verify(self, challenge_token: str) -> bool: ...


@dataclass
class OAuthResult:
    """Outcome of matching an OAuth profile to an account."""

    account: Account
    is_new_user: bool
    needs_terms_acceptance: bool


def generate_one_time_token() -> str:
    """43 URL-safe characters (256 bits)."""
    return secrets.token_urlsafe(32)


class AuthService:
    """Handles the account and session lifecycle."""

    def __init__(
        self,
        store: CredentialStore,
        hasher: SecretHasher,
        signer: TokenSigner,
        notifier: Notifier,
        verifier: ChallengeVerifier,
        settings: Settings,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.signer = signer
        self.notifier = notifier
        self.verifier = verifier
        self.settings = settings

    # ---- helpers ----
    @staticmethod
    def _expiry(hours: int) -> datetime:
        return utcnow() + timedelta(hours=hours)

    @staticmethod
    def _is_expired(expires_at: datetime | None) -> bool:
        return expires_at is None or expires_at < utcnow()

    @staticmethod
    def _display_name(account: Account) -> str:
        return account.username or account.first_name or ""

    def _hash_password(self, password: str) -> str:
        try:
            return self.hasher.hash(password)
        except InputError as exc:
            raise BadRequestError("Password is required") from exc

    def _dispatch(self, kind: str, send, account: Account, token: str) -> None:
        """Send an email after the state change is committed. Failures are only logged."""
        try:
            send(account.email, token, self._display_name(account))
        except Exception:
            logger.exception("Failed to send %s email for account %s", kind, account.id)

    def _require_account(self, account_id: int) -> Account:
        account = self.store.find_by_id(account_id)
        if account is None:
            raise NotFoundError("User not found")
        return account

    def _account_from_claims(self, claims: dict[str, Any]) -> Account:
        if "purpose" in claims:
            raise UnauthorizedError("Invalid or expired token", error_code="invalid_token")
        try:
            account_id = int(claims["sub"])
        except (KeyError, TypeError, ValueError) as exc:
            raise UnauthorizedError("Invalid or expired token", error_code="invalid_token") from exc
        account = self.store.find_by_id(account_id)
        if account is None:
            raise UnauthorizedError("User not found")
        return account

    def _issue_session(self, account: Account, *, login: bool, needs_terms_acceptance: bool = False) -> SessionPayload:
        """Issue a token pair and store the refresh digest, replacing any previous one."""
        access_token, refresh_token = self.signer.issue_pair(str(account.id))
        digest = self.hasher.hash(refresh_token)
        if login:
            account = self.store.record_login(account.id, digest)
        else:
            account = self.store.update_hashed_refresh_token(account.id, digest)
        return session_payload(identity_from_account(account), access_token, refresh_token, needs_terms_acceptance)

    # ---- registration and verification ----
    def register(self, request: SignupRequest) -> UserIdentity:
        """Create an unverified local account and send the verification email. No tokens are issued."""
        identity = identity_from_signup(request)
        if self.store.find_by_email(identity.email):
            raise ConflictError("User email already exists!", error_code="email_taken")
        if self.store.find_by_username(identity.username):
            raise ConflictError("Username already exists!", error_code="username_taken")

        if not self.verifier.verify(request.recaptcha_token):
            raise BadRequestError("Invalid CAPTCHA", error_code="invalid_challenge")
        if not request.terms_accepted:
            raise BadRequestError(TERMS_REQUIRED, error_code="terms_not_accepted")

        token = generate_one_time_token()
        draft = draft_from_identity(
            identity,
            self._hash_password(request.password),
            verification_token=token,
            verification_token_expires_at=self._expiry(self.settings.VERIFICATION_TOKEN_EXPIRE_HOURS),
            terms_accepted=True,
            terms_accepted_at=utcnow(),
        )
        account = self.store.create(draft)
        logger.info("Registered account %s", account.id)

        self._dispatch("verification", self.notifier.send_verification_email, account, token)
        return identity_from_account(account)

    def verify_email(self, token: str) -> MessageResponse:
        """Consume a verification token. Repeating a spent link answers success without changes."""
        if not token:
            raise BadRequestError(INVALID_VERIFICATION_TOKEN, error_code="invalid_token")

        account = self.store.find_by_verification_token(token)
        if account is None:
            spent = self.store.find_by_consumed_verification_token(token)
            if spent is not None and spent.email_verified:
                return MessageResponse(message="Email already verified")
            raise BadRequestError(INVALID_VERIFICATION_TOKEN, error_code="invalid_token")

        if self._is_expired(account.verification_token_expires_at):
            raise BadRequestError(INVALID_VERIFICATION_TOKEN, error_code="invalid_token")
        if account.email_verified:
            return MessageResponse(message="Email already verified")

        self.store.mark_email_verified(account.id, consumed_token=token)
        logger.info("Email verified for account %s", account.id)
        return MessageResponse(message="Email verified successfully")

    def resend_verification(self, email: str) -> MessageResponse:
        account = self.store.find_by_email(email)
        if account is None:
            raise UnauthorizedError("User not found")
        if account.email_verified:
            raise BadRequestError("Email already verified", error_code="already_verified")

        token = generate_one_time_token()
        account = self.store.update_verification_token(
            account.id, token, self._expiry(self.settings.VERIFICATION_TOKEN_EXPIRE_HOURS)
        )
        self._dispatch("verification", self.notifier.send_verification_email, account, token)
        return MessageResponse(message="Verification email sent successfully")

    # ---- sessions ----
    def login(self, email: str, password: str) -> SessionPayload:
        account = self.store.find_by_email(email)
        if account is None:
            # Unknown emails pay the same bcrypt cost as wrong passwords.
            self.hasher.verify_decoy(password)
            raise UnauthorizedError(INVALID_CREDENTIALS, error_code="invalid_credentials")
        if not self.hasher.verify(account.password_hash, password):
            raise UnauthorizedError(INVALID_CREDENTIALS, error_code="invalid_credentials")
        if not account.email_verified:
            raise UnauthorizedError(EMAIL_NOT_VERIFIED, error_code="email_not_verified")
        return self._issue_session(account, login=True)

    def refresh(self, refresh_token: str) -> SessionPayload:
        """Rotate a refresh token.

        The token must carry a valid refresh signature and match the stored
        digest. Two concurrent refreshes race last-writer-wins on the digest;
        the loser's new refresh token fails on its next use.
        """
        try:
            claims = self.signer.verify(refresh_token, self.signer.refresh_context)
        except TokenError as exc:
            raise UnauthorizedError(INVALID_REFRESH_TOKEN, error_code="invalid_refresh_token") from exc

        account = self._account_from_claims(claims)
        if not account.hashed_refresh_token:
            raise UnauthorizedError("Refresh token missing", error_code="invalid_refresh_token")
        if not self.hasher.verify(account.hashed_refresh_token, refresh_token):
            raise UnauthorizedError(INVALID_REFRESH_TOKEN, error_code="invalid_refresh_token")
        return self._issue_session(account, login=False)

    def sign_out(self, account_id: int) -> MessageResponse:
        self.store.update_hashed_refresh_token(account_id, None)
        logger.info("Signed out account %s", account_id)
        return MessageResponse(message="Signed out successfully")

    def authenticate(self, access_token: str) -> UserIdentity:
        """Resolve a bearer access token to the current identity."""
        try:
            claims = self.signer.verify(access_token, self.signer.access_context)
        except TokenError as exc:
            raise UnauthorizedError("Invalid or expired token", error_code="invalid_token") from exc
        return identity_from_account(self._account_from_claims(claims))

    @staticmethod
    def require_role(identity: UserIdentity, *roles: Role) -> UserIdentity:
        if identity.role not in roles:
            raise ForbiddenError(f"User role {identity.role.value} does not have required permissions")
        return identity

    # ---- OAuth ----
    def _available_username(self, profile: OAuthProfile) -> str | None:
        for candidate in oauth_username_candidates(profile):
            if self.store.find_by_username(candidate) is None:
                return candidate
        return None

    def validate_oauth_profile(self, profile: OAuthProfile) -> OAuthResult:
        """Match a provider profile to an account, creating one if needed.

        Provider-attested emails are treated as verified. New accounts start
        with terms not accepted; existing accounts keep their terms flag.
        """
        if not profile.emails or not profile.emails[0]:
            raise UnauthorizedError(f"No email provided from {profile.provider} OAuth!")
        if not (profile.given_name or profile.display_name):
            raise UnauthorizedError(f"No name provided from {profile.provider} OAuth!")
        if not profile.avatar_url:
            raise UnauthorizedError(f"No avatar provided from {profile.provider} OAuth!")

        identity = identity_from_oauth(profile)
        account = self.store.find_by_email(identity.email)
        is_new_user = False
        if account is not None:
            if not account.email_verified:
                account = self.store.mark_email_verified(account.id)
        else:
            identity = identity.model_copy(update={"username": self._available_username(profile)})
            # Random password nobody knows; the account signs in through the provider.
            draft = draft_from_identity(identity, self.hasher.hash(generate_one_time_token()))
            account = self.store.create(draft)
            is_new_user = True
            logger.info("Created account %s from %s OAuth", account.id, profile.provider)

        return OAuthResult(
            account=account,
            is_new_user=is_new_user,
            needs_terms_acceptance=not account.terms_accepted,
        )

    def oauth_login(self, profile: OAuthProfile) -> SessionPayload:
        """Sign in through OAuth.

        When terms are still pending the payload is tagged
        ``needsTermsAcceptance`` and the client must route through the
        acceptance step before keeping the session.
        """
        result = self.validate_oauth_profile(profile)
        return self._issue_session(
            result.account, login=True, needs_terms_acceptance=result.needs_terms_acceptance
        )

    def accept_oauth_terms(
        self, account_id: int, terms_accepted: bool, newsletter_opt_in: bool = False
    ) -> MessageResponse:
        if not terms_accepted:
            raise BadRequestError(TERMS_REQUIRED, error_code="terms_not_accepted")
        self._require_account(account_id)
        self.store.update_terms_acceptance(account_id, True, newsletter_opt_in)
        return MessageResponse(message="Terms acceptance recorded successfully")

    # ---- passwords ----
    def forgot_password(self, email: str) -> MessageResponse:
        """Start a password reset. The response never reveals whether the email exists."""
        account = self.store.find_by_email(email)
        if account is not None:
            token = generate_one_time_token()
            account = self.store.update_password_reset_token(
                account.id, token, self._expiry(self.settings.PASSWORD_RESET_TOKEN_EXPIRE_HOURS)
            )
            self._dispatch("password reset", self.notifier.send_password_reset_email, account, token)
        return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)

    def reset_password(self, token: str, new_password: str) -> MessageResponse:
        if not token:
            raise BadRequestError(INVALID_RESET_TOKEN, error_code="invalid_token")
        account = self.store.find_by_password_reset_token(token)
        if account is None or self._is_expired(account.password_reset_expires_at):
            raise BadRequestError(INVALID_RESET_TOKEN, error_code="invalid_token")

        self.store.update_password(account.id, self._hash_password(new_password))
        logger.info("Password reset for account %s", account.id)
        return MessageResponse(message="Password has been reset successfully")

    def change_password(self, account_id: int, current_password: str, new_password: str) -> MessageResponse:
        account = self._require_account(account_id)
        if not self.hasher.verify(account.password_hash, current_password):
            raise UnauthorizedError("Current password is incorrect", error_code="invalid_current_password")
        self.store.update_password(account.id, self._hash_password(new_password))
        return MessageResponse(message="Password changed successfully")

    # ---- profile and newsletter ----
    def update_profile(self, account_id: int, request: UpdateProfileRequest) -> UserIdentity:
        account = self._require_account(account_id)
        if request.username is not None and request.username != account.username:
            existing = self.store.find_by_username(request.username)
            if existing is not None and existing.id != account.id:
                raise ConflictError("Username is already taken", error_code="username_taken")

        updated = self.store.update_profile(
            account.id,
            first_name=request.first_name,
            last_name=request.last_name,
            username=request.username,
            newsletter_opt_in=request.newsletter_opt_in,
        )
        return identity_from_account(updated)

    def issue_unsubscribe_token(self, email: str) -> str:
        claims = {"email": normalize_email(email), "purpose": UNSUBSCRIBE_PURPOSE}
        return self.signer.issue(claims, self.signer.purpose_context)

    def unsubscribe_newsletter(self, token: str) -> MessageResponse:
        """One-click unsubscribe. Possession of a valid purpose token is the only credential."""
        try:
            claims = self.signer.verify(token, self.signer.purpose_context)
        except TokenError as exc:
            raise BadRequestError(INVALID_UNSUBSCRIBE_TOKEN, error_code="invalid_token") from exc
        if claims.get("purpose") != UNSUBSCRIBE_PURPOSE or not claims.get("email"):
            raise BadRequestError(INVALID_UNSUBSCRIBE_TOKEN, error_code="invalid_token")

        self.store.update_newsletter_preference(claims["email"], False)
        return MessageResponse(message="You have been unsubscribed from the newsletter")
