"""Service wiring and authentication dependencies for FastAPI routes."""

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from kwik_auth.config import get_settings
from kwik_auth.database import get_db
from kwik_auth.errors import UnauthorizedError
from kwik_auth.models.account import Role
from kwik_auth.schemas.auth import UserIdentity
from kwik_auth.services.auth import AuthService, ChallengeVerifier, Notifier
from kwik_auth.services.captcha import get_recaptcha_verifier
from kwik_auth.services.email import get_email_notifier
from kwik_auth.services.google_oauth import GoogleOAuthClient, get_google_oauth_client
from kwik_auth.services.hasher import get_secret_hasher
from kwik_auth.services.jwt import get_token_signer
from kwik_auth.storage.accounts import SqlAlchemyCredentialStore

OAUTH_STATE_COOKIE = "ka_oauth_state"
OAUTH_STATE_MAX_AGE = 10 * 60  # 10 minutes


def get_notifier() -> Notifier:
    return get_email_notifier()


def get_challenge_verifier() -> ChallengeVerifier:
    return get_recaptcha_verifier()


def get_google_client() -> GoogleOAuthClient:
    return get_google_oauth_client()


def get_auth_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    verifier: ChallengeVerifier = Depends(get_challenge_verifier),
) -> AuthService:
    """Build the lifecycle manager for one request."""
    return AuthService(
        store=SqlAlchemyCredentialStore(db),
        hasher=get_secret_hasher(),
        signer=get_token_signer(),
        notifier=notifier,
        verifier=verifier,
        settings=get_settings(),
    )


def get_bearer_token(request: Request) -> str:
    """Extract the token from ``Authorization: Bearer``. Raises 401 if absent."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    raise UnauthorizedError("Not authenticated")


def get_current_user(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserIdentity:
    return auth_service.authenticate(token)


def require_admin(user: UserIdentity = Depends(get_current_user)) -> UserIdentity:
    return AuthService.require_role(user, Role.ADMIN)


def set_oauth_state_cookie(response: Response, state: str) -> None:
    response.set_cookie(
        key=OAUTH_STATE_COOKIE,
        value=state,
        httponly=True,
        samesite="lax",
        secure=get_settings().APP_ENV == "production",
        max_age=OAUTH_STATE_MAX_AGE,
    )


def clear_oauth_state_cookie(response: Response) -> None:
    response.delete_cookie(key=OAUTH_STATE_COOKIE)
