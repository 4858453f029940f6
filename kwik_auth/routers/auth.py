"""Authentication API endpoints."""

import logging
import secrets
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from kwik_auth.config import get_settings
from kwik_auth.dependencies import (
    OAUTH_STATE_COOKIE,
    clear_oauth_state_cookie,
    get_auth_service,
    get_bearer_token,
    get_current_user,
    get_google_client,
    require_admin,
    set_oauth_state_cookie,
)
from kwik_auth.errors import AuthError, StorageError, UnauthorizedError
from kwik_auth.rate_limit import limiter
from kwik_auth.schemas.auth import (
    AcceptTermsRequest,
    ChangePasswordRequest,
    EmailRequest,
    MessageResponse,
    ResetPasswordRequest,
    SessionPayload,
    SigninRequest,
    SignupRequest,
    UpdateProfileRequest,
    UserIdentity,
)
from kwik_auth.services.auth import AuthService
from kwik_auth.services.google_oauth import GoogleOAuthClient

logger = logging.getLogger("kwik_auth")

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def _frontend_url(path: str, params: dict[str, str]) -> str:
    return f"{get_settings().FRONTEND_URL.rstrip('/')}{path}?{urlencode(params)}"


def _query_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


@router.post("/signup", response_model=UserIdentity, status_code=201)
@limiter.limit("5/minute")
def signup(
    request: Request, body: SignupRequest, auth_service: AuthService = Depends(get_auth_service)
) -> UserIdentity:
    """Register a new account. Tokens are issued only after email verification and sign-in."""
    return auth_service.register(body)


@router.get("/verify-email", response_model=MessageResponse)
def verify_email(token: str = "", auth_service: AuthService = Depends(get_auth_service)) -> MessageResponse:
    return auth_service.verify_email(token)


@router.post("/resend-verification", response_model=MessageResponse)
@limiter.limit("3/minute")
def resend_verification(
    request: Request, body: EmailRequest, auth_service: AuthService = Depends(get_auth_service)
) -> MessageResponse:
    return auth_service.resend_verification(body.email)


@router.post("/signin", response_model=SessionPayload, response_model_exclude_unset=True)
@limiter.limit("10/minute")
def signin(
    request: Request, body: SigninRequest, auth_service: AuthService = Depends(get_auth_service)
) -> SessionPayload:
    """Authenticate with email and password and receive an access/refresh token pair."""
    return auth_service.login(body.email, body.password)


@router.post("/refresh", response_model=SessionPayload, response_model_exclude_unset=True)
@limiter.limit("30/minute")
def refresh(
    request: Request,
    refresh_token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> SessionPayload:
    """Exchange the refresh token in the Authorization header for a new pair."""
    return auth_service.refresh(refresh_token)


@router.post("/signout", response_model=MessageResponse)
def signout(
    user: UserIdentity = Depends(get_current_user), auth_service: AuthService = Depends(get_auth_service)
) -> MessageResponse:
    return auth_service.sign_out(user.id)


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit("3/minute")
def forgot_password(
    request: Request, body: EmailRequest, auth_service: AuthService = Depends(get_auth_service)
) -> MessageResponse:
    return auth_service.forgot_password(body.email)


@router.post("/reset-password", response_model=MessageResponse)
@limiter.limit("5/minute")
def reset_password(
    request: Request, body: ResetPasswordRequest, auth_service: AuthService = Depends(get_auth_service)
) -> MessageResponse:
    return auth_service.reset_password(body.token, body.password)


@router.get("/me", response_model=UserIdentity)
def me(user: UserIdentity = Depends(get_current_user)) -> UserIdentity:
    return user


@router.patch("/profile", response_model=UserIdentity)
def update_profile(
    body: UpdateProfileRequest,
    user: UserIdentity = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserIdentity:
    return auth_service.update_profile(user.id, body)


@router.patch("/password", response_model=MessageResponse)
@limiter.limit("5/minute")
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    user: UserIdentity = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    return auth_service.change_password(user.id, body.current_password, body.new_password)


@router.get("/admin/dashboard")
def admin_dashboard(user: UserIdentity = Depends(require_admin)) -> dict:
    return {"message": f"Admin access granted. User ID: {user.id} Email: {user.email}"}


@router.post("/oauth/accept-terms", response_model=MessageResponse)
def accept_oauth_terms(
    body: AcceptTermsRequest,
    user: UserIdentity = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Record terms acceptance for an OAuth account. Existing tokens stay in use."""
    return auth_service.accept_oauth_terms(user.id, body.terms_accepted, body.newsletter_opt_in)


@router.get("/google/login")
def google_login(google: GoogleOAuthClient = Depends(get_google_client)) -> RedirectResponse:
    """Redirect to Google's consent screen."""
    if not google.is_configured:
        raise UnauthorizedError("Google sign-in is not configured")
    state = secrets.token_urlsafe(24)
    response = RedirectResponse(url=google.authorization_url(state), status_code=302)
    set_oauth_state_cookie(response, state)
    return response


@router.get("/google/callback")
def google_callback(
    request: Request,
    code: str = "",
    state: str = "",
    error: str = "",
    google: GoogleOAuthClient = Depends(get_google_client),
    auth_service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    """Finish Google sign-in and hand the session to the frontend.

    Accounts with terms pending land on the accept-terms page instead of the
    normal session callback.
    """
    expected_state = request.cookies.get(OAUTH_STATE_COOKIE, "")
    try:
        if error or not code:
            raise UnauthorizedError("Google sign-in was cancelled")
        if not expected_state or not secrets.compare_digest(expected_state.encode("utf-8"), state.encode("utf-8")):
            raise UnauthorizedError("Invalid OAuth state")
        profile = google.fetch_profile(google.exchange_code(code))
        payload = auth_service.oauth_login(profile)
    except AuthError as exc:
        logger.warning("Google OAuth callback failed: %s", exc.message)
        response = RedirectResponse(url=_frontend_url("/auth/signin", {"error": "oauth_failed"}), status_code=302)
    else:
        fields = payload.model_dump(mode="json", by_alias=True, exclude_unset=True)
        fields["userId"] = fields.pop("id")
        params = {key: _query_value(value) for key, value in fields.items()}
        path = "/auth/accept-terms" if payload.needs_terms_acceptance else "/api/auth/google/callback"
        response = RedirectResponse(url=_frontend_url(path, params), status_code=302)
    clear_oauth_state_cookie(response)
    return response


@router.get("/unsubscribe")
def unsubscribe(token: str = "", auth_service: AuthService = Depends(get_auth_service)) -> RedirectResponse:
    """One-click newsletter unsubscribe from an emailed link."""
    try:
        auth_service.unsubscribe_newsletter(token)
    except AuthError as exc:
        message = StorageError.public_message if isinstance(exc, StorageError) else exc.message
        params = {"success": "false", "error": message}
    else:
        params = {"success": "true"}
    return RedirectResponse(url=_frontend_url("/auth/unsubscribed", params), status_code=302)
