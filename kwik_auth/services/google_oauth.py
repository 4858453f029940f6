"""Google OAuth 2.0 authorization-code client."""

import logging
from urllib.parse import urlencode

import httpx

from kwik_auth.config import Settings, get_settings
from kwik_auth.errors import UnauthorizedError
from kwik_auth.services.identity import OAuthProfile

logger = logging.getLogger("kwik_auth")

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


def profile_from_userinfo(userinfo: dict) -> OAuthProfile:
    """Map Google's userinfo response onto an OAuthProfile."""
    email = userinfo.get("email")
    return OAuthProfile(
        provider="google",
        emails=[email] if email else [],
        display_name=userinfo.get("name"),
        given_name=userinfo.get("given_name"),
        family_name=userinfo.get("family_name"),
        avatar_url=userinfo.get("picture"),
    )


class GoogleOAuthClient:
    """Builds the consent URL, exchanges the callback code and fetches the profile."""

    def __init__(self, settings: Settings, http_client: httpx.Client | None = None) -> None:
        self.settings = settings
        self._client = http_client

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.GOOGLE_OAUTH_CLIENT_ID and self.settings.GOOGLE_OAUTH_CLIENT_SECRET)

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.settings.GOOGLE_OAUTH_CLIENT_ID,
            "redirect_uri": self.settings.GOOGLE_OAUTH_CALLBACK_URL,
            "response_type": "code",
            "scope": self.settings.GOOGLE_OAUTH_SCOPE,
            "state": state,
            "prompt": "select_account",
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            if self._client is not None:
                response = self._client.request(method, url, **kwargs)
            else:
                with httpx.Client(timeout=30.0, follow_redirects=False) as client:
                    response = client.request(method, url, **kwargs)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Google OAuth request to %s failed: %s", url, exc)
            raise UnauthorizedError("Failed to authenticate with Google") from exc
        if not isinstance(data, dict):
            raise UnauthorizedError("Failed to authenticate with Google")
        return data

    def exchange_code(self, code: str) -> str:
        """Trade the callback ``code`` for a provider access token."""
        token_data = self._request(
            "POST",
            TOKEN_URL,
            data={
                "client_id": self.settings.GOOGLE_OAUTH_CLIENT_ID,
                "client_secret": self.settings.GOOGLE_OAUTH_CLIENT_SECRET,
                "code": code,
                "redirect_uri": self.settings.GOOGLE_OAUTH_CALLBACK_URL,
                "grant_type": "authorization_code",
            },
            headers={"Accept": "application/json"},
        )
        access_token = token_data.get("access_token")
        if not access_token:
            raise UnauthorizedError("Failed to authenticate with Google")
        return access_token

    def fetch_profile(self, access_token: str) -> OAuthProfile:
        userinfo = self._request("GET", USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"})
        return profile_from_userinfo(userinfo)


_google_client: GoogleOAuthClient | None = None


def get_google_oauth_client() -> GoogleOAuthClient:
    """Get singleton Google OAuth client instance."""
    global _google_client
    if _google_client is None:
        _google_client = GoogleOAuthClient(get_settings())
    return _google_client
