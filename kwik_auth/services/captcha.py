"""reCAPTCHA challenge verification."""

import logging

import httpx

from kwik_auth.config import Settings, get_settings

logger = logging.getLogger("kwik_auth")


class RecaptchaVerifier:
    """Checks an anti-automation challenge token with Google's siteverify API."""

    def __init__(self, settings: Settings, http_client: httpx.Client | None = None) -> None:
        self.settings = settings
        self._client = http_client

    def verify(self, challenge_token: str) -> bool:
        if not self.settings.RECAPTCHA_SECRET_KEY:
            if self.settings.APP_ENV == "development":
                logger.warning("RECAPTCHA_SECRET_KEY not set; accepting challenge in development mode")
                return True
            logger.error("RECAPTCHA_SECRET_KEY not set; rejecting challenge")
            return False
        if not challenge_token:
            return False

        data = {"secret": self.settings.RECAPTCHA_SECRET_KEY, "response": challenge_token}
        try:
            if self._client is not None:
                response = self._client.post(self.settings.RECAPTCHA_VERIFY_URL, data=data)
            else:
                with httpx.Client(timeout=10.0) as client:
                    response = client.post(self.settings.RECAPTCHA_VERIFY_URL, data=data)
            response.raise_for_status()
            result = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("reCAPTCHA verification request failed: %s", exc)
            return False

        if not result.get("success"):
            logger.info("reCAPTCHA rejected: %s", result.get("error-codes"))
            return False
        return True


_recaptcha_verifier: RecaptchaVerifier | None = None


def get_recaptcha_verifier() -> RecaptchaVerifier:
    """Get singleton challenge verifier instance."""
    global _recaptcha_verifier
    if _recaptcha_verifier is None:
        _recaptcha_verifier = RecaptchaVerifier(get_settings())
    return _recaptcha_verifier
