"""Tests for the outbound collaborators: email, reCAPTCHA and Google OAuth."""

import logging
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from kwik_auth.config import Settings
from kwik_auth.errors import UnauthorizedError
from kwik_auth.services import email as email_module
from kwik_auth.services.captcha import RecaptchaVerifier
from kwik_auth.services.email import EmailNotifier
from kwik_auth.services.google_oauth import TOKEN_URL, USERINFO_URL, GoogleOAuthClient, profile_from_userinfo


def _settings(**overrides) -> Settings:
    settings = Settings()
    for name, value in overrides.items():
        setattr(settings, name, value)
    return settings


class FakeSMTP:
    instances: list["FakeSMTP"] = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.started_tls = False
        self.logged_in = None
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self, context=None):
        self.started_tls = True

    def login(self, user, password):
        self.logged_in = (user, password)

    def sendmail(self, sender, recipients, message):
        self.messages.append((sender, recipients, message))


class TestEmailNotifier:
    def test_unconfigured_smtp_logs_the_message(self, caplog: pytest.LogCaptureFixture):
        notifier = EmailNotifier(_settings(SMTP_HOST="", FRONTEND_URL="http://frontend.test/"))
        caplog.set_level(logging.INFO, logger="kwik_auth")

        notifier.send_verification_email("tester@example.com", "tok123", "tester")

        assert "te***@example.com" in caplog.text
        assert "tester@example.com" not in caplog.text
        assert "http://frontend.test/auth/verify-email?token=tok123" in caplog.text
        assert "24 hours" in caplog.text

    def test_smtp_delivery(self, monkeypatch: pytest.MonkeyPatch):
        FakeSMTP.instances = []
        monkeypatch.setattr(email_module.smtplib, "SMTP", FakeSMTP)
        notifier = EmailNotifier(
            _settings(
                SMTP_HOST="smtp.test",
                SMTP_PORT=2525,
                SMTP_USER="mailer",
                SMTP_PASSWORD="pw",
                SMTP_USE_TLS=True,
                EMAIL_FROM="noreply@example.com",
            )
        )

        notifier.send_password_reset_email("user@example.com", "reset-tok", "")

        server = FakeSMTP.instances[0]
        assert (server.host, server.port) == ("smtp.test", 2525)
        assert server.started_tls is True
        assert server.logged_in == ("mailer", "pw")
        sender, recipients, message = server.messages[0]
        assert sender == "noreply@example.com"
        assert recipients == ["user@example.com"]
        assert "Reset Your Password" in message

    def test_html_escapes_display_name(self):
        notifier = EmailNotifier(_settings())
        html, text = notifier._render("verification", display_name="<b>x</b>", link="http://l", expires_hours=24)
        assert "&lt;b&gt;" in html
        assert "<b>x</b>" in text

    def test_unsubscribe_link_points_at_the_api(self):
        notifier = EmailNotifier(_settings(FRONTEND_URL="http://frontend.test", API_URL="http://api.test/"))
        link = notifier.unsubscribe_link("abc")
        assert link == "http://api.test/api/v1/auth/unsubscribe?token=abc"
        assert not link.startswith("http://frontend.test")


class TestRecaptchaVerifier:
    def test_accepts_successful_siteverify(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(parse_qs(request.content.decode()))
            return httpx.Response(200, json={"success": True})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        verifier = RecaptchaVerifier(_settings(RECAPTCHA_SECRET_KEY="secret"), http_client=client)

        assert verifier.verify("user-token") is True
        assert seen == {"secret": ["secret"], "response": ["user-token"]}

    @pytest.mark.parametrize(
        "response",
        [httpx.Response(200, json={"success": False}), httpx.Response(500), httpx.Response(200, text="nope")],
        ids=["rejected", "server-error", "not-json"],
    )
    def test_rejections_and_failures(self, response: httpx.Response):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: response))
        verifier = RecaptchaVerifier(_settings(RECAPTCHA_SECRET_KEY="secret"), http_client=client)
        assert verifier.verify("user-token") is False

    def test_missing_secret_depends_on_environment(self):
        assert RecaptchaVerifier(_settings(RECAPTCHA_SECRET_KEY="", APP_ENV="development")).verify("x") is True
        assert RecaptchaVerifier(_settings(RECAPTCHA_SECRET_KEY="", APP_ENV="production")).verify("x") is False

    def test_empty_token_is_rejected(self):
        assert RecaptchaVerifier(_settings(RECAPTCHA_SECRET_KEY="secret")).verify("") is False


class TestGoogleOAuthClient:
    def _client(self, handler) -> GoogleOAuthClient:
        settings = _settings(GOOGLE_OAUTH_CLIENT_ID="cid", GOOGLE_OAUTH_CLIENT_SECRET="csecret")
        return GoogleOAuthClient(settings, http_client=httpx.Client(transport=httpx.MockTransport(handler)))

    def test_authorization_url_carries_state(self):
        client = self._client(lambda request: httpx.Response(404))
        query = parse_qs(urlparse(client.authorization_url("st4te")).query)
        assert client.is_configured is True
        assert query["state"] == ["st4te"]
        assert query["client_id"] == ["cid"]
        assert query["response_type"] == ["code"]

    def test_code_exchange_and_profile(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == TOKEN_URL:
                assert parse_qs(request.content.decode())["code"] == ["the-code"]
                return httpx.Response(200, json={"access_token": "g-token"})
            assert str(request.url) == USERINFO_URL
            assert request.headers["Authorization"] == "Bearer g-token"
            return httpx.Response(
                200,
                json={
                    "email": "g@example.com",
                    "name": "G User",
                    "given_name": "G",
                    "family_name": "User",
                    "picture": "https://img.example.com/g.png",
                },
            )

        client = self._client(handler)
        profile = client.fetch_profile(client.exchange_code("the-code"))

        assert profile.emails == ["g@example.com"]
        assert profile.display_name == "G User"
        assert profile.avatar_url == "https://img.example.com/g.png"

    def test_failed_exchange_is_unauthorized(self):
        client = self._client(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))
        with pytest.raises(UnauthorizedError):
            client.exchange_code("stale")

    def test_token_response_without_access_token(self):
        client = self._client(lambda request: httpx.Response(200, json={"token_type": "Bearer"}))
        with pytest.raises(UnauthorizedError):
            client.exchange_code("the-code")

    def test_profile_without_email(self):
        assert profile_from_userinfo({"name": "No Email"}).emails == []
