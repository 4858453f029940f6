"""Transactional email delivery for verification and password reset."""

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from urllib.parse import urlencode

from jinja2 import DictLoader, Environment, select_autoescape

from kwik_auth.config import Settings, get_settings

logger = logging.getLogger("kwik_auth")

TEMPLATES = {
    "verification.html": """\
<p>Hi {{ display_name }},</p>
<p>Thanks for signing up. Please confirm your email address:</p>
<p><a href="{{ link }}">Verify my email</a></p>
<p>This link expires in {{ expires_hours }} hours.</p>
""",
    "verification.txt": """\
Hi {{ display_name }},

Thanks for signing up. Please confirm your email address:
{{ link }}

This link expires in {{ expires_hours }} hours.
""",
    "password-reset.html": """\
<p>Hi {{ display_name }},</p>
<p>We received a request to reset your password.</p>
<p><a href="{{ link }}">Choose a new password</a></p>
<p>This link expires in {{ expires_hours }} hour(s). If you did not ask for this, ignore this email.</p>
""",
    "password-reset.txt": """\
Hi {{ display_name }},

We received a request to reset your password:
{{ link }}

This link expires in {{ expires_hours }} hour(s). If you did not ask for this, ignore this email.
""",
}


class EmailNotifier:
    """Sends verification and reset emails over SMTP.

    Without an SMTP host (local development) the message is logged instead.
    Delivery failures raise; callers decide whether that matters.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.templates = Environment(loader=DictLoader(TEMPLATES), autoescape=select_autoescape(["html"]))

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.SMTP_HOST and (self.settings.EMAIL_FROM or self.settings.SMTP_USER))

    @staticmethod
    def _redact_email(email: str) -> str:
        if "@" not in email:
            return "redacted"
        local, domain = email.split("@", 1)
        return f"{local[:2]}***@{domain}"

    @staticmethod
    def _link(base_url: str, path: str, **params: str) -> str:
        return f"{base_url.rstrip('/')}{path}?{urlencode(params)}"

    def _frontend_link(self, path: str, **params: str) -> str:
        return self._link(self.settings.FRONTEND_URL, path, **params)

    def unsubscribe_link(self, token: str) -> str:
        """Link for the one-click newsletter unsubscribe endpoint, served by this API."""
        return self._link(self.settings.API_URL, "/api/v1/auth/unsubscribe", token=token)

    def _render(self, name: str, **context) -> tuple[str, str]:
        html = self.templates.get_template(f"{name}.html").render(**context)
        text = self.templates.get_template(f"{name}.txt").render(**context)
        return html, text

    def _send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        if not self.is_configured:
            logger.info("EMAIL (not sent, SMTP not configured) to=%s subject=%s\n%s",
                        self._redact_email(to_email), subject, text_body)
            return

        sender = self.settings.EMAIL_FROM or self.settings.SMTP_USER
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.settings.EMAIL_FROM_NAME} <{sender}>"
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        with smtplib.SMTP(self.settings.SMTP_HOST, self.settings.SMTP_PORT, timeout=30) as server:
            if self.settings.SMTP_USE_TLS:
                server.starttls(context=ssl.create_default_context())
            if self.settings.SMTP_USER and self.settings.SMTP_PASSWORD:
                server.login(self.settings.SMTP_USER, self.settings.SMTP_PASSWORD)
            server.sendmail(sender, [to_email], msg.as_string())
        logger.info("Email sent to=%s subject=%s", self._redact_email(to_email), subject)

    def send_verification_email(self, email: str, token: str, display_name: str) -> None:
        html, text = self._render(
            "verification",
            display_name=display_name or "there",
            link=self._frontend_link("/auth/verify-email", token=token),
            expires_hours=self.settings.VERIFICATION_TOKEN_EXPIRE_HOURS,
        )
        self._send(email, "Verify your KwikDeals account", html, text)

    def send_password_reset_email(self, email: str, token: str, display_name: str) -> None:
        html, text = self._render(
            "password-reset",
            display_name=display_name or "there",
            link=self._frontend_link("/auth/reset-password", token=token),
            expires_hours=self.settings.PASSWORD_RESET_TOKEN_EXPIRE_HOURS,
        )
        self._send(email, "Reset Your Password - KwikDeals", html, text)


_email_notifier: EmailNotifier | None = None


def get_email_notifier() -> EmailNotifier:
    """Get singleton email notifier instance."""
    global _email_notifier
    if _email_notifier is None:
        _email_notifier = EmailNotifier(get_settings())
    return _email_notifier
