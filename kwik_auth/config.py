"""Configuration settings for Kwik Auth."""

import os
import secrets
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./kwik_auth.db")

    # Access tokens (also signs purpose tokens such as newsletter-unsubscribe)
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", secrets.token_urlsafe(32))
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

    # Refresh tokens
    REFRESH_JWT_SECRET_KEY: str = os.getenv("REFRESH_JWT_SECRET_KEY", secrets.token_urlsafe(32))
    REFRESH_TOKEN_EXPIRE_DAYS: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))

    # One-time tokens
    UNSUBSCRIBE_TOKEN_EXPIRE_DAYS: int = int(os.getenv("UNSUBSCRIBE_TOKEN_EXPIRE_DAYS", "30"))
    VERIFICATION_TOKEN_EXPIRE_HOURS: int = int(os.getenv("VERIFICATION_TOKEN_EXPIRE_HOURS", "24"))
    PASSWORD_RESET_TOKEN_EXPIRE_HOURS: int = int(os.getenv("PASSWORD_RESET_TOKEN_EXPIRE_HOURS", "1"))

    # Hashing
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Public base URLs
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
    API_URL: str = os.getenv("API_URL", "http://localhost:8000")

    # reCAPTCHA
    RECAPTCHA_SECRET_KEY: str = os.getenv("RECAPTCHA_SECRET_KEY", "")
    RECAPTCHA_VERIFY_URL: str = os.getenv(
        "RECAPTCHA_VERIFY_URL", "https://www.google.com/recaptcha/api/siteverify"
    )

    # Google OAuth
    GOOGLE_OAUTH_CLIENT_ID: str = os.getenv("GOOGLE_OAUTH_CLIENT_ID", "")
    GOOGLE_OAUTH_CLIENT_SECRET: str = os.getenv("GOOGLE_OAUTH_CLIENT_SECRET", "")
    GOOGLE_OAUTH_CALLBACK_URL: str = os.getenv(
        "GOOGLE_OAUTH_CALLBACK_URL", "http://localhost:8000/api/v1/auth/google/callback"
    )
    GOOGLE_OAUTH_SCOPE: str = os.getenv("GOOGLE_OAUTH_SCOPE", "openid email profile")

    # Email
    SMTP_HOST: str = os.getenv("SMTP_HOST", "")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USER: str = os.getenv("SMTP_USER", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    SMTP_USE_TLS: bool = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "")
    EMAIL_FROM_NAME: str = os.getenv("EMAIL_FROM_NAME", "KwikDeals")

    # Application
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    @property
    def access_token_ttl(self) -> int:
        return self.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    @property
    def refresh_token_ttl(self) -> int:
        return self.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60

    @property
    def unsubscribe_token_ttl(self) -> int:
        return self.UNSUBSCRIBE_TOKEN_EXPIRE_DAYS * 24 * 60 * 60

    def validate(self) -> list[str]:
        """Validate settings and return list of warnings."""
        errors = []
        if "JWT_SECRET_KEY" not in os.environ:
            errors.append("JWT_SECRET_KEY is not set - using auto-generated key (not persistent across restarts)")
        if "REFRESH_JWT_SECRET_KEY" not in os.environ:
            errors.append(
                "REFRESH_JWT_SECRET_KEY is not set - using auto-generated key (not persistent across restarts)"
            )
        if self.JWT_SECRET_KEY == self.REFRESH_JWT_SECRET_KEY:
            errors.append("JWT_SECRET_KEY and REFRESH_JWT_SECRET_KEY must differ")
        if not self.RECAPTCHA_SECRET_KEY:
            errors.append("RECAPTCHA_SECRET_KEY is not set - challenge verification only passes in development")
        if not self.SMTP_HOST:
            errors.append("SMTP_HOST is not set - emails will be logged instead of sent")
        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
