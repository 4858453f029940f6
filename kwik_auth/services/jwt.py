"""JWT Token Service."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from kwik_auth.config import Settings, get_settings
from kwik_auth.errors import ExpiredTokenError, InvalidSignatureError, MalformedTokenError

UNSUBSCRIBE_PURPOSE = "newsletter-unsubscribe"


@dataclass(frozen=True)
class SigningContext:
    """Secret material and default lifetime for one class of token."""

    name: str
    secret_key: str
    algorithm: str
    default_ttl: int


class TokenSigner:
    """Issues and verifies signed, time-bounded bearer tokens."""

    def __init__(self, settings: Settings) -> None:
        self.access_context = SigningContext(
            name="access",
            secret_key=settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            default_ttl=settings.access_token_ttl,
        )
        self.refresh_context = SigningContext(
            name="refresh",
            secret_key=settings.REFRESH_JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            default_ttl=settings.refresh_token_ttl,
        )
        # Purpose tokens share the access secret; consumers check the purpose claim.
        self.purpose_context = SigningContext(
            name="purpose",
            secret_key=settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            default_ttl=settings.unsubscribe_token_ttl,
        )

    def issue(self, claims: dict[str, Any], context: SigningContext, ttl: int | None = None) -> str:
        """Sign ``claims`` with ``iat``, ``exp`` and a unique ``jti`` added.

        ``ttl`` is seconds from issuance and defaults to the context's lifetime.
        """
        now = datetime.now(timezone.utc)
        lifetime = context.default_ttl if ttl is None else ttl
        payload = {
            **claims,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=lifetime)).timestamp()),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, context.secret_key, algorithm=context.algorithm)

    def verify(self, token: str, context: SigningContext) -> dict[str, Any]:
        """Return the claims of a valid token, or raise a ``TokenError``."""
        if not token:
            raise MalformedTokenError("Token is empty")
        try:
            jwt.get_unverified_header(token)
        except JWTError as exc:
            raise MalformedTokenError(str(exc)) from exc

        try:
            return jwt.decode(token, context.secret_key, algorithms=[context.algorithm])
        except ExpiredSignatureError as exc:
            raise ExpiredTokenError("Token has expired") from exc
        except JWTError as exc:
            raise InvalidSignatureError(str(exc)) from exc

    def issue_pair(self, subject: str) -> tuple[str, str]:
        """Issue an access token and a refresh token for the same subject."""
        claims = {"sub": subject}
        return self.issue(claims, self.access_context), self.issue(claims, self.refresh_context)


_token_signer: TokenSigner | None = None


def get_token_signer() -> TokenSigner:
    """Get singleton token signer instance."""
    global _token_signer
    if _token_signer is None:
        _token_signer = TokenSigner(get_settings())
    return _token_signer
