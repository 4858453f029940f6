"""Error taxonomy for the authentication core.

Every ``AuthError`` carries the HTTP status it maps to and a stable
``error_code`` so callers can branch without parsing messages.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for lifecycle errors surfaced to the caller."""

    status_code: int = 400
    error_code: str = "bad_request"

    def __init__(self, message: str, *, error_code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code


class BadRequestError(AuthError):
    """Invalid or expired one-time token, failed challenge, missing terms acceptance."""

    status_code = 400
    error_code = "bad_request"


class UnauthorizedError(AuthError):
    """Bad credentials, unverified email, invalid refresh token."""

    status_code = 401
    error_code = "unauthorized"


class ForbiddenError(AuthError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AuthError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AuthError):
    """Duplicate email or username."""

    status_code = 409
    error_code = "conflict"


class StorageError(AuthError):
    """Store failure. The message shown to callers never carries internal detail."""

    status_code = 500
    error_code = "server_error"
    public_message = "Internal server error"


class InputError(ValueError):
    """Raised by the hasher when asked to hash an empty value."""


class TokenError(Exception):
    """Base class for signed-token verification failures."""


class ExpiredTokenError(TokenError):
    pass


class InvalidSignatureError(TokenError):
    pass


class MalformedTokenError(TokenError):
    pass
