"""Pydantic schemas for authentication endpoints.

Wire names are camelCase (``firstName``, ``accessToken``); Python code uses
snake_case attribute names.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from kwik_auth.models.account import Role


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignupRequest(CamelModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)
    username: str = Field(min_length=1)
    first_name: str = Field(min_length=1)
    last_name: str | None = None
    avatar_url: str | None = None
    terms_accepted: bool = False
    newsletter_opt_in: bool = False
    recaptcha_token: str = ""


class SigninRequest(CamelModel):
    email: str
    password: str


class EmailRequest(CamelModel):
    email: str


class ResetPasswordRequest(CamelModel):
    token: str
    password: str = Field(min_length=1)


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str = Field(min_length=1)


class UpdateProfileRequest(CamelModel):
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    newsletter_opt_in: bool | None = None


class AcceptTermsRequest(CamelModel):
    terms_accepted: bool
    newsletter_opt_in: bool = False


class UserIdentity(CamelModel):
    """Canonical user shape returned by every flow."""

    id: int | None
    email: str
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role: Role = Role.USER
    avatar: str | None = None
    email_verified: bool = False
    newsletter_opt_in: bool = False


class SessionPayload(UserIdentity):
    access_token: str
    refresh_token: str
    needs_terms_acceptance: bool | None = None


class MessageResponse(CamelModel):
    message: str
