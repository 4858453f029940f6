"""Account model."""

import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String

from kwik_auth.database import Base


def utcnow() -> datetime:
    """Naive UTC now, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Role(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class Account(Base):
    """Durable identity record shared by password and OAuth sign-ins."""

    __tablename__ = "account"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(256), unique=True, nullable=False, index=True)
    username = Column(String(64), unique=True, nullable=True, index=True)
    first_name = Column(String(128), nullable=True)
    last_name = Column(String(128), nullable=True)
    password_hash = Column(String(256), nullable=False)
    role = Column(Enum(Role), nullable=False, default=Role.USER)
    avatar = Column(String(1024), nullable=True)

    email_verified = Column(Boolean, nullable=False, default=False)
    verification_token = Column(String(256), nullable=True, index=True)
    verification_token_expires_at = Column(DateTime, nullable=True)
    verified_token = Column(String(256), nullable=True, index=True)

    password_reset_token = Column(String(256), nullable=True, index=True)
    password_reset_expires_at = Column(DateTime, nullable=True)

    hashed_refresh_token = Column(String(256), nullable=True)

    terms_accepted = Column(Boolean, nullable=False, default=False)
    terms_accepted_at = Column(DateTime, nullable=True)
    newsletter_opt_in = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_login_at = Column(DateTime, nullable=True)
