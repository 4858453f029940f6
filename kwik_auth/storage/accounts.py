"""Credential store: lookups and updates over Account records.

``CredentialStore`` is the contract the lifecycle manager depends on;
``SqlAlchemyCredentialStore`` is the implementation backed by the request's
database session. Every mutation commits on its own, so each call is atomic
but sequences of calls are not.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from kwik_auth.errors import ConflictError, NotFoundError, StorageError
from kwik_auth.models.account import Account, utcnow
from kwik_auth.services.identity import AccountDraft, normalize_email

logger = logging.getLogger("kwik_auth")

PROFILE_FIELDS = ("first_name", "last_name", "username", "newsletter_opt_in")


class CredentialStore(Protocol):
    """Operations the lifecycle manager requires of account storage."""

    def find_by_email(self, email: str) -> Account | None: ...

    def find_by_username(self, username: str) -> Account | None: ...

    def find_by_id(self, account_id: int) -> Account | None: ...

    def find_by_verification_token(self, token: str) -> Account | None: ...

    def find_by_consumed_verification_token(self, token: str) -> Account | None: ...

    def find_by_password_reset_token(self, token: str) -> Account | None: ...

    def create(self, draft: AccountDraft) -> Account: ...

    def update_hashed_refresh_token(self, account_id: int, digest: str | None) -> Account: ...

    def record_login(self, account_id: int, digest: str) -> Account: ...

    def update_password(self, account_id: int, password_hash: str) -> Account: ...

    def update_verification_token(self, account_id: int, token: str, expires_at: datetime) -> Account: ...

    def mark_email_verified(self, account_id: int, consumed_token: str | None = None) -> Account: ...

    def update_password_reset_token(self, account_id: int, token: str, expires_at: datetime) -> Account: ...

    def update_profile(self, account_id: int, **fields: Any) -> Account: ...

    def update_terms_acceptance(self, account_id: int, accepted: bool, newsletter_opt_in: bool) -> Account: ...

    def update_newsletter_preference(self, email: str, opt_in: bool) -> Account: ...


class SqlAlchemyCredentialStore:
    """CredentialStore over a SQLAlchemy session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---- helpers ----
    def _first(self, action: str, *criteria) -> Account | None:
        try:
            return self.db.query(Account).filter(*criteria).first()
        except SQLAlchemyError as exc:
            logger.exception("Store lookup failed: %s", action)
            raise StorageError(f"Error finding account by {action}") from exc

    def _commit(self, action: str, account: Account) -> Account:
        try:
            self.db.commit()
            self.db.refresh(account)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Store update failed: %s (account %s)", action, account.id)
            raise StorageError(f"Error updating {action}") from exc
        return account

    def _require(self, account_id: int) -> Account:
        account = self.find_by_id(account_id)
        if account is None:
            raise NotFoundError("User not found")
        return account

    # ---- lookups ----
    def find_by_email(self, email: str) -> Account | None:
        return self._first("email", Account.email == normalize_email(email))

    def find_by_username(self, username: str) -> Account | None:
        return self._first("username", Account.username == username)

    def find_by_id(self, account_id: int) -> Account | None:
        try:
            return self.db.get(Account, account_id)
        except SQLAlchemyError as exc:
            logger.exception("Store lookup failed: id %s", account_id)
            raise StorageError("Error finding account by id") from exc

    def find_by_verification_token(self, token: str) -> Account | None:
        return self._first("verification token", Account.verification_token == token)

    def find_by_consumed_verification_token(self, token: str) -> Account | None:
        return self._first("consumed verification token", Account.verified_token == token)

    def find_by_password_reset_token(self, token: str) -> Account | None:
        return self._first("reset token", Account.password_reset_token == token)

    # ---- mutations ----
    def create(self, draft: AccountDraft) -> Account:
        account = Account(**asdict(draft))
        account.email = normalize_email(account.email)
        self.db.add(account)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("User email or username already exists") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Store create failed")
            raise StorageError("Error creating user") from exc
        self.db.refresh(account)
        return account

    def update_hashed_refresh_token(self, account_id: int, digest: str | None) -> Account:
        account = self._require(account_id)
        account.hashed_refresh_token = digest
        return self._commit("refresh token", account)

    def record_login(self, account_id: int, digest: str) -> Account:
        account = self._require(account_id)
        account.hashed_refresh_token = digest
        account.last_login_at = utcnow()
        return self._commit("login", account)

    def update_password(self, account_id: int, password_hash: str) -> Account:
        account = self._require(account_id)
        account.password_hash = password_hash
        account.password_reset_token = None
        account.password_reset_expires_at = None
        return self._commit("password", account)

    def update_verification_token(self, account_id: int, token: str, expires_at: datetime) -> Account:
        account = self._require(account_id)
        account.verification_token = token
        account.verification_token_expires_at = expires_at
        return self._commit("verification token", account)

    def mark_email_verified(self, account_id: int, consumed_token: str | None = None) -> Account:
        account = self._require(account_id)
        account.email_verified = True
        account.verification_token = None
        account.verification_token_expires_at = None
        if consumed_token is not None:
            account.verified_token = consumed_token
        return self._commit("email verification", account)

    def update_password_reset_token(self, account_id: int, token: str, expires_at: datetime) -> Account:
        account = self._require(account_id)
        account.password_reset_token = token
        account.password_reset_expires_at = expires_at
        return self._commit("password reset token", account)

    def update_profile(self, account_id: int, **fields: Any) -> Account:
        account = self._require(account_id)
        for name, value in fields.items():
            if name not in PROFILE_FIELDS:
                raise ValueError(f"Not a profile field: {name}")
            if value is not None:
                setattr(account, name, value)
        try:
            return self._commit("profile", account)
        except StorageError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise ConflictError("Username is already taken") from exc.__cause__
            raise

    def update_terms_acceptance(self, account_id: int, accepted: bool, newsletter_opt_in: bool) -> Account:
        account = self._require(account_id)
        account.terms_accepted = accepted
        account.terms_accepted_at = utcnow() if accepted else None
        account.newsletter_opt_in = newsletter_opt_in
        return self._commit("terms acceptance", account)

    def update_newsletter_preference(self, email: str, opt_in: bool) -> Account:
        account = self.find_by_email(email)
        if account is None:
            raise NotFoundError("User not found")
        account.newsletter_opt_in = opt_in
        return self._commit("newsletter preference", account)
