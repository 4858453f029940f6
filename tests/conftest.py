"""Pytest configuration and fixtures."""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-access-secret"
os.environ["REFRESH_JWT_SECRET_KEY"] = "test-refresh-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["APP_ENV"] = "test"
os.environ["SMTP_HOST"] = ""
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["API_URL"] = "http://api.test"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from kwik_auth.config import get_settings
from kwik_auth.database import Base, get_db
from kwik_auth.models.account import Account  # noqa: F401
from kwik_auth.services.auth import AuthService
from kwik_auth.services.hasher import SecretHasher
from kwik_auth.services.jwt import TokenSigner
from kwik_auth.storage.accounts import SqlAlchemyCredentialStore
from tests.factories import PASSWORD, RecordingNotifier, StubGoogleClient, StubVerifier, make_signup


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="settings")
def settings_fixture():
    return get_settings()


@pytest.fixture(name="notifier")
def notifier_fixture() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture(name="verifier")
def verifier_fixture() -> StubVerifier:
    return StubVerifier()


@pytest.fixture(name="store")
def store_fixture(db_session: Session) -> SqlAlchemyCredentialStore:
    return SqlAlchemyCredentialStore(db_session)


@pytest.fixture(name="signer")
def signer_fixture(settings) -> TokenSigner:
    return TokenSigner(settings)


@pytest.fixture(name="auth_service")
def auth_service_fixture(store, signer, notifier, verifier, settings) -> AuthService:
    return AuthService(
        store=store,
        hasher=SecretHasher(rounds=4),
        signer=signer,
        notifier=notifier,
        verifier=verifier,
        settings=settings,
    )


@pytest.fixture(name="verified_user")
def verified_user_fixture(auth_service: AuthService, notifier: RecordingNotifier) -> dict:
    """Register and verify a local account; return its credentials."""
    identity = auth_service.register(make_signup())
    auth_service.verify_email(notifier.last_token("verification"))
    return {"id": identity.id, "email": identity.email, "password": PASSWORD, "username": identity.username}


@pytest.fixture(name="google_client")
def google_client_fixture() -> StubGoogleClient:
    return StubGoogleClient()


@pytest.fixture(name="client")
def client_fixture(db_session: Session, notifier, verifier, google_client):
    """Create a test client with overridden collaborators and disabled rate limiting."""
    from kwik_auth.dependencies import get_challenge_verifier, get_google_client, get_notifier
    from kwik_auth.rate_limit import limiter
    from main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_challenge_verifier] = lambda: verifier
    app.dependency_overrides[get_google_client] = lambda: google_client
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()
