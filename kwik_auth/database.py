"""Database engine and per-request sessions for the credential store."""

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from kwik_auth.config import get_settings


def is_sqlite(database_url: str) -> bool:
    return database_url.startswith("sqlite")


def engine_options(database_url: str, debug: bool = False) -> dict[str, Any]:
    """Engine keyword arguments for a database URL.

    SQLite connections are shared across FastAPI's threadpool. Pooled server
    connections are pinged before each checkout.
    """
    options: dict[str, Any] = {"echo": debug}
    if is_sqlite(database_url):
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_pre_ping"] = True
    return options


settings = get_settings()
engine = create_engine(settings.DATABASE_URL, **engine_options(settings.DATABASE_URL, settings.DEBUG))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


class Base(DeclarativeBase):
    """Declarative base for the account table."""


def get_db() -> Generator[Session, None, None]:
    """Yield a session for one request; the store commits its own writes."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
