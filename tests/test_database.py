"""Tests for engine configuration."""

from sqlalchemy import create_engine, inspect

from kwik_auth.database import Base, engine_options, is_sqlite


def test_sqlite_connections_are_shared_across_threads():
    options = engine_options("sqlite:///./kwik_auth.db")
    assert options["connect_args"] == {"check_same_thread": False}
    assert "pool_pre_ping" not in options
    assert options["echo"] is False


def test_server_databases_ping_pooled_connections():
    options = engine_options("postgresql://kwik:pw@db/kwik", debug=True)
    assert options["pool_pre_ping"] is True
    assert "connect_args" not in options
    assert options["echo"] is True


def test_is_sqlite():
    assert is_sqlite("sqlite://")
    assert not is_sqlite("postgresql://kwik@db/kwik")


def test_metadata_creates_account_table():
    engine = create_engine("sqlite://", **engine_options("sqlite://"))
    Base.metadata.create_all(bind=engine)
    assert "account" in inspect(engine).get_table_names()
