"""Database engine factory and session dependency."""

import pytest
from sqlalchemy.pool import StaticPool

from cattlescan.core import dependencies
from cattlescan.core.dependencies import build_engine, get_db


def test_sqlite_engine_enforces_foreign_keys():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    try:
        with engine.connect() as conn:
            assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1
    finally:
        engine.dispose()


def test_sqlite_connect_args_are_merged():
    engine = build_engine("sqlite://", poolclass=StaticPool, connect_args={"timeout": 5})
    try:
        with engine.connect() as conn:
            assert conn.exec_driver_sql("SELECT 1").scalar() == 1
    finally:
        engine.dispose()


def test_get_db_requires_database_url(monkeypatch):
    monkeypatch.setattr(dependencies, "SessionLocal", None)
    with pytest.raises(RuntimeError, match="DATABASE_URL is not configured"):
        next(get_db())
