from collections.abc import Generator
from typing import Any, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from cattlescan.core.config import get_settings


def _enable_sqlite_constraints(dbapi_connection, _connection_record) -> None:  # type: ignore[no-untyped-def]
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()


def build_engine(database_url: str, **kwargs: Any) -> Engine:
    """Engine for ``database_url``; SQLite gets cross-thread access and FK enforcement."""
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True, **kwargs)

    # Scan persistence runs via asyncio.to_thread, off the connection's creating thread.
    connect_args = {"check_same_thread": False, "timeout": 30, **kwargs.pop("connect_args", {})}
    engine = create_engine(database_url, connect_args=connect_args, **kwargs)
    event.listen(engine, "connect", _enable_sqlite_constraints)
    return engine


_database_url = get_settings().database_url
engine: Optional[Engine] = build_engine(_database_url) if _database_url else None
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine) if engine else None


def get_db() -> Generator[Session, None, None]:
    if SessionLocal is None:
        raise RuntimeError("DATABASE_URL is not configured")
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
