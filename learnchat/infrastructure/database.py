"""SQLAlchemy engine and session factory for the shared store."""

import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from learnchat.config import get_settings

settings = get_settings()

Base = declarative_base()


def _ensure_sqlite_dir(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    prefix = "sqlite:///"
    if url.startswith(prefix) and ":memory:" not in url:
        directory = os.path.dirname(url[len(prefix):])
        if directory:
            os.makedirs(directory, exist_ok=True)


def build_engine(url: str) -> Engine:
    """Create an engine; SQLite gets WAL mode so two processes can share the file."""
    _ensure_sqlite_dir(url)
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 15})

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=15000")
        cursor.close()

    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create tables (the schema is a single key/value table, no migrations needed)."""
    # Import the model so it is registered on Base.metadata
    from learnchat.domain.models.partition import Partition  # noqa: F401

    Base.metadata.create_all(bind=engine)
