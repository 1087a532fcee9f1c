"""Database engine, session factory, and declarative base."""
from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from eventpulse.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_engine(url: str):
    """Create an engine; SQLite gets WAL mode so concurrent batch writes don't collide."""
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    # Store calls run in worker threads, so connections cross threads
    engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
