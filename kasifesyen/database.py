"""SQLAlchemy engine, session factory and declarative base."""

from collections.abc import Generator
from typing import Any

from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from kasifesyen.config import get_settings

settings = get_settings()


def _engine_options(database_url: str) -> dict[str, Any]:
    """Pool settings for PostgreSQL; SQLite (local development) needs a shared connection."""
    if make_url(database_url).get_backend_name() == "sqlite":
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


engine = create_engine(settings.database_url, **_engine_options(settings.database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base: Any = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def get_db() -> Generator[Session, None, None]:
    """Yield a request-scoped session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
