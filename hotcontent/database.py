# hotcontent/database.py
"""
Engine and session factory.

Built lazily from settings so importing models never requires a
configured datastore. A missing DATABASE_URL surfaces as
ConfigurationError at the first session request.
"""

from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from hotcontent.config import get_settings
from hotcontent.errors import ConfigurationError

Base = declarative_base()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Create the SQLAlchemy engine from DATABASE_URL."""
    database_url = get_settings().DATABASE_URL
    if not database_url:
        raise ConfigurationError("DATABASE_URL environment variable is not set")

    return create_engine(
        database_url,
        future=True,
        echo=False,
        pool_pre_ping=True,
    )


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=get_engine(),
        future=True,
    )


def SessionLocal() -> Session:
    """Open a new session bound to the configured engine."""
    return get_session_factory()()


def init_db() -> None:
    """Create missing tables for a local database. Deployed schemas come from migrations/."""
    from hotcontent import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


def get_db():
    """Request-scoped session for route handlers."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope():
    """Session for CLI runs. Callers commit explicitly."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
