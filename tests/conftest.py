# tests/conftest.py
"""
Pytest configuration and fixtures.
"""

import os
from datetime import datetime

import pytest

# Set test environment
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from hotcontent import models  # noqa: E402
from hotcontent.database import Base  # noqa: E402
from hotcontent.services.connectors.base import ImageSource, RawEntityRecord, SocialHandle  # noqa: E402


@pytest.fixture
def db_session():
    """In-memory SQLite session with every table created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_record():
    """Factory for raw connector records."""

    def _make(source="wikidata", name="Test Actress", **kwargs):
        return RawEntityRecord(source=source, name=name, **kwargs)

    return _make


@pytest.fixture
def instagram_handle():
    return SocialHandle(platform="instagram", handle="test.actress", confidence=95, verified=True)


@pytest.fixture
def tmdb_image():
    return ImageSource(
        platform="tmdb",
        url="https://image.tmdb.org/t/p/original/abc.jpg",
        image_type="profile",
        license_type="api-provided",
        confidence=85,
        caption="Test Actress photoshoot",
    )


@pytest.fixture
def stored_celebrity(db_session):
    """One active celebrity with a verified Instagram profile."""
    celebrity = models.Celebrity(
        merge_key="test actress",
        name="Test Actress",
        entity_type="actress",
        popularity_score=60.0,
        tmdb_popularity=40.0,
        discovery_source="wikidata",
        sources=["wikidata"],
        is_active=True,
        discovered_at=datetime.utcnow(),
        last_seen_at=datetime.utcnow(),
    )
    db_session.add(celebrity)
    db_session.flush()
    db_session.add(
        models.CelebritySocialProfile(
            celebrity_id=celebrity.id,
            platform="instagram",
            handle="test.actress",
            profile_url="https://www.instagram.com/test.actress/",
            confidence_score=95,
            verified=True,
            source="curated",
        )
    )
    db_session.commit()
    return celebrity
