"""Shared fixtures: an in-memory database, a record store and sample activities."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTH_SECRET", "test-secret")

from uuid import uuid4

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from kinderchat.db.store import SQLModelStore
from kinderchat.models import Activity  # noqa: F401  registers all tables


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def store(db_session: Session) -> SQLModelStore:
    return SQLModelStore(db_session)


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def activity_factory():
    """Build activities with permissive defaults; override what a test needs."""

    def make(**overrides) -> Activity:
        fields = {
            "id": uuid4(),
            "name": "Activity",
            "city": "Amsterdam",
            "age_min": 0,
            "age_max": 12,
            "price_min": 0.0,
            "price_max": 0.0,
            "is_free": True,
            "is_indoor": True,
            "is_outdoor": True,
            "average_rating": 4.0,
            "total_reviews": 10,
            "location_lat": 52.3676,
            "location_lng": 4.9041,
        }
        fields.update(overrides)
        return Activity(**fields)

    return make
