import os

# Must be set before app modules create the global engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_TIMEZONE", "UTC")

import random
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.db import models
from app.db.database import Base, create_db_engine, get_db
from app.services.allocation_service import AllocationCoordinator
from app.services.locks import PoolLockRegistry
from app.services.selector import WeightedSelector
from app.utils.time_utils import UTC

# Monday
NOW = datetime(2026, 10, 19, 10, 0, tzinfo=UTC)


class FixedRandom(random.Random):
    """uniform(a, b) always lands at the same fraction of the range"""

    def __init__(self, fraction: float):
        super().__init__(0)
        self.fraction = fraction

    def uniform(self, a, b):
        return a + (b - a) * self.fraction


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{(tmp_path / 'allocation.db').as_posix()}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(level: int = 0, username: str | None = None) -> models.User:
        counter["n"] += 1
        user = models.User(username=username or f"user{counter['n']}", level=level)
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_pool(db):
    def _make(units=(), **kwargs) -> models.Pool:
        params = {
            "name": "Test Wheel",
            "kind": "WHEEL",
            "period_key": "DAILY",
            "per_user_limit": 1,
            "is_active": True,
        }
        params.update(kwargs)
        pool = models.Pool(**params)
        db.add(pool)
        db.flush()
        for position, unit in enumerate(units):
            spec = {"position": position, "consumed": 0, "magnitude": 0, "weight": 1}
            spec.update(unit)
            db.add(models.RewardUnit(pool_id=pool.id, **spec))
        db.commit()
        return pool

    return _make


@pytest.fixture
def coordinator():
    return AllocationCoordinator(
        selector=WeightedSelector(random.Random(7)),
        locks=PoolLockRegistry(timeout=5),
    )


@pytest.fixture
def client(session_factory):
    from app.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
