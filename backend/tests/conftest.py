"""Pytest fixtures: in-memory SQLite, fixed clock, one test user."""
import logging
import os
import uuid as uuid_lib
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# keep SQLAlchemy quiet in test output
logging.getLogger('sqlalchemy').setLevel(logging.ERROR)
logging.getLogger('sqlalchemy.engine').setLevel(logging.ERROR)

os.environ["DATABASE_URL"] = "sqlite://"

from examprep.api.dependencies import get_now
from examprep.db.session import get_db, init_db
from examprep.main import app
from examprep.repositories import InMemoryCardStore, SqlAlchemyCardStore

NOW = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine):
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    db = TestingSession()
    yield db
    db.close()


@pytest.fixture(scope="function", params=["memory", "sqlalchemy"])
def store(request, db):
    if request.param == "memory":
        return InMemoryCardStore()
    return SqlAlchemyCardStore(db)


@pytest.fixture(scope="function")
def clock():
    """Mutable holder for the instant the API sees as now."""
    return {"now": NOW}


@pytest.fixture(scope="function")
def client(db, clock) -> TestClient:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: clock["now"]
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def user_id():
    return uuid_lib.uuid4()


@pytest.fixture(scope="function")
def exam_id():
    return uuid_lib.uuid4()


@pytest.fixture(scope="function")
def headers(user_id):
    return {"X-User-Id": str(user_id)}
