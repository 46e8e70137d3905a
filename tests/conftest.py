"""
Shared pytest fixtures.

Uses a SQLite file database so no Postgres is required for tests. Every test
module writes to its own far-future year so suites sharing the database
never see each other's days.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import diary.models  # noqa: F401
from diary.core.config import settings
from diary.db.base import Base, get_db
from diary.main import app
from diary.services.aggregation import get_breakdown_cache
from diary.services.identity import get_profile
from diary.services.notifications import ChangeHub

SQLITE_URL = "sqlite:///./test_diary.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False, "timeout": 30})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)



def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clear_breakdown_cache():
    get_breakdown_cache().clear()
    yield
    get_breakdown_cache().clear()


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def hub():
    return ChangeHub()


@pytest.fixture()
def master():
    return get_profile(settings.MASTER_EMAIL)


@pytest.fixture()
def partner():
    return get_profile(settings.PARTNER_EMAIL)


@pytest.fixture()
def master_headers():
    return {"X-Api-Token": settings.API_TOKEN, "X-User-Email": settings.MASTER_EMAIL}


@pytest.fixture()
def partner_headers():
    return {"X-Api-Token": settings.API_TOKEN, "X-User-Email": settings.PARTNER_EMAIL}


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="session")
def session_factory():
    return TestingSessionLocal
