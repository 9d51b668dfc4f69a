import os
from collections.abc import Generator

os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["ADMIN_KEY"] = "test-admin-key"
os.environ["BASE_URL"] = "http://testserver"
os.environ["TRANSCRIPT_READ_DELAY_SECONDS"] = "0"
os.environ["SANDBOX_SETTLE_SECONDS"] = "0"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from toron.main import app
from toron.api.v1 import conversations as conversations_api
from toron.db.base import Base
from toron.services.sandbox import get_sandbox_provider
import toron.models  # noqa: F401

from fakes import FakeSandboxProvider


SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(SQLALCHEMY_DATABASE_URL, future=True, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)

fake_provider = FakeSandboxProvider()


def override_get_db() -> Generator:
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def setup_database() -> Generator:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    # Every router shares the get_db defined in the conversations module.
    app.dependency_overrides[conversations_api.get_db] = override_get_db
    app.dependency_overrides[get_sandbox_provider] = lambda: fake_provider

    yield

    Base.metadata.drop_all(bind=engine)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def sandbox() -> FakeSandboxProvider:
    fake_provider.reset()
    return fake_provider


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture()
def session_factory() -> sessionmaker:
    return TestingSessionLocal


@pytest.fixture()
def db() -> Generator:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
