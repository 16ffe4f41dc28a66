from __future__ import annotations

import datetime as dt
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from triplog.database import get_db
from triplog.main import app
from triplog.state import route_price_cache
from triplog import models


@pytest.fixture(scope="session")
def temp_db_path() -> Generator[Path, None, None]:
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "test.db"
        yield path


@pytest.fixture(scope="session")
def engine(temp_db_path: Path):
    url = f"sqlite:///{temp_db_path}"
    engine = create_engine(url, connect_args={"check_same_thread": False}, future=True)
    models.Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionTesting = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    session = SessionTesting()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(autouse=True)
def clear_route_price_cache() -> Generator[None, None, None]:
    # Rolled back ids get reused, so cached prices must not outlive a test
    route_price_cache.clear()
    yield
    route_price_cache.clear()


@pytest.fixture(scope="function")
def client(session: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def register(client: TestClient, email: str) -> dict[str, str]:
    resp = client.post("/auth/register", json={"email": email, "full_name": "Test Driver"})
    assert resp.status_code == 201
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture()
def auth_headers(client: TestClient) -> dict[str, str]:
    return register(client, "driver@example.com")


@pytest.fixture()
def other_headers(client: TestClient) -> dict[str, str]:
    return register(client, "other@example.com")


@pytest.fixture()
def vehicle(client: TestClient, auth_headers: dict[str, str]) -> dict:
    resp = client.post(
        "/vehicles",
        json={"name": "Truck 1", "license_plate": "12가3456", "main_driver": "Kim", "default_unit_price": 50000},
        headers=auth_headers,
    )
    assert resp.status_code == 201
    return resp.json()


@pytest.fixture()
def sample_day() -> dt.date:
    return dt.date(2024, 3, 1)
