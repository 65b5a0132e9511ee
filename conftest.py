import os
import tempfile

_tmp = tempfile.mkdtemp(prefix="itinerary-api-tests-")
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GEOCODING_ENABLED"] = "false"
os.environ["UPLOAD_DIR"] = os.path.join(_tmp, "uploads")
os.environ["LOG_DIR"] = os.path.join(_tmp, "logs")
os.environ["LIST_RETRY_DELAY_SECONDS"] = "0"

import pytest
from fastapi.testclient import TestClient

from database import Base, SessionLocal, engine
from main import app
from services.query_cache import query_cache
from services.session_state import sessions


def auth(uid: str, email: str) -> dict:
    return {"Authorization": f"Bearer {uid}:{email}"}


OWNER = auth("owner-1", "owner@example.com")
GUEST = auth("guest-1", "guest@example.com")
STRANGER = auth("stranger-1", "stranger@example.com")


@pytest.fixture(autouse=True)
def fresh_state():
    Base.metadata.create_all(bind=engine)
    query_cache.clear()
    sessions.clear()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def itinerary(client):
    resp = client.post(
        "/itineraries/",
        json={"title": "Japan 2025", "start_date": "2025-12-01", "end_date": "2025-12-20"},
        headers=OWNER,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def tokyo(client, itinerary):
    resp = client.post(
        f"/itineraries/{itinerary['id']}/stops",
        json={"title": "Tokyo", "start_date": "2025-12-01", "end_date": "2025-12-05"},
        headers=OWNER,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()
