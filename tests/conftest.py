import os
import tempfile

# Point the app at a throwaway database before anything imports it
_DB_DIR = tempfile.mkdtemp(prefix="slot_swapper_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/test.db"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough"

import pytest
from fastapi.testclient import TestClient

from slot_swapper.database import engine, metadata
from slot_swapper.main import app


@pytest.fixture
def client():
    metadata.drop_all(bind=engine)
    with TestClient(app) as test_client:
        yield test_client
    metadata.drop_all(bind=engine)


@pytest.fixture
def signup(client):
    """Registers a user and returns the auth headers for them."""
    def _signup(name: str, email: str | None = None, password: str = "hunter22"):
        email = email or f"{name.lower()}@example.com"
        response = client.post("/api/signup", json={"name": name, "email": email, "password": password})
        assert response.status_code == 201, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _signup


@pytest.fixture
def create_slot(client):
    def _create(headers, title: str, start: str = "2026-11-02T09:00:00", end: str = "2026-11-02T10:00:00", swappable: bool = False):
        response = client.post("/api/events", json={"title": title, "startTime": start, "endTime": end}, headers=headers)
        assert response.status_code == 201, response.text
        slot = response.json()
        if swappable:
            update = client.put(f"/api/events/{slot['id']}/status", json={"status": "SWAPPABLE"}, headers=headers)
            assert update.status_code == 200, update.text
            slot["status"] = "SWAPPABLE"
        return slot

    return _create


@pytest.fixture
def my_slots(client):
    """Returns the caller's slots keyed by id."""
    def _my_slots(headers):
        response = client.get("/api/my-events", headers=headers)
        assert response.status_code == 200
        return {slot["id"]: slot for slot in response.json()}

    return _my_slots


@pytest.fixture
def pending_swap(client, signup, create_slot):
    """Alice offers her slot for Bob's. Returns both users' headers, the two slots and the request id."""
    alice = signup("Alice")
    bob = signup("Bob")
    s1 = create_slot(alice, "Alice standup", "2026-11-02T09:00:00", "2026-11-02T10:00:00", swappable=True)
    s2 = create_slot(bob, "Bob review", "2026-11-03T14:00:00", "2026-11-03T15:00:00", swappable=True)
    response = client.post("/api/swap-request", json={"mySlotId": s1["id"], "theirSlotId": s2["id"]}, headers=alice)
    assert response.status_code == 201, response.text
    return {"alice": alice, "bob": bob, "s1": s1, "s2": s2, "request_id": response.json()["id"]}
