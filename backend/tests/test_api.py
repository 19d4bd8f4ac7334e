import uuid

import pytest
from fastapi.testclient import TestClient

from dependencies import get_batch_service, get_profile_service
from exceptions import ConflictError
from main import app
from services.batch_service import BatchService
from services.interfaces import IProfileStore
from services.profile_service import ProfileService
from services.worker_pool import WorkerPool


class ConflictingStore(IProfileStore):
    """Store whose every write loses the race"""

    def get(self, user_id):
        return None

    def put(self, aggregate, expected_version=None):
        raise ConflictError(aggregate.user_id, expected_version or 0)

    def set_field(self, user_id, field, value, updated_at=None, expected_version=None):
        raise ConflictError(user_id, expected_version or 0)

    def delete(self, user_id):
        return False


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def user_id():
    return f"user-{uuid.uuid4().hex[:8]}"


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["worker_pool"]["running"] is True


def test_get_unknown_user_returns_empty_sections(client, user_id):
    response = client.get(f"/manage/{user_id}")

    assert response.status_code == 200
    body = response.json()
    assert body["user_id"] == user_id
    assert body["vehicles"] == {}
    assert body["favoriteSpots"] == {}
    assert body["history"] == {}
    assert body["activeStatus"] == {}


def test_add_update_delete_vehicle(client, user_id):
    created = client.post(f"/manage/{user_id}/vehicle", json={"vehicle_id": "v1", "nickname": "Car"})
    assert created.status_code == 201
    assert created.json()["created_at"].endswith("Z")

    updated = client.put(f"/manage/{user_id}/vehicle/v1", json={"vehicle_id": "v1", "nickname": "Car2"})
    assert updated.status_code == 200
    assert updated.json()["nickname"] == "Car2"

    profile = client.get(f"/manage/{user_id}").json()
    assert profile["vehicles"]["v1"]["nickname"] == "Car2"
    assert profile["created_at"] is not None

    assert client.delete(f"/manage/{user_id}/vehicle/v1").status_code == 204
    assert client.delete(f"/manage/{user_id}/vehicle/v1").status_code == 404


def test_add_to_each_section(client, user_id):
    for segment, item in [
        ("favoriteSpot", {"spot_id": "s1"}),
        ("history", {"history_id": "h1"}),
        ("activeStatus", {"active_id": "a1"}),
    ]:
        assert client.post(f"/manage/{user_id}/{segment}", json=item).status_code == 201

    profile = client.get(f"/manage/{user_id}").json()
    assert list(profile["favoriteSpots"]) == ["s1"]
    assert list(profile["history"]) == ["h1"]
    assert list(profile["activeStatus"]) == ["a1"]


def test_missing_item_id_is_bad_request(client, user_id):
    response = client.post(f"/manage/{user_id}/vehicle", json={"nickname": "no id"})

    assert response.status_code == 400
    assert "vehicle_id" in response.json()["detail"]


def test_mismatched_update_is_bad_request(client, user_id):
    client.post(f"/manage/{user_id}/history", json={"history_id": "h1"})

    response = client.put(f"/manage/{user_id}/history/h1", json={"history_id": "h2"})

    assert response.status_code == 400


def test_update_unknown_item_is_not_found(client, user_id):
    client.post(f"/manage/{user_id}/vehicle", json={"vehicle_id": "v1"})

    response = client.put(f"/manage/{user_id}/vehicle/v9", json={"vehicle_id": "v9"})

    assert response.status_code == 404


def test_unknown_section_is_not_found(client, user_id):
    response = client.post(f"/manage/{user_id}/garage", json={"garage_id": "g1"})

    assert response.status_code == 404


def test_conflict_maps_to_409(client, user_id):
    app.dependency_overrides[get_profile_service] = lambda: ProfileService(ConflictingStore())
    try:
        response = client.post(f"/manage/{user_id}/vehicle", json={"vehicle_id": "v1"})
    finally:
        app.dependency_overrides.pop(get_profile_service, None)

    assert response.status_code == 409


def test_delete_profile(client, user_id):
    client.post(f"/manage/{user_id}/vehicle", json={"vehicle_id": "v1"})

    assert client.delete(f"/manage/{user_id}").json() == {"user_id": user_id, "deleted": True}
    assert client.delete(f"/manage/{user_id}").json() == {"user_id": user_id, "deleted": False}


def test_batch_add_vehicles(client, user_id):
    other = f"{user_id}-b"

    response = client.post("/manage/async/batch/vehicles", json={
        user_id: [{"vehicle_id": "vA"}, {"nickname": "no id"}],
        other: [{"vehicle_id": "vC"}],
    })

    assert response.status_code == 200
    assert response.json() == {user_id: ["vA"], other: ["vC"]}


def test_batch_add_rejects_oversized_request(client, user_id):
    vehicles = [{"vehicle_id": f"v{i}"} for i in range(101)]

    response = client.post("/manage/async/batch/vehicles", json={user_id: vehicles})

    assert response.status_code == 400


def test_batch_get_users(client, user_id):
    client.post(f"/manage/{user_id}/vehicle", json={"vehicle_id": "v1"})

    response = client.post("/manage/async/batch/users", json=[user_id, "ghost-user"])

    assert response.status_code == 200
    body = response.json()
    assert list(body) == [user_id]
    assert list(body[user_id]["vehicles"]) == ["v1"]


def test_batch_update_vehicles(client, user_id):
    client.post(f"/manage/{user_id}/vehicle", json={"vehicle_id": "v1", "nickname": "Car"})

    response = client.put(f"/manage/async/{user_id}/batch/vehicles", json={
        "v1": {"vehicle_id": "v1", "nickname": "Car2"},
        "v2": {"vehicle_id": "v2"},
    })

    assert response.status_code == 200
    assert response.json() == ["v1"]


def test_report(client, user_id):
    client.post(f"/manage/{user_id}/vehicle", json={"vehicle_id": "v1"})
    client.post(f"/manage/{user_id}/history", json={"history_id": "h1"})
    ghost = f"{user_id}-ghost"

    response = client.post("/manage/async/report", json=[user_id, ghost])

    assert response.status_code == 200
    report = response.json()
    assert report["total_users"] == 2
    assert report["successful_users"] == 1
    assert report["total_vehicles"] == 1
    assert report["total_history"] == 1
    entries = {entry["user_id"]: entry for entry in report["users"]}
    assert entries[user_id] == {
        "user_id": user_id, "vehicles": 1, "favoriteSpots": 0, "history": 1, "activeStatus": 0,
    }
    assert entries[ghost]["error"] == "User not found"


def test_stopped_pool_maps_to_503(client):
    app.dependency_overrides[get_batch_service] = lambda: BatchService(WorkerPool())
    try:
        response = client.post("/manage/async/report", json=["u1"])
    finally:
        app.dependency_overrides.pop(get_batch_service, None)

    assert response.status_code == 503
