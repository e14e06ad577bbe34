import pytest
from starlette.testclient import TestClient

import odbfinder.api.routes as routes
from odbfinder.access.permissions import ConfigPermissionTables
from odbfinder.access.resolver import AccessResolver, SupervisorChainMembership
from odbfinder.api.app import app
from odbfinder.config.settings import get_settings
from odbfinder.store.json_store import JsonFileRecordStore

ADMIN = {"X-User-Id": "1", "X-User-Role": "admin", "X-User-Name": "Admin"}
SUPERVISOR = {"X-User-Id": "3", "X-User-Role": "supervisor", "X-User-Name": "Samir"}
DELEGATE = {"X-User-Id": "42", "X-User-Role": "delegate", "X-User-Name": "Nour"}
OTHER_DELEGATE = {"X-User-Id": "7", "X-User-Role": "delegate", "X-User-Name": "Hany"}
USER = {"X-User-Id": "9", "X-User-Role": "user", "X-User-Name": "Viewer"}

NEW_RECORD = {"ODB_ID": "FAY-1", "CITYNAME": "Faiyum", "LATITUDE": 29.3084, "LONGITUDE": 30.8428}


@pytest.fixture()
def client(monkeypatch, tmp_path):
    # Bundled seed catalog in a throwaway file; delegate 42 reports to supervisor 3.
    store = JsonFileRecordStore(tmp_path / "locations.json", timezone="Africa/Cairo")
    resolver = AccessResolver(ConfigPermissionTables(get_settings()), SupervisorChainMembership({42: 3}))
    monkeypatch.setattr(routes, "_store", lambda: store)
    monkeypatch.setattr(routes, "_resolver", lambda: resolver)
    with TestClient(app) as c:
        yield c


def test_list_locations(client):
    resp = client.get("/api/locations", headers=USER)
    assert resp.status_code == 200
    data = resp.json()
    assert data["count"] == 12
    assert data["locations"][0]["odb_id"] == "101"
    assert "cache" in data["meta"]


def test_missing_user_headers_is_rejected(client):
    assert client.get("/api/locations").status_code == 422
    resp = client.get("/api/locations", headers={**USER, "X-User-Role": "root"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "INVALID_USER"


def test_nearby_with_origin(client):
    resp = client.get("/api/locations/nearby", params={"lat": 30.0444, "lon": 31.2357, "max_results": 3}, headers=USER)
    assert resp.status_code == 200
    data = resp.json()
    assert data["distances_valid"] is True
    assert [i["odb_id"] for i in data["items"]] == ["101", "GZA-01", "TNT-09"]
    assert data["items"][0]["distance_km"] == 0.0
    assert data["meta"]["access"]["1"]["edit"] == {"allowed": False, "reason": "NO_PERMISSION"}


def test_nearby_without_origin_falls_back(client):
    data = client.get("/api/locations/nearby", headers=USER).json()
    assert data["distances_valid"] is False
    assert data["origin_failure"] == "position_unavailable"
    assert [i["id"] for i in data["items"]] == list(range(1, 11))
    assert all(i["distance_km"] is None for i in data["items"])


def test_nearby_rejects_invalid_bounds(client):
    resp = client.get("/api/locations/nearby", params={"lat": 30.0, "lon": 31.0, "max_results": 0}, headers=USER)
    assert resp.status_code == 400
    resp = client.get("/api/locations/nearby", params={"lat": 95.0, "lon": 31.0}, headers=USER)
    assert resp.status_code == 400


def test_area_filter(client):
    body = {"corner_a": {"lat": 31, "lon": 30}, "corner_b": {"lat": 29, "lon": 32}}
    data = client.post("/api/locations/area", json=body, headers=USER).json()
    assert data["mode"] == "AREA"
    assert data["distances_valid"] is False
    assert [i["id"] for i in data["items"]] == [1, 2, 9]
    assert (data["meta"]["north"], data["meta"]["west"]) == (31, 30)


def test_create_edit_lock_flow(client):
    created = client.post("/api/locations", json=NEW_RECORD, headers=DELEGATE)
    assert created.status_code == 200
    rec = created.json()
    assert (rec["id"], rec["owner_id"], rec["owner_name"], rec["is_locked"]) == (13, 42, "Nour", False)

    # Another delegate cannot touch it; the owner and the owner's supervisor can.
    edit = {**rec, "notes": "north gate"}
    resp = client.post("/api/locations", json=edit, headers=OTHER_DELEGATE)
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "NO_PERMISSION"
    assert client.post("/api/locations", json=edit, headers=DELEGATE).status_code == 200
    assert client.post("/api/locations", json=edit, headers=SUPERVISOR).status_code == 200

    assert client.post("/api/locations/13/lock", json={"locked": True}, headers=DELEGATE).status_code == 403
    locked = client.post("/api/locations/13/lock", json={"locked": True}, headers=SUPERVISOR)
    assert locked.json()["is_locked"] is True

    resp = client.post("/api/locations", json=edit, headers=OTHER_DELEGATE)
    assert resp.json()["detail"]["code"] == "LOCKED_NO_PERM"

    access = client.get("/api/access/13", params={"action": "edit"}, headers=DELEGATE).json()
    assert (access["allowed"], access["is_locked"], access["can_toggle_lock"]) == (True, True, False)


def test_conflicts_and_missing_records(client):
    dup = {**NEW_RECORD, "ODB_ID": "101"}
    assert client.post("/api/locations", json=dup, headers=ADMIN).status_code == 409

    rename = {"id": 1, "ODB_ID": "101-X", "CITYNAME": "Cairo", "LATITUDE": 30.0444, "LONGITUDE": 31.2357}
    assert client.post("/api/locations", json=rename, headers=ADMIN).status_code == 409

    assert client.delete("/api/locations/404", headers=ADMIN).status_code == 404
    assert client.get("/api/access/404", headers=ADMIN).status_code == 404


def test_user_role_cannot_create_or_delete(client):
    assert client.post("/api/locations", json=NEW_RECORD, headers=USER).status_code == 403
    assert client.delete("/api/locations/1", headers=USER).status_code == 403
    assert client.delete("/api/locations/1", headers=ADMIN).json() == {"deleted": 1}


def test_import_search_activity_and_logs(client):
    rows = [NEW_RECORD, {**NEW_RECORD, "ODB_ID": "FAY-2"}]
    imported = client.post("/api/locations/import", json=rows, headers=DELEGATE).json()
    assert imported == {"count": 2, "ids": [13, 14]}

    found = client.get("/api/locations/search", params={"q": "fay"}, headers=USER).json()
    assert [r["odb_id"] for r in found["locations"]] == ["FAY-1", "FAY-2"]

    mine = client.get("/api/locations/activity", headers=DELEGATE).json()
    assert mine["count"] == 2

    assert client.get("/api/logs", headers=USER).status_code == 403
    logs = client.get("/api/logs", params={"action": "IMPORT"}, headers=ADMIN).json()
    assert [e["username"] for e in logs["logs"]] == ["Nour"]


def test_public_settings(client):
    data = client.get("/api/settings").json()
    assert data["search"] == {"max_results": 10, "search_radius_km": 0.0}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
