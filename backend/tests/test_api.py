import pytest
from fastapi.testclient import TestClient

from familynotify.config import settings
from familynotify.db.session import get_db
from familynotify.main import app


@pytest.fixture
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _register(client, user_id, token):
    r = client.post("/push/register", json={"user_id": user_id, "device_token": token})
    assert r.status_code == 200
    return r.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_push_registration_is_idempotent(client):
    assert _register(client, "alice", "aa11")["message"] == "Token registered"
    assert _register(client, "alice", "aa11")["message"] == "Token already registered"
    r = client.post("/push/register", json={"user_id": "alice", "device_token": "bb22", "platform": "windows"})
    assert r.status_code == 422


def test_unknown_trigger_is_404(client):
    assert client.post("/triggers/weather").status_code == 404


def test_trigger_without_feed_url_maps_to_503(client):
    r = client.post("/triggers/news")
    assert r.status_code == 503
    detail = r.json()["detail"]
    assert detail["report"]["aborted"] is True
    assert "ConfigurationError" in detail["error"]


def test_trigger_run_returns_report_and_is_logged(client):
    r = client.post("/triggers/maintenance")
    assert r.status_code == 200
    assert r.json()["trigger"] == "maintenance"
    log = client.get("/admin/delivery-log", params={"category": "cron_execution"}).json()["entries"]
    assert [e["title"] for e in log] == ["maintenance: ok"]


def test_cron_secret_required_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "cron_secret", "s3cret")
    assert client.post("/triggers/maintenance").status_code == 401
    assert client.post("/triggers/maintenance", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.post("/triggers/maintenance", headers={"Authorization": "Bearer s3cret"}).status_code == 200
    assert client.get("/health").status_code == 200


def test_shopping_change_hook(client):
    r = client.post("/shopping/changes", json={"user_id": "alice", "entity_name": "Milk", "action": "added"})
    assert r.status_code == 201
    assert r.json()["action"] == "added"
    r = client.post("/shopping/changes", json={"user_id": "alice", "entity_name": "Milk", "action": "renamed"})
    assert r.status_code == 422
    r = client.post("/shopping/changes", json={"user_id": "alice", "entity_name": "   ", "action": "added"})
    assert r.status_code == 422
    assert "entity_name" in r.json()["detail"]


def test_task_hooks(client):
    body = {"user_id": "alice", "title": "Take out trash", "created_at": "2026-03-11T09:00:00Z"}
    r = client.post("/tasks/t1/reminders", json=body)
    assert r.status_code == 201
    assert r.json()["task_id"] == "t1"
    r = client.post("/tasks/t1/status", json={"status": "completed"})
    assert r.status_code == 200
    assert r.json()["status"] == "completed"


def test_calendar_broadcast_hook_skips_actor(client):
    _register(client, "alice", "aa11")
    _register(client, "bob", "bb22")
    event = {"id": "evt-1", "user_id": "alice", "title": "Dinner at grandma", "start_time": "2026-03-20T17:00:00Z"}
    r = client.post("/calendar/events/created", json={"event": event, "actor_id": "alice"})
    assert r.status_code == 200
    report = r.json()
    assert report["counts"] == {"sent": 1, "filtered": 1}
    assert [o["user_id"] for o in report["outcomes"] if o["outcome"] == "sent"] == ["bob"]

    r = client.post("/calendar/events/moved", json={"event": event, "actor_id": "alice"})
    assert r.status_code == 422


def test_cursor_admin(client):
    r = client.post("/admin/cursors/reset", json={"user_id": "alice"})
    assert r.json() == {"ok": True, "user_id": "alice", "feed_key": None, "deleted": 0}
    assert client.get("/admin/cursors/alice").json() == {"user_id": "alice", "cursors": []}
    assert client.post("/admin/prune").json()["ok"] is True
    assert client.post("/admin/reset-state").json()["method"] == "delete"
