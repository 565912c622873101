import pytest
from conftest import FakeClient, make_pod, svc, wait_for
from fastapi.testclient import TestClient

from podreg import db
from podreg.api import create_app
from podreg.client import ClientError
from podreg.models import Action, Node, Result, Service
from podreg.registry import Registry
from podreg.watcher import start_watcher


def _registry():
    reg = Registry()
    reg.apply(Result(action=Action.CREATE, service=Service(name="web", version="1", nodes=[Node(id="a", address="10.0.0.1:80")])))
    reg.apply(Result(action=Action.CREATE, service=Service(name="web", version="2")))
    reg.apply(Result(action=Action.CREATE, service=Service(name="api", version="1")))
    return reg


def test_services_endpoints(journal_db):
    with TestClient(create_app(registry=_registry())) as client:
        r = client.get("/services")
        assert r.status_code == 200
        assert [(s["name"], s["version"]) for s in r.json()] == [("api", "1"), ("web", "1"), ("web", "2")]

        r = client.get("/services/web")
        assert r.status_code == 200
        assert r.json()[0]["nodes"][0]["address"] == "10.0.0.1:80"

        r = client.get("/services/nope")
        assert r.status_code == 404


def test_health_without_watcher(journal_db):
    with TestClient(create_app(registry=_registry())) as client:
        body = client.get("/health").json()
        assert body == {"status": "healthy", "watching": False, "services": 3}


def test_events_endpoint(journal_db):
    db.log_event("INFO", "hello", action="create", service_name="web", version="1")
    with TestClient(create_app()) as client:
        r = client.get("/events", params={"limit": 5})
        assert r.status_code == 200
        assert r.json()[0]["message"] == "hello"

        assert client.get("/events", params={"limit": 0}).status_code == 422


def test_watcher_feeds_registry(journal_db):
    fake = FakeClient()
    app = create_app(watcher_factory=lambda: start_watcher(fake))

    with TestClient(app) as client:
        assert client.get("/health").json()["watching"] is True
        fake.stream.emit("MODIFIED", make_pod("a", {"micro.mu/service-web": svc("web", "1")}))
        assert wait_for(lambda: client.get("/services").json() != [])
        assert client.get("/services/web").json()[0]["version"] == "1"
        sync = app.state.sync

    # shutdown stopped the watcher
    assert sync.watcher.stopped
    assert app.state.sync is None


def test_watcher_start_failure_is_journaled(journal_db):
    app = create_app(watcher_factory=lambda: start_watcher(FakeClient(list_error="refused")))
    with pytest.raises(ClientError):
        for handler in app.router.on_startup:
            handler()
    assert "Pod watcher failed to start" in db.latest_events()[0]["message"]
