import sqlite3

from conftest import FakeClient, make_pod, svc, wait_for

from podreg import db
from podreg.models import Action, Node, Result, Service
from podreg.registry import Registry, RegistrySync
from podreg.watcher import start_watcher


def result(action, name, version="1", nodes=()):
    return Result(
        action=action,
        service=Service(name=name, version=version, nodes=[Node(id=n, address=f"{n}:80") for n in nodes]),
    )


def test_create_update_merge_nodes():
    r = Registry()
    r.apply(result(Action.CREATE, "web", nodes=["a"]))
    r.apply(result(Action.CREATE, "web", nodes=["b"]))
    r.apply(result(Action.UPDATE, "web", nodes=["a"]))

    [web] = r.get_service("web")
    assert sorted(n.id for n in web.nodes) == ["a", "b"]


def test_delete_removes_only_its_nodes():
    r = Registry()
    r.apply(result(Action.CREATE, "web", nodes=["a"]))
    r.apply(result(Action.CREATE, "web", nodes=["b"]))

    r.apply(result(Action.DELETE, "web", nodes=["a"]))
    [web] = r.get_service("web")
    assert [n.id for n in web.nodes] == ["b"]

    r.apply(result(Action.DELETE, "web", nodes=["b"]))
    assert r.get_service("web") == []
    assert r.list_services() == []


def test_delete_without_nodes_drops_version():
    r = Registry()
    r.apply(result(Action.CREATE, "web", version="1"))
    r.apply(result(Action.CREATE, "web", version="2"))
    r.apply(result(Action.DELETE, "web", version="1"))
    assert [s.version for s in r.get_service("web")] == ["2"]


def test_delete_unknown_is_noop():
    r = Registry()
    r.apply(result(Action.DELETE, "ghost"))
    r.apply(result(Action.CREATE, "web", version="1"))
    r.apply(result(Action.DELETE, "web", version="9"))
    assert [s.version for s in r.get_service("web")] == ["1"]


def test_list_services_sorted_by_name():
    r = Registry()
    for name in ("b", "a", "c"):
        r.apply(result(Action.CREATE, name))
    assert [s.name for s in r.list_services()] == ["a", "b", "c"]


def test_sync_applies_results_and_journals(journal_db):
    client = FakeClient(pods=[make_pod("a", {"micro.mu/service-web": svc("web", "1")})])
    w = start_watcher(client)
    reg = Registry()
    sync = RegistrySync(w, reg)
    sync.start()

    client.stream.emit("MODIFIED", make_pod("a", {
        "micro.mu/service-web": svc("web", "1"),
        "micro.mu/service-api": svc("api", "2"),
    }))
    assert wait_for(lambda: [s.name for s in reg.list_services()] == ["api"])

    client.stream.emit("DELETED", make_pod("a", {"micro.mu/service-api": svc("api", "2")}))
    assert wait_for(lambda: reg.list_services() == [])

    sync.stop()
    sync.join(timeout=2)
    assert sync.applied == 2

    conn = sqlite3.connect(str(journal_db))
    rows = conn.execute("SELECT action, service_name, version FROM events WHERE action IS NOT NULL ORDER BY id").fetchall()
    conn.close()
    assert rows == [("create", "api", "2"), ("delete", "api", "2")]

    messages = [e["message"] for e in db.latest_events()]
    assert messages[0] == "Registry sync stopped after 2 result(s)"
    assert messages[-1] == "Registry sync started"


def test_sync_without_journal(monkeypatch):
    def _no_journal(*args, **kwargs):
        raise AssertionError("journal written")

    monkeypatch.setattr(db, "log_event", _no_journal)
    client = FakeClient()
    w = start_watcher(client)
    reg = Registry()
    sync = RegistrySync(w, reg, journal=False)
    sync.start()
    client.stream.emit("MODIFIED", make_pod("a", {"micro.mu/service-web": svc("web")}))
    assert wait_for(lambda: len(reg.list_services()) == 1)
    sync.stop()
    sync.join(timeout=2)
    assert sync.applied == 1
