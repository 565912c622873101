import json
import queue
import sys
import threading
import time

import pytest

# Ensure project root is importable (so `import cli` works without installing)
import os as _os
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from podreg import db  # noqa: E402
from podreg.client import ClientError  # noqa: E402
from podreg.models import PodList, WatchEvent  # noqa: E402
from podreg.settings import Settings  # noqa: E402


def svc(name, version="", **extra):
    """JSON service descriptor as it appears in a pod annotation."""
    return json.dumps({"name": name, "version": version, **extra})


def make_pod(name, annotations=None, phase="Running", deletion_timestamp=None, labels=None):
    meta = {"name": name, "namespace": "default", "labels": labels or {"micro.mu/type": "service"}}
    if annotations is not None:
        meta["annotations"] = annotations
    if deletion_timestamp:
        meta["deletionTimestamp"] = deletion_timestamp
    return {"metadata": meta, "status": {"phase": phase, "podIP": "10.0.0.1"}}


def wait_for(cond, timeout=2.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if cond():
            return True
        time.sleep(0.01)
    return cond()


_END = object()


class FakeStream:
    """Scripted watch stream: events are fed from the test thread."""

    def __init__(self):
        self._q = queue.Queue()
        self._lock = threading.Lock()
        self.stop_calls = 0

    def emit(self, event_type, pod):
        payload = pod if isinstance(pod, bytes) else json.dumps(pod).encode()
        self._q.put(WatchEvent(type=event_type, object=payload))

    def end(self):
        self._q.put(_END)

    def stop(self):
        with self._lock:
            self.stop_calls += 1
        self._q.put(_END)

    def __iter__(self):
        while True:
            item = self._q.get()
            if item is _END:
                return
            yield item


class FakeClient:
    """Stands in for KubeClient: a fixed pod listing and one scripted stream."""

    def __init__(self, pods=None, list_error=None, watch_error=None):
        self.pods = pods or []
        self.list_error = list_error
        self.watch_error = watch_error
        self.stream = FakeStream()
        self.selectors = []

    def list_pods(self, selector):
        self.selectors.append(("list", selector))
        if self.list_error:
            raise ClientError(self.list_error)
        return PodList.model_validate({"items": self.pods})

    def watch_pods(self, selector):
        self.selectors.append(("watch", selector))
        if self.watch_error:
            raise ClientError(self.watch_error)
        return self.stream


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def journal_db(tmp_path, monkeypatch):
    """Point the sqlite journal at an isolated file."""
    monkeypatch.setattr(db, "settings", Settings(db_path=str(tmp_path / "journal.db")))
    db.init_db()
    return tmp_path / "journal.db"
