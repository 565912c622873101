from __future__ import annotations

import logging
import sqlite3
from threading import Lock, Thread

from . import db
from .models import Action, Result, Service
from .watcher import PodWatcher, WatcherClosed

logger = logging.getLogger(__name__)


def _merge_nodes(old: list, new: list) -> list:
    by_id = {n.id: n for n in old}
    for n in new:
        by_id[n.id] = n
    return list(by_id.values())


class Registry:
    """In-memory service registry fed by watcher results.

    Several pods usually advertise the same service name and version, each
    with its own nodes. Creates and updates merge nodes by id; a delete
    removes the nodes it carries, and the version once none are left.
    """

    def __init__(self) -> None:
        self.lock = Lock()
        self._services: dict[str, dict[str, Service]] = {}  # name -> version -> service

    def apply(self, result: Result) -> None:
        svc = result.service
        with self.lock:
            versions = self._services.get(svc.name)
            if result.action is Action.DELETE:
                if not versions or svc.version not in versions:
                    return
                gone = {n.id for n in svc.nodes}
                left = [n for n in versions[svc.version].nodes if n.id not in gone]
                if left and gone:
                    versions[svc.version] = versions[svc.version].model_copy(update={"nodes": left})
                else:
                    del versions[svc.version]
                if not versions:
                    del self._services[svc.name]
                return

            versions = self._services.setdefault(svc.name, {})
            current = versions.get(svc.version)
            if current is None:
                versions[svc.version] = svc.model_copy(deep=True)
            else:
                versions[svc.version] = svc.model_copy(
                    update={"nodes": _merge_nodes(current.nodes, svc.nodes)}, deep=True
                )

    def get_service(self, name: str) -> list[Service]:
        with self.lock:
            return list(self._services.get(name, {}).values())

    def list_services(self) -> list[Service]:
        with self.lock:
            return [svc for name in sorted(self._services) for svc in self._services[name].values()]


class RegistrySync:
    """Pulls results from a watcher and applies them to a Registry until the watcher stops."""

    def __init__(self, watcher: PodWatcher, registry: Registry, journal: bool = True) -> None:
        self.watcher = watcher
        self.registry = registry
        self.journal = journal
        self.applied = 0
        self._thr: Thread | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._thr = Thread(target=self._loop, name="podreg-sync", daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self.watcher.stop()

    def join(self, timeout: float | None = None) -> None:
        if self._thr:
            self._thr.join(timeout)

    def _loop(self) -> None:
        self._journal("INFO", "Registry sync started")
        while True:
            try:
                result = self.watcher.next()
            except WatcherClosed:
                break
            self.registry.apply(result)
            self.applied += 1
            svc = result.service
            logger.info(f"Applied {result.action.value} {svc.name} {svc.version}".rstrip())
            self._journal(
                "INFO",
                f"{result.action.value} {svc.name}",
                action=result.action.value,
                service_name=svc.name,
                version=svc.version,
            )
        self._journal("INFO", f"Registry sync stopped after {self.applied} result(s)")

    def _journal(self, level: str, message: str, **fields: str | None) -> None:
        if not self.journal:
            return
        try:
            db.log_event(level, message, **fields)
        except sqlite3.Error as e:
            logger.warning(f"Journal write failed: {type(e).__name__}: {e}")
