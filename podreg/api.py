from __future__ import annotations

import logging
from typing import Callable

from fastapi import FastAPI, HTTPException, Query

from . import db
from .client import ClientError
from .models import Service
from .registry import Registry, RegistrySync
from .watcher import PodWatcher

logger = logging.getLogger(__name__)


def create_app(
    registry: Registry | None = None,
    watcher_factory: Callable[[], PodWatcher] | None = None,
) -> FastAPI:
    """Read-only HTTP view over the registry.

    When `watcher_factory` is given, a started watcher is built on startup and
    its results are applied to the registry until shutdown.
    """
    app = FastAPI(title="podreg")
    app.state.registry = registry if registry is not None else Registry()
    app.state.sync = None

    @app.on_event("startup")
    def startup() -> None:
        db.init_db()
        if watcher_factory is None:
            return
        try:
            watcher = watcher_factory()
        except ClientError as e:
            db.log_event("ERROR", f"Pod watcher failed to start: {e}")
            raise
        sync = RegistrySync(watcher, app.state.registry)
        sync.start()
        app.state.sync = sync

    @app.on_event("shutdown")
    def shutdown() -> None:
        sync: RegistrySync | None = app.state.sync
        if sync is None:
            return
        sync.stop()
        sync.join(timeout=5)
        app.state.sync = None

    @app.get("/health")
    def health() -> dict:
        sync: RegistrySync | None = app.state.sync
        return {
            "status": "healthy",
            "watching": bool(sync and not sync.watcher.stopped),
            "services": len(app.state.registry.list_services()),
        }

    @app.get("/services", response_model=list[Service])
    def list_services() -> list[Service]:
        return app.state.registry.list_services()

    @app.get("/services/{name}", response_model=list[Service])
    def get_service(name: str) -> list[Service]:
        versions = app.state.registry.get_service(name)
        if not versions:
            raise HTTPException(status_code=404, detail=f"Unknown service '{name}'")
        return versions

    @app.get("/events")
    def events(limit: int = Query(100, ge=1, le=1000)) -> list[dict]:
        return db.latest_events(limit)

    return app
