"""ASGI entry point: `uvicorn main:app`."""
from __future__ import annotations

import logging

from podreg.api import create_app
from podreg.client import KubeClient
from podreg.settings import settings
from podreg.watcher import PodWatcher, start_watcher

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def _build_watcher() -> PodWatcher:
    return start_watcher(KubeClient.from_settings(settings), service=settings.service)


app = create_app(watcher_factory=_build_watcher if settings.enable_watcher else None)
