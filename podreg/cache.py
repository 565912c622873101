from __future__ import annotations

from threading import Lock
from typing import Iterable

from .models import Pod


class PodCache:
    """Last observed Pod per pod name.

    Pods are immutable and replaced wholesale, so a reader either sees the
    previous record or the new one.
    """

    def __init__(self) -> None:
        self.lock = Lock()
        self._pods: dict[str, Pod] = {}

    def get(self, name: str) -> Pod | None:
        with self.lock:
            return self._pods.get(name)

    def set(self, name: str, pod: Pod) -> None:
        with self.lock:
            self._pods[name] = pod

    def delete(self, name: str) -> None:
        with self.lock:
            self._pods.pop(name, None)

    def seed_all(self, pods: Iterable[Pod]) -> int:
        """Replace the whole table. Pods without metadata have no identity and are skipped."""
        table = {p.metadata.name: p for p in pods if p.metadata is not None}
        with self.lock:
            self._pods = table
        return len(table)

    def names(self) -> list[str]:
        with self.lock:
            return sorted(self._pods)

    def __len__(self) -> int:
        with self.lock:
            return len(self._pods)
