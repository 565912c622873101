from __future__ import annotations

import logging
from threading import Condition, Lock, Thread
from typing import Iterator

from pydantic import ValidationError

from .cache import PodCache
from .client import KubeClient, PodWatch
from .diff import reconcile
from .models import EventType, Pod, Result, WatchEvent
from .naming import pod_selector

logger = logging.getLogger(__name__)


class WatcherClosed(Exception):
    """The watcher was stopped; no more results will be delivered."""


class _Handoff:
    """Unbuffered handoff between the dispatch thread and one consumer.

    `put` places an item and blocks until `get` has taken it. `get` blocks
    until an item is offered. Both return once the handoff is closed; an item
    still waiting to be taken at that point is dropped.
    """

    def __init__(self) -> None:
        self._cond = Condition()
        self._item: Result | None = None
        self._taken = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def pending(self) -> bool:
        """An item is offered and not yet taken."""
        with self._cond:
            return self._item is not None

    def put(self, item: Result) -> bool:
        """Returns True once the consumer took the item, False if it was closed first."""
        with self._cond:
            while self._item is not None and not self._closed:
                self._cond.wait()
            if self._closed:
                return False
            self._item = item
            target = self._taken + 1
            self._cond.notify_all()
            while self._taken < target and not self._closed:
                self._cond.wait()
            return self._taken >= target

    def get(self) -> Result:
        with self._cond:
            while self._item is None and not self._closed:
                self._cond.wait()
            if self._closed:
                raise WatcherClosed("result channel closed")
            item = self._item
            self._item = None
            self._taken += 1
            self._cond.notify_all()
            return item

    def close(self) -> bool:
        """Close and drop an item not yet taken. True only for the call that closed it."""
        with self._cond:
            if self._closed:
                return False
            self._closed = True
            self._item = None
            self._cond.notify_all()
            return True


def _parse_pod(payload: bytes | str) -> Pod | None:
    try:
        return Pod.model_validate_json(payload)
    except ValidationError as e:
        logger.warning(f"Couldn't unmarshal event object into a pod ({e.error_count()} error(s))")
        return None


class PodWatcher:
    """Watches service pods and turns their annotation changes into registry results.

    `start()` seeds the snapshot cache from a full listing and starts a
    background thread that dispatches watch events. Results are pulled one at
    a time with `next()`; the dispatch thread waits until each one is taken,
    and only then records the pod in the cache.
    """

    def __init__(self, client: KubeClient, service: str | None = None) -> None:
        self.client = client
        self.service = service
        self.selector = pod_selector(service)
        self.cache = PodCache()

        self._handoff = _Handoff()
        self._stream: PodWatch | None = None
        self._thread: Thread | None = None
        self._start_lock = Lock()

    def start(self) -> None:
        with self._start_lock:
            if self._thread is not None:
                return
            if self._handoff.closed:
                raise WatcherClosed("watcher already stopped")

            stream = self.client.watch_pods(self.selector)
            try:
                self._seed()
            except Exception:
                stream.stop()
                raise

            self._stream = stream
            if self._handoff.closed:
                # stop() ran while seeding and saw no stream yet.
                stream.stop()
                return
            self._thread = Thread(target=self._consume, args=(stream,), name="podreg-watcher", daemon=True)
            self._thread.start()
        logger.info(f"Pod watcher started: selector={self.selector}")

    def _seed(self) -> None:
        pods = self.client.list_pods(self.selector).items
        # First observation is not a change: results are only counted.
        advertised = sum(len(reconcile(p)) for p in pods)
        n = self.cache.seed_all(pods)
        logger.info(f"Seeded pod cache: {n} pod(s) advertising {advertised} service(s)")

    def _consume(self, stream: PodWatch) -> None:
        try:
            for event in stream:
                self.handle_event(event)
                if self._handoff.closed:
                    break
        except Exception:
            logger.exception("Pod watcher dispatch loop failed")
        finally:
            self.stop()

    def handle_event(self, event: WatchEvent) -> None:
        pod = _parse_pod(event.object)
        if pod is None:
            return
        name = pod.name
        if name is None:
            logger.warning(f"Dropping {event.type} event for a pod without metadata")
            return

        if event.type == EventType.MODIFIED:
            if pod.running:
                results = reconcile(pod, self.cache.get(name))
            else:
                # The cached side may not cover every advertised service.
                results = reconcile(pod)
            if not pod.running or pod.terminating:
                results = [r.as_delete() for r in results]
            self._push(name, results)
            self.cache.set(name, pod)

        elif event.type == EventType.DELETED:
            results = [r.as_delete() for r in reconcile(pod)]
            self._push(name, results)
            self.cache.delete(name)

        else:
            logger.debug(f"Ignoring {event.type} event for pod {name}")

    def _push(self, pod_name: str, results: list[Result]) -> None:
        for i, result in enumerate(results):
            if not self._handoff.put(result):
                logger.debug(f"Watcher stopped; dropped {len(results) - i} result(s) for pod {pod_name}")
                return

    def next(self) -> Result:
        """Block until a result is available. Raises WatcherClosed after stop()."""
        return self._handoff.get()

    def __iter__(self) -> Iterator[Result]:
        while True:
            try:
                yield self.next()
            except WatcherClosed:
                return

    @property
    def stopped(self) -> bool:
        return self._handoff.closed

    def stop(self) -> None:
        """Stop the stream and close the result channel. Safe to call repeatedly."""
        stream = self._stream
        if stream is not None:
            stream.stop()
        if self._handoff.close():
            logger.info("Pod watcher stopped")


def start_watcher(client: KubeClient, service: str | None = None) -> PodWatcher:
    """Build and start a watcher. ClientError from the initial list/watch propagates."""
    w = PodWatcher(client, service=service)
    w.start()
    return w
