from __future__ import annotations

import functools
import json
import logging
from threading import Lock
from typing import Any, Callable, Iterator

import urllib3
from kubernetes import client as k8s
from kubernetes import config, watch
from kubernetes.client.rest import ApiException
from pydantic import ValidationError

from .models import PodList, WatchEvent
from .naming import format_selector
from .settings import Settings, settings

logger = logging.getLogger(__name__)


class ClientError(OSError):
    """Listing pods or opening a watch against the Kubernetes API failed."""


def load_config() -> None:
    """Load cluster credentials: in-cluster first, kubeconfig as fallback."""
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except config.ConfigException:
        try:
            config.load_kube_config()
            logger.info("Loaded kubeconfig")
        except config.ConfigException as e:
            raise ClientError(f"No Kubernetes config available: {e}") from e


def _close(resp: Any) -> None:
    resp.close()
    resp.release_conn()


class _StreamEnded(Exception):
    pass


class PodWatch:
    """A live pod watch stream.

    Iterate to receive events; iteration ends when the server closes the
    response or `stop()` is called. The stream is never reopened.
    """

    def __init__(self, list_func: Callable[..., Any], first_response: Any, *args: Any, **kwargs: Any) -> None:
        self._watch = watch.Watch()
        self._lock = Lock()
        self._pending = [first_response]
        self._stopped = False

        # watch_pods already made the request; Watch asks again only to reconnect.
        @functools.wraps(list_func)
        def _open(*a: Any, **kw: Any) -> Any:
            with self._lock:
                if self._pending:
                    return self._pending.pop()
            raise _StreamEnded()

        self._events = self._watch.stream(_open, *args, **kwargs)

    def __iter__(self) -> Iterator[WatchEvent]:
        if self._stopped:
            return
        try:
            for event in self._events:
                if self._stopped:
                    return
                if not isinstance(event, dict):
                    if event:
                        logger.warning(f"Skipping malformed watch line: {str(event)[:200]!r}")
                    continue
                yield WatchEvent(
                    type=event["type"],
                    object=json.dumps(event["raw_object"]).encode("utf-8"),
                )
        except _StreamEnded:
            logger.info("Watch stream closed by the server")
        except ApiException as e:
            logger.warning(f"Watch stream failed: HTTP {e.status} {e.reason}")
        except urllib3.exceptions.HTTPError as e:
            if not self._stopped:
                logger.warning(f"Watch stream failed: {type(e).__name__}: {e}")

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        self._stopped = True
        self._watch.stop()
        with self._lock:
            pending, self._pending = self._pending, []
        for resp in pending:
            _close(resp)


class KubeClient:
    """Pods API access by label selector, on top of CoreV1Api."""

    def __init__(self, namespace: str, api: k8s.CoreV1Api | None = None, timeout_s: int = 10) -> None:
        self.namespace = namespace
        self.api = api if api is not None else k8s.CoreV1Api()
        self.timeout_s = timeout_s

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> KubeClient:
        load_config()
        return cls(cfg.namespace, timeout_s=cfg.request_timeout_s)

    def list_pods(self, selector: dict[str, str]) -> PodList:
        # Raw JSON keeps the API's field names (deletionTimestamp, podIP, ...).
        try:
            resp = self.api.list_namespaced_pod(
                self.namespace,
                label_selector=format_selector(selector),
                _preload_content=False,
                _request_timeout=self.timeout_s,
            )
            data = resp.data
        except ApiException as e:
            raise ClientError(f"list pods failed: HTTP {e.status} {e.reason}") from e
        except urllib3.exceptions.HTTPError as e:
            raise ClientError(f"list pods failed: {type(e).__name__}: {e}") from e
        try:
            return PodList.model_validate_json(data)
        except ValidationError as e:
            raise ClientError(f"list pods returned an invalid pod list: {e.error_count()} error(s)") from e

    def watch_pods(self, selector: dict[str, str]) -> PodWatch:
        label_selector = format_selector(selector)
        try:
            first = self.api.list_namespaced_pod(
                self.namespace, label_selector=label_selector, watch=True, _preload_content=False
            )
        except ApiException as e:
            raise ClientError(f"watch pods failed: HTTP {e.status} {e.reason}") from e
        except urllib3.exceptions.HTTPError as e:
            raise ClientError(f"watch pods failed: {type(e).__name__}: {e}") from e
        return PodWatch(self.api.list_namespaced_pod, first, self.namespace, label_selector=label_selector)
