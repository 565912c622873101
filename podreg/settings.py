from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_str(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


@dataclass(frozen=True)
class Settings:
    # Kubernetes API; credentials come from in-cluster config or kubeconfig.
    namespace: str = os.getenv("PODREG_NAMESPACE", "default")
    # Applies to the initial pod listing only; the watch stream has no timeout.
    request_timeout_s: int = _env_int("PODREG_REQUEST_TIMEOUT_S", 10)

    # Watch only pods labeled for this service (None = every service pod).
    service: str | None = _env_str("PODREG_SERVICE")

    # Registry view
    db_path: str = os.getenv("PODREG_DB_PATH", "podreg.db")
    enable_watcher: bool = _env_bool("PODREG_ENABLE_WATCHER", True)
    log_level: str = os.getenv("PODREG_LOG_LEVEL", "INFO")


settings = Settings()
