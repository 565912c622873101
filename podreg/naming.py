from __future__ import annotations

# Pods carrying this label are considered by the default watch.
POD_TYPE_LABEL = "micro.mu/type"
POD_TYPE_VALUE = "service"

# Per-service selector label: micro.mu/selector-<service>=service
SVC_SELECTOR_PREFIX = "micro.mu/selector-"
SVC_SELECTOR_VALUE = "service"

# Annotations with this key prefix carry a JSON service descriptor.
ANNOTATION_SERVICE_KEY_PREFIX = "micro.mu/service-"

POD_RUNNING = "Running"


def service_name(name: str) -> str:
    """Make a service name safe for use inside a label key.

    Every character that is not an ASCII letter or digit becomes '-'.
    """
    return "".join(c if c.isascii() and c.isalnum() else "-" for c in name)


def pod_selector(service: str | None = None) -> dict[str, str]:
    if service:
        return {SVC_SELECTOR_PREFIX + service_name(service): SVC_SELECTOR_VALUE}
    return {POD_TYPE_LABEL: POD_TYPE_VALUE}


def format_selector(selector: dict[str, str]) -> str:
    return ",".join(f"{k}={v}" for k, v in selector.items())
