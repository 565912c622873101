from __future__ import annotations

from pydantic import ValidationError

from .models import Service
from .naming import ANNOTATION_SERVICE_KEY_PREFIX


class DecodeError(ValueError):
    """An annotation value is not a valid service descriptor."""


def is_service_key(key: str) -> bool:
    return key.startswith(ANNOTATION_SERVICE_KEY_PREFIX)


def decode_service(value: str | bytes) -> Service:
    """Decode one service annotation value (JSON) into a Service."""
    try:
        return Service.model_validate_json(value)
    except ValidationError as e:
        raise DecodeError(f"invalid service descriptor: {e.error_count()} error(s)") from e
