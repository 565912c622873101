from __future__ import annotations

import logging

from .codec import DecodeError, decode_service, is_service_key
from .models import Action, Pod, PodMetadata, Result

logger = logging.getLogger(__name__)


def reconcile(current: Pod, prior: Pod | None = None) -> list[Result]:
    """Compute the service changes between a pod's prior and current snapshot.

    Forward pass over `current`: a service annotation with no prior value is a
    create, one whose value changed is an update, an identical one yields
    nothing. Every key seen in the forward pass is claimed. Backward pass over
    `prior`: each unclaimed service annotation is a delete.

    Annotations whose value does not decode contribute nothing. A null value
    counts as absent.
    """
    results: list[Result] = []
    claimed: set[str] = set()

    if current.metadata is not None:
        results, claimed = _forward(current.metadata, prior)

    if prior is None or prior.metadata is None:
        return results

    for key, value in prior.metadata.annotations.items():
        if key in claimed or not is_service_key(key) or value is None:
            continue
        try:
            svc = decode_service(value)
        except DecodeError as e:
            logger.debug(f"Skipping removed annotation {key} on pod {prior.name}: {e}")
            continue
        results.append(Result(action=Action.DELETE, service=svc))

    return results


def _forward(current: PodMetadata, prior: Pod | None) -> tuple[list[Result], set[str]]:
    prior_anns = prior.metadata.annotations if prior is not None and prior.metadata is not None else {}

    results: list[Result] = []
    claimed: set[str] = set()

    for key, value in current.annotations.items():
        if not is_service_key(key) or value is None:
            continue

        # Claimed even if the value fails to decode: the key is still present,
        # so the backward pass must not report its prior value as deleted.
        claimed.add(key)

        prior_value = prior_anns.get(key)
        if prior_value is not None and prior_value == value:
            continue

        try:
            svc = decode_service(value)
        except DecodeError as e:
            logger.debug(f"Skipping annotation {key} on pod {current.name}: {e}")
            continue

        action = Action.UPDATE if key in prior_anns else Action.CREATE
        results.append(Result(action=action, service=svc))

    return results, claimed
