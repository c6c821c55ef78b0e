"""Idempotent create/update of desired objects."""

import logging
from typing import Any

from models import Kind
from store import ObjectStore
from utils import deep_merge, is_subset

logger = logging.getLogger(__name__)


def apply_object(store: ObjectStore, desired: dict[str, Any]) -> bool:
    """Create `desired` if absent, or update it if the stored copy differs.

    Fields the API server adds (defaults, status, bookkeeping metadata)
    are kept; only fields set in `desired` are compared and written.

    Returns:
        True if a write was made
    """
    kind = Kind.of(desired)
    name = desired["metadata"]["name"]
    namespace = desired["metadata"].get("namespace")

    existing = store.get(kind, name, namespace)
    if existing is None:
        store.create(desired)
        logger.info("Created %s %s", kind.kind, _qualified(name, namespace))
        return True

    if is_subset(desired, existing):
        logger.debug("%s %s is up to date", kind.kind, _qualified(name, namespace))
        return False

    store.update(deep_merge(existing, desired))
    logger.info("Updated %s %s", kind.kind, _qualified(name, namespace))
    return True


def create_if_absent(store: ObjectStore, desired: dict[str, Any]) -> bool:
    """Create `desired` only if no object with its name exists.

    An existing object is never touched, even if it differs.

    Returns:
        True if the object was created
    """
    kind = Kind.of(desired)
    name = desired["metadata"]["name"]
    namespace = desired["metadata"].get("namespace")

    if store.get(kind, name, namespace) is not None:
        return False
    store.create(desired)
    logger.info("Created %s %s", kind.kind, _qualified(name, namespace))
    return True


def apply_all(store: ObjectStore, objects: list[dict[str, Any]]) -> int:
    """Apply objects in order. Returns the number of writes made."""
    return sum(apply_object(store, obj) for obj in objects)


def _qualified(name: str, namespace: str | None) -> str:
    return f"{namespace}/{name}" if namespace else name
