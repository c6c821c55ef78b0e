"""Utility functions for the ManagedCluster import operator."""

import base64
import copy
import datetime
from typing import Any

from models import ConditionDict

_TRUE_STRINGS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_STRINGS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def now_iso() -> str:
    """Return current UTC time in ISO format."""
    return datetime.datetime.now(datetime.UTC).isoformat()


def parse_bool(value: str) -> bool:
    """Parse a boolean label value.

    Accepts the same spellings as Go's strconv.ParseBool, since labels are
    usually written by tooling that follows it.

    Raises:
        ValueError: If the value is not a recognised boolean
    """
    if value in _TRUE_STRINGS:
        return True
    if value in _FALSE_STRINGS:
        return False
    raise ValueError(f"invalid boolean value {value!r}")


def set_condition(
    status: dict[str, Any],
    condition_type: str,
    condition_status: str,
    reason: str = "",
    message: str = "",
) -> None:
    """Set or update a condition in the status conditions list."""
    conditions: list[ConditionDict] = status.setdefault("conditions", [])

    for condition in conditions:
        if condition["type"] == condition_type:
            if condition["status"] != condition_status:
                condition["status"] = condition_status
                condition["lastTransitionTime"] = now_iso()
            condition["reason"] = reason
            condition["message"] = message
            return

    conditions.append(
        {
            "type": condition_type,
            "status": condition_status,
            "reason": reason,
            "message": message,
            "lastTransitionTime": now_iso(),
        }
    )


def get_condition(obj: dict[str, Any], condition_type: str) -> ConditionDict | None:
    """Find a condition by type in an object's status."""
    for condition in (obj.get("status") or {}).get("conditions") or []:
        if condition.get("type") == condition_type:
            return condition
    return None


# -----------------------------------------------------------------------------
# Object metadata helpers
# -----------------------------------------------------------------------------


def name_of(obj: dict[str, Any]) -> str:
    return obj["metadata"]["name"]


def labels_of(obj: dict[str, Any]) -> dict[str, str]:
    """Return the labels of an object, creating the map if missing."""
    metadata = obj.setdefault("metadata", {})
    if metadata.get("labels") is None:
        metadata["labels"] = {}
    return metadata["labels"]


def is_deleting(obj: dict[str, Any]) -> bool:
    return bool(obj.get("metadata", {}).get("deletionTimestamp"))


def add_finalizer(obj: dict[str, Any], finalizer: str) -> bool:
    """Add a finalizer if absent. Returns True if the object changed."""
    metadata = obj.setdefault("metadata", {})
    finalizers = metadata.get("finalizers") or []
    if finalizer in finalizers:
        return False
    metadata["finalizers"] = [*finalizers, finalizer]
    return True


def remove_finalizer(obj: dict[str, Any], finalizer: str) -> bool:
    """Remove a finalizer if present. Returns True if the object changed."""
    metadata = obj.setdefault("metadata", {})
    finalizers = metadata.get("finalizers") or []
    if finalizer not in finalizers:
        return False
    metadata["finalizers"] = [f for f in finalizers if f != finalizer]
    return True


def other_finalizers(obj: dict[str, Any], known: set[str]) -> list[str]:
    """List the finalizers on an object that are not in `known`."""
    return [
        f for f in obj.get("metadata", {}).get("finalizers") or [] if f not in known
    ]


def owner_reference(owner: dict[str, Any]) -> dict[str, Any]:
    """Build a controller owner reference pointing at `owner`."""
    return {
        "apiVersion": owner["apiVersion"],
        "kind": owner["kind"],
        "name": owner["metadata"]["name"],
        "uid": owner["metadata"]["uid"],
        "controller": True,
        "blockOwnerDeletion": True,
    }


# -----------------------------------------------------------------------------
# Structural helpers
# -----------------------------------------------------------------------------


def is_subset(desired: Any, actual: Any) -> bool:
    """Check that every field set in `desired` has the same value in `actual`.

    Fields only present in `actual` (server-side defaults, status, metadata
    set by the API server) are ignored. Lists must match element-wise.
    """
    if isinstance(desired, dict):
        if not isinstance(actual, dict):
            return False
        return all(
            key in actual and is_subset(value, actual[key])
            for key, value in desired.items()
        )
    if isinstance(desired, list):
        if not isinstance(actual, list) or len(desired) != len(actual):
            return False
        return all(is_subset(d, a) for d, a in zip(desired, actual))
    return desired == actual


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of `base` with `overlay` merged in recursively.

    Dicts merge key by key; any other value in `overlay` replaces the one
    in `base`.
    """
    result = copy.deepcopy(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def merge_patch(before: dict[str, Any], after: dict[str, Any]) -> dict[str, Any]:
    """Compute an RFC 7386 JSON merge patch turning `before` into `after`."""
    patch: dict[str, Any] = {}
    for key in before.keys() - after.keys():
        patch[key] = None
    for key, value in after.items():
        if key not in before:
            patch[key] = copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(before[key], dict):
            nested = merge_patch(before[key], value)
            if nested:
                patch[key] = nested
        elif value != before[key]:
            patch[key] = copy.deepcopy(value)
    return patch


def dig(obj: Any, path: tuple[str, ...]) -> Any:
    """Follow a path of keys into nested dicts, returning None if absent."""
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def b64encode(value: str | bytes) -> str:
    if isinstance(value, str):
        value = value.encode()
    return base64.b64encode(value).decode()


def b64decode(value: str) -> str:
    return base64.b64decode(value).decode()


def secret_value(secret: dict[str, Any], key: str) -> str | None:
    """Read a decoded value from a secret's data or stringData."""
    data = secret.get("data") or {}
    if data.get(key) is not None:
        return b64decode(data[key])
    return (secret.get("stringData") or {}).get(key)
