"""In-memory stand-ins for the Kubernetes API used by the tests."""

import copy
from typing import Any

from kubernetes.client import ApiException

from constants import (
    AUTO_IMPORT_RETRY_KEY,
    AUTO_IMPORT_SECRET_NAME,
    AVAILABLE_CONDITION,
    BOOTSTRAP_TOKEN_SUFFIX,
    CLUSTER_DEPLOYMENT,
    MANAGED_CLUSTER,
)
from models import Kind
from store import ObjectStore
from utils import b64encode


def _apply_merge_patch(target: dict[str, Any], patch: dict[str, Any]) -> None:
    for key, value in patch.items():
        if value is None:
            target.pop(key, None)
        elif isinstance(value, dict) and isinstance(target.get(key), dict):
            _apply_merge_patch(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


class FakeObjectStore(ObjectStore):
    """ObjectStore over a dict, recording every call.

    Deleting an object with finalizers only sets its deletionTimestamp;
    it disappears once an update leaves it without finalizers.
    """

    def __init__(self, objects: list[dict[str, Any]] = ()) -> None:
        self.objects: dict[tuple, dict[str, Any]] = {}
        self.calls: list[tuple[str, str, str, str | None]] = []
        self.errors: dict[tuple[str, str, str], Exception] = {}
        self._version = 0
        for obj in objects:
            self.add(obj)

    @staticmethod
    def _key(kind: Kind, name: str, namespace: str | None) -> tuple:
        return (kind.api_version, kind.kind, namespace or "", name)

    def _obj_key(self, obj: dict[str, Any]) -> tuple:
        metadata = obj["metadata"]
        return self._key(Kind.of(obj), metadata["name"], metadata.get("namespace"))

    def _record(self, verb: str, kind: Kind, name: str, namespace: str | None) -> None:
        self.calls.append((verb, kind.kind, name, namespace))
        error = self.errors.get((verb, kind.kind, name))
        if error is not None:
            raise error

    def add(self, obj: dict[str, Any]) -> None:
        """Seed an object without recording a call."""
        self._version += 1
        stored = copy.deepcopy(obj)
        stored["metadata"]["resourceVersion"] = str(self._version)
        self.objects[self._obj_key(stored)] = stored

    def stored(
        self, kind: Kind, name: str, namespace: str | None = None
    ) -> dict[str, Any] | None:
        obj = self.objects.get(self._key(kind, name, namespace))
        return copy.deepcopy(obj) if obj is not None else None

    @property
    def mutations(self) -> list[tuple[str, str, str, str | None]]:
        return [call for call in self.calls if call[0] != "get"]

    def get(self, kind, name, namespace=None):
        self._record("get", kind, name, namespace)
        return self.stored(kind, name, namespace)

    def create(self, obj):
        metadata = obj["metadata"]
        self._record("create", Kind.of(obj), metadata["name"], metadata.get("namespace"))
        if self._obj_key(obj) in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")
        self.add(obj)
        return self.stored(Kind.of(obj), metadata["name"], metadata.get("namespace"))

    def update(self, obj):
        metadata = obj["metadata"]
        kind = Kind.of(obj)
        self._record("update", kind, metadata["name"], metadata.get("namespace"))
        key = self._obj_key(obj)
        existing = self.objects.get(key)
        if existing is None:
            raise ApiException(status=404, reason="NotFound")
        if metadata.get("resourceVersion") != existing["metadata"]["resourceVersion"]:
            raise ApiException(status=409, reason="Conflict")
        if metadata.get("deletionTimestamp") and not metadata.get("finalizers"):
            del self.objects[key]
            return copy.deepcopy(obj)
        self.add(obj)
        return self.stored(kind, metadata["name"], metadata.get("namespace"))

    def patch_status(self, kind, name, patch, namespace=None):
        self._record("patch_status", kind, name, namespace)
        existing = self.objects.get(self._key(kind, name, namespace))
        if existing is None:
            raise ApiException(status=404, reason="NotFound")
        _apply_merge_patch(existing, patch)
        return copy.deepcopy(existing)

    def delete(self, kind, name, namespace=None):
        self._record("delete", kind, name, namespace)
        key = self._key(kind, name, namespace)
        existing = self.objects.get(key)
        if existing is None:
            return False
        if existing["metadata"].get("finalizers"):
            existing["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"
        else:
            del self.objects[key]
        return True


class RemoteStores:
    """remote_store_factory that hands out one FakeObjectStore per kubeconfig."""

    def __init__(self, error: Exception | None = None) -> None:
        self.kubeconfigs: list[dict[str, Any]] = []
        self.store = FakeObjectStore()
        self.error = error

    def __call__(self, kubeconfig: dict[str, Any]) -> ObjectStore:
        self.kubeconfigs.append(kubeconfig)
        if self.error is not None:
            raise self.error
        return self.store


# -----------------------------------------------------------------------------
# Object builders
# -----------------------------------------------------------------------------


def make_cluster(
    name: str = "cluster1",
    labels: dict[str, str] | None = None,
    available: str | None = "True",
    finalizers: list[str] | None = None,
    deleting: bool = False,
) -> dict[str, Any]:
    cluster: dict[str, Any] = {
        "apiVersion": MANAGED_CLUSTER.api_version,
        "kind": MANAGED_CLUSTER.kind,
        "metadata": {"name": name, "uid": f"uid-{name}"},
        "spec": {"hubAcceptsClient": True},
        "status": {"conditions": []},
    }
    if labels is not None:
        cluster["metadata"]["labels"] = dict(labels)
    if finalizers is not None:
        cluster["metadata"]["finalizers"] = list(finalizers)
    if deleting:
        cluster["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"
    if available is not None:
        cluster["status"]["conditions"].append(
            {"type": AVAILABLE_CONDITION, "status": available, "reason": "", "message": ""}
        )
    return cluster


def make_namespace(
    name: str = "cluster1", labels: dict[str, str] | None = None, deleting: bool = False
) -> dict[str, Any]:
    namespace: dict[str, Any] = {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {"name": name},
    }
    if labels is not None:
        namespace["metadata"]["labels"] = dict(labels)
    if deleting:
        namespace["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"
    return namespace


def make_token_secret(name: str = "cluster1", token: str = "bootstrap-token") -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "type": "kubernetes.io/service-account-token",
        "metadata": {"name": name + BOOTSTRAP_TOKEN_SUFFIX, "namespace": name},
        "data": {"token": b64encode(token), "ca.crt": b64encode("hub-ca")},
    }


def make_cluster_deployment(
    name: str = "cluster1",
    installed: bool = True,
    finalizers: list[str] | None = None,
    admin_kubeconfig: str | None = "cluster1-admin-kubeconfig",
) -> dict[str, Any]:
    spec: dict[str, Any] = {"installed": installed, "clusterName": name}
    if admin_kubeconfig:
        spec["clusterMetadata"] = {
            "adminKubeconfigSecretRef": {"name": admin_kubeconfig}
        }
    cluster_deployment: dict[str, Any] = {
        "apiVersion": CLUSTER_DEPLOYMENT.api_version,
        "kind": CLUSTER_DEPLOYMENT.kind,
        "metadata": {"name": name, "namespace": name},
        "spec": spec,
    }
    if finalizers is not None:
        cluster_deployment["metadata"]["finalizers"] = list(finalizers)
    return cluster_deployment


def make_admin_kubeconfig_secret(
    namespace: str = "cluster1", name: str = "cluster1-admin-kubeconfig"
) -> dict[str, Any]:
    kubeconfig = (
        "apiVersion: v1\n"
        "kind: Config\n"
        "clusters:\n"
        "- name: admin\n"
        "  cluster:\n"
        "    server: https://api.cluster1.example.com:6443\n"
    )
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "namespace": namespace},
        "data": {"kubeconfig": b64encode(kubeconfig)},
    }


def make_auto_import_secret(
    namespace: str = "cluster1", retry: int | None = 2, **data: str
) -> dict[str, Any]:
    values = dict(data)
    if retry is not None:
        values[AUTO_IMPORT_RETRY_KEY] = str(retry)
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": AUTO_IMPORT_SECRET_NAME, "namespace": namespace},
        "data": {key: b64encode(value) for key, value in values.items()},
    }
