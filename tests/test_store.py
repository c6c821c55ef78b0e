"""Tests for the Kubernetes-backed object store."""

import copy
from unittest.mock import MagicMock

import pytest
from kubernetes.client import ApiException
from kubernetes.dynamic.exceptions import NotFoundError, ResourceNotFoundError

from constants import MANAGED_CLUSTER, NAMESPACE, SECRET
from store import MERGE_PATCH, KubeObjectStore

NAMESPACE_OBJ = {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": "cluster1"}}


def _not_found():
    return NotFoundError(ApiException(status=404, reason="Not Found"))


@pytest.fixture
def resource():
    resource = MagicMock()
    resource.get.return_value.to_dict.side_effect = lambda: copy.deepcopy(NAMESPACE_OBJ)
    return resource


@pytest.fixture
def kube_store(resource):
    store = KubeObjectStore(MagicMock(), cache_ttl=60)
    store._dynamic = MagicMock()
    store._dynamic.resources.get.return_value = resource
    return store


class TestGet:
    """Tests for KubeObjectStore.get."""

    def test_reads_are_cached(self, kube_store, resource):
        assert kube_store.get(NAMESPACE, "cluster1") == NAMESPACE_OBJ
        assert kube_store.get(NAMESPACE, "cluster1") == NAMESPACE_OBJ

        resource.get.assert_called_once_with(name="cluster1", namespace=None)

    def test_secrets_bypass_the_cache(self, kube_store, resource):
        kube_store.get(SECRET, "token", "cluster1")
        kube_store.get(SECRET, "token", "cluster1")

        assert resource.get.call_count == 2

    def test_cached_objects_are_copies(self, kube_store):
        first = kube_store.get(NAMESPACE, "cluster1")
        first["metadata"]["labels"] = {"changed": "yes"}

        assert "labels" not in kube_store.get(NAMESPACE, "cluster1")["metadata"]

    def test_zero_ttl_disables_cache(self, resource):
        store = KubeObjectStore(MagicMock(), cache_ttl=0)
        store._dynamic = MagicMock()
        store._dynamic.resources.get.return_value = resource

        store.get(NAMESPACE, "cluster1")
        store.get(NAMESPACE, "cluster1")

        assert resource.get.call_count == 2

    def test_not_found(self, kube_store, resource):
        resource.get.side_effect = _not_found()

        assert kube_store.get(NAMESPACE, "cluster1") is None

    def test_kind_not_served(self, kube_store):
        kube_store._dynamic.resources.get.side_effect = ResourceNotFoundError("no hive")

        assert kube_store.get(MANAGED_CLUSTER, "cluster1") is None

    def test_other_errors_propagate(self, kube_store, resource):
        resource.get.side_effect = ApiException(status=500, reason="Internal Server Error")

        with pytest.raises(ApiException):
            kube_store.get(NAMESPACE, "cluster1")


class TestWrites:
    """Tests for KubeObjectStore writes."""

    def test_update_invalidates_cache(self, kube_store, resource):
        kube_store.get(NAMESPACE, "cluster1")
        kube_store.update(NAMESPACE_OBJ)
        kube_store.get(NAMESPACE, "cluster1")

        assert resource.get.call_count == 2
        resource.replace.assert_called_once_with(body=NAMESPACE_OBJ, namespace=None)

    def test_failed_update_still_invalidates_cache(self, kube_store, resource):
        resource.replace.side_effect = ApiException(status=409, reason="Conflict")
        kube_store.get(NAMESPACE, "cluster1")

        with pytest.raises(ApiException):
            kube_store.update(NAMESPACE_OBJ)
        kube_store.get(NAMESPACE, "cluster1")

        assert resource.get.call_count == 2

    def test_patch_status_uses_merge_patch(self, kube_store, resource):
        patch = {"status": {"conditions": []}}

        kube_store.patch_status(MANAGED_CLUSTER, "cluster1", patch)

        resource.status.patch.assert_called_once_with(
            body=patch, name="cluster1", namespace=None, content_type=MERGE_PATCH
        )

    def test_create_refreshes_discovery_once(self, kube_store, resource):
        kube_store._dynamic.resources.get.side_effect = [
            ResourceNotFoundError("not yet"),
            resource,
        ]

        kube_store.create(NAMESPACE_OBJ)

        kube_store._dynamic.resources.invalidate_cache.assert_called_once()
        resource.create.assert_called_once_with(body=NAMESPACE_OBJ, namespace=None)

    def test_delete(self, kube_store, resource):
        assert kube_store.delete(NAMESPACE, "cluster1") is True
        resource.delete.assert_called_once_with(name="cluster1", namespace=None)

    def test_delete_not_found(self, kube_store, resource):
        resource.delete.side_effect = _not_found()

        assert kube_store.delete(NAMESPACE, "cluster1") is False

    def test_delete_kind_not_served(self, kube_store):
        kube_store._dynamic.resources.get.side_effect = ResourceNotFoundError("no hive")

        assert kube_store.delete(MANAGED_CLUSTER, "cluster1") is False
