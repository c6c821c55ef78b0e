"""Teardown of a ManagedCluster and its namespace."""

import logging
from collections.abc import Iterable
from typing import Any

from constants import (
    CLUSTER_DEPLOYMENT,
    MANAGED_CLUSTER_FINALIZER,
    NAMESPACE,
    REGISTRATION_FINALIZER,
)
from models import BlockingDependencyError, ReconcileResult
from resources.manifestwork import delete_manifest_work
from store import ObjectStore
from utils import is_deleting, name_of, other_finalizers, remove_finalizer


class DeletionPipeline:
    """Release a deleted cluster and remove its namespace.

    Finalizing the cluster and deleting its namespace are separate steps:
    the namespace is only removed once the ManagedCluster itself is gone,
    and never while a ClusterDeployment still lives in it.
    """

    def __init__(
        self,
        store: ObjectStore,
        finalizer_recheck_delay: float = 10.0,
        ignored_finalizers: Iterable[str] = (),
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._recheck_delay = finalizer_recheck_delay
        self._known_finalizers = {
            MANAGED_CLUSTER_FINALIZER,
            REGISTRATION_FINALIZER,
            *ignored_finalizers,
        }
        self._log = logger or logging.getLogger(__name__)

    def finalize(self, cluster: dict[str, Any]) -> ReconcileResult:
        """Clean up after a ManagedCluster marked for deletion.

        The controller finalizer is released last, after the ManifestWork is
        gone and every foreign finalizer has been removed by its owner. The
        registration finalizer and `ignored_finalizers` (kopf's own, which
        kopf only releases after this step) are not waited for.
        """
        name = name_of(cluster)

        if delete_manifest_work(self._store, name):
            self._log.info(f"Waiting for ManifestWork of {name} to be removed")
            return ReconcileResult(requeue_after=self._recheck_delay)

        pending = other_finalizers(cluster, self._known_finalizers)
        if pending:
            self._log.info(f"Waiting for finalizers {pending} on cluster {name}")
            return ReconcileResult(requeue_after=self._recheck_delay)

        if remove_finalizer(cluster, MANAGED_CLUSTER_FINALIZER):
            self._store.update(cluster)
            self._log.info(f"Removed finalizer from cluster {name}")
        return ReconcileResult()

    def delete_namespace(self, namespace_name: str) -> None:
        """Delete the namespace of a cluster that no longer exists.

        Raises:
            BlockingDependencyError: A ClusterDeployment still exists in the
                namespace. Its finalizer has been released so its owner can
                remove it; the caller retries later.
        """
        namespace = self._store.get(NAMESPACE, namespace_name)
        if namespace is None:
            self._log.info(f"Namespace {namespace_name} not found")
            return
        if is_deleting(namespace):
            self._log.info(f"Namespace {namespace_name} already in deletion")
            return

        cluster_deployment = self._store.get(
            CLUSTER_DEPLOYMENT, namespace_name, namespace_name
        )
        if cluster_deployment is not None:
            if remove_finalizer(cluster_deployment, MANAGED_CLUSTER_FINALIZER):
                self._store.update(cluster_deployment)
                self._log.info(
                    f"Removed finalizer from ClusterDeployment "
                    f"{namespace_name}/{namespace_name}"
                )
            raise BlockingDependencyError(
                f"can not delete namespace {namespace_name} as ClusterDeployment "
                f"{namespace_name} still exist"
            )

        if self._store.delete(NAMESPACE, namespace_name):
            self._log.info(f"Deleted namespace {namespace_name}")
