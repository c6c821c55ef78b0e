"""Top-level reconcile of a ManagedCluster."""

import logging

from conditions import ImportConditionRecorder
from config import OperatorConfig
from constants import MANAGED_CLUSTER, ORPHAN_CLEANUP_RETRY_SECONDS
from decision import ImportDecisionEngine
from deletion import DeletionPipeline
from models import ReconcileResult, RequeueError
from provisioning import ProvisioningPipeline
from resources.importer import (
    ClusterImporter,
    RemoteStoreFactory,
    remote_store_from_kubeconfig,
)
from store import ObjectStore
from utils import is_deleting


class ManagedClusterReconciler:
    """Classify a ManagedCluster's lifecycle state and drive it forward.

    Reconciles for the same cluster never overlap; the caller serializes
    them. Nothing is rolled back on failure: every step is idempotent and
    the next reconcile resumes where this one stopped.
    """

    def __init__(
        self,
        store: ObjectStore,
        config: OperatorConfig,
        hub_api_server: str,
        remote_store_factory: RemoteStoreFactory = remote_store_from_kubeconfig,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._log = logger or logging.getLogger(__name__)
        self.deletion = DeletionPipeline(
            store, ignored_finalizers=(config.kopf_finalizer,), logger=self._log
        )
        self.provisioning = ProvisioningPipeline(
            store,
            config,
            hub_api_server,
            decision_engine=ImportDecisionEngine(store, logger=self._log),
            importer=ClusterImporter(
                store, config, remote_store_factory, logger=self._log
            ),
            recorder=ImportConditionRecorder(store, logger=self._log),
            logger=self._log,
        )

    def reconcile(self, name: str) -> ReconcileResult:
        """Reconcile the ManagedCluster called `name`.

        Raises:
            RequeueError: Namespace cleanup for a removed cluster failed;
                retry after a fixed delay since nothing else will trigger it
            OperatorError, ApiException: Any other failed step
        """
        self._log.info(f"Reconciling ManagedCluster {name}")

        cluster = self._store.get(MANAGED_CLUSTER, name)
        if cluster is None:
            self._log.info(f"ManagedCluster {name} is gone, deleting its namespace")
            try:
                self.deletion.delete_namespace(name)
            except Exception as e:
                self._log.error(f"Failed to delete namespace {name}: {e}")
                raise RequeueError(
                    f"namespace cleanup for {name} failed: {e}",
                    delay=ORPHAN_CLEANUP_RETRY_SECONDS,
                ) from e
            return ReconcileResult()

        if is_deleting(cluster):
            return self.deletion.finalize(cluster)

        return self.provisioning.run(cluster)
