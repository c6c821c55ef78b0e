"""Provisioning of an active ManagedCluster.

Each step reads what the previous one left in the API server and either
does nothing or makes one write, so a reconcile interrupted anywhere is
finished by the next one.
"""

import logging
from typing import Any

from conditions import ImportConditionRecorder, is_offline
from config import OperatorConfig
from constants import (
    CLUSTER_LABEL,
    MANAGED_CLUSTER_FINALIZER,
    NAME_LABEL,
    NAMESPACE,
)
from decision import ImportDecisionEngine
from models import ImportBundle, RenderConfig, ReconcileResult, ResourceNotFoundError
from resources.apply import apply_object, create_if_absent
from resources.bundle import generate_import_bundle, upsert_import_secret
from resources.importer import ClusterImporter
from resources.manifests import (
    render_bootstrap_service_account,
    render_config,
    render_hub_resources,
)
from resources.manifestwork import upsert_manifest_work
from resources.syncset import delete_legacy_sync_sets
from store import ObjectStore
from utils import add_finalizer, labels_of, name_of, owner_reference


class ProvisioningPipeline:
    """Bring a ManagedCluster to an import-ready state."""

    def __init__(
        self,
        store: ObjectStore,
        config: OperatorConfig,
        hub_api_server: str,
        decision_engine: ImportDecisionEngine,
        importer: ClusterImporter,
        recorder: ImportConditionRecorder,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._hub_api_server = hub_api_server
        self._decision_engine = decision_engine
        self._importer = importer
        self._recorder = recorder
        self._log = logger or logging.getLogger(__name__)

    def run(self, cluster: dict[str, Any]) -> ReconcileResult:
        """Run all provisioning steps in order, stopping at the first error."""
        name = name_of(cluster)

        cluster = self.ensure_cluster_metadata(cluster)
        self.ensure_namespace_label(name)

        render = render_config(name)
        self.ensure_bootstrap_identity(cluster, render)
        self.apply_hub_resources(cluster, render)

        bundle = generate_import_bundle(
            self._store, cluster, self._config, self._hub_api_server
        )
        self._log.info(f"Applying import secret for {name}")
        upsert_import_secret(self._store, cluster, bundle)

        delete_legacy_sync_sets(self._store, name)

        if not is_offline(cluster):
            self._log.info(f"Distributing klusterlet ManifestWork to {name}")
            upsert_manifest_work(self._store, cluster, bundle)
            return ReconcileResult()

        return self.import_offline_cluster(cluster, bundle)

    def ensure_cluster_metadata(self, cluster: dict[str, Any]) -> dict[str, Any]:
        """Add the controller finalizer and the name label if missing.

        Both changes go out in a single update, and only if needed.
        """
        name = name_of(cluster)
        changed = add_finalizer(cluster, MANAGED_CLUSTER_FINALIZER)
        labels = labels_of(cluster)
        if NAME_LABEL not in labels:
            labels[NAME_LABEL] = name
            changed = True
        if not changed:
            return cluster
        self._log.info(f"Adding finalizer and labels to cluster {name}")
        return self._store.update(cluster)

    def ensure_namespace_label(self, name: str) -> None:
        """Point the cluster namespace back at its cluster.

        Raises:
            ResourceNotFoundError: The namespace does not exist
        """
        namespace = self._store.get(NAMESPACE, name)
        if namespace is None:
            raise ResourceNotFoundError(f"namespace {name} not found")
        labels = labels_of(namespace)
        if CLUSTER_LABEL in labels:
            return
        labels[CLUSTER_LABEL] = name
        self._store.update(namespace)
        self._log.info(f"Labelled namespace {name}")

    def ensure_bootstrap_identity(
        self, cluster: dict[str, Any], render: RenderConfig
    ) -> None:
        """Create the bootstrap service account once.

        It is never updated afterwards, so credentials rotated by someone
        else stay in place.
        """
        service_account = render_bootstrap_service_account(render)
        service_account["metadata"]["ownerReferences"] = [owner_reference(cluster)]
        create_if_absent(self._store, service_account)

    def apply_hub_resources(self, cluster: dict[str, Any], render: RenderConfig) -> None:
        for obj in render_hub_resources(render):
            obj["metadata"]["ownerReferences"] = [owner_reference(cluster)]
            apply_object(self._store, obj)

    def import_offline_cluster(
        self, cluster: dict[str, Any], bundle: ImportBundle
    ) -> ReconcileResult:
        """Import an unreachable cluster directly, if the evidence says so."""
        name = name_of(cluster)
        decision = self._decision_engine.decide(cluster)
        if not decision.should_import:
            self._log.info(f"Not importing cluster {name}")
            return ReconcileResult()

        try:
            result = self._importer.import_cluster(cluster, decision, bundle)
        except Exception as e:
            self._recorder.record(cluster, e, f"Unable to import {name}")
            raise
        if result.requeue:
            return result
        self._recorder.record(cluster, None)
        return result
