"""Direct import of offline clusters.

When the work agent cannot reach a cluster, the bundle is applied to it
straight from the hub, using whatever credentials the import decision
turned up.
"""

import logging
from collections.abc import Callable
from typing import Any

import yaml
from kubernetes import config as k8s_config
from kubernetes.client import ApiException

from config import OperatorConfig
from constants import (
    AUTO_IMPORT_RETRY_KEY,
    MANAGED_CLUSTER_FINALIZER,
    SECRET,
)
from metrics import IMPORT_ATTEMPTS
from models import (
    AutoImportCandidate,
    ClusterImportError,
    ClusterMetadataSpec,
    ExternallyProvisioned,
    ImportBundle,
    ImportDecision,
    ReconcileResult,
    SelfManaged,
)
from resources.apply import apply_all
from store import KubeObjectStore, ObjectStore
from utils import add_finalizer, b64encode, name_of, secret_value

logger = logging.getLogger(__name__)

RemoteStoreFactory = Callable[[dict[str, Any]], ObjectStore]


def remote_store_from_kubeconfig(kubeconfig: dict[str, Any]) -> ObjectStore:
    """Build an uncached store for a managed cluster from its kubeconfig."""
    api_client = k8s_config.new_client_from_config_dict(kubeconfig)
    return KubeObjectStore(api_client, cache_ttl=0)


def kubeconfig_from_auto_import_secret(secret: dict[str, Any]) -> dict[str, Any]:
    """Extract a kubeconfig from an auto-import secret.

    The secret holds either a full `kubeconfig`, or a `server` URL and a
    bearer `token` with an optional `ca.crt`.

    Raises:
        ClusterImportError: Neither form is present
    """
    kubeconfig = secret_value(secret, "kubeconfig")
    if kubeconfig:
        return yaml.safe_load(kubeconfig)

    server = secret_value(secret, "server")
    token = secret_value(secret, "token")
    if not server or not token:
        raise ClusterImportError(
            "auto-import secret must contain kubeconfig, or server and token"
        )

    cluster: dict[str, Any] = {"server": server}
    ca = secret_value(secret, "ca.crt")
    if ca:
        cluster["certificate-authority-data"] = b64encode(ca)
    else:
        cluster["insecure-skip-tls-verify"] = True
    return {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{"name": "managed", "cluster": cluster}],
        "users": [{"name": "import", "user": {"token": token}}],
        "contexts": [{"name": "import", "context": {"cluster": "managed", "user": "import"}}],
        "current-context": "import",
    }


class ClusterImporter:
    """Apply the import bundle directly to an offline cluster."""

    def __init__(
        self,
        hub_store: ObjectStore,
        config: OperatorConfig,
        remote_store_factory: RemoteStoreFactory = remote_store_from_kubeconfig,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = hub_store
        self._config = config
        self._remote_store_factory = remote_store_factory
        self._log = logger or logging.getLogger(__name__)

    def import_cluster(
        self,
        cluster: dict[str, Any],
        decision: ImportDecision,
        bundle: ImportBundle,
    ) -> ReconcileResult:
        """Import a cluster according to the decision taken for it.

        Returns:
            A result asking for a requeue when the import cannot start yet

        Raises:
            ClusterImportError: Credentials are missing or unusable
            ApiException: The hub or the managed cluster rejected a call
        """
        if isinstance(decision, SelfManaged):
            return self._import_self_managed(cluster, bundle)
        if isinstance(decision, ExternallyProvisioned):
            return self._import_provisioned(cluster, decision.cluster_deployment, bundle)
        if isinstance(decision, AutoImportCandidate):
            return self._import_with_secret(cluster, decision.secret, bundle)
        raise ValueError(f"decision {decision!r} does not import")

    def _import_self_managed(
        self, cluster: dict[str, Any], bundle: ImportBundle
    ) -> ReconcileResult:
        self._log.info(f"Importing self-managed cluster {name_of(cluster)} into the hub")
        try:
            apply_all(self._store, bundle.all_objects())
        except Exception:
            IMPORT_ATTEMPTS.labels(strategy="self_managed", status="error").inc()
            raise
        IMPORT_ATTEMPTS.labels(strategy="self_managed", status="success").inc()
        return ReconcileResult()

    def _import_provisioned(
        self,
        cluster: dict[str, Any],
        cluster_deployment: dict[str, Any],
        bundle: ImportBundle,
    ) -> ReconcileResult:
        name = name_of(cluster)
        if not (cluster_deployment.get("spec") or {}).get("installed"):
            self._log.info(f"ClusterDeployment {name} is not installed yet, rechecking later")
            IMPORT_ATTEMPTS.labels(strategy="externally_provisioned", status="deferred").inc()
            return ReconcileResult(requeue_after=self._config.import_recheck_delay)

        # Keep the namespace from going away before this controller lets go
        if add_finalizer(cluster_deployment, MANAGED_CLUSTER_FINALIZER):
            self._store.update(cluster_deployment)

        try:
            kubeconfig = self._admin_kubeconfig(cluster_deployment)
            apply_all(self._remote_store_factory(kubeconfig), bundle.all_objects())
        except Exception:
            IMPORT_ATTEMPTS.labels(strategy="externally_provisioned", status="error").inc()
            raise
        IMPORT_ATTEMPTS.labels(strategy="externally_provisioned", status="success").inc()
        self._log.info(f"Imported cluster {name} with its ClusterDeployment credentials")
        return ReconcileResult()

    def _admin_kubeconfig(self, cluster_deployment: dict[str, Any]) -> dict[str, Any]:
        metadata = cluster_deployment["metadata"]
        cluster_metadata: ClusterMetadataSpec = (
            cluster_deployment.get("spec") or {}
        ).get("clusterMetadata") or {}
        ref = cluster_metadata.get("adminKubeconfigSecretRef", {}).get("name")
        if not ref:
            raise ClusterImportError(
                f"ClusterDeployment {metadata['name']} has no admin kubeconfig reference"
            )
        secret = self._store.get(SECRET, ref, metadata["namespace"])
        kubeconfig = secret_value(secret, "kubeconfig") if secret else None
        if not kubeconfig:
            raise ClusterImportError(
                f"admin kubeconfig secret {metadata['namespace']}/{ref} is missing"
            )
        return yaml.safe_load(kubeconfig)

    def _import_with_secret(
        self,
        cluster: dict[str, Any],
        secret: dict[str, Any],
        bundle: ImportBundle,
    ) -> ReconcileResult:
        name = name_of(cluster)
        try:
            kubeconfig = kubeconfig_from_auto_import_secret(secret)
            apply_all(self._remote_store_factory(kubeconfig), bundle.all_objects())
        except Exception as e:
            IMPORT_ATTEMPTS.labels(strategy="auto_import", status="error").inc()
            try:
                self._consume_retry(secret)
            except ApiException as retry_error:
                self._log.error(
                    f"Failed to update auto-import retries for {name} "
                    f"after import error {e}: {retry_error}"
                )
            raise

        IMPORT_ATTEMPTS.labels(strategy="auto_import", status="success").inc()
        self._log.info(f"Imported cluster {name} with its auto-import secret")
        self._store.delete(SECRET, secret["metadata"]["name"], name)
        return ReconcileResult()

    def _consume_retry(self, secret: dict[str, Any]) -> None:
        """Count down the remaining attempts, deleting the secret at zero."""
        metadata = secret["metadata"]
        raw = secret_value(secret, AUTO_IMPORT_RETRY_KEY)
        try:
            remaining = int(raw) - 1 if raw is not None else 0
        except ValueError:
            self._log.warning(
                f"Invalid {AUTO_IMPORT_RETRY_KEY} {raw!r} in "
                f"{metadata['namespace']}/{metadata['name']}, giving up"
            )
            remaining = 0

        if remaining <= 0:
            self._log.info(
                f"Auto-import retries exhausted for {metadata['namespace']}, "
                "deleting the auto-import secret"
            )
            self._store.delete(SECRET, metadata["name"], metadata["namespace"])
            return

        secret.setdefault("data", {})[AUTO_IMPORT_RETRY_KEY] = b64encode(str(remaining))
        self._store.update(secret)
        self._log.info(
            f"{remaining} auto-import retries left for {metadata['namespace']}"
        )
