"""Import decision for clusters that are not reachable through the work agent."""

import logging
from typing import Any

from constants import (
    AUTO_IMPORT_SECRET_NAME,
    CLUSTER_DEPLOYMENT,
    SECRET,
    SELF_MANAGED_LABEL,
)
from metrics import IMPORT_DECISIONS
from models import (
    AutoImportCandidate,
    ExternallyProvisioned,
    ImportDecision,
    MalformedEvidenceError,
    NoImport,
    SelfManaged,
)
from store import ObjectStore
from utils import name_of, parse_bool

logger = logging.getLogger(__name__)


def self_managed_override(cluster: dict[str, Any]) -> SelfManaged | None:
    """Read the self-managed label, if set.

    Raises:
        MalformedEvidenceError: The label is set but is not a boolean
    """
    labels = cluster.get("metadata", {}).get("labels") or {}
    if SELF_MANAGED_LABEL not in labels:
        return None
    value = labels[SELF_MANAGED_LABEL]
    try:
        return SelfManaged(import_cluster=parse_bool(value))
    except ValueError as e:
        raise MalformedEvidenceError(
            f"label {SELF_MANAGED_LABEL}={value!r} on cluster "
            f"{name_of(cluster)} is not a boolean"
        ) from e


class ImportDecisionEngine:
    """Decide whether and how an offline cluster gets imported.

    Rules are evaluated in priority order and the first one that applies
    wins:

    1. The self-managed label, when present, decides on its own.
    2. A hive ClusterDeployment means the cluster was provisioned here and
       is imported with its admin kubeconfig.
    3. An auto-import secret means the user asked for an import retry;
       without one the cluster is left alone.
    """

    def __init__(
        self, store: ObjectStore, logger: logging.Logger | None = None
    ) -> None:
        self._store = store
        self._log = logger or logging.getLogger(__name__)

    def decide(self, cluster: dict[str, Any]) -> ImportDecision:
        name = name_of(cluster)
        decision = self._decide(cluster, name)
        IMPORT_DECISIONS.labels(decision=_metric_label(decision)).inc()
        return decision

    def _decide(self, cluster: dict[str, Any], name: str) -> ImportDecision:
        override = self_managed_override(cluster)
        if override is not None:
            self._log.info(
                f"Cluster {name} is self-managed, import={override.import_cluster}"
            )
            return override

        cluster_deployment = self._store.get(CLUSTER_DEPLOYMENT, name, name)
        if cluster_deployment is not None:
            self._log.info(f"Cluster {name} has a ClusterDeployment, importing")
            return ExternallyProvisioned(cluster_deployment=cluster_deployment)

        self._log.debug(f"Checking auto-import secret for {name}")
        secret = self._store.get(SECRET, AUTO_IMPORT_SECRET_NAME, name)
        if secret is None:
            self._log.info(f"Will not retry import of {name}: no auto-import secret")
            return NoImport()

        self._log.info(f"Will retry import of {name}: auto-import secret found")
        return AutoImportCandidate(secret=secret)


def _metric_label(decision: ImportDecision) -> str:
    if isinstance(decision, SelfManaged):
        return "self_managed"
    if isinstance(decision, ExternallyProvisioned):
        return "externally_provisioned"
    if isinstance(decision, AutoImportCandidate):
        return "auto_import"
    return "none"
