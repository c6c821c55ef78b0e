"""Domain models for the ManagedCluster import operator.

This module defines typed data structures for all operator concepts,
making illegal states unrepresentable at the type level.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NotRequired, TypedDict


# =============================================================================
# Enums for constrained values
# =============================================================================


class ConditionStatus(Enum):
    """Kubernetes condition status."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


# =============================================================================
# TypedDicts for objects read from Kubernetes
# =============================================================================


class ConditionDict(TypedDict):
    """A status condition as stored on the ManagedCluster."""

    type: str
    status: str
    reason: NotRequired[str]
    message: NotRequired[str]
    lastTransitionTime: NotRequired[str]


class AdminKubeconfigRef(TypedDict):
    """Reference to the admin kubeconfig secret of a ClusterDeployment."""

    name: str


class ClusterMetadataSpec(TypedDict, total=False):
    """Installer metadata recorded on a ClusterDeployment."""

    clusterID: str
    infraID: str
    adminKubeconfigSecretRef: AdminKubeconfigRef


# =============================================================================
# Dataclasses for internal state
# =============================================================================


@dataclass(frozen=True)
class Kind:
    """API group version and kind of a resource."""

    api_version: str
    kind: str

    @classmethod
    def of(cls, obj: dict[str, Any]) -> "Kind":
        """Get the kind of a Kubernetes object dict."""
        return cls(obj["apiVersion"], obj["kind"])

    def __str__(self) -> str:
        return f"{self.kind}.{self.api_version}"


@dataclass(frozen=True)
class Condition:
    """Kubernetes-style condition."""

    type: str
    status: ConditionStatus
    reason: str = ""
    message: str = ""


@dataclass(frozen=True)
class RenderConfig:
    """Values fed into manifest rendering for one cluster."""

    cluster_name: str
    cluster_namespace: str
    bootstrap_service_account_name: str


@dataclass(frozen=True)
class ImportBundle:
    """Generated import artifacts: CRDs and klusterlet manifests.

    Both lists are ordered; CRDs must be applied before the manifests
    that instantiate them.
    """

    crds: list[dict[str, Any]] = field(default_factory=list)
    manifests: list[dict[str, Any]] = field(default_factory=list)

    def all_objects(self) -> list[dict[str, Any]]:
        return [*self.crds, *self.manifests]


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a successful reconcile.

    A non-zero requeue_after asks for another reconcile after that many
    seconds even though nothing failed.
    """

    requeue_after: float = 0

    @property
    def requeue(self) -> bool:
        return self.requeue_after > 0


# =============================================================================
# Import decision variants
# =============================================================================


@dataclass(frozen=True)
class SelfManaged:
    """The cluster is the hub itself; the label value decides."""

    import_cluster: bool

    @property
    def should_import(self) -> bool:
        return self.import_cluster


@dataclass(frozen=True)
class ExternallyProvisioned:
    """The cluster was installed by hive; import using its ClusterDeployment."""

    cluster_deployment: dict[str, Any]

    @property
    def should_import(self) -> bool:
        return True


@dataclass(frozen=True)
class AutoImportCandidate:
    """An auto-import secret exists; import using its credentials."""

    secret: dict[str, Any]

    @property
    def should_import(self) -> bool:
        return True


@dataclass(frozen=True)
class NoImport:
    """No evidence that the cluster should be imported."""

    @property
    def should_import(self) -> bool:
        return False


ImportDecision = SelfManaged | ExternallyProvisioned | AutoImportCandidate | NoImport


# =============================================================================
# Exceptions
# =============================================================================


class OperatorError(Exception):
    """Base exception for operator errors."""

    pass


class ResourceNotFoundError(OperatorError):
    """A resource the reconcile depends on does not exist."""

    pass


class MalformedEvidenceError(OperatorError):
    """Import evidence on the cluster could not be parsed."""

    pass


class BlockingDependencyError(OperatorError):
    """A dependent resource must go away before this step can proceed."""

    pass


class BootstrapTokenPendingError(OperatorError):
    """The bootstrap service account token has not been issued yet."""

    pass


class ClusterImportError(OperatorError):
    """Import credentials are missing or unusable."""

    pass


class RequeueError(OperatorError):
    """A failure that must be retried after a fixed delay."""

    def __init__(self, message: str, delay: float) -> None:
        super().__init__(message)
        self.delay = delay
