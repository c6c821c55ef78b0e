"""Constants used across the operator."""

from models import Kind

# Finalizer owned by this controller, on ManagedClusters and ClusterDeployments
MANAGED_CLUSTER_FINALIZER = (
    "managedcluster-import-controller.open-cluster-management.io/cleanup"
)
# Finalizer owned by the registration controller
REGISTRATION_FINALIZER = "cluster.open-cluster-management.io/api-resource-cleanup"

# Prefix for kopf bookkeeping annotations
ANNOTATION_PREFIX = "import.open-cluster-management.io"
# Finalizer kopf puts on objects watched by timers
KOPF_FINALIZER = f"{ANNOTATION_PREFIX}/kopf-finalizer"

# Back-reference label put on the cluster namespace and on owned objects
CLUSTER_LABEL = "cluster.open-cluster-management.io/managedCluster"
NAME_LABEL = "name"
SELF_MANAGED_LABEL = "local-cluster"

# Auto-import retry evidence
AUTO_IMPORT_SECRET_NAME = "auto-import-secret"  # nosec
AUTO_IMPORT_RETRY_KEY = "autoImportRetry"

# Status conditions
IMPORT_SUCCEEDED_CONDITION = "ManagedClusterImportSucceeded"
IMPORT_SUCCEEDED_REASON = "ManagedClusterImported"
IMPORT_FAILED_REASON = "ManagedClusterNotImported"
IMPORT_SUCCEEDED_MESSAGE = "Import succeeded"
AVAILABLE_CONDITION = "ManagedClusterConditionAvailable"

# Per-cluster object names
BOOTSTRAP_SA_SUFFIX = "-bootstrap-sa"
BOOTSTRAP_TOKEN_SUFFIX = "-bootstrap-sa-token"
IMPORT_SECRET_SUFFIX = "-import"
MANIFEST_WORK_SUFFIX = "-klusterlet"
LEGACY_SYNC_SET_SUFFIXES = ("-klusterlet", "-klusterlet-crds")

# Retry delay after a failed namespace cleanup for an already removed cluster
ORPHAN_CLEANUP_RETRY_SECONDS = 60

# Resource kinds
MANAGED_CLUSTER = Kind("cluster.open-cluster-management.io/v1", "ManagedCluster")
MANIFEST_WORK = Kind("work.open-cluster-management.io/v1", "ManifestWork")
CLUSTER_DEPLOYMENT = Kind("hive.openshift.io/v1", "ClusterDeployment")
SYNC_SET = Kind("hive.openshift.io/v1", "SyncSet")
NAMESPACE = Kind("v1", "Namespace")
SECRET = Kind("v1", "Secret")
SERVICE_ACCOUNT = Kind("v1", "ServiceAccount")
