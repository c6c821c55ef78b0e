"""Prometheus metrics for the ManagedCluster import operator."""

from prometheus_client import Counter, Histogram, Gauge, Info

# Reconciliation metrics
RECONCILE_TOTAL = Counter(
    "managedcluster_import_reconcile_total",
    "Total number of reconciliations",
    ["trigger", "status"],
)

RECONCILE_DURATION = Histogram(
    "managedcluster_import_reconcile_duration_seconds",
    "Time spent in reconciliation",
    ["trigger"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

RECONCILE_IN_PROGRESS = Gauge(
    "managedcluster_import_reconcile_in_progress",
    "Number of reconciliations currently in progress",
)

# Import metrics
IMPORT_DECISIONS = Counter(
    "managedcluster_import_decisions_total",
    "Import decisions taken for offline clusters",
    ["decision"],
)

IMPORT_ATTEMPTS = Counter(
    "managedcluster_import_attempts_total",
    "Direct import attempts by strategy and outcome",
    ["strategy", "status"],
)

# Kubernetes API metrics
KUBE_API_CALLS = Counter(
    "managedcluster_import_kube_api_calls_total",
    "Total number of Kubernetes API calls",
    ["kind", "verb", "status"],
)

KUBE_API_DURATION = Histogram(
    "managedcluster_import_kube_api_duration_seconds",
    "Time spent in Kubernetes API calls",
    ["kind", "verb"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

READ_CACHE_REQUESTS = Counter(
    "managedcluster_import_read_cache_requests_total",
    "Cached reads by result",
    ["result"],
)

RATE_LIMIT_WAIT_SECONDS = Histogram(
    "managedcluster_import_rate_limit_wait_seconds",
    "Time spent waiting for a client-side rate limit token",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

# Operator info
OPERATOR_INFO = Info(
    "managedcluster_import_operator",
    "Information about the ManagedCluster import operator",
)


def set_operator_info(version: str, hub: str) -> None:
    """Set operator info labels."""
    OPERATOR_INFO.info({"version": version, "hub": hub})


def init_metrics() -> None:
    """Initialize all metrics with zero values.

    Prometheus metrics with labels don't appear until used.
    This ensures all metrics are visible immediately at startup.
    """
    triggers = ["cluster", "cluster_deleted", "manifestwork", "namespace", "resync"]
    statuses = ["success", "error", "requeue"]

    RECONCILE_IN_PROGRESS.set(0)
    for trigger in triggers:
        RECONCILE_DURATION.labels(trigger=trigger)
        for status in statuses:
            RECONCILE_TOTAL.labels(trigger=trigger, status=status)

    for decision in ["self_managed", "externally_provisioned", "auto_import", "none"]:
        IMPORT_DECISIONS.labels(decision=decision)

    for strategy in ["self_managed", "externally_provisioned", "auto_import"]:
        for status in ["success", "error", "deferred"]:
            IMPORT_ATTEMPTS.labels(strategy=strategy, status=status)

    for result in ["hit", "miss", "bypass"]:
        READ_CACHE_REQUESTS.labels(result=result)
