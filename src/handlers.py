"""Kopf handlers for ManagedCluster import."""

import logging
import sys
import time
from pathlib import Path
from typing import Any

# Add src directory to path for imports when run as script by Kopf
_src_dir = Path(__file__).parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import kopf
from kubernetes.client import ApiException
from prometheus_client import start_http_server

from config import OperatorConfig
from constants import (
    ANNOTATION_PREFIX,
    CLUSTER_LABEL,
    MANAGED_CLUSTER,
    ORPHAN_CLEANUP_RETRY_SECONDS,
)
from metrics import (
    RECONCILE_DURATION,
    RECONCILE_IN_PROGRESS,
    RECONCILE_TOTAL,
    init_metrics,
    set_operator_info,
)
from models import OperatorError, RequeueError
from predicates import FieldChangedPredicate
from state import OperatorState

logger = logging.getLogger(__name__)

# Operator version
OPERATOR_VERSION = "0.1.0"

MANAGED_CLUSTERS = ("cluster.open-cluster-management.io", "v1", "managedclusters")
MANIFEST_WORKS = ("work.open-cluster-management.io", "v1", "manifestworks")

# Decorator arguments need the configuration at import time
CONFIG = OperatorConfig.from_env()

work_filter = FieldChangedPredicate(path=("spec",))


def _reconcile(memo: kopf.Memo, name: str, trigger: str) -> None:
    """Reconcile one cluster and translate the outcome for kopf.

    Failures become kopf.TemporaryError so kopf retries the handler: with
    a fixed delay for RequeueError, with kopf's default delay otherwise.
    A result asking for a requeue is retried after the delay it names.
    """
    start_time = time.monotonic()
    RECONCILE_IN_PROGRESS.inc()
    try:
        result = memo.state.get_reconciler().reconcile(name)
    except RequeueError as e:
        RECONCILE_TOTAL.labels(trigger=trigger, status="requeue").inc()
        raise kopf.TemporaryError(str(e), delay=e.delay) from e
    except (OperatorError, ApiException) as e:
        logger.error(f"Failed to reconcile ManagedCluster {name}: {e}")
        RECONCILE_TOTAL.labels(trigger=trigger, status="error").inc()
        raise kopf.TemporaryError(f"Reconcile failed: {e}") from e
    finally:
        RECONCILE_IN_PROGRESS.dec()
        RECONCILE_DURATION.labels(trigger=trigger).observe(
            time.monotonic() - start_time
        )

    if result.requeue:
        RECONCILE_TOTAL.labels(trigger=trigger, status="requeue").inc()
        raise kopf.TemporaryError(
            f"Reconcile of {name} requeued", delay=result.requeue_after
        )
    RECONCILE_TOTAL.labels(trigger=trigger, status="success").inc()


def _cluster_removed(event: dict[str, Any], **_: Any) -> bool:
    return event.get("type") == "DELETED"


def _work_spec_changed(old: dict[str, Any] | None, new: dict[str, Any] | None, **_: Any) -> bool:
    return work_filter.update(old, new)


def _work_deleted(event: dict[str, Any], **_: Any) -> bool:
    return event.get("type") == "DELETED" and work_filter.delete(event.get("object"))


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **_: Any) -> None:
    """Configure operator settings on startup."""
    # Reduce logging noise
    settings.posting.level = logging.WARNING
    # Timers make kopf add its own finalizer; name it after the operator
    # and keep kopf state in annotations
    settings.persistence.finalizer = CONFIG.kopf_finalizer
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix=ANNOTATION_PREFIX
    )
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(
        prefix=ANNOTATION_PREFIX,
        key="last-handled-configuration",
    )
    settings.watching.clusterwide = True

    # Start Prometheus metrics server
    try:
        start_http_server(CONFIG.metrics_port)
        logger.info("Prometheus metrics server started on port %d", CONFIG.metrics_port)
    except OSError as e:
        logger.warning(
            "Failed to start metrics server on port %d: %s", CONFIG.metrics_port, e
        )

    memo.state = OperatorState(config=CONFIG)

    init_metrics()
    set_operator_info(OPERATOR_VERSION, memo.state.hub_api_server)

    logger.info("ManagedCluster import operator started (version %s)", OPERATOR_VERSION)


@kopf.on.cleanup()
def cleanup(memo: kopf.Memo, **_: Any) -> None:
    """Clean up resources on operator shutdown."""
    logger.info("ManagedCluster import operator shutting down")
    memo.state.close()


@kopf.on.resume(*MANAGED_CLUSTERS)
@kopf.on.create(*MANAGED_CLUSTERS)
@kopf.on.update(*MANAGED_CLUSTERS)
def reconcile_cluster(name: str, memo: kopf.Memo, **_: Any) -> None:
    """Handle ManagedCluster creation, changes and operator restarts."""
    _reconcile(memo, name, "cluster")


@kopf.on.update(*MANAGED_CLUSTERS, field="status.conditions", id="availability")
def reconcile_cluster_status(name: str, memo: kopf.Memo, **_: Any) -> None:
    """Reconcile when the cluster's conditions change, e.g. it goes offline."""
    _reconcile(memo, name, "cluster")


@kopf.on.delete(*MANAGED_CLUSTERS, optional=True)
def finalize_cluster(name: str, memo: kopf.Memo, **_: Any) -> None:
    """Release a ManagedCluster marked for deletion.

    Optional so kopf adds no finalizer of its own; the controller
    finalizer keeps the object around until this handler is done.
    """
    _reconcile(memo, name, "cluster")


@kopf.on.event(*MANAGED_CLUSTERS, when=_cluster_removed)
def cleanup_removed_cluster(name: str, memo: kopf.Memo, **_: Any) -> None:
    """Delete the namespace of a ManagedCluster that is gone.

    Event handlers are not retried; failures are picked up by
    retry_orphaned_namespace_cleanup.
    """
    logger.info(f"ManagedCluster {name} removed")
    _reconcile(memo, name, "cluster_deleted")


@kopf.timer(
    "v1",
    "namespaces",
    labels={CLUSTER_LABEL: kopf.PRESENT},
    interval=ORPHAN_CLEANUP_RETRY_SECONDS,
    initial_delay=ORPHAN_CLEANUP_RETRY_SECONDS,
)
def retry_orphaned_namespace_cleanup(
    labels: dict[str, str], memo: kopf.Memo, **_: Any
) -> None:
    """Retry namespace cleanup every minute while its cluster is absent."""
    cluster_name = labels[CLUSTER_LABEL]
    if memo.state.get_store().get(MANAGED_CLUSTER, cluster_name) is not None:
        return
    logger.info(f"Namespace {cluster_name} outlived its ManagedCluster, cleaning up")
    _reconcile(memo, cluster_name, "namespace")


@kopf.timer(*MANAGED_CLUSTERS, interval=CONFIG.resync_interval, idle=CONFIG.resync_interval)
def resync_cluster(name: str, memo: kopf.Memo, **_: Any) -> None:
    """Periodic reconciliation to detect and repair drift."""
    logger.debug(f"Resyncing ManagedCluster {name}")
    _reconcile(memo, name, "resync")


@kopf.on.update(*MANIFEST_WORKS, labels={CLUSTER_LABEL: kopf.PRESENT}, when=_work_spec_changed)
def manifestwork_changed(labels: dict[str, str], memo: kopf.Memo, **_: Any) -> None:
    """Put back a klusterlet ManifestWork whose spec was changed by someone else."""
    _reconcile(memo, labels[CLUSTER_LABEL], "manifestwork")


@kopf.on.event(*MANIFEST_WORKS, labels={CLUSTER_LABEL: kopf.PRESENT}, when=_work_deleted)
def manifestwork_deleted(labels: dict[str, str], memo: kopf.Memo, **_: Any) -> None:
    """Recreate a klusterlet ManifestWork that was deleted."""
    _reconcile(memo, labels[CLUSTER_LABEL], "manifestwork")


def main() -> None:
    """Entry point for running the operator."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.info("Starting ManagedCluster import operator...")
    kopf.run(clusterwide=True)


if __name__ == "__main__":
    main()
