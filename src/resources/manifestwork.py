"""ManifestWork distribution of the import bundle to reachable clusters."""

import logging
from typing import Any

from constants import CLUSTER_LABEL, MANIFEST_WORK, MANIFEST_WORK_SUFFIX
from models import ImportBundle
from store import ObjectStore
from utils import name_of, owner_reference

logger = logging.getLogger(__name__)


def manifest_work_name(cluster_name: str) -> str:
    return cluster_name + MANIFEST_WORK_SUFFIX


def render_manifest_work(cluster: dict[str, Any], bundle: ImportBundle) -> dict[str, Any]:
    """Build the ManifestWork carrying the whole bundle, CRDs first."""
    name = name_of(cluster)
    return {
        "apiVersion": MANIFEST_WORK.api_version,
        "kind": MANIFEST_WORK.kind,
        "metadata": {
            "name": manifest_work_name(name),
            "namespace": name,
            "labels": {CLUSTER_LABEL: name},
            "ownerReferences": [owner_reference(cluster)],
        },
        "spec": {"workload": {"manifests": bundle.all_objects()}},
    }


def upsert_manifest_work(
    store: ObjectStore, cluster: dict[str, Any], bundle: ImportBundle
) -> bool:
    """Create the ManifestWork, or replace its spec if it changed.

    The spec is superseded as a whole; manifests dropped from the bundle
    disappear from the work.

    Returns:
        True if a write was made
    """
    desired = render_manifest_work(cluster, bundle)
    name = desired["metadata"]["name"]
    namespace = desired["metadata"]["namespace"]

    existing = store.get(MANIFEST_WORK, name, namespace)
    if existing is None:
        store.create(desired)
        logger.info(f"Created ManifestWork {namespace}/{name}")
        return True

    if existing.get("spec") == desired["spec"]:
        return False

    existing["spec"] = desired["spec"]
    store.update(existing)
    logger.info(f"Updated ManifestWork {namespace}/{name}")
    return True


def delete_manifest_work(store: ObjectStore, cluster_name: str) -> bool:
    """Delete the cluster's ManifestWork.

    Returns:
        True if the work still exists (deletion is pending its finalizers)
    """
    name = manifest_work_name(cluster_name)
    if store.delete(MANIFEST_WORK, name, cluster_name):
        logger.info(f"Deleted ManifestWork {cluster_name}/{name}")
    return store.get(MANIFEST_WORK, name, cluster_name) is not None
