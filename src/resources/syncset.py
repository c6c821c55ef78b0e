"""Removal of SyncSets left behind by the SyncSet-based import flow."""

import logging

from constants import LEGACY_SYNC_SET_SUFFIXES, SYNC_SET
from store import ObjectStore

logger = logging.getLogger(__name__)


def delete_legacy_sync_sets(store: ObjectStore, cluster_name: str) -> list[str]:
    """Delete the klusterlet SyncSets of a cluster if they exist.

    Clusters are now bootstrapped through ManifestWorks; the SyncSets would
    fight over the same agent objects. Missing SyncSets, or hive not being
    installed at all, are fine.

    Returns:
        Names of the SyncSets that were deleted
    """
    deleted = []
    for suffix in LEGACY_SYNC_SET_SUFFIXES:
        name = cluster_name + suffix
        if store.get(SYNC_SET, name, cluster_name) is None:
            continue
        if store.delete(SYNC_SET, name, cluster_name):
            logger.info(f"Deleted legacy SyncSet {cluster_name}/{name}")
            deleted.append(name)
    return deleted
