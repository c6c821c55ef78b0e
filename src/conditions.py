"""Reachability classification and import status conditions."""

import copy
import logging
from typing import Any

from kubernetes.client import ApiException

from constants import (
    AVAILABLE_CONDITION,
    IMPORT_FAILED_REASON,
    IMPORT_SUCCEEDED_CONDITION,
    IMPORT_SUCCEEDED_MESSAGE,
    IMPORT_SUCCEEDED_REASON,
    MANAGED_CLUSTER,
)
from models import Condition, ConditionStatus
from store import ObjectStore
from utils import get_condition, merge_patch, name_of, set_condition


def is_offline(cluster: dict[str, Any]) -> bool:
    """Check whether a cluster should be treated as unreachable.

    Only an explicit True availability condition counts as online; a
    cluster nobody has reported on yet is offline.
    """
    condition = get_condition(cluster, AVAILABLE_CONDITION)
    if condition is None:
        return True
    return condition.get("status") != ConditionStatus.TRUE.value


def import_condition(error: Exception | None, context: str = "") -> Condition:
    """Build the import condition for an import outcome."""
    if error is None:
        return Condition(
            type=IMPORT_SUCCEEDED_CONDITION,
            status=ConditionStatus.TRUE,
            reason=IMPORT_SUCCEEDED_REASON,
            message=IMPORT_SUCCEEDED_MESSAGE,
        )
    message = str(error)
    if context:
        message = f"{message}: {context}"
    return Condition(
        type=IMPORT_SUCCEEDED_CONDITION,
        status=ConditionStatus.FALSE,
        reason=IMPORT_FAILED_REASON,
        message=message,
    )


class ImportConditionRecorder:
    """Record import outcomes as a status condition on the ManagedCluster."""

    def __init__(
        self, store: ObjectStore, logger: logging.Logger | None = None
    ) -> None:
        self._store = store
        self._log = logger or logging.getLogger(__name__)

    def record(
        self, cluster: dict[str, Any], error: Exception | None, context: str = ""
    ) -> Exception | None:
        """Write the import condition and hand back `error` unchanged.

        The patch is computed against a copy of the cluster taken before the
        condition is set, so only the conditions list is sent and unrelated
        status fields written concurrently by others survive.

        A failed patch is only logged when the import itself failed, so the
        import error stays the one reported. After a successful import the
        patch error is raised instead, to retry until the condition lands.
        """
        condition = import_condition(error, context)
        base = copy.deepcopy(cluster)
        set_condition(
            cluster.setdefault("status", {}),
            condition.type,
            condition.status.value,
            condition.reason,
            condition.message,
        )
        patch = merge_patch(base.get("status") or {}, cluster["status"])
        if not patch:
            return error

        try:
            self._store.patch_status(MANAGED_CLUSTER, name_of(cluster), {"status": patch})
        except ApiException as e:
            if error is None:
                raise
            self._log.error(
                f"Failed to set {condition.type} on {name_of(cluster)}: {e}"
            )
        return error
