"""Event filters for watched resources."""

import logging
from dataclasses import dataclass
from typing import Any

from utils import dig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldChangedPredicate:
    """Let through only events that change one sub-structure of an object.

    Updates pass when the value at `path` differs between the old and new
    object, so metadata-only writes (including this operator's own) do not
    cause reconciles. Creations and generic events are dropped; deletions
    pass.
    """

    path: tuple[str, ...] = ("spec",)
    on_create: bool = False
    on_delete: bool = True
    on_generic: bool = False

    def create(self, obj: dict[str, Any] | None) -> bool:
        return self.on_create

    def delete(self, obj: dict[str, Any] | None) -> bool:
        return self.on_delete

    def generic(self, obj: dict[str, Any] | None) -> bool:
        return self.on_generic

    def update(self, old: dict[str, Any] | None, new: dict[str, Any] | None) -> bool:
        if old is None:
            logger.error("Update event has no old object")
            return False
        if new is None:
            logger.error("Update event has no new object")
            return False
        return dig(old, self.path) != dig(new, self.path)
