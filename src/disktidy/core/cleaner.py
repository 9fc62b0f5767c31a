"""Deletes the selected entries and reconciles the result afterwards."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from disktidy.core.errors import ErrorKind
from disktidy.models.clean_result import DeleteResult

if TYPE_CHECKING:
    from disktidy.core.controller import ScanController
    from disktidy.models.scan_result import FileEntry

log = logging.getLogger(__name__)


@dataclass(slots=True)
class CleanupPlan:
    """Selected entries split by the domain's delete-safety predicate."""

    entries: list[FileEntry] = field(default_factory=list)
    skipped: list[FileEntry] = field(default_factory=list)

    @property
    def keys(self) -> list[str]:
        return [e.key for e in self.entries]

    @property
    def total_size(self) -> int:
        return sum(e.size for e in self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)


class CleanupCoordinator:
    """Runs the delete call for a controller's selection.

    Exactly one delete call is made per ``delete()``. On success the
    deleted entries leave the result and the selection; entries the worker
    reports as failed stay. If the call itself fails nothing local changes.
    """

    def __init__(self, controller: ScanController, *, move_to_recycle_bin: bool = True) -> None:
        self._controller = controller
        self.move_to_recycle_bin = move_to_recycle_bin
        self.in_progress = False
        self.last_result: DeleteResult | None = None

    def plan(self) -> CleanupPlan:
        domain = self._controller.domain
        plan = CleanupPlan()
        for entry in self._controller.selection.selected_entries():
            if domain.is_safe_to_delete(entry):
                plan.entries.append(entry)
            else:
                plan.skipped.append(entry)
        return plan

    async def delete(self, *, move_to_recycle_bin: bool | None = None) -> DeleteResult | None:
        """Delete the safe part of the selection.

        Returns the worker's report, or None if nothing was deleted
        (empty selection, a delete already running, or the call failed).
        """
        if self.in_progress:
            log.debug("Delete already in progress, ignoring")
            return None
        plan = self.plan()
        if plan.skipped:
            log.info("Skipping %d entries not marked safe to delete", len(plan.skipped))
        if not plan:
            return None

        if move_to_recycle_bin is None:
            move_to_recycle_bin = self.move_to_recycle_bin
        controller = self._controller
        keys = plan.keys
        log.info("Deleting %d entries (%d bytes)", len(keys), plan.total_size)

        self.in_progress = True
        try:
            payload = await controller.backend.delete_files(keys, move_to_recycle_bin=move_to_recycle_bin)
            result = DeleteResult.from_payload(payload or {})
        except Exception as exc:
            log.warning("Delete failed: %s", exc)
            controller.errors.set(f"Failed to delete files: {exc}", ErrorKind.DELETE)
            return None
        finally:
            self.in_progress = False

        failed = {item.key for item in result.failed_items}
        controller.remove_entries(k for k in keys if k not in failed)
        if result.partial:
            log.warning("%d of %d entries could not be deleted", result.failed_count, len(keys))
            for item in result.failed_items:
                log.debug("  %s: %s", item.path, item.error)
        self.last_result = result
        return result
