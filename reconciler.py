"""
reconciler.py – Push automation metadata for each extracted test record.

Every record is handled on its own: a failed update is logged and counted,
and the run moves on to the next record.  Nothing is retried or rolled back.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Iterable

from ado_client import ADOClient, AutomationUpdateError
from models import RunSummary, TestRecord

logger = logging.getLogger("junit-ado-sync")


def count_known(records: Iterable[TestRecord], point_map: dict[int, int]) -> int:
    """Number of records whose Test Case has a test point in the suite."""
    return sum(1 for r in records if r.identifier in point_map)


class Reconciler:
    """Applies the two-phase automation update to each record in order."""

    def __init__(
        self,
        ado: ADOClient,
        id_factory: Callable[[], uuid.UUID] = uuid.uuid4,
    ) -> None:
        self._ado = ado
        self._id_factory = id_factory

    def update_one(self, record: TestRecord) -> bool:
        """Update a single work item; return True on success."""
        automated_test_id = str(self._id_factory())
        try:
            self._ado.apply_automation(record, automated_test_id)
        except AutomationUpdateError as exc:
            if exc.metadata_applied:
                logger.error(
                    "Error while updating TC %s: %s (automation fields were already set)",
                    record.identifier,
                    exc.reason,
                )
            else:
                logger.error("Error while updating TC %s: %s", record.identifier, exc.reason)
            return False
        logger.info("Work item %s updated.", record.identifier)
        return True

    def reconcile(
        self, records: list[TestRecord], summary: RunSummary
    ) -> RunSummary:
        """Update every record, tallying success / failed into *summary*."""
        for record in records:
            if self.update_one(record):
                summary.success += 1
            else:
                summary.failed += 1
                summary.failed_ids.append(record.identifier)
        logger.info(
            "Automation sync finished: %d updated, %d failed.",
            summary.success,
            summary.failed,
        )
        return summary
