"""Ordered deletion of a permit and everything that hangs off it."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.errors import StoreError
from .store import AggregateStore
from .subtypes import SUBTYPE_SPECS

logger = logging.getLogger(__name__)

# Rows keyed by permit_id that go after the subtype aggregates, before the permit.
DEPENDENT_TABLES = ("permit_documents", "payments", "permit_audit", "uploaded_images")


@dataclass
class CascadeReport:
    permit_id: int
    deleted: Dict[str, int] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)

    def count(self, table: str, amount: int) -> None:
        self.deleted[table] = self.deleted.get(table, 0) + amount


class CascadeDeletionEngine:
    def __init__(self, store: AggregateStore) -> None:
        self.store = store

    def _best_effort(self, report: CascadeReport, table: str, key: Dict[str, int]) -> None:
        try:
            report.count(table, self.store.delete(table, key))
        except StoreError as exc:
            logger.warning("Permit %s: could not delete from %s: %s", report.permit_id, table, exc)
            report.failed.append(table)

    def delete_subtype(self, permit_id: int, kind: str, report: Optional[CascadeReport] = None) -> CascadeReport:
        """Remove one subtype aggregate of ``permit_id``: the details root, then its children."""
        report = report or CascadeReport(permit_id=permit_id)
        spec = SUBTYPE_SPECS[kind]
        child_ids: Dict[str, int] = {}
        try:
            root = self.store.select_one(spec.root_table, permit_id=report.permit_id)
        except StoreError as exc:
            logger.warning("Permit %s: could not read %s: %s", report.permit_id, spec.root_table, exc)
            root = None
        if root is not None:
            for child in spec.children:
                child_id = getattr(root, child.fk_column)
                if child_id is not None:
                    child_ids[child.name] = child_id

        # Root first: it holds the foreign keys into the child tables.
        self._best_effort(report, spec.root_table, {"permit_id": report.permit_id})
        for child in spec.children:
            if child.name in child_ids:
                self._best_effort(report, child.table, {"id": child_ids[child.name]})
            self._best_effort(report, child.table, {"permit_id": report.permit_id})
        return report

    def _detach_notifications(self, report: CascadeReport) -> None:
        try:
            notifications = self.store.select_many("notifications", {"permit_id": report.permit_id})
            for notification in notifications:
                self.store.update("notifications", {"id": notification.id}, {"permit_id": None})
        except StoreError as exc:
            logger.warning("Permit %s: could not detach notifications: %s", report.permit_id, exc)
            report.failed.append("notifications")

    def delete(self, permit_id: int) -> CascadeReport:
        """Delete ``permit_id`` and all dependent rows.

        Every step but the last is best-effort; a missing row is not an error.
        Failing to delete the permit row itself is raised as ``StoreError``.
        """
        report = CascadeReport(permit_id=permit_id)
        for kind in SUBTYPE_SPECS:
            self.delete_subtype(permit_id, kind, report)
        for table in DEPENDENT_TABLES:
            self._best_effort(report, table, {"permit_id": permit_id})
        self._detach_notifications(report)

        report.count("permits", self.store.delete("permits", {"id": permit_id}))
        logger.info("Permit %s deleted (%s)", permit_id, report.deleted)
        return report
