"""Normalize a permit's subtype payload into its child tables.

Each subtype is a small graph: child rows keyed by ``permit_id`` (unique) and a
"details" root row that points at them. Children are upserted by ``permit_id``
first, then the root is upserted with the resulting child ids. Writes are
independent store calls; a failed write is logged, its siblings still run, and
the caller gets a ``PartialWriteError`` listing what did not land.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel

from ..core.errors import NotFoundError, PartialWriteError, StoreError
from ..schemas.permit_details import parse_subtype_payload
from .store import AggregateStore, row_to_dict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChildSpec:
    name: str
    table: str
    fk_column: str
    # (table column, payload field)
    columns: Tuple[Tuple[str, str], ...]
    optional: bool = False

    def values_from(self, payload: BaseModel) -> Dict[str, Any]:
        return {column: getattr(payload, source) for column, source in self.columns}

    def is_blank(self, payload: BaseModel) -> bool:
        return not any(getattr(payload, source) for _, source in self.columns)


@dataclass(frozen=True)
class SubtypeSpec:
    kind: str
    root_table: str
    root_columns: Tuple[Tuple[str, str], ...]
    children: Tuple[ChildSpec, ...] = ()

    def root_values_from(self, payload: BaseModel) -> Dict[str, Any]:
        return {column: getattr(payload, source) for column, source in self.root_columns}


@dataclass
class SyncResult:
    kind: str
    root_id: Optional[int] = None
    child_ids: Dict[str, Optional[int]] = field(default_factory=dict)


BUILDING = SubtypeSpec(
    kind="building",
    root_table="building_permit_details",
    root_columns=(
        ("application_no", "application_no"),
        ("bp_no", "bp_no"),
        ("owner_signature_date", "owner_signature_date"),
    ),
    children=(
        ChildSpec(
            name="applicant",
            table="building_permit_applicants",
            fk_column="applicant_id",
            columns=(
                ("lastname", "applicant_lastname"),
                ("firstname", "applicant_firstname"),
                ("middle_initial", "applicant_mi"),
                ("tin", "applicant_tin"),
                ("ownership_form", "ownership_form"),
                ("address", "address"),
                ("ctc_no", "applicant_ctc_no"),
                ("ctc_date", "applicant_ctc_date"),
                ("ctc_place", "applicant_ctc_place"),
                ("signature_date", "applicant_signature_date"),
            ),
        ),
        ChildSpec(
            name="construction",
            table="building_construction_details",
            fk_column="construction_id",
            columns=(
                ("location", "construction_location"),
                ("scope_of_work", "scope_of_work"),
                ("occupancy_use", "occupancy_use"),
                ("lot_area", "lot_area"),
                ("floor_area", "floor_area"),
                ("cost_of_construction", "cost_of_construction"),
                ("date_of_construction", "date_of_construction"),
            ),
        ),
        ChildSpec(
            name="inspector",
            table="building_inspectors",
            fk_column="inspector_id",
            columns=(
                ("name", "inspector_name"),
                ("address", "inspector_address"),
                ("prc_no", "prc_no"),
                ("ptr_no", "ptr_no"),
                ("issued_at", "inspector_issued_at"),
                ("validity", "inspector_validity"),
            ),
        ),
        ChildSpec(
            name="engineer",
            table="building_engineers",
            fk_column="engineer_id",
            columns=(
                ("ctc_no", "engineer_ctc_no"),
                ("ctc_date", "engineer_ctc_date"),
                ("ctc_place", "engineer_ctc_place"),
            ),
        ),
    ),
)

BUSINESS = SubtypeSpec(
    kind="business",
    root_table="business_permit_details",
    root_columns=(
        ("tax_year", "tax_year"),
        ("control_no", "control_no"),
        ("mode_of_payment", "mode_of_payment"),
        ("application_type", "application_type"),
        ("amendment", "amendment"),
        ("org_type", "org_type"),
    ),
    children=(
        ChildSpec(
            name="taxpayer",
            table="business_taxpayers",
            fk_column="taxpayer_id",
            columns=(
                ("lastname", "tax_payer_lastname"),
                ("firstname", "tax_payer_firstname"),
                ("middlename", "tax_payer_middlename"),
                ("tin", "tin"),
                ("ctc_no", "ctc_no"),
                ("address", "owner_address"),
                ("phone", "phone"),
                ("email", "email"),
            ),
        ),
        ChildSpec(
            name="establishment",
            table="business_establishments",
            fk_column="establishment_id",
            columns=(
                ("business_name", "business_name"),
                ("nature_of_business", "nature_of_business"),
                ("business_address", "business_address"),
                ("business_area", "business_area"),
                ("business_activity_code", "business_activity_code"),
                ("line_of_business", "line_of_business"),
                ("no_of_units", "no_of_units"),
                ("capitalization", "capitalization"),
                ("essential_sales", "essential_sales"),
                ("non_essential_sales", "non_essential_sales"),
            ),
        ),
        ChildSpec(
            name="employment",
            table="business_employment",
            fk_column="employment_id",
            columns=(
                ("total_employees", "total_employees"),
                ("employees_in_lgu", "employees_in_lgu"),
            ),
        ),
        ChildSpec(
            name="lessor",
            table="business_lessors",
            fk_column="lessor_id",
            columns=(
                ("lessor_name", "lessor_name"),
                ("lessor_address", "lessor_address"),
            ),
            optional=True,
        ),
    ),
)

MOTORELA = SubtypeSpec(
    kind="motorela",
    root_table="motorela_permits",
    root_columns=tuple(
        (name, name)
        for name in (
            "application_no",
            "date",
            "body_no",
            "chassis_no",
            "make",
            "motor_no",
            "route",
            "plate_no",
            "operator",
            "operator_address",
            "contact",
            "driver",
            "driver_address",
            "cedula_no",
            "place_issued",
            "date_issued",
        )
    ),
)

SUBTYPE_SPECS: Dict[str, SubtypeSpec] = {spec.kind: spec for spec in (BUILDING, BUSINESS, MOTORELA)}


class SubtypeSynchronizer:
    def __init__(self, store: AggregateStore) -> None:
        self.store = store

    def _upsert_by_permit(self, table: str, permit_id: int, values: Dict[str, Any]) -> int:
        existing = self.store.select_one(table, permit_id=permit_id)
        if existing is not None:
            row = self.store.update(table, {"id": existing.id}, values)
        else:
            row = self.store.insert(table, {"permit_id": permit_id, **values})
        return row.id

    def _existing_id(self, table: str, permit_id: int) -> Optional[int]:
        try:
            row = self.store.select_one(table, permit_id=permit_id)
        except StoreError:
            return None
        return row.id if row is not None else None

    def sync(self, permit_id: int, kind: str, payload: Any) -> SyncResult:
        spec = SUBTYPE_SPECS[kind]
        details = parse_subtype_payload(kind, payload)
        result = SyncResult(kind=kind)
        failed: List[str] = []

        for child in spec.children:
            try:
                existing = self.store.select_one(child.table, permit_id=permit_id)
                if existing is None and child.optional and child.is_blank(details):
                    result.child_ids[child.name] = None
                    continue
                result.child_ids[child.name] = self._upsert_by_permit(
                    child.table, permit_id, child.values_from(details)
                )
            except (StoreError, NotFoundError) as exc:
                logger.error("Permit %s: %s %s write failed: %s", permit_id, kind, child.name, exc)
                failed.append(child.name)
                # Only point at a child that is actually stored for this permit.
                result.child_ids[child.name] = self._existing_id(child.table, permit_id)

        root_values = spec.root_values_from(details)
        for child in spec.children:
            root_values[child.fk_column] = result.child_ids.get(child.name)
        try:
            result.root_id = self._upsert_by_permit(spec.root_table, permit_id, root_values)
        except (StoreError, NotFoundError) as exc:
            logger.error("Permit %s: %s details write failed: %s", permit_id, kind, exc)
            failed.append("details")

        if failed:
            raise PartialWriteError(permit_id, kind, failed, result)
        logger.info("Permit %s: %s details synchronized (root=%s)", permit_id, kind, result.root_id)
        return result


def load_aggregate(store: AggregateStore, permit_id: int, kind: str) -> Optional[Dict[str, Any]]:
    """Read a subtype aggregate back as nested dicts.

    The root's foreign keys are followed first; any child the root does not
    point at is looked up by ``permit_id``. Returns ``None`` when no row exists.
    """
    spec = SUBTYPE_SPECS[kind]
    root = store.select_one(spec.root_table, permit_id=permit_id)
    aggregate = row_to_dict(root) if root is not None else {}
    for child in spec.children:
        row = None
        child_id = aggregate.get(child.fk_column)
        if child_id is not None:
            row = store.select_one(child.table, id=child_id)
        if row is None:
            row = store.select_one(child.table, permit_id=permit_id)
        if row is not None:
            aggregate[child.name] = row_to_dict(row)
    return aggregate or None


def aggregate_to_payload(kind: str, aggregate: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a stored aggregate back into the payload field names it came from."""
    spec = SUBTYPE_SPECS[kind]
    payload: Dict[str, Any] = {}
    for column, source in spec.root_columns:
        if column in aggregate:
            payload[source] = aggregate[column]
    for child in spec.children:
        child_row = aggregate.get(child.name) or {}
        for column, source in child.columns:
            if column in child_row:
                payload[source] = child_row[column]
    return payload
