import pytest

from permit_backend.core.errors import NotFoundError, PartialWriteError, StoreError, ValidationError
from permit_backend.models.models import (
    BuildingConstructionDetail,
    BuildingInspector,
    BuildingPermitApplicant,
    BuildingPermitDetail,
    BusinessEmployment,
    BusinessEstablishment,
    BusinessLessor,
    BusinessPermitDetail,
    BusinessTaxpayer,
    MotorelaPermit,
    Permit,
)
from permit_backend.services.store import AggregateStore
from permit_backend.services.subtypes import SubtypeSynchronizer


def _create_permit(db_session, permit_type, applicant=None):
    permit = Permit(
        applicant_id=applicant.id if applicant else None,
        permit_type_id=permit_type.id,
        status="pending",
    )
    db_session.add(permit)
    db_session.commit()
    return permit


def test_building_sync_twice_keeps_one_row_per_child(db_session, create_permit_type, building_payload):
    permit = _create_permit(db_session, create_permit_type("building"))
    synchronizer = SubtypeSynchronizer(AggregateStore(db_session))

    first = synchronizer.sync(permit.id, "building", building_payload)
    second = synchronizer.sync(permit.id, "building", building_payload)

    assert first.root_id == second.root_id
    assert first.child_ids == second.child_ids
    for model in (BuildingPermitApplicant, BuildingConstructionDetail, BuildingInspector, BuildingPermitDetail):
        assert db_session.query(model).filter_by(permit_id=permit.id).count() == 1

    root = db_session.query(BuildingPermitDetail).filter_by(permit_id=permit.id).one()
    assert root.applicant_id == first.child_ids["applicant"]
    assert root.construction_id == first.child_ids["construction"]
    assert root.inspector_id == first.child_ids["inspector"]
    assert root.engineer_id == first.child_ids["engineer"]


def test_blank_numeric_fields_are_stored_as_null(db_session, create_permit_type, building_payload):
    permit = _create_permit(db_session, create_permit_type("building"))

    SubtypeSynchronizer(AggregateStore(db_session)).sync(permit.id, "building", building_payload)

    construction = db_session.query(BuildingConstructionDetail).filter_by(permit_id=permit.id).one()
    assert construction.lot_area == 120.5
    assert construction.floor_area is None
    assert construction.cost_of_construction == 1500000.0


def test_sync_update_overwrites_existing_children(db_session, create_permit_type, building_payload):
    permit = _create_permit(db_session, create_permit_type("building"))
    synchronizer = SubtypeSynchronizer(AggregateStore(db_session))
    synchronizer.sync(permit.id, "building", building_payload)

    changed = dict(building_payload, scope_of_work="Renovation", lot_area="")
    synchronizer.sync(permit.id, "building", changed)

    construction = db_session.query(BuildingConstructionDetail).filter_by(permit_id=permit.id).one()
    assert construction.scope_of_work == "Renovation"
    assert construction.lot_area is None


def test_blank_lessor_is_not_created(db_session, create_permit_type, business_payload):
    permit = _create_permit(db_session, create_permit_type("business"))

    result = SubtypeSynchronizer(AggregateStore(db_session)).sync(permit.id, "business", business_payload)

    assert result.child_ids["lessor"] is None
    assert db_session.query(BusinessLessor).count() == 0
    root = db_session.query(BusinessPermitDetail).filter_by(permit_id=permit.id).one()
    assert root.lessor_id is None
    assert root.tax_year == 2025
    establishment = db_session.query(BusinessEstablishment).filter_by(permit_id=permit.id).one()
    assert establishment.no_of_units == 1
    assert establishment.essential_sales is None
    employment = db_session.query(BusinessEmployment).filter_by(permit_id=permit.id).one()
    assert employment.total_employees == 2
    assert employment.employees_in_lgu is None


def test_existing_lessor_is_kept_when_fields_are_cleared(db_session, create_permit_type, business_payload):
    permit = _create_permit(db_session, create_permit_type("business"))
    synchronizer = SubtypeSynchronizer(AggregateStore(db_session))

    with_lessor = dict(business_payload, lessor_name="R. Tan", lessor_address="5 Colon St.")
    created = synchronizer.sync(permit.id, "business", with_lessor)
    assert created.child_ids["lessor"] is not None

    cleared = synchronizer.sync(permit.id, "business", business_payload)

    assert cleared.child_ids["lessor"] == created.child_ids["lessor"]
    assert db_session.query(BusinessLessor).filter_by(permit_id=permit.id).count() == 1
    root = db_session.query(BusinessPermitDetail).filter_by(permit_id=permit.id).one()
    assert root.lessor_id == created.child_ids["lessor"]


def test_failed_child_write_does_not_stop_siblings(db_session, create_permit_type, building_payload, monkeypatch):
    permit = _create_permit(db_session, create_permit_type("building"))
    store = AggregateStore(db_session)
    original_insert = store.insert

    def failing_insert(table, row):
        if table == "building_inspectors":
            raise StoreError(table, "insert", "simulated outage")
        return original_insert(table, row)

    monkeypatch.setattr(store, "insert", failing_insert)

    with pytest.raises(PartialWriteError) as excinfo:
        SubtypeSynchronizer(store).sync(permit.id, "building", building_payload)

    assert excinfo.value.failed_parts == ["inspector"]
    assert excinfo.value.permit_id == permit.id
    assert db_session.query(BuildingPermitApplicant).filter_by(permit_id=permit.id).count() == 1
    assert db_session.query(BuildingConstructionDetail).filter_by(permit_id=permit.id).count() == 1
    assert db_session.query(BuildingInspector).count() == 0
    root = db_session.query(BuildingPermitDetail).filter_by(permit_id=permit.id).one()
    assert root.inspector_id is None
    assert root.applicant_id is not None


def test_child_row_vanishing_mid_update_does_not_stop_siblings(
    db_session, create_permit_type, building_payload, monkeypatch
):
    permit = _create_permit(db_session, create_permit_type("building"))
    store = AggregateStore(db_session)
    first = SubtypeSynchronizer(store).sync(permit.id, "building", building_payload)
    original_update = store.update

    def vanishing_update(table, key, patch):
        if table == "building_inspectors":
            raise NotFoundError(f"No {table} row matches {key}.")
        return original_update(table, key, patch)

    monkeypatch.setattr(store, "update", vanishing_update)

    changed = dict(building_payload, scope_of_work="Renovation")
    with pytest.raises(PartialWriteError) as excinfo:
        SubtypeSynchronizer(store).sync(permit.id, "building", changed)

    assert excinfo.value.failed_parts == ["inspector"]
    construction = db_session.query(BuildingConstructionDetail).filter_by(permit_id=permit.id).one()
    assert construction.scope_of_work == "Renovation"
    root = db_session.query(BuildingPermitDetail).filter_by(permit_id=permit.id).one()
    assert root.inspector_id == first.child_ids["inspector"]


def test_missing_required_field_raises_before_any_write(db_session, create_permit_type, motorela_payload):
    permit = _create_permit(db_session, create_permit_type("motorela"))
    payload = dict(motorela_payload, plate_no="  ")

    with pytest.raises(ValidationError) as excinfo:
        SubtypeSynchronizer(AggregateStore(db_session)).sync(permit.id, "motorela", payload)

    assert str(excinfo.value) == "Plate No is required"
    assert excinfo.value.field == "plate_no"
    assert db_session.query(MotorelaPermit).count() == 0


def test_non_numeric_value_is_rejected(db_session, create_permit_type, business_payload):
    permit = _create_permit(db_session, create_permit_type("business"))
    payload = dict(business_payload, capitalization="fifty thousand")

    with pytest.raises(ValidationError) as excinfo:
        SubtypeSynchronizer(AggregateStore(db_session)).sync(permit.id, "business", payload)

    assert str(excinfo.value) == "Capitalization must be a number"
    assert db_session.query(BusinessTaxpayer).count() == 0


def test_motorela_sync_writes_single_flat_row(db_session, create_permit_type, motorela_payload):
    permit = _create_permit(db_session, create_permit_type("motorela"))
    payload = dict(motorela_payload, cedula_no="", place_issued="")

    result = SubtypeSynchronizer(AggregateStore(db_session)).sync(permit.id, "motorela", payload)

    row = db_session.query(MotorelaPermit).filter_by(permit_id=permit.id).one()
    assert result.root_id == row.id
    assert result.child_ids == {}
    assert row.plate_no == "ABC-123"
    assert row.cedula_no is None
    assert row.place_issued is None
