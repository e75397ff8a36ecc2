from decimal import Decimal

import pytest

from permit_backend.core.errors import NotFoundError, ValidationError
from permit_backend.models.models import Notification
from permit_backend.services.dispatcher import NotificationDispatcher
from permit_backend.services.payments import record_payment, update_payment_status
from permit_backend.services.permits import PermitRepository


@pytest.fixture
def permit(db_session, create_profile, create_permit_type, motorela_payload):
    citizen = create_profile()
    permit_type = create_permit_type("motorela")
    return PermitRepository(db_session).create(citizen.id, permit_type.id, None, {"motorela": motorela_payload})


def test_record_payment_starts_pending(db_session, permit):
    payment = record_payment(db_session, permit.id, Decimal("500.00"), payment_method="gcash")

    assert payment.payment_status == "pending"
    assert payment.amount == Decimal("500.00")
    assert payment.payment_method == "gcash"


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10")])
def test_record_payment_requires_positive_amount(db_session, permit, amount):
    with pytest.raises(ValidationError):
        record_payment(db_session, permit.id, amount)


def test_record_payment_for_missing_permit(db_session):
    with pytest.raises(NotFoundError):
        record_payment(db_session, 777, Decimal("100"))


def test_update_payment_status_keeps_reference(db_session, permit):
    payment = record_payment(db_session, permit.id, Decimal("500"), payment_reference="REF-1")

    updated = update_payment_status(db_session, payment.id, "failed")

    assert updated.payment_status == "failed"
    assert updated.payment_reference == "REF-1"


def test_update_payment_status_rejects_unknown_status(db_session, permit):
    payment = record_payment(db_session, permit.id, Decimal("500"))

    with pytest.raises(ValidationError):
        update_payment_status(db_session, payment.id, "refunded")


def test_completed_payment_on_pending_permit_schedules_nothing(db_session, session_factory, permit):
    payment = record_payment(db_session, permit.id, Decimal("500"))
    calls = []

    update_payment_status(
        db_session,
        payment.id,
        "completed",
        dispatcher=NotificationDispatcher(session_factory),
        schedule=lambda func, *args, **kwargs: calls.append((func, args, kwargs)),
    )

    assert calls == []


def test_completed_payment_on_approved_permit_sends_permit_ready(
    db_session, session_factory, create_profile, permit
):
    admin = create_profile(role="admin")
    permit.status = "approved"
    db_session.commit()
    payment = record_payment(db_session, permit.id, Decimal("500"))
    calls = []

    update_payment_status(
        db_session,
        payment.id,
        "completed",
        "GC-0001",
        actor_id=admin.id,
        dispatcher=NotificationDispatcher(session_factory),
        schedule=lambda func, *args, **kwargs: calls.append((func, args, kwargs)),
    )
    for func, args, kwargs in calls:
        func(*args, **kwargs)

    notification = db_session.query(Notification).one()
    assert notification.type == "permit_ready"
    assert notification.user_id == permit.applicant_id
