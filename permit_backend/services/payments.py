import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ..constants import PAYMENT_STATUSES
from ..core.errors import NotFoundError, ValidationError
from ..models.models import Payment, Permit, utcnow
from .dispatcher import NotificationDispatcher
from .status import Scheduler, schedule_outcome_notification

logger = logging.getLogger(__name__)


def record_payment(
    session: Session,
    permit_id: int,
    amount: Decimal,
    payment_method: Optional[str] = None,
    payment_reference: Optional[str] = None,
) -> Payment:
    if not session.get(Permit, permit_id):
        raise NotFoundError(f"Permit {permit_id} not found.")
    if amount is None or Decimal(str(amount)) <= 0:
        raise ValidationError("Amount must be greater than zero", field="amount")
    payment = Payment(
        permit_id=permit_id,
        amount=Decimal(str(amount)),
        payment_method=payment_method,
        payment_reference=payment_reference,
        payment_status="pending",
        created_at=utcnow(),
    )
    session.add(payment)
    session.commit()
    session.refresh(payment)
    logger.info("Payment %s recorded for permit %s", payment.id, permit_id)
    return payment


def update_payment_status(
    session: Session,
    payment_id: int,
    payment_status: str,
    payment_reference: Optional[str] = None,
    *,
    actor_id: Optional[int] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    schedule: Optional[Scheduler] = None,
) -> Payment:
    """Set a payment's status; completing it on an approved permit notifies the applicant."""
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"Invalid payment status '{payment_status}'.", field="payment_status")
    payment = session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError(f"Payment {payment_id} not found.")

    payment.payment_status = payment_status
    if payment_reference:
        payment.payment_reference = payment_reference
    session.add(payment)
    session.commit()
    session.refresh(payment)
    logger.info("Payment %s marked %s", payment.id, payment_status)

    if payment_status == "completed":
        permit = session.get(Permit, payment.permit_id)
        if permit is not None and permit.status == "approved":
            schedule_outcome_notification(schedule, dispatcher, permit.id, "approved", actor_id)
    return payment
