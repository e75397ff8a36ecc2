"""Background notification of a permit's review outcome.

The dispatcher runs after the status write has been acknowledged to the caller.
It opens its own session, waits a short grace period, and reads the permit back
until the read reflects the outcome that was just written or the retry budget
runs out. It then sends at most one notification. Nothing raised here reaches
the caller that changed the status.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..core.errors import StoreError, TransientReadLagError
from ..models.models import Notification
from .notifications import send_notification
from .store import AggregateStore

logger = logging.getLogger(__name__)

DEFAULT_PERMIT_TITLE = "Permit"


@dataclass(frozen=True)
class PermitSnapshot:
    permit_id: int
    status: str
    applicant_id: Optional[int]
    permit_title: str
    admin_comment: Optional[str]
    has_completed_payment: bool


@dataclass(frozen=True)
class OutcomeMessage:
    type: str
    title: str
    message: str
    gcash_qr_code_url: Optional[str] = None


def load_permit_snapshot(session: Session, permit_id: int) -> Optional[PermitSnapshot]:
    store = AggregateStore(session)
    # Drop anything cached so the read goes back to the database.
    session.expire_all()
    permit = store.select_one("permits", id=permit_id)
    if permit is None:
        return None
    payments = store.select_many("payments", {"permit_id": permit_id})
    permit_type = store.select_one("permit_types", id=permit.permit_type_id)
    return PermitSnapshot(
        permit_id=permit.id,
        status=permit.status,
        applicant_id=permit.applicant_id,
        permit_title=(permit_type.title if permit_type and permit_type.title else DEFAULT_PERMIT_TITLE),
        admin_comment=permit.admin_comment,
        has_completed_payment=any(payment.payment_status == "completed" for payment in payments),
    )


def build_outcome_message(
    snapshot: PermitSnapshot,
    outcome: str,
    admin_comment: Optional[str] = None,
    qr_code_url: Optional[str] = None,
) -> OutcomeMessage:
    title = snapshot.permit_title
    if outcome == "rejected":
        message = f"Your {title} application has been rejected."
        if admin_comment:
            message += f" Reason: {admin_comment}"
        message += " Please review your application and resubmit if necessary."
        return OutcomeMessage(type="application_rejected", title="Application Rejected", message=message)
    if snapshot.has_completed_payment:
        return OutcomeMessage(
            type="permit_ready",
            title="Permit Ready",
            message=(
                f"Your {title} application has been approved and payment is completed. "
                "Your permit is ready to receive. Please use the GCash QR code below for reference."
            ),
            gcash_qr_code_url=qr_code_url,
        )
    return OutcomeMessage(
        type="payment_required",
        title="Application Approved",
        message=(
            f"Your {title} application has been approved. Please complete your payment "
            "using the GCash QR code below to proceed with your permit."
        ),
        gcash_qr_code_url=qr_code_url,
    )


class NotificationDispatcher:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        sender: Callable[..., Notification] = send_notification,
        reader: Callable[[Session, int], Optional[PermitSnapshot]] = load_permit_snapshot,
        grace_seconds: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        retry_backoff_seconds: Optional[float] = None,
        qr_code_url: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session_factory = session_factory
        self.sender = sender
        self.reader = reader
        self.grace_seconds = settings.notification_grace_seconds if grace_seconds is None else grace_seconds
        self.retry_attempts = max(
            1, settings.notification_retry_attempts if retry_attempts is None else retry_attempts
        )
        self.retry_backoff_seconds = (
            settings.notification_retry_backoff_seconds if retry_backoff_seconds is None else retry_backoff_seconds
        )
        self.qr_code_url = settings.gcash_qr_code_url if qr_code_url is None else qr_code_url
        self.sleep = sleep

    def _read_with_retry(self, session: Session, permit_id: int, expected: str) -> Optional[PermitSnapshot]:
        """Read until the permit shows ``expected``; otherwise return the last successful read."""
        best: Optional[PermitSnapshot] = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                snapshot = self.reader(session, permit_id)
                if snapshot is not None:
                    best = snapshot
                if snapshot is None or snapshot.status != expected:
                    raise TransientReadLagError(permit_id, expected, snapshot.status if snapshot else None)
                return snapshot
            except TransientReadLagError as exc:
                logger.info(
                    "Permit %s read %s/%s shows %r, waiting for %r",
                    permit_id,
                    attempt,
                    self.retry_attempts,
                    exc.observed,
                    expected,
                )
            except (StoreError, SQLAlchemyError) as exc:
                logger.info("Permit %s read %s/%s failed: %s", permit_id, attempt, self.retry_attempts, exc)
                session.rollback()
            if attempt < self.retry_attempts:
                self.sleep(self.retry_backoff_seconds)
        return best

    def dispatch_approval_outcome(
        self,
        permit_id: int,
        outcome: str = "approved",
        actor_id: Optional[int] = None,
        admin_comment: Optional[str] = None,
    ) -> Optional[Notification]:
        """Notify the applicant that ``permit_id`` was approved or rejected.

        Returns the notification that was sent, or ``None`` when nothing was sent.
        """
        try:
            if self.grace_seconds > 0:
                self.sleep(self.grace_seconds)
            with self.session_factory() as session:
                snapshot = self._read_with_retry(session, permit_id, outcome)
                if snapshot is None:
                    logger.warning("Permit %s could not be read after %s attempts; no notification sent",
                                   permit_id, self.retry_attempts)
                    return None
                if snapshot.status != outcome:
                    logger.warning(
                        "Permit %s still reads as %r after %s attempts; notifying %r anyway",
                        permit_id,
                        snapshot.status,
                        self.retry_attempts,
                        outcome,
                    )
                if not snapshot.applicant_id:
                    logger.warning("Permit %s has no applicant; cannot send notification", permit_id)
                    return None

                comment = admin_comment if admin_comment is not None else snapshot.admin_comment
                content = build_outcome_message(snapshot, outcome, comment, self.qr_code_url)
                notification = self.sender(
                    session,
                    actor_id=actor_id,
                    user_id=snapshot.applicant_id,
                    permit_id=permit_id,
                    title=content.title,
                    message=content.message,
                    type=content.type,
                    gcash_qr_code_url=content.gcash_qr_code_url,
                )
                logger.info("Permit %s: %s notification sent to user %s", permit_id, content.type,
                            snapshot.applicant_id)
                return notification
        except Exception:
            logger.exception("Failed to send %s notification for permit %s", outcome, permit_id)
            return None
