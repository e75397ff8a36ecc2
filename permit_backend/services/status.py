from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..constants import PERMIT_STATUSES, PERMIT_TRANSITIONS, TERMINAL_PERMIT_STATUSES
from ..core.errors import InvalidStatusTransitionError, NotFoundError, ValidationError
from ..models.models import Permit, utcnow
from .audit import record_permit_audit
from .dispatcher import NotificationDispatcher
from .store import AggregateStore

logger = logging.getLogger(__name__)

Scheduler = Callable[..., Any]


def run_in_background(func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    """Start ``func`` on a daemon thread and return immediately."""
    thread = threading.Thread(target=func, args=args, kwargs=kwargs, daemon=True)
    thread.start()


def schedule_outcome_notification(
    schedule: Optional[Scheduler],
    dispatcher: Optional[NotificationDispatcher],
    permit_id: int,
    outcome: str,
    actor_id: Optional[int],
    admin_comment: Optional[str] = None,
) -> None:
    if dispatcher is None:
        logger.debug("No dispatcher configured; permit %s %s notification not scheduled", permit_id, outcome)
        return
    schedule = schedule or run_in_background
    try:
        schedule(
            dispatcher.dispatch_approval_outcome,
            permit_id,
            outcome=outcome,
            actor_id=actor_id,
            admin_comment=admin_comment,
        )
    except Exception:
        logger.exception("Could not schedule %s notification for permit %s", outcome, permit_id)


def check_transition(permit_id: int, current: str, target: str) -> None:
    allowed = PERMIT_TRANSITIONS.get(current, set())
    if target in allowed:
        return
    if settings.strict_status_transitions:
        raise InvalidStatusTransitionError(f"Cannot transition from {current} to {target}.")
    logger.warning("Permit %s: transition from %s to %s is outside the review workflow", permit_id, current, target)


def set_status(
    session: Session,
    permit_id: int,
    new_status: str,
    actor_id: Optional[int] = None,
    admin_comment: Optional[str] = None,
    *,
    dispatcher: Optional[NotificationDispatcher] = None,
    schedule: Optional[Scheduler] = None,
) -> Permit:
    """Persist a permit's status, then schedule the outcome notification.

    The status write either succeeds or raises here. Notification work for
    ``approved`` and ``rejected`` is handed to ``schedule`` (a daemon thread by
    default) and never reports back to this call.
    """
    if new_status not in PERMIT_STATUSES:
        raise ValidationError(f"Invalid permit status '{new_status}'.", field="status")

    store = AggregateStore(session)
    permit = store.select_one("permits", id=permit_id)
    if permit is None:
        raise NotFoundError(f"Permit {permit_id} not found.")
    previous = permit.status
    check_transition(permit_id, previous, new_status)

    patch = {"status": new_status, "updated_at": utcnow()}
    if admin_comment is not None:
        patch["admin_comment"] = admin_comment
    permit = store.update("permits", {"id": permit_id}, patch)
    logger.info("Permit %s status %s -> %s by %s", permit_id, previous, new_status, actor_id)

    record_permit_audit(
        session,
        permit_id,
        "status_changed",
        actor_id=actor_id,
        note={"from": previous, "to": new_status, "comment": admin_comment},
    )

    if new_status in TERMINAL_PERMIT_STATUSES:
        schedule_outcome_notification(
            schedule,
            dispatcher,
            permit_id,
            new_status,
            actor_id,
            admin_comment if new_status == "rejected" else None,
        )
    return permit
