from typing import Callable

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ..api.dependencies import get_db, get_session_factory
from ..auth.jwt import require_roles
from ..constants import REVIEWER_ROLES
from ..models.models import Payment, Profile
from ..schemas.schemas import PaymentRead, PaymentStatusUpdate
from ..services import payments as payment_service
from ..services.dispatcher import NotificationDispatcher

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/{payment_id}/status", response_model=PaymentRead)
def update_payment_status(
    payment_id: int,
    payload: PaymentStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    user: Profile = Depends(require_roles(*REVIEWER_ROLES)),
) -> Payment:
    return payment_service.update_payment_status(
        db,
        payment_id,
        payload.payment_status,
        payload.payment_reference,
        actor_id=user.id,
        dispatcher=NotificationDispatcher(session_factory),
        schedule=background_tasks.add_task,
    )
