from typing import Callable, List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..api.dependencies import get_db, get_session_factory
from ..auth.jwt import get_current_user, require_roles
from ..constants import REVIEWER_ROLES
from ..models.models import Permit, PermitDocument, Payment, PermitType, Profile
from ..schemas.schemas import (
    ApprovedPermitRead,
    CascadeReportRead,
    DashboardStats,
    DocumentCreate,
    DocumentRead,
    PaymentCreate,
    PaymentRead,
    PermitCreate,
    PermitDetailRead,
    PermitRead,
    PermitStatusUpdate,
    PermitTypeRead,
    PermitUpdate,
)
from ..services import documents as document_service
from ..services import payments as payment_service
from ..services import status as status_service
from ..services.dispatcher import NotificationDispatcher
from ..services.permits import PermitRepository

router = APIRouter(prefix="/permits", tags=["permits"])


def _ensure_access(permit: Permit, user: Profile) -> None:
    if user.has_any_role(*REVIEWER_ROLES):
        return
    if permit.applicant_id != user.id:
        raise HTTPException(status_code=403, detail="Not permitted to access this permit.")


@router.get("/types", response_model=List[PermitTypeRead])
def list_permit_types(
    db: Session = Depends(get_db),
    _: Profile = Depends(get_current_user),
) -> List[PermitType]:
    return PermitRepository(db).get_permit_types()


@router.post("/", response_model=PermitRead, status_code=status.HTTP_201_CREATED)
def create_permit(
    payload: PermitCreate,
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
) -> Permit:
    repository = PermitRepository(db)
    permit = repository.create(user.id, payload.permit_type_id, payload.address, payload.details)
    return repository.get_permit(permit.id)


@router.get("/", response_model=List[PermitRead])
def list_my_permits(
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
) -> List[Permit]:
    return PermitRepository(db).list_for_user(user.id)


@router.get("/all", response_model=List[PermitRead])
def list_all_permits(
    db: Session = Depends(get_db),
    _: Profile = Depends(require_roles(*REVIEWER_ROLES)),
) -> List[Permit]:
    return PermitRepository(db).list_all()


@router.get("/approved", response_model=List[ApprovedPermitRead])
def list_approved_permits(
    db: Session = Depends(get_db),
    _: Profile = Depends(require_roles(*REVIEWER_ROLES)),
) -> List[ApprovedPermitRead]:
    return PermitRepository(db).list_approved()


@router.get("/stats", response_model=DashboardStats)
def dashboard_stats(
    db: Session = Depends(get_db),
    _: Profile = Depends(require_roles(*REVIEWER_ROLES)),
) -> DashboardStats:
    return PermitRepository(db).dashboard_stats()


@router.get("/{permit_id}", response_model=PermitDetailRead)
def get_permit(
    permit_id: int,
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
) -> PermitDetailRead:
    repository = PermitRepository(db)
    _ensure_access(repository.get_permit(permit_id), user)
    return repository.get_by_id(permit_id)


@router.put("/{permit_id}", response_model=PermitRead)
def update_permit(
    permit_id: int,
    payload: PermitUpdate,
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
) -> Permit:
    repository = PermitRepository(db)
    _ensure_access(repository.get_permit(permit_id), user)
    repository.update(permit_id, payload.permit_type_id, payload.address, payload.details, actor_id=user.id)
    return repository.get_permit(permit_id)


@router.delete("/{permit_id}", response_model=CascadeReportRead)
def delete_permit(
    permit_id: int,
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
) -> CascadeReportRead:
    repository = PermitRepository(db)
    _ensure_access(repository.get_permit(permit_id), user)
    report = repository.delete(permit_id)
    return CascadeReportRead(permit_id=report.permit_id, deleted=report.deleted, failed=report.failed)


@router.post("/{permit_id}/status", response_model=PermitRead)
def update_permit_status(
    permit_id: int,
    payload: PermitStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    user: Profile = Depends(require_roles(*REVIEWER_ROLES)),
) -> Permit:
    status_service.set_status(
        db,
        permit_id,
        payload.status,
        actor_id=user.id,
        admin_comment=payload.admin_comment,
        dispatcher=NotificationDispatcher(session_factory),
        schedule=background_tasks.add_task,
    )
    return PermitRepository(db).get_permit(permit_id)


@router.post("/{permit_id}/documents", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
def upload_document(
    permit_id: int,
    payload: DocumentCreate,
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
) -> PermitDocument:
    _ensure_access(PermitRepository(db).get_permit(permit_id), user)
    return document_service.add_document(db, permit_id, payload.file_path, payload.file_name, actor_id=user.id)


@router.get("/{permit_id}/documents", response_model=List[DocumentRead])
def list_documents(
    permit_id: int,
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
) -> List[PermitDocument]:
    _ensure_access(PermitRepository(db).get_permit(permit_id), user)
    return document_service.list_documents(db, permit_id)


@router.post("/{permit_id}/payments", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
def record_payment(
    permit_id: int,
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    user: Profile = Depends(get_current_user),
) -> Payment:
    _ensure_access(PermitRepository(db).get_permit(permit_id), user)
    return payment_service.record_payment(
        db,
        permit_id,
        payload.amount,
        payment_method=payload.payment_method,
        payment_reference=payload.payment_reference,
    )
