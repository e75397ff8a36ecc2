from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.jwt import require_roles
from ..constants import REVIEWER_ROLES
from ..models.models import PermitDocument, Profile
from ..schemas.schemas import DocumentRead, DocumentReject
from ..services import documents as document_service

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post("/{document_id}/approve", response_model=DocumentRead)
def approve_document(
    document_id: int,
    db: Session = Depends(get_db),
    user: Profile = Depends(require_roles(*REVIEWER_ROLES)),
) -> PermitDocument:
    return document_service.approve_document(db, document_id, actor_id=user.id)


@router.post("/{document_id}/reject", response_model=DocumentRead)
def reject_document(
    document_id: int,
    payload: DocumentReject,
    db: Session = Depends(get_db),
    user: Profile = Depends(require_roles(*REVIEWER_ROLES)),
) -> PermitDocument:
    return document_service.reject_document(db, document_id, payload.reason, rejected_by=user.id)
