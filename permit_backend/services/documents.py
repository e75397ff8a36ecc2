import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.errors import NotFoundError, ValidationError
from ..models.models import Permit, PermitDocument, utcnow
from .audit import record_permit_audit

logger = logging.getLogger(__name__)


def _get_document(session: Session, document_id: int) -> PermitDocument:
    document = session.get(PermitDocument, document_id)
    if not document:
        raise NotFoundError(f"Document {document_id} not found.")
    return document


def add_document(
    session: Session,
    permit_id: int,
    file_path: str,
    file_name: Optional[str] = None,
    actor_id: Optional[int] = None,
) -> PermitDocument:
    if not session.get(Permit, permit_id):
        raise NotFoundError(f"Permit {permit_id} not found.")
    document = PermitDocument(
        permit_id=permit_id,
        file_path=file_path,
        file_name=file_name or file_path.rsplit("/", 1)[-1],
        status="pending",
        uploaded_at=utcnow(),
    )
    session.add(document)
    session.commit()
    session.refresh(document)
    record_permit_audit(session, permit_id, "document_uploaded", actor_id=actor_id, note=document.file_name)
    return document


def list_documents(session: Session, permit_id: int) -> List[PermitDocument]:
    return (
        session.query(PermitDocument)
        .filter(PermitDocument.permit_id == permit_id)
        .order_by(PermitDocument.uploaded_at.desc(), PermitDocument.id.desc())
        .all()
    )


def approve_document(session: Session, document_id: int, actor_id: Optional[int] = None) -> PermitDocument:
    document = _get_document(session, document_id)
    document.status = "approved"
    document.rejection_reason = None
    document.rejected_at = None
    document.rejected_by = None
    session.add(document)
    session.commit()
    session.refresh(document)
    if document.permit_id:
        record_permit_audit(session, document.permit_id, "document_approved", actor_id=actor_id, note=document.id)
    return document


def reject_document(session: Session, document_id: int, reason: str, rejected_by: Optional[int]) -> PermitDocument:
    if not reason or not reason.strip():
        raise ValidationError("Rejection reason is required", field="reason")
    document = _get_document(session, document_id)
    document.status = "rejected"
    document.rejection_reason = reason.strip()
    document.rejected_at = utcnow()
    document.rejected_by = rejected_by
    session.add(document)
    session.commit()
    session.refresh(document)
    logger.info("Document %s rejected by %s", document.id, rejected_by)
    if document.permit_id:
        record_permit_audit(
            session,
            document.permit_id,
            "document_rejected",
            actor_id=rejected_by,
            note={"document_id": document.id, "reason": document.rejection_reason},
        )
    return document
