from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..constants import DETAILS_KEYS
from ..core.errors import EditNotAllowedError, NotFoundError, PartialWriteError, StoreError, ValidationError
from ..models.models import Payment, Permit, PermitAudit, PermitType, Profile, UploadedImage, utcnow
from ..schemas.permit_details import DETAILS_MODELS, parse_permit_details
from ..schemas.schemas import (
    ApprovedPermitRead,
    AuditEntryRead,
    DashboardStats,
    DocumentRead,
    PaymentRead,
    PermitDetailRead,
    PermitRead,
    UploadedImageRead,
)
from .audit import record_permit_audit
from .cascade import CascadeDeletionEngine, CascadeReport
from .store import AggregateStore
from .subtypes import SUBTYPE_SPECS, SubtypeSynchronizer, SyncResult, aggregate_to_payload, load_aggregate

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_CATEGORY = "proof_of_ownership"

# Read-view attribute for each normalized subtype.
AGGREGATE_FIELDS = {
    "building": "building_permit_data",
    "business": "business_permit_data",
    "motorela": "motorela_data",
}


def _complete_payload(kind: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    model = DETAILS_MODELS[kind]
    for name, field in model.model_fields.items():
        payload.setdefault(name, None if field.is_required() else field.default)
    return payload


class PermitRepository:
    def __init__(self, session: Session) -> None:
        self.session = session
        self.store = AggregateStore(session)
        self.synchronizer = SubtypeSynchronizer(self.store)
        self.cascade = CascadeDeletionEngine(self.store)

    # --- lookups ---

    def get_permit_types(self) -> List[PermitType]:
        return self.session.query(PermitType).order_by(PermitType.title.asc()).all()

    def _get_permit_type(self, permit_type_id: int) -> PermitType:
        permit_type = self.session.get(PermitType, permit_type_id)
        if not permit_type:
            raise ValidationError(f"Permit type {permit_type_id} does not exist.", field="permit_type_id")
        return permit_type

    def get_permit(self, permit_id: int) -> Permit:
        permit = (
            self.session.query(Permit)
            .options(joinedload(Permit.permit_type), joinedload(Permit.applicant))
            .filter(Permit.id == permit_id)
            .first()
        )
        if not permit:
            raise NotFoundError(f"Permit {permit_id} not found.")
        return permit

    # --- writes ---

    def _sync_subtype(self, permit: Permit, kind: str, details: Any) -> Optional[SyncResult]:
        try:
            return self.synchronizer.sync(permit.id, kind, details)
        except PartialWriteError as exc:
            logger.warning("Permit %s saved with incomplete %s details: %s", permit.id, kind, exc.failed_parts)
            exc.permit = permit
            raise

    def record_uploaded_image(
        self,
        permit_id: int,
        details: Optional[Dict[str, Any]],
        uploader_id: Optional[int],
    ) -> Optional[UploadedImage]:
        metadata = (details or {}).get("uploaded_file_metadata")
        if not isinstance(metadata, dict):
            return None
        try:
            return self.store.insert(
                "uploaded_images",
                {
                    "permit_id": permit_id,
                    "uploader_id": uploader_id,
                    "category": metadata.get("category") or DEFAULT_IMAGE_CATEGORY,
                    "file_name": metadata.get("file_name"),
                    "file_ext": metadata.get("file_ext"),
                    "mime_type": metadata.get("mime_type"),
                    "size_bytes": metadata.get("size_bytes"),
                    "storage_bucket": settings.documents_bucket,
                    "storage_path": metadata.get("storage_path"),
                    "public_url": metadata.get("public_url"),
                },
            )
        except StoreError as exc:
            logger.error("Permit %s: uploaded image metadata not recorded: %s", permit_id, exc)
            return None

    def create(
        self,
        applicant_id: Optional[int],
        permit_type_id: int,
        address: Optional[str],
        details: Optional[Dict[str, Any]],
    ) -> Permit:
        """Insert a pending permit and normalize its subtype details.

        Details are validated before anything is written. If a subtype write
        fails after the permit row exists, ``PartialWriteError`` is raised with
        the saved permit attached.
        """
        permit_type = self._get_permit_type(permit_type_id)
        subtype = parse_permit_details(permit_type.kind, details)

        permit = self.store.insert(
            "permits",
            {
                "applicant_id": applicant_id,
                "permit_type_id": permit_type.id,
                "address": address,
                "details": details,
                "status": "pending",
            },
        )
        logger.info("Permit %s created (%s) for applicant %s", permit.id, permit_type.slug, applicant_id)
        record_permit_audit(self.session, permit.id, "created", actor_id=applicant_id)
        self.record_uploaded_image(permit.id, details, applicant_id)

        if subtype is not None:
            self._sync_subtype(permit, permit_type.kind, subtype)
        return permit

    def update(
        self,
        permit_id: int,
        permit_type_id: int,
        address: Optional[str],
        details: Optional[Dict[str, Any]],
        actor_id: Optional[int] = None,
    ) -> Permit:
        permit = self.get_permit(permit_id)
        if permit.status != "pending":
            raise EditNotAllowedError(
                f"Permit {permit_id} is {permit.status}; only pending applications can be edited."
            )
        permit_type = self._get_permit_type(permit_type_id)
        subtype = parse_permit_details(permit_type.kind, details)
        previous_kind = permit.permit_type.kind if permit.permit_type else None

        permit = self.store.update(
            "permits",
            {"id": permit_id},
            {
                "permit_type_id": permit_type.id,
                "address": address,
                "details": details,
                "updated_at": utcnow(),
            },
        )
        if previous_kind != permit_type.kind and previous_kind in SUBTYPE_SPECS:
            # A permit carries at most one subtype aggregate.
            self.cascade.delete_subtype(permit_id, previous_kind)
        record_permit_audit(self.session, permit_id, "updated", actor_id=actor_id)
        self.record_uploaded_image(permit_id, details, actor_id)

        if subtype is not None:
            self._sync_subtype(permit, permit_type.kind, subtype)
        return permit

    def delete(self, permit_id: int) -> CascadeReport:
        permit = self.get_permit(permit_id)
        if permit.status != "pending":
            raise EditNotAllowedError(
                f"Permit {permit_id} is {permit.status}; only pending applications can be deleted."
            )
        return self.cascade.delete(permit_id)

    # --- reads ---

    def _subtype_view(self, permit: Permit) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]], Optional[str]]:
        aggregates: Dict[str, Any] = {}
        for kind, attribute in AGGREGATE_FIELDS.items():
            aggregates[attribute] = load_aggregate(self.store, permit.id, kind)

        kind = permit.permit_type.kind if permit.permit_type else None
        if kind not in SUBTYPE_SPECS:
            return aggregates, None, None
        normalized = aggregates[AGGREGATE_FIELDS[kind]]
        if normalized:
            return aggregates, _complete_payload(kind, aggregate_to_payload(kind, normalized)), "normalized"

        legacy = (permit.details or {}).get(DETAILS_KEYS[kind])
        if isinstance(legacy, dict):
            aggregates[AGGREGATE_FIELDS[kind]] = dict(legacy)
            return aggregates, dict(legacy), "legacy"
        return aggregates, None, None

    def get_by_id(self, permit_id: int) -> PermitDetailRead:
        permit = self.get_permit(permit_id)
        documents = self.store.select_many("permit_documents", {"permit_id": permit_id}, ("-uploaded_at", "-id"))
        payments = self.store.select_many("payments", {"permit_id": permit_id}, ("-created_at", "-id"))
        images = self.store.select_many("uploaded_images", {"permit_id": permit_id}, ("-uploaded_at", "-id"))
        audit_trail = (
            self.session.query(PermitAudit)
            .options(joinedload(PermitAudit.actor))
            .filter(PermitAudit.permit_id == permit_id)
            .order_by(PermitAudit.created_at.desc(), PermitAudit.id.desc())
            .all()
        )
        aggregates, subtype_payload, subtype_source = self._subtype_view(permit)

        return PermitDetailRead(
            **PermitRead.model_validate(permit).model_dump(),
            documents=[DocumentRead.model_validate(item) for item in documents],
            payments=[PaymentRead.model_validate(item) for item in payments],
            audit_trail=[AuditEntryRead.model_validate(item) for item in audit_trail],
            uploaded_images=[UploadedImageRead.model_validate(item) for item in images],
            subtype_payload=subtype_payload,
            subtype_source=subtype_source,
            **aggregates,
        )

    def list_for_user(self, user_id: int) -> List[Permit]:
        return (
            self.session.query(Permit)
            .options(joinedload(Permit.permit_type))
            .filter(Permit.applicant_id == user_id)
            .order_by(Permit.created_at.desc(), Permit.id.desc())
            .all()
        )

    def list_all(self) -> List[Permit]:
        return (
            self.session.query(Permit)
            .options(joinedload(Permit.permit_type), joinedload(Permit.applicant))
            .order_by(Permit.created_at.desc(), Permit.id.desc())
            .all()
        )

    def list_approved(self) -> List[ApprovedPermitRead]:
        permits = (
            self.session.query(Permit)
            .options(joinedload(Permit.permit_type), joinedload(Permit.applicant))
            .filter(Permit.status == "approved")
            .order_by(Permit.updated_at.desc(), Permit.id.desc())
            .all()
        )
        approved: List[ApprovedPermitRead] = []
        for permit in permits:
            payments = self.store.select_many("payments", {"permit_id": permit.id}, ("-created_at", "-id"))
            images = self.store.select_many("uploaded_images", {"permit_id": permit.id}, ("-uploaded_at", "-id"))
            approved.append(
                ApprovedPermitRead(
                    **PermitRead.model_validate(permit).model_dump(),
                    payments=[PaymentRead.model_validate(item) for item in payments],
                    uploaded_images=[UploadedImageRead.model_validate(item) for item in images],
                )
            )
        return approved

    def dashboard_stats(self) -> DashboardStats:
        permits = self.session.query(Permit)
        return DashboardStats(
            total_users=self.session.query(Profile).count(),
            total_permits=permits.count(),
            total_payments=self.session.query(Payment).count(),
            pending_permits=permits.filter(Permit.status == "pending").count(),
            approved_permits=permits.filter(Permit.status == "approved").count(),
            rejected_permits=permits.filter(Permit.status == "rejected").count(),
        )
