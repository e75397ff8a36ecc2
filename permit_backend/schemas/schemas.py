from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, condecimal

PermitStatus = Literal["pending", "under_review", "approved", "rejected"]
PaymentStatus = Literal["pending", "completed", "failed"]


class ProfileRead(BaseModel):
    id: int
    email: Optional[str] = None
    username: Optional[str] = None
    firstname: Optional[str] = None
    middlename: Optional[str] = None
    lastname: Optional[str] = None
    full_name: Optional[str] = None
    contactnumber: Optional[str] = None
    fulladdress: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PermitTypeRead(BaseModel):
    id: int
    slug: str
    title: str
    description: Optional[str] = None
    kind: str

    class Config:
        from_attributes = True


class PermitCreate(BaseModel):
    permit_type_id: int
    address: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class PermitUpdate(PermitCreate):
    pass


class PermitStatusUpdate(BaseModel):
    status: PermitStatus
    admin_comment: Optional[str] = None


class PermitRead(BaseModel):
    id: int
    applicant_id: Optional[int] = None
    permit_type_id: int
    address: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    status: str
    admin_comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    permit_type: Optional[PermitTypeRead] = None
    applicant: Optional[ProfileRead] = None

    class Config:
        from_attributes = True


class DocumentCreate(BaseModel):
    file_path: str = Field(min_length=1)
    file_name: Optional[str] = None


class DocumentReject(BaseModel):
    reason: str = Field(min_length=1)


class DocumentRead(BaseModel):
    id: int
    permit_id: Optional[int] = None
    file_path: str
    file_name: Optional[str] = None
    uploaded_at: datetime
    status: str
    rejection_reason: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[int] = None

    class Config:
        from_attributes = True


class PaymentCreate(BaseModel):
    amount: condecimal(gt=0, max_digits=10, decimal_places=2)
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus
    payment_reference: Optional[str] = None


class PaymentRead(BaseModel):
    id: int
    permit_id: int
    amount: Decimal
    payment_method: Optional[str] = None
    payment_status: str
    payment_reference: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditEntryRead(BaseModel):
    id: int
    permit_id: int
    action: str
    actor_id: Optional[int] = None
    note: Optional[str] = None
    created_at: datetime
    actor: Optional[ProfileRead] = None

    class Config:
        from_attributes = True


class UploadedImageRead(BaseModel):
    id: int
    permit_id: Optional[int] = None
    uploader_id: Optional[int] = None
    category: Optional[str] = None
    file_name: Optional[str] = None
    file_ext: Optional[str] = None
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None
    storage_bucket: Optional[str] = None
    storage_path: Optional[str] = None
    public_url: Optional[str] = None
    uploaded_at: datetime

    class Config:
        from_attributes = True


class PermitDetailRead(PermitRead):
    documents: List[DocumentRead] = []
    payments: List[PaymentRead] = []
    audit_trail: List[AuditEntryRead] = []
    uploaded_images: List[UploadedImageRead] = []
    motorela_data: Optional[Dict[str, Any]] = None
    building_permit_data: Optional[Dict[str, Any]] = None
    business_permit_data: Optional[Dict[str, Any]] = None
    # Subtype details flattened back to the submitted field names.
    subtype_payload: Optional[Dict[str, Any]] = None
    subtype_source: Optional[Literal["normalized", "legacy"]] = None


class ApprovedPermitRead(PermitRead):
    payments: List[PaymentRead] = []
    uploaded_images: List[UploadedImageRead] = []


class DashboardStats(BaseModel):
    total_users: int
    total_permits: int
    total_payments: int
    pending_permits: int
    approved_permits: int
    rejected_permits: int


class CascadeReportRead(BaseModel):
    permit_id: int
    deleted: Dict[str, int]
    failed: List[str] = []


class NotificationRead(BaseModel):
    id: int
    user_id: int
    permit_id: Optional[int] = None
    title: str
    message: str
    type: str
    is_read: bool
    gcash_qr_code_url: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UnreadCount(BaseModel):
    count: int
