from datetime import datetime, timezone
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship as orm_relationship

from ..config import Base


def utcnow():
    return datetime.now(timezone.utc)


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=True)
    username = Column(String, nullable=True)
    firstname = Column(String, nullable=True)
    middlename = Column(String, nullable=True)
    lastname = Column(String, nullable=True)
    full_name = Column(String, nullable=True)
    gender = Column(String, nullable=True)
    birthdate = Column(Date, nullable=True)
    contactnumber = Column(String, nullable=True)
    fulladdress = Column(Text, nullable=True)
    role = Column(String, nullable=False, default="citizen")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    permits = orm_relationship("Permit", back_populates="applicant")
    notifications = orm_relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        parts = [self.firstname, self.lastname]
        name = " ".join(part for part in parts if part)
        return name or self.email or f"Profile {self.id}"

    def has_any_role(self, *role_names: str) -> bool:
        return self.role in role_names


class PermitType(Base):
    __tablename__ = "permit_types"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String, unique=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    kind = Column(String, nullable=False, default="generic")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    permits = orm_relationship("Permit", back_populates="permit_type")


class Permit(Base):
    __tablename__ = "permits"

    id = Column(Integer, primary_key=True, index=True)
    applicant_id = Column(Integer, ForeignKey("profiles.id"), nullable=True, index=True)
    permit_type_id = Column(Integer, ForeignKey("permit_types.id"), nullable=False)
    address = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default="pending", index=True)
    admin_comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    applicant = orm_relationship("Profile", back_populates="permits")
    permit_type = orm_relationship("PermitType", back_populates="permits")


# --- Building permit aggregate ---


class BuildingPermitApplicant(Base):
    __tablename__ = "building_permit_applicants"

    id = Column(Integer, primary_key=True, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id"), nullable=False, unique=True)
    lastname = Column(String, nullable=False, default="")
    firstname = Column(String, nullable=False, default="")
    middle_initial = Column(String, nullable=False, default="")
    tin = Column(String, nullable=False, default="")
    ownership_form = Column(String, nullable=False, default="")
    address = Column(Text, nullable=False, default="")
    ctc_no = Column(String, nullable=False, default="")
    ctc_date = Column(Date, nullable=True)
    ctc_place = Column(String, nullable=False, default="")
    signature_date = Column(Date, nullable=True)


class BuildingConstructionDetail(Base):
    __tablename__ = "building_construction_details"

    id = Column(Integer, primary_key=True, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id"), nullable=False, unique=True)
    location = Column(Text, nullable=False, default="")
    scope_of_work = Column(String, nullable=False, default="")
    occupancy_use = Column(String, nullable=False, default="")
    lot_area = Column(Float, nullable=True)
    floor_area = Column(Float, nullable=True)
    cost_of_construction = Column(Float, nullable=True)
    date_of_construction = Column(Date, nullable=True)


class BuildingInspector(Base):
    __tablename__ = "building_inspectors"

    id = Column(Integer, primary_key=True, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id"), nullable=False, unique=True)
    name = Column(String, nullable=False, default="")
    address = Column(Text, nullable=False, default="")
    prc_no = Column(String, nullable=False, default="")
    ptr_no = Column(String, nullable=False, default="")
    issued_at = Column(String, nullable=False, default="")
    validity = Column(Date, nullable=True)


class BuildingEngineer(Base):
    __tablename__ = "building_engineers"

    id = Column(Integer, primary_key=True, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id"), nullable=False, unique=True)
    ctc_no = Column(String, nullable=False, default="")
    ctc_date = Column(Date, nullable=True)
    ctc_place = Column(String, nullable=False, default="")


class BuildingPermitDetail(Base):
    __tablename__ = "building_permit_details"

    id = Column(Integer, primary_key=True, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id"), nullable=False, unique=True)
    application_no = Column(String, nullable=False, default="")
    bp_no = Column(String, nullable=False, default="")
    applicant_id = Column(Integer, ForeignKey("building_permit_applicants.id"), nullable=True)
    construction_id = Column(Integer, ForeignKey("building_construction_details.id"), nullable=True)
    inspector_id = Column(Integer, ForeignKey("building_inspectors.id"), nullable=True)
    engineer_id = Column(Integer, ForeignKey("building_engineers.id"), nullable=True)
    owner_signature_date = Column(Date, nullable=True)


# --- Business permit aggregate ---


class BusinessTaxpayer(Base):
    __tablename__ = "business_taxpayers"

    id = Column(Integer, primary_key=True, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id"), nullable=False, unique=True)
    lastname = Column(String, nullable=False, default="")
    firstname = Column(String, nullable=False, default="")
    middlename = Column(String, nullable=False, default="")
    tin = Column(String, nullable=False, default="")
    ctc_no = Column(String, nullable=False, default="")
    address = Column(Text, nullable=False, default="")
    phone = Column(String, nullable=False, default="")
    email = Column(String, nullable=False, default="")


class BusinessEstablishment(Base):
    __tablename__ = "business_establishments"

    id = Column(Integer, primary_key=True, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id"), nullable=False, unique=True)
    business_name = Column(String, nullable=False, default="")
    nature_of_business = Column(String, nullable=False, default="")
    business_address = Column(Text, nullable=False, default="")
    business_area = Column(String, nullable=False, default="")
    business_activity_code = Column(String, nullable=False, default="")
    line_of_business = Column(String, nullable=False, default="")
    no_of_units = Column(Integer, nullable=True)
    capitalization = Column(Float, nullable=True)
    essential_sales = Column(Float, nullable=True)
    non_essential_sales = Column(Float, nullable=True)


class BusinessEmployment(Base):
    __tablename__ = "business_employment"

    id = Column(Integer, primary_key=True, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id"), nullable=False, unique=True)
    total_employees = Column(Integer, nullable=True)
    employees_in_lgu = Column(Integer, nullable=True)


class BusinessLessor(Base):
    __tablename__ = "business_lessors"

    id = Column(Integer, primary_key=True, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id"), nullable=False, unique=True)
    lessor_name = Column(String, nullable=False, default="")
    lessor_address = Column(Text, nullable=False, default="")


class BusinessPermitDetail(Base):
    __tablename__ = "business_permit_details"

    id = Column(Integer, primary_key=True, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id"), nullable=False, unique=True)
    tax_year = Column(Integer, nullable=True)
    control_no = Column(String, nullable=False, default="")
    mode_of_payment = Column(String, nullable=False, default="")
    application_type = Column(String, nullable=False, default="")
    amendment = Column(String, nullable=False, default="")
    org_type = Column(String, nullable=False, default="")
    taxpayer_id = Column(Integer, ForeignKey("business_taxpayers.id"), nullable=True)
    establishment_id = Column(Integer, ForeignKey("business_establishments.id"), nullable=True)
    employment_id = Column(Integer, ForeignKey("business_employment.id"), nullable=True)
    lessor_id = Column(Integer, ForeignKey("business_lessors.id"), nullable=True)


# --- Motorela permit (flat) ---


class MotorelaPermit(Base):
    __tablename__ = "motorela_permits"

    id = Column(Integer, primary_key=True, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id"), nullable=False, unique=True)
    application_no = Column(String, nullable=False, default="")
    date = Column(Date, nullable=True)
    body_no = Column(String, nullable=False, default="")
    chassis_no = Column(String, nullable=False, default="")
    make = Column(String, nullable=False, default="")
    motor_no = Column(String, nullable=False, default="")
    route = Column(String, nullable=False, default="")
    plate_no = Column(String, nullable=False, default="")
    operator = Column(String, nullable=False, default="")
    operator_address = Column(Text, nullable=False, default="")
    contact = Column(String, nullable=False, default="")
    driver = Column(String, nullable=False, default="")
    driver_address = Column(Text, nullable=False, default="")
    cedula_no = Column(String, nullable=True)
    place_issued = Column(String, nullable=True)
    date_issued = Column(Date, nullable=True)


# --- Documents, payments, audit trail ---


class PermitDocument(Base):
    __tablename__ = "permit_documents"

    id = Column(Integer, primary_key=True, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id"), nullable=True, index=True)
    file_path = Column(String, nullable=False)
    file_name = Column(String, nullable=True)
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)
    status = Column(String, nullable=False, default="pending")
    rejection_reason = Column(Text, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejected_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String, nullable=True)
    payment_status = Column(String, nullable=False, default="pending")
    payment_reference = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class PermitAudit(Base):
    __tablename__ = "permit_audit"

    id = Column(Integer, primary_key=True, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id"), nullable=False, index=True)
    action = Column(String, nullable=False)
    actor_id = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True, nullable=False)

    actor = orm_relationship("Profile")


class UploadedImage(Base):
    __tablename__ = "uploaded_images"

    id = Column(Integer, primary_key=True, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id"), nullable=True, index=True)
    uploader_id = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    category = Column(String, nullable=True)
    file_name = Column(String, nullable=True)
    file_ext = Column(String, nullable=True)
    mime_type = Column(String, nullable=True)
    size_bytes = Column(Integer, nullable=True)
    storage_bucket = Column(String, nullable=True)
    storage_path = Column(String, nullable=True)
    public_url = Column(String, nullable=True)
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    permit_id = Column(Integer, ForeignKey("permits.id", ondelete="SET NULL"), nullable=True)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String, nullable=False, default="general")
    is_read = Column(Boolean, default=False, nullable=False)
    gcash_qr_code_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = orm_relationship("Profile", back_populates="notifications")
