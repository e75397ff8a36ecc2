"""permit workflow schema

Revision ID: 0001_permit_workflow
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

import sqlalchemy as sa
from alembic import op

revision = "0001_permit_workflow"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(inspector, name: str) -> bool:
    return inspector.has_table(name)


def _id() -> sa.Column:
    return sa.Column("id", sa.Integer(), primary_key=True, nullable=False)


def _permit_key() -> sa.Column:
    return sa.Column("permit_id", sa.Integer(), sa.ForeignKey("permits.id"), nullable=False, unique=True)


def _text(name: str) -> sa.Column:
    return sa.Column(name, sa.String(), nullable=False, server_default="")


# Ordered so each details root follows the tables it references.
SUBTYPE_TABLES = {
    "building_permit_applicants": lambda: (
        _text("lastname"),
        _text("firstname"),
        _text("middle_initial"),
        _text("tin"),
        _text("ownership_form"),
        sa.Column("address", sa.Text(), nullable=False, server_default=""),
        _text("ctc_no"),
        sa.Column("ctc_date", sa.Date(), nullable=True),
        _text("ctc_place"),
        sa.Column("signature_date", sa.Date(), nullable=True),
    ),
    "building_construction_details": lambda: (
        sa.Column("location", sa.Text(), nullable=False, server_default=""),
        _text("scope_of_work"),
        _text("occupancy_use"),
        sa.Column("lot_area", sa.Float(), nullable=True),
        sa.Column("floor_area", sa.Float(), nullable=True),
        sa.Column("cost_of_construction", sa.Float(), nullable=True),
        sa.Column("date_of_construction", sa.Date(), nullable=True),
    ),
    "building_inspectors": lambda: (
        _text("name"),
        sa.Column("address", sa.Text(), nullable=False, server_default=""),
        _text("prc_no"),
        _text("ptr_no"),
        _text("issued_at"),
        sa.Column("validity", sa.Date(), nullable=True),
    ),
    "building_engineers": lambda: (
        _text("ctc_no"),
        sa.Column("ctc_date", sa.Date(), nullable=True),
        _text("ctc_place"),
    ),
    "business_taxpayers": lambda: (
        _text("lastname"),
        _text("firstname"),
        _text("middlename"),
        _text("tin"),
        _text("ctc_no"),
        sa.Column("address", sa.Text(), nullable=False, server_default=""),
        _text("phone"),
        _text("email"),
    ),
    "business_establishments": lambda: (
        _text("business_name"),
        _text("nature_of_business"),
        sa.Column("business_address", sa.Text(), nullable=False, server_default=""),
        _text("business_area"),
        _text("business_activity_code"),
        _text("line_of_business"),
        sa.Column("no_of_units", sa.Integer(), nullable=True),
        sa.Column("capitalization", sa.Float(), nullable=True),
        sa.Column("essential_sales", sa.Float(), nullable=True),
        sa.Column("non_essential_sales", sa.Float(), nullable=True),
    ),
    "business_employment": lambda: (
        sa.Column("total_employees", sa.Integer(), nullable=True),
        sa.Column("employees_in_lgu", sa.Integer(), nullable=True),
    ),
    "business_lessors": lambda: (
        _text("lessor_name"),
        sa.Column("lessor_address", sa.Text(), nullable=False, server_default=""),
    ),
    "building_permit_details": lambda: (
        _text("application_no"),
        _text("bp_no"),
        sa.Column("applicant_id", sa.Integer(), sa.ForeignKey("building_permit_applicants.id"), nullable=True),
        sa.Column("construction_id", sa.Integer(), sa.ForeignKey("building_construction_details.id"), nullable=True),
        sa.Column("inspector_id", sa.Integer(), sa.ForeignKey("building_inspectors.id"), nullable=True),
        sa.Column("engineer_id", sa.Integer(), sa.ForeignKey("building_engineers.id"), nullable=True),
        sa.Column("owner_signature_date", sa.Date(), nullable=True),
    ),
    "business_permit_details": lambda: (
        sa.Column("tax_year", sa.Integer(), nullable=True),
        _text("control_no"),
        _text("mode_of_payment"),
        _text("application_type"),
        _text("amendment"),
        _text("org_type"),
        sa.Column("taxpayer_id", sa.Integer(), sa.ForeignKey("business_taxpayers.id"), nullable=True),
        sa.Column("establishment_id", sa.Integer(), sa.ForeignKey("business_establishments.id"), nullable=True),
        sa.Column("employment_id", sa.Integer(), sa.ForeignKey("business_employment.id"), nullable=True),
        sa.Column("lessor_id", sa.Integer(), sa.ForeignKey("business_lessors.id"), nullable=True),
    ),
    "motorela_permits": lambda: (
        _text("application_no"),
        sa.Column("date", sa.Date(), nullable=True),
        _text("body_no"),
        _text("chassis_no"),
        _text("make"),
        _text("motor_no"),
        _text("route"),
        _text("plate_no"),
        _text("operator"),
        sa.Column("operator_address", sa.Text(), nullable=False, server_default=""),
        _text("contact"),
        _text("driver"),
        sa.Column("driver_address", sa.Text(), nullable=False, server_default=""),
        sa.Column("cedula_no", sa.String(), nullable=True),
        sa.Column("place_issued", sa.String(), nullable=True),
        sa.Column("date_issued", sa.Date(), nullable=True),
    ),
}


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _has_table(inspector, "profiles"):
        op.create_table(
            "profiles",
            _id(),
            sa.Column("email", sa.String(), nullable=True),
            sa.Column("username", sa.String(), nullable=True),
            sa.Column("firstname", sa.String(), nullable=True),
            sa.Column("middlename", sa.String(), nullable=True),
            sa.Column("lastname", sa.String(), nullable=True),
            sa.Column("full_name", sa.String(), nullable=True),
            sa.Column("gender", sa.String(), nullable=True),
            sa.Column("birthdate", sa.Date(), nullable=True),
            sa.Column("contactnumber", sa.String(), nullable=True),
            sa.Column("fulladdress", sa.Text(), nullable=True),
            sa.Column("role", sa.String(), nullable=False, server_default="citizen"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_profiles_id", "profiles", ["id"])
        op.create_index("ix_profiles_email", "profiles", ["email"], unique=True)

    if not _has_table(inspector, "permit_types"):
        op.create_table(
            "permit_types",
            _id(),
            sa.Column("slug", sa.String(), nullable=False, unique=True),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("kind", sa.String(), nullable=False, server_default="generic"),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_permit_types_id", "permit_types", ["id"])

    if not _has_table(inspector, "permits"):
        op.create_table(
            "permits",
            _id(),
            sa.Column("applicant_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=True),
            sa.Column("permit_type_id", sa.Integer(), sa.ForeignKey("permit_types.id"), nullable=False),
            sa.Column("address", sa.Text(), nullable=True),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(), nullable=False, server_default="pending"),
            sa.Column("admin_comment", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_permits_id", "permits", ["id"])
        op.create_index("ix_permits_applicant_id", "permits", ["applicant_id"])
        op.create_index("ix_permits_status", "permits", ["status"])

    for table, columns in SUBTYPE_TABLES.items():
        if not _has_table(inspector, table):
            op.create_table(table, _id(), _permit_key(), *columns())
            op.create_index(f"ix_{table}_id", table, ["id"])

    if not _has_table(inspector, "permit_documents"):
        op.create_table(
            "permit_documents",
            _id(),
            sa.Column("permit_id", sa.Integer(), sa.ForeignKey("permits.id"), nullable=True),
            sa.Column("file_path", sa.String(), nullable=False),
            sa.Column("file_name", sa.String(), nullable=True),
            sa.Column("uploaded_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("status", sa.String(), nullable=False, server_default="pending"),
            sa.Column("rejection_reason", sa.Text(), nullable=True),
            sa.Column("rejected_at", sa.DateTime(), nullable=True),
            sa.Column("rejected_by", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=True),
        )
        op.create_index("ix_permit_documents_id", "permit_documents", ["id"])
        op.create_index("ix_permit_documents_permit_id", "permit_documents", ["permit_id"])

    if not _has_table(inspector, "payments"):
        op.create_table(
            "payments",
            _id(),
            sa.Column("permit_id", sa.Integer(), sa.ForeignKey("permits.id"), nullable=False),
            sa.Column("amount", sa.Numeric(10, 2), nullable=False),
            sa.Column("payment_method", sa.String(), nullable=True),
            sa.Column("payment_status", sa.String(), nullable=False, server_default="pending"),
            sa.Column("payment_reference", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_payments_id", "payments", ["id"])
        op.create_index("ix_payments_permit_id", "payments", ["permit_id"])

    if not _has_table(inspector, "permit_audit"):
        op.create_table(
            "permit_audit",
            _id(),
            sa.Column("permit_id", sa.Integer(), sa.ForeignKey("permits.id"), nullable=False),
            sa.Column("action", sa.String(), nullable=False),
            sa.Column("actor_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=True),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_permit_audit_id", "permit_audit", ["id"])
        op.create_index("ix_permit_audit_permit_id", "permit_audit", ["permit_id"])
        op.create_index("ix_permit_audit_created_at", "permit_audit", ["created_at"])

    if not _has_table(inspector, "uploaded_images"):
        op.create_table(
            "uploaded_images",
            _id(),
            sa.Column("permit_id", sa.Integer(), sa.ForeignKey("permits.id"), nullable=True),
            sa.Column("uploader_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=True),
            sa.Column("category", sa.String(), nullable=True),
            sa.Column("file_name", sa.String(), nullable=True),
            sa.Column("file_ext", sa.String(), nullable=True),
            sa.Column("mime_type", sa.String(), nullable=True),
            sa.Column("size_bytes", sa.Integer(), nullable=True),
            sa.Column("storage_bucket", sa.String(), nullable=True),
            sa.Column("storage_path", sa.String(), nullable=True),
            sa.Column("public_url", sa.String(), nullable=True),
            sa.Column("uploaded_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_uploaded_images_id", "uploaded_images", ["id"])
        op.create_index("ix_uploaded_images_permit_id", "uploaded_images", ["permit_id"])

    if not _has_table(inspector, "notifications"):
        op.create_table(
            "notifications",
            _id(),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
            sa.Column("permit_id", sa.Integer(), sa.ForeignKey("permits.id", ondelete="SET NULL"), nullable=True),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("type", sa.String(), nullable=False, server_default="general"),
            sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("gcash_qr_code_url", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_notifications_id", "notifications", ["id"])
        op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    tables = ["notifications", "uploaded_images", "permit_audit", "payments", "permit_documents"]
    tables += list(reversed(list(SUBTYPE_TABLES)))
    tables += ["permits", "permit_types", "profiles"]
    for table in tables:
        if _has_table(inspector, table):
            op.drop_table(table)
