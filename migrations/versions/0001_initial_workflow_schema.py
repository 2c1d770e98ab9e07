"""initial permit workflow schema

Revision ID: 0001_initial_workflow_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0001_initial_workflow_schema"
down_revision = None
branch_labels = None
depends_on = None

POSITION_TYPES = "'ARCHITECT', 'LICENCE_ENGINEER', 'STRUCTURAL_ENGINEER', 'SUPERVISOR1', 'SUPERVISOR2'"
APPLICATION_STATUSES = (
    "'DRAFT', 'JE_PENDING', 'AE_PENDING', 'EE1_PENDING', 'CE1_PENDING', 'PAYMENT_PENDING', "
    "'CLERK_PENDING', 'EE2_PENDING', 'CE2_PENDING', 'COMPLETED', 'REJECTED_BY_JE', 'REJECTED_BY_AE', "
    "'REJECTED_BY_EE1', 'REJECTED_BY_CE1', 'REJECTED_BY_CLERK', 'REJECTED_BY_EE2', 'REJECTED_BY_CE2'"
)
DOCUMENT_TYPES = (
    "'ADDRESS_PROOF', 'PAN_CARD', 'AADHAR_CARD', 'DEGREE_CERTIFICATE', 'MARKSHEET', "
    "'EXPERIENCE_CERTIFICATE', 'ISSE_CERTIFICATE', 'PROPERTY_TAX_RECEIPT', 'PROFILE_PICTURE', "
    "'SELF_DECLARATION', 'COA_CERTIFICATE', 'ADDITIONAL_DOCUMENT', 'RECOMMENDATION_FORM', "
    "'LICENCE_CERTIFICATE'"
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=True),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("token_version", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "officers",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=True),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=30), nullable=False),
        sa.Column("position_type", sa.String(length=30), nullable=True),
        sa.Column("key_label", sa.String(length=50), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("token_version", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_officers"),
        sa.UniqueConstraint("email", name="uq_officers_email"),
        sa.CheckConstraint(
            "role IN ('JUNIOR_ENGINEER', 'ASSISTANT_ENGINEER', 'EXECUTIVE_ENGINEER', 'CITY_ENGINEER', 'CLERK', 'ADMIN')",
            name="ck_officers_role",
        ),
        sa.CheckConstraint(
            f"position_type IS NULL OR position_type IN ({POSITION_TYPES})",
            name="ck_officers_position_type",
        ),
    )
    op.create_index("ix_officers_role_active", "officers", ["role", "is_active"])

    op.create_table(
        "applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("application_number", sa.String(length=50), nullable=False),
        sa.Column("applicant_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("position_type", sa.String(length=30), nullable=False),
        sa.Column("status", sa.String(length=30), server_default="DRAFT", nullable=False),
        sa.Column("review_cycle", sa.Integer(), server_default="1", nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("qualification", sa.String(length=255), nullable=True),
        sa.Column("form_data", postgresql.JSONB(astext_type=sa.Text()), server_default="{}", nullable=False),
        sa.Column("fee_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("certificate_number", sa.String(length=100), nullable=True),
        sa.Column("certificate_issued_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_applications"),
        sa.ForeignKeyConstraint(
            ["applicant_id"], ["users.id"], ondelete="RESTRICT", name="fk_applications_applicant_id_users"
        ),
        sa.UniqueConstraint("application_number", name="uq_applications_application_number"),
        sa.UniqueConstraint("certificate_number", name="uq_applications_certificate_number"),
        sa.CheckConstraint(f"status IN ({APPLICATION_STATUSES})", name="ck_applications_status"),
        sa.CheckConstraint(f"position_type IN ({POSITION_TYPES})", name="ck_applications_position_type"),
        sa.CheckConstraint("review_cycle >= 1", name="ck_applications_review_cycle_positive"),
        sa.CheckConstraint("version >= 1", name="ck_applications_version_positive"),
    )
    op.create_index("ix_applications_applicant_id", "applications", ["applicant_id"])
    op.create_index("ix_applications_status", "applications", ["status"])

    op.create_table(
        "application_documents",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("document_type", sa.String(length=50), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_path", sa.String(length=1024), nullable=False),
        sa.Column("content_type", sa.String(length=100), nullable=True),
        sa.Column("size_bytes", sa.BigInteger(), nullable=True),
        sa.Column("checksum", sa.String(length=128), nullable=True),
        sa.Column("is_verified", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("verified_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verification_remarks", sa.Text(), nullable=True),
        sa.Column("is_signed", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("signed_file_path", sa.String(length=1024), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_application_documents"),
        sa.ForeignKeyConstraint(
            ["application_id"],
            ["applications.id"],
            ondelete="CASCADE",
            name="fk_application_documents_application_id_applications",
        ),
        sa.ForeignKeyConstraint(
            ["verified_by_id"],
            ["officers.id"],
            ondelete="RESTRICT",
            name="fk_application_documents_verified_by_id_officers",
        ),
        sa.CheckConstraint(f"document_type IN ({DOCUMENT_TYPES})", name="ck_application_documents_type"),
    )
    op.create_index("ix_application_documents_application_id", "application_documents", ["application_id"])

    op.create_table(
        "application_status_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("from_status", sa.String(length=30), nullable=True),
        sa.Column("to_status", sa.String(length=30), nullable=False),
        sa.Column("stage", sa.String(length=20), nullable=True),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("updated_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("updated_by_kind", sa.String(length=20), nullable=False),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_application_status_history"),
        sa.ForeignKeyConstraint(
            ["application_id"],
            ["applications.id"],
            ondelete="CASCADE",
            name="fk_application_status_history_application_id_applications",
        ),
        sa.CheckConstraint(
            "action IN ('SUBMIT', 'RESUBMIT', 'APPROVE', 'SIGN', 'REJECT')",
            name="ck_application_status_history_action",
        ),
        sa.CheckConstraint(
            "updated_by_kind IN ('OFFICER', 'APPLICANT', 'SYSTEM')",
            name="ck_application_status_history_actor_kind",
        ),
    )
    op.create_index(
        "ix_application_status_history_app_created",
        "application_status_history",
        ["application_id", "created_at"],
    )

    op.create_table(
        "application_stage_reviews",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("stage", sa.String(length=20), nullable=False),
        sa.Column("review_cycle", sa.Integer(), server_default="1", nullable=False),
        sa.Column("assigned_officer_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approval_comments", sa.Text(), nullable=True),
        sa.Column("rejected", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_comments", sa.Text(), nullable=True),
        sa.Column("signature_applied", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("signature_applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("signature_transaction_id", sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_application_stage_reviews"),
        sa.ForeignKeyConstraint(
            ["application_id"],
            ["applications.id"],
            ondelete="CASCADE",
            name="fk_application_stage_reviews_application_id_applications",
        ),
        sa.ForeignKeyConstraint(
            ["assigned_officer_id"],
            ["officers.id"],
            ondelete="RESTRICT",
            name="fk_application_stage_reviews_assigned_officer_id_officers",
        ),
        sa.UniqueConstraint(
            "application_id",
            "stage",
            "review_cycle",
            name="uq_application_stage_reviews_app_stage_cycle",
        ),
        sa.CheckConstraint(
            "stage IN ('JE', 'AE', 'EE1', 'CE1', 'CLERK', 'EE2', 'CE2')",
            name="ck_application_stage_reviews_stage",
        ),
        sa.CheckConstraint("NOT (approved AND rejected)", name="ck_application_stage_reviews_single_decision"),
    )
    op.create_index(
        "ix_application_stage_reviews_application_id",
        "application_stage_reviews",
        ["application_id"],
    )
    op.create_index(
        "ix_application_stage_reviews_officer_open",
        "application_stage_reviews",
        ["assigned_officer_id", "approved", "rejected"],
    )

    op.create_table(
        "application_comments",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("author_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("author_kind", sa.String(length=20), nullable=False),
        sa.Column("stage", sa.String(length=20), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_application_comments"),
        sa.ForeignKeyConstraint(
            ["application_id"],
            ["applications.id"],
            ondelete="CASCADE",
            name="fk_application_comments_application_id_applications",
        ),
    )
    op.create_index("ix_application_comments_application_id", "application_comments", ["application_id"])

    op.create_table(
        "payments",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("payment_id", sa.String(length=64), nullable=False),
        sa.Column("transaction_id", sa.String(length=100), nullable=True),
        sa.Column("gateway_order_id", sa.String(length=100), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="PENDING", nullable=False),
        sa.Column("method", sa.String(length=50), nullable=True),
        sa.Column("gateway_response", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_payments"),
        sa.ForeignKeyConstraint(
            ["application_id"],
            ["applications.id"],
            ondelete="CASCADE",
            name="fk_payments_application_id_applications",
        ),
        sa.UniqueConstraint("payment_id", name="uq_payments_payment_id"),
        sa.CheckConstraint(
            "status IN ('PENDING', 'COMPLETED', 'FAILED', 'REFUNDED')",
            name="ck_payments_status",
        ),
        sa.CheckConstraint("amount >= 0", name="ck_payments_amount_nonneg"),
    )
    op.create_index("ix_payments_application_status", "payments", ["application_id", "status"])

    op.create_table(
        "otp_verifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("identifier", sa.String(length=100), nullable=False),
        sa.Column("purpose", sa.String(length=50), nullable=False),
        sa.Column("otp_hash", sa.String(length=64), nullable=False),
        sa.Column("officer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("transaction_id", sa.String(length=100), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("is_used", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("attempt_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_otp_verifications"),
        sa.ForeignKeyConstraint(
            ["officer_id"], ["officers.id"], ondelete="CASCADE", name="fk_otp_verifications_officer_id_officers"
        ),
        sa.ForeignKeyConstraint(
            ["application_id"],
            ["applications.id"],
            ondelete="CASCADE",
            name="fk_otp_verifications_application_id_applications",
        ),
    )
    op.create_index(
        "uq_otp_verifications_active",
        "otp_verifications",
        ["identifier", "purpose"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("actor_kind", sa.String(length=20), server_default="SYSTEM", nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("resource_type", sa.String(length=255), nullable=False),
        sa.Column("resource_id", sa.String(length=255), nullable=False),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_audit_logs"),
    )
    op.create_index("ix_audit_logs_resource", "audit_logs", ["resource_type", "resource_id"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_created_at", table_name="audit_logs")
    op.drop_index("ix_audit_logs_resource", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("uq_otp_verifications_active", table_name="otp_verifications")
    op.drop_table("otp_verifications")
    op.drop_index("ix_payments_application_status", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_application_comments_application_id", table_name="application_comments")
    op.drop_table("application_comments")
    op.drop_index("ix_application_stage_reviews_officer_open", table_name="application_stage_reviews")
    op.drop_index("ix_application_stage_reviews_application_id", table_name="application_stage_reviews")
    op.drop_table("application_stage_reviews")
    op.drop_index("ix_application_status_history_app_created", table_name="application_status_history")
    op.drop_table("application_status_history")
    op.drop_index("ix_application_documents_application_id", table_name="application_documents")
    op.drop_table("application_documents")
    op.drop_index("ix_applications_status", table_name="applications")
    op.drop_index("ix_applications_applicant_id", table_name="applications")
    op.drop_table("applications")
    op.drop_index("ix_officers_role_active", table_name="officers")
    op.drop_table("officers")
    op.drop_table("users")
