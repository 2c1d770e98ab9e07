"""review appointments and payment challans

Revision ID: 0002_appointments_and_challans
Revises: 0001_initial_workflow_schema
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0002_appointments_and_challans"
down_revision = "0001_initial_workflow_schema"
branch_labels = None
depends_on = None

_BASE_DOCUMENT_TYPES = (
    "'ADDRESS_PROOF', 'PAN_CARD', 'AADHAR_CARD', 'DEGREE_CERTIFICATE', 'MARKSHEET', "
    "'EXPERIENCE_CERTIFICATE', 'ISSE_CERTIFICATE', 'PROPERTY_TAX_RECEIPT', 'PROFILE_PICTURE', "
    "'SELF_DECLARATION', 'COA_CERTIFICATE', 'ADDITIONAL_DOCUMENT', 'RECOMMENDATION_FORM', "
    "'LICENCE_CERTIFICATE'"
)
DOCUMENT_TYPES = f"{_BASE_DOCUMENT_TYPES}, 'PAYMENT_CHALLAN'"


def upgrade() -> None:
    op.create_table(
        "appointments",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("review_cycle", sa.Integer(), server_default="1", nullable=False),
        sa.Column("scheduled_by_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("place", sa.String(length=255), nullable=False),
        sa.Column("room_number", sa.String(length=50), nullable=False),
        sa.Column("contact_person", sa.String(length=255), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="SCHEDULED", nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completion_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_appointments"),
        sa.ForeignKeyConstraint(
            ["application_id"],
            ["applications.id"],
            ondelete="CASCADE",
            name="fk_appointments_application_id_applications",
        ),
        sa.ForeignKeyConstraint(
            ["scheduled_by_id"],
            ["officers.id"],
            ondelete="RESTRICT",
            name="fk_appointments_scheduled_by_id_officers",
        ),
        sa.CheckConstraint(
            "status IN ('SCHEDULED', 'COMPLETED', 'CANCELLED', 'RESCHEDULED')",
            name="ck_appointments_status",
        ),
    )
    op.create_index("ix_appointments_application_cycle", "appointments", ["application_id", "review_cycle"])

    op.add_column("payments", sa.Column("challan_number", sa.String(length=40), nullable=True))
    op.create_unique_constraint("uq_payments_challan_number", "payments", ["challan_number"])

    op.drop_constraint("ck_application_documents_type", "application_documents", type_="check")
    op.create_check_constraint(
        "ck_application_documents_type",
        "application_documents",
        f"document_type IN ({DOCUMENT_TYPES})",
    )


def downgrade() -> None:
    op.execute("DELETE FROM application_documents WHERE document_type = 'PAYMENT_CHALLAN'")
    op.drop_constraint("ck_application_documents_type", "application_documents", type_="check")
    op.create_check_constraint(
        "ck_application_documents_type",
        "application_documents",
        f"document_type IN ({_BASE_DOCUMENT_TYPES})",
    )
    op.drop_constraint("uq_payments_challan_number", "payments", type_="unique")
    op.drop_column("payments", "challan_number")
    op.drop_index("ix_appointments_application_cycle", table_name="appointments")
    op.drop_table("appointments")
