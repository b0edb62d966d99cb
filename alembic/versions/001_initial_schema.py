"""Initial schema - doctors and appointments.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Doctors (profile fields read by the scheduler)
    op.create_table(
        "doctors",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name_en", sa.String(255), default=""),
        sa.Column("name_ar", sa.String(255), default=""),
        sa.Column("phone", sa.String(30)),
        sa.Column("checkup_price", sa.Float),
        sa.Column("follow_up_price", sa.Float),
        sa.Column("price_currency", sa.String(10), default="EGP"),
        sa.Column("working_hours", postgresql.JSONB),
        sa.Column("clinics", postgresql.JSONB, server_default=sa.text("'[]'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Appointments
    op.create_table(
        "appointments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("doctor_id", sa.String(64), nullable=False),
        sa.Column("clinic_id", sa.String(64), nullable=False, server_default=""),
        sa.Column("appointment_date", sa.Date, nullable=False),
        sa.Column("appointment_time", sa.String(5), nullable=False),
        sa.Column("appointment_type", sa.String(20), server_default="checkup"),
        sa.Column("patient_id", sa.String(64), nullable=False),
        sa.Column("patient_name", sa.String(255), server_default=""),
        sa.Column("patient_phone", sa.String(30)),
        sa.Column("doctor_name_en", sa.String(255), server_default=""),
        sa.Column("doctor_name_ar", sa.String(255), server_default=""),
        sa.Column("clinic_name_en", sa.String(255), server_default=""),
        sa.Column("clinic_name_ar", sa.String(255), server_default=""),
        sa.Column("status", sa.String(20), server_default="pending"),
        sa.Column("source", sa.String(20), server_default="patient_app"),
        sa.Column("note", sa.Text),
        sa.Column("base_price", sa.Float),
        sa.Column("price_currency", sa.String(10), server_default="EGP"),
        sa.Column("extra_fees", postgresql.JSONB, server_default=sa.text("'[]'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        # Last line of defence against two bookings landing on one slot
        sa.UniqueConstraint(
            "doctor_id", "clinic_id", "appointment_date", "appointment_time",
            name="uq_appointments_slot",
        ),
    )
    op.create_index("ix_appointments_doctor_date", "appointments", ["doctor_id", "appointment_date"])
    op.create_index("ix_appointments_status", "appointments", ["status"])


def downgrade() -> None:
    op.drop_index("ix_appointments_status", table_name="appointments")
    op.drop_index("ix_appointments_doctor_date", table_name="appointments")
    op.drop_table("appointments")
    op.drop_table("doctors")
