"""scheduling tables

Revision ID: 0001
Revises:
Create Date: 2026-10-16
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

BOOKING_TYPES = ("property_viewing", "consultation", "tour")
BLOCK_TYPES = ("vacation", "meeting", "personal", "training")
RECURRING_PATTERNS = ("daily", "weekly", "monthly")
VIEWING_STATUSES = ("scheduled", "confirmed", "completed", "cancelled", "no_show")


def upgrade():
    op.create_table(
        "brokers",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("full_name", sa.Text, nullable=False),
        sa.Column("email", sa.Text),
        sa.Column("phone", sa.Text),
        sa.Column("timezone", sa.Text, nullable=False, server_default=sa.text("'Africa/Cairo'")),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("1")),
        sa.Column("schedule_version", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.current_timestamp()),
    )

    op.create_table(
        "property_brokers",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("property_id", sa.Integer, nullable=False, index=True),
        sa.Column("broker_id", sa.Integer, sa.ForeignKey("brokers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("is_primary", sa.Boolean, nullable=False, server_default=sa.text("0")),
        sa.Column(
            "assignment_type",
            sa.Enum("listing", "selling", "showing", native_enum=False),
            nullable=False,
            server_default=sa.text("'showing'"),
        ),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.current_timestamp()),
    )

    op.create_table(
        "broker_availability",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("broker_id", sa.Integer, sa.ForeignKey("brokers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("start_time", sa.Text, nullable=False),
        sa.Column("end_time", sa.Text, nullable=False),
        sa.Column("slot_duration_minutes", sa.Integer, nullable=False, server_default=sa.text("60")),
        sa.Column("break_between_slots", sa.Integer, nullable=False, server_default=sa.text("15")),
        sa.Column("max_bookings", sa.Integer, nullable=False, server_default=sa.text("1")),
        sa.Column("current_bookings", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column(
            "booking_type",
            sa.Enum(*BOOKING_TYPES, native_enum=False),
            nullable=False,
            server_default=sa.text("'property_viewing'"),
        ),
        sa.Column("notes", sa.Text),
        sa.Column("is_available", sa.Boolean, nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.current_timestamp()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.current_timestamp()),
        sa.CheckConstraint("current_bookings >= 0", name="ck_availability_bookings_floor"),
        sa.CheckConstraint("current_bookings <= max_bookings", name="ck_availability_bookings_cap"),
        sa.CheckConstraint("slot_duration_minutes > 0", name="ck_availability_slot_duration"),
        sa.CheckConstraint("start_time < end_time", name="ck_availability_time_order"),
    )
    op.create_index("ix_broker_availability_broker_date", "broker_availability", ["broker_id", "date"])

    op.create_table(
        "broker_blocked_times",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("broker_id", sa.Integer, sa.ForeignKey("brokers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_datetime", sa.DateTime, nullable=False),
        sa.Column("end_datetime", sa.DateTime, nullable=False),
        sa.Column("reason", sa.Text, nullable=False, server_default=sa.text("''")),
        sa.Column(
            "block_type",
            sa.Enum(*BLOCK_TYPES, native_enum=False),
            nullable=False,
            server_default=sa.text("'personal'"),
        ),
        sa.Column("is_recurring", sa.Boolean, nullable=False, server_default=sa.text("0")),
        sa.Column("recurring_pattern", sa.Enum(*RECURRING_PATTERNS, native_enum=False)),
        sa.Column("recurring_until", sa.DateTime),
        sa.Column(
            "parent_id",
            sa.Integer,
            sa.ForeignKey("broker_blocked_times.id", ondelete="SET NULL"),
        ),
        sa.Column("created_by", sa.Text),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.current_timestamp()),
        sa.CheckConstraint("end_datetime > start_datetime", name="ck_blocked_time_order"),
    )
    op.create_index(
        "ix_broker_blocked_times_broker_start",
        "broker_blocked_times",
        ["broker_id", "start_datetime"],
    )

    op.create_table(
        "property_viewings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("property_id", sa.Integer, nullable=False, index=True),
        sa.Column("broker_id", sa.Integer, sa.ForeignKey("brokers.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "availability_id",
            sa.Integer,
            sa.ForeignKey("broker_availability.id", ondelete="SET NULL"),
        ),
        sa.Column("start_datetime", sa.DateTime, nullable=False),
        sa.Column("end_datetime", sa.DateTime, nullable=False),
        sa.Column("duration_minutes", sa.Integer, nullable=False),
        sa.Column("visitor_name", sa.Text),
        sa.Column(
            "status",
            sa.Enum(*VIEWING_STATUSES, native_enum=False),
            nullable=False,
            server_default=sa.text("'scheduled'"),
        ),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.current_timestamp()),
    )
    op.create_index(
        "ix_property_viewings_broker_start",
        "property_viewings",
        ["broker_id", "start_datetime"],
    )


def downgrade():
    op.drop_index("ix_property_viewings_broker_start", table_name="property_viewings")
    op.drop_table("property_viewings")
    op.drop_index("ix_broker_blocked_times_broker_start", table_name="broker_blocked_times")
    op.drop_table("broker_blocked_times")
    op.drop_index("ix_broker_availability_broker_date", table_name="broker_availability")
    op.drop_table("broker_availability")
    op.drop_table("property_brokers")
    op.drop_table("brokers")
