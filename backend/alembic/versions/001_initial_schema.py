"""Initial schema: property, room, ota_platform, booking, calendar_conflict, conflict_detection_run

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "property",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("timezone", sa.String(), nullable=False, server_default="UTC"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "room",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("room_no", sa.String(), nullable=False),
        sa.Column("room_type", sa.String(), nullable=True),
        sa.Column("price_per_night", sa.Float(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["property_id"], ["property.id"]),
        sa.UniqueConstraint("property_id", "room_no", name="uq_property_room_no"),
    )
    op.create_index("ix_room_property_id", "room", ["property_id"])

    op.create_table(
        "ota_platform",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False, server_default="ical"),
        sa.Column("sync_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "booking",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("guest_name", sa.String(), nullable=False),
        sa.Column("room_no", sa.String(), nullable=True),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("no_of_pax", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("cancelled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("total_amount", sa.Float(), nullable=True),
        sa.Column("booking_date", sa.Date(), nullable=True),
        sa.Column("source", sa.String(), nullable=False, server_default="direct"),
        sa.Column("ota_platform_id", sa.Integer(), nullable=True),
        sa.Column("ota_booking_id", sa.String(), nullable=True),
        sa.Column("ota_sync_status", sa.String(), nullable=True),
        sa.Column("ota_last_sync", sa.DateTime(), nullable=True),
        sa.Column("ota_sync_error", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["property_id"], ["property.id"]),
        sa.ForeignKeyConstraint(["ota_platform_id"], ["ota_platform.id"]),
    )
    op.create_index("ix_booking_property_id", "booking", ["property_id"])
    op.create_index("ix_booking_check_in", "booking", ["check_in"])
    op.create_index("ix_booking_ota_platform_id", "booking", ["ota_platform_id"])
    op.create_index("ix_booking_ota_sync_status", "booking", ["ota_sync_status"])

    # Primary key is the deterministic conflict identity; upserts rely on it
    op.create_table(
        "calendar_conflict",
        sa.Column("id", sa.String(length=128), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("conflict_type", sa.String(), nullable=False),
        sa.Column("severity", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="detected"),
        sa.Column("conflict_date_start", sa.Date(), nullable=False),
        sa.Column("conflict_date_end", sa.Date(), nullable=False),
        sa.Column("room_no", sa.String(), nullable=True),
        sa.Column("booking_id_1", sa.Integer(), nullable=False),
        sa.Column("booking_id_2", sa.Integer(), nullable=True),
        sa.Column("description", sa.String(), nullable=False, server_default=""),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("suggested_resolution", sa.JSON(), nullable=True),
        sa.Column("resolution_action", sa.String(), nullable=True),
        sa.Column("resolution_notes", sa.String(), nullable=True),
        sa.Column("resolved_by", sa.String(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["property_id"], ["property.id"]),
        sa.CheckConstraint("severity IN ('low', 'medium', 'high')", name="ck_conflict_severity"),
        sa.CheckConstraint("status IN ('detected', 'resolved', 'ignored')", name="ck_conflict_status"),
    )
    op.create_index("ix_calendar_conflict_property_id", "calendar_conflict", ["property_id"])
    op.create_index("ix_calendar_conflict_booking_id_1", "calendar_conflict", ["booking_id_1"])
    op.create_index("ix_calendar_conflict_property_status", "calendar_conflict", ["property_id", "status"])

    op.create_table(
        "conflict_detection_run",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("finished_at", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="running"),
        sa.Column("conflicts_detected", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("conflicts_persisted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_detectors", sa.JSON(), nullable=True),
        sa.Column("skipped_detectors", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["property_id"], ["property.id"]),
    )
    op.create_index("ix_conflict_detection_run_property_id", "conflict_detection_run", ["property_id"])


def downgrade() -> None:
    op.drop_index("ix_conflict_detection_run_property_id", table_name="conflict_detection_run")
    op.drop_table("conflict_detection_run")
    op.drop_index("ix_calendar_conflict_property_status", table_name="calendar_conflict")
    op.drop_index("ix_calendar_conflict_booking_id_1", table_name="calendar_conflict")
    op.drop_index("ix_calendar_conflict_property_id", table_name="calendar_conflict")
    op.drop_table("calendar_conflict")
    op.drop_index("ix_booking_ota_sync_status", table_name="booking")
    op.drop_index("ix_booking_ota_platform_id", table_name="booking")
    op.drop_index("ix_booking_check_in", table_name="booking")
    op.drop_index("ix_booking_property_id", table_name="booking")
    op.drop_table("booking")
    op.drop_table("ota_platform")
    op.drop_index("ix_room_property_id", table_name="room")
    op.drop_table("room")
    op.drop_table("property")
