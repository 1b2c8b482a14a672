"""Initial schema: users, services, appointments, calendar, notifications.

Revision ID: 001_initial
Revises:
Create Date: 2025-03-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

APPOINTMENT_STATUS = sa.Enum(
    "SCHEDULED", "CONFIRMED", "RESCHEDULED", "COMPLETED", "CANCELED", name="appointmentstatus"
)
NOTIFICATION_CHANNEL = sa.Enum("EMAIL", "SMS", "WHATSAPP", name="notificationchannel")
NOTIFICATION_CATEGORY = sa.Enum(
    "APPOINTMENT_CONFIRMATION",
    "APPOINTMENT_REMINDER",
    "APPOINTMENT_CANCELLATION",
    "APPOINTMENT_RESCHEDULED",
    "PASSWORD_RESET",
    "CUSTOM",
    name="notificationcategory",
)
NOTIFICATION_STATUS = sa.Enum("PENDING", "SENT", "FAILED", name="notificationstatus")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "services",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint("duration_minutes > 0", name="services_duration_positive"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("service_id", sa.Integer(), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("end_at", sa.DateTime(), nullable=False),
        sa.Column("status", APPOINTMENT_STATUS, nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointments_user_id"), "appointments", ["user_id"], unique=False)
    op.create_index(op.f("ix_appointments_service_id"), "appointments", ["service_id"], unique=False)
    op.create_index(op.f("ix_appointments_start_at"), "appointments", ["start_at"], unique=False)
    op.create_index(op.f("ix_appointments_end_at"), "appointments", ["end_at"], unique=False)
    op.create_index(op.f("ix_appointments_status"), "appointments", ["status"], unique=False)

    if op.get_bind().dialect.name == "postgresql":
        # Active appointments may not overlap; [start, end) so back-to-back is allowed
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            """
            ALTER TABLE appointments
            ADD CONSTRAINT appointments_no_overlap
            EXCLUDE USING gist (tsrange(start_at, end_at, '[)') WITH &&)
            WHERE (status NOT IN ('CANCELED', 'COMPLETED'))
            """
        )

    op.create_table(
        "business_hours",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("is_open", sa.Boolean(), nullable=False),
        sa.Column("open_time", sa.String(), nullable=False),
        sa.Column("close_time", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_business_hours_day_of_week"), "business_hours", ["day_of_week"], unique=True)

    op.create_table(
        "special_business_days",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("is_open", sa.Boolean(), nullable=False),
        sa.Column("open_time", sa.String(), nullable=True),
        sa.Column("close_time", sa.String(), nullable=True),
        sa.Column("reason", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_special_business_days_date"), "special_business_days", ["date"], unique=True)

    op.create_table(
        "time_blocks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("end_at", sa.DateTime(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_time_blocks_date"), "time_blocks", ["date"], unique=False)
    op.create_index(op.f("ix_time_blocks_start_at"), "time_blocks", ["start_at"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("category", NOTIFICATION_CATEGORY, nullable=False),
        sa.Column("channel", NOTIFICATION_CHANNEL, nullable=False),
        sa.Column("delivered_channel", NOTIFICATION_CHANNEL, nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("content", sa.String(), nullable=False),
        sa.Column("scheduled_for", sa.DateTime(), nullable=False),
        sa.Column("appointment_id", sa.Integer(), nullable=True),
        sa.Column("status", NOTIFICATION_STATUS, nullable=False),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("claimed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_notifications_user_id"), "notifications", ["user_id"], unique=False)
    op.create_index(op.f("ix_notifications_scheduled_for"), "notifications", ["scheduled_for"], unique=False)
    op.create_index(op.f("ix_notifications_appointment_id"), "notifications", ["appointment_id"], unique=False)
    op.create_index(op.f("ix_notifications_status"), "notifications", ["status"], unique=False)

    op.create_table(
        "notification_preferences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("enable_email", sa.Boolean(), nullable=False),
        sa.Column("enable_sms", sa.Boolean(), nullable=False),
        sa.Column("enable_whatsapp", sa.Boolean(), nullable=False),
        sa.Column("appointment_reminders", sa.Boolean(), nullable=False),
        sa.Column("reminder_hours", sa.Integer(), nullable=False, server_default="24"),
        sa.CheckConstraint("reminder_hours BETWEEN 1 AND 72", name="notification_preferences_reminder_hours"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_notification_preferences_user_id"), "notification_preferences", ["user_id"], unique=True
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_notification_preferences_user_id"), table_name="notification_preferences")
    op.drop_table("notification_preferences")
    op.drop_index(op.f("ix_notifications_status"), table_name="notifications")
    op.drop_index(op.f("ix_notifications_appointment_id"), table_name="notifications")
    op.drop_index(op.f("ix_notifications_scheduled_for"), table_name="notifications")
    op.drop_index(op.f("ix_notifications_user_id"), table_name="notifications")
    op.drop_table("notifications")
    op.drop_index(op.f("ix_time_blocks_start_at"), table_name="time_blocks")
    op.drop_index(op.f("ix_time_blocks_date"), table_name="time_blocks")
    op.drop_table("time_blocks")
    op.drop_index(op.f("ix_special_business_days_date"), table_name="special_business_days")
    op.drop_table("special_business_days")
    op.drop_index(op.f("ix_business_hours_day_of_week"), table_name="business_hours")
    op.drop_table("business_hours")
    if op.get_bind().dialect.name == "postgresql":
        op.execute("ALTER TABLE appointments DROP CONSTRAINT IF EXISTS appointments_no_overlap")
    op.drop_index(op.f("ix_appointments_status"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_end_at"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_start_at"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_service_id"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_user_id"), table_name="appointments")
    op.drop_table("appointments")
    op.drop_table("services")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
    for enum in (NOTIFICATION_STATUS, NOTIFICATION_CATEGORY, NOTIFICATION_CHANNEL, APPOINTMENT_STATUS):
        enum.drop(op.get_bind(), checkfirst=True)
