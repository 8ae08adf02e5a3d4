"""reservation lineage and employee availability

Revision ID: 7c4d2e9f1a35
Revises: 3a1f6c2d8e40
Create Date: 2026-10-18 10:15:00.000000
"""
from alembic import op
import sqlalchemy as sa


revision = "7c4d2e9f1a35"
down_revision = "3a1f6c2d8e40"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("reservations") as batch_op:
        batch_op.add_column(sa.Column("lineage_id", sa.Integer(), nullable=True))
        batch_op.create_index("ix_reservations_lineage_id", ["lineage_id"])

    op.execute(
        """
        UPDATE reservations SET lineage_id = (
            SELECT predecessor.reservation_id
            FROM bookings AS replacement
            JOIN bookings AS predecessor
                ON predecessor.id = replacement.linked_to_booking_id
            WHERE replacement.reservation_id = reservations.id
        )
        WHERE id IN (
            SELECT reservation_id FROM bookings
            WHERE linked_to_booking_id IS NOT NULL
        )
        """
    )

    op.create_table(
        "employee_schedules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "employee_id",
            sa.Integer(),
            sa.ForeignKey("employees.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.UniqueConstraint(
            "employee_id", "day_of_week", name="uq_employee_schedules_employee_day"
        ),
    )

    op.create_table(
        "day_off_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "employee_id",
            sa.Integer(),
            sa.ForeignKey("employees.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("date_utc", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=True),
        sa.Column("status", sa.String(length=8), nullable=False),
        sa.Column("reviewed_by_user_id", sa.Integer(), nullable=True),
        sa.Column("reviewed_at_utc", sa.DateTime(), nullable=True),
        sa.Column("review_notes", sa.String(length=500), nullable=True),
        sa.Column("created_at_utc", sa.DateTime(), nullable=True),
        sa.Column("updated_at_utc", sa.DateTime(), nullable=True),
    )
    op.create_index(
        "ix_day_off_requests_employee_date",
        "day_off_requests",
        ["employee_id", "date_utc"],
    )
    op.create_index("ix_day_off_requests_status", "day_off_requests", ["status"])


def downgrade() -> None:
    op.drop_index("ix_day_off_requests_status", table_name="day_off_requests")
    op.drop_index("ix_day_off_requests_employee_date", table_name="day_off_requests")
    op.drop_table("day_off_requests")
    op.drop_table("employee_schedules")
    with op.batch_alter_table("reservations") as batch_op:
        batch_op.drop_index("ix_reservations_lineage_id")
        batch_op.drop_column("lineage_id")
