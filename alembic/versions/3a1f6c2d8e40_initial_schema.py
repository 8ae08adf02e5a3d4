"""initial schema

Revision ID: 3a1f6c2d8e40
Revises:
Create Date: 2026-10-12 09:30:00.000000
"""
from alembic import op
import sqlalchemy as sa


revision = "3a1f6c2d8e40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "company_config",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("bucket_minutes", sa.Integer(), nullable=False),
        sa.Column("total_trucks", sa.Integer(), nullable=False),
        sa.Column("max_trucks_per_booking", sa.Integer(), nullable=True),
        sa.Column("hold_minutes", sa.Integer(), nullable=False),
        sa.Column("customer_deposit_cents", sa.Integer(), nullable=False),
        sa.Column("customer_reschedule_fee_cents", sa.Integer(), nullable=False),
        sa.Column("sales_deposit_min_cents", sa.Integer(), nullable=False),
        sa.Column("sales_deposit_max_cents", sa.Integer(), nullable=False),
        sa.Column("sales_reschedule_fee_min_cents", sa.Integer(), nullable=False),
        sa.Column("sales_reschedule_fee_max_cents", sa.Integer(), nullable=False),
        sa.Column("sales_trip_fee_min_cents", sa.Integer(), nullable=False),
        sa.Column("sales_trip_fee_max_cents", sa.Integer(), nullable=False),
        sa.Column("sales_commission_rate_bps", sa.Integer(), nullable=False),
        sa.Column("commission_cap_cents", sa.Integer(), nullable=True),
        sa.Column("pay_period_days", sa.Integer(), nullable=False),
        sa.Column("notifications_enabled", sa.Boolean(), nullable=False),
        sa.Column("default_hourly_rate_cents", sa.Integer(), nullable=False),
        sa.Column("minimum_billed_minutes", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "fleet_locks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.execute("INSERT INTO fleet_locks (id, version) VALUES (1, 0)")

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("start_utc", sa.DateTime(), nullable=False),
        sa.Column("end_utc", sa.DateTime(), nullable=False),
        sa.Column("trucks", sa.Integer(), nullable=False),
        sa.Column("expires_at_utc", sa.DateTime(), nullable=True),
        sa.Column("released_at_utc", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_reservations_window", "reservations", ["start_utc", "end_utc"])
    op.create_index(
        "ix_reservations_released_at_utc", "reservations", ["released_at_utc"]
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("customer_user_id", sa.Integer(), nullable=True),
        sa.Column("sales_user_id", sa.Integer(), nullable=True),
        sa.Column(
            "linked_to_booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=True
        ),
        sa.Column(
            "reservation_id", sa.Integer(), sa.ForeignKey("reservations.id"), nullable=True
        ),
        sa.Column("status", sa.String(length=24), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("customer_phone", sa.String(length=50), nullable=False),
        sa.Column("move_from_address", sa.String(length=500), nullable=False),
        sa.Column("move_to_address", sa.String(length=500), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("start_utc", sa.DateTime(), nullable=False),
        sa.Column("end_utc", sa.DateTime(), nullable=False),
        sa.Column("requested_trucks", sa.Integer(), nullable=False),
        sa.Column("deposit_amount_cents", sa.Integer(), nullable=False),
        sa.Column("reschedule_fee_amount_cents", sa.Integer(), nullable=True),
        sa.Column("trip_fee_cents", sa.Integer(), nullable=True),
        sa.Column("special_items", sa.JSON(), nullable=False),
        sa.Column("hold_expires_at_utc", sa.DateTime(), nullable=True),
        sa.Column("created_at_utc", sa.DateTime(), nullable=True),
        sa.Column("updated_at_utc", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_start_utc", "bookings", ["start_utc"])
    op.create_index(
        "ix_bookings_hold_expires_at_utc", "bookings", ["hold_expires_at_utc"]
    )
    op.create_index("ix_bookings_sales_user_id", "bookings", ["sales_user_id"])

    op.create_table(
        "trucks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.UniqueConstraint("name", name="uq_trucks_name"),
    )
    op.create_index("ix_trucks_is_active", "trucks", ["is_active"])

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=True, unique=True),
        sa.Column("employee_number", sa.String(length=50), nullable=True),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("hourly_rate_cents", sa.Integer(), nullable=False),
        sa.Column("is_manager", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "jobs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "booking_id",
            sa.Integer(),
            sa.ForeignKey("bookings.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("truck_id", sa.Integer(), sa.ForeignKey("trucks.id"), nullable=True),
        sa.Column("status", sa.String(length=15), nullable=False),
        sa.Column("status_before_issue", sa.String(length=15), nullable=True),
        sa.Column("scheduled_start_utc", sa.DateTime(), nullable=False),
        sa.Column("actual_start_utc", sa.DateTime(), nullable=True),
        sa.Column("actual_end_utc", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("issue_description", sa.Text(), nullable=True),
        sa.Column("tip_amount_cents", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_jobs_status", "jobs", ["status"])
    op.create_index("ix_jobs_scheduled_start_utc", "jobs", ["scheduled_start_utc"])

    op.create_table(
        "job_crew",
        sa.Column(
            "job_id",
            sa.Integer(),
            sa.ForeignKey("jobs.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "employee_id", sa.Integer(), sa.ForeignKey("employees.id"), primary_key=True
        ),
    )

    op.create_table(
        "job_materials",
        sa.Column(
            "job_id",
            sa.Integer(),
            sa.ForeignKey("jobs.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("material_code", sa.String(length=50), primary_key=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
    )

    op.create_table(
        "job_status_overrides",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "job_id",
            sa.Integer(),
            sa.ForeignKey("jobs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("from_status", sa.String(length=50), nullable=False),
        sa.Column("to_status", sa.String(length=50), nullable=False),
        sa.Column("note", sa.String(length=255), nullable=True),
        sa.Column("overridden_at", sa.DateTime(), nullable=False),
        sa.Column("overridden_by", sa.String(length=150), nullable=False),
    )

    op.create_table(
        "time_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "job_id",
            sa.Integer(),
            sa.ForeignKey("jobs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "employee_id", sa.Integer(), sa.ForeignKey("employees.id"), nullable=False
        ),
        sa.Column("check_in_utc", sa.DateTime(), nullable=False),
        sa.Column("check_out_utc", sa.DateTime(), nullable=True),
    )
    op.create_index(
        "ix_time_entries_job_employee", "time_entries", ["job_id", "employee_id"]
    )
    op.create_index("ix_time_entries_check_in_utc", "time_entries", ["check_in_utc"])

    for table in ("special_item_rates", "material_rates"):
        price_column = "price_cents" if table == "special_item_rates" else "unit_price_cents"
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("code", sa.String(length=50), nullable=False),
            sa.Column("label", sa.String(length=120), nullable=False),
            sa.Column(price_column, sa.Integer(), nullable=False),
            sa.Column(
                "is_active", sa.Boolean(), nullable=False, server_default=sa.true()
            ),
            sa.Column(
                "updated_at",
                sa.DateTime(),
                nullable=False,
                server_default=sa.func.now(),
            ),
            sa.UniqueConstraint("code", name=f"uq_{table}_code"),
        )

    op.create_table(
        "sales_commissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "booking_id",
            sa.Integer(),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("sales_user_id", sa.Integer(), nullable=False),
        sa.Column("deposit_amount_cents", sa.Integer(), nullable=False),
        sa.Column("commission_amount_cents", sa.Integer(), nullable=False),
        sa.Column("is_final", sa.Boolean(), nullable=False),
        sa.Column("finalized_at_utc", sa.DateTime(), nullable=True),
        sa.Column("created_at_utc", sa.DateTime(), nullable=True),
        sa.Column("updated_at_utc", sa.DateTime(), nullable=True),
    )
    op.create_index(
        "ix_sales_commissions_sales_user_id", "sales_commissions", ["sales_user_id"]
    )


def downgrade() -> None:
    op.drop_table("sales_commissions")
    op.drop_table("material_rates")
    op.drop_table("special_item_rates")
    op.drop_table("time_entries")
    op.drop_table("job_status_overrides")
    op.drop_table("job_materials")
    op.drop_table("job_crew")
    op.drop_table("jobs")
    op.drop_table("employees")
    op.drop_table("trucks")
    op.drop_table("bookings")
    op.drop_table("reservations")
    op.drop_table("fleet_locks")
    op.drop_table("company_config")
