"""Initial schema: staff, clients, bookings, payment tokens and the payment ledger.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Staff table
    op.create_table(
        "staff",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )
    op.create_index("ix_staff_id", "staff", ["id"])
    op.create_index("ix_staff_email", "staff", ["email"], unique=True)
    op.create_index("ix_staff_username", "staff", ["username"], unique=True)

    # Clients table
    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=False, server_default=sa.text("''")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'Lead'")),
        sa.Column("last_contact", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        *_timestamps(),
    )
    op.create_index("ix_clients_id", "clients", ["id"])
    op.create_index("ix_clients_email", "clients", ["email"], unique=True)

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_name", sa.String(255), nullable=False),
        sa.Column("client_email", sa.String(255), nullable=True),
        sa.Column("client_phone", sa.String(50), nullable=False, server_default=sa.text("''")),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'Pending'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'unpaid'")),
        sa.Column("amount_paid", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("number_of_guests", sa.Integer(), nullable=False, server_default=sa.text("2")),
        sa.Column("source", sa.String(30), nullable=False, server_default=sa.text("'manual'")),
        sa.Column("notes", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("billing_name", sa.String(255), nullable=True),
        sa.Column("billing_nif", sa.String(50), nullable=True),
        sa.Column("billing_address", sa.String(500), nullable=True),
        sa.Column("houseboat_id", sa.String(64), nullable=True),
        sa.Column("restaurant_table_id", sa.String(64), nullable=True),
        sa.Column("daily_travel_package_id", sa.String(64), nullable=True),
        # Payment session that created the booking; one booking per session
        sa.Column("source_session_id", sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("source_session_id", name="uq_bookings_source_session_id"),
        sa.CheckConstraint(
            "(CASE WHEN houseboat_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN restaurant_table_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN daily_travel_package_id IS NULL THEN 0 ELSE 1 END) <= 1",
            name="check_booking_single_resource",
        ),
        sa.CheckConstraint("amount_paid >= 0", name="check_booking_amount_paid_non_negative"),
        sa.CheckConstraint(
            "status IN ('Pending', 'Confirmed', 'Maintenance', 'Cancelled')",
            name="check_booking_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('unpaid', 'deposit_paid', 'fully_paid', 'failed')",
            name="check_booking_payment_status",
        ),
    )
    op.create_index("ix_bookings_client_email", "bookings", ["client_email"])
    # Availability checks scan one boat's bookings by time
    op.create_index("ix_bookings_houseboat_start", "bookings", ["houseboat_id", "start_time"])

    # Payment tokens table
    op.create_table(
        "payment_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("requested_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("staff.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_payment_tokens_id", "payment_tokens", ["id"])
    op.create_index("ix_payment_tokens_token", "payment_tokens", ["token"], unique=True)
    op.create_index("ix_payment_tokens_booking_id", "payment_tokens", ["booking_id"])

    # Payment ledger. UNIQUE stripe_session_id: a checkout session is applied at most once.
    op.create_table(
        "payment_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("method", sa.String(20), nullable=False, server_default=sa.text("'other'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'paid'")),
        sa.Column("reference", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("stripe_session_id", sa.String(255), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        *_timestamps(),
        sa.UniqueConstraint("stripe_session_id", name="uq_payment_transactions_stripe_session_id"),
        sa.CheckConstraint("amount >= 0", name="check_transaction_amount_non_negative"),
        sa.CheckConstraint(
            "status IN ('paid', 'pending', 'refunded', 'failed')",
            name="check_transaction_status",
        ),
    )
    op.create_index("ix_payment_transactions_id", "payment_transactions", ["id"])
    op.create_index("ix_payment_transactions_booking_id", "payment_transactions", ["booking_id"])


def downgrade() -> None:
    op.drop_table("payment_transactions")
    op.drop_table("payment_tokens")
    op.drop_table("bookings")
    op.drop_table("clients")
    op.drop_table("staff")
