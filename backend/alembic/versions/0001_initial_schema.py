"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Creates all tables for the family booking ledger:
users, grants, categories, events, transactions, notifications.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("fullname", sa.String(150), nullable=False),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- grants ---
    op.create_table(
        "grants",
        sa.Column("grant_id", sa.String(36), primary_key=True),
        sa.Column("owner_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("member_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column(
            "permission",
            sa.Enum("read", "write", "owner", name="grantlevel"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("owner_id", "member_id", name="uq_grants_owner_member"),
    )
    op.create_index("ix_grants_owner_id", "grants", ["owner_id"])
    op.create_index("ix_grants_member_id", "grants", ["member_id"])

    # --- categories ---
    op.create_table(
        "categories",
        sa.Column("category_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("status", sa.Integer, nullable=False, server_default="1"),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- events ---
    op.create_table(
        "events",
        sa.Column("event_id", sa.String(36), primary_key=True),
        sa.Column("owner_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("created_by", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("updated_by", sa.String(36), sa.ForeignKey("users.user_id"), nullable=True),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("categories.category_id"), nullable=False),
        sa.Column("event_name", sa.String(255), nullable=False),
        sa.Column("contact_mobile", sa.String(20), nullable=False),
        sa.Column("booking_total_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("advance_payment", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("payment_method", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("status", sa.Integer, nullable=False, server_default="1"),
        sa.Column(
            "priority",
            sa.Enum("low", "medium", "high", name="priority"),
            nullable=False,
            server_default="medium",
        ),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status IN (0, 1, 2)", name="ck_events_status"),
    )
    op.create_index("ix_events_owner_id", "events", ["owner_id"])

    # --- transactions ---
    op.create_table(
        "transactions",
        sa.Column("transaction_id", sa.String(36), primary_key=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.event_id"), nullable=False),
        sa.Column("added_by", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(100), nullable=True),
        sa.Column("reference", sa.Text, nullable=True),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "old_transaction_id",
            sa.String(36),
            sa.ForeignKey("transactions.transaction_id"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_transactions_event_id", "transactions", ["event_id"])

    # --- notifications ---
    op.create_table(
        "notifications",
        sa.Column("notification_id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("transactions")
    op.drop_table("events")
    op.drop_table("categories")
    op.drop_table("grants")
    op.drop_table("users")
    sa.Enum(name="priority").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="grantlevel").drop(op.get_bind(), checkfirst=True)
