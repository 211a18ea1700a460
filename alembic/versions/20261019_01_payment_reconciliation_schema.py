"""payment reconciliation schema

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261019_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _column_exists(inspector: sa.Inspector, table_name: str, column_name: str) -> bool:
    return any(column["name"] == column_name for column in inspector.get_columns(table_name))


def _ensure_users(inspector: sa.Inspector) -> None:
    if not _table_exists(inspector, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("display_name", sa.String(length=255), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_users_id", "users", ["id"], unique=False)
        op.create_index("ix_users_email", "users", ["email"], unique=True)
        return

    # Storefront deployments created users before roles existed.
    if not _column_exists(inspector, "users", "role"):
        op.add_column("users", sa.Column("role", sa.String(length=20), nullable=False, server_default="user"))


def _ensure_orders(inspector: sa.Inspector) -> None:
    if not _table_exists(inspector, "orders"):
        op.create_table(
            "orders",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("order_number", sa.String(length=64), nullable=False),
            sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("payment_method", sa.String(length=50), nullable=False, server_default="mpesa"),
            sa.Column("reference_code", sa.String(length=64), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.CheckConstraint("total_amount >= 0", name="ck_orders_total_amount_non_negative"),
        )
        op.create_index("ix_orders_id", "orders", ["id"], unique=False)
        op.create_index("ix_orders_user_id", "orders", ["user_id"], unique=False)
        op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
        op.create_index("ix_orders_payment_status", "orders", ["payment_status"], unique=False)
        return

    if not _column_exists(inspector, "orders", "reference_code"):
        op.add_column("orders", sa.Column("reference_code", sa.String(length=64), nullable=True))
    if not _column_exists(inspector, "orders", "updated_at"):
        op.add_column(
            "orders",
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )


def _ensure_payments(inspector: sa.Inspector) -> None:
    if _table_exists(inspector, "payments"):
        return
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("method", sa.String(length=50), nullable=False, server_default="mpesa"),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("reference_code", sa.String(length=64), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verified_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.String(length=500), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("amount >= 0", name="ck_payments_amount_non_negative"),
    )
    op.create_index("ix_payments_id", "payments", ["id"], unique=False)
    op.create_index("ix_payments_order_id", "payments", ["order_id"], unique=True)
    op.create_index("ix_payments_user_id", "payments", ["user_id"], unique=False)
    op.create_index("ix_payments_verified", "payments", ["verified"], unique=False)
    op.create_index("ix_payments_created_at", "payments", ["created_at"], unique=False)


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    _ensure_users(inspector)
    inspector = sa.inspect(bind)
    _ensure_orders(inspector)
    inspector = sa.inspect(bind)
    _ensure_payments(inspector)


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if _table_exists(inspector, "payments"):
        op.drop_table("payments")
    if _table_exists(inspector, "orders"):
        op.drop_table("orders")
    if _table_exists(inspector, "users"):
        op.drop_table("users")
