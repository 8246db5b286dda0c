"""initial schema

Revision ID: 202610170900
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610170900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "type", sa.Enum("income", "expense", name="transactiontype"), nullable=False
        ),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "user_id", "type", "name", name="uq_category_user_type_name"
        ),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column(
            "type", sa.Enum("income", "expense", name="transactiontype"), nullable=False
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("anchor_date", sa.Date(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "paid", name="transactionstatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "recurrence_kind",
            sa.Enum("none", "weekly", "biweekly", "monthly", name="recurrencekind"),
            nullable=False,
            server_default="none",
        ),
        sa.Column("recurrence_end_date", sa.Date()),
        sa.Column("group_id", sa.String(length=36)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
        sa.CheckConstraint(
            "recurrence_end_date IS NULL OR recurrence_end_date >= anchor_date",
            name="ck_transactions_end_after_anchor",
        ),
    )
    op.create_index(
        "ix_transactions_user_anchor", "transactions", ["user_id", "anchor_date"]
    )
    op.create_index(
        "ix_transactions_user_group", "transactions", ["user_id", "group_id"]
    )

    op.create_table(
        "owner_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, unique=True),
        sa.Column(
            "emergency_fund_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "currency_code",
            sa.Enum("BRL", "USD", "EUR", name="currencycode"),
            nullable=False,
            server_default="BRL",
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "emergency_fund_cents >= 0", name="ck_owner_settings_fund_positive"
        ),
    )


def downgrade():
    op.drop_table("owner_settings")
    op.drop_index("ix_transactions_user_group", table_name="transactions")
    op.drop_index("ix_transactions_user_anchor", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("categories")
