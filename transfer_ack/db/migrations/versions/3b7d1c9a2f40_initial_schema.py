"""initial_schema

Revision ID: 3b7d1c9a2f40
Revises:
Create Date: 2026-01-08 12:30:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b7d1c9a2f40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create accounts, transfers, acknowledgments, operators and manual transfers."""
    op.create_table(
        "provider_accounts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("alias", sa.String(length=255), nullable=True),
        sa.Column("cvu", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index(
        "ix_provider_accounts_is_active", "provider_accounts", ["is_active"]
    )

    op.create_table(
        "transfers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("payment_id", sa.String(length=64), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("amount", sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("payment_type", sa.String(length=50), nullable=False),
        sa.Column("raw_payload", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["account_id"], ["provider_accounts.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "account_id", "payment_id", name="uq_transfer_account_payment"
        ),
    )
    op.create_index("ix_transfers_payment_id", "transfers", ["payment_id"])
    op.create_index("idx_transfer_occurred_at", "transfers", ["occurred_at"])
    op.create_index(
        "idx_transfer_account_occurred", "transfers", ["account_id", "occurred_at"]
    )

    op.create_table(
        "transfer_acks",
        sa.Column("transfer_id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("username", sa.String(length=255), nullable=False),
        sa.Column("acked_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ack_date", sa.Date(), nullable=False),
        sa.ForeignKeyConstraint(["transfer_id"], ["transfers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("transfer_id"),
    )
    op.create_index("idx_ack_user_date", "transfer_acks", ["username", "ack_date"])

    op.create_table(
        "app_users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["account_id"], ["provider_accounts.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_app_users_username", "app_users", ["username"], unique=True)

    op.create_table(
        "manual_transfers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("payer_name", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decided_by", sa.String(length=255), nullable=True),
        sa.Column("admin_note", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_manual_transfers_status", "manual_transfers", ["status"])
    op.create_index(
        "idx_manual_creator_created", "manual_transfers", ["created_by", "created_at"]
    )


def downgrade() -> None:
    """Drop every table created by upgrade()."""
    op.drop_index("idx_manual_creator_created", table_name="manual_transfers")
    op.drop_index("ix_manual_transfers_status", table_name="manual_transfers")
    op.drop_table("manual_transfers")
    op.drop_index("ix_app_users_username", table_name="app_users")
    op.drop_table("app_users")
    op.drop_index("idx_ack_user_date", table_name="transfer_acks")
    op.drop_table("transfer_acks")
    op.drop_index("idx_transfer_account_occurred", table_name="transfers")
    op.drop_index("idx_transfer_occurred_at", table_name="transfers")
    op.drop_index("ix_transfers_payment_id", table_name="transfers")
    op.drop_table("transfers")
    op.drop_index("ix_provider_accounts_is_active", table_name="provider_accounts")
    op.drop_table("provider_accounts")
