"""create_monitor_tables

Revision ID: 3b1f6c2a9d40
Revises:
Create Date: 2026-01-05 09:12:44.218530

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b1f6c2a9d40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create wallets, seen_transactions and notification_settings."""
    op.create_table(
        "wallets",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "tenant_id",
            sa.String(length=255),
            nullable=False,
            comment="Owner of the wallet (user or team identifier)",
        ),
        sa.Column(
            "chain_id",
            sa.Integer(),
            nullable=False,
            comment="EVM chain id (1, 10, 137, 8453, ...)",
        ),
        sa.Column(
            "address",
            sa.String(length=42),
            nullable=False,
            comment="Lower-cased Safe address",
        ),
        sa.Column(
            "name", sa.String(length=255), nullable=True, comment="Optional display name"
        ),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "tenant_id", "chain_id", "address", name="uq_wallet_tenant_chain_address"
        ),
    )
    op.create_index("ix_wallets_tenant_id", "wallets", ["tenant_id"])
    op.create_index("ix_wallets_address", "wallets", ["address"])
    op.create_index("ix_wallets_enabled", "wallets", ["enabled"])

    op.create_table(
        "seen_transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("wallet_id", sa.Integer(), nullable=False),
        sa.Column(
            "safe_tx_hash",
            sa.String(length=66),
            nullable=False,
            comment="Content hash of the Safe transaction",
        ),
        sa.Column("first_seen", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_checked", sa.DateTime(timezone=True), nullable=False),
        sa.Column("confirmations", sa.Integer(), nullable=False),
        sa.Column("threshold", sa.Integer(), nullable=False),
        sa.Column(
            "notified",
            sa.Boolean(),
            nullable=False,
            comment="Set once a notification was delivered; never reset",
        ),
        sa.ForeignKeyConstraint(["wallet_id"], ["wallets.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("wallet_id", "safe_tx_hash", name="uq_seen_wallet_hash"),
    )
    op.create_index("ix_seen_transactions_wallet_id", "seen_transactions", ["wallet_id"])
    op.create_index(
        "ix_seen_transactions_last_checked", "seen_transactions", ["last_checked"]
    )
    op.create_index(
        "idx_seen_wallet_notified", "seen_transactions", ["wallet_id", "notified"]
    )

    op.create_table(
        "notification_settings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=255), nullable=False),
        sa.Column("telegram_bot_token", sa.String(length=255), nullable=True),
        sa.Column("telegram_chat_id", sa.String(length=255), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_notification_settings_tenant_id",
        "notification_settings",
        ["tenant_id"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("ix_notification_settings_tenant_id", table_name="notification_settings")
    op.drop_table("notification_settings")
    op.drop_index("idx_seen_wallet_notified", table_name="seen_transactions")
    op.drop_index("ix_seen_transactions_last_checked", table_name="seen_transactions")
    op.drop_index("ix_seen_transactions_wallet_id", table_name="seen_transactions")
    op.drop_table("seen_transactions")
    op.drop_index("ix_wallets_enabled", table_name="wallets")
    op.drop_index("ix_wallets_address", table_name="wallets")
    op.drop_index("ix_wallets_tenant_id", table_name="wallets")
    op.drop_table("wallets")
