"""wallet ledger core: accounts, ledger entries, idempotency/run claims

Revision ID: 0001_wallet_ledger
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_wallet_ledger"
down_revision = None
branch_labels = None
depends_on = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "player_accounts",
        sa.Column("player_id", sa.String(length=64), primary_key=True),
        sa.Column("coins", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("experience", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("tickets", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("games_played", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("coins >= 0", name="ck_player_accounts_coins_non_negative"),
        sa.CheckConstraint(
            "experience >= 0", name="ck_player_accounts_experience_non_negative"
        ),
        sa.CheckConstraint("tickets >= 0", name="ck_player_accounts_tickets_non_negative"),
        sa.CheckConstraint(
            "games_played >= 0", name="ck_player_accounts_games_played_non_negative"
        ),
        sa.CheckConstraint("level >= 1", name="ck_player_accounts_level_positive"),
    )

    op.create_table(
        "wallet_ledger",
        sa.Column("id", ID_TYPE, primary_key=True, autoincrement=True),
        sa.Column(
            "player_id",
            sa.String(length=64),
            sa.ForeignKey("player_accounts.player_id"),
            nullable=False,
        ),
        sa.Column("category", sa.String(length=16), nullable=False),
        sa.Column("coin_delta", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("experience_delta", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("ticket_delta", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("plays_delta", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("balance_after", sa.BigInteger(), nullable=False),
        sa.Column("experience_after", sa.BigInteger(), nullable=False),
        sa.Column("tickets_after", sa.BigInteger(), nullable=False),
        sa.Column("games_played_after", sa.BigInteger(), nullable=False),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.Column("run_id", sa.String(length=128), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("source_game", sa.String(length=64), nullable=True),
        sa.Column("reference", sa.String(length=128), nullable=True),
        sa.Column(
            "meta",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("idempotency_key", name="uq_wallet_ledger_idempotency_key"),
        sa.UniqueConstraint("player_id", "run_id", name="uq_wallet_ledger_player_run"),
        sa.CheckConstraint(
            "category IN ('earn','spend','game','reward')",
            name="ck_wallet_ledger_category",
        ),
        sa.CheckConstraint(
            "coin_delta <> 0 OR experience_delta <> 0 "
            "OR ticket_delta <> 0 OR plays_delta <> 0",
            name="ck_wallet_ledger_non_empty",
        ),
        sa.CheckConstraint("balance_after >= 0", name="ck_wallet_ledger_balance_after"),
    )
    op.create_index(
        "idx_wallet_ledger_player_id", "wallet_ledger", ["player_id", "id"]
    )
    op.create_index(
        "idx_wallet_ledger_player_created", "wallet_ledger", ["player_id", "created_at"]
    )

    op.create_table(
        "ledger_claims",
        sa.Column("id", ID_TYPE, primary_key=True, autoincrement=True),
        sa.Column("scope", sa.String(length=16), nullable=False),
        sa.Column("owner", sa.String(length=64), nullable=False),
        sa.Column("token", sa.String(length=128), nullable=False),
        sa.Column("entry_id", ID_TYPE, sa.ForeignKey("wallet_ledger.id"), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("scope", "owner", "token", name="uq_ledger_claims_key"),
    )


def downgrade() -> None:
    op.drop_table("ledger_claims")
    op.drop_index("idx_wallet_ledger_player_created", table_name="wallet_ledger")
    op.drop_index("idx_wallet_ledger_player_id", table_name="wallet_ledger")
    op.drop_table("wallet_ledger")
    op.drop_table("player_accounts")
