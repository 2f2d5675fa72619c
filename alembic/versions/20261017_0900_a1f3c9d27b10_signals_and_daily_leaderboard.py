"""signals_and_daily_leaderboard

Creates the append-only signals table and the per-day leaderboard table
keyed by (day, side, symbol).

Revision ID: a1f3c9d27b10
Revises:
Create Date: 2026-10-17 09:00:00.000000+00:00

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1f3c9d27b10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "signals",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("symbol", sa.String(40), nullable=False),
        sa.Column("symbol_plain", sa.String(20), nullable=False),
        sa.Column("side", sa.String(4), nullable=False),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("reasons", sa.Text(), nullable=True),  # comma-joined tags
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("outcome", sa.String(4), nullable=True),
        sa.CheckConstraint("side IN ('BUY', 'SELL')", name="ck_signals_side"),
        sa.CheckConstraint(
            "outcome IS NULL OR outcome IN ('WIN', 'LOSS')", name="ck_signals_outcome"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_signals"),
    )
    op.create_index(
        "idx_signals_created_at", "signals", [sa.text("created_at DESC")]
    )
    op.create_index("idx_signals_side_created", "signals", ["side", "created_at"])
    op.create_index("idx_signals_symbol_plain", "signals", ["symbol_plain"])

    op.create_table(
        "daily_leaderboard",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("side", sa.String(4), nullable=False),
        sa.Column("symbol", sa.String(40), nullable=False),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("close_price", sa.Float(), nullable=True),
        sa.Column("close_10bd", sa.Float(), nullable=True),
        sa.Column("pct_10bd", sa.Float(), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.CheckConstraint("side IN ('BUY', 'SELL')", name="ck_daily_leaderboard_side"),
        sa.PrimaryKeyConstraint("id", name="pk_daily_leaderboard"),
        sa.UniqueConstraint("day", "side", "symbol", name="uq_daily_leaderboard_key"),
    )
    op.create_index("idx_daily_leaderboard_day", "daily_leaderboard", ["day"])


def downgrade() -> None:
    op.drop_index("idx_daily_leaderboard_day", table_name="daily_leaderboard")
    op.drop_table("daily_leaderboard")
    op.drop_index("idx_signals_symbol_plain", table_name="signals")
    op.drop_index("idx_signals_side_created", table_name="signals")
    op.drop_index("idx_signals_created_at", table_name="signals")
    op.drop_table("signals")
