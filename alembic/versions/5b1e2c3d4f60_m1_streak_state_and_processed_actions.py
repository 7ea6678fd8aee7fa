"""m1_streak_state_and_processed_actions

Revision ID: 5b1e2c3d4f60
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "5b1e2c3d4f60"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "streak_state",
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("freezes_available", sa.SmallInteger(), nullable=False, server_default=sa.text("1")),
        sa.Column("freeze_week_start", sa.Date(), nullable=True),
        sa.Column("grace_used_this_week", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("current_streak >= 0", name="ck_streak_state_current_streak_non_negative"),
        sa.CheckConstraint(
            "longest_streak >= current_streak",
            name="ck_streak_state_longest_not_below_current",
        ),
        sa.CheckConstraint(
            "freezes_available IN (0, 1)",
            name="ck_streak_state_freezes_available_range",
        ),
        sa.PrimaryKeyConstraint("user_id"),
    )
    op.create_index("idx_streak_last_active", "streak_state", ["last_active_at"])

    op.create_table(
        "processed_actions",
        sa.Column("idempotency_key", sa.String(64), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("outcome", sa.String(32), nullable=True),
        sa.Column("response", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("idempotency_key"),
    )
    op.create_index("idx_processed_actions_user", "processed_actions", ["user_id"])
    op.create_index("idx_processed_actions_processed_at", "processed_actions", ["processed_at"])


def downgrade() -> None:
    op.drop_index("idx_processed_actions_processed_at", table_name="processed_actions")
    op.drop_index("idx_processed_actions_user", table_name="processed_actions")
    op.drop_table("processed_actions")

    op.drop_index("idx_streak_last_active", table_name="streak_state")
    op.drop_table("streak_state")
