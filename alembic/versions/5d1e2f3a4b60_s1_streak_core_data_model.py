"""s1_streak_core_data_model

Revision ID: 5d1e2f3a4b60
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "5d1e2f3a4b60"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "streak_state",
        sa.Column("user_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("last_checkin_local_date", sa.Date(), nullable=True),
        sa.Column("current_streak", sa.Integer(), nullable=False),
        sa.Column("longest_streak", sa.Integer(), nullable=False),
        sa.Column("manual_freezes", sa.SmallInteger(), nullable=False),
        sa.Column("auto_freezes", sa.Integer(), nullable=False),
        sa.Column("max_manual_freezes", sa.SmallInteger(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("user_id > 0", name="ck_streak_state_user_id_positive"),
        sa.CheckConstraint("current_streak >= 0", name="ck_streak_state_current_streak_non_negative"),
        sa.CheckConstraint("longest_streak >= current_streak", name="ck_streak_state_longest_not_below_current"),
        sa.CheckConstraint("auto_freezes >= 0", name="ck_streak_state_auto_freezes_non_negative"),
        sa.CheckConstraint(
            "manual_freezes >= 0 AND manual_freezes <= max_manual_freezes",
            name="ck_streak_state_manual_freezes_range",
        ),
        sa.PrimaryKeyConstraint("user_id", name="pk_streak_state"),
    )
    op.create_index("idx_streak_last_checkin", "streak_state", ["last_checkin_local_date"])

    op.create_table(
        "streak_freeze_ledger",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("freeze_type", sa.String(8), nullable=False),
        sa.Column("direction", sa.String(8), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("days_covered", sa.Integer(), nullable=True),
        sa.Column("resulting_streak", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(16), nullable=False),
        sa.Column("idempotency_key", sa.String(128), nullable=False),
        sa.Column(
            "metadata",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_streak_freeze_ledger_amount_non_negative"),
        sa.CheckConstraint("freeze_type IN ('MANUAL','AUTO')", name="ck_streak_freeze_ledger_freeze_type"),
        sa.CheckConstraint("direction IN ('CREDIT','DEBIT')", name="ck_streak_freeze_ledger_direction"),
        sa.CheckConstraint(
            "source IN ('GRANT','USER_FREEZE','CHECKIN_AUTO')",
            name="ck_streak_freeze_ledger_source",
        ),
        sa.CheckConstraint("balance_after >= 0", name="ck_streak_freeze_ledger_balance_non_negative"),
        sa.UniqueConstraint("idempotency_key", name="uq_streak_freeze_ledger_idempotency_key"),
        sa.PrimaryKeyConstraint("id", name="pk_streak_freeze_ledger"),
    )
    op.create_index(
        "idx_streak_freeze_ledger_user_created",
        "streak_freeze_ledger",
        ["user_id", "created_at"],
    )

    op.execute(
        """
        CREATE OR REPLACE FUNCTION fn_streak_freeze_ledger_append_only()
        RETURNS trigger
        LANGUAGE plpgsql
        AS $$
        BEGIN
            RAISE EXCEPTION 'streak_freeze_ledger is append-only';
        END;
        $$;
        """
    )
    op.execute(
        """
        CREATE TRIGGER trg_streak_freeze_ledger_append_only
        BEFORE UPDATE OR DELETE ON streak_freeze_ledger
        FOR EACH ROW
        EXECUTE FUNCTION fn_streak_freeze_ledger_append_only();
        """
    )

    op.create_table(
        "streak_outbox_events",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("dedupe_key", sa.String(128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("attempts", sa.SmallInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('PENDING','SENT','FAILED')", name="ck_streak_outbox_events_status"),
        sa.UniqueConstraint("dedupe_key", name="uq_streak_outbox_events_dedupe_key"),
        sa.PrimaryKeyConstraint("id", name="pk_streak_outbox_events"),
    )
    op.create_index(
        "idx_streak_outbox_status_created",
        "streak_outbox_events",
        ["status", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_streak_outbox_status_created", table_name="streak_outbox_events")
    op.drop_table("streak_outbox_events")

    op.execute("DROP TRIGGER IF EXISTS trg_streak_freeze_ledger_append_only ON streak_freeze_ledger;")
    op.execute("DROP FUNCTION IF EXISTS fn_streak_freeze_ledger_append_only();")
    op.drop_index("idx_streak_freeze_ledger_user_created", table_name="streak_freeze_ledger")
    op.drop_table("streak_freeze_ledger")

    op.drop_index("idx_streak_last_checkin", table_name="streak_state")
    op.drop_table("streak_state")
