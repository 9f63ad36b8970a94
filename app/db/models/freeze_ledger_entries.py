from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Index, Integer, String, event, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class FreezeLedgerEntry(Base):
    __tablename__ = "streak_freeze_ledger"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_streak_freeze_ledger_amount_non_negative"),
        CheckConstraint("freeze_type IN ('MANUAL','AUTO')", name="ck_streak_freeze_ledger_freeze_type"),
        CheckConstraint("direction IN ('CREDIT','DEBIT')", name="ck_streak_freeze_ledger_direction"),
        CheckConstraint(
            "source IN ('GRANT','USER_FREEZE','CHECKIN_AUTO')",
            name="ck_streak_freeze_ledger_source",
        ),
        CheckConstraint("balance_after >= 0", name="ck_streak_freeze_ledger_balance_non_negative"),
        Index("idx_streak_freeze_ledger_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    freeze_type: Mapped[str] = mapped_column(String(8), nullable=False)
    direction: Mapped[str] = mapped_column(String(8), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    days_covered: Mapped[int | None] = mapped_column(Integer, nullable=True)
    resulting_streak: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(16), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    metadata_: Mapped[dict[str, object]] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def _reject_ledger_mutation(mapper, connection, target: FreezeLedgerEntry) -> None:
    raise ValueError("streak_freeze_ledger is append-only")


event.listen(FreezeLedgerEntry, "before_update", _reject_ledger_mutation)
event.listen(FreezeLedgerEntry, "before_delete", _reject_ledger_mutation)
