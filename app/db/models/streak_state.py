from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import BigInteger, CheckConstraint, Date, DateTime, Index, Integer, SmallInteger, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class StreakState(Base):
    __tablename__ = "streak_state"
    __table_args__ = (
        CheckConstraint("user_id > 0", name="ck_streak_state_user_id_positive"),
        CheckConstraint("current_streak >= 0", name="ck_streak_state_current_streak_non_negative"),
        CheckConstraint(
            "longest_streak >= current_streak",
            name="ck_streak_state_longest_not_below_current",
        ),
        CheckConstraint("auto_freezes >= 0", name="ck_streak_state_auto_freezes_non_negative"),
        CheckConstraint(
            "manual_freezes >= 0 AND manual_freezes <= max_manual_freezes",
            name="ck_streak_state_manual_freezes_range",
        ),
        Index("idx_streak_last_checkin", "last_checkin_local_date"),
    )

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    last_checkin_local_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False)
    manual_freezes: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    auto_freezes: Mapped[int] = mapped_column(Integer, nullable=False)
    max_manual_freezes: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Flushes issue UPDATE ... WHERE version = :old and raise StaleDataError on a lost race.
    __mapper_args__ = {"version_id_col": version}
