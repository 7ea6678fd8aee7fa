from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import BigInteger, Boolean, CheckConstraint, Date, DateTime, Index, Integer, SmallInteger
from sqlalchemy.orm import Mapped, mapped_column

from fittrack.db.models.base import Base


class StreakState(Base):
    __tablename__ = "streak_state"
    __table_args__ = (
        CheckConstraint("current_streak >= 0", name="ck_streak_state_current_streak_non_negative"),
        CheckConstraint(
            "longest_streak >= current_streak",
            name="ck_streak_state_longest_not_below_current",
        ),
        CheckConstraint(
            "freezes_available IN (0, 1)",
            name="ck_streak_state_freezes_available_range",
        ),
        Index("idx_streak_last_active", "last_active_at"),
    )

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_active_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    freezes_available: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=1)
    freeze_week_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    grace_used_this_week: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
