from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from fittrack.db.models.base import Base


class ProcessedAction(Base):
    __tablename__ = "processed_actions"
    __table_args__ = (
        Index("idx_processed_actions_user", "user_id"),
        Index("idx_processed_actions_processed_at", "processed_at"),
    )

    idempotency_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    outcome: Mapped[str | None] = mapped_column(String(32), nullable=True)
    response: Mapped[dict[str, object] | None] = mapped_column(JSONB, nullable=True)
    processed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
