"""
Checkpoint — longitudinal SCALE check-in, separate from session-linked surveys.

Unique (email, checkpoint_number): an employee cannot submit the same
checkpoint twice.
"""
from datetime import datetime
from typing import Any
from sqlalchemy import Integer, String, Text, Boolean, DateTime, JSON, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from coaching_portal.db.base import Base


class Checkpoint(Base):
    __tablename__ = "checkpoints"
    __table_args__ = (
        UniqueConstraint("email", "checkpoint_number", name="uq_checkpoint_email_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    checkpoint_number: Mapped[int] = mapped_column(Integer, nullable=False)
    session_count_at_checkpoint: Mapped[int] = mapped_column(Integer, nullable=False)
    competency_scores: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    reflection_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    focus_area: Mapped[str | None] = mapped_column(String(256), nullable=True)
    nps_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    testimonial_consent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
