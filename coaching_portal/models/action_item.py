from datetime import datetime, date
from sqlalchemy import Integer, String, Text, DateTime, Date, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from coaching_portal.db.base import Base


class ActionItemStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    dismissed = "dismissed"


TERMINAL_ACTION_STATUSES = (ActionItemStatus.completed.value, ActionItemStatus.dismissed.value)


class ActionItem(Base):
    __tablename__ = "action_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    session_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("coaching_sessions.id"), nullable=True
    )
    coach_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    action_text: Mapped[str] = mapped_column(Text, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ActionItemStatus.pending.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
