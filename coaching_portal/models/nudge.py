"""
Nudge templates and the append-only log of nudges sent.

NudgeRecord — one row per Slack message sent to an employee. The unique
constraint (employee_email, nudge_type, reference_id) is the dedupe key: the
dispatcher checks it before sending and the database enforces it on insert.
Only the interaction handler mutates a row (status / response columns).

nudge_type values:
  "action_reminder" — an action item is due soon        (reference_type "action_item")
  "goal_checkin"    — 3-4 days after a completed session (reference_type "session")
  "session_prep"    — the day before an upcoming session (reference_type "session")
  "weekly_digest"   — Monday summary for weekly-mode users (reference_type "digest")
"""
from datetime import datetime
from typing import Any
from sqlalchemy import Integer, String, Boolean, DateTime, JSON, func, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
import enum

from coaching_portal.db.base import Base


class NudgeType(str, enum.Enum):
    action_reminder = "action_reminder"
    goal_checkin = "goal_checkin"
    session_prep = "session_prep"
    weekly_digest = "weekly_digest"


class NudgeStatus(str, enum.Enum):
    sent = "sent"
    responded = "responded"


class NudgeTemplate(Base):
    __tablename__ = "nudge_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    nudge_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    message_blocks: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, comment='Block Kit document: {"blocks": [...]}'
    )
    fallback_text: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class NudgeRecord(Base):
    __tablename__ = "slack_nudges"
    __table_args__ = (
        UniqueConstraint(
            "employee_email", "nudge_type", "reference_id", name="uq_slack_nudge_dedupe_key"
        ),
        Index("ix_slack_nudges_message", "message_ts", "channel_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    employee_email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    nudge_type: Mapped[str] = mapped_column(String(32), nullable=False)
    reference_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reference_type: Mapped[str] = mapped_column(String(32), nullable=False)
    channel_id: Mapped[str] = mapped_column(String(32), nullable=False)
    message_ts: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=NudgeStatus.sent.value
    )
    response: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
