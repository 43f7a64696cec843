"""
CoachingSession: one scheduled or completed coaching appointment.

Rows are synced from the CRM; this service only reads them.

status values mirror the CRM picklist:
  "Upcoming"   — booked, not yet held
  "Completed"  — held; eligible for goal check-ins and surveys
  "Cancelled" / "No Show" — ignored by every scanner
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Text, DateTime, Date, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from coaching_portal.db.base import Base


class SessionStatus:
    UPCOMING  = "Upcoming"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW   = "No Show"


class CoachingSession(Base):
    __tablename__ = "coaching_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    employee_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("employees.id"), nullable=False, index=True
    )
    employee_email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    session_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    coach_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    goals: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    appointment_number: Mapped[int | None] = mapped_column(
        Integer, nullable=True,
        comment="1-based ordinal of this session within the employee's engagement",
    )
    program_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
