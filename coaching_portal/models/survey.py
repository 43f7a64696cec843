"""
Native survey submissions and GROW competency scores.

SurveySubmission — one row per completed survey. A (email, session_id) pair
has at most one submission; that is what makes a session "surveyed". GROW
baseline / end submissions are not tied to a session (session_id NULL).

SurveyCompetencyScore — child rows of grow_* submissions, written in the same
transaction as the parent and never updated afterwards.
  score      : 1=Learning, 2=Growing, 3=Applying, 4=Excelling, 5=Mastering
  score_type : "pre" (baseline) | "post" (midpoint / end)
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import (
    Integer, String, Text, Boolean, DateTime, JSON, ForeignKey, CheckConstraint,
    UniqueConstraint, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from coaching_portal.db.base import Base


class SurveyType(str, enum.Enum):
    scale_feedback = "scale_feedback"
    scale_end = "scale_end"
    grow_baseline = "grow_baseline"
    grow_midpoint = "grow_midpoint"
    grow_end = "grow_end"


class ScoreType(str, enum.Enum):
    pre = "pre"
    post = "post"


class CoreCompetency(Base):
    __tablename__ = "core_competencies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class SurveySubmission(Base):
    __tablename__ = "survey_submissions"
    __table_args__ = (
        UniqueConstraint("email", "session_id", name="uq_survey_submission_email_session"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    survey_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    session_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("coaching_sessions.id"), nullable=True, index=True
    )
    session_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    coach_name: Mapped[str | None] = mapped_column(String(256), nullable=True)

    # scale_* payload
    coach_satisfaction: Mapped[int | None] = mapped_column(Integer, nullable=True)
    wants_rematch: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    rematch_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    coach_qualities: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    has_booked_next_session: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    nps: Mapped[int | None] = mapped_column(Integer, nullable=True)
    feedback_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    # end-of-program / grow payload
    outcomes: Mapped[str | None] = mapped_column(Text, nullable=True)
    open_to_testimonial: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    focus_areas: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    competency_scores: Mapped[list["SurveyCompetencyScore"]] = relationship(
        back_populates="submission", cascade="all, delete-orphan"
    )


class SurveyCompetencyScore(Base):
    __tablename__ = "survey_competency_scores"
    __table_args__ = (
        UniqueConstraint(
            "survey_submission_id", "competency_name", name="uq_competency_score_submission_name"
        ),
        CheckConstraint("score >= 1 AND score <= 5", name="ck_competency_score_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    survey_submission_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("survey_submissions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    competency_name: Mapped[str] = mapped_column(String(128), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    score_type: Mapped[str] = mapped_column(String(8), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    submission: Mapped[SurveySubmission] = relationship(back_populates="competency_scores")
