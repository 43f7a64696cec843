"""
Survey progression — which survey does an employee owe next?

Surveys fall due at milestone sessions (the 1st, 3rd, 6th, 12th, ... completed
appointment). Obligations are resolved oldest first: an employee who skipped
the survey for session 3 is asked for it before the one for session 6, no
matter which session happened more recently.

Survey type
-----------
  SCALE / EXEC / unknown program  -> scale_feedback
  GROW family, no baseline yet    -> grow_baseline
  GROW family, baseline on file   -> GROW_MILESTONE_SURVEYS[ordinal] if
                                     configured, else scale_feedback

Public API
----------
resolve_program_type(program)            -> "GROW" | "SCALE" | "EXEC" | None
has_completed_baseline(db, email)        -> bool
get_pending_survey(db, email, program)   -> PendingSurvey | None
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from coaching_portal.core.config import MILESTONE_ORDINALS, settings
from coaching_portal.models.coaching_session import CoachingSession, SessionStatus
from coaching_portal.models.employee import Employee
from coaching_portal.models.survey import SurveySubmission, SurveyType

PROGRAM_FAMILIES = ("GROW", "SCALE", "EXEC")
DEFAULT_COACH_NAME = "Your Coach"


@dataclass(frozen=True)
class PendingSurvey:
    session_id: int
    session_number: int
    session_date: date
    coach_name: str
    survey_type: str


def resolve_program_type(program: Optional[str]) -> Optional[str]:
    """
    Map a free-form program label to its family.
    "GROW", "grow - Cohort 1" and "GROW-2025" are GROW; "GROWTH" is not.
    """
    if not program:
        return None
    upper = program.strip().upper()
    for family in PROGRAM_FAMILIES:
        if upper == family or upper.startswith(family + " ") or upper.startswith(family + "-"):
            return family
    return None


def has_completed_baseline(db: Session, email: str) -> bool:
    return (
        db.query(SurveySubmission.id)
        .filter(
            func.lower(SurveySubmission.email) == email.lower(),
            SurveySubmission.survey_type == SurveyType.grow_baseline.value,
        )
        .first()
        is not None
    )


def _is_surveyed(db: Session, email: str, session_id: int) -> bool:
    return (
        db.query(SurveySubmission.id)
        .filter(
            func.lower(SurveySubmission.email) == email,
            SurveySubmission.session_id == session_id,
        )
        .first()
        is not None
    )


def _survey_type_for(
    db: Session,
    email: str,
    program: Optional[str],
    ordinal: int,
) -> str:
    if resolve_program_type(program) != "GROW":
        return SurveyType.scale_feedback.value
    if not has_completed_baseline(db, email):
        return SurveyType.grow_baseline.value
    return settings.GROW_MILESTONE_SURVEYS.get(ordinal, SurveyType.scale_feedback.value)


def get_pending_survey(
    db: Session,
    email: str,
    program: Optional[str] = None,
) -> Optional[PendingSurvey]:
    """
    Return the oldest completed milestone session without a submission, or
    None. `program` is the employee-level fallback when a session carries no
    program name of its own; when omitted it is read from the employee record.
    """
    email = email.strip().lower()
    if program is None:
        program = (
            db.query(Employee.program)
            .filter(func.lower(Employee.company_email) == email)
            .scalar()
        )

    sessions = (
        db.query(CoachingSession)
        .filter(
            func.lower(CoachingSession.employee_email) == email,
            CoachingSession.status == SessionStatus.COMPLETED,
            CoachingSession.appointment_number.in_(MILESTONE_ORDINALS),
        )
        .order_by(
            CoachingSession.session_date.asc(),
            CoachingSession.appointment_number.asc(),
            CoachingSession.id.asc(),
        )
        .all()
    )

    for session in sessions:
        if _is_surveyed(db, email, session.id):
            continue
        return PendingSurvey(
            session_id=session.id,
            session_number=session.appointment_number,
            session_date=session.session_date,
            coach_name=session.coach_name or DEFAULT_COACH_NAME,
            survey_type=_survey_type_for(
                db, email, session.program_name or program, session.appointment_number
            ),
        )
    return None
