"""
Survey submissions — SCALE feedback and GROW competency surveys.

Rules:
- A (email, session_id) pair is surveyed at most once; a second submission
  is a SurveyAlreadySubmittedError (409), whether caught here or by the
  unique constraint.
- GROW surveys not tied to a session are limited to one per (email, type).
- grow_baseline scores are "pre", grow_midpoint / grow_end scores are "post".
  The submission and its score rows commit in one transaction.
- Scores must name an active core competency.

Public API
----------
submit_scale_feedback(db, email, data)              -> SurveySubmission
submit_grow_survey(db, email, survey_type, data)    -> SurveySubmission
get_survey_context(db, email, session_id)           -> SurveyContext
list_core_competencies(db)                          -> list[CoreCompetency]
list_competency_scores(db, email, score_type)       -> list[SurveyCompetencyScore]
seed_core_competencies(db)                          -> int
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from loguru import logger
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coaching_portal.core.errors import (
    SessionNotFoundError,
    SurveyAlreadySubmittedError,
    UnknownCompetencyError,
)
from coaching_portal.models.coaching_session import CoachingSession
from coaching_portal.models.survey import (
    CoreCompetency,
    ScoreType,
    SurveyCompetencyScore,
    SurveySubmission,
    SurveyType,
)
from coaching_portal.schemas.surveys import (
    GrowBaselineRequest,
    GrowEndRequest,
    GrowMidpointRequest,
    ScaleFeedbackRequest,
)
from coaching_portal.services.connections import normalize_email
from coaching_portal.services.survey_progression import DEFAULT_COACH_NAME

GrowRequest = GrowBaselineRequest | GrowMidpointRequest | GrowEndRequest

CORE_COMPETENCIES: list[tuple[str, str]] = [
    ("Effective Communication",
     "Expressing ideas clearly and listening actively across audiences."),
    ("Persuasion and Influence",
     "Building support for ideas and moving others to act without authority."),
    ("Adaptability and Resilience",
     "Staying effective through change, setbacks and ambiguity."),
    ("Strategic Thinking",
     "Connecting day-to-day work to longer-term goals and trade-offs."),
    ("Emotional Intelligence",
     "Recognising and managing your own emotions and reading those of others."),
    ("Building Relationships at Work",
     "Creating trust and productive working relationships across the organisation."),
    ("Self Confidence & Imposter Syndrome",
     "Acting from a grounded sense of your own capability."),
    ("Delegation and Accountability",
     "Handing off work clearly and following through on commitments."),
    ("Giving and Receiving Feedback",
     "Offering useful feedback and taking it on board without defensiveness."),
    ("Effective Planning and Execution",
     "Turning goals into realistic plans and delivering on them."),
    ("Change Management",
     "Leading yourself and others through organisational change."),
    ("Time Management & Productivity",
     "Prioritising well and protecting time for what matters most."),
]

_SCORE_TYPE = {
    SurveyType.grow_baseline.value: ScoreType.pre.value,
    SurveyType.grow_midpoint.value: ScoreType.post.value,
    SurveyType.grow_end.value: ScoreType.post.value,
}


@dataclass(frozen=True)
class SurveyContext:
    session_id: int
    session_number: Optional[int]
    session_date: date
    coach_name: str
    employee_email: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _owned_session(db: Session, email: str, session_id: int) -> CoachingSession:
    """Sessions of other employees are reported as missing, not forbidden."""
    session = db.get(CoachingSession, session_id)
    if session is None or normalize_email(session.employee_email or "") != email:
        raise SessionNotFoundError(session_id)
    return session


def _already_submitted(
    db: Session,
    email: str,
    survey_type: str,
    session_id: Optional[int],
) -> bool:
    q = db.query(SurveySubmission.id).filter(func.lower(SurveySubmission.email) == email)
    if session_id is not None:
        q = q.filter(SurveySubmission.session_id == session_id)
    else:
        q = q.filter(
            SurveySubmission.session_id.is_(None),
            SurveySubmission.survey_type == survey_type,
        )
    return q.first() is not None


def _commit_submission(db: Session, submission: SurveySubmission) -> SurveySubmission:
    db.add(submission)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise SurveyAlreadySubmittedError(submission.survey_type, submission.session_id)
    db.refresh(submission)
    logger.info(
        "Survey submitted",
        email=submission.email,
        survey_type=submission.survey_type,
        session_id=submission.session_id,
        scores=len(submission.competency_scores),
    )
    return submission


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------

def submit_scale_feedback(
    db: Session,
    email: str,
    data: ScaleFeedbackRequest,
) -> SurveySubmission:
    email = normalize_email(email)
    session = _owned_session(db, email, data.session_id)
    if _already_submitted(db, email, data.survey_type, session.id):
        raise SurveyAlreadySubmittedError(data.survey_type, session.id)

    return _commit_submission(db, SurveySubmission(
        email=email,
        survey_type=data.survey_type,
        session_id=session.id,
        session_number=data.session_number or session.appointment_number,
        coach_name=data.coach_name or session.coach_name or DEFAULT_COACH_NAME,
        coach_satisfaction=data.coach_satisfaction,
        wants_rematch=data.wants_rematch,
        rematch_reason=data.rematch_reason if data.wants_rematch else None,
        coach_qualities=list(data.coach_qualities),
        has_booked_next_session=data.has_booked_next_session,
        nps=data.nps,
        feedback_text=data.feedback_text,
        outcomes=data.outcomes,
        open_to_testimonial=data.open_to_testimonial,
    ))


def submit_grow_survey(
    db: Session,
    email: str,
    survey_type: str,
    data: GrowRequest,
) -> SurveySubmission:
    """Write a grow_* submission and one score row per competency."""
    email = normalize_email(email)
    session = _owned_session(db, email, data.session_id) if data.session_id is not None else None
    session_id = session.id if session is not None else None
    if _already_submitted(db, email, survey_type, session_id):
        raise SurveyAlreadySubmittedError(survey_type, session_id)

    active = {name for (name,) in db.query(CoreCompetency.name).filter(CoreCompetency.is_active.is_(True))}
    unknown = sorted(set(data.competency_scores) - active)
    if unknown:
        raise UnknownCompetencyError(unknown)

    submission = SurveySubmission(
        email=email,
        survey_type=survey_type,
        session_id=session_id,
        session_number=data.session_number or (session.appointment_number if session else None),
        coach_name=session.coach_name if session else None,
        focus_areas=list(getattr(data, "focus_areas", None) or []) or None,
        nps=getattr(data, "nps", None),
        outcomes=getattr(data, "outcomes", None),
        open_to_testimonial=getattr(data, "open_to_testimonial", None),
        feedback_text=getattr(data, "feedback_text", None),
    )
    score_type = _SCORE_TYPE[survey_type]
    submission.competency_scores = [
        SurveyCompetencyScore(email=email, competency_name=name, score=score, score_type=score_type)
        for name, score in sorted(data.competency_scores.items())
    ]
    return _commit_submission(db, submission)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_survey_context(db: Session, email: str, session_id: int) -> SurveyContext:
    email = normalize_email(email)
    session = _owned_session(db, email, session_id)
    return SurveyContext(
        session_id=session.id,
        session_number=session.appointment_number,
        session_date=session.session_date,
        coach_name=session.coach_name or DEFAULT_COACH_NAME,
        employee_email=email,
    )


def list_core_competencies(db: Session) -> list[CoreCompetency]:
    return (
        db.query(CoreCompetency)
        .filter(CoreCompetency.is_active.is_(True))
        .order_by(CoreCompetency.display_order.asc(), CoreCompetency.id.asc())
        .all()
    )


def list_competency_scores(
    db: Session,
    email: str,
    score_type: Optional[str] = None,
) -> list[SurveyCompetencyScore]:
    q = db.query(SurveyCompetencyScore).filter(
        func.lower(SurveyCompetencyScore.email) == normalize_email(email)
    )
    if score_type:
        q = q.filter(SurveyCompetencyScore.score_type == score_type)
    return q.order_by(SurveyCompetencyScore.created_at.asc(), SurveyCompetencyScore.id.asc()).all()


def seed_core_competencies(db: Session) -> int:
    """Insert any missing core competency. Returns the number inserted."""
    existing = {name for (name,) in db.query(CoreCompetency.name)}
    added = 0
    for order, (name, description) in enumerate(CORE_COMPETENCIES, start=1):
        if name in existing:
            continue
        db.add(CoreCompetency(name=name, description=description, display_order=order, is_active=True))
        added += 1
    if added:
        db.commit()
    return added
