"""
Eligibility scanner — who could receive which nudge in this dispatch cycle.

Each category is an independent query over action items / sessions:

  action_reminder : action item due in [today, today + ACTION_DUE_DAYS_AHEAD],
                    status not completed / dismissed
  goal_checkin    : session "Completed" on a date in [today - 4, today - 3]
                    with non-empty goals
  session_prep    : session "Upcoming" dated tomorrow
  weekly_digest   : employees in weekly mode, one per ISO week

"today" is the scheduler's own (UTC) clock, never the recipient's.

Every candidate carries the denormalised fields its template needs, so the
dispatcher never joins again. A failing query produces an empty, failed
ScanOutcome for that category only; the other categories still run.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable, Optional

from loguru import logger
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from coaching_portal.core.config import settings
from coaching_portal.models.action_item import ActionItem, TERMINAL_ACTION_STATUSES
from coaching_portal.models.coaching_session import CoachingSession, SessionStatus
from coaching_portal.models.employee import Employee
from coaching_portal.models.nudge import NudgeType
from coaching_portal.models.slack import NudgeFrequency, SlackConnection
from coaching_portal.services.templates import format_due_date

GOAL_CHECKIN_MIN_DAYS_AGO = 3
GOAL_CHECKIN_MAX_DAYS_AGO = 4
DIGEST_LOOKAHEAD_DAYS = 7
DEFAULT_COACH_NAME = "your coach"
DEFAULT_FIRST_NAME = "there"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NudgeCandidate:
    nudge_type: str
    reference_id: str
    reference_type: str
    employee_email: str
    variables: dict[str, Any] = field(default_factory=dict)


@dataclass
class ScanOutcome:
    nudge_type: str
    candidates: list[NudgeCandidate]
    failed: bool = False


def _email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


# ---------------------------------------------------------------------------
# Category queries
# ---------------------------------------------------------------------------

def scan_action_due(
    db: Session,
    today: date,
    days_ahead: Optional[int] = None,
) -> list[NudgeCandidate]:
    horizon = today + timedelta(days=days_ahead if days_ahead is not None else settings.ACTION_DUE_DAYS_AHEAD)
    rows = (
        db.query(ActionItem, Employee.first_name)
        .outerjoin(Employee, func.lower(Employee.company_email) == func.lower(ActionItem.email))
        .filter(
            ActionItem.due_date.isnot(None),
            ActionItem.due_date >= today,
            ActionItem.due_date <= horizon,
            ActionItem.status.notin_(TERMINAL_ACTION_STATUSES),
        )
        .order_by(ActionItem.due_date.asc(), ActionItem.id.asc())
        .all()
    )
    return [
        NudgeCandidate(
            nudge_type=NudgeType.action_reminder.value,
            reference_id=str(item.id),
            reference_type="action_item",
            employee_email=_email(item.email),
            variables={
                "first_name": first_name or DEFAULT_FIRST_NAME,
                "coach_name": item.coach_name or DEFAULT_COACH_NAME,
                "action_text": item.action_text,
                "due_date": format_due_date(item.due_date, today),
                "action_id": str(item.id),
            },
        )
        for item, first_name in rows
    ]


def _session_rows(db: Session, *criteria):
    return (
        db.query(CoachingSession, Employee.company_email, Employee.first_name)
        .join(Employee, Employee.id == CoachingSession.employee_id)
        .filter(*criteria)
        .order_by(CoachingSession.session_date.asc(), CoachingSession.id.asc())
        .all()
    )


def scan_goal_checkins(db: Session, today: date) -> list[NudgeCandidate]:
    rows = _session_rows(
        db,
        CoachingSession.status == SessionStatus.COMPLETED,
        CoachingSession.session_date >= today - timedelta(days=GOAL_CHECKIN_MAX_DAYS_AGO),
        CoachingSession.session_date <= today - timedelta(days=GOAL_CHECKIN_MIN_DAYS_AGO),
        CoachingSession.goals.isnot(None),
        func.trim(CoachingSession.goals) != "",
    )
    candidates = []
    for session, company_email, first_name in rows:
        email = _email(company_email or session.employee_email)
        if not email:
            continue
        candidates.append(NudgeCandidate(
            nudge_type=NudgeType.goal_checkin.value,
            reference_id=str(session.id),
            reference_type="session",
            employee_email=email,
            variables={
                "first_name": first_name or DEFAULT_FIRST_NAME,
                "coach_name": session.coach_name or DEFAULT_COACH_NAME,
                "goals": session.goals,
                "session_id": str(session.id),
            },
        ))
    return candidates


def scan_session_prep(db: Session, today: date) -> list[NudgeCandidate]:
    rows = _session_rows(
        db,
        CoachingSession.status == SessionStatus.UPCOMING,
        CoachingSession.session_date == today + timedelta(days=1),
    )
    candidates = []
    for session, company_email, first_name in rows:
        email = _email(company_email or session.employee_email)
        if not email:
            continue
        candidates.append(NudgeCandidate(
            nudge_type=NudgeType.session_prep.value,
            reference_id=str(session.id),
            reference_type="session",
            employee_email=email,
            variables={
                "first_name": first_name or DEFAULT_FIRST_NAME,
                "coach_name": session.coach_name or DEFAULT_COACH_NAME,
                "session_id": str(session.id),
                "portal_url": settings.PORTAL_URL,
            },
        ))
    return candidates


def iso_week_key(day: date) -> str:
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def scan_weekly_digests(db: Session, today: date) -> list[NudgeCandidate]:
    """One digest per weekly-mode employee; the dispatcher gates it to Mondays."""
    emails = [
        _email(email)
        for (email,) in db.query(SlackConnection.employee_email)
        .filter(SlackConnection.nudge_frequency == NudgeFrequency.weekly.value)
        .distinct()
        .all()
    ]
    week = iso_week_key(today)
    candidates = []
    for email in sorted(set(emails)):
        first_name = (
            db.query(Employee.first_name)
            .filter(func.lower(Employee.company_email) == email)
            .scalar()
        )
        open_actions = (
            db.query(func.count(ActionItem.id))
            .filter(
                func.lower(ActionItem.email) == email,
                ActionItem.status.notin_(TERMINAL_ACTION_STATUSES),
            )
            .scalar()
            or 0
        )
        upcoming = (
            db.query(func.count(CoachingSession.id))
            .filter(
                func.lower(CoachingSession.employee_email) == email,
                CoachingSession.status == SessionStatus.UPCOMING,
                CoachingSession.session_date >= today,
                CoachingSession.session_date <= today + timedelta(days=DIGEST_LOOKAHEAD_DAYS),
            )
            .scalar()
            or 0
        )
        candidates.append(NudgeCandidate(
            nudge_type=NudgeType.weekly_digest.value,
            reference_id=week,
            reference_type="digest",
            employee_email=email,
            variables={
                "first_name": first_name or DEFAULT_FIRST_NAME,
                "open_action_count": open_actions,
                "upcoming_session_count": upcoming,
                "week": week,
                "portal_url": settings.PORTAL_URL,
            },
        ))
    return candidates


# ---------------------------------------------------------------------------
# Public: all categories, failures isolated
# ---------------------------------------------------------------------------

_SCANNERS: list[tuple[str, Callable[[Session, date], list[NudgeCandidate]]]] = [
    (NudgeType.action_reminder.value, scan_action_due),
    (NudgeType.goal_checkin.value, scan_goal_checkins),
    (NudgeType.session_prep.value, scan_session_prep),
    (NudgeType.weekly_digest.value, scan_weekly_digests),
]


def scan_all(db: Session, today: date) -> list[ScanOutcome]:
    outcomes = []
    for nudge_type, scanner in _SCANNERS:
        try:
            candidates = scanner(db, today)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Eligibility query failed", nudge_type=nudge_type, error=str(exc))
            outcomes.append(ScanOutcome(nudge_type=nudge_type, candidates=[], failed=True))
            continue
        logger.info("Eligibility scan", nudge_type=nudge_type, candidates=len(candidates))
        outcomes.append(ScanOutcome(nudge_type=nudge_type, candidates=candidates))
    return outcomes
