"""
Nudge dispatcher — turns eligibility candidates into Slack messages.

Guards, evaluated in order for every candidate (first failing guard skips):

  1. no_connection   : employee has no usable Slack connection
  2. disabled        : nudge_enabled is false or frequency is "none"
     wrong_mode      : weekly-mode users only get the digest, and the digest
                       only goes to weekly-mode users
  3. outside_window  : recipient-local hour is more than 1 hour away from the
                       preferred hour (fails open if the timezone is unusable)
     not_digest_day  : digest outside Monday (recipient-local)
  4. already_sent    : a NudgeRecord exists for (email, nudge_type, reference_id)
     frequency_cap   : daily-mode user already nudged in the last 24 hours
  5. no_template     : no default template for this nudge type
  6-8. render, send, record NudgeRecord(status="sent") on an acknowledged send

A failure on one candidate is counted against its category and the loop moves
on; nothing is retried inside a cycle. The database unique constraint is the
last line of dedupe: a concurrent duplicate insert is rolled back and logged.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from coaching_portal.core.config import settings
from coaching_portal.core.errors import DispatchCycleError
from coaching_portal.models.nudge import NudgeRecord, NudgeStatus, NudgeType
from coaching_portal.models.slack import NudgeFrequency
from coaching_portal.services.connections import ConnectionPreference, get_connection_preference
from coaching_portal.services.eligibility import NudgeCandidate, scan_all
from coaching_portal.services.slack_client import SlackClient
from coaching_portal.services.templates import TemplateMap, load_templates, render_blocks, render_text

TIME_WINDOW_HOURS = 1
DAILY_CAP_WINDOW = timedelta(hours=24)
DIGEST_WEEKDAY = 0  # Monday


class Outcome:
    SENT  = "sent"
    ERROR = "error"


class SkipReason:
    NO_CONNECTION  = "no_connection"
    DISABLED       = "disabled"
    WRONG_MODE     = "wrong_mode"
    OUTSIDE_WINDOW = "outside_window"
    NOT_DIGEST_DAY = "not_digest_day"
    ALREADY_SENT   = "already_sent"
    FREQUENCY_CAP  = "frequency_cap"
    NO_TEMPLATE    = "no_template"


# Summary keys, kept stable for whoever reads the cycle output.
_SENT_KEYS = {
    NudgeType.action_reminder.value: "action_reminders_sent",
    NudgeType.goal_checkin.value: "goal_checkins_sent",
    NudgeType.session_prep.value: "session_preps_sent",
    NudgeType.weekly_digest.value: "weekly_digests_sent",
}


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class CycleSummary:
    started_at: datetime
    sent: dict[str, int] = field(default_factory=lambda: {k: 0 for k in _SENT_KEYS})
    skipped: dict[str, int] = field(default_factory=dict)
    errors: dict[str, int] = field(default_factory=lambda: {k: 0 for k in _SENT_KEYS})

    @property
    def total_errors(self) -> int:
        return sum(self.errors.values())

    def count(self, nudge_type: str, outcome: str) -> None:
        if outcome == Outcome.SENT:
            self.sent[nudge_type] = self.sent.get(nudge_type, 0) + 1
        elif outcome == Outcome.ERROR:
            self.errors[nudge_type] = self.errors.get(nudge_type, 0) + 1
        else:
            self.skipped[outcome] = self.skipped.get(outcome, 0) + 1

    def to_results(self) -> dict:
        results: dict = {key: self.sent.get(t, 0) for t, key in _SENT_KEYS.items()}
        results["errors"] = self.total_errors
        results["errors_by_type"] = dict(self.errors)
        results["skipped"] = dict(self.skipped)
        return results


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _local(now: datetime, tz_name: Optional[str]) -> Optional[datetime]:
    try:
        return now.astimezone(ZoneInfo(tz_name))
    except (ZoneInfoNotFoundError, ValueError, TypeError, OSError):
        return None


def is_appropriate_time(
    preferred_time: Optional[str],
    tz_name: Optional[str],
    now: Optional[datetime] = None,
) -> bool:
    """
    True when the recipient-local hour is within TIME_WINDOW_HOURS of the
    preferred hour, wrapping at midnight. Minutes are ignored. An unknown timezone or unparsable
    preferred time allows the send.
    """
    local = _local(now or _utcnow(), tz_name)
    if local is None:
        return True
    try:
        preferred_hour = int((preferred_time or settings.DEFAULT_PREFERRED_TIME).split(":")[0])
    except ValueError:
        return True
    distance = abs(local.hour - preferred_hour) % 24
    return min(distance, 24 - distance) <= TIME_WINDOW_HOURS


def nudge_exists(db: Session, email: str, nudge_type: str, reference_id: str) -> bool:
    return (
        db.query(NudgeRecord.id)
        .filter(
            NudgeRecord.employee_email == email,
            NudgeRecord.nudge_type == nudge_type,
            NudgeRecord.reference_id == reference_id,
        )
        .first()
        is not None
    )


def _nudged_since(db: Session, email: str, since: datetime) -> bool:
    return (
        db.query(NudgeRecord.id)
        .filter(NudgeRecord.employee_email == email, NudgeRecord.sent_at >= since)
        .first()
        is not None
    )


def _mode_allows(pref: ConnectionPreference, nudge_type: str) -> bool:
    is_digest = nudge_type == NudgeType.weekly_digest.value
    is_weekly = pref.nudge_frequency == NudgeFrequency.weekly.value
    return is_digest == is_weekly


def check_guards(
    db: Session,
    candidate: NudgeCandidate,
    pref: Optional[ConnectionPreference],
    templates: TemplateMap,
    now: datetime,
) -> Optional[str]:
    """Return the SkipReason of the first failing guard, or None to send."""
    if pref is None:
        return SkipReason.NO_CONNECTION
    if not pref.nudge_enabled or pref.nudge_frequency == NudgeFrequency.none.value:
        return SkipReason.DISABLED
    if not _mode_allows(pref, candidate.nudge_type):
        return SkipReason.WRONG_MODE
    if not is_appropriate_time(pref.preferred_time, pref.timezone, now):
        return SkipReason.OUTSIDE_WINDOW
    if candidate.nudge_type == NudgeType.weekly_digest.value:
        local = _local(now, pref.timezone) or now
        if local.weekday() != DIGEST_WEEKDAY:
            return SkipReason.NOT_DIGEST_DAY
    if nudge_exists(db, candidate.employee_email, candidate.nudge_type, candidate.reference_id):
        return SkipReason.ALREADY_SENT
    if pref.nudge_frequency == NudgeFrequency.daily.value and _nudged_since(
        db, candidate.employee_email, now - DAILY_CAP_WINDOW
    ):
        return SkipReason.FREQUENCY_CAP
    if candidate.nudge_type not in templates:
        return SkipReason.NO_TEMPLATE
    return None


# ---------------------------------------------------------------------------
# Single candidate
# ---------------------------------------------------------------------------

def _record(
    db: Session,
    candidate: NudgeCandidate,
    pref: ConnectionPreference,
    message_ts: str,
    now: datetime,
) -> None:
    db.add(NudgeRecord(
        employee_email=candidate.employee_email,
        nudge_type=candidate.nudge_type,
        reference_id=candidate.reference_id,
        reference_type=candidate.reference_type,
        channel_id=pref.channel_id,
        message_ts=message_ts,
        status=NudgeStatus.sent.value,
        sent_at=now,
    ))
    try:
        db.commit()
    except IntegrityError:
        # Another cycle recorded the same dedupe key first.
        db.rollback()
        logger.warning(
            "Duplicate nudge recorded concurrently",
            email=candidate.employee_email,
            nudge_type=candidate.nudge_type,
            reference_id=candidate.reference_id,
        )


def dispatch_candidate(
    db: Session,
    slack: SlackClient,
    candidate: NudgeCandidate,
    templates: TemplateMap,
    now: Optional[datetime] = None,
) -> str:
    """Send at most one message for `candidate`. Returns Outcome.* or a SkipReason."""
    now = now or _utcnow()
    pref = get_connection_preference(db, candidate.employee_email)
    reason = check_guards(db, candidate, pref, templates, now)
    if reason is not None:
        if reason == SkipReason.NO_TEMPLATE:
            logger.warning("No template configured", nudge_type=candidate.nudge_type)
        return reason

    template = templates[candidate.nudge_type]
    blocks = render_blocks(template.blocks, candidate.variables)
    fallback = render_text(template.fallback_text or "", candidate.variables) or None

    result = slack.post_message(pref.bot_token, pref.channel_id, blocks, text=fallback)
    if not (result.ok and result.ts):
        logger.error(
            "Slack send failed",
            email=candidate.employee_email,
            nudge_type=candidate.nudge_type,
            error=result.error,
        )
        return Outcome.ERROR

    _record(db, candidate, pref, result.ts, now)
    logger.info(
        "Sent nudge",
        email=candidate.employee_email,
        nudge_type=candidate.nudge_type,
        reference_id=candidate.reference_id,
    )
    return Outcome.SENT


# ---------------------------------------------------------------------------
# Public: one dispatch cycle
# ---------------------------------------------------------------------------

def run_dispatch_cycle(
    db: Session,
    slack: SlackClient,
    now: Optional[datetime] = None,
) -> CycleSummary:
    """
    Scan, gate and send every nudge due at `now`. Raises DispatchCycleError
    only when the cycle cannot start (store unreachable); per-candidate
    failures are counted in the summary.
    """
    now = now or _utcnow()
    summary = CycleSummary(started_at=now)

    try:
        db.execute(text("SELECT 1"))
        templates = load_templates(db)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Dispatch cycle could not start", error=str(exc))
        raise DispatchCycleError(f"Store unavailable: {exc.__class__.__name__}") from exc

    for outcome in scan_all(db, now.date()):
        if outcome.failed:
            summary.count(outcome.nudge_type, Outcome.ERROR)
        for candidate in outcome.candidates:
            try:
                result = dispatch_candidate(db, slack, candidate, templates, now)
            except Exception as exc:
                db.rollback()
                logger.opt(exception=exc).error(
                    "Nudge dispatch failed",
                    email=candidate.employee_email,
                    nudge_type=candidate.nudge_type,
                    reference_id=candidate.reference_id,
                )
                result = Outcome.ERROR
            summary.count(candidate.nudge_type, result)

    logger.bind(summary=summary.to_results()).info("Nudge dispatch cycle completed")
    return summary
