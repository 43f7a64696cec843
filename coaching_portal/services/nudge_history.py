"""
Nudge history and engagement analytics, read from the sent-nudge log.

Public API
----------
get_nudge_history(db, email, limit, offset) -> tuple[int, list[NudgeRecord]]
get_nudge_stats(db)                         -> NudgeStats
"""
from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from coaching_portal.models.nudge import NudgeRecord, NudgeStatus
from coaching_portal.services.connections import normalize_email


@dataclass
class TypeStats:
    nudge_type: str
    total: int
    responded: int

    @property
    def response_rate_pct(self) -> float:
        return _rate(self.responded, self.total)


@dataclass
class NudgeStats:
    total_nudges: int = 0
    responded: int = 0
    by_type: list[TypeStats] = field(default_factory=list)
    responses: dict[str, int] = field(default_factory=dict)

    @property
    def pending(self) -> int:
        return self.total_nudges - self.responded

    @property
    def response_rate_pct(self) -> float:
        return _rate(self.responded, self.total_nudges)


def _rate(part: int, whole: int) -> float:
    return round(100.0 * part / whole, 1) if whole else 0.0


def get_nudge_history(
    db: Session,
    email: str,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[NudgeRecord]]:
    """Return (total, page) of the employee's nudges, newest first."""
    q = db.query(NudgeRecord).filter(NudgeRecord.employee_email == normalize_email(email))
    total = q.count()
    items = (
        q.order_by(NudgeRecord.sent_at.desc(), NudgeRecord.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items


def get_nudge_stats(db: Session) -> NudgeStats:
    responded_expr = func.sum(
        case((NudgeRecord.status == NudgeStatus.responded.value, 1), else_=0)
    )
    rows = (
        db.query(NudgeRecord.nudge_type, func.count(NudgeRecord.id), responded_expr)
        .group_by(NudgeRecord.nudge_type)
        .order_by(NudgeRecord.nudge_type.asc())
        .all()
    )
    stats = NudgeStats()
    for nudge_type, total, responded in rows:
        responded = int(responded or 0)
        stats.by_type.append(TypeStats(nudge_type=nudge_type, total=total, responded=responded))
        stats.total_nudges += total
        stats.responded += responded

    stats.responses = {
        response: count
        for response, count in db.query(NudgeRecord.response, func.count(NudgeRecord.id))
        .filter(NudgeRecord.response.isnot(None))
        .group_by(NudgeRecord.response)
        .all()
    }
    return stats
