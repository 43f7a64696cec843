"""
Nudges router.

POST /nudges/dispatch  — run one dispatch cycle (scheduler trigger)
GET  /nudges/dispatch  — same, for timers that can only issue GET
GET  /nudges/history   — the caller's nudges, newest first
GET  /nudges/stats     — engagement analytics across all nudges (service token)
"""
from __future__ import annotations

import hmac
import time
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from coaching_portal.core.config import settings
from coaching_portal.core.errors import DispatchUnauthorizedError
from coaching_portal.core.identity import get_current_email
from coaching_portal.db.base import get_db
from coaching_portal.models.nudge import NudgeRecord
from coaching_portal.schemas.common import error_response
from coaching_portal.schemas.nudges import (
    DispatchResponse,
    DispatchResults,
    NudgeHistoryResponse,
    NudgeOut,
    NudgeStatsResponse,
    NudgeTypeStats,
)
from coaching_portal.services.dispatcher import run_dispatch_cycle
from coaching_portal.services.nudge_history import get_nudge_history, get_nudge_stats
from coaching_portal.services.slack_client import SlackClient, get_slack_client

router = APIRouter(prefix="/nudges", tags=["nudges"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def require_dispatch_token(
    x_dispatch_token: Optional[str] = Header(default=None, alias="X-Dispatch-Token"),
) -> None:
    expected = settings.DISPATCH_TOKEN
    if not expected:
        return
    if not x_dispatch_token or not hmac.compare_digest(x_dispatch_token, expected):
        raise DispatchUnauthorizedError()


def _nudge_to_response(n: NudgeRecord) -> NudgeOut:
    return NudgeOut(
        id=n.id,
        nudge_type=n.nudge_type,
        reference_id=n.reference_id,
        reference_type=n.reference_type,
        status=n.status,
        response=n.response,
        sent_at=n.sent_at.isoformat() if n.sent_at else "",
        responded_at=n.responded_at.isoformat() if n.responded_at else None,
    )


# ---------------------------------------------------------------------------
# /nudges/dispatch
# ---------------------------------------------------------------------------

_DISPATCH_RESPONSES = {
    200: {"description": "Cycle ran; per-category counts in `results`."},
    401: error_response("DISPATCH_TOKEN is configured and the header is missing or wrong."),
    500: error_response("The cycle could not start (store unreachable)."),
}


def _dispatch(db: Session, slack: SlackClient) -> DispatchResponse:
    started = time.perf_counter()
    summary = run_dispatch_cycle(db, slack)
    return DispatchResponse(
        success=True,
        results=DispatchResults(**summary.to_results()),
        duration=f"{time.perf_counter() - started:.2f}s",
    )


@router.post(
    "/dispatch",
    response_model=DispatchResponse,
    summary="Run one nudge dispatch cycle",
    responses=_DISPATCH_RESPONSES,
    dependencies=[Depends(require_dispatch_token)],
)
def dispatch_nudges(
    db: Session = Depends(get_db),
    slack: SlackClient = Depends(get_slack_client),
):
    """
    Scan for due nudges and send each eligible one at most once.

    Safe to call as often as you like: a nudge already recorded for
    (employee, type, reference) is never sent again, and recipients outside
    their preferred hour are simply picked up by a later cycle.
    """
    return _dispatch(db, slack)


@router.get(
    "/dispatch",
    response_model=DispatchResponse,
    summary="Run one nudge dispatch cycle (GET trigger)",
    responses=_DISPATCH_RESPONSES,
    dependencies=[Depends(require_dispatch_token)],
)
def dispatch_nudges_get(
    db: Session = Depends(get_db),
    slack: SlackClient = Depends(get_slack_client),
):
    return _dispatch(db, slack)


# ---------------------------------------------------------------------------
# /nudges/history, /nudges/stats
# ---------------------------------------------------------------------------

@router.get(
    "/history",
    response_model=NudgeHistoryResponse,
    summary="Nudges sent to the caller (newest first)",
    responses={401: error_response("No X-Employee-Email header.")},
)
def nudge_history(
    limit: int = Query(default=50, ge=1, le=200, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    email: str = Depends(get_current_email),
    db: Session = Depends(get_db),
):
    total, items = get_nudge_history(db=db, email=email, limit=limit, offset=offset)
    return NudgeHistoryResponse(total=total, items=[_nudge_to_response(n) for n in items])


@router.get(
    "/stats",
    response_model=NudgeStatsResponse,
    summary="Nudge engagement analytics",
    responses={401: error_response("DISPATCH_TOKEN is configured and the header is missing or wrong.")},
    dependencies=[Depends(require_dispatch_token)],
)
def nudge_stats(db: Session = Depends(get_db)):
    """
    Totals, response rate overall and per nudge type, and how often each
    button was clicked. Rates are percentages rounded to one decimal.
    Requires X-Dispatch-Token when DISPATCH_TOKEN is set.
    """
    stats = get_nudge_stats(db)
    return NudgeStatsResponse(
        total_nudges=stats.total_nudges,
        responded=stats.responded,
        pending=stats.pending,
        response_rate_pct=stats.response_rate_pct,
        by_type=[
            NudgeTypeStats(
                nudge_type=t.nudge_type,
                total=t.total,
                responded=t.responded,
                response_rate_pct=t.response_rate_pct,
            )
            for t in stats.by_type
        ],
        responses=stats.responses,
    )
