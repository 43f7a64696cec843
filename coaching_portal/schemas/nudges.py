"""
Nudge schemas.

POST|GET /nudges/dispatch → DispatchResponse
GET /nudges/history       → NudgeHistoryResponse
GET /nudges/stats         → NudgeStatsResponse
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class DispatchResults(BaseModel):
    action_reminders_sent: int = 0
    goal_checkins_sent: int = 0
    session_preps_sent: int = 0
    weekly_digests_sent: int = 0
    errors: int = Field(default=0, description="Total errors across every category.")
    errors_by_type: dict[str, int] = Field(default_factory=dict)
    skipped: dict[str, int] = Field(
        default_factory=dict,
        description='Candidates skipped, by reason ("already_sent", "outside_window", ...).',
    )


class DispatchResponse(BaseModel):
    success: bool = True
    results: DispatchResults
    duration: str = Field(description='Wall-clock duration, e.g. "0.42s".')


class NudgeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    nudge_type: str
    reference_id: str
    reference_type: str
    status: str = Field(description='"sent" | "responded"')
    response: Optional[str] = None
    sent_at: str
    responded_at: Optional[str] = None


class NudgeHistoryResponse(BaseModel):
    total: int
    items: list[NudgeOut]


class NudgeTypeStats(BaseModel):
    nudge_type: str
    total: int
    responded: int
    response_rate_pct: float


class NudgeStatsResponse(BaseModel):
    total_nudges: int
    responded: int
    pending: int
    response_rate_pct: float
    by_type: list[NudgeTypeStats]
    responses: dict[str, int] = Field(description="Click counts per button id.")
