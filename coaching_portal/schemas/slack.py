"""
Slack connection schemas.

GET    /slack/status      → SlackStatusResponse
POST   /slack/settings    → SlackSettingsUpdate → SlackStatusResponse
DELETE /slack/connection  → DisconnectResponse
"""
from __future__ import annotations

import re
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coaching_portal.models.slack import NudgeFrequency

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class SlackSettingsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    slack_user_id: str
    nudge_enabled: bool
    nudge_frequency: str
    preferred_time: Optional[str] = None
    timezone: Optional[str] = None


class SlackStatusResponse(BaseModel):
    connected: bool
    settings: Optional[SlackSettingsOut] = None


class SlackSettingsUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""
    model_config = ConfigDict(use_enum_values=True)

    nudge_enabled: Optional[bool] = None
    nudge_frequency: Optional[NudgeFrequency] = Field(
        default=None, examples=["smart", "daily", "weekly", "none"],
    )
    preferred_time: Optional[str] = Field(default=None, examples=["09:00"])
    timezone: Optional[str] = Field(default=None, examples=["America/New_York"])

    @field_validator("preferred_time")
    @classmethod
    def check_time(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _TIME_RE.match(v):
            raise ValueError('preferred_time must be "HH:MM" (24h)')
        return v

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError, OSError):
            raise ValueError(f"unknown IANA timezone: {v}")
        return v


class DisconnectResponse(BaseModel):
    success: bool
    removed: int
