import json
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Completed-session counts at which a survey falls due.
MILESTONE_ORDINALS = (1, 3, 6, 12, 18, 24, 30, 36)

# Values of models.survey.SurveyType; models import this module, so the
# names are listed here rather than imported.
SURVEY_TYPES = ("scale_feedback", "scale_end", "grow_baseline", "grow_midpoint", "grow_end")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://portal:portal@db:5432/coaching_portal"
    APP_ENV: str = "development"
    SECRET_KEY: str = "changeme-secret-key"
    APP_VERSION: str = "1.0.0"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://portal.example.com,https://admin.example.com"
    CORS_ORIGINS: str = "*"

    # Where OAuth redirects and message links point back to.
    PORTAL_URL: str = "http://localhost:5173"

    # --- Slack app ---
    SLACK_CLIENT_ID: str = ""
    SLACK_CLIENT_SECRET: str = ""
    SLACK_SIGNING_SECRET: str = ""
    SLACK_API_BASE_URL: str = "https://slack.com/api"
    SLACK_HTTP_TIMEOUT: float = 10.0
    SLACK_REQUEST_TOLERANCE_SECONDS: int = 300
    OAUTH_STATE_TTL_SECONDS: int = 600

    # --- Dispatch cycle ---
    # When set, /nudges/dispatch and /nudges/stats require the X-Dispatch-Token header.
    DISPATCH_TOKEN: str = ""
    NUDGE_SCHEDULER_ENABLED: bool = False
    NUDGE_SCHEDULER_INTERVAL_MINUTES: int = 15
    ACTION_DUE_DAYS_AHEAD: int = 2
    DEFAULT_PREFERRED_TIME: str = "09:00"
    DEFAULT_TIMEZONE: str = "America/New_York"

    # --- Surveys ---
    # JSON object mapping milestone ordinal -> GROW survey type, applied once a
    # grow_baseline is on file. Example: '{"6": "grow_midpoint", "12": "grow_end"}'
    GROW_MILESTONE_SURVEYS: dict[int, str] = Field(default_factory=dict)

    @field_validator("GROW_MILESTONE_SURVEYS", mode="before")
    @classmethod
    def parse_milestone_json(cls, v: Any) -> Any:
        if isinstance(v, str):
            return json.loads(v or "{}")
        return v

    @field_validator("GROW_MILESTONE_SURVEYS")
    @classmethod
    def check_milestone_map(cls, v: dict[int, str]) -> dict[int, str]:
        bad_ordinals = sorted(k for k in v if k not in MILESTONE_ORDINALS)
        if bad_ordinals:
            raise ValueError(f"not a milestone ordinal: {bad_ordinals}; expected one of {MILESTONE_ORDINALS}")
        bad_types = sorted({t for t in v.values() if t not in SURVEY_TYPES})
        if bad_types:
            raise ValueError(f"unknown survey type: {bad_types}")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
