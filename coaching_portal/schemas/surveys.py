"""
Survey schemas.

GET  /surveys/pending                → PendingSurveyResponse
GET  /surveys/context/{session_id}   → SurveyContextOut
GET  /surveys/competencies           → list[CompetencyOut]
GET  /surveys/competency-scores      → list[CompetencyScoreOut]
POST /surveys/scale-feedback         → ScaleFeedbackRequest → SurveySubmissionOut
POST /surveys/grow-baseline          → GrowBaselineRequest  → SurveySubmissionOut
POST /surveys/grow-midpoint          → GrowMidpointRequest  → SurveySubmissionOut
POST /surveys/grow-end               → GrowEndRequest       → SurveySubmissionOut
"""
from __future__ import annotations

from typing import Annotated, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

CompetencyLevel = Annotated[int, Field(ge=1, le=5)]


class PendingSurveyOut(BaseModel):
    session_id: int
    session_number: int
    session_date: str
    coach_name: str
    survey_type: str = Field(
        description='"scale_feedback" | "grow_baseline" | other configured GROW type'
    )


class PendingSurveyResponse(BaseModel):
    pending: Optional[PendingSurveyOut] = Field(
        default=None, description="Oldest outstanding survey, or null when none is owed."
    )


class SurveyContextOut(BaseModel):
    session_id: int
    session_number: Optional[int] = None
    session_date: str
    coach_name: str
    employee_email: str


class CompetencyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    display_order: int


class CompetencyScoreOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    survey_submission_id: int
    competency_name: str
    score: int
    score_type: str
    created_at: str


class ScaleFeedbackRequest(BaseModel):
    session_id: int
    session_number: Optional[int] = None
    coach_name: Optional[str] = Field(default=None, max_length=256)
    survey_type: Literal["scale_feedback", "scale_end"] = "scale_feedback"
    coach_satisfaction: int = Field(ge=1, le=10)
    wants_rematch: bool = False
    rematch_reason: Optional[str] = Field(default=None, max_length=5_000)
    coach_qualities: list[str] = Field(
        default_factory=list,
        examples=[["made_me_feel_safe", "listened_well", "provided_tools", "challenged_me"]],
    )
    has_booked_next_session: bool = False
    nps: int = Field(ge=0, le=10)
    feedback_text: Optional[str] = Field(default=None, max_length=10_000)
    outcomes: Optional[str] = Field(default=None, max_length=10_000)
    open_to_testimonial: bool = False


class GrowBaselineRequest(BaseModel):
    competency_scores: dict[str, CompetencyLevel] = Field(min_length=1)
    focus_areas: list[str] = Field(default_factory=list)
    session_id: Optional[int] = Field(
        default=None, description="Milestone session this baseline answers, if any."
    )
    session_number: Optional[int] = None


class GrowMidpointRequest(BaseModel):
    competency_scores: dict[str, CompetencyLevel] = Field(min_length=1)
    session_id: Optional[int] = None
    session_number: Optional[int] = None
    feedback_text: Optional[str] = Field(default=None, max_length=10_000)


class GrowEndRequest(BaseModel):
    competency_scores: dict[str, CompetencyLevel] = Field(min_length=1)
    nps: int = Field(ge=0, le=10)
    outcomes: Optional[str] = Field(default=None, max_length=10_000)
    open_to_testimonial: bool = False
    session_id: Optional[int] = None
    session_number: Optional[int] = None


class SurveySubmissionOut(BaseModel):
    id: int
    survey_type: str
    session_id: Optional[int] = None
    session_number: Optional[int] = None
    submitted_at: str
    competency_scores: int = Field(description="Number of competency score rows written.")
