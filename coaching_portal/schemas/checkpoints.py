"""
Checkpoint schemas.

GET  /checkpoints         → CheckpointListResponse
GET  /checkpoints/latest  → CheckpointOut
POST /checkpoints         → CheckpointCreate → CheckpointOut
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class CheckpointCreate(BaseModel):
    checkpoint_number: int = Field(ge=1)
    session_count_at_checkpoint: int = Field(ge=0)
    competency_scores: dict[str, int] = Field(default_factory=dict)
    reflection_text: Optional[str] = Field(default=None, max_length=10_000)
    focus_area: Optional[str] = Field(default=None, max_length=256)
    nps_score: Optional[int] = Field(default=None, ge=0, le=10)
    testimonial_consent: bool = False


class CheckpointOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    checkpoint_number: int
    session_count_at_checkpoint: int
    competency_scores: dict[str, Any]
    reflection_text: Optional[str] = None
    focus_area: Optional[str] = None
    nps_score: Optional[int] = None
    testimonial_consent: bool
    created_at: str


class CheckpointListResponse(BaseModel):
    total: int
    items: list[CheckpointOut]
