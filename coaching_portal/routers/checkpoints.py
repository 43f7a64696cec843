"""
Checkpoints router.

GET  /checkpoints         — caller's checkpoints, oldest first
GET  /checkpoints/latest  — most recent checkpoint (null when none)
POST /checkpoints         — submit a checkpoint
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from coaching_portal.core.identity import get_current_email
from coaching_portal.db.base import get_db
from coaching_portal.models.checkpoint import Checkpoint
from coaching_portal.schemas.common import error_response
from coaching_portal.schemas.checkpoints import (
    CheckpointCreate,
    CheckpointListResponse,
    CheckpointOut,
)
from coaching_portal.services.checkpoints import (
    get_latest_checkpoint,
    list_checkpoints,
    submit_checkpoint,
)

router = APIRouter(prefix="/checkpoints", tags=["checkpoints"])


def _checkpoint_to_response(c: Checkpoint) -> CheckpointOut:
    return CheckpointOut(
        id=c.id,
        checkpoint_number=c.checkpoint_number,
        session_count_at_checkpoint=c.session_count_at_checkpoint,
        competency_scores=c.competency_scores or {},
        reflection_text=c.reflection_text,
        focus_area=c.focus_area,
        nps_score=c.nps_score,
        testimonial_consent=c.testimonial_consent,
        created_at=c.created_at.isoformat() if c.created_at else "",
    )


@router.get("", response_model=CheckpointListResponse, summary="List the caller's checkpoints")
def checkpoints(
    email: str = Depends(get_current_email),
    db: Session = Depends(get_db),
):
    items = list_checkpoints(db, email)
    return CheckpointListResponse(
        total=len(items),
        items=[_checkpoint_to_response(c) for c in items],
    )


@router.get(
    "/latest",
    response_model=Optional[CheckpointOut],
    summary="Most recent checkpoint",
)
def latest_checkpoint(
    email: str = Depends(get_current_email),
    db: Session = Depends(get_db),
):
    latest = get_latest_checkpoint(db, email)
    return _checkpoint_to_response(latest) if latest else None


@router.post(
    "",
    response_model=CheckpointOut,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a checkpoint",
    responses={409: error_response("Checkpoint number already submitted.")},
)
def create_checkpoint(
    payload: CheckpointCreate,
    email: str = Depends(get_current_email),
    db: Session = Depends(get_db),
):
    return _checkpoint_to_response(submit_checkpoint(db, email, payload))
