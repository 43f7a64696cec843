"""
Surveys router.

GET  /surveys/pending               — oldest survey the caller still owes
GET  /surveys/context/{session_id}  — header info for a session's survey form
GET  /surveys/competencies          — active core competencies, in display order
GET  /surveys/competency-scores     — caller's GROW scores (pre / post)
POST /surveys/scale-feedback        — SCALE session feedback
POST /surveys/grow-baseline         — GROW pre-program self assessment
POST /surveys/grow-midpoint         — GROW midpoint self assessment
POST /surveys/grow-end              — GROW end-of-program self assessment
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from coaching_portal.core.identity import get_current_email
from coaching_portal.db.base import get_db
from coaching_portal.models.survey import ScoreType, SurveySubmission, SurveyType
from coaching_portal.schemas.common import error_response
from coaching_portal.schemas.surveys import (
    CompetencyOut,
    CompetencyScoreOut,
    GrowBaselineRequest,
    GrowEndRequest,
    GrowMidpointRequest,
    PendingSurveyOut,
    PendingSurveyResponse,
    ScaleFeedbackRequest,
    SurveyContextOut,
    SurveySubmissionOut,
)
from coaching_portal.services.survey_progression import get_pending_survey
from coaching_portal.services.surveys import (
    get_survey_context,
    list_competency_scores,
    list_core_competencies,
    submit_grow_survey,
    submit_scale_feedback,
)

router = APIRouter(prefix="/surveys", tags=["surveys"])

_SUBMIT_RESPONSES = {
    201: {"description": "Survey stored."},
    404: error_response("Session does not exist or belongs to someone else."),
    409: error_response("This survey was already submitted."),
}


def _submission_to_response(s: SurveySubmission) -> SurveySubmissionOut:
    return SurveySubmissionOut(
        id=s.id,
        survey_type=s.survey_type,
        session_id=s.session_id,
        session_number=s.session_number,
        submitted_at=s.submitted_at.isoformat() if s.submitted_at else "",
        competency_scores=len(s.competency_scores),
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

@router.get(
    "/pending",
    response_model=PendingSurveyResponse,
    summary="Oldest survey the caller still owes",
)
def pending_survey(
    email: str = Depends(get_current_email),
    db: Session = Depends(get_db),
):
    """
    Surveys fall due at completed sessions 1, 3, 6, 12, 18, 24, 30 and 36.
    The oldest unanswered one wins. GROW participants are asked for their
    baseline before anything else.
    """
    pending = get_pending_survey(db, email)
    if pending is None:
        return PendingSurveyResponse(pending=None)
    return PendingSurveyResponse(pending=PendingSurveyOut(
        session_id=pending.session_id,
        session_number=pending.session_number,
        session_date=str(pending.session_date),
        coach_name=pending.coach_name,
        survey_type=pending.survey_type,
    ))


@router.get(
    "/context/{session_id}",
    response_model=SurveyContextOut,
    summary="Session details for the survey form",
    responses={404: error_response("Session not found for this employee.")},
)
def survey_context(
    session_id: int,
    email: str = Depends(get_current_email),
    db: Session = Depends(get_db),
):
    ctx = get_survey_context(db, email, session_id)
    return SurveyContextOut(
        session_id=ctx.session_id,
        session_number=ctx.session_number,
        session_date=str(ctx.session_date),
        coach_name=ctx.coach_name,
        employee_email=ctx.employee_email,
    )


@router.get(
    "/competencies",
    response_model=list[CompetencyOut],
    summary="Active core competencies",
)
def competencies(db: Session = Depends(get_db)):
    return [CompetencyOut.model_validate(c) for c in list_core_competencies(db)]


@router.get(
    "/competency-scores",
    response_model=list[CompetencyScoreOut],
    summary="Caller's competency scores",
)
def competency_scores(
    score_type: Optional[ScoreType] = Query(default=None, description='"pre" or "post". Omit for both.'),
    email: str = Depends(get_current_email),
    db: Session = Depends(get_db),
):
    rows = list_competency_scores(db, email, score_type.value if score_type else None)
    return [
        CompetencyScoreOut(
            survey_submission_id=r.survey_submission_id,
            competency_name=r.competency_name,
            score=r.score,
            score_type=r.score_type,
            created_at=r.created_at.isoformat() if r.created_at else "",
        )
        for r in rows
    ]


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------

@router.post(
    "/scale-feedback",
    response_model=SurveySubmissionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Submit SCALE session feedback",
    responses=_SUBMIT_RESPONSES,
)
def scale_feedback(
    payload: ScaleFeedbackRequest,
    email: str = Depends(get_current_email),
    db: Session = Depends(get_db),
):
    return _submission_to_response(submit_scale_feedback(db, email, payload))


@router.post(
    "/grow-baseline",
    response_model=SurveySubmissionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Submit GROW baseline",
    responses={**_SUBMIT_RESPONSES, 422: error_response("Unknown competency or score outside 1-5.")},
)
def grow_baseline(
    payload: GrowBaselineRequest,
    email: str = Depends(get_current_email),
    db: Session = Depends(get_db),
):
    """Scores are stored as `pre` and unlock the regular milestone surveys."""
    return _submission_to_response(
        submit_grow_survey(db, email, SurveyType.grow_baseline.value, payload)
    )


@router.post(
    "/grow-midpoint",
    response_model=SurveySubmissionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Submit GROW midpoint",
    responses={**_SUBMIT_RESPONSES, 422: error_response("Unknown competency or score outside 1-5.")},
)
def grow_midpoint(
    payload: GrowMidpointRequest,
    email: str = Depends(get_current_email),
    db: Session = Depends(get_db),
):
    return _submission_to_response(
        submit_grow_survey(db, email, SurveyType.grow_midpoint.value, payload)
    )


@router.post(
    "/grow-end",
    response_model=SurveySubmissionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Submit GROW end-of-program survey",
    responses={**_SUBMIT_RESPONSES, 422: error_response("Unknown competency or score outside 1-5.")},
)
def grow_end(
    payload: GrowEndRequest,
    email: str = Depends(get_current_email),
    db: Session = Depends(get_db),
):
    return _submission_to_response(
        submit_grow_survey(db, email, SurveyType.grow_end.value, payload)
    )
