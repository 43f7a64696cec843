"""
Slack router.

GET    /slack/oauth/start     — redirect the employee to Slack's consent page
GET    /slack/oauth/callback  — finish linking, redirect back to the portal
GET    /slack/status          — caller's connection + nudge preferences
POST   /slack/settings        — update nudge preferences
DELETE /slack/connection      — unlink Slack
POST   /slack/interactions    — Slack button callbacks (signed by Slack)
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from loguru import logger
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from coaching_portal.core.config import settings
from coaching_portal.core.errors import InvalidOAuthStateError, SlackOAuthError
from coaching_portal.core.identity import get_current_email
from coaching_portal.db.base import get_db
from coaching_portal.models.slack import SlackConnection
from coaching_portal.schemas.common import error_response
from coaching_portal.schemas.slack import (
    DisconnectResponse,
    SlackSettingsOut,
    SlackSettingsUpdate,
    SlackStatusResponse,
)
from coaching_portal.services.connections import (
    build_authorize_url,
    create_oauth_state,
    disconnect,
    get_connection,
    link_slack_account,
    normalize_email,
    update_preferences,
    verify_oauth_state,
)
from coaching_portal.services.interactions import (
    handle_interaction,
    parse_payload,
    verify_slack_request,
)
from coaching_portal.services.slack_client import SlackClient, get_slack_client

router = APIRouter(prefix="/slack", tags=["slack"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _callback_uri(request: Request) -> str:
    return str(request.url_for("slack_oauth_callback"))


def _portal_redirect(**params: str) -> RedirectResponse:
    return RedirectResponse(
        url=f"{settings.PORTAL_URL}/settings?{urlencode(params)}",
        status_code=302,
    )


def _status_response(conn: Optional[SlackConnection]) -> SlackStatusResponse:
    if conn is None:
        return SlackStatusResponse(connected=False)
    return SlackStatusResponse(connected=True, settings=SlackSettingsOut.model_validate(conn))


# ---------------------------------------------------------------------------
# OAuth linking
# ---------------------------------------------------------------------------

@router.get(
    "/oauth/start",
    summary="Start Slack account linking",
    response_class=RedirectResponse,
    status_code=302,
    responses={302: {"description": "Redirect to slack.com/oauth/v2/authorize."}},
)
def slack_oauth_start(
    request: Request,
    email: str = Query(..., min_length=3, description="Employee email to link."),
):
    state = create_oauth_state(email)
    return RedirectResponse(url=build_authorize_url(state, _callback_uri(request)), status_code=302)


@router.get(
    "/oauth/callback",
    name="slack_oauth_callback",
    summary="Slack OAuth callback",
    response_class=RedirectResponse,
    status_code=302,
    responses={302: {"description": "Back to the portal settings page, with `slack_connected=true` or `error`."}},
)
def slack_oauth_callback(
    request: Request,
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    slack: SlackClient = Depends(get_slack_client),
):
    """
    Slack redirects here after consent. Every outcome ends in a redirect to
    `{PORTAL_URL}/settings`; failures carry an `error` code instead of a body.
    """
    if error:
        return _portal_redirect(error=error)
    if not code:
        return _portal_redirect(error="missing_code")
    try:
        email = verify_oauth_state(state or "")
        if email is None:
            raise InvalidOAuthStateError()
        link_slack_account(db, slack, code, email, _callback_uri(request))
    except InvalidOAuthStateError:
        return _portal_redirect(error="invalid_state")
    except SlackOAuthError as exc:
        return _portal_redirect(error=exc.details["reason"])
    return _portal_redirect(slack_connected="true")


# ---------------------------------------------------------------------------
# Connection status / settings
# ---------------------------------------------------------------------------

@router.get(
    "/status",
    response_model=SlackStatusResponse,
    summary="Caller's Slack connection",
    responses={401: error_response("No X-Employee-Email header.")},
)
def slack_status(
    email: str = Depends(get_current_email),
    db: Session = Depends(get_db),
):
    return _status_response(get_connection(db, email))


@router.post(
    "/settings",
    response_model=SlackStatusResponse,
    summary="Update nudge preferences",
    responses={
        404: error_response("Caller has no Slack connection."),
        422: error_response("Bad time format, timezone or frequency."),
    },
)
def slack_settings(
    payload: SlackSettingsUpdate,
    email: str = Depends(get_current_email),
    db: Session = Depends(get_db),
):
    """
    Partial update. `nudge_frequency` is one of `smart` (every nudge),
    `daily` (at most one a day), `weekly` (Monday digest only) or `none`.
    """
    conn = update_preferences(db, email, payload.model_dump(exclude_none=True))
    return _status_response(conn)


@router.delete(
    "/connection",
    response_model=DisconnectResponse,
    summary="Unlink Slack",
)
def slack_disconnect(
    email: str = Depends(get_current_email),
    db: Session = Depends(get_db),
):
    removed = disconnect(db, normalize_email(email))
    return DisconnectResponse(success=True, removed=removed)


# ---------------------------------------------------------------------------
# POST /slack/interactions
# ---------------------------------------------------------------------------

@router.post(
    "/interactions",
    summary="Slack interactivity endpoint",
    responses={
        200: {"description": "Always, once the signature checks out."},
        401: error_response("Bad signature or replayed timestamp."),
    },
)
async def slack_interactions(
    request: Request,
    db: Session = Depends(get_db),
    slack: SlackClient = Depends(get_slack_client),
):
    """
    Verify the Slack signature over the raw body, then record the click.

    After verification the answer is always 200: Slack retries anything else,
    and a retry cannot fix an internal failure.
    """
    body = await request.body()
    verify_slack_request(
        body,
        request.headers.get("X-Slack-Request-Timestamp"),
        request.headers.get("X-Slack-Signature"),
    )

    payload = parse_payload(body)
    if payload is None:
        logger.warning("Unparseable Slack interaction payload")
        return JSONResponse({"ok": True})
    try:
        result = await run_in_threadpool(handle_interaction, db, slack, payload)
    except Exception as exc:
        db.rollback()
        logger.opt(exception=exc).error("Slack interaction failed", type=payload.get("type"))
        return JSONResponse({"ok": True})

    if result.challenge is not None:
        return JSONResponse({"challenge": result.challenge})
    return JSONResponse({"ok": True})
