"""
Slack interaction handler — button clicks on nudges.

Flow for one callback
---------------------
1. verify_slack_request(): HMAC-SHA256 over "v0:{timestamp}:{raw body}" with
   the signing secret, compared in constant time; timestamps more than
   SLACK_REQUEST_TOLERANCE_SECONDS away from now are replays. This is the only
   step allowed to reject a request.
2. record_nudge_response(): find the NudgeRecord by (message ts, channel) and
   set status="responded", response=<action id>, responded_at=now.
3. Side effect by action id ("action_done" completes the action item; every
   other known id only acknowledges), then replace the Slack message with the
   acknowledgement text.

Slack delivers at least once, so every mutation is a plain "set to": a second
delivery of the same click leaves the same state behind.
"""
from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import parse_qs

from loguru import logger
from sqlalchemy.orm import Session

from coaching_portal.core.config import settings
from coaching_portal.core.errors import InvalidSignatureError, StaleRequestError
from coaching_portal.models.action_item import ActionItem, ActionItemStatus
from coaching_portal.models.nudge import NudgeRecord, NudgeStatus
from coaching_portal.services.connections import get_installation
from coaching_portal.services.slack_client import SlackClient


class ActionId:
    DONE        = "action_done"
    IN_PROGRESS = "action_in_progress"
    RESCHEDULE  = "action_reschedule"
    NEED_HELP   = "need_help"
    GREAT       = "progress_great"
    SLOW        = "progress_slow"
    STUCK       = "progress_stuck"


_PROGRESS_ACK = {
    ActionId.GREAT: (":rocket:", "Awesome! Keep that momentum going!"),
    ActionId.SLOW: (":turtle:", "Progress is progress! Every step counts."),
    ActionId.STUCK: (":construction:", "That's okay, bring this to your next session. Your coach can help."),
}


def acknowledgement_text(action_id: str) -> Optional[str]:
    if action_id == ActionId.DONE:
        return ":white_check_mark: *Done!* Nice work completing your action item."
    if action_id == ActionId.IN_PROGRESS:
        return ":arrows_counterclockwise: *Keep going!* You're making progress. I'll check back in later."
    if action_id == ActionId.RESCHEDULE:
        return f":calendar: Got it! Visit the <{settings.PORTAL_URL}/actions|portal> to update your due date."
    if action_id == ActionId.NEED_HELP:
        return (
            ":speech_balloon: *Got it!* Consider bringing this up in your next coaching "
            "session. Your coach is here to help you work through blockers."
        )
    if action_id in _PROGRESS_ACK:
        emoji, message = _PROGRESS_ACK[action_id]
        return f"{emoji} *Thanks for checking in!* {message}"
    return None


@dataclass
class InteractionResult:
    action_id: Optional[str] = None
    nudge_recorded: bool = False
    action_completed: bool = False
    message_updated: bool = False
    challenge: Optional[str] = None


# ---------------------------------------------------------------------------
# Authenticity
# ---------------------------------------------------------------------------

def compute_signature(secret: str, timestamp: str, body: bytes) -> str:
    base = b"v0:" + timestamp.encode("utf-8") + b":" + body
    digest = hmac.new(secret.encode("utf-8"), base, hashlib.sha256).hexdigest()
    return f"v0={digest}"


def verify_slack_request(
    body: bytes,
    timestamp: Optional[str],
    signature: Optional[str],
    now: Optional[datetime] = None,
    secret: Optional[str] = None,
) -> None:
    """Raise InvalidSignatureError / StaleRequestError unless the request is genuine."""
    secret = secret if secret is not None else settings.SLACK_SIGNING_SECRET
    if not secret or not timestamp or not signature:
        raise InvalidSignatureError()
    try:
        ts = int(timestamp)
    except ValueError:
        raise InvalidSignatureError()
    current = int((now or datetime.now(tz=timezone.utc)).timestamp())
    if abs(current - ts) > settings.SLACK_REQUEST_TOLERANCE_SECONDS:
        raise StaleRequestError(timestamp)
    expected = compute_signature(secret, timestamp, body)
    if not hmac.compare_digest(expected, signature):
        raise InvalidSignatureError()


def parse_payload(body: bytes) -> Optional[dict[str, Any]]:
    """Interactions arrive as form field `payload`; URL checks as raw JSON."""
    text = body.decode("utf-8", errors="replace")
    form = parse_qs(text)
    raw = form.get("payload", [None])[0]
    try:
        if raw is not None:
            return json.loads(raw)
        return json.loads(text) if text.strip().startswith("{") else None
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# State changes (idempotent)
# ---------------------------------------------------------------------------

def record_nudge_response(
    db: Session,
    message_ts: str,
    channel_id: str,
    response: str,
    now: datetime,
) -> Optional[NudgeRecord]:
    nudge = (
        db.query(NudgeRecord)
        .filter(NudgeRecord.message_ts == message_ts, NudgeRecord.channel_id == channel_id)
        .first()
    )
    if nudge is None:
        return None
    nudge.status = NudgeStatus.responded.value
    nudge.response = response
    nudge.responded_at = now
    db.commit()
    return nudge


def complete_action_item(db: Session, action_item_id: int, now: datetime) -> bool:
    """Mark completed. Returns False if the item does not exist."""
    item = db.get(ActionItem, action_item_id)
    if item is None:
        return False
    if item.status != ActionItemStatus.completed.value:
        item.status = ActionItemStatus.completed.value
        item.completed_at = now
        db.commit()
    return True


def _reference_from_block(block_id: str) -> Optional[str]:
    # "action_42" -> "42"
    _, sep, ref = block_id.partition("_")
    return ref if sep and ref else None


def _action_item_id(nudge: Optional[NudgeRecord], action: dict[str, Any]) -> Optional[int]:
    if nudge is not None and nudge.reference_type == "action_item":
        ref = nudge.reference_id
    else:
        ref = _reference_from_block(action.get("block_id") or "") or action.get("value")
    try:
        return int(ref) if ref is not None else None
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Public: one verified callback
# ---------------------------------------------------------------------------

def handle_interaction(
    db: Session,
    slack: SlackClient,
    payload: dict[str, Any],
    now: Optional[datetime] = None,
) -> InteractionResult:
    now = now or datetime.now(tz=timezone.utc)
    result = InteractionResult()

    if payload.get("type") == "url_verification":
        result.challenge = payload.get("challenge")
        return result

    actions = payload.get("actions") or []
    if payload.get("type") != "block_actions" or not actions:
        return result

    action = actions[0]
    action_id = action.get("action_id") or ""
    result.action_id = action_id
    message_ts = (payload.get("message") or {}).get("ts")
    channel_id = (payload.get("channel") or {}).get("id")

    ack = acknowledgement_text(action_id)
    if ack is None:
        logger.info("Ignoring unknown Slack action", action_id=action_id)
        return result

    nudge = None
    if message_ts and channel_id:
        nudge = record_nudge_response(db, message_ts, channel_id, action_id, now)
        result.nudge_recorded = nudge is not None

    if action_id == ActionId.DONE:
        item_id = _action_item_id(nudge, action)
        if item_id is not None:
            result.action_completed = complete_action_item(db, item_id, now)
        if not result.action_completed:
            logger.warning("Action item for click not found", block_id=action.get("block_id"))

    team_id = (payload.get("team") or {}).get("id")
    installation = get_installation(db, team_id) if team_id else None
    if installation is None:
        logger.warning("No Slack installation for team", team_id=team_id)
        return result

    if message_ts and channel_id:
        blocks = [{"type": "section", "text": {"type": "mrkdwn", "text": ack}}]
        updated = slack.update_message(installation.bot_token, channel_id, message_ts, blocks, text=ack)
        result.message_updated = updated.ok
        if not updated.ok:
            logger.warning("Slack message update failed", error=updated.error)

    logger.info(
        "Handled Slack interaction",
        action_id=action_id,
        nudge_recorded=result.nudge_recorded,
        action_completed=result.action_completed,
    )
    return result
