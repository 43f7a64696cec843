"""
Connection directory — employee email -> Slack destination + nudge preferences.

Public API
----------
normalize_email(email)                            -> str
get_connection_preference(db, email)              -> ConnectionPreference | None
get_connection(db, email)                         -> SlackConnection | None
get_installation(db, team_id)                     -> SlackInstallation | None
update_preferences(db, email, changes)            -> SlackConnection
disconnect(db, email)                             -> int
create_oauth_state(email) / verify_oauth_state()  -> signed OAuth `state` round-trip
build_authorize_url(state, redirect_uri)          -> str
link_slack_account(db, slack, code, email, uri)   -> SlackConnection
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlencode

from loguru import logger
from sqlalchemy.orm import Session

from coaching_portal.core.config import settings
from coaching_portal.core.errors import SlackNotConnectedError, SlackOAuthError
from coaching_portal.models.slack import NudgeFrequency, SlackConnection, SlackInstallation
from coaching_portal.services.slack_client import SlackClient

SLACK_AUTHORIZE_URL = "https://slack.com/oauth/v2/authorize"
SLACK_SCOPES = "chat:write,users:read,users:read.email,im:write"


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConnectionPreference:
    """Everything the dispatcher needs to decide on and deliver one nudge."""
    employee_email: str
    team_id: str
    slack_user_id: str
    channel_id: str
    nudge_enabled: bool
    nudge_frequency: str
    preferred_time: Optional[str]
    timezone: Optional[str]
    bot_token: str


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def get_connection(db: Session, email: str) -> Optional[SlackConnection]:
    return (
        db.query(SlackConnection)
        .filter(SlackConnection.employee_email == normalize_email(email))
        .order_by(SlackConnection.updated_at.desc(), SlackConnection.id.desc())
        .first()
    )


def get_installation(db: Session, team_id: str) -> Optional[SlackInstallation]:
    return db.get(SlackInstallation, team_id)


def get_connection_preference(db: Session, email: str) -> Optional[ConnectionPreference]:
    """
    Resolve the employee's messaging destination. Returns None when there is
    no connection, no installation token, or no DM channel: all of those mean
    "not applicable", not an error.
    """
    conn = get_connection(db, email)
    if conn is None or not conn.slack_dm_channel_id:
        return None
    installation = conn.installation
    if installation is None or not installation.bot_token:
        return None
    return ConnectionPreference(
        employee_email=conn.employee_email,
        team_id=conn.slack_team_id,
        slack_user_id=conn.slack_user_id,
        channel_id=conn.slack_dm_channel_id,
        nudge_enabled=bool(conn.nudge_enabled),
        nudge_frequency=conn.nudge_frequency or NudgeFrequency.smart.value,
        preferred_time=conn.preferred_time,
        timezone=conn.timezone,
        bot_token=installation.bot_token,
    )


# ---------------------------------------------------------------------------
# Settings changes
# ---------------------------------------------------------------------------

def update_preferences(db: Session, email: str, changes: dict[str, Any]) -> SlackConnection:
    """Apply the non-None fields of `changes` to every connection of `email`."""
    email = normalize_email(email)
    connections = (
        db.query(SlackConnection)
        .filter(SlackConnection.employee_email == email)
        .all()
    )
    if not connections:
        raise SlackNotConnectedError(email)
    allowed = {"nudge_enabled", "nudge_frequency", "preferred_time", "timezone"}
    for conn in connections:
        for key, value in changes.items():
            if key in allowed and value is not None:
                setattr(conn, key, value)
    db.commit()
    db.refresh(connections[0])
    logger.info("Updated nudge preferences", email=email, fields=sorted(changes))
    return connections[0]


def disconnect(db: Session, email: str) -> int:
    email = normalize_email(email)
    removed = (
        db.query(SlackConnection)
        .filter(SlackConnection.employee_email == email)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("Disconnected Slack", email=email, removed=removed)
    return removed


# ---------------------------------------------------------------------------
# OAuth state (HMAC-signed, time-limited)
# ---------------------------------------------------------------------------

def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(s: str) -> bytes:
    pad = "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode((s + pad).encode("utf-8"))


def _sign(payload_b64: str) -> str:
    key = settings.SECRET_KEY.encode("utf-8")
    mac = hmac.new(key, payload_b64.encode("utf-8"), hashlib.sha256).digest()
    return _b64url_encode(mac)


def _epoch(now: Optional[datetime]) -> int:
    return int((now or datetime.now(timezone.utc)).timestamp())


def create_oauth_state(email: str, now: Optional[datetime] = None) -> str:
    payload = {"email": normalize_email(email), "iat": _epoch(now)}
    raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    payload_b64 = _b64url_encode(raw)
    return f"{payload_b64}.{_sign(payload_b64)}"


def verify_oauth_state(token: str, now: Optional[datetime] = None) -> Optional[str]:
    """Return the email carried by a valid, unexpired state token, else None."""
    if not token or "." not in token:
        return None
    payload_b64, sig = token.split(".", 1)
    if not payload_b64 or not hmac.compare_digest(sig, _sign(payload_b64)):
        return None
    try:
        payload = json.loads(_b64url_decode(payload_b64))
        iat = int(payload["iat"])
        email = str(payload["email"])
    except (ValueError, KeyError, TypeError):
        return None
    ttl = settings.OAUTH_STATE_TTL_SECONDS
    if ttl > 0 and _epoch(now) - iat > ttl:
        return None
    return email


def build_authorize_url(state: str, redirect_uri: str) -> str:
    query = urlencode({
        "client_id": settings.SLACK_CLIENT_ID,
        "scope": SLACK_SCOPES,
        "redirect_uri": redirect_uri,
        "state": state,
    })
    return f"{SLACK_AUTHORIZE_URL}?{query}"


# ---------------------------------------------------------------------------
# Account linking
# ---------------------------------------------------------------------------

def link_slack_account(
    db: Session,
    slack: SlackClient,
    code: str,
    email: str,
    redirect_uri: str,
) -> SlackConnection:
    """
    Finish the OAuth dance: exchange the code, upsert the workspace
    installation, find the employee's Slack user, open a DM and upsert the
    connection with default preferences. Raises SlackOAuthError(reason).
    """
    email = normalize_email(email)
    access = slack.exchange_code(
        settings.SLACK_CLIENT_ID, settings.SLACK_CLIENT_SECRET, code, redirect_uri
    )
    if not access.ok or not access.access_token:
        logger.warning("Slack token exchange failed", email=email, error=access.error)
        raise SlackOAuthError("token_exchange_failed")
    if not access.team_id:
        raise SlackOAuthError("missing_team")

    installation = get_installation(db, access.team_id)
    if installation is None:
        installation = SlackInstallation(team_id=access.team_id)
        db.add(installation)
    installation.team_name = access.team_name
    installation.bot_token = access.access_token
    installation.bot_user_id = access.bot_user_id
    installation.installed_by = email
    db.flush()

    user = slack.lookup_user_by_email(access.access_token, email)
    if user is None:
        db.commit()
        logger.warning("No Slack user for employee email", email=email, team_id=access.team_id)
        raise SlackOAuthError("user_not_found")

    dm_channel_id = slack.open_dm_channel(access.access_token, user.id)

    conn = (
        db.query(SlackConnection)
        .filter(
            SlackConnection.employee_email == email,
            SlackConnection.slack_team_id == access.team_id,
        )
        .first()
    )
    if conn is None:
        conn = SlackConnection(
            employee_email=email,
            slack_team_id=access.team_id,
            preferred_time=settings.DEFAULT_PREFERRED_TIME,
            timezone=settings.DEFAULT_TIMEZONE,
        )
        db.add(conn)
    conn.slack_user_id = user.id
    conn.slack_dm_channel_id = dm_channel_id
    conn.nudge_enabled = True
    conn.nudge_frequency = NudgeFrequency.smart.value
    db.commit()
    db.refresh(conn)

    logger.info(
        "Linked Slack account",
        email=email,
        team_id=access.team_id,
        slack_user_id=user.id,
        dm_opened=dm_channel_id is not None,
    )
    return conn
