"""
Tests for Slack interaction handling.

Covered:
  - signature verification (valid, tampered, stale, missing)
  - button clicks record the response on the nudge and complete action items
  - duplicate deliveries leave the same state behind
  - url_verification echoes the challenge
  - after verification the endpoint always answers 200
"""
from __future__ import annotations

import json
import time
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

import pytest

from coaching_portal.core.config import settings
from coaching_portal.core.errors import InvalidSignatureError, StaleRequestError
from coaching_portal.models.action_item import ActionItem
from coaching_portal.models.nudge import NudgeRecord
from coaching_portal.routers import slack as slack_router
from coaching_portal.services.interactions import (
    acknowledgement_text,
    compute_signature,
    handle_interaction,
    parse_payload,
    verify_slack_request,
)

from helpers import connect_slack, make_action_item, make_employee, utc

SECRET = "test-signing-secret"


@pytest.fixture(autouse=True)
def signing_secret(monkeypatch):
    monkeypatch.setattr(settings, "SLACK_SIGNING_SECRET", SECRET)


def _signed_post(client, body: bytes, ts: int | None = None, secret: str = SECRET):
    timestamp = str(ts if ts is not None else int(time.time()))
    return client.post(
        "/slack/interactions",
        content=body,
        headers={
            "Content-Type": "application/x-www-form-urlencoded",
            "X-Slack-Request-Timestamp": timestamp,
            "X-Slack-Signature": compute_signature(secret, timestamp, body),
        },
    )


def _click_body(action_id: str, block_id: str, channel: str, ts: str, team: str = "TTEST") -> bytes:
    payload = {
        "type": "block_actions",
        "team": {"id": team},
        "user": {"id": "U123"},
        "channel": {"id": channel},
        "message": {"ts": ts},
        "actions": [{"action_id": action_id, "block_id": block_id, "value": "x"}],
    }
    return urlencode({"payload": json.dumps(payload)}).encode()


def _nudge(db, email, channel, ts, ref, nudge_type="action_reminder", reference_type="action_item") -> NudgeRecord:
    record = NudgeRecord(
        employee_email=email,
        nudge_type=nudge_type,
        reference_id=ref,
        reference_type=reference_type,
        channel_id=channel,
        message_ts=ts,
        status="sent",
        sent_at=datetime.now(tz=timezone.utc),
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


# ---------------------------------------------------------------------------
# Signature verification
# ---------------------------------------------------------------------------

class TestVerifySlackRequest:
    _NOW = datetime(2093, 1, 1, 12, tzinfo=timezone.utc)
    _TS = str(int(_NOW.timestamp()))

    def test_valid_signature_passes(self):
        body = b"payload=%7B%7D"
        sig = compute_signature(SECRET, self._TS, body)
        verify_slack_request(body, self._TS, sig, now=self._NOW)

    def test_signature_format(self):
        assert compute_signature(SECRET, "1", b"").startswith("v0=")

    def test_tampered_body_rejected(self):
        sig = compute_signature(SECRET, self._TS, b"payload=a")
        with pytest.raises(InvalidSignatureError):
            verify_slack_request(b"payload=b", self._TS, sig, now=self._NOW)

    def test_wrong_secret_rejected(self):
        sig = compute_signature("other-secret", self._TS, b"x")
        with pytest.raises(InvalidSignatureError):
            verify_slack_request(b"x", self._TS, sig, now=self._NOW)

    def test_stale_timestamp_rejected(self):
        old = str(int((self._NOW - timedelta(minutes=6)).timestamp()))
        sig = compute_signature(SECRET, old, b"x")
        with pytest.raises(StaleRequestError):
            verify_slack_request(b"x", old, sig, now=self._NOW)

    def test_future_timestamp_rejected(self):
        future = str(int((self._NOW + timedelta(minutes=6)).timestamp()))
        sig = compute_signature(SECRET, future, b"x")
        with pytest.raises(StaleRequestError):
            verify_slack_request(b"x", future, sig, now=self._NOW)

    @pytest.mark.parametrize("timestamp,signature", [(None, "v0=x"), ("123", None), ("abc", "v0=x")])
    def test_missing_or_malformed_headers_rejected(self, timestamp, signature):
        with pytest.raises(InvalidSignatureError):
            verify_slack_request(b"x", timestamp, signature, now=self._NOW)

    def test_unconfigured_secret_rejects_everything(self, monkeypatch):
        monkeypatch.setattr(settings, "SLACK_SIGNING_SECRET", "")
        sig = compute_signature("", self._TS, b"x")
        with pytest.raises(InvalidSignatureError):
            verify_slack_request(b"x", self._TS, sig, now=self._NOW)


class TestParsePayload:
    def test_form_payload(self):
        assert parse_payload(urlencode({"payload": '{"type": "block_actions"}'}).encode()) == {"type": "block_actions"}

    def test_raw_json(self):
        assert parse_payload(b'{"type": "url_verification", "challenge": "c"}')["challenge"] == "c"

    def test_garbage(self):
        assert parse_payload(b"payload=not-json") is None
        assert parse_payload(b"hello") is None


def test_acknowledgements():
    assert "Done!" in acknowledgement_text("action_done")
    assert "Keep going!" in acknowledgement_text("action_in_progress")
    assert "/actions" in acknowledgement_text("action_reschedule")
    assert "coach" in acknowledgement_text("need_help")
    for action_id in ("progress_great", "progress_slow", "progress_stuck"):
        assert "Thanks for checking in!" in acknowledgement_text(action_id)
    assert acknowledgement_text("something_else") is None


# ---------------------------------------------------------------------------
# handle_interaction (service level)
# ---------------------------------------------------------------------------

class TestHandleInteraction:

    def test_done_completes_item_and_records_response(self, db, fake_slack):
        emp = make_employee(db)
        conn = connect_slack(db, emp.company_email)
        item = make_action_item(db, emp.company_email, None)
        _nudge(db, emp.company_email, conn.slack_dm_channel_id, "111.000001", str(item.id))
        payload = parse_payload(_click_body(
            "action_done", f"action_{item.id}", conn.slack_dm_channel_id, "111.000001"
        ))
        now = utc(2093, 2, 1, 10)

        result = handle_interaction(db, fake_slack, payload, now=now)

        assert result.nudge_recorded and result.action_completed and result.message_updated
        db.expire_all()
        assert db.get(ActionItem, item.id).status == "completed"
        nudge = db.query(NudgeRecord).filter_by(message_ts="111.000001").one()
        assert nudge.status == "responded"
        assert nudge.response == "action_done"
        (update,) = fake_slack.updates()
        assert update["ts"] == "111.000001"
        assert "Done!" in update["text"]

    def test_duplicate_delivery_is_idempotent(self, db, fake_slack):
        emp = make_employee(db)
        conn = connect_slack(db, emp.company_email)
        item = make_action_item(db, emp.company_email, None)
        _nudge(db, emp.company_email, conn.slack_dm_channel_id, "222.000001", str(item.id))
        payload = parse_payload(_click_body(
            "action_done", f"action_{item.id}", conn.slack_dm_channel_id, "222.000001"
        ))

        handle_interaction(db, fake_slack, payload, now=utc(2093, 2, 1, 10))
        db.expire_all()
        first_completed_at = db.get(ActionItem, item.id).completed_at
        handle_interaction(db, fake_slack, payload, now=utc(2093, 2, 1, 11))
        db.expire_all()

        refreshed = db.get(ActionItem, item.id)
        assert refreshed.status == "completed"
        assert refreshed.completed_at == first_completed_at
        assert db.query(NudgeRecord).filter_by(message_ts="222.000001").count() == 1

    def test_block_id_fallback_without_nudge_record(self, db, fake_slack):
        emp = make_employee(db)
        conn = connect_slack(db, emp.company_email)
        item = make_action_item(db, emp.company_email, None)
        payload = parse_payload(_click_body(
            "action_done", f"action_{item.id}", conn.slack_dm_channel_id, "333.000001"
        ))

        result = handle_interaction(db, fake_slack, payload, now=utc(2093, 2, 2, 10))

        assert result.nudge_recorded is False
        assert result.action_completed is True

    def test_progress_click_only_records(self, db, fake_slack):
        emp = make_employee(db)
        conn = connect_slack(db, emp.company_email)
        _nudge(db, emp.company_email, conn.slack_dm_channel_id, "444.000001", "9001",
               nudge_type="goal_checkin", reference_type="session")
        payload = parse_payload(_click_body(
            "progress_slow", "session_9001", conn.slack_dm_channel_id, "444.000001"
        ))

        result = handle_interaction(db, fake_slack, payload, now=utc(2093, 2, 3, 10))

        assert result.nudge_recorded and not result.action_completed
        db.expire_all()
        assert db.query(NudgeRecord).filter_by(message_ts="444.000001").one().response == "progress_slow"

    def test_unknown_action_changes_nothing(self, db, fake_slack):
        emp = make_employee(db)
        conn = connect_slack(db, emp.company_email)
        _nudge(db, emp.company_email, conn.slack_dm_channel_id, "555.000001", "1")
        payload = parse_payload(_click_body("mystery", "x_1", conn.slack_dm_channel_id, "555.000001"))

        result = handle_interaction(db, fake_slack, payload)

        assert result.nudge_recorded is False
        assert fake_slack.updates() == []
        db.expire_all()
        assert db.query(NudgeRecord).filter_by(message_ts="555.000001").one().status == "sent"

    def test_unknown_team_skips_message_update(self, db, fake_slack):
        emp = make_employee(db)
        conn = connect_slack(db, emp.company_email)
        _nudge(db, emp.company_email, conn.slack_dm_channel_id, "666.000001", "1")
        payload = parse_payload(_click_body(
            "need_help", "action_1", conn.slack_dm_channel_id, "666.000001", team="TNOPE"
        ))

        result = handle_interaction(db, fake_slack, payload)

        assert result.nudge_recorded is True
        assert fake_slack.updates() == []


# ---------------------------------------------------------------------------
# POST /slack/interactions
# ---------------------------------------------------------------------------

class TestInteractionsEndpoint:

    def test_bad_signature_is_401_and_mutates_nothing(self, client, db):
        emp = make_employee(db)
        conn = connect_slack(db, emp.company_email)
        item = make_action_item(db, emp.company_email, None)
        _nudge(db, emp.company_email, conn.slack_dm_channel_id, "777.000001", str(item.id))
        body = _click_body("action_done", f"action_{item.id}", conn.slack_dm_channel_id, "777.000001")

        r = _signed_post(client, body, secret="attacker")

        assert r.status_code == 401
        assert r.json()["code"] == "INVALID_SIGNATURE"
        db.expire_all()
        assert db.get(ActionItem, item.id).status == "pending"
        assert db.query(NudgeRecord).filter_by(message_ts="777.000001").one().status == "sent"

    def test_stale_request_is_401(self, client):
        r = _signed_post(client, b"payload=%7B%7D", ts=int(time.time()) - 3600)
        assert r.status_code == 401
        assert r.json()["code"] == "STALE_REQUEST"

    def test_url_verification_echoes_challenge(self, client):
        body = json.dumps({"type": "url_verification", "challenge": "c-123"}).encode()
        r = _signed_post(client, body)
        assert r.status_code == 200
        assert r.json() == {"challenge": "c-123"}

    def test_done_click_twice(self, client, db, fake_slack):
        emp = make_employee(db)
        conn = connect_slack(db, emp.company_email)
        item = make_action_item(db, emp.company_email, None)
        _nudge(db, emp.company_email, conn.slack_dm_channel_id, "888.000001", str(item.id))
        body = _click_body("action_done", f"action_{item.id}", conn.slack_dm_channel_id, "888.000001")

        assert _signed_post(client, body).status_code == 200
        assert _signed_post(client, body).status_code == 200

        db.expire_all()
        assert db.get(ActionItem, item.id).status == "completed"
        nudge = db.query(NudgeRecord).filter_by(message_ts="888.000001").one()
        assert (nudge.status, nudge.response) == ("responded", "action_done")
        assert len(fake_slack.updates()) == 2

    def test_internal_failure_still_returns_200(self, client, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(slack_router, "handle_interaction", broken)
        body = _click_body("action_done", "action_1", "D1", "999.000001")
        r = _signed_post(client, body)
        assert r.status_code == 200
        assert r.json() == {"ok": True}

    def test_unparseable_payload_returns_200(self, client):
        r = _signed_post(client, b"payload=%7Bnot-json")
        assert r.status_code == 200
