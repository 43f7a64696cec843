"""Tests for the Slack Web API client, against httpx.MockTransport."""
from __future__ import annotations

import json
from urllib.parse import parse_qs

import httpx
import pytest

from coaching_portal.services.slack_client import SlackClient


def _client(handler) -> SlackClient:
    return SlackClient(base_url="https://slack.test/api", transport=httpx.MockTransport(handler))


class TestSlackClient:

    def test_post_message(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "ts": "123.456", "channel": "D1"})

        with _client(handler) as slack:
            result = slack.post_message("xoxb-1", "D1", [{"type": "divider"}])

        assert result.ok and result.ts == "123.456" and result.channel == "D1"
        assert seen["url"] == "https://slack.test/api/chat.postMessage"
        assert seen["auth"] == "Bearer xoxb-1"
        assert seen["body"]["blocks"] == [{"type": "divider"}]
        assert seen["body"]["text"] == "Coaching update"

    def test_application_error_is_not_ok(self):
        def handler(request):
            return httpx.Response(200, json={"ok": False, "error": "channel_not_found"})

        with _client(handler) as slack:
            result = slack.post_message("xoxb-1", "D404", [], text="hi")
        assert result.ok is False
        assert result.error == "channel_not_found"
        assert result.ts is None

    def test_http_error_raises(self):
        def handler(request):
            return httpx.Response(503)

        with _client(handler) as slack:
            with pytest.raises(httpx.HTTPStatusError):
                slack.post_message("xoxb-1", "D1", [])

    def test_update_message(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "ts": "1.2", "channel": "D1"})

        with _client(handler) as slack:
            assert slack.update_message("xoxb-1", "D1", "1.2", [], text="Done").ok
        assert seen["path"] == "/api/chat.update"
        assert seen["body"] == {"channel": "D1", "ts": "1.2", "blocks": [], "text": "Done"}

    def test_lookup_user_by_email(self):
        def handler(request):
            assert request.url.params["email"] == "a@example.com"
            return httpx.Response(200, json={
                "ok": True,
                "user": {"id": "U1", "name": "ann", "profile": {"email": "a@example.com"}},
            })

        with _client(handler) as slack:
            user = slack.lookup_user_by_email("xoxb-1", "a@example.com")
        assert (user.id, user.name, user.email) == ("U1", "ann", "a@example.com")

    def test_lookup_user_not_found(self):
        def handler(request):
            return httpx.Response(200, json={"ok": False, "error": "users_not_found"})

        with _client(handler) as slack:
            assert slack.lookup_user_by_email("xoxb-1", "nobody@example.com") is None

    def test_open_dm_channel(self):
        def handler(request):
            assert json.loads(request.content) == {"users": "U1"}
            return httpx.Response(200, json={"ok": True, "channel": {"id": "D9"}})

        with _client(handler) as slack:
            assert slack.open_dm_channel("xoxb-1", "U1") == "D9"

    def test_exchange_code(self):
        def handler(request):
            form = parse_qs(request.content.decode())
            assert form["code"] == ["abc"]
            assert form["redirect_uri"] == ["https://api.test/cb"]
            return httpx.Response(200, json={
                "ok": True,
                "access_token": "xoxb-new",
                "bot_user_id": "UB",
                "team": {"id": "T1", "name": "Acme"},
            })

        with _client(handler) as slack:
            access = slack.exchange_code("cid", "secret", "abc", "https://api.test/cb")
        assert access.ok
        assert (access.access_token, access.team_id, access.team_name) == ("xoxb-new", "T1", "Acme")
