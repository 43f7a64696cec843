"""
Thin synchronous client for the handful of Slack Web API methods we use.

Public API
----------
SlackClient.post_message(token, channel, blocks, text)     -> SlackResponse
SlackClient.update_message(token, channel, ts, blocks)     -> SlackResponse
SlackClient.lookup_user_by_email(token, email)             -> SlackUser | None
SlackClient.open_dm_channel(token, user_id)                -> str | None
SlackClient.exchange_code(client_id, secret, code, uri)    -> OAuthAccess
get_slack_client()                                         -> FastAPI dependency

Slack reports application errors as HTTP 200 with {"ok": false, "error": ...};
those come back as SlackResponse(ok=False). Transport failures raise
httpx.HTTPError and are left to the caller.
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from coaching_portal.core.config import settings


@dataclass
class SlackResponse:
    ok: bool
    ts: Optional[str] = None
    channel: Optional[str] = None
    error: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class SlackUser:
    id: str
    name: Optional[str]
    email: Optional[str]


@dataclass
class OAuthAccess:
    ok: bool
    access_token: Optional[str] = None
    bot_user_id: Optional[str] = None
    team_id: Optional[str] = None
    team_name: Optional[str] = None
    error: Optional[str] = None


class SlackClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=(base_url or settings.SLACK_API_BASE_URL).rstrip("/") + "/",
            timeout=timeout if timeout is not None else settings.SLACK_HTTP_TIMEOUT,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "SlackClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- transport ----------------------------------------------------------

    def _post_json(self, method: str, token: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = self._client.post(
            method,
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        )
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _to_response(data: dict[str, Any]) -> SlackResponse:
        channel = data.get("channel")
        if isinstance(channel, dict):
            channel = channel.get("id")
        return SlackResponse(
            ok=bool(data.get("ok")),
            ts=data.get("ts"),
            channel=channel,
            error=data.get("error"),
            data=data,
        )

    # -- messaging ----------------------------------------------------------

    def post_message(
        self,
        token: str,
        channel: str,
        blocks: list[Any],
        text: Optional[str] = None,
    ) -> SlackResponse:
        """chat.postMessage. `text` is the notification / screen-reader fallback."""
        data = self._post_json("chat.postMessage", token, {
            "channel": channel,
            "blocks": blocks,
            "text": text or "Coaching update",
        })
        return self._to_response(data)

    def update_message(
        self,
        token: str,
        channel: str,
        ts: str,
        blocks: list[Any],
        text: Optional[str] = None,
    ) -> SlackResponse:
        payload: dict[str, Any] = {"channel": channel, "ts": ts, "blocks": blocks}
        if text:
            payload["text"] = text
        return self._to_response(self._post_json("chat.update", token, payload))

    # -- identity -----------------------------------------------------------

    def lookup_user_by_email(self, token: str, email: str) -> Optional[SlackUser]:
        response = self._client.get(
            "users.lookupByEmail",
            params={"email": email},
            headers={"Authorization": f"Bearer {token}"},
        )
        response.raise_for_status()
        data = response.json()
        user = data.get("user")
        if not data.get("ok") or not user:
            return None
        return SlackUser(
            id=user["id"],
            name=user.get("name"),
            email=(user.get("profile") or {}).get("email"),
        )

    def open_dm_channel(self, token: str, user_id: str) -> Optional[str]:
        data = self._post_json("conversations.open", token, {"users": user_id})
        channel = data.get("channel")
        if data.get("ok") and channel:
            return channel.get("id")
        return None

    def exchange_code(
        self,
        client_id: str,
        client_secret: str,
        code: str,
        redirect_uri: str,
    ) -> OAuthAccess:
        response = self._client.post(
            "oauth.v2.access",
            data={
                "client_id": client_id,
                "client_secret": client_secret,
                "code": code,
                "redirect_uri": redirect_uri,
            },
        )
        response.raise_for_status()
        data = response.json()
        team = data.get("team") or {}
        return OAuthAccess(
            ok=bool(data.get("ok")),
            access_token=data.get("access_token"),
            bot_user_id=data.get("bot_user_id"),
            team_id=team.get("id"),
            team_name=team.get("name"),
            error=data.get("error"),
        )


def get_slack_client() -> Iterator[SlackClient]:
    client = SlackClient()
    try:
        yield client
    finally:
        client.close()
