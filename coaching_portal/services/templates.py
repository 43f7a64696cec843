"""
Template store — nudge type -> Block Kit document with {{placeholders}}.

Templates are loaded once per dispatch cycle with load_templates() and handed
to the dispatcher as a plain value; nothing is cached at module level.

Rendering walks the block tree and substitutes placeholders only inside string
leaves, so a value containing quotes, braces or "{{other}}" can never break the
document or trigger a second expansion. Values landing in a mrkdwn text object
get Slack's &, <, > escaping; everything else (button values, URLs) is inserted
verbatim. Unknown or None variables render as "".
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from coaching_portal.models.nudge import NudgeTemplate, NudgeType

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")

Variables = Mapping[str, Any]


@dataclass(frozen=True)
class RenderableTemplate:
    nudge_type: str
    blocks: list[Any]
    fallback_text: Optional[str]


TemplateMap = dict[str, RenderableTemplate]


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_templates(db: Session) -> TemplateMap:
    """Return the default template for each nudge type (latest row wins)."""
    rows = (
        db.query(NudgeTemplate)
        .filter(NudgeTemplate.is_default.is_(True))
        .order_by(NudgeTemplate.id.asc())
        .all()
    )
    templates: TemplateMap = {}
    for row in rows:
        doc = row.message_blocks or {}
        blocks = doc.get("blocks", []) if isinstance(doc, dict) else list(doc)
        templates[row.nudge_type] = RenderableTemplate(
            nudge_type=row.nudge_type,
            blocks=blocks,
            fallback_text=row.fallback_text,
        )
    return templates


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _escape_mrkdwn(value: str) -> str:
    return value.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def render_text(text: str, variables: Variables, escape: bool = False) -> str:
    def _sub(match: re.Match) -> str:
        value = variables.get(match.group(1))
        if value is None:
            return ""
        value = str(value)
        return _escape_mrkdwn(value) if escape else value

    return _PLACEHOLDER.sub(_sub, text)


def _render_node(node: Any, variables: Variables, escape: bool) -> Any:
    if isinstance(node, str):
        return render_text(node, variables, escape=escape)
    if isinstance(node, list):
        return [_render_node(item, variables, escape) for item in node]
    if isinstance(node, dict):
        is_mrkdwn = node.get("type") == "mrkdwn"
        return {
            key: _render_node(value, variables, escape=(is_mrkdwn and key == "text"))
            for key, value in node.items()
        }
    return node


def render_blocks(blocks: list[Any], variables: Variables) -> list[Any]:
    """Return a new block list with every placeholder substituted."""
    return [_render_node(block, variables, escape=False) for block in blocks]


def format_due_date(due: date, today: date) -> str:
    """Human phrase for a due date relative to `today` (Slack mrkdwn)."""
    delta = (due - today).days
    if delta < 0:
        return f"*Overdue* ({due:%b} {due.day})"
    if delta == 0:
        return "*Today*"
    if delta == 1:
        return "*Tomorrow*"
    return f"{due:%a}, {due:%b} {due.day}"


# ---------------------------------------------------------------------------
# Defaults (seeded by migration 0002)
# ---------------------------------------------------------------------------

def _section(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _button(label: str, action_id: str, value: str, style: Optional[str] = None) -> dict[str, Any]:
    button: dict[str, Any] = {
        "type": "button",
        "text": {"type": "plain_text", "text": label, "emoji": True},
        "action_id": action_id,
        "value": value,
    }
    if style:
        button["style"] = style
    return button


DEFAULT_TEMPLATES: list[dict[str, Any]] = [
    {
        "nudge_type": NudgeType.action_reminder.value,
        "name": "Action item reminder",
        "fallback_text": "Reminder: {{action_text}}",
        "message_blocks": {"blocks": [
            _section(
                "Hi {{first_name}} :wave: A reminder from your work with {{coach_name}}:\n\n"
                ">{{action_text}}\n\nDue: {{due_date}}"
            ),
            {
                "type": "actions",
                "block_id": "action_{{action_id}}",
                "elements": [
                    _button("Done", "action_done", "{{action_id}}", style="primary"),
                    _button("In progress", "action_in_progress", "{{action_id}}"),
                    _button("Reschedule", "action_reschedule", "{{action_id}}"),
                    _button("Need help", "need_help", "{{action_id}}"),
                ],
            },
        ]},
    },
    {
        "nudge_type": NudgeType.goal_checkin.value,
        "name": "Post-session goal check-in",
        "fallback_text": "How's progress on your coaching goals?",
        "message_blocks": {"blocks": [
            _section(
                "Hi {{first_name}}! It's been a few days since your session with "
                "{{coach_name}}. How is it going with your goals?\n\n>{{goals}}"
            ),
            {
                "type": "actions",
                "block_id": "session_{{session_id}}",
                "elements": [
                    _button(":rocket: Great", "progress_great", "{{session_id}}"),
                    _button(":turtle: Slow", "progress_slow", "{{session_id}}"),
                    _button(":construction: Stuck", "progress_stuck", "{{session_id}}"),
                ],
            },
        ]},
    },
    {
        "nudge_type": NudgeType.session_prep.value,
        "name": "Session prep (day before)",
        "fallback_text": "You have a coaching session tomorrow!",
        "message_blocks": {"blocks": [
            _section(
                "Hi {{first_name}}! You have a session with {{coach_name}} tomorrow. "
                "Take two minutes to note what you want to focus on."
            ),
            {
                "type": "actions",
                "block_id": "prep_{{session_id}}",
                "elements": [
                    {
                        "type": "button",
                        "text": {"type": "plain_text", "text": "Open portal"},
                        "action_id": "open_portal",
                        "url": "{{portal_url}}/sessions",
                    },
                ],
            },
        ]},
    },
    {
        "nudge_type": NudgeType.weekly_digest.value,
        "name": "Monday digest",
        "fallback_text": "Your coaching week ahead",
        "message_blocks": {"blocks": [
            _section(
                "Good morning {{first_name}}! This week you have *{{open_action_count}}* "
                "open action items and *{{upcoming_session_count}}* upcoming sessions."
            ),
            {
                "type": "actions",
                "block_id": "digest_{{week}}",
                "elements": [
                    {
                        "type": "button",
                        "text": {"type": "plain_text", "text": "Review in portal"},
                        "action_id": "open_portal",
                        "url": "{{portal_url}}/actions",
                    },
                ],
            },
        ]},
    },
]


def seed_default_templates(db: Session) -> int:
    """Insert any missing default template. Returns the number inserted."""
    existing = {
        nudge_type
        for (nudge_type,) in db.query(NudgeTemplate.nudge_type)
        .filter(NudgeTemplate.is_default.is_(True))
        .all()
    }
    inserted = 0
    for spec in DEFAULT_TEMPLATES:
        if spec["nudge_type"] in existing:
            continue
        db.add(NudgeTemplate(is_default=True, **spec))
        inserted += 1
    if inserted:
        db.commit()
    return inserted
