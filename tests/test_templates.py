"""
Tests for template loading and rendering.

Covered:
  - placeholder substitution walks string leaves only
  - mrkdwn text is escaped, button values / URLs are not
  - unknown or None variables render as ""
  - substituted values are never expanded a second time
  - due-date phrases (Overdue / Today / Tomorrow / weekday)
  - seeded defaults cover every nudge type
"""
from datetime import date

from coaching_portal.models.nudge import NudgeType
from coaching_portal.services.templates import (
    DEFAULT_TEMPLATES,
    format_due_date,
    load_templates,
    render_blocks,
    render_text,
    seed_default_templates,
)


class TestRenderText:
    def test_substitutes_known_variables(self):
        assert render_text("Hi {{first_name}}!", {"first_name": "Ana"}) == "Hi Ana!"

    def test_unknown_and_none_render_empty(self):
        assert render_text("[{{missing}}][{{none}}]", {"none": None}) == "[][]"

    def test_non_string_values_are_stringified(self):
        assert render_text("{{n}} open", {"n": 3}) == "3 open"

    def test_escape_only_when_asked(self):
        assert render_text("{{v}}", {"v": "a<b>&c"}) == "a<b>&c"
        assert render_text("{{v}}", {"v": "a<b>&c"}, escape=True) == "a&lt;b&gt;&amp;c"

    def test_value_with_placeholder_is_not_re_expanded(self):
        out = render_text("{{a}}", {"a": "{{b}}", "b": "boom"})
        assert out == "{{b}}"


class TestRenderBlocks:
    _BLOCKS = [
        {"type": "section", "text": {"type": "mrkdwn", "text": "Goal: {{goals}}"}},
        {
            "type": "actions",
            "block_id": "action_{{action_id}}",
            "elements": [
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "Done"},
                    "action_id": "action_done",
                    "value": "{{goals}}",
                },
            ],
        },
    ]

    def test_mrkdwn_text_is_escaped(self):
        out = render_blocks(self._BLOCKS, {"goals": 'Say "no" <sometimes>', "action_id": "7"})
        assert out[0]["text"]["text"] == 'Goal: Say "no" &lt;sometimes&gt;'

    def test_non_mrkdwn_leaves_are_verbatim(self):
        out = render_blocks(self._BLOCKS, {"goals": "a<b", "action_id": "7"})
        assert out[1]["block_id"] == "action_7"
        assert out[1]["elements"][0]["value"] == "a<b"

    def test_input_blocks_are_not_mutated(self):
        render_blocks(self._BLOCKS, {"goals": "x", "action_id": "1"})
        assert self._BLOCKS[1]["block_id"] == "action_{{action_id}}"


class TestFormatDueDate:
    _TODAY = date(2093, 10, 19)

    def test_overdue(self):
        assert format_due_date(date(2093, 10, 3), self._TODAY) == "*Overdue* (Oct 3)"

    def test_today(self):
        assert format_due_date(self._TODAY, self._TODAY) == "*Today*"

    def test_tomorrow(self):
        assert format_due_date(date(2093, 10, 20), self._TODAY) == "*Tomorrow*"

    def test_later_uses_weekday(self):
        later = date(2093, 10, 21)
        assert format_due_date(later, self._TODAY) == f"{later:%a}, Oct 21"


class TestTemplateStore:
    def test_defaults_cover_every_nudge_type(self):
        assert {t["nudge_type"] for t in DEFAULT_TEMPLATES} == {t.value for t in NudgeType}

    def test_load_templates_returns_seeded_defaults(self, db):
        templates = load_templates(db)
        for nudge_type in NudgeType:
            assert nudge_type.value in templates
            assert templates[nudge_type.value].blocks

    def test_seed_is_idempotent(self, db):
        assert seed_default_templates(db) == 0

    def test_action_reminder_block_id_carries_action_id(self, db):
        template = load_templates(db)[NudgeType.action_reminder.value]
        rendered = render_blocks(template.blocks, {"action_id": "42"})
        assert any(b.get("block_id") == "action_42" for b in rendered)
