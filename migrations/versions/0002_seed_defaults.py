"""seed default nudge templates and core competencies

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

Default templates are the ones the dispatcher falls back to; the twelve core
competencies back the GROW surveys. Downgrade removes only seeded rows.
"""
from alembic import op
import sqlalchemy as sa

from coaching_portal.services.surveys import CORE_COMPETENCIES
from coaching_portal.services.templates import DEFAULT_TEMPLATES

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


nudge_templates = sa.table(
    "nudge_templates",
    sa.column("nudge_type", sa.String),
    sa.column("name", sa.String),
    sa.column("message_blocks", sa.JSON),
    sa.column("fallback_text", sa.String),
    sa.column("is_default", sa.Boolean),
)

core_competencies = sa.table(
    "core_competencies",
    sa.column("name", sa.String),
    sa.column("description", sa.Text),
    sa.column("display_order", sa.Integer),
    sa.column("is_active", sa.Boolean),
)


def upgrade() -> None:
    op.bulk_insert(
        nudge_templates,
        [{**spec, "is_default": True} for spec in DEFAULT_TEMPLATES],
    )
    op.bulk_insert(
        core_competencies,
        [
            {"name": name, "description": description, "display_order": order, "is_active": True}
            for order, (name, description) in enumerate(CORE_COMPETENCIES, start=1)
        ],
    )


def downgrade() -> None:
    op.execute(
        core_competencies.delete().where(
            core_competencies.c.name.in_([name for name, _ in CORE_COMPETENCIES])
        )
    )
    op.execute(nudge_templates.delete().where(nudge_templates.c.is_default.is_(True)))
