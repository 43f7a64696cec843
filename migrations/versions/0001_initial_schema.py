"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*names: str) -> list[sa.Column]:
    return [
        sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
        for name in names
    ]


def upgrade() -> None:
    # --- CRM-synced data (read by the scanners) ---
    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_email", sa.String(320), nullable=False),
        sa.Column("first_name", sa.String(128), nullable=True),
        sa.Column("last_name", sa.String(128), nullable=True),
        sa.Column("program", sa.String(256), nullable=True),
        sa.Column("auth_user_id", sa.String(64), nullable=True),
        *_timestamps("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_employees_id", "employees", ["id"])
    op.create_index("ix_employees_company_email", "employees", ["company_email"], unique=True)
    op.create_index("ix_employees_auth_user_id", "employees", ["auth_user_id"])

    op.create_table(
        "coaching_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("employee_email", sa.String(320), nullable=False),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("coach_name", sa.String(256), nullable=True),
        sa.Column("goals", sa.Text(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("appointment_number", sa.Integer(), nullable=True),
        sa.Column("program_name", sa.String(256), nullable=True),
        *_timestamps("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_coaching_sessions_id", "coaching_sessions", ["id"])
    op.create_index("ix_coaching_sessions_employee_id", "coaching_sessions", ["employee_id"])
    op.create_index("ix_coaching_sessions_employee_email", "coaching_sessions", ["employee_email"])
    op.create_index("ix_coaching_sessions_session_date", "coaching_sessions", ["session_date"])
    op.create_index("ix_coaching_sessions_status", "coaching_sessions", ["status"])

    op.create_table(
        "action_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("coaching_sessions.id"), nullable=True),
        sa.Column("coach_name", sa.String(256), nullable=True),
        sa.Column("action_text", sa.Text(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        *_timestamps("created_at"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_action_items_id", "action_items", ["id"])
    op.create_index("ix_action_items_email", "action_items", ["email"])
    op.create_index("ix_action_items_due_date", "action_items", ["due_date"])

    # --- Slack ---
    op.create_table(
        "slack_installations",
        sa.Column("team_id", sa.String(32), nullable=False),
        sa.Column("team_name", sa.String(256), nullable=True),
        sa.Column("bot_token", sa.String(256), nullable=False),
        sa.Column("bot_user_id", sa.String(32), nullable=True),
        sa.Column("installed_by", sa.String(320), nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("team_id"),
    )

    op.create_table(
        "employee_slack_connections",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("employee_email", sa.String(320), nullable=False),
        sa.Column(
            "slack_team_id", sa.String(32),
            sa.ForeignKey("slack_installations.team_id"), nullable=False,
        ),
        sa.Column("slack_user_id", sa.String(32), nullable=False),
        sa.Column("slack_dm_channel_id", sa.String(32), nullable=True),
        sa.Column("nudge_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("nudge_frequency", sa.String(16), nullable=False, server_default="smart"),
        sa.Column("preferred_time", sa.String(5), nullable=True, server_default="09:00"),
        sa.Column("timezone", sa.String(64), nullable=True, server_default="America/New_York"),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_email", "slack_team_id", name="uq_slack_connection_email_team"),
    )
    op.create_index("ix_employee_slack_connections_id", "employee_slack_connections", ["id"])
    op.create_index(
        "ix_employee_slack_connections_employee_email",
        "employee_slack_connections",
        ["employee_email"],
    )

    # --- Nudges ---
    op.create_table(
        "nudge_templates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("nudge_type", sa.String(32), nullable=False),
        sa.Column("name", sa.String(128), nullable=True),
        sa.Column("message_blocks", sa.JSON(), nullable=False),
        sa.Column("fallback_text", sa.String(512), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_nudge_templates_id", "nudge_templates", ["id"])
    op.create_index("ix_nudge_templates_nudge_type", "nudge_templates", ["nudge_type"])

    op.create_table(
        "slack_nudges",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("employee_email", sa.String(320), nullable=False),
        sa.Column("nudge_type", sa.String(32), nullable=False),
        sa.Column("reference_id", sa.String(64), nullable=False),
        sa.Column("reference_type", sa.String(32), nullable=False),
        sa.Column("channel_id", sa.String(32), nullable=False),
        sa.Column("message_ts", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="sent"),
        sa.Column("response", sa.String(64), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "employee_email", "nudge_type", "reference_id", name="uq_slack_nudge_dedupe_key"
        ),
    )
    op.create_index("ix_slack_nudges_id", "slack_nudges", ["id"])
    op.create_index("ix_slack_nudges_employee_email", "slack_nudges", ["employee_email"])
    op.create_index("ix_slack_nudges_message", "slack_nudges", ["message_ts", "channel_id"])

    # --- Surveys ---
    op.create_table(
        "core_competencies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index("ix_core_competencies_id", "core_competencies", ["id"])

    op.create_table(
        "survey_submissions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("survey_type", sa.String(32), nullable=False),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("coaching_sessions.id"), nullable=True),
        sa.Column("session_number", sa.Integer(), nullable=True),
        sa.Column("coach_name", sa.String(256), nullable=True),
        sa.Column("coach_satisfaction", sa.Integer(), nullable=True),
        sa.Column("wants_rematch", sa.Boolean(), nullable=True),
        sa.Column("rematch_reason", sa.Text(), nullable=True),
        sa.Column("coach_qualities", sa.JSON(), nullable=True),
        sa.Column("has_booked_next_session", sa.Boolean(), nullable=True),
        sa.Column("nps", sa.Integer(), nullable=True),
        sa.Column("feedback_text", sa.Text(), nullable=True),
        sa.Column("outcomes", sa.Text(), nullable=True),
        sa.Column("open_to_testimonial", sa.Boolean(), nullable=True),
        sa.Column("focus_areas", sa.JSON(), nullable=True),
        *_timestamps("submitted_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", "session_id", name="uq_survey_submission_email_session"),
    )
    op.create_index("ix_survey_submissions_id", "survey_submissions", ["id"])
    op.create_index("ix_survey_submissions_email", "survey_submissions", ["email"])
    op.create_index("ix_survey_submissions_survey_type", "survey_submissions", ["survey_type"])
    op.create_index("ix_survey_submissions_session_id", "survey_submissions", ["session_id"])

    op.create_table(
        "survey_competency_scores",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "survey_submission_id", sa.Integer(),
            sa.ForeignKey("survey_submissions.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("competency_name", sa.String(128), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("score_type", sa.String(8), nullable=False),
        *_timestamps("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "survey_submission_id", "competency_name", name="uq_competency_score_submission_name"
        ),
        sa.CheckConstraint("score >= 1 AND score <= 5", name="ck_competency_score_range"),
    )
    op.create_index("ix_survey_competency_scores_id", "survey_competency_scores", ["id"])
    op.create_index(
        "ix_survey_competency_scores_survey_submission_id",
        "survey_competency_scores",
        ["survey_submission_id"],
    )
    op.create_index("ix_survey_competency_scores_email", "survey_competency_scores", ["email"])

    op.create_table(
        "checkpoints",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("checkpoint_number", sa.Integer(), nullable=False),
        sa.Column("session_count_at_checkpoint", sa.Integer(), nullable=False),
        sa.Column("competency_scores", sa.JSON(), nullable=False),
        sa.Column("reflection_text", sa.Text(), nullable=True),
        sa.Column("focus_area", sa.String(256), nullable=True),
        sa.Column("nps_score", sa.Integer(), nullable=True),
        sa.Column("testimonial_consent", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", "checkpoint_number", name="uq_checkpoint_email_number"),
    )
    op.create_index("ix_checkpoints_id", "checkpoints", ["id"])
    op.create_index("ix_checkpoints_email", "checkpoints", ["email"])


def downgrade() -> None:
    op.drop_table("checkpoints")
    op.drop_table("survey_competency_scores")
    op.drop_table("survey_submissions")
    op.drop_table("core_competencies")
    op.drop_table("slack_nudges")
    op.drop_table("nudge_templates")
    op.drop_table("employee_slack_connections")
    op.drop_table("slack_installations")
    op.drop_table("action_items")
    op.drop_table("coaching_sessions")
    op.drop_table("employees")
