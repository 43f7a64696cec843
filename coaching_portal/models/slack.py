"""
Slack workspace installations and per-employee connections.

SlackInstallation — one row per workspace (team_id). Owns the bot token.
SlackConnection   — one row per (employee_email, slack_team_id). Holds the DM
                    channel plus nudge preferences. The bot token is always
                    read through the installation, never copied here.

A connection with nudge_enabled = false or nudge_frequency = "none" must
never receive a nudge, whatever else is true.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Boolean, DateTime, ForeignKey, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from coaching_portal.db.base import Base


class NudgeFrequency(str, enum.Enum):
    smart = "smart"
    daily = "daily"
    weekly = "weekly"
    none = "none"


class SlackInstallation(Base):
    __tablename__ = "slack_installations"

    team_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    team_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    bot_token: Mapped[str] = mapped_column(String(256), nullable=False)
    bot_user_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    installed_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class SlackConnection(Base):
    __tablename__ = "employee_slack_connections"
    __table_args__ = (
        UniqueConstraint("employee_email", "slack_team_id", name="uq_slack_connection_email_team"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    employee_email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    slack_team_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("slack_installations.team_id"), nullable=False
    )
    slack_user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    slack_dm_channel_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    nudge_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    nudge_frequency: Mapped[str] = mapped_column(
        String(16), nullable=False, default=NudgeFrequency.smart.value
    )
    preferred_time: Mapped[str | None] = mapped_column(
        String(5), nullable=True, comment='Local "HH:MM"; only the hour is compared'
    )
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True, comment="IANA name")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    installation: Mapped[SlackInstallation] = relationship(lazy="joined")
