"""In-process trigger for the nudge dispatch cycle."""
from __future__ import annotations

from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger
from sqlalchemy.orm import Session

from coaching_portal.core.config import settings
from coaching_portal.services.dispatcher import run_dispatch_cycle
from coaching_portal.services.slack_client import SlackClient

JOB_ID = "nudge-dispatch"


def run_scheduled_cycle(
    session_factory: Callable[[], Session],
    client_factory: Callable[[], SlackClient] = SlackClient,
) -> None:
    """One cycle with its own session and HTTP client. Never raises."""
    db = session_factory()
    slack = client_factory()
    try:
        run_dispatch_cycle(db, slack)
    except Exception:
        logger.exception("Scheduled nudge dispatch failed", job_id=JOB_ID)
    finally:
        slack.close()
        db.close()


class NudgeScheduler:
    """Runs run_dispatch_cycle every NUDGE_SCHEDULER_INTERVAL_MINUTES."""

    def __init__(
        self,
        *,
        session_factory: Callable[[], Session],
        interval_minutes: Optional[int] = None,
    ) -> None:
        self._session_factory = session_factory
        self._interval_minutes = interval_minutes or settings.NUDGE_SCHEDULER_INTERVAL_MINUTES
        self._scheduler: BackgroundScheduler | None = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        scheduler = BackgroundScheduler(timezone="UTC")
        # A slow cycle must not overlap the next one.
        scheduler.add_job(
            run_scheduled_cycle,
            trigger=IntervalTrigger(minutes=self._interval_minutes),
            args=[self._session_factory],
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("Nudge scheduler started", interval_minutes=self._interval_minutes)

    def stop(self) -> None:
        if not self._scheduler:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Nudge scheduler stopped")
