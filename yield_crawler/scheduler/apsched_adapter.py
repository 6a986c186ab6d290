"""APScheduler wrapper driving background cache warming."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Awaitable, Callable

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

REFRESH_JOB_ID = "refresh::snapshot"


class APSchedulerAdapter:
    """Run a periodic refresh job on the running asyncio loop."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self.logger = logger or structlog.get_logger("yield_crawler").bind(component="scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_refresh(
        self,
        callback: Callable[[], Awaitable[object]],
        interval_seconds: float,
        run_immediately: bool = True,
    ) -> None:
        """Register ``callback`` every ``interval_seconds``; overlapping runs are skipped."""

        trigger = self._build_trigger(interval_seconds)
        job_kwargs: dict = {}
        if run_immediately:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)
        self.scheduler.add_job(
            callback,
            trigger=trigger,
            id=REFRESH_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **job_kwargs,
        )
        self.logger.info("refresh_scheduled", interval_seconds=interval_seconds)

    @staticmethod
    def _build_trigger(interval_seconds: float) -> IntervalTrigger:
        if interval_seconds <= 0:
            raise ValueError("Refresh interval must be positive")
        return IntervalTrigger(seconds=float(interval_seconds))


__all__ = ["APSchedulerAdapter", "REFRESH_JOB_ID"]
