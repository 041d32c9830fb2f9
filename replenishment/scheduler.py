"""Daily trigger for the replenishment cycle (APScheduler).

The schedule is an explicit `ScheduleConfig` handed to the scheduler at
startup; nothing is registered at import time.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from django.conf import settings
from django.db import close_old_connections

from .jobs import CycleReport, run_cycle

logger = logging.getLogger("smartsupply.replenishment")


@dataclass(frozen=True)
class ScheduleConfig:
    cron_expression: str
    timezone: str

    @classmethod
    def from_settings(cls) -> "ScheduleConfig":
        return cls(
            cron_expression=settings.REPLENISHMENT_SCHEDULE_CRON,
            timezone=settings.REPLENISHMENT_TIMEZONE,
        )

    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def trigger(self) -> CronTrigger:
        """Build the cron trigger; raises ValueError for a malformed expression."""
        return CronTrigger.from_crontab(self.cron_expression, timezone=self.tzinfo())


class ReplenishmentScheduler:
    """Runs `run_cycle` on the configured daily schedule.

    `stop()` sets the stop event first (clients not yet started are skipped)
    and then waits for the running cycle to finish.
    """

    JOB_ID = "replenishment-daily-cycle"

    def __init__(self, config: ScheduleConfig, *, max_workers: Optional[int] = None, scheduler=None):
        self.config = config
        self.max_workers = max_workers
        self.stop_event = threading.Event()
        self.scheduler = scheduler or BlockingScheduler(timezone=config.tzinfo())

    def register(self):
        return self.scheduler.add_job(
            self.run_once,
            trigger=self.config.trigger(),
            id=self.JOB_ID,
            name="Daily consumption and automatic orders",
            replace_existing=True,
            max_instances=1,  # never overlap cycles
            coalesce=True,
            misfire_grace_time=3600,
        )

    def run_once(self) -> Optional[CycleReport]:
        close_old_connections()
        try:
            return run_cycle(max_workers=self.max_workers, stop_event=self.stop_event)
        except Exception:
            # Storage failure aborts this cycle; the next tick retries
            logger.exception("cycle_failed", extra={"event": "cycle_failed"})
            return None
        finally:
            close_old_connections()

    def start(self) -> None:
        """Register the job and block until `stop()` is called."""
        self.register()
        logger.info(
            "scheduler_started",
            extra={
                "event": "scheduler_started",
                "cron": self.config.cron_expression,
                "timezone": self.config.timezone,
            },
        )
        self.scheduler.start()

    def stop(self, *_args) -> None:
        self.stop_event.set()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
        logger.info("scheduler_stopped", extra={"event": "scheduler_stopped"})
