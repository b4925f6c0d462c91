"""Cron wiring for the daily maintenance run."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

MAINTENANCE_JOB_ID = "daily_notification_maintenance"


class MaintenanceScheduler:
  """Run a maintenance callable once a day at a fixed local time."""

  def __init__(self, job: Callable[[], Awaitable[Any]], *, hour: int = 0, minute: int = 0, timezone: str = "UTC") -> None:
    self._job = job
    self._trigger = CronTrigger(hour=hour, minute=minute, timezone=timezone)
    self._scheduler = AsyncIOScheduler(timezone=timezone)
    # AsyncIOScheduler.shutdown may defer its state change to the loop, so track our own.
    self._started = False

  @property
  def running(self) -> bool:
    return self._started

  async def _run(self) -> None:
    try:
      await self._job()
    except Exception as exc:  # noqa: BLE001
      logger.error("Scheduled maintenance run failed: %s", exc, exc_info=True)

  def start(self) -> None:
    if self._started:
      return
    # Skip a missed run rather than stacking it behind the next one.
    self._scheduler.add_job(self._run, self._trigger, id=MAINTENANCE_JOB_ID, replace_existing=True, max_instances=1, coalesce=True)
    self._scheduler.start()
    self._started = True
    logger.info("Maintenance scheduler started next_run=%s", self._scheduler.get_job(MAINTENANCE_JOB_ID).next_run_time)

  def shutdown(self) -> None:
    if not self._started:
      return
    self._started = False
    self._scheduler.shutdown(wait=False)
    logger.info("Maintenance scheduler stopped")
