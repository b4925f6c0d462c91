import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.database import dispose_db_engine
from app.core.logging import initialize_logging
from app.notifications.factory import build_expiration_scanner, build_maintenance_scheduler, build_notification_service
from app.notifications.live_channel import ChannelRegistry


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Wire the notification engine onto `app.state` and run the daily scheduler while serving."""
  from app.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  try:
    initialize_logging(settings)
  except Exception:  # noqa: BLE001
    # Console logging still works through uvicorn's defaults.
    logger.warning("Logging setup failed; continuing with default handlers.", exc_info=True)

  registry = ChannelRegistry()
  service = build_notification_service(settings, registry=registry)
  scanner = build_expiration_scanner(settings, service)
  app.state.channel_registry = registry
  app.state.notification_service = service
  app.state.expiration_scanner = scanner

  scheduler = None
  if settings.scheduler_enabled and settings.pg_dsn:
    scheduler = build_maintenance_scheduler(settings, scanner)
    scheduler.start()
  else:
    logger.info("Maintenance scheduler disabled (enabled=%s, database_configured=%s)", settings.scheduler_enabled, bool(settings.pg_dsn))

  logger.info("Startup complete - notification engine ready.")
  try:
    yield
  finally:
    if scheduler is not None:
      scheduler.shutdown()
    # Let in-flight broadcasts and pushes finish before the pool goes away.
    await service.drain()
    await dispose_db_engine()
    logger.info("Shutdown complete.")
