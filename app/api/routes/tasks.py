from __future__ import annotations

import logging
import secrets
from dataclasses import asdict
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException, status

from app.api.deps import get_expiration_scanner
from app.config import Settings, get_settings
from app.notifications.maintenance import ExpirationScanner

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


@router.post("/daily-maintenance", status_code=status.HTTP_200_OK)
async def run_daily_maintenance_task(
  settings: Annotated[Settings, Depends(get_settings)], scanner: Annotated[ExpirationScanner, Depends(get_expiration_scanner)], x_vcard_task_secret: str | None = Header(default=None)
) -> dict[str, Any]:
  """
  Operational re-trigger of the daily purge and reminder scan.

  Runs inline and returns the run report; re-running on the same day only fills in missed reminders.
  """
  # Internal task endpoints stay closed unless a shared secret is configured.
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  if not secrets.compare_digest((x_vcard_task_secret or ""), settings.task_secret):
    logger.warning("Unauthorized access attempt to /daily-maintenance")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")

  logger.info("Manual daily maintenance run requested")
  report = await scanner.run_daily_maintenance()
  return {"status": "ok", "report": asdict(report)}
