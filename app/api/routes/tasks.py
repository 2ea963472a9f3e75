from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.api.deps import get_notification_scheduler
from app.core.security import require_task_secret
from app.notifications.scheduler import NotificationScheduler

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


@router.post("/process-scheduled-notifications", status_code=status.HTTP_200_OK, dependencies=[Depends(require_task_secret)])
async def process_scheduled_notifications(scheduler: Annotated[NotificationScheduler, Depends(get_notification_scheduler)]) -> dict[str, str | int]:
  """
  Handler for Cloud Scheduler / Cloud Tasks polls.
  Sends every scheduled notification that is due and reports how many went out.
  """
  sent = await scheduler.process_due()
  logger.info("Scheduled notification poll complete sent=%d", sent)
  return {"status": "ok", "sent": sent}
