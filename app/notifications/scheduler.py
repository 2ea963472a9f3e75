"""Deferred notification delivery."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, replace

from app.notifications.contracts import NotificationRequest, ScheduledNotificationStore, SendResult
from app.notifications.service import NotificationService
from app.utils.clock import as_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleResult:
  """Either the stored document id or the result of an immediate send."""

  document_id: str | None = None
  send_result: SendResult | None = None

  @property
  def scheduled(self) -> bool:
    return self.document_id is not None


class NotificationScheduler:
  """Store future notifications and release them once their time has come.

  There is no internal timer: an external poller calls `process_due` periodically.
  """

  def __init__(self, *, service: NotificationService, store: ScheduledNotificationStore) -> None:
    self._service = service
    self._store = store

  async def schedule(self, request: NotificationRequest) -> ScheduleResult:
    """Send now when the request has no schedule time, otherwise persist it."""
    # Requests without a time go straight to the dispatcher.
    if request.schedule_time is None:
      return ScheduleResult(send_result=await self._service.send(request))

    if not self._service.enabled:
      logger.info("Notification service disabled, not scheduling user_id=%s title=%s", request.user_id, request.title)
      return ScheduleResult()

    # Naive times are read as UTC so the stored time and document id agree.
    request = replace(request, schedule_time=as_utc(request.schedule_time))
    document_id = await self._store.save(request)
    logger.info("Scheduled notification id=%s user_id=%s at=%s", document_id, request.user_id, request.schedule_time.isoformat())
    return ScheduleResult(document_id=document_id)

  async def process_due(self, now: datetime.datetime | None = None) -> int:
    """Send every stored notification due at `now` and return how many went out.

    An entry is removed only after its send succeeds; failed entries stay for the next poll.
    """
    # Avoid polling when the feature is not configured.
    if not self._service.enabled:
      return 0

    cutoff = as_utc(now) if now is not None else utc_now()
    due = await self._store.list_due(cutoff)
    sent = 0
    for entry in due:
      # Only entries at or before the cutoff are released.
      schedule_time = entry.request.schedule_time
      if schedule_time is not None and as_utc(schedule_time) > cutoff:
        continue

      # Failed sends stay stored for the next poll.
      try:
        await self._service.send(entry.request)
      except Exception as exc:  # noqa: BLE001
        logger.error("Failed to send scheduled notification id=%s error=%s", entry.document_id, exc)
        continue

      # Already delivered, so it counts even if the delete fails.
      try:
        await self._store.delete(entry.document_id)
      except Exception as exc:  # noqa: BLE001
        logger.error("Failed to delete scheduled notification id=%s error=%s", entry.document_id, exc)
      sent += 1

    if due:
      logger.info("Processed scheduled notifications due=%d sent=%d", len(due), sent)
    return sent
