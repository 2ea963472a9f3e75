"""Shared FastAPI dependencies for notification routes."""

from __future__ import annotations

from functools import lru_cache

from app.config import get_settings
from app.notifications.factory import build_notification_scheduler, build_notification_service
from app.notifications.scheduler import NotificationScheduler
from app.notifications.service import NotificationService


@lru_cache(maxsize=1)
def get_notification_service() -> NotificationService:
  """Build the process-wide notification service on first use."""
  return build_notification_service(get_settings())


@lru_cache(maxsize=1)
def get_notification_scheduler() -> NotificationScheduler:
  """Build the scheduler around the shared notification service."""
  return build_notification_scheduler(get_settings(), service=get_notification_service())
