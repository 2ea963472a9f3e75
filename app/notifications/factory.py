"""Factory helpers for notification services."""

from __future__ import annotations

import logging

from app.config import Settings
from app.core.firebase import firebase_credentials_configured, initialize_firebase
from app.notifications.contracts import PushSender, TripMembershipResolver
from app.notifications.device_token_repo import DeviceTokenRepository
from app.notifications.history_repo import NotificationHistoryRepository
from app.notifications.push_sender import FcmPushSender, NullPushSender
from app.notifications.scheduled_repo import ScheduledNotificationRepository
from app.notifications.scheduler import NotificationScheduler
from app.notifications.service import NotificationService
from app.notifications.trip_members import NullTripMembershipResolver, SqlTripMembershipResolver

logger = logging.getLogger(__name__)


def push_enabled(settings: Settings) -> bool:
  """Push is live only when switched on and Firebase can be initialized."""
  if not settings.push_notifications_enabled:
    return False
  if not firebase_credentials_configured(settings):
    logger.warning("Push notifications disabled: Firebase credentials are not configured.")
    return False
  return initialize_firebase(settings)


def build_notification_service(settings: Settings) -> NotificationService:
  """Construct a notification service based on environment configuration."""
  enabled = push_enabled(settings)
  push_sender: PushSender = FcmPushSender() if enabled else NullPushSender()

  # Trip membership lives in Postgres; without a DSN broadcasts reach nobody.
  if settings.pg_dsn:
    trip_members: TripMembershipResolver = SqlTripMembershipResolver()
  else:
    trip_members = NullTripMembershipResolver()

  return NotificationService(
    push_sender=push_sender,
    device_tokens=DeviceTokenRepository(),
    history=NotificationHistoryRepository(),
    trip_members=trip_members,
    enabled=enabled,
    default_language=settings.default_language,
    history_page_limit=settings.history_page_limit,
  )


def build_notification_scheduler(settings: Settings, *, service: NotificationService | None = None) -> NotificationScheduler:
  """Construct a scheduler sharing the given (or a freshly built) notification service."""
  return NotificationScheduler(service=service or build_notification_service(settings), store=ScheduledNotificationRepository())
