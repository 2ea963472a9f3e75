"""Trip notification dispatch."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterator

from starlette.concurrency import run_in_threadpool

from app.config import SUPPORTED_LANGUAGES
from app.notifications.content import DelayAlert, WeatherAlert, build_booking_confirmation, build_delay_alert, build_trip_reminder, build_trip_update, build_weather_alert, sound_for_priority, urgency_for_priority
from app.notifications.contracts import (
  BatchOutcome,
  BroadcastResult,
  ConfigurationError,
  DeliveryFailure,
  DeviceToken,
  DeviceTokenStore,
  DispatchError,
  HistoryEntry,
  NotificationError,
  NotificationHistoryStore,
  NotificationRequest,
  Platform,
  PushMessage,
  PushSender,
  SendResult,
  TripMembershipResolver,
)
from app.notifications.push_sender import FCM_MULTICAST_LIMIT
from app.notifications.template_renderer import DEFAULT_LANGUAGE, localize_request
from app.utils.clock import utc_now

logger = logging.getLogger(__name__)

DEFAULT_BADGE = 1


def build_push_message(request: NotificationRequest, tokens: list[str], *, badge: int | None = DEFAULT_BADGE) -> PushMessage:
  """Assemble the multicast payload for a (possibly localized) request."""
  data = dict(request.data)
  data["type"] = request.kind.value
  data["priority"] = request.priority.value
  if request.trip_id:
    data["trip_id"] = request.trip_id
  if request.action_url:
    data["action_url"] = request.action_url

  return PushMessage(
    tokens=tokens,
    title=request.title,
    body=request.body,
    data=data,
    urgency=urgency_for_priority(request.priority),
    sound=sound_for_priority(request.priority),
    image_url=request.image_url,
    click_action=request.action_url,
    badge=badge,
  )


def group_tokens_by_language(tokens: list[DeviceToken], *, default_language: str) -> dict[str, list[DeviceToken]]:
  """Group tokens by device language, keeping first-seen order."""
  groups: dict[str, list[DeviceToken]] = {}
  for token in tokens:
    groups.setdefault(token.language or default_language, []).append(token)
  return groups


def _chunked(tokens: list[DeviceToken], size: int) -> Iterator[list[DeviceToken]]:
  for start in range(0, len(tokens), size):
    yield tokens[start : start + size]


class NotificationService:
  """Sends trip notifications to every active device of a user."""

  def __init__(
    self,
    *,
    push_sender: PushSender,
    device_tokens: DeviceTokenStore,
    history: NotificationHistoryStore,
    trip_members: TripMembershipResolver,
    enabled: bool,
    default_language: str = DEFAULT_LANGUAGE,
    history_page_limit: int = 100,
  ) -> None:
    self._push_sender = push_sender
    self._device_tokens = device_tokens
    self._history = history
    self._trip_members = trip_members
    self._enabled = enabled
    self._default_language = default_language
    self._history_page_limit = history_page_limit

  @property
  def enabled(self) -> bool:
    return self._enabled

  async def register_device(self, user_id: str, token: str, platform: Platform, *, language: str = DEFAULT_LANGUAGE, timezone: str = "UTC") -> DeviceToken:
    """Register a device token; fails loudly so callers can report it."""
    if not self._enabled:
      raise ConfigurationError("Push notifications are not enabled")

    normalized_token = token.strip()
    if not normalized_token:
      raise ValueError("Device token must not be empty")
    normalized_language = (language or DEFAULT_LANGUAGE).strip().lower()
    if normalized_language not in SUPPORTED_LANGUAGES:
      raise ValueError(f"Unsupported language: {language}")

    device = await self._device_tokens.register(user_id, normalized_token, platform, language=normalized_language, timezone=timezone or "UTC")
    logger.info("Registered device token user_id=%s platform=%s language=%s", user_id, platform.value, normalized_language)
    return device

  async def send(self, request: NotificationRequest) -> SendResult:
    """Deliver a request to all of the user's active devices.

    Devices are grouped by language so each group gets its own localized text, and each
    group is sent in batches no larger than the provider's multicast limit. Token
    cleanup and history recording are best effort; a failed provider call raises
    `DispatchError` and skips history.
    """
    # Avoid sending notifications when the feature is not configured.
    if not self._enabled:
      logger.info("Notification service disabled, skipping title=%s", request.title)
      return SendResult()

    # Nothing to do for users without a registered device.
    tokens = await self._device_tokens.list_active(request.user_id)
    if not tokens:
      logger.info("No device tokens found for user %s", request.user_id)
      return SendResult()

    batches: list[BatchOutcome] = []
    for language, group in group_tokens_by_language(tokens, default_language=self._default_language).items():
      # Each language group gets its own copy of the text.
      localized = localize_request(request, language, default_language=self._default_language)
      for chunk in _chunked(group, FCM_MULTICAST_LIMIT):
        batch = await self._dispatch(build_push_message(localized, [device.token for device in chunk]))
        batches.append(batch)
        # Drop tokens the provider reports as dead so later sends skip them.
        await self._deactivate_invalid_tokens(batch)

    result = SendResult.from_batches(batches)
    logger.info("Sent notification to %d devices user_id=%s kind=%s success=%d failure=%d", len(tokens), request.user_id, request.kind.value, result.success_count, result.failure_count)
    # History keeps the caller's original text, not the localized variants.
    await self._record_history(request, result)
    return result

  async def _dispatch(self, message: PushMessage) -> BatchOutcome:
    try:
      return await run_in_threadpool(self._push_sender.send, message)
    except NotificationError:
      raise
    except Exception as exc:  # noqa: BLE001
      raise DispatchError(f"Push provider call failed: {exc}") from exc

  async def _deactivate_invalid_tokens(self, batch: BatchOutcome) -> None:
    # A batch rejected as a whole points at the message, not at the tokens.
    if len(batch.outcomes) > 1 and all(outcome.failure is DeliveryFailure.INVALID_ARGUMENT for outcome in batch.outcomes):
      logger.warning("Every recipient rejected the message as invalid, keeping tokens active count=%d", len(batch.outcomes))
      return

    for outcome in batch.outcomes:
      if outcome.success or outcome.failure is None or not outcome.failure.invalidates_token:
        continue
      try:
        await self._device_tokens.deactivate(outcome.token)
        logger.info("Deactivated device token reason=%s token=%s...", outcome.failure.value, outcome.token[:10])
      except Exception as exc:  # noqa: BLE001
        logger.error("Failed to deactivate device token token=%s... error=%s", outcome.token[:10], exc)

  async def _record_history(self, request: NotificationRequest, result: SendResult) -> None:
    entry = HistoryEntry(
      user_id=request.user_id,
      trip_id=request.trip_id,
      kind=request.kind,
      title=request.title,
      body=request.body,
      sent_at=utc_now(),
      success_count=result.success_count,
      failure_count=result.failure_count,
    )
    try:
      await self._history.insert(entry)
    except Exception as exc:  # noqa: BLE001
      logger.error("Notification history insert failed user_id=%s error=%s", request.user_id, exc, exc_info=True)

  async def list_history(self, user_id: str, *, limit: int = 50, offset: int = 0) -> list[HistoryEntry]:
    """Return a page of the user's send history, newest first."""
    if not self._enabled:
      return []
    bounded_limit = max(1, min(limit, self._history_page_limit))
    return await self._history.list_for_user(user_id, limit=bounded_limit, offset=max(0, offset))

  async def send_weather_alert(self, user_id: str, trip_id: str, alert: WeatherAlert) -> SendResult:
    return await self.send(build_weather_alert(user_id, trip_id, alert))

  async def send_delay_alert(self, user_id: str, trip_id: str, alert: DelayAlert) -> SendResult:
    return await self.send(build_delay_alert(user_id, trip_id, alert))

  async def send_trip_reminder(self, user_id: str, trip_id: str, reminder_type: str, time_until: datetime.timedelta) -> SendResult:
    return await self.send(build_trip_reminder(user_id, trip_id, reminder_type, time_until))

  async def send_booking_confirmation(self, user_id: str, trip_id: str, booking_type: str, confirmation_number: str) -> SendResult:
    return await self.send(build_booking_confirmation(user_id, trip_id, booking_type, confirmation_number))

  async def send_trip_update(self, trip_id: str, message: str) -> BroadcastResult:
    """Notify every member of a trip; one member's failure does not stop the rest."""
    result = BroadcastResult(trip_id=trip_id)
    try:
      user_ids = await self._trip_members.user_ids_for_trip(trip_id)
    except Exception as exc:  # noqa: BLE001
      logger.error("Failed to get users for trip %s: %s", trip_id, exc)
      return result

    for user_id in user_ids:
      try:
        result.delivered[user_id] = await self.send(build_trip_update(user_id, trip_id, message))
      except Exception as exc:  # noqa: BLE001
        logger.error("Failed to send trip update to user %s: %s", user_id, exc)
        result.failed_user_ids.append(user_id)

    return result
