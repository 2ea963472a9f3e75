"""Push notification delivery implementations."""

from __future__ import annotations

import logging

import firebase_admin
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging
from google.auth.exceptions import GoogleAuthError

from app.notifications.contracts import BatchOutcome, DeliveryFailure, DispatchError, PushMessage, PushSender, RecipientOutcome

logger = logging.getLogger(__name__)

# FCM rejects multicast messages addressed to more tokens than this.
FCM_MULTICAST_LIMIT = 500

# Notification plus data payload ceiling for a single FCM message.
FCM_PAYLOAD_LIMIT_BYTES = 4096
RESERVED_DATA_KEYS = frozenset({"from", "message_type", "collapse_key"})
RESERVED_DATA_PREFIXES = ("google.", "gcm.")


def payload_violation(title: str, body: str, data: dict[str, str]) -> str | None:
  """Describe why FCM would reject this payload outright, or return None when it fits."""
  for key in data:
    if key.lower() in RESERVED_DATA_KEYS or key.lower().startswith(RESERVED_DATA_PREFIXES):
      return f"Data key {key!r} is reserved by FCM"

  size = len(title.encode("utf-8")) + len(body.encode("utf-8"))
  size += sum(len(key.encode("utf-8")) + len(value.encode("utf-8")) for key, value in data.items())
  if size > FCM_PAYLOAD_LIMIT_BYTES:
    return f"Notification payload is {size} bytes, FCM accepts at most {FCM_PAYLOAD_LIMIT_BYTES}"
  return None


class FcmPushSender(PushSender):
  """Firebase Cloud Messaging sender backed by `firebase_admin.messaging`."""

  def __init__(self, *, app: firebase_admin.App | None = None, dry_run: bool = False) -> None:
    self._app = app
    self._dry_run = dry_run

  def send(self, message: PushMessage) -> BatchOutcome:
    """Send one multicast message and map each response back to its token."""
    if len(message.tokens) > FCM_MULTICAST_LIMIT:
      raise ValueError(f"Multicast messages accept at most {FCM_MULTICAST_LIMIT} tokens (got {len(message.tokens)})")

    multicast = build_multicast_message(message)
    try:
      response = messaging.send_each_for_multicast(multicast, dry_run=self._dry_run, app=self._app)
    except (firebase_exceptions.FirebaseError, GoogleAuthError, ValueError) as exc:
      raise DispatchError(f"FCM multicast send failed: {exc}") from exc

    outcomes = [_to_outcome(token, send_response) for token, send_response in zip(message.tokens, response.responses, strict=False)]
    logger.debug("FCM multicast sent tokens=%d success=%d failure=%d", len(message.tokens), response.success_count, response.failure_count)
    return BatchOutcome(outcomes=outcomes)


class NullPushSender(PushSender):
  """No-op push sender used when push notifications are disabled or unconfigured."""

  def send(self, message: PushMessage) -> BatchOutcome:
    logger.debug("Push notifications disabled; dropping message tokens=%d title=%s", len(message.tokens), message.title)
    return BatchOutcome(outcomes=[])


def build_multicast_message(message: PushMessage) -> messaging.MulticastMessage:
  """Translate a provider-neutral message into an FCM multicast message with platform hints."""
  android_notification_priority = "high" if message.urgency == "high" else "default"
  android = messaging.AndroidConfig(
    priority=message.urgency,
    notification=messaging.AndroidNotification(title=message.title, body=message.body, click_action=message.click_action, sound=message.sound, priority=android_notification_priority, visibility="public"),
  )
  apns = messaging.APNSConfig(payload=messaging.APNSPayload(aps=messaging.Aps(alert=messaging.ApsAlert(title=message.title, body=message.body), sound=message.sound, badge=message.badge)))
  webpush = messaging.WebpushConfig(headers={"Urgency": message.urgency})
  return messaging.MulticastMessage(
    tokens=list(message.tokens),
    data=dict(message.data),
    notification=messaging.Notification(title=message.title, body=message.body, image=message.image_url),
    android=android,
    apns=apns,
    webpush=webpush,
  )


def classify_failure(exc: BaseException | None) -> DeliveryFailure:
  """Classify a per-recipient provider error."""
  if isinstance(exc, messaging.UnregisteredError):
    return DeliveryFailure.UNREGISTERED
  if isinstance(exc, firebase_exceptions.InvalidArgumentError):
    return DeliveryFailure.INVALID_ARGUMENT
  return DeliveryFailure.OTHER


def _to_outcome(token: str, send_response: messaging.SendResponse) -> RecipientOutcome:
  if send_response.success:
    return RecipientOutcome(token=token, success=True, message_id=send_response.message_id)

  exc = send_response.exception
  return RecipientOutcome(token=token, success=False, failure=classify_failure(exc), error=str(exc) if exc else None)
