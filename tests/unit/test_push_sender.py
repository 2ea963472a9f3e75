from __future__ import annotations

from types import SimpleNamespace

import pytest
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from app.notifications.contracts import DeliveryFailure, DispatchError, PushMessage
from app.notifications.push_sender import FCM_MULTICAST_LIMIT, FCM_PAYLOAD_LIMIT_BYTES, FcmPushSender, NullPushSender, build_multicast_message, classify_failure, payload_violation


def _message(tokens: list[str] | None = None, urgency: str = "high") -> PushMessage:
  return PushMessage(
    tokens=tokens if tokens is not None else ["tok-a", "tok-b", "tok-c"],
    title="Hotel Booking Confirmed",
    body="Your hotel booking has been confirmed. Confirmation #XYZ123",
    data={"type": "booking_confirmation", "priority": "high", "trip_id": "T1"},
    urgency=urgency,
    sound="alert.wav",
    click_action="/trips/T1/bookings",
    badge=1,
  )


def _batch_response(responses):
  success_count = sum(1 for response in responses if response.success)
  return SimpleNamespace(responses=responses, success_count=success_count, failure_count=len(responses) - success_count)


def test_fcm_sender_maps_responses_to_tokens_in_order(monkeypatch):
  captured = {}
  responses = [
    SimpleNamespace(success=True, message_id="m-1", exception=None),
    SimpleNamespace(success=False, message_id=None, exception=messaging.UnregisteredError("gone")),
    SimpleNamespace(success=False, message_id=None, exception=firebase_exceptions.InvalidArgumentError("bad token")),
  ]

  def _send(multicast, dry_run=False, app=None):
    captured["multicast"] = multicast
    captured["dry_run"] = dry_run
    return _batch_response(responses)

  monkeypatch.setattr("app.notifications.push_sender.messaging.send_each_for_multicast", _send)

  batch = FcmPushSender(dry_run=True).send(_message())

  assert [outcome.token for outcome in batch.outcomes] == ["tok-a", "tok-b", "tok-c"]
  assert batch.outcomes[0].success and batch.outcomes[0].message_id == "m-1"
  assert batch.outcomes[1].failure is DeliveryFailure.UNREGISTERED
  assert batch.outcomes[2].failure is DeliveryFailure.INVALID_ARGUMENT
  assert batch.success_count == 1
  assert batch.failure_count == 2
  assert captured["dry_run"] is True
  assert captured["multicast"].tokens == ["tok-a", "tok-b", "tok-c"]


def test_fcm_sender_wraps_provider_errors(monkeypatch):
  def _fail(multicast, dry_run=False, app=None):
    raise firebase_exceptions.UnavailableError("service unavailable")

  monkeypatch.setattr("app.notifications.push_sender.messaging.send_each_for_multicast", _fail)

  with pytest.raises(DispatchError):
    FcmPushSender().send(_message())


def test_fcm_sender_rejects_oversized_batches(monkeypatch):
  def _unexpected(multicast, dry_run=False, app=None):
    raise AssertionError("provider must not be called")

  monkeypatch.setattr("app.notifications.push_sender.messaging.send_each_for_multicast", _unexpected)

  with pytest.raises(ValueError):
    FcmPushSender().send(_message(tokens=[f"tok-{index}" for index in range(FCM_MULTICAST_LIMIT + 1)]))


def test_classify_failure_defaults_to_other():
  assert classify_failure(firebase_exceptions.UnavailableError("down")) is DeliveryFailure.OTHER
  assert classify_failure(None) is DeliveryFailure.OTHER
  assert DeliveryFailure.UNREGISTERED.invalidates_token
  assert DeliveryFailure.INVALID_ARGUMENT.invalidates_token
  assert not DeliveryFailure.OTHER.invalidates_token


def test_build_multicast_message_sets_platform_hints():
  multicast = build_multicast_message(_message())

  assert multicast.notification.title == "Hotel Booking Confirmed"
  assert multicast.data["trip_id"] == "T1"
  assert multicast.android.priority == "high"
  assert multicast.android.notification.sound == "alert.wav"
  assert multicast.android.notification.click_action == "/trips/T1/bookings"
  assert multicast.apns.payload.aps.badge == 1
  assert multicast.apns.payload.aps.sound == "alert.wav"
  assert multicast.webpush.headers == {"Urgency": "high"}


def test_normal_urgency_uses_default_android_notification_priority():
  multicast = build_multicast_message(_message(urgency="normal"))

  assert multicast.android.priority == "normal"
  assert multicast.android.notification.priority == "default"


def test_null_sender_reports_no_outcomes():
  batch = NullPushSender().send(_message())

  assert batch.outcomes == []
  assert batch.success_count == 0


def test_payload_violation_accepts_regular_payload():
  message = _message()

  assert payload_violation(message.title, message.body, message.data) is None


@pytest.mark.parametrize("key", ["from", "Message_Type", "collapse_key", "google.sent_time", "gcm.n.e"])
def test_payload_violation_flags_reserved_keys(key):
  assert "reserved" in payload_violation("Title", "Body", {key: "1"})


def test_payload_violation_counts_encoded_bytes():
  # Devanagari characters take three bytes each in UTF-8.
  body = "न" * (FCM_PAYLOAD_LIMIT_BYTES // 3)

  assert payload_violation("", body[: FCM_PAYLOAD_LIMIT_BYTES // 4], {}) is None
  assert "bytes" in payload_violation("Title", body, {"trip_id": "T1"})
