from __future__ import annotations

import datetime
from dataclasses import replace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_notification_scheduler, get_notification_service
from app.config import get_settings
from app.core.security import get_current_uid
from app.main import app
from app.notifications.contracts import DeliveryFailure, DispatchError, HistoryEntry, NotificationKind, Platform
from app.notifications.scheduler import NotificationScheduler
from app.notifications.service import NotificationService


TASK_SECRET = "test-task-secret"


@pytest.fixture
def user_client(notification_service, scheduled_store):
  """Client signed in as traveller u1, without the internal task secret."""
  scheduler = NotificationScheduler(service=notification_service, store=scheduled_store)
  app.dependency_overrides[get_settings] = lambda: replace(get_settings(), task_secret=TASK_SECRET)
  app.dependency_overrides[get_current_uid] = lambda: "u1"
  app.dependency_overrides[get_notification_service] = lambda: notification_service
  app.dependency_overrides[get_notification_scheduler] = lambda: scheduler
  try:
    yield TestClient(app)
  finally:
    app.dependency_overrides.clear()


@pytest.fixture
def client(user_client):
  user_client.headers["x-aura-task-secret"] = TASK_SECRET
  return user_client


def _notification_payload(**overrides) -> dict:
  payload = {"userId": "u1", "tripId": "T1", "type": "general_update", "priority": "high", "title": "Gate change", "body": "Now boarding at gate 22"}
  payload.update(overrides)
  return payload


def test_register_device_for_self(client, device_tokens):
  response = client.post("/v1/notifications/register-device", json={"userId": "u1", "deviceToken": "tok-1", "platform": "ios", "locale": "hi", "timezone": "Asia/Kolkata"})

  assert response.status_code == 200
  assert response.json() == {"status": "registered", "platform": "ios", "language": "hi"}
  assert [device.token for device in device_tokens.tokens.values()] == ["tok-1"]


def test_register_device_for_another_user_is_forbidden(client):
  response = client.post("/v1/notifications/register-device", json={"userId": "u2", "deviceToken": "tok-1", "platform": "android"})

  assert response.status_code == 403


def test_register_device_rejects_unsupported_locale(client):
  response = client.post("/v1/notifications/register-device", json={"userId": "u1", "deviceToken": "tok-1", "platform": "android", "locale": "fr"})

  assert response.status_code == 400


def test_register_device_rejects_unknown_platform(client):
  response = client.post("/v1/notifications/register-device", json={"userId": "u1", "deviceToken": "tok-1", "platform": "blackberry"})

  assert response.status_code == 422


def test_register_device_when_push_is_disabled(client, disabled_service):
  app.dependency_overrides[get_notification_service] = lambda: disabled_service

  response = client.post("/v1/notifications/register-device", json={"userId": "u1", "deviceToken": "tok-1", "platform": "web"})

  assert response.status_code == 503
  assert response.json()["detail"] == "Push notifications are not available."


def test_send_reports_per_recipient_results(client, device_tokens, push_sender):
  device_tokens.add("u1", "tok-1")

  response = client.post("/v1/notifications/send", json=_notification_payload())

  assert response.status_code == 200
  body = response.json()
  assert body["successCount"] == 1
  assert body["failureCount"] == 0
  assert body["results"][0]["success"] is True
  assert "token" not in body["results"][0]
  assert push_sender.messages[0].urgency == "high"


def test_send_rejects_unknown_fields(client):
  response = client.post("/v1/notifications/send", json=_notification_payload(recipients=["everyone"]))

  assert response.status_code == 422
  assert "requestId" in response.json()


def test_provider_outage_maps_to_bad_gateway(client, device_tokens, history, trip_members):
  device_tokens.add("u1", "tok-1")
  sender = MagicMock()
  sender.send.side_effect = DispatchError("fcm down")
  service = NotificationService(push_sender=sender, device_tokens=device_tokens, history=history, trip_members=trip_members, enabled=True)
  app.dependency_overrides[get_notification_service] = lambda: service

  response = client.post("/v1/notifications/send", json=_notification_payload())

  assert response.status_code == 502
  body = response.json()
  assert body["detail"] == "Push provider request failed."
  assert "fcm down" not in response.text
  assert body["requestId"] == response.headers["x-request-id"]


def test_weather_alert_route(client, device_tokens, push_sender):
  device_tokens.add("u1", "tok-1")
  payload = {"tripId": "T1", "alertType": "cyclone", "severity": "emergency", "startTime": "2026-07-01T09:00:00", "endTime": "2026-07-01T21:00:00", "description": "Move to higher ground", "affectedAreas": ["Puri"]}

  response = client.post("/v1/notifications/weather-alert/u1", json=payload)

  assert response.status_code == 200
  assert push_sender.messages[0].title == "Weather Alert: Cyclone"
  assert push_sender.messages[0].sound == "emergency.wav"


def test_delay_alert_route(client, device_tokens, push_sender):
  device_tokens.add("u1", "tok-1")
  payload = {"tripId": "T1", "serviceType": "flight", "serviceId": "6E201", "delayMinutes": 150, "status": "delayed", "reason": "Air traffic"}

  response = client.post("/v1/notifications/delay-alert/u1", json=payload)

  assert response.status_code == 200
  assert "2 hours" in push_sender.messages[0].body


def test_trip_update_route_broadcasts_to_members(client, device_tokens, trip_members):
  trip_members.members["T1"] = ["u1", "u2"]
  device_tokens.add("u1", "tok-1")
  device_tokens.add("u2", "tok-2")

  response = client.post("/v1/notifications/trip-update/T1", json={"message": "Hotel changed to Taj"})

  assert response.status_code == 200
  body = response.json()
  assert body["tripId"] == "T1"
  assert set(body["delivered"]) == {"u1", "u2"}
  assert body["failedUserIds"] == []


def test_trip_reminder_and_booking_routes(client, device_tokens, push_sender):
  device_tokens.add("u1", "tok-1")

  reminder = client.post("/v1/notifications/trip-reminder/u1", json={"tripId": "T1", "reminderType": "checkin", "minutesUntil": 90})
  booking = client.post("/v1/notifications/booking-confirmation/u1", json={"tripId": "T1", "bookingType": "hotel", "confirmationNumber": "XYZ123"})

  assert reminder.status_code == 200
  assert booking.status_code == 200
  assert push_sender.messages[0].body == "Don't forget to check in for your flight/hotel in 1 hour"
  assert push_sender.messages[1].title == "Hotel Booking Confirmed"


def test_schedule_route_persists_future_notifications(client, scheduled_store, push_sender):
  response = client.post("/v1/notifications/schedule", json=_notification_payload(scheduleTime="2026-12-24T18:30:00+05:30"))

  assert response.status_code == 200
  body = response.json()
  assert body["scheduled"] is True
  stored = scheduled_store.documents[body["documentId"]]
  assert stored.schedule_time == datetime.datetime(2026, 12, 24, 13, 0, tzinfo=datetime.timezone.utc)
  assert push_sender.messages == []


def test_schedule_route_without_time_sends_now(client, device_tokens):
  device_tokens.add("u1", "tok-1")

  response = client.post("/v1/notifications/schedule", json=_notification_payload())

  assert response.status_code == 200
  body = response.json()
  assert body["scheduled"] is False
  assert body["result"]["successCount"] == 1


def test_history_route_returns_camel_case_entries(client, history):
  history.entries.append(HistoryEntry(user_id="u1", trip_id="T1", kind=NotificationKind.DELAY_ALERT, title="Flight Delayed", body="Delayed by 2 hours", sent_at=datetime.datetime(2026, 3, 1, tzinfo=datetime.timezone.utc), success_count=2, failure_count=0))

  response = client.get("/v1/notifications/user/u1", params={"limit": 10})

  assert response.status_code == 200
  entries = response.json()
  assert entries[0]["type"] == "delay_alert"
  assert entries[0]["successCount"] == 2
  assert entries[0]["tripId"] == "T1"


def test_history_of_another_user_is_forbidden(client):
  response = client.get("/v1/notifications/user/u2")

  assert response.status_code == 403


def test_user_routes_require_bearer_token(notification_service):
  app.dependency_overrides[get_notification_service] = lambda: notification_service
  try:
    response = TestClient(app).post("/v1/notifications/register-device", json={"userId": "u1", "deviceToken": "tok-1", "platform": "ios"})
  finally:
    app.dependency_overrides.clear()

  assert response.status_code in {401, 403}


def test_health():
  response = TestClient(app).get("/health")

  assert response.status_code == 200
  assert response.json()["status"] == "ok"
  assert "x-request-id" in response.headers


def test_signed_in_traveller_cannot_push_to_another_user(user_client, device_tokens, push_sender):
  device_tokens.add("u2", "tok-u2")

  response = user_client.post("/v1/notifications/send", json=_notification_payload(userId="u2", priority="critical", actionUrl="https://evil.example/login"))

  assert response.status_code == 403
  assert push_sender.messages == []


@pytest.mark.parametrize(
  ("path", "payload"),
  [
    ("/v1/notifications/trip-update/T1", {"message": "Meet at the lobby"}),
    ("/v1/notifications/booking-confirmation/u2", {"tripId": "T1", "bookingType": "hotel", "confirmationNumber": "XYZ123"}),
    ("/v1/notifications/schedule", {"userId": "u2", "type": "general_update", "title": "Hi", "body": "Hello", "scheduleTime": "2026-12-24T18:30:00Z"}),
  ],
)
def test_dispatch_routes_reject_callers_without_task_secret(user_client, trip_members, device_tokens, scheduled_store, push_sender, path, payload):
  trip_members.members["T1"] = ["u1", "u2"]
  device_tokens.add("u2", "tok-u2")

  response = user_client.post(path, json=payload)

  assert response.status_code == 403
  assert push_sender.messages == []
  assert scheduled_store.documents == {}


def test_dispatch_routes_reject_wrong_task_secret(user_client, push_sender):
  response = user_client.post("/v1/notifications/send", json=_notification_payload(), headers={"x-aura-task-secret": "guess"})

  assert response.status_code == 403
  assert push_sender.messages == []


@pytest.mark.parametrize("key", ["from", "message_type", "collapse_key", "google.c.a.e", "gcm.notification.title"])
def test_send_rejects_reserved_data_keys(client, device_tokens, push_sender, key):
  device_tokens.add("u1", "tok-1")

  response = client.post("/v1/notifications/send", json=_notification_payload(data={key: "x"}))

  assert response.status_code == 422
  assert push_sender.messages == []


def test_send_rejects_payload_over_provider_limit(client, device_tokens, push_sender):
  device_tokens.add("u1", "tok-1", Platform.ANDROID)
  device_tokens.add("u1", "tok-2", Platform.IOS)

  response = client.post("/v1/notifications/send", json=_notification_payload(body="b" * 4000, data={"blob": "x" * 8000}))

  assert response.status_code == 422
  assert push_sender.messages == []
  assert device_tokens.deactivated == []


def test_schedule_rejects_payload_over_provider_limit(client, scheduled_store):
  response = client.post("/v1/notifications/schedule", json=_notification_payload(body="b" * 4090, scheduleTime="2026-12-24T18:30:00Z"))

  assert response.status_code == 422
  assert scheduled_store.documents == {}


def test_message_rejected_for_every_device_keeps_tokens_active(client, device_tokens, push_sender):
  device_tokens.add("u1", "tok-1", Platform.ANDROID)
  device_tokens.add("u1", "tok-2", Platform.IOS)
  push_sender.failures = {"tok-1": DeliveryFailure.INVALID_ARGUMENT, "tok-2": DeliveryFailure.INVALID_ARGUMENT}

  response = client.post("/v1/notifications/send", json=_notification_payload())

  assert response.status_code == 200
  assert response.json()["failureCount"] == 2
  assert device_tokens.deactivated == []
  assert len(device_tokens.tokens) == 2
  assert all(device.active for device in device_tokens.tokens.values())


def test_send_rejects_schedule_time(client, device_tokens, push_sender):
  device_tokens.add("u1", "tok-1")

  response = client.post("/v1/notifications/send", json=_notification_payload(scheduleTime="2026-12-24T18:30:00Z"))

  assert response.status_code == 422
  assert push_sender.messages == []
