"""Unit tests for API exception sanitization behavior."""

from __future__ import annotations

from app.core.exceptions import _sanitize_http_detail, _sanitize_validation_errors, notification_error_status
from app.notifications.contracts import ConfigurationError, DispatchError, NotificationError, StorageError


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Validation errors stay JSON-serializable and never echo the notification body."""
  errors = [{"type": "value_error", "loc": ("body", "deviceToken"), "msg": "Value error, deviceToken must not be blank.", "input": {"deviceToken": "   "}, "ctx": {"error": ValueError("deviceToken must not be blank."), "input": "   "}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["ctx"]["error"] == "ValueError: deviceToken must not be blank."
  assert "input" not in sanitized[0]["ctx"]
  assert sanitized[0]["loc"] == ["body", "deviceToken"]


def test_sanitize_http_detail_drops_message_content() -> None:
  detail = {"reason": "rejected", "title": "secret title", "nested": [{"body": "secret body", "code": 7}]}
  assert _sanitize_http_detail(detail) == {"reason": "rejected", "nested": [{"code": 7}]}


def test_notification_errors_map_to_status_codes() -> None:
  assert notification_error_status(ConfigurationError("off")) == 503
  assert notification_error_status(StorageError("down")) == 503
  assert notification_error_status(DispatchError("fcm")) == 502
  assert notification_error_status(NotificationError("other")) == 500
