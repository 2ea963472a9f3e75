"""Titles, bodies and priority mappings for trip notification kinds."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field

from app.notifications.contracts import NotificationKind, NotificationPriority, NotificationRequest

EMERGENCY_SOUND = "emergency.wav"
ALERT_SOUND = "alert.wav"
DEFAULT_SOUND = "default"

_WEATHER_PRIORITIES = {"emergency": NotificationPriority.CRITICAL, "warning": NotificationPriority.HIGH, "watch": NotificationPriority.NORMAL}


@dataclass(frozen=True)
class WeatherAlert:
  alert_type: str
  severity: str
  start_time: datetime.datetime
  end_time: datetime.datetime
  description: str
  affected_areas: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DelayAlert:
  service_type: str
  service_id: str
  delay: datetime.timedelta
  status: str
  reason: str
  new_schedule: datetime.datetime | None = None


def urgency_for_priority(priority: NotificationPriority) -> str:
  """Map a priority onto the provider's delivery urgency."""
  if priority in {NotificationPriority.CRITICAL, NotificationPriority.HIGH}:
    return "high"
  return "normal"


def sound_for_priority(priority: NotificationPriority) -> str:
  if priority is NotificationPriority.CRITICAL:
    return EMERGENCY_SOUND
  if priority is NotificationPriority.HIGH:
    return ALERT_SOUND
  return DEFAULT_SOUND


def weather_priority(severity: str) -> NotificationPriority:
  return _WEATHER_PRIORITIES.get(severity.strip().lower(), NotificationPriority.LOW)


def delay_priority(alert: DelayAlert) -> NotificationPriority:
  if alert.status == "cancelled":
    return NotificationPriority.CRITICAL
  if alert.delay > datetime.timedelta(hours=1):
    return NotificationPriority.HIGH
  return NotificationPriority.NORMAL


def format_relative_time(delta: datetime.timedelta) -> str:
  """Render a duration as its largest whole unit, e.g. "2 hours" or "1 day".

  Durations round down: 119 minutes is "1 hour", 47 hours is "1 day". Negative
  durations render as "0 minutes".
  """
  total_minutes = max(int(delta.total_seconds() // 60), 0)
  hours = total_minutes // 60
  if hours >= 24:
    return _plural(hours // 24, "day")
  if hours >= 1:
    return _plural(hours, "hour")
  return _plural(total_minutes, "minute")


def _plural(count: int, unit: str) -> str:
  if count == 1:
    return f"1 {unit}"
  return f"{count} {unit}s"


def _title_case(value: str) -> str:
  return " ".join(word.capitalize() for word in value.replace("_", " ").split())


def _clock(value: datetime.datetime) -> str:
  hour = value.hour % 12 or 12
  suffix = "AM" if value.hour < 12 else "PM"
  return f"{hour}:{value.minute:02d} {suffix}"


def build_weather_alert(user_id: str, trip_id: str, alert: WeatherAlert) -> NotificationRequest:
  alert_name = _title_case(alert.alert_type)
  body = f"{alert_name} expected from {_clock(alert.start_time)} to {_clock(alert.end_time)}. {alert.description}".rstrip()
  data = {
    "trip_id": trip_id,
    "alert_type": alert.alert_type,
    "severity": alert.severity,
    "start_time": alert.start_time.isoformat(),
    "end_time": alert.end_time.isoformat(),
    "description": alert.description,
  }
  if alert.affected_areas:
    data["affected_areas"] = ",".join(alert.affected_areas)

  return NotificationRequest(
    user_id=user_id,
    trip_id=trip_id,
    kind=NotificationKind.WEATHER_ALERT,
    priority=weather_priority(alert.severity),
    title=f"Weather Alert: {alert_name}",
    body=body,
    data=data,
    action_url=f"/trips/{trip_id}?tab=weather",
  )


def build_delay_alert(user_id: str, trip_id: str, alert: DelayAlert) -> NotificationRequest:
  if alert.status == "cancelled":
    body = f"Your {alert.service_type} ({alert.service_id}) has been cancelled: {alert.reason}"
  else:
    body = f"Your {alert.service_type} ({alert.service_id}) is delayed by {format_relative_time(alert.delay)}: {alert.reason}"

  data = {
    "trip_id": trip_id,
    "service_type": alert.service_type,
    "service_id": alert.service_id,
    "status": alert.status,
    "delay_minutes": str(int(alert.delay.total_seconds() // 60)),
  }
  if alert.new_schedule is not None:
    data["new_schedule"] = alert.new_schedule.isoformat()

  return NotificationRequest(
    user_id=user_id,
    trip_id=trip_id,
    kind=NotificationKind.DELAY_ALERT,
    priority=delay_priority(alert),
    title=f"{_title_case(alert.service_type)} {_title_case(alert.status)}",
    body=body,
    data=data,
    action_url=f"/trips/{trip_id}?tab=transportation",
  )


def build_trip_update(user_id: str, trip_id: str, message: str) -> NotificationRequest:
  return NotificationRequest(
    user_id=user_id,
    trip_id=trip_id,
    kind=NotificationKind.ITINERARY_UPDATE,
    priority=NotificationPriority.HIGH,
    title="Trip Update",
    body=message,
    data={"trip_id": trip_id, "type": NotificationKind.ITINERARY_UPDATE.value},
    action_url=f"/trips/{trip_id}",
  )


def reminder_title(reminder_type: str) -> str:
  titles = {"departure": "Trip Departure Reminder", "checkin": "Check-in Reminder", "activity": "Upcoming Activity"}
  return titles.get(reminder_type, "Trip Reminder")


def reminder_body(reminder_type: str, time_until: datetime.timedelta) -> str:
  when = format_relative_time(time_until)
  if reminder_type == "departure":
    return f"Your trip starts in {when}. Have a great journey!"
  if reminder_type == "checkin":
    return f"Don't forget to check in for your flight/hotel in {when}"
  if reminder_type == "activity":
    return f"Your next activity starts in {when}"
  return f"Trip reminder: {when}"


def build_trip_reminder(user_id: str, trip_id: str, reminder_type: str, time_until: datetime.timedelta) -> NotificationRequest:
  return NotificationRequest(
    user_id=user_id,
    trip_id=trip_id,
    kind=NotificationKind.TRIP_REMINDER,
    priority=NotificationPriority.NORMAL,
    title=reminder_title(reminder_type),
    body=reminder_body(reminder_type, time_until),
    data={"trip_id": trip_id, "reminder_type": reminder_type, "time_until": format_relative_time(time_until)},
    action_url=f"/trips/{trip_id}",
  )


def build_booking_confirmation(user_id: str, trip_id: str, booking_type: str, confirmation_number: str) -> NotificationRequest:
  return NotificationRequest(
    user_id=user_id,
    trip_id=trip_id,
    kind=NotificationKind.BOOKING_CONFIRMATION,
    priority=NotificationPriority.HIGH,
    title=f"{_title_case(booking_type)} Booking Confirmed",
    body=f"Your {booking_type} booking has been confirmed. Confirmation #{confirmation_number}",
    data={"trip_id": trip_id, "booking_type": booking_type, "confirmation_number": confirmation_number},
    action_url=f"/trips/{trip_id}/bookings",
  )
