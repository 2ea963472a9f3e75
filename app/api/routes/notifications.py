"""Routes for device registration, notification sends and history."""

from __future__ import annotations

import datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.api.deps import get_notification_scheduler, get_notification_service
from app.core.security import ensure_same_user, get_current_uid, require_task_secret
from app.notifications.content import DelayAlert, WeatherAlert
from app.notifications.contracts import BroadcastResult, HistoryEntry, NotificationKind, NotificationPriority, NotificationRequest, Platform, SendResult
from app.notifications.push_sender import payload_violation
from app.notifications.scheduler import NotificationScheduler
from app.notifications.service import NotificationService, build_push_message
from app.utils.clock import as_utc

router = APIRouter()

# Sends come from other backend handlers and jobs, never straight from a traveller's app.
InternalCaller = [Depends(require_task_secret)]

ServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
SchedulerDep = Annotated[NotificationScheduler, Depends(get_notification_scheduler)]
CurrentUid = Annotated[str, Depends(get_current_uid)]


class RegisterDeviceRequest(BaseModel):
  user_id: str = Field(alias="userId", min_length=1, max_length=128)
  device_token: str = Field(alias="deviceToken", min_length=1, max_length=4096)
  platform: Platform
  locale: str = Field(default="en", max_length=16)
  timezone: str = Field(default="UTC", max_length=64)
  model_config = ConfigDict(extra="forbid", populate_by_name=True)

  @field_validator("device_token")
  @classmethod
  def strip_token(cls, value: str) -> str:
    normalized = value.strip()
    if not normalized:
      raise ValueError("deviceToken must not be blank.")
    return normalized


class RegisterDeviceResponse(BaseModel):
  status: str
  platform: Platform
  language: str


class NotificationRequestBody(BaseModel):
  """Wire shape of a notification request; camelCase or snake_case keys are accepted."""

  user_id: str = Field(alias="userId", min_length=1, max_length=128)
  trip_id: str | None = Field(default=None, alias="tripId", max_length=128)
  kind: NotificationKind = Field(alias="type")
  priority: NotificationPriority = NotificationPriority.NORMAL
  title: str = Field(min_length=1, max_length=256)
  body: str = Field(min_length=1, max_length=4096)
  data: dict[str, str] = Field(default_factory=dict)
  image_url: str | None = Field(default=None, alias="imageUrl", max_length=2048)
  action_url: str | None = Field(default=None, alias="actionUrl", max_length=2048)
  schedule_time: datetime.datetime | None = Field(default=None, alias="scheduleTime")
  language: str = Field(default="", max_length=16)
  model_config = ConfigDict(extra="forbid", populate_by_name=True)

  @model_validator(mode="after")
  def check_provider_limits(self) -> NotificationRequestBody:
    message = build_push_message(self.to_request(), [])
    violation = payload_violation(message.title, message.body, message.data)
    if violation:
      raise ValueError(violation)
    return self

  def to_request(self) -> NotificationRequest:
    return NotificationRequest(
      user_id=self.user_id,
      trip_id=self.trip_id,
      kind=self.kind,
      priority=self.priority,
      title=self.title,
      body=self.body,
      data=dict(self.data),
      image_url=self.image_url,
      action_url=self.action_url,
      schedule_time=as_utc(self.schedule_time) if self.schedule_time else None,
      language=self.language,
    )


class SendNotificationBody(NotificationRequestBody):
  """Immediate send; deferred delivery goes through `/schedule`."""

  @field_validator("schedule_time")
  @classmethod
  def reject_schedule_time(cls, value: datetime.datetime | None) -> datetime.datetime | None:
    if value is not None:
      raise ValueError("scheduleTime is only accepted by /schedule.")
    return value


class RecipientResult(BaseModel):
  success: bool
  failure: str | None = None
  message_id: str | None = Field(default=None, alias="messageId")
  error: str | None = None
  model_config = ConfigDict(populate_by_name=True)


class SendResultResponse(BaseModel):
  success_count: int = Field(alias="successCount")
  failure_count: int = Field(alias="failureCount")
  results: list[RecipientResult] = Field(default_factory=list)
  model_config = ConfigDict(populate_by_name=True)

  @classmethod
  def from_result(cls, result: SendResult) -> SendResultResponse:
    # Tokens stay server-side; callers only see outcomes in submission order.
    results = [RecipientResult(success=outcome.success, failure=outcome.failure.value if outcome.failure else None, message_id=outcome.message_id, error=outcome.error) for outcome in result.outcomes]
    return cls(success_count=result.success_count, failure_count=result.failure_count, results=results)


class BroadcastResponse(BaseModel):
  trip_id: str = Field(alias="tripId")
  delivered: dict[str, SendResultResponse]
  failed_user_ids: list[str] = Field(alias="failedUserIds")
  model_config = ConfigDict(populate_by_name=True)

  @classmethod
  def from_result(cls, result: BroadcastResult) -> BroadcastResponse:
    delivered = {user_id: SendResultResponse.from_result(send_result) for user_id, send_result in result.delivered.items()}
    return cls(trip_id=result.trip_id, delivered=delivered, failed_user_ids=list(result.failed_user_ids))


class ScheduleResponse(BaseModel):
  scheduled: bool
  document_id: str | None = Field(default=None, alias="documentId")
  result: SendResultResponse | None = None
  model_config = ConfigDict(populate_by_name=True)


class HistoryEntryResponse(BaseModel):
  user_id: str = Field(alias="userId")
  trip_id: str | None = Field(default=None, alias="tripId")
  kind: NotificationKind = Field(alias="type")
  title: str
  body: str
  sent_at: datetime.datetime = Field(alias="sentAt")
  success_count: int = Field(alias="successCount")
  failure_count: int = Field(alias="failureCount")
  model_config = ConfigDict(populate_by_name=True)

  @classmethod
  def from_entry(cls, entry: HistoryEntry) -> HistoryEntryResponse:
    return cls(
      user_id=entry.user_id,
      trip_id=entry.trip_id,
      kind=entry.kind,
      title=entry.title,
      body=entry.body,
      sent_at=entry.sent_at,
      success_count=entry.success_count,
      failure_count=entry.failure_count,
    )


class WeatherAlertBody(BaseModel):
  trip_id: str = Field(alias="tripId", min_length=1)
  alert_type: str = Field(alias="alertType", min_length=1, max_length=64)
  severity: Literal["watch", "warning", "emergency"]
  start_time: datetime.datetime = Field(alias="startTime")
  end_time: datetime.datetime = Field(alias="endTime")
  description: str = Field(min_length=1, max_length=1024)
  affected_areas: list[str] = Field(default_factory=list, alias="affectedAreas")
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


class DelayAlertBody(BaseModel):
  trip_id: str = Field(alias="tripId", min_length=1)
  service_type: str = Field(alias="serviceType", min_length=1, max_length=64)
  service_id: str = Field(alias="serviceId", min_length=1, max_length=64)
  delay_minutes: int = Field(alias="delayMinutes", ge=0)
  status: Literal["delayed", "cancelled", "rescheduled"]
  reason: str = Field(default="", max_length=512)
  new_schedule: datetime.datetime | None = Field(default=None, alias="newSchedule")
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


class TripUpdateBody(BaseModel):
  message: str = Field(min_length=1, max_length=2048)
  model_config = ConfigDict(extra="forbid")


class TripReminderBody(BaseModel):
  trip_id: str = Field(alias="tripId", min_length=1)
  reminder_type: str = Field(alias="reminderType", min_length=1, max_length=64)
  minutes_until: int = Field(alias="minutesUntil")
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


class BookingConfirmationBody(BaseModel):
  trip_id: str = Field(alias="tripId", min_length=1)
  booking_type: str = Field(alias="bookingType", min_length=1, max_length=64)
  confirmation_number: str = Field(alias="confirmationNumber", min_length=1, max_length=128)
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


@router.post("/register-device", response_model=RegisterDeviceResponse)
async def register_device(payload: RegisterDeviceRequest, service: ServiceDep, current_uid: CurrentUid) -> RegisterDeviceResponse:
  """Register (or refresh) the caller's device token for one platform."""
  ensure_same_user(current_uid, payload.user_id)
  try:
    device = await service.register_device(payload.user_id, payload.device_token, payload.platform, language=payload.locale, timezone=payload.timezone)
  except ValueError as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
  return RegisterDeviceResponse(status="registered", platform=device.platform, language=device.language)


@router.post("/send", response_model=SendResultResponse, dependencies=InternalCaller)
async def send_notification(payload: SendNotificationBody, service: ServiceDep) -> SendResultResponse:
  result = await service.send(payload.to_request())
  return SendResultResponse.from_result(result)


@router.post("/weather-alert/{user_id}", response_model=SendResultResponse, dependencies=InternalCaller)
async def send_weather_alert(user_id: str, payload: WeatherAlertBody, service: ServiceDep) -> SendResultResponse:
  alert = WeatherAlert(
    alert_type=payload.alert_type,
    severity=payload.severity,
    start_time=payload.start_time,
    end_time=payload.end_time,
    description=payload.description,
    affected_areas=list(payload.affected_areas),
  )
  result = await service.send_weather_alert(user_id, payload.trip_id, alert)
  return SendResultResponse.from_result(result)


@router.post("/delay-alert/{user_id}", response_model=SendResultResponse, dependencies=InternalCaller)
async def send_delay_alert(user_id: str, payload: DelayAlertBody, service: ServiceDep) -> SendResultResponse:
  alert = DelayAlert(
    service_type=payload.service_type,
    service_id=payload.service_id,
    delay=datetime.timedelta(minutes=payload.delay_minutes),
    status=payload.status,
    reason=payload.reason,
    new_schedule=payload.new_schedule,
  )
  result = await service.send_delay_alert(user_id, payload.trip_id, alert)
  return SendResultResponse.from_result(result)


@router.post("/trip-update/{trip_id}", response_model=BroadcastResponse, dependencies=InternalCaller)
async def send_trip_update(trip_id: str, payload: TripUpdateBody, service: ServiceDep) -> BroadcastResponse:
  """Broadcast an itinerary update to the trip owner and accepted collaborators."""
  result = await service.send_trip_update(trip_id, payload.message)
  return BroadcastResponse.from_result(result)


@router.post("/trip-reminder/{user_id}", response_model=SendResultResponse, dependencies=InternalCaller)
async def send_trip_reminder(user_id: str, payload: TripReminderBody, service: ServiceDep) -> SendResultResponse:
  result = await service.send_trip_reminder(user_id, payload.trip_id, payload.reminder_type, datetime.timedelta(minutes=payload.minutes_until))
  return SendResultResponse.from_result(result)


@router.post("/booking-confirmation/{user_id}", response_model=SendResultResponse, dependencies=InternalCaller)
async def send_booking_confirmation(user_id: str, payload: BookingConfirmationBody, service: ServiceDep) -> SendResultResponse:
  result = await service.send_booking_confirmation(user_id, payload.trip_id, payload.booking_type, payload.confirmation_number)
  return SendResultResponse.from_result(result)


@router.post("/schedule", response_model=ScheduleResponse, dependencies=InternalCaller)
async def schedule_notification(payload: NotificationRequestBody, scheduler: SchedulerDep) -> ScheduleResponse:
  """Store a notification for later delivery, or send it now when no scheduleTime is given."""
  outcome = await scheduler.schedule(payload.to_request())
  result = SendResultResponse.from_result(outcome.send_result) if outcome.send_result is not None else None
  return ScheduleResponse(scheduled=outcome.scheduled, document_id=outcome.document_id, result=result)


@router.get("/user/{user_id}", response_model=list[HistoryEntryResponse])
async def list_user_notifications(
  user_id: str,
  service: ServiceDep,
  current_uid: CurrentUid,
  limit: int = Query(50, ge=1, le=500),  # noqa: B008
  offset: int = Query(0, ge=0),  # noqa: B008
) -> list[HistoryEntryResponse]:
  """Return the caller's notification history, newest first."""
  ensure_same_user(current_uid, user_id)
  entries = await service.list_history(user_id, limit=limit, offset=offset)
  return [HistoryEntryResponse.from_entry(entry) for entry in entries]
