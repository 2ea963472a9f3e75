"""Contracts for trip notification delivery."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol


class NotificationKind(str, Enum):
  WEATHER_ALERT = "weather_alert"
  ITINERARY_UPDATE = "itinerary_update"
  TRIP_REMINDER = "trip_reminder"
  DELAY_ALERT = "delay_alert"
  BOOKING_CONFIRMATION = "booking_confirmation"
  GENERAL_UPDATE = "general_update"
  EMERGENCY_ALERT = "emergency_alert"


class NotificationPriority(str, Enum):
  LOW = "low"
  NORMAL = "normal"
  HIGH = "high"
  CRITICAL = "critical"


class Platform(str, Enum):
  IOS = "ios"
  ANDROID = "android"
  WEB = "web"


class DeliveryFailure(str, Enum):
  """Classification of a single recipient failure reported by the push provider."""

  UNREGISTERED = "unregistered"
  INVALID_ARGUMENT = "invalid_argument"
  OTHER = "other"

  @property
  def invalidates_token(self) -> bool:
    return self in {DeliveryFailure.UNREGISTERED, DeliveryFailure.INVALID_ARGUMENT}


@dataclass(frozen=True)
class DeviceToken:
  """A push token registered for one of a user's app installations."""

  user_id: str
  token: str
  platform: Platform
  language: str = "en"
  timezone: str = "UTC"
  active: bool = True
  last_used: datetime.datetime | None = None
  created_at: datetime.datetime | None = None


@dataclass(frozen=True)
class NotificationRequest:
  """A notification addressed to every active device of one user."""

  user_id: str
  kind: NotificationKind
  priority: NotificationPriority
  title: str
  body: str
  trip_id: str | None = None
  data: dict[str, str] = field(default_factory=dict)
  image_url: str | None = None
  action_url: str | None = None
  schedule_time: datetime.datetime | None = None
  language: str = ""


@dataclass(frozen=True)
class NotificationTemplate:
  """Localized title/body pair for a notification kind."""

  kind: NotificationKind
  language: str
  title_template: str
  body_template: str


@dataclass(frozen=True)
class PushMessage:
  """Provider-neutral multicast payload."""

  tokens: list[str]
  title: str
  body: str
  data: dict[str, str]
  urgency: str
  sound: str
  image_url: str | None = None
  click_action: str | None = None
  badge: int | None = None


@dataclass(frozen=True)
class RecipientOutcome:
  """Delivery result for one token, in submission order."""

  token: str
  success: bool
  failure: DeliveryFailure | None = None
  message_id: str | None = None
  error: str | None = None


@dataclass(frozen=True)
class BatchOutcome:
  """Result of one batched provider call."""

  outcomes: list[RecipientOutcome]

  @property
  def success_count(self) -> int:
    return sum(1 for outcome in self.outcomes if outcome.success)

  @property
  def failure_count(self) -> int:
    return sum(1 for outcome in self.outcomes if not outcome.success)


@dataclass(frozen=True)
class SendResult:
  """Aggregate outcome of sending one request."""

  success_count: int = 0
  failure_count: int = 0
  outcomes: list[RecipientOutcome] = field(default_factory=list)

  @classmethod
  def from_batches(cls, batches: list[BatchOutcome]) -> SendResult:
    outcomes = [outcome for batch in batches for outcome in batch.outcomes]
    return cls(success_count=sum(batch.success_count for batch in batches), failure_count=sum(batch.failure_count for batch in batches), outcomes=outcomes)


@dataclass(frozen=True)
class HistoryEntry:
  """Persisted summary of one send."""

  user_id: str
  trip_id: str | None
  kind: NotificationKind
  title: str
  body: str
  sent_at: datetime.datetime
  success_count: int
  failure_count: int


@dataclass(frozen=True)
class ScheduledNotification:
  """A stored request waiting for its schedule time."""

  document_id: str
  request: NotificationRequest


@dataclass(frozen=True)
class BroadcastResult:
  """Per-member results of a trip-wide notification."""

  trip_id: str
  delivered: dict[str, SendResult] = field(default_factory=dict)
  failed_user_ids: list[str] = field(default_factory=list)


class NotificationError(Exception):
  """Base class for all notification failures."""


class ConfigurationError(NotificationError):
  """Raised when push notifications are disabled or missing credentials."""


class StorageError(NotificationError):
  """Raised when the document store cannot be reached."""


class DispatchError(NotificationError):
  """Raised when the push provider call fails outright."""


class PushSender(Protocol):
  """Delivery contract for batched push sends."""

  def send(self, message: PushMessage) -> BatchOutcome:
    """Send a multicast message synchronously and report per-recipient outcomes."""


class DeviceTokenStore(Protocol):
  async def register(self, user_id: str, token: str, platform: Platform, *, language: str = "en", timezone: str = "UTC") -> DeviceToken: ...

  async def list_active(self, user_id: str) -> list[DeviceToken]: ...

  async def deactivate(self, token: str) -> int: ...


class ScheduledNotificationStore(Protocol):
  async def save(self, request: NotificationRequest) -> str: ...

  async def list_due(self, now: datetime.datetime) -> list[ScheduledNotification]: ...

  async def delete(self, document_id: str) -> None: ...


class NotificationHistoryStore(Protocol):
  async def insert(self, entry: HistoryEntry) -> None: ...

  async def list_for_user(self, user_id: str, *, limit: int, offset: int) -> list[HistoryEntry]: ...


class TripMembershipResolver(Protocol):
  async def user_ids_for_trip(self, trip_id: str) -> list[str]: ...
