"""Firestore persistence for notifications scheduled for later delivery."""

from __future__ import annotations

import datetime
import logging
import uuid
from collections.abc import Callable
from typing import Any

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud.firestore import Client as FirestoreClient
from google.cloud.firestore import CollectionReference
from google.cloud.firestore_v1.base_query import FieldFilter
from starlette.concurrency import run_in_threadpool

from app.core.firebase import get_firestore_client
from app.notifications.contracts import NotificationKind, NotificationPriority, NotificationRequest, ScheduledNotification, ScheduledNotificationStore, StorageError
from app.utils.clock import as_utc

logger = logging.getLogger(__name__)

SCHEDULED_NOTIFICATIONS_COLLECTION = "scheduled_notifications"


def scheduled_document_id(request: NotificationRequest) -> str:
  """Build a unique id; the random suffix keeps same-second schedules for one user apart."""
  if request.schedule_time is None:
    raise ValueError("Only requests with a schedule_time can be persisted")
  return f"{request.user_id}_{int(as_utc(request.schedule_time).timestamp())}_{uuid.uuid4().hex[:12]}"


def request_to_document(request: NotificationRequest) -> dict[str, Any]:
  return {
    "user_id": request.user_id,
    "trip_id": request.trip_id,
    "type": request.kind.value,
    "priority": request.priority.value,
    "title": request.title,
    "body": request.body,
    "data": dict(request.data),
    "image_url": request.image_url,
    "action_url": request.action_url,
    "schedule_time": request.schedule_time,
    "language": request.language,
  }


def request_from_document(data: dict[str, Any]) -> NotificationRequest:
  return NotificationRequest(
    user_id=str(data["user_id"]),
    trip_id=data.get("trip_id") or None,
    kind=NotificationKind(data["type"]),
    priority=NotificationPriority(data["priority"]),
    title=str(data.get("title") or ""),
    body=str(data.get("body") or ""),
    data={str(key): str(value) for key, value in (data.get("data") or {}).items()},
    image_url=data.get("image_url") or None,
    action_url=data.get("action_url") or None,
    schedule_time=data.get("schedule_time"),
    language=str(data.get("language") or ""),
  )


class ScheduledNotificationRepository(ScheduledNotificationStore):
  """Persist scheduled requests in the `scheduled_notifications` collection."""

  def __init__(self, client_factory: Callable[[], FirestoreClient | None] = get_firestore_client) -> None:
    self._client_factory = client_factory

  def _collection(self) -> CollectionReference:
    client = self._client_factory()
    if client is None:
      raise StorageError("Firestore client is not available")
    return client.collection(SCHEDULED_NOTIFICATIONS_COLLECTION)

  async def save(self, request: NotificationRequest) -> str:
    """Store the request and return its document id."""
    document_id = scheduled_document_id(request)
    try:
      await run_in_threadpool(self._save_with_collection, self._collection(), document_id, request)
    except (GoogleAPIError, GoogleAuthError) as exc:
      raise StorageError(f"Failed to schedule notification: {exc}") from exc
    return document_id

  def _save_with_collection(self, collection: CollectionReference, document_id: str, request: NotificationRequest) -> None:
    collection.document(document_id).set(request_to_document(request))

  async def list_due(self, now: datetime.datetime) -> list[ScheduledNotification]:
    """Return stored requests whose schedule time is at or before `now`."""
    try:
      return await run_in_threadpool(self._list_due_with_collection, self._collection(), now)
    except (GoogleAPIError, GoogleAuthError) as exc:
      raise StorageError(f"Failed to query scheduled notifications: {exc}") from exc

  def _list_due_with_collection(self, collection: CollectionReference, now: datetime.datetime) -> list[ScheduledNotification]:
    due: list[ScheduledNotification] = []
    for snapshot in collection.where(filter=FieldFilter("schedule_time", "<=", now)).stream():
      try:
        due.append(ScheduledNotification(document_id=snapshot.id, request=request_from_document(snapshot.to_dict() or {})))
      except (KeyError, ValueError) as exc:
        logger.error("Failed to parse scheduled notification id=%s error=%s", snapshot.id, exc)
    return due

  async def delete(self, document_id: str) -> None:
    try:
      await run_in_threadpool(self._delete_with_collection, self._collection(), document_id)
    except (GoogleAPIError, GoogleAuthError) as exc:
      raise StorageError(f"Failed to delete scheduled notification {document_id}: {exc}") from exc

  def _delete_with_collection(self, collection: CollectionReference, document_id: str) -> None:
    collection.document(document_id).delete()
