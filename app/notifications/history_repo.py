"""Firestore persistence for notification send history."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud.firestore import Client as FirestoreClient
from google.cloud.firestore import CollectionReference, Query
from google.cloud.firestore_v1.base_query import FieldFilter
from starlette.concurrency import run_in_threadpool

from app.core.firebase import get_firestore_client
from app.notifications.contracts import HistoryEntry, NotificationHistoryStore, NotificationKind, StorageError

logger = logging.getLogger(__name__)

NOTIFICATION_HISTORY_COLLECTION = "notification_history"


def history_to_document(entry: HistoryEntry) -> dict[str, Any]:
  return {
    "user_id": entry.user_id,
    "trip_id": entry.trip_id or "",
    "type": entry.kind.value,
    "title": entry.title,
    "body": entry.body,
    "sent_at": entry.sent_at,
    "success_count": entry.success_count,
    "failure_count": entry.failure_count,
  }


def history_from_document(data: dict[str, Any]) -> HistoryEntry:
  return HistoryEntry(
    user_id=str(data["user_id"]),
    trip_id=data.get("trip_id") or None,
    kind=NotificationKind(data["type"]),
    title=str(data.get("title") or ""),
    body=str(data.get("body") or ""),
    sent_at=data["sent_at"],
    success_count=int(data.get("success_count") or 0),
    failure_count=int(data.get("failure_count") or 0),
  )


class NotificationHistoryRepository(NotificationHistoryStore):
  """Append and page through the `notification_history` collection."""

  def __init__(self, client_factory: Callable[[], FirestoreClient | None] = get_firestore_client) -> None:
    self._client_factory = client_factory

  def _collection(self) -> CollectionReference:
    client = self._client_factory()
    if client is None:
      raise StorageError("Firestore client is not available")
    return client.collection(NOTIFICATION_HISTORY_COLLECTION)

  async def insert(self, entry: HistoryEntry) -> None:
    try:
      await run_in_threadpool(self._insert_with_collection, self._collection(), entry)
    except (GoogleAPIError, GoogleAuthError) as exc:
      raise StorageError(f"Failed to store notification history: {exc}") from exc

  def _insert_with_collection(self, collection: CollectionReference, entry: HistoryEntry) -> None:
    collection.add(history_to_document(entry))

  async def list_for_user(self, user_id: str, *, limit: int, offset: int) -> list[HistoryEntry]:
    """Return the user's history newest first."""
    try:
      return await run_in_threadpool(self._list_for_user_with_collection, self._collection(), user_id, limit, offset)
    except (GoogleAPIError, GoogleAuthError) as exc:
      raise StorageError(f"Failed to read notification history: {exc}") from exc

  def _list_for_user_with_collection(self, collection: CollectionReference, user_id: str, limit: int, offset: int) -> list[HistoryEntry]:
    query = collection.where(filter=FieldFilter("user_id", "==", user_id)).order_by("sent_at", direction=Query.DESCENDING).offset(offset).limit(limit)
    entries: list[HistoryEntry] = []
    for snapshot in query.stream():
      try:
        entries.append(history_from_document(snapshot.to_dict() or {}))
      except (KeyError, ValueError) as exc:
        logger.warning("Skipping malformed history document id=%s error=%s", snapshot.id, exc)
    return entries
