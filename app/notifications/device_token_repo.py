"""Firestore persistence for push device tokens."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable
from typing import Any

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud.firestore import Client as FirestoreClient
from google.cloud.firestore import CollectionReference
from google.cloud.firestore_v1.base_query import FieldFilter
from starlette.concurrency import run_in_threadpool

from app.core.firebase import get_firestore_client
from app.notifications.contracts import DeviceToken, DeviceTokenStore, Platform, StorageError

logger = logging.getLogger(__name__)

DEVICE_TOKENS_COLLECTION = "user_device_tokens"


def device_document_id(user_id: str, platform: Platform) -> str:
  """One document per (user, platform); re-registering a platform replaces its token."""
  return f"{user_id}_{platform.value}"


def token_from_document(data: dict[str, Any]) -> DeviceToken:
  return DeviceToken(
    user_id=str(data["user_id"]),
    token=str(data["device_token"]),
    platform=Platform(data["device_type"]),
    language=str(data.get("language") or "en"),
    timezone=str(data.get("timezone") or "UTC"),
    active=bool(data.get("active", False)),
    last_used=data.get("last_used"),
    created_at=data.get("created_at"),
  )


class DeviceTokenRepository(DeviceTokenStore):
  """Persist device tokens in the `user_device_tokens` collection."""

  def __init__(self, client_factory: Callable[[], FirestoreClient | None] = get_firestore_client) -> None:
    self._client_factory = client_factory

  def _collection(self) -> CollectionReference:
    client = self._client_factory()
    if client is None:
      raise StorageError("Firestore client is not available")
    return client.collection(DEVICE_TOKENS_COLLECTION)

  async def register(self, user_id: str, token: str, platform: Platform, *, language: str = "en", timezone: str = "UTC") -> DeviceToken:
    """Upsert the token for (user, platform) and mark it active."""
    try:
      return await run_in_threadpool(self._register_with_collection, self._collection(), user_id, token, platform, language, timezone)
    except (GoogleAPIError, GoogleAuthError) as exc:
      raise StorageError(f"Failed to store device token: {exc}") from exc

  def _register_with_collection(self, collection: CollectionReference, user_id: str, token: str, platform: Platform, language: str, timezone: str) -> DeviceToken:
    now = datetime.datetime.now(datetime.timezone.utc)
    ref = collection.document(device_document_id(user_id, platform))
    snapshot = ref.get()
    payload: dict[str, Any] = {"user_id": user_id, "device_token": token, "device_type": platform.value, "language": language, "timezone": timezone, "active": True, "last_used": now}
    created_at = now
    if snapshot.exists:
      created_at = (snapshot.to_dict() or {}).get("created_at") or now
    else:
      payload["created_at"] = now

    ref.set(payload, merge=True)
    return DeviceToken(user_id=user_id, token=token, platform=platform, language=language, timezone=timezone, active=True, last_used=now, created_at=created_at)

  async def list_active(self, user_id: str) -> list[DeviceToken]:
    """Return every active token registered for the user."""
    try:
      return await run_in_threadpool(self._list_active_with_collection, self._collection(), user_id)
    except (GoogleAPIError, GoogleAuthError) as exc:
      raise StorageError(f"Failed to list device tokens: {exc}") from exc

  def _list_active_with_collection(self, collection: CollectionReference, user_id: str) -> list[DeviceToken]:
    query = collection.where(filter=FieldFilter("user_id", "==", user_id)).where(filter=FieldFilter("active", "==", True))
    tokens: list[DeviceToken] = []
    for snapshot in query.stream():
      try:
        tokens.append(token_from_document(snapshot.to_dict() or {}))
      except (KeyError, ValueError) as exc:
        logger.warning("Skipping malformed device token document id=%s error=%s", snapshot.id, exc)
    return tokens

  async def deactivate(self, token: str) -> int:
    """Mark every document holding this token inactive; return how many were updated."""
    try:
      return await run_in_threadpool(self._deactivate_with_collection, self._collection(), token)
    except (GoogleAPIError, GoogleAuthError) as exc:
      raise StorageError(f"Failed to deactivate device token: {exc}") from exc

  def _deactivate_with_collection(self, collection: CollectionReference, token: str) -> int:
    updated = 0
    for snapshot in collection.where(filter=FieldFilter("device_token", "==", token)).stream():
      snapshot.reference.update({"active": False})
      updated += 1
    return updated
