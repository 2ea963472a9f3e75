"""Shared fixtures for notification tests."""

from __future__ import annotations

import pytest

from app.notifications.service import NotificationService
from tests.fakes import FakeDeviceTokenStore, FakeHistoryStore, FakeScheduledStore, FakeTripMembers, RecordingPushSender


@pytest.fixture
def device_tokens() -> FakeDeviceTokenStore:
  return FakeDeviceTokenStore()


@pytest.fixture
def history() -> FakeHistoryStore:
  return FakeHistoryStore()


@pytest.fixture
def scheduled_store() -> FakeScheduledStore:
  return FakeScheduledStore()


@pytest.fixture
def trip_members() -> FakeTripMembers:
  return FakeTripMembers()


@pytest.fixture
def push_sender() -> RecordingPushSender:
  return RecordingPushSender()


@pytest.fixture
def notification_service(push_sender, device_tokens, history, trip_members) -> NotificationService:
  return NotificationService(push_sender=push_sender, device_tokens=device_tokens, history=history, trip_members=trip_members, enabled=True, default_language="en", history_page_limit=100)


@pytest.fixture
def disabled_service(push_sender, device_tokens, history, trip_members) -> NotificationService:
  return NotificationService(push_sender=push_sender, device_tokens=device_tokens, history=history, trip_members=trip_members, enabled=False)
