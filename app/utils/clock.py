from __future__ import annotations

import datetime


def utc_now() -> datetime.datetime:
  return datetime.datetime.now(datetime.timezone.utc)


def as_utc(value: datetime.datetime) -> datetime.datetime:
  """Treat naive datetimes as UTC and convert aware ones to UTC."""
  if value.tzinfo is None:
    return value.replace(tzinfo=datetime.timezone.utc)
  return value.astimezone(datetime.timezone.utc)
