"""Resolve which users belong to a trip."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session_factory
from app.notifications.contracts import StorageError, TripMembershipResolver
from app.schema.trips import Trip, TripCollaborator

logger = logging.getLogger(__name__)


class SqlTripMembershipResolver(TripMembershipResolver):
  """Read trip owners and accepted collaborators from Postgres."""

  async def user_ids_for_trip(self, trip_id: str) -> list[str]:
    """Return the owner first, then accepted collaborators, without duplicates."""
    session_factory = get_session_factory()
    if session_factory is None:
      raise StorageError("Trip database is not configured")

    try:
      async with session_factory() as session:
        return await self._user_ids_with_session(session=session, trip_id=trip_id)
    except (SQLAlchemyError, OSError) as exc:
      raise StorageError(f"Failed to resolve members for trip {trip_id}: {exc}") from exc

  async def _user_ids_with_session(self, *, session: AsyncSession, trip_id: str) -> list[str]:
    owner_result = await session.execute(select(Trip.user_id).where(Trip.id == trip_id))
    owner_ids = list(owner_result.scalars().all())

    collaborator_stmt = select(TripCollaborator.user_id).where(TripCollaborator.trip_id == trip_id, TripCollaborator.accepted_at.is_not(None)).order_by(TripCollaborator.id)
    collaborator_result = await session.execute(collaborator_stmt)

    return list(dict.fromkeys([*owner_ids, *collaborator_result.scalars().all()]))


class NullTripMembershipResolver(TripMembershipResolver):
  """Resolver used when no trip database is configured; every trip has no members."""

  async def user_ids_for_trip(self, trip_id: str) -> list[str]:
    logger.warning("Trip database not configured; no members resolved for trip %s", trip_id)
    return []
