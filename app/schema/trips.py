"""Read-only SQLAlchemy models for the trip tables owned by the AuraTravel backend."""

from __future__ import annotations

import datetime

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class Trip(Base):
  """A planned trip; `user_id` is the owner."""

  __tablename__ = "trips"

  id: Mapped[str] = mapped_column(String, primary_key=True)
  user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  destination: Mapped[str] = mapped_column(String, nullable=False)
  status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
  start_date: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  end_date: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class TripCollaborator(Base):
  """A user invited to a trip; only accepted invitations count as membership."""

  __tablename__ = "trip_collaborators"

  id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
  trip_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  user_id: Mapped[str] = mapped_column(String, nullable=False)
  role: Mapped[str] = mapped_column(String, nullable=False, default="viewer")
  accepted_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
