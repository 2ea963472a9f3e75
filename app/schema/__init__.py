"""Schema package exports."""

from .trips import Trip, TripCollaborator

__all__ = ["Trip", "TripCollaborator"]
