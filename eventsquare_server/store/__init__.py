"""
Store module for EventSquare - record types and SQLite persistence.

This module handles:
- Record types for users, events, invitations and RSVPs
- The SQLite-backed EventStore used by the API, the access policies
  and the admin tools

Invariants:
    - The store never makes access decisions
    - Listing order is insertion order
"""

from .event_store import EventStore
from .records import (
    AttendanceStatus,
    CalendarEvent,
    Coordinates,
    EventVisibility,
    Invitation,
    Location,
    Rsvp,
    User,
)

__all__ = [
    "EventStore",
    "AttendanceStatus",
    "CalendarEvent",
    "Coordinates",
    "EventVisibility",
    "Invitation",
    "Location",
    "Rsvp",
    "User",
]
