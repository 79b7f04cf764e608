"""
Record types stored by EventSquare.

These are the flat entities the access layer reasons over. The evaluator
never reads their fields directly; each entity's AccessPolicy supplies
the accessors.

Invariants:
    - Identifiers are opaque strings (UUID4 when generated by the store)
    - Event start/end are timezone-aware datetimes
    - Enum values are stored and serialized by their string value
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class EventVisibility(Enum):
    """Who may see an event by default."""

    # Only the owner (and admins) can see it; no invitations can be sent.
    HIDDEN = "hidden"
    # Only users invited through the platform can see it.
    INVITE_ONLY = "invite_only"
    # Anyone can see it, including anonymous callers.
    PUBLIC = "public"


class AttendanceStatus(Enum):
    """An invitee's answer to an event."""

    MAYBE = "maybe"
    GOING = "going"
    ATTENDING_VIRTUALLY = "attending_virtually"
    NOT_GOING = "not_going"


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass
class Location:
    """An address or named place.

    Every part is optional; a location may be just a name, just
    coordinates, or a full street address.
    """

    name: str | None = None
    flat_number: int | None = None
    street_number: int | None = None
    street_name: str | None = None
    locality: str | None = None
    state_region: str | None = None
    country: str | None = None
    postcode: int | None = None
    coordinates: Coordinates | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage."""
        data: dict[str, Any] = {
            "name": self.name,
            "flat_number": self.flat_number,
            "street_number": self.street_number,
            "street_name": self.street_name,
            "locality": self.locality,
            "state_region": self.state_region,
            "country": self.country,
            "postcode": self.postcode,
            "coordinates": None,
        }
        if self.coordinates is not None:
            data["coordinates"] = {
                "latitude": self.coordinates.latitude,
                "longitude": self.coordinates.longitude,
            }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Location:
        """Create from dictionary."""
        coords = data.get("coordinates")
        return cls(
            name=data.get("name"),
            flat_number=data.get("flat_number"),
            street_number=data.get("street_number"),
            street_name=data.get("street_name"),
            locality=data.get("locality"),
            state_region=data.get("state_region"),
            country=data.get("country"),
            postcode=data.get("postcode"),
            coordinates=Coordinates(coords["latitude"], coords["longitude"]) if coords else None,
        )


@dataclass
class CalendarEvent:
    """A calendar event.

    Attributes:
        id: Unique event identifier
        name: Event title
        description: Free-text description
        start: Start of the event
        end: End of the event
        owner: User id of the creator
        visibility: Default visibility of the event
        location: Where the event takes place, if known
    """

    id: str
    name: str
    description: str
    start: datetime
    end: datetime
    owner: str
    visibility: EventVisibility = EventVisibility.INVITE_ONLY
    location: Location | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "owner": self.owner,
            "visibility": self.visibility.value,
            "location": self.location.to_dict() if self.location else None,
        }


@dataclass
class Invitation:
    """An invitation from one user to another for an event."""

    id: str
    recipient_id: str
    sender_id: str
    event_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "sender_id": self.sender_id,
            "event_id": self.event_id,
        }


@dataclass
class Rsvp:
    """A user's response to an event."""

    id: str
    event_id: str
    user_id: str
    status: AttendanceStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "user_id": self.user_id,
            "status": self.status.value,
        }


@dataclass
class User:
    """A known user and the role names granted to it.

    Role names are stored exactly as granted; comparisons are up to
    the caller.
    """

    id: str
    display_name: str
    roles: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "roles": list(self.roles),
        }
