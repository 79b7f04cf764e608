"""
Request and response models for the EventSquare HTTP API.
"""

from __future__ import annotations

from pydantic import AwareDatetime, BaseModel, Field

from ..access.policy import Caller
from ..store.records import (
    AttendanceStatus,
    CalendarEvent,
    Coordinates,
    EventVisibility,
    Invitation,
    Location,
    Rsvp,
)

# --- Shared ---


class CoordinatesModel(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class LocationModel(BaseModel):
    """Event location; every part is optional."""

    name: str | None = None
    flat_number: int | None = None
    street_number: int | None = None
    street_name: str | None = None
    locality: str | None = None
    state_region: str | None = None
    country: str | None = None
    postcode: int | None = None
    coordinates: CoordinatesModel | None = None

    def to_record(self) -> Location:
        coords = self.coordinates
        return Location(
            name=self.name,
            flat_number=self.flat_number,
            street_number=self.street_number,
            street_name=self.street_name,
            locality=self.locality,
            state_region=self.state_region,
            country=self.country,
            postcode=self.postcode,
            coordinates=Coordinates(coords.latitude, coords.longitude) if coords else None,
        )


# --- Events ---


class EventCreateRequest(BaseModel):
    """Request to create an event. The caller becomes its owner."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", description="Free-text description")
    start: AwareDatetime
    end: AwareDatetime
    visibility: EventVisibility = EventVisibility.INVITE_ONLY
    location: LocationModel | None = None


class EventUpdateRequest(EventCreateRequest):
    """Full replacement of an event's fields. The owner never changes."""

    id: str | None = Field(None, description="Must match the path id when given")


class EventResponse(BaseModel):
    id: str
    name: str
    description: str
    start: AwareDatetime
    end: AwareDatetime
    owner: str
    visibility: EventVisibility
    location: LocationModel | None = None

    @classmethod
    def from_record(cls, event: CalendarEvent) -> EventResponse:
        return cls.model_validate(event.to_dict())


# --- Invitations ---


class InvitationCreateRequest(BaseModel):
    """Request to invite a user to an event. The caller is the sender."""

    recipient_id: str = Field(..., min_length=1)
    event_id: str = Field(..., min_length=1)


class InvitationUpdateRequest(BaseModel):
    id: str | None = Field(None, description="Must match the path id when given")
    recipient_id: str = Field(..., min_length=1)


class InvitationResponse(BaseModel):
    id: str
    recipient_id: str
    sender_id: str
    event_id: str

    @classmethod
    def from_record(cls, invitation: Invitation) -> InvitationResponse:
        return cls(**invitation.to_dict())


# --- RSVPs ---


class RsvpCreateRequest(BaseModel):
    """Request to answer an event. The caller is the responder."""

    event_id: str = Field(..., min_length=1)
    status: AttendanceStatus


class RsvpUpdateRequest(BaseModel):
    id: str | None = Field(None, description="Must match the path id when given")
    status: AttendanceStatus


class RsvpResponse(BaseModel):
    id: str
    event_id: str
    user_id: str
    status: AttendanceStatus

    @classmethod
    def from_record(cls, rsvp: Rsvp) -> RsvpResponse:
        return cls.model_validate(rsvp.to_dict())


# --- Caller ---


class CallerResponse(BaseModel):
    identity: str | None
    roles: list[str]
    authenticated: bool

    @classmethod
    def from_caller(cls, caller: Caller) -> CallerResponse:
        return cls(
            identity=caller.identity,
            roles=sorted(caller.roles),
            authenticated=caller.is_authenticated,
        )
