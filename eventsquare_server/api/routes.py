"""
API routes for EventSquare.

Events, invitations and RSVPs share one shape:
- GET /{kind}            readable records only
- GET /{kind}/{id}       404 if absent, 403 if not readable
- POST /{kind}           identified callers only; the caller owns the record
- PUT /{kind}/{id}       404 if absent, 403 if not writable
- DELETE /{kind}/{id}    404 if absent, 403 if not writable

Handlers are plain functions; FastAPI runs them in its threadpool, so the
blocking SQLite store and the synchronous access checks never stall the
event loop.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response, status

from ..access.evaluator import AccessEvaluator, get_access_evaluator
from ..access.policy import AccessPolicy, Caller
from ..errors import (
    AuthenticationRequiredError,
    ConflictError,
    InvalidRecordError,
    RecordNotFoundError,
)
from ..store.event_store import EventStore
from ..store.records import CalendarEvent, EventVisibility, Invitation, Rsvp
from .schemas import (
    CallerResponse,
    EventCreateRequest,
    EventResponse,
    EventUpdateRequest,
    InvitationCreateRequest,
    InvitationResponse,
    InvitationUpdateRequest,
    RsvpCreateRequest,
    RsvpResponse,
    RsvpUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["EventSquare"])


# --- Dependencies ---


def get_store(request: Request) -> EventStore:
    """Get the store from app state."""
    return request.app.state.store


def get_caller(request: Request) -> Caller:
    """Resolve the caller from request headers."""
    return request.app.state.identity.resolve(request.headers)


def get_evaluator() -> AccessEvaluator:
    return get_access_evaluator()


def event_policy_of(request: Request) -> AccessPolicy[CalendarEvent]:
    return request.app.state.policies["event"]


def invitation_policy_of(request: Request) -> AccessPolicy[Invitation]:
    return request.app.state.policies["invitation"]


def rsvp_policy_of(request: Request) -> AccessPolicy[Rsvp]:
    return request.app.state.policies["rsvp"]


def require_identity(caller: Caller) -> str:
    if caller.identity is None:
        raise AuthenticationRequiredError()
    return caller.identity


def check_path_id(path_id: str, body_id: str | None) -> None:
    if body_id is not None and body_id != path_id:
        raise InvalidRecordError(
            "Record id should be consistent between body and URI", field_name="id"
        )


def check_time_range(body: EventCreateRequest) -> None:
    if body.end < body.start:
        raise InvalidRecordError("Event cannot end before it starts", field_name="end")


def readable_event(
    event_id: str,
    caller: Caller,
    store: EventStore,
    evaluator: AccessEvaluator,
    policy: AccessPolicy[CalendarEvent],
) -> CalendarEvent:
    """Load an event the caller is about to reference, checking read access."""
    event = store.get_event(event_id)
    if event is None:
        raise RecordNotFoundError("event", event_id)
    evaluator.check_read_or_raise(event, caller, policy)
    return event


# --- Caller ---


@router.get("/me", response_model=CallerResponse)
def whoami(caller: Caller = Depends(get_caller)):
    """Return the caller as the service sees it."""
    return CallerResponse.from_caller(caller)


# --- Events ---


@router.get("/events", response_model=list[EventResponse])
def list_events(
    caller: Caller = Depends(get_caller),
    store: EventStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
    policy: AccessPolicy[CalendarEvent] = Depends(event_policy_of),
):
    """List the events visible to the caller.

    Anonymous callers see public events. Identified users also see their
    own events and those they are invited to (unless hidden). Admins see
    everything.
    """
    readable = evaluator.filter_readable(store.iter_events(), caller, policy)
    return [EventResponse.from_record(event) for event in readable]


@router.get("/events/{event_id}", response_model=EventResponse)
def get_event(
    event_id: str,
    caller: Caller = Depends(get_caller),
    store: EventStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
    policy: AccessPolicy[CalendarEvent] = Depends(event_policy_of),
):
    event = readable_event(event_id, caller, store, evaluator, policy)
    return EventResponse.from_record(event)


@router.post("/events", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
def create_event(
    body: EventCreateRequest,
    caller: Caller = Depends(get_caller),
    store: EventStore = Depends(get_store),
):
    owner = require_identity(caller)
    check_time_range(body)

    event = store.create_event(
        name=body.name,
        description=body.description,
        start=body.start,
        end=body.end,
        owner=owner,
        visibility=body.visibility,
        location=body.location.to_record() if body.location else None,
    )
    logger.info("Event created", extra={"event_id": event.id, "owner": owner})
    return EventResponse.from_record(event)


@router.put("/events/{event_id}", response_model=EventResponse)
def update_event(
    event_id: str,
    body: EventUpdateRequest,
    caller: Caller = Depends(get_caller),
    store: EventStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
    policy: AccessPolicy[CalendarEvent] = Depends(event_policy_of),
):
    check_path_id(event_id, body.id)

    event = store.get_event(event_id)
    if event is None:
        raise RecordNotFoundError("event", event_id)
    evaluator.check_write_or_raise(event, caller, policy)
    check_time_range(body)

    event.name = body.name
    event.description = body.description
    event.start = body.start
    event.end = body.end
    event.visibility = body.visibility
    event.location = body.location.to_record() if body.location else None

    updated = store.update_event(event)
    if updated is None:
        raise RecordNotFoundError("event", event_id)
    return EventResponse.from_record(updated)


@router.delete("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    event_id: str,
    caller: Caller = Depends(get_caller),
    store: EventStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
    policy: AccessPolicy[CalendarEvent] = Depends(event_policy_of),
):
    event = store.get_event(event_id)
    if event is None:
        raise RecordNotFoundError("event", event_id)
    evaluator.check_write_or_raise(event, caller, policy)

    store.delete_event(event_id)
    logger.info("Event deleted", extra={"event_id": event_id, "actor": caller.identity})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Invitations ---


@router.get("/invitations", response_model=list[InvitationResponse])
def list_invitations(
    caller: Caller = Depends(get_caller),
    store: EventStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
    policy: AccessPolicy[Invitation] = Depends(invitation_policy_of),
):
    """List invitations the caller sent or received."""
    readable = evaluator.filter_readable(store.list_invitations(), caller, policy)
    return [InvitationResponse.from_record(invitation) for invitation in readable]


@router.get("/invitations/{invitation_id}", response_model=InvitationResponse)
def get_invitation(
    invitation_id: str,
    caller: Caller = Depends(get_caller),
    store: EventStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
    policy: AccessPolicy[Invitation] = Depends(invitation_policy_of),
):
    invitation = store.get_invitation(invitation_id)
    if invitation is None:
        raise RecordNotFoundError("invitation", invitation_id)
    evaluator.check_read_or_raise(invitation, caller, policy)
    return InvitationResponse.from_record(invitation)


@router.post(
    "/invitations", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED
)
def create_invitation(
    body: InvitationCreateRequest,
    caller: Caller = Depends(get_caller),
    store: EventStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
    policy: AccessPolicy[CalendarEvent] = Depends(event_policy_of),
):
    """Invite a user to an event the caller can see.

    Hidden events cannot receive invitations.
    """
    sender = require_identity(caller)
    event = readable_event(body.event_id, caller, store, evaluator, policy)
    if event.visibility is EventVisibility.HIDDEN:
        raise ConflictError("Hidden events cannot receive invitations", resource_type="invitation")

    invitation = store.create_invitation(
        recipient_id=body.recipient_id,
        sender_id=sender,
        event_id=event.id,
    )
    logger.info(
        "Invitation sent",
        extra={"invitation_id": invitation.id, "event_id": event.id, "sender": sender},
    )
    return InvitationResponse.from_record(invitation)


@router.put("/invitations/{invitation_id}", response_model=InvitationResponse)
def update_invitation(
    invitation_id: str,
    body: InvitationUpdateRequest,
    caller: Caller = Depends(get_caller),
    store: EventStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
    policy: AccessPolicy[Invitation] = Depends(invitation_policy_of),
):
    check_path_id(invitation_id, body.id)

    invitation = store.get_invitation(invitation_id)
    if invitation is None:
        raise RecordNotFoundError("invitation", invitation_id)
    evaluator.check_write_or_raise(invitation, caller, policy)

    invitation.recipient_id = body.recipient_id
    updated = store.update_invitation(invitation)
    if updated is None:
        raise RecordNotFoundError("invitation", invitation_id)
    return InvitationResponse.from_record(updated)


@router.delete("/invitations/{invitation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invitation(
    invitation_id: str,
    caller: Caller = Depends(get_caller),
    store: EventStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
    policy: AccessPolicy[Invitation] = Depends(invitation_policy_of),
):
    invitation = store.get_invitation(invitation_id)
    if invitation is None:
        raise RecordNotFoundError("invitation", invitation_id)
    evaluator.check_write_or_raise(invitation, caller, policy)

    store.delete_invitation(invitation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- RSVPs ---


@router.get("/rsvps", response_model=list[RsvpResponse])
def list_rsvps(
    caller: Caller = Depends(get_caller),
    store: EventStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
    policy: AccessPolicy[Rsvp] = Depends(rsvp_policy_of),
):
    """List the caller's own RSVPs and answers to invitations the caller sent."""
    readable = evaluator.filter_readable(store.list_rsvps(), caller, policy)
    return [RsvpResponse.from_record(rsvp) for rsvp in readable]


@router.get("/rsvps/{rsvp_id}", response_model=RsvpResponse)
def get_rsvp(
    rsvp_id: str,
    caller: Caller = Depends(get_caller),
    store: EventStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
    policy: AccessPolicy[Rsvp] = Depends(rsvp_policy_of),
):
    rsvp = store.get_rsvp(rsvp_id)
    if rsvp is None:
        raise RecordNotFoundError("rsvp", rsvp_id)
    evaluator.check_read_or_raise(rsvp, caller, policy)
    return RsvpResponse.from_record(rsvp)


@router.post("/rsvps", response_model=RsvpResponse, status_code=status.HTTP_201_CREATED)
def create_rsvp(
    body: RsvpCreateRequest,
    caller: Caller = Depends(get_caller),
    store: EventStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
    policy: AccessPolicy[CalendarEvent] = Depends(event_policy_of),
):
    """Answer an event the caller can see. One answer per user and event."""
    responder = require_identity(caller)
    event = readable_event(body.event_id, caller, store, evaluator, policy)

    rsvp = store.create_rsvp(event_id=event.id, user_id=responder, status=body.status)
    logger.info(
        "RSVP recorded",
        extra={"rsvp_id": rsvp.id, "event_id": event.id, "status": rsvp.status.value},
    )
    return RsvpResponse.from_record(rsvp)


@router.put("/rsvps/{rsvp_id}", response_model=RsvpResponse)
def update_rsvp(
    rsvp_id: str,
    body: RsvpUpdateRequest,
    caller: Caller = Depends(get_caller),
    store: EventStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
    policy: AccessPolicy[Rsvp] = Depends(rsvp_policy_of),
):
    check_path_id(rsvp_id, body.id)

    rsvp = store.get_rsvp(rsvp_id)
    if rsvp is None:
        raise RecordNotFoundError("rsvp", rsvp_id)
    evaluator.check_write_or_raise(rsvp, caller, policy)

    rsvp.status = body.status
    updated = store.update_rsvp(rsvp)
    if updated is None:
        raise RecordNotFoundError("rsvp", rsvp_id)
    return RsvpResponse.from_record(updated)


@router.delete("/rsvps/{rsvp_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rsvp(
    rsvp_id: str,
    caller: Caller = Depends(get_caller),
    store: EventStore = Depends(get_store),
    evaluator: AccessEvaluator = Depends(get_evaluator),
    policy: AccessPolicy[Rsvp] = Depends(rsvp_policy_of),
):
    rsvp = store.get_rsvp(rsvp_id)
    if rsvp is None:
        raise RecordNotFoundError("rsvp", rsvp_id)
    evaluator.check_write_or_raise(rsvp, caller, policy)

    store.delete_rsvp(rsvp_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
