"""
Access policies for EventSquare's record types.

- Events: owned by their creator, public/hidden visibility, readable by
  anyone holding an invitation to them
- Invitations: owned by the sender, readable by the recipient
- RSVPs: owned by the responder, readable by whoever invited the responder

The RSVP owner is the invitee who answered, not the event owner. That
lets invitees edit their own answers while event owners only read them
through the invitation they sent.
"""

from __future__ import annotations

from .policy import AccessPolicy
from ..store.event_store import EventStore
from ..store.records import CalendarEvent, EventVisibility, Invitation, Rsvp


def event_policy(store: EventStore) -> AccessPolicy[CalendarEvent]:
    """Build the event policy.

    Args:
        store: Store queried for invitations; borrowed, never closed
    """

    def invited(event: CalendarEvent, user_id: str) -> bool:
        return store.invitation_exists(event_id=event.id, recipient_id=user_id)

    return AccessPolicy(
        name="event",
        has_ownership=True,
        has_explicit_access=True,
        has_visibility=True,
        owner_of=lambda event: event.owner,
        is_public=lambda event: event.visibility is EventVisibility.PUBLIC,
        is_hidden=lambda event: event.visibility is EventVisibility.HIDDEN,
        explicit_access=invited,
    )


def invitation_policy() -> AccessPolicy[Invitation]:
    """Build the invitation policy."""
    return AccessPolicy(
        name="invitation",
        has_ownership=True,
        has_explicit_access=True,
        owner_of=lambda invitation: invitation.sender_id,
        explicit_access=lambda invitation, user_id: invitation.recipient_id == user_id,
    )


def rsvp_policy(store: EventStore) -> AccessPolicy[Rsvp]:
    """Build the RSVP policy.

    Args:
        store: Store queried for invitations; borrowed, never closed
    """

    def sent_invitation(rsvp: Rsvp, user_id: str) -> bool:
        return store.invitation_exists(
            event_id=rsvp.event_id,
            recipient_id=rsvp.user_id,
            sender_id=user_id,
        )

    return AccessPolicy(
        name="rsvp",
        has_ownership=True,
        has_explicit_access=True,
        owner_of=lambda rsvp: rsvp.user_id,
        explicit_access=sent_invitation,
    )
