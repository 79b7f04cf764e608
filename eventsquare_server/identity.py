"""
Caller identity resolution for EventSquare.

Authentication happens upstream (an authenticating proxy or gateway);
requests reach the service with the user id in a trusted header. This
module turns that header into a Caller carrying the user's roles.

Invariants:
    - A missing header means an anonymous caller
    - An unknown user id means an anonymous caller, never an error
    - Roles are passed through exactly as stored
    - The resolver borrows the store and never closes it
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from .access.policy import Caller
from .store.event_store import EventStore

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Resolves request headers to a Caller.

    Example:
        >>> resolver = IdentityResolver(store, header_name="X-User-ID")
        >>> resolver.resolve({"X-User-ID": "alice"})
        Caller(identity='alice', roles=frozenset({'admin'}))
    """

    def __init__(self, store: EventStore, header_name: str = "X-User-ID") -> None:
        self.store = store
        self.header_name = header_name

    def resolve(self, headers: Mapping[str, str]) -> Caller:
        """Resolve the caller of a request.

        Args:
            headers: Request headers (case-insensitive mappings are
                looked up as given)

        Returns:
            The resolved caller, or an anonymous one
        """
        user_id = headers.get(self.header_name)
        if not user_id:
            return Caller.anonymous()

        return self.resolve_user(user_id.strip())

    def resolve_user(self, user_id: str) -> Caller:
        """Resolve a user id to a Caller with its roles."""
        user = self.store.get_user(user_id)
        if user is None:
            logger.warning("Unknown caller identity treated as anonymous", extra={"user_id": user_id})
            return Caller.anonymous()

        return Caller.of(user.id, user.roles)
