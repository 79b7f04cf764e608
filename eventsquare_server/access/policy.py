"""
Access policies and callers.

An AccessPolicy describes, for one record type, which access mechanisms
the type supports and how to read them off a record:

- Ownership: the record has an owner who may always read and write it
- Visibility: the record is public (readable by anyone) or hidden
  (readable only by its owner and admins)
- Explicit access: individual users are granted read access by some
  other record (an invitation, for example)

Invariants:
    - A policy is immutable once constructed
    - A capability flag set without its accessor fails construction
    - Accessors are pure; the evaluator may call them any number of times
    - An accessor whose flag is off is never called
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from ..errors import PolicyConfigurationError

T = TypeVar("T")


@dataclass(frozen=True)
class Caller:
    """The resolved requester.

    Attributes:
        identity: User id, or None for an anonymous caller
        roles: Role names granted to the user, exactly as stored
    """

    identity: str | None = None
    roles: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def anonymous(cls) -> Caller:
        return cls()

    @classmethod
    def of(cls, identity: str, roles: Iterable[str] = ()) -> Caller:
        return cls(identity=identity, roles=frozenset(roles))

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None


@dataclass(frozen=True)
class AccessPolicy(Generic[T]):
    """Per-record-type access capabilities and accessors.

    Attributes:
        name: Record type name, used in logs and denial errors
        has_ownership: Records have an owner
        has_explicit_access: Individual users can be granted read access
        has_visibility: Records carry a public/hidden classification
        owner_of: Returns the owner's user id (needs has_ownership)
        is_public: Whether a record is readable by anyone (needs has_visibility)
        is_hidden: Whether a record is hidden from non-owners (needs has_visibility)
        explicit_access: Whether a user id has been granted read access
            to a record (needs has_explicit_access)
        record_id: Returns a record's id for logs and errors

    Raises:
        PolicyConfigurationError: If a flag is set without its accessor

    Example:
        >>> policy = AccessPolicy(
        ...     name="invitation",
        ...     has_ownership=True,
        ...     has_explicit_access=True,
        ...     owner_of=lambda inv: inv.sender_id,
        ...     explicit_access=lambda inv, user_id: inv.recipient_id == user_id,
        ... )
    """

    name: str
    has_ownership: bool = False
    has_explicit_access: bool = False
    has_visibility: bool = False
    owner_of: Callable[[T], str] | None = None
    is_public: Callable[[T], bool] | None = None
    is_hidden: Callable[[T], bool] | None = None
    explicit_access: Callable[[T, str], bool] | None = None
    record_id: Callable[[T], str | None] = lambda record: getattr(record, "id", None)

    def __post_init__(self) -> None:
        missing = []
        if self.has_ownership and self.owner_of is None:
            missing.append("owner_of")
        if self.has_visibility and self.is_public is None:
            missing.append("is_public")
        if self.has_visibility and self.is_hidden is None:
            missing.append("is_hidden")
        if self.has_explicit_access and self.explicit_access is None:
            missing.append("explicit_access")

        if missing:
            raise PolicyConfigurationError(self.name, missing)
