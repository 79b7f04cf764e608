"""
Access evaluation for EventSquare records.

This module decides whether a caller may read or write a record, for any
record type described by an AccessPolicy:
- Read checks (visibility, admin role, ownership, hidden, explicit access)
- Write checks (ownership or admin role)
- Lazy filtering of record collections for list endpoints

Invariants:
    - Public records are readable by everyone, even if also hidden
    - Anonymous callers can read public records and nothing else
    - Admins can read everything; owners can read their own hidden records
    - Explicit access never overrides hidden
    - Accessor exceptions propagate; the evaluator never swallows or retries

How to change safely:
    - The order of read rules is the precedence; keep it
    - Admin role matching is case-sensitive for reads and case-insensitive
      for writes; stored role strings depend on that
    - Test every rule with and without each capability flag
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import TypeVar

from ..errors import AccessDeniedError
from .policy import AccessPolicy, Caller

logger = logging.getLogger(__name__)

T = TypeVar("T")

ADMIN_ROLE = "admin"


class AccessEvaluator:
    """Evaluates read/write permission on records.

    Thread safety:
        This class is stateless and thread-safe. Concurrent use is safe as
        long as the policy accessors are.

    Example:
        >>> evaluator = AccessEvaluator()
        >>> evaluator.can_read(event, Caller.anonymous(), policy)
        True
    """

    def can_read(self, record: T, caller: Caller, policy: AccessPolicy[T]) -> bool:
        """Check if a caller may read a record.

        Args:
            record: Record being accessed
            caller: Resolved requester
            policy: Access policy of the record's type

        Returns:
            True if access is granted
        """
        allowed, rule = self._read_decision(record, caller, policy)
        logger.debug(
            "Read decision",
            extra={
                "policy": policy.name,
                "record_id": policy.record_id(record),
                "actor": caller.identity,
                "allowed": allowed,
                "rule": rule,
            },
        )
        return allowed

    def _read_decision(
        self, record: T, caller: Caller, policy: AccessPolicy[T]
    ) -> tuple[bool, str]:
        is_hidden = False
        if policy.has_visibility:
            is_hidden = policy.is_hidden(record)
            is_public = policy.is_public(record)
            if is_public:
                return True, "public"

        if caller.identity is None:
            return False, "anonymous"

        if ADMIN_ROLE in caller.roles:
            return True, "admin"

        if policy.has_ownership and policy.owner_of(record) == caller.identity:
            return True, "owner"

        if is_hidden:
            return False, "hidden"

        if policy.has_explicit_access and policy.explicit_access(record, caller.identity):
            return True, "explicit"

        return False, "default"

    def can_write(self, record: T, caller: Caller, policy: AccessPolicy[T]) -> bool:
        """Check if a caller may modify or delete a record.

        Only the owner and admins may write. Visibility plays no part.

        Args:
            record: Record being modified
            caller: Resolved requester
            policy: Access policy of the record's type

        Returns:
            True if access is granted
        """
        if caller.identity is None:
            return False

        if policy.has_ownership and policy.owner_of(record) == caller.identity:
            return True

        return any(role.casefold() == ADMIN_ROLE for role in caller.roles)

    def filter_readable(
        self,
        records: Iterable[T],
        caller: Caller,
        policy: AccessPolicy[T],
    ) -> Iterator[T]:
        """Lazily yield the records a caller may read.

        The input is consumed one record at a time, so cursor-backed
        iterators are never materialized here.

        Args:
            records: Records of one type, in any order
            caller: Resolved requester
            policy: Access policy of the records' type

        Yields:
            Readable records, in input order
        """
        for record in records:
            if self.can_read(record, caller, policy):
                yield record

    def check_read_or_raise(self, record: T, caller: Caller, policy: AccessPolicy[T]) -> None:
        """Check read permission and raise if denied.

        Raises:
            AccessDeniedError: If access is denied
        """
        if not self.can_read(record, caller, policy):
            self._deny(record, caller, policy, "read")

    def check_write_or_raise(self, record: T, caller: Caller, policy: AccessPolicy[T]) -> None:
        """Check write permission and raise if denied.

        Raises:
            AccessDeniedError: If access is denied
        """
        if not self.can_write(record, caller, policy):
            self._deny(record, caller, policy, "write")

    def _deny(self, record: T, caller: Caller, policy: AccessPolicy[T], permission: str) -> None:
        record_id = policy.record_id(record)
        logger.info(
            "Access denied",
            extra={
                "policy": policy.name,
                "record_id": record_id,
                "actor": caller.identity,
                "permission": permission,
            },
        )
        raise AccessDeniedError(caller.identity, policy.name, record_id, permission)


# Default evaluator instance
_default_evaluator: AccessEvaluator | None = None


def get_access_evaluator() -> AccessEvaluator:
    """Get the default access evaluator instance."""
    global _default_evaluator
    if _default_evaluator is None:
        _default_evaluator = AccessEvaluator()
    return _default_evaluator
