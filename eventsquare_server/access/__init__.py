"""
Access module for EventSquare - policy-driven read/write checks.

This module handles:
- Caller and AccessPolicy definitions
- The AccessEvaluator shared by every record type
- Concrete policies for events, invitations and RSVPs

Invariants:
    - One evaluation algorithm for all record types; types differ only
      in their policy
    - Policies are validated when constructed, never per call
"""

from .evaluator import ADMIN_ROLE, AccessEvaluator, get_access_evaluator
from .policies import event_policy, invitation_policy, rsvp_policy
from .policy import AccessPolicy, Caller

__all__ = [
    "ADMIN_ROLE",
    "AccessEvaluator",
    "get_access_evaluator",
    "AccessPolicy",
    "Caller",
    "event_policy",
    "invitation_policy",
    "rsvp_policy",
]
