"""
EventSquare Server - calendar events, invitations and RSVPs.

Users create events, invite others and answer invitations. Every record
is guarded by one access evaluator driven by a per-type policy
(ownership, visibility, explicit grants) rather than per-endpoint checks.

Architecture:
    ┌─────────────┐     ┌──────────────┐     ┌──────────────────┐
    │   Client    │────▶│  FastAPI     │────▶│ IdentityResolver │
    │             │     │  routes      │     │ (header → Caller)│
    └─────────────┘     └──────┬───────┘     └──────────────────┘
                               │
                               ▼
                   ┌───────────────────────┐     ┌──────────────────┐
                   │    AccessEvaluator    │◀────│  AccessPolicy    │
                   │ can_read / can_write  │     │ event/invitation │
                   │ filter_readable       │     │ /rsvp            │
                   └───────────┬───────────┘     └────────┬─────────┘
                               │                          │
                               ▼                          ▼
                        ┌─────────────────────────────────────┐
                        │        EventStore (SQLite)          │
                        └─────────────────────────────────────┘

Invariants:
    - Public records are readable by anyone
    - Owners and admins can always read their records; only they can write
    - The evaluator owns no state and no resources

Version: see __version__.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
