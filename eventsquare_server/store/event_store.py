"""
SQLite store for EventSquare.

This module manages the single SQLite database that stores:
- Users and their role names
- Calendar events
- Invitations to events
- RSVPs to events

The store is the persistence collaborator of the access layer. It never
makes access decisions itself; the HTTP layer and the access policies
call into it for reads.

Invariants:
    - One connection per operation; SQLite handles concurrent access via WAL mode
    - All write operations run in a single IMMEDIATE transaction
    - Invitations and RSVPs are deleted with their event
    - At most one RSVP per (event, user)
    - Listing order is insertion order

How to change safely:
    - Bump SCHEMA_VERSION and keep CREATE statements idempotent
    - Keep iter_events lazy; list endpoints rely on it to stream
    - Never hold a connection open across yielded pages

Table schema:
    users:        id TEXT PK, display_name TEXT, created_at INTEGER (Unix ms)
    user_roles:   user_id TEXT, role TEXT, PRIMARY KEY (user_id, role)
    events:       id TEXT PK, name, description, start_at, end_at (ISO-8601),
                  owner TEXT, visibility TEXT, location_json TEXT
    invitations:  id TEXT PK, recipient_id, sender_id, event_id -> events(id)
    rsvps:        id TEXT PK, event_id -> events(id), user_id, status,
                  UNIQUE (event_id, user_id)
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from ..errors import ConflictError, RecordNotFoundError
from .records import (
    AttendanceStatus,
    CalendarEvent,
    EventVisibility,
    Invitation,
    Location,
    Rsvp,
    User,
)

logger = logging.getLogger(__name__)


class EventStore:
    """SQLite store for users, events, invitations and RSVPs.

    Thread safety:
        Each operation opens its own connection, so one store instance
        can be shared by all request-handling threads.

    Example:
        >>> store = EventStore("/var/lib/eventsquare/eventsquare.db")
        >>> store.initialize()
        >>> event = store.create_event(
        ...     name="Launch party",
        ...     description="",
        ...     start=start,
        ...     end=end,
        ...     owner="alice",
        ... )
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        database_path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        page_size: int = 100,
    ) -> None:
        """Initialize the store.

        Args:
            database_path: Path of the SQLite database file
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            page_size: Rows fetched per page by iter_events
        """
        self.database_path = Path(database_path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.page_size = page_size

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection and close it afterwards."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.database_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA foreign_keys = ON")

            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self, resource_type: str) -> Iterator[sqlite3.Connection]:
        """Run a block in an IMMEDIATE transaction.

        Unique and foreign-key violations surface as ConflictError.
        """
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except sqlite3.IntegrityError as e:
                conn.execute("ROLLBACK")
                raise ConflictError(
                    f"{resource_type} conflicts with existing data: {e}",
                    resource_type=resource_type,
                ) from e
            except Exception:
                conn.execute("ROLLBACK")
                raise

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                display_name TEXT NOT NULL DEFAULT '',
                created_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS user_roles (
                user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                role TEXT NOT NULL,
                PRIMARY KEY (user_id, role)
            );

            CREATE TABLE IF NOT EXISTS events (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                start_at TEXT NOT NULL,
                end_at TEXT NOT NULL,
                owner TEXT NOT NULL,
                visibility TEXT NOT NULL,
                location_json TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_events_owner ON events(owner);

            CREATE TABLE IF NOT EXISTS invitations (
                id TEXT PRIMARY KEY,
                recipient_id TEXT NOT NULL,
                sender_id TEXT NOT NULL,
                event_id TEXT NOT NULL REFERENCES events(id) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_invitations_event
                ON invitations(event_id, recipient_id);
            CREATE INDEX IF NOT EXISTS idx_invitations_sender
                ON invitations(sender_id, recipient_id);

            CREATE TABLE IF NOT EXISTS rsvps (
                id TEXT PRIMARY KEY,
                event_id TEXT NOT NULL REFERENCES events(id) ON DELETE CASCADE,
                user_id TEXT NOT NULL,
                status TEXT NOT NULL,
                UNIQUE (event_id, user_id)
            );

            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        with self._get_connection() as conn:
            self._create_schema(conn)
        logger.info("Initialized event store", extra={"database_path": str(self.database_path)})

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(
        self,
        user_id: str,
        display_name: str = "",
        roles: tuple[str, ...] | list[str] = (),
    ) -> User:
        """Create a user with an initial set of roles.

        Raises:
            ConflictError: If the user id is already taken
        """
        with self._transaction("user") as conn:
            conn.execute(
                "INSERT INTO users (id, display_name, created_at) VALUES (?, ?, ?)",
                (user_id, display_name, int(time.time() * 1000)),
            )
            for role in roles:
                conn.execute(
                    "INSERT OR IGNORE INTO user_roles (user_id, role) VALUES (?, ?)",
                    (user_id, role),
                )

        logger.debug("Created user", extra={"user_id": user_id, "roles": list(roles)})
        return User(id=user_id, display_name=display_name, roles=tuple(dict.fromkeys(roles)))

    def get_user(self, user_id: str) -> User | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT id, display_name FROM users WHERE id = ?", (user_id,)
            ).fetchone()
            if row is None:
                return None
            return User(
                id=row["id"],
                display_name=row["display_name"],
                roles=self._roles(conn, user_id),
            )

    def list_users(self) -> list[User]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT id, display_name FROM users ORDER BY rowid").fetchall()
            return [
                User(id=row["id"], display_name=row["display_name"], roles=self._roles(conn, row["id"]))
                for row in rows
            ]

    def get_roles(self, user_id: str) -> tuple[str, ...]:
        """Get role names granted to a user (empty if unknown)."""
        with self._get_connection() as conn:
            return self._roles(conn, user_id)

    def _roles(self, conn: sqlite3.Connection, user_id: str) -> tuple[str, ...]:
        rows = conn.execute(
            "SELECT role FROM user_roles WHERE user_id = ? ORDER BY rowid", (user_id,)
        ).fetchall()
        return tuple(row["role"] for row in rows)

    def grant_role(self, user_id: str, role: str) -> bool:
        """Grant a role to a user.

        Returns:
            True if the role was newly granted, False if already held

        Raises:
            RecordNotFoundError: If the user doesn't exist
        """
        with self._transaction("user") as conn:
            self._require_user(conn, user_id)
            cursor = conn.execute(
                "INSERT OR IGNORE INTO user_roles (user_id, role) VALUES (?, ?)",
                (user_id, role),
            )
            granted = cursor.rowcount > 0

        if granted:
            logger.info("Granted role", extra={"user_id": user_id, "role": role})
        return granted

    def revoke_role(self, user_id: str, role: str) -> bool:
        """Revoke a role from a user.

        Returns:
            True if the role was removed, False if the user didn't hold it

        Raises:
            RecordNotFoundError: If the user doesn't exist
        """
        with self._transaction("user") as conn:
            self._require_user(conn, user_id)
            cursor = conn.execute(
                "DELETE FROM user_roles WHERE user_id = ? AND role = ?",
                (user_id, role),
            )
            revoked = cursor.rowcount > 0

        if revoked:
            logger.info("Revoked role", extra={"user_id": user_id, "role": role})
        return revoked

    def _require_user(self, conn: sqlite3.Connection, user_id: str) -> None:
        if conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone() is None:
            raise RecordNotFoundError("user", user_id)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def create_event(
        self,
        name: str,
        description: str,
        start: datetime,
        end: datetime,
        owner: str,
        visibility: EventVisibility = EventVisibility.INVITE_ONLY,
        location: Location | None = None,
        event_id: str | None = None,
    ) -> CalendarEvent:
        """Create a new event.

        Args:
            name: Event title
            description: Free-text description
            start: Start of the event
            end: End of the event
            owner: User id of the creator
            visibility: Default visibility
            location: Optional location
            event_id: Optional specific id (generated if not provided)

        Returns:
            Created CalendarEvent

        Raises:
            ConflictError: If event_id is already taken
        """
        event = CalendarEvent(
            id=event_id or str(uuid.uuid4()),
            name=name,
            description=description,
            start=start,
            end=end,
            owner=owner,
            visibility=visibility,
            location=location,
        )

        with self._transaction("event") as conn:
            conn.execute(
                """
                INSERT INTO events (id, name, description, start_at, end_at,
                                    owner, visibility, location_json)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                self._event_params(event),
            )

        logger.debug("Created event", extra={"event_id": event.id, "owner": owner})
        return event

    def get_event(self, event_id: str) -> CalendarEvent | None:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM events WHERE id = ?", (event_id,)).fetchone()
            return self._row_to_event(row) if row else None

    def list_events(self) -> list[CalendarEvent]:
        """Load every event into memory."""
        return list(self.iter_events())

    def iter_events(self, page_size: int | None = None) -> Iterator[CalendarEvent]:
        """Iterate over all events, one page per query.

        Pages are fetched lazily with keyset pagination on rowid, so
        consumers that stop early never load the rest of the table.

        Args:
            page_size: Rows per page (defaults to the store's page size)

        Yields:
            Events in insertion order
        """
        size = page_size or self.page_size
        last_rowid = 0

        while True:
            with self._get_connection() as conn:
                rows = conn.execute(
                    "SELECT rowid AS _rowid, * FROM events WHERE rowid > ? ORDER BY rowid LIMIT ?",
                    (last_rowid, size),
                ).fetchall()

            if not rows:
                return

            for row in rows:
                yield self._row_to_event(row)

            last_rowid = rows[-1]["_rowid"]
            if len(rows) < size:
                return

    def update_event(self, event: CalendarEvent) -> CalendarEvent | None:
        """Replace an event's fields.

        Returns:
            The stored event, or None if it doesn't exist
        """
        with self._transaction("event") as conn:
            cursor = conn.execute(
                """
                UPDATE events SET name = ?, description = ?, start_at = ?, end_at = ?,
                                  owner = ?, visibility = ?, location_json = ?
                WHERE id = ?
                """,
                (*self._event_params(event)[1:], event.id),
            )
            if cursor.rowcount == 0:
                return None

        return event

    def delete_event(self, event_id: str) -> bool:
        """Delete an event with its invitations and RSVPs.

        Returns:
            True if deleted, False if not found
        """
        with self._transaction("event") as conn:
            cursor = conn.execute("DELETE FROM events WHERE id = ?", (event_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.debug("Deleted event", extra={"event_id": event_id})
        return deleted

    def _event_params(self, event: CalendarEvent) -> tuple[Any, ...]:
        return (
            event.id,
            event.name,
            event.description,
            event.start.isoformat(),
            event.end.isoformat(),
            event.owner,
            event.visibility.value,
            json.dumps(event.location.to_dict()) if event.location else None,
        )

    def _row_to_event(self, row: sqlite3.Row) -> CalendarEvent:
        location_json = row["location_json"]
        return CalendarEvent(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            start=datetime.fromisoformat(row["start_at"]),
            end=datetime.fromisoformat(row["end_at"]),
            owner=row["owner"],
            visibility=EventVisibility(row["visibility"]),
            location=Location.from_dict(json.loads(location_json)) if location_json else None,
        )

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    def create_invitation(
        self,
        recipient_id: str,
        sender_id: str,
        event_id: str,
        invitation_id: str | None = None,
    ) -> Invitation:
        """Create an invitation.

        Raises:
            ConflictError: If the id is taken or the event doesn't exist
        """
        invitation = Invitation(
            id=invitation_id or str(uuid.uuid4()),
            recipient_id=recipient_id,
            sender_id=sender_id,
            event_id=event_id,
        )

        with self._transaction("invitation") as conn:
            conn.execute(
                """
                INSERT INTO invitations (id, recipient_id, sender_id, event_id)
                VALUES (?, ?, ?, ?)
                """,
                (invitation.id, recipient_id, sender_id, event_id),
            )

        logger.debug(
            "Created invitation",
            extra={"invitation_id": invitation.id, "event_id": event_id},
        )
        return invitation

    def get_invitation(self, invitation_id: str) -> Invitation | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM invitations WHERE id = ?", (invitation_id,)
            ).fetchone()
            return self._row_to_invitation(row) if row else None

    def list_invitations(self) -> list[Invitation]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM invitations ORDER BY rowid").fetchall()
            return [self._row_to_invitation(row) for row in rows]

    def update_invitation(self, invitation: Invitation) -> Invitation | None:
        with self._transaction("invitation") as conn:
            cursor = conn.execute(
                """
                UPDATE invitations SET recipient_id = ?, sender_id = ?, event_id = ?
                WHERE id = ?
                """,
                (invitation.recipient_id, invitation.sender_id, invitation.event_id, invitation.id),
            )
            if cursor.rowcount == 0:
                return None

        return invitation

    def delete_invitation(self, invitation_id: str) -> bool:
        with self._transaction("invitation") as conn:
            cursor = conn.execute("DELETE FROM invitations WHERE id = ?", (invitation_id,))
            return cursor.rowcount > 0

    def invitation_exists(
        self,
        event_id: str | None = None,
        recipient_id: str | None = None,
        sender_id: str | None = None,
    ) -> bool:
        """Check whether an invitation matches every given filter.

        Filters left as None are not applied.
        """
        clauses = []
        params: list[str] = []
        for column, value in (
            ("event_id", event_id),
            ("recipient_id", recipient_id),
            ("sender_id", sender_id),
        ):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)

        where = " AND ".join(clauses) if clauses else "1 = 1"
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT 1 FROM invitations WHERE {where} LIMIT 1", params
            ).fetchone()
            return row is not None

    def _row_to_invitation(self, row: sqlite3.Row) -> Invitation:
        return Invitation(
            id=row["id"],
            recipient_id=row["recipient_id"],
            sender_id=row["sender_id"],
            event_id=row["event_id"],
        )

    # ------------------------------------------------------------------
    # RSVPs
    # ------------------------------------------------------------------

    def create_rsvp(
        self,
        event_id: str,
        user_id: str,
        status: AttendanceStatus,
        rsvp_id: str | None = None,
    ) -> Rsvp:
        """Create an RSVP.

        Raises:
            ConflictError: If the user already answered this event,
                the id is taken, or the event doesn't exist
        """
        rsvp = Rsvp(
            id=rsvp_id or str(uuid.uuid4()),
            event_id=event_id,
            user_id=user_id,
            status=status,
        )

        with self._transaction("rsvp") as conn:
            conn.execute(
                "INSERT INTO rsvps (id, event_id, user_id, status) VALUES (?, ?, ?, ?)",
                (rsvp.id, event_id, user_id, status.value),
            )

        logger.debug("Created RSVP", extra={"rsvp_id": rsvp.id, "event_id": event_id})
        return rsvp

    def get_rsvp(self, rsvp_id: str) -> Rsvp | None:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM rsvps WHERE id = ?", (rsvp_id,)).fetchone()
            return self._row_to_rsvp(row) if row else None

    def list_rsvps(self) -> list[Rsvp]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM rsvps ORDER BY rowid").fetchall()
            return [self._row_to_rsvp(row) for row in rows]

    def update_rsvp(self, rsvp: Rsvp) -> Rsvp | None:
        with self._transaction("rsvp") as conn:
            cursor = conn.execute(
                "UPDATE rsvps SET event_id = ?, user_id = ?, status = ? WHERE id = ?",
                (rsvp.event_id, rsvp.user_id, rsvp.status.value, rsvp.id),
            )
            if cursor.rowcount == 0:
                return None

        return rsvp

    def delete_rsvp(self, rsvp_id: str) -> bool:
        with self._transaction("rsvp") as conn:
            cursor = conn.execute("DELETE FROM rsvps WHERE id = ?", (rsvp_id,))
            return cursor.rowcount > 0

    def _row_to_rsvp(self, row: sqlite3.Row) -> Rsvp:
        return Rsvp(
            id=row["id"],
            event_id=row["event_id"],
            user_id=row["user_id"],
            status=AttendanceStatus(row["status"]),
        )
