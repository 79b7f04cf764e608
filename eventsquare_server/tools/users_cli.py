"""
User administration CLI for EventSquare.

This tool manages the users and roles the identity resolver reads:
- add: Create a user, optionally with roles
- grant: Grant a role to a user
- revoke: Revoke a role from a user
- list: List users and their roles

Usage:
    eventsquare-users add alice --name "Alice" --role admin
    eventsquare-users grant bob admin
    eventsquare-users revoke bob admin
    eventsquare-users list --format json

Invariants:
    - Role names are stored exactly as typed; read checks match "admin"
      case-sensitively, write checks ignore case
    - A missing user causes exit code 1
    - The database location comes from DATABASE_PATH unless --database is given
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from ..config import StorageConfig
from ..errors import ConflictError, RecordNotFoundError
from ..store.event_store import EventStore

logger = logging.getLogger(__name__)


class UsersCLI:
    """CLI operations for user management.

    Example:
        >>> cli = UsersCLI(store)
        >>> cli.add("alice", "Alice", ["admin"])
        >>> print(cli.render_list("text"))
    """

    def __init__(self, store: EventStore) -> None:
        self.store = store

    def add(self, user_id: str, display_name: str, roles: list[str]) -> str:
        user = self.store.create_user(user_id, display_name, roles)
        return f"Created user {user.id}" + (f" with roles {', '.join(user.roles)}" if user.roles else "")

    def grant(self, user_id: str, role: str) -> str:
        if self.store.grant_role(user_id, role):
            return f"Granted {role} to {user_id}"
        return f"{user_id} already has {role}"

    def revoke(self, user_id: str, role: str) -> str:
        if self.store.revoke_role(user_id, role):
            return f"Revoked {role} from {user_id}"
        return f"{user_id} does not have {role}"

    def render_list(self, output_format: str = "text") -> str:
        users = self.store.list_users()

        if output_format == "json":
            return json.dumps([user.to_dict() for user in users], indent=2, sort_keys=True)

        if not users:
            return "No users"
        lines = []
        for user in users:
            roles = ", ".join(user.roles) if user.roles else "-"
            lines.append(f"{user.id}\t{user.display_name}\t{roles}")
        return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="EventSquare user administration tool")
    parser.add_argument(
        "--database", help="SQLite database path (default: DATABASE_PATH or ./eventsquare.db)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    add_parser = subparsers.add_parser("add", help="Create a user")
    add_parser.add_argument("user_id", help="User identifier")
    add_parser.add_argument("--name", default="", help="Display name")
    add_parser.add_argument(
        "--role", action="append", default=[], help="Role to grant (repeatable)"
    )

    grant_parser = subparsers.add_parser("grant", help="Grant a role to a user")
    grant_parser.add_argument("user_id", help="User identifier")
    grant_parser.add_argument("role", help="Role name")

    revoke_parser = subparsers.add_parser("revoke", help="Revoke a role from a user")
    revoke_parser.add_argument("user_id", help="User identifier")
    revoke_parser.add_argument("role", help="Role name")

    list_parser = subparsers.add_parser("list", help="List users and roles")
    list_parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Output format"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for user administration.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    storage = StorageConfig.from_env()
    store = EventStore(
        args.database or storage.database_path,
        wal_mode=storage.wal_mode,
        busy_timeout_ms=storage.busy_timeout_ms,
    )
    store.initialize()
    cli = UsersCLI(store)

    try:
        if args.command == "add":
            print(cli.add(args.user_id, args.name, args.role))
        elif args.command == "grant":
            print(cli.grant(args.user_id, args.role))
        elif args.command == "revoke":
            print(cli.revoke(args.user_id, args.role))
        elif args.command == "list":
            print(cli.render_list(args.format))
    except (RecordNotFoundError, ConflictError) as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
