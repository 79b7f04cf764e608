"""
Unit tests for the user administration CLI.
"""

import json
import os

import pytest

from eventsquare_server.tools.users_cli import main


@pytest.fixture
def database(tmp_path):
    return os.path.join(str(tmp_path), "users.db")


def run(database, *args):
    return main(["--database", database, *args])


class TestUsersCLI:
    """Tests for eventsquare-users."""

    def test_add_and_list(self, database, capsys):
        assert run(database, "add", "alice", "--name", "Alice", "--role", "admin") == 0
        assert "Created user alice with roles admin" in capsys.readouterr().out

        assert run(database, "list") == 0
        out = capsys.readouterr().out
        assert "alice\tAlice\tadmin" in out

    def test_list_json(self, database, capsys):
        run(database, "add", "bob", "--role", "organizer", "--role", "Admin")
        capsys.readouterr()

        assert run(database, "list", "--format", "json") == 0
        users = json.loads(capsys.readouterr().out)
        assert users == [{"id": "bob", "display_name": "", "roles": ["organizer", "Admin"]}]

    def test_list_empty(self, database, capsys):
        assert run(database, "list") == 0
        assert "No users" in capsys.readouterr().out

    def test_grant_and_revoke(self, database, capsys):
        run(database, "add", "bob")
        capsys.readouterr()

        assert run(database, "grant", "bob", "admin") == 0
        assert "Granted admin to bob" in capsys.readouterr().out
        assert run(database, "grant", "bob", "admin") == 0
        assert "already has admin" in capsys.readouterr().out

        assert run(database, "revoke", "bob", "admin") == 0
        assert "Revoked admin from bob" in capsys.readouterr().out
        assert run(database, "revoke", "bob", "admin") == 0
        assert "does not have admin" in capsys.readouterr().out

    def test_grant_unknown_user_fails(self, database, capsys):
        assert run(database, "grant", "nobody", "admin") == 1
        assert "user not found: nobody" in capsys.readouterr().err

    def test_duplicate_add_fails(self, database, capsys):
        run(database, "add", "alice")
        assert run(database, "add", "alice") == 1
        assert "Error:" in capsys.readouterr().err

    def test_missing_command_exits(self, database):
        with pytest.raises(SystemExit):
            main(["--database", database])
