"""
Integration tests for the EventSquare HTTP API.

These tests run the full FastAPI application against a temporary SQLite
database through TestClient:
- Caller resolution from the identity header
- Event, invitation and RSVP CRUD with access checks
- Error status mapping (400, 401, 403, 404, 409, 500)
- List filtering per caller
"""

import os
import tempfile

import pytest
from fastapi.testclient import TestClient

from eventsquare_server.api import Settings, create_app
from eventsquare_server.config import ServerConfig, StorageConfig
from eventsquare_server.store import EventStore

START = "2024-05-01T18:00:00+00:00"
END = "2024-05-01T21:00:00+00:00"


def as_user(user_id):
    return {"X-User-ID": user_id}


ALICE = as_user("alice")
BOB = as_user("bob")
CAROL = as_user("carol")
ROOT = as_user("root")
SHOUTY = as_user("shouty")


@pytest.fixture
def client():
    """Application client with seeded users."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "api.db")
        config = ServerConfig(storage=StorageConfig(database_path=path, wal_mode=False))
        store = EventStore(path, wal_mode=False, page_size=2)
        store.initialize()
        store.create_user("alice", "Alice")
        store.create_user("bob", "Bob")
        store.create_user("carol", "Carol")
        store.create_user("root", "Root", ["admin"])
        store.create_user("shouty", "Shouty", ["ADMIN"])

        app = create_app(config=config, settings=Settings(), store=store)
        with TestClient(app) as client:
            yield client


def create_event(client, headers=ALICE, **overrides):
    body = {"name": "Dinner", "description": "At home", "start": START, "end": END}
    body.update(overrides)
    response = client.post("/api/events", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def invite(client, event_id, recipient, headers=ALICE):
    response = client.post(
        "/api/invitations",
        json={"recipient_id": recipient, "event_id": event_id},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestService:
    """Tests for service-level endpoints."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_me_anonymous(self, client):
        data = client.get("/api/me").json()
        assert data == {"identity": None, "roles": [], "authenticated": False}

    def test_me_with_roles(self, client):
        data = client.get("/api/me", headers=ROOT).json()
        assert data == {"identity": "root", "roles": ["admin"], "authenticated": True}

    def test_me_unknown_user_is_anonymous(self, client):
        data = client.get("/api/me", headers=as_user("mallory")).json()
        assert data["identity"] is None


class TestEvents:
    """Tests for /api/events."""

    def test_create_sets_owner_and_default_visibility(self, client):
        event = create_event(client, location={"name": "Town hall", "postcode": 12345})
        assert event["owner"] == "alice"
        assert event["visibility"] == "invite_only"
        assert event["location"]["name"] == "Town hall"

    def test_create_requires_identity(self, client):
        response = client.post(
            "/api/events", json={"name": "Dinner", "start": START, "end": END}
        )
        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTHENTICATION_REQUIRED"

    def test_create_rejects_end_before_start(self, client):
        response = client.post(
            "/api/events",
            json={"name": "Dinner", "start": END, "end": START},
            headers=ALICE,
        )
        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_RECORD"

    def test_create_rejects_naive_datetimes(self, client):
        response = client.post(
            "/api/events",
            json={"name": "Dinner", "start": "2024-05-01T18:00:00", "end": END},
            headers=ALICE,
        )
        assert response.status_code == 422

    def test_get_missing_event(self, client):
        response = client.get("/api/events/missing", headers=ALICE)
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_public_event_readable_by_anyone(self, client):
        event = create_event(client, visibility="public")
        assert client.get(f"/api/events/{event['id']}").status_code == 200
        assert client.get(f"/api/events/{event['id']}", headers=CAROL).status_code == 200

    def test_invite_only_event(self, client):
        """Only the owner, invitees and admins can read invite-only events."""
        event = create_event(client)
        invite(client, event["id"], "bob")

        url = f"/api/events/{event['id']}"
        assert client.get(url, headers=ALICE).status_code == 200
        assert client.get(url, headers=BOB).status_code == 200
        assert client.get(url, headers=ROOT).status_code == 200
        assert client.get(url, headers=CAROL).status_code == 403
        assert client.get(url).status_code == 403

    def test_hidden_event(self, client):
        event = create_event(client, visibility="hidden")
        url = f"/api/events/{event['id']}"

        assert client.get(url, headers=ALICE).status_code == 200
        assert client.get(url, headers=ROOT).status_code == 200
        response = client.get(url, headers=BOB)
        assert response.status_code == 403
        assert response.json()["error_code"] == "ACCESS_DENIED"

    def test_read_admin_role_is_case_sensitive(self, client):
        """An 'ADMIN' role does not grant read access."""
        event = create_event(client, visibility="hidden")
        assert client.get(f"/api/events/{event['id']}", headers=SHOUTY).status_code == 403

    def test_write_admin_role_ignores_case(self, client):
        """An 'ADMIN' role does grant write access."""
        event = create_event(client, visibility="hidden")
        assert client.delete(f"/api/events/{event['id']}", headers=SHOUTY).status_code == 204

    def test_list_filters_per_caller(self, client):
        public = create_event(client, name="Public", visibility="public")
        invited = create_event(client, name="Invited")
        hidden = create_event(client, name="Hidden", visibility="hidden")
        invite(client, invited["id"], "bob")

        def names(headers=None):
            response = client.get("/api/events", headers=headers or {})
            assert response.status_code == 200
            return [e["name"] for e in response.json()]

        assert names() == [public["name"]]
        assert names(BOB) == ["Public", "Invited"]
        assert names(CAROL) == ["Public"]
        assert names(ALICE) == ["Public", "Invited", "Hidden"]
        assert names(ROOT) == ["Public", "Invited", "Hidden"]
        assert hidden["visibility"] == "hidden"

    def test_update_by_owner(self, client):
        event = create_event(client)
        body = {
            "id": event["id"],
            "name": "Brunch",
            "start": START,
            "end": END,
            "visibility": "public",
        }

        response = client.put(f"/api/events/{event['id']}", json=body, headers=ALICE)
        assert response.status_code == 200
        updated = response.json()
        assert updated["name"] == "Brunch"
        assert updated["visibility"] == "public"
        assert updated["owner"] == "alice"

        assert client.get(f"/api/events/{event['id']}").json()["name"] == "Brunch"

    def test_update_by_admin_keeps_owner(self, client):
        event = create_event(client)
        body = {"name": "Renamed", "start": START, "end": END}

        response = client.put(f"/api/events/{event['id']}", json=body, headers=ROOT)
        assert response.status_code == 200
        assert response.json()["owner"] == "alice"

    def test_update_by_invitee_is_denied(self, client):
        """Invitees can read an event but not change it."""
        event = create_event(client)
        invite(client, event["id"], "bob")
        body = {"name": "Hijacked", "start": START, "end": END}

        response = client.put(f"/api/events/{event['id']}", json=body, headers=BOB)
        assert response.status_code == 403

    def test_update_id_mismatch(self, client):
        event = create_event(client)
        body = {"id": "other", "name": "Dinner", "start": START, "end": END}

        response = client.put(f"/api/events/{event['id']}", json=body, headers=ALICE)
        assert response.status_code == 400

    def test_update_missing_event(self, client):
        body = {"name": "Dinner", "start": START, "end": END}
        assert client.put("/api/events/missing", json=body, headers=ALICE).status_code == 404

    def test_update_rejects_end_before_start(self, client):
        event = create_event(client)
        body = {"name": "Dinner", "start": END, "end": START}

        response = client.put(f"/api/events/{event['id']}", json=body, headers=ALICE)
        assert response.status_code == 400

    def test_delete(self, client):
        event = create_event(client)
        url = f"/api/events/{event['id']}"

        assert client.delete(url, headers=BOB).status_code == 403
        assert client.delete(url).status_code == 403
        assert client.delete(url, headers=ALICE).status_code == 204
        assert client.get(url, headers=ALICE).status_code == 404
        assert client.delete(url, headers=ALICE).status_code == 404


class TestInvitations:
    """Tests for /api/invitations."""

    def test_create_sets_sender(self, client):
        event = create_event(client)
        invitation = invite(client, event["id"], "bob")
        assert invitation["sender_id"] == "alice"
        assert invitation["recipient_id"] == "bob"

    def test_create_requires_identity(self, client):
        event = create_event(client, visibility="public")
        response = client.post(
            "/api/invitations", json={"recipient_id": "bob", "event_id": event["id"]}
        )
        assert response.status_code == 401

    def test_create_for_missing_event(self, client):
        response = client.post(
            "/api/invitations",
            json={"recipient_id": "bob", "event_id": "missing"},
            headers=ALICE,
        )
        assert response.status_code == 404

    def test_create_for_unreadable_event(self, client):
        event = create_event(client)
        response = client.post(
            "/api/invitations",
            json={"recipient_id": "carol", "event_id": event["id"]},
            headers=BOB,
        )
        assert response.status_code == 403

    def test_invitees_can_invite_others(self, client):
        event = create_event(client)
        invite(client, event["id"], "bob")
        invitation = invite(client, event["id"], "carol", headers=BOB)
        assert invitation["sender_id"] == "bob"

    def test_hidden_event_rejects_invitations(self, client):
        event = create_event(client, visibility="hidden")
        response = client.post(
            "/api/invitations",
            json={"recipient_id": "bob", "event_id": event["id"]},
            headers=ALICE,
        )
        assert response.status_code == 409
        assert response.json()["error_code"] == "CONFLICT"

    def test_read_by_sender_and_recipient_only(self, client):
        event = create_event(client)
        invitation = invite(client, event["id"], "bob")
        url = f"/api/invitations/{invitation['id']}"

        assert client.get(url, headers=ALICE).status_code == 200
        assert client.get(url, headers=BOB).status_code == 200
        assert client.get(url, headers=ROOT).status_code == 200
        assert client.get(url, headers=CAROL).status_code == 403
        assert client.get(url).status_code == 403

    def test_list_filters_per_caller(self, client):
        event = create_event(client)
        invite(client, event["id"], "bob")
        invite(client, event["id"], "carol")

        assert len(client.get("/api/invitations", headers=ALICE).json()) == 2
        bob_invitations = client.get("/api/invitations", headers=BOB).json()
        assert [i["recipient_id"] for i in bob_invitations] == ["bob"]
        assert client.get("/api/invitations").json() == []

    def test_update_and_delete_by_sender(self, client):
        event = create_event(client)
        invitation = invite(client, event["id"], "bob")
        url = f"/api/invitations/{invitation['id']}"

        response = client.put(url, json={"recipient_id": "carol"}, headers=BOB)
        assert response.status_code == 403

        response = client.put(url, json={"recipient_id": "carol"}, headers=ALICE)
        assert response.status_code == 200
        assert response.json()["recipient_id"] == "carol"

        assert client.delete(url, headers=BOB).status_code == 403
        assert client.delete(url, headers=ALICE).status_code == 204
        assert client.get(url, headers=ALICE).status_code == 404

    def test_update_id_mismatch(self, client):
        event = create_event(client)
        invitation = invite(client, event["id"], "bob")

        response = client.put(
            f"/api/invitations/{invitation['id']}",
            json={"id": "other", "recipient_id": "carol"},
            headers=ALICE,
        )
        assert response.status_code == 400

    def test_revoking_invitation_revokes_event_access(self, client):
        event = create_event(client)
        invitation = invite(client, event["id"], "bob")
        url = f"/api/events/{event['id']}"

        assert client.get(url, headers=BOB).status_code == 200
        client.delete(f"/api/invitations/{invitation['id']}", headers=ALICE)
        assert client.get(url, headers=BOB).status_code == 403


class TestRsvps:
    """Tests for /api/rsvps."""

    @pytest.fixture
    def event(self, client):
        event = create_event(client)
        invite(client, event["id"], "bob")
        return event

    def answer(self, client, event_id, status="going", headers=BOB):
        return client.post(
            "/api/rsvps", json={"event_id": event_id, "status": status}, headers=headers
        )

    def test_invitee_answers(self, client, event):
        response = self.answer(client, event["id"])
        assert response.status_code == 201
        assert response.json()["user_id"] == "bob"
        assert response.json()["status"] == "going"

    def test_uninvited_cannot_answer(self, client, event):
        assert self.answer(client, event["id"], headers=CAROL).status_code == 403

    def test_anonymous_cannot_answer(self, client):
        public = create_event(client, visibility="public")
        assert self.answer(client, public["id"], headers={}).status_code == 401

    def test_answer_missing_event(self, client):
        assert self.answer(client, "missing").status_code == 404

    def test_one_answer_per_event(self, client, event):
        assert self.answer(client, event["id"]).status_code == 201
        response = self.answer(client, event["id"], status="maybe")
        assert response.status_code == 409

    def test_invalid_status(self, client, event):
        assert self.answer(client, event["id"], status="perhaps").status_code == 422

    def test_read_by_responder_and_inviter(self, client, event):
        rsvp = self.answer(client, event["id"]).json()
        url = f"/api/rsvps/{rsvp['id']}"

        assert client.get(url, headers=BOB).status_code == 200
        assert client.get(url, headers=ALICE).status_code == 200
        assert client.get(url, headers=CAROL).status_code == 403

    def test_list_filters_per_caller(self, client, event):
        self.answer(client, event["id"])

        assert len(client.get("/api/rsvps", headers=BOB).json()) == 1
        assert len(client.get("/api/rsvps", headers=ALICE).json()) == 1
        assert client.get("/api/rsvps", headers=CAROL).json() == []

    def test_update_by_responder_only(self, client, event):
        rsvp = self.answer(client, event["id"]).json()
        url = f"/api/rsvps/{rsvp['id']}"

        assert client.put(url, json={"status": "not_going"}, headers=ALICE).status_code == 403

        response = client.put(url, json={"status": "attending_virtually"}, headers=BOB)
        assert response.status_code == 200
        assert response.json()["status"] == "attending_virtually"

    def test_delete(self, client, event):
        rsvp = self.answer(client, event["id"]).json()
        url = f"/api/rsvps/{rsvp['id']}"

        assert client.delete(url, headers=ALICE).status_code == 403
        assert client.delete(url, headers=BOB).status_code == 204
        assert client.get(url, headers=BOB).status_code == 404

    def test_deleting_event_removes_rsvps(self, client, event):
        rsvp = self.answer(client, event["id"]).json()
        client.delete(f"/api/events/{event['id']}", headers=ALICE)
        assert client.get(f"/api/rsvps/{rsvp['id']}", headers=BOB).status_code == 404


class TestInternalErrors:
    """Tests for failures raised while evaluating access."""

    @pytest.fixture
    def failing_client(self, monkeypatch):
        """Client whose invitation lookups fail, with server errors returned."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "api.db")
            config = ServerConfig(storage=StorageConfig(database_path=path, wal_mode=False))
            store = EventStore(path, wal_mode=False)
            store.initialize()
            store.create_user("alice", "Alice")
            store.create_user("bob", "Bob")

            app = create_app(config=config, settings=Settings(), store=store)
            with TestClient(app, raise_server_exceptions=False) as client:
                event = create_event(client)

                def unavailable(**filters):
                    raise RuntimeError("database unavailable")

                monkeypatch.setattr(store, "invitation_exists", unavailable)
                yield client, event

    def test_get_event_returns_500(self, failing_client):
        client, event = failing_client
        response = client.get(f"/api/events/{event['id']}", headers=BOB)
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "error_code": "INTERNAL"}

    def test_list_events_returns_500(self, failing_client):
        client, _ = failing_client
        response = client.get("/api/events", headers=BOB)
        assert response.status_code == 500
        assert response.json()["error_code"] == "INTERNAL"

    def test_owner_is_not_affected(self, failing_client):
        """The owner rule decides before invitations are looked up."""
        client, event = failing_client
        assert client.get(f"/api/events/{event['id']}", headers=ALICE).status_code == 200
