"""Tests for the event ledger.

Covers:
- Create with validation, effective-owner filing and the advance payment
- Category find-or-create by trimmed name
- Listing with soft-delete filtering and per-role transaction visibility
- Status/priority updates: owner scoping, message text, fan-out audience
- Verbatim field updates guarded only by storage constraints
- Soft delete and the double-delete conflict
- Search
"""
from family_ledger.models.event import Event
from family_ledger.services import event_service
from tests.conftest import create_test_event, create_test_user, event_payload, make_user, share_with


def _family(client):
    """Alice owns the ledger; Bob writes, Rita reads, Olga co-owns."""
    alice = create_test_user(client, name="Alice")
    bob = create_test_user(client, name="Bob")
    rita = create_test_user(client, name="Rita")
    olga = create_test_user(client, name="Olga")
    share_with(client, alice, bob, "write")
    share_with(client, alice, rita, "read")
    share_with(client, alice, olga, "owner")
    return alice, bob, rita, olga


def _pay(client, actor, event_id, amount):
    resp = client.post(
        f"/api/events/{event_id}/payments?actor_user_id={actor['user_id']}",
        json={"amount": amount, "payment_method": "cash"},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["transaction"]


class TestEventCreate:
    """Event creation and initial state."""

    def test_create_event(self, client):
        alice = create_test_user(client, name="Alice")
        data = create_test_event(client, alice, event_name="Dinner", priority="high")
        assert data["event_name"] == "Dinner"
        assert data["owner_id"] == alice["user_id"]
        assert data["created_by"] == alice["user_id"]
        assert data["status"] == 1
        assert data["priority"] == "high"
        assert data["is_deleted"] is False
        assert data["transactions"] == []

    def test_advance_payment_creates_initial_transaction(self, client):
        alice = create_test_user(client, name="Alice")
        data = create_test_event(client, alice, booking_total_value=5000, advance_payment=1000)
        assert len(data["transactions"]) == 1
        txn = data["transactions"][0]
        assert txn["amount"] == 1000
        assert txn["note"] == "Advance payment (initial)"
        assert txn["added_by"] == alice["user_id"]
        assert txn["payment_method"] == "cash"

    def test_default_priority_is_medium(self, client):
        alice = create_test_user(client, name="Alice")
        payload = event_payload()
        del payload["priority"]
        resp = client.post(f"/api/events/?actor_user_id={alice['user_id']}", json=payload)
        assert resp.status_code == 201
        assert resp.json()["priority"] == "medium"

    def test_write_member_files_under_owner(self, client):
        alice, bob, _, _ = _family(client)
        data = create_test_event(client, bob)
        assert data["owner_id"] == alice["user_id"]
        assert data["created_by"] == bob["user_id"]

    def test_read_member_forbidden(self, client):
        _, _, rita, _ = _family(client)
        resp = client.post(f"/api/events/?actor_user_id={rita['user_id']}", json=event_payload())
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

    def test_category_found_by_trimmed_name(self, client):
        alice = create_test_user(client, name="Alice")
        first = create_test_event(client, alice, category_name="Wedding")
        second = create_test_event(client, alice, category_name="  Wedding ")
        assert first["category_id"] == second["category_id"]


class TestEventCreateValidation:
    """Malformed input is a validation failure, checked before authorization."""

    def _post(self, client, actor, **overrides):
        return client.post(f"/api/events/?actor_user_id={actor['user_id']}", json=event_payload(**overrides))

    def test_missing_event_name(self, client):
        alice = create_test_user(client, name="Alice")
        resp = self._post(client, alice, event_name=None)
        assert resp.status_code == 422
        assert resp.json()["error"]["field"] == "event_name"

    def test_contact_mobile_too_long(self, client):
        alice = create_test_user(client, name="Alice")
        resp = self._post(client, alice, contact_mobile="1" * 21)
        assert resp.status_code == 422
        assert resp.json()["error"]["field"] == "contact_mobile"

    def test_negative_total(self, client):
        alice = create_test_user(client, name="Alice")
        resp = self._post(client, alice, booking_total_value=-1)
        assert resp.status_code == 422

    def test_non_numeric_advance(self, client):
        alice = create_test_user(client, name="Alice")
        resp = self._post(client, alice, advance_payment="lots")
        assert resp.status_code == 422
        assert resp.json()["error"]["field"] == "advance_payment"

    def test_bad_priority(self, client):
        alice = create_test_user(client, name="Alice")
        resp = self._post(client, alice, priority="urgent")
        assert resp.status_code == 422

    def test_missing_category(self, client):
        alice = create_test_user(client, name="Alice")
        resp = self._post(client, alice, category_name="   ")
        assert resp.status_code == 422

    def test_validation_precedes_authorization(self, client):
        _, _, rita, _ = _family(client)
        resp = self._post(client, rita, event_name=None)
        assert resp.status_code == 422


class TestEventList:
    """listAccessible: ownership reach, soft-delete filter, ordering, visibility."""

    def test_owner_and_members_see_owner_events(self, client):
        alice, bob, rita, _ = _family(client)
        create_test_event(client, alice, event_name="First")
        create_test_event(client, alice, event_name="Second")

        for actor in (alice, bob, rita):
            resp = client.get(f"/api/events/?actor_user_id={actor['user_id']}")
            assert resp.status_code == 200
            assert [e["event_name"] for e in resp.json()] == ["Second", "First"]

    def test_strangers_see_nothing(self, client):
        alice = create_test_user(client, name="Alice")
        eve = create_test_user(client, name="Eve")
        create_test_event(client, alice)
        assert client.get(f"/api/events/?actor_user_id={eve['user_id']}").json() == []

    def test_deleted_events_hidden(self, client):
        alice = create_test_user(client, name="Alice")
        kept = create_test_event(client, alice, event_name="Kept")
        gone = create_test_event(client, alice, event_name="Gone")
        client.delete(f"/api/events/{gone['event_id']}?actor_user_id={alice['user_id']}")
        names = [e["event_name"] for e in client.get(f"/api/events/?actor_user_id={alice['user_id']}").json()]
        assert names == [kept["event_name"]]

    def test_transaction_visibility_by_role(self, client):
        alice, bob, rita, olga = _family(client)
        event = create_test_event(client, alice)
        _pay(client, alice, event["event_id"], 100)
        _pay(client, bob, event["event_id"], 200)

        def amounts(actor):
            events = client.get(f"/api/events/?actor_user_id={actor['user_id']}").json()
            return [t["amount"] for t in events[0]["transactions"]]

        # Full reach: main owner and owner-level grant, oldest first
        assert amounts(alice) == [100, 200]
        assert amounts(olga) == [100, 200]
        # Plain members only see what they added themselves
        assert amounts(bob) == [200]
        assert amounts(rita) == []

    def test_get_by_id_shows_all_active_transactions(self, client):
        alice, bob, rita, _ = _family(client)
        event = create_test_event(client, alice)
        _pay(client, alice, event["event_id"], 100)
        resp = client.get(f"/api/events/{event['event_id']}?actor_user_id={rita['user_id']}")
        assert resp.status_code == 200
        assert [t["amount"] for t in resp.json()["transactions"]] == [100]


class TestEventGet:
    """getById authorizes read against the stored owner."""

    def test_stranger_forbidden(self, client):
        alice = create_test_user(client, name="Alice")
        eve = create_test_user(client, name="Eve")
        event = create_test_event(client, alice)
        resp = client.get(f"/api/events/{event['event_id']}?actor_user_id={eve['user_id']}")
        assert resp.status_code == 403

    def test_unknown_event(self, client):
        alice = create_test_user(client, name="Alice")
        resp = client.get(f"/api/events/missing?actor_user_id={alice['user_id']}")
        assert resp.status_code == 404


class TestStatusPriorityUpdate:
    """PUT /api/events/{id}/update: scoped to the resolved owner, with fan-out."""

    def _update(self, client, actor, event_id, **body):
        return client.put(f"/api/events/{event_id}/update?actor_user_id={actor['user_id']}", json=body)

    def test_owner_priority_change_notifies_writer_only(self, client, push_sink):
        alice = create_test_user(client, name="Alice")
        bob = create_test_user(client, name="Bob")
        share_with(client, alice, bob, "write")
        event = create_test_event(client, alice, event_name="Gala")

        resp = self._update(client, alice, event["event_id"], priority="high")
        assert resp.status_code == 200
        data = resp.json()
        assert data["event"]["priority"] == "high"
        assert data["event"]["updated_by"] == alice["user_id"]
        assert data["notified_users"] == [bob["user_id"]]
        assert data["warning"] is None

        assert len(push_sink.calls) == 1
        assert push_sink.calls[0]["recipient_ids"] == [bob["user_id"]]
        assert push_sink.calls[0]["body"] == "Alice Gala: priority set to high."

    def test_message_joins_status_and_priority(self, client, push_sink):
        alice, bob, _, _ = _family(client)
        event = create_test_event(client, alice, event_name="Gala")
        self._update(client, bob, event["event_id"], status=2, priority="low")
        assert push_sink.calls[0]["body"] == "Bob Gala: completed the event, priority set to low."

    def test_status_texts(self, client, push_sink):
        alice, bob, _, _ = _family(client)
        event = create_test_event(client, alice, event_name="Gala")
        self._update(client, alice, event["event_id"], status=0)
        self._update(client, alice, event["event_id"], status=1)
        bodies = [c["body"] for c in push_sink.calls]
        assert bodies == ["Alice Gala: set to inactive.", "Alice Gala: marked as pending."]

    def test_member_update_notifies_owner_and_co_owners(self, client):
        alice, bob, rita, olga = _family(client)
        event = create_test_event(client, alice)
        resp = self._update(client, bob, event["event_id"], status=2)
        assert resp.status_code == 200
        assert set(resp.json()["notified_users"]) == {alice["user_id"], olga["user_id"]}
        assert rita["user_id"] not in resp.json()["notified_users"]

    def test_requires_a_field(self, client):
        alice = create_test_user(client, name="Alice")
        event = create_test_event(client, alice)
        assert self._update(client, alice, event["event_id"]).status_code == 422

    def test_invalid_status(self, client):
        alice = create_test_user(client, name="Alice")
        event = create_test_event(client, alice)
        assert self._update(client, alice, event["event_id"], status=5).status_code == 422
        resp = self._update(client, alice, event["event_id"], status=1.5)
        assert resp.status_code == 422
        assert resp.json()["error"]["field"] == "status"

    def test_read_member_forbidden(self, client):
        alice, _, rita, _ = _family(client)
        event = create_test_event(client, alice)
        assert self._update(client, rita, event["event_id"], priority="high").status_code == 403

    def test_other_owner_event_reads_as_missing(self, client):
        alice = create_test_user(client, name="Alice")
        dave = create_test_user(client, name="Dave")
        event = create_test_event(client, dave)
        resp = self._update(client, alice, event["event_id"], priority="high")
        assert resp.status_code == 404

    def test_sink_failure_is_a_warning(self, client, push_sink, db):
        alice, bob, _, _ = _family(client)
        event = create_test_event(client, alice)
        push_sink.fail_with = "provider unreachable"

        resp = self._update(client, alice, event["event_id"], priority="high")
        assert resp.status_code == 200
        assert resp.json()["warning"]["message"] == "Push delivery failed"
        assert db.query(Event).filter(Event.event_id == event["event_id"]).one().priority.value == "high"


class TestUpdateFields:
    """PUT /api/events/{id}: verbatim patch against the stored owner."""

    def test_owner_updates_fields(self, client):
        alice = create_test_user(client, name="Alice")
        event = create_test_event(client, alice)
        resp = client.put(
            f"/api/events/{event['event_id']}?actor_user_id={alice['user_id']}",
            json={"notes": "Moved to Hall C", "booking_total_value": 6000},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["notes"] == "Moved to Hall C"
        assert data["booking_total_value"] == 6000
        assert data["version"] == event["version"] + 1

    def test_writer_updates_owner_event(self, client):
        alice, bob, _, _ = _family(client)
        event = create_test_event(client, alice)
        resp = client.put(
            f"/api/events/{event['event_id']}?actor_user_id={bob['user_id']}",
            json={"event_name": "Renamed"},
        )
        assert resp.status_code == 200
        assert resp.json()["owner_id"] == alice["user_id"]

    def test_read_member_forbidden(self, client):
        alice, _, rita, _ = _family(client)
        event = create_test_event(client, alice)
        resp = client.put(
            f"/api/events/{event['event_id']}?actor_user_id={rita['user_id']}",
            json={"notes": "x"},
        )
        assert resp.status_code == 403

    def test_storage_rejects_bad_priority(self, client):
        alice = create_test_user(client, name="Alice")
        event = create_test_event(client, alice)
        resp = client.put(
            f"/api/events/{event['event_id']}?actor_user_id={alice['user_id']}",
            json={"priority": "urgent"},
        )
        assert resp.status_code == 422

    def test_storage_rejects_bad_status(self, client):
        alice = create_test_user(client, name="Alice")
        event = create_test_event(client, alice)
        resp = client.put(
            f"/api/events/{event['event_id']}?actor_user_id={alice['user_id']}",
            json={"status": 7},
        )
        assert resp.status_code == 422

    def test_only_columns_are_patched(self, db):
        alice = make_user(db, "Alice")
        event = event_service.create_event(db, alice, event_payload())
        owner_id = event.owner_id

        updated = event_service.update_fields(
            db, alice, event.event_id,
            {"owner": None, "category": None, "metadata": None, "notes": "Patched"},
        )
        assert updated.notes == "Patched"
        assert updated.owner_id == owner_id
        assert updated.category is not None


class TestSoftDelete:
    """DELETE /api/events/{id}."""

    def test_soft_delete(self, client, db):
        alice = create_test_user(client, name="Alice")
        event = create_test_event(client, alice)
        resp = client.delete(f"/api/events/{event['event_id']}?actor_user_id={alice['user_id']}")
        assert resp.status_code == 200
        assert resp.json()["is_deleted"] is True
        assert resp.json()["deleted_at"] is not None

        row = db.query(Event).filter(Event.event_id == event["event_id"]).one()
        assert row.is_deleted is True

    def test_double_delete_conflicts(self, client, db):
        alice = create_test_user(client, name="Alice")
        event = create_test_event(client, alice)
        url = f"/api/events/{event['event_id']}?actor_user_id={alice['user_id']}"
        assert client.delete(url).status_code == 200
        second = client.delete(url)
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "conflict"
        assert db.query(Event).filter(Event.event_id == event["event_id"]).one().is_deleted is True

    def test_read_member_cannot_delete(self, client):
        alice, _, rita, _ = _family(client)
        event = create_test_event(client, alice)
        resp = client.delete(f"/api/events/{event['event_id']}?actor_user_id={rita['user_id']}")
        assert resp.status_code == 403

    def test_deleted_event_not_found_for_reads(self, client):
        alice = create_test_user(client, name="Alice")
        event = create_test_event(client, alice)
        client.delete(f"/api/events/{event['event_id']}?actor_user_id={alice['user_id']}")
        resp = client.get(f"/api/events/{event['event_id']}?actor_user_id={alice['user_id']}")
        assert resp.status_code == 404


class TestSearch:
    """GET /api/events/search."""

    def test_search_matches_name_and_notes(self, client):
        alice, bob, _, _ = _family(client)
        create_test_event(client, alice, event_name="Birthday Party", notes="cake")
        create_test_event(client, alice, event_name="Conference", notes="Birthday of the CEO")
        create_test_event(client, alice, event_name="Retreat", notes="quiet")

        resp = client.get(f"/api/events/search?q=birthday&actor_user_id={bob['user_id']}")
        assert resp.status_code == 200
        assert {e["event_name"] for e in resp.json()} == {"Birthday Party", "Conference"}

    def test_search_requires_query(self, client):
        alice = create_test_user(client, name="Alice")
        resp = client.get(f"/api/events/search?actor_user_id={alice['user_id']}")
        assert resp.status_code == 422
