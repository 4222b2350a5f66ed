"""
Appointment (client interest) tests: public submission, title snapshot,
admin-only management.

Run: pytest vision_backend/test_appointments.py -v
"""

import sqlite3

import pytest

from conftest import auth


def appointment_count(settings):
    conn = sqlite3.connect(settings.database_path)
    try:
        return conn.execute("SELECT COUNT(*) FROM appointments").fetchone()[0]
    finally:
        conn.close()


@pytest.fixture
def listing(admin_token, create_listing):
    return create_listing(admin_token, title="Casa X", images=2)


@pytest.fixture
def submit(client, listing):
    """POST an interest for the listing (no auth); returns the response."""

    def _submit(**fields):
        body = {
            "propertyId": listing["id"],
            "clientName": "Maria Souza",
            "clientPhone": "+55 41 99999-0000",
            **fields,
        }
        return client.post("/api/appointments", json=body)

    return _submit


class TestCreateAppointment:

    def test_public_submission(self, submit, listing):
        resp = submit(clientEmail=" Maria@Example.COM ", clientMessage="Can I visit on Saturday?")
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Interest registered successfully"

        data = body["data"]
        assert data["property"] == listing["id"]
        assert data["propertyTitle"] == "Casa X"
        assert data["status"] == "pending"
        assert data["clientEmail"] == "maria@example.com"
        assert data["clientMessage"] == "Can I visit on Saturday?"

    def test_optional_fields_can_be_omitted(self, submit):
        data = submit(clientEmail="").json()["data"]
        assert data["clientEmail"] is None
        assert data["clientMessage"] is None

    def test_status_in_body_is_ignored(self, submit):
        assert submit(status="completed").json()["data"]["status"] == "pending"

    def test_unknown_property_is_404(self, submit, settings):
        resp = submit(propertyId="does-not-exist")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "Property not found"}
        assert appointment_count(settings) == 0

    @pytest.mark.parametrize(
        "override,field",
        [
            ({"clientName": ""}, "clientName"),
            ({"clientPhone": "   "}, "clientPhone"),
            ({"clientEmail": "not-an-email"}, "clientEmail"),
            ({"clientMessage": "x" * 1001}, "clientMessage"),
        ],
    )
    def test_invalid_submission_is_400(self, submit, settings, override, field):
        resp = submit(**override)
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert any(e["field"] == field for e in body["errors"])
        assert appointment_count(settings) == 0

    def test_missing_property_reference_is_400(self, client):
        resp = client.post("/api/appointments", json={"clientName": "Ana", "clientPhone": "123"})
        assert resp.status_code == 400
        assert any(e["field"] == "propertyId" for e in resp.json()["errors"])


class TestTitleSnapshot:

    def test_title_survives_rename(self, client, submit, listing, admin_token):
        appointment = submit().json()["data"]
        client.put(f"/api/properties/{listing['id']}", data={"title": "Casa Y"}, headers=auth(admin_token))

        data = client.get(f"/api/appointments/{appointment['id']}", headers=auth(admin_token)).json()["data"]
        assert data["propertyTitle"] == "Casa X"
        assert data["propertyInfo"]["title"] == "Casa Y"

    def test_title_survives_property_delete(self, client, submit, listing, admin_token):
        appointment = submit().json()["data"]
        assert client.delete(f"/api/properties/{listing['id']}", headers=auth(admin_token)).status_code == 200

        resp = client.get(f"/api/appointments/{appointment['id']}", headers=auth(admin_token))
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["propertyTitle"] == "Casa X"
        assert data["property"] == listing["id"]
        assert data["propertyInfo"] is None

    def test_detail_includes_property_images(self, client, submit, listing, admin_token):
        appointment = submit().json()["data"]
        data = client.get(f"/api/appointments/{appointment['id']}", headers=auth(admin_token)).json()["data"]
        assert data["propertyInfo"]["images"] == listing["images"]
        assert data["propertyInfo"]["location"] == listing["location"]


class TestManageAppointments:

    def test_admin_lists_newest_first(self, client, submit, admin_token):
        first = submit(clientName="First").json()["data"]
        second = submit(clientName="Second").json()["data"]

        body = client.get("/api/appointments", headers=auth(admin_token)).json()
        assert body["count"] == 2
        assert [a["id"] for a in body["data"]] == [second["id"], first["id"]]

    def test_filters(self, client, submit, admin_token, create_listing):
        other = create_listing(admin_token, title="Other")
        mine = submit().json()["data"]
        submit(propertyId=other["id"])
        client.put(f"/api/appointments/{mine['id']}", json={"status": "contacted"}, headers=auth(admin_token))

        by_status = client.get("/api/appointments", params={"status": "contacted"}, headers=auth(admin_token)).json()
        assert [a["id"] for a in by_status["data"]] == [mine["id"]]

        by_property = client.get(
            "/api/appointments", params={"propertyId": other["id"]}, headers=auth(admin_token)
        ).json()
        assert by_property["count"] == 1
        assert by_property["data"][0]["propertyTitle"] == "Other"

    def test_broker_is_forbidden(self, client, submit, make_user):
        appointment = submit().json()["data"]
        _, broker_token = make_user("corretor1")
        assert client.get("/api/appointments", headers=auth(broker_token)).status_code == 403
        assert client.get(f"/api/appointments/{appointment['id']}", headers=auth(broker_token)).status_code == 403
        resp = client.put(
            f"/api/appointments/{appointment['id']}",
            json={"status": "completed"},
            headers=auth(broker_token),
        )
        assert resp.status_code == 403
        assert client.delete(f"/api/appointments/{appointment['id']}", headers=auth(broker_token)).status_code == 403

    def test_anonymous_is_401(self, client, submit):
        appointment = submit().json()["data"]
        assert client.get("/api/appointments").status_code == 401
        assert client.put(f"/api/appointments/{appointment['id']}", json={"status": "completed"}).status_code == 401
        assert client.delete(f"/api/appointments/{appointment['id']}").status_code == 401

    def test_status_update(self, client, submit, admin_token):
        appointment = submit().json()["data"]
        resp = client.put(
            f"/api/appointments/{appointment['id']}",
            json={"status": "scheduled", "clientName": "Changed"},
            headers=auth(admin_token),
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["status"] == "scheduled"
        assert data["clientName"] == "Maria Souza"

    def test_update_without_status_changes_nothing(self, client, submit, admin_token):
        appointment = submit().json()["data"]
        resp = client.put(f"/api/appointments/{appointment['id']}", json={}, headers=auth(admin_token))
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["status"] == "pending"
        assert data["updatedAt"] == appointment["updatedAt"]

    def test_invalid_status_is_400(self, client, submit, admin_token):
        appointment = submit().json()["data"]
        resp = client.put(
            f"/api/appointments/{appointment['id']}",
            json={"status": "archived"},
            headers=auth(admin_token),
        )
        assert resp.status_code == 400
        detail = client.get(f"/api/appointments/{appointment['id']}", headers=auth(admin_token)).json()["data"]
        assert detail["status"] == "pending"

    def test_delete(self, client, submit, admin_token, settings):
        appointment = submit().json()["data"]
        resp = client.delete(f"/api/appointments/{appointment['id']}", headers=auth(admin_token))
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert appointment_count(settings) == 0
        assert client.get(f"/api/appointments/{appointment['id']}", headers=auth(admin_token)).status_code == 404

    def test_unknown_appointment_is_404(self, client, admin_token):
        resp = client.put("/api/appointments/missing", json={"status": "completed"}, headers=auth(admin_token))
        assert resp.status_code == 404
        assert resp.json()["message"] == "Appointment not found"
