"""
User management tests: uniqueness, password handling and the
last-admin invariant.

Run: pytest vision_backend/test_users.py -v
"""

import sqlite3

import pytest

from conftest import auth, login


def new_user(username, email=None, role="broker", password="secret123"):
    return {
        "username": username,
        "email": email or f"{username}@visionimoveis.com.br",
        "password": password,
        "name": username.title(),
        "role": role,
    }


def stored_users(settings):
    conn = sqlite3.connect(settings.database_path)
    conn.row_factory = sqlite3.Row
    try:
        return [dict(r) for r in conn.execute("SELECT * FROM users")]
    finally:
        conn.close()


class TestCreateUser:

    def test_create_broker(self, client, admin_token):
        resp = client.post("/api/users", json=new_user("Marcos"), headers=auth(admin_token))
        assert resp.status_code == 201
        user = resp.json()["data"]
        assert user["username"] == "marcos"
        assert user["role"] == "broker"
        assert user["active"] is True
        assert "password" not in user and "password_hash" not in user

    def test_role_defaults_to_broker(self, client, admin_token):
        payload = new_user("sofia")
        del payload["role"]
        resp = client.post("/api/users", json=payload, headers=auth(admin_token))
        assert resp.json()["data"]["role"] == "broker"

    def test_password_is_stored_hashed(self, client, admin_token, settings):
        client.post("/api/users", json=new_user("bruno", password="plainpass"), headers=auth(admin_token))
        row = next(u for u in stored_users(settings) if u["username"] == "bruno")
        assert row["password_hash"] != "plainpass"
        assert row["password_hash"].startswith("pbkdf2_sha256$")

    def test_duplicate_username_is_rejected(self, client, admin_token, settings):
        client.post("/api/users", json=new_user("ana"), headers=auth(admin_token))
        before = len(stored_users(settings))

        resp = client.post(
            "/api/users",
            json=new_user("ANA", email="other@visionimoveis.com.br"),
            headers=auth(admin_token),
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["field"] == "username"
        assert len(stored_users(settings)) == before

    def test_duplicate_email_is_rejected(self, client, admin_token, settings):
        client.post("/api/users", json=new_user("ana"), headers=auth(admin_token))
        before = len(stored_users(settings))

        resp = client.post(
            "/api/users",
            json=new_user("outra", email="ANA@visionimoveis.com.br"),
            headers=auth(admin_token),
        )
        assert resp.status_code == 400
        assert resp.json()["field"] == "email"
        assert len(stored_users(settings)) == before

    @pytest.mark.parametrize(
        "override,field",
        [
            ({"username": "ab"}, "username"),
            ({"email": "not-an-email"}, "email"),
            ({"password": "123"}, "password"),
            ({"name": ""}, "name"),
            ({"role": "client"}, "role"),
        ],
    )
    def test_invalid_fields_are_400(self, client, admin_token, override, field):
        payload = {**new_user("valido"), **override}
        resp = client.post("/api/users", json=payload, headers=auth(admin_token))
        assert resp.status_code == 400
        assert any(e["field"] == field for e in resp.json()["errors"])


class TestReadUsers:

    def test_list_and_brokers(self, client, admin_token, make_user):
        make_user("corretor1")
        make_user("gerente", role="admin")

        users = client.get("/api/users", headers=auth(admin_token)).json()
        assert users["count"] == 3
        assert users["data"][0]["username"] == "gerente"  # newest first

        brokers = client.get("/api/users/brokers", headers=auth(admin_token)).json()
        assert [b["username"] for b in brokers["data"]] == ["corretor1"]

    def test_get_unknown_user_is_404(self, client, admin_token):
        resp = client.get("/api/users/missing", headers=auth(admin_token))
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "User not found"}


class TestUpdateUser:

    def test_password_change_is_rehashed(self, client, admin_token, make_user, settings):
        broker, _ = make_user("helena")
        old_hash = next(u for u in stored_users(settings) if u["id"] == broker["id"])["password_hash"]

        resp = client.put(f"/api/users/{broker['id']}", json={"password": "newpass99"}, headers=auth(admin_token))
        assert resp.status_code == 200

        new_hash = next(u for u in stored_users(settings) if u["id"] == broker["id"])["password_hash"]
        assert new_hash != old_hash
        assert "newpass99" not in new_hash
        login(client, "helena", "newpass99")

    def test_partial_update_keeps_other_fields(self, client, admin_token, make_user):
        broker, _ = make_user("igor")
        resp = client.put(f"/api/users/{broker['id']}", json={"name": "Igor Silva"}, headers=auth(admin_token))
        data = resp.json()["data"]
        assert data["name"] == "Igor Silva"
        assert data["username"] == "igor"
        assert data["email"] == broker["email"]
        login(client, "igor", "secret123")

    def test_update_to_taken_username_is_rejected(self, client, admin_token, make_user):
        make_user("julia")
        broker, _ = make_user("kleber")
        resp = client.put(f"/api/users/{broker['id']}", json={"username": "julia"}, headers=auth(admin_token))
        assert resp.status_code == 400
        assert resp.json()["field"] == "username"

    def test_keeping_own_username_is_not_a_conflict(self, client, admin_token, make_user):
        broker, _ = make_user("laura")
        resp = client.put(f"/api/users/{broker['id']}", json={"username": "LAURA"}, headers=auth(admin_token))
        assert resp.status_code == 200

    def test_promote_broker_to_admin(self, client, admin_token, make_user):
        broker, _ = make_user("mario")
        resp = client.put(f"/api/users/{broker['id']}", json={"role": "admin"}, headers=auth(admin_token))
        assert resp.json()["data"]["role"] == "admin"

    def test_cannot_demote_last_active_admin(self, client, admin_token):
        admin_id = client.get("/api/auth/me", headers=auth(admin_token)).json()["user"]["id"]
        resp = client.put(f"/api/users/{admin_id}", json={"role": "broker"}, headers=auth(admin_token))
        assert resp.status_code == 403
        resp = client.put(f"/api/users/{admin_id}", json={"active": False}, headers=auth(admin_token))
        assert resp.status_code == 403


class TestDeleteUser:

    def test_deleting_sole_admin_is_forbidden(self, client, admin_token, settings):
        admin_id = client.get("/api/auth/me", headers=auth(admin_token)).json()["user"]["id"]
        resp = client.delete(f"/api/users/{admin_id}", headers=auth(admin_token))
        assert resp.status_code == 403
        assert any(u["id"] == admin_id for u in stored_users(settings))

    def test_deleting_admin_when_two_exist_succeeds(self, client, admin_token, make_user):
        second_admin, _ = make_user("nina", role="admin")
        resp = client.delete(f"/api/users/{second_admin['id']}", headers=auth(admin_token))
        assert resp.status_code == 200
        assert resp.json()["success"] is True

        # Back to one admin: the next delete is refused
        admin_id = client.get("/api/auth/me", headers=auth(admin_token)).json()["user"]["id"]
        assert client.delete(f"/api/users/{admin_id}", headers=auth(admin_token)).status_code == 403

    def test_deleting_last_active_admin_is_forbidden(self, client, admin_token, make_user, settings):
        dormant, _ = make_user("gestor", role="admin")
        client.put(f"/api/users/{dormant['id']}", json={"active": False}, headers=auth(admin_token))

        admin_id = client.get("/api/auth/me", headers=auth(admin_token)).json()["user"]["id"]
        resp = client.delete(f"/api/users/{admin_id}", headers=auth(admin_token))
        assert resp.status_code == 403
        assert any(u["id"] == admin_id for u in stored_users(settings))

    def test_deleting_inactive_admin_is_allowed(self, client, admin_token, make_user):
        dormant, _ = make_user("gestor", role="admin")
        client.put(f"/api/users/{dormant['id']}", json={"active": False}, headers=auth(admin_token))

        resp = client.delete(f"/api/users/{dormant['id']}", headers=auth(admin_token))
        assert resp.status_code == 200

    def test_deleting_broker_keeps_their_properties(self, client, admin_token, make_user, create_listing):
        broker, broker_token = make_user("otavio")
        listing = create_listing(broker_token)

        assert client.delete(f"/api/users/{broker['id']}", headers=auth(admin_token)).status_code == 200

        resp = client.get(f"/api/properties/{listing['id']}")
        assert resp.status_code == 200
        assert resp.json()["data"]["createdBy"]["id"] == broker["id"]
        assert resp.json()["data"]["createdBy"]["name"] is None

    def test_delete_unknown_user_is_404(self, client, admin_token):
        assert client.delete("/api/users/missing", headers=auth(admin_token)).status_code == 404
