"""Tests for login and the admin user/permission endpoints.

Covers:
- Password login: token issue, wrong password, disabled account
- /me for the bearer user
- User CRUD restricted to SUPER_ADMIN, duplicate e-mail -> 409
- Permission reads and writes, write implying read
- Super admin permissions are fixed
- Password reset followed by a fresh login
"""
from app.models.user import Feature, UserRole
from tests.conftest import auth_headers, create_test_user


def _login(client, email, password):
    return client.post("/api/auth/login", json={"email": email, "password": password})


class TestLogin:
    def test_login_returns_usable_token(self, client, agent):
        resp = _login(client, "agent@example.com", "password123")
        assert resp.status_code == 200
        token = resp.json()["access_token"]
        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "agent@example.com"
        assert {p["feature"] for p in me.json()["permissions"]} == {"LISTE", "GESTION_ZONES"}

    def test_email_is_case_insensitive(self, client, agent):
        assert _login(client, "Agent@Example.com", "password123").status_code == 200

    def test_wrong_password_is_401(self, client, agent):
        assert _login(client, "agent@example.com", "wrong-password").status_code == 401

    def test_unknown_email_is_401(self, client):
        assert _login(client, "nobody@example.com", "password123").status_code == 401

    def test_disabled_account_is_403(self, client, db):
        create_test_user(db, email="off@example.com", is_active=False)
        assert _login(client, "off@example.com", "password123").status_code == 403

    def test_me_requires_token(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_garbage_token_is_401(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401


class TestUsers:
    def test_create_and_list(self, client, admin_headers):
        resp = client.post(
            "/api/admin/users",
            json={"name": "New Agent", "email": "New@Example.com", "password": "longenough"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["email"] == "new@example.com"
        assert resp.json()["role"] == "USER"

        emails = [u["email"] for u in client.get("/api/admin/users", headers=admin_headers).json()]
        assert "new@example.com" in emails

    def test_duplicate_email_is_409(self, client, agent, admin_headers):
        resp = client.post(
            "/api/admin/users",
            json={"name": "Twin", "email": "AGENT@example.com", "password": "longenough"},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    def test_short_password_is_400(self, client, admin_headers):
        resp = client.post(
            "/api/admin/users",
            json={"name": "Short", "email": "short@example.com", "password": "short"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_invalid_role_is_400(self, client, admin_headers):
        resp = client.post(
            "/api/admin/users",
            json={"name": "X", "email": "x@example.com", "password": "longenough", "role": "KING"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_update_deactivates(self, client, agent, admin_headers):
        resp = client.patch(f"/api/admin/users/{agent.id}", json={"is_active": False}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False
        assert client.get("/api/auth/me", headers=auth_headers(agent)).status_code == 403

    def test_unknown_user_is_404(self, client, admin_headers):
        assert client.get("/api/admin/users/missing", headers=admin_headers).status_code == 404

    def test_requires_super_admin(self, client, db, agent_headers):
        assert client.get("/api/admin/users", headers=agent_headers).status_code == 403
        plain_admin = create_test_user(db, email="admin@example.com", role=UserRole.ADMIN)
        assert client.get("/api/admin/users", headers=auth_headers(plain_admin)).status_code == 403

    def test_password_reset(self, client, agent, admin_headers):
        resp = client.put(
            f"/api/admin/users/{agent.id}/password", json={"password": "brand-new-pass"}, headers=admin_headers
        )
        assert resp.status_code == 204
        assert _login(client, "agent@example.com", "password123").status_code == 401
        assert _login(client, "agent@example.com", "brand-new-pass").status_code == 200


class TestPermissions:
    def test_read_permissions(self, client, agent, admin_headers):
        perms = client.get(f"/api/admin/users/{agent.id}/permissions", headers=admin_headers).json()
        assert perms == [
            {"feature": "GESTION_ZONES", "can_read": True, "can_write": True},
            {"feature": "LISTE", "can_read": True, "can_write": True},
        ]

    def test_write_implies_read(self, client, agent, admin_headers):
        resp = client.put(
            f"/api/admin/users/{agent.id}/permissions",
            json={"permissions": [{"feature": "ARCHIVES", "canRead": False, "canWrite": True}]},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        archives = next(p for p in resp.json() if p["feature"] == "ARCHIVES")
        assert archives == {"feature": "ARCHIVES", "can_read": True, "can_write": True}

    def test_revoking_write_takes_effect(self, client, agent, agent_headers, admin_headers):
        client.put(
            f"/api/admin/users/{agent.id}/permissions",
            json={"permissions": [{"feature": "LISTE", "can_read": True, "can_write": False}]},
            headers=admin_headers,
        )
        assert client.get("/api/accreditations", headers=agent_headers).status_code == 200
        resp = client.post("/api/accreditations/any/status", json={"status": "ENTREE"}, headers=agent_headers)
        assert resp.status_code == 403

    def test_unknown_feature_is_400(self, client, agent, admin_headers):
        resp = client.put(
            f"/api/admin/users/{agent.id}/permissions",
            json={"permissions": [{"feature": "TELEPORT", "canRead": True}]},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_super_admin_holds_everything(self, client, admin, admin_headers):
        perms = client.get(f"/api/admin/users/{admin.id}/permissions", headers=admin_headers).json()
        assert {p["feature"] for p in perms} == {f.value for f in Feature}
        assert all(p["can_write"] for p in perms)

    def test_super_admin_permissions_are_fixed(self, client, admin, admin_headers):
        resp = client.put(
            f"/api/admin/users/{admin.id}/permissions",
            json={"permissions": [{"feature": "LISTE", "canRead": False, "canWrite": False}]},
            headers=admin_headers,
        )
        assert resp.status_code == 400
