from datetime import datetime, timedelta

import pytest

from hrcore_api.extensions import db
from hrcore_api.models.user import User


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.get_json()["data"]["db"] == "up"


def test_register_creates_trial_tenant_and_admin(client):
    r = client.post("/api/v1/auth/register", json={
        "tenant_name": "Acme", "tax_id": "12345678000190",
        "name": "Alice", "email": "Alice@Acme.io", "password": "secret123",
    })
    assert r.status_code == 201
    body = r.get_json()
    assert body["status"] == "success"
    assert body["data"]["tenant"]["status"] == "trial"
    assert body["data"]["user"]["role"] == "admin"
    assert body["data"]["user"]["email"] == "alice@acme.io"

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {body['data']['access']}"})
    assert me.status_code == 200
    assert me.get_json()["data"]["tenant"]["name"] == "Acme"

    again = client.post("/api/v1/auth/register", json={
        "tenant_name": "Other", "tax_id": "12345678000190",
        "name": "Bob", "email": "bob@acme.io", "password": "secret123",
    })
    assert again.status_code == 409
    assert again.get_json()["code"] == "duplicate_entity"


def test_login_and_bad_password(client, make):
    t = make.tenant()
    make.user(t, "director", email="dir@example.com")

    r = client.post("/api/v1/auth/login", json={"email": "dir@example.com", "password": "secret123"})
    assert r.status_code == 200
    assert r.get_json()["data"]["access"]

    bad = client.post("/api/v1/auth/login", json={"email": "dir@example.com", "password": "nope"})
    assert bad.status_code == 401
    assert bad.get_json() == {"status": "error", "message": "Invalid credentials", "code": "unauthenticated"}


def test_login_same_email_in_two_tenants_needs_tenant_id(client, make):
    t1, t2 = make.tenant(), make.tenant()
    make.user(t1, email="same@example.com")
    make.user(t2, email="same@example.com")

    r = client.post("/api/v1/auth/login", json={"email": "same@example.com", "password": "secret123"})
    assert r.status_code == 400

    r = client.post("/api/v1/auth/login", json={"email": "same@example.com", "password": "secret123",
                                                "tenant_id": t2.id})
    assert r.status_code == 200
    assert r.get_json()["data"]["user"]["tenant_id"] == t2.id


def test_missing_and_garbage_tokens_are_401(client):
    assert client.get("/api/v1/employees").status_code == 401
    r = client.get("/api/v1/employees", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.get_json()["code"] == "unauthenticated"


def test_logout_invalidates_issued_tokens(client, make, auth):
    t = make.tenant()
    u = make.user(t, "admin")
    headers = auth(u)

    assert client.get("/api/v1/auth/me", headers=headers).status_code == 200
    assert client.post("/api/v1/auth/logout", headers=headers).status_code == 200
    r = client.get("/api/v1/auth/me", headers=headers)
    assert r.status_code == 401


def test_change_password_returns_fresh_tokens(client, make, auth):
    t = make.tenant()
    u = make.user(t, "manager")
    old = auth(u)

    r = client.post("/api/v1/auth/change-password", headers=old,
                    json={"current_password": "secret123", "new_password": "another456"})
    assert r.status_code == 200
    fresh = {"Authorization": f"Bearer {r.get_json()['data']['access']}"}

    assert client.get("/api/v1/auth/me", headers=old).status_code == 401
    assert client.get("/api/v1/auth/me", headers=fresh).status_code == 200


def test_refresh_rejected_after_role_change(client, make, auth):
    t = make.tenant()
    admin = make.user(t, "admin")
    target = make.user(t, "manager")
    refresh = client.post("/api/v1/auth/login", json={"email": target.email, "password": "secret123"}) \
        .get_json()["data"]["refresh"]

    r = client.put(f"/api/v1/users/{target.id}", headers=auth(admin), json={"role": "director"})
    assert r.status_code == 200

    r = client.post("/api/v1/auth/refresh", headers={"Authorization": f"Bearer {refresh}"})
    assert r.status_code == 401


def test_inactive_user_rejected(client, make, auth):
    t = make.tenant()
    u = make.user(t, "admin")
    headers = auth(u)
    u.status = "blocked"
    db.session.commit()
    assert client.get("/api/v1/auth/me", headers=headers).status_code == 401


def test_inactive_or_expired_tenant_is_403(client, make, auth):
    t = make.tenant()
    u = make.user(t, "admin")
    headers = auth(u)

    t.status = "blocked"
    db.session.commit()
    r = client.get("/api/v1/employees", headers=headers)
    assert r.status_code == 403
    assert r.get_json()["code"] == "tenant_inactive"

    t.status = "active"
    t.expires_at = datetime.utcnow() - timedelta(days=1)
    db.session.commit()
    assert client.get("/api/v1/employees", headers=headers).status_code == 403

    login = client.post("/api/v1/auth/login", json={"email": u.email, "password": "secret123"})
    assert login.status_code == 403


def test_last_access_recorded(client, make, auth):
    t = make.tenant()
    u = make.user(t, "director")
    assert u.last_access_at is None
    client.get("/api/v1/auth/me", headers=auth(u))
    db.session.expire_all()
    assert db.session.get(User, u.id).last_access_at is not None


def test_users_endpoint_is_admin_only(client, make, auth):
    t = make.tenant()
    director = make.user(t, "director")
    r = client.get("/api/v1/users", headers=auth(director))
    assert r.status_code == 403
    assert r.get_json()["code"] == "forbidden"


def test_admin_cannot_deactivate_self(client, make, auth):
    t = make.tenant()
    admin = make.user(t, "admin")
    r = client.delete(f"/api/v1/users/{admin.id}", headers=auth(admin))
    assert r.status_code == 400


@pytest.mark.parametrize("body", [{"role": "manager"}, {"status": "inactive"}])
def test_admin_cannot_demote_or_deactivate_self_via_update(client, make, auth, body):
    t = make.tenant()
    admin = make.user(t, "admin")
    r = client.put(f"/api/v1/users/{admin.id}", headers=auth(admin), json=body)
    assert r.status_code == 400
    db.session.expire_all()
    u = db.session.get(User, admin.id)
    assert (u.role, u.status) == ("admin", "active")
    # unchanged values are still accepted
    r = client.put(f"/api/v1/users/{admin.id}", headers=auth(admin), json={"role": "admin", "status": "active"})
    assert r.status_code == 200


def test_non_string_credentials_are_400(client, make):
    t = make.tenant()
    make.user(t, "admin", email="boss@example.com")
    r = client.post("/api/v1/auth/login", json={"email": 123, "password": "secret123"})
    assert r.status_code == 400
    assert r.get_json()["code"] == "validation_failed"
    r = client.post("/api/v1/auth/login", json={"email": "boss@example.com", "password": 12345678})
    assert r.status_code == 400


def test_tenant_read_and_admin_update(client, make, auth):
    t = make.tenant(name="Old name")
    admin, manager = make.user(t, "admin"), make.user(t, "manager")

    r = client.get("/api/v1/tenant", headers=auth(manager))
    assert r.get_json()["data"]["name"] == "Old name"
    assert client.put("/api/v1/tenant", headers=auth(manager), json={"name": "X"}).status_code == 403

    r = client.put("/api/v1/tenant", headers=auth(admin), json={"name": "New name", "plan": "premium"})
    assert r.status_code == 200
    assert r.get_json()["data"]["plan"] == "premium"
    assert client.put("/api/v1/tenant", headers=auth(admin), json={"plan": "platinum"}).status_code == 400


def test_tenant_stats_count_only_own_tenant(client, make, auth):
    t, other = make.tenant(), make.tenant()
    admin = make.user(t, "admin")
    dep = make.department(t)
    pos = make.position(t, dep)
    make.employee(t, dep, pos)
    make.employee(t, dep, pos, status="inactive")
    make.employee(other)
    make.user(other, "admin")

    r = client.get("/api/v1/tenant/stats", headers=auth(admin))
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["tenant"]["id"] == t.id
    assert data["stats"] == {
        "users": 1, "employees": 2, "active_employees": 1, "departments": 1,
        "positions": 1, "movements": 0, "pending_movements": 0,
    }
    manager = make.user(t, "manager", departments=[dep])
    assert client.get("/api/v1/tenant/stats", headers=auth(manager)).status_code == 403
