"""Rows of one tenant must be invisible to every other tenant, whatever the role."""
import pytest

from hrcore_api.models.movement import Movement
from hrcore_api.extensions import db


@pytest.fixture
def two_tenants(make):
    a, b = make.tenant(name="A"), make.tenant(name="B")
    dep_b = make.department(b, name="Finance")
    pos_b = make.position(b, dep_b, title="Analyst")
    st_b = make.salary_table(b, pos_b)
    emp_b = make.employee(b, dep_b, pos_b)
    mov_b = Movement(tenant_id=b.id, employee_id=emp_b.id, type="merit",
                     previous_value={"salary": 1500}, new_value={"salary": 1700})
    db.session.add(mov_b)
    db.session.commit()
    user_b = make.user(b, "manager")
    return {
        "admin_a": make.user(a, "admin"),
        "director_a": make.user(a, "director"),
        "departments": dep_b.id,
        "positions": pos_b.id,
        "salary-tables": st_b.id,
        "employees": emp_b.id,
        "movements": mov_b.id,
        "users": user_b.id,
    }


RESOURCES = ("departments", "positions", "salary-tables", "employees", "movements")


@pytest.mark.parametrize("resource", RESOURCES)
def test_lists_only_show_own_tenant(client, auth, two_tenants, resource):
    r = client.get(f"/api/v1/{resource}", headers=auth(two_tenants["director_a"]))
    assert r.status_code == 200
    body = r.get_json()
    assert body["data"] == []
    assert body["meta"]["total"] == 0


@pytest.mark.parametrize("resource", RESOURCES + ("users",))
def test_foreign_ids_look_absent(client, auth, two_tenants, resource):
    r = client.get(f"/api/v1/{resource}/{two_tenants[resource]}", headers=auth(two_tenants["admin_a"]))
    assert r.status_code == 404
    assert r.get_json()["code"] == "not_found"


@pytest.mark.parametrize("resource", ("departments", "positions", "salary-tables", "employees", "users"))
def test_foreign_ids_cannot_be_updated_or_deleted(client, auth, two_tenants, resource):
    headers = auth(two_tenants["admin_a"])
    rid = two_tenants[resource]
    assert client.put(f"/api/v1/{resource}/{rid}", headers=headers, json={"name": "x"}).status_code == 404
    assert client.delete(f"/api/v1/{resource}/{rid}", headers=headers).status_code == 404


def test_foreign_movement_cannot_be_decided(client, auth, two_tenants):
    headers = auth(two_tenants["admin_a"])
    mid = two_tenants["movements"]
    assert client.post(f"/api/v1/movements/{mid}/approve", headers=headers).status_code == 404
    assert client.post(f"/api/v1/movements/{mid}/reject", headers=headers, json={}).status_code == 404
    db.session.expire_all()
    assert db.session.get(Movement, mid).status == "pending"


def test_cannot_reference_foreign_rows_on_create(client, auth, two_tenants):
    headers = auth(two_tenants["admin_a"])
    r = client.post("/api/v1/employees", headers=headers, json={
        "name": "Eve", "email": "eve@a.io", "national_id": "98765432100",
        "department_id": two_tenants["departments"],
    })
    assert r.status_code == 404

    r = client.post("/api/v1/movements", headers=headers, json={
        "employee_id": two_tenants["employees"], "type": "merit",
        "previous_value": {"salary": 1}, "new_value": {"salary": 2},
    })
    assert r.status_code == 404


def test_same_natural_keys_allowed_across_tenants(client, auth, make):
    a, b = make.tenant(), make.tenant()
    payload = {"name": "Operations"}
    assert client.post("/api/v1/departments", headers=auth(make.user(a, "admin")), json=payload).status_code == 201
    assert client.post("/api/v1/departments", headers=auth(make.user(b, "admin")), json=payload).status_code == 201


def test_dashboard_ignores_other_tenants(client, auth, two_tenants):
    r = client.get("/api/v1/dashboard/summary", headers=auth(two_tenants["director_a"]))
    data = r.get_json()["data"]
    assert data["total_employees"] == 0
    assert data["pending_movements"] == 0
