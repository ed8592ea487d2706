from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlalchemy.orm.attributes import set_committed_value

from hrcore_api.common.auth import TenantContext
from hrcore_api.common.errors import InvalidStateTransition
from hrcore_api.extensions import db
from hrcore_api.models.employee import Employee
from hrcore_api.models.master import Position
from hrcore_api.models.movement import Movement
from hrcore_api.services import movements as svc


@pytest.fixture
def org(make):
    t = make.tenant()
    eng = make.department(t, name="Engineering")
    sales = make.department(t, name="Sales")
    junior = make.position(t, eng, title="Developer", level="junior")
    senior = make.position(t, eng, title="Developer", level="senior")
    emp = make.employee(t, eng, junior, salary="3000")
    return {
        "tenant": t, "eng": eng, "sales": sales, "junior": junior, "senior": senior, "emp": emp,
        "admin": make.user(t, "admin"),
        "director": make.user(t, "director"),
        "manager": make.user(t, "manager", departments=[eng]),
        "bp": make.user(t, "business_partner", departments=[eng]),
    }


def _promotion(org, salary=4500):
    return {
        "employee_id": org["emp"].id,
        "type": "promotion",
        "effective_date": "2026-01-01",
        "previous_value": {"position_id": org["junior"].id, "salary": 3000},
        "new_value": {"position_id": org["senior"].id, "salary": salary},
        "reason": "Outstanding year",
    }


def _employee(emp_id):
    db.session.expire_all()
    return db.session.get(Employee, emp_id)


def test_manager_creates_pending_movement_without_touching_employee(client, auth, org):
    r = client.post("/api/v1/movements", headers=auth(org["manager"]), json=_promotion(org))
    assert r.status_code == 201
    m = r.get_json()["data"]
    assert m["status"] == "pending"
    assert m["approver_id"] is None
    assert m["created_by_id"] == org["manager"].id

    e = _employee(org["emp"].id)
    assert e.position_id == org["junior"].id
    assert e.salary == Decimal("3000.00")


@pytest.mark.parametrize("role", ["admin", "director"])
def test_admin_and_director_auto_approve_and_apply(client, auth, org, role):
    r = client.post("/api/v1/movements", headers=auth(org[role]), json=_promotion(org))
    assert r.status_code == 201
    m = r.get_json()["data"]
    assert m["status"] == "approved"
    assert m["approver_id"] == org[role].id
    assert m["decided_at"] is not None

    e = _employee(org["emp"].id)
    assert e.position_id == org["senior"].id
    assert e.salary == Decimal("4500.00")


def test_business_partner_cannot_create_movements(client, auth, org):
    r = client.post("/api/v1/movements", headers=auth(org["bp"]), json=_promotion(org))
    assert r.status_code == 403


def test_approve_applies_effect(client, auth, org):
    mid = client.post("/api/v1/movements", headers=auth(org["manager"]), json=_promotion(org)).get_json()["data"]["id"]

    r = client.post(f"/api/v1/movements/{mid}/approve", headers=auth(org["director"]))
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["status"] == "approved"
    assert data["approver_id"] == org["director"].id

    e = _employee(org["emp"].id)
    assert e.position_id == org["senior"].id
    assert e.salary == Decimal("4500.00")


def test_manager_cannot_approve(client, auth, org):
    mid = client.post("/api/v1/movements", headers=auth(org["manager"]), json=_promotion(org)).get_json()["data"]["id"]
    assert client.post(f"/api/v1/movements/{mid}/approve", headers=auth(org["manager"])).status_code == 403


def test_reject_records_reason_and_leaves_employee(client, auth, org):
    payload = dict(_promotion(org), notes="Discussed with HR")
    mid = client.post("/api/v1/movements", headers=auth(org["manager"]), json=payload).get_json()["data"]["id"]

    r = client.post(f"/api/v1/movements/{mid}/reject", headers=auth(org["admin"]), json={"reason": "Budget freeze"})
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["status"] == "rejected"
    assert data["notes"] == "Discussed with HR\n\nRejection reason: Budget freeze"
    assert data["approver_id"] == org["admin"].id

    e = _employee(org["emp"].id)
    assert e.position_id == org["junior"].id


@pytest.mark.parametrize("first,second", [
    ("approve", "approve"), ("approve", "reject"), ("reject", "approve"), ("reject", "reject"),
])
def test_decided_movements_are_terminal(client, auth, org, first, second):
    mid = client.post("/api/v1/movements", headers=auth(org["manager"]), json=_promotion(org)).get_json()["data"]["id"]
    headers = auth(org["director"])
    assert client.post(f"/api/v1/movements/{mid}/{first}", headers=headers, json={}).status_code == 200

    r = client.post(f"/api/v1/movements/{mid}/{second}", headers=headers, json={})
    assert r.status_code == 409
    assert r.get_json()["code"] == "invalid_state_transition"


def test_update_only_while_pending(client, auth, org):
    mid = client.post("/api/v1/movements", headers=auth(org["manager"]), json=_promotion(org)).get_json()["data"]["id"]

    r = client.put(f"/api/v1/movements/{mid}", headers=auth(org["manager"]),
                   json={"new_value": {"position_id": org["senior"].id, "salary": 5000}, "reason": "Revised"})
    assert r.status_code == 200
    assert r.get_json()["data"]["new_value"]["salary"] == 5000
    assert r.get_json()["data"]["reason"] == "Revised"

    client.post(f"/api/v1/movements/{mid}/reject", headers=auth(org["director"]), json={})
    r = client.put(f"/api/v1/movements/{mid}", headers=auth(org["manager"]), json={"reason": "Again"})
    assert r.status_code == 409


def test_stale_pending_read_loses_the_race(app, org):
    """Two deciders read the row as pending; only the first compare-and-swap wins."""
    ctx = TenantContext(org["director"].id, org["tenant"].id, "director", 0, frozenset())
    m = svc.create_movement(TenantContext(org["manager"].id, org["tenant"].id, "manager", 0,
                                          frozenset({org["eng"].id})), _promotion(org))
    assert m.status == "pending"

    # a concurrent request decides the movement behind this session's back
    db.session.execute(
        update(Movement).where(Movement.id == m.id).values(status="rejected")
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    assert m.status == "rejected"
    set_committed_value(m, "status", "pending")   # stale in-memory view, not dirty

    with pytest.raises(InvalidStateTransition):
        svc.approve_movement(ctx, m.id)

    db.session.expire_all()
    assert db.session.get(Movement, m.id).status == "rejected"
    assert db.session.get(Employee, org["emp"].id).position_id == org["junior"].id


def test_approval_applies_the_snapshot_it_committed(app, org):
    """An edit committed between the approver's read and its swap is what gets applied."""
    ctx = TenantContext(org["director"].id, org["tenant"].id, "director", 0, frozenset())
    m = svc.create_movement(TenantContext(org["manager"].id, org["tenant"].id, "manager", 0,
                                          frozenset({org["eng"].id})), _promotion(org, salary=4500))
    old_value = dict(m.new_value)

    # the manager's edit lands after the approver loaded the movement
    db.session.execute(
        update(Movement).where(Movement.id == m.id)
        .values(new_value={"position_id": org["senior"].id, "salary": 9999.0})
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    assert m.new_value["salary"] == 9999.0
    set_committed_value(m, "new_value", old_value)

    approved = svc.approve_movement(ctx, m.id)

    assert approved.status == "approved"
    assert approved.new_value["salary"] == 9999.0
    e = _employee(org["emp"].id)
    assert e.salary == Decimal("9999")
    assert e.position_id == org["senior"].id


def test_failed_apply_rolls_back_approval(client, auth, org, make):
    doomed = make.position(org["tenant"], org["eng"], title="Architect", level="senior")
    payload = _promotion(org)
    payload["new_value"]["position_id"] = doomed.id
    mid = client.post("/api/v1/movements", headers=auth(org["manager"]), json=payload).get_json()["data"]["id"]

    db.session.delete(doomed)
    db.session.commit()

    r = client.post(f"/api/v1/movements/{mid}/approve", headers=auth(org["director"]))
    assert r.status_code == 404

    db.session.expire_all()
    m = db.session.get(Movement, mid)
    assert m.status == "pending"
    assert m.approver_id is None
    e = db.session.get(Employee, org["emp"].id)
    assert e.position_id == org["junior"].id
    assert e.salary == Decimal("3000.00")


@pytest.mark.parametrize("mtype,new_value,check", [
    ("transfer", lambda o: {"department_id": o["sales"].id}, lambda e, o: e.department_id == o["sales"].id),
    ("merit", lambda o: {"salary": "3300.50"}, lambda e, o: e.salary == Decimal("3300.50")),
    ("equalization", lambda o: {"salary": 3100}, lambda e, o: e.salary == Decimal("3100.00")),
    ("modality_change", lambda o: {"work_modality": "remote"}, lambda e, o: e.work_modality == "remote"),
    ("hours_change", lambda o: {"weekly_hours": 30}, lambda e, o: e.weekly_hours == 30),
])
def test_each_type_applies_its_effect(client, auth, org, mtype, new_value, check):
    r = client.post("/api/v1/movements", headers=auth(org["director"]), json={
        "employee_id": org["emp"].id, "type": mtype,
        "previous_value": {"snapshot": True}, "new_value": new_value(org),
    })
    assert r.status_code == 201, r.get_json()
    assert check(_employee(org["emp"].id), org)


@pytest.mark.parametrize("patch,status", [
    ({"type": "bonus"}, 400),
    ({"previous_value": {}}, 400),
    ({"new_value": {}}, 400),
    ({"new_value": {"salary": 4000}}, 400),          # promotion without position_id
    ({"new_value": {"position_id": 999999, "salary": 4000}}, 404),
    ({"employee_id": None}, 400),
])
def test_create_validation(client, auth, org, patch, status):
    payload = dict(_promotion(org), **patch)
    r = client.post("/api/v1/movements", headers=auth(org["manager"]), json=payload)
    assert r.status_code == status


@pytest.mark.parametrize("salary", ["NaN", "Infinity", "-Infinity", "abc", True])
def test_create_rejects_non_finite_salary(client, auth, org, salary):
    r = client.post("/api/v1/movements", headers=auth(org["manager"]), json=_promotion(org, salary=salary))
    assert r.status_code == 400
    assert r.get_json()["code"] == "validation_failed"
    assert Movement.query.count() == 0


@pytest.mark.parametrize("field,value", [("type", 7), ("reason", ["x"]), ("notes", {"a": 1})])
def test_create_rejects_non_string_fields(client, auth, org, field, value):
    payload = dict(_promotion(org), **{field: value})
    r = client.post("/api/v1/movements", headers=auth(org["manager"]), json=payload)
    assert r.status_code == 400
    assert r.get_json()["code"] == "validation_failed"


def test_manager_transfer_needs_both_departments(client, auth, org):
    r = client.post("/api/v1/movements", headers=auth(org["manager"]), json={
        "employee_id": org["emp"].id, "type": "transfer",
        "previous_value": {"department_id": org["eng"].id}, "new_value": {"department_id": org["sales"].id},
    })
    assert r.status_code == 403


def test_list_filters_and_default_order(client, auth, org):
    headers = auth(org["manager"])
    for day in ("2026-01-10", "2026-03-10", "2026-02-10"):
        client.post("/api/v1/movements", headers=headers, json=dict(_promotion(org), effective_date=day))

    r = client.get("/api/v1/movements", headers=headers)
    body = r.get_json()
    assert body["meta"]["size"] == 10
    assert [m["effective_date"] for m in body["data"]] == ["2026-03-10", "2026-02-10", "2026-01-10"]

    r = client.get("/api/v1/movements?date_from=2026-02-01&date_to=2026-02-28&status=pending", headers=headers)
    assert [m["effective_date"] for m in r.get_json()["data"]] == ["2026-02-10"]

    assert client.get("/api/v1/movements?status=maybe", headers=headers).status_code == 400

    r = client.get(f"/api/v1/employees/{org['emp'].id}/movements", headers=headers)
    assert r.get_json()["meta"]["count"] == 3


def test_out_of_scope_movements_hidden_from_manager(client, auth, make, org):
    other = make.employee(org["tenant"], org["sales"])
    r = client.post("/api/v1/movements", headers=auth(org["director"]), json={
        "employee_id": other.id, "type": "merit", "previous_value": {"salary": 1500}, "new_value": {"salary": 1600},
    })
    mid = r.get_json()["data"]["id"]

    assert client.get("/api/v1/movements", headers=auth(org["manager"])).get_json()["data"] == []
    assert client.get(f"/api/v1/movements/{mid}", headers=auth(org["manager"])).status_code == 403
