# hrcore_api/blueprints/employees.py
from __future__ import annotations

from datetime import date

from flask import Blueprint, request, current_app

from hrcore_api.extensions import db
from hrcore_api.models.employee import Employee, WORK_MODALITIES, EMPLOYEE_STATUSES
from hrcore_api.models.master import Department, Position
from hrcore_api.models.movement import Movement
from hrcore_api.common.auth import requires_roles, current_ctx
from hrcore_api.common.crypto import lookup_hash, mask, normalize_national_id
from hrcore_api.common.errors import ValidationFailed, DuplicateEntity
from hrcore_api.common.http import ok, json_body
from hrcore_api.common.paging import ListSpec, parse_int, parse_date, parse_money, parse_text, lower_text
from hrcore_api.common.scoping import (
    scope_query, get_scoped, ensure_department_access, ensure_transfer_access,
)

bp = Blueprint("employees", __name__, url_prefix="/api/v1/employees")

WRITE_ROLES = ("admin", "director", "manager")


# ---------- helpers ----------
def _row(e: Employee):
    return {
        "id": e.id,
        "tenant_id": e.tenant_id,
        "name": e.name,
        "email": e.email,
        "national_id": mask(e.national_id),
        "birth_date": e.birth_date.isoformat() if e.birth_date else None,
        "department_id": e.department_id,
        "department_name": e.department.name if e.department else None,
        "position_id": e.position_id,
        "position_title": e.position.title if e.position else None,
        "salary": float(e.salary) if e.salary is not None else None,
        "admission_date": e.admission_date.isoformat() if e.admission_date else None,
        "termination_date": e.termination_date.isoformat() if e.termination_date else None,
        "work_modality": e.work_modality,
        "weekly_hours": e.weekly_hours,
        "status": e.status,
        "created_at": e.created_at.isoformat() if e.created_at else None,
        "updated_at": e.updated_at.isoformat() if e.updated_at else None,
    }


def _movement_row(m: Movement):
    return {
        "id": m.id,
        "type": m.type,
        "effective_date": m.effective_date.isoformat() if m.effective_date else None,
        "previous_value": m.previous_value,
        "new_value": m.new_value,
        "status": m.status,
        "reason": m.reason,
        "decided_at": m.decided_at.isoformat() if m.decided_at else None,
    }


def _email(val):
    email = parse_text(val, "email", lower=True)
    if not email or "@" not in email:
        raise ValidationFailed("email must be a valid address")
    return email


def _national_id(val):
    raw = (str(val) if val is not None else "").strip()
    if len(normalize_national_id(raw)) < 5:
        raise ValidationFailed("national_id is required")
    return raw


def _salary(val):
    return parse_money(val, "salary")


def _choice(val, allowed, name):
    v = parse_text(val, name, lower=True)
    if v not in allowed:
        raise ValidationFailed(f"{name} must be one of {', '.join(allowed)}")
    return v


def _hours(val):
    hours = parse_int(val, "weekly_hours")
    if hours is None or not 1 <= hours <= 168:
        raise ValidationFailed("weekly_hours must be between 1 and 168")
    return hours


def _check_dates(birth, admission, termination):
    today = date.today()
    if birth and birth > today:
        raise ValidationFailed("birth_date cannot be in the future")
    if birth and admission and admission < birth:
        raise ValidationFailed("admission_date cannot precede birth_date")
    if admission and termination and termination < admission:
        raise ValidationFailed("termination_date cannot precede admission_date")


def _check_unique(ctx, email=None, national_id=None, exclude_id=None):
    if email is not None:
        q = Employee.query.filter(Employee.tenant_id == ctx.tenant_id, db.func.lower(Employee.email) == email)
        if exclude_id is not None:
            q = q.filter(Employee.id != exclude_id)
        if q.first():
            raise DuplicateEntity("An employee with this email already exists")
    if national_id is not None:
        q = Employee.query.filter_by(tenant_id=ctx.tenant_id, national_id_hash=lookup_hash(national_id))
        if exclude_id is not None:
            q = q.filter(Employee.id != exclude_id)
        if q.first():
            raise DuplicateEntity("An employee with this national id already exists")


def _resolve_refs(ctx, department_id, position_id):
    if department_id is not None:
        get_scoped(Department, department_id, ctx, "Department")
    if position_id is not None:
        get_scoped(Position, position_id, ctx, "Position")


# ---------- routes ----------
@bp.get("")
@requires_roles()
def list_employees():
    ctx = current_ctx()
    spec = ListSpec.from_args(
        request.args,
        filters={
            "department_id": parse_int,
            "position_id": parse_int,
            "status": lower_text,
            "work_modality": lower_text,
        },
        sortable=("id", "name", "email", "admission_date", "salary", "created_at"),
    )
    qry = scope_query(Employee.query, ctx, Employee, Employee.department_id)

    if spec.get("department_id") is not None:
        qry = qry.filter(Employee.department_id == spec.get("department_id"))
    if spec.get("position_id") is not None:
        qry = qry.filter(Employee.position_id == spec.get("position_id"))
    if spec.get("status"):
        qry = qry.filter(Employee.status == spec.get("status"))
    if spec.get("work_modality"):
        qry = qry.filter(Employee.work_modality == spec.get("work_modality"))

    qry = spec.search(qry, Employee.name, Employee.email)
    qry = spec.order(qry, {
        "id": Employee.id,
        "name": Employee.name,
        "email": Employee.email,
        "admission_date": Employee.admission_date,
        "salary": Employee.salary,
        "created_at": Employee.created_at,
    }, default=[(Employee.name, True)])

    items, meta = spec.paginate(qry)
    return ok([_row(i) for i in items], **meta)


@bp.get("/<int:emp_id>")
@requires_roles()
def get_employee(emp_id: int):
    ctx = current_ctx()
    e = get_scoped(Employee, emp_id, ctx, "Employee")
    ensure_department_access(ctx, e.department_id)
    return ok(_row(e))


@bp.get("/<int:emp_id>/movements")
@requires_roles()
def employee_movements(emp_id: int):
    ctx = current_ctx()
    e = get_scoped(Employee, emp_id, ctx, "Employee")
    ensure_department_access(ctx, e.department_id)
    rows = e.movements.filter(Movement.tenant_id == ctx.tenant_id).order_by(
        Movement.effective_date.desc(), Movement.id.desc()
    ).all()
    return ok([_movement_row(m) for m in rows], count=len(rows))


@bp.post("")
@requires_roles(*WRITE_ROLES)
def create_employee():
    ctx = current_ctx()
    d = json_body()

    name = parse_text(d.get("name"), "name")
    if not name:
        raise ValidationFailed("name is required")
    email = _email(d.get("email"))
    national_id = _national_id(d.get("national_id"))

    dep_id = parse_int(d.get("department_id"), "department_id")
    pos_id = parse_int(d.get("position_id"), "position_id")
    _resolve_refs(ctx, dep_id, pos_id)
    ensure_department_access(ctx, dep_id, "create", WRITE_ROLES)

    birth = parse_date(d.get("birth_date"), "birth_date")
    admission = parse_date(d.get("admission_date"), "admission_date") or date.today()
    termination = parse_date(d.get("termination_date"), "termination_date")
    _check_dates(birth, admission, termination)
    _check_unique(ctx, email=email, national_id=national_id)

    e = Employee(
        tenant_id=ctx.tenant_id,
        name=name,
        email=email,
        birth_date=birth,
        department_id=dep_id,
        position_id=pos_id,
        salary=_salary(d.get("salary")),
        admission_date=admission,
        termination_date=termination,
        work_modality=_choice(d.get("work_modality") or "on_site", WORK_MODALITIES, "work_modality"),
        weekly_hours=_hours(d["weekly_hours"]) if d.get("weekly_hours") not in (None, "") else 40,
        status=_choice(d.get("status") or "active", EMPLOYEE_STATUSES, "status"),
    )
    e.national_id = national_id
    db.session.add(e)
    db.session.commit()
    current_app.logger.info("employee created id=%s tenant=%s", e.id, ctx.tenant_id)
    return ok(_row(e), 201, message="Employee created")


@bp.put("/<int:emp_id>")
@requires_roles(*WRITE_ROLES)
def update_employee(emp_id: int):
    ctx = current_ctx()
    e = get_scoped(Employee, emp_id, ctx, "Employee")
    ensure_department_access(ctx, e.department_id, "update", WRITE_ROLES)
    d = json_body()

    if "department_id" in d:
        dep_id = parse_int(d.get("department_id"), "department_id")
        _resolve_refs(ctx, dep_id, None)
        ensure_transfer_access(ctx, e.department_id, dep_id, "update", WRITE_ROLES)
        e.department_id = dep_id
    if "position_id" in d:
        pos_id = parse_int(d.get("position_id"), "position_id")
        _resolve_refs(ctx, None, pos_id)
        e.position_id = pos_id

    if "name" in d:
        name = parse_text(d.get("name"), "name")
        if not name:
            raise ValidationFailed("name cannot be empty")
        e.name = name
    if "email" in d:
        email = _email(d.get("email"))
        _check_unique(ctx, email=email, exclude_id=e.id)
        e.email = email
    if "national_id" in d:
        national_id = _national_id(d.get("national_id"))
        _check_unique(ctx, national_id=national_id, exclude_id=e.id)
        e.national_id = national_id

    birth = parse_date(d["birth_date"], "birth_date") if "birth_date" in d else e.birth_date
    admission = parse_date(d["admission_date"], "admission_date") if "admission_date" in d else e.admission_date
    termination = (parse_date(d["termination_date"], "termination_date")
                   if "termination_date" in d else e.termination_date)
    _check_dates(birth, admission, termination)
    e.birth_date, e.admission_date, e.termination_date = birth, admission, termination

    if "salary" in d:
        e.salary = _salary(d.get("salary"))
    if "work_modality" in d:
        e.work_modality = _choice(d.get("work_modality"), WORK_MODALITIES, "work_modality")
    if "weekly_hours" in d:
        e.weekly_hours = _hours(d.get("weekly_hours"))
    if "status" in d:
        e.status = _choice(d.get("status"), EMPLOYEE_STATUSES, "status")

    db.session.commit()
    return ok(_row(e), message="Employee updated")


@bp.delete("/<int:emp_id>")
@requires_roles("admin")
def delete_employee(emp_id: int):
    """Soft delete: the row stays for movement history."""
    ctx = current_ctx()
    e = get_scoped(Employee, emp_id, ctx, "Employee")
    e.status = "inactive"
    if e.termination_date is None:
        e.termination_date = date.today()
    db.session.commit()
    current_app.logger.info("employee deactivated id=%s tenant=%s", e.id, ctx.tenant_id)
    return ok(_row(e), message="Employee deactivated")
