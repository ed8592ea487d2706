# hrcore_api/services/movements.py
"""
Movement workflow.

    pending ──approve──▶ approved   (new_value applied to the employee)
       │
       └──reject───▶ rejected

``approved`` and ``rejected`` are terminal. Every transition out of
``pending`` is a compare-and-swap UPDATE on ``status = 'pending'``, so of two
concurrent deciders exactly one sees a row count of 1; the other gets
InvalidStateTransition. The status change and the employee mutation are
committed together or rolled back together.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import update

from hrcore_api.common.errors import InvalidStateTransition, NotFound, ValidationFailed
from hrcore_api.common.paging import parse_date, parse_money, parse_text
from hrcore_api.common.scoping import ensure_department_access, ensure_transfer_access, get_scoped
from hrcore_api.extensions import db
from hrcore_api.models.employee import Employee, WORK_MODALITIES
from hrcore_api.models.master import Department, Position
from hrcore_api.models.movement import Movement, MOVEMENT_TYPES

log = logging.getLogger(__name__)

CREATE_ROLES = ("admin", "director", "manager")
DECIDE_ROLES = ("admin", "director")
AUTO_APPROVE_ROLES = frozenset({"admin", "director"})

# new_value keys each type needs in order to be applied
REQUIRED_KEYS = {
    "promotion": ("position_id", "salary"),
    "transfer": ("department_id",),
    "merit": ("salary",),
    "equalization": ("salary",),
    "modality_change": ("work_modality",),
    "hours_change": ("weekly_hours",),
}

MAX_WEEKLY_HOURS = 168


# ---------- value helpers ----------

def _in_tenant(model, obj_id, tenant_id, label):
    obj = db.session.get(model, obj_id) if obj_id is not None else None
    if obj is None or obj.tenant_id != tenant_id:
        raise NotFound(f"{label} not found")
    return obj


def _salary(val) -> Decimal:
    return parse_money(val, "salary", required=True)


def _int(val, name) -> int:
    if isinstance(val, bool):
        raise ValidationFailed(f"{name} must be integer")
    try:
        return int(val)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{name} must be integer")


def _hours(val) -> int:
    hours = _int(val, "weekly_hours")
    if not 1 <= hours <= MAX_WEEKLY_HOURS:
        raise ValidationFailed(f"weekly_hours must be between 1 and {MAX_WEEKLY_HOURS}")
    return hours


def _modality(val) -> str:
    modality = (str(val) if val is not None else "").strip().lower()
    if modality not in WORK_MODALITIES:
        raise ValidationFailed(f"work_modality must be one of {', '.join(WORK_MODALITIES)}")
    return modality


def validate_snapshots(tenant_id: int, mtype: str, previous_value, new_value) -> dict:
    """Check type and snapshots; return new_value with the applied keys normalized."""
    if mtype not in MOVEMENT_TYPES:
        raise ValidationFailed(f"type must be one of {', '.join(MOVEMENT_TYPES)}")
    if not isinstance(previous_value, dict) or not previous_value:
        raise ValidationFailed("previous_value is required and cannot be empty")
    if not isinstance(new_value, dict) or not new_value:
        raise ValidationFailed("new_value is required and cannot be empty")

    missing = [k for k in REQUIRED_KEYS[mtype] if new_value.get(k) in (None, "")]
    if missing:
        raise ValidationFailed(f"new_value is missing {', '.join(missing)} for a {mtype}")

    cleaned = dict(new_value)
    if "position_id" in REQUIRED_KEYS[mtype]:
        cleaned["position_id"] = _in_tenant(Position, _int(new_value["position_id"], "position_id"),
                                            tenant_id, "Position").id
    if "department_id" in REQUIRED_KEYS[mtype]:
        cleaned["department_id"] = _in_tenant(Department, _int(new_value["department_id"], "department_id"),
                                              tenant_id, "Department").id
    if "salary" in REQUIRED_KEYS[mtype]:
        cleaned["salary"] = float(_salary(new_value["salary"]))
    if "work_modality" in REQUIRED_KEYS[mtype]:
        cleaned["work_modality"] = _modality(new_value["work_modality"])
    if "weekly_hours" in REQUIRED_KEYS[mtype]:
        cleaned["weekly_hours"] = _hours(new_value["weekly_hours"])
    return cleaned


# ---------- effect ----------

def apply_effect(m: Movement, emp: Employee):
    """Write the movement's new_value onto the employee (no commit)."""
    new = m.new_value or {}
    if m.type == "promotion":
        emp.position_id = _in_tenant(Position, new.get("position_id"), m.tenant_id, "Position").id
        emp.salary = _salary(new.get("salary"))
    elif m.type == "transfer":
        emp.department_id = _in_tenant(Department, new.get("department_id"), m.tenant_id, "Department").id
    elif m.type in ("merit", "equalization"):
        emp.salary = _salary(new.get("salary"))
    elif m.type == "modality_change":
        emp.work_modality = _modality(new.get("work_modality"))
    elif m.type == "hours_change":
        emp.weekly_hours = _hours(new.get("weekly_hours"))
    else:
        raise ValidationFailed(f"Unknown movement type {m.type!r}")
    db.session.flush()


# ---------- access ----------

def get_movement(ctx, movement_id: int, action="read", allowed_roles=None) -> Movement:
    m = get_scoped(Movement, movement_id, ctx, "Movement")
    ensure_department_access(ctx, m.employee.department_id, action, allowed_roles)
    return m


def _check_create_scope(ctx, emp: Employee, mtype: str, new_value: dict):
    if mtype == "transfer":
        ensure_transfer_access(ctx, emp.department_id, new_value["department_id"], "create", CREATE_ROLES)
    else:
        ensure_department_access(ctx, emp.department_id, "create", CREATE_ROLES)


def _cas(ctx, movement_id: int, **values) -> None:
    res = db.session.execute(
        update(Movement)
        .where(
            Movement.id == movement_id,
            Movement.tenant_id == ctx.tenant_id,
            Movement.status == "pending",
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise InvalidStateTransition("Movement is no longer pending")


# ---------- transitions ----------

def create_movement(ctx, data: dict) -> Movement:
    employee_id = data.get("employee_id")
    if employee_id in (None, ""):
        raise ValidationFailed("employee_id is required")
    emp = get_scoped(Employee, _int(employee_id, "employee_id"), ctx, "Employee")
    if emp.status == "inactive":
        raise ValidationFailed("Employee is inactive")

    mtype = parse_text(data.get("type"), "type", lower=True)
    new_value = validate_snapshots(ctx.tenant_id, mtype, data.get("previous_value"), data.get("new_value"))
    _check_create_scope(ctx, emp, mtype, new_value)

    m = Movement(
        tenant_id=ctx.tenant_id,
        employee_id=emp.id,
        type=mtype,
        effective_date=parse_date(data.get("effective_date"), "effective_date") or datetime.utcnow().date(),
        previous_value=data["previous_value"],
        new_value=new_value,
        reason=parse_text(data.get("reason"), "reason") or None,
        notes=parse_text(data.get("notes"), "notes") or None,
        status="pending",
        created_by_id=ctx.user_id,
    )

    try:
        db.session.add(m)
        if ctx.role in AUTO_APPROVE_ROLES:
            m.status = "approved"
            m.approver_id = ctx.user_id
            m.decided_at = datetime.utcnow()
            db.session.flush()
            apply_effect(m, emp)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    log.info("movement created id=%s type=%s employee=%s status=%s tenant=%s",
             m.id, m.type, m.employee_id, m.status, m.tenant_id)
    return m


def update_movement(ctx, movement_id: int, data: dict) -> Movement:
    m = get_movement(ctx, movement_id, "update", CREATE_ROLES)
    if m.status != "pending":
        raise InvalidStateTransition(f"Cannot edit a movement in '{m.status}' status")

    mtype = parse_text(data.get("type"), "type", lower=True) or m.type
    previous_value = data.get("previous_value", m.previous_value)
    new_value = validate_snapshots(ctx.tenant_id, mtype, previous_value, data.get("new_value", m.new_value))
    _check_create_scope(ctx, m.employee, mtype, new_value)

    values = {"type": mtype, "previous_value": previous_value, "new_value": new_value}
    if "effective_date" in data:
        values["effective_date"] = parse_date(data.get("effective_date"), "effective_date") or m.effective_date
    if "reason" in data:
        values["reason"] = parse_text(data.get("reason"), "reason") or None
    if "notes" in data:
        values["notes"] = parse_text(data.get("notes"), "notes") or None

    try:
        _cas(ctx, m.id, **values)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    db.session.refresh(m)
    return m


def approve_movement(ctx, movement_id: int) -> Movement:
    m = get_movement(ctx, movement_id, "update", DECIDE_ROLES)
    try:
        _cas(ctx, m.id, status="approved", approver_id=ctx.user_id, decided_at=datetime.utcnow())
        # apply the row the swap just won, not the copy read before it
        db.session.refresh(m)
        apply_effect(m, m.employee)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    db.session.refresh(m)
    log.info("movement approved id=%s type=%s employee=%s by=%s", m.id, m.type, m.employee_id, ctx.user_id)
    return m


def reject_movement(ctx, movement_id: int, reason: str | None = None) -> Movement:
    m = get_movement(ctx, movement_id, "update", DECIDE_ROLES)
    notes = m.notes
    reason = parse_text(reason, "reason")
    if reason:
        line = f"Rejection reason: {reason}"
        notes = f"{notes}\n\n{line}" if notes else line
    try:
        _cas(ctx, m.id, status="rejected", approver_id=ctx.user_id, decided_at=datetime.utcnow(), notes=notes)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    db.session.refresh(m)
    log.info("movement rejected id=%s employee=%s by=%s", m.id, m.employee_id, ctx.user_id)
    return m
