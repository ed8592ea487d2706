# hrcore_api/blueprints/movements.py
from __future__ import annotations

from flask import Blueprint, request

from hrcore_api.models.employee import Employee
from hrcore_api.models.movement import Movement, MOVEMENT_TYPES, MOVEMENT_STATUSES
from hrcore_api.common.auth import requires_roles, current_ctx
from hrcore_api.common.errors import ValidationFailed
from hrcore_api.common.http import ok, json_body
from hrcore_api.common.paging import ListSpec, parse_int, parse_date
from hrcore_api.common.scoping import scope_query
from hrcore_api.services import movements as svc

bp = Blueprint("movements", __name__, url_prefix="/api/v1/movements")


def _row(m: Movement):
    return {
        "id": m.id,
        "tenant_id": m.tenant_id,
        "employee_id": m.employee_id,
        "employee_name": m.employee.name if m.employee else None,
        "department_id": m.employee.department_id if m.employee else None,
        "type": m.type,
        "effective_date": m.effective_date.isoformat() if m.effective_date else None,
        "previous_value": m.previous_value,
        "new_value": m.new_value,
        "reason": m.reason,
        "notes": m.notes,
        "status": m.status,
        "created_by_id": m.created_by_id,
        "approver_id": m.approver_id,
        "decided_at": m.decided_at.isoformat() if m.decided_at else None,
        "created_at": m.created_at.isoformat() if m.created_at else None,
        "updated_at": m.updated_at.isoformat() if m.updated_at else None,
    }


def _one_of(allowed):
    def parser(raw, name):
        v = str(raw).strip().lower()
        if v not in allowed:
            raise ValidationFailed(f"{name} must be one of {', '.join(allowed)}")
        return v
    return parser


@bp.get("")
@requires_roles()
def list_movements():
    ctx = current_ctx()
    spec = ListSpec.from_args(
        request.args,
        filters={
            "employee_id": parse_int,
            "type": _one_of(MOVEMENT_TYPES),
            "status": _one_of(MOVEMENT_STATUSES),
            "date_from": parse_date,
            "date_to": parse_date,
        },
        sortable=("id", "effective_date", "type", "status", "created_at"),
        default_size=10,
    )
    date_from, date_to = spec.get("date_from"), spec.get("date_to")
    if date_from and date_to and date_from > date_to:
        raise ValidationFailed("date_from must be <= date_to")

    qry = scope_query(
        Movement.query.join(Employee, Movement.employee_id == Employee.id),
        ctx, Movement, Employee.department_id,
    )
    if spec.get("employee_id") is not None:
        qry = qry.filter(Movement.employee_id == spec.get("employee_id"))
    if spec.get("type"):
        qry = qry.filter(Movement.type == spec.get("type"))
    if spec.get("status"):
        qry = qry.filter(Movement.status == spec.get("status"))
    if date_from:
        qry = qry.filter(Movement.effective_date >= date_from)
    if date_to:
        qry = qry.filter(Movement.effective_date <= date_to)

    qry = spec.search(qry, Employee.name, Movement.reason)
    qry = spec.order(qry, {
        "id": Movement.id,
        "effective_date": Movement.effective_date,
        "type": Movement.type,
        "status": Movement.status,
        "created_at": Movement.created_at,
    }, default=[(Movement.effective_date, False), (Movement.id, False)])

    items, meta = spec.paginate(qry)
    return ok([_row(i) for i in items], **meta)


@bp.get("/<int:movement_id>")
@requires_roles()
def get_movement(movement_id: int):
    return ok(_row(svc.get_movement(current_ctx(), movement_id)))


@bp.post("")
@requires_roles(*svc.CREATE_ROLES)
def create_movement():
    m = svc.create_movement(current_ctx(), json_body())
    msg = "Movement approved" if m.status == "approved" else "Movement submitted for approval"
    return ok(_row(m), 201, message=msg)


@bp.put("/<int:movement_id>")
@requires_roles(*svc.CREATE_ROLES)
def update_movement(movement_id: int):
    m = svc.update_movement(current_ctx(), movement_id, json_body())
    return ok(_row(m), message="Movement updated")


@bp.post("/<int:movement_id>/approve")
@requires_roles(*svc.DECIDE_ROLES)
def approve_movement(movement_id: int):
    m = svc.approve_movement(current_ctx(), movement_id)
    return ok(_row(m), message="Movement approved")


@bp.post("/<int:movement_id>/reject")
@requires_roles(*svc.DECIDE_ROLES)
def reject_movement(movement_id: int):
    d = json_body()
    m = svc.reject_movement(current_ctx(), movement_id, d.get("reason"))
    return ok(_row(m), message="Movement rejected")
