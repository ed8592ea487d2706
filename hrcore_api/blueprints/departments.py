# hrcore_api/blueprints/departments.py
from __future__ import annotations


from flask import Blueprint, request, current_app

from hrcore_api.extensions import db
from hrcore_api.models.master import Department, Position
from hrcore_api.models.employee import Employee
from hrcore_api.common.auth import requires_roles, current_ctx
from hrcore_api.common.errors import ValidationFailed, DuplicateEntity, DependentEntityExists
from hrcore_api.common.http import ok, json_body
from hrcore_api.common.paging import ListSpec, parse_int, parse_money, parse_text, lower_text
from hrcore_api.common.scoping import scope_query, get_scoped, ensure_department_access

bp = Blueprint("departments", __name__, url_prefix="/api/v1/departments")

WRITE_ROLES = ("admin", "director")
DEPARTMENT_STATUSES = ("active", "inactive")


# ---------- row shape ----------
def _row(x: Department):
    return {
        "id": x.id,
        "tenant_id": x.tenant_id,
        "name": x.name,
        "cost_center": x.cost_center,
        "budget": float(x.budget) if x.budget is not None else None,
        "manager_id": x.manager_id,
        "manager_name": x.manager.name if x.manager else None,
        "parent_id": x.parent_id,
        "parent_name": x.parent.name if x.parent else None,
        "status": x.status,
        "created_at": x.created_at.isoformat() if x.created_at else None,
        "updated_at": x.updated_at.isoformat() if x.updated_at else None,
    }


def _budget(val):
    return parse_money(val, "budget")


def _check_unique_name(ctx, name, exclude_id=None):
    q = Department.query.filter(
        Department.tenant_id == ctx.tenant_id,
        db.func.lower(Department.name) == name.lower(),
    )
    if exclude_id is not None:
        q = q.filter(Department.id != exclude_id)
    if q.first():
        raise DuplicateEntity("Department with same name already exists")


def _resolve_parent(ctx, obj: Department | None, parent_id):
    if parent_id is None:
        return None
    parent = get_scoped(Department, parent_id, ctx, "Parent department")
    if obj is not None:
        if parent.id == obj.id:
            raise ValidationFailed("A department cannot be its own parent")
        if obj.id in parent.ancestor_ids():
            raise ValidationFailed("parent_id would create a cycle in the department tree")
    return parent


def _resolve_manager(ctx, manager_id):
    if manager_id is None:
        return None
    return get_scoped(Employee, manager_id, ctx, "Manager employee")


# ---------- routes ----------
@bp.get("")
@requires_roles()
def list_departments():
    ctx = current_ctx()
    spec = ListSpec.from_args(
        request.args,
        filters={"status": lower_text, "parent_id": parse_int},
        sortable=("id", "name", "cost_center", "created_at", "status"),
    )
    qry = scope_query(Department.query, ctx, Department, Department.id)

    if spec.get("status"):
        qry = qry.filter(Department.status == spec.get("status"))
    if spec.get("parent_id") is not None:
        qry = qry.filter(Department.parent_id == spec.get("parent_id"))

    qry = spec.search(qry, Department.name, Department.cost_center)
    qry = spec.order(qry, {
        "id": Department.id,
        "name": Department.name,
        "cost_center": Department.cost_center,
        "created_at": Department.created_at,
        "status": Department.status,
    }, default=[(Department.name, True)])

    items, meta = spec.paginate(qry)
    return ok([_row(i) for i in items], **meta)


@bp.get("/<int:dep_id>")
@requires_roles()
def get_department(dep_id: int):
    ctx = current_ctx()
    x = get_scoped(Department, dep_id, ctx, "Department")
    ensure_department_access(ctx, x.id)
    return ok(_row(x))


@bp.post("")
@requires_roles(*WRITE_ROLES)
def create_department():
    ctx = current_ctx()
    data = json_body()
    name = parse_text(data.get("name"), "name")
    if not name:
        raise ValidationFailed("name is required")
    _check_unique_name(ctx, name)

    status = parse_text(data.get("status"), "status", lower=True) or "active"
    if status not in DEPARTMENT_STATUSES:
        raise ValidationFailed("status must be active/inactive")

    parent = _resolve_parent(ctx, None, parse_int(data.get("parent_id"), "parent_id"))
    manager = _resolve_manager(ctx, parse_int(data.get("manager_id"), "manager_id"))

    obj = Department(
        tenant_id=ctx.tenant_id,
        name=name,
        cost_center=parse_text(data.get("cost_center"), "cost_center") or None,
        budget=_budget(data.get("budget")),
        parent_id=parent.id if parent else None,
        manager_id=manager.id if manager else None,
        status=status,
    )
    db.session.add(obj)
    db.session.commit()
    current_app.logger.info("department created id=%s tenant=%s", obj.id, ctx.tenant_id)
    return ok(_row(obj), 201, message="Department created")


@bp.put("/<int:dep_id>")
@requires_roles(*WRITE_ROLES)
def update_department(dep_id: int):
    ctx = current_ctx()
    obj = get_scoped(Department, dep_id, ctx, "Department")
    data = json_body()

    if "name" in data:
        candidate = parse_text(data.get("name"), "name")
        if not candidate:
            raise ValidationFailed("name cannot be empty")
        _check_unique_name(ctx, candidate, exclude_id=obj.id)
        obj.name = candidate

    if "parent_id" in data:
        parent = _resolve_parent(ctx, obj, parse_int(data.get("parent_id"), "parent_id"))
        obj.parent_id = parent.id if parent else None

    if "manager_id" in data:
        manager = _resolve_manager(ctx, parse_int(data.get("manager_id"), "manager_id"))
        obj.manager_id = manager.id if manager else None

    if "cost_center" in data:
        obj.cost_center = parse_text(data.get("cost_center"), "cost_center") or None
    if "budget" in data:
        obj.budget = _budget(data.get("budget"))
    if "status" in data:
        status = parse_text(data.get("status"), "status", lower=True) or ""
        if status not in DEPARTMENT_STATUSES:
            raise ValidationFailed("status must be active/inactive")
        obj.status = status

    db.session.commit()
    return ok(_row(obj), message="Department updated")


@bp.delete("/<int:dep_id>")
@requires_roles("admin")
def delete_department(dep_id: int):
    ctx = current_ctx()
    obj = get_scoped(Department, dep_id, ctx, "Department")

    children = Department.query.filter_by(tenant_id=ctx.tenant_id, parent_id=obj.id).count()
    if children:
        raise DependentEntityExists("Department has child departments", payload={"children": children})
    employees = Employee.query.filter_by(tenant_id=ctx.tenant_id, department_id=obj.id).count()
    if employees:
        raise DependentEntityExists("Department has employees", payload={"employees": employees})
    positions = Position.query.filter_by(tenant_id=ctx.tenant_id, department_id=obj.id).count()
    if positions:
        raise DependentEntityExists("Department has positions", payload={"positions": positions})

    db.session.delete(obj)
    db.session.commit()
    current_app.logger.info("department deleted id=%s tenant=%s", dep_id, ctx.tenant_id)
    return ok({"id": dep_id}, message="Department deleted")
