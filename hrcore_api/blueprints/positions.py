# hrcore_api/blueprints/positions.py
from __future__ import annotations


from flask import Blueprint, request, current_app

from hrcore_api.extensions import db
from hrcore_api.models.master import Department, Position, LEVELS
from hrcore_api.models.employee import Employee
from hrcore_api.common.auth import requires_roles, current_ctx
from hrcore_api.common.errors import ValidationFailed, DuplicateEntity, DependentEntityExists
from hrcore_api.common.http import ok, json_body
from hrcore_api.common.paging import ListSpec, parse_int, parse_money, parse_text, lower_text
from hrcore_api.common.scoping import scope_query, get_scoped, ensure_department_access

bp = Blueprint("positions", __name__, url_prefix="/api/v1/positions")

WRITE_ROLES = ("admin", "director")


def _money(val, name):
    return parse_money(val, name)


def _level(val):
    level = parse_text(val, "level", lower=True)
    if level not in LEVELS:
        raise ValidationFailed(f"level must be one of {', '.join(LEVELS)}")
    return level


def _row(x: Position):
    return {
        "id": x.id,
        "tenant_id": x.tenant_id,
        "title": x.title,
        "level": x.level,
        "department_id": x.department_id,
        "department_name": x.department.name if x.department else None,
        "salary_min": float(x.salary_min) if x.salary_min is not None else None,
        "salary_max": float(x.salary_max) if x.salary_max is not None else None,
        "status": x.status,
        "created_at": x.created_at.isoformat() if x.created_at else None,
    }


def _check_unique(ctx, title, level, department_id, exclude_id=None):
    q = Position.query.filter(
        Position.tenant_id == ctx.tenant_id,
        db.func.lower(Position.title) == title.lower(),
        Position.level == level,
    )
    # NULL never equals NULL in a unique index, so compare explicitly
    if department_id is None:
        q = q.filter(Position.department_id.is_(None))
    else:
        q = q.filter(Position.department_id == department_id)
    if exclude_id is not None:
        q = q.filter(Position.id != exclude_id)
    if q.first():
        raise DuplicateEntity("A position with the same title, level and department already exists")


def _check_range(lo, hi):
    if lo is not None and hi is not None and lo > hi:
        raise ValidationFailed("salary_min cannot be greater than salary_max")


@bp.get("")
@requires_roles()
def list_positions():
    ctx = current_ctx()
    spec = ListSpec.from_args(
        request.args,
        filters={"department_id": parse_int, "level": lower_text, "status": lower_text},
        sortable=("id", "title", "level", "created_at"),
    )
    qry = scope_query(Position.query, ctx, Position, Position.department_id)

    if spec.get("department_id") is not None:
        qry = qry.filter(Position.department_id == spec.get("department_id"))
    if spec.get("level"):
        qry = qry.filter(Position.level == spec.get("level"))
    if spec.get("status"):
        qry = qry.filter(Position.status == spec.get("status"))

    qry = spec.search(qry, Position.title)
    qry = spec.order(qry, {
        "id": Position.id,
        "title": Position.title,
        "level": Position.level,
        "created_at": Position.created_at,
    }, default=[(Position.title, True)])

    items, meta = spec.paginate(qry)
    return ok([_row(i) for i in items], **meta)


@bp.get("/<int:pos_id>")
@requires_roles()
def get_position(pos_id: int):
    ctx = current_ctx()
    x = get_scoped(Position, pos_id, ctx, "Position")
    ensure_department_access(ctx, x.department_id)
    return ok(_row(x))


@bp.post("")
@requires_roles(*WRITE_ROLES)
def create_position():
    ctx = current_ctx()
    d = json_body()
    title = parse_text(d.get("title"), "title")
    if not title:
        raise ValidationFailed("title is required")
    level = _level(d.get("level"))

    dep_id = parse_int(d.get("department_id"), "department_id")
    if dep_id is not None:
        get_scoped(Department, dep_id, ctx, "Department")

    lo = _money(d.get("salary_min"), "salary_min")
    hi = _money(d.get("salary_max"), "salary_max")
    _check_range(lo, hi)
    _check_unique(ctx, title, level, dep_id)

    x = Position(
        tenant_id=ctx.tenant_id,
        title=title,
        level=level,
        department_id=dep_id,
        salary_min=lo,
        salary_max=hi,
        status=parse_text(d.get("status"), "status", lower=True) or "active",
    )
    db.session.add(x)
    db.session.commit()
    current_app.logger.info("position created id=%s tenant=%s", x.id, ctx.tenant_id)
    return ok(_row(x), 201, message="Position created")


@bp.put("/<int:pos_id>")
@requires_roles(*WRITE_ROLES)
def update_position(pos_id: int):
    ctx = current_ctx()
    x = get_scoped(Position, pos_id, ctx, "Position")
    d = json_body()

    title, level, dep_id = x.title, x.level, x.department_id
    if "title" in d:
        title = parse_text(d.get("title"), "title")
        if not title:
            raise ValidationFailed("title cannot be empty")
    if "level" in d:
        level = _level(d.get("level"))
    if "department_id" in d:
        dep_id = parse_int(d.get("department_id"), "department_id")
        if dep_id is not None:
            get_scoped(Department, dep_id, ctx, "Department")

    lo = _money(d["salary_min"], "salary_min") if "salary_min" in d else x.salary_min
    hi = _money(d["salary_max"], "salary_max") if "salary_max" in d else x.salary_max
    _check_range(lo, hi)
    _check_unique(ctx, title, level, dep_id, exclude_id=x.id)

    x.title, x.level, x.department_id = title, level, dep_id
    x.salary_min, x.salary_max = lo, hi
    if "status" in d:
        x.status = parse_text(d.get("status"), "status", lower=True) or "active"

    db.session.commit()
    return ok(_row(x), message="Position updated")


@bp.delete("/<int:pos_id>")
@requires_roles("admin")
def delete_position(pos_id: int):
    ctx = current_ctx()
    x = get_scoped(Position, pos_id, ctx, "Position")
    employees = Employee.query.filter_by(tenant_id=ctx.tenant_id, position_id=x.id).count()
    if employees:
        raise DependentEntityExists("Position has employees", payload={"employees": employees})
    db.session.delete(x)
    db.session.commit()
    current_app.logger.info("position deleted id=%s tenant=%s", pos_id, ctx.tenant_id)
    return ok({"id": pos_id}, message="Position deleted")
