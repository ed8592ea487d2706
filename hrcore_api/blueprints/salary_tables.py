# hrcore_api/blueprints/salary_tables.py
from __future__ import annotations


from flask import Blueprint, request, current_app

from hrcore_api.extensions import db
from hrcore_api.models.master import Position, SalaryTable, LEVELS
from hrcore_api.common.auth import requires_roles, current_ctx
from hrcore_api.common.errors import ValidationFailed, DuplicateEntity
from hrcore_api.common.http import ok, json_body
from hrcore_api.common.paging import ListSpec, parse_int, parse_money, parse_text, lower_text
from hrcore_api.common.scoping import scope_query, get_scoped, ensure_department_access
from hrcore_api.services.salaries import out_of_range_employees

bp = Blueprint("salary_tables", __name__, url_prefix="/api/v1/salary-tables")

WRITE_ROLES = ("admin", "director", "business_partner")


def _row(x: SalaryTable):
    return {
        "id": x.id,
        "position_id": x.position_id,
        "position_title": x.position.title if x.position else None,
        "department_id": x.position.department_id if x.position else None,
        "level": x.level,
        "min_salary": float(x.min_salary),
        "median_salary": float(x.median_salary),
        "max_salary": float(x.max_salary),
        "updated_at": x.updated_at.isoformat() if x.updated_at else None,
    }


def _amount(val, name):
    return parse_money(val, name, required=True)


def _check_band(lo, mid, hi):
    if not (lo <= mid <= hi):
        raise ValidationFailed("expected min_salary <= median_salary <= max_salary")


def _check_unique(ctx, position_id, level, exclude_id=None):
    q = SalaryTable.query.filter_by(tenant_id=ctx.tenant_id, position_id=position_id, level=level)
    if exclude_id is not None:
        q = q.filter(SalaryTable.id != exclude_id)
    if q.first():
        raise DuplicateEntity("A salary table already exists for this position and level")


def _position_for_write(ctx, position_id):
    pos = get_scoped(Position, position_id, ctx, "Position")
    ensure_department_access(ctx, pos.department_id, "update", WRITE_ROLES)
    return pos


@bp.get("")
@requires_roles()
def list_salary_tables():
    ctx = current_ctx()
    spec = ListSpec.from_args(
        request.args,
        filters={"position_id": parse_int, "level": lower_text, "department_id": parse_int},
        sortable=("position_id", "level", "min_salary", "max_salary"),
        default_size=25,
    )
    qry = scope_query(
        SalaryTable.query.join(Position, SalaryTable.position_id == Position.id),
        ctx, SalaryTable, Position.department_id,
    )
    if spec.get("position_id") is not None:
        qry = qry.filter(SalaryTable.position_id == spec.get("position_id"))
    if spec.get("level"):
        qry = qry.filter(SalaryTable.level == spec.get("level"))
    if spec.get("department_id") is not None:
        qry = qry.filter(Position.department_id == spec.get("department_id"))

    qry = spec.search(qry, Position.title)
    qry = spec.order(qry, {
        "position_id": SalaryTable.position_id,
        "level": SalaryTable.level,
        "min_salary": SalaryTable.min_salary,
        "max_salary": SalaryTable.max_salary,
    }, default=[(SalaryTable.position_id, True), (SalaryTable.level, True)])

    items, meta = spec.paginate(qry)
    return ok([_row(i) for i in items], **meta)


@bp.get("/check-salaries")
@requires_roles(*WRITE_ROLES)
def check_salaries():
    rows = out_of_range_employees(current_ctx())
    return ok(rows, count=len(rows))


@bp.get("/<int:table_id>")
@requires_roles()
def get_salary_table(table_id: int):
    ctx = current_ctx()
    x = get_scoped(SalaryTable, table_id, ctx, "Salary table")
    ensure_department_access(ctx, x.position.department_id)
    return ok(_row(x))


@bp.post("")
@requires_roles(*WRITE_ROLES)
def create_salary_table():
    ctx = current_ctx()
    d = json_body()
    position_id = parse_int(d.get("position_id"), "position_id")
    if position_id is None:
        raise ValidationFailed("position_id is required")
    pos = _position_for_write(ctx, position_id)

    level = parse_text(d.get("level"), "level", lower=True) or (pos.level or "").lower()
    if level not in LEVELS:
        raise ValidationFailed(f"level must be one of {', '.join(LEVELS)}")

    lo = _amount(d.get("min_salary"), "min_salary")
    mid = _amount(d.get("median_salary"), "median_salary")
    hi = _amount(d.get("max_salary"), "max_salary")
    _check_band(lo, mid, hi)
    _check_unique(ctx, pos.id, level)

    x = SalaryTable(tenant_id=ctx.tenant_id, position_id=pos.id, level=level,
                    min_salary=lo, median_salary=mid, max_salary=hi)
    db.session.add(x)
    db.session.commit()
    current_app.logger.info("salary table created id=%s tenant=%s", x.id, ctx.tenant_id)
    return ok(_row(x), 201, message="Salary table created")


@bp.put("/<int:table_id>")
@requires_roles(*WRITE_ROLES)
def update_salary_table(table_id: int):
    ctx = current_ctx()
    x = get_scoped(SalaryTable, table_id, ctx, "Salary table")
    ensure_department_access(ctx, x.position.department_id, "update", WRITE_ROLES)
    d = json_body()

    position_id, level = x.position_id, x.level
    if "position_id" in d:
        position_id = _position_for_write(ctx, parse_int(d.get("position_id"), "position_id")).id
    if "level" in d:
        level = parse_text(d.get("level"), "level", lower=True)
        if level not in LEVELS:
            raise ValidationFailed(f"level must be one of {', '.join(LEVELS)}")

    lo = _amount(d["min_salary"], "min_salary") if "min_salary" in d else x.min_salary
    mid = _amount(d["median_salary"], "median_salary") if "median_salary" in d else x.median_salary
    hi = _amount(d["max_salary"], "max_salary") if "max_salary" in d else x.max_salary
    _check_band(lo, mid, hi)
    _check_unique(ctx, position_id, level, exclude_id=x.id)

    x.position_id, x.level = position_id, level
    x.min_salary, x.median_salary, x.max_salary = lo, mid, hi
    db.session.commit()
    return ok(_row(x), message="Salary table updated")


@bp.delete("/<int:table_id>")
@requires_roles("admin")
def delete_salary_table(table_id: int):
    ctx = current_ctx()
    x = get_scoped(SalaryTable, table_id, ctx, "Salary table")
    db.session.delete(x)
    db.session.commit()
    return ok({"id": table_id}, message="Salary table deleted")
