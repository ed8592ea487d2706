# hrcore_api/blueprints/dashboard.py
from datetime import date

from flask import Blueprint, request

from hrcore_api.common.auth import requires_roles, current_ctx
from hrcore_api.common.errors import ValidationFailed
from hrcore_api.common.http import ok
from hrcore_api.services import dashboard as svc

bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboard")

MAX_MONTHS = 24
MIN_YEAR, MAX_YEAR = 1900, 2100


@bp.get("/summary")
@requires_roles()
def summary():
    return ok(svc.summary(current_ctx()))


@bp.get("/departments")
@requires_roles()
def departments():
    rows = svc.by_department(current_ctx())
    return ok(rows, count=len(rows))


@bp.get("/movements")
@requires_roles()
def movements():
    months = request.args.get("months", 6)
    try:
        months = int(months)
    except (TypeError, ValueError):
        raise ValidationFailed("months must be integer")
    if not 1 <= months <= MAX_MONTHS:
        raise ValidationFailed(f"months must be between 1 and {MAX_MONTHS}")
    return ok(svc.movements_by_month(current_ctx(), months), months=months)


@bp.get("/salaries")
@requires_roles()
def salaries():
    return ok(svc.salaries(current_ctx()))


@bp.get("/turnover")
@requires_roles()
def turnover():
    year = request.args.get("year", date.today().year)
    try:
        year = int(year)
    except (TypeError, ValueError):
        raise ValidationFailed("year must be integer")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationFailed(f"year must be between {MIN_YEAR} and {MAX_YEAR}")
    return ok(svc.turnover(current_ctx(), year))
