from flask import Blueprint, current_app

from hrcore_api.blueprints.auth_v1 import tenant_payload
from hrcore_api.common.auth import requires_roles, current_ctx
from hrcore_api.common.errors import ValidationFailed, DuplicateEntity
from hrcore_api.common.http import ok, json_body
from hrcore_api.common.paging import parse_text
from hrcore_api.extensions import db
from hrcore_api.models.employee import Employee
from hrcore_api.models.master import Department, Position
from hrcore_api.models.movement import Movement
from hrcore_api.models.tenant import Tenant, TENANT_PLANS
from hrcore_api.models.user import User

bp = Blueprint("tenant", __name__, url_prefix="/api/v1/tenant")


@bp.get("")
@requires_roles()
def get_tenant():
    t = db.session.get(Tenant, current_ctx().tenant_id)
    return ok(tenant_payload(t))


@bp.put("")
@requires_roles("admin")
def update_tenant():
    """Tenant admins may rename the tenant and change plan / tax id. Status is operator-only (CLI)."""
    t = db.session.get(Tenant, current_ctx().tenant_id)
    d = json_body()

    if "name" in d:
        name = parse_text(d.get("name"), "name")
        if not name:
            raise ValidationFailed("name cannot be empty")
        t.name = name
    if "plan" in d:
        plan = parse_text(d.get("plan"), "plan", lower=True)
        if plan not in TENANT_PLANS:
            raise ValidationFailed(f"plan must be one of {', '.join(TENANT_PLANS)}")
        t.plan = plan
    if "tax_id" in d:
        tax_id = parse_text(d.get("tax_id"), "tax_id")
        if not tax_id:
            raise ValidationFailed("tax_id cannot be empty")
        if Tenant.query.filter(Tenant.id != t.id, Tenant.tax_id == tax_id).first():
            raise DuplicateEntity("A tenant with this tax_id already exists")
        t.tax_id = tax_id

    db.session.commit()
    current_app.logger.info("tenant updated tenant=%s", t.id)
    return ok(tenant_payload(t), message="Tenant updated")


@bp.get("/stats")
@requires_roles("admin", "director")
def tenant_stats():
    """Row counts for the caller's tenant (all departments)."""
    tid = current_ctx().tenant_id
    t = db.session.get(Tenant, tid)
    stats = {
        "users": User.query.filter_by(tenant_id=tid).count(),
        "employees": Employee.query.filter_by(tenant_id=tid).count(),
        "active_employees": Employee.query.filter_by(tenant_id=tid, status="active").count(),
        "departments": Department.query.filter_by(tenant_id=tid).count(),
        "positions": Position.query.filter_by(tenant_id=tid).count(),
        "movements": Movement.query.filter_by(tenant_id=tid).count(),
        "pending_movements": Movement.query.filter_by(tenant_id=tid, status="pending").count(),
    }
    return ok({"tenant": tenant_payload(t), "stats": stats})
