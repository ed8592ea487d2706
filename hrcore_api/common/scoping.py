# hrcore_api/common/scoping.py
"""
Tenant and department scoping.

Every read goes through ``scope_query`` (tenant equality first, then the
department restriction for scoped roles); every single-resource access goes
through ``get_scoped`` + ``ensure_department_access``.
"""
from __future__ import annotations

from typing import Iterable

from sqlalchemy import false

from hrcore_api.common.errors import Forbidden, NotFound
from hrcore_api.extensions import db

FULL_ACCESS_ROLES = frozenset({"admin", "director"})
SCOPED_ROLES = frozenset({"manager", "business_partner"})
ALL_ROLES = FULL_ACCESS_ROLES | SCOPED_ROLES

ACTION_ROLES = {
    "read": ALL_ROLES,
    "create": ALL_ROLES,
    "update": ALL_ROLES,
    "delete": ALL_ROLES,
}


def can_access(role: str, managed_departments: Iterable[int], action: str,
               target_department: int | None, allowed_roles: Iterable[str] | None = None) -> bool:
    if role not in ACTION_ROLES.get(action, ()):
        return False
    if allowed_roles is not None and role not in allowed_roles:
        return False
    if role in FULL_ACCESS_ROLES:
        return True
    if role in SCOPED_ROLES:
        return target_department is not None and target_department in set(managed_departments)
    return False


def ensure_department_access(ctx, department_id, action="read", allowed_roles=None):
    if not can_access(ctx.role, ctx.managed_departments, action, department_id, allowed_roles):
        raise Forbidden("You do not have access to this department")


def ensure_transfer_access(ctx, source_department, target_department, action="update", allowed_roles=None):
    """Both ends of a department change must be reachable for the caller."""
    ensure_department_access(ctx, source_department, action, allowed_roles)
    if target_department != source_department:
        ensure_department_access(ctx, target_department, action, allowed_roles)


def scope_query(query, ctx, model, department_column=None):
    query = query.filter(model.tenant_id == ctx.tenant_id)
    if department_column is None or ctx.role in FULL_ACCESS_ROLES:
        return query
    if ctx.role in SCOPED_ROLES and ctx.managed_departments:
        return query.filter(department_column.in_(sorted(ctx.managed_departments)))
    # scoped role without departments (or unknown role): nothing is visible
    return query.filter(false())


def get_scoped(model, obj_id, ctx, label=None):
    """Fetch by id inside the caller's tenant; other tenants' rows look absent."""
    obj = db.session.get(model, obj_id) if obj_id is not None else None
    if obj is None or obj.tenant_id != ctx.tenant_id:
        raise NotFound(f"{label or model.__name__} not found")
    return obj
