# hrcore_api/common/auth.py
from __future__ import annotations

from datetime import datetime
from functools import wraps
from typing import NamedTuple

from flask import current_app, g
from flask_jwt_extended import (
    create_access_token, create_refresh_token,
    get_jwt, get_jwt_identity, verify_jwt_in_request,
)
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from hrcore_api.common.errors import Forbidden, TenantInactive, Unauthenticated
from hrcore_api.extensions import db
from hrcore_api.models.user import User


class TenantContext(NamedTuple):
    user_id: int
    tenant_id: int
    role: str
    token_version: int
    managed_departments: frozenset


# ---------- tokens ----------

def _claims(u: User) -> dict:
    return {"tenant_id": u.tenant_id, "role": u.role, "tv": u.token_version or 0}


def issue_tokens(u: User) -> dict:
    claims = _claims(u)
    return {
        "access": create_access_token(identity=str(u.id), additional_claims=claims),
        "refresh": create_refresh_token(identity=str(u.id), additional_claims=claims),
    }


def load_user_from_token() -> User:
    """
    Load the user behind the JWT already verified for this request and check
    that the token is still current: user active, same tenant, same token version.
    """
    claims = get_jwt() or {}
    ident = get_jwt_identity()
    try:
        uid = int(ident)
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid token identity")

    u = db.session.get(User, uid)
    if not u or u.status != "active":
        raise Unauthenticated("User not found or inactive")
    if claims.get("tenant_id") != u.tenant_id:
        raise Unauthenticated("Token does not belong to this tenant")
    if claims.get("tv") != (u.token_version or 0):
        current_app.logger.warning("stale token version user=%s", u.id)
        raise Unauthenticated("Token has been revoked")
    if u.tenant is None or not u.tenant.is_usable():
        raise TenantInactive("Tenant is not active")
    return u


def resolve_context() -> TenantContext:
    u = load_user_from_token()
    ctx = TenantContext(
        user_id=u.id,
        tenant_id=u.tenant_id,
        role=u.role,
        token_version=u.token_version or 0,
        managed_departments=u.managed_department_ids(),
    )
    g.tenant_ctx = ctx
    g.touch_user_id = u.id
    return ctx


def current_ctx() -> TenantContext:
    ctx = g.get("tenant_ctx")
    if ctx is None:
        raise Unauthenticated("No authenticated context")
    return ctx


# ---------- decorators ----------

def requires_roles(*codes: str):
    """
    Require a valid access token and, when codes are given, that the caller's
    role is one of them. The resolved TenantContext is available via current_ctx().
    """
    def outer(fn):
        @wraps(fn)
        def inner(*args, **kwargs):
            verify_jwt_in_request()
            ctx = resolve_context()
            if codes and ctx.role not in codes:
                raise Forbidden(f"Role '{ctx.role}' may not perform this action")
            return fn(*args, **kwargs)
        return inner
    return outer


# ---------- last access ----------

def touch_last_access(response):
    """after_request hook: record last access for the authenticated user, best effort."""
    uid = g.pop("touch_user_id", None)
    g.pop("tenant_ctx", None)
    if uid is None or response.status_code >= 500:
        return response
    try:
        db.session.execute(
            update(User).where(User.id == uid).values(last_access_at=datetime.utcnow(), updated_at=User.updated_at)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning("could not update last access for user=%s", uid, exc_info=True)
    return response
