from flask import Blueprint, current_app
from flask_jwt_extended import jwt_required, create_access_token

from hrcore_api.common.auth import issue_tokens, load_user_from_token, requires_roles, current_ctx
from hrcore_api.common.errors import Unauthenticated, TenantInactive, ValidationFailed, DuplicateEntity
from hrcore_api.common.http import ok, json_body
from hrcore_api.common.paging import parse_text
from hrcore_api.extensions import db
from hrcore_api.models.tenant import Tenant
from hrcore_api.models.user import User

bp = Blueprint("auth_v1", __name__, url_prefix="/api/v1/auth")

MIN_PASSWORD = 6


def user_payload(u: User):
    return {
        "id": u.id,
        "tenant_id": u.tenant_id,
        "email": u.email,
        "name": u.name,
        "role": u.role,
        "status": u.status,
        "managed_department_ids": sorted(u.managed_department_ids()),
        "last_access_at": u.last_access_at.isoformat() if u.last_access_at else None,
    }


def tenant_payload(t: Tenant):
    return {
        "id": t.id,
        "name": t.name,
        "tax_id": t.tax_id,
        "plan": t.plan,
        "status": t.status,
        "expires_at": t.expires_at.isoformat() if t.expires_at else None,
    }


@bp.post("/register")
def register():
    """
    Create a tenant (status 'trial') together with its first admin user.
    JSON: { "tenant_name", "tax_id", "name", "email", "password" }
    """
    d = json_body()
    tenant_name = parse_text(d.get("tenant_name"), "tenant_name")
    tax_id = parse_text(d.get("tax_id"), "tax_id")
    name = parse_text(d.get("name"), "name")
    email = parse_text(d.get("email"), "email", lower=True)
    password = parse_text(d.get("password"), "password", strip=False)

    if not (tenant_name and tax_id and name and email and password):
        raise ValidationFailed("tenant_name, tax_id, name, email and password are required")
    if len(password) < MIN_PASSWORD:
        raise ValidationFailed(f"password too short (min {MIN_PASSWORD})")
    if Tenant.query.filter_by(tax_id=tax_id).first():
        raise DuplicateEntity("A tenant with this tax_id already exists")

    t = Tenant(name=tenant_name, tax_id=tax_id, status="trial", plan="basic")
    db.session.add(t)
    db.session.flush()

    u = User(tenant_id=t.id, name=name, email=email, role="admin", status="active")
    u.set_password(password)
    db.session.add(u)
    db.session.commit()

    current_app.logger.info("tenant registered tenant=%s admin=%s", t.id, u.id)
    return ok({"user": user_payload(u), "tenant": tenant_payload(t), **issue_tokens(u)},
              201, message="Tenant registered")


@bp.post("/login")
def login():
    d = json_body()
    email = parse_text(d.get("email"), "email", lower=True)
    password = parse_text(d.get("password"), "password", strip=False)
    tenant_id = d.get("tenant_id")
    if not email or not password:
        raise ValidationFailed("email and password are required")

    q = User.query.filter_by(email=email)
    if tenant_id is not None:
        q = q.filter_by(tenant_id=tenant_id)
    candidates = q.all()
    if len(candidates) > 1:
        raise ValidationFailed("tenant_id is required for this email")

    u = candidates[0] if candidates else None
    if not u or not u.check_password(password):
        raise Unauthenticated("Invalid credentials")
    if u.status != "active":
        raise Unauthenticated("User is not active")
    if not u.tenant.is_usable():
        raise TenantInactive("Tenant is not active")

    current_app.logger.info("login user=%s tenant=%s", u.id, u.tenant_id)
    return ok({"user": user_payload(u), "tenant": tenant_payload(u.tenant), **issue_tokens(u)},
              message="Login successful")


@bp.post("/refresh")
@jwt_required(refresh=True)
def refresh():
    u = load_user_from_token()
    access = create_access_token(
        identity=str(u.id),
        additional_claims={"tenant_id": u.tenant_id, "role": u.role, "tv": u.token_version or 0},
    )
    return ok({"access": access}, message="Token refreshed")


@bp.post("/logout")
@requires_roles()
def logout():
    u = db.session.get(User, current_ctx().user_id)
    u.bump_token_version()
    db.session.commit()
    current_app.logger.info("logout user=%s token_version=%s", u.id, u.token_version)
    return ok(None, message="Logged out")


@bp.post("/change-password")
@requires_roles()
def change_password():
    d = json_body()
    current = parse_text(d.get("current_password"), "current_password", strip=False)
    new = parse_text(d.get("new_password"), "new_password", strip=False)
    u = db.session.get(User, current_ctx().user_id)
    if not u.check_password(current):
        raise ValidationFailed("current_password is incorrect")
    if len(new) < MIN_PASSWORD:
        raise ValidationFailed(f"new_password too short (min {MIN_PASSWORD})")

    u.set_password(new)
    u.bump_token_version()
    db.session.commit()
    current_app.logger.info("password changed user=%s token_version=%s", u.id, u.token_version)
    return ok(issue_tokens(u), message="Password changed")


@bp.get("/me")
@requires_roles()
def me():
    u = db.session.get(User, current_ctx().user_id)
    return ok({"user": user_payload(u), "tenant": tenant_payload(u.tenant)})
