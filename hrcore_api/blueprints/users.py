from flask import Blueprint, current_app, request

from hrcore_api.blueprints.auth_v1 import user_payload, MIN_PASSWORD
from hrcore_api.common.auth import requires_roles, current_ctx
from hrcore_api.common.errors import ValidationFailed, DuplicateEntity
from hrcore_api.common.http import ok, json_body
from hrcore_api.common.paging import ListSpec, parse_text, lower_text
from hrcore_api.common.scoping import scope_query, get_scoped
from hrcore_api.extensions import db
from hrcore_api.models.master import Department
from hrcore_api.models.user import User, ROLES, USER_STATUSES

bp = Blueprint("users", __name__, url_prefix="/api/v1/users")


def _departments_for(ctx, ids):
    if ids is None:
        return []
    if not isinstance(ids, list):
        raise ValidationFailed("managed_department_ids must be a list")
    try:
        ids = {int(i) for i in ids}
    except (TypeError, ValueError):
        raise ValidationFailed("managed_department_ids must be integers")
    rows = Department.query.filter(Department.tenant_id == ctx.tenant_id, Department.id.in_(ids)).all() if ids else []
    if len(rows) != len(ids):
        raise ValidationFailed("managed_department_ids contains unknown departments")
    return rows


def _role(value):
    role = parse_text(value, "role", lower=True)
    if role not in ROLES:
        raise ValidationFailed(f"role must be one of {', '.join(ROLES)}")
    return role


@bp.get("")
@requires_roles("admin")
def list_users():
    ctx = current_ctx()
    spec = ListSpec.from_args(request.args, filters={"role": lower_text, "status": lower_text},
                              sortable=("name", "email", "created_at"))
    q = scope_query(User.query, ctx, User)
    if spec.get("role"):   q = q.filter(User.role == spec.get("role"))
    if spec.get("status"): q = q.filter(User.status == spec.get("status"))
    q = spec.search(q, User.name, User.email)
    q = spec.order(q, {"name": User.name, "email": User.email, "created_at": User.created_at},
                   default=[(User.name, True)])
    items, meta = spec.paginate(q)
    return ok([user_payload(u) for u in items], **meta)


@bp.get("/<int:uid>")
@requires_roles("admin")
def get_user(uid: int):
    return ok(user_payload(get_scoped(User, uid, current_ctx(), "User")))


@bp.post("")
@requires_roles("admin")
def create_user():
    ctx = current_ctx()
    d = json_body()
    email = parse_text(d.get("email"), "email", lower=True)
    name = parse_text(d.get("name"), "name")
    password = parse_text(d.get("password"), "password", strip=False)
    if not (email and name and password):
        raise ValidationFailed("email, name and password are required")
    if len(password) < MIN_PASSWORD:
        raise ValidationFailed(f"password too short (min {MIN_PASSWORD})")
    role = _role(d.get("role") or "manager")

    if User.query.filter_by(tenant_id=ctx.tenant_id, email=email).first():
        raise DuplicateEntity("A user with this email already exists")

    u = User(tenant_id=ctx.tenant_id, email=email, name=name, role=role, status="active")
    u.set_password(password)
    u.managed_departments = _departments_for(ctx, d.get("managed_department_ids"))
    db.session.add(u)
    db.session.commit()
    current_app.logger.info("user created user=%s role=%s tenant=%s", u.id, u.role, u.tenant_id)
    return ok(user_payload(u), 201, message="User created")


@bp.put("/<int:uid>")
@requires_roles("admin")
def update_user(uid: int):
    ctx = current_ctx()
    u = get_scoped(User, uid, ctx, "User")
    d = json_body()
    revoke = False

    if "name" in d:
        name = parse_text(d.get("name"), "name")
        if not name:
            raise ValidationFailed("name cannot be empty")
        u.name = name
    if "email" in d:
        email = parse_text(d.get("email"), "email", lower=True)
        if not email:
            raise ValidationFailed("email cannot be empty")
        if User.query.filter(User.id != u.id, User.tenant_id == ctx.tenant_id, User.email == email).first():
            raise DuplicateEntity("A user with this email already exists")
        u.email = email
    if "role" in d:
        new_role = _role(d.get("role"))
        if u.id == ctx.user_id and new_role != u.role:
            raise ValidationFailed("You cannot change your own role")
        revoke = revoke or new_role != u.role
        u.role = new_role
    if "status" in d:
        status = parse_text(d.get("status"), "status", lower=True)
        if status not in USER_STATUSES:
            raise ValidationFailed(f"status must be one of {', '.join(USER_STATUSES)}")
        if u.id == ctx.user_id and status != "active":
            raise ValidationFailed("You cannot deactivate yourself")
        revoke = revoke or (status != "active" and u.status == "active")
        u.status = status
    if "managed_department_ids" in d:
        u.managed_departments = _departments_for(ctx, d.get("managed_department_ids"))
    password = parse_text(d.get("password"), "password", strip=False)
    if password:
        if len(password) < MIN_PASSWORD:
            raise ValidationFailed(f"password too short (min {MIN_PASSWORD})")
        u.set_password(password)
        revoke = True

    # role/status/password changes must not leave old tokens usable
    if revoke:
        u.bump_token_version()
    db.session.commit()
    current_app.logger.info("user updated user=%s revoked=%s", u.id, revoke)
    return ok(user_payload(u), message="User updated")


@bp.delete("/<int:uid>")
@requires_roles("admin")
def delete_user(uid: int):
    ctx = current_ctx()
    u = get_scoped(User, uid, ctx, "User")
    if u.id == ctx.user_id:
        raise ValidationFailed("You cannot deactivate yourself")
    u.status = "inactive"
    u.bump_token_version()
    db.session.commit()
    current_app.logger.info("user deactivated user=%s", u.id)
    return ok({"id": u.id, "status": u.status}, message="User deactivated")
