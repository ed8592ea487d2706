from datetime import datetime
from hrcore_api.extensions import db
from werkzeug.security import generate_password_hash, check_password_hash

ROLES = ("admin", "director", "manager", "business_partner")
USER_STATUSES = ("active", "inactive", "blocked")

user_departments = db.Table(
    "user_departments",
    db.Column("user_id", db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    db.Column("department_id", db.Integer, db.ForeignKey("departments.id", ondelete="CASCADE"), primary_key=True),
)


class User(db.Model):
    __tablename__ = "users"

    id            = db.Column(db.Integer, primary_key=True)
    tenant_id     = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    email         = db.Column(db.String(255), index=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    name          = db.Column(db.String(255), nullable=False)
    role          = db.Column(db.String(20), default="manager", nullable=False)
    status        = db.Column(db.String(20), default="active", nullable=False)
    token_version = db.Column(db.Integer, default=0, nullable=False)
    last_access_at = db.Column(db.DateTime, nullable=True)
    created_at    = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at    = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("tenant_id", "email", name="uq_user_tenant_email"),
    )

    tenant = db.relationship("Tenant", lazy="joined")
    managed_departments = db.relationship(
        "Department", secondary=user_departments, lazy="selectin",
        backref=db.backref("managers", lazy="select"),
    )

    # --- helpers ---
    def set_password(self, raw: str):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw: str) -> bool:
        return check_password_hash(self.password_hash, raw)

    def managed_department_ids(self) -> frozenset:
        return frozenset(d.id for d in self.managed_departments)

    def bump_token_version(self):
        """Invalidate every token issued so far."""
        self.token_version = (self.token_version or 0) + 1
