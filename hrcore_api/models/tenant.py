from datetime import datetime

from hrcore_api.extensions import db

TENANT_STATUSES = ("trial", "active", "inactive", "blocked")
TENANT_PLANS = ("basic", "standard", "premium")
USABLE_STATUSES = ("trial", "active")


class Tenant(db.Model):
    __tablename__ = "tenants"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    tax_id = db.Column(db.String(32), unique=True, nullable=False)
    plan = db.Column(db.String(20), default="basic", nullable=False)
    status = db.Column(db.String(16), default="trial", nullable=False)   # trial/active/inactive/blocked
    expires_at = db.Column(db.DateTime, nullable=True)
    deleted_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def soft_delete(self):
        self.status = "inactive"
        self.deleted_at = datetime.utcnow()

    def is_usable(self, now: datetime | None = None) -> bool:
        if self.deleted_at is not None:
            return False
        if self.status not in USABLE_STATUSES:
            return False
        now = now or datetime.utcnow()
        return self.expires_at is None or self.expires_at > now
