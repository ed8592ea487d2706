from datetime import datetime
from hrcore_api.extensions import db
from hrcore_api.common.crypto import encrypt_value, decrypt_value, lookup_hash

WORK_MODALITIES = ("on_site", "hybrid", "remote")
EMPLOYEE_STATUSES = ("active", "inactive", "leave", "vacation")


class Employee(db.Model):
    __tablename__ = "employees"

    id = db.Column(db.Integer, primary_key=True)
    # business
    tenant_id     = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id", ondelete="RESTRICT"), nullable=True)
    position_id   = db.Column(db.Integer, db.ForeignKey("positions.id", ondelete="RESTRICT"), nullable=True)

    name  = db.Column(db.String(160), nullable=False)
    email = db.Column(db.String(255), nullable=False)       # unique per tenant
    national_id_encrypted = db.Column(db.String(512), nullable=False)
    national_id_hash      = db.Column(db.String(64), nullable=False)   # keyed digest, unique per tenant
    birth_date = db.Column(db.Date, nullable=True)

    salary = db.Column(db.Numeric(12, 2), nullable=True)
    admission_date   = db.Column(db.Date, nullable=True)
    termination_date = db.Column(db.Date, nullable=True)   # null while employed
    work_modality = db.Column(db.String(16), default="on_site", nullable=False)   # on_site/hybrid/remote
    weekly_hours  = db.Column(db.Integer, default=40, nullable=False)
    status = db.Column(db.String(16), default="active", nullable=False)           # active/inactive/leave/vacation

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("tenant_id", "email", name="uq_employee_tenant_email"),
        db.UniqueConstraint("tenant_id", "national_id_hash", name="uq_employee_tenant_national_id"),
        db.Index("ix_emp_tenant_id", "tenant_id"),
        db.Index("ix_emp_dept_id", "department_id"),
        db.Index("ix_emp_position_id", "position_id"),
    )

    department = db.relationship("Department", foreign_keys=[department_id], lazy="joined")
    position   = db.relationship("Position", lazy="joined")
    movements  = db.relationship(
        "Movement", back_populates="employee", cascade="all, delete-orphan", passive_deletes=True, lazy="dynamic"
    )

    @property
    def national_id(self) -> str | None:
        if not self.national_id_encrypted:
            return None
        return decrypt_value(self.national_id_encrypted)

    @national_id.setter
    def national_id(self, raw: str):
        self.national_id_encrypted = encrypt_value(raw)
        self.national_id_hash = lookup_hash(raw)
