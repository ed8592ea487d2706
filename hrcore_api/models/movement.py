from datetime import datetime, date

from hrcore_api.extensions import db

MOVEMENT_TYPES = ("promotion", "transfer", "merit", "equalization", "modality_change", "hours_change")
MOVEMENT_STATUSES = ("pending", "approved", "rejected")


class Movement(db.Model):
    """A proposed or applied change to an employee record."""
    __tablename__ = "movements"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id   = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)

    type = db.Column(db.String(20), nullable=False)                 # see MOVEMENT_TYPES
    effective_date = db.Column(db.Date, nullable=False, default=date.today)
    previous_value = db.Column(db.JSON, nullable=False)
    new_value      = db.Column(db.JSON, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    notes  = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), default="pending", nullable=False)   # pending/approved/rejected
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approver_id   = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    decided_at    = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index("ix_mov_tenant_status", "tenant_id", "status"),
        db.Index("ix_mov_employee_id", "employee_id"),
        db.Index("ix_mov_effective_date", "effective_date"),
    )

    employee   = db.relationship("Employee", back_populates="movements", lazy="joined")
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    approver   = db.relationship("User", foreign_keys=[approver_id])
