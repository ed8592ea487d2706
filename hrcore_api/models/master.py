from datetime import datetime

from hrcore_api.extensions import db

LEVELS = ("junior", "mid", "senior", "specialist", "coordinator", "manager", "director")


# Department: per tenant, optional parent (tree)
class Department(db.Model):
    __tablename__ = "departments"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(120), nullable=False)
    cost_center = db.Column(db.String(32), nullable=True)
    budget = db.Column(db.Numeric(14, 2), nullable=True)
    manager_id = db.Column(
        db.Integer,
        db.ForeignKey("employees.id", ondelete="SET NULL", use_alter=True, name="fk_department_manager"),
        nullable=True,
    )
    parent_id = db.Column(
        db.Integer,
        db.ForeignKey("departments.id", ondelete="RESTRICT"),
        nullable=True,
    )
    status = db.Column(db.String(16), default="active", nullable=False)   # active/inactive
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_department_tenant_name"),
    )

    parent = db.relationship("Department", remote_side=[id], backref=db.backref("children", lazy="dynamic"))
    manager = db.relationship("Employee", foreign_keys=[manager_id], post_update=True)

    def ancestor_ids(self) -> list[int]:
        """Walk up the parent chain. Stops on a repeated id so a corrupt tree cannot loop."""
        seen, node = [], self.parent
        while node is not None and node.id not in seen:
            seen.append(node.id)
            node = node.parent
        return seen


# Position: per tenant, tied to a department
class Position(db.Model):
    __tablename__ = "positions"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    department_id = db.Column(
        db.Integer,
        db.ForeignKey("departments.id", ondelete="RESTRICT"),
        nullable=True,
    )
    title = db.Column(db.String(120), nullable=False)
    level = db.Column(db.String(20), nullable=False)     # see LEVELS
    salary_min = db.Column(db.Numeric(12, 2), nullable=True)
    salary_max = db.Column(db.Numeric(12, 2), nullable=True)
    status = db.Column(db.String(16), default="active", nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("tenant_id", "title", "level", "department_id", name="uq_position_tenant_title_level_dept"),
    )

    department = db.relationship(
        "Department", backref=db.backref("positions", lazy="dynamic")
    )
    salary_tables = db.relationship(
        "SalaryTable", back_populates="position", cascade="all, delete-orphan"
    )


# Salary band reference per (position, level)
class SalaryTable(db.Model):
    __tablename__ = "salary_tables"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position_id = db.Column(
        db.Integer,
        db.ForeignKey("positions.id", ondelete="CASCADE"),
        nullable=False,
    )
    level = db.Column(db.String(20), nullable=False)
    min_salary = db.Column(db.Numeric(12, 2), nullable=False)
    median_salary = db.Column(db.Numeric(12, 2), nullable=False)
    max_salary = db.Column(db.Numeric(12, 2), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("tenant_id", "position_id", "level", name="uq_salary_table_position_level"),
    )

    position = db.relationship("Position", back_populates="salary_tables", lazy="joined")
