import os
from datetime import date
from decimal import Decimal

import pytest

from hrcore_api import create_app
from hrcore_api.extensions import db
from hrcore_api.common.auth import issue_tokens
from hrcore_api.models.tenant import Tenant
from hrcore_api.models.user import User
from hrcore_api.models.master import Department, Position, SalaryTable
from hrcore_api.models.employee import Employee

TEST_CONFIG = {
    "TESTING": True,
    "JWT_SECRET_KEY": "test-jwt-secret-with-enough-length-0123456789",
    "ENCRYPTION_KEY": "test-encryption-key",
    "LOG_LEVEL": "WARNING",
}


@pytest.fixture(scope="function")
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app(dict(TEST_CONFIG))
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()


@pytest.fixture(scope="function")
def client(app):
    return app.test_client()


class Factory:
    """Small builders for rows every test needs. Everything is committed."""

    def __init__(self):
        self._seq = 0

    def _next(self):
        self._seq += 1
        return self._seq

    def tenant(self, name=None, status="active", **kw):
        n = self._next()
        t = Tenant(name=name or f"Tenant {n}", tax_id=kw.pop("tax_id", f"TAX-{n:06d}"), status=status, **kw)
        db.session.add(t)
        db.session.commit()
        return t

    def user(self, tenant, role="admin", departments=(), password="secret123", **kw):
        n = self._next()
        u = User(tenant_id=tenant.id, email=kw.pop("email", f"{role}{n}@example.com"),
                 name=kw.pop("name", f"{role} {n}"), role=role, **kw)
        u.set_password(password)
        u.managed_departments = list(departments)
        db.session.add(u)
        db.session.commit()
        return u

    def department(self, tenant, name=None, **kw):
        d = Department(tenant_id=tenant.id, name=name or f"Dept {self._next()}", **kw)
        db.session.add(d)
        db.session.commit()
        return d

    def position(self, tenant, department=None, title=None, level="mid", **kw):
        p = Position(tenant_id=tenant.id, department_id=department.id if department else None,
                     title=title or f"Position {self._next()}", level=level, **kw)
        db.session.add(p)
        db.session.commit()
        return p

    def salary_table(self, tenant, position, level=None, lo="1000", mid="1500", hi="2000"):
        st = SalaryTable(tenant_id=tenant.id, position_id=position.id, level=level or position.level,
                         min_salary=Decimal(lo), median_salary=Decimal(mid), max_salary=Decimal(hi))
        db.session.add(st)
        db.session.commit()
        return st

    def employee(self, tenant, department=None, position=None, salary="1500", **kw):
        n = self._next()
        e = Employee(
            tenant_id=tenant.id,
            name=kw.pop("name", f"Employee {n}"),
            email=kw.pop("email", f"employee{n}@example.com"),
            department_id=department.id if department else None,
            position_id=position.id if position else None,
            salary=Decimal(salary) if salary is not None else None,
            admission_date=kw.pop("admission_date", date(2020, 1, 1)),
            **kw,
        )
        e.national_id = f"{n:011d}"
        db.session.add(e)
        db.session.commit()
        return e


@pytest.fixture
def make(app):
    return Factory()


def bearer(user):
    return {"Authorization": f"Bearer {issue_tokens(user)['access']}"}


@pytest.fixture
def auth(app):
    """auth(user) -> headers with a fresh access token for that user."""
    return bearer
