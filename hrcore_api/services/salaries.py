# hrcore_api/services/salaries.py
from __future__ import annotations

import logging

from hrcore_api.common.scoping import scope_query
from hrcore_api.models.employee import Employee
from hrcore_api.models.master import SalaryTable

log = logging.getLogger(__name__)


def out_of_range_employees(ctx) -> list[dict]:
    """
    Active employees (visible to ``ctx``) whose salary falls outside the salary
    table band of their position at the position's level. Employees without a
    position, salary or matching band are skipped.
    """
    emps = (
        scope_query(Employee.query, ctx, Employee, Employee.department_id)
        .filter(Employee.status == "active", Employee.position_id.isnot(None), Employee.salary.isnot(None))
        .order_by(Employee.name.asc())
        .all()
    )
    if not emps:
        return []

    bands = {
        (t.position_id, t.level): t
        for t in SalaryTable.query.filter(
            SalaryTable.tenant_id == ctx.tenant_id,
            SalaryTable.position_id.in_({e.position_id for e in emps}),
        )
    }

    out = []
    for e in emps:
        band = bands.get((e.position_id, e.position.level))
        if band is None:
            continue
        if e.salary < band.min_salary or e.salary > band.max_salary:
            out.append({
                "employee_id": e.id,
                "employee_name": e.name,
                "department_name": e.department.name if e.department else None,
                "position_title": e.position.title,
                "level": band.level,
                "salary": float(e.salary),
                "min_salary": float(band.min_salary),
                "median_salary": float(band.median_salary),
                "max_salary": float(band.max_salary),
                "status": "below" if e.salary < band.min_salary else "above",
            })
    log.debug("salary check tenant=%s flagged=%d of %d", ctx.tenant_id, len(out), len(emps))
    return out
