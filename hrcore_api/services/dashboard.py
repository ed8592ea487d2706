# hrcore_api/services/dashboard.py
"""Read-only aggregates for the dashboard. Every query goes through scope_query."""
from __future__ import annotations

from collections import OrderedDict
from datetime import date, timedelta

from flask import current_app
from sqlalchemy import func

from hrcore_api.common.scoping import scope_query
from hrcore_api.models.employee import Employee
from hrcore_api.models.master import Department, Position
from hrcore_api.models.movement import Movement, MOVEMENT_TYPES
from hrcore_api.services.salaries import out_of_range_employees


def _active_employees(ctx):
    return scope_query(Employee.query, ctx, Employee, Employee.department_id).filter(Employee.status == "active")


def _movements(ctx):
    return scope_query(
        Movement.query.join(Employee, Movement.employee_id == Employee.id),
        ctx, Movement, Employee.department_id,
    )


def _money(val):
    return round(float(val), 2) if val is not None else 0.0


def summary(ctx) -> dict:
    emps = _active_employees(ctx)
    days = current_app.config.get("MOVEMENTS_RECENT_DAYS", 30)
    since = date.today() - timedelta(days=days)

    by_modality = dict(
        emps.with_entities(Employee.work_modality, func.count(Employee.id)).group_by(Employee.work_modality).all()
    )
    by_hours = {
        str(h): n for h, n in
        emps.with_entities(Employee.weekly_hours, func.count(Employee.id)).group_by(Employee.weekly_hours).all()
    }
    avg_salary = emps.with_entities(func.avg(Employee.salary)).scalar()

    return {
        "total_employees": emps.count(),
        "by_work_modality": by_modality,
        "by_weekly_hours": by_hours,
        "average_salary": _money(avg_salary),
        "recent_movements": _movements(ctx)
        .filter(Movement.effective_date >= since, Movement.effective_date <= date.today()).count(),
        "recent_days": days,
        "pending_movements": _movements(ctx).filter(Movement.status == "pending").count(),
        "departments": scope_query(Department.query, ctx, Department, Department.id)
        .filter(Department.status == "active").count(),
        "positions": scope_query(Position.query, ctx, Position, Position.department_id)
        .filter(Position.status == "active").count(),
    }


def by_department(ctx) -> list[dict]:
    rows = (
        _active_employees(ctx)
        .join(Department, Employee.department_id == Department.id)
        .with_entities(
            Department.id, Department.name, Department.budget,
            func.count(Employee.id), func.avg(Employee.salary), func.sum(Employee.salary),
        )
        .group_by(Department.id, Department.name, Department.budget)
        .order_by(Department.name.asc())
        .all()
    )
    return [
        {
            "department_id": dep_id,
            "name": name,
            "headcount": count,
            "average_salary": _money(avg),
            "payroll": _money(total),
            "budget": float(budget) if budget is not None else None,
        }
        for dep_id, name, budget, count, avg, total in rows
    ]


def _month_start(d: date, back: int) -> date:
    y, m = d.year, d.month - back
    while m <= 0:
        m += 12
        y -= 1
    return date(y, m, 1)


def movements_by_month(ctx, months: int = 6) -> list[dict]:
    """Movement counts per month and type for the last ``months`` months (current month included)."""
    today = date.today()
    start = _month_start(today, months - 1)

    buckets = OrderedDict()
    for i in range(months - 1, -1, -1):
        key = _month_start(today, i).strftime("%Y-%m")
        buckets[key] = {"month": key, "total": 0, "by_type": {t: 0 for t in MOVEMENT_TYPES},
                        "by_status": {"pending": 0, "approved": 0, "rejected": 0}}

    rows = (
        _movements(ctx)
        .filter(Movement.effective_date >= start)
        .with_entities(Movement.effective_date, Movement.type, Movement.status)
        .all()
    )
    # grouped in Python: month truncation differs between sqlite and postgres
    for eff, mtype, status in rows:
        bucket = buckets.get(eff.strftime("%Y-%m"))
        if bucket is None:
            continue
        bucket["total"] += 1
        bucket["by_type"][mtype] = bucket["by_type"].get(mtype, 0) + 1
        bucket["by_status"][status] = bucket["by_status"].get(status, 0) + 1
    return list(buckets.values())


def salaries(ctx) -> dict:
    rows = (
        _active_employees(ctx)
        .join(Position, Employee.position_id == Position.id)
        .with_entities(
            Position.id, Position.title, Position.level, func.count(Employee.id),
            func.min(Employee.salary), func.avg(Employee.salary), func.max(Employee.salary),
        )
        .group_by(Position.id, Position.title, Position.level)
        .order_by(Position.title.asc(), Position.level.asc())
        .all()
    )
    flagged = out_of_range_employees(ctx)
    return {
        "positions": [
            {
                "position_id": pid,
                "title": title,
                "level": level,
                "headcount": count,
                "min_salary": _money(lo),
                "average_salary": _money(avg),
                "max_salary": _money(hi),
            }
            for pid, title, level, count, lo, avg, hi in rows
        ],
        "out_of_range": len(flagged),
        "below_range": sum(1 for r in flagged if r["status"] == "below"),
        "above_range": sum(1 for r in flagged if r["status"] == "above"),
    }


def _month_end(year: int, month: int) -> date:
    return (date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)) - timedelta(days=1)


def turnover(ctx, year: int) -> dict:
    """
    Admissions, terminations and month-end headcount for ``year``.

    turnover_rate = (admissions + terminations) / 2 / average headcount * 100.
    Employees without an admission date are left out of every figure.
    """
    rows = (
        scope_query(Employee.query, ctx, Employee, Employee.department_id)
        .filter(Employee.admission_date.isnot(None))
        .with_entities(Employee.admission_date, Employee.termination_date)
        .all()
    )
    admissions = sum(1 for adm, _ in rows if adm.year == year)
    terminations = sum(1 for _, term in rows if term is not None and term.year == year)

    headcount = []
    for month in range(1, 13):
        end = _month_end(year, month)
        count = sum(1 for adm, term in rows if adm <= end and (term is None or term > end))
        headcount.append({"month": month, "label": end.strftime("%Y-%m"), "count": count})

    average = sum(h["count"] for h in headcount) / 12
    rate = (admissions + terminations) / 2 / average * 100 if average else 0.0
    return {
        "year": year,
        "admissions": admissions,
        "terminations": terminations,
        "average_headcount": round(average),
        "turnover_rate": round(rate, 2),
        "headcount_by_month": headcount,
    }
