# hrcore_api/common/paging.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping

from sqlalchemy import asc, desc, or_

from hrcore_api.common.errors import ValidationFailed

DEFAULT_PAGE = 1
DEFAULT_SIZE = 20
MAX_SIZE = 100


def parse_int(val, name):
    if val is None or val == "":
        return None
    try:
        return int(val)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{name} must be integer")


def parse_date(val, name="date"):
    if val in (None, ""):
        return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    for fmt in ("%Y-%m-%d", "%d-%m-%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(str(val), fmt).date()
        except ValueError:
            pass
    raise ValidationFailed(f"{name} must be a date (YYYY-MM-DD)")


def parse_text(val, name, lower=False, strip=True) -> str:
    """Stripped string; None becomes "". Non-string JSON values are rejected."""
    if val is None:
        return ""
    if not isinstance(val, str):
        raise ValidationFailed(f"{name} must be a string")
    out = val.strip() if strip else val
    return out.lower() if lower else out


def parse_money(val, name, required=False):
    """Non-negative finite Decimal; None/"" gives None unless ``required``."""
    if val in (None, ""):
        if required:
            raise ValidationFailed(f"{name} is required")
        return None
    if isinstance(val, bool):
        raise ValidationFailed(f"{name} must be a number")
    try:
        out = Decimal(str(val))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationFailed(f"{name} must be a number")
    if not out.is_finite():
        raise ValidationFailed(f"{name} must be a finite number")
    if out < 0:
        raise ValidationFailed(f"{name} cannot be negative")
    return out


@dataclass(frozen=True)
class ListSpec:
    """
    Filter/sort/paging parameters for one list request.

    Built once from the query string; only keys named in ``filters`` are
    picked up, everything else in the query string is ignored.
    """
    page: int = DEFAULT_PAGE
    size: int = DEFAULT_SIZE
    sort: tuple = ()
    q: str | None = None
    filters: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_args(cls, args, filters: dict[str, Callable] | None = None,
                  sortable: tuple[str, ...] = (), default_size: int = DEFAULT_SIZE) -> "ListSpec":
        # ?page & ?size (limit accepted as alias)
        try:
            page = max(int(args.get("page", DEFAULT_PAGE)), 1)
        except (TypeError, ValueError):
            page = DEFAULT_PAGE
        raw_size = args.get("size", args.get("limit"))
        try:
            size = max(1, min(int(raw_size), MAX_SIZE)) if raw_size is not None else default_size
        except (TypeError, ValueError):
            size = default_size

        # ?sort=name,-created_at; unknown keys ignored
        sort = []
        for part in [p.strip() for p in (args.get("sort") or "").split(",") if p.strip()]:
            key, ascending = (part[1:], False) if part.startswith("-") else (part, True)
            if key in sortable:
                sort.append((key, ascending))

        parsed = {}
        for key, parser in (filters or {}).items():
            raw = args.get(key)
            if raw in (None, ""):
                continue
            parsed[key] = parser(raw, key)

        q = (args.get("q") or "").strip() or None
        return cls(page=page, size=size, sort=tuple(sort), q=q, filters=parsed)

    def get(self, key, default=None):
        return self.filters.get(key, default)

    def search(self, query, *cols):
        if not self.q:
            return query
        like = f"%{self.q}%"
        return query.filter(or_(*[c.ilike(like) for c in cols]))

    def order(self, query, columns: dict, default: list):
        """Apply requested sort, falling back to ``default`` [(column, asc)]."""
        items = [(columns[k], a) for k, a in self.sort if k in columns] or default
        for col, ascending in items:
            query = query.order_by(asc(col) if ascending else desc(col))
        return query

    def paginate(self, query):
        total = query.count()
        items = query.offset((self.page - 1) * self.size).limit(self.size).all()
        pages = (total + self.size - 1) // self.size if total else 0
        return items, {"page": self.page, "size": self.size, "total": total, "pages": pages}


def lower_text(raw, _name):
    return str(raw).strip().lower()
