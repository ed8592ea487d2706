# hrcore_api/blueprints/health.py
from datetime import datetime

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from hrcore_api.extensions import db
from hrcore_api.common.http import ok, fail

bp = Blueprint("health", __name__, url_prefix="/api")


@bp.get("/health")
def health():
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("health check: database unreachable")
        return fail("Database unreachable", 503, code="unavailable")
    return ok({"db": "up", "time": datetime.utcnow().isoformat()})
