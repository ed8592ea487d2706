# hrcore_api/common/errors.py
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from hrcore_api.common.http import fail


class APIError(Exception):
    """Base for every error the API surfaces on purpose."""
    code = "api_error"
    status_code = 400

    def __init__(self, message, code=None, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if code: self.code = code
        if status_code: self.status_code = status_code
        self.payload = payload


class Unauthenticated(APIError):
    code = "unauthenticated"
    status_code = 401


class TenantInactive(APIError):
    code = "tenant_inactive"
    status_code = 403


class Forbidden(APIError):
    code = "forbidden"
    status_code = 403


class NotFound(APIError):
    """Absent, or present in another tenant. Callers cannot tell the two apart."""
    code = "not_found"
    status_code = 404


class ValidationFailed(APIError):
    code = "validation_failed"
    status_code = 400


class DuplicateEntity(APIError):
    code = "duplicate_entity"
    status_code = 409


class InvalidStateTransition(APIError):
    code = "invalid_state_transition"
    status_code = 409


class DependentEntityExists(APIError):
    code = "dependent_entity_exists"
    status_code = 409


def register_error_handlers(app):
    from hrcore_api.extensions import db

    @app.errorhandler(APIError)
    def _api_error(e: APIError):
        if e.status_code in (401, 403):
            app.logger.warning("%s: %s", e.code, e.message)
        return fail(e.message, status=e.status_code, code=e.code, detail=e.payload)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        code = {404: NotFound.code, 405: "method_not_allowed"}.get(e.code, "http_error")
        return fail(e.description or e.name, status=e.code or 500, code=code)

    @app.errorhandler(IntegrityError)
    def _integrity(e: IntegrityError):
        # unique index hit by a concurrent writer after our own pre-check passed
        db.session.rollback()
        app.logger.warning("integrity error: %s", getattr(e, "orig", e))
        return fail("Duplicate or conflicting record", status=409, code=DuplicateEntity.code)

    @app.errorhandler(Exception)
    def _500(e: Exception):
        db.session.rollback()
        app.logger.exception(e)
        return fail("Internal server error", status=500, code="internal_error")
