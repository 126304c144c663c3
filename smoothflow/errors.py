"""Error taxonomy and JSON error responses."""
from __future__ import annotations

from flask import Flask, current_app, jsonify
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from werkzeug.exceptions import HTTPException

from .extensions import db


class ApiError(Exception):
    """Base class for errors that map onto an HTTP status and JSON body."""

    status_code = 500
    error = "internal_error"
    message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_response(self):
        return jsonify({"error": self.error, "message": self.message}), self.status_code


class AuthError(ApiError):
    pass


class Unauthenticated(AuthError):
    status_code = 401
    error = "unauthorized"
    message = "Authentication required"


class Forbidden(AuthError):
    status_code = 403
    error = "forbidden"
    message = "Admin access required"


class NotFound(ApiError):
    status_code = 404
    error = "not_found"
    message = "Resource not found"


class ValidationError(ApiError):
    status_code = 400
    error = "invalid_payload"
    message = "Invalid request payload"


class InternalError(ApiError):
    status_code = 500
    error = "internal_error"
    message = "Internal server error"


class DatabaseError(InternalError):
    error = "database_error"


class StoreTimeout(ApiError):
    status_code = 503
    error = "database_timeout"
    message = "The database did not respond in time"


# PostgreSQL reports statement_timeout cancellations with SQLSTATE 57014.
_QUERY_CANCELED = "57014"


def is_timeout(exc: SQLAlchemyError) -> bool:
    if isinstance(exc, PoolTimeoutError):
        return True
    if isinstance(exc, OperationalError):
        orig = getattr(exc, "orig", None)
        if getattr(orig, "pgcode", None) == _QUERY_CANCELED:
            return True
        return "timeout" in str(orig).lower() or "timed out" in str(orig).lower()
    return False


def database_error(exc: SQLAlchemyError, log_message: str):
    """Roll back the request session, log the failure and build the error response."""
    db.session.rollback()
    current_app.logger.exception(log_message, exc_info=exc)
    if is_timeout(exc):
        return StoreTimeout().to_response()
    return DatabaseError().to_response()


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def handle_api_error(exc: ApiError):
        return exc.to_response()

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        code = (exc.name or "error").lower().replace(" ", "_")
        return jsonify({"error": code, "message": exc.description}), exc.code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc: SQLAlchemyError):
        return database_error(exc, "Unhandled database error")

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        current_app.logger.exception("Unhandled exception", exc_info=exc)
        return InternalError().to_response()
