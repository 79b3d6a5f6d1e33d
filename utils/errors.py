from flask import current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException


class AuthFlowError(Exception):
    """
    Base error for the phone/PIN auth flows.

    `message` is always safe to show to the caller; `details` only carries
    values that are already inferable (wait time, lock expiry, attempts left).
    """
    status_code = 400
    code = "BAD_REQUEST"
    default_message = "Request failed"

    def __init__(self, message=None, code=None, **details):
        self.message = message or self.default_message
        if code:
            self.code = code
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> dict:
        payload = {"success": False, "error": self.message, "code": self.code}
        payload.update(self.details)
        return payload


class ValidationError(AuthFlowError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid request"


class RateLimited(AuthFlowError):
    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            f"Please wait {retry_after_seconds} seconds before requesting a new code",
            retryAfterSeconds=retry_after_seconds,
        )


class InvalidOrExpired(AuthFlowError):
    status_code = 400
    code = "INVALID_CODE"
    default_message = "Invalid or expired verification code"


class InvalidPin(AuthFlowError):
    status_code = 401
    code = "INVALID_PIN"
    default_message = "Incorrect PIN"

    def __init__(self, attempts_remaining: int):
        super().__init__(attemptsRemaining=attempts_remaining, lockedUntil=None)


class NotFound(AuthFlowError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Account not found for this phone"


class PinNotSet(AuthFlowError):
    status_code = 400
    code = "PIN_NOT_SET"
    default_message = "PIN not set for this account"


class Locked(AuthFlowError):
    status_code = 423
    code = "PIN_LOCKED"
    default_message = "PIN locked due to failed attempts"

    def __init__(self, locked_until, attempts_remaining: int = 0):
        self.locked_until = locked_until
        super().__init__(
            lockedUntil=_iso(locked_until),
            attemptsRemaining=attempts_remaining,
        )


class Unauthorized(AuthFlowError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Authentication required"


class UpstreamFailure(AuthFlowError):
    status_code = 500
    code = "UPSTREAM_FAILURE"
    default_message = "Service temporarily unavailable. Please try again."


class InternalInconsistency(AuthFlowError):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "An unexpected error occurred"


def _iso(value):
    return value.isoformat() + "Z" if value is not None else None


def register_error_handlers(app):
    from models import db

    @app.errorhandler(AuthFlowError)
    def _auth_flow_error(err):
        resp = jsonify(err.to_payload())
        if isinstance(err, RateLimited):
            resp.headers["Retry-After"] = str(err.retry_after_seconds)
        return resp, err.status_code

    @app.errorhandler(HTTPException)
    def _http_error(err):
        payload = {"success": False, "error": err.description or err.name, "code": f"HTTP_{err.code}"}
        return jsonify(payload), err.code

    @app.errorhandler(SQLAlchemyError)
    def _db_error(err):
        db.session.rollback()
        current_app.logger.exception("Database error")
        return jsonify(InternalInconsistency().to_payload()), 500

    @app.errorhandler(Exception)
    def _unexpected(err):
        db.session.rollback()
        current_app.logger.exception("Unhandled error")
        return jsonify(InternalInconsistency().to_payload()), 500
