# Overview: Request decorators for API routes (actor context, typed error rendering).

from functools import wraps

from flask import current_app, g, jsonify, request

from .extensions import db
from .services.errors import BookingError

ACTOR_HEADER = "X-Actor-Id"


def require_actor(f):
    """
    Require an opaque actor identifier for audit columns.

    Sets g.actor from the X-Actor-Id header. No authentication is performed;
    the identifier is recorded as-is. Returns 401 when it is missing.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor = (request.headers.get(ACTOR_HEADER) or "").strip()
        if not actor:
            return jsonify({
                "success": False,
                "code": "ACTOR_REQUIRED",
                "message": f"{ACTOR_HEADER} header required",
                "data": {},
            }), 401
        g.actor = actor
        return f(*args, **kwargs)

    return decorated_function


def booking_result(f):
    """
    Render service outcomes as typed results.

    BookingError -> {"success": false, code, message, data} with its HTTP status.
    Anything unexpected is rolled back, logged and reported as a 500.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except BookingError as e:
            db.session.rollback()
            return jsonify(e.to_result()), e.http_status
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Unhandled error in %s", request.path)
            return jsonify({
                "success": False,
                "code": "INTERNAL_ERROR",
                "message": "Internal server error",
                "data": {},
            }), 500

    return decorated_function


def ok(data, status: int = 200):
    return jsonify({"success": True, "data": data}), status
