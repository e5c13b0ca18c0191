# Overview: Flask API routes that let a realtime relay drain the notification outbox.

from flask import Blueprint, current_app, request

from ..decorators import booking_result, ok
from ..services import notifier
from ..services.errors import ValidationError


events_bp = Blueprint("events", __name__, url_prefix="/api/events")


@events_bp.get("")
@booking_result
def pending_events_route():
    """Undelivered events with id > ?after_id, oldest first, at most ?limit."""
    page_size = current_app.config.get("EVENT_PAGE_SIZE", 100)
    try:
        after_id = int(request.args.get("after_id", 0))
        limit = min(int(request.args.get("limit", page_size)), page_size)
    except ValueError:
        raise ValidationError("after_id and limit must be integers")
    if limit < 1:
        raise ValidationError("limit must be positive")
    return ok([e.to_dict() for e in notifier.pending_events(after_id, limit)])


@events_bp.post("/ack")
@booking_result
def ack_events_route():
    """Mark relayed events delivered. Body: {"ids": [1, 2, 3]}."""
    data = request.get_json(silent=True) or {}
    ids = data.get("ids") if isinstance(data, dict) else None
    if not isinstance(ids, list):
        raise ValidationError("ids must be a list")
    try:
        count = notifier.mark_delivered(ids)
    except (TypeError, ValueError):
        raise ValidationError("ids must be integers")
    return ok({"acknowledged": count})
