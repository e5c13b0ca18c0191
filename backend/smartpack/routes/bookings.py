# Overview: Flask API routes for booking drafts; parses input and returns typed JSON results.

# backend/smartpack/routes/bookings.py
"""
Booking API Routes

One blueprint serves all four workflows; the booking type is the first path
segment (INBOUND, OUTBOUND, DEFECT_REQUEST, REPAIR_RETURN, case-insensitive).

DESIGN:
- Routes only parse input and pick the service call
- Every mutation commits inside its service; routes never touch the session
- Failures come back as {"success": false, "code", "message", "data"}
- The actor identifier comes from the X-Actor-Id header
"""

from flask import Blueprint, g, request

from ..decorators import booking_result, ok, require_actor
from ..services import (
    booking_service,
    completion_service,
    ledger_service,
    refcode_service,
    reporting_service,
    return_service,
    scan_service,
)
from ..services.booking_service import HEADER_PATCH_FIELDS
from ..services.booking_types import get_config
from ..services.errors import ValidationError
from ..time_utils import parse_iso_date


bookings_bp = Blueprint("bookings", __name__, url_prefix="/api/bookings/<booking_type>")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _date_arg(value):
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD")


def _header_patch(data: dict) -> dict:
    return {k: data[k] for k in HEADER_PATCH_FIELDS if k in data}


# =============================================================================
# DRAFT LIFECYCLE
# =============================================================================

@bookings_bp.post("/drafts")
@require_actor
@booking_result
def create_draft_route(booking_type: str):
    """
    Create (or refresh) a booking draft.

    Request body:
    {
        "draft_id": "tablet-7-20261019-01",
        "objective": "claim"  (optional)
    }

    Returns:
        201: Header in INITIAL (or its current status on a repeat call)
    """
    data = _json_body()
    header = booking_service.create_draft(
        data.get("draft_id"),
        g.actor,
        get_config(booking_type).booking_type,
        data.get("objective"),
    )
    return ok(header.to_dict(), 201)


@bookings_bp.post("/drafts/<draft_id>/ref-code")
@require_actor
@booking_result
def assign_ref_code_route(booking_type: str, draft_id: str):
    """Assign the reference code now (idempotent). Optional body: {"date": "YYYY-MM-DD"}."""
    booking_service.get_header(draft_id, booking_type)
    data = _json_body()
    header = refcode_service.assign_ref_code(draft_id, g.actor, _date_arg(data.get("date")))
    return ok(header.to_dict())


@bookings_bp.put("/drafts/<draft_id>/header")
@require_actor
@booking_result
def update_header_route(booking_type: str, draft_id: str):
    """
    Confirm header metadata.

    Request body (any subset):
    {
        "remark": "...",
        "origin": "WH1",
        "destination": "SITE2"
    }
    """
    data = _json_body()
    header = booking_service.update_header_metadata(draft_id, _header_patch(data), g.actor, booking_type)
    return ok(header.to_dict())


@bookings_bp.post("/drafts/<draft_id>/scan")
@require_actor
@booking_result
def scan_route(booking_type: str, draft_id: str):
    """
    Scan one asset into the draft.

    Request body:
    {
        "asset_code": "A100",      (or "qr": raw label payload)
        "ref_code": "IS1910260001" (optional)
    }

    Returns:
        200: Updated asset
        404: Unknown asset or draft
        409: ALREADY_ATTACHED / ROUTING_MISMATCH / ILLEGAL_TRANSITION
        422: INVALID_PRECONDITION
    """
    data = _json_body()
    asset_code = data.get("asset_code")
    if not asset_code and data.get("qr") is not None:
        asset_code = scan_service.parse_qr_payload(data.get("qr"))
    if not asset_code:
        raise ValidationError("asset_code or qr required")

    asset = scan_service.scan(asset_code, draft_id, g.actor, data.get("ref_code"), booking_type)
    return ok(asset.to_dict())


@bookings_bp.post("/drafts/<draft_id>/finalize")
@require_actor
@booking_result
def finalize_route(booking_type: str, draft_id: str):
    """Finalize (or re-finalize after unlock). Optional body: remark/origin/destination patch."""
    data = _json_body()
    header = ledger_service.finalize(draft_id, g.actor, _header_patch(data) or None, booking_type)
    return ok(header.to_dict())


@bookings_bp.post("/drafts/<draft_id>/unlock")
@require_actor
@booking_result
def unlock_route(booking_type: str, draft_id: str):
    header = return_service.unlock(draft_id, g.actor, booking_type)
    return ok(header.to_dict())


@bookings_bp.post("/drafts/<draft_id>/confirm")
@require_actor
@booking_result
def confirm_output_route(booking_type: str, draft_id: str):
    header = completion_service.confirm_output(draft_id, g.actor, booking_type)
    return ok(header.to_dict())


@bookings_bp.post("/drafts/<draft_id>/cancel")
@require_actor
@booking_result
def cancel_route(booking_type: str, draft_id: str):
    header = return_service.cancel(draft_id, g.actor, booking_type)
    return ok(header.to_dict())


# =============================================================================
# RETURNS
# =============================================================================

@bookings_bp.post("/returns")
@require_actor
@booking_result
def return_assets_route(booking_type: str):
    """
    Remove assets from their open drafts (all-or-nothing).

    Request body:
    {
        "asset_codes": ["A100", "A101"]   (or "asset_code": "A100")
    }
    """
    data = _json_body()
    codes = data.get("asset_codes")
    if codes is None and data.get("asset_code"):
        codes = [data["asset_code"]]
    if not isinstance(codes, list) or not codes:
        raise ValidationError("asset_codes must be a non-empty list")

    assets = return_service.return_many(codes, g.actor, get_config(booking_type).booking_type)
    return ok([a.to_dict() for a in assets])


# =============================================================================
# READS
# =============================================================================

@bookings_bp.get("/drafts/<draft_id>")
@booking_result
def booking_detail_route(booking_type: str, draft_id: str):
    return ok(reporting_service.booking_detail(draft_id, booking_type))


@bookings_bp.get("/drafts/<draft_id>/items")
@booking_result
def list_attached_route(booking_type: str, draft_id: str):
    assets = booking_service.list_attached(draft_id, booking_type)
    return ok([a.to_dict() for a in assets])


@bookings_bp.get("/")
@booking_result
def list_bookings_route(booking_type: str):
    """List non-cancelled bookings for ?date=YYYY-MM-DD (default: today, business time)."""
    on_date = _date_arg(request.args.get("date"))
    return ok(reporting_service.list_bookings(booking_type, on_date))
