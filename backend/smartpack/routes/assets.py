# Overview: Flask API routes for asset registry reads, ledger history and repair receipts.

from flask import Blueprint, g, request

from ..decorators import booking_result, ok, require_actor
from ..extensions import db
from ..models import AssetRecord
from ..services import ledger_service, return_service
from ..services.errors import NotFound, ValidationError


assets_bp = Blueprint("assets", __name__, url_prefix="/api/assets")


@assets_bp.get("/on-repair")
@booking_result
def assets_on_repair_route():
    return ok([a.to_dict() for a in return_service.assets_on_repair()])


@assets_bp.post("/repair-receipts")
@require_actor
@booking_result
def receive_from_repair_route():
    """
    Take repaired assets back into stock (IN_REPAIR -> FREE).

    Request body:
    {
        "asset_codes": ["A100", "A101"]
    }
    """
    data = request.get_json(silent=True) or {}
    codes = data.get("asset_codes") if isinstance(data, dict) else None
    if not isinstance(codes, list) or not codes:
        raise ValidationError("asset_codes must be a non-empty list")
    assets = return_service.receive_from_repair(codes, g.actor)
    return ok([a.to_dict() for a in assets])


@assets_bp.get("/<asset_code>")
@booking_result
def get_asset_route(asset_code: str):
    asset = db.session.query(AssetRecord).filter_by(asset_code=asset_code).first()
    if asset is None:
        raise NotFound(f"Asset {asset_code} not found", data={"asset_code": asset_code})
    return ok(asset.to_dict())


@assets_bp.get("/<asset_code>/history")
@booking_result
def asset_history_route(asset_code: str):
    return ok([e.to_dict() for e in ledger_service.asset_history(asset_code)])
