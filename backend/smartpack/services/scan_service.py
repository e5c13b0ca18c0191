# Overview: Asset scan gate; attaches one physical asset to an open booking after validating preconditions.

from __future__ import annotations

import logging
import uuid

from ..extensions import db
from ..models import AssetRecord
from ..time_utils import utcnow
from . import notifier
from .booking_service import load_header
from .booking_types import EDITABLE_STATUSES, BookingType, get_config
from .concurrency import lock_for_update, run_in_transaction
from .errors import (
    AlreadyAttached,
    BookingError,
    IllegalTransition,
    InvalidPrecondition,
    NotFound,
    RoutingMismatch,
    ValidationError,
)
from .refcode_service import ensure_ref_code

"""
Scan Gate Invariants

Checks run in this order and the first failure wins:
1. asset exists, then booking exists       -> NotFound
2. not already in this draft + ref code    -> AlreadyAttached
3. header open for editing                 -> IllegalTransition
4. supplied ref code is the header's       -> IllegalTransition
5. asset status in the type's pre-scan set -> InvalidPrecondition
6. origin matches the asset's last destination (routed statuses only) -> RoutingMismatch

Locks are taken header first, then asset, the same order finalize, confirm and
cancel use. Only a fully validated scan mutates anything. Asset and header rows
are versioned and every scan writes both, so of two concurrent scans of one
asset exactly one commits, and a scan racing a finalize of its booking either
commits first or is re-evaluated and fails at step 3.
"""

logger = logging.getLogger(__name__)

# Keyboard-layout alias of "|" produced by Thai handheld scanners
QR_SEPARATOR_ALIASES = ("ฅ",)
QR_ASSET_CODE_FIELD = 2


def parse_qr_payload(payload: str | None) -> str:
    """
    Extract the asset code from a raw label payload.

    Labels encode `<field>|<field>|<asset code>|...`.
    """
    if payload is None or not str(payload).strip():
        raise ValidationError("QR payload is empty")
    text = str(payload)
    for alias in QR_SEPARATOR_ALIASES:
        text = text.replace(alias, "|")
    parts = text.split("|")
    if len(parts) <= QR_ASSET_CODE_FIELD or not parts[QR_ASSET_CODE_FIELD].strip():
        raise ValidationError("QR payload does not contain an asset code", data={"payload": payload})
    return parts[QR_ASSET_CODE_FIELD].strip()


def _rejected(exc: BookingError, asset_code: str, draft_id: str) -> BookingError:
    logger.warning(
        "Scan rejected",
        extra={"asset_code": asset_code, "draft_id": draft_id, "code": exc.code},
    )
    return exc


def scan(
    asset_code: str,
    draft_id: str,
    actor: str,
    ref_code: str | None = None,
    booking_type: BookingType | str | None = None,
) -> AssetRecord:
    """
    Attach `asset_code` to the open draft `draft_id`.

    `ref_code` may be omitted; the draft's code is used (and assigned on the
    first scan if the draft has none yet). A code that differs from the
    draft's is an IllegalTransition.

    Returns the updated asset row.
    """
    asset_code = (asset_code or "").strip()
    if not asset_code:
        raise ValidationError("asset_code is required")

    def _op() -> AssetRecord:
        exists = db.session.query(AssetRecord.id).filter_by(asset_code=asset_code).first()
        if exists is None:
            raise _rejected(
                NotFound(f"Asset {asset_code} not found", data={"asset_code": asset_code}),
                asset_code, draft_id,
            )

        header = load_header(draft_id, booking_type)
        asset = lock_for_update(
            db.session.query(AssetRecord).filter_by(asset_code=asset_code)
        ).one()
        cfg = get_config(header.booking_type)
        effective_ref = ref_code or header.ref_code

        if asset.draft_id == draft_id and effective_ref and asset.ref_code == effective_ref:
            raise _rejected(
                AlreadyAttached(
                    f"Asset {asset_code} is already in booking {effective_ref}",
                    data={"asset_code": asset_code, "draft_id": draft_id, "ref_code": effective_ref},
                ),
                asset_code, draft_id,
            )

        if header.status not in EDITABLE_STATUSES:
            raise _rejected(
                IllegalTransition(
                    f"Booking {draft_id} is {header.status} and does not accept scans",
                    data={"draft_id": draft_id, "status": header.status},
                ),
                asset_code, draft_id,
            )
        if ref_code and header.ref_code and ref_code != header.ref_code:
            raise _rejected(
                IllegalTransition(
                    f"Reference code {ref_code} does not belong to booking {draft_id}",
                    data={"draft_id": draft_id, "ref_code": ref_code, "expected_ref_code": header.ref_code},
                ),
                asset_code, draft_id,
            )

        if not cfg.allows_scan_from(asset.current_status):
            raise _rejected(
                InvalidPrecondition(
                    f"Asset {asset_code} is {asset.current_status}; "
                    f"{cfg.booking_type.value} accepts only {', '.join(s.value for s in cfg.pre_scan_statuses)}",
                    actual=asset.current_status,
                    allowed=cfg.pre_scan_statuses,
                    data={"asset_code": asset_code, "attached_draft_id": asset.draft_id},
                ),
                asset_code, draft_id,
            )

        if cfg.checks_routing_for(asset.current_status) and header.origin != asset.destination:
            raise _rejected(
                RoutingMismatch(
                    f"Asset {asset_code} was sent to {asset.destination or 'nowhere'}, "
                    f"booking origin is {header.origin or 'not set'}",
                    data={
                        "asset_code": asset_code,
                        "asset_destination": asset.destination,
                        "booking_origin": header.origin,
                    },
                ),
                asset_code, draft_id,
            )

        attached_ref = ensure_ref_code(header, actor)
        now = utcnow()
        # Bump the header version; scan and finalize serialize on it
        header.updated_by = actor
        header.updated_at = now

        asset.previous_status = asset.current_status
        asset.current_status = cfg.in_draft_status.value
        asset.draft_id = draft_id
        asset.ref_code = attached_ref
        asset.scan_by = actor
        asset.scan_at = now
        asset.scan_token = uuid.uuid4().hex
        if cfg.requires_routing and (header.origin or header.destination):
            asset.origin = header.origin
            asset.destination = header.destination
        asset.updated_by = actor
        asset.updated_at = now

        db.session.flush()
        notifier.assets_changed([asset])
        notifier.booking_changed(header, "scan")
        db.session.commit()
        logger.info(
            "Asset scanned into booking",
            extra={"asset_code": asset_code, "draft_id": draft_id, "ref_code": attached_ref, "actor": actor},
        )
        return asset

    return run_in_transaction(_op)
