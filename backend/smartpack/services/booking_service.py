# Overview: Booking session store; owns booking headers, their upsert and metadata confirmation.

from __future__ import annotations

import logging
from typing import Any, Mapping

from ..extensions import db
from ..models import AssetRecord, BookingHeader
from ..time_utils import business_today, utcnow
from . import notifier
from .booking_types import BookingEvent, BookingStatus, BookingType, get_config, next_status
from .concurrency import lock_for_update, run_in_transaction
from .errors import Conflict, NotFound, ValidationError

"""
Booking Header Invariants

- draft_id is supplied by the scanning client and identifies the session
- booking_type is fixed at creation
- status only moves along TRANSITIONS (booking_types)
- ref_code is written at most once (refcode_service)
"""

logger = logging.getLogger(__name__)

HEADER_PATCH_FIELDS = ("remark", "origin", "destination")


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def load_header(draft_id: str, booking_type: BookingType | str | None = None, *, lock: bool = True) -> BookingHeader:
    """
    Fetch a header inside the current transaction.

    When `booking_type` is given, a header of another type is reported as not
    found so one workflow's endpoints can never touch another's drafts.
    """
    query = db.session.query(BookingHeader).filter_by(draft_id=draft_id)
    if lock:
        query = lock_for_update(query)
    header = query.first()
    if header is None:
        raise NotFound(f"Booking {draft_id} not found", data={"draft_id": draft_id})
    if booking_type is not None and header.booking_type != get_config(booking_type).booking_type.value:
        raise NotFound(
            f"Booking {draft_id} not found for type {get_config(booking_type).booking_type.value}",
            data={"draft_id": draft_id},
        )
    return header


def attached_assets(draft_id: str, *, lock: bool = True) -> list[AssetRecord]:
    """Assets currently attached to the draft, in scan order."""
    query = (
        db.session.query(AssetRecord)
        .filter(AssetRecord.draft_id == draft_id)
        .order_by(AssetRecord.scan_at.asc(), AssetRecord.id.asc())
    )
    if lock:
        query = lock_for_update(query)
    return query.all()


def apply_header_patch(header: BookingHeader, patch: Mapping[str, Any] | None) -> bool:
    """
    Copy remark/origin/destination from `patch` onto the header.

    Returns True when routing changed. Unknown keys are rejected.
    """
    if not patch:
        return False
    unknown = sorted(set(patch) - set(HEADER_PATCH_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown header fields: {', '.join(unknown)}", data={"fields": unknown})

    routing_changed = False
    if "remark" in patch:
        header.remark = _clean(patch["remark"])
    for field in ("origin", "destination"):
        if field in patch:
            value = _clean(patch[field])
            if getattr(header, field) != value:
                setattr(header, field, value)
                routing_changed = True
    return routing_changed


def propagate_routing(header: BookingHeader, assets: list[AssetRecord], actor: str) -> list[AssetRecord]:
    """Push the header's origin/destination onto attached assets (routing types only)."""
    cfg = get_config(header.booking_type)
    if not cfg.requires_routing:
        return []
    now = utcnow()
    changed = []
    for asset in assets:
        if asset.origin != header.origin or asset.destination != header.destination:
            asset.origin = header.origin
            asset.destination = header.destination
            asset.updated_by = actor
            asset.updated_at = now
            changed.append(asset)
    return changed


def create_draft(draft_id: str, actor: str, booking_type: BookingType | str, objective: str | None = None) -> BookingHeader:
    """
    Upsert a booking header.

    First call creates it in INITIAL. Repeat calls (client retries) only refresh
    the audit timestamp; the status is never regressed.
    """
    draft_id = _clean(draft_id)
    if not draft_id:
        raise ValidationError("draft_id is required")
    cfg = get_config(booking_type)
    objective = _clean(objective) or cfg.default_objective

    def _op() -> BookingHeader:
        now = utcnow()
        header = lock_for_update(
            db.session.query(BookingHeader).filter_by(draft_id=draft_id)
        ).first()

        if header is not None:
            if header.booking_type != cfg.booking_type.value:
                raise ValidationError(
                    f"Booking {draft_id} already exists as {header.booking_type}",
                    data={"draft_id": draft_id, "booking_type": header.booking_type},
                )
            header.updated_by = actor
            header.updated_at = now
            db.session.commit()
            return header

        header = BookingHeader(
            draft_id=draft_id,
            booking_type=cfg.booking_type.value,
            objective=objective,
            status=BookingStatus.INITIAL.value,
            create_date=business_today(),
            created_by=actor,
            created_at=now,
            updated_by=actor,
            updated_at=now,
        )
        db.session.add(header)
        db.session.flush()
        notifier.booking_changed(header, "draft")
        db.session.commit()
        logger.info(
            "Booking draft created",
            extra={"draft_id": draft_id, "booking_type": cfg.booking_type.value, "actor": actor},
        )
        return header

    try:
        return run_in_transaction(_op)
    except Conflict:
        # Lost the insert race to another request for the same draft: take the refresh path
        return run_in_transaction(_op)


def update_header_metadata(
    draft_id: str,
    patch: Mapping[str, Any],
    actor: str,
    booking_type: BookingType | str | None = None,
) -> BookingHeader:
    """
    Record remark/origin/destination and move the header to CONFIRMED.

    Legal from INITIAL or CONFIRMED. For routing types the new route is pushed
    onto every asset currently attached to the draft.
    """
    def _op() -> BookingHeader:
        header = load_header(draft_id, booking_type)
        status = next_status(header.status, BookingEvent.CONFIRM)

        apply_header_patch(header, patch)
        header.status = status.value
        header.updated_by = actor
        header.updated_at = utcnow()

        changed = propagate_routing(header, attached_assets(draft_id), actor)
        db.session.flush()

        notifier.booking_changed(header, "header")
        notifier.assets_changed(changed)
        db.session.commit()
        logger.info(
            "Booking header confirmed",
            extra={"draft_id": draft_id, "assets_rerouted": len(changed), "actor": actor},
        )
        return header

    return run_in_transaction(_op)


def get_header(draft_id: str, booking_type: BookingType | str | None = None) -> BookingHeader:
    return load_header(draft_id, booking_type, lock=False)


def list_attached(draft_id: str, booking_type: BookingType | str | None = None) -> list[AssetRecord]:
    load_header(draft_id, booking_type, lock=False)
    return attached_assets(draft_id, lock=False)
