# Overview: Completion transition; final ledger snapshot, asset settlement and header closure.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import BookingHeader
from ..time_utils import utcnow
from . import notifier
from .booking_service import attached_assets, load_header
from .booking_types import ACTION_CONFIRMED, BookingEvent, BookingType, get_config, next_status
from .concurrency import run_in_transaction
from .ledger_service import snapshot

logger = logging.getLogger(__name__)


def confirm_output(draft_id: str, actor: str, booking_type: BookingType | str | None = None) -> BookingHeader:
    """
    Complete a finalized booking.

    For every attached asset: append a "confirmed" ledger row, settle it in the
    type's steady status and detach it. Routing stays on the asset so the next
    booking can check where it was sent. The header becomes COMPLETED.
    """
    def _op() -> BookingHeader:
        header = load_header(draft_id, booking_type)
        target = next_status(header.status, BookingEvent.COMPLETE)
        cfg = get_config(header.booking_type)
        steady = cfg.steady_status.value

        assets = attached_assets(draft_id)
        entries = [
            snapshot(asset, action=ACTION_CONFIRMED, actor=actor, booking_type=header.booking_type, status=steady)
            for asset in assets
        ]

        now = utcnow()
        for asset in assets:
            asset.current_status = steady
            asset.previous_status = None
            asset.draft_id = None
            asset.ref_code = None
            asset.scan_by = None
            asset.scan_at = None
            asset.scan_token = None
            asset.updated_by = actor
            asset.updated_at = now

        header.status = target.value
        header.completed_by = actor
        header.completed_at = now
        header.updated_by = actor
        header.updated_at = now
        db.session.flush()
        db.session.add_all(entries)

        notifier.booking_changed(header, "complete")
        notifier.assets_changed(assets)
        db.session.commit()
        logger.info(
            "Booking completed",
            extra={"draft_id": draft_id, "ref_code": header.ref_code, "assets": len(assets), "actor": actor},
        )
        return header

    return run_in_transaction(_op)
