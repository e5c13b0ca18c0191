# Overview: Snapshot ledger; finalizes bookings into append-only ledger rows and serves ledger reads.

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sqlalchemy import func

from ..extensions import db
from ..models import AssetRecord, BookingHeader, LedgerEntry
from ..time_utils import utcnow
from . import notifier
from .booking_service import apply_header_patch, attached_assets, load_header, propagate_routing
from .booking_types import ACTION_MOVED, BookingEvent, BookingStatus, BookingType, next_status
from .concurrency import run_in_transaction
from .errors import NotFound
from .refcode_service import ensure_ref_code

"""
Snapshot Ledger Invariants (authoritative)

- Insert-only. Rows are never updated or deleted; the model rejects both.
- Rows are written inside the same transaction as the state change they record.
- First finalize (from CONFIRMED) writes one "moved" row per attached asset.
- Re-finalize (from UNLOCKED) writes a "moved" row only for attach events
  (asset + scan_token) that have none yet for this ref code, so an unchanged
  unlock/finalize cycle adds nothing.
"""

logger = logging.getLogger(__name__)


def snapshot(
    asset: AssetRecord,
    *,
    action: str,
    actor: str,
    booking_type: str | None = None,
    status: str | None = None,
) -> LedgerEntry:
    """
    Build (but do not add) a ledger row copying the asset's current fields.

    `status` overrides the recorded current_status, for events that record the
    status they leave the asset in before the row itself is changed.

    Callers flush their versioned updates first and add the rows afterwards,
    so a lost race surfaces as a stale row before any insert is attempted.
    """
    return LedgerEntry(
        ref_code=asset.ref_code,
        draft_id=asset.draft_id,
        booking_type=booking_type,
        action=action,
        asset_code=asset.asset_code,
        name=asset.name,
        asset_type=asset.asset_type,
        lot_no=asset.lot_no,
        holder=asset.holder,
        location=asset.location,
        current_status=status or asset.current_status,
        previous_status=asset.previous_status,
        origin=asset.origin,
        destination=asset.destination,
        scan_by=asset.scan_by,
        scan_at=asset.scan_at,
        scan_token=asset.scan_token,
        recorded_by=actor,
        recorded_at=utcnow(),
    )


def _audited_tokens(ref_code: str, action: str) -> set[tuple[str, Optional[str]]]:
    rows = (
        db.session.query(LedgerEntry.asset_code, LedgerEntry.scan_token)
        .filter(LedgerEntry.ref_code == ref_code, LedgerEntry.action == action)
        .all()
    )
    return {(code, token) for code, token in rows}


def finalize(
    draft_id: str,
    actor: str,
    header_patch: Mapping[str, Any] | None = None,
    booking_type: BookingType | str | None = None,
) -> BookingHeader:
    """
    Lock the booking and snapshot its attached assets into the ledger.

    Legal from CONFIRMED (first finalize) and UNLOCKED (re-finalize, merged).
    An optional remark/origin/destination patch is applied first and the
    resulting route is pushed onto attached assets.
    """
    def _op() -> BookingHeader:
        header = load_header(draft_id, booking_type)
        previous = header.status
        target = next_status(previous, BookingEvent.FINALIZE)

        apply_header_patch(header, header_patch)
        assets = attached_assets(draft_id)
        rerouted = propagate_routing(header, assets, actor)
        ref_code = ensure_ref_code(header, actor)

        now = utcnow()
        header.status = target.value
        header.finalized_by = actor
        header.finalized_at = now
        header.updated_by = actor
        header.updated_at = now
        db.session.flush()

        if previous == BookingStatus.UNLOCKED.value:
            audited = _audited_tokens(ref_code, ACTION_MOVED)
            pending = [a for a in assets if (a.asset_code, a.scan_token) not in audited]
        else:
            pending = list(assets)

        db.session.add_all([
            snapshot(asset, action=ACTION_MOVED, actor=actor, booking_type=header.booking_type)
            for asset in pending
        ])

        notifier.booking_changed(header, "finalize")
        notifier.assets_changed(rerouted)
        db.session.commit()
        logger.info(
            "Booking finalized",
            extra={
                "draft_id": draft_id,
                "ref_code": ref_code,
                "merge": previous == BookingStatus.UNLOCKED.value,
                "attached": len(assets),
                "ledger_rows_written": len(pending),
                "actor": actor,
            },
        )
        return header

    return run_in_transaction(_op)


def entries_for_ref(ref_code: str, action: str | None = None) -> list[LedgerEntry]:
    query = db.session.query(LedgerEntry).filter(LedgerEntry.ref_code == ref_code)
    if action:
        query = query.filter(LedgerEntry.action == action)
    return query.order_by(LedgerEntry.id.asc()).all()


def latest_entries_for_ref(ref_code: str, action: str | None = None) -> list[LedgerEntry]:
    """Most recent row per asset for a reference code, in asset-code order."""
    latest = db.session.query(
        LedgerEntry.asset_code.label("asset_code"),
        func.max(LedgerEntry.id).label("max_id"),
    ).filter(LedgerEntry.ref_code == ref_code)
    if action:
        latest = latest.filter(LedgerEntry.action == action)
    latest = latest.group_by(LedgerEntry.asset_code).subquery()

    return (
        db.session.query(LedgerEntry)
        .join(latest, LedgerEntry.id == latest.c.max_id)
        .order_by(LedgerEntry.asset_code.asc())
        .all()
    )


def last_scan_entry(asset_code: str) -> Optional[LedgerEntry]:
    """The asset's most recent ledger row by scan time."""
    return (
        db.session.query(LedgerEntry)
        .filter(LedgerEntry.asset_code == asset_code, LedgerEntry.scan_at.isnot(None))
        .order_by(LedgerEntry.scan_at.desc(), LedgerEntry.id.desc())
        .first()
    )


def asset_history(asset_code: str) -> list[LedgerEntry]:
    """Every ledger row for an asset, newest first."""
    exists = db.session.query(AssetRecord.id).filter_by(asset_code=asset_code).first()
    if exists is None:
        raise NotFound(f"Asset {asset_code} not found", data={"asset_code": asset_code})
    return (
        db.session.query(LedgerEntry)
        .filter(LedgerEntry.asset_code == asset_code)
        .order_by(LedgerEntry.recorded_at.desc(), LedgerEntry.id.desc())
        .all()
    )
