# Overview: Reversal engine; detaches assets from open bookings, unlock/cancel transitions and repair receipts.

from __future__ import annotations

import logging
from typing import Iterable, Optional

from ..extensions import db
from ..models import AssetRecord, BookingHeader, LedgerEntry
from ..time_utils import utcnow
from . import notifier
from .booking_service import attached_assets, load_header
from .booking_types import (
    ACTION_REPAIRED,
    ACTION_REVERSED,
    EDITABLE_STATUSES,
    AssetStatus,
    BookingEvent,
    BookingStatus,
    BookingType,
    BookingTypeConfig,
    get_config,
    next_status,
)
from .concurrency import lock_for_update, run_in_transaction
from .errors import Conflict, IllegalTransition, InvalidPrecondition, NotFound, ValidationError
from .ledger_service import last_scan_entry, snapshot

"""
Reversal Invariants

- A return lands the asset on the status it held immediately before its scan:
  previous_status on the row, else the latest ledger row's previous_status,
  else the type's primary pre-scan status.
- Returning from an UNLOCKED booking appends a "reversed" ledger row first.
- draft_id, ref_code, scan_by, scan_at and scan_token are always cleared.
- Multi-asset calls are all-or-nothing.
"""

logger = logging.getLogger(__name__)


def _normalize_codes(asset_codes: Iterable[str] | None) -> list[str]:
    seen = []
    for code in asset_codes or []:
        code = str(code or "").strip()
        if code and code not in seen:
            seen.append(code)
    if not seen:
        raise ValidationError("At least one asset_code is required")
    return seen


def _lock_assets(codes: list[str]) -> list[AssetRecord]:
    """Lock the requested rows; any unknown code fails the whole call."""
    rows = lock_for_update(
        db.session.query(AssetRecord).filter(AssetRecord.asset_code.in_(codes))
    ).all()
    by_code = {row.asset_code: row for row in rows}
    missing = [c for c in codes if c not in by_code]
    if missing:
        raise NotFound(f"Asset {missing[0]} not found", data={"asset_codes": missing})
    return [by_code[c] for c in codes]


def _attachments(codes: list[str]) -> dict[str, Optional[str]]:
    """Unlocked read of asset_code -> draft_id; any unknown code fails the whole call."""
    rows = (
        db.session.query(AssetRecord.asset_code, AssetRecord.draft_id)
        .filter(AssetRecord.asset_code.in_(codes))
        .all()
    )
    found = {code: draft_id for code, draft_id in rows}
    missing = [c for c in codes if c not in found]
    if missing:
        raise NotFound(f"Asset {missing[0]} not found", data={"asset_codes": missing})
    return found


def restore_status(asset: AssetRecord, cfg: BookingTypeConfig) -> str:
    """Status an attached asset goes back to when it is returned."""
    if asset.previous_status:
        return asset.previous_status
    entry = last_scan_entry(asset.asset_code)
    if entry is not None and entry.previous_status:
        return entry.previous_status
    return cfg.primary_pre_scan_status.value


def _detach(asset: AssetRecord, header: BookingHeader, actor: str) -> Optional[LedgerEntry]:
    """Clear the attachment; returns the "reversed" row for unlocked bookings."""
    cfg = get_config(header.booking_type)
    restored = restore_status(asset, cfg)

    entry = None
    if header.status == BookingStatus.UNLOCKED.value:
        entry = snapshot(asset, action=ACTION_REVERSED, actor=actor, booking_type=header.booking_type, status=restored)

    asset.current_status = restored
    asset.previous_status = None
    asset.draft_id = None
    asset.ref_code = None
    asset.scan_by = None
    asset.scan_at = None
    asset.scan_token = None
    asset.updated_by = actor
    asset.updated_at = utcnow()
    return entry


def return_many(asset_codes: Iterable[str], actor: str, booking_type: BookingType | str | None = None) -> list[AssetRecord]:
    """
    Remove assets from the open bookings they are attached to.

    Each asset must be attached to a booking that is still editable
    (INITIAL, CONFIRMED or UNLOCKED); otherwise the call is an
    IllegalTransition and nothing changes.
    """
    codes = _normalize_codes(asset_codes)

    def _op() -> list[AssetRecord]:
        # Header locks before asset locks, as in finalize and confirm
        seen = _attachments(codes)
        headers: dict[str, BookingHeader] = {
            draft_id: load_header(draft_id, booking_type)
            for draft_id in sorted({d for d in seen.values() if d})
        }
        assets = _lock_assets(codes)

        for asset in assets:
            if asset.draft_id != seen[asset.asset_code]:
                raise Conflict(
                    f"Asset {asset.asset_code} changed booking while being returned; retry",
                    data={"asset_code": asset.asset_code, "draft_id": asset.draft_id},
                )
            if not asset.draft_id:
                raise IllegalTransition(
                    f"Asset {asset.asset_code} is not attached to a booking",
                    data={"asset_code": asset.asset_code, "status": asset.current_status},
                )
            header = headers[asset.draft_id]
            if header.status not in EDITABLE_STATUSES:
                raise IllegalTransition(
                    f"Booking {header.draft_id} is {header.status}; unlock it before removing assets",
                    data={"asset_code": asset.asset_code, "draft_id": header.draft_id, "status": header.status},
                )

        entries = [_detach(asset, headers[asset.draft_id], actor) for asset in assets]
        now = utcnow()
        for header in headers.values():
            header.updated_by = actor
            header.updated_at = now
        db.session.flush()
        db.session.add_all([e for e in entries if e is not None])

        notifier.assets_changed(assets)
        for header in headers.values():
            notifier.booking_changed(header, "return")
        db.session.commit()
        logger.info(
            "Assets returned",
            extra={"asset_codes": codes, "drafts": sorted(headers), "actor": actor},
        )
        return assets

    return run_in_transaction(_op)


def return_one(asset_code: str, actor: str, booking_type: BookingType | str | None = None) -> AssetRecord:
    return return_many([asset_code], actor, booking_type)[0]


def unlock(draft_id: str, actor: str, booking_type: BookingType | str | None = None) -> BookingHeader:
    """Reopen a FINALIZED booking for rescans and removals; ref code and ledger stay."""
    def _op() -> BookingHeader:
        header = load_header(draft_id, booking_type)
        target = next_status(header.status, BookingEvent.UNLOCK)

        now = utcnow()
        header.status = target.value
        header.unlocked_by = actor
        header.unlocked_at = now
        header.updated_by = actor
        header.updated_at = now
        db.session.flush()

        notifier.booking_changed(header, "unlock")
        db.session.commit()
        logger.info("Booking unlocked", extra={"draft_id": draft_id, "ref_code": header.ref_code, "actor": actor})
        return header

    return run_in_transaction(_op)


def cancel(draft_id: str, actor: str, booking_type: BookingType | str | None = None) -> BookingHeader:
    """Abandon a draft. Only INITIAL/CONFIRMED drafts with nothing attached qualify."""
    def _op() -> BookingHeader:
        header = load_header(draft_id, booking_type)
        target = next_status(header.status, BookingEvent.CANCEL)

        attached = attached_assets(draft_id)
        if attached:
            raise IllegalTransition(
                f"Booking {draft_id} still has {len(attached)} attached asset(s)",
                data={"draft_id": draft_id, "attached": [a.asset_code for a in attached]},
            )

        now = utcnow()
        header.status = target.value
        header.cancelled_by = actor
        header.cancelled_at = now
        header.updated_by = actor
        header.updated_at = now
        db.session.flush()

        notifier.booking_changed(header, "cancel")
        db.session.commit()
        logger.info("Booking cancelled", extra={"draft_id": draft_id, "actor": actor})
        return header

    return run_in_transaction(_op)


def receive_from_repair(asset_codes: Iterable[str], actor: str) -> list[AssetRecord]:
    """
    Take repaired assets back into stock: IN_REPAIR -> FREE.

    Routing and attachment fields are cleared and a "repaired" ledger row is
    appended per asset. Any asset not IN_REPAIR fails the whole call.
    """
    codes = _normalize_codes(asset_codes)
    allowed = (AssetStatus.IN_REPAIR,)

    def _op() -> list[AssetRecord]:
        assets = _lock_assets(codes)
        for asset in assets:
            if asset.current_status not in allowed:
                raise InvalidPrecondition(
                    f"Asset {asset.asset_code} is {asset.current_status}, not IN_REPAIR",
                    actual=asset.current_status,
                    allowed=allowed,
                    data={"asset_code": asset.asset_code},
                )

        entries = [snapshot(asset, action=ACTION_REPAIRED, actor=actor, status=AssetStatus.FREE.value) for asset in assets]

        now = utcnow()
        for asset in assets:
            asset.current_status = AssetStatus.FREE.value
            asset.previous_status = None
            asset.draft_id = None
            asset.ref_code = None
            asset.scan_by = None
            asset.scan_at = None
            asset.scan_token = None
            asset.origin = None
            asset.destination = None
            asset.updated_by = actor
            asset.updated_at = now
        db.session.flush()
        db.session.add_all(entries)

        notifier.assets_changed(assets)
        db.session.commit()
        logger.info("Assets received from repair", extra={"asset_codes": codes, "actor": actor})
        return assets

    return run_in_transaction(_op)


def assets_on_repair() -> list[AssetRecord]:
    return (
        db.session.query(AssetRecord)
        .filter(AssetRecord.current_status == AssetStatus.IN_REPAIR.value)
        .order_by(AssetRecord.asset_code.asc())
        .all()
    )
