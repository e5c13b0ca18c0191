# Overview: Read-side views of bookings: daily listing with item counts and booking detail.

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..models import AssetRecord, BookingHeader, LedgerEntry
from ..time_utils import business_today
from .booking_service import attached_assets, load_header
from .booking_types import ACTION_CONFIRMED, BookingStatus, BookingType, get_config
from .ledger_service import latest_entries_for_ref


def _attendee_counts(headers: list[BookingHeader]) -> dict[str, int]:
    """
    Item count per draft_id.

    Completed bookings count the assets confirmed in the ledger; every other
    status counts assets still attached in the registry.
    """
    counts: dict[str, int] = {h.draft_id: 0 for h in headers}

    open_ids = [h.draft_id for h in headers if h.status != BookingStatus.COMPLETED.value]
    if open_ids:
        rows = (
            db.session.query(AssetRecord.draft_id, func.count(AssetRecord.id))
            .filter(AssetRecord.draft_id.in_(open_ids))
            .group_by(AssetRecord.draft_id)
            .all()
        )
        counts.update({draft_id: n for draft_id, n in rows})

    completed = {h.ref_code: h.draft_id for h in headers if h.status == BookingStatus.COMPLETED.value and h.ref_code}
    if completed:
        rows = (
            db.session.query(LedgerEntry.ref_code, func.count(func.distinct(LedgerEntry.asset_code)))
            .filter(LedgerEntry.ref_code.in_(list(completed)), LedgerEntry.action == ACTION_CONFIRMED)
            .group_by(LedgerEntry.ref_code)
            .all()
        )
        counts.update({completed[ref]: n for ref, n in rows})

    return counts


def list_bookings(booking_type: BookingType | str, on_date: date | None = None) -> list[dict]:
    """Non-cancelled bookings of one type opened on a business date, oldest first."""
    cfg = get_config(booking_type)
    on_date = on_date or business_today()

    headers = (
        db.session.query(BookingHeader)
        .filter(
            BookingHeader.booking_type == cfg.booking_type.value,
            BookingHeader.create_date == on_date,
            BookingHeader.status != BookingStatus.CANCELLED.value,
        )
        .order_by(BookingHeader.created_at.asc(), BookingHeader.id.asc())
        .all()
    )
    counts = _attendee_counts(headers)

    results = []
    for header in headers:
        row = header.to_dict()
        row["status_label"] = cfg.label_for(header.status)
        row["attendees"] = counts.get(header.draft_id, 0)
        results.append(row)
    return results


def booking_detail(draft_id: str, booking_type: BookingType | str | None = None) -> dict:
    """
    Header plus its items.

    Items of a completed booking come from the ledger (latest row per asset);
    open bookings list the registry rows attached right now.
    """
    header = load_header(draft_id, booking_type, lock=False)
    cfg = get_config(header.booking_type)

    if header.status == BookingStatus.COMPLETED.value and header.ref_code:
        items = [e.to_dict() for e in latest_entries_for_ref(header.ref_code)]
        source = "ledger"
    else:
        items = [a.to_dict() for a in attached_assets(draft_id, lock=False)]
        source = "registry"

    return {
        "header": header.to_dict(),
        "status_label": cfg.label_for(header.status),
        "items_source": source,
        "items": items,
    }
