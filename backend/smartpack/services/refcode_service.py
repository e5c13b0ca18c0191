# Overview: Reference code generator; allocates <prefix><DDMMYY><NNNN> codes per booking type and business date.

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import update

from ..extensions import db
from ..models import BookingHeader, RefCodeSequence
from ..time_utils import business_today, utcnow
from . import notifier
from .booking_types import BookingType, get_config
from .concurrency import lock_for_update, run_in_transaction
from .errors import Conflict, NotFound, ValidationError

logger = logging.getLogger(__name__)

SUFFIX_WIDTH = 4
MAX_SUFFIX = 10 ** SUFFIX_WIDTH - 1


def ref_code_stem(booking_type: BookingType | str, on_date: date, objective: str | None = None) -> str:
    """Prefix (from type and objective) followed by the date as DDMMYY."""
    cfg = get_config(booking_type)
    return f"{cfg.prefix_for(objective)}{on_date.strftime('%d%m%y')}"


def _max_existing_suffix(stem: str) -> int:
    """Highest numeric suffix already issued on a header for this stem (0 if none)."""
    codes = (
        db.session.query(BookingHeader.ref_code)
        .filter(BookingHeader.ref_code.like(f"{stem}%"))
        .all()
    )
    best = 0
    for (code,) in codes:
        suffix = code[len(stem):]
        if suffix.isdigit():
            best = max(best, int(suffix))
    return best


def _allocate(stem: str) -> str:
    """
    Bump the counter for `stem` inside the caller's transaction.

    The UPDATE takes the write lock before the new value is read back, so two
    transactions can never observe the same value. The first allocation for a
    stem seeds the counter from the codes already on file.
    """
    stmt = (
        update(RefCodeSequence)
        .where(RefCodeSequence.stem == stem)
        .values(last_value=RefCodeSequence.last_value + 1, updated_at=utcnow())
    )
    result = db.session.execute(stmt)
    if result.rowcount:
        value = (
            db.session.query(RefCodeSequence.last_value)
            .filter_by(stem=stem)
            .scalar()
        )
    else:
        value = _max_existing_suffix(stem) + 1
        db.session.add(RefCodeSequence(stem=stem, last_value=value, updated_at=utcnow()))
        # SQLite already holds the write lock from the empty UPDATE; elsewhere a
        # concurrent seeder loses on the unique stem and surfaces as Conflict
        db.session.flush()

    if value > MAX_SUFFIX:
        raise Conflict(f"Reference code sequence exhausted for {stem}", data={"stem": stem})
    return f"{stem}{value:0{SUFFIX_WIDTH}d}"


def next_ref_code(booking_type: BookingType | str, on_date: date | None = None, objective: str | None = None) -> str:
    """
    Allocate and commit the next reference code for a type and date.

    Each call consumes one number; codes are distinct and increasing per stem.
    """
    stem = ref_code_stem(booking_type, on_date or business_today(), objective)

    def _op() -> str:
        code = _allocate(stem)
        db.session.commit()
        return code

    try:
        return run_in_transaction(_op)
    except Conflict:
        # Lost the seeding race; the counter row exists now
        return run_in_transaction(_op)


def assign_ref_code(draft_id: str, actor: str, on_date: date | None = None) -> BookingHeader:
    """
    Give a header its reference code, once.

    Idempotent: a header that already has a code is returned unchanged and no
    number is consumed. The prefix follows the header's own type and objective.
    """
    if not draft_id:
        raise ValidationError("draft_id is required")

    def _op() -> BookingHeader:
        header = lock_for_update(
            db.session.query(BookingHeader).filter_by(draft_id=draft_id)
        ).first()
        if header is None:
            raise NotFound(f"Booking {draft_id} not found", data={"draft_id": draft_id})
        if header.ref_code:
            return header

        stem = ref_code_stem(header.booking_type, on_date or business_today(), header.objective)
        header.ref_code = _allocate(stem)
        header.updated_by = actor
        header.updated_at = utcnow()
        db.session.flush()
        notifier.booking_changed(header, "ref_code")
        db.session.commit()
        logger.info(
            "Reference code assigned",
            extra={"draft_id": draft_id, "ref_code": header.ref_code, "actor": actor},
        )
        return header

    return run_in_transaction(_op)


def ensure_ref_code(header: BookingHeader, actor: str) -> str:
    """
    In-transaction variant used by scan: assign a code to `header` if it has none.

    Does not commit; the caller's transaction owns the write.
    """
    if not header.ref_code:
        stem = ref_code_stem(header.booking_type, business_today(), header.objective)
        header.ref_code = _allocate(stem)
        header.updated_by = actor
        header.updated_at = utcnow()
        logger.info("Reference code assigned", extra={"draft_id": header.draft_id, "ref_code": header.ref_code})
    return header.ref_code
