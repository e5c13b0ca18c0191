from __future__ import annotations

from ..extensions import db
from smartpack.time_utils import to_utc_z


class BookingHeader(db.Model):
    """
    One asset movement request (inbound, outbound, defect request, repair return).

    LIFECYCLE:
    1. INITIAL: Draft created by the scanning client, assets may be scanned in
    2. CONFIRMED: Remark and routing entered
    3. FINALIZED: Attached assets snapshotted into the ledger
    4. UNLOCKED: Reopened for rescans/removals; the next finalize merges
    5. COMPLETED: Movement confirmed, assets settled and detached (terminal)
    6. CANCELLED: Abandoned with nothing attached (terminal)

    draft_id is chosen by the client and is stable for the session; ref_code is
    assigned once and never changes; booking_type never changes.
    """
    __tablename__ = "booking_headers"
    __table_args__ = (
        db.Index("ix_booking_headers_type_date", "booking_type", "create_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    draft_id = db.Column(db.String(64), nullable=False, unique=True, index=True)

    # Human-readable reference (e.g., "IS1910260007"), unique once assigned
    ref_code = db.Column(db.String(32), nullable=True, unique=True)

    booking_type = db.Column(db.String(32), nullable=False, index=True)
    objective = db.Column(db.String(64), nullable=True)

    # INITIAL, CONFIRMED, FINALIZED, UNLOCKED, COMPLETED, CANCELLED
    status = db.Column(db.String(16), nullable=False, default="INITIAL", index=True)

    origin = db.Column(db.String(128), nullable=True)
    destination = db.Column(db.String(128), nullable=True)
    remark = db.Column(db.Text, nullable=True)

    # Business (warehouse-local) date the draft was opened on
    create_date = db.Column(db.Date, nullable=False)

    # Actor attribution for each lifecycle stage
    created_by = db.Column(db.String(64), nullable=True)
    updated_by = db.Column(db.String(64), nullable=True)
    finalized_by = db.Column(db.String(64), nullable=True)
    unlocked_by = db.Column(db.String(64), nullable=True)
    completed_by = db.Column(db.String(64), nullable=True)
    cancelled_by = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    finalized_at = db.Column(db.DateTime(timezone=True), nullable=True)
    unlocked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<BookingHeader {self.draft_id} {self.booking_type} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "draft_id": self.draft_id,
            "ref_code": self.ref_code,
            "booking_type": self.booking_type,
            "objective": self.objective,
            "status": self.status,
            "origin": self.origin,
            "destination": self.destination,
            "remark": self.remark,
            "create_date": self.create_date.isoformat() if self.create_date else None,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "finalized_by": self.finalized_by,
            "unlocked_by": self.unlocked_by,
            "completed_by": self.completed_by,
            "cancelled_by": self.cancelled_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "finalized_at": to_utc_z(self.finalized_at),
            "unlocked_at": to_utc_z(self.unlocked_at),
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "version_id": self.version_id,
        }


class RefCodeSequence(db.Model):
    """
    Counter row per reference-code stem (prefix + 6-digit date).

    WHY: The atomic UPDATE on this row is the serialization point for
    concurrent reference-code allocation; two drafts can never compute the
    same "next" suffix.
    """
    __tablename__ = "ref_code_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    stem = db.Column(db.String(16), nullable=False, unique=True)
    last_value = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stem": self.stem,
            "last_value": self.last_value,
            "updated_at": to_utc_z(self.updated_at),
        }
