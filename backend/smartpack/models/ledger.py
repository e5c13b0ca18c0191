from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from smartpack.time_utils import to_utc_z
from smartpack.services.errors import LedgerImmutableError


class LedgerEntry(db.Model):
    """
    Append-only snapshot of an asset at a status-changing booking event.

    INVARIANTS:
    - Rows are inserted and never updated or deleted (enforced by the mapper
      hooks below)
    - current_status is the status the event left the asset in
    - At most one row per (ref_code, asset_code, scan_token, action); scan_token
      identifies the attach event, so re-finalizing an unchanged attach is a no-op
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        db.UniqueConstraint("ref_code", "asset_code", "scan_token", "action", name="uq_ledger_attach_event"),
        db.Index("ix_ledger_ref_asset", "ref_code", "asset_code"),
        db.Index("ix_ledger_asset_recorded", "asset_code", "recorded_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Booking context
    ref_code = db.Column(db.String(32), nullable=True, index=True)
    draft_id = db.Column(db.String(64), nullable=True)
    booking_type = db.Column(db.String(32), nullable=True)
    action = db.Column(db.String(16), nullable=False, index=True)  # moved, confirmed, reversed, repaired

    # Asset snapshot
    asset_code = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=True)
    asset_type = db.Column(db.String(64), nullable=True)
    lot_no = db.Column(db.String(64), nullable=True)
    holder = db.Column(db.String(128), nullable=True)
    location = db.Column(db.String(128), nullable=True)
    current_status = db.Column(db.String(32), nullable=False)
    previous_status = db.Column(db.String(32), nullable=True)
    origin = db.Column(db.String(128), nullable=True)
    destination = db.Column(db.String(128), nullable=True)
    scan_by = db.Column(db.String(64), nullable=True)
    scan_at = db.Column(db.DateTime(timezone=True), nullable=True)
    scan_token = db.Column(db.String(32), nullable=True)

    recorded_by = db.Column(db.String(64), nullable=True)
    recorded_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.id} {self.ref_code}/{self.asset_code} {self.action}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ref_code": self.ref_code,
            "draft_id": self.draft_id,
            "booking_type": self.booking_type,
            "action": self.action,
            "asset_code": self.asset_code,
            "name": self.name,
            "asset_type": self.asset_type,
            "lot_no": self.lot_no,
            "holder": self.holder,
            "location": self.location,
            "current_status": self.current_status,
            "previous_status": self.previous_status,
            "origin": self.origin,
            "destination": self.destination,
            "scan_by": self.scan_by,
            "scan_at": to_utc_z(self.scan_at),
            "scan_token": self.scan_token,
            "recorded_by": self.recorded_by,
            "recorded_at": to_utc_z(self.recorded_at),
        }


@event.listens_for(LedgerEntry, "before_update")
def _reject_ledger_update(mapper, connection, target):
    raise LedgerImmutableError(f"Ledger entry {target.id} is append-only and cannot be updated")


@event.listens_for(LedgerEntry, "before_delete")
def _reject_ledger_delete(mapper, connection, target):
    raise LedgerImmutableError(f"Ledger entry {target.id} is append-only and cannot be deleted")
