from __future__ import annotations

from ..extensions import db
from smartpack.time_utils import to_utc_z


class AssetRecord(db.Model):
    """
    Physical item (box, container, piece of equipment) in the Asset Registry.

    The registry row is the single source of truth for "is this asset booked":
    draft_id/ref_code are set only while the asset is attached to an open
    booking. The schema is shared with the registration screens; the booking
    engine reads and writes only the status, attachment and routing columns.

    INVARIANTS:
    - attached (draft_id non-null) to at most one open booking at a time
    - previous_status is the status held immediately before the current attach
    - version_id makes concurrent check-then-set updates fail loudly
    """
    __tablename__ = "asset_records"
    __table_args__ = (
        db.Index("ix_asset_records_status_updated", "current_status", "updated_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Business key printed on the label
    asset_code = db.Column(db.String(64), nullable=False, unique=True, index=True)

    # Descriptive fields (copied into every ledger snapshot)
    name = db.Column(db.String(255), nullable=True)
    asset_type = db.Column(db.String(64), nullable=True)
    lot_no = db.Column(db.String(64), nullable=True)
    holder = db.Column(db.String(128), nullable=True)
    location = db.Column(db.String(128), nullable=True)
    remark = db.Column(db.Text, nullable=True)

    current_status = db.Column(db.String(32), nullable=False, default="FREE", index=True)
    previous_status = db.Column(db.String(32), nullable=True)

    # Attachment to an open booking
    draft_id = db.Column(db.String(64), nullable=True, index=True)
    ref_code = db.Column(db.String(32), nullable=True, index=True)
    scan_by = db.Column(db.String(64), nullable=True)
    scan_at = db.Column(db.DateTime(timezone=True), nullable=True)
    # Fresh per successful scan; identifies the attach event in the ledger
    scan_token = db.Column(db.String(32), nullable=True)

    # Routing
    origin = db.Column(db.String(128), nullable=True)
    destination = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_by = db.Column(db.String(64), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<AssetRecord {self.asset_code} status={self.current_status} draft={self.draft_id}>"

    @property
    def is_attached(self) -> bool:
        return self.draft_id is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "asset_code": self.asset_code,
            "name": self.name,
            "asset_type": self.asset_type,
            "lot_no": self.lot_no,
            "holder": self.holder,
            "location": self.location,
            "remark": self.remark,
            "current_status": self.current_status,
            "previous_status": self.previous_status,
            "draft_id": self.draft_id,
            "ref_code": self.ref_code,
            "scan_by": self.scan_by,
            "scan_at": to_utc_z(self.scan_at),
            "scan_token": self.scan_token,
            "origin": self.origin,
            "destination": self.destination,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "updated_by": self.updated_by,
            "version_id": self.version_id,
        }
