from __future__ import annotations

from ..extensions import db
from smartpack.time_utils import to_utc_z


class OutboxEvent(db.Model):
    """
    Realtime notification waiting to be relayed to observers.

    Written in the same transaction as the mutation it describes, so an event
    exists exactly when the mutation committed. Relays poll by id and ack.
    """
    __tablename__ = "outbox_events"
    __table_args__ = (
        db.Index("ix_outbox_delivered_id", "delivered", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    topic = db.Column(db.String(64), nullable=False, index=True)  # e.g., booking.scan, asset.upsert
    entity_type = db.Column(db.String(32), nullable=False)  # booking, asset
    entity_key = db.Column(db.String(64), nullable=False)  # draft_id or asset_code
    payload = db.Column(db.JSON, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    delivered = db.Column(db.Boolean, nullable=False, default=False)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "topic": self.topic,
            "entity_type": self.entity_type,
            "entity_key": self.entity_key,
            "payload": self.payload,
            "created_at": to_utc_z(self.created_at),
            "delivered": self.delivered,
            "delivered_at": to_utc_z(self.delivered_at),
        }
