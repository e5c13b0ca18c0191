# Overview: Realtime notifier; writes change events to the transactional outbox for relays to pick up.

from __future__ import annotations

import logging
from typing import Iterable

from ..extensions import db
from ..models import AssetRecord, BookingHeader, OutboxEvent
from ..time_utils import utcnow
from .concurrency import run_in_transaction

logger = logging.getLogger(__name__)

ASSET_UPSERT_TOPIC = "asset.upsert"


def publish(topic: str, *, entity_type: str, entity_key: str, payload: dict) -> OutboxEvent:
    """
    Stage an event in the caller's transaction.

    No commit here: the event becomes visible exactly when the mutation it
    describes commits, and disappears with it on rollback.
    """
    evt = OutboxEvent(
        topic=topic,
        entity_type=entity_type,
        entity_key=entity_key,
        payload=payload or {},
        delivered=False,
    )
    db.session.add(evt)
    return evt


def booking_changed(header: BookingHeader, action: str) -> OutboxEvent:
    return publish(
        f"booking.{action}",
        entity_type="booking",
        entity_key=header.draft_id,
        payload=header.to_dict(),
    )


def assets_changed(assets: Iterable[AssetRecord]) -> list[OutboxEvent]:
    """One asset.upsert event per asset row."""
    return [
        publish(
            ASSET_UPSERT_TOPIC,
            entity_type="asset",
            entity_key=asset.asset_code,
            payload=asset.to_dict(),
        )
        for asset in assets
    ]


def pending_events(after_id: int = 0, limit: int = 100) -> list[OutboxEvent]:
    """Undelivered events in commit order, for at-least-once relays."""
    return (
        db.session.query(OutboxEvent)
        .filter(OutboxEvent.delivered.is_(False), OutboxEvent.id > (after_id or 0))
        .order_by(OutboxEvent.id.asc())
        .limit(limit)
        .all()
    )


def mark_delivered(event_ids: Iterable[int]) -> int:
    """Acknowledge relayed events. Unknown or already-acked ids are ignored."""
    ids = sorted({int(i) for i in event_ids})

    def _op():
        if not ids:
            return 0
        count = (
            db.session.query(OutboxEvent)
            .filter(OutboxEvent.id.in_(ids), OutboxEvent.delivered.is_(False))
            .update({"delivered": True, "delivered_at": utcnow()}, synchronize_session=False)
        )
        db.session.commit()
        logger.info("Outbox events acknowledged", extra={"count": count})
        return count

    return run_in_transaction(_op)
