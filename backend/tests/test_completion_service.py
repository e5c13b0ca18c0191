"""Completion transition and the end-to-end outbound scenario."""

import pytest

from smartpack.extensions import db
from smartpack.models import BookingHeader, OutboxEvent
from smartpack.services import (
    booking_service,
    completion_service,
    ledger_service,
    return_service,
    scan_service,
)
from smartpack.services.errors import IllegalTransition

ACTOR = "tester"


def test_outbound_end_to_end(db_session, make_asset, make_draft, reload_asset):
    make_asset("A100", "FREE")

    header = make_draft("D1", "OUTBOUND")
    assert header.status == "INITIAL"
    assert booking_service.list_attached("D1") == []

    asset = scan_service.scan("A100", "D1", ACTOR)
    assert asset.current_status == "OUTBOUND_DRAFT"
    assert booking_service.get_header("D1").status == "INITIAL"
    ref = asset.ref_code

    header = booking_service.update_header_metadata("D1", {"origin": "WH1", "destination": "SITE2"}, ACTOR)
    assert header.status == "CONFIRMED"
    assert reload_asset("A100").destination == "SITE2"

    header = ledger_service.finalize("D1", ACTOR)
    assert header.status == "FINALIZED"
    rows = ledger_service.entries_for_ref(ref)
    assert [(r.asset_code, r.action) for r in rows] == [("A100", "moved")]

    header = completion_service.confirm_output("D1", ACTOR)
    assert header.status == "COMPLETED"
    assert header.completed_by == ACTOR
    rows = ledger_service.entries_for_ref(ref)
    assert [(r.asset_code, r.action) for r in rows] == [("A100", "moved"), ("A100", "confirmed")]
    assert rows[1].current_status == "ISSUED"

    asset = reload_asset("A100")
    assert asset.current_status == "ISSUED"
    assert asset.draft_id is None
    assert asset.ref_code is None
    assert asset.scan_token is None
    # Routing stays so a later inbound can check where it went
    assert asset.destination == "SITE2"


@pytest.mark.parametrize("booking_type,pre,steady", [
    ("INBOUND", "ISSUED", "FREE"),
    ("DEFECT_REQUEST", "FREE", "AWAITING_REPAIR"),
    ("REPAIR_RETURN", "AWAITING_REPAIR", "IN_REPAIR"),
])
def test_completion_settles_in_steady_status(db_session, make_asset, make_draft, reload_asset, booking_type, pre, steady):
    make_asset("A1", pre, destination="SITE2")
    make_draft("B1", booking_type)
    booking_service.update_header_metadata("B1", {"origin": "SITE2", "destination": "WH1"}, ACTOR)
    scan_service.scan("A1", "B1", ACTOR)
    ledger_service.finalize("B1", ACTOR)

    completion_service.confirm_output("B1", ACTOR)

    assert reload_asset("A1").current_status == steady


def test_fresh_draft_for_every_type(db_session, make_draft):
    for i, booking_type in enumerate(("INBOUND", "OUTBOUND", "DEFECT_REQUEST", "REPAIR_RETURN")):
        header = make_draft(f"T{i}", booking_type)
        assert header.status == "INITIAL"
        assert booking_service.list_attached(f"T{i}") == []


@pytest.mark.parametrize("stage", ["INITIAL", "CONFIRMED", "UNLOCKED"])
def test_confirm_output_only_from_finalized(db_session, make_asset, make_draft, stage):
    make_asset("A1")
    make_draft("D1")
    scan_service.scan("A1", "D1", ACTOR)
    if stage != "INITIAL":
        booking_service.update_header_metadata("D1", {}, ACTOR)
    if stage == "UNLOCKED":
        ledger_service.finalize("D1", ACTOR)
        return_service.unlock("D1", ACTOR)

    with pytest.raises(IllegalTransition):
        completion_service.confirm_output("D1", ACTOR)
    assert booking_service.get_header("D1").status == stage


def test_completed_booking_is_terminal(db_session, make_asset, make_draft):
    make_asset("A1")
    make_draft("D1")
    scan_service.scan("A1", "D1", ACTOR)
    booking_service.update_header_metadata("D1", {}, ACTOR)
    ledger_service.finalize("D1", ACTOR)
    completion_service.confirm_output("D1", ACTOR)

    for op in (completion_service.confirm_output, return_service.unlock, return_service.cancel):
        with pytest.raises(IllegalTransition):
            op("D1", ACTOR)


def test_repeat_create_draft_never_regresses(db_session, make_asset, make_draft):
    make_asset("A1")
    make_draft("D1")
    scan_service.scan("A1", "D1", ACTOR)
    booking_service.update_header_metadata("D1", {}, ACTOR)
    ledger_service.finalize("D1", ACTOR)

    header = make_draft("D1", actor="retrying-client")
    assert header.status == "FINALIZED"
    assert header.updated_by == "retrying-client"
    assert db.session.query(BookingHeader).count() == 1


def test_completion_emits_events(db_session, make_asset, make_draft):
    make_asset("A1")
    make_asset("A2")
    make_draft("D1")
    scan_service.scan("A1", "D1", ACTOR)
    scan_service.scan("A2", "D1", ACTOR)
    booking_service.update_header_metadata("D1", {}, ACTOR)
    ledger_service.finalize("D1", ACTOR)
    last_id = db.session.query(db.func.max(OutboxEvent.id)).scalar()

    completion_service.confirm_output("D1", ACTOR)

    events = db.session.query(OutboxEvent).filter(OutboxEvent.id > last_id).order_by(OutboxEvent.id).all()
    assert [e.topic for e in events] == ["booking.complete", "asset.upsert", "asset.upsert"]
    assert events[0].payload["status"] == "COMPLETED"
    assert {e.entity_key for e in events[1:]} == {"A1", "A2"}
