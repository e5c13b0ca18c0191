"""Reversal engine: returns, unlock/cancel guards and repair receipts."""

import pytest

from smartpack.models import AssetRecord, LedgerEntry, OutboxEvent
from smartpack.services import (
    booking_service,
    completion_service,
    ledger_service,
    return_service,
    scan_service,
)
from smartpack.services.booking_types import get_config
from smartpack.services.errors import (
    IllegalTransition,
    InvalidPrecondition,
    NotFound,
    ValidationError,
)

ACTOR = "tester"


def test_return_restores_secondary_pre_scan_status(db_session, make_asset, make_draft, reload_asset):
    make_asset("P1", "AWAITING_PICKUP", destination="WH1")
    make_draft("F1", "DEFECT_REQUEST")
    booking_service.update_header_metadata("F1", {"origin": "WH1", "destination": "REPAIR-SHOP"}, ACTOR)
    scan_service.scan("P1", "F1", ACTOR)

    return_service.return_one("P1", ACTOR)

    asset = reload_asset("P1")
    assert asset.current_status == "AWAITING_PICKUP"
    assert asset.previous_status is None
    assert asset.draft_id is None
    assert asset.ref_code is None
    assert asset.scan_by is None
    assert asset.scan_at is None
    assert asset.scan_token is None


def test_return_restores_primary_status(db_session, make_asset, make_draft, reload_asset):
    make_asset("A1", "FREE")
    make_draft("F1", "DEFECT_REQUEST")
    scan_service.scan("A1", "F1", ACTOR)
    return_service.return_one("A1", ACTOR)
    assert reload_asset("A1").current_status == "FREE"


def test_return_falls_back_to_latest_ledger_row(db_session, make_asset, make_draft, reload_asset):
    make_asset("P1", "AWAITING_PICKUP", destination="WH1")
    make_draft("F1", "DEFECT_REQUEST")
    booking_service.update_header_metadata("F1", {"origin": "WH1"}, ACTOR)
    scan_service.scan("P1", "F1", ACTOR)
    ledger_service.finalize("F1", ACTOR)
    return_service.unlock("F1", ACTOR)

    # Rows written before previous_status existed on the registry
    asset = db_session.query(AssetRecord).filter_by(asset_code="P1").one()
    asset.previous_status = None
    db_session.commit()

    return_service.return_one("P1", ACTOR)
    assert reload_asset("P1").current_status == "AWAITING_PICKUP"


def test_restore_status_defaults_to_primary(db_session, make_asset):
    make_asset("X1", "DEFECT_DRAFT")
    asset = db_session.query(AssetRecord).filter_by(asset_code="X1").one()
    assert return_service.restore_status(asset, get_config("DEFECT_REQUEST")) == "FREE"


def test_return_from_open_draft_writes_no_ledger_row(db_session, make_asset, make_draft):
    make_asset("A1")
    make_draft("D1")
    scan_service.scan("A1", "D1", ACTOR)
    return_service.return_one("A1", ACTOR)
    assert db_session.query(LedgerEntry).count() == 0


def test_return_from_unlocked_draft_is_audited(db_session, make_asset, make_draft):
    make_asset("A1")
    make_draft("D1")
    ref = scan_service.scan("A1", "D1", ACTOR).ref_code
    booking_service.update_header_metadata("D1", {"destination": "SITE2"}, ACTOR)
    ledger_service.finalize("D1", ACTOR)
    return_service.unlock("D1", ACTOR)

    return_service.return_one("A1", ACTOR)

    rows = ledger_service.entries_for_ref(ref)
    assert [r.action for r in rows] == ["moved", "reversed"]
    assert rows[1].current_status == "FREE"
    assert rows[1].scan_token == rows[0].scan_token


def test_return_from_finalized_draft_is_illegal(db_session, make_asset, make_draft, reload_asset):
    make_asset("A1")
    make_draft("D1")
    scan_service.scan("A1", "D1", ACTOR)
    booking_service.update_header_metadata("D1", {}, ACTOR)
    ledger_service.finalize("D1", ACTOR)

    with pytest.raises(IllegalTransition):
        return_service.return_one("A1", ACTOR)
    assert reload_asset("A1").draft_id == "D1"


def test_return_unattached_asset_is_illegal(db_session, make_asset):
    make_asset("A1")
    with pytest.raises(IllegalTransition):
        return_service.return_one("A1", ACTOR)


def test_return_unknown_asset(db_session):
    with pytest.raises(NotFound):
        return_service.return_one("NOPE", ACTOR)


def test_return_many_is_all_or_nothing(db_session, make_asset, make_draft, reload_asset):
    make_asset("A1")
    make_asset("A2")
    make_asset("LOOSE")
    make_draft("D1")
    scan_service.scan("A1", "D1", ACTOR)
    scan_service.scan("A2", "D1", ACTOR)

    with pytest.raises(IllegalTransition):
        return_service.return_many(["A1", "LOOSE", "A2"], ACTOR)
    assert reload_asset("A1").draft_id == "D1"
    assert reload_asset("A2").draft_id == "D1"

    returned = return_service.return_many(["A1", "A2", "A1"], ACTOR)
    assert [a.asset_code for a in returned] == ["A1", "A2"]
    assert booking_service.list_attached("D1") == []


def test_return_many_requires_codes(db_session):
    with pytest.raises(ValidationError):
        return_service.return_many([], ACTOR)


def test_unlock_only_from_finalized(db_session, make_draft):
    make_draft("D1")
    with pytest.raises(IllegalTransition):
        return_service.unlock("D1", ACTOR)
    booking_service.update_header_metadata("D1", {}, ACTOR)
    with pytest.raises(IllegalTransition):
        return_service.unlock("D1", ACTOR)


def test_unlock_keeps_ref_code(db_session, make_asset, make_draft):
    make_asset("A1")
    make_draft("D1")
    ref = scan_service.scan("A1", "D1", ACTOR).ref_code
    booking_service.update_header_metadata("D1", {}, ACTOR)
    ledger_service.finalize("D1", ACTOR)

    header = return_service.unlock("D1", ACTOR)
    assert header.status == "UNLOCKED"
    assert header.ref_code == ref
    assert header.unlocked_by == ACTOR


def test_cancel_rejected_with_attached_assets(db_session, make_asset, make_draft):
    make_asset("A1")
    make_draft("D1")
    scan_service.scan("A1", "D1", ACTOR)

    with pytest.raises(IllegalTransition) as exc:
        return_service.cancel("D1", ACTOR)
    assert exc.value.data["attached"] == ["A1"]

    return_service.return_one("A1", ACTOR)
    header = return_service.cancel("D1", ACTOR)
    assert header.status == "CANCELLED"
    assert header.cancelled_by == ACTOR


def test_cancel_from_confirmed(db_session, make_draft):
    make_draft("D1")
    booking_service.update_header_metadata("D1", {"remark": "wrong truck"}, ACTOR)
    assert return_service.cancel("D1", ACTOR).status == "CANCELLED"


def test_cancel_is_terminal(db_session, make_draft):
    make_draft("D1")
    return_service.cancel("D1", ACTOR)
    with pytest.raises(IllegalTransition):
        return_service.cancel("D1", ACTOR)
    with pytest.raises(IllegalTransition):
        booking_service.update_header_metadata("D1", {}, ACTOR)


def test_receive_from_repair(db_session, make_asset, make_draft, reload_asset):
    make_asset("A1", "AWAITING_REPAIR", destination="SHOP")
    make_draft("R1", "REPAIR_RETURN")
    scan_service.scan("A1", "R1", ACTOR)
    booking_service.update_header_metadata("R1", {}, ACTOR)
    ledger_service.finalize("R1", ACTOR)
    completion_service.confirm_output("R1", ACTOR)

    assert [a.asset_code for a in return_service.assets_on_repair()] == ["A1"]

    return_service.receive_from_repair(["A1"], ACTOR)

    asset = reload_asset("A1")
    assert asset.current_status == "FREE"
    assert asset.origin is None
    assert asset.destination is None
    assert return_service.assets_on_repair() == []
    assert ledger_service.asset_history("A1")[0].action == "repaired"


def test_receive_from_repair_is_atomic(db_session, make_asset, reload_asset):
    make_asset("A1", "IN_REPAIR")
    make_asset("A2", "FREE")

    with pytest.raises(InvalidPrecondition) as exc:
        return_service.receive_from_repair(["A1", "A2"], ACTOR)
    assert exc.value.data["actual_status"] == "FREE"
    assert exc.value.data["allowed_statuses"] == ["IN_REPAIR"]
    assert reload_asset("A1").current_status == "IN_REPAIR"


def test_receive_from_repair_unknown_asset(db_session, make_asset):
    make_asset("A1", "IN_REPAIR")
    with pytest.raises(NotFound):
        return_service.receive_from_repair(["A1", "GHOST"], ACTOR)


def test_return_locks_headers_before_assets(db_session, make_asset, make_draft, monkeypatch):
    make_asset("A1")
    make_asset("A2")
    make_draft("D1")
    make_draft("D2")
    scan_service.scan("A1", "D2", ACTOR)
    scan_service.scan("A2", "D1", ACTOR)
    locked = []

    def recording(original):
        def _lock(query):
            locked.append(query.column_descriptions[0]["entity"].__name__)
            return original(query)
        return _lock

    monkeypatch.setattr(booking_service, "lock_for_update", recording(booking_service.lock_for_update))
    monkeypatch.setattr(return_service, "lock_for_update", recording(return_service.lock_for_update))

    return_service.return_many(["A1", "A2"], ACTOR)

    assert locked == ["BookingHeader", "BookingHeader", "AssetRecord"]


def test_return_bumps_header_version(db_session, make_asset, make_draft):
    make_asset("A1")
    make_draft("D1")
    scan_service.scan("A1", "D1", ACTOR)
    booking_service.update_header_metadata("D1", {}, ACTOR)
    ledger_service.finalize("D1", ACTOR)
    return_service.unlock("D1", ACTOR)
    before = booking_service.get_header("D1").version_id

    return_service.return_one("A1", "remover")

    db_session.expire_all()
    header = booking_service.get_header("D1")
    assert header.version_id == before + 1
    assert header.updated_by == "remover"


def test_unlock_event_carries_committed_version(db_session, make_asset, make_draft):
    make_asset("A1")
    make_draft("D1")
    scan_service.scan("A1", "D1", ACTOR)
    booking_service.update_header_metadata("D1", {}, ACTOR)
    ledger_service.finalize("D1", ACTOR)

    header = return_service.unlock("D1", ACTOR)

    event = db_session.query(OutboxEvent).filter_by(topic="booking.unlock").one()
    assert event.payload["version_id"] == header.version_id
