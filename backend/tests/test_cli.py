"""Flask CLI groups: asset bootstrap, listings and the outbox."""

from smartpack.time_utils import business_today


def test_assets_add_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["assets", "add", "--code", "A100", "--name", "Blue crate"])
    assert result.exit_code == 0
    assert "Created asset A100 (FREE)" in result.output

    result = runner.invoke(args=["assets", "add", "--code", "A100"])
    assert result.exit_code != 0
    assert "already exists" in result.output

    runner.invoke(args=["assets", "add", "--code", "R1", "--status", "IN_REPAIR"])
    result = runner.invoke(args=["assets", "list", "--status", "IN_REPAIR"])
    assert "R1" in result.output
    assert "A100" not in result.output


def test_bookings_list(app, db_session, make_asset, make_draft):
    make_asset("A1")
    make_draft("D1", "OUTBOUND")
    runner = app.test_cli_runner()

    result = runner.invoke(args=["bookings", "list", "--type", "outbound", "--date", business_today().isoformat()])
    assert result.exit_code == 0
    assert "D1" in result.output
    assert "INITIAL" in result.output

    result = runner.invoke(args=["bookings", "list", "--type", "OUTBOUND", "--date", "someday"])
    assert result.exit_code != 0


def test_events_pending(app, db_session, make_draft):
    runner = app.test_cli_runner()
    assert "No pending events." in runner.invoke(args=["events", "pending"]).output

    make_draft("D1")
    result = runner.invoke(args=["events", "pending"])
    assert "booking.draft" in result.output
    assert "booking:D1" in result.output


def test_reset_db(app, db_session, make_asset):
    make_asset("A1")
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "reset-db", "--yes"])
    assert result.exit_code == 0
    assert "Database reset complete" in result.output

    result = runner.invoke(args=["assets", "list"])
    assert "No assets found." in result.output
