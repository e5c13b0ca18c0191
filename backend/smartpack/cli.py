# Overview: Flask CLI command groups for bootstrap, inspection, and outbox maintenance.

# backend/smartpack/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to smartpack (PowerShell: $env:FLASK_APP="smartpack").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Asset registry:
# - python -m flask assets add --code A100 [--status FREE] [--name "Blue crate"]
#   Register an asset (registration normally happens outside the booking engine).
# - python -m flask assets list [--status IN_REPAIR]
#   List assets, optionally filtered by status.
#
# Bookings:
# - python -m flask bookings list --type OUTBOUND [--date 2026-10-19]
#   List non-cancelled bookings of a type for a business date.
#
# Realtime outbox:
# - python -m flask events pending [--after-id 0] [--limit 50]
#   Show undelivered notification events.

import click
from flask.cli import with_appcontext
from sqlalchemy.exc import IntegrityError

from .extensions import db
from .models import AssetRecord
from .services import notifier, reporting_service
from .services.booking_types import AssetStatus, BookingType
from .services.errors import BookingError
from .time_utils import parse_iso_date, utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()
    click.echo("BUILD  Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('assets')
def assets_group():
    """Asset registry inspection/bootstrap."""


@assets_group.command('add')
@click.option('--code', 'asset_code', required=True, help='Asset code printed on the label')
@click.option('--status', default=AssetStatus.FREE.value, type=click.Choice([s.value for s in AssetStatus]), help='Initial status')
@click.option('--name', default=None, help='Display name')
@click.option('--type', 'asset_type', default=None, help='Asset type')
@click.option('--destination', default=None, help='Last known destination (for routed statuses)')
@with_appcontext
def add_asset(asset_code, status, name, asset_type, destination):
    """Register a new asset."""
    asset = AssetRecord(
        asset_code=asset_code.strip(),
        name=name,
        asset_type=asset_type,
        current_status=status,
        destination=destination,
        updated_by="cli",
        updated_at=utcnow(),
    )
    db.session.add(asset)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise click.ClickException(f"Asset {asset_code} already exists")
    click.echo(f"PASS Created asset {asset.asset_code} ({asset.current_status})")


@assets_group.command('list')
@click.option('--status', default=None, type=click.Choice([s.value for s in AssetStatus]), help='Filter by status')
@with_appcontext
def list_assets(status):
    """List assets with their status and attachment."""
    query = db.session.query(AssetRecord)
    if status:
        query = query.filter(AssetRecord.current_status == status)
    assets = query.order_by(AssetRecord.asset_code.asc()).all()
    if not assets:
        click.echo("No assets found.")
        return
    for a in assets:
        attached = f" draft={a.draft_id} ref={a.ref_code}" if a.draft_id else ""
        click.echo(f"{a.asset_code:<16} {a.current_status:<16} dest={a.destination or '-'}{attached}")


@click.group('bookings')
def bookings_group():
    """Booking inspection."""


@bookings_group.command('list')
@click.option('--type', 'booking_type', required=True, type=click.Choice([t.value for t in BookingType], case_sensitive=False))
@click.option('--date', 'on_date', default=None, help='Business date YYYY-MM-DD (default: today)')
@with_appcontext
def list_bookings(booking_type, on_date):
    """List bookings of a type for a business date."""
    try:
        rows = reporting_service.list_bookings(booking_type, parse_iso_date(on_date))
    except ValueError:
        raise click.BadParameter(f"Invalid date '{on_date}'", param_hint='--date')
    except BookingError as e:
        raise click.ClickException(e.message)
    if not rows:
        click.echo("No bookings found.")
        return
    for r in rows:
        click.echo(
            f"{r['draft_id']:<24} {r['ref_code'] or '-':<14} {r['status']:<10} "
            f"items={r['attendees']:<4} {r['origin'] or '-'} -> {r['destination'] or '-'}"
        )


@click.group('events')
def events_group():
    """Realtime outbox inspection."""


@events_group.command('pending')
@click.option('--after-id', default=0, type=int, help='Only events with a larger id')
@click.option('--limit', default=50, type=int, help='Maximum events to show')
@with_appcontext
def pending_events(after_id, limit):
    """Show undelivered events."""
    events = notifier.pending_events(after_id, limit)
    if not events:
        click.echo("No pending events.")
        return
    for e in events:
        click.echo(f"{e.id:>6} {e.topic:<20} {e.entity_type}:{e.entity_key}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(assets_group)
    app.cli.add_command(bookings_group)
    app.cli.add_command(events_group)
