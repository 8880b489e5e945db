# Overview: Flask CLI command groups for bootstrap, displays, and ledger inspection.

# backend/qrdisplay/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to qrdisplay (PowerShell: $env:FLASK_APP="qrdisplay").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--org-code ORG-DEMO] [--org "Demo Brand"]
#   Idempotent bootstrap: creates tables, a default organization and a first store.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Displays:
# - python -m flask displays create --owner-org-id 1 --count 25 [--prefix QRD]
#   Bulk-create displays in inventory.
# - python -m flask displays list [--status active]
#
# Ledger inspection:
# - python -m flask ledger verify --store-id 1 [--sku VD-SB-4]
#   Replay the ledger and compare with the stock snapshot (all SKUs when --sku is omitted).
# - python -m flask ledger history --store-id 1 [--sku VD-SB-4] [--limit 20]
#   Newest-first ledger entries.
#
# Product holds:
# - python -m flask holds expire [--store-id 1]
#   Release every active hold past its expiry (run on a schedule, e.g. cron).
# - python -m flask holds list --store-id 1 [--status active]

import click
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .models import Organization, Store
from .services import display_service, hold_service, ledger_service
from .services.store_service import create_organization, create_store
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Default Organization', help='Organization name')
@click.option('--org-code', default='ORG-DEFAULT', help='Organization code')
@click.option('--store', 'store_name', default='Main Store', help='First store name')
@with_appcontext
def init_system(org_name, org_code, store_name):
    """Create tables, the default organization and its first store (idempotent)."""
    click.echo("START Initializing QR Display core...")
    db.create_all()

    org = db.session.query(Organization).filter_by(org_code=org_code).first()
    if not org:
        org = create_organization(org_code=org_code, name=org_name)
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.org_code})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    store = db.session.query(Store).filter_by(org_id=org.id).first()
    if not store:
        store = create_store(org_id=org.id, name=store_name)
        click.echo(f"PASS Created store: {store.name} ({store.store_code}, ID: {store.id})")
    else:
        click.echo(f"PASS Using existing store: {store.name} ({store.store_code})")

    click.echo("DONE System initialized.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('displays')
def displays_group():
    """Display fleet commands."""


@displays_group.command('create')
@click.option('--owner-org-id', type=int, required=True, help='Platform owner organization ID')
@click.option('--count', type=int, required=True, help='Number of displays to create')
@click.option('--prefix', default=None, help='Display id prefix (default from DISPLAY_ID_PREFIX)')
@with_appcontext
def create_displays_cli(owner_org_id, count, prefix):
    try:
        displays = display_service.create_displays(owner_org_id, count, prefix=prefix)
    except DomainError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created {len(displays)} display(s): {displays[0].display_id} .. {displays[-1].display_id}")


@displays_group.command('list')
@click.option('--status', default=None, help='inventory | sold | active | inactive')
@with_appcontext
def list_displays_cli(status):
    try:
        displays = display_service.list_displays(status=status)
    except DomainError as e:
        raise click.ClickException(str(e))
    if not displays:
        click.echo("No displays found.")
        return
    click.echo(f"{'Display':<12} {'Status':<10} {'Assigned org':<13} {'Store':<6}")
    click.echo("-" * 45)
    for d in displays:
        click.echo(f"{d.display_id:<12} {d.status.value:<10} {str(d.assigned_org_id or '-'):<13} {str(d.store_id or '-'):<6}")


@click.group('ledger')
def ledger_group():
    """Stock ledger inspection commands."""


@ledger_group.command('verify')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--sku', default=None, help='Product SKU (all SKUs when omitted)')
@with_appcontext
def verify_ledger_cli(store_id, sku):
    """Replay ledger entries and compare with the stock snapshot."""
    try:
        if sku:
            skus = [sku]
        else:
            skus = [r.product_sku for r in ledger_service.list_stock_records(store_id)]
        results = [ledger_service.verify_ledger(store_id, s) for s in skus]
    except DomainError as e:
        raise click.ClickException(str(e))

    failures = 0
    for result in results:
        if result.ok:
            click.echo(f"PASS {result.product_sku}: on_hand={result.on_hand} reserved={result.reserved} "
                       f"entries={result.entry_count}")
        else:
            failures += 1
            click.echo(f"FAIL {result.product_sku}:")
            for mismatch in result.mismatches:
                click.echo(f"     - {mismatch}")

    if failures:
        raise click.ClickException(f"{failures} of {len(results)} stock record(s) do not match their ledger")
    click.echo(f"DONE {len(results)} stock record(s) verified.")


@ledger_group.command('history')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--sku', default=None, help='Product SKU')
@click.option('--limit', type=int, default=20, help='Max entries')
@with_appcontext
def ledger_history_cli(store_id, sku, limit):
    try:
        entries, total = ledger_service.list_ledger_entries(store_id, sku, limit=limit)
    except DomainError as e:
        raise click.ClickException(str(e))

    click.echo(f"Showing {len(entries)} of {total} entries (newest first)")
    click.echo(f"{'Seq':<5} {'SKU':<16} {'Type':<20} {'Delta':>6} {'Rsv':>5} {'Balance':>8}  Notes")
    click.echo("-" * 90)
    for e in entries:
        click.echo(
            f"{e.sequence:<5} {e.product_sku:<16} {e.entry_type.value:<20} {e.quantity_delta:>6} "
            f"{e.reserved_delta:>5} {e.balance_after:>8}  {e.notes or ''}"
        )


@click.group('holds')
def holds_group():
    """Customer product hold commands."""


@holds_group.command('expire')
@click.option('--store-id', type=int, default=None, help='Only this store (all stores when omitted)')
@with_appcontext
def expire_holds_cli(store_id):
    """Release the units of every active hold past its expiry."""
    try:
        expired = hold_service.expire_due_holds(store_id=store_id)
    except DomainError as e:
        raise click.ClickException(str(e))
    for hold in expired:
        click.echo(f"PASS Expired hold {hold.id}: {hold.quantity} x {hold.product_sku} at store {hold.store_id}")
    click.echo(f"DONE {len(expired)} hold(s) expired.")


@holds_group.command('list')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--status', default='active', help='active | picked_up | cancelled | expired')
@with_appcontext
def list_holds_cli(store_id, status):
    try:
        holds = hold_service.list_holds(store_id, status=status)
    except DomainError as e:
        raise click.ClickException(str(e))
    if not holds:
        click.echo("No holds found.")
        return
    click.echo(f"{'Hold':<6} {'SKU':<16} {'Qty':>4} {'Customer':<9} {'Expires':<21}")
    click.echo("-" * 60)
    for h in holds:
        click.echo(f"{h.id:<6} {h.product_sku:<16} {h.quantity:>4} {h.customer_id:<9} {to_utc_z(h.expires_at):<21}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(displays_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(holds_group)
