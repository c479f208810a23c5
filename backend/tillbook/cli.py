# Overview: Flask CLI command groups for bootstrap, ledger inspection, sync and snapshots.

# backend/tillbook/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent) and the default settings row.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Add a few demo products, customers and employees.
#
# Ledger:
# - python -m flask ledger audit [--fail]
#   Replay every customer ledger and report mismatched balances.
#
# Sync queue:
# - python -m flask sync status
# - python -m flask sync flush
# - python -m flask sync retry-failed
#
# Snapshots:
# - python -m flask data export --out snapshot.json
# - python -m flask data import snapshot.json

import json
from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Customer, Employee, Product
from .services import export_service, ledger_service, settings_service, sync_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables and default settings (safe to re-run)."""
    db.create_all()
    settings = settings_service.get_settings()
    click.echo(f"OK Database ready ({settings.company_name}, {settings.currency})")


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
    settings_service.get_settings()
    click.echo("OK Database reset complete")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Insert demo catalog, customers and staff (skips when products exist)."""
    if db.session.query(Product.id).first() is not None:
        click.echo("SKIP Products already present")
        return

    db.session.add_all([
        Product(name="Riz 25kg", unit="cart", allows_fractions=False, retail_price=Decimal("15000"),
                wholesale_price=Decimal("14000"), wholesale_min_quantity=Decimal("5"), stock=Decimal("40"), min_stock=Decimal("5")),
        Product(name="Sucre", unit="kg", allows_fractions=True, retail_price=Decimal("700"), stock=Decimal("120.5"), min_stock=Decimal("10")),
        Product(name="Huile 1L", unit="bottle", allows_fractions=False, retail_price=Decimal("1200"),
                promotional_price=Decimal("1000"), stock=Decimal("60"), min_stock=Decimal("12")),
        Product(name="Savon", unit="piece", allows_fractions=True, retail_price=Decimal("250"), stock=Decimal("3"), min_stock=Decimal("10")),
    ])
    db.session.add_all([
        Customer(name="Awa Diop", phone="+221770000001", balance=Decimal("0"), total_purchases=Decimal("0")),
        Customer(name="Moussa Ba", phone="+221770000002", balance=Decimal("0"), total_purchases=Decimal("0")),
    ])
    db.session.add_all([
        Employee(name="Admin", email="admin@tillbook.local", role="admin"),
        Employee(name="Caisse 1", email="caisse1@tillbook.local", role="cashier"),
    ])
    db.session.commit()
    click.echo("OK Demo data created")


@click.group('ledger')
def ledger_group():
    """Customer ledger inspection."""


@ledger_group.command('audit')
@click.option('--fail', 'fail_on_mismatch', is_flag=True, help='Exit non-zero on any mismatch')
@with_appcontext
def ledger_audit(fail_on_mismatch):
    """Replay every customer ledger and compare with stored balances."""
    results = ledger_service.audit_all_customers()
    bad = [r for r in results if not r.ok]
    for r in bad:
        click.echo(
            f"MISMATCH customer={r.customer_id} stored={r.stored_balance} "
            f"replayed={r.replayed_balance} bad_sequences={r.bad_sequences}"
        )
    click.echo(f"Checked {len(results)} customer(s), {len(bad)} mismatch(es)")
    if bad and fail_on_mismatch:
        raise SystemExit(1)


@click.group('sync')
def sync_group():
    """Offline sync queue."""


@sync_group.command('status')
@with_appcontext
def sync_status():
    status = sync_service.sync_status()
    for key, value in status.items():
        click.echo(f"{key}: {value}")


@sync_group.command('flush')
@with_appcontext
def sync_flush():
    summary = sync_service.flush_queue()
    if summary["skipped"]:
        click.echo(f"SKIP {summary['skipped']}")
        return
    click.echo(
        f"Attempted {summary['attempted']}: {summary['synced']} synced, "
        f"{summary['retrying']} retrying, {summary['failed']} failed"
    )


@sync_group.command('retry-failed')
@with_appcontext
def sync_retry_failed():
    count = sync_service.retry_failed()
    click.echo(f"Requeued {count} failed entr{'y' if count == 1 else 'ies'}")


@click.group('data')
def data_group():
    """Collection snapshots."""


@data_group.command('export')
@click.option('--out', 'out_path', type=click.Path(dir_okay=False, writable=True), default=None)
@with_appcontext
def data_export(out_path):
    payload = json.dumps(export_service.export_collections(), indent=2, ensure_ascii=False)
    if out_path:
        with open(out_path, "w", encoding="utf-8") as fh:
            fh.write(payload)
        click.echo(f"OK Snapshot written to {out_path}")
    else:
        click.echo(payload)


@data_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def data_import(path):
    with open(path, encoding="utf-8") as fh:
        try:
            snapshot = json.load(fh)
        except json.JSONDecodeError as e:
            raise click.ClickException(f"Invalid JSON: {e}")
    try:
        counts = export_service.import_collections(snapshot)
    except export_service.ExportFormatError as e:
        raise click.ClickException(str(e))
    click.echo("OK Imported " + ", ".join(f"{v} {k}" for k, v in counts.items()))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(sync_group)
    app.cli.add_command(data_group)
