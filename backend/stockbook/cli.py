# Overview: Flask CLI command group for schema bootstrap and snapshot inspection.

# backend/stockbook/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask storage <command> [options]
#
# - python -m flask storage init
#   Create the relational schema behind /api/db/postgres (idempotent).
# - python -m flask storage ensure-indexes
#   Create the document-store indexes behind /api/db/mongodb (idempotent).
# - python -m flask storage snapshot-info PATH
#   Open an embedded snapshot file read-only and print per-table row counts.
# - python -m flask storage stock PATH [--all] [--reconcile]
#   Print ledger-derived stock for a snapshot; --reconcile rewrites drifted cache rows.

import click
from flask.cli import with_appcontext
from pymongo.errors import PyMongoError

from .extensions import mongo
from .services.schema_service import ensure_document_indexes, ensure_relational_schema
from .services.stock_service import StockReconciler
from .storage import EmbeddedBackend, FileSnapshotStore, ReadOnlySnapshotStore, StorageError
from .storage.embedded import schema_metadata


def _open_snapshot(path, *, writable=False) -> EmbeddedBackend:
    store = FileSnapshotStore(path)
    if not writable:
        store = ReadOnlySnapshotStore(store)
    backend = EmbeddedBackend(store, autosave_interval=None)
    try:
        return backend.open()
    except StorageError as e:
        raise click.ClickException(f"Cannot open snapshot {path}: {e}") from e


@click.group('storage')
def storage_group():
    """Storage bootstrap and inspection commands."""


@storage_group.command('init')
@with_appcontext
def init_schema():
    """Create every relational table that does not exist yet."""
    tables = ensure_relational_schema()
    click.echo(f"PASS Relational schema ready ({len(tables)} tables)")
    for name in tables:
        click.echo(f"  - {name}")


@storage_group.command('ensure-indexes')
@with_appcontext
def ensure_indexes():
    """Create the document-store indexes."""
    try:
        names = ensure_document_indexes(mongo.db)
    except PyMongoError as e:
        raise click.ClickException(f"Index setup failed: {e}") from e
    click.echo(f"PASS {len(names)} document indexes ensured")


@storage_group.command('snapshot-info')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
def snapshot_info(path):
    """Print row counts per table for an embedded snapshot file."""
    with _open_snapshot(path) as backend:
        click.echo(f"Snapshot: {path}")
        for table in schema_metadata().sorted_tables:
            row = backend.prepare(f"SELECT COUNT(*) AS n FROM {table.name}").get()
            click.echo(f"  {table.name:<14} {row['n'] if row else 0:>8}")


@storage_group.command('stock')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive products')
@click.option('--reconcile', is_flag=True, help='Rewrite stock_levels rows that drifted from the ledger')
def stock(path, include_inactive, reconcile):
    """Print ledger-derived stock for every product in a snapshot."""
    # Only --reconcile writes the snapshot back
    with _open_snapshot(path, writable=reconcile) as backend:
        reconciler = StockReconciler(backend)

        if reconcile:
            corrections = reconciler.reconcile_cache()
            for fix in corrections:
                click.echo(
                    f"FIX  product {fix['product_id']}: cache {fix['cached']} -> ledger {fix['ledger']}"
                )
            click.echo(f"PASS {len(corrections)} cache rows reconciled")

        rows = reconciler.stock_overview(active_only=not include_inactive)
        if not rows:
            click.echo("No products.")
            return
        for row in rows:
            flag = "LOW " if row["is_low_stock"] else "    "
            click.echo(
                f"{flag}{str(row['id']):>6}  {row['product_name'] or '':<30} "
                f"{row['current_stock']:>6} (threshold {row['low_stock_threshold']})"
            )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(storage_group)
