"""Click CLI for webhook signature checks and catalog sync runs."""

from __future__ import annotations

import asyncio
import json
import sys
import time
from typing import IO

import click

from karla_delivery.audit.logger import AuditLogger
from karla_delivery.catalog.source import SQLiteCatalogSource, item_from_row
from karla_delivery.catalog.status import SyncStatusStore
from karla_delivery.catalog.sync import ProductSyncService
from karla_delivery.catalog.worker import (
    InMemorySyncQueue,
    ProductSyncTrigger,
    SyncAllProductsHandler,
)
from karla_delivery.config import KarlaConfig
from karla_delivery.logging_context import configure_logging
from karla_delivery.webhook.verifier import build_signature_header, verify


@click.group()
@click.option("--catalog-db", default="data/catalog.db", help="Catalog SQLite database path.")
@click.option("--status-db", default="data/sync-status.db", help="Sync status database path.")
@click.pass_context
def cli(ctx: click.Context, catalog_db: str, status_db: str) -> None:
    """Karla delivery integration CLI."""
    ctx.ensure_object(dict)
    config = KarlaConfig.from_env()
    configure_logging(config.debug_mode)
    ctx.obj["config"] = config
    ctx.obj["catalog_db"] = catalog_db
    ctx.obj["status_db"] = status_db


@cli.command("sign")
@click.argument("payload_file", type=click.File("rb"))
@click.option("--secret", envvar="KARLA_WEBHOOK_SECRET", required=True)
@click.option("--timestamp", type=int, default=None, help="Defaults to now.")
def sign(payload_file: IO[bytes], secret: str, timestamp: int | None) -> None:
    """Print a Karla-Signature header for a payload file."""
    ts = int(time.time()) if timestamp is None else timestamp
    click.echo(build_signature_header(payload_file.read(), secret, ts))


@cli.command("verify-signature")
@click.argument("payload_file", type=click.File("rb"))
@click.option("--header", "signature_header", required=True, help="Karla-Signature value.")
@click.option("--secret", envvar="KARLA_WEBHOOK_SECRET", required=True)
@click.option("--tolerance", type=int, default=300, show_default=True)
@click.option("--now", type=int, default=None, help="Override the current epoch time.")
def verify_signature(
    payload_file: IO[bytes],
    signature_header: str,
    secret: str,
    tolerance: int,
    now: int | None,
) -> None:
    """Check a signature header against a payload file; exit 1 when rejected."""
    result = verify(
        signature_header, payload_file.read(), secret, now=now, tolerance_seconds=tolerance,
    )
    output = {
        "accepted": result.accepted,
        "reason": result.reason.value if result.reason else None,
    }
    click.echo(json.dumps(output))
    if not result.accepted:
        sys.exit(1)


@cli.command("import-catalog")
@click.argument("items_file", type=click.File("r"))
@click.pass_context
def import_catalog(ctx: click.Context, items_file: IO[str]) -> None:
    """Load catalog items from a JSON array into the catalog database."""
    rows = json.load(items_file)
    with SQLiteCatalogSource(ctx.obj["catalog_db"]) as source:
        source.upsert_many(item_from_row(row) for row in rows)
    click.echo(f"Imported {len(rows)} items")


@cli.command("sync-all")
@click.option("--force", is_flag=True, help="Ignore the full-sync cooldown.")
@click.pass_context
def sync_all(ctx: click.Context, force: bool) -> None:
    """Run a full bulk product sync to completion."""
    config: KarlaConfig = ctx.obj["config"]
    if force:
        config = config.model_copy(update={"sync_cooldown_seconds": 0})
    status_store = SyncStatusStore(ctx.obj["status_db"])

    with SQLiteCatalogSource(ctx.obj["catalog_db"]) as source:
        queue = InMemorySyncQueue()
        handler = SyncAllProductsHandler(
            ProductSyncService(config, source),
            queue,
            status_store,
            is_enabled=lambda: config.product_sync_enabled,
            audit_logger=AuditLogger.from_env(config.audit_log_path),
        )
        if not ProductSyncTrigger(config, queue, status_store).on_product_sync_toggled(True):
            click.echo("Full sync skipped (cooldown active)", err=True)
            return
        handled = asyncio.run(queue.run_until_empty(handler))

    status = status_store.get_status()
    click.echo(json.dumps({"batches": handled, "status": status.value if status else None}))


@cli.command("sync-status")
@click.pass_context
def sync_status(ctx: click.Context) -> None:
    """Show the persisted bulk sync status."""
    store = SyncStatusStore(ctx.obj["status_db"])
    status = store.get_status()
    click.echo(json.dumps({
        "status": status.value if status else None,
        "last_enabled": store.get_last_enabled(),
    }))
