"""Queue-driven bulk product sync.

A full sync is a chain of independent batch jobs. Each job syncs one page and,
when more pages exist, enqueues the next ``SyncBatch``; all continuation state
travels in the message. The walk ends by marking the status ``completed`` or,
on an unhandled error, ``failed`` without enqueueing a continuation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from typing import Protocol

from karla_delivery.audit.logger import AuditLogger
from karla_delivery.catalog.source import CatalogSource
from karla_delivery.catalog.status import SyncStatusStore
from karla_delivery.catalog.sync import ProductSyncService
from karla_delivery.config import KarlaConfig
from karla_delivery.models import AuditEvent, AuditEventType, SyncBatch, SyncStatus

logger = logging.getLogger(__name__)


class SyncQueue(Protocol):
    def enqueue(self, batch: SyncBatch) -> None: ...


class InMemorySyncQueue:
    """Process-local FIFO of batch jobs, drained by :meth:`run_until_empty`."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[SyncBatch] = asyncio.Queue()
        self.enqueued: list[SyncBatch] = []

    def enqueue(self, batch: SyncBatch) -> None:
        self.enqueued.append(batch)
        self._queue.put_nowait(batch)

    def __len__(self) -> int:
        return self._queue.qsize()

    async def run_until_empty(self, handler: SyncAllProductsHandler) -> int:
        """Handle queued batches, including continuations, until none remain."""
        handled = 0
        while not self._queue.empty():
            batch = self._queue.get_nowait()
            await handler.handle(batch)
            handled += 1
        return handled


class SyncAllProductsHandler:
    """Runs one batch and either continues the walk or records its outcome."""

    def __init__(
        self,
        service: ProductSyncService,
        queue: SyncQueue,
        status_store: SyncStatusStore,
        is_enabled: Callable[[], bool] | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._service = service
        self._queue = queue
        self._status = status_store
        self._is_enabled = is_enabled or (lambda: True)
        self._audit_logger = audit_logger

    def _finish(self, status: SyncStatus, batch: SyncBatch, **details: object) -> None:
        self._status.set_status(status)
        if self._audit_logger:
            self._audit_logger.log(AuditEvent(
                event_type=AuditEventType.PRODUCT_SYNC,
                action="bulk_sync",
                result="success" if status == SyncStatus.COMPLETED else "failure",
                details={"status": status.value, "offset": batch.offset, **details},
            ))

    async def handle(self, batch: SyncBatch) -> None:
        if not self._is_enabled():
            # Disabling sync cancels the walk; it ends as failed rather than staying running
            self._finish(SyncStatus.FAILED, batch, reason="sync_disabled")
            logger.warning(
                "Product sync disabled - bulk sync cancelled",
                extra={"component": "product.bulk_sync", "offset": batch.offset},
            )
            return

        try:
            logger.info(
                "Processing product bulk sync batch",
                extra={
                    "component": "product.bulk_sync",
                    "offset": batch.offset,
                    "limit": batch.limit,
                },
            )
            result = await self._service.sync_product_batch(batch.offset, batch.limit)

            if result.has_more:
                next_batch = batch.next()
                self._queue.enqueue(next_batch)
                logger.info(
                    "Dispatched next product sync batch",
                    extra={"component": "product.bulk_sync", "next_offset": next_batch.offset},
                )
            else:
                self._finish(SyncStatus.COMPLETED, batch)
                logger.info(
                    "Product bulk sync completed",
                    extra={
                        "component": "product.bulk_sync",
                        "total_processed": batch.offset + batch.limit,
                    },
                )
        except Exception as exc:
            self._finish(SyncStatus.FAILED, batch, reason="error", error_class=type(exc).__name__)
            logger.exception(
                "Error during product bulk sync batch",
                extra={"component": "product.bulk_sync", "offset": batch.offset},
            )


class ProductSyncTrigger:
    """Starts a full sync when product sync is switched on, at most once per cooldown."""

    def __init__(
        self,
        config: KarlaConfig,
        queue: SyncQueue,
        status_store: SyncStatusStore,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._queue = queue
        self._status = status_store
        self._clock = clock

    def on_product_sync_toggled(self, enabled: bool) -> bool:
        """Return True when a full sync was enqueued."""
        if not enabled:
            logger.info("Product sync disabled", extra={"component": "product.config"})
            return False

        now = int(self._clock())
        last_enabled = self._status.get_last_enabled()
        cooldown = self._config.sync_cooldown_seconds

        if last_enabled is not None and now - last_enabled < cooldown:
            seconds_ago = now - last_enabled
            logger.info(
                "Product sync enabled - skipping full sync (recently synced)",
                extra={
                    "component": "product.config",
                    "last_enabled": last_enabled,
                    "seconds_ago": seconds_ago,
                    "cooldown_remaining": cooldown - seconds_ago,
                },
            )
            return False

        self._status.set_last_enabled(now)
        self._status.set_status(SyncStatus.RUNNING)
        self._queue.enqueue(SyncBatch(offset=0, limit=self._config.batch_size))
        logger.info(
            "Product sync enabled - triggering full sync",
            extra={
                "component": "product.config",
                "last_enabled": last_enabled if last_enabled is not None else "never",
            },
        )
        return True


class ProductChangeSubscriber:
    """Real-time sync of product writes and deletes. Never raises."""

    def __init__(
        self,
        config: KarlaConfig,
        source: CatalogSource,
        service: ProductSyncService,
    ) -> None:
        self._config = config
        self._source = source
        self._service = service

    def _should_skip(self, action: str) -> bool:
        if not self._config.product_sync_enabled:
            return True
        if not self._config.api_configured:
            logger.warning(
                f"Product {action} sync skipped - missing configuration",
                extra={"component": "product.sync"},
            )
            return True
        return False

    async def on_products_written(self, product_ids: Iterable[str]) -> None:
        if self._should_skip("write"):
            return

        try:
            for product in self._source.get_items(list(product_ids)):
                if not product.active:
                    continue

                if product.is_grouping_parent:
                    variants = self._source.find_active_variants([product.id])
                    logger.debug(
                        "Product is a parent with variants, syncing variants",
                        extra={
                            "component": "product.sync",
                            "parent_sku": product.sku,
                            "variants_found": len(variants),
                        },
                    )
                    for variant in variants:
                        await self._service.upsert_product(variant, product)
                    continue

                parent = None
                if product.parent_id:
                    parents = self._source.get_items([product.parent_id])
                    parent = parents[0] if parents else None
                await self._service.upsert_product(product, parent)
                logger.info(
                    "Product synced to Karla",
                    extra={"component": "product.sync", "sku": product.sku},
                )
        except Exception:
            logger.exception(
                "Unexpected error during product sync",
                extra={"component": "product.sync"},
            )

    async def on_products_deleted(self, product_ids: Iterable[str]) -> None:
        if self._should_skip("deletion"):
            return

        try:
            for product_id in product_ids:
                await self._service.delete_product(product_id)
                logger.info(
                    "Product deleted from Karla",
                    extra={"component": "product.sync", "product_id": product_id},
                )
        except Exception:
            logger.exception(
                "Unexpected error during product deletion sync",
                extra={"component": "product.sync"},
            )
