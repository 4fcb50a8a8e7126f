"""Product catalog sync to Karla.

Bulk sync walks the catalog in ``offset``/``limit`` pages. Grouping parents
(no parent, at least one child) are never sent themselves; their active
variants are fetched with a separate query and sent in their place, each
carrying the parent's id as ``product_id``.

Failure policy:
- bulk upsert failures are logged and swallowed so one bad page does not stop
  the walk;
- ``upsert_product`` and ``delete_product`` never raise, since they run on
  the shop's write path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from karla_delivery.catalog.payload import build_variant_payload, strip_identity
from karla_delivery.catalog.source import CatalogSource
from karla_delivery.client import KarlaClient
from karla_delivery.config import KarlaConfig
from karla_delivery.models import CatalogItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchResult:
    has_more: bool
    synced: int = 0


class ProductSyncService:
    """Builds variant payloads from the catalog source and sends them to Karla."""

    def __init__(
        self,
        config: KarlaConfig,
        source: CatalogSource,
        client: KarlaClient | None = None,
    ) -> None:
        self._config = config
        self._source = source
        self._client = client or KarlaClient(config, component="product.api")

    async def sync_product_batch(self, offset: int, limit: int) -> BatchResult:
        """Sync one page; ``has_more`` tells the caller to continue at ``offset + limit``."""
        page = self._source.search_active(offset, limit)
        if not page.items:
            return BatchResult(has_more=False)

        has_more = (offset + limit) < page.total

        standalone: list[CatalogItem] = []
        parent_ids: list[str] = []
        for item in page.items:
            if item.is_grouping_parent:
                parent_ids.append(item.id)
            else:
                standalone.append(item)

        variants: list[CatalogItem] = []
        parent_map: dict[str, CatalogItem] = {}
        if parent_ids:
            variants = self._source.find_active_variants(parent_ids)
            parent_map = self._load_parents(variants)
        else:
            logger.debug(
                "No parent products found with variants",
                extra={"component": "product.bulk_sync", "total_products": len(page.items)},
            )

        # Sources that page variants inline still get them titled by their parent
        unresolved = [i for i in standalone if i.parent_id and i.parent_id not in parent_map]
        if unresolved:
            parent_map.update(self._load_parents(unresolved))

        to_sync = list({item.id: item for item in standalone + variants}.values())

        logger.info(
            "Syncing product batch",
            extra={
                "component": "product.bulk_sync",
                "offset": offset,
                "count": len(page.items),
                "total": page.total,
                "products_to_sync": len(to_sync),
                "variants_found": len(variants),
                "parents_found": len(parent_ids),
                "standalone_found": len(standalone),
            },
        )

        if not to_sync:
            return BatchResult(has_more=has_more)

        payloads = [
            build_variant_payload(item, parent_map.get(item.parent_id or ""))
            for item in to_sync
        ]

        try:
            await self._bulk_upsert(payloads)
        except Exception as exc:
            logger.error(
                "Failed to sync product batch",
                extra={
                    "component": "product.bulk_sync",
                    "offset": offset,
                    "count": len(payloads),
                    "error": str(exc),
                },
            )
            return BatchResult(has_more=has_more)

        return BatchResult(has_more=has_more, synced=len(payloads))

    async def upsert_product(
        self,
        item: CatalogItem,
        parent: CatalogItem | None = None,
    ) -> None:
        """PUT a single variant payload. Never raises."""
        try:
            payload = build_variant_payload(item, parent)
            url = self._client.shop_url(
                "products", payload["product_id"], "variants", payload["variant_id"],
            )

            if self._config.debug_mode:
                logger.debug(
                    "Upserting product to Karla",
                    extra={
                        "component": "product.sync",
                        "sku": item.sku,
                        "product_id": payload["product_id"],
                        "variant_id": payload["variant_id"],
                    },
                )

            await self._client.send("PUT", url, strip_identity(payload))
        except Exception as exc:
            logger.error(
                "Failed to upsert product to Karla",
                extra={
                    "component": "product.sync",
                    "product_id": item.id,
                    "sku": item.sku,
                    "error": str(exc),
                },
            )

    async def delete_product(self, product_id: str) -> None:
        """Cascading delete of a product and its variants. Never raises."""
        try:
            url = self._client.shop_url("products", product_id)
            if self._config.debug_mode:
                logger.debug(
                    "Deleting product from Karla",
                    extra={"component": "product.sync", "product_id": product_id},
                )
            await self._client.send("DELETE", url)
        except Exception as exc:
            logger.error(
                "Failed to delete product from Karla",
                extra={
                    "component": "product.sync",
                    "product_id": product_id,
                    "error": str(exc),
                },
            )

    async def _bulk_upsert(self, payloads: list[dict[str, Any]]) -> None:
        url = self._client.shop_url("products")
        if self._config.debug_mode:
            logger.debug(
                "Bulk upserting products to Karla",
                extra={"component": "product.bulk_sync", "count": len(payloads)},
            )
        await self._client.send("POST", url, payloads)

    def _load_parents(self, variants: list[CatalogItem]) -> dict[str, CatalogItem]:
        parent_ids = list(dict.fromkeys(v.parent_id for v in variants if v.parent_id))
        if not parent_ids:
            return {}
        return {parent.id: parent for parent in self._source.get_items(parent_ids)}
