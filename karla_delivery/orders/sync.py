"""Order placement push to Karla.

Orders whose state is in the configured allow list are turned into an order
snapshot and POSTed to ``{base}/v1/orders``. Deliveries in an allowed state
contribute one tracking entry per tracking code. Failures are logged per
order and never propagate to the order write path.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from karla_delivery.audit.logger import AuditLogger
from karla_delivery.client import KarlaClient
from karla_delivery.config import KarlaConfig
from karla_delivery.models import AuditEvent, AuditEventType, Order, OrderAddress, OrderLineItem

logger = logging.getLogger(__name__)

TAG_SEGMENT = "Shopware.tag."
CUSTOMER_GROUP_SEGMENT = "Shopware.customer_group."
SALES_CHANNEL_SEGMENT = "Shopware.sales_channel."


def line_item_product(item: OrderLineItem) -> dict[str, Any]:
    product_id = item.referenced_id or item.id
    images = []
    if item.image_url is not None:
        images.append({"src": item.image_url, "alt": item.image_alt})
    return {
        "product_id": item.parent_id or product_id,
        "variant_id": product_id,
        "sku": item.sku or item.referenced_id,
        "title": item.label,
        "quantity": item.quantity,
        "price": item.unit_price,
        "images": images,
    }


def read_line_items(
    line_items: Iterable[OrderLineItem],
    deposit_type: str = "",
) -> dict[str, Any]:
    """Split line items into products and promotion discounts with their totals."""
    product_types = {"product"}
    if deposit_type:
        product_types.add(deposit_type)

    products: list[dict[str, Any]] = []
    discounts: list[dict[str, Any]] = []
    sub_total = 0.0
    discount_total = 0.0

    for item in line_items:
        if item.type in product_types:
            sub_total += item.total_price
            products.append(line_item_product(item))
        elif item.type == "promotion":
            discount_total += abs(item.total_price)
            discounts.append({
                "code": item.promotion_code,
                "amount": item.total_price,
                "type": item.discount_type,
            })

    return {
        "products": products,
        "discounts": discounts,
        "sub_total_price": sub_total,
        "discount_price": discount_total,
    }


def read_address(address: OrderAddress) -> dict[str, Any]:
    street = ", ".join(p for p in (address.street, address.additional_line) if p)
    return {
        "address_line_1": address.street,
        "address_line_2": address.additional_line,
        "city": address.city,
        "country": address.country,
        "country_code": address.country_code,
        "name": f"{address.first_name} {address.last_name}".strip(),
        "phone": address.phone,
        "province": address.province,
        "province_code": address.province_code,
        "street": street,
        "zip_code": address.zip_code,
    }


def order_segments(order: Order) -> list[str]:
    segments = [f"{TAG_SEGMENT}{tag}" for tag in order.tags]
    segments.extend(f"{TAG_SEGMENT}{tag}" for tag in order.customer_tags)
    if order.customer_group:
        segments.append(f"{CUSTOMER_GROUP_SEGMENT}{order.customer_group}")
    if order.sales_channel:
        segments.append(f"{SALES_CHANNEL_SEGMENT}{order.sales_channel}")
    return segments


def build_order_payload(
    order: Order,
    allowed_delivery_statuses: Iterable[str],
    deposit_type: str = "",
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build the order snapshot sent to Karla."""
    line_items = read_line_items(order.line_items, deposit_type)
    tracking_time = (now or datetime.now(UTC)).isoformat()
    items_by_id = {item.id: item for item in order.line_items}
    allowed = set(allowed_delivery_statuses)

    trackings: list[dict[str, Any]] = []
    for delivery in order.deliveries:
        if delivery.status not in allowed or not delivery.tracking_codes:
            continue
        delivery_products = [
            line_item_product(items_by_id[line_id])
            for line_id in delivery.line_item_ids
            if line_id in items_by_id and items_by_id[line_id].type == "product"
        ]
        for tracking_number in delivery.tracking_codes:
            trackings.append({
                "tracking_number": tracking_number,
                "tracking_placed_at": tracking_time,
                "products": delivery_products,
            })

    payload: dict[str, Any] = {
        "id": order.order_number,
        "id_type": "order_number",
        "order": {
            "order_number": order.order_number,
            "order_placed_at": order.placed_at.isoformat(),
            "products": line_items["products"],
            "total_order_price": order.total_price,
            "shipping_price": order.shipping_total,
            "sub_total_price": line_items["sub_total_price"],
            "discount_price": line_items["discount_price"],
            "discounts": line_items["discounts"],
            "email_id": order.customer_email,
            "address": read_address(order.addresses[0]) if order.addresses else None,
            "currency": order.currency,
            "external_id": order.id,
            "external_customer_id": order.customer_id,
            "segments": order_segments(order),
        },
        "trackings": trackings,
    }

    analytics = {
        key: value
        for key, value in (
            ("affiliate_code", order.affiliate_code),
            ("campaign_code", order.campaign_code),
        )
        if value
    }
    if analytics:
        payload["order_analytics"] = analytics
    return payload


class OrderSyncService:
    """Sends written orders to Karla."""

    def __init__(
        self,
        config: KarlaConfig,
        client: KarlaClient | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._config = config
        self._client = client or KarlaClient(config, component="order.api")
        self._audit_logger = audit_logger

    def _audit(self, order: Order, result: str, **details: object) -> None:
        if self._audit_logger:
            self._audit_logger.log(AuditEvent(
                event_type=AuditEventType.ORDER_SYNC,
                action="send_order",
                result=result,
                details={"order_number": order.order_number, **details},
            ))

    async def on_order_written(self, orders: Iterable[Order]) -> int:
        """Sync each order; return how many were accepted by Karla."""
        if not self._config.api_configured:
            logger.warning(
                "Order sync skipped - missing configuration",
                extra={"component": "order.sync"},
            )
            return 0

        synced = 0
        for order in orders:
            if await self.send_order(order):
                synced += 1
        return synced

    async def send_order(self, order: Order) -> bool:
        if order.status not in self._config.allowed_order_statuses:
            logger.info(
                "Order skipped - status not allowed",
                extra={
                    "component": "order.sync",
                    "order_number": order.order_number,
                    "order_status": order.status,
                },
            )
            return False

        payload = build_order_payload(
            order,
            self._config.allowed_delivery_statuses,
            self._config.deposit_line_item_type,
        )
        try:
            self._client.require("api_url")
            await self._client.send("POST", f"{self._client.base_url}/v1/orders", payload)
        except Exception as exc:
            logger.error(
                "Failed to sync order to Karla",
                extra={
                    "component": "order.sync",
                    "order_number": order.order_number,
                    "error": str(exc),
                },
            )
            self._audit(order, "failure", error_class=type(exc).__name__)
            return False

        logger.info(
            "Order synced to Karla successfully",
            extra={
                "component": "order.sync",
                "order_number": order.order_number,
                "deliveries_count": len(payload["trackings"]),
                "segments_count": len(payload["order"]["segments"]),
            },
        )
        self._audit(order, "success", trackings=len(payload["trackings"]))
        return True
