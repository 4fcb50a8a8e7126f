"""Shared test fixtures for karla-delivery."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from karla_delivery.audit.logger import AuditLogger
from karla_delivery.config import KarlaConfig
from karla_delivery.models import (
    CatalogItem,
    Order,
    OrderDelivery,
    OrderLineItem,
    ProductTranslation,
)
from karla_delivery.webhook.verifier import build_signature_header

TEST_SECRET = "whsec_test_secret"
FIXED_NOW = 1_760_000_000


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


@pytest.fixture
def catalog_db_path(tmp_path: Path) -> str:
    return str(tmp_path / "catalog.db")


@pytest.fixture
def status_db_path(tmp_path: Path) -> str:
    return str(tmp_path / "sync-status.db")


# --- Factory functions for test data ---


def make_config(**kwargs: Any) -> KarlaConfig:
    """Factory for KarlaConfig with a complete API setup."""
    defaults: dict[str, Any] = {
        "webhook_enabled": True,
        "webhook_secret": TEST_SECRET,
        "api_url": "https://api.karla.test",
        "api_username": "shop-user",
        "api_key": "secret-key",
        "shop_slug": "test-shop",
        "product_sync_enabled": True,
    }
    defaults.update(kwargs)
    return KarlaConfig(**defaults)


def make_item(item_id: str = "p1", **kwargs: Any) -> CatalogItem:
    """Factory for CatalogItem with sensible defaults."""
    defaults: dict[str, Any] = {
        "id": item_id,
        "name": f"Product {item_id}",
        "sku": f"SKU-{item_id}",
        "price": 19.99,
    }
    defaults.update(kwargs)
    return CatalogItem(**defaults)


def make_translation(name: str | None, locale_code: str | None) -> ProductTranslation:
    return ProductTranslation(name=name, locale_code=locale_code)


def make_webhook_payload(
    event_group: str | None = "shipment_in_transit",
    **kwargs: Any,
) -> dict[str, Any]:
    """Factory for a Karla webhook body."""
    payload: dict[str, Any] = {
        "ref": "shipments/in_transit/package_in_transit",
        "source": "shipments",
        "triggered_at": "2025-10-09T08:53:20Z",
        "event_data": {
            "shipment_id": "shp_123",
            "tracking_number": "1Z999AA10123456784",
            "tracking_url": "https://track.example/1Z999",
            "phase": "in_transit",
        },
        "context": {
            "order": {"external_id": "order-uuid-1", "order_number": "10001"},
            "customer": {"external_id": "customer-uuid-1", "email": "jane@example.com"},
        },
    }
    if event_group is not None:
        payload["event_group"] = event_group
    payload.update(kwargs)
    return payload


def sign_payload(
    payload: dict[str, Any] | bytes,
    secret: str = TEST_SECRET,
    timestamp: int = FIXED_NOW,
) -> tuple[bytes, str]:
    """Serialize (if needed) and sign a payload; return (body, header)."""
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return body, build_signature_header(body, secret, timestamp)


def make_line_item(**kwargs: Any) -> OrderLineItem:
    defaults: dict[str, Any] = {
        "id": "li-1",
        "type": "product",
        "label": "Blue Shirt",
        "quantity": 2,
        "unit_price": 10.0,
        "total_price": 20.0,
        "referenced_id": "variant-1",
        "parent_id": "parent-1",
        "sku": "SHIRT-BLUE",
    }
    defaults.update(kwargs)
    return OrderLineItem(**defaults)


def make_order(**kwargs: Any) -> Order:
    defaults: dict[str, Any] = {
        "id": "order-uuid-1",
        "order_number": "10001",
        "status": "open",
        "placed_at": datetime(2025, 10, 9, 8, 0, tzinfo=UTC),
        "total_price": 24.95,
        "shipping_total": 4.95,
        "currency": "EUR",
        "customer_email": "jane@example.com",
        "customer_id": "customer-uuid-1",
        "line_items": [make_line_item()],
        "deliveries": [
            OrderDelivery(status="shipped", tracking_codes=["TRACK1"], line_item_ids=["li-1"]),
        ],
    }
    defaults.update(kwargs)
    return Order(**defaults)


def mock_http_client(status_code: int = 200, text: str = "{}") -> AsyncMock:
    """An AsyncMock standing in for ``httpx.AsyncClient`` as a context manager."""
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    client = AsyncMock()
    client.request.return_value = response
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client
