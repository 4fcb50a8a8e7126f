"""Shared Pydantic data models for karla-delivery."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# --- Enums ---


class SyncStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class AuditEventType(str, Enum):
    WEBHOOK_RECEIVED = "webhook_received"
    WEBHOOK_REJECTED = "webhook_rejected"
    PRODUCT_SYNC = "product_sync"
    ORDER_SYNC = "order_sync"


# --- Catalog Models ---


class ProductTranslation(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str | None = None
    locale_code: str | None = None  # None when language or locale is missing


class CatalogItem(BaseModel):
    """A standalone product, a grouping parent, or a variant."""

    model_config = ConfigDict(frozen=True)

    id: str
    parent_id: str | None = None
    child_count: int = Field(default=0, ge=0)
    active: bool = True
    name: str | None = None
    sku: str | None = None
    price: float | None = None  # gross
    cover_image_url: str | None = None
    translations: list[ProductTranslation] = Field(default_factory=list)

    @property
    def is_grouping_parent(self) -> bool:
        return self.parent_id is None and self.child_count > 0


class CatalogPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: list[CatalogItem]
    total: int = Field(ge=0)


class SyncBatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=50, gt=0)

    def next(self) -> SyncBatch:
        return SyncBatch(offset=self.offset + self.limit, limit=self.limit)


# --- Order Models ---


class OrderLineItem(BaseModel):
    id: str
    type: str  # "product", "promotion", or a deposit type
    label: str = ""
    quantity: int = 1
    unit_price: float = 0.0
    total_price: float = 0.0
    referenced_id: str | None = None
    parent_id: str | None = None
    sku: str | None = None
    image_url: str | None = None
    image_alt: str | None = None
    promotion_code: str = ""
    discount_type: str | None = None


class OrderAddress(BaseModel):
    first_name: str = ""
    last_name: str = ""
    street: str = ""
    additional_line: str | None = None
    city: str = ""
    zip_code: str = ""
    phone: str | None = None
    country: str | None = None
    country_code: str | None = None
    province: str | None = None
    province_code: str | None = None


class OrderDelivery(BaseModel):
    status: str
    tracking_codes: list[str] = Field(default_factory=list)
    line_item_ids: list[str] = Field(default_factory=list)


class Order(BaseModel):
    id: str
    order_number: str
    status: str
    placed_at: datetime
    total_price: float
    shipping_total: float = 0.0
    currency: str | None = None
    customer_email: str | None = None
    customer_id: str | None = None
    customer_group: str | None = None
    customer_tags: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    sales_channel: str | None = None
    affiliate_code: str | None = None
    campaign_code: str | None = None
    line_items: list[OrderLineItem] = Field(default_factory=list)
    addresses: list[OrderAddress] = Field(default_factory=list)
    deliveries: list[OrderDelivery] = Field(default_factory=list)


# --- Audit Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    source_ip: str | None = None
    action: str
    result: str  # "success" | "failure" | "rejected"
    details: dict[str, object] | None = None
