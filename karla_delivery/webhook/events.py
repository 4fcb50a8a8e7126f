"""Karla webhook events: naming, payload parsing and capability data.

Event names follow ``karla.{family}.{event}``: the raw ``event_group`` sent by
Karla has its first underscore turned into a dot and ``karla.`` prepended, so
``shipment_delivery_failed_address_issue`` becomes
``karla.shipment.delivery_failed_address_issue``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

EVENT_PREFIX = "karla."

CLAIM_EVENT_GROUPS: tuple[str, ...] = (
    "claim_created",
    "claim_updated",
)

SHIPMENT_EVENT_GROUPS: tuple[str, ...] = (
    "shipment_pre_transit",
    "shipment_in_transit",
    "shipment_damaged",
    "shipment_carrier_delay",
    "shipment_out_for_delivery",
    "shipment_delivery_failed",
    "shipment_delivery_failed_forwarded_to_parcel_shop",
    "shipment_delivery_failed_address_issue",
    "shipment_delivery_second_attempt",
    "shipment_delivered",
    "shipment_delivered_to_neighbour",
    "shipment_delivered_to_letterbox",
    "shipment_delivered_to_parcel_shop",
    "shipment_delivered_to_parcel_locker",
    "shipment_picked_up",
    "shipment_failed_returned",
    "shipment_refused_then_returned",
    "shipment_not_picked_up_then_returned",
    "shipment_delayed_due_to_customer_request",
    "shipment_delivered_all_events",
    "shipment_internal_trigger",
    "shipment_carrier_changed",
    "shipment_order_cancelled",
)

EVENT_GROUPS: tuple[str, ...] = CLAIM_EVENT_GROUPS + SHIPMENT_EVENT_GROUPS

# Data keys templates can rely on besides the dynamic event_data fields
AVAILABLE_DATA_KEYS: tuple[str, ...] = (
    "order",
    "customer",
    "eventGroup",
    "shipment_id",
    "tracking_number",
    "tracking_url",
    "carrier_reference",
    "phase",
    "event_name",
    "event_id",
    "claim_id",
    "reason",
    "status",
    "description",
    "resolution_preference",
)

JsonValue = Union[str, int, float, bool, None, list[Any], dict[str, Any]]


class PayloadInvalidError(ValueError):
    """Raised when a webhook body is empty, not JSON, or not a JSON object."""


class MissingEventGroupError(ValueError):
    """Raised when a webhook payload carries no event_group."""


class MissingRequiredFieldError(LookupError):
    """Raised when an order or customer id is absent from the webhook context."""

    def __init__(self, field_path: str) -> None:
        self.field_path = field_path
        super().__init__(f"{field_path} not found in webhook context")


def event_name_for(event_group: str) -> str:
    """Map an event group to its event name, converting only the first underscore."""
    family, sep, tail = event_group.partition("_")
    return f"{EVENT_PREFIX}{family}.{tail}" if sep else f"{EVENT_PREFIX}{family}"


EVENT_NAMES: dict[str, str] = {group: event_name_for(group) for group in EVENT_GROUPS}


def is_known_event_group(event_group: str) -> bool:
    return event_group in EVENT_NAMES


def parse_payload(raw_payload: bytes) -> dict[str, Any]:
    """Decode a webhook body into a JSON object."""
    if not raw_payload or not raw_payload.strip():
        raise PayloadInvalidError("empty payload")
    try:
        data = json.loads(raw_payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise PayloadInvalidError(str(exc)) from exc
    except RecursionError as exc:
        # Nesting deeper than the interpreter stack allows
        raise PayloadInvalidError("payload nested too deeply") from exc
    if not isinstance(data, dict):
        raise PayloadInvalidError("payload is not a JSON object")
    return data


@dataclass(frozen=True)
class FieldResult:
    """Outcome of a required-field lookup: a value or the error it produced."""

    value: str | None = None
    error: MissingRequiredFieldError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> str:
        if self.error is not None:
            raise self.error
        assert self.value is not None
        return self.value


@dataclass(frozen=True)
class EventCapabilities:
    """Plain-data view of what a downstream automation can do with an event."""

    order_id: FieldResult
    customer_id: FieldResult
    mail_recipients: dict[str, str]


class WebhookEvent(BaseModel):
    """Immutable record built once from a verified webhook payload."""

    model_config = ConfigDict(frozen=True)

    event_group: str
    ref: str | None = None
    source: str | None = None
    triggered_at: str | None = None
    source_data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> WebhookEvent:
        event_group = data.get("event_group")
        if not event_group or not isinstance(event_group, str):
            raise MissingEventGroupError("event_group is required in webhook payload")
        return cls(
            event_group=event_group,
            ref=_optional_str(data.get("ref")),
            source=_optional_str(data.get("source")),
            triggered_at=_optional_str(data.get("triggered_at")),
            source_data=data,
        )

    @property
    def event_name(self) -> str:
        return event_name_for(self.event_group)

    @property
    def context(self) -> dict[str, Any]:
        context = self.source_data.get("context")
        return context if isinstance(context, dict) else {}

    @property
    def event_data(self) -> dict[str, Any]:
        event_data = self.source_data.get("event_data")
        return event_data if isinstance(event_data, dict) else {}

    def template_values(self) -> dict[str, JsonValue]:
        """event_data entries holding JSON values, in payload order."""
        return {
            key: value
            for key, value in self.event_data.items()
            if value is None or isinstance(value, (str, int, float, bool, list, dict))
        }

    def get_values(self) -> dict[str, dict[str, JsonValue]]:
        """Template data nested under the ``karla`` namespace."""
        return {"karla": self.template_values()}

    def mail_recipients(self) -> dict[str, str]:
        email = _nested(self.context, "customer", "email")
        if not email or not isinstance(email, str):
            return {}
        return {email: email}

    def order_id(self) -> str:
        return self._required_id("order")

    def customer_id(self) -> str:
        return self._required_id("customer")

    def capabilities(self) -> EventCapabilities:
        return EventCapabilities(
            order_id=self._field_result("order"),
            customer_id=self._field_result("customer"),
            mail_recipients=self.mail_recipients(),
        )

    def _required_id(self, entity: str) -> str:
        value = _nested(self.context, entity, "external_id")
        if not value or not isinstance(value, str):
            raise MissingRequiredFieldError(f"context.{entity}.external_id")
        return value

    def _field_result(self, entity: str) -> FieldResult:
        try:
            return FieldResult(value=self._required_id(entity))
        except MissingRequiredFieldError as exc:
            return FieldResult(error=exc)


def _nested(data: dict[str, Any], *keys: str) -> Any:
    current: Any = data
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)
