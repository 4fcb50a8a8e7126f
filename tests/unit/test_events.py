"""Tests for webhook event naming, payload parsing, and capability data."""

from __future__ import annotations

import json

import pytest

from karla_delivery.webhook.events import (
    CLAIM_EVENT_GROUPS,
    EVENT_GROUPS,
    EVENT_NAMES,
    SHIPMENT_EVENT_GROUPS,
    MissingEventGroupError,
    MissingRequiredFieldError,
    PayloadInvalidError,
    WebhookEvent,
    event_name_for,
    is_known_event_group,
    parse_payload,
)
from tests.conftest import make_webhook_payload


class TestEventNaming:
    @pytest.mark.parametrize(("group", "name"), [
        ("shipment_in_transit", "karla.shipment.in_transit"),
        ("shipment_delivery_failed_address_issue", "karla.shipment.delivery_failed_address_issue"),
        ("claim_created", "karla.claim.created"),
        ("shipment_order_cancelled", "karla.shipment.order_cancelled"),
    ])
    def test_first_underscore_becomes_dot(self, group: str, name: str) -> None:
        assert event_name_for(group) == name

    def test_group_without_underscore(self) -> None:
        assert event_name_for("ping") == "karla.ping"

    def test_unknown_groups_still_named(self) -> None:
        assert event_name_for("return_requested") == "karla.return.requested"
        assert not is_known_event_group("return_requested")

    def test_catalogue_sizes(self) -> None:
        assert len(CLAIM_EVENT_GROUPS) == 2
        assert len(SHIPMENT_EVENT_GROUPS) == 23
        assert len(EVENT_GROUPS) == len(set(EVENT_GROUPS))
        assert set(EVENT_NAMES) == set(EVENT_GROUPS)

    def test_every_name_is_prefixed(self) -> None:
        assert all(name.startswith("karla.") for name in EVENT_NAMES.values())


class TestParsePayload:
    def test_object_decoded(self) -> None:
        assert parse_payload(b'{"a": 1}') == {"a": 1}

    @pytest.mark.parametrize("body", [b"", b"   ", b"{not json", b"[1, 2]", b'"text"', b"\xff\xfe"])
    def test_invalid_bodies(self, body: bytes) -> None:
        with pytest.raises(PayloadInvalidError):
            parse_payload(body)

    def test_deep_nesting_rejected(self) -> None:
        with pytest.raises(PayloadInvalidError, match="nested too deeply"):
            parse_payload(b"[" * 100_000 + b"]" * 100_000)


class TestWebhookEvent:
    def test_from_payload_fields(self) -> None:
        event = WebhookEvent.from_payload(make_webhook_payload())
        assert event.event_group == "shipment_in_transit"
        assert event.event_name == "karla.shipment.in_transit"
        assert event.ref == "shipments/in_transit/package_in_transit"
        assert event.source == "shipments"
        assert event.triggered_at == "2025-10-09T08:53:20Z"

    @pytest.mark.parametrize("group", [None, "", 42])
    def test_missing_or_bad_event_group(self, group: object) -> None:
        data = make_webhook_payload(event_group=None)
        if group is not None:
            data["event_group"] = group
        with pytest.raises(MissingEventGroupError):
            WebhookEvent.from_payload(data)

    def test_event_is_immutable(self) -> None:
        event = WebhookEvent.from_payload(make_webhook_payload())
        with pytest.raises(Exception):
            event.event_group = "claim_created"  # type: ignore[misc]

    def test_get_values_nests_event_data(self) -> None:
        event = WebhookEvent.from_payload(make_webhook_payload())
        values = event.get_values()
        assert list(values) == ["karla"]
        assert values["karla"]["tracking_number"] == "1Z999AA10123456784"
        assert list(values["karla"]) == ["shipment_id", "tracking_number", "tracking_url", "phase"]

    def test_missing_event_data_gives_empty_values(self) -> None:
        data = make_webhook_payload()
        del data["event_data"]
        assert WebhookEvent.from_payload(data).get_values() == {"karla": {}}

    def test_non_object_event_data_ignored(self) -> None:
        event = WebhookEvent.from_payload(make_webhook_payload(event_data=["x"]))
        assert event.event_data == {}

    def test_mail_recipients(self) -> None:
        event = WebhookEvent.from_payload(make_webhook_payload())
        assert event.mail_recipients() == {"jane@example.com": "jane@example.com"}

    def test_mail_recipients_empty_without_email(self) -> None:
        event = WebhookEvent.from_payload(make_webhook_payload(context={"customer": {}}))
        assert event.mail_recipients() == {}

    def test_order_and_customer_ids(self) -> None:
        event = WebhookEvent.from_payload(make_webhook_payload())
        assert event.order_id() == "order-uuid-1"
        assert event.customer_id() == "customer-uuid-1"

    def test_missing_order_id_raises_with_path(self) -> None:
        event = WebhookEvent.from_payload(make_webhook_payload(context={}))
        with pytest.raises(MissingRequiredFieldError) as exc_info:
            event.order_id()
        assert exc_info.value.field_path == "context.order.external_id"

    def test_capabilities_capture_errors(self) -> None:
        payload = make_webhook_payload(context={"order": {"external_id": "o-1"}})
        caps = WebhookEvent.from_payload(payload).capabilities()
        assert caps.order_id.ok
        assert caps.order_id.unwrap() == "o-1"
        assert not caps.customer_id.ok
        assert caps.mail_recipients == {}
        with pytest.raises(MissingRequiredFieldError):
            caps.customer_id.unwrap()

    def test_non_string_metadata_coerced(self) -> None:
        payload = make_webhook_payload(ref=123)
        assert WebhookEvent.from_payload(json.loads(json.dumps(payload))).ref == "123"
