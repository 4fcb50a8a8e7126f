"""Tests for event dispatch and flow data storage."""

from __future__ import annotations

import pytest

from karla_delivery.webhook.dispatcher import (
    FlowStorage,
    InProcessDispatcher,
    KarlaDataStorer,
    collect_business_events,
)
from karla_delivery.webhook.events import EVENT_GROUPS, WebhookEvent
from tests.conftest import make_webhook_payload


def _make_event(**kwargs: object) -> WebhookEvent:
    return WebhookEvent.from_payload(make_webhook_payload(**kwargs))


class TestInProcessDispatcher:
    def test_listener_receives_event(self) -> None:
        dispatcher = InProcessDispatcher()
        received: list[WebhookEvent] = []
        dispatcher.subscribe("karla.shipment.in_transit", received.append)

        event = _make_event()
        dispatcher.dispatch(event, event.event_name)

        assert received == [event]
        assert dispatcher.dispatched == [("karla.shipment.in_transit", event)]

    def test_other_names_not_delivered(self) -> None:
        dispatcher = InProcessDispatcher()
        received: list[WebhookEvent] = []
        dispatcher.subscribe("karla.claim.created", received.append)

        event = _make_event()
        dispatcher.dispatch(event, event.event_name)

        assert received == []
        assert len(dispatcher.dispatched) == 1

    def test_listener_errors_propagate(self) -> None:
        dispatcher = InProcessDispatcher()

        def boom(event: WebhookEvent) -> None:
            raise RuntimeError("listener failed")

        dispatcher.subscribe("karla.shipment.in_transit", boom)
        event = _make_event()
        with pytest.raises(RuntimeError):
            dispatcher.dispatch(event, event.event_name)


class TestBusinessEvents:
    def test_one_definition_per_group(self) -> None:
        definitions = collect_business_events()
        assert [d.event_group for d in definitions] == list(EVENT_GROUPS)
        assert definitions[0].name == "karla.claim.created"

    def test_definitions_are_mail_order_customer_aware(self) -> None:
        definition = collect_business_events(debug=True)[0]
        assert set(definition.aware) == {"mailAware", "orderAware", "customerAware"}
        assert "tracking_number" in definition.data


class TestKarlaDataStorer:
    def test_store_and_restore(self) -> None:
        storer = KarlaDataStorer()
        stored = storer.store(_make_event(), {})
        assert stored["karla"]["phase"] == "in_transit"

        storage = FlowStorage(store=stored)
        storer.restore(storage)
        assert storage.data["karla"] == stored["karla"]

    def test_store_ignores_other_events(self) -> None:
        assert KarlaDataStorer().store(object(), {"a": 1}) == {"a": 1}

    def test_restore_without_karla_data(self) -> None:
        storage = FlowStorage()
        KarlaDataStorer().restore(storage)
        assert storage.data == {}
