"""Webhook event dispatch: routes verified events to named listeners.

Also provides the pieces an automation/flow engine consumes: the catalogue of
business events (one per known event group) and the storer that copies an
event's template data into flow storage.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from karla_delivery.webhook.events import (
    AVAILABLE_DATA_KEYS,
    EVENT_GROUPS,
    WebhookEvent,
    event_name_for,
)

logger = logging.getLogger(__name__)

KARLA_DATA_KEY = "karla"

Listener = Callable[[WebhookEvent], None]


class EventDispatcher(Protocol):
    def dispatch(self, event: WebhookEvent, event_name: str) -> None: ...


class InProcessDispatcher:
    """Synchronous dispatcher keyed by event name.

    Listener exceptions propagate to the caller; the HTTP layer turns them
    into a generic 500 response.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self.dispatched: list[tuple[str, WebhookEvent]] = []

    def subscribe(self, event_name: str, listener: Listener) -> None:
        self._listeners.setdefault(event_name, []).append(listener)

    def dispatch(self, event: WebhookEvent, event_name: str) -> None:
        self.dispatched.append((event_name, event))
        for listener in self._listeners.get(event_name, []):
            listener(event)


@dataclass(frozen=True)
class BusinessEventDefinition:
    name: str
    event_group: str
    aware: tuple[str, ...] = ("mailAware", "orderAware", "customerAware")
    data: tuple[str, ...] = AVAILABLE_DATA_KEYS


def collect_business_events(debug: bool = False) -> list[BusinessEventDefinition]:
    """One definition per known event group, for flow trigger registration."""
    definitions = [
        BusinessEventDefinition(name=event_name_for(group), event_group=group)
        for group in EVENT_GROUPS
    ]
    if debug:
        logger.debug(
            "Collected Karla business events",
            extra={"component": "flow.builder", "total_events": len(definitions)},
        )
    return definitions


@dataclass
class FlowStorage:
    """Flow storage as seen by template rendering."""

    store: dict[str, Any] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)


class KarlaDataStorer:
    """Makes webhook event_data available to templates under ``karla``."""

    def store(self, event: object, stored: dict[str, Any]) -> dict[str, Any]:
        if not isinstance(event, WebhookEvent):
            return stored

        karla_data = event.get_values()[KARLA_DATA_KEY]
        stored[KARLA_DATA_KEY] = karla_data
        logger.debug(
            "Storing Karla data for templates",
            extra={"component": "flow.storer", "available_keys": list(karla_data)},
        )
        return stored

    def restore(self, storable: FlowStorage) -> None:
        if KARLA_DATA_KEY not in storable.store:
            return
        storable.data[KARLA_DATA_KEY] = storable.store[KARLA_DATA_KEY]
