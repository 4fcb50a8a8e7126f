"""Webhook layer for karla-delivery.

This module provides inbound webhook handling including:
- Signature verification with replay protection
- Event classification and naming
- Event dispatch and template data storage
"""

from karla_delivery.webhook.dispatcher import (
    BusinessEventDefinition,
    EventDispatcher,
    InProcessDispatcher,
    KarlaDataStorer,
    collect_business_events,
)
from karla_delivery.webhook.events import (
    EVENT_GROUPS,
    EVENT_NAMES,
    EventCapabilities,
    MissingEventGroupError,
    MissingRequiredFieldError,
    PayloadInvalidError,
    WebhookEvent,
    event_name_for,
)
from karla_delivery.webhook.verifier import (
    ParsedSignature,
    RejectionReason,
    VerifyResult,
    WebhookVerifier,
    verify,
)

__all__ = [
    # Exceptions
    "MissingEventGroupError",
    "MissingRequiredFieldError",
    "PayloadInvalidError",
    # Components
    "InProcessDispatcher",
    "KarlaDataStorer",
    "WebhookVerifier",
    # Functions
    "collect_business_events",
    "event_name_for",
    "verify",
    # Models
    "BusinessEventDefinition",
    "EVENT_GROUPS",
    "EVENT_NAMES",
    "EventCapabilities",
    "EventDispatcher",
    "ParsedSignature",
    "RejectionReason",
    "VerifyResult",
    "WebhookEvent",
]
