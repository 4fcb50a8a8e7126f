"""FastAPI application receiving Karla webhooks.

Security contract:
- every signature failure returns the same 401 body; the specific reason is
  only logged server side
- error bodies use fixed messages and never echo exception text
- the receiver-disabled check runs before any signature work
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from karla_delivery.audit.logger import AuditLogger
from karla_delivery.config import KarlaConfig
from karla_delivery.logging_context import configure_logging
from karla_delivery.models import AuditEvent, AuditEventType
from karla_delivery.webhook.dispatcher import EventDispatcher, InProcessDispatcher
from karla_delivery.webhook.events import (
    MissingEventGroupError,
    PayloadInvalidError,
    WebhookEvent,
    parse_payload,
)
from karla_delivery.webhook.verifier import SIGNATURE_HEADER, WebhookVerifier

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/webhooks/{webhook_id}"


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"status": "error", "message": message}, status_code=status_code)


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    config = KarlaConfig.from_env()
    configure_logging(config.debug_mode)
    return create_app(config, audit_logger=AuditLogger.from_env(config.audit_log_path))


def create_app(
    config: KarlaConfig,
    dispatcher: EventDispatcher | None = None,
    audit_logger: AuditLogger | None = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Create the webhook receiver app."""
    app = FastAPI(docs_url=None, redoc_url=None)
    event_dispatcher = dispatcher or InProcessDispatcher()
    verifier = WebhookVerifier(config.webhook_secret, config.signature_tolerance)
    app.state.dispatcher = event_dispatcher

    def _audit(event_type: AuditEventType, request: Request, result: str, **details: object) -> None:
        if audit_logger:
            audit_logger.log(AuditEvent(
                event_type=event_type,
                source_ip=request.client.host if request.client else None,
                action="webhook",
                result=result,
                details=details or None,
            ))

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(WEBHOOK_PATH)
    async def handle_webhook(request: Request, webhook_id: str) -> JSONResponse:
        debug = config.debug_mode
        signature = request.headers.get(SIGNATURE_HEADER)

        if debug:
            logger.debug(
                "Webhook request received",
                extra={
                    "component": "webhook.receiver",
                    "webhook_id": webhook_id,
                    "remote_ip": request.client.host if request.client else None,
                    "has_signature": signature is not None,
                },
            )

        if not config.webhook_enabled:
            logger.warning(
                "Webhook receiver is disabled", extra={"component": "webhook.receiver"},
            )
            return _error("Webhook receiver is disabled", 403)

        body = await request.body()
        result = verifier.verify_headers(request.headers, body, now=int(clock()))
        if not result.accepted:
            reason = result.reason.value if result.reason else "unknown"
            logger.warning(
                "Invalid webhook signature",
                extra={"component": "webhook.receiver", "reason": reason},
            )
            _audit(AuditEventType.WEBHOOK_REJECTED, request, "rejected", reason=reason)
            return _error("Invalid signature", 401)

        try:
            data = parse_payload(body)
        except PayloadInvalidError as exc:
            logger.error(
                "Invalid webhook payload",
                extra={"component": "webhook.receiver", "error": str(exc)},
            )
            return _error("Invalid payload", 400)

        try:
            event = WebhookEvent.from_payload(data)
        except MissingEventGroupError:
            logger.warning(
                "event_group missing from webhook payload",
                extra={"component": "webhook.receiver", "source": data.get("source")},
            )
            return _error("event_group is required", 400)

        try:
            event_name = event.event_name
            if debug:
                logger.debug(
                    "Dispatching webhook event",
                    extra={
                        "component": "webhook.receiver",
                        "event_name": event_name,
                        "event_group": event.event_group,
                    },
                )
            event_dispatcher.dispatch(event, event_name)
        except Exception:
            logger.exception(
                "Failed to process webhook",
                extra={"component": "webhook.receiver", "event_group": event.event_group},
            )
            return _error("Failed to process webhook", 500)

        capabilities = event.capabilities()
        logger.info(
            "Webhook trigger received",
            extra={
                "component": "webhook.metrics",
                "event_name": event_name,
                "event_group": event.event_group,
                "webhook_ref": event.ref,
                "webhook_source": event.source,
                "order_id": capabilities.order_id.value,
                "customer_id": capabilities.customer_id.value,
                "triggered_at": event.triggered_at,
                "event_data_keys": list(event.event_data),
            },
        )
        _audit(
            AuditEventType.WEBHOOK_RECEIVED,
            request,
            "success",
            event_name=event_name,
            webhook_ref=event.ref,
        )

        if debug:
            logger.debug(
                "Webhook event dispatched successfully",
                extra={
                    "component": "webhook.receiver",
                    "event_name": event_name,
                    "available_data": list(event.get_values()),
                    "mail_recipients": list(capabilities.mail_recipients),
                },
            )

        return JSONResponse({"status": "success"}, status_code=200)

    return app
