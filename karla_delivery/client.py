"""Async HTTP client for the Karla API.

All calls use HTTP Basic auth (username/API key) and the configured request
timeout. Transport failures and HTTP error statuses surface as
:class:`SinkUnavailableError`; callers decide whether to swallow them.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from karla_delivery.config import KarlaConfig

logger = logging.getLogger(__name__)


class KarlaApiError(Exception):
    """Base class for Karla API failures."""


class ConfigurationMissingError(KarlaApiError):
    """Raised when a required credential, URL, or slug is not configured."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing required config: {', '.join(missing)}")


class SinkUnavailableError(KarlaApiError):
    """Raised on transport failure or an error status from the Karla API."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class KarlaClient:
    """Thin wrapper around ``httpx.AsyncClient`` for Karla endpoints."""

    def __init__(self, config: KarlaConfig, component: str = "product.api") -> None:
        self._config = config
        self._component = component

    @property
    def base_url(self) -> str:
        return self._config.api_url.rstrip("/")

    def shop_url(self, *segments: str) -> str:
        """``{base}/v1/shops/{slug}/...`` with every segment URL-encoded."""
        self.require("shop_slug", "api_url")
        parts = [quote(self._config.shop_slug, safe="")]
        parts.extend(quote(s, safe="") for s in segments)
        return f"{self.base_url}/v1/shops/{'/'.join(parts)}"

    def require(self, *fields: str) -> None:
        missing = [name for name in fields if not getattr(self._config, name)]
        if missing:
            raise ConfigurationMissingError(missing)

    async def send(
        self,
        method: str,
        url: str,
        payload: dict[str, Any] | list[dict[str, Any]] | None = None,
    ) -> httpx.Response:
        self.require("api_username", "api_key")
        auth = httpx.BasicAuth(self._config.api_username, self._config.api_key)
        body = payload if method in ("POST", "PUT") else None

        if self._config.debug_mode:
            logger.debug(
                "Preparing API request to Karla",
                extra={
                    "component": self._component,
                    "method": method,
                    "url": url,
                    "payload": body,
                },
            )

        try:
            async with httpx.AsyncClient() as client:
                resp = await client.request(
                    method,
                    url,
                    json=body,
                    auth=auth,
                    timeout=self._config.request_timeout,
                )
        except httpx.HTTPError as exc:
            logger.error(
                "Failed to send request to Karla API",
                extra={
                    "component": self._component,
                    "method": method,
                    "url": url,
                    "error": str(exc),
                    "error_class": type(exc).__name__,
                },
            )
            raise SinkUnavailableError(f"{method} {url} failed: {exc}") from exc

        if self._config.debug_mode:
            logger.debug(
                "API request to Karla completed",
                extra={
                    "component": self._component,
                    "method": method,
                    "url": url,
                    "status_code": resp.status_code,
                    "response": resp.text,
                },
            )

        if resp.status_code >= 400:
            logger.error(
                "Karla API returned error status",
                extra={
                    "component": self._component,
                    "method": method,
                    "url": url,
                    "status_code": resp.status_code,
                    "response_body": resp.text,
                },
            )
            raise SinkUnavailableError(
                f"Karla API returned {resp.status_code}", status_code=resp.status_code,
            )
        return resp
