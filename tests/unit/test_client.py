"""Tests for the Karla HTTP client."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from karla_delivery.client import (
    ConfigurationMissingError,
    KarlaClient,
    SinkUnavailableError,
)
from tests.conftest import make_config, mock_http_client


class TestUrls:
    def test_shop_url_encodes_segments(self) -> None:
        client = KarlaClient(make_config(shop_slug="my shop", api_url="https://k.test/"))
        assert client.shop_url("products", "a/b") == "https://k.test/v1/shops/my%20shop/products/a%2Fb"

    def test_shop_url_requires_slug(self) -> None:
        client = KarlaClient(make_config(shop_slug=""))
        with pytest.raises(ConfigurationMissingError) as exc_info:
            client.shop_url("products")
        assert exc_info.value.missing == ["shop_slug"]


class TestSend:
    @pytest.mark.asyncio
    async def test_post_uses_basic_auth_json_and_timeout(self) -> None:
        mock_client = mock_http_client()
        client = KarlaClient(make_config(request_timeout=5.0))

        with patch("karla_delivery.client.httpx.AsyncClient", return_value=mock_client):
            await client.send("POST", "https://k.test/x", [{"a": 1}])

        args, kwargs = mock_client.request.call_args
        assert args == ("POST", "https://k.test/x")
        assert kwargs["json"] == [{"a": 1}]
        assert kwargs["timeout"] == 5.0
        assert isinstance(kwargs["auth"], httpx.BasicAuth)

    @pytest.mark.asyncio
    async def test_delete_sends_no_body(self) -> None:
        mock_client = mock_http_client(status_code=204)
        client = KarlaClient(make_config())

        with patch("karla_delivery.client.httpx.AsyncClient", return_value=mock_client):
            await client.send("DELETE", "https://k.test/x", {"ignored": True})

        assert mock_client.request.call_args.kwargs["json"] is None

    @pytest.mark.asyncio
    async def test_error_status_raises(self) -> None:
        mock_client = mock_http_client(status_code=503, text="unavailable")
        client = KarlaClient(make_config())

        with patch("karla_delivery.client.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(SinkUnavailableError) as exc_info:
                await client.send("PUT", "https://k.test/x", {})

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_transport_error_raises(self) -> None:
        mock_client = mock_http_client()
        mock_client.request.side_effect = httpx.ConnectError("refused")
        client = KarlaClient(make_config(debug_mode=True))

        with patch("karla_delivery.client.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(SinkUnavailableError) as exc_info:
                await client.send("POST", "https://k.test/x", [])

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_missing_credentials_raise_before_request(self) -> None:
        client = KarlaClient(make_config(api_username="", api_key=""))
        with patch("karla_delivery.client.httpx.AsyncClient") as mock_cls:
            with pytest.raises(ConfigurationMissingError) as exc_info:
                await client.send("POST", "https://k.test/x", [])
        mock_cls.assert_not_called()
        assert exc_info.value.missing == ["api_username", "api_key"]
