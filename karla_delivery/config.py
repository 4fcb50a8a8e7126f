"""Runtime configuration for karla-delivery."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BATCH_SIZE = 50
DEFAULT_COOLDOWN_SECONDS = 300
DEFAULT_SIGNATURE_TOLERANCE = 300

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(env: Mapping[str, str], key: str) -> bool:
    return env.get(key, "").strip().lower() in _TRUE_VALUES


def _env_list(env: Mapping[str, str], key: str, default: list[str]) -> list[str]:
    raw = env.get(key)
    if raw is None:
        return default
    return [part.strip() for part in raw.split(",") if part.strip()]


class KarlaConfig(BaseModel):
    """Read-only settings shared by the webhook receiver and the sync services."""

    model_config = ConfigDict(frozen=True)

    webhook_enabled: bool = False
    webhook_secret: str = ""
    api_url: str = ""
    api_username: str = ""
    api_key: str = ""
    shop_slug: str = ""
    request_timeout: float = Field(default=10.0, gt=0)
    debug_mode: bool = False
    product_sync_enabled: bool = False
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, gt=0)
    sync_cooldown_seconds: int = Field(default=DEFAULT_COOLDOWN_SECONDS, ge=0)
    signature_tolerance: int = Field(default=DEFAULT_SIGNATURE_TOLERANCE, ge=0)
    allowed_order_statuses: list[str] = Field(default_factory=lambda: ["open"])
    allowed_delivery_statuses: list[str] = Field(default_factory=lambda: ["shipped"])
    deposit_line_item_type: str = ""
    audit_log_path: str | None = None

    @property
    def api_configured(self) -> bool:
        return all((self.shop_slug, self.api_url, self.api_username, self.api_key))

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> KarlaConfig:
        """Build a config from ``KARLA_*`` environment variables."""
        env = os.environ if env is None else env
        return cls(
            webhook_enabled=_env_bool(env, "KARLA_WEBHOOK_ENABLED"),
            webhook_secret=env.get("KARLA_WEBHOOK_SECRET", ""),
            api_url=env.get("KARLA_API_URL", "").rstrip("/"),
            api_username=env.get("KARLA_API_USERNAME", ""),
            api_key=env.get("KARLA_API_KEY", ""),
            shop_slug=env.get("KARLA_SHOP_SLUG", ""),
            request_timeout=float(env.get("KARLA_REQUEST_TIMEOUT", "10.0")),
            debug_mode=_env_bool(env, "KARLA_DEBUG"),
            product_sync_enabled=_env_bool(env, "KARLA_PRODUCT_SYNC_ENABLED"),
            batch_size=int(env.get("KARLA_BATCH_SIZE", str(DEFAULT_BATCH_SIZE))),
            sync_cooldown_seconds=int(
                env.get("KARLA_SYNC_COOLDOWN", str(DEFAULT_COOLDOWN_SECONDS)),
            ),
            signature_tolerance=int(
                env.get("KARLA_SIGNATURE_TOLERANCE", str(DEFAULT_SIGNATURE_TOLERANCE)),
            ),
            allowed_order_statuses=_env_list(env, "KARLA_ORDER_STATUSES", ["open"]),
            allowed_delivery_statuses=_env_list(
                env, "KARLA_DELIVERY_STATUSES", ["shipped"],
            ),
            deposit_line_item_type=env.get("KARLA_DEPOSIT_LINE_ITEM_TYPE", ""),
            audit_log_path=env.get("KARLA_AUDIT_LOG") or None,
        )
