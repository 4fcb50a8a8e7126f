"""Variant payload construction for the Karla product API.

Every function here is total: any catalog item, with or without a resolved
parent, yields a payload.
"""

from __future__ import annotations

from typing import Any

from karla_delivery.models import CatalogItem, ProductTranslation

UNKNOWN_PRODUCT = "Unknown Product"
IDENTITY_FIELDS = ("product_id", "variant_id")


def display_name(item: CatalogItem) -> str:
    """name, then SKU, then ``Unknown Product``."""
    return item.name or item.sku or UNKNOWN_PRODUCT


def language_code(translation: ProductTranslation) -> str | None:
    """First two characters of the locale code (``de-DE`` -> ``de``)."""
    locale_code = translation.locale_code
    if not locale_code or len(locale_code) < 2:
        return None
    return locale_code[:2]


def build_translations(item: CatalogItem) -> dict[str, dict[str, str]]:
    translations: dict[str, dict[str, str]] = {}
    for translation in item.translations:
        code = language_code(translation)
        if code is None:
            continue
        if translation.name:
            translations[code] = {"title": translation.name}
    return translations


def build_variant_payload(
    item: CatalogItem,
    parent: CatalogItem | None = None,
) -> dict[str, Any]:
    """Build one variant payload.

    Variants carry the parent's identity as ``product_id`` and their own as
    ``variant_id``; standalone products use their own id for both.
    """
    is_variant = item.parent_id is not None
    if parent is not None and parent.id != item.parent_id:
        parent = None

    own_name = display_name(item)
    parent_name = display_name(parent) if parent is not None else None

    price = item.price
    if price is None and parent is not None:
        price = parent.price

    payload: dict[str, Any] = {
        "product_id": item.parent_id or item.id,
        "variant_id": item.id,
        "title": parent_name if is_variant else own_name,
        "variant_title": own_name if is_variant else None,
        "price": price,
        "sku": item.sku,
        "product_url": None,
    }

    image_url = item.cover_image_url
    if not image_url and parent is not None:
        image_url = parent.cover_image_url
    if image_url:
        payload["image_url"] = image_url

    translations = build_translations(item)
    if translations:
        payload["translations"] = translations

    return payload


def strip_identity(payload: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``payload`` without the ids that travel in the URL."""
    return {k: v for k, v in payload.items() if k not in IDENTITY_FIELDS}
