"""Catalog data sources for product sync.

The sync engine only needs three queries: a page of active top-level items
(standalone products and grouping parents, never variants) with the total
count, the active variants of a set of parents, and items by id.
:class:`SQLiteCatalogSource` implements them over a local SQLite mirror of
the shop catalog.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, Protocol

from karla_delivery.models import CatalogItem, CatalogPage, ProductTranslation


class CatalogSource(Protocol):
    def search_active(self, offset: int, limit: int) -> CatalogPage: ...

    def find_active_variants(self, parent_ids: Sequence[str]) -> list[CatalogItem]: ...

    def get_items(self, ids: Sequence[str]) -> list[CatalogItem]: ...


SCHEMA_SQL = """
-- Products table: standalone products, grouping parents and variants
CREATE TABLE IF NOT EXISTS products (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    parent_id TEXT,
    active INTEGER NOT NULL DEFAULT 1,
    name TEXT,
    sku TEXT,
    price REAL,
    cover_image_url TEXT
);

CREATE INDEX IF NOT EXISTS idx_products_parent ON products(parent_id);

-- Translations table: one row per product and language
CREATE TABLE IF NOT EXISTS product_translations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id TEXT NOT NULL,
    name TEXT,
    locale_code TEXT,
    FOREIGN KEY (product_id) REFERENCES products(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_translations_product ON product_translations(product_id);
"""

# child_count is derived so it always matches the stored variants
_SELECT_ITEMS = """
SELECT p.id, p.parent_id, p.active, p.name, p.sku, p.price, p.cover_image_url,
       (SELECT COUNT(*) FROM products c WHERE c.parent_id = p.id) AS child_count
FROM products p
"""


class SQLiteCatalogSource:
    """SQLite-backed catalog.

    Pages are ordered by insertion sequence, so items appended during a
    sync walk land after the cursor instead of shifting earlier pages.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._initialize()

    def _initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise sqlite3.ProgrammingError("Database connection is closed")
        return self._conn

    # --- writes ---

    def upsert(self, item: CatalogItem) -> None:
        """Insert or replace an item and its translations."""
        self.conn.execute(
            """INSERT INTO products (id, parent_id, active, name, sku, price, cover_image_url)
               VALUES (?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   parent_id = excluded.parent_id,
                   active = excluded.active,
                   name = excluded.name,
                   sku = excluded.sku,
                   price = excluded.price,
                   cover_image_url = excluded.cover_image_url""",
            (
                item.id,
                item.parent_id,
                int(item.active),
                item.name,
                item.sku,
                item.price,
                item.cover_image_url,
            ),
        )
        self.conn.execute(
            "DELETE FROM product_translations WHERE product_id = ?", (item.id,),
        )
        self.conn.executemany(
            "INSERT INTO product_translations (product_id, name, locale_code) VALUES (?, ?, ?)",
            [(item.id, t.name, t.locale_code) for t in item.translations],
        )
        self.conn.commit()

    def upsert_many(self, items: Iterable[CatalogItem]) -> None:
        for item in items:
            self.upsert(item)

    def delete(self, item_id: str) -> None:
        self.conn.execute("DELETE FROM products WHERE id = ?", (item_id,))
        self.conn.commit()

    # --- queries ---

    def search_active(self, offset: int, limit: int) -> CatalogPage:
        total = self.conn.execute(
            "SELECT COUNT(*) FROM products WHERE active = 1 AND parent_id IS NULL",
        ).fetchone()[0]
        rows = self.conn.execute(
            f"{_SELECT_ITEMS} WHERE p.active = 1 AND p.parent_id IS NULL "
            "ORDER BY p.seq LIMIT ? OFFSET ?",
            (limit, offset),
        ).fetchall()
        return CatalogPage(items=self._hydrate(rows), total=total)

    def find_active_variants(self, parent_ids: Sequence[str]) -> list[CatalogItem]:
        if not parent_ids:
            return []
        placeholders = ",".join("?" for _ in parent_ids)
        rows = self.conn.execute(
            f"{_SELECT_ITEMS} WHERE p.parent_id IN ({placeholders}) AND p.active = 1 "
            "ORDER BY p.seq",
            tuple(parent_ids),
        ).fetchall()
        return self._hydrate(rows)

    def get_items(self, ids: Sequence[str]) -> list[CatalogItem]:
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        rows = self.conn.execute(
            f"{_SELECT_ITEMS} WHERE p.id IN ({placeholders}) ORDER BY p.seq",
            tuple(ids),
        ).fetchall()
        return self._hydrate(rows)

    def _hydrate(self, rows: list[sqlite3.Row]) -> list[CatalogItem]:
        ids = [row["id"] for row in rows]
        translations = self._translations_for(ids)
        return [
            CatalogItem(
                id=row["id"],
                parent_id=row["parent_id"],
                child_count=row["child_count"],
                active=bool(row["active"]),
                name=row["name"],
                sku=row["sku"],
                price=row["price"],
                cover_image_url=row["cover_image_url"],
                translations=translations.get(row["id"], []),
            )
            for row in rows
        ]

    def _translations_for(self, ids: list[str]) -> dict[str, list[ProductTranslation]]:
        if not ids:
            return {}
        placeholders = ",".join("?" for _ in ids)
        rows = self.conn.execute(
            "SELECT product_id, name, locale_code FROM product_translations "
            f"WHERE product_id IN ({placeholders}) ORDER BY id",
            tuple(ids),
        ).fetchall()
        result: dict[str, list[ProductTranslation]] = {}
        for row in rows:
            result.setdefault(row["product_id"], []).append(
                ProductTranslation(name=row["name"], locale_code=row["locale_code"]),
            )
        return result

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> SQLiteCatalogSource:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()


def item_from_row(row: dict[str, Any]) -> CatalogItem:
    """Build a CatalogItem from a loosely-typed JSON record (CLI imports)."""
    translations = [
        ProductTranslation(name=t.get("name"), locale_code=t.get("locale_code"))
        for t in row.get("translations", [])
    ]
    return CatalogItem(
        id=str(row["id"]),
        parent_id=row.get("parent_id"),
        child_count=int(row.get("child_count", 0)),
        active=bool(row.get("active", True)),
        name=row.get("name"),
        sku=row.get("sku"),
        price=row.get("price"),
        cover_image_url=row.get("cover_image_url"),
        translations=translations,
    )
