"""
Catalog Data Access

Data access layer - PostgreSQL (asyncpg)

Read access to the catalog's products, variants and categories and the
single write the promotion engine makes to it: variant sale pricing.
The catalog schema is owned by the product service; nothing here creates
or migrates it.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

import asyncpg

from .models import Category, Product, Variant

logger = logging.getLogger(__name__)


class _CatalogTables:
    """Shared pool and table naming"""

    def __init__(self, pool: asyncpg.Pool, schema: str = "catalog"):
        self.pool = pool
        self.schema = schema
        self.products_table = "products"
        self.variants_table = "variants"
        self.categories_table = "categories"

    def _row_to_variant(self, row: Any) -> Variant:
        data = dict(row)
        return Variant(
            variant_id=data["variant_id"],
            product_id=data["product_id"],
            base_price=Decimal(str(data.get("price") or 0)),
            discount_price=Decimal(str(data.get("discount_price") or 0)),
            discount_percent=Decimal(str(data.get("discount_percent") or 0)),
            on_sales=bool(data.get("on_sales")),
            sale_note=data.get("sale_note") or "",
        )


class PostgresProductStore(_CatalogTables):
    """ProductStore over catalog.products / catalog.variants"""

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        products = await self.get_by_ids([product_id])
        return products[0] if products else None

    async def get_by_ids(self, product_ids: Iterable[str]) -> List[Product]:
        ids = list(product_ids)
        if not ids:
            return []
        return await self._load_products(
            f'''
                SELECT product_id, name, category_id FROM {self.schema}.{self.products_table}
                WHERE product_id = ANY($1::text[])
                ORDER BY product_id
            ''',
            [ids],
        )

    async def get_by_category(self, category_ids: Iterable[str]) -> List[Product]:
        ids = list(category_ids)
        if not ids:
            return []
        return await self._load_products(
            f'''
                SELECT product_id, name, category_id FROM {self.schema}.{self.products_table}
                WHERE category_id = ANY($1::text[])
                ORDER BY product_id
            ''',
            [ids],
        )

    async def list_all(self) -> List[Product]:
        return await self._load_products(
            f'''
                SELECT product_id, name, category_id FROM {self.schema}.{self.products_table}
                ORDER BY product_id
            ''',
            [],
        )

    async def _load_products(self, query: str, params: List[Any]) -> List[Product]:
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(query, *params)
                if not rows:
                    return []
                variant_rows = await conn.fetch(
                    f'''
                        SELECT * FROM {self.schema}.{self.variants_table}
                        WHERE product_id = ANY($1::text[])
                        ORDER BY product_id, variant_id
                    ''',
                    [r["product_id"] for r in rows],
                )

            variants: Dict[str, List[Variant]] = {}
            for row in variant_rows:
                variants.setdefault(row["product_id"], []).append(self._row_to_variant(row))

            return [
                Product(
                    product_id=row["product_id"],
                    name=row["name"] or "",
                    category_id=row["category_id"],
                    variants=variants.get(row["product_id"], []),
                )
                for row in rows
            ]

        except Exception as e:
            logger.error(f"Error loading products: {e}")
            raise


class PostgresCategoryStore(_CatalogTables):
    """CategoryStore over catalog.categories"""

    async def get_all(self) -> List[Category]:
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f'''
                        SELECT category_id, parent_id, name FROM {self.schema}.{self.categories_table}
                        ORDER BY category_id
                    '''
                )
            return [Category(**dict(row)) for row in rows]

        except Exception as e:
            logger.error(f"Error loading categories: {e}")
            raise

    async def get_children(self, category_id: str) -> List[Category]:
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f'''
                        SELECT category_id, parent_id, name FROM {self.schema}.{self.categories_table}
                        WHERE parent_id = $1
                        ORDER BY category_id
                    ''',
                    category_id,
                )
            return [Category(**dict(row)) for row in rows]

        except Exception as e:
            logger.error(f"Error loading children of category {category_id}: {e}")
            raise


class PostgresVariantStore(_CatalogTables):
    """VariantStore: writes only the sale pricing columns"""

    async def bulk_save(self, variants: List[Variant]) -> None:
        if not variants:
            return
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(
                        f'''
                            UPDATE {self.schema}.{self.variants_table}
                            SET discount_price = $2,
                                discount_percent = $3,
                                on_sales = $4,
                                sale_note = $5
                            WHERE variant_id = $1
                        ''',
                        [
                            (v.variant_id, v.discount_price, v.discount_percent, v.on_sales, v.sale_note)
                            for v in variants
                        ],
                    )
            logger.debug(f"Saved pricing for {len(variants)} variants")

        except Exception as e:
            logger.error(f"Error saving variant pricing: {e}")
            raise


__all__ = ["PostgresProductStore", "PostgresCategoryStore", "PostgresVariantStore"]
