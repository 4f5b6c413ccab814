"""
Product Index Synchronization

Keeps the denormalized product index in step with the authoritative
product and variant data. The index is a derived view: failures are
logged as consistency warnings and never undo an authoritative write.
``reindex_all()`` is the recovery path.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .clock import SystemClock
from .models import Product, ProductIndexEntry
from .protocols import (
    CacheIndexProtocol,
    ClockProtocol,
    ProductStoreProtocol,
    PromotionConsistencyWarning,
)

logger = logging.getLogger(__name__)


def build_entry(product: Product, now: Optional[datetime] = None) -> ProductIndexEntry:
    """
    Flatten a product into its index entry.

    min/max price run over each variant's effective price (discount price
    while on sale, base price otherwise); non-positive prices are ignored
    and both bounds are 0 when nothing qualifies.
    """
    prices = [v.effective_price for v in product.variants if v.effective_price > 0]
    entry = ProductIndexEntry(
        product_id=product.product_id,
        name=product.name,
        category_id=product.category_id,
        min_price=min(prices) if prices else Decimal("0"),
        max_price=max(prices) if prices else Decimal("0"),
        on_sales=any(v.on_sales for v in product.variants),
        variants=list(product.variants),
    )
    if now is not None:
        entry.updated_at = now
    return entry


class IndexSync:
    """Only writer of ProductIndexEntry"""

    def __init__(
        self,
        product_store: ProductStoreProtocol,
        cache_index: CacheIndexProtocol,
        clock: Optional[ClockProtocol] = None,
    ):
        self.product_store = product_store
        self.cache_index = cache_index
        self.clock = clock or SystemClock()
        # product_id -> last failure, cleared when the product is indexed again
        self.stale_products: Dict[str, PromotionConsistencyWarning] = {}

    def _record_failure(
        self, product_id: str, operation: str, error: Exception
    ) -> PromotionConsistencyWarning:
        warning = PromotionConsistencyWarning(product_id, operation, error)
        self.stale_products[product_id] = warning
        logger.warning(f"{warning}; run reindex_all() to recover")
        return warning

    async def index_product(self, product_id: str) -> bool:
        """Recompute and upsert one product's entry. Returns False on failure"""
        try:
            product = await self.product_store.get_by_id(product_id)
            if product is None:
                # Product is gone from the catalog, drop the stale entry
                await self.cache_index.remove(product_id)
                logger.debug(f"Product {product_id} not found, removed from index")
            else:
                await self.cache_index.upsert(build_entry(product, self.clock.now()))
                logger.debug(f"Indexed product {product_id}")
        except Exception as e:
            self._record_failure(product_id, "upsert", e)
            return False

        self.stale_products.pop(product_id, None)
        return True

    async def index_products(self, product_ids: Iterable[str]) -> int:
        """Index several products, returns how many succeeded"""
        indexed = 0
        for product_id in product_ids:
            if await self.index_product(product_id):
                indexed += 1
        return indexed

    async def remove_product(self, product_id: str) -> bool:
        """Delete a product's entry. Returns False on failure"""
        try:
            await self.cache_index.remove(product_id)
        except Exception as e:
            self._record_failure(product_id, "remove", e)
            return False

        self.stale_products.pop(product_id, None)
        logger.debug(f"Removed product {product_id} from index")
        return True

    async def reindex_all(self) -> int:
        """
        Rebuild the whole index from the product store.

        Errors propagate: this is the explicit recovery call and a caller
        needs to know it did not complete.
        """
        products: List[Product] = await self.product_store.list_all()
        now = self.clock.now()
        entries = [build_entry(p, now) for p in products]

        written = await self.cache_index.rebuild_all(entries)
        self.stale_products.clear()
        logger.info(f"Product index rebuilt: {written} entries")
        return written


__all__ = ["IndexSync", "build_entry"]
