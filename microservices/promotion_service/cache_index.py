"""
Redis Product Index

Denormalized product index stored as one Redis hash per product under
``<prefix><product_id>``. Variants are kept as a JSON string field; the
price bounds are plain numeric fields so a search module can sort on them.
"""

import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import redis.asyncio as aioredis

from .models import ProductIndexEntry, Variant

logger = logging.getLogger(__name__)


def entry_to_hash(entry: ProductIndexEntry) -> Dict[str, str]:
    """Serialize an entry into flat string fields"""
    return {
        "id": entry.product_id,
        "name": entry.name,
        "categoryId": entry.category_id or "",
        "minPrice": str(entry.min_price),
        "maxPrice": str(entry.max_price),
        "onSales": "1" if entry.on_sales else "0",
        "variants": json.dumps([v.model_dump(mode="json") for v in entry.variants]),
        "updatedAt": entry.updated_at.isoformat(),
    }


def hash_to_entry(data: Dict[str, Any]) -> ProductIndexEntry:
    """Inverse of entry_to_hash"""
    variants = [Variant(**v) for v in json.loads(data.get("variants") or "[]")]
    return ProductIndexEntry(
        product_id=data["id"],
        name=data.get("name", ""),
        category_id=data.get("categoryId") or None,
        min_price=Decimal(data.get("minPrice") or "0"),
        max_price=Decimal(data.get("maxPrice") or "0"),
        on_sales=data.get("onSales") == "1",
        variants=variants,
        updated_at=datetime.fromisoformat(data["updatedAt"]),
    )


class RedisCacheIndex:
    """CacheIndex backed by redis-py's asyncio client"""

    def __init__(self, client: Any, prefix: str = "product:"):
        # decode_responses=True is expected so hash values come back as str
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "product:") -> "RedisCacheIndex":
        client = aioredis.from_url(url, decode_responses=True)
        logger.info(f"Redis product index initialized with prefix '{prefix}'")
        return cls(client, prefix=prefix)

    def _key(self, product_id: str) -> str:
        return f"{self.prefix}{product_id}"

    async def close(self) -> None:
        await self.client.aclose()

    async def health_check(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def get(self, product_id: str) -> Optional[ProductIndexEntry]:
        data = await self.client.hgetall(self._key(product_id))
        if not data:
            return None
        return hash_to_entry(data)

    async def upsert(self, entry: ProductIndexEntry) -> None:
        key = self._key(entry.product_id)
        # Replace, not merge, so fields from an older shape never linger
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.delete(key)
            pipe.hset(key, mapping=entry_to_hash(entry))
            await pipe.execute()

    async def remove(self, product_id: str) -> None:
        await self.client.delete(self._key(product_id))

    async def rebuild_all(self, entries: List[ProductIndexEntry]) -> int:
        stale_keys = [key async for key in self.client.scan_iter(match=f"{self.prefix}*")]
        if stale_keys:
            await self.client.delete(*stale_keys)
            logger.debug(f"Cleared {len(stale_keys)} index entries")

        if not entries:
            return 0

        async with self.client.pipeline(transaction=False) as pipe:
            for entry in entries:
                pipe.hset(self._key(entry.product_id), mapping=entry_to_hash(entry))
            await pipe.execute()
        return len(entries)


__all__ = ["RedisCacheIndex", "entry_to_hash", "hash_to_entry"]
