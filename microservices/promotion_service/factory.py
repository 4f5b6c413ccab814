"""
Promotion Service Factory

Factory for creating promotion service instances with proper dependency injection.
"""

import logging
from typing import Any, Optional

from core.config import PlatformConfig, get_settings

from .campaign_repository import CampaignRepository
from .cache_index import RedisCacheIndex
from .catalog_repository import (
    PostgresCategoryStore,
    PostgresProductStore,
    PostgresVariantStore,
)
from .category_tree import CategoryTree
from .clock import SystemClock
from .events.publishers import PromotionEventPublisher
from .index_sync import IndexSync
from .pricing import PricingMutator
from .promotion_engine import PromotionEngine
from .scheduler import PromotionScheduler

logger = logging.getLogger(__name__)


class PromotionServiceFactory:
    """Factory for creating promotion service components"""

    def __init__(
        self,
        config: Optional[PlatformConfig] = None,
        event_bus: Optional[Any] = None,
        start_scheduler: bool = True,
    ):
        self.config = config or get_settings()
        self.event_bus = event_bus
        self.start_scheduler = start_scheduler
        self._repository: Optional[CampaignRepository] = None
        self._cache_index: Optional[RedisCacheIndex] = None
        self._category_tree: Optional[CategoryTree] = None
        self._index_sync: Optional[IndexSync] = None
        self._engine: Optional[PromotionEngine] = None
        self._scheduler: Optional[PromotionScheduler] = None

    async def initialize(self) -> None:
        """Initialize all components"""
        logger.info("Initializing Promotion Service components...")
        infra = self.config.infrastructure
        promotion = self.config.promotion

        # Initialize repository (owns the asyncpg pool)
        self._repository = CampaignRepository(
            dsn=infra.postgres_dsn,
            schema=promotion.db_schema,
            min_size=infra.postgres_pool_min,
            max_size=infra.postgres_pool_max,
        )
        await self._repository.initialize()

        # Catalog stores share the pool
        pool = self._repository.pool
        product_store = PostgresProductStore(pool, schema=promotion.catalog_schema)
        category_store = PostgresCategoryStore(pool, schema=promotion.catalog_schema)
        variant_store = PostgresVariantStore(pool, schema=promotion.catalog_schema)

        # Initialize product index
        self._cache_index = RedisCacheIndex.from_url(infra.redis_dsn, prefix=promotion.index_prefix)
        if not await self._cache_index.health_check():
            logger.warning("Redis product index unreachable, index writes will be retried by reindex")

        clock = SystemClock()
        self._category_tree = CategoryTree(
            category_store, ttl_seconds=promotion.category_cache_ttl_seconds
        )
        self._index_sync = IndexSync(product_store, self._cache_index, clock=clock)

        # Initialize engine
        self._engine = PromotionEngine(
            repository=self._repository,
            product_store=product_store,
            variant_store=variant_store,
            category_tree=self._category_tree,
            index_sync=self._index_sync,
            pricing=PricingMutator(default_note=promotion.default_sale_note),
            clock=clock,
            event_publisher=PromotionEventPublisher(self.event_bus),
            default_page_size=promotion.default_page_size,
            max_page_size=promotion.max_page_size,
        )

        # Initialize scheduler
        self._scheduler = PromotionScheduler(
            engine=self._engine,
            repository=self._repository,
            interval_seconds=promotion.scheduler_interval_seconds,
            clock=clock,
            run_on_start=promotion.run_on_start,
        )
        if self.start_scheduler and promotion.scheduler_enabled:
            self._scheduler.start()

        logger.info("Promotion Service components initialized")

    async def close(self) -> None:
        """Close all components"""
        logger.info("Closing Promotion Service components...")

        if self._scheduler:
            await self._scheduler.stop()

        if self._cache_index:
            await self._cache_index.close()

        if self._repository:
            await self._repository.close()

        logger.info("Promotion Service components closed")

    @property
    def repository(self) -> CampaignRepository:
        """Get campaign repository"""
        if not self._repository:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._repository

    @property
    def engine(self) -> PromotionEngine:
        """Get promotion engine"""
        if not self._engine:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._engine

    @property
    def scheduler(self) -> PromotionScheduler:
        """Get promotion scheduler"""
        if not self._scheduler:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._scheduler

    @property
    def index_sync(self) -> IndexSync:
        """Get product index sync"""
        if not self._index_sync:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._index_sync

    @property
    def category_tree(self) -> CategoryTree:
        """Get category tree"""
        if not self._category_tree:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._category_tree


# Global factory instance
_factory: Optional[PromotionServiceFactory] = None


async def get_factory() -> PromotionServiceFactory:
    """Get or create factory instance"""
    global _factory
    if _factory is None:
        _factory = PromotionServiceFactory()
        await _factory.initialize()
    return _factory


async def close_factory() -> None:
    """Close factory instance"""
    global _factory
    if _factory:
        await _factory.close()
        _factory = None


__all__ = [
    "PromotionServiceFactory",
    "get_factory",
    "close_factory",
]
