"""
Component Test Fixtures for Promotion Service

Provides in-memory implementations of the campaign repository, catalog
stores, product index and event bus, plus a fully wired PromotionEngine.
"""

import copy
import fnmatch
import pytest
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.promotion_service.campaign_repository import CampaignRepository
from microservices.promotion_service.category_tree import CategoryTree
from microservices.promotion_service.events.publishers import PromotionEventPublisher
from microservices.promotion_service.index_sync import IndexSync
from microservices.promotion_service.models import is_effective
from microservices.promotion_service.promotion_engine import PromotionEngine
from microservices.promotion_service.scheduler import PromotionScheduler
from tests.contracts.promotion.data_contract import (
    # Enums
    CampaignStatus,
    # Models
    Campaign,
    CampaignListQuery,
    Category,
    Product,
    ProductIndexEntry,
    Variant,
    # Helpers
    FixedClock,
    InMemoryCatalog,
    PromotionTestDataFactory,
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


# ====================
# Mock Repository
# ====================


class MockCampaignRepository:
    """In-memory campaign repository with the same query semantics as the SQL one"""

    def __init__(self):
        self.campaigns: Dict[str, Campaign] = {}
        self.links: Dict[str, Set[str]] = {}
        self.save_calls = 0

    async def initialize(self):
        pass

    async def close(self):
        pass

    async def health_check(self) -> bool:
        return True

    def _copy(self, campaign_id: str) -> Campaign:
        campaign = self.campaigns[campaign_id].model_copy(deep=True)
        campaign.product_ids = sorted(self.links.get(campaign_id, set()))
        return campaign

    # Campaign CRUD
    async def save_campaign(self, campaign: Campaign, product_ids: List[str]) -> Campaign:
        self.save_calls += 1
        self.campaigns[campaign.campaign_id] = campaign.model_copy(deep=True)
        self.links[campaign.campaign_id] = set(product_ids)
        return self._copy(campaign.campaign_id)

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        if campaign_id not in self.campaigns:
            return None
        return self._copy(campaign_id)

    async def list_campaigns(self, query: CampaignListQuery) -> tuple:
        results = [self._copy(cid) for cid in self.campaigns]

        if query.product_id:
            results = [c for c in results if query.product_id in c.product_ids]
        if query.category_id:
            results = [c for c in results if c.category_id == query.category_id]
        if query.active is not None:
            results = [c for c in results if c.active == query.active]

        # created_at DESC, campaign_id ASC
        results.sort(key=lambda c: c.campaign_id)
        results.sort(key=lambda c: c.created_at, reverse=True)

        total = len(results)
        return results[query.offset: query.offset + query.limit], total

    async def update_campaign(
        self,
        campaign_id: str,
        updates: Dict[str, Any],
        product_ids: Optional[List[str]] = None,
        changed_at: Optional[datetime] = None,
        expected_status: Optional[CampaignStatus] = None,
    ) -> Optional[Campaign]:
        campaign = self.campaigns.get(campaign_id)
        if not campaign:
            return None
        if expected_status is not None and campaign.status != expected_status:
            return None
        for field, value in updates.items():
            if field not in CampaignRepository.UPDATABLE_FIELDS:
                raise ValueError(f"Field cannot be updated: {field}")
            setattr(campaign, field, value)
        campaign.updated_at = changed_at or datetime.now(timezone.utc)
        if product_ids is not None:
            self.links[campaign_id] = set(product_ids)
        return self._copy(campaign_id)

    async def delete_campaign(self, campaign_id: str) -> bool:
        self.links.pop(campaign_id, None)
        return self.campaigns.pop(campaign_id, None) is not None

    # Scope queries
    async def get_product_ids(self, campaign_id: str) -> List[str]:
        return sorted(self.links.get(campaign_id, set()))

    async def find_campaigns_touching_products(
        self,
        product_ids: List[str],
        active: Optional[bool] = None,
        status: Optional[CampaignStatus] = None,
        exclude_campaign_id: Optional[str] = None,
    ) -> List[Campaign]:
        wanted = set(product_ids)
        results = []
        for campaign_id in self.campaigns:
            campaign = self._copy(campaign_id)
            if not wanted & set(campaign.product_ids):
                continue
            if active is not None and campaign.active != active:
                continue
            if status is not None and campaign.status != status:
                continue
            if exclude_campaign_id is not None and campaign_id == exclude_campaign_id:
                continue
            results.append(campaign)
        results.sort(key=lambda c: (c.created_at, c.campaign_id))
        return results

    # Lifecycle writes
    async def set_active(
        self, campaign_id: str, active: bool, changed_at: Optional[datetime] = None
    ) -> Optional[Campaign]:
        campaign = self.campaigns.get(campaign_id)
        if not campaign:
            return None
        changed_at = changed_at or datetime.now(timezone.utc)
        if campaign.active != active:
            if active:
                campaign.activated_at = changed_at
            else:
                campaign.deactivated_at = changed_at
            campaign.updated_at = changed_at
        campaign.active = active
        return self._copy(campaign_id)

    async def set_status(
        self,
        campaign_id: str,
        status: CampaignStatus,
        expected_status: Optional[CampaignStatus] = None,
        changed_at: Optional[datetime] = None,
    ) -> bool:
        campaign = self.campaigns.get(campaign_id)
        if not campaign:
            return False
        if expected_status is not None and campaign.status != expected_status:
            return False
        campaign.status = status
        campaign.updated_at = changed_at or datetime.now(timezone.utc)
        return True

    # Scheduler queries
    async def list_due_campaigns(self, now: datetime) -> List[Campaign]:
        results = [
            self._copy(cid) for cid, c in self.campaigns.items()
            if c.active
            and c.status == CampaignStatus.SUBMITTED
            and is_effective(c.start_date, c.end_date, now)
        ]
        # activated_at NULLS FIRST
        results.sort(key=lambda c: (
            c.activated_at is not None, c.activated_at or _EPOCH, c.created_at, c.campaign_id
        ))
        return results

    async def list_expired_campaigns(self, now: datetime) -> List[Campaign]:
        results = [
            self._copy(cid) for cid, c in self.campaigns.items()
            if c.active and c.end_date is not None and c.end_date < now
        ]
        results.sort(key=lambda c: (c.end_date, c.campaign_id))
        return results


# ====================
# Mock Catalog Stores
# ====================


class MockProductStore:
    """ProductStore over an InMemoryCatalog, returns copies"""

    def __init__(self, catalog: InMemoryCatalog):
        self.catalog = catalog
        self.fail_list_all = False

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        product = self.catalog.products.get(product_id)
        return product.model_copy(deep=True) if product else None

    async def get_by_ids(self, product_ids) -> List[Product]:
        ids = sorted(set(product_ids))
        return [
            self.catalog.products[pid].model_copy(deep=True)
            for pid in ids if pid in self.catalog.products
        ]

    async def get_by_category(self, category_ids) -> List[Product]:
        wanted = set(category_ids)
        return [
            p.model_copy(deep=True)
            for pid, p in sorted(self.catalog.products.items())
            if p.category_id in wanted
        ]

    async def list_all(self) -> List[Product]:
        if self.fail_list_all:
            raise RuntimeError("catalog unavailable")
        return [p.model_copy(deep=True) for _, p in sorted(self.catalog.products.items())]


class MockCategoryStore:
    """CategoryStore over an InMemoryCatalog, counting full loads"""

    def __init__(self, catalog: InMemoryCatalog):
        self.catalog = catalog
        self.get_all_calls = 0

    async def get_all(self) -> List[Category]:
        self.get_all_calls += 1
        return list(self.catalog.categories.values())

    async def get_children(self, category_id: str) -> List[Category]:
        return [c for c in self.catalog.categories.values() if c.parent_id == category_id]


class MockVariantStore:
    """VariantStore writing pricing fields back into the catalog"""

    def __init__(self, catalog: InMemoryCatalog):
        self.catalog = catalog
        self.saved: List[List[Variant]] = []

    async def bulk_save(self, variants: List[Variant]) -> None:
        self.saved.append([v.model_copy() for v in variants])
        by_id = {v.variant_id: v for v in variants}
        for product in self.catalog.products.values():
            product.variants = [
                by_id[v.variant_id].model_copy() if v.variant_id in by_id else v
                for v in product.variants
            ]


# ====================
# Mock Index / Event Bus
# ====================


class MockCacheIndex:
    """Dict backed product index with failure injection"""

    def __init__(self):
        self.entries: Dict[str, ProductIndexEntry] = {}
        self.fail_products: Set[str] = set()
        self.fail_all = False
        self.upsert_calls = 0

    def _check(self, product_id: Optional[str]):
        if self.fail_all or product_id in self.fail_products:
            raise ConnectionError("index unavailable")

    async def upsert(self, entry: ProductIndexEntry) -> None:
        self.upsert_calls += 1
        self._check(entry.product_id)
        self.entries[entry.product_id] = entry

    async def remove(self, product_id: str) -> None:
        self._check(product_id)
        self.entries.pop(product_id, None)

    async def rebuild_all(self, entries: List[ProductIndexEntry]) -> int:
        self._check(None)
        self.entries = {e.product_id: e for e in entries}
        return len(entries)


class MockEventBus:
    """Mock event bus recording published events"""

    def __init__(self):
        self.published_events: List[Dict[str, Any]] = []
        self.fail = False

    async def publish_event(self, event: Dict[str, Any]) -> bool:
        if self.fail:
            raise ConnectionError("event bus down")
        self.published_events.append(event)
        return True

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [e for e in self.published_events if e["event_type"] == event_type]


# ====================
# Fake Redis
# ====================


class FakePipeline:
    """Buffers commands until execute(), like redis-py's asyncio Pipeline"""

    def __init__(self, client: "FakeRedis", transaction: bool):
        self.client = client
        self.transaction = transaction
        self._commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._commands = []

    def delete(self, *keys):
        self._commands.append(("delete", keys, {}))
        return self

    def hset(self, key, mapping=None):
        self._commands.append(("hset", (key,), {"mapping": mapping}))
        return self

    async def execute(self):
        results = []
        for name, args, kwargs in self._commands:
            results.append(await getattr(self.client, name)(*args, **kwargs))
        self._commands = []
        self.client.executed_pipelines.append(self.transaction)
        return results


class FakeRedis:
    """Hash subset of redis.asyncio.Redis with decode_responses=True"""

    def __init__(self):
        self.hashes: Dict[str, Dict[str, str]] = {}
        self.executed_pipelines: List[bool] = []
        self.closed = False
        self.ping_ok = True

    async def hset(self, key, mapping=None):
        target = self.hashes.setdefault(key, {})
        added = len(set(mapping) - set(target))
        target.update({k: str(v) for k, v in mapping.items()})
        return added

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def delete(self, *keys):
        return sum(1 for k in keys if self.hashes.pop(k, None) is not None)

    async def scan_iter(self, match=None):
        for key in list(self.hashes):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    def pipeline(self, transaction=True):
        return FakePipeline(self, transaction)

    async def ping(self):
        if not self.ping_ok:
            raise ConnectionError("redis down")
        return True

    async def aclose(self):
        self.closed = True


# ====================
# Catalog Seed
# ====================


def seed_catalog(catalog: InMemoryCatalog) -> InMemoryCatalog:
    """
    electronics -> phones -> smartphones, electronics -> laptops, garden

    prd_phone_1 (smartphones): 100000
    prd_phone_2 (phones): 50000, 60000
    prd_laptop_1 (laptops): 200000
    prd_rake_1 (garden): 1500
    """
    catalog.add_category("electronics")
    catalog.add_category("phones", "electronics")
    catalog.add_category("smartphones", "phones")
    catalog.add_category("laptops", "electronics")
    catalog.add_category("garden")

    catalog.add_product("prd_phone_1", "smartphones", prices=("100000",))
    catalog.add_product("prd_phone_2", "phones", prices=("50000", "60000"))
    catalog.add_product("prd_laptop_1", "laptops", prices=("200000",))
    catalog.add_product("prd_rake_1", "garden", prices=("1500",))
    return catalog


# ====================
# Fixtures
# ====================


@pytest.fixture
def factory():
    """Provide PromotionTestDataFactory"""
    return PromotionTestDataFactory


@pytest.fixture
def clock():
    """Fixed clock at 2026-06-01 12:00 UTC"""
    return FixedClock()


@pytest.fixture
def catalog():
    """Seeded in-memory catalog"""
    return seed_catalog(InMemoryCatalog())


@pytest.fixture
def mock_repository():
    return MockCampaignRepository()


@pytest.fixture
def product_store(catalog):
    return MockProductStore(catalog)


@pytest.fixture
def category_store(catalog):
    return MockCategoryStore(catalog)


@pytest.fixture
def variant_store(catalog):
    return MockVariantStore(catalog)


@pytest.fixture
def cache_index():
    return MockCacheIndex()


@pytest.fixture
def mock_event_bus():
    return MockEventBus()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def category_tree(category_store):
    return CategoryTree(category_store, ttl_seconds=3600, time_source=lambda: 0.0)


@pytest.fixture
def index_sync(product_store, cache_index, clock):
    return IndexSync(product_store, cache_index, clock=clock)


@pytest.fixture
def engine(
    mock_repository, product_store, variant_store, category_tree, index_sync, clock, mock_event_bus
):
    """PromotionEngine wired to the in-memory dependencies"""
    return PromotionEngine(
        repository=mock_repository,
        product_store=product_store,
        variant_store=variant_store,
        category_tree=category_tree,
        index_sync=index_sync,
        clock=clock,
        event_publisher=PromotionEventPublisher(mock_event_bus),
    )


@pytest.fixture
def scheduler(engine, mock_repository, clock):
    return PromotionScheduler(engine, mock_repository, interval_seconds=0.01, clock=clock)
