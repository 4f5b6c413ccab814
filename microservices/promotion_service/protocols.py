"""
Promotion Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from .models import (
    Campaign,
    CampaignListQuery,
    CampaignStatus,
    Category,
    Product,
    ProductIndexEntry,
    Variant,
)


# ====================
# Repository Protocol
# ====================


class CampaignRepositoryProtocol(Protocol):
    """Protocol for campaign and campaign-product link persistence"""

    async def initialize(self) -> None:
        """Initialize repository connection"""
        ...

    async def close(self) -> None:
        """Close repository connection"""
        ...

    async def health_check(self) -> bool:
        """Check repository health"""
        ...

    async def save_campaign(self, campaign: Campaign, product_ids: List[str]) -> Campaign:
        """Insert a campaign together with its product links"""
        ...

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        """Get campaign by ID with product_ids populated"""
        ...

    async def list_campaigns(self, query: CampaignListQuery) -> tuple:
        """List campaigns, returns (campaigns, total)"""
        ...

    async def update_campaign(
        self,
        campaign_id: str,
        updates: Dict[str, Any],
        product_ids: Optional[List[str]] = None,
        changed_at: Optional[datetime] = None,
        expected_status: Optional[CampaignStatus] = None,
    ) -> Optional[Campaign]:
        """Update fields and optionally replace the product links"""
        ...

    async def delete_campaign(self, campaign_id: str) -> bool:
        """Delete campaign and its product links"""
        ...

    async def get_product_ids(self, campaign_id: str) -> List[str]:
        """Get the product ids linked to a campaign"""
        ...

    async def find_campaigns_touching_products(
        self,
        product_ids: List[str],
        active: Optional[bool] = None,
        status: Optional[CampaignStatus] = None,
        exclude_campaign_id: Optional[str] = None,
    ) -> List[Campaign]:
        """Campaigns linked to any of the given products"""
        ...

    async def set_active(
        self, campaign_id: str, active: bool, changed_at: Optional[datetime] = None
    ) -> Optional[Campaign]:
        """Set the active flag"""
        ...

    async def set_status(
        self,
        campaign_id: str,
        status: CampaignStatus,
        expected_status: Optional[CampaignStatus] = None,
        changed_at: Optional[datetime] = None,
    ) -> bool:
        """Set status, only when the current status matches expected_status if given"""
        ...

    async def list_due_campaigns(self, now: datetime) -> List[Campaign]:
        """Active campaigns whose window includes now"""
        ...

    async def list_expired_campaigns(self, now: datetime) -> List[Campaign]:
        """Active campaigns whose end date is before now"""
        ...


# ====================
# Catalog Protocols
# ====================


class ProductStoreProtocol(Protocol):
    """Read access to products and their variants"""

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        ...

    async def get_by_ids(self, product_ids: Iterable[str]) -> List[Product]:
        ...

    async def get_by_category(self, category_ids: Iterable[str]) -> List[Product]:
        ...

    async def list_all(self) -> List[Product]:
        ...


class CategoryStoreProtocol(Protocol):
    """Read access to the category forest"""

    async def get_all(self) -> List[Category]:
        ...

    async def get_children(self, category_id: str) -> List[Category]:
        ...


class VariantStoreProtocol(Protocol):
    """Persistence for variant pricing fields"""

    async def bulk_save(self, variants: List[Variant]) -> None:
        ...


# ====================
# Index Protocol
# ====================


@runtime_checkable
class CacheIndexProtocol(Protocol):
    """
    Interface for the denormalized product index.

    Implementations:
    - RedisCacheIndex (production)
    - MockCacheIndex (testing)
    """

    async def upsert(self, entry: ProductIndexEntry) -> None:
        """Create or overwrite an entry"""
        ...

    async def remove(self, product_id: str) -> None:
        """Delete an entry"""
        ...

    async def rebuild_all(self, entries: List[ProductIndexEntry]) -> int:
        """Replace the whole index, returns the number of entries written"""
        ...


# ====================
# Infrastructure Protocols
# ====================


class ClockProtocol(Protocol):
    """Source of the current time"""

    def now(self) -> datetime:
        ...


class EventBusProtocol(Protocol):
    """Protocol for event bus operations"""

    async def publish_event(self, event: Dict[str, Any]) -> bool:
        """Publish an event to the event bus"""
        ...


# ====================
# Custom Exceptions
# ====================


class PromotionServiceError(Exception):
    """Base exception for promotion service errors"""
    pass


class PromotionValidationError(PromotionServiceError):
    """Raised when campaign input is invalid"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class PromotionNotFoundError(PromotionServiceError):
    """Raised when a campaign, category or product does not exist"""

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        resource_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.resource = resource
        self.resource_id = resource_id


class PromotionConflictError(PromotionServiceError):
    """Raised when a campaign is in an invalid state for the operation"""

    def __init__(self, message: str, current_status: Optional[CampaignStatus] = None):
        super().__init__(message)
        self.current_status = current_status


class PromotionConsistencyWarning(PromotionServiceError):
    """
    Index refresh failed after the authoritative write succeeded.

    Logged and recorded, never raised to engine callers. Recover with a
    full reindex.
    """

    def __init__(self, product_id: Optional[str], operation: str, cause: Exception):
        target = product_id or "<all>"
        super().__init__(f"Index {operation} failed for {target}: {cause}")
        self.product_id = product_id
        self.operation = operation
        self.cause = cause


__all__ = [
    "CampaignRepositoryProtocol",
    "ProductStoreProtocol",
    "CategoryStoreProtocol",
    "VariantStoreProtocol",
    "CacheIndexProtocol",
    "ClockProtocol",
    "EventBusProtocol",
    "PromotionServiceError",
    "PromotionValidationError",
    "PromotionNotFoundError",
    "PromotionConflictError",
    "PromotionConsistencyWarning",
]
