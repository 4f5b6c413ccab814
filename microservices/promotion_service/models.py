"""
Promotion Service Data Models

Canonical data structures for discount campaigns, the catalog records
they mutate and the denormalized product index entry.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field, field_validator


# =============================================================================
# ENUMS
# =============================================================================

class DiscountType(str, Enum):
    """How a campaign value is interpreted"""
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class CampaignStatus(str, Enum):
    """Persisted campaign status"""
    DRAFT = "draft"
    SUBMITTED = "submitted"


class CampaignState(str, Enum):
    """Lifecycle state derived from status and the active flag"""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    ACTIVE = "active"
    INACTIVE = "inactive"


# =============================================================================
# HELPERS
# =============================================================================

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_effective(
    start_date: Optional[datetime],
    end_date: Optional[datetime],
    now: datetime,
) -> bool:
    """
    Check whether ``now`` falls inside an inclusive campaign window.

    A missing bound is unbounded on that side.
    """
    now = ensure_utc(now)
    start_date = ensure_utc(start_date)
    end_date = ensure_utc(end_date)
    if start_date is not None and start_date > now:
        return False
    if end_date is not None and end_date < now:
        return False
    return True


# =============================================================================
# BASE MODELS
# =============================================================================

class BaseContract(BaseModel):
    """Base model for all promotion models"""

    model_config = {
        "from_attributes": True,
    }


# =============================================================================
# CATALOG MODELS
# =============================================================================

class Category(BaseContract):
    """Catalog category, self referencing through parent_id"""
    category_id: str
    parent_id: Optional[str] = None
    name: str = ""


class Variant(BaseContract):
    """Sellable variant of a product with its sale pricing fields"""
    variant_id: str
    product_id: str
    base_price: Decimal = Field(..., ge=0)
    discount_price: Decimal = Field(default=Decimal("0"))
    discount_percent: Decimal = Field(default=Decimal("0"))
    on_sales: bool = False
    sale_note: str = ""

    @property
    def effective_price(self) -> Decimal:
        """Price a shopper pays right now"""
        return self.discount_price if self.on_sales else self.base_price


class Product(BaseContract):
    """Product with its variants"""
    product_id: str
    name: str = ""
    category_id: Optional[str] = None
    variants: List[Variant] = Field(default_factory=list)


class ProductIndexEntry(BaseContract):
    """Read optimized copy of a product's pricing"""
    product_id: str
    name: str = ""
    category_id: Optional[str] = None
    min_price: Decimal = Field(default=Decimal("0"))
    max_price: Decimal = Field(default=Decimal("0"))
    on_sales: bool = False
    variants: List[Variant] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# CAMPAIGN MODELS
# =============================================================================

class Campaign(BaseContract):
    """Core discount campaign model"""
    campaign_id: str = Field(default_factory=lambda: f"prm_{uuid4().hex[:16]}")
    name: Optional[str] = Field(None, max_length=255)
    note: Optional[str] = Field(None, max_length=500)

    # Discount
    discount_type: DiscountType
    value: Decimal = Field(..., ge=0)

    # Inclusive effective window, open ended when a bound is missing
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    # Lifecycle
    active: bool = False
    status: CampaignStatus = Field(default=CampaignStatus.DRAFT)
    activated_at: Optional[datetime] = None
    deactivated_at: Optional[datetime] = None

    # Scope
    category_id: Optional[str] = None
    product_ids: List[str] = Field(default_factory=list)

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("start_date", "end_date", "activated_at", "deactivated_at", "created_at", "updated_at")
    @classmethod
    def normalize_timezone(cls, v):
        return ensure_utc(v)

    def is_effective(self, now: datetime) -> bool:
        """Whether the campaign window includes ``now``"""
        return is_effective(self.start_date, self.end_date, now)

    def is_expired(self, now: datetime) -> bool:
        return self.end_date is not None and self.end_date < ensure_utc(now)

    @property
    def state(self) -> CampaignState:
        if self.status == CampaignStatus.DRAFT:
            return CampaignState.DRAFT
        if self.active:
            return CampaignState.ACTIVE
        if self.activated_at is None:
            return CampaignState.SUBMITTED
        return CampaignState.INACTIVE


class CampaignProductLink(BaseContract):
    """Join row between a campaign and one product"""
    campaign_id: str
    product_id: str


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class CampaignCreateRequest(BaseContract):
    """Campaign creation request"""
    discount_type: DiscountType
    value: Optional[Decimal] = None
    name: Optional[str] = Field(None, max_length=255)
    note: Optional[str] = Field(None, max_length=500)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    category_id: Optional[str] = None
    product_ids: List[str] = Field(default_factory=list)


class CampaignUpdateRequest(BaseContract):
    """
    Campaign update request

    Only fields explicitly set are applied. ``clear_category`` removes the
    category from the scope, since ``category_id=None`` means "unchanged".
    """
    discount_type: Optional[DiscountType] = None
    value: Optional[Decimal] = None
    name: Optional[str] = Field(None, max_length=255)
    note: Optional[str] = Field(None, max_length=500)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    category_id: Optional[str] = None
    clear_category: bool = False
    product_ids: Optional[List[str]] = None

    @property
    def changes_scope(self) -> bool:
        return self.product_ids is not None or self.category_id is not None or self.clear_category


class CampaignListQuery(BaseContract):
    """Filters and pagination for listing campaigns"""
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)
    product_id: Optional[str] = None
    category_id: Optional[str] = None
    active: Optional[bool] = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class CampaignListResponse(BaseContract):
    """One page of campaigns"""
    data: List[Campaign] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @computed_field
    @property
    def has_more(self) -> bool:
        return self.page * self.limit < self.total


class SchedulerTickResult(BaseContract):
    """Outcome of one scheduler sweep"""
    applied: List[str] = Field(default_factory=list)
    expired: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = None


__all__ = [
    # Enums
    "DiscountType",
    "CampaignStatus",
    "CampaignState",
    # Helpers
    "utc_now",
    "ensure_utc",
    "is_effective",
    # Models
    "BaseContract",
    "Category",
    "Variant",
    "Product",
    "ProductIndexEntry",
    "Campaign",
    "CampaignProductLink",
    # Requests / responses
    "CampaignCreateRequest",
    "CampaignUpdateRequest",
    "CampaignListQuery",
    "CampaignListResponse",
    "SchedulerTickResult",
]
