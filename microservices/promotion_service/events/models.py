"""
Promotion Event Data Models

Event type definitions and data structures for promotion service events.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Event Type Definitions
# =============================================================================


class PromotionEventType(str, Enum):
    """
    Events published by promotion_service.

    These are the authoritative event types for this service.
    Other services should reference these when subscribing.
    """
    CREATED = "promotion.created"
    UPDATED = "promotion.updated"
    SUBMITTED = "promotion.submitted"
    ACTIVATED = "promotion.activated"
    DEACTIVATED = "promotion.deactivated"
    SUPERSEDED = "promotion.superseded"
    DELETED = "promotion.deleted"


class PromotionStreamConfig:
    """Stream configuration for promotion_service"""
    STREAM_NAME = "promotion-stream"
    SUBJECTS = ["promotion.>"]
    MAX_MESSAGES = 100000
    CONSUMER_PREFIX = "promotion"


# =============================================================================
# Event Data Models - Published Events
# =============================================================================


class PromotionCreatedEventData(BaseModel):
    """promotion.created event data"""
    campaign_id: str = Field(..., description="Campaign ID")
    discount_type: str = Field(..., description="percentage or fixed_amount")
    value: str = Field(..., description="Discount value as a decimal string")
    product_count: int = Field(..., description="Size of the resolved scope")
    category_id: Optional[str] = Field(None, description="Category the scope was expanded from")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


class PromotionUpdatedEventData(BaseModel):
    """promotion.updated event data"""
    campaign_id: str = Field(..., description="Campaign ID")
    changed_fields: List[str] = Field(..., description="List of changed field names")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


class PromotionLifecycleEventData(BaseModel):
    """promotion.submitted / activated / deactivated / deleted event data"""
    campaign_id: str = Field(..., description="Campaign ID")
    product_ids: List[str] = Field(default_factory=list, description="Products in scope")
    pricing_applied: bool = Field(False, description="Whether variant pricing was mutated")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


class PromotionSupersededEventData(BaseModel):
    """promotion.superseded event data"""
    campaign_id: str = Field(..., description="Campaign that took over the products")
    superseded_campaign_ids: List[str] = Field(..., description="Campaigns deactivated")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")
