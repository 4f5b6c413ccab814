"""
Promotion Service Events

Event models and publisher for promotion service.
"""

from .models import (
    PromotionEventType,
    PromotionStreamConfig,
    PromotionCreatedEventData,
    PromotionUpdatedEventData,
    PromotionLifecycleEventData,
    PromotionSupersededEventData,
)
from .publishers import PromotionEventPublisher

__all__ = [
    # Event Types
    "PromotionEventType",
    "PromotionStreamConfig",
    # Event Data Models
    "PromotionCreatedEventData",
    "PromotionUpdatedEventData",
    "PromotionLifecycleEventData",
    "PromotionSupersededEventData",
    # Publisher
    "PromotionEventPublisher",
]
