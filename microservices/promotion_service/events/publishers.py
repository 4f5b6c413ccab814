"""
Promotion Event Publishers

Wraps the optional event bus with typed lifecycle events.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..models import Campaign
from .models import (
    PromotionEventType,
    PromotionCreatedEventData,
    PromotionUpdatedEventData,
    PromotionLifecycleEventData,
    PromotionSupersededEventData,
)

logger = logging.getLogger(__name__)


class PromotionEventPublisher:
    """Publisher for promotion service events"""

    def __init__(self, event_bus=None):
        self.event_bus = event_bus
        self.source = "promotion_service"

    async def publish(
        self,
        event_type: PromotionEventType,
        data: Dict[str, Any],
    ) -> bool:
        """
        Publish an event to the event bus.

        Args:
            event_type: The event type enum
            data: Event data payload

        Returns:
            True if published successfully, False otherwise
        """
        if not self.event_bus:
            logger.debug(f"Event bus not configured, skipping publish: {event_type.value}")
            return False

        try:
            event = {
                "event_type": event_type.value,
                "source": self.source,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "data": data,
            }

            await self.event_bus.publish_event(event)
            logger.debug(f"Published event: {event_type.value}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish event {event_type.value}: {e}")
            return False

    # ====================
    # Campaign Lifecycle Events
    # ====================

    async def publish_created(self, campaign: Campaign) -> bool:
        """Publish promotion.created event"""
        data = PromotionCreatedEventData(
            campaign_id=campaign.campaign_id,
            discount_type=campaign.discount_type.value,
            value=str(campaign.value),
            product_count=len(campaign.product_ids),
            category_id=campaign.category_id,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(PromotionEventType.CREATED, data.model_dump(mode="json"))

    async def publish_updated(self, campaign_id: str, changed_fields: List[str]) -> bool:
        """Publish promotion.updated event"""
        data = PromotionUpdatedEventData(
            campaign_id=campaign_id,
            changed_fields=changed_fields,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(PromotionEventType.UPDATED, data.model_dump(mode="json"))

    async def publish_lifecycle(
        self,
        event_type: PromotionEventType,
        campaign_id: str,
        product_ids: Optional[List[str]] = None,
        pricing_applied: bool = False,
    ) -> bool:
        """Publish submitted / activated / deactivated / deleted events"""
        data = PromotionLifecycleEventData(
            campaign_id=campaign_id,
            product_ids=list(product_ids or []),
            pricing_applied=pricing_applied,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(event_type, data.model_dump(mode="json"))

    async def publish_superseded(
        self, campaign_id: str, superseded_campaign_ids: List[str]
    ) -> bool:
        """Publish promotion.superseded event"""
        data = PromotionSupersededEventData(
            campaign_id=campaign_id,
            superseded_campaign_ids=superseded_campaign_ids,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(PromotionEventType.SUPERSEDED, data.model_dump(mode="json"))
