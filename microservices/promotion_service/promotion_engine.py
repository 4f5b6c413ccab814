"""
Promotion Engine Business Logic

Orchestrates the campaign lifecycle (draft -> submitted -> active/inactive),
scope resolution, conflict superseding, variant repricing and product
index refresh. It is the only component that writes across the campaign
store, the variant store and the product index.

Write order inside one call is always: campaign record, then variant
pricing, then index. Index failures are absorbed by IndexSync.
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable, List, Optional, Set

from pydantic import ValidationError

from .category_tree import CategoryTree
from .clock import SystemClock
from .events.models import PromotionEventType
from .events.publishers import PromotionEventPublisher
from .index_sync import IndexSync
from .models import (
    Campaign,
    CampaignCreateRequest,
    CampaignListQuery,
    CampaignListResponse,
    CampaignStatus,
    CampaignUpdateRequest,
    DiscountType,
    Variant,
    ensure_utc,
)
from .pricing import PricingMutator, to_decimal
from .protocols import (
    CampaignRepositoryProtocol,
    ClockProtocol,
    ProductStoreProtocol,
    PromotionConflictError,
    PromotionNotFoundError,
    PromotionValidationError,
    VariantStoreProtocol,
)

logger = logging.getLogger(__name__)


class PromotionEngine:
    """Promotion lifecycle and pricing consistency orchestrator"""

    MAX_PERCENTAGE = Decimal("100")

    def __init__(
        self,
        repository: CampaignRepositoryProtocol,
        product_store: ProductStoreProtocol,
        variant_store: VariantStoreProtocol,
        category_tree: CategoryTree,
        index_sync: IndexSync,
        pricing: Optional[PricingMutator] = None,
        clock: Optional[ClockProtocol] = None,
        event_publisher: Optional[PromotionEventPublisher] = None,
        default_page_size: int = 10,
        max_page_size: int = 100,
    ):
        self.repository = repository
        self.product_store = product_store
        self.variant_store = variant_store
        self.category_tree = category_tree
        self.index_sync = index_sync
        self.pricing = pricing or PricingMutator()
        self.clock = clock or SystemClock()
        self.event_publisher = event_publisher or PromotionEventPublisher()
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    # ====================
    # Queries
    # ====================

    async def get_by_id(self, campaign_id: str) -> Campaign:
        """Get campaign by ID"""
        campaign = await self.repository.get_campaign(campaign_id)
        if not campaign:
            raise PromotionNotFoundError(
                f"Promotion not found: {campaign_id}",
                resource="promotion",
                resource_id=campaign_id,
            )
        return campaign

    async def list(
        self, query: Optional[CampaignListQuery] = None, **filters
    ) -> CampaignListResponse:
        """
        List campaigns, newest first.

        Accepts a CampaignListQuery or its fields as keyword arguments
        (page, limit, product_id, category_id, active). The page size is
        capped at max_page_size.
        """
        if query is None:
            filters.setdefault("limit", self.default_page_size)
            try:
                query = CampaignListQuery(**filters)
            except ValidationError as e:
                raise PromotionValidationError(f"Invalid list filters: {e}")

        if query.limit > self.max_page_size:
            query = query.model_copy(update={"limit": self.max_page_size})

        campaigns, total = await self.repository.list_campaigns(query)
        return CampaignListResponse(
            data=campaigns,
            total=total,
            page=query.page,
            limit=query.limit,
        )

    # ====================
    # Draft Editing
    # ====================

    async def create(self, request: CampaignCreateRequest) -> Campaign:
        """
        Create a campaign in DRAFT, inactive.

        Scope is the explicit product ids plus every product under the
        category's subtree. Everything is validated before the single
        write, and pricing is not touched.
        """
        value = self._validate_discount(request.discount_type, request.value)
        start_date, end_date = self._validate_window(request.start_date, request.end_date)
        scope = await self.resolve_scope(request.product_ids, request.category_id)

        now = self.clock.now()
        campaign = Campaign(
            name=request.name,
            note=request.note,
            discount_type=request.discount_type,
            value=value,
            start_date=start_date,
            end_date=end_date,
            active=False,
            status=CampaignStatus.DRAFT,
            category_id=request.category_id,
            product_ids=scope,
            created_at=now,
            updated_at=now,
        )
        saved = await self.repository.save_campaign(campaign, scope)

        logger.info(f"Promotion created: {saved.campaign_id} ({len(scope)} products)")
        await self.event_publisher.publish_created(saved)
        return saved

    async def update(self, campaign_id: str, request: CampaignUpdateRequest) -> Campaign:
        """
        Update a DRAFT campaign.

        When product_ids, category_id or clear_category is given the scope
        is recomputed from the request's explicit ids and the resulting
        category, and the product links are replaced.
        """
        campaign = await self.get_by_id(campaign_id)
        if campaign.status != CampaignStatus.DRAFT:
            raise PromotionConflictError(
                "Only draft promotions can be updated",
                campaign.status,
            )

        updates = {}

        if request.discount_type is not None or request.value is not None:
            discount_type = request.discount_type or campaign.discount_type
            value = self._validate_discount(
                discount_type,
                request.value if request.value is not None else campaign.value,
            )
            if discount_type != campaign.discount_type:
                updates["discount_type"] = discount_type
            if value != campaign.value:
                updates["value"] = value

        if request.start_date is not None or request.end_date is not None:
            start_date, end_date = self._validate_window(
                request.start_date if request.start_date is not None else campaign.start_date,
                request.end_date if request.end_date is not None else campaign.end_date,
            )
            if start_date != campaign.start_date:
                updates["start_date"] = start_date
            if end_date != campaign.end_date:
                updates["end_date"] = end_date

        if request.name is not None and request.name != campaign.name:
            updates["name"] = request.name

        if request.note is not None and request.note != campaign.note:
            updates["note"] = request.note

        product_ids = None
        if request.changes_scope:
            if request.clear_category:
                category_id = None
            else:
                category_id = request.category_id or campaign.category_id
            product_ids = await self.resolve_scope(request.product_ids or [], category_id)
            if category_id != campaign.category_id:
                updates["category_id"] = category_id

        changed_fields = sorted(updates)
        if product_ids is not None and product_ids != campaign.product_ids:
            changed_fields.append("product_ids")

        if not changed_fields:
            logger.debug(f"Promotion update with no changes: {campaign_id}")
            return campaign

        updated = await self.repository.update_campaign(
            campaign_id,
            updates,
            product_ids,
            changed_at=self.clock.now(),
            expected_status=CampaignStatus.DRAFT,
        )
        if not updated:
            # Missing now, or submitted while the scope was being resolved
            current = await self.get_by_id(campaign_id)
            raise PromotionConflictError(
                "Only draft promotions can be updated",
                current.status,
            )

        logger.info(f"Promotion updated: {campaign_id} ({', '.join(changed_fields)})")
        await self.event_publisher.publish_updated(campaign_id, changed_fields)
        return updated

    async def delete(self, campaign_id: str) -> str:
        """Deactivate if needed, restore pricing on the scope, then remove links and record"""
        campaign = await self.get_by_id(campaign_id)
        now = self.clock.now()

        if campaign.active:
            await self.repository.set_active(campaign_id, False, now)

        reverted = await self._revert_scope(campaign_id, campaign.product_ids, now)
        await self.index_sync.index_products(reverted)

        await self.repository.delete_campaign(campaign_id)

        logger.info(f"Promotion deleted: {campaign_id}")
        await self.event_publisher.publish_lifecycle(
            PromotionEventType.DELETED, campaign_id, campaign.product_ids
        )
        return campaign_id

    # ====================
    # Lifecycle
    # ====================

    async def submit(self, campaign_id: str) -> Campaign:
        """DRAFT -> SUBMITTED, then activate immediately"""
        campaign = await self.get_by_id(campaign_id)
        if campaign.status != CampaignStatus.DRAFT:
            raise PromotionConflictError(
                "Only draft promotions can be submitted",
                campaign.status,
            )

        submitted = await self.repository.set_status(
            campaign_id,
            CampaignStatus.SUBMITTED,
            expected_status=CampaignStatus.DRAFT,
            changed_at=self.clock.now(),
        )
        if not submitted:
            raise PromotionConflictError(
                f"Promotion {campaign_id} was submitted concurrently",
                CampaignStatus.SUBMITTED,
            )

        logger.info(f"Promotion submitted: {campaign_id}")
        await self.event_publisher.publish_lifecycle(
            PromotionEventType.SUBMITTED, campaign_id, campaign.product_ids
        )
        return await self.activate(campaign_id)

    async def activate(self, campaign_id: str, now: Optional[datetime] = None) -> Campaign:
        """
        Make the campaign the pricing source for its scope. Idempotent.

        Other active submitted campaigns touching the scope are superseded
        first. Pricing is only applied when the window includes now;
        otherwise the campaign stays active and the scheduler applies it
        once the window opens.
        """
        campaign = await self.get_by_id(campaign_id)
        if campaign.status != CampaignStatus.SUBMITTED:
            raise PromotionConflictError(
                "Only submitted promotions can be activated",
                campaign.status,
            )

        now = now or self.clock.now()
        was_active = campaign.active

        await self.supersede(campaign.product_ids, campaign_id, now=now)
        activated = await self.repository.set_active(campaign_id, True, now)

        applied = campaign.is_effective(now)
        if applied:
            repriced = await self._reprice(
                campaign.product_ids,
                lambda v: self.pricing.apply(v, campaign.discount_type, campaign.value, campaign.note),
            )
            await self.index_sync.index_products(repriced)

        if was_active:
            logger.debug(f"Promotion re-applied: {campaign_id} (pricing_applied={applied})")
        else:
            logger.info(f"Promotion activated: {campaign_id} (pricing_applied={applied})")
            await self.event_publisher.publish_lifecycle(
                PromotionEventType.ACTIVATED, campaign_id, campaign.product_ids, applied
            )
        return activated or campaign

    async def deactivate(self, campaign_id: str, now: Optional[datetime] = None) -> Campaign:
        """Set inactive and restore pricing on the scope. Idempotent"""
        campaign = await self.get_by_id(campaign_id)
        now = now or self.clock.now()

        deactivated = await self.repository.set_active(campaign_id, False, now)
        reverted = await self._revert_scope(campaign_id, campaign.product_ids, now)
        await self.index_sync.index_products(reverted)

        if campaign.active:
            logger.info(f"Promotion deactivated: {campaign_id}")
            await self.event_publisher.publish_lifecycle(
                PromotionEventType.DEACTIVATED, campaign_id, campaign.product_ids
            )
        else:
            logger.debug(f"Promotion already inactive: {campaign_id}")
        return deactivated or campaign

    async def supersede(
        self,
        product_ids: Iterable[str],
        exclude_campaign_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> List[str]:
        """
        Deactivate every other active submitted campaign touching the products.

        All conflicting campaigns are marked inactive before any variant is
        reverted. Returns the ids of the superseded campaigns.
        """
        product_ids = list(product_ids)
        conflicts = await self.repository.find_campaigns_touching_products(
            product_ids,
            active=True,
            status=CampaignStatus.SUBMITTED,
            exclude_campaign_id=exclude_campaign_id,
        )
        if not conflicts:
            return []

        now = now or self.clock.now()
        for conflict in conflicts:
            await self.repository.set_active(conflict.campaign_id, False, now)

        reverted: Set[str] = set()
        for conflict in conflicts:
            reverted.update(
                await self._revert_scope(conflict.campaign_id, conflict.product_ids, now)
            )
        await self.index_sync.index_products(sorted(reverted))

        superseded_ids = [c.campaign_id for c in conflicts]
        logger.info(f"Promotions superseded by {exclude_campaign_id}: {superseded_ids}")

        for conflict in conflicts:
            await self.event_publisher.publish_lifecycle(
                PromotionEventType.DEACTIVATED, conflict.campaign_id, conflict.product_ids
            )
        if exclude_campaign_id:
            await self.event_publisher.publish_superseded(exclude_campaign_id, superseded_ids)
        return superseded_ids

    # ====================
    # Scope Resolution
    # ====================

    async def resolve_scope(
        self,
        product_ids: Optional[Iterable[str]],
        category_id: Optional[str],
    ) -> List[str]:
        """
        Explicit product ids union every product under the category subtree.

        Raises PromotionNotFoundError for an unknown category or product and
        PromotionValidationError when the union is empty.
        """
        scope: Set[str] = set()

        explicit = sorted({p for p in (product_ids or []) if p})
        if explicit:
            products = await self.product_store.get_by_ids(explicit)
            found = {p.product_id for p in products}
            missing = [p for p in explicit if p not in found]
            if missing:
                raise PromotionNotFoundError(
                    f"Products not found: {', '.join(missing)}",
                    resource="product",
                    resource_id=missing[0],
                )
            scope.update(found)

        if category_id:
            if not await self.category_tree.contains(category_id):
                raise PromotionNotFoundError(
                    f"Category not found: {category_id}",
                    resource="category",
                    resource_id=category_id,
                )
            category_ids = await self.category_tree.resolve_descendants(category_id)
            products = await self.product_store.get_by_category(sorted(category_ids))
            scope.update(p.product_id for p in products)

        if not scope:
            raise PromotionValidationError(
                "Promotion must target at least one product (product_ids or category_id)",
                "product_ids",
            )
        return sorted(scope)

    # ====================
    # Pricing Helpers
    # ====================

    async def _reprice(
        self,
        product_ids: Iterable[str],
        mutate: Callable[[Variant], Variant],
    ) -> List[str]:
        """Mutate and persist every variant of the products; returns the products touched"""
        product_ids = list(product_ids)
        if not product_ids:
            return []

        products = await self.product_store.get_by_ids(product_ids)
        variants = [mutate(v) for product in products for v in product.variants]
        if variants:
            await self.variant_store.bulk_save(variants)

        touched = [p.product_id for p in products]
        if len(touched) != len(product_ids):
            missing = sorted(set(product_ids) - set(touched))
            logger.debug(f"Products missing from catalog while repricing: {missing}")
        return touched

    async def _revert_scope(
        self, campaign_id: str, product_ids: Iterable[str], now: datetime
    ) -> List[str]:
        """
        Clear sale pricing on the products, skipping any currently priced by
        another active, effective, submitted campaign.
        """
        product_ids = list(product_ids)
        if not product_ids:
            return []

        owners = await self.repository.find_campaigns_touching_products(
            product_ids,
            active=True,
            status=CampaignStatus.SUBMITTED,
            exclude_campaign_id=campaign_id,
        )
        protected: Set[str] = set()
        for owner in owners:
            if owner.is_effective(now):
                protected.update(owner.product_ids)

        targets = [p for p in product_ids if p not in protected]
        if protected & set(product_ids):
            logger.debug(
                f"Skipping revert for products priced by another promotion: "
                f"{sorted(protected & set(product_ids))}"
            )
        return await self._reprice(targets, self.pricing.revert)

    # ====================
    # Validation
    # ====================

    def _validate_discount(self, discount_type: DiscountType, value) -> Decimal:
        if value is None:
            raise PromotionValidationError("Discount value is required", "value")
        try:
            amount = to_decimal(value)
        except (InvalidOperation, ValueError):
            raise PromotionValidationError(f"Invalid discount value: {value}", "value")
        if not amount.is_finite():
            raise PromotionValidationError(f"Invalid discount value: {value}", "value")
        if amount < 0:
            raise PromotionValidationError("Discount value must not be negative", "value")
        if discount_type == DiscountType.PERCENTAGE and amount > self.MAX_PERCENTAGE:
            raise PromotionValidationError(
                "Percentage discount must not exceed 100", "value"
            )
        return amount

    def _validate_window(self, start_date: Optional[datetime], end_date: Optional[datetime]):
        start_date = ensure_utc(start_date)
        end_date = ensure_utc(end_date)
        if start_date is not None and end_date is not None and end_date < start_date:
            raise PromotionValidationError(
                "end_date must not be before start_date", "end_date"
            )
        return start_date, end_date


__all__ = ["PromotionEngine"]
