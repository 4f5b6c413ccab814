"""
Promotion Campaign Data Repository

Data access layer - PostgreSQL (asyncpg)

Owns the campaign records and the campaign -> product join rows.
Products, variants and categories belong to the catalog and are only
referenced by id here.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import asyncpg

from .models import (
    Campaign,
    CampaignListQuery,
    CampaignStatus,
    DiscountType,
)

logger = logging.getLogger(__name__)


class CampaignRepository:
    """Promotion campaign repository - PostgreSQL (asyncpg)"""

    # Columns update_campaign() may touch
    UPDATABLE_FIELDS = {
        "name",
        "note",
        "discount_type",
        "value",
        "start_date",
        "end_date",
        "category_id",
    }

    def __init__(
        self,
        dsn: Optional[str] = None,
        pool: Optional[asyncpg.Pool] = None,
        schema: str = "promotion",
        min_size: int = 1,
        max_size: int = 10,
    ):
        self.dsn = dsn
        self.pool = pool
        self.schema = schema
        self.min_size = min_size
        self.max_size = max_size
        self._owns_pool = pool is None

        # Table names
        self.campaigns_table = "promotions"
        self.links_table = "promotion_products"

    async def initialize(self) -> None:
        """Create the pool if needed and ensure the schema exists"""
        if self.pool is None:
            self.pool = await asyncpg.create_pool(
                dsn=self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
            )
        await self.ensure_schema()
        logger.info("Promotion repository initialized with PostgreSQL")

    async def ensure_schema(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(f'''
                CREATE SCHEMA IF NOT EXISTS {self.schema};

                CREATE TABLE IF NOT EXISTS {self.schema}.{self.campaigns_table} (
                    campaign_id VARCHAR(64) PRIMARY KEY,
                    name VARCHAR(255),
                    note VARCHAR(500),
                    discount_type VARCHAR(20) NOT NULL,
                    value NUMERIC(18, 4) NOT NULL CHECK (value >= 0),
                    start_date TIMESTAMPTZ,
                    end_date TIMESTAMPTZ,
                    active BOOLEAN NOT NULL DEFAULT FALSE,
                    status VARCHAR(20) NOT NULL DEFAULT 'draft',
                    category_id VARCHAR(64),
                    activated_at TIMESTAMPTZ,
                    deactivated_at TIMESTAMPTZ,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                );

                CREATE TABLE IF NOT EXISTS {self.schema}.{self.links_table} (
                    campaign_id VARCHAR(64) NOT NULL
                        REFERENCES {self.schema}.{self.campaigns_table}(campaign_id)
                        ON DELETE CASCADE,
                    product_id VARCHAR(64) NOT NULL,
                    PRIMARY KEY (campaign_id, product_id)
                );

                CREATE INDEX IF NOT EXISTS idx_{self.links_table}_product
                    ON {self.schema}.{self.links_table} (product_id);
                CREATE INDEX IF NOT EXISTS idx_{self.campaigns_table}_active_status
                    ON {self.schema}.{self.campaigns_table} (active, status);
            ''')

    async def close(self) -> None:
        """Close the pool if this repository created it"""
        if self.pool is not None and self._owns_pool:
            await self.pool.close()
            self.pool = None
        logger.info("Promotion repository database connection closed")

    async def health_check(self) -> bool:
        """Check repository health"""
        try:
            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                return result == 1
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

    # ====================
    # Campaign CRUD
    # ====================

    async def save_campaign(self, campaign: Campaign, product_ids: List[str]) -> Campaign:
        """Insert a campaign and its product links in one transaction"""
        try:
            query = f'''
                INSERT INTO {self.schema}.{self.campaigns_table} (
                    campaign_id, name, note, discount_type, value,
                    start_date, end_date, active, status, category_id,
                    activated_at, deactivated_at, created_at, updated_at
                ) VALUES (
                    $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14
                )
                RETURNING *
            '''
            params = [
                campaign.campaign_id,
                campaign.name,
                campaign.note,
                campaign.discount_type.value,
                campaign.value,
                campaign.start_date,
                campaign.end_date,
                campaign.active,
                campaign.status.value,
                campaign.category_id,
                campaign.activated_at,
                campaign.deactivated_at,
                campaign.created_at,
                campaign.updated_at,
            ]

            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    row = await conn.fetchrow(query, *params)
                    await self._insert_links(conn, campaign.campaign_id, product_ids)

            return self._row_to_campaign(row, sorted(set(product_ids)))

        except Exception as e:
            logger.error(f"Error saving campaign: {e}", exc_info=True)
            raise

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        """Get campaign by ID"""
        try:
            query = f'''
                SELECT * FROM {self.schema}.{self.campaigns_table}
                WHERE campaign_id = $1
            '''
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(query, campaign_id)
                if not row:
                    return None
                links = await self._fetch_links(conn, [campaign_id])

            return self._row_to_campaign(row, links.get(campaign_id, []))

        except Exception as e:
            logger.error(f"Error getting campaign {campaign_id}: {e}")
            raise

    async def list_campaigns(self, query: CampaignListQuery) -> Tuple[List[Campaign], int]:
        """List campaigns with filters, newest first"""
        try:
            conditions = ["TRUE"]
            params: List[Any] = []
            param_count = 0

            if query.product_id:
                param_count += 1
                conditions.append(f'''
                    EXISTS (
                        SELECT 1 FROM {self.schema}.{self.links_table} l
                        WHERE l.campaign_id = p.campaign_id AND l.product_id = ${param_count}
                    )
                ''')
                params.append(query.product_id)

            if query.category_id:
                param_count += 1
                conditions.append(f"p.category_id = ${param_count}")
                params.append(query.category_id)

            if query.active is not None:
                param_count += 1
                conditions.append(f"p.active = ${param_count}")
                params.append(query.active)

            where_clause = " AND ".join(conditions)

            count_query = f'''
                SELECT COUNT(*) FROM {self.schema}.{self.campaigns_table} p
                WHERE {where_clause}
            '''
            list_query = f'''
                SELECT p.* FROM {self.schema}.{self.campaigns_table} p
                WHERE {where_clause}
                ORDER BY p.created_at DESC, p.campaign_id
                LIMIT ${param_count + 1} OFFSET ${param_count + 2}
            '''

            async with self.pool.acquire() as conn:
                total = await conn.fetchval(count_query, *params)
                rows = await conn.fetch(list_query, *params, query.limit, query.offset)
                links = await self._fetch_links(conn, [r["campaign_id"] for r in rows])

            campaigns = [
                self._row_to_campaign(row, links.get(row["campaign_id"], []))
                for row in rows
            ]
            return campaigns, int(total or 0)

        except Exception as e:
            logger.error(f"Error listing campaigns: {e}")
            raise

    async def update_campaign(
        self,
        campaign_id: str,
        updates: Dict[str, Any],
        product_ids: Optional[List[str]] = None,
        changed_at: Optional[datetime] = None,
        expected_status: Optional[CampaignStatus] = None,
    ) -> Optional[Campaign]:
        """
        Update campaign fields, replacing the product links when product_ids is given.

        With expected_status the write only lands while the stored status
        still matches; None means the campaign is missing or has moved on.
        """
        try:
            set_clauses = []
            params: List[Any] = []
            param_count = 0

            for field, value in updates.items():
                if field not in self.UPDATABLE_FIELDS:
                    raise ValueError(f"Field cannot be updated: {field}")
                param_count += 1
                set_clauses.append(f"{field} = ${param_count}")
                params.append(value.value if isinstance(value, DiscountType) else value)

            param_count += 1
            set_clauses.append(f"updated_at = ${param_count}")
            params.append(changed_at or datetime.now(timezone.utc))

            param_count += 1
            condition = f"campaign_id = ${param_count}"
            params.append(campaign_id)

            if expected_status is not None:
                param_count += 1
                condition += f" AND status = ${param_count}"
                params.append(expected_status.value)

            query = f'''
                UPDATE {self.schema}.{self.campaigns_table}
                SET {", ".join(set_clauses)}
                WHERE {condition}
                RETURNING *
            '''

            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    row = await conn.fetchrow(query, *params)
                    if not row:
                        return None
                    if product_ids is not None:
                        await conn.execute(
                            f"DELETE FROM {self.schema}.{self.links_table} WHERE campaign_id = $1",
                            campaign_id,
                        )
                        await self._insert_links(conn, campaign_id, product_ids)
                links = await self._fetch_links(conn, [campaign_id])

            return self._row_to_campaign(row, links.get(campaign_id, []))

        except Exception as e:
            logger.error(f"Error updating campaign {campaign_id}: {e}")
            raise

    async def delete_campaign(self, campaign_id: str) -> bool:
        """Delete a campaign and its product links"""
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(
                        f"DELETE FROM {self.schema}.{self.links_table} WHERE campaign_id = $1",
                        campaign_id,
                    )
                    deleted = await conn.fetchval(
                        f'''
                            DELETE FROM {self.schema}.{self.campaigns_table}
                            WHERE campaign_id = $1
                            RETURNING campaign_id
                        ''',
                        campaign_id,
                    )
            return deleted is not None

        except Exception as e:
            logger.error(f"Error deleting campaign {campaign_id}: {e}")
            raise

    # ====================
    # Scope Queries
    # ====================

    async def get_product_ids(self, campaign_id: str) -> List[str]:
        """Get the product ids linked to a campaign"""
        try:
            async with self.pool.acquire() as conn:
                links = await self._fetch_links(conn, [campaign_id])
            return links.get(campaign_id, [])

        except Exception as e:
            logger.error(f"Error getting products for campaign {campaign_id}: {e}")
            raise

    async def find_campaigns_touching_products(
        self,
        product_ids: List[str],
        active: Optional[bool] = None,
        status: Optional[CampaignStatus] = None,
        exclude_campaign_id: Optional[str] = None,
    ) -> List[Campaign]:
        """Campaigns linked to any of the given products, oldest first"""
        if not product_ids:
            return []

        try:
            conditions = [f'''
                EXISTS (
                    SELECT 1 FROM {self.schema}.{self.links_table} l
                    WHERE l.campaign_id = p.campaign_id AND l.product_id = ANY($1::text[])
                )
            ''']
            params: List[Any] = [list(product_ids)]
            param_count = 1

            if active is not None:
                param_count += 1
                conditions.append(f"p.active = ${param_count}")
                params.append(active)

            if status is not None:
                param_count += 1
                conditions.append(f"p.status = ${param_count}")
                params.append(status.value)

            if exclude_campaign_id:
                param_count += 1
                conditions.append(f"p.campaign_id <> ${param_count}")
                params.append(exclude_campaign_id)

            query = f'''
                SELECT p.* FROM {self.schema}.{self.campaigns_table} p
                WHERE {" AND ".join(conditions)}
                ORDER BY p.created_at, p.campaign_id
            '''
            return await self._fetch_campaigns(query, params)

        except Exception as e:
            logger.error(f"Error finding campaigns for products: {e}")
            raise

    # ====================
    # Lifecycle Writes
    # ====================

    async def set_active(
        self, campaign_id: str, active: bool, changed_at: Optional[datetime] = None
    ) -> Optional[Campaign]:
        """Set the active flag; transition timestamps only move on a real change"""
        try:
            changed_at = changed_at or datetime.now(timezone.utc)
            query = f'''
                UPDATE {self.schema}.{self.campaigns_table}
                SET active = $2,
                    activated_at = CASE WHEN $2 AND NOT active THEN $3 ELSE activated_at END,
                    deactivated_at = CASE WHEN NOT $2 AND active THEN $3 ELSE deactivated_at END,
                    updated_at = CASE WHEN active <> $2 THEN $3 ELSE updated_at END
                WHERE campaign_id = $1
                RETURNING *
            '''
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(query, campaign_id, active, changed_at)
                if not row:
                    return None
                links = await self._fetch_links(conn, [campaign_id])

            return self._row_to_campaign(row, links.get(campaign_id, []))

        except Exception as e:
            logger.error(f"Error setting active={active} on campaign {campaign_id}: {e}")
            raise

    async def set_status(
        self,
        campaign_id: str,
        status: CampaignStatus,
        expected_status: Optional[CampaignStatus] = None,
        changed_at: Optional[datetime] = None,
    ) -> bool:
        """Compare-and-set the status; False when the campaign or expected status did not match"""
        try:
            params: List[Any] = [campaign_id, status.value, changed_at or datetime.now(timezone.utc)]
            condition = "campaign_id = $1"
            if expected_status is not None:
                condition += " AND status = $4"
                params.append(expected_status.value)

            query = f'''
                UPDATE {self.schema}.{self.campaigns_table}
                SET status = $2, updated_at = $3
                WHERE {condition}
                RETURNING campaign_id
            '''
            async with self.pool.acquire() as conn:
                updated = await conn.fetchval(query, *params)
            return updated is not None

        except Exception as e:
            logger.error(f"Error setting status on campaign {campaign_id}: {e}")
            raise

    # ====================
    # Scheduler Queries
    # ====================

    async def list_due_campaigns(self, now: datetime) -> List[Campaign]:
        """Active submitted campaigns whose window includes now, oldest activation first"""
        try:
            query = f'''
                SELECT p.* FROM {self.schema}.{self.campaigns_table} p
                WHERE p.active = TRUE
                  AND p.status = $2
                  AND (p.start_date IS NULL OR p.start_date <= $1)
                  AND (p.end_date IS NULL OR p.end_date >= $1)
                ORDER BY p.activated_at NULLS FIRST, p.created_at, p.campaign_id
            '''
            return await self._fetch_campaigns(query, [now, CampaignStatus.SUBMITTED.value])

        except Exception as e:
            logger.error(f"Error listing due campaigns: {e}")
            raise

    async def list_expired_campaigns(self, now: datetime) -> List[Campaign]:
        """Active campaigns whose end date has passed"""
        try:
            query = f'''
                SELECT p.* FROM {self.schema}.{self.campaigns_table} p
                WHERE p.active = TRUE
                  AND p.end_date IS NOT NULL
                  AND p.end_date < $1
                ORDER BY p.end_date, p.campaign_id
            '''
            return await self._fetch_campaigns(query, [now])

        except Exception as e:
            logger.error(f"Error listing expired campaigns: {e}")
            raise

    # ====================
    # Helpers
    # ====================

    async def _insert_links(self, conn, campaign_id: str, product_ids: List[str]) -> None:
        if not product_ids:
            return
        await conn.executemany(
            f'''
                INSERT INTO {self.schema}.{self.links_table} (campaign_id, product_id)
                VALUES ($1, $2)
                ON CONFLICT DO NOTHING
            ''',
            [(campaign_id, product_id) for product_id in sorted(set(product_ids))],
        )

    async def _fetch_links(self, conn, campaign_ids: List[str]) -> Dict[str, List[str]]:
        if not campaign_ids:
            return {}
        rows = await conn.fetch(
            f'''
                SELECT campaign_id, product_id FROM {self.schema}.{self.links_table}
                WHERE campaign_id = ANY($1::text[])
                ORDER BY campaign_id, product_id
            ''',
            list(campaign_ids),
        )
        links: Dict[str, List[str]] = {}
        for row in rows:
            links.setdefault(row["campaign_id"], []).append(row["product_id"])
        return links

    async def _fetch_campaigns(self, query: str, params: List[Any]) -> List[Campaign]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
            links = await self._fetch_links(conn, [r["campaign_id"] for r in rows])
        return [self._row_to_campaign(row, links.get(row["campaign_id"], [])) for row in rows]

    def _row_to_campaign(self, row: Any, product_ids: List[str]) -> Campaign:
        """Convert database row to Campaign model"""
        data = dict(row)
        return Campaign(
            campaign_id=data["campaign_id"],
            name=data.get("name"),
            note=data.get("note"),
            discount_type=DiscountType(data["discount_type"]),
            value=Decimal(str(data["value"])),
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
            active=data.get("active", False),
            status=CampaignStatus(data.get("status", CampaignStatus.DRAFT.value)),
            category_id=data.get("category_id"),
            product_ids=list(product_ids),
            activated_at=data.get("activated_at"),
            deactivated_at=data.get("deactivated_at"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


__all__ = ["CampaignRepository"]
