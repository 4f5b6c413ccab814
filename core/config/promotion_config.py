#!/usr/bin/env python3
"""Promotion engine configuration

Scheduler cadence, category cache lifetime, index key layout and
list pagination limits, plus the platform config that combines them
with infrastructure and logging settings.
"""
import os
from dataclasses import dataclass, field

from .infra_config import InfraConfig
from .logging_config import LoggingConfig


def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class PromotionConfig:
    """Promotion engine settings"""
    # Scheduler
    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = 60
    run_on_start: bool = True

    # Category adjacency cache
    category_cache_ttl_seconds: int = 3600

    # Denormalized product index (Redis hash per product)
    index_prefix: str = "product:"

    # Listing
    default_page_size: int = 10
    max_page_size: int = 100

    # Storage
    db_schema: str = "promotion"
    catalog_schema: str = "catalog"
    default_sale_note: str = "Promotion"

    @classmethod
    def from_env(cls) -> 'PromotionConfig':
        """Load promotion config from environment"""
        return cls(
            scheduler_enabled=_bool(os.getenv("PROMOTION_SCHEDULER_ENABLED", "true")),
            scheduler_interval_seconds=_int(os.getenv("PROMOTION_SCHEDULER_INTERVAL_SECONDS", "60"), 60),
            run_on_start=_bool(os.getenv("PROMOTION_RUN_ON_START", "true")),
            category_cache_ttl_seconds=_int(os.getenv("CATEGORY_CACHE_TTL_SECONDS", "3600"), 3600),
            index_prefix=os.getenv("PROMOTION_INDEX_PREFIX", "product:"),
            default_page_size=_int(os.getenv("PROMOTION_DEFAULT_PAGE_SIZE", "10"), 10),
            max_page_size=_int(os.getenv("PROMOTION_MAX_PAGE_SIZE", "100"), 100),
            db_schema=os.getenv("PROMOTION_DB_SCHEMA", "promotion"),
            catalog_schema=os.getenv("PROMOTION_CATALOG_SCHEMA", "catalog"),
            default_sale_note=os.getenv("PROMOTION_DEFAULT_SALE_NOTE", "Promotion"),
        )


# ===========================================
# Main Platform Configuration
# ===========================================

@dataclass
class PlatformConfig:
    """Main platform configuration with all sub-configs"""
    environment: str = "development"
    debug: bool = False

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    infrastructure: InfraConfig = field(default_factory=InfraConfig)
    promotion: PromotionConfig = field(default_factory=PromotionConfig)

    @classmethod
    def from_env(cls) -> 'PlatformConfig':
        """Load complete configuration from environment"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            environment=env,
            debug=_bool(os.getenv("DEBUG", "true" if env == "development" else "false")),
            logging=LoggingConfig.from_env(),
            infrastructure=InfraConfig.from_env(),
            promotion=PromotionConfig.from_env(),
        )
