#!/usr/bin/env python3
"""Infrastructure services configuration

Endpoints for the native drivers used by the promotion engine.
"""
import os
from dataclasses import dataclass
from typing import Optional

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class InfraConfig:
    """Infrastructure service endpoints"""

    # ===========================================
    # PostgreSQL (native asyncpg - port 5432)
    # ===========================================
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "postgres"
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_pool_min: int = 1
    postgres_pool_max: int = 10

    # ===========================================
    # Redis (native redis-py asyncio - port 6379)
    # ===========================================
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None
    redis_url: Optional[str] = None

    @property
    def postgres_dsn(self) -> str:
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def redis_dsn(self) -> str:
        if self.redis_url:
            return self.redis_url
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @classmethod
    def from_env(cls) -> 'InfraConfig':
        """Load infrastructure config from environment"""
        return cls(
            # PostgreSQL
            postgres_host=os.getenv("POSTGRES_HOST", "localhost"),
            postgres_port=_int(os.getenv("POSTGRES_PORT", "5432"), 5432),
            postgres_db=os.getenv("POSTGRES_DB", "postgres"),
            postgres_user=os.getenv("POSTGRES_USER", "postgres"),
            postgres_password=os.getenv("POSTGRES_PASSWORD", "postgres"),
            postgres_pool_min=_int(os.getenv("POSTGRES_POOL_MIN", "1"), 1),
            postgres_pool_max=_int(os.getenv("POSTGRES_POOL_MAX", "10"), 10),

            # Redis
            redis_host=os.getenv("REDIS_HOST", "localhost"),
            redis_port=_int(os.getenv("REDIS_PORT", "6379"), 6379),
            redis_db=_int(os.getenv("REDIS_DB", "0"), 0),
            redis_password=os.getenv("REDIS_PASSWORD"),
            redis_url=os.getenv("REDIS_URL"),
        )
