"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers (Top-Down TDD):
    - integration/: Repository tests against a real PostgreSQL
    - component/  : Engine, index sync and scheduler with in-memory stores
    - unit/       : Pure functions, no I/O
"""
import os
import sys
from typing import Any, Dict, List

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)


# =============================================================================
# Assertion Helpers
# =============================================================================

class AssertionHelpers:
    """Custom assertion helpers for tests"""

    @staticmethod
    def assert_event_published(events: List[Dict[str, Any]], event_type: str, **kwargs):
        """Assert an event was published with expected data"""
        matching = [e for e in events if e.get("event_type") == event_type]
        assert matching, f"Event '{event_type}' not found in {[e.get('event_type') for e in events]}"

        if kwargs:
            for event in matching:
                if all(event.get("data", {}).get(k) == v for k, v in kwargs.items()):
                    return event
            assert False, f"No event matched criteria: {kwargs}"

        return matching[0]

    @staticmethod
    def assert_not_on_sale(variants):
        """Assert variants carry no sale pricing"""
        for variant in variants:
            assert variant.on_sales is False
            assert variant.discount_price == 0
            assert variant.discount_percent == 0
            assert variant.sale_note == ""


@pytest.fixture
def assertions() -> AssertionHelpers:
    """Provide assertion helpers"""
    return AssertionHelpers()


# =============================================================================
# Skip Markers Based on Environment
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "component: Component tests")
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "requires_db: Needs PROMOTION_INTEGRATION_DSN")


def pytest_collection_modifyitems(config, items):
    """Skip tests whose infrastructure is not configured"""
    skip_db = pytest.mark.skip(reason="PostgreSQL not available (set PROMOTION_INTEGRATION_DSN)")

    for item in items:
        if "requires_db" in item.keywords and not os.getenv("PROMOTION_INTEGRATION_DSN"):
            item.add_marker(skip_db)
