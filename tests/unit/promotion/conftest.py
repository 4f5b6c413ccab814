"""
Unit Test Fixtures for Promotion Service

Provides fixtures for pure-logic unit tests.
Uses PromotionTestDataFactory from the data contract.
"""

import pytest

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.promotion_service.pricing import PricingMutator
from tests.contracts.promotion.data_contract import (
    FixedClock,
    InMemoryCatalog,
    PromotionTestDataFactory,
)


@pytest.fixture
def factory():
    """Provide PromotionTestDataFactory"""
    return PromotionTestDataFactory


@pytest.fixture
def mutator():
    """Pricing mutator with the default sale note"""
    return PricingMutator()


@pytest.fixture
def clock():
    """Fixed clock at 2026-06-01 12:00 UTC"""
    return FixedClock()


@pytest.fixture
def catalog():
    """Empty in-memory catalog"""
    return InMemoryCatalog()
