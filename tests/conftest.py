"""Shared fixtures"""

import pytest

from flasharb.config.models import ScannerConfig
from flasharb.detectors.opportunity_detector import OpportunityDetector
from tests.factories import (
    AQUARIUS_POOL,
    SOROSWAP_POOL,
    VENUE1_RESERVES,
    VENUE2_RESERVES,
    price_pool,
)


@pytest.fixture
def scanner_config():
    return ScannerConfig()


@pytest.fixture
def venue1():
    return price_pool(SOROSWAP_POOL, VENUE1_RESERVES)


@pytest.fixture
def venue2():
    return price_pool(AQUARIUS_POOL, VENUE2_RESERVES)


@pytest.fixture
def scenario_opportunity(scanner_config, venue1, venue2):
    """The profitable XLM round trip: sell on venue2, buy back on venue1"""
    opportunities = OpportunityDetector(scanner_config).detect([venue1, venue2])
    assert len(opportunities) == 1
    return opportunities[0]
