"""
Shared fixtures: a controllable clock, in-memory sold-listing sources and
a listing factory.
"""

import threading
from datetime import datetime, timedelta

import pytest

from resell_pricing import (
    CompetitionLevel, ConditionGrade, DemandReport, MarketSnapshot, SearchVolume,
    SoldListing, TimeToSell, TrendReport
)
from resell_pricing.cache_manager import CacheManager
from resell_pricing.market_aggregator import MarketDataAggregator
from resell_pricing.sources import SoldListingSource
from config import Config

NOW = datetime(2025, 3, 15, 12, 0, 0)


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeSource(SoldListingSource):
    """Sold-listing source returning canned listings or raising a canned error"""

    def __init__(self, name, listings=None, error=None, configured=True,
                 delay=0.0, gate=None):
        self.name = name
        self.listings = list(listings or [])
        self.error = error
        self.configured = configured
        self.delay = delay
        self.gate = gate
        self.started = threading.Event()
        self.calls = 0
        self.queries = []
        self._lock = threading.Lock()

    def is_configured(self):
        return self.configured

    def search(self, query, condition=None, timeout=15.0, cancel_token=None):
        with self._lock:
            self.calls += 1
            self.queries.append(query)
        self.started.set()

        if self.gate is not None:
            self.gate.wait(5)
        if self.delay:
            if cancel_token is not None:
                cancel_token.wait(self.delay)
            else:
                threading.Event().wait(self.delay)
        if self.error is not None:
            raise self.error
        return self.listings


def make_listing(price=100.0, days_ago=1, title=None, condition="Pre-owned",
                 now=NOW, source="ebay_browse", **kwargs):
    return SoldListing(
        title=title or f"Nike Air Force 1 Low ${price:.2f}",
        price=price,
        sold_date=now - timedelta(days=days_ago),
        condition=condition,
        source=source,
        **kwargs
    )


def make_snapshot(average_price=100.0, competition=CompetitionLevel.MODERATE,
                  is_fallback=False, listings=None, condition=ConditionGrade.GOOD):
    listings = tuple(listings or (make_listing(price=average_price),))
    return MarketSnapshot(
        search_key="nike_air force 1_10_good",
        condition=condition,
        listings=listings,
        price_by_grade={condition: average_price},
        average_price=average_price,
        trend=TrendReport(),
        demand=DemandReport(
            average_watchers=5.0,
            average_sale_days=21.0,
            search_volume=SearchVolume.LOW,
            competition=competition,
            time_to_sell=TimeToSell.NORMAL
        ),
        last_updated=NOW,
        is_fallback=is_fallback
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    """Configuration with every external integration switched off"""
    config = Config()
    config.openai_api_key = ''
    config.ebay_client_id = ''
    config.ebay_client_secret = ''
    config.tavily_api_key = ''
    config.upcitemdb_api_key = ''
    config.barcodelookup_api_key = ''
    config.primary_source_timeout = 15.0
    config.secondary_source_timeout = 45.0
    config.rate_limit_interval = 0.0
    return config


@pytest.fixture
def cache(clock):
    return CacheManager(ttl_hours=24, clock=clock)


@pytest.fixture
def aggregator_factory(cache, clock, config):
    def build(*sources, timeouts=None):
        return MarketDataAggregator(sources=list(sources), cache=cache, config=config,
                                    clock=clock, timeouts=timeouts)
    return build
