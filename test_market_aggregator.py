#!/usr/bin/env python3
"""
Tests for the snapshot cache and market data aggregation
"""

import threading
import time

import pytest

from resell_pricing import (
    CompetitionLevel, ConditionGrade, DataQuality, Identification, IdentificationMethod,
    ProductCategory
)
from resell_pricing.cache_manager import generate_cache_key
from resell_pricing.confidence import score_snapshot_confidence
from resell_pricing.market_aggregator import merge_listings
from resell_pricing.sources import AnalysisCancelled, CancellationToken, SourceError

from conftest import FakeSource, make_listing, make_snapshot

AIR_FORCE_1 = Identification(
    name="Nike Air Force 1 Low",
    brand="Nike",
    product_line="Air Force 1 Low",
    size="10",
    category=ProductCategory.SNEAKERS,
    method=IdentificationMethod.VISUAL_AND_TEXT,
    confidence=0.9
)


def test_cache_key_normalization():
    key = generate_cache_key("  Nike ", "Air   Force 1", "10", ConditionGrade.LIKE_NEW)
    assert key == "nike_air force 1_10_like_new"


# Cache

def test_cache_hit_returns_same_snapshot(aggregator_factory):
    source = FakeSource("ebay_browse", [make_listing(price=100.0)])
    aggregator = aggregator_factory(source)

    first = aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD)
    second = aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD)

    assert second is first
    assert source.calls == 1


def test_different_grade_is_a_different_key(aggregator_factory):
    source = FakeSource("ebay_browse", [make_listing(price=100.0)])
    aggregator = aggregator_factory(source)

    aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD)
    aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.LIKE_NEW)

    assert source.calls == 2


def test_cache_expires_after_ttl(aggregator_factory, clock):
    source = FakeSource("ebay_browse", [make_listing(price=100.0)])
    aggregator = aggregator_factory(source)

    first = aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD)
    clock.advance(hours=23, minutes=59)
    assert aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD) is first

    clock.advance(minutes=1)
    refreshed = aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD)

    assert refreshed is not first
    assert source.calls == 2
    assert refreshed.last_updated > first.last_updated


def test_cache_stats_and_clear(cache, clock):
    cache.cache_snapshot("a", make_snapshot())
    clock.advance(hours=25)
    cache.cache_snapshot("b", make_snapshot())

    stats = cache.get_cache_stats()
    assert stats['total_entries'] == 2
    assert stats['valid_entries'] == 1
    assert stats['stale_entries'] == 1

    assert cache.get_cached_snapshot("a") is None
    assert cache.clear_all_cache() == 1
    assert cache.get_cached_snapshot("b") is None


def test_concurrent_callers_share_one_fetch(aggregator_factory):
    gate = threading.Event()
    source = FakeSource("ebay_browse", [make_listing(price=100.0)], gate=gate)
    aggregator = aggregator_factory(source)
    results = []

    def fetch():
        results.append(aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD))

    threads = [threading.Thread(target=fetch) for _ in range(3)]
    threads[0].start()
    assert source.started.wait(5)
    for thread in threads[1:]:
        thread.start()
    time.sleep(0.2)
    gate.set()
    for thread in threads:
        thread.join(5)

    assert source.calls == 1
    assert len(results) == 3
    assert all(snapshot is results[0] for snapshot in results)


def test_failed_fetch_is_not_cached(cache):
    def failing():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        cache.get_or_fetch("k", failing)

    snapshot = make_snapshot()
    assert cache.get_or_fetch("k", lambda: snapshot) is snapshot


def test_waiter_takes_over_when_leader_fails(cache):
    started = threading.Event()
    release = threading.Event()
    snapshot = make_snapshot()
    errors = []
    results = []

    def failing():
        started.set()
        release.wait(5)
        raise RuntimeError("boom")

    def leader():
        try:
            cache.get_or_fetch("k", failing)
        except RuntimeError as e:
            errors.append(e)

    def waiter():
        results.append(cache.get_or_fetch("k", lambda: snapshot))

    leader_thread = threading.Thread(target=leader)
    leader_thread.start()
    assert started.wait(5)
    waiter_thread = threading.Thread(target=waiter)
    waiter_thread.start()
    time.sleep(0.2)
    release.set()
    leader_thread.join(5)
    waiter_thread.join(5)

    assert len(errors) == 1
    assert results == [snapshot]


# Aggregation

def test_air_force_1_scenario(aggregator_factory):
    primary_listings = [
        make_listing(price=90.0 + i, days_ago=1 + i, title=f"Nike Air Force 1 Low White #{i}",
                     condition="Pre-owned")
        for i in range(40)
    ]
    duplicates = [
        make_listing(price=listing.price, days_ago=1 + i, title=listing.title,
                     condition=listing.condition, source="web_research")
        for i, listing in enumerate(primary_listings[:3])
    ]
    secondary_listings = duplicates + [
        make_listing(price=120.0 + i, days_ago=2 + i, title=f"AF1 Low Triple White {i}",
                     condition="New with box", source="web_research")
        for i in range(12)
    ]
    primary = FakeSource("ebay_browse", primary_listings)
    secondary = FakeSource("web_research", secondary_listings)
    aggregator = aggregator_factory(primary, secondary)

    snapshot = aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD)
    confidence = score_snapshot_confidence(0.9, 0.8, snapshot)

    assert snapshot.sold_count == 52
    assert len(snapshot.listings) == 52
    unique_prices = [listing.price for listing in primary_listings + secondary_listings[3:]]
    assert snapshot.average_price == round(sum(unique_prices) / len(unique_prices), 2) == 113.19
    assert snapshot.competition == CompetitionLevel.SATURATED
    assert confidence.data_quality == DataQuality.EXCELLENT
    assert snapshot.sources == ("ebay_browse", "web_research")
    assert not snapshot.is_fallback
    assert set(snapshot.price_by_grade) == {ConditionGrade.GOOD, ConditionGrade.NEW_WITH_TAGS}
    # Primary listings come first and win duplicates
    assert all(listing.source == "ebay_browse" for listing in snapshot.listings[:40])
    assert primary.queries == ["Nike Air Force 1 Low 10"]


def test_zero_listing_scenario(aggregator_factory):
    aggregator = aggregator_factory(FakeSource("ebay_browse"), FakeSource("web_research"))

    snapshot = aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD)
    confidence = score_snapshot_confidence(0.9, 0.8, snapshot)

    assert snapshot.sold_count == 1
    assert snapshot.average_price == 20.0
    assert snapshot.is_fallback
    assert snapshot.evidence_count == 0
    assert confidence.data_quality == DataQuality.INSUFFICIENT


def test_no_configured_sources_falls_back(aggregator_factory):
    source = FakeSource("ebay_browse", [make_listing()], configured=False)
    aggregator = aggregator_factory(source)

    snapshot = aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD)

    assert source.calls == 0
    assert snapshot.is_fallback
    assert snapshot.sold_count >= 1


def test_failed_source_does_not_stop_others(aggregator_factory):
    broken = FakeSource("ebay_browse", error=SourceError("HTTP 500"))
    working = FakeSource("web_research", [make_listing(price=80.0), make_listing(price=90.0)])
    aggregator = aggregator_factory(broken, working)

    snapshot = aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD)

    assert snapshot.sold_count == 2
    assert snapshot.average_price == 85.0
    assert snapshot.sources == ("web_research",)


def test_unexpected_source_exception_is_contained(aggregator_factory):
    broken = FakeSource("ebay_browse", error=KeyError("itemSales"))
    aggregator = aggregator_factory(broken)

    assert aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD).is_fallback


def test_malformed_source_results_are_ignored(aggregator_factory):
    garbage = FakeSource("ebay_browse")
    garbage.listings = "not a list"
    working = FakeSource("web_research", [make_listing(price=75.0)])
    aggregator = aggregator_factory(garbage, working)

    snapshot = aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD)
    assert snapshot.sources == ("web_research",)


def test_slow_source_times_out(aggregator_factory):
    slow = FakeSource("ebay_browse", [make_listing(price=500.0)], delay=2.0)
    fast = FakeSource("web_research", [make_listing(price=100.0)])
    aggregator = aggregator_factory(slow, fast, timeouts={"ebay_browse": 0.3})

    started = time.monotonic()
    snapshot = aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD)

    assert time.monotonic() - started < 1.5
    assert snapshot.sources == ("web_research",)
    assert snapshot.average_price == 100.0


def test_listings_outside_window_are_dropped(aggregator_factory):
    source = FakeSource("ebay_browse", [
        make_listing(price=100.0, days_ago=60),
        make_listing(price=200.0, days_ago=61),
        make_listing(price=300.0, days_ago=400),
    ])
    aggregator = aggregator_factory(source)

    snapshot = aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD)

    assert snapshot.sold_count == 1
    assert snapshot.average_price == 100.0


def test_only_stale_listings_falls_back(aggregator_factory):
    source = FakeSource("ebay_browse", [make_listing(price=100.0, days_ago=90)])
    snapshot = aggregator_factory(source).get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD)

    assert snapshot.is_fallback
    assert snapshot.average_price == 20.0


def test_cancellation_interrupts_source_wait(aggregator_factory):
    slow = FakeSource("ebay_browse", [make_listing()], delay=5.0)
    aggregator = aggregator_factory(slow)
    token = CancellationToken()

    timer = threading.Timer(0.2, token.cancel)
    timer.start()
    started = time.monotonic()
    with pytest.raises(AnalysisCancelled):
        aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD, token)
    timer.join()

    assert token.cancelled
    assert time.monotonic() - started < 2.0


def test_merge_keeps_first_of_duplicates():
    first = make_listing(price=100.0, title="Same", source="ebay_browse")
    second = make_listing(price=100.004, title="Same ", source="web_research")
    different_day = make_listing(price=100.0, title="Same", days_ago=2, source="web_research")

    merged = merge_listings([[first], [second, different_day]])

    assert merged == [first, different_day]


def test_listing_price_must_be_positive():
    with pytest.raises(ValueError):
        make_listing(price=0.0)


@pytest.mark.parametrize("price", [float("nan"), float("inf")])
def test_listing_price_must_be_finite(price):
    with pytest.raises(ValueError):
        make_listing(price=price)


class CancellingSource(FakeSource):
    """Cancels the run on its first call, then returns its listings anyway"""

    def search(self, query, condition=None, timeout=15.0, cancel_token=None):
        listings = super().search(query, condition, timeout, cancel_token)
        if self.calls == 1:
            cancel_token.cancel()
        return listings


def test_cancelled_run_is_not_cached(aggregator_factory):
    source = CancellingSource("ebay_browse", [make_listing(price=100.0)])
    aggregator = aggregator_factory(source)

    with pytest.raises(AnalysisCancelled):
        aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD, CancellationToken())

    assert aggregator.cache.get_cache_stats()['total_entries'] == 0

    snapshot = aggregator.get_market_snapshot(AIR_FORCE_1, ConditionGrade.GOOD)
    assert source.calls == 2
    assert snapshot.average_price == 100.0
