#!/usr/bin/env python3
"""
Market Data Aggregator

Orchestrates the sold-listing sources and the cache, and builds the
market snapshot that pricing works from:

    cache lookup -> concurrent source queries -> merge + dedup
    -> trailing window -> grade buckets -> trend + demand -> cache store

Source failures never propagate; when nothing usable comes back the
snapshot is built around a single synthesized fallback listing.
"""

import logging
import statistics
import time
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from resell_pricing import ConditionGrade, Identification, MarketSnapshot, ProductCategory, SoldListing
from resell_pricing.cache_manager import CacheManager, generate_cache_key, get_cache
from resell_pricing.demand import estimate_demand
from resell_pricing.sources import AnalysisCancelled, CancellationToken, SoldListingSource
from resell_pricing.trend_analysis import analyze_trend
from config import Config, PRICING_CONFIG

logger = logging.getLogger(__name__)

FALLBACK_SOURCE = "fallback"
POLL_SECONDS = 0.1


def default_sources(config: Config) -> List[SoldListingSource]:
    """Sold-listing sources in priority order: marketplace API, then web research"""
    from resell_pricing.browse_api import EbayBrowseSource
    from resell_pricing.market_research import WebResearchSource

    return [EbayBrowseSource(config), WebResearchSource(config)]


def merge_listings(batches: Iterable[Sequence[SoldListing]]) -> List[SoldListing]:
    """
    Concatenate listing batches in priority order, dropping duplicates.

    Two listings are duplicates when title, price to the cent and sold
    calendar date all match; the first occurrence wins.
    """
    seen = set()
    merged = []
    duplicates = 0

    for batch in batches:
        for listing in batch:
            key = listing.dedup_key
            if key in seen:
                duplicates += 1
                continue
            seen.add(key)
            merged.append(listing)

    if duplicates:
        logger.info(f"Dropped {duplicates} duplicate listings")
    return merged


def filter_recent(listings: Iterable[SoldListing], now: datetime,
                  lookback_days: int = None) -> List[SoldListing]:
    """Keep listings sold within the trailing lookback window"""
    if lookback_days is None:
        lookback_days = PRICING_CONFIG['sold_items_lookback_days']
    cutoff = now - timedelta(days=lookback_days)
    return [listing for listing in listings if listing.sold_date >= cutoff]


def price_by_grade(listings: Iterable[SoldListing]) -> Dict[ConditionGrade, float]:
    """Average sold price per condition grade, parsed from listing labels"""
    buckets = defaultdict(list)
    for listing in listings:
        buckets[ConditionGrade.from_label(listing.condition)].append(listing.price)

    return {grade: round(statistics.mean(prices), 2)
            for grade, prices in sorted(buckets.items(), key=lambda item: item[0].rank)}


class MarketDataAggregator:
    """Builds cached market snapshots from the configured sold-listing sources"""

    def __init__(self, sources: Sequence[SoldListingSource] = None,
                 cache: CacheManager = None, config: Config = None,
                 clock: Callable[[], datetime] = None,
                 timeouts: Dict[str, float] = None):
        """
        Args:
            sources: Sources in priority order (defaults to eBay then web research)
            cache: Snapshot cache (defaults to the process-wide cache)
            config: Configuration (defaults to environment)
            clock: Returns the current time (defaults to datetime.now)
            timeouts: Per-source timeout overrides keyed by source name
        """
        self.config = config or Config()
        self.sources = list(sources) if sources is not None else default_sources(self.config)
        self.cache = cache if cache is not None else get_cache()
        self.clock = clock or datetime.now

        self.timeouts = {
            'ebay_browse': self.config.primary_source_timeout,
            'web_research': self.config.secondary_source_timeout,
        }
        self.timeouts.update(timeouts or {})

    def source_timeout(self, source: SoldListingSource) -> float:
        return self.timeouts.get(source.name, self.config.primary_source_timeout)

    def get_market_snapshot(self, identification: Identification, grade: ConditionGrade,
                            cancel_token: Optional[CancellationToken] = None) -> MarketSnapshot:
        """
        Get the market snapshot for an identified item in a given condition.

        Returns the cached snapshot while it is fresh; otherwise queries the
        sources and caches the new snapshot.

        Args:
            identification: What the item is
            grade: Condition grade of the item
            cancel_token: Cancellation token of the calling analysis (optional)

        Returns:
            MarketSnapshot (never empty; may be a fallback snapshot)

        Raises:
            AnalysisCancelled: when cancel_token fires
        """
        cache_key = generate_cache_key(
            identification.brand, identification.search_model, identification.size, grade
        )
        return self.cache.get_or_fetch(
            cache_key,
            lambda: self.build_snapshot(cache_key, identification, grade, cancel_token),
            cancel_token
        )

    def build_snapshot(self, cache_key: str, identification: Identification,
                       grade: ConditionGrade,
                       cancel_token: Optional[CancellationToken] = None) -> MarketSnapshot:
        """Query every source and build a fresh snapshot (no cache access)"""
        query = identification.search_query or identification.name
        batches, contributing = self._query_sources(query, cancel_token)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        merged = merge_listings(batches)
        now = self.clock()
        recent = filter_recent(merged, now)

        if len(recent) < len(merged):
            logger.info(f"Excluded {len(merged) - len(recent)} listings older than "
                        f"{PRICING_CONFIG['sold_items_lookback_days']} days")

        if not recent:
            logger.warning(f"No recent sold listings for {cache_key}, using fallback pricing")
            return self.fallback_snapshot(cache_key, grade, query, identification.category)

        snapshot = MarketSnapshot(
            search_key=cache_key,
            condition=grade,
            listings=tuple(recent),
            price_by_grade=price_by_grade(recent),
            average_price=round(statistics.mean(listing.price for listing in recent), 2),
            trend=analyze_trend(recent, identification.category),
            demand=estimate_demand(recent),
            last_updated=now,
            sources=tuple(contributing)
        )

        logger.info(f"Market snapshot: {snapshot.sold_count} sold, avg ${snapshot.average_price:.2f}, "
                    f"competition {snapshot.competition.value}, sources: {', '.join(snapshot.sources)}")
        return snapshot

    def fallback_snapshot(self, cache_key: str, grade: ConditionGrade, query: str = "",
                          category: Optional[ProductCategory] = None) -> MarketSnapshot:
        """Snapshot built around one synthesized listing at the nominal fallback price"""
        now = self.clock()
        fallback_listing = SoldListing(
            title=f"{query or cache_key} (estimated)",
            price=PRICING_CONFIG['fallback_price'],
            sold_date=now,
            condition=grade.label,
            source=FALLBACK_SOURCE
        )
        listings = (fallback_listing,)

        return MarketSnapshot(
            search_key=cache_key,
            condition=grade,
            listings=listings,
            price_by_grade={grade: fallback_listing.price},
            average_price=fallback_listing.price,
            trend=analyze_trend(listings, category),
            demand=estimate_demand(listings),
            last_updated=now,
            sources=(FALLBACK_SOURCE,),
            is_fallback=True
        )

    def _query_sources(self, query: str, cancel_token: Optional[CancellationToken]
                       ) -> Tuple[List[List[SoldListing]], List[str]]:
        """
        Run all configured sources concurrently and collect results in
        priority order.

        Returns:
            (listing batches in priority order, names of sources that returned listings)
        """
        active = []
        for source in self.sources:
            if source.is_configured():
                active.append(source)
            else:
                logger.info(f"Skipping unconfigured source: {source.name}")

        if not active:
            logger.warning("No sold-listing sources configured")
            return [], []

        executor = ThreadPoolExecutor(max_workers=len(active), thread_name_prefix="sold-source")
        started = time.monotonic()
        try:
            futures = [
                (source, executor.submit(source.search, query, None,
                                         self.source_timeout(source), cancel_token))
                for source in active
            ]

            batches = []
            contributing = []
            for source, future in futures:
                listings = self._collect(source, future, started, cancel_token)
                if listings:
                    batches.append(listings)
                    contributing.append(source.name)
            return batches, contributing
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _collect(self, source: SoldListingSource, future: Future, started: float,
                 cancel_token: Optional[CancellationToken]) -> List[SoldListing]:
        """Wait for one source until its deadline; failures yield an empty list"""
        deadline = started + self.source_timeout(source)

        while True:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                future.cancel()
                logger.error(f"Source {source.name} timed out after {self.source_timeout(source):.0f}s")
                return []

            try:
                listings = future.result(timeout=min(POLL_SECONDS, remaining))
                break
            except FutureTimeout:
                continue
            except AnalysisCancelled:
                raise
            except Exception as e:
                logger.error(f"Source {source.name} failed: {e}")
                return []

        # A source may return early because the run was cancelled
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        if not isinstance(listings, (list, tuple)) or not all(isinstance(item, SoldListing) for item in listings):
            logger.error(f"Source {source.name} returned malformed results, ignoring")
            return []

        logger.info(f"Source {source.name} returned {len(listings)} listings")
        return list(listings)
