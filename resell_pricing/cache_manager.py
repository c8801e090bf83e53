#!/usr/bin/env python3
"""
Cache Manager for Market Snapshots

Keeps market snapshots in memory for the lifetime of the process so repeated
lookups within the TTL return the same snapshot without network access.
Entries are evicted lazily when a lookup finds them expired.
"""

import logging
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from resell_pricing import ConditionGrade, MarketSnapshot
from resell_pricing.sources import CancellationToken
from config import PRICING_CONFIG

logger = logging.getLogger(__name__)

WAIT_POLL_SECONDS = 0.1


@dataclass(frozen=True)
class CacheEntry:
    snapshot: MarketSnapshot
    captured_at: datetime

    def is_expired(self, now: datetime, ttl: timedelta) -> bool:
        return now - self.captured_at >= ttl


def generate_cache_key(brand: str, model: str, size: str, condition: ConditionGrade) -> str:
    """Generate consistent cache key from brand, model, size and condition"""
    # Normalize to lowercase and remove extra whitespace
    parts = [' '.join((value or '').lower().split()) for value in (brand, model, size)]
    return f"{'_'.join(parts)}_{condition.name.lower()}"


class CacheManager:
    """Thread-safe in-memory TTL cache for market snapshots"""

    def __init__(self, ttl_hours: float = None, clock: Callable[[], datetime] = None):
        """Initialize cache manager"""
        if ttl_hours is None:
            ttl_hours = PRICING_CONFIG['cache_duration_hours']

        self.ttl = timedelta(hours=ttl_hours)
        self.clock = clock or datetime.now
        self._entries: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, Future] = {}
        self._lock = threading.Lock()
        logger.debug(f"Cache manager initialized (ttl: {ttl_hours}h)")

    def _lookup_locked(self, cache_key: str) -> Optional[MarketSnapshot]:
        entry = self._entries.get(cache_key)
        if entry is None:
            return None

        if entry.is_expired(self.clock(), self.ttl):
            logger.debug(f"Cache expired: {cache_key}")
            del self._entries[cache_key]
            return None

        return entry.snapshot

    def get_cached_snapshot(self, cache_key: str) -> Optional[MarketSnapshot]:
        """
        Retrieve a cached snapshot if available and fresh.

        Returns:
            MarketSnapshot if found and fresh, None otherwise
        """
        with self._lock:
            snapshot = self._lookup_locked(cache_key)

        if snapshot is None:
            logger.debug(f"Cache miss: {cache_key}")
        else:
            logger.info(f"Cache hit: {cache_key}")
        return snapshot

    def cache_snapshot(self, cache_key: str, snapshot: MarketSnapshot) -> None:
        """Store a snapshot, replacing any previous entry for the key"""
        captured_at = self.clock()
        with self._lock:
            self._entries[cache_key] = CacheEntry(snapshot=snapshot, captured_at=captured_at)

        expires_at = captured_at + self.ttl
        logger.info(f"Cached market snapshot: {cache_key} (expires: {expires_at.strftime('%Y-%m-%d %H:%M')})")

    def get_or_fetch(self, cache_key: str, fetch: Callable[[], MarketSnapshot],
                     cancel_token: Optional[CancellationToken] = None) -> MarketSnapshot:
        """
        Return the cached snapshot for a key, fetching it on a miss.

        At most one fetch per key runs at a time; concurrent callers for the
        same key wait for that fetch. If it fails, the next waiter fetches.

        Args:
            cache_key: Cache key
            fetch: Builds a fresh snapshot
            cancel_token: Cancellation token of the calling analysis (optional)

        Returns:
            MarketSnapshot
        """
        while True:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            with self._lock:
                snapshot = self._lookup_locked(cache_key)
                if snapshot is not None:
                    logger.info(f"Cache hit: {cache_key}")
                    return snapshot

                pending = self._in_flight.get(cache_key)
                if pending is None:
                    pending = Future()
                    self._in_flight[cache_key] = pending
                    leader = True
                else:
                    leader = False

            if leader:
                return self._run_fetch(cache_key, fetch, pending)

            logger.debug(f"Waiting for in-flight fetch: {cache_key}")
            snapshot = self._wait_for(pending, cancel_token)
            if snapshot is not None:
                return snapshot

    def _run_fetch(self, cache_key: str, fetch: Callable[[], MarketSnapshot],
                   pending: Future) -> MarketSnapshot:
        logger.info(f"Cache miss: {cache_key} - fetching fresh market data")
        try:
            snapshot = fetch()
        except BaseException as e:
            with self._lock:
                self._in_flight.pop(cache_key, None)
            pending.set_exception(e)
            raise

        captured_at = self.clock()
        with self._lock:
            self._entries[cache_key] = CacheEntry(snapshot=snapshot, captured_at=captured_at)
            self._in_flight.pop(cache_key, None)
        pending.set_result(snapshot)

        logger.info(f"Cached market snapshot: {cache_key} (expires: {(captured_at + self.ttl).strftime('%Y-%m-%d %H:%M')})")
        return snapshot

    def _wait_for(self, pending: Future,
                  cancel_token: Optional[CancellationToken]) -> Optional[MarketSnapshot]:
        """Wait for another caller's fetch; None means it failed and the caller should retry"""
        while True:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            try:
                return pending.result(timeout=WAIT_POLL_SECONDS)
            except FutureTimeout:
                continue
            except Exception as e:
                logger.debug(f"In-flight fetch failed ({e}), retrying")
                return None

    def clear_all_cache(self) -> int:
        """
        Clear entire cache.

        Returns:
            Number of entries deleted
        """
        with self._lock:
            deleted_count = len(self._entries)
            self._entries.clear()

        logger.info(f"Cleared all cache ({deleted_count} entries)")
        return deleted_count

    def get_cache_stats(self) -> dict:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache stats
        """
        now = self.clock()
        with self._lock:
            total_count = len(self._entries)
            valid_count = sum(1 for entry in self._entries.values() if not entry.is_expired(now, self.ttl))
            in_flight = len(self._in_flight)

        return {
            'total_entries': total_count,
            'valid_entries': valid_count,
            'stale_entries': total_count - valid_count,
            'in_flight': in_flight
        }


# Process-wide cache instance
_cache_instance = None
_cache_lock = threading.Lock()


def get_cache() -> CacheManager:
    """Get or create the process-wide cache instance"""
    global _cache_instance
    with _cache_lock:
        if _cache_instance is None:
            _cache_instance = CacheManager()
        return _cache_instance
