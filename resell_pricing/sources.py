#!/usr/bin/env python3
"""
Sold-Listing Source Contract

Defines the interface every sold-listing source implements, the errors a
source may raise, and the cancellation token threaded through the pipeline.
"""

import logging
import math
import threading
from datetime import datetime
from typing import List, Optional

from resell_pricing import ConditionGrade, SoldListing

logger = logging.getLogger(__name__)


class SourceError(Exception):
    """Raised when a sold-listing source cannot return listings."""


class AnalysisCancelled(Exception):
    """Raised at a suspension point once the caller cancelled the analysis."""


class CancellationToken:
    """Cooperative cancellation flag shared by every stage of one analysis"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelled("Analysis cancelled")

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds; returns True if cancelled meanwhile"""
        return self._event.wait(timeout)


class SoldListingSource:
    """Base class for sold-listing sources"""

    name = "source"

    def is_configured(self) -> bool:
        """Whether credentials for this source are present"""
        return True

    def search(self, query: str, condition: Optional[ConditionGrade] = None,
               timeout: float = 15.0,
               cancel_token: Optional[CancellationToken] = None) -> List[SoldListing]:
        """
        Search for recently sold listings.

        Args:
            query: Search text (brand + model + size)
            condition: Optional condition filter
            timeout: Seconds before the source is treated as failed
            cancel_token: Cancellation token of the calling analysis

        Returns:
            Zero or more SoldListing records

        Raises:
            SourceError: when the source fails
        """
        raise NotImplementedError


def parse_sold_date(value: Optional[str], default: Optional[datetime] = None) -> datetime:
    """
    Parse an ISO-8601 date from a source response into a naive local datetime.

    Unparseable or missing values return default (now when not given).
    """
    if default is None:
        default = datetime.now()
    if not value:
        return default

    try:
        parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
    except ValueError:
        logger.debug(f"Unparseable sold date: {value}")
        return default

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def parse_price(value) -> Optional[float]:
    """Parse a price value or string to float; None when missing, not finite or not positive"""
    if value is None:
        return None

    if isinstance(value, dict):
        value = value.get('value')
        if value is None:
            return None

    try:
        # Remove currency symbols and commas
        price_clean = str(value).replace('$', '').replace(',', '').replace('USD', '').strip()
        price = float(price_clean) if price_clean else None
    except (TypeError, ValueError):
        return None

    if price is None or not math.isfinite(price) or price <= 0:
        return None
    return price
