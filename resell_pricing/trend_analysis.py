#!/usr/bin/env python3
"""
Price Trend Analysis

Classifies the direction and strength of recent sold prices by comparing
the earlier and later halves of the sale history.
"""

import logging
import statistics
from typing import Iterable, Optional, Tuple

from resell_pricing import (
    ProductCategory, SoldListing, TrendDirection, TrendReport, TrendStrength
)
from config import TREND_CONFIG

logger = logging.getLogger(__name__)

MONTH_NAMES = {11: 'Nov', 12: 'Dec', 1: 'Jan'}


def classify_change(change_pct: float) -> Tuple[TrendDirection, TrendStrength]:
    """
    Map a percentage price change to a (direction, strength) pair.

    Boundaries count toward the increasing/decreasing side: +3% is a
    moderate increase and -10% is a strong decrease.
    """
    strong = TREND_CONFIG['strong_change_pct']
    moderate = TREND_CONFIG['moderate_change_pct']

    if change_pct >= strong:
        return TrendDirection.INCREASING, TrendStrength.STRONG
    if change_pct >= moderate:
        return TrendDirection.INCREASING, TrendStrength.MODERATE
    if change_pct > -moderate:
        return TrendDirection.STABLE, TrendStrength.WEAK
    if change_pct > -strong:
        return TrendDirection.DECREASING, TrendStrength.MODERATE
    return TrendDirection.DECREASING, TrendStrength.STRONG


def seasonal_note(listings, category: Optional[ProductCategory] = None) -> Optional[str]:
    """Annotate holiday-month sales or a known category pattern"""
    holiday_months = sorted(
        {listing.sold_date.month for listing in listings if listing.sold_date.month in TREND_CONFIG['holiday_months']},
        key=lambda month: (month < 11, month)
    )
    if holiday_months:
        months = ', '.join(MONTH_NAMES[month] for month in holiday_months)
        return f"Recent sales include holiday months ({months}); prices may carry seasonal lift"

    if category is not None:
        return TREND_CONFIG['seasonal_patterns'].get(category.name)
    return None


def analyze_trend(listings: Iterable[SoldListing],
                  category: Optional[ProductCategory] = None) -> TrendReport:
    """
    Derive the price trend of a set of sold listings.

    Args:
        listings: Sold listings (any order)
        category: Product category for the seasonal annotation (optional)

    Returns:
        TrendReport
    """
    ordered = sorted(listings, key=lambda listing: listing.sold_date)

    if len(ordered) < TREND_CONFIG['min_listings']:
        logger.debug(f"Only {len(ordered)} listings, not enough for a trend")
        return TrendReport(
            direction=TrendDirection.STABLE,
            strength=TrendStrength.WEAK,
            change_pct=0.0,
            timeframe="insufficient data",
            seasonal_note=seasonal_note([], category)
        )

    midpoint = len(ordered) // 2
    earlier = ordered[:midpoint]
    later = ordered[midpoint:]

    earlier_avg = statistics.mean(listing.price for listing in earlier)
    later_avg = statistics.mean(listing.price for listing in later)

    # Rounded so exact threshold ratios are not lost to float noise
    change_pct = round((later_avg - earlier_avg) / earlier_avg * 100, 4)
    direction, strength = classify_change(change_pct)

    first_date = ordered[0].sold_date.date()
    last_date = ordered[-1].sold_date.date()
    timeframe = f"{first_date.isoformat()} to {last_date.isoformat()}"

    logger.info(f"Trend: {direction.value}/{strength.value} ({change_pct:+.1f}%) over {timeframe}")

    return TrendReport(
        direction=direction,
        strength=strength,
        change_pct=change_pct,
        timeframe=timeframe,
        seasonal_note=seasonal_note(later, category)
    )
