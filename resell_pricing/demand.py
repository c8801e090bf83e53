#!/usr/bin/env python3
"""
Demand Estimation

Coarse, threshold-based demand and competition classification from the
sample size and engagement signals of a listing set.
"""

import statistics
from typing import Sequence

from resell_pricing import CompetitionLevel, DemandReport, SearchVolume, SoldListing, TimeToSell
from config import DEMAND_CONFIG


def classify_search_volume(count: int) -> SearchVolume:
    if count >= DEMAND_CONFIG['search_volume_high']:
        return SearchVolume.HIGH
    if count >= DEMAND_CONFIG['search_volume_medium']:
        return SearchVolume.MEDIUM
    return SearchVolume.LOW


def classify_competition(count: int) -> CompetitionLevel:
    if count <= DEMAND_CONFIG['competition_low_max']:
        return CompetitionLevel.LOW
    if count <= DEMAND_CONFIG['competition_moderate_max']:
        return CompetitionLevel.MODERATE
    if count <= DEMAND_CONFIG['competition_high_max']:
        return CompetitionLevel.HIGH
    return CompetitionLevel.SATURATED


def classify_time_to_sell(days: float) -> TimeToSell:
    if days <= 1:
        return TimeToSell.IMMEDIATE
    if days <= 7:
        return TimeToSell.FAST
    if days <= 28:
        return TimeToSell.NORMAL
    if days <= 90:
        return TimeToSell.SLOW
    return TimeToSell.DIFFICULT


def estimate_sale_days(listings: Sequence[SoldListing]) -> float:
    """
    Typical days to sell: auction vs fixed-price durations averaged over the
    listing mix. Sale timestamps are not consulted.
    """
    if not listings:
        return DEMAND_CONFIG['fixed_price_duration_days']
    return statistics.mean(
        DEMAND_CONFIG['auction_duration_days'] if listing.auction
        else DEMAND_CONFIG['fixed_price_duration_days']
        for listing in listings
    )


def estimate_demand(listings: Sequence[SoldListing]) -> DemandReport:
    """Classify demand for a set of sold listings"""
    watcher_counts = [listing.watchers for listing in listings if listing.watchers is not None]
    average_watchers = statistics.mean(watcher_counts) if watcher_counts else DEMAND_CONFIG['default_watchers']

    sale_days = estimate_sale_days(listings)
    count = len(listings)

    return DemandReport(
        average_watchers=float(average_watchers),
        average_sale_days=float(sale_days),
        search_volume=classify_search_volume(count),
        competition=classify_competition(count),
        time_to_sell=classify_time_to_sell(sale_days)
    )
