#!/usr/bin/env python3
"""
Core Pricing Engine

Turns a market snapshot into a three-tier price ladder using the formula:
recommended = max(avg_sold * condition * competition * category * brand, floor)
"""

import logging
from typing import List, Optional

from resell_pricing import (
    CompetitionLevel, ConditionGrade, ConfidenceReport, FeeBreakdown, Identification, MarketSnapshot,
    PricingRecommendation, PricingStrategy, SearchVolume, TrendDirection
)
from config import PRICING_CONFIG

logger = logging.getLogger(__name__)


def validate_quick_sale_ratio(ratio: float) -> float:
    low, high = PRICING_CONFIG['quick_sale_ratio_range']
    if not low <= ratio <= high:
        raise ValueError(f"Quick-sale ratio must be between {low} and {high}, got {ratio}")
    return ratio


def brand_multiplier(brand: str) -> float:
    """Premium multiplier for brands with strong resale demand (1.0 otherwise)"""
    lowered = (brand or '').lower()
    for name, multiplier in PRICING_CONFIG['brand_multipliers'].items():
        if name in lowered:
            return multiplier
    return 1.0


def calculate_fees(price: float) -> FeeBreakdown:
    """Selling costs for one sale: percentage marketplace fee plus flat shipping and listing fees"""
    return FeeBreakdown(
        marketplace_fee=round(price * PRICING_CONFIG['marketplace_fee_rate'], 2),
        shipping_cost=PRICING_CONFIG['shipping_cost'],
        listing_fee=PRICING_CONFIG['listing_fee']
    )


def net_profit(price: float) -> float:
    """What the seller keeps from a sale at price after selling costs (may be negative)"""
    return round(price - calculate_fees(price).total, 2)


def resale_potential(snapshot: MarketSnapshot, grade: ConditionGrade,
                     identification: Identification) -> int:
    """
    Score how attractive an item is to resell, 1 (poor) to 10 (excellent).

    Starts from a neutral 5 and adds points for each favorable market or item signal.
    """
    potential = PRICING_CONFIG['resale_potential_base']

    if identification.confidence > 0.8:
        potential += 1
    if snapshot.demand.search_volume == SearchVolume.HIGH:
        potential += 2
    if snapshot.competition == CompetitionLevel.LOW:
        potential += 1
    if grade.name in PRICING_CONFIG['premium_grades']:
        potential += 1
    if not snapshot.is_fallback:
        potential += 1

    return min(10, max(1, potential))


def calculate_pricing(snapshot: MarketSnapshot, grade: ConditionGrade,
                      identification: Identification,
                      quick_sale_ratio: Optional[float] = None) -> PricingRecommendation:
    """
    Calculate the price ladder for an item.

    Args:
        snapshot: Market snapshot for the item
        grade: Assessed condition grade
        identification: Item identification (category and brand adjustments)
        quick_sale_ratio: Quick-sale price as a share of recommended (0.85-0.90)

    Returns:
        PricingRecommendation with quick < recommended < max profit

    Raises:
        ValueError: when quick_sale_ratio is out of range
    """
    config = PRICING_CONFIG
    ratio = validate_quick_sale_ratio(
        config['quick_sale_ratio'] if quick_sale_ratio is None else quick_sale_ratio
    )

    condition_mult = grade.multiplier
    competition_mult = config['competition_multipliers'][snapshot.competition.name]
    category_mult = config['category_multipliers'].get(identification.category.name, 1.0)
    brand_mult = brand_multiplier(identification.brand)

    adjusted = snapshot.average_price * condition_mult * competition_mult * category_mult * brand_mult
    recommended = round(max(adjusted, config['price_floor']), 2)
    quick_sale = round(recommended * ratio, 2)
    max_profit = round(recommended * config['max_profit_ratio'], 2)

    logger.info(f"Pricing calculation: ${snapshot.average_price:.2f} * {condition_mult} * {competition_mult} "
                f"* {category_mult} * {brand_mult} = ${adjusted:.2f} -> ${recommended:.2f}")

    if grade.name in config['premium_grades']:
        strategy = PricingStrategy.PREMIUM
    else:
        strategy = PricingStrategy.COMPETITIVE

    justification = _build_justification(
        snapshot, grade, identification, category_mult, brand_mult, adjusted, recommended
    )

    quick_net, recommended_net, max_net = (net_profit(price) for price in (quick_sale, recommended, max_profit))
    potential = resale_potential(snapshot, grade, identification)
    logger.info(f"Net after fees: quick ${quick_net:.2f}, recommended ${recommended_net:.2f}, "
                f"max ${max_net:.2f}; resale potential {potential}/10")

    return PricingRecommendation(
        recommended_price=recommended,
        quick_sale_price=quick_sale,
        max_profit_price=max_profit,
        strategy=strategy,
        justification=tuple(justification),
        fees=calculate_fees(recommended),
        quick_sale_net=quick_net,
        recommended_net=recommended_net,
        max_profit_net=max_net,
        resale_potential=potential
    )


def _build_justification(snapshot: MarketSnapshot, grade: ConditionGrade,
                         identification: Identification, category_mult: float,
                         brand_mult: float, adjusted: float, recommended: float) -> List[str]:
    lines = []

    if snapshot.is_fallback:
        lines.append(f"No recent sold listings found; using a conservative estimate of "
                     f"${snapshot.average_price:.2f}")
    else:
        low, high = snapshot.price_range
        lines.append(f"Based on {snapshot.sold_count} sold listings averaging ${snapshot.average_price:.2f} "
                     f"(range ${low:.2f}-${high:.2f})")

    lines.append(f"Condition {grade.label}: {grade.multiplier:.0%} of market value")
    lines.append(f"Competition is {snapshot.competition.value}")

    if category_mult != 1.0:
        lines.append(f"{identification.category.value.title()} adjustment: x{category_mult:.2f}")
    if brand_mult != 1.0:
        lines.append(f"{identification.brand} brand premium: x{brand_mult:.2f}")

    trend = snapshot.trend
    if trend.direction != TrendDirection.STABLE:
        lines.append(f"Prices are {trend.direction.value} ({trend.strength.value}, {trend.change_pct:+.1f}%)")
    else:
        lines.append("Prices are stable")
    if trend.seasonal_note:
        lines.append(trend.seasonal_note)

    if recommended > adjusted:
        lines.append(f"Raised to the ${PRICING_CONFIG['price_floor']:.2f} minimum price")
    if snapshot.is_fallback:
        lines.append("Warning: limited market data, verify the price before listing")

    return lines


def get_pricing_summary(pricing: PricingRecommendation,
                        snapshot: Optional[MarketSnapshot] = None,
                        confidence: Optional[ConfidenceReport] = None) -> str:
    """
    Generate a human-readable pricing summary.

    Args:
        pricing: PricingRecommendation object
        snapshot: Market snapshot the pricing came from (optional)
        confidence: Confidence report (optional)

    Returns:
        Formatted summary string
    """
    summary = f"""
Pricing Summary
===============
Recommended:    ${pricing.recommended_price:.2f}
Quick Sale:     ${pricing.quick_sale_price:.2f}
Max Profit:     ${pricing.max_profit_price:.2f}
Strategy:       {pricing.strategy.value}
Resale Potential: {pricing.resale_potential}/10
"""

    if pricing.fees is not None:
        summary += f"""
Net After Fees:
- Quick Sale:      ${pricing.quick_sale_net:.2f}
- Recommended:     ${pricing.recommended_net:.2f}
- Max Profit:      ${pricing.max_profit_net:.2f}
- Fees at recommended: ${pricing.fees.total:.2f} (marketplace ${pricing.fees.marketplace_fee:.2f}, \
shipping ${pricing.fees.shipping_cost:.2f}, listing ${pricing.fees.listing_fee:.2f})
"""

    if confidence is not None:
        summary += f"""
Confidence:     {confidence.overall:.0%} (data quality: {confidence.data_quality.value})
"""

    if snapshot is not None:
        low, high = snapshot.price_range
        summary += f"""
Market Data:
- Sold listings:   {snapshot.evidence_count}
- Avg sold price:  ${snapshot.average_price:.2f}
- Price range:     ${low:.2f} - ${high:.2f}
- Trend:           {snapshot.trend.direction.value} ({snapshot.trend.timeframe})
- Competition:     {snapshot.competition.value}
- Time to sell:    {snapshot.demand.time_to_sell.value}
- Sources:         {', '.join(snapshot.sources) or 'none'}
"""
        if snapshot.price_by_grade:
            summary += "\nBy Condition:\n"
            for grade, price in snapshot.price_by_grade.items():
                summary += f"- {grade.label + ':':<27}${price:.2f}\n"

    summary += "\nReasoning:\n" + '\n'.join(f"- {line}" for line in pricing.justification)
    return summary.strip()
