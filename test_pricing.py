#!/usr/bin/env python3
"""
Tests for the pricing engine and confidence scoring
"""

from dataclasses import replace

import pytest
from hypothesis import given, strategies as st

from resell_pricing import (
    CompetitionLevel, ConditionGrade, DataQuality, Identification, IdentificationMethod,
    PricingStrategy, ProductCategory, SearchVolume
)
from resell_pricing.confidence import grade_data_quality, score_confidence, score_snapshot_confidence
from resell_pricing.pricing_engine import (
    brand_multiplier, calculate_fees, calculate_pricing, get_pricing_summary, net_profit, resale_potential
)

from conftest import make_snapshot


def identify(brand="Nike", category=ProductCategory.OTHER):
    return Identification(name=f"{brand} item", brand=brand, category=category,
                          method=IdentificationMethod.VISUAL_ONLY, confidence=0.9)


def test_basic_ladder():
    pricing = calculate_pricing(make_snapshot(100.0), ConditionGrade.GOOD, identify())

    assert pricing.recommended_price == 60.0
    assert pricing.quick_sale_price == 51.0
    assert pricing.max_profit_price == 69.0
    assert pricing.strategy == PricingStrategy.COMPETITIVE


def test_brand_and_competition_adjustments():
    snapshot = make_snapshot(100.0, competition=CompetitionLevel.LOW)
    pricing = calculate_pricing(snapshot, ConditionGrade.NEW_WITH_TAGS,
                                identify("Jordan", ProductCategory.SNEAKERS))

    assert pricing.recommended_price == 115.5
    assert pricing.strategy == PricingStrategy.PREMIUM
    assert any("brand premium" in line for line in pricing.justification)


def test_category_adjustment():
    snapshot = make_snapshot(200.0, competition=CompetitionLevel.SATURATED)
    pricing = calculate_pricing(snapshot, ConditionGrade.LIKE_NEW,
                                identify("Apple", ProductCategory.ELECTRONICS))

    assert pricing.recommended_price == pytest.approx(200.0 * 0.85 * 0.90 * 0.90, abs=0.01)
    assert pricing.strategy == PricingStrategy.PREMIUM
    assert any("Electronics adjustment" in line for line in pricing.justification)


def test_price_floor():
    pricing = calculate_pricing(make_snapshot(3.0), ConditionGrade.FOR_PARTS_NOT_WORKING, identify())

    assert pricing.recommended_price == 5.0
    assert pricing.quick_sale_price == pytest.approx(4.25)
    assert pricing.max_profit_price == pytest.approx(5.75)
    assert any("minimum price" in line for line in pricing.justification)


@pytest.mark.parametrize("ratio", [0.5, 0.84, 0.91, 1.0])
def test_quick_sale_ratio_out_of_range(ratio):
    with pytest.raises(ValueError):
        calculate_pricing(make_snapshot(), ConditionGrade.GOOD, identify(), quick_sale_ratio=ratio)


def test_quick_sale_ratio_upper_bound():
    pricing = calculate_pricing(make_snapshot(100.0), ConditionGrade.NEW_WITH_TAGS, identify(),
                                quick_sale_ratio=0.90)
    assert pricing.quick_sale_price == 90.0


def test_fallback_warning():
    pricing = calculate_pricing(make_snapshot(20.0, is_fallback=True), ConditionGrade.GOOD, identify())
    assert pricing.justification[0].startswith("No recent sold listings")
    assert pricing.justification[-1].startswith("Warning")


def test_brand_multiplier_matches_within_brand_text():
    assert brand_multiplier("Air Jordan") == 1.10
    assert brand_multiplier("Off-White") == 1.05
    assert brand_multiplier("Nike") == 1.0
    assert brand_multiplier("") == 1.0


@given(
    average=st.floats(min_value=0.01, max_value=100000, allow_nan=False),
    grade=st.sampled_from(list(ConditionGrade)),
    competition=st.sampled_from(list(CompetitionLevel)),
    category=st.sampled_from(list(ProductCategory)),
    brand=st.sampled_from(["Nike", "Jordan", "Supreme", "Off-White", "Sony", ""]),
    ratio=st.floats(min_value=0.85, max_value=0.90),
)
def test_price_ladder_is_monotonic(average, grade, competition, category, brand, ratio):
    snapshot = make_snapshot(average, competition=competition)
    pricing = calculate_pricing(snapshot, grade, identify(brand, category), quick_sale_ratio=ratio)

    assert pricing.quick_sale_price < pricing.recommended_price < pricing.max_profit_price
    assert pricing.recommended_price >= 5.0
    assert pricing.quick_sale_net <= pricing.recommended_net <= pricing.max_profit_net
    assert pricing.recommended_net < pricing.recommended_price
    assert 1 <= pricing.resale_potential <= 10


def test_pricing_summary():
    snapshot = make_snapshot(100.0)
    pricing = calculate_pricing(snapshot, ConditionGrade.GOOD, identify())
    confidence = score_snapshot_confidence(0.9, 0.8, snapshot)

    summary = get_pricing_summary(pricing, snapshot, confidence)

    assert "Recommended:    $60.00" in summary
    assert "Quick Sale:     $51.00" in summary
    assert "data quality: limited" in summary
    assert "By Condition:" in summary
    assert "Resale Potential: 7/10" in summary
    assert "Net After Fees:" in summary
    assert "- Recommended:     $43.25" in summary


# Confidence scoring

@pytest.mark.parametrize("count,expected", [
    (0, DataQuality.INSUFFICIENT),
    (1, DataQuality.LIMITED),
    (4, DataQuality.LIMITED),
    (5, DataQuality.FAIR),
    (19, DataQuality.FAIR),
    (20, DataQuality.GOOD),
    (49, DataQuality.GOOD),
    (50, DataQuality.EXCELLENT),
    (500, DataQuality.EXCELLENT),
])
def test_data_quality_thresholds(count, expected):
    assert grade_data_quality(count) == expected


def test_overall_is_mean_of_components():
    report = score_confidence(0.9, 0.6, 25)
    assert report.pricing == 0.5
    assert report.overall == pytest.approx((0.9 + 0.6 + 0.5) / 3)


def test_no_evidence_scores():
    report = score_confidence(0.0, 0.0, 0)
    assert report.overall == 0.0
    assert report.data_quality == DataQuality.INSUFFICIENT


def test_fallback_snapshot_counts_as_no_evidence():
    report = score_snapshot_confidence(0.9, 0.8, make_snapshot(20.0, is_fallback=True))
    assert report.pricing == 0.0
    assert report.data_quality == DataQuality.INSUFFICIENT


@given(
    st.floats(allow_nan=False),
    st.floats(allow_nan=False),
    st.integers(min_value=-10, max_value=100000),
)
def test_confidence_bounded(identification, condition, count):
    report = score_confidence(identification, condition, count)
    assert 0.0 <= report.overall <= 1.0
    assert 0.0 <= report.identification <= 1.0
    assert 0.0 <= report.condition <= 1.0
    assert 0.0 <= report.pricing <= 1.0


# Selling costs and resale potential

def test_fees_and_net_profit():
    fees = calculate_fees(60.0)

    assert fees.marketplace_fee == 7.95
    assert fees.shipping_cost == 8.50
    assert fees.listing_fee == 0.30
    assert fees.total == 16.75
    assert net_profit(60.0) == 43.25
    assert net_profit(5.0) < 0


def test_pricing_carries_net_per_tier():
    pricing = calculate_pricing(make_snapshot(100.0), ConditionGrade.GOOD, identify())

    assert pricing.fees.total == 16.75
    assert pricing.recommended_net == 43.25
    assert pricing.quick_sale_net == pytest.approx(51.0 - 6.76 - 8.80, abs=0.011)
    assert pricing.max_profit_net == pytest.approx(69.0 - 9.14 - 8.80, abs=0.011)


def test_resale_potential():
    assert calculate_pricing(make_snapshot(100.0), ConditionGrade.GOOD, identify()).resale_potential == 7

    snapshot = make_snapshot(100.0, competition=CompetitionLevel.LOW)
    assert resale_potential(snapshot, ConditionGrade.NEW_WITH_TAGS, identify("Jordan")) == 9

    unsure = replace(identify(), confidence=0.4)
    fallback = make_snapshot(20.0, is_fallback=True)
    assert resale_potential(fallback, ConditionGrade.ACCEPTABLE, unsure) == 5


def test_resale_potential_is_capped_at_ten():
    snapshot = make_snapshot(100.0, competition=CompetitionLevel.LOW)
    hot = replace(snapshot, demand=replace(snapshot.demand, search_volume=SearchVolume.HIGH))

    assert resale_potential(hot, ConditionGrade.LIKE_NEW, identify()) == 10
