#!/usr/bin/env python3
"""
Confidence Scoring

Combines identification, condition and market-data confidence into one
overall score and grades the amount of market evidence.
"""

from resell_pricing import ConfidenceReport, DataQuality, MarketSnapshot
from config import PRICING_CONFIG


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def grade_data_quality(sample_count: int) -> DataQuality:
    thresholds = PRICING_CONFIG['data_quality_thresholds']
    for name in ('EXCELLENT', 'GOOD', 'FAIR', 'LIMITED'):
        if sample_count >= thresholds[name]:
            return DataQuality[name]
    return DataQuality.INSUFFICIENT


def score_confidence(identification_confidence: float, condition_confidence: float,
                     sample_count: int) -> ConfidenceReport:
    """
    Score overall confidence as the mean of identification, condition and
    data confidence, where data confidence saturates at 50 listings.
    """
    sample_count = max(0, int(sample_count))
    identification = _clamp(identification_confidence)
    condition = _clamp(condition_confidence)
    pricing = min(1.0, sample_count / PRICING_CONFIG['full_confidence_sample_size'])

    return ConfidenceReport(
        overall=_clamp((identification + condition + pricing) / 3),
        identification=identification,
        condition=condition,
        pricing=pricing,
        data_quality=grade_data_quality(sample_count)
    )


def score_snapshot_confidence(identification_confidence: float, condition_confidence: float,
                              snapshot: MarketSnapshot) -> ConfidenceReport:
    """Score against a snapshot; a fallback snapshot counts as no evidence"""
    return score_confidence(identification_confidence, condition_confidence, snapshot.evidence_count)
