#!/usr/bin/env python3
"""
Condition Assessment

Normalizes a free-form condition narrative into one of the nine ordered
ConditionGrade values. Matching is phrase based, most specific phrase first,
and unmatched text settles on the middle grade instead of failing.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from resell_pricing import ConditionAssessment, ConditionFactor, ConditionGrade, Severity

logger = logging.getLogger(__name__)

DEFAULT_MATCHED_CONFIDENCE = 0.8
UNMATCHED_CONFIDENCE = 0.3


def parse_condition_factors(raw_factors: Optional[Iterable[Dict[str, Any]]]) -> List[ConditionFactor]:
    """
    Convert provider factor dicts into ConditionFactor values.

    Expected keys: area, issue, severity, value_impact (percent). Entries
    without an issue are skipped.
    """
    factors = []
    for raw in raw_factors or []:
        if not isinstance(raw, dict):
            continue
        issue = str(raw.get('issue') or '').strip()
        if not issue:
            continue

        try:
            impact = float(raw.get('value_impact', raw.get('value_impact_pct', 0)) or 0)
        except (TypeError, ValueError):
            impact = 0.0

        factors.append(ConditionFactor(
            area=str(raw.get('area') or 'overall').strip(),
            issue=issue,
            severity=Severity.from_text(raw.get('severity')),
            value_impact_pct=max(0.0, min(100.0, impact))
        ))
    return factors


def assess_condition(narrative: Optional[str],
                     factors: Optional[Iterable[ConditionFactor]] = None,
                     confidence: Optional[float] = None,
                     label: Optional[str] = None) -> ConditionAssessment:
    """
    Grade a condition narrative.

    A canonical condition label, when given and recognized, decides the grade
    on its own; the narrative is only searched when the label does not match.

    Args:
        narrative: Free-form condition description (may be empty)
        factors: Structured condition factors (optional)
        confidence: Provider confidence in its description (optional)
        label: Canonical condition label reported by the provider (optional)

    Returns:
        ConditionAssessment
    """
    factors = tuple(factors or ())
    narrative = (narrative or '').strip()

    if not narrative:
        logger.warning("No condition description available, defaulting to Good")
        return ConditionAssessment(
            grade=ConditionGrade.default(),
            confidence=0.0,
            factors=factors,
            narrative=narrative
        )

    grade = ConditionGrade.match(label) or ConditionGrade.match(narrative)
    if grade is None:
        logger.info("Condition text did not match a known phrase, defaulting to Good")
        return ConditionAssessment(
            grade=ConditionGrade.default(),
            confidence=UNMATCHED_CONFIDENCE,
            factors=factors,
            narrative=narrative
        )

    if confidence is None:
        confidence = DEFAULT_MATCHED_CONFIDENCE

    logger.info(f"Condition graded: {grade.label} (x{grade.multiplier:.2f})")
    return ConditionAssessment(
        grade=grade,
        confidence=max(0.0, min(1.0, float(confidence))),
        factors=factors,
        narrative=narrative
    )


def factor_weight(factors: Iterable[ConditionFactor]) -> int:
    """Total display weight of a set of condition factors"""
    return sum(factor.severity.weight for factor in factors)
