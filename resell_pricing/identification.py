#!/usr/bin/env python3
"""
Identification Aggregation

Merges the vision model's guess with classified text signals and a category
hint into one Identification. Weak or missing guesses fall back to a
text-only identification with fixed, modest confidence.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from resell_pricing import Identification, IdentificationMethod, ProductCategory
from resell_pricing.text_signals import (
    TextSignals, extract_size, extract_style_code, match_brand, most_common
)
from config import PRICING_CONFIG

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VisionGuess:
    """Best-effort structured guess from an identification provider"""
    name: str
    brand: str = ""
    product_line: str = ""
    variant: str = ""
    style_code: str = ""
    colorway: str = ""
    size: str = ""
    category: str = ""
    confidence: float = 0.0
    method: Optional[IdentificationMethod] = None

    @classmethod
    def from_product_record(cls, record: Dict, confidence: float = None) -> 'VisionGuess':
        """Build a guess from a barcode lookup product record"""
        if confidence is None:
            confidence = PRICING_CONFIG['barcode_confidence']
        return cls(
            name=record.get('title') or '',
            brand=record.get('brand') or '',
            product_line=record.get('model') or '',
            category=record.get('category') or '',
            confidence=confidence,
            method=IdentificationMethod.TEXT_ONLY
        )

    @property
    def is_unknown(self) -> bool:
        return 'unknown' in self.name.lower() or 'unknown' in self.brand.lower()


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def _is_trustworthy(guess: Optional[VisionGuess]) -> bool:
    if guess is None:
        return False
    if not guess.name.strip() or guess.is_unknown:
        return False
    return guess.confidence >= PRICING_CONFIG['identification_threshold']


def build_text_only_identification(signals: TextSignals,
                                   category_hint: Optional[str] = None) -> Identification:
    """
    Build an identification from text signals alone.

    Picks the most frequent brand, size and style code signal; confidence is
    fixed so a text-only result never claims more precision than it has.
    """
    brand = most_common(b for b in (match_brand(t) for t in signals.brands) if b) or ""
    size_text = most_common(signals.sizes)
    size = extract_size(size_text) if size_text else ""
    style_text = most_common(signals.style_codes)
    style_code = (extract_style_code(style_text) or "") if style_text else ""

    name = ' '.join(part for part in (brand, style_code) if part) or "Unknown Item"

    return Identification(
        name=name,
        brand=brand,
        style_code=style_code,
        size=size,
        category=ProductCategory.from_text(category_hint),
        method=IdentificationMethod.TEXT_ONLY,
        confidence=PRICING_CONFIG['text_only_confidence']
    )


def aggregate_identification(guess: Optional[VisionGuess],
                             signals: TextSignals,
                             category_hint: Optional[str] = None) -> Identification:
    """
    Merge a vision guess, text signals and a category hint.

    Args:
        guess: Provider guess, or None when the provider failed
        signals: Classified text signals
        category_hint: Free-text category hint (optional)

    Returns:
        Identification for this analysis run
    """
    if not _is_trustworthy(guess):
        if guess is None:
            logger.info("No identification guess available, using text signals")
        else:
            logger.info(f"Guess '{guess.name}' ({guess.confidence:.2f}) below threshold, using text signals")
        return build_text_only_identification(signals, category_hint)

    if guess.method is not None:
        method = guess.method
    elif not signals.is_empty:
        method = IdentificationMethod.VISUAL_AND_TEXT
    else:
        method = IdentificationMethod.VISUAL_ONLY

    category = ProductCategory.from_text(guess.category or category_hint)

    identification = Identification(
        name=guess.name.strip(),
        brand=guess.brand.strip(),
        product_line=guess.product_line.strip(),
        variant=guess.variant.strip(),
        style_code=guess.style_code.strip(),
        colorway=guess.colorway.strip(),
        size=guess.size.strip(),
        category=category,
        method=method,
        confidence=_clamp(guess.confidence)
    )

    logger.info(f"Identified: {identification}")
    return identification
