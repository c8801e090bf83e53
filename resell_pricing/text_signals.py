#!/usr/bin/env python3
"""
Text Signal Classification

Sorts free-form text recognized on tags, boxes and labels into the buckets
the identification step cares about: brands, sizes, style codes, barcodes
and prices.
"""

import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from config import KNOWN_BRANDS

# Style/model codes: 2-4 alphanumerics, optional dash, 3-6 digits (CW2288-111, DD1391100)
STYLE_CODE_PATTERN = re.compile(r'\b[A-Z0-9]{2,4}-?\d{3,6}(?:-\d{3})?\b', re.IGNORECASE)

SIZE_PATTERNS = [
    re.compile(r'\b(?:size|sz|us|uk|eu|men\'?s|women\'?s)\s*:?\s*\d{1,2}(?:\.5)?\b', re.IGNORECASE),
    re.compile(r'^(?:XXS|XS|S|M|L|XL|XXL|XXXL|2XL|3XL)$', re.IGNORECASE),
    re.compile(r'^\d{1,2}(?:\.5)?$'),
]

BARCODE_PATTERN = re.compile(r'^\d{8,14}$')

PRICE_PATTERN = re.compile(r'(?:[$£€]\s?\d[\d,]*(?:\.\d{2})?|\bUSD\s?\d[\d,]*(?:\.\d{2})?)', re.IGNORECASE)


@dataclass(frozen=True)
class TextSignals:
    """Recognized text partitioned into non-exclusive buckets"""
    all_text: Tuple[str, ...] = ()
    brands: Tuple[str, ...] = ()
    sizes: Tuple[str, ...] = ()
    style_codes: Tuple[str, ...] = ()
    barcodes: Tuple[str, ...] = ()
    prices: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.brands or self.sizes or self.style_codes or self.barcodes)

    def brand_names(self) -> List[str]:
        """Canonical brand names found in the brand bucket, first seen first"""
        names = []
        for text in self.brands:
            brand = match_brand(text)
            if brand and brand not in names:
                names.append(brand)
        return names


def match_brand(text: str) -> Optional[str]:
    """Return the first known brand contained in text, title-cased"""
    lowered = text.lower()
    for brand in KNOWN_BRANDS:
        if brand in lowered:
            return brand.title()
    return None


def strip_brand_names(text: str) -> str:
    """Remove known brand names ("New Balance", "Off-White") from text"""
    for brand in KNOWN_BRANDS:
        text = re.sub(r'\b' + re.escape(brand) + r'\b', ' ', text, flags=re.IGNORECASE)
    return ' '.join(text.split())


def is_brand_text(text: str) -> bool:
    return match_brand(text) is not None


def is_size_text(text: str) -> bool:
    return any(pattern.search(text) for pattern in SIZE_PATTERNS)


def is_style_code(text: str) -> bool:
    # A bare barcode is all digits and would otherwise look like a code
    if is_barcode(text):
        return False
    return STYLE_CODE_PATTERN.search(text) is not None


def is_barcode(text: str) -> bool:
    return BARCODE_PATTERN.match(re.sub(r'\s+', '', text)) is not None


def is_price_text(text: str) -> bool:
    return PRICE_PATTERN.search(text) is not None


def extract_style_code(text: str) -> Optional[str]:
    match = STYLE_CODE_PATTERN.search(text)
    return match.group(0).upper() if match else None


def extract_size(text: str) -> str:
    """Pull the bare size value out of a size mention ("Size 10.5" -> "10.5")"""
    match = re.search(r'\d{1,2}(?:\.5)?', text)
    if match:
        return match.group(0)
    return text.strip().upper()


def most_common(values: Iterable[str]) -> Optional[str]:
    """Most frequent value; ties go to the first one seen"""
    values = list(values)
    if not values:
        return None
    counts = Counter(values)
    best = max(counts.values())
    for value in values:
        if counts[value] == best:
            return value
    return None


def classify_text_signals(texts: Iterable[str]) -> TextSignals:
    """
    Classify recognized text snippets.

    Args:
        texts: Free-form strings (OCR output, user-entered notes)

    Returns:
        TextSignals with every snippet placed in each bucket it matches
    """
    all_text: List[str] = []
    brands: List[str] = []
    sizes: List[str] = []
    style_codes: List[str] = []
    barcodes: List[str] = []
    prices: List[str] = []

    for raw in texts:
        if raw is None:
            continue
        text = str(raw).strip()
        if len(text) < 2 and not text.isdigit():
            continue

        all_text.append(text)
        if is_brand_text(text):
            brands.append(text)
        if is_size_text(text):
            sizes.append(text)
        if is_style_code(text):
            style_codes.append(text)
        if is_barcode(text):
            barcodes.append(re.sub(r'\s+', '', text))
        if is_price_text(text):
            prices.append(text)

    # Brand, size and style buckets keep repeats so they can be ranked by frequency
    return TextSignals(
        all_text=tuple(dict.fromkeys(all_text)),
        brands=tuple(brands),
        sizes=tuple(sizes),
        style_codes=tuple(style_codes),
        barcodes=tuple(dict.fromkeys(barcodes)),
        prices=tuple(dict.fromkeys(prices)),
    )
