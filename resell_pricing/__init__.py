#!/usr/bin/env python3
"""
Resell Pricing Module - Data Models

Defines the core data structures shared by identification, condition
assessment, market aggregation and pricing.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Tuple

from config import CATEGORY_MAPPINGS, CONDITION_MAPPINGS


class ProductCategory(Enum):
    """Closed set of product categories"""
    SNEAKERS = 'sneakers'
    CLOTHING = 'clothing'
    ELECTRONICS = 'electronics'
    ACCESSORIES = 'accessories'
    HOME = 'home'
    COLLECTIBLES = 'collectibles'
    BOOKS = 'books'
    TOYS = 'toys'
    SPORTS = 'sports'
    OTHER = 'other'

    @classmethod
    def from_text(cls, text: Optional[str]) -> 'ProductCategory':
        """Map a free-text category hint to a category, defaulting to OTHER"""
        if not text:
            return cls.OTHER

        lowered = text.strip().lower()
        for member in cls:
            if lowered == member.value:
                return member

        for keyword, name in CATEGORY_MAPPINGS:
            if keyword in lowered:
                return cls[name]

        return cls.OTHER


class IdentificationMethod(Enum):
    VISUAL_AND_TEXT = 'visual+text'
    VISUAL_ONLY = 'visual-only'
    TEXT_ONLY = 'text-only'
    CATEGORY_BASED = 'category-based'


class ConditionGrade(Enum):
    """
    Standardized used-goods condition levels, best first.

    Each member carries a display label, a price multiplier and a
    description.
    """
    NEW_WITH_TAGS = ('New with tags', 1.00,
                     'Brand new, unused, with original tags or box attached')
    NEW_WITHOUT_TAGS = ('New without tags', 0.95,
                        'Brand new and unworn, tags or box missing')
    NEW_OTHER = ('New other', 0.90,
                 'New, possibly open box or with minor store wear')
    LIKE_NEW = ('Like new', 0.85,
                'Used briefly, no visible signs of wear')
    EXCELLENT = ('Excellent', 0.80,
                 'Light use with barely noticeable wear')
    VERY_GOOD = ('Very good', 0.70,
                 'Minor signs of use, fully functional')
    GOOD = ('Good', 0.60,
            'Visible wear consistent with regular use')
    ACCEPTABLE = ('Acceptable', 0.45,
                  'Heavy wear or cosmetic damage, still usable')
    FOR_PARTS_NOT_WORKING = ('For parts or not working', 0.25,
                             'Damaged or not functioning, sold as-is')

    def __init__(self, label: str, multiplier: float, description: str):
        self.label = label
        self.multiplier = multiplier
        self.description = description

    @property
    def rank(self) -> int:
        """Position in the ordered scale, 0 = best"""
        return list(ConditionGrade).index(self)

    @classmethod
    def default(cls) -> 'ConditionGrade':
        """Middle grade used whenever condition text cannot be matched"""
        return cls.GOOD

    @classmethod
    def match(cls, text: Optional[str]) -> Optional['ConditionGrade']:
        """Return the grade of the first condition phrase found in text, or None"""
        if not text:
            return None

        lowered = ' '.join(text.lower().split())
        for phrase, name in CONDITION_MAPPINGS:
            if re.search(r'\b' + re.escape(phrase) + r'\b', lowered):
                return cls[name]

        return None

    @classmethod
    def from_label(cls, text: Optional[str]) -> 'ConditionGrade':
        """Map a listing condition label to a grade, defaulting to GOOD"""
        return cls.match(text) or cls.default()

    def __repr__(self):
        return f"ConditionGrade.{self.name}"


class Severity(Enum):
    MINOR = ('minor', 1)
    MODERATE = ('moderate', 2)
    MAJOR = ('major', 3)
    CRITICAL = ('critical', 4)

    def __init__(self, label: str, weight: int):
        self.label = label
        self.weight = weight

    @classmethod
    def from_text(cls, text: Optional[str]) -> 'Severity':
        lowered = (text or '').strip().lower()
        for member in cls:
            if member.label == lowered:
                return member
        return cls.MODERATE


class TrendDirection(Enum):
    INCREASING = 'increasing'
    STABLE = 'stable'
    DECREASING = 'decreasing'


class TrendStrength(Enum):
    STRONG = 'strong'
    MODERATE = 'moderate'
    WEAK = 'weak'


class SearchVolume(Enum):
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'


class CompetitionLevel(Enum):
    LOW = 'low'
    MODERATE = 'moderate'
    HIGH = 'high'
    SATURATED = 'saturated'


class TimeToSell(Enum):
    IMMEDIATE = 'immediate'
    FAST = 'fast'
    NORMAL = 'normal'
    SLOW = 'slow'
    DIFFICULT = 'difficult'


class DataQuality(Enum):
    EXCELLENT = 'excellent'
    GOOD = 'good'
    FAIR = 'fair'
    LIMITED = 'limited'
    INSUFFICIENT = 'insufficient'


class PricingStrategy(Enum):
    PREMIUM = 'premium'
    COMPETITIVE = 'competitive'


@dataclass(frozen=True)
class Identification:
    """Canonical structured guess of what product was photographed"""
    name: str
    brand: str = ""
    product_line: str = ""
    variant: str = ""
    style_code: str = ""
    colorway: str = ""
    size: str = ""
    category: ProductCategory = ProductCategory.OTHER
    method: IdentificationMethod = IdentificationMethod.VISUAL_ONLY
    confidence: float = 0.0
    error: Optional[str] = None

    UNKNOWN: ClassVar['Identification']

    @property
    def search_model(self) -> str:
        """Model text used for market searches"""
        return self.product_line or self.name

    @property
    def search_query(self) -> str:
        parts = [self.brand, self.search_model, self.size]
        query = ' '.join(part.strip() for part in parts if part and part.strip())
        # Avoid "Nike Nike Air Force 1" when the name already starts with the brand
        if self.brand and self.search_model.lower().startswith(self.brand.lower()):
            query = query[len(self.brand):].strip()
        return query

    @classmethod
    def error_result(cls, message: str) -> 'Identification':
        """Tagged identification for input errors"""
        return cls(
            name="Analysis Error",
            category=ProductCategory.OTHER,
            method=IdentificationMethod.CATEGORY_BASED,
            confidence=0.0,
            error=message
        )

    def __repr__(self):
        return (f"Identification({self.brand} {self.search_model} size={self.size or '-'}, "
                f"{self.method.value}, confidence={self.confidence:.2f})")


Identification.UNKNOWN = Identification(
    name="Unknown Item",
    category=ProductCategory.OTHER,
    method=IdentificationMethod.CATEGORY_BASED,
    confidence=0.1
)


@dataclass(frozen=True)
class ConditionFactor:
    """A single observed condition issue"""
    area: str
    issue: str
    severity: Severity = Severity.MODERATE
    value_impact_pct: float = 0.0


@dataclass(frozen=True)
class ConditionAssessment:
    grade: ConditionGrade
    confidence: float
    factors: Tuple[ConditionFactor, ...] = ()
    narrative: str = ""


@dataclass(frozen=True)
class SoldListing:
    """Represents a single sold listing from market research"""
    title: str
    price: float
    sold_date: datetime
    condition: str = ""
    shipping_cost: Optional[float] = None
    watchers: Optional[int] = None
    auction: bool = False
    source: str = ""  # 'ebay_browse', 'web_research', 'fallback', etc.
    url: Optional[str] = None

    def __post_init__(self):
        if not math.isfinite(self.price) or self.price <= 0:
            raise ValueError(f"Sold listing price must be positive and finite, got {self.price}")

    @property
    def total_price(self) -> float:
        return self.price + (self.shipping_cost or 0.0)

    @property
    def dedup_key(self) -> Tuple[str, float, object]:
        return (self.title.strip(), round(self.price, 2), self.sold_date.date())

    def __repr__(self):
        return f"SoldListing(price=${self.price:.2f}, date={self.sold_date.date()}, condition={self.condition})"


@dataclass(frozen=True)
class TrendReport:
    direction: TrendDirection = TrendDirection.STABLE
    strength: TrendStrength = TrendStrength.WEAK
    change_pct: float = 0.0
    timeframe: str = "insufficient data"
    seasonal_note: Optional[str] = None


@dataclass(frozen=True)
class DemandReport:
    average_watchers: float
    average_sale_days: float
    search_volume: SearchVolume
    competition: CompetitionLevel
    time_to_sell: TimeToSell


@dataclass(frozen=True)
class MarketSnapshot:
    """Aggregated, cached view of recent sold listings for one search key + condition"""
    search_key: str
    condition: ConditionGrade
    listings: Tuple[SoldListing, ...]
    price_by_grade: Dict[ConditionGrade, float]
    average_price: float
    trend: TrendReport
    demand: DemandReport
    last_updated: datetime
    sources: Tuple[str, ...] = ()
    is_fallback: bool = False

    @property
    def sold_count(self) -> int:
        return len(self.listings)

    @property
    def competition(self) -> CompetitionLevel:
        return self.demand.competition

    @property
    def evidence_count(self) -> int:
        """Number of real sold listings backing this snapshot"""
        return 0 if self.is_fallback else self.sold_count

    @property
    def price_range(self) -> Tuple[float, float]:
        prices = [listing.price for listing in self.listings]
        return (min(prices), max(prices))

    def __repr__(self):
        return (f"MarketSnapshot({self.search_key}, "
                f"avg=${self.average_price:.2f}, "
                f"sold_count={self.sold_count}, "
                f"fallback={self.is_fallback})")


@dataclass(frozen=True)
class FeeBreakdown:
    """Selling costs for one sale at a given price"""
    marketplace_fee: float
    shipping_cost: float
    listing_fee: float

    @property
    def total(self) -> float:
        return round(self.marketplace_fee + self.shipping_cost + self.listing_fee, 2)


@dataclass(frozen=True)
class PricingRecommendation:
    """Three-tier price ladder with user-facing justification"""
    recommended_price: float
    quick_sale_price: float
    max_profit_price: float
    strategy: PricingStrategy
    justification: Tuple[str, ...] = ()
    fees: Optional[FeeBreakdown] = None  # at the recommended price
    quick_sale_net: float = 0.0
    recommended_net: float = 0.0
    max_profit_net: float = 0.0
    resale_potential: int = 5  # 1-10

    def __repr__(self):
        return (f"PricingRecommendation(quick=${self.quick_sale_price:.2f}, "
                f"recommended=${self.recommended_price:.2f}, "
                f"max=${self.max_profit_price:.2f}, {self.strategy.value})")


@dataclass(frozen=True)
class ConfidenceReport:
    overall: float
    identification: float
    condition: float
    pricing: float
    data_quality: DataQuality


@dataclass
class AnalysisProgress:
    """UI-visible progress of one analysis run"""
    current_step: int = 0
    total_steps: int = 8
    status: str = "Ready"


@dataclass
class AnalysisResult:
    """Everything one analysis run produced"""
    identification: Identification
    condition: Optional[ConditionAssessment] = None
    snapshot: Optional[MarketSnapshot] = None
    pricing: Optional[PricingRecommendation] = None
    confidence: Optional[ConfidenceReport] = None
    product_record: Optional[Dict] = None
    error: Optional[str] = None
    notes: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error is None


__all__ = [
    'ProductCategory',
    'IdentificationMethod',
    'ConditionGrade',
    'Severity',
    'TrendDirection',
    'TrendStrength',
    'SearchVolume',
    'CompetitionLevel',
    'TimeToSell',
    'DataQuality',
    'PricingStrategy',
    'Identification',
    'ConditionFactor',
    'ConditionAssessment',
    'SoldListing',
    'TrendReport',
    'DemandReport',
    'MarketSnapshot',
    'PricingRecommendation',
    'ConfidenceReport',
    'AnalysisProgress',
    'AnalysisResult'
]
