#!/usr/bin/env python3
"""
Analysis Pipeline

Runs one item through the full chain on the calling thread:

    text signals -> barcode lookup -> visual identification -> identification
    -> condition -> market snapshot -> pricing -> confidence

Progress is published after every step and the run can be cancelled at any
step boundary or while waiting on the market sources.
"""

import logging
from dataclasses import replace
from typing import Callable, Optional, Sequence

from resell_pricing import (
    AnalysisProgress, AnalysisResult, ConditionAssessment,
    Identification, IdentificationMethod, ProductCategory
)
from resell_pricing.condition import assess_condition, factor_weight
from resell_pricing.confidence import score_snapshot_confidence
from resell_pricing.identification import VisionGuess, aggregate_identification
from resell_pricing.market_aggregator import MarketDataAggregator
from resell_pricing.pricing_engine import calculate_pricing, validate_quick_sale_ratio
from resell_pricing.sources import AnalysisCancelled, CancellationToken
from resell_pricing.text_signals import TextSignals, classify_text_signals, strip_brand_names
from resell_pricing.upc_lookup import UPCLookup, get_upc_lookup
from resell_pricing.vision import ConditionDescriber, ConditionDescription, ImageInput, VisionIdentifier
from config import Config

logger = logging.getLogger(__name__)

TOTAL_STEPS = 8

ProgressCallback = Callable[[AnalysisProgress], None]


class ResellAnalyzer:
    """Identify, grade and price one item at a time"""

    def __init__(self, aggregator: MarketDataAggregator = None,
                 identifier: VisionIdentifier = None,
                 describer: ConditionDescriber = None,
                 upc_lookup: UPCLookup = None,
                 config: Config = None,
                 progress_callback: Optional[ProgressCallback] = None,
                 quick_sale_ratio: Optional[float] = None):
        config = config or Config()
        self.aggregator = aggregator or MarketDataAggregator(config=config)
        self.identifier = identifier or VisionIdentifier(config)
        self.describer = describer or ConditionDescriber(config)
        self.upc_lookup = upc_lookup or get_upc_lookup()
        self.progress_callback = progress_callback
        if quick_sale_ratio is not None:
            validate_quick_sale_ratio(quick_sale_ratio)
        self.quick_sale_ratio = quick_sale_ratio
        self.progress = AnalysisProgress(total_steps=TOTAL_STEPS)

    def _advance(self, step: int, status: str,
                 cancel_token: Optional[CancellationToken] = None) -> None:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        self.progress = AnalysisProgress(current_step=step, total_steps=TOTAL_STEPS, status=status)
        logger.info(f"[{step}/{TOTAL_STEPS}] {status}")
        if self.progress_callback is not None:
            self.progress_callback(replace(self.progress))

    def analyze(self, images: Sequence[ImageInput] = (), texts: Sequence[str] = (),
                barcode: Optional[str] = None, category_hint: Optional[str] = None,
                condition_text: Optional[str] = None,
                cancel_token: Optional[CancellationToken] = None) -> AnalysisResult:
        """
        Analyze an item from photos, recognized text and an optional barcode.

        Args:
            images: Item photos (bytes or file paths)
            texts: Text read from tags, labels or boxes
            barcode: Scanned UPC/EAN (optional)
            category_hint: Free-text category hint (optional)
            condition_text: Seller's own condition description; skips the
                condition provider when given (optional)
            cancel_token: Cancellation token (optional)

        Returns:
            AnalysisResult; error is set when input was missing or the run
            was cancelled
        """
        images = list(images or [])
        texts = [t for t in (texts or []) if t and str(t).strip()]

        if not images and not texts and not barcode:
            message = "No images, text or barcode provided"
            logger.error(f"Analysis rejected: {message}")
            return AnalysisResult(identification=Identification.error_result(message), error=message)

        result = AnalysisResult(identification=Identification.UNKNOWN)
        try:
            self._advance(1, "Reading text", cancel_token)
            signals = classify_text_signals(texts)

            self._advance(2, "Looking up barcode", cancel_token)
            barcode_guess = self._barcode_guess(barcode, signals, result)

            self._advance(3, "Identifying item", cancel_token)
            vision_guess = self.identifier.identify(images, texts, category_hint) if images else None

            self._advance(4, "Combining identification signals", cancel_token)
            guess = choose_guess(barcode_guess, vision_guess)
            result.identification = aggregate_identification(guess, signals, category_hint)

            self._advance(5, "Assessing condition", cancel_token)
            result.condition = self._assess(images, signals, result.identification, condition_text)
            weight = factor_weight(result.condition.factors)
            if weight:
                result.notes.append(f"{len(result.condition.factors)} condition issues noted "
                                    f"(severity weight {weight})")

            self._price(result, cancel_token, first_step=6)

        except AnalysisCancelled:
            logger.warning("Analysis cancelled")
            result.error = "Analysis cancelled"

        return result

    def price_item(self, brand: str, model: str, size: str = "",
                   condition_text: Optional[str] = None,
                   category_hint: Optional[str] = None,
                   cancel_token: Optional[CancellationToken] = None) -> AnalysisResult:
        """
        Price an item whose identity is already known, skipping the vision steps.
        """
        identification = Identification(
            name=' '.join(part for part in (brand, model) if part),
            brand=brand or "",
            product_line=model or "",
            size=size or "",
            category=ProductCategory.from_text(category_hint),
            method=IdentificationMethod.TEXT_ONLY,
            confidence=1.0
        )
        result = AnalysisResult(identification=identification)
        result.notes.append("Identification entered manually")

        try:
            self._advance(5, "Assessing condition", cancel_token)
            result.condition = assess_condition(condition_text)
            self._price(result, cancel_token, first_step=6)
        except AnalysisCancelled:
            logger.warning("Pricing cancelled")
            result.error = "Analysis cancelled"

        return result

    def _price(self, result: AnalysisResult, cancel_token: Optional[CancellationToken],
               first_step: int) -> None:
        grade = result.condition.grade

        self._advance(first_step, "Gathering market data", cancel_token)
        result.snapshot = self.aggregator.get_market_snapshot(result.identification, grade, cancel_token)
        if result.snapshot.is_fallback:
            result.notes.append("No recent sold listings found; price is a conservative estimate")

        self._advance(first_step + 1, "Calculating price", cancel_token)
        result.pricing = calculate_pricing(result.snapshot, grade, result.identification,
                                           self.quick_sale_ratio)

        self._advance(first_step + 2, "Scoring confidence", cancel_token)
        result.confidence = score_snapshot_confidence(
            result.identification.confidence, result.condition.confidence, result.snapshot
        )

        logger.info(f"Analysis complete: ${result.pricing.recommended_price:.2f} "
                    f"(confidence {result.confidence.overall:.0%}, {result.confidence.data_quality.value})")

    def _barcode_guess(self, barcode: Optional[str], signals: TextSignals,
                       result: AnalysisResult) -> Optional[VisionGuess]:
        candidates = ([barcode] if barcode else []) + list(signals.barcodes)
        for candidate in dict.fromkeys(candidates):
            record = self.upc_lookup.lookup(candidate)
            if record and record.get('title'):
                result.product_record = record
                return VisionGuess.from_product_record(record)
        return None

    def _assess(self, images: Sequence[ImageInput], signals: TextSignals,
                identification: Identification, condition_text: Optional[str]) -> ConditionAssessment:
        if condition_text:
            return assess_condition(condition_text)

        if images:
            description = self.describer.describe(images, identification)
        else:
            # Without photos the only evidence is the recognized text; brand
            # names like "New Balance" are not condition words
            narrative = ' '.join(strip_brand_names(text) for text in signals.all_text)
            description = ConditionDescription(narrative=narrative)

        return assess_condition(description.narrative, description.factors,
                                description.confidence, label=description.label)


def choose_guess(barcode_guess: Optional[VisionGuess],
                 vision_guess: Optional[VisionGuess]) -> Optional[VisionGuess]:
    """A barcode product hit wins unless the vision guess is more confident"""
    if barcode_guess is None:
        return vision_guess
    if vision_guess is None or vision_guess.is_unknown:
        return barcode_guess
    if vision_guess.confidence > barcode_guess.confidence:
        return vision_guess
    return barcode_guess


def analyze_item(images: Sequence[ImageInput] = (), texts: Sequence[str] = (),
                 barcode: Optional[str] = None, category_hint: Optional[str] = None) -> AnalysisResult:
    """Convenience function: analyze one item with default providers"""
    return ResellAnalyzer().analyze(images, texts, barcode, category_hint)
