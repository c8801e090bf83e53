#!/usr/bin/env python3
"""
Vision Providers

OpenAI-backed product identification and condition description from item
photos. Both providers are best-effort: any failure is logged and turned
into an empty answer that the pipeline knows how to fall back from.
"""

import base64
import json
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from openai import OpenAI, OpenAIError

from resell_pricing import ConditionFactor, Identification
from resell_pricing.condition import parse_condition_factors
from resell_pricing.identification import VisionGuess
from config import Config

logger = logging.getLogger(__name__)

ImageInput = Union[bytes, str, Path]

MAX_IMAGES = 4


def encode_image(image: ImageInput) -> str:
    """Encode raw bytes or an image file as a data URL"""
    if isinstance(image, bytes):
        data, mime_type = image, 'image/jpeg'
    else:
        path = Path(image)
        data = path.read_bytes()
        mime_type = mimetypes.guess_type(path.name)[0] or 'image/jpeg'

    encoded = base64.b64encode(data).decode()
    return f"data:{mime_type};base64,{encoded}"


def _image_parts(images: Sequence[ImageInput]) -> List[Dict]:
    return [
        {"type": "image_url", "image_url": {"url": encode_image(image), "detail": "high"}}
        for image in list(images)[:MAX_IMAGES]
    ]


def _parse_json(content: str) -> Dict:
    content = (content or '').strip()
    # Remove markdown code blocks if present
    if content.startswith('```'):
        content = content.split('```')[1]
        if content.startswith('json'):
            content = content[4:]
    data = json.loads(content.strip())
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")
    return data


class _OpenAIProvider:
    def __init__(self, config: Config = None, client: Any = None, timeout: float = None):
        config = config or Config()
        self.api_key = config.openai_api_key
        self.model = config.openai_model
        self._client = client
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.api_key or self._client is not None)

    def _openai_client(self):
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def _complete(self, prompt: str, images: Sequence[ImageInput]) -> Dict:
        response = self._openai_client().chat.completions.create(
            model=self.model,
            messages=[{
                "role": "user",
                "content": [{"type": "text", "text": prompt}] + _image_parts(images)
            }],
            response_format={"type": "json_object"},
            temperature=0.1,
            timeout=self.timeout
        )
        return _parse_json(response.choices[0].message.content)


class VisionIdentifier(_OpenAIProvider):
    """Identifies a product from photos and any visible text"""

    def __init__(self, config: Config = None, client: Any = None):
        config = config or Config()
        super().__init__(config, client, timeout=config.vision_timeout)

    def identify(self, images: Sequence[ImageInput], text: Sequence[str] = (),
                 category_hint: Optional[str] = None) -> Optional[VisionGuess]:
        """
        Ask the vision model what the item is.

        Args:
            images: Item photos (bytes or file paths)
            text: Text read from tags, labels or boxes
            category_hint: Free-text category hint (optional)

        Returns:
            VisionGuess, or None when the provider is unavailable or fails
        """
        if not images:
            return None
        if not self.is_configured():
            logger.warning("OPENAI_API_KEY not set, skipping visual identification")
            return None

        visible_text = '; '.join(t for t in text if t) or 'none'
        prompt = f"""
Identify the product in these photos for resale pricing.

Visible text: {visible_text}
Category hint: {category_hint or 'none'}

Return JSON with this EXACT format:
{{
  "name": "Full product name",
  "brand": "Brand",
  "product_line": "Model or product line",
  "variant": "Variant or edition",
  "style_code": "Manufacturer style/model code",
  "colorway": "Color",
  "size": "Size",
  "category": "sneakers|clothing|electronics|accessories|home|collectibles|books|toys|sports|other",
  "confidence": 0.0
}}

RULES:
- Use empty strings for anything you cannot see
- If you cannot identify the product, use "Unknown" as the name
- confidence is between 0 and 1
"""

        try:
            data = self._complete(prompt, images)
            guess = VisionGuess(
                name=str(data.get('name') or ''),
                brand=str(data.get('brand') or ''),
                product_line=str(data.get('product_line') or ''),
                variant=str(data.get('variant') or ''),
                style_code=str(data.get('style_code') or ''),
                colorway=str(data.get('colorway') or ''),
                size=str(data.get('size') or ''),
                category=str(data.get('category') or ''),
                confidence=float(data.get('confidence') or 0.0)
            )
        except (OpenAIError, OSError, ValueError, TypeError, IndexError, AttributeError) as e:
            logger.error(f"Visual identification failed: {e}")
            return None

        logger.info(f"Vision guess: {guess.brand} {guess.name} ({guess.confidence:.2f})")
        return guess


@dataclass(frozen=True)
class ConditionDescription:
    """Free-form condition narrative plus any structured issues observed"""
    narrative: str = ""
    factors: Tuple[ConditionFactor, ...] = ()
    confidence: Optional[float] = None
    label: str = ""


class ConditionDescriber(_OpenAIProvider):
    """Describes the visible condition of an item"""

    def __init__(self, config: Config = None, client: Any = None):
        config = config or Config()
        super().__init__(config, client, timeout=config.condition_timeout)

    def describe(self, images: Sequence[ImageInput],
                 identification: Optional[Identification] = None) -> ConditionDescription:
        """
        Describe the condition of the item in the photos.

        Returns:
            ConditionDescription (empty when the provider is unavailable or fails)
        """
        if not images:
            return ConditionDescription()
        if not self.is_configured():
            logger.warning("OPENAI_API_KEY not set, skipping condition description")
            return ConditionDescription()

        item = identification.name if identification is not None else 'the item'
        prompt = f"""
Describe the condition of {item} in these photos as a reseller would.

Return JSON with this EXACT format:
{{
  "condition": "One of: New with tags, New without tags, New other, Like new, Excellent, Very good, Good, Acceptable, For parts or not working",
  "description": "One or two sentences on visible wear",
  "factors": [
    {{"area": "toe box", "issue": "creasing", "severity": "minor|moderate|major|critical", "value_impact": 5}}
  ],
  "confidence": 0.0
}}
"""

        try:
            data = self._complete(prompt, images)
            label = str(data.get('condition') or '').strip()
            narrative = ' '.join(
                part for part in (label, str(data.get('description') or '')) if part
            )
            factors = parse_condition_factors(data.get('factors'))
            confidence = data.get('confidence')
            description = ConditionDescription(
                narrative=narrative,
                factors=tuple(factors),
                confidence=float(confidence) if confidence is not None else None,
                label=label
            )
        except (OpenAIError, OSError, ValueError, TypeError, IndexError, AttributeError) as e:
            logger.error(f"Condition description failed: {e}")
            return ConditionDescription()

        logger.info(f"Condition description: {description.narrative[:80]}")
        return description
