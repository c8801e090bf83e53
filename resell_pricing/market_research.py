#!/usr/bin/env python3
"""
AI-Powered Market Research for Sold Comps

Secondary sold-listing source. Uses Tavily web search to find recent sold
listings and OpenAI to extract pricing data from the results, with a regex
parser when no OpenAI key is configured.
"""

import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from tavily import TavilyClient
from openai import OpenAI, OpenAIError

from resell_pricing import ConditionGrade, SoldListing
from resell_pricing.sources import (
    CancellationToken, SoldListingSource, SourceError, parse_price, parse_sold_date
)
from config import Config

logger = logging.getLogger(__name__)

# Price regex patterns
PRICE_PATTERNS = [
    r'sold for \$?(\d[\d,]*\.?\d*)',  # sold for $299
    r'\$(\d[\d,]*\.?\d*)',  # $299.99
    r'(\d[\d,]*\.?\d*)\s*USD',  # 299.99 USD
]

MIN_PRICE = 1.0
MAX_PRICE = 10000.0


class WebResearchSource(SoldListingSource):
    """Sold comps gathered from web search results"""

    name = "web_research"

    def __init__(self, config: Config = None, tavily_client: Any = None, openai_client: Any = None):
        config = config or Config()
        self.tavily_key = config.tavily_api_key
        self.openai_key = config.openai_api_key
        self.openai_model = config.openai_model
        self._tavily = tavily_client
        self._openai = openai_client

    def is_configured(self) -> bool:
        return bool(self.tavily_key or self._tavily is not None)

    def _tavily_client(self):
        if self._tavily is None:
            self._tavily = TavilyClient(api_key=self.tavily_key)
        return self._tavily

    def _openai_client(self, timeout: float):
        if self._openai is not None:
            return self._openai
        if not self.openai_key:
            return None
        return OpenAI(api_key=self.openai_key, timeout=timeout)

    def search(self, query: str, condition: Optional[ConditionGrade] = None,
               timeout: float = 45.0,
               cancel_token: Optional[CancellationToken] = None) -> List[SoldListing]:
        """
        Use Tavily web search + OpenAI to find recent sold listings.

        Args:
            query: Search text (brand + model + size)
            condition: Item condition (optional, used as the default label)
            timeout: Seconds before the search is abandoned
            cancel_token: Cancellation token (optional)

        Returns:
            List of SoldListing objects (may be empty if no results found)
        """
        if not self.is_configured():
            raise SourceError("TAVILY_API_KEY not set")

        condition_label = condition.label if condition else ""
        search_query = f"{query} sold ebay completed listings price"
        logger.info(f"Searching web for sold comps: {query} ({condition_label or 'any'})")

        try:
            search_results = self._tavily_client().search(
                query=search_query,
                search_depth="advanced",
                max_results=10,
                include_domains=["ebay.com"],
                timeout=int(timeout),
            )
        except Exception as e:
            # Tavily raises its own exception types as well as requests errors
            raise SourceError(f"Tavily search failed: {e}") from e

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        results = search_results.get('results', []) if isinstance(search_results, dict) else []
        logger.info(f"Tavily found {len(results)} search results")

        if not results:
            logger.warning(f"No web results found for {query}")
            return []

        client = self._openai_client(timeout)
        if client is None:
            logger.warning("OPENAI_API_KEY not set, using basic parsing")
            return parse_results_basic(results, query, condition_label)

        return self._parse_results_with_ai(client, results, query, condition_label)

    def _parse_results_with_ai(self, client, results: List[Dict], query: str,
                               condition_label: str) -> List[SoldListing]:
        """Use OpenAI to parse search results and extract pricing data"""

        # Compile search results into context
        context = "eBay Search Results:\n\n"
        for idx, result in enumerate(results[:10], 1):
            context += f"{idx}. {result.get('title', 'No title')}\n"
            context += f"   URL: {result.get('url', 'No URL')}\n"
            context += f"   Content: {(result.get('content') or 'No content')[:300]}...\n\n"

        prompt = f"""
Extract SOLD listing data from these eBay search results for "{query}".

{context}

Return JSON with this EXACT format:
{{
  "listings": [
    {{
      "title": "Product title from search",
      "price": 119.99,
      "sold_date": "2025-01-15",
      "condition": "Pre-Owned",
      "auction": false,
      "url": "URL from search"
    }}
  ]
}}

RULES:
- Only include items that actually sold (sold date, "Sold" label, or winning bid)
- Use the sale price without shipping
- Leave sold_date empty if it is not shown
- If NO sold prices are found, return an empty listings array
"""

        try:
            response = client.chat.completions.create(
                model=self.openai_model,
                messages=[{"role": "user", "content": prompt}],
                response_format={"type": "json_object"},
                temperature=0.1
            )
            result_data = json.loads(response.choices[0].message.content)
        except (OpenAIError, json.JSONDecodeError, IndexError, AttributeError, TypeError) as e:
            raise SourceError(f"AI parsing failed: {e}") from e

        listings = listings_from_records(result_data.get('listings', []), query, condition_label)
        logger.info(f"Extracted {len(listings)} sold listings from AI analysis")
        return listings


def listings_from_records(records: List[Dict], query: str, condition_label: str) -> List[SoldListing]:
    """Convert extracted listing dicts to SoldListing objects, skipping bad rows"""
    sold_listings = []
    now = datetime.now()

    for record in records or []:
        if not isinstance(record, dict):
            continue

        price = parse_price(record.get('price'))
        if price is None:
            continue

        sold_listings.append(SoldListing(
            title=str(record.get('title') or query),
            price=price,
            sold_date=parse_sold_date(record.get('sold_date'), default=now),
            condition=str(record.get('condition') or condition_label),
            auction=bool(record.get('auction', False)),
            source=WebResearchSource.name,
            url=record.get('url')
        ))

    return sold_listings


def parse_results_basic(results: List[Dict], query: str, condition_label: str) -> List[SoldListing]:
    """Basic parsing without AI - extract prices using regex"""

    sold_listings = []
    now = datetime.now()

    for result in results[:10]:
        content = (result.get('content') or '') + ' ' + (result.get('title') or '')

        # Only process if it looks like a sold listing
        if 'sold' not in content.lower():
            continue

        price = None
        for pattern in PRICE_PATTERNS:
            match = re.search(pattern, content, re.IGNORECASE)
            if match:
                candidate = parse_price(match.group(1))
                if candidate is not None and MIN_PRICE <= candidate <= MAX_PRICE:
                    price = candidate
                    break

        if price is None:
            continue

        sold_listings.append(SoldListing(
            title=(result.get('title') or query)[:100],
            price=price,
            sold_date=now,  # Assume recent
            condition=condition_label,
            source=WebResearchSource.name,
            url=result.get('url')
        ))

    logger.info(f"Extracted {len(sold_listings)} sold listings from basic parsing")
    return sold_listings
