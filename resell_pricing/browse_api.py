#!/usr/bin/env python3
"""
eBay Marketplace API Integration for Sold Listings

Primary sold-listing source. Queries eBay's item sales search and converts
the response into SoldListing records.
"""

import time
import logging
import requests
import base64
from typing import Any, Dict, List, Optional

from resell_pricing import ConditionGrade, SoldListing
from resell_pricing.sources import (
    CancellationToken, SoldListingSource, SourceError, parse_price, parse_sold_date
)
from config import Config

logger = logging.getLogger(__name__)


class EbayBrowseSource(SoldListingSource):
    """Client for eBay's sold item search"""

    name = "ebay_browse"

    # eBay condition IDs mapping
    CONDITION_IDS = {
        ConditionGrade.NEW_WITH_TAGS: '1000',
        ConditionGrade.NEW_WITHOUT_TAGS: '1500',
        ConditionGrade.NEW_OTHER: '1750',
        ConditionGrade.LIKE_NEW: '2000',
        ConditionGrade.EXCELLENT: '2500',
        ConditionGrade.VERY_GOOD: '3000',
        ConditionGrade.GOOD: '4000',
        ConditionGrade.ACCEPTABLE: '5000',
        ConditionGrade.FOR_PARTS_NOT_WORKING: '7000'
    }

    SEARCH_ENDPOINT = "buy/marketplace_insights/v1_beta/item_sales/search"

    def __init__(self, config: Config = None):
        """Initialize eBay client from configuration"""
        config = config or Config()
        self.client_id = config.ebay_client_id
        self.client_secret = config.ebay_client_secret
        self.marketplace = config.ebay_marketplace
        self.oauth_url = config.get_oauth_url()
        self.base_url = config.get_api_base_url()

        self.access_token = None
        self.token_expires_at = 0
        self.min_interval = config.rate_limit_interval  # Rate limiting between requests
        self.last_request_time = 0

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _get_auth_header(self) -> str:
        """Generate base64 encoded auth header"""
        credentials = f"{self.client_id}:{self.client_secret}"
        encoded = base64.b64encode(credentials.encode()).decode()
        return encoded

    def authenticate(self, timeout: float = 10.0) -> bool:
        """
        Authenticate with eBay OAuth.

        Returns:
            True if authentication successful
        """
        headers = {
            'Content-Type': 'application/x-www-form-urlencoded',
            'Authorization': f'Basic {self._get_auth_header()}'
        }

        data = {
            'grant_type': 'client_credentials',
            'scope': 'https://api.ebay.com/oauth/api_scope/buy.marketplace.insights'
        }

        try:
            response = requests.post(self.oauth_url, headers=headers, data=data, timeout=timeout)
            response.raise_for_status()

            result = response.json()
            self.access_token = result.get('access_token')
            expires_in = result.get('expires_in', 7200)
            self.token_expires_at = time.time() + expires_in

            logger.info("eBay API authenticated successfully")
            return bool(self.access_token)

        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"eBay API authentication failed: {e}")
            return False

    def _ensure_authenticated(self, timeout: float) -> bool:
        """Ensure we have a valid access token"""
        if not self.access_token or time.time() >= self.token_expires_at - 60:
            return self.authenticate(timeout=timeout)
        return True

    def _rate_limit(self, cancel_token: Optional[CancellationToken] = None):
        """Apply rate limiting between requests"""
        elapsed = time.time() - self.last_request_time
        if elapsed < self.min_interval:
            if cancel_token is not None:
                cancel_token.wait(self.min_interval - elapsed)
                cancel_token.raise_if_cancelled()
            else:
                time.sleep(self.min_interval - elapsed)
        self.last_request_time = time.time()

    def _make_request(self, endpoint: str, params: Dict = None, timeout: float = 15.0,
                      cancel_token: Optional[CancellationToken] = None) -> Dict:
        """
        Make authenticated request to eBay API.

        Args:
            endpoint: API endpoint path
            params: Query parameters
            timeout: Request timeout in seconds

        Returns:
            Response JSON as dictionary
        """
        if not self._ensure_authenticated(timeout):
            raise SourceError("Failed to authenticate with eBay API")

        self._rate_limit(cancel_token)

        url = f"{self.base_url}/{endpoint}"
        headers = {
            'Authorization': f'Bearer {self.access_token}',
            'Content-Type': 'application/json',
            'X-EBAY-C-MARKETPLACE-ID': self.marketplace
        }

        try:
            response = requests.get(url, headers=headers, params=params, timeout=timeout)
            response.raise_for_status()
            return response.json()

        except requests.exceptions.RequestException as e:
            logger.error(f"eBay API request failed: {e}")
            if getattr(e, 'response', None) is not None:
                logger.error(f"Response: {e.response.text}")
            raise SourceError(f"eBay API request failed: {e}") from e
        except ValueError as e:
            raise SourceError(f"eBay API returned malformed JSON: {e}") from e

    def search(self, query: str, condition: Optional[ConditionGrade] = None,
               timeout: float = 15.0,
               cancel_token: Optional[CancellationToken] = None) -> List[SoldListing]:
        """
        Search for recently sold listings.

        Args:
            query: Search text (brand + model + size)
            condition: Item condition filter (optional)
            timeout: Request timeout in seconds
            cancel_token: Cancellation token (optional)

        Returns:
            List of SoldListing objects
        """
        if not self.is_configured():
            raise SourceError("eBay credentials not configured")

        filters = ["buyingOptions:{AUCTION|FIXED_PRICE}"]

        if condition is not None:
            condition_id = self.CONDITION_IDS.get(condition)
            if condition_id:
                filters.append(f"conditionIds:{{{condition_id}}}")

        params = {
            'q': query,
            'filter': ",".join(filters),
            'limit': 200  # API max is 200
        }

        logger.info(f"Searching eBay sold listings: {query} ({condition.label if condition else 'any'})")
        result = self._make_request(self.SEARCH_ENDPOINT, params, timeout=timeout,
                                    cancel_token=cancel_token)

        listings = convert_item_sales(result)
        logger.info(f"eBay returned {len(listings)} sold listings")
        return listings


def convert_item_sales(result: Dict[str, Any]) -> List[SoldListing]:
    """
    Convert an eBay search response to SoldListing records.

    Accepts both the item sales shape (itemSales, lastSoldPrice,
    lastSoldDate) and the item summary shape (itemSummaries, price,
    itemEndDate). Items without a usable price are skipped.
    """
    if not isinstance(result, dict):
        raise SourceError("eBay API returned an unexpected payload")

    items = result.get('itemSales') or result.get('itemSummaries') or []

    listings = []
    for item in items:
        if not isinstance(item, dict):
            continue

        price = parse_price(item.get('lastSoldPrice') or item.get('price'))
        if price is None:
            continue

        shipping_cost = None
        shipping_options = item.get('shippingOptions') or []
        if shipping_options:
            shipping_cost = parse_price(shipping_options[0].get('shippingCost'))

        buying_options = item.get('buyingOptions') or []
        watchers = item.get('watchCount')

        listings.append(SoldListing(
            title=item.get('title', ''),
            price=price,
            sold_date=parse_sold_date(item.get('lastSoldDate') or item.get('itemEndDate')),
            condition=item.get('condition', ''),
            shipping_cost=shipping_cost,
            watchers=int(watchers) if isinstance(watchers, (int, float)) else None,
            auction='AUCTION' in buying_options,
            source=EbayBrowseSource.name,
            url=item.get('itemWebUrl')
        ))

    return listings
