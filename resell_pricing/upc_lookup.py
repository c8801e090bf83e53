#!/usr/bin/env python3
"""
UPC Product Lookup

Uses UPC/EAN codes to get product information for identification.
Tries UPCitemdb first, then Barcode Lookup; hits are remembered for the
lifetime of the process.
"""

import logging
import threading
import requests
from typing import Dict, Optional

from resell_pricing import ProductCategory
from resell_pricing.sources import parse_price
from config import Config

logger = logging.getLogger(__name__)

MIN_BARCODE_DIGITS = 8
MAX_BARCODE_DIGITS = 14


def clean_barcode(barcode: str) -> Optional[str]:
    """Digits of a barcode, or None when it cannot be a UPC/EAN"""
    digits = ''.join(filter(str.isdigit, str(barcode or '')))
    if not MIN_BARCODE_DIGITS <= len(digits) <= MAX_BARCODE_DIGITS:
        return None
    return digits


def product_category(record: Dict) -> ProductCategory:
    """Map a product record's category path to a ProductCategory"""
    return ProductCategory.from_text(record.get('category'))


class UPCLookup:
    """Lookup product information using UPC/EAN codes"""

    UPCITEMDB_URL = "https://api.upcitemdb.com/prod/trial/lookup"
    BARCODELOOKUP_URL = "https://api.barcodelookup.com/v3/products"

    def __init__(self, config: Config = None):
        """Initialize with API keys from configuration"""
        config = config or Config()
        self.upcitemdb_key = config.upcitemdb_api_key
        self.barcodelookup_key = config.barcodelookup_api_key
        self.timeout = config.barcode_timeout
        self.cache = {}  # In-memory cache for the process
        self._lock = threading.Lock()

    def lookup(self, upc: str) -> Optional[Dict]:
        """
        Lookup product by UPC code.

        Tries multiple services in order:
        1. Cache
        2. UPCitemdb
        3. Barcode Lookup

        Args:
            upc: UPC/EAN barcode

        Returns:
            Dictionary with product info or None if not found
        """
        upc = clean_barcode(upc)
        if upc is None:
            logger.debug("Invalid barcode, skipping lookup")
            return None

        with self._lock:
            cached = self.cache.get(upc)
        if cached is not None:
            logger.debug(f"UPC cache hit: {upc}")
            return cached

        for attempt in (self._try_upcitemdb, self._try_barcodelookup):
            result = attempt(upc)
            if result:
                with self._lock:
                    self.cache[upc] = result
                return result

        logger.warning(f"UPC not found in any database: {upc}")
        return None

    def _try_upcitemdb(self, upc: str) -> Optional[Dict]:
        """
        Try UPCitemdb API
        https://www.upcitemdb.com/api/explorer
        """
        headers = {'Accept': 'application/json'}
        if self.upcitemdb_key:
            headers['user_key'] = self.upcitemdb_key

        try:
            response = requests.get(self.UPCITEMDB_URL, params={'upc': upc},
                                    headers=headers, timeout=self.timeout)

            if response.status_code == 200:
                items = response.json().get('items') or []
                if items:
                    item = items[0]
                    result = {
                        'title': item.get('title', ''),
                        'brand': item.get('brand', ''),
                        'model': item.get('model', ''),
                        'category': item.get('category', ''),
                        'upc': upc,
                        'msrp': parse_price(item.get('msrp')),
                        'lowest_price': parse_price(item.get('lowest_recorded_price')),
                        'highest_price': parse_price(item.get('highest_recorded_price')),
                        'description': item.get('description', ''),
                        'images': item.get('images', []),
                        'source': 'upcitemdb'
                    }

                    logger.info(f"UPCitemdb found: {result['title']}")
                    return result

            elif response.status_code == 404:
                logger.debug(f"UPC not found in UPCitemdb: {upc}")
            else:
                logger.warning(f"UPCitemdb API error {response.status_code}: {response.text}")

        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"UPCitemdb lookup failed: {e}")

        return None

    def _try_barcodelookup(self, upc: str) -> Optional[Dict]:
        """
        Try Barcode Lookup API
        https://www.barcodelookup.com/api
        """
        if not self.barcodelookup_key:
            logger.debug("Barcode Lookup API key not configured")
            return None

        try:
            params = {
                'barcode': upc,
                'key': self.barcodelookup_key
            }
            response = requests.get(self.BARCODELOOKUP_URL, params=params, timeout=self.timeout)

            if response.status_code == 200:
                products = response.json().get('products') or []
                if products:
                    product = products[0]
                    result = {
                        'title': product.get('title', ''),
                        'brand': product.get('brand', ''),
                        'model': product.get('model', ''),
                        'category': product.get('category', ''),
                        'upc': upc,
                        'msrp': parse_price(product.get('msrp')),
                        'description': product.get('description', ''),
                        'images': product.get('images', []),
                        'source': 'barcodelookup'
                    }

                    logger.info(f"Barcode Lookup found: {result['title']}")
                    return result
            else:
                logger.warning(f"Barcode Lookup API error {response.status_code}")

        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Barcode Lookup failed: {e}")

        return None


# Process-wide instance
_upc_lookup = None
_upc_lookup_lock = threading.Lock()


def get_upc_lookup() -> UPCLookup:
    """Get or create the process-wide UPC lookup instance"""
    global _upc_lookup
    with _upc_lookup_lock:
        if _upc_lookup is None:
            _upc_lookup = UPCLookup()
        return _upc_lookup


def lookup_product(upc: str) -> Optional[Dict]:
    """
    Convenience function to lookup product by UPC.

    Returns:
        {
            'title': 'Nike Air Force 1 Low White',
            'brand': 'Nike',
            'model': 'Air Force 1 Low',
            'category': 'Clothing, Shoes & Accessories > Shoes',
            'msrp': 110.00,
            'upc': '194502876055',
            'source': 'upcitemdb'
        }
    """
    return get_upc_lookup().lookup(upc)
