#!/usr/bin/env python3
"""
Configuration management for the Resell Pricing engine
"""

import os
from dotenv import load_dotenv
from typing import Dict, List
import json

# Load environment variables from .env file
load_dotenv()

class Config:
    """Configuration manager for the Resell Pricing engine"""

    def __init__(self):
        # Vision / condition provider
        self.openai_api_key = os.getenv('OPENAI_API_KEY', '')
        self.openai_model = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')

        # Primary sold-listing source (eBay marketplace API)
        self.ebay_sandbox = os.getenv('EBAY_SANDBOX', 'false').lower() == 'true'
        self.ebay_client_id = os.getenv('EBAY_CLIENT_ID', '')
        self.ebay_client_secret = os.getenv('EBAY_CLIENT_SECRET', '')
        self.ebay_marketplace = os.getenv('EBAY_MARKETPLACE', 'EBAY_US')

        # Secondary sold-listing source (web research)
        self.tavily_api_key = os.getenv('TAVILY_API_KEY', '')

        # Barcode databases
        self.upcitemdb_api_key = os.getenv('UPCITEMDB_API_KEY', '')
        self.barcodelookup_api_key = os.getenv('BARCODELOOKUP_API_KEY', '')

        # Timeouts (seconds)
        self.primary_source_timeout = float(os.getenv('PRIMARY_SOURCE_TIMEOUT', '15'))
        self.secondary_source_timeout = float(os.getenv('SECONDARY_SOURCE_TIMEOUT', '45'))
        self.vision_timeout = float(os.getenv('VISION_TIMEOUT', '30'))
        self.condition_timeout = float(os.getenv('CONDITION_TIMEOUT', '25'))
        self.barcode_timeout = float(os.getenv('BARCODE_TIMEOUT', '10'))

        # API Configuration
        self.rate_limit_interval = float(os.getenv('RATE_LIMIT_INTERVAL', '0.2'))

        # Logging Configuration
        self.log_level = os.getenv('LOG_LEVEL', 'INFO')
        self.log_file = os.getenv('LOG_FILE', 'resell_pricing.log')

    def validate(self) -> List[str]:
        """
        Report which optional integrations are unconfigured.

        Nothing here is required: the engine skips any source without
        credentials and falls back to conservative data.
        """
        checks = {
            'vision provider (OPENAI_API_KEY)': self.openai_api_key,
            'eBay source (EBAY_CLIENT_ID)': self.ebay_client_id,
            'eBay source (EBAY_CLIENT_SECRET)': self.ebay_client_secret,
            'web research source (TAVILY_API_KEY)': self.tavily_api_key,
        }
        return [name for name, value in checks.items() if not value]

    def get_api_base_url(self) -> str:
        """Get the appropriate eBay API base URL"""
        if self.ebay_sandbox:
            return "https://api.sandbox.ebay.com"
        else:
            return "https://api.ebay.com"

    def get_oauth_url(self) -> str:
        """Get the OAuth endpoint URL"""
        return f"{self.get_api_base_url()}/identity/v1/oauth2/token"

    def to_dict(self) -> Dict:
        """Convert configuration to dictionary (excluding secrets)"""
        return {
            'openai_model': self.openai_model,
            'ebay_sandbox': self.ebay_sandbox,
            'ebay_marketplace': self.ebay_marketplace,
            'primary_source_timeout': self.primary_source_timeout,
            'secondary_source_timeout': self.secondary_source_timeout,
            'vision_timeout': self.vision_timeout,
            'condition_timeout': self.condition_timeout,
            'barcode_timeout': self.barcode_timeout,
            'rate_limit_interval': self.rate_limit_interval,
            'log_level': self.log_level,
            'log_file': self.log_file
        }

# Free-text category hints -> ProductCategory member names.
# Checked in order with substring matching, so more specific words come first.
CATEGORY_MAPPINGS = [
    ('sneaker', 'SNEAKERS'),
    ('shoe', 'SNEAKERS'),
    ('footwear', 'SNEAKERS'),
    ('jordan', 'SNEAKERS'),
    ('apparel', 'CLOTHING'),
    ('clothing', 'CLOTHING'),
    ('shirt', 'CLOTHING'),
    ('jacket', 'CLOTHING'),
    ('hoodie', 'CLOTHING'),
    ('electronic', 'ELECTRONICS'),
    ('phone', 'ELECTRONICS'),
    ('computer', 'ELECTRONICS'),
    ('gaming', 'ELECTRONICS'),
    ('camera', 'ELECTRONICS'),
    ('accessor', 'ACCESSORIES'),
    ('jewelry', 'ACCESSORIES'),
    ('watch', 'ACCESSORIES'),
    ('bag', 'ACCESSORIES'),
    ('kitchen', 'HOME'),
    ('home', 'HOME'),
    ('garden', 'HOME'),
    ('collectible', 'COLLECTIBLES'),
    ('trading card', 'COLLECTIBLES'),
    ('vintage', 'COLLECTIBLES'),
    ('book', 'BOOKS'),
    ('toy', 'TOYS'),
    ('lego', 'TOYS'),
    ('sport', 'SPORTS'),
    ('fitness', 'SPORTS'),
]

# Condition phrases -> ConditionGrade member names.
# Ordered most specific first: the first phrase found in the text wins.
CONDITION_MAPPINGS = [
    # New variants
    ('new with tags', 'NEW_WITH_TAGS'),
    ('new with box', 'NEW_WITH_TAGS'),
    ('nwt', 'NEW_WITH_TAGS'),
    ('deadstock', 'NEW_WITH_TAGS'),
    ('new without tags', 'NEW_WITHOUT_TAGS'),
    ('new without box', 'NEW_WITHOUT_TAGS'),
    ('nwot', 'NEW_WITHOUT_TAGS'),
    ('new other', 'NEW_OTHER'),
    ('open box', 'NEW_OTHER'),
    ('new with defects', 'NEW_OTHER'),
    ('brand new', 'NEW_WITH_TAGS'),
    ('sealed', 'NEW_WITH_TAGS'),

    # Parts/repair before plain wear words ("not working" contains "working")
    ('for parts or not working', 'FOR_PARTS_NOT_WORKING'),
    ('for parts', 'FOR_PARTS_NOT_WORKING'),
    ('not working', 'FOR_PARTS_NOT_WORKING'),
    ('parts only', 'FOR_PARTS_NOT_WORKING'),
    ('broken', 'FOR_PARTS_NOT_WORKING'),
    ('salvage', 'FOR_PARTS_NOT_WORKING'),

    # Like new before the used grades
    ('like new', 'LIKE_NEW'),
    ('like-new', 'LIKE_NEW'),
    ('near mint', 'LIKE_NEW'),
    ('mint', 'LIKE_NEW'),

    # Used grades
    ('excellent', 'EXCELLENT'),
    ('very good', 'VERY_GOOD'),
    ('light wear', 'VERY_GOOD'),
    ('acceptable', 'ACCEPTABLE'),
    ('heavy wear', 'ACCEPTABLE'),
    ('fair', 'ACCEPTABLE'),
    ('poor', 'ACCEPTABLE'),
    ('good', 'GOOD'),
    ('moderate wear', 'GOOD'),
    ('normal wear', 'GOOD'),
    ('pre-owned', 'GOOD'),
    ('used', 'GOOD'),
    ('not new', 'GOOD'),

    # Bare "new" last so used grades and negations win
    ('new', 'NEW_OTHER'),
]

# Known brand vocabulary for text signal classification (lower case).
KNOWN_BRANDS = [
    'nike', 'jordan', 'adidas', 'yeezy', 'supreme', 'off-white', 'converse',
    'vans', 'new balance', 'asics', 'puma', 'reebok', 'under armour',
    'patagonia', 'the north face', 'carhartt', 'levi',
    'apple', 'samsung', 'sony', 'microsoft', 'nintendo', 'google', 'bose',
    'canon', 'nikon', 'dell', 'lenovo',
    'lego', 'pokemon', 'funko', 'hot wheels',
    'coach', 'louis vuitton', 'gucci', 'rolex', 'pandora',
    'pyrex', 'le creuset', 'kitchenaid',
]

# Pricing Configuration
PRICING_CONFIG = {
    'cache_duration_hours': 24,
    'sold_items_lookback_days': 60,
    'fallback_price': 20.00,  # Nominal price of the synthesized fallback listing
    'price_floor': 5.00,
    'quick_sale_ratio': 0.85,
    'quick_sale_ratio_range': (0.85, 0.90),
    'max_profit_ratio': 1.15,
    'identification_threshold': 0.6,  # Vision guesses below this are not trusted
    'text_only_confidence': 0.4,
    'barcode_confidence': 0.85,
    'competition_multipliers': {
        'LOW': 1.05,
        'MODERATE': 1.00,
        'HIGH': 0.95,
        'SATURATED': 0.90
    },
    'category_multipliers': {
        'ELECTRONICS': 0.90,  # Electronics depreciate quickly
        'CLOTHING': 0.95,
        'HOME': 0.85,
        'SNEAKERS': 1.00,
        'COLLECTIBLES': 1.00
    },
    'brand_multipliers': {
        'jordan': 1.10,
        'supreme': 1.05,
        'off-white': 1.05
    },
    'premium_grades': ('NEW_WITH_TAGS', 'LIKE_NEW'),
    'data_quality_thresholds': {
        'EXCELLENT': 50,
        'GOOD': 20,
        'FAIR': 5,
        'LIMITED': 1
    },
    'full_confidence_sample_size': 50,
    # Selling costs per sale: marketplace final value fee, flat shipping, listing fee
    'marketplace_fee_rate': 0.1325,
    'shipping_cost': 8.50,
    'listing_fee': 0.30,
    'resale_potential_base': 5
}

# Demand Configuration
DEMAND_CONFIG = {
    'default_watchers': 5.0,
    'auction_duration_days': 7.0,
    'fixed_price_duration_days': 21.0,
    'search_volume_high': 50,
    'search_volume_medium': 10,
    'competition_low_max': 5,
    'competition_moderate_max': 20,
    'competition_high_max': 50,
}

# Trend Configuration
TREND_CONFIG = {
    'min_listings': 5,
    'strong_change_pct': 10.0,
    'moderate_change_pct': 3.0,
    'holiday_months': (11, 12, 1),
    'seasonal_patterns': {
        'ELECTRONICS': 'Peak: Nov-Jan (holidays), back-to-school (Aug)',
        'TOYS': 'Peak: Nov-Dec (holidays)',
        'COLLECTIBLES': 'Peak: Nov-Dec (holidays)',
        'SNEAKERS': 'Spring/Summer peak, steady year-round',
        'CLOTHING': 'Seasonal variations by item type'
    }
}

def create_sample_env():
    """Create a sample .env file with the supported variables"""
    env_content = """# Vision / condition provider
OPENAI_API_KEY=your_openai_key_here
OPENAI_MODEL=gpt-4o-mini

# Primary sold-listing source (eBay)
EBAY_CLIENT_ID=your_client_id_here
EBAY_CLIENT_SECRET=your_client_secret_here
EBAY_SANDBOX=false
EBAY_MARKETPLACE=EBAY_US

# Secondary sold-listing source (web research)
TAVILY_API_KEY=your_tavily_key_here

# Barcode databases (optional)
UPCITEMDB_API_KEY=
BARCODELOOKUP_API_KEY=

# Timeouts (seconds)
PRIMARY_SOURCE_TIMEOUT=15
SECONDARY_SOURCE_TIMEOUT=45
VISION_TIMEOUT=30
CONDITION_TIMEOUT=25
BARCODE_TIMEOUT=10

# API Settings
RATE_LIMIT_INTERVAL=0.2

# Logging
LOG_LEVEL=INFO
LOG_FILE=resell_pricing.log
"""

    if not os.path.exists('.env'):
        with open('.env', 'w') as f:
            f.write(env_content)
        print("Sample .env file created. Please update with your actual credentials.")
    else:
        print(".env file already exists.")

if __name__ == "__main__":
    # Create sample .env file
    create_sample_env()

    # Test configuration
    config = Config()
    print("Configuration loaded:")
    print(json.dumps(config.to_dict(), indent=2))

    missing = config.validate()
    if missing:
        print(f"⚠️  Unconfigured (will degrade gracefully): {', '.join(missing)}")
    else:
        print("✅ All integrations configured")
