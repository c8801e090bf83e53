#!/usr/bin/env python3
"""
Tests for configuration and the category/condition mapping tables
"""

from pathlib import Path

import pytest

from resell_pricing import ConditionGrade, ProductCategory
from config import CATEGORY_MAPPINGS, CONDITION_MAPPINGS, PRICING_CONFIG, create_sample_env


def test_validate_reports_unconfigured_integrations(config):
    missing = config.validate()
    assert 'web research source (TAVILY_API_KEY)' in missing
    assert 'eBay source (EBAY_CLIENT_ID)' in missing

    config.tavily_api_key = 'key'
    assert 'web research source (TAVILY_API_KEY)' not in config.validate()


def test_to_dict_omits_secrets(config):
    config.openai_api_key = 'sk-secret'
    data = config.to_dict()
    assert 'sk-secret' not in data.values()
    assert data['primary_source_timeout'] == 15.0


def test_sandbox_urls(config):
    config.ebay_sandbox = True
    assert config.get_oauth_url() == "https://api.sandbox.ebay.com/identity/v1/oauth2/token"


def test_mapping_tables_name_real_members():
    for _, name in CATEGORY_MAPPINGS:
        assert name in ProductCategory.__members__
    for _, name in CONDITION_MAPPINGS:
        assert name in ConditionGrade.__members__
    for name in PRICING_CONFIG['category_multipliers']:
        assert name in ProductCategory.__members__


@pytest.mark.parametrize("hint,expected", [
    ("Sneakers", ProductCategory.SNEAKERS),
    ("Men's Shoes", ProductCategory.SNEAKERS),
    ("Kitchen & Dining", ProductCategory.HOME),
    ("Cell Phones", ProductCategory.ELECTRONICS),
    ("LEGO set", ProductCategory.TOYS),
    ("", ProductCategory.OTHER),
    (None, ProductCategory.OTHER),
    ("Garden gnome statue", ProductCategory.HOME),
])
def test_category_from_text(hint, expected):
    assert ProductCategory.from_text(hint) == expected


def test_create_sample_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    create_sample_env()
    assert "TAVILY_API_KEY" in (tmp_path / ".env").read_text()


def test_pytest_skips_tool_directories():
    tomllib = pytest.importorskip("tomllib")
    with open(Path(__file__).parent / "pyproject.toml", "rb") as f:
        settings = tomllib.load(f)["tool"]["pytest"]["ini_options"]

    assert {".hypothesis", "*.egg-info", ".git"} <= set(settings["norecursedirs"])
