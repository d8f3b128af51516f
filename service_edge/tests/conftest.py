"""
Shared fixtures for Edge service tests.
"""

import pytest

from service_edge.app.domain.cache_policy import CacheConfig


@pytest.fixture
def cache_config():
    """Policy used by most tests."""
    return CacheConfig(
        private_cookie_names={"wiki_session", "wikiUserID"},
        cached_namespaces={"", "Category", "Help"},
        client_prefs_cookie_name="mwclientpreferences",
        client_prefs_class_prefixes=("mf-tabs-", "mf-theme-"),
        page_ttl_seconds=3600,
        missing_page_ttl_seconds=120,
    )
