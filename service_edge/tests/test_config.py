"""
Tests for edge settings loading.
"""

import pytest
from pydantic import ValidationError

from shared.config import get_config
from service_edge.app.domain.cache_policy import CacheConfig


class TestEdgeSettings:
    """Test cases for environment-driven configuration."""

    def test_defaults(self):
        config = get_config("edge", 8000)

        assert config.service_name == "edge"
        assert config.port == 8000
        assert "" in config.cached_namespaces
        assert config.entry_point_path == "/index.php"
        assert config.article_path_prefix == "/w/"
        assert config.apply_client_prefs is False

    def test_comma_separated_lists_from_env(self, monkeypatch):
        monkeypatch.setenv("EDGE_PRIVATE_COOKIE_NAMES", "wiki_session, wikiUserID,,")
        monkeypatch.setenv("EDGE_CACHED_NAMESPACES", ",Category,Help")
        monkeypatch.setenv("EDGE_CLIENT_PREFS_CLASS_PREFIXES", "mf-tabs-,mf-theme-")

        config = get_config("edge", 8000)

        assert config.private_cookie_names == ["wiki_session", "wikiUserID"]
        assert config.cached_namespaces == ["", "Category", "Help"]
        assert config.client_prefs_class_prefixes == ["mf-tabs-", "mf-theme-"]

    def test_json_lists_from_env(self, monkeypatch):
        monkeypatch.setenv("EDGE_CACHED_NAMESPACES", '["", "Help"]')

        config = get_config("edge", 8000)

        assert config.cached_namespaces == ["", "Help"]

    def test_ttls_from_env(self, monkeypatch):
        monkeypatch.setenv("EDGE_PAGE_TTL_SECONDS", "86400")
        monkeypatch.setenv("EDGE_MISSING_PAGE_TTL_SECONDS", "60")

        config = get_config("edge", 8000)

        assert config.page_ttl_seconds == 86400
        assert config.missing_page_ttl_seconds == 60

    def test_rejects_non_positive_ttl(self, monkeypatch):
        monkeypatch.setenv("EDGE_PAGE_TTL_SECONDS", "0")

        with pytest.raises(ValidationError):
            get_config("edge", 8000)

    def test_rejects_empty_main_page_title(self, monkeypatch):
        monkeypatch.setenv("EDGE_MAIN_PAGE_TITLE", "")

        with pytest.raises(ValidationError):
            get_config("edge", 8000)

    def test_cache_config_from_settings(self):
        config = get_config(
            "edge",
            8000,
            private_cookie_names=["wiki_session"],
            cached_namespaces=["", "Help"],
            client_prefs_class_prefixes=["b-", "a-"],
        )

        cache_config = CacheConfig.from_settings(config)

        assert cache_config.private_cookie_names == frozenset({"wiki_session"})
        assert cache_config.cached_namespaces == frozenset({"", "Help"})
        assert cache_config.client_prefs_class_prefixes == ("b-", "a-")
        assert cache_config.page_ttl_seconds == config.page_ttl_seconds
