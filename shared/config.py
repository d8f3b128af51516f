"""
Shared configuration management for the Wiki Edge layer.
"""

import json
from typing import Annotated, Any, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _split_csv(value: Any, keep_empty: bool = False) -> Any:
    """Accept comma-separated strings (or JSON lists) for list settings."""
    if not isinstance(value, str):
        return value
    candidate = value.strip()
    if candidate.startswith("["):
        return json.loads(candidate)
    items = [item.strip() for item in value.split(",")]
    if keep_empty:
        return items
    return [item for item in items if item]


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="EDGE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # Origin
    origin_url: str = "http://localhost:8080"
    origin_timeout_seconds: float = 30.0

    # Cache policy
    private_cookie_names: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["wiki_session", "wikiUserID", "wikiToken"]
    )
    # The main namespace is the empty string; use a leading comma to include it
    # from the environment, e.g. ",Category,Help".
    cached_namespaces: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["", "Category", "Help"]
    )
    page_ttl_seconds: int = 3600
    missing_page_ttl_seconds: int = 600
    entry_point_path: str = "/index.php"
    article_path_prefix: str = "/w/"
    main_page_title: str = Field(default="Main_Page", min_length=1)

    # Client preferences
    client_prefs_cookie_name: str = "mwclientpreferences"
    client_prefs_class_prefixes: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: [
            "skin-theme-clientpref-",
            "vector-feature-limited-width-clientpref-",
            "vector-feature-custom-font-size-clientpref-",
        ]
    )
    apply_client_prefs: bool = False

    @field_validator("private_cookie_names", "client_prefs_class_prefixes", mode="before")
    @classmethod
    def _parse_name_list(cls, value: Any) -> Any:
        return _split_csv(value)

    @field_validator("cached_namespaces", mode="before")
    @classmethod
    def _parse_namespace_list(cls, value: Any) -> Any:
        return _split_csv(value, keep_empty=True)

    @field_validator("page_ttl_seconds", "missing_page_ttl_seconds")
    @classmethod
    def _positive_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("TTL must be a positive number of seconds")
        return value


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
