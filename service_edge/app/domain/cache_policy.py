"""
Cache eligibility policy for the edge.

A request is cacheable only when it carries no personalization cookie,
names a resolvable article in an allowed namespace, and uses none of the
query parameters that select a non-default rendering. All checks are pure
and cheap; the verdict is recomputed rather than stored.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Mapping, Optional, Tuple, Union
from urllib.parse import SplitResult

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .article import (
    Article,
    ArticleResolution,
    DEFAULT_ARTICLE_PATH_PREFIX,
    DEFAULT_ENTRY_POINT_PATH,
    MAIN_PAGE_TITLE,
    as_split_url,
    normalize_title,
    query_params,
)

# Edit, diff, permalink, debug and redirect modes. These never share a cache
# entry with the default rendering, so the list is fixed rather than configured.
DISQUALIFYING_QUERY_KEYS: Tuple[str, ...] = (
    "action",
    "veaction",
    "diff",
    "curid",
    "oldid",
    "debug",
    "redirect",
)

REASON_ELIGIBLE = "eligible"
REASON_PRIVATE_COOKIE = "private_cookie"
REASON_UNRESOLVABLE = "unresolvable"
REASON_QUERY_PARAMETER = "query_parameter"
REASON_NAMESPACE = "namespace"


class CacheConfig(BaseModel):
    """Static policy inputs, immutable for the lifetime of the process."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    private_cookie_names: FrozenSet[str] = frozenset()
    cached_namespaces: FrozenSet[str] = frozenset({""})
    client_prefs_cookie_name: str = "mwclientpreferences"
    client_prefs_class_prefixes: Tuple[str, ...] = ()
    page_ttl_seconds: int = Field(default=3600, gt=0)
    missing_page_ttl_seconds: int = Field(default=600, gt=0)
    entry_point_path: str = DEFAULT_ENTRY_POINT_PATH
    article_path_prefix: str = DEFAULT_ARTICLE_PATH_PREFIX
    main_page_title: str = Field(default=MAIN_PAGE_TITLE, min_length=1)

    @field_validator("cached_namespaces")
    @classmethod
    def _normalize_namespaces(cls, value: FrozenSet[str]) -> FrozenSet[str]:
        return frozenset(normalize_title(namespace) for namespace in value)

    @field_validator("article_path_prefix")
    @classmethod
    def _prefix_is_directory(cls, value: str) -> str:
        if not value.startswith("/") or not value.endswith("/"):
            raise ValueError("article_path_prefix must start and end with '/'")
        return value

    @classmethod
    def from_settings(cls, settings) -> "CacheConfig":
        """Build the policy from loaded service settings."""
        return cls(
            private_cookie_names=frozenset(settings.private_cookie_names),
            cached_namespaces=frozenset(settings.cached_namespaces),
            client_prefs_cookie_name=settings.client_prefs_cookie_name,
            client_prefs_class_prefixes=tuple(settings.client_prefs_class_prefixes),
            page_ttl_seconds=settings.page_ttl_seconds,
            missing_page_ttl_seconds=settings.missing_page_ttl_seconds,
            entry_point_path=settings.entry_point_path,
            article_path_prefix=settings.article_path_prefix,
            main_page_title=settings.main_page_title,
        )


@dataclass(frozen=True)
class CacheDecision:
    """Eligibility verdict together with the check that decided it."""

    eligible: bool
    reason: str
    detail: Optional[str] = None

    def __bool__(self) -> bool:
        return self.eligible


def has_private_cookie(cookies: Mapping[str, str], config: CacheConfig) -> Optional[str]:
    """Return the first personalization cookie carrying a value, if any."""
    for name in sorted(config.private_cookie_names):
        if cookies.get(name):
            return name
    return None


def disqualifying_query_key(url: SplitResult) -> Optional[str]:
    params = query_params(url)
    for key in DISQUALIFYING_QUERY_KEYS:
        if key in params:
            return key
    return None


def evaluate_cache_policy(
    cookies: Mapping[str, str],
    url: Union[str, SplitResult],
    article: ArticleResolution,
    config: CacheConfig,
) -> CacheDecision:
    """Run the eligibility checks in order and stop at the first failure."""
    cookie_name = has_private_cookie(cookies, config)
    if cookie_name is not None:
        return CacheDecision(False, REASON_PRIVATE_COOKIE, cookie_name)

    if not isinstance(article, Article):
        return CacheDecision(False, REASON_UNRESOLVABLE, getattr(article, "reason", None))

    query_key = disqualifying_query_key(as_split_url(url))
    if query_key is not None:
        return CacheDecision(False, REASON_QUERY_PARAMETER, query_key)

    if article.namespace not in config.cached_namespaces:
        return CacheDecision(False, REASON_NAMESPACE, article.namespace)

    return CacheDecision(True, REASON_ELIGIBLE)


def is_eligible_for_cache(
    cookies: Mapping[str, str],
    url: Union[str, SplitResult],
    article: ArticleResolution,
    config: CacheConfig,
) -> bool:
    """True when the response to this request may be shared by the cache."""
    return evaluate_cache_policy(cookies, url, article, config).eligible


# TTL value meaning "do not cache responses with this status".
NO_CACHE = -1


@dataclass(frozen=True)
class StatusTtl:
    """TTL rule for an inclusive range of status codes."""

    low: int
    high: int
    ttl: int

    def matches(self, status_code: int) -> bool:
        return self.low <= status_code <= self.high

    @property
    def label(self) -> str:
        if self.low == self.high:
            return str(self.low)
        return f"{self.low}-{self.high}"


@dataclass(frozen=True)
class CacheDirective:
    """Instructions for the transport on how to cache the origin response."""

    ttl_by_status: Tuple[StatusTtl, ...]
    cache_all_content_types: bool = True

    def ttl_for(self, status_code: int) -> Optional[int]:
        """Seconds to cache, ``NO_CACHE``, or ``None`` when no rule applies."""
        for rule in self.ttl_by_status:
            if rule.matches(status_code):
                return rule.ttl
        return None

    def as_mapping(self) -> Dict[str, int]:
        return {rule.label: rule.ttl for rule in self.ttl_by_status}


def build_cache_directive(config: CacheConfig) -> CacheDirective:
    """Per-status TTLs for a cacheable page: pages and misses cached, redirects and errors not."""
    return CacheDirective(
        ttl_by_status=(
            StatusTtl(200, 200, config.page_ttl_seconds),
            StatusTtl(300, 399, NO_CACHE),
            StatusTtl(404, 404, config.missing_page_ttl_seconds),
            StatusTtl(500, 599, NO_CACHE),
        ),
        cache_all_content_types=True,
    )
