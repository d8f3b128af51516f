"""
Request normalization and dispatch.

``WikiRequest`` holds everything derived from one inbound request: cookies,
the resolved article, the cache verdict. It derives the outbound request
(rewriting ``/index.php?title=...`` lookups to the short article path when,
and only when, the request is cacheable) and the cache directive handed to the
transport.
"""

from typing import List, Mapping, Optional, Protocol
from urllib.parse import SplitResult, quote, urlunsplit

from ..adapters.cookie_jar import parse_cookie_headers
from .article import Article, ArticleResolution, resolve_article
from .cache_policy import (
    CacheConfig,
    CacheDecision,
    CacheDirective,
    build_cache_directive,
    evaluate_cache_policy,
)
from .client_prefs import ClientPref, extract_client_prefs
from .messages import EdgeResponse, InboundRequest, OutboundRequest, get_all_headers

# Characters kept as-is when a title becomes a path segment. Everything else,
# including "%", is percent-encoded.
_PATH_SAFE = "/:@!$&'()*+,;="


class Transport(Protocol):
    """Outbound fetch interface, implemented by ``adapters.origin_client.OriginClient``."""

    async def dispatch(
        self,
        request: OutboundRequest,
        cache_directive: Optional[CacheDirective] = None,
    ) -> EdgeResponse:
        ...


def canonical_path(article: Article, config: CacheConfig) -> str:
    """Short article path, e.g. ``/w/Help:Contents`` or ``/w/Foo``."""
    return config.article_path_prefix + quote(article.prefixed_title, safe=_PATH_SAFE)


def canonicalize(request: OutboundRequest, article: Article, config: CacheConfig) -> OutboundRequest:
    """Return a copy of ``request`` pointing at the canonical article path, query dropped."""
    url = request.split_url
    canonical_url = urlunsplit((url.scheme, url.netloc, canonical_path(article, config), "", ""))
    return request.with_url(canonical_url)


class WikiRequest:
    """Per-request context for the edge."""

    def __init__(self, request: InboundRequest, config: CacheConfig):
        self.request = request
        self.config = config
        self.url: SplitResult = request.split_url
        self.cookies: Mapping[str, str] = parse_cookie_headers(get_all_headers(request.headers, "cookie"))
        self.article: ArticleResolution = resolve_article(
            self.url,
            entry_point_path=config.entry_point_path,
            article_path_prefix=config.article_path_prefix,
            main_page_title=config.main_page_title,
        )
        self.cache_decision: CacheDecision = evaluate_cache_policy(
            self.cookies, self.url, self.article, config
        )

    @property
    def is_eligible_for_cache(self) -> bool:
        return self.cache_decision.eligible

    @property
    def uses_entry_point(self) -> bool:
        return self.url.path == self.config.entry_point_path

    @property
    def should_canonicalize(self) -> bool:
        return (
            self.is_eligible_for_cache
            and self.uses_entry_point
            and isinstance(self.article, Article)
        )

    def get_client_prefs(self) -> List[ClientPref]:
        return extract_client_prefs(self.cookies, self.config)

    def outbound_request(self) -> OutboundRequest:
        outbound = OutboundRequest.from_inbound(self.request)
        if self.should_canonicalize:
            return canonicalize(outbound, self.article, self.config)
        return outbound

    def cache_directive(self) -> Optional[CacheDirective]:
        if self.is_eligible_for_cache:
            return build_cache_directive(self.config)
        return None

    async def fetch(self, transport: Transport) -> EdgeResponse:
        """Send the (possibly rewritten) request to the origin. Transport errors propagate."""
        return await transport.dispatch(self.outbound_request(), self.cache_directive())


async def handle(request: InboundRequest, config: CacheConfig, transport: Transport) -> EdgeResponse:
    """Classify, normalize and dispatch one inbound request."""
    return await WikiRequest(request, config).fetch(transport)
