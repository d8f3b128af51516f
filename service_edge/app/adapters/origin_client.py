"""
Origin client for the Edge.

Sends outbound requests to the wiki origin and turns the cache directive into
response headers a shared cache in front of the edge understands
(``CDN-Cache-Control``, RFC 9213). There are deliberately no retries: a failed
fetch surfaces as ``OriginUnavailableError``.
"""

import time
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from shared.logging import get_logger
from shared.errors import OriginUnavailableError

from ..domain.cache_policy import NO_CACHE, CacheDirective
from ..domain.messages import (
    EdgeResponse,
    Headers,
    OutboundRequest,
    decode_headers,
    encode_headers,
    without_headers,
)

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


HOP_BY_HOP_HEADERS = (
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
)

CDN_CACHE_CONTROL = "CDN-Cache-Control"
CACHE_ELIGIBLE_HEADER = "X-Edge-Cache-Eligible"

# Cached even without ``cache_all_content_types``: static assets.
DEFAULT_CACHEABLE_MEDIA_PREFIXES = (
    "text/css",
    "text/javascript",
    "application/javascript",
    "application/x-javascript",
    "image/",
    "font/",
    "application/font-woff",
)


def status_class(status_code: int) -> str:
    return f"{status_code // 100}xx"


def is_default_cacheable(content_type: Optional[str]) -> bool:
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    return media_type.startswith(DEFAULT_CACHEABLE_MEDIA_PREFIXES)


def apply_cache_directive(
    headers: Headers,
    status_code: int,
    cache_directive: Optional[CacheDirective],
) -> Headers:
    """Stamp caching headers implied by the directive onto origin response headers."""
    if cache_directive is None:
        return headers + ((CACHE_ELIGIBLE_HEADER, "0"),)

    headers = headers + ((CACHE_ELIGIBLE_HEADER, "1"),)
    ttl = cache_directive.ttl_for(status_code)
    if ttl is None:
        return headers

    if not cache_directive.cache_all_content_types:
        content_type = next((value for key, value in headers if key.lower() == "content-type"), None)
        if not is_default_cacheable(content_type):
            return headers

    value = "no-store" if ttl == NO_CACHE else f"public, max-age={ttl}"
    return without_headers(headers, [CDN_CACHE_CONTROL]) + ((CDN_CACHE_CONTROL, value),)


class OriginClient:
    """Client for fetching wiki pages from the origin server."""

    def __init__(
        self,
        origin_url: str,
        *,
        timeout: float = 30.0,
        metrics: Optional["MetricsCollector"] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.origin_url = origin_url.rstrip('/')
        self.logger = get_logger("edge.origin_client")
        self.metrics = metrics
        self._client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=False,
            transport=transport,
        )

    def origin_target(self, request: OutboundRequest) -> str:
        """Map the outbound request onto the origin base URL, keeping the raw path and query."""
        origin = urlsplit(self.origin_url)
        url = request.split_url
        return urlunsplit((origin.scheme, origin.netloc, origin.path + url.path, url.query, ""))

    def _request_headers(self, request: OutboundRequest) -> Headers:
        headers = without_headers(
            request.headers,
            HOP_BY_HOP_HEADERS + ("host", "content-length", "accept-encoding"),
        )
        forwarded_host = request.split_url.netloc
        if forwarded_host:
            headers = without_headers(headers, ["x-forwarded-host"]) + (("X-Forwarded-Host", forwarded_host),)
        # Bodies are decoded before they reach the edge surface.
        return headers + (("Accept-Encoding", "gzip, deflate"),)

    async def dispatch(
        self,
        request: OutboundRequest,
        cache_directive: Optional[CacheDirective] = None,
    ) -> EdgeResponse:
        """Fetch ``request`` from the origin and wrap the response."""
        url = self.origin_target(request)
        start_time = time.time()
        try:
            response = await self._client.request(
                request.method,
                url,
                headers=encode_headers(self._request_headers(request)),
                content=request.body or None,
            )
        except httpx.TransportError as exc:
            self.logger.error("Origin fetch failed", url=url, method=request.method, error=str(exc))
            raise OriginUnavailableError(
                message=str(exc) or exc.__class__.__name__,
                details={"url": url, "method": request.method},
            ) from exc

        duration = time.time() - start_time
        if self.metrics:
            self.metrics.observe_histogram(
                "edge_origin_fetch_duration_seconds",
                duration,
                status_class=status_class(response.status_code),
            )

        self.logger.debug(
            "Origin response received",
            url=url,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )

        headers = self._response_headers(response)
        return EdgeResponse(
            status_code=response.status_code,
            headers=apply_cache_directive(headers, response.status_code, cache_directive),
            content=response.content,
        )

    def _response_headers(self, response: httpx.Response) -> Headers:
        raw = decode_headers(response.headers.raw)
        # httpx has already decoded the body, so length and encoding no longer apply.
        return without_headers(raw, HOP_BY_HOP_HEADERS + ("content-length", "content-encoding"))

    async def check_health(self) -> str:
        """Reachability check used by the health endpoint."""
        try:
            await self._client.head(self.origin_url + "/")
        except httpx.TransportError:
            return "error"
        return "ok"

    async def close(self):
        await self._client.aclose()
