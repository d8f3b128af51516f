"""
Wiki Edge service.

Every path outside ``/_edge`` is proxied to the wiki origin. Before the fetch
the request is classified: cache eligibility, canonical article path, and the
client's display preferences.
"""

from typing import Optional

from fastapi import Request, Response

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config

from .adapters.origin_client import OriginClient
from .domain.cache_policy import CacheConfig
from .domain.client_prefs import apply_client_prefs_to_html
from .domain.messages import EdgeResponse, InboundRequest, decode_headers, encode_headers, without_headers
from .domain.wiki_request import WikiRequest

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class EdgeService(BaseService):
    """Edge service implementation."""

    ops_prefix = "/_edge"

    def __init__(self, config: Optional[ServiceConfig] = None, origin_client: Optional[OriginClient] = None):
        super().__init__("edge", 8000, config=config or get_config("edge", 8000))
        self.cache_config = CacheConfig.from_settings(self.config)
        self.origin_client = origin_client or OriginClient(
            self.config.origin_url,
            timeout=self.config.origin_timeout_seconds,
            metrics=self.metrics,
        )

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.origin_client.close()

        self._setup_edge_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.edge_service = self

    def _setup_edge_routes(self):
        """Set up the catch-all proxy route."""

        @self.app.get(f"{self.ops_prefix}/policy")
        async def get_policy():
            """Active cache policy."""
            return {
                "private_cookie_names": sorted(self.cache_config.private_cookie_names),
                "cached_namespaces": sorted(self.cache_config.cached_namespaces),
                "client_prefs_cookie_name": self.cache_config.client_prefs_cookie_name,
                "client_prefs_class_prefixes": list(self.cache_config.client_prefs_class_prefixes),
                "page_ttl_seconds": self.cache_config.page_ttl_seconds,
                "missing_page_ttl_seconds": self.cache_config.missing_page_ttl_seconds,
                "entry_point_path": self.cache_config.entry_point_path,
                "article_path_prefix": self.cache_config.article_path_prefix,
            }

        @self.app.api_route("/{full_path:path}", methods=PROXY_METHODS, include_in_schema=False)
        async def proxy(request: Request, full_path: str):
            inbound = await self._inbound_request(request)
            return await self.handle_request(inbound)

    async def _inbound_request(self, request: Request) -> InboundRequest:
        return InboundRequest(
            method=request.method,
            url=self._inbound_url(request),
            headers=decode_headers(request.headers.raw),
            body=await request.body(),
        )

    def _inbound_url(self, request: Request) -> str:
        """Rebuild the request URL from the raw ASGI path so percent-escapes survive."""
        raw_path = request.scope.get("raw_path")
        if raw_path:
            path = raw_path.split(b"?", 1)[0].decode("latin-1")
        else:
            path = request.url.path
        query = request.scope.get("query_string", b"").decode("latin-1")
        host = request.headers.get("host") or request.url.netloc
        url = f"{request.url.scheme}://{host}{path}"
        if query:
            url = f"{url}?{query}"
        return url

    async def handle_request(self, inbound: InboundRequest) -> Response:
        """Classify, dispatch and render one proxied request."""
        wiki_request = WikiRequest(inbound, self.cache_config)
        decision = wiki_request.cache_decision
        self.metrics.record_cache_decision(decision.eligible, decision.reason)

        canonical_path = None
        if wiki_request.should_canonicalize:
            canonical_path = wiki_request.outbound_request().split_url.path
            self.metrics.increment_counter("edge_canonicalized_total")

        edge_response = await wiki_request.fetch(self.origin_client)

        if self.config.apply_client_prefs:
            edge_response = self._apply_client_prefs(wiki_request, edge_response)

        self.logger.info(
            "Edge request handled",
            method=inbound.method,
            path=wiki_request.url.path,
            namespace=getattr(wiki_request.article, "namespace", None),
            eligible=decision.eligible,
            reason=decision.reason,
            reason_detail=decision.detail,
            canonical_path=canonical_path,
            origin_status=edge_response.status_code,
        )

        return self._to_response(edge_response)

    def _apply_client_prefs(self, wiki_request: WikiRequest, edge_response: EdgeResponse) -> EdgeResponse:
        prefs = wiki_request.get_client_prefs()
        if not prefs or edge_response.media_type != "text/html":
            return edge_response

        content = apply_client_prefs_to_html(edge_response.content, prefs)
        if content == edge_response.content:
            return edge_response

        # The body now depends on a cookie, so this copy must not be shared.
        headers = without_headers(edge_response.headers, ["cdn-cache-control"])
        return EdgeResponse(
            status_code=edge_response.status_code,
            headers=headers + (("CDN-Cache-Control", "no-store"),),
            content=content,
        )

    def _to_response(self, edge_response: EdgeResponse) -> Response:
        response = Response(content=edge_response.content, status_code=edge_response.status_code)
        response.raw_headers.extend(
            encode_headers(tuple((key.lower(), value) for key, value in edge_response.headers))
        )
        return response

    async def _check_dependencies(self):
        """Check edge dependencies."""
        return {"origin": await self.origin_client.check_health()}


def create_app(config: Optional[ServiceConfig] = None):
    """Create FastAPI application."""
    service = EdgeService(config=config)
    return service.app


def main():
    """Run the edge with settings from the environment."""
    EdgeService().run()


if __name__ == "__main__":
    main()
