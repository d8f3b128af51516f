"""
Tests for the Edge service HTTP surface.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from shared.config import get_config
from service_edge.app.adapters.origin_client import OriginClient
from service_edge.app.main import EdgeService


class FakeOrigin:
    """httpx handler standing in for the wiki origin."""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.content_type = "text/html; charset=UTF-8"
        self.body = b'<!DOCTYPE html><html class="client-nojs mf-theme-light" lang="en"><body>page</body></html>'
        self.fail = False
        self.extra_headers = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            raise httpx.ConnectError("connection refused", request=request)
        self.requests.append(request)
        return httpx.Response(
            self.status_code,
            headers=[
                ("content-type", self.content_type),
                ("set-cookie", "a=1; Path=/"),
                ("set-cookie", "b=2; Path=/"),
            ] + self.extra_headers,
            content=self.body,
        )


@pytest.fixture
def origin():
    return FakeOrigin()


def _service(origin, **overrides):
    settings = dict(
        origin_url="http://origin.internal",
        private_cookie_names=["wiki_session", "wikiUserID"],
        cached_namespaces=["", "Category", "Help"],
        client_prefs_cookie_name="mwclientpreferences",
        client_prefs_class_prefixes=["mf-tabs-", "mf-theme-"],
        page_ttl_seconds=3600,
        missing_page_ttl_seconds=120,
    )
    settings.update(overrides)
    config = get_config("edge", 8000, **settings)
    origin_client = OriginClient(config.origin_url, transport=httpx.MockTransport(origin))
    return EdgeService(config=config, origin_client=origin_client)


@pytest.fixture
def service(origin):
    return _service(origin)


@pytest.fixture
def client(service):
    """Create test client."""
    return TestClient(service.app)


class TestEdgeService:
    """Test cases for EdgeService."""

    def test_health_endpoint(self, client):
        response = client.get("/_edge/health")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "edge"
        assert data["status"] == "ok"
        assert data["dependencies"]["origin"] == "ok"

    def test_metrics_endpoint(self, client):
        client.get("/w/Birds")
        response = client.get("/_edge/metrics")
        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert 'edge_cache_decisions_total{eligible="true",reason="eligible"} 1.0' in response.text

    def test_policy_endpoint(self, client):
        response = client.get("/_edge/policy")
        assert response.status_code == 200
        data = response.json()
        assert data["cached_namespaces"] == ["", "Category", "Help"]
        assert data["page_ttl_seconds"] == 3600

    def test_eligible_entry_point_request_is_canonicalized(self, client, origin, service):
        response = client.get("/index.php?title=Help:Contents")

        assert response.status_code == 200
        sent = origin.requests[-1]
        assert sent.url.raw_path == b"/w/Help:Contents"
        assert response.headers["cdn-cache-control"] == "public, max-age=3600"
        assert response.headers["x-edge-cache-eligible"] == "1"
        assert service.metrics.registry.get_sample_value("edge_canonicalized_total") == 1.0

    def test_ineligible_request_is_forwarded_verbatim(self, client, origin):
        response = client.get("/index.php?title=Help:Contents&action=edit")

        sent = origin.requests[-1]
        assert sent.url.raw_path == b"/index.php?title=Help:Contents&action=edit"
        assert "cdn-cache-control" not in response.headers
        assert response.headers["x-edge-cache-eligible"] == "0"

    def test_private_cookie_bypasses_cache(self, client, origin):
        client.cookies.set("wiki_session", "s3cr3t")

        response = client.get("/index.php?title=Help:Contents")

        assert origin.requests[-1].url.raw_path == b"/index.php?title=Help:Contents"
        assert origin.requests[-1].headers["cookie"] == "wiki_session=s3cr3t"
        assert "cdn-cache-control" not in response.headers

    def test_percent_escapes_reach_origin_undecoded(self, client, origin):
        client.get("/w/Help%3AContents")
        assert origin.requests[-1].url.raw_path == b"/w/Help%3AContents"

    def test_root_path_is_proxied(self, client, origin):
        response = client.get("/")
        assert response.status_code == 200
        assert origin.requests[-1].url.raw_path == b"/"
        assert response.headers["cdn-cache-control"] == "public, max-age=3600"

    def test_missing_page_ttl(self, client, origin):
        origin.status_code = 404
        response = client.get("/w/Nope")
        assert response.status_code == 404
        assert response.headers["cdn-cache-control"] == "public, max-age=120"

    def test_origin_error_is_not_cached(self, client, origin):
        origin.status_code = 503
        response = client.get("/w/Birds")
        assert response.status_code == 503
        assert response.headers["cdn-cache-control"] == "no-store"

    def test_response_body_and_headers_preserved(self, client, origin):
        response = client.get("/w/Birds")

        assert response.content == origin.body
        assert response.headers["content-type"] == "text/html; charset=UTF-8"
        assert response.headers.get_list("set-cookie") == ["a=1; Path=/", "b=2; Path=/"]

    def test_non_ascii_request_header_is_forwarded(self, client, origin):
        referer = "https://wiki.example/w/Café".encode("utf-8")

        response = client.get("/w/Birds", headers=[(b"referer", referer)])

        assert response.status_code == 200
        assert (b"referer", referer) in origin.requests[-1].headers.raw

    @pytest.mark.asyncio
    async def test_non_ascii_response_header_is_returned_unchanged(self, service, origin):
        disposition = "inline; filename=€.txt".encode("utf-8")
        origin.extra_headers = [(b"content-disposition", disposition)]

        # ASGITransport keeps header bytes as-is on the way back.
        transport = httpx.ASGITransport(app=service.app)
        async with httpx.AsyncClient(transport=transport, base_url="http://wiki.example") as asgi_client:
            response = await asgi_client.get("/w/Birds")

        assert response.status_code == 200
        assert (b"content-disposition", disposition) in response.headers.raw

    def test_post_is_proxied(self, client, origin):
        response = client.post("/index.php?title=Special:Search", content=b"search=birds")
        assert response.status_code == 200
        assert origin.requests[-1].method == "POST"
        assert origin.requests[-1].content == b"search=birds"

    def test_origin_unavailable(self, client, origin):
        origin.fail = True

        response = client.get("/w/Birds")

        assert response.status_code == 502
        data = response.json()
        assert data["code"] == "ORIGIN_UNAVAILABLE"

    def test_request_id_is_echoed(self, client):
        response = client.get("/w/Birds", headers={"X-Request-ID": "req-1"})
        assert response.headers["x-request-id"] == "req-1"

    def test_client_prefs_not_applied_by_default(self, client, origin):
        client.cookies.set("mwclientpreferences", "mf-theme-dark")
        response = client.get("/w/Birds")
        assert response.content == origin.body


class TestClientPrefsApplication:
    """Test cases for applying display preferences to served pages."""

    @pytest.fixture
    def client(self, origin):
        return TestClient(_service(origin, apply_client_prefs=True).app)

    def test_rewrites_html_class(self, client):
        client.cookies.set("mwclientpreferences", "mf-theme-dark")

        response = client.get("/w/Birds")

        assert b'<html class="client-nojs mf-theme-dark" lang="en">' in response.content
        assert response.headers["cdn-cache-control"] == "no-store"

    def test_leaves_non_html_alone(self, client, origin):
        origin.content_type = "application/json"
        origin.body = b'{"html": "<html class=x>"}'
        client.cookies.set("mwclientpreferences", "mf-theme-dark")

        response = client.get("/w/Birds")

        assert response.content == origin.body
        assert response.headers["cdn-cache-control"] == "public, max-age=3600"

    def test_without_preference_cookie(self, client, origin):
        response = client.get("/w/Birds")
        assert response.content == origin.body
        assert response.headers["cdn-cache-control"] == "public, max-age=3600"
