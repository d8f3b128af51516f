"""
Tests for the shared service plumbing: request context and log processors.
"""

import pytest
from fastapi import Response
from starlette.requests import Request

from shared.base_service import BaseService
from shared.config import get_config
from shared.logging import add_correlation_context, request_id_var, service_context, set_request_id


def _request(request_id=None):
    headers = [(b"x-request-id", request_id.encode())] if request_id else []
    return Request({"type": "http", "method": "GET", "path": "/w/A", "headers": headers, "query_string": b""})


@pytest.fixture
def service():
    return BaseService("edge", 8000, config=get_config("edge", 8000))


class TestRequestTiming:
    """Test cases for the request timing middleware."""

    @pytest.mark.asyncio
    async def test_echoes_request_id_and_clears_context(self, service):
        async def call_next(request):
            assert request_id_var.get() == "req-7"
            return Response(status_code=204)

        response = await service._time_request(_request("req-7"), call_next)

        assert response.headers["X-Request-ID"] == "req-7"
        assert request_id_var.get() is None

    @pytest.mark.asyncio
    async def test_clears_context_when_handler_raises(self, service):
        seen = []

        async def call_next(request):
            seen.append(request_id_var.get())
            raise RuntimeError("handler failed")

        with pytest.raises(RuntimeError):
            await service._time_request(_request("req-9"), call_next)

        assert seen == ["req-9"]
        assert request_id_var.get() is None


class TestLogProcessors:
    """Test cases for the structlog processors."""

    def test_service_taken_from_logger_name(self):
        event = service_context("edge")(None, "info", {"logger": "edge.origin_client"})
        assert event["service"] == "edge"

    def test_service_falls_back_to_configured_name(self):
        event = service_context("edge")(None, "info", {"event": "started"})
        assert event["service"] == "edge"

    def test_request_id_added_inside_request(self):
        token = request_id_var.set(None)
        try:
            assert "request_id" not in add_correlation_context(None, "info", {})

            set_request_id("req-3")

            assert add_correlation_context(None, "info", {})["request_id"] == "req-3"
        finally:
            request_id_var.reset(token)

    def test_generates_request_id_when_missing(self):
        token = request_id_var.set(None)
        try:
            request_id = set_request_id(None)
            assert request_id
            assert request_id_var.get() == request_id
        finally:
            request_id_var.reset(token)
