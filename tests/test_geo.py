"""Tests for the ipapi location resolver."""

import asyncio
import logging

import httpx

from docview_analytics.geo import IpapiLocationResolver


def run_async(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _lookup(handler, access_key="test-key", ip_address="203.0.113.7"):
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            resolver = IpapiLocationResolver(access_key, client=client)
            return await resolver.lookup(ip_address)

    return run_async(scenario())


class TestIpapiLocationResolver:
    """Test IpapiLocationResolver.lookup()."""

    def test_maps_ipapi_fields(self):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            return httpx.Response(200, json={
                "ip": "203.0.113.7",
                "city": "Porto",
                "region_name": "Porto",
                "country_name": "Portugal",
            })

        location = _lookup(handler)

        assert location.city == "Porto"
        assert location.region == "Porto"
        assert location.country == "Portugal"
        assert seen["url"].host == "api.ipapi.com"
        assert seen["url"].path == "/203.0.113.7"
        assert seen["url"].params["access_key"] == "test-key"

    def test_blank_fields_become_unknown(self):
        def handler(request):
            return httpx.Response(200, json={"city": None, "region_name": "", "country_name": "Japan"})

        location = _lookup(handler)
        assert location.city == "Unknown"
        assert location.region == "Unknown"
        assert location.country == "Japan"

    def test_http_error_is_unknown(self, caplog):
        def handler(request):
            return httpx.Response(503)

        with caplog.at_level(logging.ERROR):
            location = _lookup(handler)

        assert location.key == ("Unknown", "Unknown", "Unknown")
        assert "Location lookup failed" in caplog.text

    def test_network_error_is_unknown(self):
        def handler(request):
            raise httpx.ConnectError("no route to host")

        assert _lookup(handler).city == "Unknown"

    def test_bad_json_is_unknown(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>oops</html>")

        assert _lookup(handler).country == "Unknown"

    def test_ipapi_error_body_is_unknown(self, caplog):
        def handler(request):
            return httpx.Response(200, json={
                "success": False,
                "error": {"code": 101, "type": "invalid_access_key"},
            })

        with caplog.at_level(logging.ERROR):
            location = _lookup(handler)

        assert location.city == "Unknown"
        assert "invalid_access_key" in caplog.text

    def test_no_key_skips_request(self):
        def handler(request):
            raise AssertionError("should not be called")

        assert _lookup(handler, access_key=None).city == "Unknown"

    def test_no_ip_skips_request(self):
        def handler(request):
            raise AssertionError("should not be called")

        assert _lookup(handler, ip_address=None).city == "Unknown"

    def test_each_reader_located_separately(self):
        """Two readers at different addresses give two different requests."""
        seen = []

        def handler(request):
            seen.append(str(request.url))
            cities = {"/203.0.113.7": "Porto", "/198.51.100.20": "Osaka"}
            return httpx.Response(200, json={"city": cities[request.url.path]})

        async def scenario():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                resolver = IpapiLocationResolver("test-key", client=client)
                return (
                    await resolver.lookup("203.0.113.7"),
                    await resolver.lookup("198.51.100.20"),
                )

        first, second = run_async(scenario())

        assert seen[0] != seen[1]
        assert first.city == "Porto"
        assert second.city == "Osaka"
        assert first.key != second.key
