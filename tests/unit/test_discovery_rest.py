"""Tests for REST discovery."""

import asyncio
import json

import httpx
import pytest

from pluginctl.core.discovery.rest import RESTDiscovery
from pluginctl.lib.typed_errors import UpstreamError, VersionParseError


def listing(*plugins: dict) -> dict:
    return {"plugins": list(plugins)}


def rest_plugin(name: str = "cluster", versions=("v1.0.0",), **kwargs) -> dict:
    return {
        "name": name,
        "description": f"{name} plugin",
        "recommendedVersion": versions[-1] if versions else "",
        "artifacts": {
            v: [{"uri": f"https://example.com/{name}/{v}/linux/amd64", "os": "linux", "arch": "amd64"}]
            for v in versions
        },
        **kwargs,
    }


def make_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestRESTDiscovery:
    def test_url_joins_endpoint_and_base_path(self):
        """Test that the URL joins endpoint and base path with one slash."""
        d = RESTDiscovery("rest", "https://plugins.example.com/", "/v1/plugins")
        assert d.url == "https://plugins.example.com/v1/plugins"

    def test_type(self):
        """Test the REST discovery type name."""
        assert RESTDiscovery("rest", "https://x", "y").type == "rest"

    @pytest.mark.asyncio
    async def test_lists_and_normalizes(self):
        """Test that a listing is fetched as JSON and normalized."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["accept"] = request.headers.get("accept")
            return httpx.Response(
                200,
                json=listing(rest_plugin("cluster", ("v1.10.0", "v1.2.0"), target="k8s")),
            )

        async with make_client(handler) as client:
            d = RESTDiscovery("my-rest", "https://plugins.example.com", "v1/plugins", client=client)
            plugins = await d.list()

        assert seen["url"] == "https://plugins.example.com/v1/plugins"
        assert seen["accept"].startswith("application/json")
        assert len(plugins) == 1
        plugin = plugins[0]
        assert plugin.name == "cluster"
        assert plugin.target == "kubernetes"
        assert plugin.supported_versions == ["v1.2.0", "v1.10.0"]
        assert plugin.source == "my-rest"
        assert plugin.discovery_type == "rest"
        assert plugin.artifact("v1.2.0", "linux", "amd64").uri.endswith("/v1.2.0/linux/amd64")

    @pytest.mark.asyncio
    async def test_entries_without_name_dropped(self):
        """Test that entries without a name are dropped."""
        def handler(request):
            return httpx.Response(200, json=listing(rest_plugin(""), rest_plugin("package")))

        async with make_client(handler) as client:
            plugins = await RESTDiscovery("r", "https://x", "p", client=client).list()

        assert [p.name for p in plugins] == ["package"]

    @pytest.mark.asyncio
    async def test_empty_listing(self):
        """Test that a body without plugins yields an empty list."""
        def handler(request):
            return httpx.Response(200, json={})

        async with make_client(handler) as client:
            assert await RESTDiscovery("r", "https://x", "p", client=client).list() == []

    @pytest.mark.asyncio
    async def test_non_success_status_raises(self):
        """Test that a non-2xx status raises UpstreamError with status and URL."""
        def handler(request):
            return httpx.Response(404, text="not found")

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await RESTDiscovery("r", "https://x", "p", client=client).list()

        assert exc_info.value.status_code == 404
        assert "API error, status code: 404" in str(exc_info.value)
        assert exc_info.value.url == "https://x/p"

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self):
        """Test that a non-JSON body raises UpstreamError."""
        def handler(request):
            return httpx.Response(200, text="<html>")

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError):
                await RESTDiscovery("r", "https://x", "p", client=client).list()

    @pytest.mark.asyncio
    async def test_wrong_shape_raises(self):
        """Test that a listing of the wrong shape raises UpstreamError."""
        def handler(request):
            return httpx.Response(200, content=json.dumps({"plugins": "nope"}).encode())

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError):
                await RESTDiscovery("r", "https://x", "p", client=client).list()

    @pytest.mark.asyncio
    async def test_timeout_raises_upstream_error(self):
        """Test that a request timeout raises UpstreamError."""
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await RESTDiscovery("r", "https://x", "p", client=client, timeout=0.1).list()

        assert "timed out" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connect_error_raises_upstream_error(self):
        """Test that a connection failure raises UpstreamError."""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError):
                await RESTDiscovery("r", "https://x", "p", client=client).list()

    @pytest.mark.asyncio
    async def test_invalid_version_raises(self):
        """Test that a malformed version raises VersionParseError."""
        def handler(request):
            return httpx.Response(200, json=listing(rest_plugin("cluster", ("v1.0.0", "garbage"))))

        async with make_client(handler) as client:
            with pytest.raises(VersionParseError) as exc_info:
                await RESTDiscovery("r", "https://x", "p", client=client).list()

        assert exc_info.value.plugin == "cluster"
        assert exc_info.value.version == "garbage"

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        """Test that cancelling an in-flight request propagates."""
        started = asyncio.Event()

        async def handler(request):
            started.set()
            await asyncio.sleep(10)
            return httpx.Response(200, json=listing())

        async with make_client(handler) as client:
            task = asyncio.create_task(RESTDiscovery("r", "https://x", "p", client=client).list())
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
