"""Tests for the eBird upstream client."""

import asyncio
import time
from contextlib import asynccontextmanager

import httpx
import pytest
import respx

from ebird_proxy.app.exceptions import (
    UpstreamError,
    UpstreamMalformedError,
    UpstreamUnavailableError,
)
from ebird_proxy.app.services.ebird_client import EBirdClient

from conftest import BASE_URL, OBSERVATIONS


@pytest.fixture
def client():
    return EBirdClient(base_url=BASE_URL, api_key="test-key", timeout=2.0)


@pytest.mark.asyncio
async def test_fetch_returns_decoded_json(client):
    with respx.mock(base_url=BASE_URL) as mock:
        route = mock.get("/data/obs/US-MA/recent").mock(
            return_value=httpx.Response(200, json=OBSERVATIONS)
        )
        data = await client.fetch("/data/obs/US-MA/recent")

    assert data == OBSERVATIONS
    assert route.call_count == 1


@pytest.mark.asyncio
async def test_fetch_sends_token_and_accept_headers(client):
    with respx.mock(base_url=BASE_URL) as mock:
        route = mock.get("/ref/hotspot/US-MA").mock(
            return_value=httpx.Response(200, json=[])
        )
        await client.fetch("/ref/hotspot/US-MA")

    request = route.calls.last.request
    assert request.headers["X-eBirdApiToken"] == "test-key"
    assert request.headers["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_fetch_keeps_query_string(client):
    with respx.mock(base_url=BASE_URL) as mock:
        route = mock.get("/data/obs/geo/recent", params={"lat": "42", "lng": "-72"}).mock(
            return_value=httpx.Response(200, json=[])
        )
        await client.fetch("/data/obs/geo/recent?lat=42&lng=-72")

    assert route.called


def test_trailing_slash_in_base_url_is_ignored():
    client = EBirdClient(base_url=BASE_URL + "/", api_key="k")
    assert client._get_endpoint_url("/ref/taxonomy/ebird") == f"{BASE_URL}/ref/taxonomy/ebird"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 403, 404, 429, 503])
async def test_non_success_status_raises_upstream_error(client, status):
    with respx.mock(base_url=BASE_URL) as mock:
        mock.get("/data/obs/XX/recent").mock(
            return_value=httpx.Response(status, text="upstream said no")
        )
        with pytest.raises(UpstreamError) as exc_info:
            await client.fetch("/data/obs/XX/recent")

    assert exc_info.value.status_code == status
    assert exc_info.value.body == "upstream said no"
    assert exc_info.value.to_response() == {
        "error": f"eBird API error: {status}",
        "details": "upstream said no",
    }


@pytest.mark.asyncio
async def test_invalid_json_raises_malformed(client):
    with respx.mock(base_url=BASE_URL) as mock:
        mock.get("/data/obs/US-MA/recent").mock(
            return_value=httpx.Response(200, text="<html>not json</html>")
        )
        with pytest.raises(UpstreamMalformedError) as exc_info:
            await client.fetch("/data/obs/US-MA/recent")

    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_timeout_raises_unavailable(client):
    with respx.mock(base_url=BASE_URL) as mock:
        mock.get("/data/obs/US-MA/recent").mock(
            side_effect=httpx.ReadTimeout("timed out")
        )
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await client.fetch("/data/obs/US-MA/recent")

    assert exc_info.value.status_code == 500
    assert exc_info.value.to_response()["error"] == "Failed to fetch from eBird"


@pytest.mark.asyncio
async def test_connection_error_raises_unavailable(client):
    with respx.mock(base_url=BASE_URL) as mock:
        mock.get("/data/obs/US-MA/recent").mock(
            side_effect=httpx.ConnectError("connection refused")
        )
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await client.fetch("/data/obs/US-MA/recent")

    assert exc_info.value.reason == "connection refused"


@pytest.mark.asyncio
async def test_uses_injected_http_client():
    async with httpx.AsyncClient() as http_client:
        client = EBirdClient(base_url=BASE_URL, api_key="k", http_client=http_client)
        with respx.mock(base_url=BASE_URL) as mock:
            mock.get("/ref/taxonomy/ebird").mock(return_value=httpx.Response(200, json=[]))
            assert await client.fetch("/ref/taxonomy/ebird") == []
        assert not http_client.is_closed


def test_has_credential():
    assert EBirdClient(base_url=BASE_URL, api_key="k").has_credential is True
    assert EBirdClient(base_url=BASE_URL, api_key="").has_credential is False


@pytest.mark.asyncio
async def test_broken_content_encoding_raises_malformed(client):
    with respx.mock(base_url=BASE_URL) as mock:
        mock.get("/data/obs/US-MA/recent").mock(
            return_value=httpx.Response(
                200, headers={"Content-Encoding": "gzip"}, content=b"not gzip"
            )
        )
        with pytest.raises(UpstreamMalformedError) as exc_info:
            await client.fetch("/data/obs/US-MA/recent")

    assert exc_info.value.to_response()["error"] == "Failed to fetch from eBird"


@asynccontextmanager
async def trickling_server(body: bytes, interval: float):
    """Local HTTP server that sends the body one byte at a time."""
    stop = asyncio.Event()

    async def handle(reader, writer):
        try:
            await reader.readuntil(b"\r\n\r\n")
            writer.write(
                b"HTTP/1.1 200 OK\r\nContent-Type: application/json\r\n"
                + f"Content-Length: {len(body)}\r\n\r\n".encode()
            )
            await writer.drain()
            for byte in body:
                if stop.is_set():
                    break
                writer.write(bytes([byte]))
                await writer.drain()
                await asyncio.sleep(interval)
        except (ConnectionError, asyncio.IncompleteReadError):
            pass
        finally:
            writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        yield f"http://127.0.0.1:{port}"
    finally:
        stop.set()
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_slow_body_is_bounded_by_overall_timeout():
    body = b'[{"speciesCode": 1}]'
    async with trickling_server(body, interval=0.2) as base_url:
        # Each byte arrives well within the read timeout
        async with httpx.AsyncClient(timeout=httpx.Timeout(5.0), trust_env=False) as http_client:
            client = EBirdClient(
                base_url=base_url, api_key="k", http_client=http_client, timeout=0.5
            )
            started = time.monotonic()
            with pytest.raises(UpstreamUnavailableError) as exc_info:
                await client.fetch("/data/obs/US-MA/recent")
            elapsed = time.monotonic() - started

    assert exc_info.value.reason == "Upstream request timed out"
    assert elapsed < 2.0
