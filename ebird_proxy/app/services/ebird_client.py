import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ebird_proxy.app.core.http_client import get_http_client
from ebird_proxy.app.core.logging import get_logger
from ebird_proxy.app.exceptions import (
    UpstreamError,
    UpstreamMalformedError,
    UpstreamUnavailableError,
)

logger = get_logger(__name__)


class EBirdClient:
    """eBird API v2 client with support for shared HTTP client connection pooling.

    If http_client is provided, it is used for all requests (connection reuse).
    If not, the application's shared client is used while the lifespan is
    active, and a new client is created per request otherwise.

    No retries are performed; a failed fetch is reported once and the caller
    decides what to do with it.
    """

    TOKEN_HEADER = "X-eBirdApiToken"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        """Initialize the client.

        Args:
            base_url: The eBird API base URL
            api_key: The eBird API token, supplied by deployment config
            http_client: Optional shared HTTP client
            timeout: Request timeout in seconds
        """
        self._http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    def _get_endpoint_url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _build_headers(self) -> Dict[str, str]:
        return {
            self.TOKEN_HEADER: self.api_key,
            "Accept": "application/json",
        }

    @asynccontextmanager
    async def _client_context(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the shared client, or a short-lived one that is closed afterwards."""
        shared = self._http_client
        if shared is None:
            try:
                shared = get_http_client()
            except RuntimeError:
                # Lifespan not active (scripts, some tests)
                shared = None
        if shared is not None:
            yield shared
            return
        client = httpx.AsyncClient(timeout=self.timeout)
        try:
            yield client
        finally:
            await client.aclose()

    async def fetch(self, path: str) -> Any:
        """GET a validated upstream path and return the decoded JSON body.

        Args:
            path: Normalized path, e.g. ``/data/obs/US-MA/recent``

        Returns:
            The decoded JSON payload

        Raises:
            UpstreamUnavailableError: No HTTP status was obtained
            UpstreamError: eBird answered with a non-success status
            UpstreamMalformedError: The body could not be decoded, or a success
                response did not contain JSON
        """
        url = self._get_endpoint_url(path)
        logger.info("Proxying to eBird", extra={"endpoint": path})

        try:
            # httpx timeouts apply per phase; this bounds the whole exchange
            async with asyncio.timeout(self.timeout):
                async with self._client_context() as client:
                    resp = await client.get(url, headers=self._build_headers())
        except (httpx.TimeoutException, TimeoutError) as e:
            logger.warning("eBird request timed out", extra={"endpoint": path})
            raise UpstreamUnavailableError("Upstream request timed out") from e
        except httpx.DecodingError as e:
            logger.error(
                "eBird response could not be decoded",
                extra={"endpoint": path, "error": str(e)},
            )
            raise UpstreamMalformedError(str(e) or type(e).__name__) from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            logger.warning(
                "eBird request failed",
                extra={"endpoint": path, "error": str(e)},
            )
            raise UpstreamUnavailableError(str(e) or type(e).__name__) from e

        if not resp.is_success:
            logger.error(
                f"eBird API error: {resp.status_code}",
                extra={"endpoint": path, "upstream_status": resp.status_code},
            )
            raise UpstreamError(resp.status_code, resp.text)

        try:
            return resp.json()
        except ValueError as e:
            logger.error(
                "eBird returned a malformed body",
                extra={"endpoint": path, "upstream_status": resp.status_code},
            )
            raise UpstreamMalformedError(str(e)) from e
