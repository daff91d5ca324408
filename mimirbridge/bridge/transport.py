"""HTTP transport for scraping exposition endpoints and pushing remote writes."""

from typing import Dict, Optional, Tuple

import httpx
import structlog

from mimirbridge import __version__
from mimirbridge.bridge.protocol import PrometheusRemoteWrite
from mimirbridge.exceptions import PushError, ScrapeError

logger = structlog.get_logger(__name__)

SCRAPE_ACCEPT = "text/plain; version=0.0.4"


class TransportClient:
    """
    Performs the scrape (GET) and push (POST) exchanges of the bridge.

    Neither call retries. Any transport failure or non-2xx status raises, and
    the caller decides whether to try again on its next tick.

    Example:
        async with TransportClient(scrape_url, push_url, timeout=10.0) as transport:
            body = await transport.scrape()
            await transport.push(payload)
    """

    def __init__(
        self,
        scrape_url: str,
        push_url: str,
        timeout: float = 10.0,
        tenant_id: Optional[str] = None,
        auth: Optional[Tuple[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize transport.

        Args:
            scrape_url: Endpoint exposing text-exposition metrics
            push_url: Remote-write endpoint
            timeout: Seconds allowed for each exchange
            tenant_id: Sent as X-Scope-OrgID on push when set
            auth: Basic auth credentials for push
            client: Pre-built client (tests inject one with a mock transport)
        """
        self.scrape_url = scrape_url
        self.push_url = push_url
        self.timeout = timeout
        self.tenant_id = tenant_id
        self.auth = auth
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": f"mimirbridge/{__version__}"},
        )

    async def __aenter__(self) -> "TransportClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def scrape(self) -> bytes:
        """Fetch the exposition body.

        Raises:
            ScrapeError: On transport failure, timeout, or a non-2xx status
        """
        try:
            response = await self._client.get(
                self.scrape_url,
                headers={"Accept": SCRAPE_ACCEPT},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise ScrapeError(self.scrape_url, f"timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ScrapeError(self.scrape_url, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise ScrapeError(
                self.scrape_url,
                f"unexpected status code {response.status_code}",
                status_code=response.status_code,
            )

        logger.debug(
            "scrape_completed",
            url=self.scrape_url,
            status_code=response.status_code,
            bytes=len(response.content),
        )
        return response.content

    def push_headers(self) -> Dict[str, str]:
        headers = PrometheusRemoteWrite.request_headers()
        if self.tenant_id:
            headers["X-Scope-OrgID"] = self.tenant_id
        return headers

    async def push(self, payload: bytes) -> int:
        """POST a compressed write request.

        Returns:
            int: The 2xx status code returned by the store

        Raises:
            PushError: On transport failure, timeout, or a non-2xx status; the
                response body is kept for diagnostics
        """
        try:
            response = await self._client.post(
                self.push_url,
                content=payload,
                headers=self.push_headers(),
                auth=self.auth if self.auth else httpx.USE_CLIENT_DEFAULT,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise PushError(self.push_url, f"timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise PushError(self.push_url, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise PushError(
                self.push_url,
                f"unexpected status code {response.status_code}",
                status_code=response.status_code,
                body=response.text.strip(),
            )

        logger.debug(
            "push_completed",
            url=self.push_url,
            status_code=response.status_code,
            bytes=len(payload),
        )
        return response.status_code
