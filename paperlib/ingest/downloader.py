"""
Streaming HTTP downloader.

One attempt per call, no retries: retry policy belongs to the caller.
Redirects are followed manually so the hop count is bounded (default one
hop); a longer chain is rejected instead of followed.
"""

import logging
from typing import Callable, Optional

import httpx

from paperlib.config import config
from paperlib.ingest.cancellation import CancellationToken, run_cancellable
from paperlib.ingest.errors import HttpFailure, InvalidReference, NetworkFailure

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, Optional[int]], None]

REDIRECT_STATUSES = {301, 302, 303, 307, 308}


def _content_length(response: httpx.Response) -> Optional[int]:
    value = response.headers.get("Content-Length")
    if value is None:
        return None
    try:
        length = int(value)
    except ValueError:
        return None
    return length if length >= 0 else None


class Downloader:
    """
    Download a URL into memory.

    Usage:
        downloader = Downloader()
        data = await downloader.download(url, token, on_progress=print)
    """

    def __init__(
        self,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        max_redirects: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize downloader.

        Args:
            user_agent: User-Agent header (config.USER_AGENT if not provided)
            timeout: Connect/read timeout in seconds (config.HTTP_TIMEOUT)
            max_redirects: Redirect hops to follow (config.MAX_REDIRECTS)
            transport: Custom httpx transport, e.g. httpx.MockTransport in tests
        """
        self.user_agent = user_agent or config.USER_AGENT
        self.timeout = timeout if timeout is not None else config.HTTP_TIMEOUT
        self.max_redirects = max_redirects if max_redirects is not None else config.MAX_REDIRECTS
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=self.timeout,
            follow_redirects=False,
            headers={
                "User-Agent": self.user_agent,
                "Accept": "application/pdf,*/*;q=0.8",
            },
        )

    async def download(
        self,
        url: str,
        token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bytes:
        """
        Fetch `url` and return the response body.

        Args:
            url: http(s) URL
            token: Cancellation token; when it fires the request is torn down
            on_progress: Called with (received_bytes, total_bytes) per chunk
                when the server sent Content-Length

        Returns:
            Response body

        Raises:
            DownloadCancelled: Token fired before the body was complete
            HttpFailure: Non-200 final status or too many redirects
            NetworkFailure: Connection / read errors
            InvalidReference: Malformed or non-HTTP URL
        """
        token = token or CancellationToken()
        return await run_cancellable(self._fetch(url, on_progress), token)

    async def _fetch(self, url: str, on_progress: Optional[ProgressCallback]) -> bytes:
        current_url = url
        hops = 0

        try:
            async with self._client() as client:
                while True:
                    logger.debug(f"GET {current_url}")
                    async with client.stream("GET", current_url) as response:
                        status = response.status_code

                        if status in REDIRECT_STATUSES:
                            location = response.headers.get("Location")
                            if not location:
                                raise HttpFailure(status, current_url, "redirect without Location")
                            if hops >= self.max_redirects:
                                raise HttpFailure(status, current_url, "too many redirects")
                            hops += 1
                            current_url = str(response.url.join(location))
                            logger.debug(f"Redirect {status} -> {current_url}")
                            continue

                        if status != 200:
                            raise HttpFailure(status, current_url, response.reason_phrase)

                        return await self._read_body(response, on_progress)

        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise InvalidReference(f"Invalid URL {url}: {e}") from e
        except httpx.TransportError as e:
            raise NetworkFailure(f"Download failed for {url}: {e}") from e

    async def _read_body(
        self,
        response: httpx.Response,
        on_progress: Optional[ProgressCallback],
    ) -> bytes:
        total = _content_length(response)
        received = 0
        chunks = []

        async for chunk in response.aiter_bytes():
            chunks.append(chunk)
            received += len(chunk)
            if on_progress is not None and total:
                on_progress(received, total)

        logger.debug(f"Downloaded {received:,} bytes from {response.url}")
        return b"".join(chunks)
