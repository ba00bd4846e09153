"""
HTTPX MockTransport-based coverage for the streaming downloader.
"""

import asyncio

import httpx
import pytest

from paperlib.ingest.cancellation import CancellationToken
from paperlib.ingest.downloader import Downloader
from paperlib.ingest.errors import DownloadCancelled, HttpFailure, NetworkFailure

PAYLOAD = b"%PDF-1.7\n" + b"x" * 4096


def _downloader(handler, **kwargs) -> Downloader:
    return Downloader(transport=httpx.MockTransport(handler), user_agent="PaperlibTest/1.0", **kwargs)


class TestDownload:
    """Tests for successful downloads."""

    def test_returns_body_and_sends_user_agent(self):
        """The body is returned and the configured User-Agent is sent."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=PAYLOAD)

        data = asyncio.run(_downloader(handler).download("https://example.org/paper.pdf"))

        assert data == PAYLOAD
        assert seen[0].method == "GET"
        assert seen[0].headers["User-Agent"] == "PaperlibTest/1.0"

    def test_progress_with_content_length(self):
        """Progress is reported per chunk when Content-Length is known."""
        progress = []

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={"Content-Length": str(len(PAYLOAD))},
                content=PAYLOAD,
            )

        asyncio.run(_downloader(handler).download(
            "https://example.org/paper.pdf",
            on_progress=lambda received, total: progress.append((received, total)),
        ))

        assert progress
        assert progress[-1] == (len(PAYLOAD), len(PAYLOAD))
        assert [r for r, _ in progress] == sorted(r for r, _ in progress)

    def test_no_progress_without_content_length(self):
        """Without Content-Length no progress events are emitted."""
        progress = []

        async def body():
            yield PAYLOAD

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body())

        data = asyncio.run(_downloader(handler).download(
            "https://example.org/paper.pdf",
            on_progress=lambda received, total: progress.append((received, total)),
        ))

        assert data == PAYLOAD
        assert progress == []


class TestRedirects:
    """Tests for bounded redirect following."""

    def test_follows_one_redirect(self):
        """A single 3xx hop is followed, relative Location included."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            if request.url.path == "/start":
                return httpx.Response(302, headers={"Location": "/final.pdf"})
            return httpx.Response(200, content=PAYLOAD)

        data = asyncio.run(_downloader(handler).download("https://example.org/start"))

        assert data == PAYLOAD
        assert seen == ["https://example.org/start", "https://example.org/final.pdf"]

    def test_rejects_second_redirect(self):
        """Redirect chains longer than the bound fail with the 3xx status."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/one":
                return httpx.Response(301, headers={"Location": "https://example.org/two"})
            if request.url.path == "/two":
                return httpx.Response(307, headers={"Location": "https://example.org/three"})
            return httpx.Response(200, content=PAYLOAD)

        with pytest.raises(HttpFailure) as exc_info:
            asyncio.run(_downloader(handler).download("https://example.org/one"))
        assert exc_info.value.status == 307

    def test_redirect_without_location(self):
        """A 3xx without Location is an HTTP failure."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302)

        with pytest.raises(HttpFailure) as exc_info:
            asyncio.run(_downloader(handler).download("https://example.org/x"))
        assert exc_info.value.status == 302

    def test_redirects_disabled(self):
        """max_redirects=0 rejects the first redirect."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"Location": "/elsewhere"})

        with pytest.raises(HttpFailure):
            asyncio.run(_downloader(handler, max_redirects=0).download("https://example.org/x"))


class TestFailures:
    """Tests for HTTP and network failures."""

    @pytest.mark.parametrize("status", [404, 403, 500, 204])
    def test_non_200_status(self, status):
        """Any final status other than 200 is an HttpFailure carrying the status."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, content=b"" if status == 204 else b"<html>error</html>")

        with pytest.raises(HttpFailure) as exc_info:
            asyncio.run(_downloader(handler).download("https://example.org/paper.pdf"))
        assert exc_info.value.status == status

    def test_network_error(self):
        """Transport errors become NetworkFailure."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkFailure):
            asyncio.run(_downloader(handler).download("https://example.org/paper.pdf"))

    def test_read_timeout(self):
        """Timeouts are network failures too."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(NetworkFailure):
            asyncio.run(_downloader(handler).download("https://example.org/paper.pdf"))


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancel_mid_stream(self):
        """Cancelling during a stalled body raises DownloadCancelled promptly."""

        async def scenario():
            token = CancellationToken()
            first_chunk_sent = asyncio.Event()

            async def body():
                yield b"%PDF-"
                first_chunk_sent.set()
                await asyncio.sleep(30)
                yield b"never"

            def handler(request: httpx.Request) -> httpx.Response:
                return httpx.Response(200, headers={"Content-Length": "1000"}, content=body())

            task = asyncio.ensure_future(
                _downloader(handler).download("https://example.org/slow.pdf", token)
            )
            await asyncio.wait_for(first_chunk_sent.wait(), 5)
            token.cancel()

            with pytest.raises(DownloadCancelled):
                await asyncio.wait_for(task, 5)

        asyncio.run(scenario())

    def test_already_cancelled_token(self):
        """A token that already fired prevents any request."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=PAYLOAD)

        token = CancellationToken()
        token.cancel()

        with pytest.raises(DownloadCancelled):
            asyncio.run(_downloader(handler).download("https://example.org/paper.pdf", token))
        assert seen == []
