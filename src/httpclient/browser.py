"""
=============================================================================
BROWSER - CONVENIENCE FACADE OVER THE SENDER
=============================================================================

Verb methods, form submission and download-to-sink. No protocol logic
lives here: every method builds a Request and hands it to Sender.send().

=============================================================================
USAGE
=============================================================================

    browser = Browser()

    response = await browser.get("http://example.com/")
    response = await browser.post("http://example.com/api", {"Content-Type": "application/json"}, b"{}")
    response = await browser.submit("http://example.com/login", {"user": "alice", "pass": "s3cret"})

    # Save to disk while also reading the body
    response = await browser.download("http://example.com/big.iso", "/tmp/big.iso")
    async for chunk in response.body:
        progress += len(chunk)

    # Relative URLs against a base
    api = browser.with_base_url("http://api.example.com/v1/")
    response = await api.get("users")            # → http://api.example.com/v1/users

=============================================================================
DOWNLOAD DATA FLOW
=============================================================================

    transport ──► response.body ──┬──► sink.write(chunk)   (file, writer, ...)
                                  │
                                  └──► mirror.feed(chunk)  → caller's response.body

    The sink is written BEFORE the chunk is handed to the caller, and the
    mirrored stream only ends after the sink has been flushed (or, for a
    path, closed). When the caller sees end-of-body the data is on disk.

    ┌──────────────────────────────┬──────────────────────────────────────┐
    │  target                      │  handling                            │
    ├──────────────────────────────┼──────────────────────────────────────┤
    │  str / os.PathLike           │  aiofiles.open(path, "wb"), closed   │
    │                              │  by the Browser when done            │
    │  asyncio.StreamWriter        │  write() + await drain()             │
    │  object with async write()   │  await write(); flushed, not closed  │
    │  binary file (sync write())  │  write(); flushed, not closed        │
    └──────────────────────────────┴──────────────────────────────────────┘

=============================================================================
"""

import asyncio
import inspect
import logging
import os
from dataclasses import replace
from typing import Any, Mapping, Optional, Set
from urllib.parse import urlencode, urljoin

import aiofiles

from .config import ClientConfig
from .core.pending import PendingResult
from .core.sender import Sender
from .errors import ClientError, InvalidRequest, TransportError
from .http.body import BodyContent, ReadableStream, StreamBody
from .http.headers import Headers, HeadersInit
from .http.request import Request
from .http.response import Response

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class DownloadSink:
    """
    Uniform async write/finish over the supported download targets.

    Only sinks opened from a path are closed by finish(); anything the
    caller passed in is flushed and left open.
    """

    def __init__(self, target: Any):
        self._target = target
        self._file = None

    @property
    def owns_file(self) -> bool:
        return isinstance(self._target, (str, os.PathLike))

    async def open(self) -> None:
        if self.owns_file:
            self._file = await aiofiles.open(self._target, "wb")
        elif not hasattr(self._target, "write"):
            raise TypeError(f"Unsupported download target: {type(self._target).__name__}")

    async def write(self, data: bytes) -> None:
        if self._file is not None:
            await self._file.write(data)
            return

        if isinstance(self._target, asyncio.StreamWriter):
            self._target.write(data)
            await self._target.drain()
            return

        result = self._target.write(data)
        if inspect.isawaitable(result):
            await result

    async def finish(self) -> None:
        if self._file is not None:
            file, self._file = self._file, None
            await file.close()
            return

        if isinstance(self._target, asyncio.StreamWriter):
            await self._target.drain()
            return

        flush = getattr(self._target, "flush", None)
        if flush is not None:
            result = flush()
            if inspect.isawaitable(result):
                await result


class Browser:
    """
    High-level HTTP client.

    Args:
        sender:   The Sender to send through. Built from ``config`` with
                  Sender.from_config() when omitted.
        config:   Client configuration (protocol version, logging, ...).
        base_url: Relative URLs are resolved against this.
    """

    def __init__(
        self,
        sender: Optional[Sender] = None,
        config: Optional[ClientConfig] = None,
        base_url: Optional[str] = None,
    ):
        if config is None:
            config = sender.config if sender is not None else ClientConfig()
        self._config = config
        self._sender = sender or Sender.from_config(config)
        self._base_url = base_url
        self._downloads: Set[asyncio.Task] = set()

    @property
    def sender(self) -> Sender:
        return self._sender

    @property
    def base_url(self) -> Optional[str]:
        return self._base_url

    def with_base_url(self, base_url: Optional[str]) -> "Browser":
        """New Browser sharing this one's Sender, with a different base URL."""
        return Browser(self._sender, self._config, base_url)

    def resolve_url(self, url: str) -> str:
        if self._base_url is None:
            return url
        return urljoin(self._base_url, url)

    # =========================================================================
    # GENERIC REQUESTS
    # =========================================================================

    def send(self, request: Request, streaming: bool = False) -> PendingResult[Response]:
        """Send a prebuilt Request as-is."""
        return self._sender.send(request, streaming=streaming)

    def request(
        self,
        method: str,
        url: str,
        headers: HeadersInit = None,
        content: BodyContent = None,
        streaming: bool = False,
    ) -> PendingResult[Response]:
        try:
            request = Request.create(
                method,
                self.resolve_url(url),
                headers=headers,
                body=content,
                protocol_version=self._config.protocol_version,
            )
        except (TypeError, ValueError) as exc:
            return PendingResult.rejected(InvalidRequest(f"Invalid request: {exc}", exc))
        return self._sender.send(request, streaming=streaming)

    # =========================================================================
    # VERBS
    # =========================================================================

    def get(self, url: str, headers: HeadersInit = None) -> PendingResult[Response]:
        return self.request("GET", url, headers)

    def head(self, url: str, headers: HeadersInit = None) -> PendingResult[Response]:
        return self.request("HEAD", url, headers)

    def post(self, url: str, headers: HeadersInit = None, content: BodyContent = b"") -> PendingResult[Response]:
        return self.request("POST", url, headers, content)

    def put(self, url: str, headers: HeadersInit = None, content: BodyContent = b"") -> PendingResult[Response]:
        return self.request("PUT", url, headers, content)

    def patch(self, url: str, headers: HeadersInit = None, content: BodyContent = b"") -> PendingResult[Response]:
        return self.request("PATCH", url, headers, content)

    def delete(self, url: str, headers: HeadersInit = None, content: BodyContent = b"") -> PendingResult[Response]:
        return self.request("DELETE", url, headers, content)

    # =========================================================================
    # FORMS
    # =========================================================================

    def submit(
        self,
        url: str,
        fields: Mapping[str, Any],
        headers: HeadersInit = None,
        method: str = "POST",
    ) -> PendingResult[Response]:
        """
        Send ``fields`` as an urlencoded form.

            submit(url, {"a": "b c", "tag": ["x", "y"]})
              → body "a=b+c&tag=x&tag=y"
        """
        body = urlencode(fields, doseq=True)
        headers = Headers(headers).with_header("Content-Type", FORM_CONTENT_TYPE)
        return self.request(method, url, headers, body)

    # =========================================================================
    # DOWNLOAD
    # =========================================================================

    def download(
        self,
        url: str,
        target: Any,
        headers: HeadersInit = None,
        method: str = "GET",
    ) -> PendingResult[Response]:
        """
        Stream the response body into ``target`` while handing it to the
        caller as well.

        Resolves as soon as the response head arrives (and the target is
        open). The returned Response body is a live stream carrying the
        same bytes that are written to ``target``; it fails if writing to
        the target fails.
        """
        pending = self.request(method, url, headers, streaming=True)
        result: PendingResult[Response] = PendingResult(canceller=pending.cancel)
        pending.on_progress(result.notify)

        task = asyncio.ensure_future(self._download(pending, DownloadSink(target), result))
        self._downloads.add(task)
        task.add_done_callback(self._downloads.discard)
        return result

    async def _download(
        self,
        pending: PendingResult[Response],
        sink: DownloadSink,
        result: PendingResult[Response],
    ) -> None:
        try:
            response = await pending
        except ClientError as exc:
            result.reject(exc)
            return

        try:
            await sink.open()
        except (OSError, TypeError) as exc:
            logger.warning(f"Cannot open download target: {exc}")
            result.reject(exc)
            # Let the exchange run to its end without keeping the data
            try:
                async for _ in response.body:
                    pass
            except ClientError as body_error:
                logger.debug(f"Discarded body failed: {body_error}")
            return

        mirror = ReadableStream()
        result.resolve(replace(response, body=StreamBody(mirror)))

        try:
            try:
                async for chunk in response.body:
                    await sink.write(chunk)
                    mirror.feed(chunk)
            finally:
                await sink.finish()
        except asyncio.CancelledError:
            mirror.fail(TransportError("Download cancelled"))
            raise
        except Exception as exc:
            # The sink wraps caller-supplied targets, so any error ends the download
            logger.warning(f"Download stopped: {exc!r}")
            mirror.fail(exc)
        else:
            mirror.end()
