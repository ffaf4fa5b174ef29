"""
=============================================================================
SENDER - THE REQUEST EXECUTION ENGINE
=============================================================================

Turns a Request into transport calls and the transport's events into a
Response.

=============================================================================
THE PIPELINE
=============================================================================

    send(request)
        │
        ├── 1. VALIDATE   scheme + host present?  no → InvalidRequest
        │                 (rejected at once, the transport is never touched)
        │
        ├── 2. NORMALIZE  Content-Length / Transfer-Encoding headers
        │
        ├── 3. OPEN       transport.open(method, url, headers, version)
        │
        ├── 4. WRITE      body strategy, decided once:
        │                   buffered        → end(payload)
        │                   stream + length → write(chunk)... end()
        │                   stream, no len  → write(framed chunk)... end(0\r\n\r\n)
        │                   not readable    → end()
        │
        └── 5. ASSEMBLE   per-exchange state machine over the event stream
                           → resolve / reject the PendingResult

=============================================================================
EXCHANGE STATE MACHINE
=============================================================================

                      ResponseStarted
        ┌──────┐     ─────────────────►  ┌──────────────────┐
        │ IDLE │                         │ HEADERS_RECEIVED │
        └──┬───┘                         └────────┬─────────┘
           │                      buffered │      │ streaming
           │                               ▼      ▼
           │                     ┌───────────┐  ┌───────────┐
           │                     │ BUFFERING │  │ STREAMING │ ← result resolved
           │                     └─────┬─────┘  └─────┬─────┘   here already
           │                           │              │
           │     ExchangeFailed /      │ Complete /   │ Complete / Failed
           │     early Complete        │ Failed       │
           │                           ▼              ▼
           └─────────────────────► ┌──────────────────────┐
                                   │       TERMINAL       │
                                   └──────────────────────┘

The body accumulator is a local of the exchange coroutine. Nothing else
can touch it, and events for one exchange come from that exchange's own
queue, so concurrent sends on one Sender never mix their data.

=============================================================================
WHAT IS NOT HERE
=============================================================================

No retries, no redirects, no status-code interpretation: a 404 is a
successfully received Response. No timeouts either; wrap the awaited
result in asyncio.wait_for() if you need one.

=============================================================================
"""

import asyncio
import functools
import logging
import time
import uuid
from enum import Enum
from typing import Optional, Set

from ..config import ClientConfig
from ..errors import InvalidRequest, PartialResponseError, TransportError
from ..http.body import BufferedBody, ReadableStream, StreamBody
from ..http.chunked import CHUNKED_TERMINATOR, encode_chunk
from ..http.headers import Headers
from ..http.request import Request
from ..http.response import Response
from ..http.status_codes import status_allows_body
from ..transport.base import (
    DataReceived,
    ExchangeFailed,
    MessageComplete,
    ResponseStarted,
    Transport,
    TransportRequest,
    TransportResponse,
)
from ..transport.connectors import Connector, Resolver
from ..transport.factory import (
    create_transport,
    create_transport_from_connectors,
    create_unix_transport,
)
from .exchange_log import ExchangeLog, log_exchange, timestamp
from .pending import PendingResult, Progress

logger = logging.getLogger(__name__)


class ExchangeState(Enum):
    """Where one exchange is in its lifecycle."""

    IDLE = "idle"                          # request sent, no response yet
    HEADERS_RECEIVED = "headers_received"  # status line + headers parsed
    BUFFERING = "buffering"                # collecting body in memory
    STREAMING = "streaming"                # forwarding body to the caller
    TERMINAL = "terminal"                  # resolved, rejected or failed


def prepare_request(request: Request) -> Request:
    """
    Add the framing headers the body needs.

    - Known, non-zero size and no Content-Length → Content-Length: size
    - Readable stream and still no Content-Length → Transfer-Encoding: chunked

    A Content-Length the caller set is never replaced.
    """
    body = request.body

    size = body.size
    if size is not None and size != 0 and not request.headers.has("Content-Length"):
        request = request.with_header("Content-Length", str(size))

    if body.is_stream and body.readable and not request.headers.has("Content-Length"):
        request = request.with_header("Transfer-Encoding", "chunked")

    return request


def declared_length(response: TransportResponse) -> Optional[int]:
    value = response.header("Content-Length")
    if value is None:
        return None
    try:
        return int(value.split(",")[0].strip())
    except ValueError:
        return None


class Sender:
    """
    Sends Requests through a Transport and resolves PendingResults.

    Usage:
        sender = Sender.from_loop()
        response = await sender.send(Request.create("GET", "http://example.com/"))
        print(response.status_code, await response.text())

    A Sender is safe to share between any number of concurrent send()
    calls: each one gets its own transport exchange and result.
    """

    def __init__(self, transport: Transport, config: Optional[ClientConfig] = None):
        self._transport = transport
        self._config = config or ClientConfig()
        # Strong references so running exchanges are not garbage collected
        self._exchanges: Set[asyncio.Task] = set()

    # =========================================================================
    # CONSTRUCTION - one explicit path per connectivity mode
    # =========================================================================

    @classmethod
    def from_loop(
        cls,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        config: Optional[ClientConfig] = None,
        resolver: Optional[Resolver] = None,
    ) -> "Sender":
        """Default sender: TCP/TLS with the system (or given) resolver."""
        return cls(create_transport(loop=loop, config=config, resolver=resolver), config)

    @classmethod
    def from_connectors(
        cls,
        connector: Connector,
        secure_connector: Optional[Connector] = None,
        config: Optional[ClientConfig] = None,
    ) -> "Sender":
        """Sender with caller-supplied TCP / TLS connectors."""
        return cls(create_transport_from_connectors(connector, secure_connector, config), config)

    @classmethod
    def from_unix(cls, path: str, config: Optional[ClientConfig] = None) -> "Sender":
        """Sender that sends every request through the Unix socket ``path``."""
        return cls(create_unix_transport(path, config), config)

    @classmethod
    def from_config(cls, config: Optional[ClientConfig] = None) -> "Sender":
        config = config or ClientConfig()
        if config.unix_socket:
            return cls.from_unix(config.unix_socket, config)
        return cls.from_loop(config=config)

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def active_exchanges(self) -> int:
        return len(self._exchanges)

    # =========================================================================
    # SEND
    # =========================================================================

    def send(self, request: Request, streaming: bool = False) -> PendingResult[Response]:
        """
        Start sending ``request`` and return its PendingResult immediately.

        Must be called from a running event loop.

        Args:
            request:   The request to send.
            streaming: False → resolve with the whole body buffered.
                       True  → resolve as soon as headers arrive; the
                               body is a single-pass stream.
        """
        if not request.is_absolute:
            logger.debug(f"Refusing to send request without scheme/host: {request.url!r}")
            return PendingResult.rejected(InvalidRequest(
                f"Sending request requires absolute URI with scheme and host, got {request.url!r}"
            ))

        request = prepare_request(request)

        try:
            handle = self._transport.open(
                request.method,
                request.url,
                request.headers.to_dict(),
                request.protocol_version,
            )
        except (TransportError, OSError) as exc:
            logger.debug(f"Transport refused {request.method} {request.url}: {exc}")
            return PendingResult.rejected(TransportError.wrap(exc))
        except ValueError as exc:
            # e.g. a port outside 0-65535
            logger.debug(f"Invalid URL {request.url!r}: {exc}")
            return PendingResult.rejected(InvalidRequest(f"Invalid request URL {request.url!r}: {exc}", exc))

        pending: PendingResult[Response] = PendingResult(
            canceller=lambda: handle.close(TransportError("Request cancelled"))
        )

        task = asyncio.ensure_future(self._exchange(request, handle, pending, streaming))
        self._exchanges.add(task)
        task.add_done_callback(functools.partial(self._exchange_done, pending))

        return pending

    def _exchange_done(self, pending: PendingResult[Response], task: asyncio.Task) -> None:
        self._exchanges.discard(task)
        if not task.cancelled() and task.exception() is not None:
            # Nobody awaits the task itself, so this is the only place the failure surfaces
            logger.error(f"Exchange task failed: {task.exception()!r}", exc_info=task.exception())
        # A task cancelled before its first step never runs its finally block
        if not pending.done():
            pending.reject(TransportError("Exchange ended without a response"))

    # =========================================================================
    # REQUEST BODY
    # =========================================================================

    async def _write_body(self, request: Request, handle: TransportRequest) -> None:
        body = request.body

        try:
            if not body.is_stream:
                # Buffered: whole payload in one call that also ends the request
                await handle.end(await body.read())

            elif not body.readable:
                await handle.end()

            elif request.headers.has("Content-Length"):
                # Length known: pipe verbatim
                async for chunk in body:
                    await handle.write(chunk)
                await handle.end()

            else:
                # Length unknown: chunked framing
                async for chunk in body:
                    if chunk:
                        await handle.write(encode_chunk(chunk))
                await handle.end(CHUNKED_TERMINATOR)

        except Exception as exc:
            # The body source is caller code; any failure ends the exchange
            logger.debug(f"Writing request body for {request.url} failed: {exc!r}")
            handle.close(TransportError.wrap(exc, f"Sending request body failed: {exc}"))

    # =========================================================================
    # RESPONSE ASSEMBLY
    # =========================================================================

    async def _exchange(
        self,
        request: Request,
        handle: TransportRequest,
        pending: PendingResult[Response],
        streaming: bool,
    ) -> None:
        exchange_id = uuid.uuid4().hex[:8]
        started = time.monotonic()

        state = ExchangeState.IDLE
        head: Optional[TransportResponse] = None
        buffer = bytearray()
        received = 0
        stream: Optional[ReadableStream] = None
        error: Optional[BaseException] = None

        pending.notify(Progress("request", handle))
        writer = asyncio.ensure_future(self._write_body(request, handle))

        try:
            async for event in handle.events():

                # ─────────────────────────────────────────────────────────
                # Response head
                # ─────────────────────────────────────────────────────────
                if isinstance(event, ResponseStarted):
                    if state is not ExchangeState.IDLE:
                        logger.debug(f"[{exchange_id}] Ignoring duplicate response head")
                        continue

                    head = event.response
                    state = ExchangeState.HEADERS_RECEIVED
                    pending.notify(Progress("response", head))

                    if streaming:
                        stream = ReadableStream()
                        pending.resolve(self._build_response(head, StreamBody(stream)))
                        state = ExchangeState.STREAMING
                    else:
                        state = ExchangeState.BUFFERING

                # ─────────────────────────────────────────────────────────
                # Body data
                # ─────────────────────────────────────────────────────────
                elif isinstance(event, DataReceived):
                    if state is ExchangeState.STREAMING:
                        stream.feed(event.data)
                    elif state is ExchangeState.BUFFERING:
                        buffer += event.data
                    else:
                        logger.debug(f"[{exchange_id}] Ignoring data before response head")
                        continue
                    received += len(event.data)

                # ─────────────────────────────────────────────────────────
                # End of message
                # ─────────────────────────────────────────────────────────
                elif isinstance(event, MessageComplete):
                    error = self._check_complete(request, head, received)
                    if error is not None:
                        self._fail(pending, stream, error)
                    elif state is ExchangeState.BUFFERING:
                        pending.resolve(self._build_response(head, BufferedBody(bytes(buffer))))
                    elif state is ExchangeState.STREAMING:
                        stream.end()
                    state = ExchangeState.TERMINAL

                # ─────────────────────────────────────────────────────────
                # Failure
                # ─────────────────────────────────────────────────────────
                elif isinstance(event, ExchangeFailed):
                    error = self._classify_failure(event.error, head, received)
                    self._fail(pending, stream, error)
                    state = ExchangeState.TERMINAL

        finally:
            if state is not ExchangeState.TERMINAL:
                # Event stream ended or this task was cancelled: never leave
                # the caller waiting forever
                error = TransportError("Exchange ended without a response")
                self._fail(pending, stream, error)
                handle.close(error)

            if not writer.done():
                writer.cancel()

            log_exchange(
                ExchangeLog(
                    exchange_id=exchange_id,
                    method=request.method,
                    url=request.url,
                    mode="streaming" if streaming else "buffered",
                    status_code=head.status_code if head else None,
                    bytes_received=received,
                    duration_ms=(time.monotonic() - started) * 1000,
                    timestamp=timestamp(),
                    error=f"{type(error).__name__}: {error}" if error else None,
                ),
                self._config.log_format,
            )

    @staticmethod
    def _build_response(head: TransportResponse, body) -> Response:
        return Response(
            protocol_version=head.protocol_version,
            status_code=head.status_code,
            reason_phrase=head.reason_phrase,
            headers=Headers.from_pairs(head.headers),
            body=body,
        )

    @staticmethod
    def _fail(
        pending: PendingResult[Response],
        stream: Optional[ReadableStream],
        error: BaseException,
    ) -> None:
        # Before streaming starts the result is still pending; afterwards
        # the error goes to whoever reads the body
        pending.reject(error)
        if stream is not None:
            stream.fail(error)

    @staticmethod
    def _check_complete(
        request: Request,
        head: Optional[TransportResponse],
        received: int,
    ) -> Optional[BaseException]:
        if head is None:
            return TransportError("Connection closed before a response was received")

        if not status_allows_body(head.status_code, request.method):
            return None

        expected = declared_length(head)
        if expected is not None and received < expected:
            return PartialResponseError(
                f"Response body ended after {received} of {expected} bytes",
                received=received,
                expected=expected,
            )
        return None

    @staticmethod
    def _classify_failure(
        cause: BaseException,
        head: Optional[TransportResponse],
        received: int,
    ) -> TransportError:
        if head is None:
            return TransportError.wrap(cause)
        if isinstance(cause, PartialResponseError):
            return cause
        return PartialResponseError(
            f"Response body failed after {received} bytes: {cause}",
            received=received,
            expected=declared_length(head),
            cause=cause,
        )
