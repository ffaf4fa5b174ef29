"""
=============================================================================
HTTP/1.1 STREAM TRANSPORT
=============================================================================

A Transport that speaks HTTP/1.x over asyncio streams. One connection
per request, closed when the exchange ends (no pooling, no keep-alive).

=============================================================================
EXCHANGE STATE
=============================================================================

    ┌───────────┐  connect()   ┌───────────┐  head sent   ┌───────────┐
    │   NEW     │ ───────────► │ CONNECTED │ ───────────► │  SENDING  │
    └───────────┘              └───────────┘              └─────┬─────┘
                                                                │
                       body writes go out concurrently while    │
                       we already wait for the response head    │
                                                                ▼
    ┌───────────┐   EOF / length reached    ┌───────────┐  head parsed
    │  CLOSED   │ ◄──────────────────────── │  READING  │ ◄────────────
    └───────────┘                           └───────────┘

Reading the response while the body is still being written matters:
a server may answer (413, 401, ...) before it has read the whole body.

=============================================================================
HOW THE CLIENT KNOWS WHEN THE BODY ENDS (RFC 7230 §3.3.3)
=============================================================================

    1. HEAD request, or 1xx / 204 / 304 response  →  no body at all
    2. Transfer-Encoding: chunked                 →  decode chunks until 0
    3. Content-Length: N                          →  exactly N bytes
    4. none of the above                          →  until the server closes

If the connection drops before N bytes (case 3) or mid-chunk (case 2),
that is reported as a failure, never as a short but "complete" body.

=============================================================================
"""

import asyncio
import logging
import re
import uuid
from typing import AsyncIterator, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from ..config import ClientConfig
from ..errors import ClientError, ProtocolError, TransportError
from ..http.chunked import read_chunked
from ..http.request import DEFAULT_PORTS
from ..http.status_codes import reason_phrase, status_allows_body
from .base import (
    DataReceived,
    ExchangeFailed,
    MessageComplete,
    ResponseStarted,
    Transport,
    TransportRequest,
    TransportResponse,
)
from .connectors import Connector

logger = logging.getLogger(__name__)

HEAD_TERMINATOR = b"\r\n\r\n"

# HTTP-version SP status-code [SP reason-phrase]
STATUS_LINE_PATTERN = re.compile(r"^HTTP/(\d\.\d) (\d{3})(?: (.*))?$")
HEADER_PATTERN = re.compile(r"^([^:\s]+):\s*(.*?)\s*$")

# RFC 7230 token
HEADER_NAME_PATTERN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+\Z")


# =============================================================================
# RESPONSE HEAD PARSING
# =============================================================================


def parse_response_head(data: bytes) -> TransportResponse:
    """
    Parse a raw response head (status line + headers, CRLF separated).

        b"HTTP/1.1 200 OK\\r\\nContent-Length: 2\\r\\n\\r\\n"
          → TransportResponse("1.1", 200, "OK", [("Content-Length", "2")])

    Header names keep their spelling; values are trimmed. Obsolete
    line folding (a line starting with whitespace) continues the
    previous header value.

    Raises:
        ProtocolError: if the status line is not valid HTTP/1.x.
    """
    lines = data.decode("latin-1").split("\r\n")
    while lines and not lines[-1]:
        lines.pop()
    if not lines:
        raise ProtocolError("Empty response head")

    match = STATUS_LINE_PATTERN.match(lines[0])
    if not match:
        raise ProtocolError(f"Invalid status line: {lines[0]!r}")

    version, code, reason = match.groups()
    status_code = int(code)

    headers: List[Tuple[str, str]] = []
    for line in lines[1:]:
        if line[:1] in (" ", "\t"):
            if headers:
                name, value = headers[-1]
                headers[-1] = (name, f"{value} {line.strip()}")
            continue

        header = HEADER_PATTERN.match(line)
        if not header:
            raise ProtocolError(f"Invalid header line: {line!r}")
        headers.append((header.group(1), header.group(2)))

    return TransportResponse(
        protocol_version=version,
        status_code=status_code,
        reason_phrase=reason if reason is not None else reason_phrase(status_code),
        headers=headers,
    )


async def read_response_head(reader: asyncio.StreamReader) -> TransportResponse:
    """
    Read the next final response head, skipping interim 1xx responses
    (except 101 Switching Protocols, which is final for this exchange).
    """
    while True:
        try:
            data = await reader.readuntil(HEAD_TERMINATOR)
        except asyncio.LimitOverrunError:
            raise ProtocolError("Response head exceeds the configured size limit")
        except asyncio.IncompleteReadError as exc:
            if not exc.partial:
                raise ConnectionResetError("Connection closed before a response was received")
            raise ConnectionResetError(
                f"Connection closed in the middle of the response head ({len(exc.partial)} bytes)"
            )

        response = parse_response_head(data)
        if 100 <= response.status_code < 200 and response.status_code != 101:
            logger.debug(f"Skipping interim response {response.status_code}")
            continue
        return response


def parse_content_length(response: TransportResponse) -> Optional[int]:
    """Declared Content-Length, None if absent. Conflicting values are an error."""
    value = response.header("Content-Length")
    if value is None:
        return None

    # "Content-Length: 5, 5" is tolerated, "5, 6" is not
    candidates = {item.strip() for item in value.split(",")}
    if len(candidates) != 1:
        raise ProtocolError(f"Conflicting Content-Length values: {value!r}")
    try:
        length = int(candidates.pop())
    except ValueError:
        raise ProtocolError(f"Invalid Content-Length: {value!r}")
    if length < 0:
        raise ProtocolError(f"Negative Content-Length: {value!r}")
    return length


async def iter_response_body(
    reader: asyncio.StreamReader,
    response: TransportResponse,
    method: str,
    buffer_size: int = 8192,
) -> AsyncIterator[bytes]:
    """Yield body chunks according to the framing rules above."""
    if not status_allows_body(response.status_code, method):
        return

    transfer_encoding = response.header("Transfer-Encoding")
    if transfer_encoding and "chunked" in transfer_encoding.lower():
        async for chunk in read_chunked(reader):
            yield chunk
        return

    length = parse_content_length(response)
    if length is not None:
        remaining = length
        while remaining > 0:
            chunk = await reader.read(min(buffer_size, remaining))
            if not chunk:
                raise ConnectionResetError(
                    f"Connection closed after {length - remaining} of {length} body bytes"
                )
            remaining -= len(chunk)
            yield chunk
        return

    # Close-delimited body
    while True:
        chunk = await reader.read(buffer_size)
        if not chunk:
            return
        yield chunk


def build_request_head(method: str, target: str, version: str, headers: Dict[str, str]) -> bytes:
    """
    Serialize the request line and headers.

        GET /path HTTP/1.1\\r\\n
        Host: example.com\\r\\n
        \\r\\n
    """
    lines = [f"{method} {target} HTTP/{version}"]
    for name, value in headers.items():
        if not HEADER_NAME_PATTERN.match(name):
            raise TransportError(f"Invalid header name: {name!r}")
        if "\r" in value or "\n" in value:
            raise TransportError(f"Header {name!r} contains a line break")
        lines.append(f"{name}: {value}")
    lines.append("")
    try:
        return ("\r\n".join(lines) + "\r\n").encode("latin-1")
    except UnicodeEncodeError as exc:
        raise TransportError(f"Request head is not Latin-1 encodable: {exc}", cause=exc)


# =============================================================================
# TRANSPORT
# =============================================================================


class HTTP11Request(TransportRequest):
    """One HTTP/1.x exchange over its own connection."""

    def __init__(
        self,
        connector: Connector,
        host: str,
        port: int,
        head: bytes,
        method: str,
        config: ClientConfig,
    ):
        super().__init__()
        self.id = uuid.uuid4().hex[:8]
        self._connector = connector
        self._host = host
        self._port = port
        self._head = head
        self._method = method
        self._config = config
        self._outgoing: asyncio.Queue = asyncio.Queue()
        self._ended = False
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        self._task = asyncio.ensure_future(self._run())

    async def write(self, data: bytes) -> None:
        if self._ended:
            raise TransportError("Cannot write after end()")
        if self.finished:
            raise TransportError("Exchange is already closed")
        if data:
            self._outgoing.put_nowait(bytes(data))

    async def end(self, data: bytes = b"") -> None:
        if self._ended:
            return
        if data:
            await self.write(data)
        self._ended = True
        self._outgoing.put_nowait(None)

    def close(self, cause: Optional[BaseException] = None) -> None:
        super().close(cause)
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _send_body(self, writer: asyncio.StreamWriter) -> None:
        while True:
            data = await self._outgoing.get()
            if data is None:
                break
            writer.write(data)
            await writer.drain()

    def _on_body_sent(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"[{self.id}] Sending request body failed: {error}")
            self.close(error)

    async def _run(self) -> None:
        writer = None
        sending = None

        try:
            # ─────────────────────────────────────────────────────────────
            # STEP 1: Connect (bounded by connect_timeout)
            # ─────────────────────────────────────────────────────────────
            try:
                reader, writer = await asyncio.wait_for(
                    self._connector.connect(self._host, self._port),
                    timeout=self._config.connect_timeout,
                )
            except asyncio.TimeoutError:
                raise TimeoutError(
                    f"Connecting to {self._host}:{self._port} timed out "
                    f"after {self._config.connect_timeout}s"
                )
            logger.debug(f"[{self.id}] Connected to {self._host}:{self._port}")

            # ─────────────────────────────────────────────────────────────
            # STEP 2: Send head, then stream the body in the background
            # ─────────────────────────────────────────────────────────────
            writer.write(self._head)
            sending = asyncio.ensure_future(self._send_body(writer))
            sending.add_done_callback(self._on_body_sent)

            # ─────────────────────────────────────────────────────────────
            # STEP 3: Read the response
            # ─────────────────────────────────────────────────────────────
            response = await read_response_head(reader)
            self.emit(ResponseStarted(response))

            async for chunk in iter_response_body(
                reader, response, self._method, self._config.buffer_size
            ):
                self.emit(DataReceived(chunk))

            self.emit(MessageComplete())

        except asyncio.IncompleteReadError as exc:
            self.emit(ExchangeFailed(ConnectionResetError(
                f"Connection closed unexpectedly ({len(exc.partial)} of {exc.expected} bytes read)"
            )))
        except asyncio.LimitOverrunError as exc:
            self.emit(ExchangeFailed(ProtocolError(f"Chunk framing line too long: {exc}")))
        except (OSError, ClientError) as exc:
            logger.debug(f"[{self.id}] Exchange failed: {exc}")
            self.emit(ExchangeFailed(exc))
        except Exception as exc:
            # Connectors may be caller code; never end without a terminal event
            logger.debug(f"[{self.id}] Exchange failed unexpectedly: {exc!r}")
            self.emit(ExchangeFailed(TransportError.wrap(exc)))

        finally:
            if sending is not None and not sending.done():
                sending.cancel()
            if writer is not None:
                writer.close()
                logger.debug(f"[{self.id}] Connection closed")


class HTTP11Transport(Transport):
    """
    Transport for http:// and https:// URLs.

    Args:
        connector:        Used for http:// URLs.
        secure_connector: Used for https:// URLs.
        config:           Timeouts, buffer sizes, User-Agent.
    """

    def __init__(
        self,
        connector: Connector,
        secure_connector: Connector,
        config: Optional[ClientConfig] = None,
    ):
        self._connector = connector
        self._secure_connector = secure_connector
        self._config = config or ClientConfig()

    def open(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        protocol_version: str = "1.1",
    ) -> HTTP11Request:
        parts = urlsplit(url)
        scheme = parts.scheme.lower()
        if scheme not in DEFAULT_PORTS:
            raise TransportError(f"Unsupported URL scheme: {scheme!r}")
        if not parts.hostname:
            raise TransportError(f"URL has no host: {url!r}")

        host = parts.hostname
        port = parts.port or DEFAULT_PORTS[scheme]

        target = parts.path or "/"
        if parts.query:
            target += "?" + parts.query

        head = build_request_head(
            method, target, protocol_version, self._default_headers(headers, host, parts.port, scheme)
        )

        connector = self._secure_connector if scheme == "https" else self._connector
        request = HTTP11Request(connector, host, port, head, method, self._config)
        request.start()
        return request

    def _default_headers(
        self,
        headers: Dict[str, str],
        host: str,
        port: Optional[int],
        scheme: str,
    ) -> Dict[str, str]:
        present = {name.lower() for name in headers}
        result: Dict[str, str] = {}

        if "host" not in present:
            host_value = f"[{host}]" if ":" in host else host
            if port is not None and port != DEFAULT_PORTS[scheme]:
                host_value += f":{port}"
            result["Host"] = host_value

        result.update(headers)

        if "user-agent" not in present and self._config.user_agent:
            result["User-Agent"] = self._config.user_agent
        if "connection" not in present:
            result["Connection"] = "close"

        return result
