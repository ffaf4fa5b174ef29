"""
pytest configuration and fixtures.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpclient.core.sender import Sender
from httpclient.http import Request
from httpclient.transport.base import (
    DataReceived,
    ExchangeFailed,
    MessageComplete,
    ResponseStarted,
    Transport,
    TransportRequest,
    TransportResponse,
)


class StubRequest(TransportRequest):
    """Transport request that records what the Sender writes into it."""

    def __init__(self, method: str, url: str, headers: Dict[str, str], protocol_version: str):
        super().__init__()
        self.method = method
        self.url = url
        self.headers = headers
        self.protocol_version = protocol_version
        self.writes: List[bytes] = []
        self.end_payload: Optional[bytes] = None
        self.ended = asyncio.Event()
        self.closed_with: Optional[BaseException] = None

    @property
    def body(self) -> bytes:
        """Everything written, end payload included."""
        return b"".join(self.writes)

    async def write(self, data: bytes) -> None:
        self.writes.append(bytes(data))

    async def end(self, data: bytes = b"") -> None:
        if data:
            self.writes.append(bytes(data))
        self.end_payload = bytes(data)
        self.ended.set()

    def close(self, cause: Optional[BaseException] = None) -> None:
        self.closed_with = cause
        super().close(cause)

    # ─────────────────────────────────────────────────────────────────────
    # Scripting helpers
    # ─────────────────────────────────────────────────────────────────────

    def respond(
        self,
        status: int = 200,
        headers: Iterable[Tuple[str, str]] = (),
        reason: str = "OK",
        version: str = "1.1",
    ) -> None:
        self.emit(ResponseStarted(TransportResponse(version, status, reason, list(headers))))

    def data(self, chunk: bytes) -> None:
        self.emit(DataReceived(chunk))

    def complete(self) -> None:
        self.emit(MessageComplete())

    def fail(self, error: BaseException) -> None:
        self.emit(ExchangeFailed(error))


Responder = Callable[[StubRequest], Awaitable[None]]


class StubTransport(Transport):
    """
    Transport that never touches the network.

    Every open() creates a StubRequest and, if a responder is set, runs
    it as a task so the test decides which events the Sender sees.
    """

    def __init__(self, responder: Optional[Responder] = None):
        self.responder = responder
        self.requests: List[StubRequest] = []
        self._tasks = set()

    def open(self, method, url, headers, protocol_version="1.1") -> StubRequest:
        request = StubRequest(method, url, headers, protocol_version)
        self.requests.append(request)
        if self.responder is not None:
            task = asyncio.ensure_future(self.responder(request))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return request

    @property
    def last(self) -> StubRequest:
        return self.requests[-1]


def respond_with(
    status: int = 200,
    headers: Iterable[Tuple[str, str]] = (),
    chunks: Iterable[bytes] = (),
    reason: str = "OK",
) -> Responder:
    """Responder that waits for the request body, then answers."""
    headers = list(headers)
    chunks = list(chunks)

    async def responder(request: StubRequest) -> None:
        await request.ended.wait()
        request.respond(status, headers, reason)
        for chunk in chunks:
            request.data(chunk)
        request.complete()

    return responder


@pytest.fixture
def stub_transport() -> StubTransport:
    """Stub transport answering 200 with a small body."""
    return StubTransport(respond_with(200, [("Content-Type", "text/plain")], [b"hello"]))


@pytest.fixture
def sender(stub_transport: StubTransport) -> Sender:
    return Sender(stub_transport)


@pytest.fixture
def sample_get_request() -> Request:
    """Sample GET request."""
    return Request.create("GET", "http://example.com/api/users?page=1", {"Accept": "application/json"})


@pytest.fixture
def sample_post_request() -> Request:
    """Sample POST request with JSON body."""
    return Request.create(
        "POST",
        "http://example.com/api/users",
        {"Content-Type": "application/json"},
        b'{"name": "John", "email": "john@example.com"}',
    )


async def iterate(chunks: Iterable[bytes]):
    """Async byte source for stream bodies."""
    for chunk in chunks:
        await asyncio.sleep(0)
        yield chunk
