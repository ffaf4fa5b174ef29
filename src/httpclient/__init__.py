"""
=============================================================================
HTTPCLIENT - Asynchronous HTTP Request Execution Engine
=============================================================================

Send an HTTP request, get back an awaitable result that resolves to the
response: either fully buffered, or as soon as the headers arrive with
the body still streaming in.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      HTTPCLIENT ARCHITECTURE                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Browser            verbs, submit(), download()                    │
    │      │                                                               │
    │      ▼                                                               │
    │   Sender             validate → normalize headers → write body      │
    │      │               → assemble response (state machine)            │
    │      ▼                                                               │
    │   Transport          open() → TransportRequest                      │
    │      │               events: ResponseStarted, DataReceived,         │
    │      │                       MessageComplete, ExchangeFailed        │
    │      ▼                                                               │
    │   Connectors         TCP / TLS / Unix socket                        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    httpclient/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m httpclient)
    ├── browser.py           # Browser facade
    ├── config.py            # ClientConfig dataclass
    ├── errors.py            # Exception hierarchy
    ├── core/
    │   ├── sender.py        # Sender + exchange state machine
    │   ├── pending.py       # PendingResult, Progress
    │   └── exchange_log.py  # One log record per exchange
    ├── http/
    │   ├── request.py       # Request value object
    │   ├── response.py      # Response value object
    │   ├── headers.py       # Case-insensitive multi-value headers
    │   ├── body.py          # Buffered and streamed bodies
    │   ├── chunked.py       # Chunked transfer coding
    │   └── status_codes.py  # HTTP status enums
    └── transport/
        ├── base.py          # Transport interface, typed events
        ├── connectors.py    # TCP, TLS, Unix, fixed-target
        ├── http11.py        # HTTP/1.x over asyncio streams
        └── factory.py       # Transport construction paths

=============================================================================
QUICK START
=============================================================================

    import asyncio
    from httpclient import Browser, Request, Sender

    async def main():
        browser = Browser()
        response = await browser.get("http://example.com/")
        print(response.status_code, await response.text())

        # Lower level, streaming
        sender = Sender.from_loop()
        response = await sender.send(Request.create("GET", "http://example.com/"), streaming=True)
        async for chunk in response.body:
            ...

    asyncio.run(main())

=============================================================================
"""

__version__ = "1.0.0"

from .browser import Browser
from .config import ClientConfig, configure_logging
from .core import PendingResult, Progress, Sender
from .errors import (
    BodyConsumedError,
    ClientError,
    InvalidRequest,
    PartialResponseError,
    ProtocolError,
    TransportError,
)
from .http import BufferedBody, Headers, ReadableStream, Request, Response, StreamBody

__all__ = [
    "Browser",
    "Sender",
    "PendingResult",
    "Progress",
    "ClientConfig",
    "configure_logging",
    "Request",
    "Response",
    "Headers",
    "BufferedBody",
    "StreamBody",
    "ReadableStream",
    "ClientError",
    "InvalidRequest",
    "TransportError",
    "PartialResponseError",
    "ProtocolError",
    "BodyConsumedError",
    "__version__",
]
