"""
=============================================================================
TRANSPORT LAYER
=============================================================================

Everything below the Sender: opening connections and framing bytes.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ base.py        Transport / TransportRequest interface, typed events │
    │ connectors.py  TCP, TLS, Unix socket and fixed-target connectors    │
    │ http11.py      HTTP/1.x over asyncio streams                        │
    │ factory.py     create_transport / _from_connectors / _unix          │
    └─────────────────────────────────────────────────────────────────────┘

Any object implementing Transport can be handed to the Sender; tests use
a scripted stub instead of real sockets.

=============================================================================
"""

from .base import (
    DataReceived,
    ExchangeFailed,
    MessageComplete,
    ResponseStarted,
    Transport,
    TransportEvent,
    TransportRequest,
    TransportResponse,
)
from .connectors import (
    Connector,
    FixedUriConnector,
    Resolver,
    SecureConnector,
    SystemResolver,
    TcpConnector,
    UnixConnector,
)
from .factory import create_transport, create_transport_from_connectors, create_unix_transport
from .http11 import HTTP11Request, HTTP11Transport, parse_response_head

__all__ = [
    # Interface
    "Transport",
    "TransportRequest",
    "TransportResponse",
    "TransportEvent",
    "ResponseStarted",
    "DataReceived",
    "MessageComplete",
    "ExchangeFailed",

    # Connectors
    "Connector",
    "Resolver",
    "SystemResolver",
    "TcpConnector",
    "SecureConnector",
    "UnixConnector",
    "FixedUriConnector",

    # HTTP/1.x implementation
    "HTTP11Transport",
    "HTTP11Request",
    "parse_response_head",

    # Factories
    "create_transport",
    "create_transport_from_connectors",
    "create_unix_transport",
]
