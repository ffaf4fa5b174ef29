"""
=============================================================================
TRANSPORT FACTORIES
=============================================================================

One explicit construction path per way of reaching the server.

    ┌──────────────────────────────────┬──────────────────────────────────┐
    │  Factory                         │  Use when                        │
    ├──────────────────────────────────┼──────────────────────────────────┤
    │  create_transport()              │  normal TCP/TLS with system DNS  │
    │  create_transport_from_connectors│  you need your own TCP/TLS       │
    │                                  │  policy (proxy tunnel, pinned    │
    │                                  │  certificates, custom resolver)  │
    │  create_unix_transport(path)     │  the server listens on a Unix    │
    │                                  │  socket (Docker, local daemons)  │
    └──────────────────────────────────┴──────────────────────────────────┘

The caller picks one. Nothing is auto-detected at runtime.

=============================================================================
"""

import asyncio
from typing import Optional

from ..config import ClientConfig
from .connectors import (
    Connector,
    FixedUriConnector,
    Resolver,
    SecureConnector,
    SystemResolver,
    TcpConnector,
    UnixConnector,
)
from .http11 import HTTP11Transport


def create_transport(
    loop: Optional[asyncio.AbstractEventLoop] = None,
    config: Optional[ClientConfig] = None,
    resolver: Optional[Resolver] = None,
) -> HTTP11Transport:
    """
    Default transport: TCP through the given (or system) resolver,
    TLS with the default SSL context for https.
    """
    config = config or ClientConfig()
    tcp = TcpConnector(resolver or SystemResolver(loop), limit=config.max_header_size)
    return HTTP11Transport(tcp, SecureConnector(tcp), config)


def create_transport_from_connectors(
    connector: Connector,
    secure_connector: Optional[Connector] = None,
    config: Optional[ClientConfig] = None,
) -> HTTP11Transport:
    """
    Transport using caller-supplied connectors.

    If no secure connector is given, TLS is layered on top of
    ``connector``.
    """
    if secure_connector is None:
        secure_connector = SecureConnector(connector)
    return HTTP11Transport(connector, secure_connector, config)


def create_unix_transport(path: str, config: Optional[ClientConfig] = None) -> HTTP11Transport:
    """
    Transport that sends EVERY request through the Unix socket at ``path``.

    The URL still decides the Host header and the request path:

        http://localhost/v1.43/containers/json
          → connects to /var/run/docker.sock
          → sends "GET /v1.43/containers/json", "Host: localhost"
    """
    config = config or ClientConfig()
    connector = FixedUriConnector(path, UnixConnector(limit=config.max_header_size))
    return HTTP11Transport(connector, SecureConnector(connector), config)
