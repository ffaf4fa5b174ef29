"""
=============================================================================
CONNECTORS
=============================================================================

Strategies for turning "host:port" into an open byte stream.

=============================================================================
COMPOSITION
=============================================================================

Connectors wrap each other, so each concern stays small:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   http://example.com/        TcpConnector(SystemResolver())         │
    │                                                                      │
    │   https://example.com/       SecureConnector(                       │
    │                                  TcpConnector(SystemResolver()))    │
    │                                                                      │
    │   http://docker/containers   FixedUriConnector(                     │
    │   (via /var/run/docker.sock)     "/var/run/docker.sock",            │
    │                                  UnixConnector())                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every connector returns the asyncio (StreamReader, StreamWriter) pair.
SecureConnector upgrades whatever its inner connector produced, which is
why TLS over a Unix socket works without extra code.

DNS: TcpConnector asks a Resolver for an address first. The default
SystemResolver uses the event loop's getaddrinfo (the OS resolver, run
in a thread so the loop never blocks).

=============================================================================
"""

import asyncio
import logging
import socket
import ssl
from abc import ABC, abstractmethod
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

Streams = Tuple[asyncio.StreamReader, asyncio.StreamWriter]

# Matches asyncio's own default StreamReader limit
DEFAULT_LIMIT = 64 * 1024


class Resolver(ABC):
    """Resolves a host name to an address string."""

    @abstractmethod
    async def resolve(self, host: str) -> str:
        ...


class SystemResolver(Resolver):
    """Resolver backed by the operating system (getaddrinfo)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    async def resolve(self, host: str) -> str:
        loop = self._loop or asyncio.get_running_loop()
        infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
        if not infos:
            raise OSError(f"Could not resolve host: {host}")
        address = infos[0][4][0]
        logger.debug(f"Resolved {host} to {address}")
        return address


class Connector(ABC):
    """Opens a stream connection to (host, port)."""

    @abstractmethod
    async def connect(self, host: str, port: Optional[int]) -> Streams:
        ...


class TcpConnector(Connector):
    """Plain TCP connection, resolving the host through a Resolver."""

    def __init__(self, resolver: Optional[Resolver] = None, limit: int = DEFAULT_LIMIT):
        self._resolver = resolver or SystemResolver()
        self._limit = limit

    async def connect(self, host: str, port: Optional[int]) -> Streams:
        if port is None:
            raise ValueError(f"TCP connection to {host} requires a port")
        address = await self._resolver.resolve(host)
        logger.debug(f"Connecting to {host} ({address}) port {port}")
        return await asyncio.open_connection(address, port, limit=self._limit)


class SecureConnector(Connector):
    """
    TLS on top of another connector.

    The requested host is used for SNI and certificate verification,
    even when the inner connector goes somewhere else (Unix socket).
    """

    def __init__(self, connector: Connector, ssl_context: Optional[ssl.SSLContext] = None):
        self._connector = connector
        self._ssl_context = ssl_context or ssl.create_default_context()

    async def connect(self, host: str, port: Optional[int]) -> Streams:
        reader, writer = await self._connector.connect(host, port)
        try:
            await writer.start_tls(self._ssl_context, server_hostname=host)
        except BaseException:
            writer.close()
            raise
        return reader, writer


class UnixConnector(Connector):
    """
    Unix domain socket connection.

    The "host" passed to connect() is the socket path; the port is
    ignored. Usually wrapped in a FixedUriConnector.
    """

    def __init__(self, limit: int = DEFAULT_LIMIT):
        self._limit = limit

    async def connect(self, host: str, port: Optional[int] = None) -> Streams:
        logger.debug(f"Connecting to unix socket {host}")
        return await asyncio.open_unix_connection(host, limit=self._limit)


class FixedUriConnector(Connector):
    """
    Always connect to the same target, whatever was requested.

    The request itself (Host header, path) still uses the URL the caller
    asked for; only the connection goes elsewhere.
    """

    def __init__(self, target: str, connector: Connector, port: Optional[int] = None):
        self._target = target
        self._port = port
        self._connector = connector

    async def connect(self, host: str, port: Optional[int]) -> Streams:
        return await self._connector.connect(self._target, self._port)
