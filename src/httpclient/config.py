"""
=============================================================================
CLIENT CONFIGURATION
=============================================================================

Centralized configuration for the HTTP client.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m httpclient --unix-socket /var/run/docker.sock   │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTPCLIENT_CONNECT_TIMEOUT=5 python -m httpclient ...     │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Most of these settings belong to the transport (how to connect, how
much to read at once). The Sender itself has no timeouts: a request
that should give up after N seconds is wrapped by the caller in
asyncio.wait_for().

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

SUPPORTED_PROTOCOL_VERSIONS = ("1.0", "1.1")


@dataclass
class ClientConfig:
    """
    Configuration for Sender, transport and Browser.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    PROTOCOL
    - protocol_version, user_agent

    TRANSPORT
    - connect_timeout, buffer_size, max_header_size, unix_socket

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # PROTOCOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    protocol_version: str = "1.1"
    """HTTP version used for requests built by the Browser."""

    user_agent: str = "httpclient/1.0"
    """Sent as User-Agent unless the request sets its own."""

    # ─────────────────────────────────────────────────────────────────────
    # TRANSPORT SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    connect_timeout: Optional[float] = 30.0
    """
    Seconds to wait for the TCP/TLS/Unix connection to be established.
    None = wait forever.
    """

    buffer_size: int = 8192
    """Maximum bytes read from the socket per body read (8 KB default)."""

    max_header_size: int = 64 * 1024
    """Upper bound for the response head. Larger heads are a ProtocolError."""

    unix_socket: Optional[str] = None
    """
    If set, every request goes through this Unix socket path instead of
    TCP. The URL's host and path are still sent in the request.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Format of per-exchange log records: 'json' or 'text'."""

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTPCLIENT_PROTOCOL_VERSION  "1.0" or "1.1" (default: 1.1)
        HTTPCLIENT_CONNECT_TIMEOUT   Seconds, "none" to disable (default: 30)
        HTTPCLIENT_BUFFER_SIZE       Read size in bytes (default: 8192)
        HTTPCLIENT_USER_AGENT        User-Agent header value
        HTTPCLIENT_UNIX_SOCKET       Unix socket path (default: unset)
        HTTPCLIENT_LOG_LEVEL         Logging level (default: INFO)
        HTTPCLIENT_LOG_FORMAT        text | json (default: text)

        =====================================================================
        """
        timeout = os.getenv("HTTPCLIENT_CONNECT_TIMEOUT", "30")
        return cls(
            protocol_version=os.getenv("HTTPCLIENT_PROTOCOL_VERSION", "1.1"),
            connect_timeout=None if timeout.lower() == "none" else float(timeout),
            buffer_size=int(os.getenv("HTTPCLIENT_BUFFER_SIZE", "8192")),
            user_agent=os.getenv("HTTPCLIENT_USER_AGENT", "httpclient/1.0"),
            unix_socket=os.getenv("HTTPCLIENT_UNIX_SOCKET") or None,
            log_level=os.getenv("HTTPCLIENT_LOG_LEVEL", "INFO"),
            log_format=os.getenv("HTTPCLIENT_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises ValueError on the first bad value, before any connection
        is attempted.
        """
        if self.protocol_version not in SUPPORTED_PROTOCOL_VERSIONS:
            raise ValueError(
                f"Unsupported protocol_version: {self.protocol_version!r}. "
                f"Must be one of {', '.join(SUPPORTED_PROTOCOL_VERSIONS)}."
            )

        if self.connect_timeout is not None and self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be > 0 or None")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.max_header_size < 1024:
            raise ValueError("max_header_size must be >= 1024")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {self.log_format!r}")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log_level: {self.log_level!r}")


def configure_logging(config: ClientConfig) -> None:
    """Configure root logging and the package logger from config."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("httpclient").setLevel(level)
