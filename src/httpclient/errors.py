"""
=============================================================================
CLIENT ERRORS
=============================================================================

Exception hierarchy for everything that can go wrong while sending a
request and receiving its response.

=============================================================================
ERROR TAXONOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         ClientError                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   InvalidRequest          URI without scheme or host.               │
    │                           Detected before any I/O happens.          │
    │                                                                      │
    │   TransportError          Connect, DNS or socket failure reported   │
    │    │                      by the transport. .cause holds the        │
    │    │                      original exception.                       │
    │    │                                                                 │
    │    ├── PartialResponseError   Connection ended before the body was  │
    │    │                          fully delivered. Partial data is      │
    │    │                          never handed out as if complete.      │
    │    │                                                                 │
    │    └── ProtocolError          The server sent something that is not │
    │                               valid HTTP/1.x (bad status line,      │
    │                               broken chunk framing, ...).           │
    │                                                                      │
    │   BodyConsumedError       A single-pass body was read twice.        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A response with a 4xx or 5xx status is NOT an error here. The request
was delivered and a response came back; what the status means is the
caller's business.

=============================================================================
"""

from typing import Optional


class ClientError(Exception):
    """
    Base class for all errors raised by this package.

    Carries an optional ``cause``: the lower-level exception (socket
    error, timeout, ...) that triggered this one. It is also chained as
    ``__cause__`` so tracebacks show both.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class InvalidRequest(ClientError, ValueError):
    """Raised when a request cannot be sent at all (e.g. relative URI)."""


class TransportError(ClientError):
    """
    Connection-level failure while delivering a request or reading
    its response.
    """

    @classmethod
    def wrap(cls, error: BaseException, message: Optional[str] = None) -> "TransportError":
        """Return ``error`` unchanged if it already is a TransportError."""
        if isinstance(error, TransportError):
            return error
        return cls(message or f"Transport failed: {error or type(error).__name__}", cause=error)


class PartialResponseError(TransportError):
    """
    The response body ended early.

    Attributes:
        received: Number of body bytes that did arrive.
        expected: Declared Content-Length, or None if the length was
                  implied by the framing (chunked / close-delimited).
    """

    def __init__(
        self,
        message: str,
        received: int = 0,
        expected: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause=cause)
        self.received = received
        self.expected = expected


class ProtocolError(TransportError):
    """The peer violated HTTP/1.x message syntax."""


class BodyConsumedError(ClientError):
    """A streamed body can only be iterated once."""

    def __init__(self, message: str = "Stream body has already been consumed"):
        super().__init__(message)
