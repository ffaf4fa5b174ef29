"""
=============================================================================
TRANSPORT INTERFACE
=============================================================================

The contract between the Sender and whatever actually moves bytes.

=============================================================================
ONE EXCHANGE, ONE EVENT STREAM
=============================================================================

    Sender                         TransportRequest (one per exchange)
      │                                     │
      │  open(method, url, headers, ver)    │
      │ ──────────────────────────────────► │
      │                                     │
      │  write(data) ... end(data)          │
      │ ──────────────────────────────────► │ ──► socket
      │                                     │
      │  async for event in events():       │
      │ ◄────────────────────────────────── │ ◄── socket
      │                                     │
      │      ResponseStarted(response)      │  exactly once, first
      │      DataReceived(data)             │  zero or more, in order
      │      MessageComplete()              │  terminal
      │      ExchangeFailed(error)          │  terminal
      │                                     │

Every exchange owns its own event queue, so two exchanges running on
the same transport can never see each other's data.

After a terminal event nothing else is delivered. ``events()`` stops by
itself once the terminal event has been yielded.

=============================================================================
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Optional, Tuple, Union


@dataclass
class TransportResponse:
    """
    Response head as reported by the transport.

    Headers are kept as raw (name, value) pairs in arrival order.
    """

    protocol_version: str
    status_code: int
    reason_phrase: str
    headers: List[Tuple[str, str]] = field(default_factory=list)

    def header(self, name: str) -> Optional[str]:
        """All values of a header joined with ", ", or None if absent."""
        values = [value for key, value in self.headers if key.lower() == name.lower()]
        return ", ".join(values) if values else None


# =============================================================================
# EVENTS
# =============================================================================


@dataclass(frozen=True)
class ResponseStarted:
    response: TransportResponse


@dataclass(frozen=True)
class DataReceived:
    data: bytes


@dataclass(frozen=True)
class MessageComplete:
    pass


@dataclass(frozen=True)
class ExchangeFailed:
    error: BaseException


TransportEvent = Union[ResponseStarted, DataReceived, MessageComplete, ExchangeFailed]

TERMINAL_EVENTS = (MessageComplete, ExchangeFailed)


class TransportRequest(ABC):
    """
    Transport-owned handle for one in-flight request.

    Subclasses implement ``write`` and ``end`` and report progress with
    ``emit``. The event queue and the terminal-event bookkeeping live
    here so every transport behaves the same way.
    """

    def __init__(self):
        self._events: asyncio.Queue = asyncio.Queue()
        self._finished = False

    @property
    def finished(self) -> bool:
        """True once a terminal event has been emitted."""
        return self._finished

    def emit(self, event: TransportEvent) -> bool:
        """
        Queue an event for the consumer.

        Returns False (and drops the event) if the exchange already
        reached a terminal event.
        """
        if self._finished:
            return False
        if isinstance(event, TERMINAL_EVENTS):
            self._finished = True
        self._events.put_nowait(event)
        return True

    async def events(self) -> AsyncIterator[TransportEvent]:
        """Yield events in order, stopping after the terminal one."""
        while True:
            event = await self._events.get()
            yield event
            if isinstance(event, TERMINAL_EVENTS):
                return

    def close(self, cause: Optional[BaseException] = None) -> None:
        """
        Abort the exchange.

        The consumer sees ExchangeFailed with ``cause`` (default:
        ConnectionAbortedError). No-op after a terminal event.
        """
        self.emit(ExchangeFailed(cause or ConnectionAbortedError("Request closed before completion")))

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """Send a piece of the request body."""

    @abstractmethod
    async def end(self, data: bytes = b"") -> None:
        """Send the last piece of the request body (may be empty)."""


class Transport(ABC):
    """Factory for TransportRequest handles."""

    @abstractmethod
    def open(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        protocol_version: str = "1.1",
    ) -> TransportRequest:
        """
        Start a new exchange.

        Must return immediately; connecting happens in the background
        and failures are reported as ExchangeFailed. May raise
        TransportError for requests it can never serve (e.g. an
        unsupported scheme).
        """
