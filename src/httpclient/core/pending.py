"""
=============================================================================
PENDING RESULT
=============================================================================

A single-resolution, awaitable handle for the outcome of one exchange.

=============================================================================
LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │            notify(progress)  (zero or more times)                   │
    │                 ┌────┐                                               │
    │                 ▼    │                                               │
    │            ┌──────────┐   resolve(value)   ┌──────────┐             │
    │  created ─►│ PENDING  │ ─────────────────► │ RESOLVED │             │
    │            └──────────┘                    └──────────┘             │
    │                 │                                                    │
    │                 │ reject(error) / cancel()  ┌──────────┐            │
    │                 └─────────────────────────► │ REJECTED │            │
    │                                             └──────────┘            │
    │                                                                      │
    │  The first resolve/reject wins. Later calls return False and do     │
    │  nothing. Progress after resolution is dropped.                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Usage:

    result = sender.send(request)
    result.on_progress(lambda p: print(p.stage))
    response = await result          # raises on rejection

Progress updates carry the transport's own request/response handles.
They are for instrumentation only; nothing should be driven through
them.

=============================================================================
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generator, Generic, List, Optional, TypeVar

from ..errors import TransportError

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Progress:
    """
    Mid-flight notification.

    Attributes:
        stage:  "request" once the transport request exists,
                "response" once the response head has arrived.
        handle: The transport handle for that stage.
    """

    stage: str
    handle: Any


ProgressCallback = Callable[[Progress], None]


class PendingResult(Generic[T]):
    """
    Future-like result of one send().

    Wraps an asyncio.Future so it can be awaited directly, and adds
    progress callbacks plus a coarse ``cancel()`` hook.
    """

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        canceller: Optional[Callable[[], None]] = None,
    ):
        self._loop = loop or asyncio.get_running_loop()
        self._future: asyncio.Future = self._loop.create_future()
        self._progress_callbacks: List[ProgressCallback] = []
        self._canceller = canceller

    @classmethod
    def rejected(cls, error: BaseException, loop: Optional[asyncio.AbstractEventLoop] = None) -> "PendingResult":
        """A result that is already rejected."""
        result = cls(loop=loop)
        result.reject(error)
        return result

    @classmethod
    def resolved(cls, value: Any, loop: Optional[asyncio.AbstractEventLoop] = None) -> "PendingResult":
        """A result that is already resolved."""
        result = cls(loop=loop)
        result.resolve(value)
        return result

    # =========================================================================
    # PRODUCER SIDE
    # =========================================================================

    def resolve(self, value: T) -> bool:
        if self._future.done():
            return False
        self._future.set_result(value)
        return True

    def reject(self, error: BaseException) -> bool:
        if self._future.done():
            return False
        self._future.set_exception(error)
        return True

    def notify(self, progress: Progress) -> None:
        if self._future.done():
            return
        for callback in list(self._progress_callbacks):
            try:
                callback(progress)
            except Exception:
                # A broken listener must not break the exchange
                logger.exception(f"Progress callback failed for stage {progress.stage!r}")

    def set_canceller(self, canceller: Callable[[], None]) -> None:
        self._canceller = canceller

    # =========================================================================
    # CONSUMER SIDE
    # =========================================================================

    def on_progress(self, callback: ProgressCallback) -> "PendingResult[T]":
        """Register a progress listener. Returns self for chaining."""
        self._progress_callbacks.append(callback)
        return self

    def add_done_callback(self, callback: Callable[["PendingResult[T]"], None]) -> None:
        self._future.add_done_callback(lambda _future: callback(self))

    def cancel(self) -> bool:
        """
        Abort the exchange.

        Closes the transport request; the result then settles as
        rejected (TransportError). Returns False if already settled.
        """
        if self._future.done():
            return False
        if self._canceller is not None:
            self._canceller()
        if not self._future.done():
            # Nothing upstream settled it; don't leave it hanging
            self.reject(TransportError("Request cancelled"))
        return True

    def done(self) -> bool:
        return self._future.done()

    def result(self) -> T:
        """The resolved value. Raises the rejection error, or InvalidStateError if pending."""
        return self._future.result()

    def exception(self) -> Optional[BaseException]:
        return self._future.exception()

    def __await__(self) -> Generator[Any, None, T]:
        return self._future.__await__()

    def __repr__(self) -> str:
        if not self._future.done():
            state = "pending"
        elif self._future.exception() is not None:
            state = f"rejected {self._future.exception()!r}"
        else:
            state = "resolved"
        return f"<PendingResult {state}>"
