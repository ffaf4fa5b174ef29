"""
=============================================================================
EXCHANGE LOGGING
=============================================================================

One structured log record per finished exchange, success or failure.

=============================================================================
WHAT GETS LOGGED
=============================================================================

    text:  a1b2c3d4 "GET http://example.com/" 200 1256B 12.31ms buffered
    text:  a1b2c3d4 "GET http://example.com/" failed TransportError: ... 3.02ms

    json:  {"exchange_id": "a1b2c3d4", "method": "GET", "url": "...",
            "status_code": 200, "bytes_received": 1256,
            "duration_ms": 12.31, "mode": "buffered", "error": null, ...}

For streamed responses the record is written when the body stream ends,
so bytes_received and duration_ms cover the whole download.

Logger name is "httpclient.exchange", so it can be routed separately:

    logging.getLogger("httpclient.exchange").setLevel(logging.WARNING)

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger("httpclient.exchange")


@dataclass
class ExchangeLog:
    """
    Structured log entry for one request/response exchange.

    status_code is None when the exchange failed before a response
    head arrived.
    """

    exchange_id: str
    method: str
    url: str
    mode: str
    status_code: Optional[int]
    bytes_received: int
    duration_ms: float
    timestamp: str
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "exchange_id": self.exchange_id,
            "method": self.method,
            "url": self.url,
            "mode": self.mode,
            "status_code": self.status_code,
            "bytes_received": self.bytes_received,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
            "error": self.error,
        }

    def to_text(self) -> str:
        outcome = (
            f"failed {self.error}"
            if self.error
            else f"{self.status_code} {self.bytes_received}B"
        )
        return (
            f'{self.exchange_id} "{self.method} {self.url}" {outcome} '
            f"{self.duration_ms:.2f}ms {self.mode}"
        )


def log_exchange(entry: ExchangeLog, log_format: str = "text") -> None:
    """Emit ``entry``: WARNING for failures, INFO otherwise."""
    level = logging.WARNING if entry.error else logging.INFO
    if log_format == "json":
        logger.log(level, json.dumps(entry.to_dict()))
    else:
        logger.log(level, entry.to_text())


def timestamp() -> str:
    return time.strftime("%d/%b/%Y:%H:%M:%S %z")
