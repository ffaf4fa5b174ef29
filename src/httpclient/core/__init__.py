"""
Core request execution: the Sender, its PendingResult, and per-exchange logging.
"""

from .exchange_log import ExchangeLog, log_exchange
from .pending import PendingResult, Progress
from .sender import ExchangeState, Sender, prepare_request

__all__ = [
    "Sender",
    "ExchangeState",
    "prepare_request",
    "PendingResult",
    "Progress",
    "ExchangeLog",
    "log_exchange",
]
