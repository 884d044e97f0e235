"""HTTP client for the ReliefDesk API."""

from .errors import ApiError, DecodeError, HTTPStatusError, TransportError
from .http import ReliefDeskClient
from .records import CapitalSourceRecord, MatchRecord, RunResult, TransitionResult

__all__ = [
    "ApiError",
    "DecodeError",
    "HTTPStatusError",
    "TransportError",
    "ReliefDeskClient",
    "CapitalSourceRecord",
    "MatchRecord",
    "RunResult",
    "TransitionResult",
]
