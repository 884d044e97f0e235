"""
API client error taxonomy.

Every failure of a client call is an ApiError; callers that only need a
message can catch that, callers that care can tell a network failure, a
server-side rejection and an unreadable response apart.
"""

from __future__ import annotations

from typing import Any


class ApiError(Exception):
    """Base class for API client failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TransportError(ApiError):
    """Request never produced a response (connection, timeout, DNS)."""

    def __init__(self, message: str, method: str | None = None, url: str | None = None):
        super().__init__(message)
        self.method = method
        self.url = url


class HTTPStatusError(ApiError):
    """Server answered with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        problem: dict[str, Any] | None = None,
        method: str | None = None,
        url: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.problem = problem or {}
        self.method = method
        self.url = url

    @property
    def current_status(self) -> str | None:
        """Match status reported by a rejected transition, if any."""
        extensions = self.problem.get("extensions") or {}
        value = extensions.get("currentStatus") or self.problem.get("currentStatus")
        return str(value) if value is not None else None

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409


class DecodeError(ApiError):
    """Response body was not JSON or did not have the expected shape."""
