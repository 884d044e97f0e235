"""
ReliefDesk API client using httpx.

Provides synchronous access to the matching endpoints with:
- A request timeout on every call
- Retry with exponential backoff for safe (GET) requests only
- Distinct errors for transport, status and decoding failures
"""

from __future__ import annotations

import math
from typing import Any

import httpx
import orjson

from reliefdesk import __version__
from reliefdesk.core.config.models import ClientConfig
from reliefdesk.core.fetch.retries import RetryConfig, call_with_retry
from reliefdesk.core.logging import get_logger

from .errors import DecodeError, HTTPStatusError, TransportError
from .records import CapitalSourceRecord, MatchRecord, RunResult, TransitionResult

logger = get_logger("client")

MATCHING = "/api/matching"


class ReliefDeskClient:
    """Typed client for the ReliefDesk REST API.

    Usage:
        with ReliefDeskClient("http://127.0.0.1:8000", user_id=7) as api:
            for match in api.list_matches():
                ...
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        timeout: float = 30.0,
        user_id: int | None = None,
        max_retries: int = 3,
        transport: httpx.BaseTransport | None = None,
        retry_wait: float = 0.5,
    ):
        """Initialize the client.

        Args:
            base_url: Server root URL
            timeout: Request timeout in seconds
            user_id: Acting user sent as X-User-Id on mutating calls
            max_retries: Attempts for GET requests on transport errors
            transport: Custom httpx transport (tests use MockTransport)
            retry_wait: Minimum backoff between GET retries in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self._retry = RetryConfig(
            max_attempts=max_retries,
            min_wait=retry_wait,
            max_wait=retry_wait * 10,
            retry_exceptions=(httpx.TransportError,),
        )
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            headers={
                "Accept": "application/json",
                "User-Agent": f"reliefdesk-client/{__version__}",
            },
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs: Any) -> "ReliefDeskClient":
        return cls(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            user_id=config.user_id,
            max_retries=config.max_retries,
            **kwargs,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ReliefDeskClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _headers(self, mutating: bool) -> dict[str, str]:
        if mutating and self.user_id is not None:
            return {"X-User-Id": str(self.user_id)}
        return {}

    def _request(self, method: str, path: str, json: Any = None, params: dict[str, Any] | None = None) -> Any:
        """Send a request and decode its JSON body.

        Raises:
            TransportError: No response was received
            HTTPStatusError: Response status was not 2xx
            DecodeError: Response body was not JSON
        """
        safe = method == "GET"
        kwargs: dict[str, Any] = {"headers": self._headers(mutating=not safe)}
        if json is not None:
            kwargs["json"] = json
        if params:
            kwargs["params"] = params

        url = f"{self.base_url}{path}"
        try:
            if safe:
                response = call_with_retry(self._client.request, method, path, config=self._retry, **kwargs)
            else:
                response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out", method, url)
            raise TransportError(f"Request timed out: {method} {url}", method=method, url=url) from e
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise TransportError(f"Could not reach server: {e}", method=method, url=url) from e

        if response.is_error:
            problem = _decode_problem(response)
            message = (
                problem.get("detail")
                or problem.get("message")
                or problem.get("title")
                or f"{response.status_code} {response.reason_phrase}"
            )
            raise HTTPStatusError(
                response.status_code,
                str(message),
                problem=problem,
                method=method,
                url=url,
            )

        if response.status_code == 204 or not response.content:
            return None
        try:
            return orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise DecodeError(f"Response from {method} {url} is not valid JSON") from e

    def _list(self, path: str, params: dict[str, Any] | None = None) -> list[MatchRecord]:
        data = self._request("GET", path, params=params)
        if not isinstance(data, list):
            raise DecodeError(f"Expected a list of matches from {path}")
        return [MatchRecord.from_json(item) for item in data]

    # -------------------------------------------------------------------------
    # Matches
    # -------------------------------------------------------------------------

    def list_matches(self, status: str | None = None) -> list[MatchRecord]:
        """All matches with opportunity and survivor names."""
        params = {"status": status} if status else None
        return self._list(f"{MATCHING}/matches", params=params)

    def list_client_matches(self, client_id: int) -> list[MatchRecord]:
        return self._list(f"{MATCHING}/survivors/{client_id}/matches")

    def list_opportunity_matches(self, opportunity_id: int) -> list[MatchRecord]:
        return self._list(f"{MATCHING}/opportunities/{opportunity_id}/matches")

    def get_match(self, opportunity_id: int, client_id: int) -> MatchRecord:
        data = self._request("GET", f"{MATCHING}/opportunities/{opportunity_id}/survivors/{client_id}/match")
        return MatchRecord.from_json(data)

    def update_match(
        self,
        opportunity_id: int,
        client_id: int,
        status: str | None = None,
        notes: str | None = None,
        award_amount: float | None = None,
    ) -> MatchRecord:
        body: dict[str, Any] = {}
        if status is not None:
            body["status"] = status
        if notes is not None:
            body["notes"] = notes
        if award_amount is not None:
            body["awardAmount"] = award_amount
        data = self._request(
            "PATCH",
            f"{MATCHING}/opportunities/{opportunity_id}/survivors/{client_id}/match",
            json=body,
        )
        return MatchRecord.from_json(data)

    def run_matching(self) -> RunResult:
        """Trigger the matching engine; returns the new match count."""
        return RunResult.from_json(self._request("POST", f"{MATCHING}/run"))

    # -------------------------------------------------------------------------
    # Grant lifecycle
    # -------------------------------------------------------------------------

    def apply(self, opportunity_id: int, client_id: int) -> TransitionResult:
        data = self._request("POST", f"{MATCHING}/apply/{opportunity_id}/survivors/{client_id}")
        return TransitionResult.from_json(data)

    def award(
        self,
        opportunity_id: int,
        client_id: int,
        award_amount: float,
        notes: str | None = None,
    ) -> TransitionResult:
        """Award a grant.

        Raises:
            ValueError: If award_amount is negative or not finite (checked before sending)
        """
        if not math.isfinite(award_amount) or award_amount < 0:
            raise ValueError("Award amount must be a non-negative number")
        body: dict[str, Any] = {"awardAmount": award_amount}
        if notes is not None:
            body["notes"] = notes
        data = self._request("POST", f"{MATCHING}/award/{opportunity_id}/survivors/{client_id}", json=body)
        return TransitionResult.from_json(data)

    def fund(self, opportunity_id: int, client_id: int) -> TransitionResult:
        data = self._request("POST", f"{MATCHING}/fund/{opportunity_id}/survivors/{client_id}")
        return TransitionResult.from_json(data)

    # -------------------------------------------------------------------------
    # Capital stack
    # -------------------------------------------------------------------------

    def list_capital_sources(self, client_id: int) -> list[CapitalSourceRecord]:
        data = self._request("GET", f"/api/survivors/{client_id}/capital-sources")
        if not isinstance(data, list):
            raise DecodeError("Expected a list of capital sources")
        return [CapitalSourceRecord.from_json(item) for item in data]


def _decode_problem(response: httpx.Response) -> dict[str, Any]:
    try:
        body = orjson.loads(response.content) if response.content else {}
    except orjson.JSONDecodeError:
        return {}
    return body if isinstance(body, dict) else {}
