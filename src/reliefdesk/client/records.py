"""
Typed records parsed from API responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from reliefdesk.core.lifecycle import MatchAction, available_actions, secondary_actions

from .errors import DecodeError


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise DecodeError(f"Invalid timestamp: {value!r}") from None


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise DecodeError(f"Invalid date: {value!r}") from None


def _require(data: Any, *keys: str) -> None:
    if not isinstance(data, dict):
        raise DecodeError(f"Expected a JSON object, got {type(data).__name__}")
    missing = [key for key in keys if key not in data]
    if missing:
        raise DecodeError(f"Response is missing fields: {', '.join(missing)}")


@dataclass
class MatchRecord:
    """An opportunity match as returned by the API."""

    id: int
    opportunity_id: int
    client_id: int
    status: str
    opportunity_name: str | None = None
    client_name: str | None = None
    match_score: float = 0
    match_criteria: dict[str, Any] = field(default_factory=dict)
    notes: str | None = None
    award_amount: float | None = None
    application_end_date: date | None = None
    applied_at: datetime | None = None
    awarded_at: datetime | None = None
    funded_at: datetime | None = None
    last_checked_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_json(cls, data: Any) -> "MatchRecord":
        _require(data, "id", "opportunityId", "status")
        client_id = data.get("survivorId", data.get("clientId"))
        if client_id is None:
            raise DecodeError("Response is missing fields: survivorId")
        try:
            return cls(
                id=int(data["id"]),
                opportunity_id=int(data["opportunityId"]),
                client_id=int(client_id),
                status=str(data["status"]),
                opportunity_name=data.get("opportunityName"),
                client_name=data.get("survivorName"),
                match_score=float(data.get("matchScore") or 0),
                match_criteria=dict(data.get("matchCriteria") or {}),
                notes=data.get("notes"),
                award_amount=(
                    float(data["awardAmount"]) if data.get("awardAmount") is not None else None
                ),
                application_end_date=_parse_date(data.get("applicationEndDate")),
                applied_at=_parse_datetime(data.get("appliedAt")),
                awarded_at=_parse_datetime(data.get("awardedAt")),
                funded_at=_parse_datetime(data.get("fundedAt")),
                last_checked_at=_parse_datetime(data.get("lastCheckedAt")),
                created_at=_parse_datetime(data.get("createdAt")),
                updated_at=_parse_datetime(data.get("updatedAt")),
            )
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Malformed match record: {e}") from e

    @property
    def actions(self) -> list[MatchAction]:
        """Forward actions a case worker may take next."""
        return available_actions(self.status)

    @property
    def housekeeping_actions(self) -> list[MatchAction]:
        return secondary_actions(self.status)


@dataclass
class TransitionResult:
    success: bool
    message: str
    match: MatchRecord

    @classmethod
    def from_json(cls, data: Any) -> "TransitionResult":
        _require(data, "success", "match")
        return cls(
            success=bool(data["success"]),
            message=str(data.get("message") or ""),
            match=MatchRecord.from_json(data["match"]),
        )


@dataclass
class RunResult:
    success: bool
    message: str
    new_match_count: int

    @classmethod
    def from_json(cls, data: Any) -> "RunResult":
        _require(data, "success", "newMatchCount")
        try:
            count = int(data["newMatchCount"])
        except (TypeError, ValueError):
            raise DecodeError(f"Invalid newMatchCount: {data['newMatchCount']!r}") from None
        return cls(
            success=bool(data["success"]),
            message=str(data.get("message") or ""),
            new_match_count=count,
        )


@dataclass
class CapitalSourceRecord:
    id: int
    type: str
    name: str
    amount: float
    status: str
    funding_category: str | None = None

    @classmethod
    def from_json(cls, data: Any) -> "CapitalSourceRecord":
        _require(data, "id", "type", "name", "amount", "status")
        try:
            return cls(
                id=int(data["id"]),
                type=str(data["type"]),
                name=str(data["name"]),
                amount=float(data["amount"]),
                status=str(data["status"]),
                funding_category=data.get("fundingCategory"),
            )
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Malformed capital source record: {e}") from e
