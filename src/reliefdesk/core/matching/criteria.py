"""
Eligibility criteria evaluation.

A funding opportunity carries a list of criteria, each a JSON object with a
``type`` key:

    {"type": "zipCode", "ranges": [{"min": 77001, "max": 77099}]}
    {"type": "income", "ranges": [{"min": 0, "max": 45000}]}
    {"type": "householdSize", "ranges": [{"min": 3, "max": 10}]}
    {"type": "disasterEvent", "events": ["harvey"]}
    {"type": "custom", "key": "veteran", "values": ["yes"]}

A client is evaluated against each criterion; the score is the share of
evaluated criteria that matched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from reliefdesk.core.config.models import CriterionType

ZIP_PATTERN = re.compile(r"\b\d{5}(?:-\d{4})?\b")

NO_ZIP_REASON = "No property or zip code found"


@dataclass
class ClientProfile:
    """What the matching engine knows about a client."""

    client_id: int
    zip_code: str | None = None
    total_income: float = 0.0
    household_size: int = 0
    tags: set[str] = field(default_factory=set)


@dataclass
class EligibilityResult:
    """Outcome of evaluating one client against one opportunity."""

    matched: int = 0
    evaluated: int = 0
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_match(self) -> bool:
        return self.matched > 0

    @property
    def score(self) -> int:
        if self.evaluated == 0:
            return 0
        return round(self.matched / self.evaluated * 100)


def extract_zip(address: str | None) -> str | None:
    """Find the first US zip code (5 or 5+4 digits) in an address."""
    if not address:
        return None
    found = ZIP_PATTERN.search(address)
    return found.group(0) if found else None


def zip_to_int(zip_code: str) -> int | None:
    digits = zip_code.strip()[:5]
    if len(digits) != 5 or not digits.isdigit():
        return None
    return int(digits)


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def in_ranges(value: float, ranges: Iterable[dict[str, Any]] | None) -> bool:
    """True when ``value`` falls in any inclusive ``{min, max}`` range.

    A missing bound is open on that side.
    """
    for bound in ranges or []:
        if not isinstance(bound, dict):
            continue
        low = _as_number(bound.get("min"))
        high = _as_number(bound.get("max"))
        if low is not None and value < low:
            continue
        if high is not None and value > high:
            continue
        return True
    return False


def _check_zip(profile: ClientProfile, criterion: dict[str, Any]) -> dict[str, Any]:
    if not profile.zip_code:
        return {"matches": False, "reason": NO_ZIP_REASON}
    zip_value = zip_to_int(profile.zip_code)
    if zip_value is None:
        return {"matches": False, "reason": NO_ZIP_REASON}
    return {
        "matches": in_ranges(zip_value, criterion.get("ranges")),
        "value": profile.zip_code,
    }


def _check_income(profile: ClientProfile, criterion: dict[str, Any]) -> dict[str, Any]:
    return {
        "matches": in_ranges(profile.total_income, criterion.get("ranges")),
        "value": profile.total_income,
    }


def _check_household_size(profile: ClientProfile, criterion: dict[str, Any]) -> dict[str, Any]:
    return {
        "matches": in_ranges(profile.household_size, criterion.get("ranges")),
        "value": profile.household_size,
    }


def _check_disaster(profile: ClientProfile, criterion: dict[str, Any]) -> dict[str, Any]:
    events = [str(event) for event in criterion.get("events") or []]
    hits = [event for event in events if f"disaster:{event}" in profile.tags]
    return {"matches": bool(hits), "events": hits}


def _check_custom(profile: ClientProfile, criterion: dict[str, Any]) -> dict[str, Any]:
    key = str(criterion.get("key") or "")
    values = [str(value) for value in criterion.get("values") or []]
    hits = [value for value in values if key and f"{key}:{value}" in profile.tags]
    return {"matches": bool(hits), "key": key, "values": hits}


_CHECKS = {
    CriterionType.ZIP_CODE.value: _check_zip,
    CriterionType.INCOME.value: _check_income,
    CriterionType.HOUSEHOLD_SIZE.value: _check_household_size,
    CriterionType.DISASTER_EVENT.value: _check_disaster,
    CriterionType.CUSTOM.value: _check_custom,
}


def evaluate_eligibility(
    profile: ClientProfile,
    criteria: Iterable[dict[str, Any]],
) -> EligibilityResult:
    """Evaluate a client profile against an opportunity's criteria.

    Details are keyed by criterion type; repeated types get an index
    suffix (``custom``, ``custom_1``, ...). Unknown types count as
    evaluated and unmatched.

    Args:
        profile: Client data gathered by the engine
        criteria: Opportunity eligibility criteria

    Returns:
        EligibilityResult with counts and per-criterion details
    """
    result = EligibilityResult()

    for criterion in criteria:
        if not isinstance(criterion, dict):
            continue

        ctype = str(criterion.get("type") or "unknown")
        check = _CHECKS.get(ctype)
        if check is None:
            detail = {"matches": False, "reason": f"Unsupported criterion type: {ctype}"}
        else:
            detail = check(profile, criterion)

        key = ctype
        suffix = 1
        while key in result.details:
            key = f"{ctype}_{suffix}"
            suffix += 1

        result.details[key] = detail
        result.evaluated += 1
        if detail["matches"]:
            result.matched += 1

    return result
