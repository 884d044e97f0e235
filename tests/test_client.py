from __future__ import annotations

import httpx
import orjson
import pytest

from reliefdesk.client import (
    DecodeError,
    HTTPStatusError,
    MatchRecord,
    ReliefDeskClient,
    TransportError,
)
from reliefdesk.core.lifecycle import MatchAction

MATCH = {
    "id": 11,
    "opportunityId": 3,
    "survivorId": 5,
    "clientId": 5,
    "opportunityName": "Home Repair Fund",
    "survivorName": "Maria Lopez",
    "status": "pending",
    "matchScore": 100,
    "matchCriteria": {"zipCode": {"matches": True, "value": "77002"}},
    "notes": None,
    "awardAmount": None,
    "applicationEndDate": "2026-12-31",
    "appliedAt": None,
    "awardedAt": None,
    "fundedAt": None,
    "lastCheckedAt": "2026-10-01T12:00:00",
    "createdAt": "2026-10-01T12:00:00",
    "updatedAt": None,
}


def make_client(handler, **kwargs) -> ReliefDeskClient:
    kwargs.setdefault("retry_wait", 0)
    return ReliefDeskClient(
        "http://reliefdesk.test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def json_response(status_code: int, body) -> httpx.Response:
    return httpx.Response(status_code, content=orjson.dumps(body), headers={"Content-Type": "application/json"})


def test_list_matches_parses_records():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return json_response(200, [MATCH])

    with make_client(handler) as api:
        [match] = api.list_matches(status="pending")

    assert seen[0].url.path == "/api/matching/matches"
    assert seen[0].url.params["status"] == "pending"
    assert "X-User-Id" not in seen[0].headers
    assert match.opportunity_name == "Home Repair Fund"
    assert match.client_id == 5
    assert match.application_end_date.isoformat() == "2026-12-31"
    assert match.actions == [MatchAction.APPLY]


def test_get_retries_on_transport_error():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) < 3:
            raise httpx.ConnectError("connection refused", request=request)
        return json_response(200, MATCH)

    with make_client(handler, max_retries=3) as api:
        match = api.get_match(3, 5)

    assert len(calls) == 3
    assert match.id == 11


def test_get_gives_up_after_max_retries():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with make_client(handler, max_retries=2) as api:
        with pytest.raises(TransportError) as exc_info:
            api.list_matches()

    assert len(calls) == 2
    assert exc_info.value.method == "GET"


def test_mutations_are_sent_once():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection reset", request=request)

    with make_client(handler, user_id=7, max_retries=5) as api:
        with pytest.raises(TransportError):
            api.apply(3, 5)

    assert len(calls) == 1


def test_timeout_is_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with make_client(handler, user_id=7) as api:
        with pytest.raises(TransportError, match="timed out"):
            api.fund(3, 5)


def test_mutations_send_user_header_and_parse_result():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        applied = dict(MATCH, status="applied", appliedAt="2026-10-02T09:30:00")
        return json_response(200, {"success": True, "message": "Grant application submitted successfully", "match": applied})

    with make_client(handler, user_id=7) as api:
        result = api.apply(3, 5)

    assert seen[0].method == "POST"
    assert seen[0].url.path == "/api/matching/apply/3/survivors/5"
    assert seen[0].headers["X-User-Id"] == "7"
    assert result.success
    assert result.match.status == "applied"
    assert result.match.applied_at.hour == 9
    assert result.match.actions == [MatchAction.AWARD]


def test_award_sends_camel_case_body():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(orjson.loads(request.content))
        awarded = dict(MATCH, status="awarded", awardAmount=2500)
        return json_response(200, {"success": True, "message": "Grant awarded successfully", "match": awarded})

    with make_client(handler, user_id=7) as api:
        result = api.award(3, 5, 2500, notes="Board approved")

    assert seen == [{"awardAmount": 2500, "notes": "Board approved"}]
    assert result.match.award_amount == 2500


def test_negative_award_is_never_sent():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("request should not be sent")

    with make_client(handler, user_id=7) as api:
        with pytest.raises(ValueError):
            api.award(3, 5, -1)


@pytest.mark.parametrize("amount", [float("inf"), float("nan")])
def test_non_finite_award_is_never_sent(amount):
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("request should not be sent")

    with make_client(handler, user_id=7) as api:
        with pytest.raises(ValueError):
            api.award(3, 5, amount)


def test_conflict_exposes_current_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            409,
            content=orjson.dumps(
                {
                    "type": "about:blank",
                    "title": "Invalid Transition",
                    "status": 409,
                    "detail": "Cannot fund a match that is applied",
                    "extensions": {"currentStatus": "applied", "action": "fund"},
                }
            ),
            headers={"Content-Type": "application/problem+json"},
        )

    with make_client(handler, user_id=7) as api:
        with pytest.raises(HTTPStatusError) as exc_info:
            api.fund(3, 5)

    error = exc_info.value
    assert error.status_code == 409
    assert error.is_conflict
    assert error.current_status == "applied"
    assert str(error) == "Cannot fund a match that is applied"


def test_error_without_body_uses_reason_phrase():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    with make_client(handler) as api:
        with pytest.raises(HTTPStatusError, match="503 Service Unavailable"):
            api.list_matches()


def test_non_json_body_is_decode_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>proxy login</html>")

    with make_client(handler) as api:
        with pytest.raises(DecodeError):
            api.list_matches()


def test_unexpected_shape_is_decode_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return json_response(200, {"matches": []})

    with make_client(handler) as api:
        with pytest.raises(DecodeError):
            api.list_matches()


def test_run_matching_count():
    def handler(request: httpx.Request) -> httpx.Response:
        return json_response(
            200,
            {"success": True, "message": "Matching process completed successfully. Found 4 new matches.", "newMatchCount": 4},
        )

    with make_client(handler, user_id=7) as api:
        assert api.run_matching().new_match_count == 4


def test_match_record_requires_identity_fields():
    with pytest.raises(DecodeError, match="opportunityId"):
        MatchRecord.from_json({"id": 1, "status": "pending", "survivorId": 2})
    with pytest.raises(DecodeError):
        MatchRecord.from_json(dict(MATCH, appliedAt="yesterday"))


def test_match_record_accepts_client_id_alias():
    data = {key: value for key, value in MATCH.items() if key != "survivorId"}
    assert MatchRecord.from_json(data).client_id == 5


def test_capital_source_with_null_amount_is_decode_error():
    source = {"id": 1, "type": "Grant", "name": "Home Repair Fund Grant", "amount": None, "status": "projected"}

    def handler(request: httpx.Request) -> httpx.Response:
        return json_response(200, [source])

    with make_client(handler) as api:
        with pytest.raises(DecodeError, match="Malformed capital source record"):
            api.list_capital_sources(5)


def test_capital_sources_parse():
    source = {
        "id": 1,
        "type": "Grant",
        "name": "Home Repair Fund Grant",
        "amount": "2500.00",
        "status": "current",
        "fundingCategory": "individual_assistance",
    }

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/survivors/5/capital-sources"
        return json_response(200, [source])

    with make_client(handler) as api:
        [record] = api.list_capital_sources(5)

    assert record.amount == 2500.0
    assert record.funding_category == "individual_assistance"
