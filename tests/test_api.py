from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from reliefdesk.api import create_app
from reliefdesk.core.config import AppConfig
from reliefdesk.core.matching import run_matching
from reliefdesk.core.scheduler.locks import MATCHING_LOCK, LockManager

from conftest import make_client

ACTOR = {"X-User-Id": "7"}


@pytest.fixture
def api(session_factory):
    app = create_app(config=AppConfig(), session_factory=session_factory)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def matched(session, opportunity, houston_client):
    run_matching(session)
    return opportunity.id, houston_client.id


def match_url(opportunity_id: int, client_id: int) -> str:
    return f"/api/matching/opportunities/{opportunity_id}/survivors/{client_id}/match"


def test_health(api):
    response = api.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["database"] == "ok"


def test_request_id_is_echoed(api):
    response = api.get("/health", headers={"X-Request-Id": "req-42"})
    assert response.headers["X-Request-Id"] == "req-42"

    generated = api.get("/health").headers["X-Request-Id"]
    assert generated


def test_unknown_route_is_problem_json(api):
    response = api.get("/api/nope")

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["detail"] == "Route not found"


def test_list_matches_includes_names(api, matched):
    opportunity_id, client_id = matched

    response = api.get("/api/matching/matches")

    assert response.status_code == 200
    [match] = response.json()
    assert match["opportunityId"] == opportunity_id
    assert match["survivorId"] == client_id
    assert match["opportunityName"] == "Home Repair Fund"
    assert match["survivorName"] == "Maria Lopez"
    assert match["status"] == "pending"
    assert match["matchScore"] == 100


def test_list_matches_status_filter(api, matched):
    assert api.get("/api/matching/matches", params={"status": "applied"}).json() == []
    assert len(api.get("/api/matching/matches", params={"status": "pending"}).json()) == 1
    assert api.get("/api/matching/matches", params={"status": "completed"}).status_code == 422


def test_list_by_client_and_opportunity(api, matched):
    opportunity_id, client_id = matched

    assert len(api.get(f"/api/matching/survivors/{client_id}/matches").json()) == 1
    assert len(api.get(f"/api/matching/opportunities/{opportunity_id}/matches").json()) == 1
    assert api.get("/api/matching/survivors/999/matches").json() == []


def test_get_missing_match_is_404(api, opportunity, houston_client):
    response = api.get(match_url(opportunity.id, houston_client.id))

    assert response.status_code == 404
    assert response.json()["detail"] == "Match not found"


def test_non_numeric_id_is_422(api):
    response = api.get("/api/matching/opportunities/abc/survivors/1/match")

    assert response.status_code == 422
    assert response.json()["title"] == "Validation Failed"
    assert response.json()["errors"]


def test_mutations_require_user_header(api, matched):
    opportunity_id, client_id = matched

    response = api.post(f"/api/matching/apply/{opportunity_id}/survivors/{client_id}")
    assert response.status_code == 401
    assert response.json()["detail"] == "Not authenticated"

    response = api.post(
        f"/api/matching/apply/{opportunity_id}/survivors/{client_id}",
        headers={"X-User-Id": "case-worker"},
    )
    assert response.status_code == 401


def test_full_grant_lifecycle(api, matched):
    opportunity_id, client_id = matched

    response = api.post(f"/api/matching/apply/{opportunity_id}/survivors/{client_id}", headers=ACTOR)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Grant application submitted successfully"
    assert body["match"]["status"] == "applied"
    assert body["match"]["appliedAt"]

    response = api.post(
        f"/api/matching/award/{opportunity_id}/survivors/{client_id}",
        json={"awardAmount": 4200, "notes": "Board approved"},
        headers=ACTOR,
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Grant awarded successfully"
    assert response.json()["match"]["awardAmount"] == 4200
    assert response.json()["match"]["notes"] == "Board approved"

    [source] = api.get(f"/api/survivors/{client_id}/capital-sources").json()
    assert source["status"] == "projected"
    assert source["amount"] == 4200
    assert source["type"] == "Grant"

    response = api.post(f"/api/matching/fund/{opportunity_id}/survivors/{client_id}", headers=ACTOR)
    assert response.status_code == 200
    assert response.json()["message"] == "Grant marked as funded successfully"
    assert response.json()["match"]["status"] == "funded"

    [source] = api.get(f"/api/survivors/{client_id}/capital-sources").json()
    assert source["status"] == "current"


def test_invalid_transition_is_409_with_current_status(api, matched):
    opportunity_id, client_id = matched

    response = api.post(f"/api/matching/fund/{opportunity_id}/survivors/{client_id}", headers=ACTOR)

    assert response.status_code == 409
    problem = response.json()
    assert problem["title"] == "Invalid Transition"
    assert problem["extensions"]["currentStatus"] == "pending"
    assert problem["extensions"]["action"] == "fund"


def test_negative_award_is_422(api, matched):
    opportunity_id, client_id = matched
    api.post(f"/api/matching/apply/{opportunity_id}/survivors/{client_id}", headers=ACTOR)

    response = api.post(
        f"/api/matching/award/{opportunity_id}/survivors/{client_id}",
        json={"awardAmount": -10},
        headers=ACTOR,
    )

    assert response.status_code == 422
    assert api.get(match_url(opportunity_id, client_id)).json()["status"] == "applied"


@pytest.mark.parametrize("literal", [b"Infinity", b"-Infinity", b"NaN"])
def test_non_finite_award_is_422(api, matched, literal):
    opportunity_id, client_id = matched
    api.post(f"/api/matching/apply/{opportunity_id}/survivors/{client_id}", headers=ACTOR)

    response = api.post(
        f"/api/matching/award/{opportunity_id}/survivors/{client_id}",
        content=b'{"awardAmount": ' + literal + b"}",
        headers={**ACTOR, "Content-Type": "application/json"},
    )

    assert response.status_code == 422
    match = api.get(match_url(opportunity_id, client_id)).json()
    assert match["status"] == "applied"
    assert match["awardAmount"] is None
    assert api.get(f"/api/survivors/{client_id}/capital-sources").json() == []


def test_award_without_amount_is_422(api, matched):
    opportunity_id, client_id = matched

    response = api.post(
        f"/api/matching/award/{opportunity_id}/survivors/{client_id}",
        json={"notes": "missing amount"},
        headers=ACTOR,
    )

    assert response.status_code == 422


def test_apply_unknown_client_is_404(api, opportunity):
    response = api.post(f"/api/matching/apply/{opportunity.id}/survivors/999", headers=ACTOR)

    assert response.status_code == 404
    assert response.json()["detail"] == "Survivor/client not found"


def test_patch_notes_and_status(api, matched):
    opportunity_id, client_id = matched

    response = api.patch(match_url(opportunity_id, client_id), json={"notes": "Called twice"}, headers=ACTOR)
    assert response.status_code == 200
    assert response.json()["notes"] == "Called twice"
    assert response.json()["status"] == "pending"

    response = api.patch(match_url(opportunity_id, client_id), json={"status": "applied"}, headers=ACTOR)
    assert response.json()["status"] == "applied"

    response = api.patch(match_url(opportunity_id, client_id), json={"status": "pending"}, headers=ACTOR)
    assert response.status_code == 409
    assert response.json()["extensions"] == {"currentStatus": "applied", "requestedStatus": "pending"}


def test_patch_rejects_unknown_status(api, matched):
    opportunity_id, client_id = matched

    response = api.patch(match_url(opportunity_id, client_id), json={"status": "approved"}, headers=ACTOR)

    assert response.status_code == 422


def test_patch_award_amount_only_when_awarding(api, matched):
    opportunity_id, client_id = matched

    response = api.patch(match_url(opportunity_id, client_id), json={"awardAmount": 100}, headers=ACTOR)

    assert response.status_code == 400


def test_run_matching_reports_new_matches(api, session, opportunity, houston_client):
    response = api.post("/api/matching/run", headers=ACTOR)

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Matching process completed successfully. Found 1 new matches.",
        "newMatchCount": 1,
    }

    make_client(session, "Rosa Diaz", address="77 Bayou Ln, Houston, TX 77005")
    session.commit()

    assert api.post("/api/matching/run", headers=ACTOR).json()["newMatchCount"] == 1
    assert api.post("/api/matching/run", headers=ACTOR).json()["newMatchCount"] == 0
    assert not LockManager(session).is_locked(MATCHING_LOCK)


def test_run_matching_conflicts_with_running_job(api, session, opportunity):
    LockManager(session).acquire(MATCHING_LOCK, "scheduler-host-1")

    response = api.post("/api/matching/run", headers=ACTOR)

    assert response.status_code == 409
    assert response.json()["detail"] == "A matching run is already in progress"


def test_opportunity_crud(api, org):
    payload = {
        "organizationId": org.id,
        "name": "Rental Assistance",
        "awardAmount": 1200,
        "applicationEndDate": "2026-12-31",
        "eligibilityCriteria": [{"type": "zipCode", "ranges": [{"min": 70000, "max": 70999}]}],
    }
    response = api.post("/api/funding-opportunities", json=payload, headers=ACTOR)
    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "active"
    assert created["applicationEndDate"] == "2026-12-31"
    assert created["eligibilityCriteria"] == [{"type": "zipCode", "ranges": [{"min": 70000.0, "max": 70999.0}]}]

    url = f"/api/funding-opportunities/{created['id']}"
    response = api.patch(url, json={"status": "closed"}, headers=ACTOR)
    assert response.status_code == 200
    assert response.json()["status"] == "closed"
    assert response.json()["name"] == "Rental Assistance"

    listed = api.get("/api/funding-opportunities", params={"status": "closed"}).json()
    assert [o["id"] for o in listed] == [created["id"]]

    assert api.delete(url, headers=ACTOR).status_code == 204
    assert api.get(url).status_code == 404


def test_opportunity_validation(api, org):
    response = api.post(
        "/api/funding-opportunities",
        json={"organizationId": org.id, "name": "Bad", "awardAmount": -5},
        headers=ACTOR,
    )
    assert response.status_code == 422

    response = api.post(
        "/api/funding-opportunities",
        json={"organizationId": org.id, "name": "Bad", "eligibilityCriteria": [{"type": "creditScore"}]},
        headers=ACTOR,
    )
    assert response.status_code == 422

    response = api.post(
        "/api/funding-opportunities",
        json={"organizationId": 999, "name": "Orphan"},
        headers=ACTOR,
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Organization not found"


def test_capital_sources_for_unknown_client(api):
    assert api.get("/api/survivors/999/capital-sources").status_code == 404


def test_unhandled_errors_hide_details(session_factory, monkeypatch):
    def boom(self, opportunity_id, client_id):
        raise RuntimeError("database password is hunter2")

    monkeypatch.setattr("reliefdesk.core.matching.grants.GrantService.get_match", boom)
    app = create_app(config=AppConfig(), session_factory=session_factory)

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get(match_url(1, 1))

    assert response.status_code == 500
    assert "hunter2" not in response.text
    assert response.json()["title"] == "Internal Server Error"
