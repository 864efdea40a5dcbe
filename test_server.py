"""HTTP surface tests using FastAPI's TestClient."""

import time
from unittest.mock import patch

import jwt
import pytest
from fastapi.testclient import TestClient

from conftest import TEST_JWT_SECRET
from server import app

IMAGE = "s3://returns-evidence/claims/server.jpg"
GENERIC_MESSAGE = "Unable to process return request. Please try again later."


def token_for(user_id: str, role: str = "authenticated", **claims) -> str:
    payload = {"sub": user_id, "exp": int(time.time()) + 3600, "role": role}
    payload.update(claims)
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


def auth_header(user_id: str = "user-1", role: str = "authenticated") -> dict:
    return {"Authorization": f"Bearer {token_for(user_id, role)}"}


@pytest.fixture
def client(configured_reasoner):
    with TestClient(app) as test_client:
        yield test_client


def assert_error_payload(response, status_code, message):
    assert response.status_code == status_code
    body = response.json()
    assert set(body) == {"error", "errorId"}
    assert body["error"] == message
    assert body["errorId"] == response.headers["X-Correlation-Id"]


def new_return(**overrides) -> dict:
    body = {
        "customerName": "Dana Smith",
        "customerEmail": "dana@example.com",
        "productName": "Phone X",
        "issueDescription": "The screen arrived scratched",
        "imageReference": IMAGE,
    }
    body.update(overrides)
    return body


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


# Authentication

def test_missing_bearer_is_rejected(client, runtime):
    response = client.post("/api/returns/analyze", json={"claimId": "c", "description": "d"})

    assert_error_payload(response, 401, "Authentication required")
    assert runtime.calls == []


@pytest.mark.parametrize("authorization", [
    "Basic dXNlcjpwYXNz",
    "Bearer not-a-jwt",
    f"Bearer {jwt.encode({'sub': 'user-1', 'exp': int(time.time()) + 60}, 'wrong-secret-wrong-secret-wrong-secret', algorithm='HS256')}",
    f"Bearer {jwt.encode({'sub': 'user-1', 'exp': int(time.time()) - 60}, TEST_JWT_SECRET, algorithm='HS256')}",
])
def test_invalid_bearer_is_rejected(client, authorization):
    response = client.get("/api/returns/anything", headers={"Authorization": authorization})

    assert_error_payload(response, 401, "Authentication required")


# Analysis

def test_create_return_runs_pipeline(client):
    response = client.post("/api/returns", json=new_return(), headers=auth_header("user-1"))

    assert response.status_code == 201
    body = response.json()
    assert body["analysis"]["success"] is True
    assert body["analysis"]["decision"] == "approved"
    assert body["claim"]["status"] == "approved"
    assert body["claim"]["analysisRound"] == 2
    assert body["claim"]["originalImageReference"] == IMAGE
    assert body["claim"]["latestDecision"]["decision"] == "approved"


def test_create_return_with_duplicate_image_is_denied(client):
    client.post("/api/returns", json=new_return(), headers=auth_header("user-1"))

    response = client.post(
        "/api/returns",
        json=new_return(issueDescription="Something else entirely"),
        headers=auth_header("user-2"),
    )

    body = response.json()
    assert body["analysis"]["success"] is False
    assert body["analysis"]["defectCategory"] == "duplicate_submission"
    assert body["claim"]["status"] == "denied"
    assert body["claim"]["analysisRound"] == 1


def test_create_return_with_missing_fields_is_400(client):
    body = new_return()
    del body["productName"]

    response = client.post("/api/returns", json=body, headers=auth_header())

    assert_error_payload(response, 400, "Invalid request data")


def test_analyze_existing_claim(client, make_claim):
    claim_id = make_claim(user_id="user-1", image_reference=IMAGE)

    response = client.post(
        "/api/returns/analyze",
        json={"claimId": claim_id, "imageReference": IMAGE, "description": "Scratch", "language": "de"},
        headers=auth_header("user-1"),
    )

    assert response.status_code == 200
    assert response.json()["claimId"] == claim_id


def test_analyze_missing_description_is_400(client, runtime):
    response = client.post("/api/returns/analyze", json={"imageReference": IMAGE}, headers=auth_header())

    assert_error_payload(response, 400, "Invalid request data")
    assert runtime.calls == []


def test_analyze_unknown_claim_is_404(client):
    response = client.post(
        "/api/returns/analyze",
        json={"claimId": "missing", "description": "Scratch"},
        headers=auth_header(),
    )

    assert_error_payload(response, 404, "Return request not found")


def test_analyze_someone_elses_claim_is_403(client, make_claim):
    claim_id = make_claim(user_id="owner")

    response = client.post(
        "/api/returns/analyze",
        json={"claimId": claim_id, "description": "Scratch"},
        headers=auth_header("intruder"),
    )

    assert_error_payload(response, 403, "Not permitted")


def test_model_failure_returns_generic_500(client, runtime, make_claim):
    runtime.extraction = None
    claim_id = make_claim(user_id="user-1")

    response = client.post(
        "/api/returns/analyze",
        json={"claimId": claim_id, "description": "Scratch"},
        headers=auth_header("user-1"),
    )

    assert_error_payload(response, 500, GENERIC_MESSAGE)
    assert "extract" not in response.text


def test_unexpected_error_returns_generic_500(client, make_claim):
    claim_id = make_claim(user_id="user-1")

    with patch("server.run_reasoner", side_effect=RuntimeError("boom")):
        response = client.post(
            "/api/returns/analyze",
            json={"claimId": claim_id, "description": "Scratch"},
            headers=auth_header("user-1"),
        )

    assert_error_payload(response, 500, GENERIC_MESSAGE)
    assert "boom" not in response.text


# Claim view and resubmission

def test_owner_and_admin_can_view_claim(client, make_claim):
    claim_id = make_claim(user_id="user-1")

    assert client.get(f"/api/returns/{claim_id}", headers=auth_header("user-1")).status_code == 200
    assert client.get(f"/api/returns/{claim_id}", headers=auth_header("staff", "admin")).status_code == 200
    assert client.get(f"/api/returns/{claim_id}", headers=auth_header("user-2")).status_code == 403


def test_resubmit_runs_next_round(client, runtime, make_claim):
    claim_id = make_claim(
        user_id="user-1",
        status="more_info_requested",
        image_reference=IMAGE,
        original_image_reference=IMAGE,
        analysis_round=2,
    )

    response = client.post(
        f"/api/returns/{claim_id}/resubmit",
        json={"imageReference": "s3://returns-evidence/claims/closer.jpg"},
        headers=auth_header("user-1"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["analysis"]["decision"] == "approved"
    assert body["claim"]["analysisRound"] == 3
    assert body["claim"]["originalImageReference"] == IMAGE


def test_resubmit_same_image_is_rejected(client, runtime, make_claim):
    claim_id = make_claim(user_id="user-1", status="more_info_requested", image_reference=IMAGE)

    response = client.post(
        f"/api/returns/{claim_id}/resubmit",
        json={"imageReference": IMAGE},
        headers=auth_header("user-1"),
    )

    assert_error_payload(response, 400, "Invalid request data")
    assert runtime.calls == []


# Review

def test_reviews_require_admin(client):
    response = client.get("/api/reviews", headers=auth_header("user-1"))

    assert_error_payload(response, 403, "Not permitted")


def test_admin_role_from_app_metadata(client):
    token = jwt.encode(
        {"sub": "staff", "exp": int(time.time()) + 3600, "app_metadata": {"role": "admin"}},
        TEST_JWT_SECRET,
        algorithm="HS256",
    )

    response = client.get("/api/reviews", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json() == {"reviews": [], "count": 0}


def test_admin_review_flow(client, runtime, make_claim):
    runtime.extraction["confidence"] = 0.3
    claim_id = make_claim(user_id="user-1", image_reference=IMAGE, original_image_reference=IMAGE, analysis_round=2)
    client.post(
        "/api/returns/analyze",
        json={"claimId": claim_id, "imageReference": IMAGE, "description": "Scratch"},
        headers=auth_header("user-1"),
    )
    admin = auth_header("staff", "admin")

    reviews = client.get("/api/reviews", headers=admin).json()
    assert reviews["count"] == 1
    assert reviews["reviews"][0]["escalationReason"].startswith("After 2 rounds of AI analysis")

    response = client.post(f"/api/reviews/{claim_id}", json={"action": "approve", "adminNotes": "Looks genuine"}, headers=admin)

    assert response.status_code == 200
    assert response.json()["status"] == "approved_manual"
    assert client.get("/api/reviews", headers=admin).json()["count"] == 0


def test_review_more_info_without_notes_is_400(client, make_claim):
    claim_id = make_claim(status="manual_review")

    response = client.post(
        f"/api/reviews/{claim_id}",
        json={"action": "request_more_info"},
        headers=auth_header("staff", "admin"),
    )

    assert_error_payload(response, 400, "Invalid request data")


# Claim state guards

@pytest.mark.parametrize("status", ["denied", "approved", "approved_manual", "denied_manual", "manual_review"])
def test_analyze_settled_claim_is_400(client, runtime, make_claim, load_claim, status):
    claim_id = make_claim(user_id="user-1", status=status, image_reference=IMAGE, analysis_round=2)

    response = client.post(
        "/api/returns/analyze",
        json={"claimId": claim_id, "imageReference": "s3://returns-evidence/claims/new.jpg", "description": "Scratch"},
        headers=auth_header("user-1"),
    )

    assert_error_payload(response, 400, "Invalid request data")
    assert runtime.calls == []
    assert load_claim(claim_id).status == status


def test_analyze_claim_awaiting_evidence_requires_resubmission(client, runtime, make_claim):
    claim_id = make_claim(
        user_id="user-1",
        status="more_info_requested",
        image_reference=IMAGE,
        original_image_reference=IMAGE,
        analysis_round=2,
    )

    response = client.post(
        "/api/returns/analyze",
        json={"claimId": claim_id, "imageReference": IMAGE, "description": "Scratch"},
        headers=auth_header("user-1"),
    )

    assert_error_payload(response, 400, "Invalid request data")
    assert runtime.calls == []


def test_image_analysed_on_later_round_blocks_reuse(client, make_claim):
    fresh = "s3://returns-evidence/claims/fresh.jpg"
    claim_id = make_claim(user_id="user-1", image_reference=IMAGE, original_image_reference=IMAGE, analysis_round=2)
    client.post(
        "/api/returns/analyze",
        json={"claimId": claim_id, "imageReference": fresh, "description": "Scratch"},
        headers=auth_header("user-1"),
    )

    assert client.get(f"/api/returns/{claim_id}", headers=auth_header("user-1")).json()["imageReference"] == fresh

    response = client.post("/api/returns", json=new_return(imageReference=fresh), headers=auth_header("user-2"))

    assert response.json()["analysis"]["defectCategory"] == "duplicate_submission"


@pytest.mark.parametrize("path, body", [
    ("/api/returns/analyze", {"description": "Scratch", "imageReference": "https://cdn.example.com/a.jpg"}),
    ("/api/returns", new_return(imageReference="https://cdn.example.com/a.jpg")),
])
def test_unsupported_image_locator_is_400(client, runtime, make_claim, path, body):
    if path.endswith("analyze"):
        body = dict(body, claimId=make_claim(user_id="user-1"))

    response = client.post(path, json=body, headers=auth_header("user-1"))

    assert_error_payload(response, 400, "Invalid request data")
    assert runtime.calls == []


def test_bearer_scheme_without_token_is_401(client):
    response = client.get("/api/returns/anything", headers={"Authorization": "Bearer"})

    assert_error_payload(response, 401, "Authentication required")
