"""Integration tests for the proposal API."""

import pytest

pytestmark = pytest.mark.integration


def _create(client, **overrides):
    body = {
        "agent_id": "analyst",
        "title": "Competitor scan",
        "description": "Look at the top three competitors",
        "step_kinds": ["analyze", "decide"],
    }
    body.update(overrides)
    return client.post("/api/proposals", json=body)


def test_create_proposal_returns_201(api_client):
    response = _create(api_client, metadata={"priority": "high"})

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["step_kinds"] == ["analyze", "decide"]
    assert data["metadata"] == {"priority": "high"}


def test_create_proposal_with_empty_step_kinds_is_422(api_client):
    response = _create(api_client, step_kinds=[])

    assert response.status_code == 422
    assert "debug_id" in response.json()


def test_create_proposal_missing_fields_is_422(api_client):
    response = api_client.post("/api/proposals", json={"agent_id": "analyst"})

    assert response.status_code == 422


def test_approve_returns_mission(api_client):
    proposal = _create(api_client).json()

    response = api_client.post(f"/api/proposals/{proposal['id']}/approve")

    assert response.status_code == 201
    mission = response.json()
    assert mission["proposal_id"] == proposal["id"]
    assert mission["status"] == "pending"

    steps = api_client.get(f"/api/missions/{mission['id']}/steps").json()
    assert [s["step_kind"] for s in steps] == ["analyze", "decide"]


def test_second_approval_is_409(api_client):
    proposal = _create(api_client).json()
    api_client.post(f"/api/proposals/{proposal['id']}/approve")

    response = api_client.post(f"/api/proposals/{proposal['id']}/approve")

    assert response.status_code == 409


def test_approve_unknown_proposal_is_404(api_client):
    response = api_client.post("/api/proposals/999/approve")

    assert response.status_code == 404
    assert "debug_id" in response.json()


def test_reject_flow(api_client):
    proposal = _create(api_client).json()

    blank = api_client.post(f"/api/proposals/{proposal['id']}/reject", json={"reason": " "})
    assert blank.status_code == 422

    response = api_client.post(f"/api/proposals/{proposal['id']}/reject", json={"reason": "Not now"})
    assert response.status_code == 200
    assert response.json() == {"success": True}

    rejected = api_client.get(f"/api/proposals/{proposal['id']}").json()
    assert rejected["status"] == "rejected"
    assert rejected["rejection_reason"] == "Not now"

    assert api_client.post(f"/api/proposals/{proposal['id']}/approve").status_code == 409


def test_list_and_pending(api_client):
    first = _create(api_client, title="First").json()
    second = _create(api_client, title="Second").json()
    api_client.post(f"/api/proposals/{first['id']}/approve")

    listed = api_client.get("/api/proposals").json()
    assert [p["id"] for p in listed] == [second["id"], first["id"]]

    pending = api_client.get("/api/proposals/pending").json()
    assert [p["id"] for p in pending] == [second["id"]]

    accepted = api_client.get("/api/proposals", params={"status": "accepted"}).json()
    assert [p["id"] for p in accepted] == [first["id"]]


def test_get_unknown_proposal_is_404(api_client):
    assert api_client.get("/api/proposals/12345").status_code == 404
