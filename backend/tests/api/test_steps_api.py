"""Integration tests for the worker-facing step API."""

import pytest

pytestmark = pytest.mark.integration


def _mission(client, step_kinds):
    proposal = client.post(
        "/api/proposals",
        json={"agent_id": "analyst", "title": "Steps", "step_kinds": step_kinds},
    ).json()
    return client.post(f"/api/proposals/{proposal['id']}/approve").json()


def _claim(client, worker_id="worker-1"):
    return client.post("/api/steps/claim", json={"worker_id": worker_id})


def test_claim_with_empty_queue_is_204(api_client):
    response = _claim(api_client)

    assert response.status_code == 204
    assert response.content == b""


def test_claim_requires_worker_id(api_client):
    assert api_client.post("/api/steps/claim", json={}).status_code == 422


def test_claim_returns_step_with_proposal_input(api_client):
    mission = _mission(api_client, ["analyze"])

    response = _claim(api_client)

    assert response.status_code == 200
    step = response.json()
    assert step["mission_id"] == mission["id"]
    assert step["status"] == "running"
    assert step["reserved_by"] == "worker-1"
    assert step["input"]["proposal"]["title"] == "Steps"
    assert step["input"]["previous_steps"] == []
    assert step["input"]["outputs"] == {}


def test_second_step_blocked_until_first_completes(api_client):
    _mission(api_client, ["analyze", "decide"])

    first = _claim(api_client).json()
    assert _claim(api_client, "worker-2").status_code == 204

    assert api_client.post(f"/api/steps/{first['id']}/succeed", json={"output": {"n": 1}}).status_code == 200

    second = _claim(api_client, "worker-2").json()
    assert second["step_kind"] == "decide"
    assert second["input"]["outputs"] == {"analyze": {"n": 1}}


def test_double_completion_is_409(api_client):
    _mission(api_client, ["analyze"])
    step = _claim(api_client).json()

    api_client.post(f"/api/steps/{step['id']}/succeed", json={"output": {}})
    response = api_client.post(f"/api/steps/{step['id']}/fail", json={"error": "late"})

    assert response.status_code == 409


def test_unknown_step_is_404(api_client):
    assert api_client.post("/api/steps/999/succeed", json={"output": {}}).status_code == 404
    assert api_client.post("/api/steps/999/heartbeat").status_code == 404


def test_fail_requires_error_message(api_client):
    _mission(api_client, ["analyze"])
    step = _claim(api_client).json()

    assert api_client.post(f"/api/steps/{step['id']}/fail", json={"error": ""}).status_code == 422


def test_fail_fails_mission(api_client):
    mission = _mission(api_client, ["analyze", "decide"])
    step = _claim(api_client).json()

    api_client.post(f"/api/steps/{step['id']}/fail", json={"error": "boom"})

    assert api_client.get(f"/api/missions/{mission['id']}").json()["status"] == "failed"
    assert _claim(api_client).status_code == 204


def test_heartbeat_and_requeue(api_client):
    _mission(api_client, ["analyze"])
    step = _claim(api_client).json()

    assert api_client.post(f"/api/steps/{step['id']}/heartbeat").json() == {"success": True}

    # Lease is fresh, nothing to requeue
    response = api_client.post("/api/steps/requeue-expired")
    assert response.status_code == 200
    assert response.json() == {"requeued_step_ids": []}


def test_completion_by_non_holder_is_409(api_client):
    _mission(api_client, ["analyze"])
    step = _claim(api_client, "fresh-worker").json()
    url = f"/api/steps/{step['id']}"

    assert api_client.post(f"{url}/succeed", json={"output": {}, "worker_id": "slow-worker"}).status_code == 409
    assert api_client.post(f"{url}/fail", json={"error": "late", "worker_id": "slow-worker"}).status_code == 409
    assert api_client.post(f"{url}/heartbeat", json={"worker_id": "slow-worker"}).status_code == 409

    assert api_client.post(f"{url}/heartbeat", json={"worker_id": "fresh-worker"}).status_code == 200
    response = api_client.post(f"{url}/succeed", json={"output": {"n": 1}, "worker_id": "fresh-worker"})
    assert response.status_code == 200
