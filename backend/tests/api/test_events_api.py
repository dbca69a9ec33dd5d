"""Integration tests for the event feed, policies and dashboard API."""

import pytest

pytestmark = pytest.mark.integration


def _proposal(client, title="Feed"):
    return client.post(
        "/api/proposals",
        json={"agent_id": "analyst", "title": title, "step_kinds": ["analyze"]},
    ).json()


def test_event_feed_newest_first(api_client):
    proposal = _proposal(api_client)
    api_client.post(f"/api/proposals/{proposal['id']}/approve")

    events = api_client.get("/api/events").json()["events"]

    assert [e["event_type"] for e in events] == ["proposal_approved", "proposal_created"]
    assert events[0]["agent_id"] == "ceo"
    assert events[0]["tags"] == ["mission", "proposal"]


def test_event_feed_filters(api_client):
    proposal = _proposal(api_client)
    api_client.post(f"/api/proposals/{proposal['id']}/approve")

    by_type = api_client.get("/api/events", params={"event_type": "proposal_created"}).json()["events"]
    assert [e["event_type"] for e in by_type] == ["proposal_created"]

    by_tag = api_client.get("/api/events", params={"tag": "mission"}).json()["events"]
    assert [e["event_type"] for e in by_tag] == ["proposal_approved"]


def test_empty_event_feed_is_list(api_client):
    assert api_client.get("/api/events").json() == {"events": []}


def test_default_policies_are_seeded(api_client):
    keys = [p["key"] for p in api_client.get("/api/policies").json()]

    assert keys == ["mission", "proposal"]
    assert api_client.get("/api/policies/proposal").json() == {
        "key": "proposal",
        "value": {"limit": 100, "enabled": True},
    }


def test_update_policy(api_client):
    response = api_client.put("/api/policies/proposal", json={"value": {"limit": 2}})

    assert response.status_code == 200
    assert response.json()["value"] == {"limit": 2}

    assert api_client.put("/api/policies/proposal", json={"value": "nope"}).status_code == 422
    assert api_client.get("/api/policies/unknown").status_code == 404


def test_quota_reflects_todays_events(api_client):
    api_client.put("/api/policies/proposal", json={"value": {"limit": 2}})
    _proposal(api_client, "One")
    _proposal(api_client, "Two")

    quota = api_client.get("/api/policies/proposal/quota").json()

    assert quota == {"quota_key": "proposal", "limit": 2, "used": 2, "remaining": 0, "available": False}


def test_metrics_counts(api_client):
    proposal = _proposal(api_client)
    api_client.post(f"/api/proposals/{proposal['id']}/approve")

    counts = api_client.get("/api/metrics").json()

    assert counts["proposals"]["accepted"] == 1
    assert counts["missions"]["pending"] == 1
    assert counts["steps"]["queued"] == 1
    assert counts["events_today"] == 2


def test_workers_empty(api_client):
    assert api_client.get("/api/workers").json() == []


def test_health(api_client):
    response = api_client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "x-request-id" in response.headers


def test_ready_reports_store_and_redis(api_client):
    response = api_client.get("/api/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ready", "checks": {"database": True, "redis": True}}
