"""Tests for DashboardService counts."""

import pytest

from mission_control.services.dashboard_service import DashboardService

pytestmark = pytest.mark.integration


async def test_counts_are_zero_filled_on_empty_store(session_factory):
    counts = await DashboardService(session_factory).get_counts()

    assert counts.proposals == {"pending": 0, "accepted": 0, "rejected": 0}
    assert counts.missions == {"pending": 0, "running": 0, "succeeded": 0, "failed": 0, "cancelled": 0}
    assert counts.steps == {"queued": 0, "running": 0, "succeeded": 0, "failed": 0}
    assert counts.events_today == 0


async def test_counts_follow_lifecycle(session_factory, proposal_service, scheduler, approve):
    await proposal_service.create_proposal(agent_id="a", title="Waiting", description="", step_kinds=["x"])
    await approve(["analyze", "decide"])
    step = await scheduler.claim_next_step("worker-1")
    await scheduler.mark_step_succeeded(step.id, {})

    counts = await DashboardService(session_factory).get_counts()

    assert counts.proposals["pending"] == 1
    assert counts.proposals["accepted"] == 1
    assert counts.missions["running"] == 1
    assert counts.steps == {"queued": 1, "running": 0, "succeeded": 1, "failed": 0}
    # proposal_created x2, proposal_approved x1
    assert counts.events_today == 3
