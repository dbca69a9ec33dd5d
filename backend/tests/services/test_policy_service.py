"""Tests for PolicyService: keyed policies and daily tag quotas."""

from datetime import UTC, datetime, timedelta

import pytest

from mission_control.core.exceptions import NotFoundError, ValidationError
from mission_control.db.models.event import Event
from mission_control.services.policy_service import PolicyService, start_of_day

pytestmark = pytest.mark.integration

NOW = datetime(2026, 10, 18, 15, 30, tzinfo=UTC)


@pytest.fixture
def policy_service(session_factory):
    return PolicyService(session_factory)


async def _add_event(session_factory, tags, created_at):
    async with session_factory() as session:
        session.add(Event(agent_id="system", event_type="tick", tags=tags, payload={}, created_at=created_at))
        await session.commit()


def test_start_of_day_is_utc_midnight():
    assert start_of_day(NOW) == datetime(2026, 10, 18, tzinfo=UTC)


async def test_set_then_get_policy(policy_service):
    await policy_service.set_policy("proposal", {"limit": 5, "enabled": True})

    assert await policy_service.get_policy("proposal") == {"limit": 5, "enabled": True}


async def test_set_policy_replaces_value(policy_service):
    await policy_service.set_policy("proposal", {"limit": 5})
    updated = await policy_service.set_policy("proposal", {"limit": 9})

    assert updated.value == {"limit": 9}
    assert await policy_service.get_policy("proposal") == {"limit": 9}
    assert [p.key for p in await policy_service.list_policies()] == ["proposal"]


async def test_set_policy_requires_object(policy_service):
    with pytest.raises(ValidationError):
        await policy_service.set_policy("proposal", [1, 2, 3])


async def test_get_missing_policy_raises_not_found(policy_service):
    with pytest.raises(NotFoundError):
        await policy_service.get_policy("nope")


async def test_list_policies_sorted_by_key(policy_service):
    await policy_service.set_policy("mission", {"limit": 1})
    await policy_service.set_policy("alerts", {"enabled": False})

    assert [p.key for p in await policy_service.list_policies()] == ["alerts", "mission"]


async def test_daily_quota_counts_todays_tagged_events(policy_service, session_factory):
    await policy_service.set_policy("mission", {"limit": 3})
    await _add_event(session_factory, ["mission"], NOW - timedelta(hours=1))
    await _add_event(session_factory, ["failure", "mission"], NOW - timedelta(hours=2))
    await _add_event(session_factory, ["proposal"], NOW - timedelta(hours=1))
    # Yesterday
    await _add_event(session_factory, ["mission"], NOW - timedelta(days=1))

    quota = await policy_service.check_daily_quota("mission", now=NOW)

    assert quota.quota_key == "mission"
    assert quota.limit == 3
    assert quota.used == 2
    assert quota.remaining == 1
    assert quota.available is True


async def test_daily_quota_exhausted(policy_service, session_factory):
    await policy_service.set_policy("proposal", {"limit": 1})
    await _add_event(session_factory, ["proposal"], NOW - timedelta(minutes=5))

    quota = await policy_service.check_daily_quota("proposal", now=NOW)

    assert quota.remaining == 0
    assert quota.available is False


async def test_daily_quota_requires_integer_limit(policy_service):
    await policy_service.set_policy("alerts", {"enabled": True})

    with pytest.raises(ValidationError):
        await policy_service.check_daily_quota("alerts", now=NOW)


async def test_daily_quota_missing_policy(policy_service):
    with pytest.raises(NotFoundError):
        await policy_service.check_daily_quota("unknown", now=NOW)


async def test_daily_quota_matches_whole_tags_only(policy_service, session_factory):
    await policy_service.set_policy("mission", {"limit": 5})
    await _add_event(session_factory, ["missions"], NOW - timedelta(hours=1))
    await _add_event(session_factory, ["mission_control"], NOW - timedelta(hours=1))
    await _add_event(session_factory, [], NOW - timedelta(hours=1))
    await _add_event(session_factory, ["mission"], NOW - timedelta(hours=1))

    quota = await policy_service.check_daily_quota("mission", now=NOW)

    assert quota.used == 1
    assert quota.remaining == 4
