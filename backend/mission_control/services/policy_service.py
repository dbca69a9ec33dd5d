"""PolicyService: keyed JSON policies and tag-based daily quotas."""

from datetime import UTC, datetime, time
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mission_control.core.exceptions import NotFoundError, ValidationError, store_errors
from mission_control.db.base import has_tag
from mission_control.db.models.event import Event
from mission_control.db.models.policy import Policy
from mission_control.schemas.policies import PolicyResponse, QuotaResponse

logger = structlog.get_logger(__name__)


def start_of_day(now: datetime) -> datetime:
    """Midnight UTC of the day containing ``now``."""
    return datetime.combine(now.astimezone(UTC).date(), time.min, tzinfo=UTC)


class PolicyService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def list_policies(self) -> list[PolicyResponse]:
        async with self.session_factory() as session:
            with store_errors("list_policies"):
                result = await session.execute(select(Policy).order_by(Policy.key.asc()))
                policies = result.scalars().all()
        return [PolicyResponse.model_validate(p) for p in policies]

    async def get_policy(self, key: str) -> dict[str, Any]:
        """Return the value of policy ``key``.

        Raises:
            NotFoundError: no policy with that key
        """
        async with self.session_factory() as session:
            with store_errors("get_policy"):
                policy = await session.get(Policy, key)
        if policy is None:
            raise NotFoundError("Policy", key)
        return policy.value

    async def set_policy(self, key: str, value: Any) -> PolicyResponse:
        """Create or replace policy ``key``.

        Raises:
            ValidationError: value is not a JSON object
        """
        if not isinstance(value, dict):
            raise ValidationError("policy value must be a JSON object")

        async with self.session_factory() as session:
            with store_errors("set_policy"):
                policy = await session.get(Policy, key)
                if policy is None:
                    policy = Policy(key=key, value=value)
                    session.add(policy)
                else:
                    policy.value = value
                    policy.updated_at = datetime.now(UTC)
                await session.commit()

        logger.info("policy_updated", key=key)
        return PolicyResponse.model_validate(policy)

    async def check_daily_quota(self, quota_key: str, now: datetime | None = None) -> QuotaResponse:
        """Compare today's events tagged ``quota_key`` against the policy limit.

        The policy stored under ``quota_key`` must carry an integer ``limit``.

        Raises:
            NotFoundError: no policy with that key
            ValidationError: the policy has no integer limit
        """
        value = await self.get_policy(quota_key)
        limit = value.get("limit")
        if not isinstance(limit, int) or isinstance(limit, bool):
            raise ValidationError(f"policy {quota_key} has no integer limit")

        since = start_of_day(now or datetime.now(UTC))
        async with self.session_factory() as session:
            with store_errors("check_daily_quota"):
                dialect = session.get_bind().dialect.name
                result = await session.execute(
                    select(func.count(Event.id)).where(
                        Event.created_at >= since,
                        has_tag(Event.tags, quota_key, dialect),
                    )
                )
                used = result.scalar_one()

        remaining = limit - used
        return QuotaResponse(
            quota_key=quota_key,
            limit=limit,
            used=used,
            remaining=remaining,
            available=remaining > 0,
        )
