"""Idempotent seed data for default policies."""

from sqlalchemy import select

from mission_control.core.config import get_settings
from mission_control.db.base import get_session_factory
from mission_control.db.models.policy import Policy


async def seed_policies(defaults: dict[str, dict] | None = None) -> None:
    """Insert default policies if they don't already exist.

    Existing keys are left untouched so operator edits survive restarts.
    """
    defaults = defaults if defaults is not None else get_settings().default_policies
    factory = get_session_factory()

    async with factory() as session:
        for key, value in defaults.items():
            result = await session.execute(select(Policy).where(Policy.key == key))
            existing = result.scalar_one_or_none()

            if existing is None:
                session.add(Policy(key=key, value=dict(value)))

        await session.commit()
