"""Pydantic schemas for policies and daily quotas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class PolicyResponse(BaseModel):
    key: str
    value: dict[str, Any]
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UpdatePolicyRequest(BaseModel):
    value: Any


class QuotaResponse(BaseModel):
    """Daily quota usage computed from today's events tagged with the quota key."""

    quota_key: str
    limit: int
    used: int
    remaining: int
    available: bool
