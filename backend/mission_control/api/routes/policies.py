"""Policy API routes."""

from fastapi import APIRouter

from mission_control.db.base import get_session_factory
from mission_control.schemas.policies import PolicyResponse, QuotaResponse, UpdatePolicyRequest
from mission_control.services.policy_service import PolicyService

router = APIRouter()


@router.get("", response_model=list[PolicyResponse])
async def list_policies():
    return await PolicyService(get_session_factory()).list_policies()


@router.get("/{key}")
async def get_policy(key: str):
    value = await PolicyService(get_session_factory()).get_policy(key)
    return {"key": key, "value": value}


@router.put("/{key}", response_model=PolicyResponse)
async def update_policy(key: str, request: UpdatePolicyRequest):
    """Create or replace a policy. The value must be a JSON object."""
    return await PolicyService(get_session_factory()).set_policy(key, request.value)


@router.get("/{key}/quota", response_model=QuotaResponse)
async def check_daily_quota(key: str):
    """Today's usage of the quota policy ``key``."""
    return await PolicyService(get_session_factory()).check_daily_quota(key)
