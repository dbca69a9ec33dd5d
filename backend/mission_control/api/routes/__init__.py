from fastapi import APIRouter

from mission_control.api.routes import dashboard, events, health, missions, policies, proposals, steps

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(proposals.router, prefix="/proposals", tags=["proposals"])
api_router.include_router(missions.router, prefix="/missions", tags=["missions"])
api_router.include_router(steps.router, prefix="/steps", tags=["steps"])
api_router.include_router(events.router, prefix="/events", tags=["events"])
api_router.include_router(policies.router, prefix="/policies", tags=["policies"])
api_router.include_router(dashboard.router, tags=["dashboard"])
