"""Re-export all models so Base.metadata sees them."""

from mission_control.db.models.event import Event
from mission_control.db.models.mission import Mission
from mission_control.db.models.mission_step import MissionStep
from mission_control.db.models.policy import Policy
from mission_control.db.models.proposal import Proposal

__all__ = [
    "Event",
    "Mission",
    "MissionStep",
    "Policy",
    "Proposal",
]
