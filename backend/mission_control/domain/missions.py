"""Proposal, mission and step statuses plus scheduling rules.

Pure domain logic with no external dependencies.
"""
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ProposalStatus(str, Enum):
    """Proposal decision lifecycle."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class MissionStatus(str, Enum):
    """Mission lifecycle. Terminal states are never left."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StepStatus(str, Enum):
    """Step lifecycle: queued -> running -> succeeded | failed."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_STEP_STATUSES = frozenset({StepStatus.SUCCEEDED, StepStatus.FAILED})
TERMINAL_MISSION_STATUSES = frozenset({MissionStatus.SUCCEEDED, MissionStatus.FAILED, MissionStatus.CANCELLED})

# Missions whose queued steps may still be claimed or finalized
ACTIVE_MISSION_STATUSES = (MissionStatus.PENDING, MissionStatus.RUNNING)


def is_step_terminal(status: str) -> bool:
    return StepStatus(status) in TERMINAL_STEP_STATUSES


def is_mission_terminal(status: str) -> bool:
    return MissionStatus(status) in TERMINAL_MISSION_STATUSES


def is_step_eligible(step_id: int, ordered_steps: Sequence[tuple[int, str]]) -> bool:
    """Check whether a step may start given its mission's steps.

    Pure function -- no side effects, no DB access.

    Args:
        step_id: Id of the candidate step
        ordered_steps: (id, status) pairs for every step of the mission, ordered by id

    Returns:
        True if every step before the candidate is terminal, False otherwise
        (including when the candidate is not part of the list).
    """
    for other_id, status in ordered_steps:
        if other_id == step_id:
            return True
        if not is_step_terminal(status):
            return False
    return False


def finalize_status(step_statuses: Iterable[str]) -> MissionStatus | None:
    """Derive the mission outcome from the statuses of all its steps.

    Rules:
        - Any failed step fails the mission (first failure wins)
        - Every step succeeded -> mission succeeded
        - Otherwise steps are outstanding and the mission is left alone

    Returns:
        MissionStatus.FAILED, MissionStatus.SUCCEEDED, or None for no change.
        A mission with no steps is never finalized.
    """
    statuses = [StepStatus(s) for s in step_statuses]
    if not statuses:
        return None
    if StepStatus.FAILED in statuses:
        return MissionStatus.FAILED
    if all(s == StepStatus.SUCCEEDED for s in statuses):
        return MissionStatus.SUCCEEDED
    return None


@dataclass
class PriorOutput:
    """Output of an earlier succeeded step, as chained into later inputs."""

    step_kind: str
    output: Any

    def to_dict(self) -> dict[str, Any]:
        return {"step_kind": self.step_kind, "output": self.output}


def enrich_input(base_input: dict[str, Any] | None, prior: Sequence[PriorOutput]) -> dict[str, Any]:
    """Attach the outputs of earlier succeeded steps to a claimed step's input.

    ``previous_steps`` keeps every output in order; ``outputs`` maps each
    step kind to its output, the latest step winning when a kind repeats.
    """
    enriched = dict(base_input or {})
    enriched["previous_steps"] = [p.to_dict() for p in prior]
    enriched["outputs"] = {p.step_kind: p.output for p in prior}
    return enriched

