from contextlib import contextmanager

import structlog
from sqlalchemy.exc import SQLAlchemyError

logger = structlog.get_logger(__name__)


class MissionControlError(Exception):
    """Base exception for Mission Control."""

    status_code = 500


class ValidationError(MissionControlError):
    """Raised when caller input is malformed (empty step kinds, blank reason)."""

    status_code = 422


class NotFoundError(MissionControlError):
    """Raised when a referenced proposal, mission, step or policy does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidStateError(MissionControlError):
    """Raised when an entity is not in the state an operation requires."""

    status_code = 409

    def __init__(self, entity: str, entity_id, status: str, expected: str):
        self.entity = entity
        self.entity_id = entity_id
        self.status = status
        self.expected = expected
        super().__init__(f"{entity} {entity_id} is {status}, expected {expected}")


class StoreError(MissionControlError):
    """Raised when the underlying datastore operation fails."""

    status_code = 503

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Store operation '{operation}' failed: {cause}")


@contextmanager
def store_errors(operation: str):
    """Translate SQLAlchemy failures inside the block into StoreError.

    Reads are safe to retry; writes must be checked for partial application first.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("store_operation_failed", operation=operation, error=str(exc), error_type=type(exc).__name__)
        raise StoreError(operation, exc) from exc
