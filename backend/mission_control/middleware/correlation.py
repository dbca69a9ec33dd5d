"""Correlation ids for HTTP requests and worker step executions.

HTTP requests get theirs from ``X-Request-ID`` (echoed when the client sends
a usable one, generated otherwise). Workers have no request, so each claimed
step runs under ``step-{id}`` and every log line a handler emits can be traced
back to the step.
"""

import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from asgi_correlation_id import CorrelationIdMiddleware
from asgi_correlation_id.context import correlation_id
from fastapi import FastAPI

REQUEST_ID_HEADER = "X-Request-ID"

_ACCEPTED_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def is_acceptable_request_id(value: str) -> bool:
    """Client ids are echoed only when short and free of header-unsafe characters."""
    return bool(_ACCEPTED_ID.match(value))


def setup_correlation_middleware(app: FastAPI) -> None:
    """Attach the correlation middleware; unusable client ids are replaced by a UUID."""
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name=REQUEST_ID_HEADER,
        generator=lambda: str(uuid.uuid4()),
        validator=is_acceptable_request_id,
        transformer=str.strip,
    )


def get_correlation_id() -> str | None:
    """Return the active correlation id, or None outside a request or step."""
    return correlation_id.get(None)


@contextmanager
def step_correlation(step_id: int) -> Iterator[str]:
    """Run the block under correlation id ``step-{step_id}``."""
    token = correlation_id.set(f"step-{step_id}")
    try:
        yield f"step-{step_id}"
    finally:
        correlation_id.reset(token)
