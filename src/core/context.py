"""Per-request identifiers for log correlation.

The middleware fills these in at the start of a request and clears them
at the end; ``add_request_context`` in ``src.core.logging`` copies the
non-empty ones onto every log event.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_user_id: ContextVar[str | None] = ContextVar("user_id", default=None)
_trace_id: ContextVar[str | None] = ContextVar("trace_id", default=None)
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_ALL = {
    "request_id": _request_id,
    "user_id": _user_id,
    "trace_id": _trace_id,
    "correlation_id": _correlation_id,
}


def set_request_id(request_id: str | None = None) -> str:
    """Use the caller-supplied request id, or mint one."""
    value = request_id or str(uuid4())
    _request_id.set(value)
    return value


def get_request_id() -> str | None:
    return _request_id.get()


def set_user_id(user_id: UUID | str | None) -> None:
    _user_id.set(None if user_id is None else str(user_id))


def set_trace_id(trace_id: str | None) -> None:
    _trace_id.set(trace_id)


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id.set(correlation_id)


def get_context() -> dict[str, Any]:
    """Identifiers set for the current request, empty ones left out."""
    return {name: var.get() for name, var in _ALL.items() if var.get()}


def clear_context() -> None:
    for var in _ALL.values():
        var.set(None)
