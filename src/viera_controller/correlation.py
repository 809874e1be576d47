"""
Correlation ID tracking for discovery runs and connector lifecycles.

Every log line emitted inside a ``correlation_context`` carries the same ID,
so a whole SSDP search or a whole connector run can be followed through the
logs even when several televisions are polled on the same event loop.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager

__all__ = [
    "correlation_context",
    "ensure_correlation_id",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "viera_correlation_id",
    default=None,
)


def generate_correlation_id() -> str:
    """Generate a new correlation ID (UUID4 hex without dashes)."""
    return uuid.uuid4().hex


def get_correlation_id() -> str | None:
    """
    Get current correlation ID from context.

    Returns:
        Current correlation ID, or None when tracking is disabled or unset
    """
    from viera_controller.const import env

    if not env.log_correlation_enabled:
        return None
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id.set(correlation_id)


@contextmanager
def correlation_context(
    correlation_id: str | None = None,
    auto_generate: bool = True,
) -> Generator[str | None]:
    """
    Context manager for correlation ID scope.

    Restores the previous correlation ID on exit.

    Args:
        correlation_id: Specific correlation ID to use (None to auto-generate)
        auto_generate: Generate new ID if correlation_id is None

    Yields:
        The correlation ID used in this context

    Example:
        with correlation_context() as corr_id:
            await discovery.discover()
    """
    previous_id = _correlation_id.get()

    if correlation_id is None and auto_generate:
        correlation_id = generate_correlation_id()

    set_correlation_id(correlation_id)

    try:
        yield correlation_id
    finally:
        set_correlation_id(previous_id)


def ensure_correlation_id() -> str:
    """
    Ensure a correlation ID exists in current context.

    Useful for task entry points spawned outside of a ``correlation_context``.
    """
    current_id = _correlation_id.get()
    if current_id is None:
        current_id = generate_correlation_id()
        set_correlation_id(current_id)
    return current_id
