"""Log context enrichment utilities."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import structlog


def bind_context(**kwargs: object) -> None:
    """Bind key-value pairs to the current logging context (task-local)."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear the current logging context."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def bound_context(**kwargs: object) -> Iterator[None]:
    """Bind keys for the duration of a block, restoring prior values after.

    Each asyncio task runs in a copy of its parent's context, so keys bound
    while processing one sink never appear in a sibling sink's log lines.
    """
    tokens = structlog.contextvars.bind_contextvars(**kwargs)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
