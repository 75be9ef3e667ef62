"""Action correlation IDs for dashboard logs.

Each controller command opens a new action (``toggle-3f9a1c``,
``dispatch-b71e02``...). Store writes and any resync after a failed write log under
that ID, so one supervisor click can be followed through the log.

Usage (as the queue controller does):
    logger = get_action_logger(__name__)

    async with self._lock:
        new_action_id("reorder")
        logger.info("Persisting %d agents", len(write_set))
        # 2025-03-15 10:00:00 [src.dashboard.controller] [reorder-4c2d9e] INFO: Persisting 3 agents
"""

import logging
import uuid
from contextvars import ContextVar

_action_id: ContextVar[str] = ContextVar("action_id", default="-")


def set_action_id(action_id: str) -> None:
    """Pin an existing action ID, e.g. when replaying a scripted step."""
    _action_id.set(action_id)


def new_action_id(prefix: str) -> str:
    """Generate, set, and return a fresh correlation ID for a command."""
    action_id = f"{prefix}-{uuid.uuid4().hex[:6]}"
    _action_id.set(action_id)
    return action_id


def get_action_id() -> str:
    """Action ID of the command running in this task, or "-"."""
    return _action_id.get()


class ActionIdFilter(logging.Filter):
    """Injects action_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.action_id = _action_id.get()  # type: ignore[attr-defined]
        return True


def get_action_logger(name: str) -> logging.Logger:
    """Return a logger with the ActionIdFilter attached.

    The filter adds ``action_id`` to each record so formatters can
    include ``%(action_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, ActionIdFilter) for f in logger.filters):
        logger.addFilter(ActionIdFilter())
    return logger
