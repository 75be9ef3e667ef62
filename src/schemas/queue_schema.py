"""Read models and results exchanged between the engine and its callers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from src.schemas.agent_schema import Agent

Roster = list[Agent]


class SortOption(str, Enum):
    """Display orderings offered by the dashboard."""

    MANUAL = "manual"
    NAME = "name"
    STATUS = "status"


class CommitOutcome(str, Enum):
    """Result of an optimistic update once the store has answered."""

    PERSISTED = "persisted"
    REVERTED = "reverted"
    UNCHANGED = "unchanged"


class ChangeType(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Partitions:
    """Roster split into the three ordered display groups."""

    queued: list[Agent] = field(default_factory=list)
    busy: list[Agent] = field(default_factory=list)
    paused: list[Agent] = field(default_factory=list)

    def next_in_line(self) -> Optional[Agent]:
        return self.queued[0] if self.queued else None


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a single engine transition.

    ``write_set`` holds every agent whose persisted fields changed, so the
    caller can persist exactly those records. ``created`` and ``removed_ids``
    describe records that must be inserted or deleted rather than updated.
    """

    roster: Roster
    write_set: list[Agent] = field(default_factory=list)
    created: Optional[Agent] = None
    removed_ids: list[int] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.write_set or self.created or self.removed_ids)


@dataclass(frozen=True)
class RemoteChange:
    """A single-record change pushed by the store's change feed."""

    type: ChangeType
    agent_id: int
    agent: Optional[Agent] = None
