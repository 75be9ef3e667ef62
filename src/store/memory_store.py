"""
In-memory agent store.

Used by the console demo and the test suite. Ids come from a counter
that only ever increases, so a deleted agent's id is never handed out
again.
"""

import logging
from typing import Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from src.schemas.agent_schema import Agent
from src.store.base import (
    AgentStore,
    ChangeBroadcaster,
    DeleteCallback,
    InsertCallback,
    NotFound,
    Subscription,
    UpdateCallback,
    ValidationError,
)

logger = logging.getLogger(__name__)


class InMemoryAgentStore(AgentStore):
    """Dict-backed store that broadcasts its own writes as change events."""

    name = "memory"

    def __init__(self, agents: Optional[Iterable[Agent]] = None) -> None:
        self._records: dict[int, Agent] = {}
        self._next_id = 1
        self._changes = ChangeBroadcaster()
        for agent in agents or []:
            self._records[agent.id] = agent
            self._next_id = max(self._next_id, agent.id + 1)

    def _load(self) -> None:
        """Hook for subclasses that keep the records elsewhere."""

    def _save(self) -> None:
        """Hook for subclasses that keep the records elsewhere."""

    async def fetch_all(self) -> list[Agent]:
        self._load()
        return sorted(self._records.values(), key=lambda a: a.id)

    async def insert(self, agent: Agent) -> Agent:
        self._load()
        if not agent.name.strip():
            raise ValidationError("agent name is required")
        created = agent.model_copy(update={"id": self._next_id})
        self._next_id += 1
        self._records[created.id] = created
        self._save()
        logger.debug("Inserted agent %d (%s)", created.id, created.name)
        self._changes.inserted(created)
        return created

    async def update(self, agent_id: int, fields: dict) -> Agent:
        self._load()
        current = self._records.get(agent_id)
        if current is None:
            raise NotFound(f"Agent {agent_id} not found.")
        try:
            updated = Agent.model_validate({**current.model_dump(), **fields})
        except PydanticValidationError as exc:
            raise ValidationError(str(exc)) from exc
        self._records[agent_id] = updated
        self._save()
        self._changes.updated(updated)
        return updated

    async def upsert_many(self, agents: list[Agent]) -> None:
        self._load()
        for agent in agents:
            is_new = agent.id not in self._records
            self._records[agent.id] = agent
            self._next_id = max(self._next_id, agent.id + 1)
            if is_new:
                self._changes.inserted(agent)
            else:
                self._changes.updated(agent)
        self._save()
        logger.debug("Upserted %d agents", len(agents))

    async def remove(self, agent_id: int) -> None:
        self._load()
        if agent_id not in self._records:
            raise NotFound(f"Agent {agent_id} not found.")
        del self._records[agent_id]
        self._save()
        logger.debug("Removed agent %d", agent_id)
        self._changes.deleted(agent_id)

    def subscribe(
        self,
        on_insert: InsertCallback,
        on_update: UpdateCallback,
        on_delete: DeleteCallback,
    ) -> Subscription:
        return self._changes.subscribe(on_insert, on_update, on_delete)
