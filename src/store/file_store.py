"""JSON file persistence for the agent roster.

Offline fallback used when no hosted table is configured. The file is
re-read before every operation and rewritten after every write, under a
file lock, so two dashboards on the same machine see each other's changes
on their next action.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from filelock import FileLock
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from src.schemas.agent_schema import Agent
from src.store.base import StoreUnavailable
from src.store.memory_store import InMemoryAgentStore

logger = logging.getLogger(__name__)

# Storage format version for future migrations
STORAGE_VERSION = 1


def demo_agents() -> list[Agent]:
    """Initial roster written when the file does not exist yet."""
    return [
        Agent(id=1, name="Ana Silva", contact_number="Ramal 101", queue_position=1),
        Agent(id=2, name="Carlos Souza", contact_number="Ramal 102", queue_position=2),
    ]


class LocalStoreData(BaseModel):
    """Root structure of the local storage file.

    Attributes:
        version: Storage format version.
        next_id: Next id to hand out; never decreases.
        agents: Stored agent records, in persisted column names.
    """

    version: int = Field(default=STORAGE_VERSION, description="Storage format version")
    next_id: int = Field(default=1, description="Next id to assign")
    agents: list[dict] = Field(default_factory=list, description="Stored agent records")


class LocalFileAgentStore(InMemoryAgentStore):
    """File-backed store with the same change-event behavior as the in-memory one.

    Example:
        store = LocalFileAgentStore("data/agents.json")
        agents = await store.fetch_all()
    """

    name = "local"

    def __init__(self, path: str | Path, seed: Optional[list[Agent]] = None) -> None:
        super().__init__()
        self._path = Path(path)
        self._lock = FileLock(str(self._path.with_suffix(".lock")))
        self._seed = demo_agents() if seed is None else seed

    @property
    def path(self) -> Path:
        """Get the storage file path."""
        return self._path

    def _ensure_file_exists(self) -> None:
        if self._path.exists():
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = LocalStoreData(
            next_id=max((a.id for a in self._seed), default=0) + 1,
            agents=[a.to_record() for a in self._seed],
        )
        self._path.write_text(data.model_dump_json(indent=2), encoding="utf-8")
        logger.info("Created local agent store: %s (%d demo agents)", self._path, len(self._seed))

    def _load(self) -> None:
        try:
            with self._lock:
                self._ensure_file_exists()
                raw = self._path.read_text(encoding="utf-8")
            data = LocalStoreData.model_validate(json.loads(raw))
            records = [Agent.from_record(r) for r in data.agents]
        except (OSError, json.JSONDecodeError, PydanticValidationError) as exc:
            raise StoreUnavailable(f"Cannot read local store {self._path}: {exc}") from exc

        self._records = {a.id: a for a in records}
        self._next_id = max(data.next_id, max(self._records, default=0) + 1)

    def _save(self) -> None:
        data = LocalStoreData(
            next_id=self._next_id,
            agents=[a.to_record() for a in sorted(self._records.values(), key=lambda a: a.id)],
        )
        try:
            with self._lock:
                tmp_path = self._path.with_suffix(".tmp")
                tmp_path.write_text(data.model_dump_json(indent=2), encoding="utf-8")
                tmp_path.replace(self._path)
        except OSError as exc:
            raise StoreUnavailable(f"Cannot write local store {self._path}: {exc}") from exc

    # Writes hold the (re-entrant) file lock from load to save.

    async def insert(self, agent: Agent) -> Agent:
        with self._lock:
            return await super().insert(agent)

    async def update(self, agent_id: int, fields: dict) -> Agent:
        with self._lock:
            return await super().update(agent_id, fields)

    async def upsert_many(self, agents: list[Agent]) -> None:
        with self._lock:
            await super().upsert_many(agents)

    async def remove(self, agent_id: int) -> None:
        with self._lock:
            await super().remove(agent_id)
