"""Shared test fixtures and helpers."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from src.dashboard.controller import QueueController
from src.dashboard.notifications import NotificationCenter
from src.roster.engine import QueueEngine
from src.schemas.agent_schema import Agent
from src.store.base import StoreUnavailable
from src.store.memory_store import InMemoryAgentStore

BASE_TIME = datetime(2025, 3, 15, 10, 0, tzinfo=timezone.utc)


class StepClock:
    """Deterministic clock that advances one minute per call."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(minutes=1)
        return current


class FlakyStore(InMemoryAgentStore):
    """In-memory store that can be told to fail writes or reads."""

    def __init__(self, agents: Optional[list[Agent]] = None) -> None:
        super().__init__(agents)
        self.fail_writes = False
        self.fail_reads = False
        self.calls: list[str] = []

    def _maybe_fail(self, op: str, failing: bool) -> None:
        self.calls.append(op)
        if failing:
            raise StoreUnavailable(f"{op} unavailable")

    async def fetch_all(self) -> list[Agent]:
        self._maybe_fail("fetch_all", self.fail_reads)
        return await super().fetch_all()

    async def insert(self, agent: Agent) -> Agent:
        self._maybe_fail("insert", self.fail_writes)
        return await super().insert(agent)

    async def update(self, agent_id: int, fields: dict) -> Agent:
        self._maybe_fail("update", self.fail_writes)
        return await super().update(agent_id, fields)

    async def upsert_many(self, agents: list[Agent]) -> None:
        self._maybe_fail("upsert_many", self.fail_writes)
        await super().upsert_many(agents)

    async def remove(self, agent_id: int) -> None:
        self._maybe_fail("remove", self.fail_writes)
        await super().remove(agent_id)


def make_agent(
    agent_id: int,
    name: Optional[str] = None,
    position: int = 0,
    available: bool = True,
    in_session: bool = False,
    started_at: Optional[datetime] = None,
    client_name: Optional[str] = None,
) -> Agent:
    """Helper to create an Agent with sensible defaults."""
    return Agent(
        id=agent_id,
        name=name or f"Agent {agent_id}",
        contact_number=f"Ramal {100 + agent_id}",
        available=available,
        in_session=in_session,
        queue_position=position,
        session_started_at=started_at,
        client_name=client_name,
    )


def queued(agent_id: int, position: int, name: Optional[str] = None) -> Agent:
    return make_agent(agent_id, name=name, position=position)


def paused(agent_id: int, name: Optional[str] = None) -> Agent:
    return make_agent(agent_id, name=name, available=False)


def busy(agent_id: int, started_at: Optional[datetime] = None, name: Optional[str] = None) -> Agent:
    return make_agent(
        agent_id, name=name, available=False, in_session=True,
        started_at=started_at, client_name="Client",
    )


def positions(roster: list[Agent]) -> dict[str, int]:
    """Map of name -> queue position for Queued agents."""
    return {a.name: a.queue_position for a in roster if a.available and not a.in_session}


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def engine(clock):
    return QueueEngine(clock=clock)


@pytest.fixture
def abc_roster():
    """Queued A(1), B(2), C(3)."""
    return [queued(1, 1, "A"), queued(2, 2, "B"), queued(3, 3, "C")]


@pytest.fixture
def flaky_store(abc_roster):
    return FlakyStore(abc_roster)


@pytest.fixture
def controller(flaky_store, engine):
    return QueueController(
        flaky_store,
        engine=engine,
        notifications=NotificationCenter(ttl_seconds=60),
        client_area_code="11",
    )
