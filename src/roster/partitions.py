"""
Partitioning and ordering rules for the agent roster.

Every function here is pure: partitions are always re-derived from the
current ``available`` / ``in_session`` fields, never from cached tags,
because toggles mutate those fields directly.

Usage:
    parts = classify(roster)
    nxt = next_in_line(roster)
    assert check_invariants(roster) == []
"""

import logging
from typing import Iterable, Optional

from src.schemas.agent_schema import Agent, Partition
from src.schemas.queue_schema import Partitions, SortOption

logger = logging.getLogger(__name__)


def _session_start_key(agent: Agent) -> float:
    # Missing start times sort as the epoch, ties keep roster order.
    return agent.session_started_at.timestamp() if agent.session_started_at else 0.0


def classify(roster: Iterable[Agent]) -> Partitions:
    """Split the roster into Queued, Busy and Paused display groups.

    Queued is ordered by manual position, Busy by session start time,
    Paused keeps roster order. All sorts are stable.
    """
    queued: list[Agent] = []
    busy: list[Agent] = []
    paused: list[Agent] = []
    for agent in roster:
        partition = agent.partition
        if partition == Partition.QUEUED:
            queued.append(agent)
        elif partition == Partition.BUSY:
            busy.append(agent)
        else:
            paused.append(agent)

    queued.sort(key=lambda a: a.queue_position)
    busy.sort(key=_session_start_key)
    return Partitions(queued=queued, busy=busy, paused=paused)


def queued_agents(roster: Iterable[Agent]) -> list[Agent]:
    """Queued agents in manual order."""
    return classify(roster).queued


def next_in_line(roster: Iterable[Agent]) -> Optional[Agent]:
    """Return the Queued agent with the lowest position, or None."""
    best: Optional[Agent] = None
    for agent in roster:
        if agent.partition != Partition.QUEUED:
            continue
        if best is None or agent.queue_position < best.queue_position:
            best = agent
    return best


def tail_position(roster: Iterable[Agent]) -> int:
    """Position a newly Queued agent should take."""
    positions = [a.queue_position for a in roster if a.partition == Partition.QUEUED]
    return max(positions, default=0) + 1


def check_invariants(roster: Iterable[Agent]) -> list[str]:
    """Return human-readable descriptions of any broken roster invariant."""
    roster = list(roster)
    problems: list[str] = []

    ids = [a.id for a in roster]
    if len(ids) != len(set(ids)):
        problems.append("duplicate agent ids in roster")

    for agent in roster:
        if agent.partition == Partition.BUSY and agent.queue_position != 0:
            problems.append(f"busy agent {agent.id} has queue position {agent.queue_position}")
        if agent.partition == Partition.PAUSED and agent.queue_position != 0:
            problems.append(f"paused agent {agent.id} has queue position {agent.queue_position}")

    positions = sorted(a.queue_position for a in roster if a.partition == Partition.QUEUED)
    expected = list(range(1, len(positions) + 1))
    if positions != expected:
        problems.append(f"queued positions {positions} are not contiguous from 1 (expected {expected})")

    return problems


_STATUS_ORDER = {Partition.QUEUED: 0, Partition.BUSY: 1, Partition.PAUSED: 2}


def sort_agents(roster: Iterable[Agent], option: SortOption = SortOption.MANUAL) -> list[Agent]:
    """Flat display ordering for the roster table."""
    agents = list(roster)
    if option == SortOption.NAME:
        return sorted(agents, key=lambda a: a.name.casefold())
    if option == SortOption.STATUS:
        return sorted(agents, key=lambda a: (_STATUS_ORDER[a.partition], a.queue_position))
    parts = classify(agents)
    return parts.queued + parts.busy + parts.paused


def waiting_view(roster: Iterable[Agent], available_only: bool = False) -> list[Agent]:
    """Agents shown in the waiting line.

    By default this lists everyone not in a session (paused agents after the
    queued ones, so the supervisor can see who is on a break). With
    ``available_only`` only Queued agents are listed.
    """
    parts = classify(roster)
    if available_only:
        return parts.queued
    return parts.queued + parts.paused
