"""
Queue engine: pure state transitions over a roster snapshot.

Each action takes the current roster plus its input and returns an
ActionResult with the full updated roster and the minimal write-set the
caller must persist. The engine never performs I/O and never raises for
unmet preconditions; an action that does not apply returns the roster
unchanged with an empty write-set.

Queue positions follow two rules:
- An agent entering Queued is appended at ``max(position) + 1``.
- An agent leaving Queued shifts every later Queued agent down by one.
Manual reordering is the only action that resequences the whole line.

Usage:
    engine = QueueEngine()
    result = engine.add_agent(roster, AgentFields(name="Ana", contact_number="101"))
    roster = result.roster
    result = engine.dispatch(roster, SessionRequest(client_name="Roberto"))
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from src.roster.partitions import classify, next_in_line, tail_position
from src.schemas.agent_schema import Agent, AgentFields, Partition, SessionRequest
from src.schemas.queue_schema import ActionResult, Roster
from src.utils import utc_now

logger = logging.getLogger(__name__)


def _find(roster: Roster, agent_id: int) -> Optional[Agent]:
    for agent in roster:
        if agent.id == agent_id:
            return agent
    return None


def _replace(roster: Roster, updated: dict[int, Agent]) -> Roster:
    return [updated.get(a.id, a) for a in roster]


class QueueEngine:
    """
    Stateless transition functions for the agent queue.

    The clock is injectable so session timestamps are deterministic
    under test.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock

    # ------------------------------------------------------------------ #
    # Reindexing
    # ------------------------------------------------------------------ #

    @staticmethod
    def _close_gap(roster: Roster, leaving: Agent) -> dict[int, Agent]:
        """Shift Queued agents ranked after ``leaving`` down by one."""
        shifted: dict[int, Agent] = {}
        for agent in roster:
            if agent.id == leaving.id or agent.partition != Partition.QUEUED:
                continue
            if agent.queue_position > leaving.queue_position:
                shifted[agent.id] = agent.model_copy(
                    update={"queue_position": agent.queue_position - 1}
                )
        return shifted

    def _leave_queue(self, roster: Roster, agent: Agent, changes: dict[str, Any]) -> ActionResult:
        """Move a Queued agent out of the line and close the gap it leaves."""
        updated = agent.model_copy(update={**changes, "queue_position": 0})
        shifted = self._close_gap(roster, agent) if agent.partition == Partition.QUEUED else {}
        touched = {agent.id: updated, **shifted}
        write_set = [updated] + [shifted[a.id] for a in roster if a.id in shifted]
        return ActionResult(roster=_replace(roster, touched), write_set=write_set)

    def _enter_queue(self, roster: Roster, agent: Agent, changes: dict[str, Any]) -> ActionResult:
        """Append an agent at the tail of the line."""
        others = [a for a in roster if a.id != agent.id]
        updated = agent.model_copy(
            update={**changes, "available": True, "in_session": False,
                    "queue_position": tail_position(others)}
        )
        return ActionResult(roster=_replace(roster, {agent.id: updated}), write_set=[updated])

    # ------------------------------------------------------------------ #
    # Administrative actions
    # ------------------------------------------------------------------ #

    def add_agent(self, roster: Roster, fields: AgentFields) -> ActionResult:
        """Create a Queued agent at the tail of the line.

        The id is provisional (max id + 1); stores assign the final one.
        """
        provided = fields.provided()
        provided.pop("available", None)
        agent = Agent(
            id=max((a.id for a in roster), default=0) + 1,
            name=provided.get("name", ""),
            contact_number=provided.get("contact_number", ""),
            available=True,
            in_session=False,
            queue_position=tail_position(roster),
        )
        logger.debug("Agent %s added at position %d", agent.name, agent.queue_position)
        return ActionResult(roster=[*roster, agent], write_set=[agent], created=agent)

    def edit_agent(self, roster: Roster, agent_id: int, fields: AgentFields) -> ActionResult:
        """Overwrite the provided fields only.

        Partition and position change only when ``available`` is provided
        and differs from the current value. A Busy agent stays Busy: the
        flag is written as given and the session is left alone.
        """
        agent = _find(roster, agent_id)
        if agent is None:
            logger.debug("edit_agent: unknown agent %s", agent_id)
            return ActionResult(roster=list(roster))

        provided = fields.provided()
        wants_available = provided.pop("available", None)
        if agent.partition == Partition.BUSY and wants_available is not None:
            provided["available"] = wants_available
            wants_available = None
        edited = agent.model_copy(update=provided)
        roster = _replace(roster, {agent_id: edited})

        if wants_available is None or wants_available == agent.available:
            return ActionResult(roster=roster, write_set=[edited])
        return self.toggle_availability(roster, agent_id)

    def delete_agent(self, roster: Roster, agent_id: int) -> ActionResult:
        """Remove an agent; close the gap if it was Queued."""
        agent = _find(roster, agent_id)
        if agent is None:
            logger.debug("delete_agent: unknown agent %s", agent_id)
            return ActionResult(roster=list(roster))

        shifted = self._close_gap(roster, agent) if agent.partition == Partition.QUEUED else {}
        remaining = [shifted.get(a.id, a) for a in roster if a.id != agent_id]
        write_set = [a for a in remaining if a.id in shifted]
        return ActionResult(roster=remaining, write_set=write_set, removed_ids=[agent_id])

    # ------------------------------------------------------------------ #
    # Queue actions
    # ------------------------------------------------------------------ #

    def toggle_availability(
        self,
        roster: Roster,
        agent_id: int,
        session: Optional[SessionRequest] = None,
    ) -> ActionResult:
        """Flip an agent's availability.

        Turning off with session data starts a session (Busy); without it
        the agent is Paused. Either way the line closes behind them.
        Turning on appends the agent to the tail. A Busy agent turned on
        has its session finished.
        """
        agent = _find(roster, agent_id)
        if agent is None:
            logger.debug("toggle_availability: unknown agent %s", agent_id)
            return ActionResult(roster=list(roster))

        if agent.partition == Partition.BUSY:
            return self.finish_session(roster, agent_id)

        if agent.partition == Partition.PAUSED:
            result = self._enter_queue(roster, agent, {})
            logger.debug("Agent %s resumed at position %d", agent_id, result.write_set[0].queue_position)
            return result

        if session is None:
            logger.debug("Agent %s paused from position %d", agent_id, agent.queue_position)
            return self._leave_queue(roster, agent, {"available": False, "in_session": False})

        logger.debug(
            "Agent %s dispatched from position %d to %s",
            agent_id, agent.queue_position, session.client_name,
        )
        return self._leave_queue(roster, agent, {
            "available": False,
            "in_session": True,
            "client_name": session.client_name,
            "client_contact": session.client_contact,
            "session_started_at": self._clock(),
            "session_ended_at": None,
        })

    def dispatch(self, roster: Roster, session: SessionRequest) -> ActionResult:
        """Start a session for the next-in-line agent.

        Goes through ``toggle_availability`` so the line is closed exactly
        once per transition.
        """
        agent = next_in_line(roster)
        if agent is None:
            logger.debug("dispatch: nobody queued")
            return ActionResult(roster=list(roster))
        return self.toggle_availability(roster, agent.id, session)

    def finish_session(self, roster: Roster, agent_id: int) -> ActionResult:
        """End a Busy agent's session and append them to the tail."""
        agent = _find(roster, agent_id)
        if agent is None or agent.partition != Partition.BUSY:
            logger.debug("finish_session: agent %s is not in a session", agent_id)
            return ActionResult(roster=list(roster))

        return self._enter_queue(roster, agent, {
            "client_name": None,
            "client_contact": None,
            "session_started_at": None,
            "session_ended_at": self._clock(),
        })

    def reorder_queue(self, roster: Roster, active_id: int, over_id: int) -> ActionResult:
        """Move ``active_id`` to ``over_id``'s slot and resequence 1..N."""
        queued = classify(roster).queued
        ids = [a.id for a in queued]
        if active_id == over_id or active_id not in ids or over_id not in ids:
            logger.debug("reorder_queue: ignoring move %s -> %s", active_id, over_id)
            return ActionResult(roster=list(roster))

        old_index, new_index = ids.index(active_id), ids.index(over_id)
        moved = queued.pop(old_index)
        queued.insert(new_index, moved)

        resequenced = [
            agent.model_copy(update={"queue_position": index})
            for index, agent in enumerate(queued, start=1)
        ]
        roster = _replace(roster, {a.id: a for a in resequenced})
        return ActionResult(roster=roster, write_set=resequenced)

    # ------------------------------------------------------------------ #
    # Remote merges
    # ------------------------------------------------------------------ #

    @staticmethod
    def apply_remote_upsert(roster: Roster, agent: Agent) -> Roster:
        """Merge one externally written record. Never reindexes."""
        if _find(roster, agent.id) is None:
            return [*roster, agent]
        return _replace(roster, {agent.id: agent})

    @staticmethod
    def apply_remote_delete(roster: Roster, agent_id: int) -> Roster:
        """Drop one externally deleted record. Never reindexes."""
        return [a for a in roster if a.id != agent_id]
