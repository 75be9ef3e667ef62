"""
Dashboard controller: the single owner of the live roster.

Every command runs the same cycle under one lock:
1. Run the engine transition against the current roster snapshot.
2. Swap the result in immediately (optimistic update).
3. Persist the write-set through the store.
4. On any store failure, notify once and replace the roster with a fresh
   fetch; if even that fails, restore the pre-command snapshot.

Change events pushed by the store are merged one record at a time. Events
that arrive while a command holds the lock are buffered and merged, in
arrival order, when it finishes, so the last write observed wins.
"""

import asyncio
import random
from collections import deque
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from src.config import settings
from src.dashboard.notifications import NotificationCenter
from src.logging_context import get_action_logger, new_action_id
from src.roster.engine import QueueEngine
from src.roster.partitions import check_invariants, classify, sort_agents, waiting_view
from src.schemas.agent_schema import Agent, AgentFields, SessionRequest
from src.schemas.queue_schema import (
    ActionResult,
    ChangeType,
    CommitOutcome,
    Partitions,
    RemoteChange,
    Roster,
    SortOption,
)
from src.store.base import AgentStore, StoreError, Subscription
from src.utils import placeholder_client_contact

logger = get_action_logger(__name__)

FieldsInput = Union[AgentFields, dict[str, Any]]


class QueueController:
    """Serializes dashboard commands and reconciles them with the store."""

    def __init__(
        self,
        store: AgentStore,
        engine: Optional[QueueEngine] = None,
        notifications: Optional[NotificationCenter] = None,
        client_area_code: str = settings.dashboard.client_area_code,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._store = store
        self._engine = engine or QueueEngine()
        self.notifications = notifications or NotificationCenter(
            ttl_seconds=settings.dashboard.notification_ttl_sec
        )
        self._area_code = client_area_code
        self._rng = rng or random.Random()
        self._roster: Roster = []
        self._lock = asyncio.Lock()
        self._pending_remote: deque[RemoteChange] = deque()
        self._subscription: Optional[Subscription] = None

    # ------------------------------------------------------------------ #
    # Read model
    # ------------------------------------------------------------------ #

    @property
    def roster(self) -> Roster:
        return list(self._roster)

    def partitions(self) -> Partitions:
        return classify(self._roster)

    def sorted_roster(self, option: SortOption = SortOption.MANUAL) -> list[Agent]:
        return sort_agents(self._roster, option)

    def waiting_line(self, available_only: bool = False) -> list[Agent]:
        return waiting_view(self._roster, available_only)

    def get(self, agent_id: int) -> Optional[Agent]:
        return next((a for a in self._roster if a.id == agent_id), None)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self) -> bool:
        """Load the roster and subscribe to the store's change feed."""
        loaded = await self.refresh()
        if self._subscription is None:
            self._subscription = self._store.subscribe(
                self._on_remote_upsert, self._on_remote_upsert, self._on_remote_delete
            )
        return loaded

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        await self._store.close()

    async def refresh(self) -> bool:
        """Replace the roster with the store's authoritative copy."""
        async with self._lock:
            new_action_id("refresh")
            try:
                await self._fetch_fresh()
            except StoreError as e:
                logger.warning("Roster fetch failed: %s", e)
                self.notifications.error("Could not load agents from the store.")
                self._drain_remote()
                return False
            self._drain_remote()
            logger.info("Roster loaded: %d agents", len(self._roster))
            return True

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #

    async def add_agent(self, fields: FieldsInput) -> CommitOutcome:
        parsed = self._parse_fields(fields)
        if parsed is None:
            return CommitOutcome.UNCHANGED
        if parsed.name is None or parsed.contact_number is None:
            self.notifications.error("Name and contact number are required.")
            return CommitOutcome.UNCHANGED
        return await self._run(
            "add",
            lambda roster: self._engine.add_agent(roster, parsed),
            success=lambda r: f"Agent {r.created.name} added.",
        )

    async def edit_agent(self, agent_id: int, fields: FieldsInput) -> CommitOutcome:
        parsed = self._parse_fields(fields)
        if parsed is None:
            return CommitOutcome.UNCHANGED
        return await self._run(
            "edit",
            lambda roster: self._engine.edit_agent(roster, agent_id, parsed),
            success=lambda r: "Agent updated.",
        )

    async def delete_agent(self, agent_id: int, confirm: Callable[[Agent], bool]) -> CommitOutcome:
        """Delete an agent after ``confirm`` approves it."""
        agent = self.get(agent_id)
        if agent is None or not confirm(agent):
            return CommitOutcome.UNCHANGED
        return await self._run(
            "delete",
            lambda roster: self._engine.delete_agent(roster, agent_id),
            success=lambda r: f"Agent {agent.name} removed.",
        )

    async def toggle_availability(
        self, agent_id: int, session: Optional[SessionRequest] = None
    ) -> CommitOutcome:
        return await self._run(
            "toggle",
            lambda roster: self._engine.toggle_availability(roster, agent_id, session),
            success=lambda r: self._status_message(r.write_set[0]),
        )

    async def call_next(self, client_name: str, client_contact: Optional[str] = None) -> CommitOutcome:
        """Dispatch the next-in-line agent to a client."""
        try:
            session = SessionRequest(client_name=client_name, client_contact=client_contact)
        except PydanticValidationError as e:
            self.notifications.error(f"Invalid client data: {e.errors()[0]['msg']}")
            return CommitOutcome.UNCHANGED
        if session.client_contact is None:
            session = session.model_copy(
                update={"client_contact": placeholder_client_contact(self._area_code, self._rng)}
            )
        return await self._run(
            "dispatch",
            lambda roster: self._engine.dispatch(roster, session),
            success=lambda r: f"{r.write_set[0].name} is now serving {session.client_name}.",
            noop_info="All agents are busy right now.",
        )

    async def finish_session(self, agent_id: int) -> CommitOutcome:
        return await self._run(
            "finish",
            lambda roster: self._engine.finish_session(roster, agent_id),
            success=lambda r: f"{r.write_set[0].name} is back in the queue.",
        )

    async def reorder_queue(self, active_id: int, over_id: int) -> CommitOutcome:
        return await self._run(
            "reorder",
            lambda roster: self._engine.reorder_queue(roster, active_id, over_id),
            success=None,
        )

    # ------------------------------------------------------------------ #
    # Commit cycle
    # ------------------------------------------------------------------ #

    def _parse_fields(self, fields: FieldsInput) -> Optional[AgentFields]:
        if isinstance(fields, AgentFields):
            return fields
        try:
            return AgentFields.model_validate(fields)
        except PydanticValidationError as e:
            self.notifications.error(f"Invalid agent data: {e.errors()[0]['msg']}")
            return None

    @staticmethod
    def _status_message(agent: Agent) -> str:
        return f"{agent.name} is now {agent.partition.value}."

    async def _run(
        self,
        name: str,
        transition: Callable[[Roster], ActionResult],
        success: Optional[Callable[[ActionResult], str]],
        noop_info: Optional[str] = None,
    ) -> CommitOutcome:
        async with self._lock:
            new_action_id(name)
            result = transition(self._roster)
            if not result.changed:
                logger.debug("Command '%s' changed nothing", name)
                if noop_info:
                    self.notifications.info(noop_info)
                outcome = CommitOutcome.UNCHANGED
            else:
                outcome = await self._commit(result)
                if outcome == CommitOutcome.PERSISTED and success is not None:
                    self.notifications.success(success(result))
            self._drain_remote()
            return outcome

    async def _commit(self, result: ActionResult) -> CommitOutcome:
        snapshot = self._roster
        self._roster = result.roster

        problems = check_invariants(self._roster)
        if problems:
            logger.warning("Roster invariants violated after commit: %s", "; ".join(problems))

        try:
            await self._persist(result)
        except StoreError as e:
            logger.warning("Persist failed, resyncing from store: %s", e)
            self.notifications.error(f"Could not save changes: {e}")
            await self._resync(snapshot)
            return CommitOutcome.REVERTED
        return CommitOutcome.PERSISTED

    async def _persist(self, result: ActionResult) -> None:
        if result.created is not None:
            stored = await self._store.insert(result.created)
            provisional_id = result.created.id
            self._roster = [stored if a.id == provisional_id else a for a in self._roster]

        for agent_id in result.removed_ids:
            await self._store.remove(agent_id)

        updates = [a for a in result.write_set if a is not result.created]
        if len(updates) == 1:
            agent = updates[0]
            await self._store.update(agent.id, agent.model_dump(exclude={"id"}))
        elif updates:
            await self._store.upsert_many(updates)
        logger.debug(
            "Persisted: created=%s removed=%s updated=%s",
            result.created is not None, result.removed_ids, [a.id for a in updates],
        )

    async def _resync(self, snapshot: Roster) -> None:
        try:
            await self._fetch_fresh()
        except StoreError as e:
            logger.error("Resync failed, restoring previous roster: %s", e)
            self._roster = snapshot

    async def _fetch_fresh(self) -> None:
        """Replace the roster with a fetch.

        Only events buffered before the request was sent are covered by the
        response; anything that arrives while it is in flight stays queued.
        """
        covered = len(self._pending_remote)
        self._roster = await self._store.fetch_all()
        for _ in range(covered):
            self._pending_remote.popleft()

    # ------------------------------------------------------------------ #
    # Remote changes
    # ------------------------------------------------------------------ #

    def _on_remote_upsert(self, agent: Agent) -> None:
        self._receive(RemoteChange(type=ChangeType.UPDATE, agent_id=agent.id, agent=agent))

    def _on_remote_delete(self, agent_id: int) -> None:
        self._receive(RemoteChange(type=ChangeType.DELETE, agent_id=agent_id))

    def _receive(self, change: RemoteChange) -> None:
        if self._lock.locked():
            self._pending_remote.append(change)
            return
        self._apply_remote(change)

    def _drain_remote(self) -> None:
        while self._pending_remote:
            self._apply_remote(self._pending_remote.popleft())

    def _apply_remote(self, change: RemoteChange) -> None:
        if change.type == ChangeType.DELETE:
            self._roster = self._engine.apply_remote_delete(self._roster, change.agent_id)
        elif change.agent is not None:
            self._roster = self._engine.apply_remote_upsert(self._roster, change.agent)
        logger.debug("Remote %s merged for agent %d", change.type.value, change.agent_id)
        problems = check_invariants(self._roster)
        if problems:
            logger.debug("Roster not contiguous after remote merge: %s", "; ".join(problems))
