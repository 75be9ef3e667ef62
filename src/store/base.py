"""
Agent store capability and its error taxonomy.

The queue engine never talks to a store; the dashboard controller does,
persisting the write-sets the engine returns and merging the change
events the store pushes back.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from src.schemas.agent_schema import Agent

logger = logging.getLogger(__name__)

InsertCallback = Callable[[Agent], None]
UpdateCallback = Callable[[Agent], None]
DeleteCallback = Callable[[int], None]


class StoreError(Exception):
    """Base class for persistence failures."""


class StoreUnavailable(StoreError):
    """The backend could not be reached or answered with a server error."""


class NotFound(StoreError):
    """A write referenced an agent id the store does not have."""


class ValidationError(StoreError):
    """The store rejected a malformed record."""


class Subscription:
    """Handle returned by ``AgentStore.subscribe``."""

    def __init__(self, on_cancel: Callable[["Subscription"], None]) -> None:
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._on_cancel(self)


class _Listener:
    def __init__(
        self,
        on_insert: InsertCallback,
        on_update: UpdateCallback,
        on_delete: DeleteCallback,
    ) -> None:
        self.on_insert = on_insert
        self.on_update = on_update
        self.on_delete = on_delete
        self.subscription: Optional[Subscription] = None


class ChangeBroadcaster:
    """Fan-out of change events to subscribers.

    Callbacks are scheduled on the running event loop rather than called
    inline, so a subscriber never observes an event in the middle of the
    write that produced it.
    """

    def __init__(self) -> None:
        self._listeners: list[_Listener] = []

    def subscribe(
        self,
        on_insert: InsertCallback,
        on_update: UpdateCallback,
        on_delete: DeleteCallback,
    ) -> Subscription:
        listener = _Listener(on_insert, on_update, on_delete)
        subscription = Subscription(lambda _sub: self._listeners.remove(listener))
        listener.subscription = subscription
        self._listeners.append(listener)
        return subscription

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    def _schedule(self, callback: Callable, arg: object, listener: _Listener) -> None:
        def deliver() -> None:
            if listener.subscription is not None and listener.subscription.active:
                callback(arg)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            deliver()
            return
        loop.call_soon(deliver)

    def inserted(self, agent: Agent) -> None:
        for listener in list(self._listeners):
            self._schedule(listener.on_insert, agent, listener)

    def updated(self, agent: Agent) -> None:
        for listener in list(self._listeners):
            self._schedule(listener.on_update, agent, listener)

    def deleted(self, agent_id: int) -> None:
        for listener in list(self._listeners):
            self._schedule(listener.on_delete, agent_id, listener)


class AgentStore(ABC):
    """Persistence capability consumed by the dashboard controller."""

    name: str = "store"

    @abstractmethod
    async def fetch_all(self) -> list[Agent]:
        """Return every agent record."""

    @abstractmethod
    async def insert(self, agent: Agent) -> Agent:
        """Persist a new agent and return it with its store-assigned id."""

    @abstractmethod
    async def update(self, agent_id: int, fields: dict) -> Agent:
        """Patch one agent by id (attribute names) and return the stored record."""

    @abstractmethod
    async def upsert_many(self, agents: list[Agent]) -> None:
        """Insert-or-replace several records, keyed on id."""

    @abstractmethod
    async def remove(self, agent_id: int) -> None:
        """Delete one agent by id."""

    @abstractmethod
    def subscribe(
        self,
        on_insert: InsertCallback,
        on_update: UpdateCallback,
        on_delete: DeleteCallback,
    ) -> Subscription:
        """Register change callbacks; they fire until unsubscribed."""

    async def close(self) -> None:
        """Release any background resources."""
