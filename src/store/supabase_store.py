"""
Hosted agent table reached over the Supabase / PostgREST HTTP API.

Each operation opens a short-lived ``httpx.AsyncClient``. Transport errors
and 5xx answers surface as ``StoreUnavailable``; a write that matched no
row surfaces as ``NotFound``; 400/409/422 answers on insert surface as
``ValidationError``.

Change notifications are produced by polling the table and diffing
consecutive snapshots, so any writer (another dashboard, a SQL console)
is picked up the same way.

API reference: https://postgrest.org/en/stable/references/api.html
"""

import asyncio
import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from src.schemas.agent_schema import Agent
from src.store.base import (
    AgentStore,
    ChangeBroadcaster,
    DeleteCallback,
    InsertCallback,
    NotFound,
    StoreError,
    StoreUnavailable,
    Subscription,
    UpdateCallback,
    ValidationError,
)

logger = logging.getLogger(__name__)

_CLIENT_ERRORS = (400, 409, 422)


def _to_columns(fields: dict[str, Any]) -> dict[str, Any]:
    """Translate attribute names to persisted column names."""
    columns: dict[str, Any] = {}
    for name, value in fields.items():
        info = Agent.model_fields[name]
        column = info.alias or name
        if hasattr(value, "isoformat"):
            value = value.isoformat()
        columns[column] = value
    return columns


class SupabaseAgentStore(AgentStore):
    """PostgREST-backed store for the ``atendentes`` table."""

    name = "supabase"

    def __init__(
        self,
        url: str,
        key: str,
        table: str = "atendentes",
        timeout: float = 10.0,
        poll_interval: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = f"{url.rstrip('/')}/rest/v1"
        self._table = table
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._transport = transport
        self._headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        self._changes = ChangeBroadcaster()
        self._poll_task: Optional[asyncio.Task] = None
        self._snapshot: Optional[dict[int, Agent]] = None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        params: Optional[dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        headers = {"Prefer": prefer} if prefer else None
        try:
            async with self._client() as client:
                response = await client.request(
                    method, f"/{self._table}", params=params, json=json, headers=headers
                )
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            detail = e.response.text[:200]
            if status in _CLIENT_ERRORS:
                raise ValidationError(f"HTTP {status}: {detail}") from e
            raise StoreUnavailable(f"HTTP {status}: {detail}") from e
        except httpx.RequestError as e:
            raise StoreUnavailable(f"Connection error: {e}") from e

    @staticmethod
    def _parse(rows: Any) -> list[Agent]:
        try:
            return [Agent.from_record(row) for row in rows]
        except (PydanticValidationError, TypeError) as e:
            raise StoreUnavailable(f"Unexpected record shape from store: {e}") from e

    async def fetch_all(self) -> list[Agent]:
        response = await self._request("GET", params={"select": "*", "order": "id.asc"})
        return self._parse(response.json())

    async def insert(self, agent: Agent) -> Agent:
        response = await self._request(
            "POST",
            json=[agent.to_record(include_id=False)],
            prefer="return=representation",
        )
        created = self._parse(response.json())
        if not created:
            raise StoreUnavailable("Insert returned no row")
        logger.info("Inserted agent %d (%s)", created[0].id, created[0].name)
        return created[0]

    async def update(self, agent_id: int, fields: dict) -> Agent:
        response = await self._request(
            "PATCH",
            params={"id": f"eq.{agent_id}"},
            json=_to_columns(fields),
            prefer="return=representation",
        )
        rows = self._parse(response.json())
        if not rows:
            raise NotFound(f"Agent {agent_id} not found.")
        return rows[0]

    async def upsert_many(self, agents: list[Agent]) -> None:
        if not agents:
            return
        await self._request(
            "POST",
            params={"on_conflict": "id"},
            json=[a.to_record() for a in agents],
            prefer="resolution=merge-duplicates,return=minimal",
        )
        logger.debug("Upserted %d agents", len(agents))

    async def remove(self, agent_id: int) -> None:
        response = await self._request(
            "DELETE",
            params={"id": f"eq.{agent_id}"},
            prefer="return=representation",
        )
        if not response.json():
            raise NotFound(f"Agent {agent_id} not found.")
        logger.info("Removed agent %d", agent_id)

    # ------------------------------------------------------------------ #
    # Change feed
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        on_insert: InsertCallback,
        on_update: UpdateCallback,
        on_delete: DeleteCallback,
    ) -> Subscription:
        subscription = self._changes.subscribe(on_insert, on_update, on_delete)
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())
        return subscription

    async def poll_once(self) -> None:
        """Fetch the table once and broadcast the differences to the last snapshot."""
        current = {a.id: a for a in await self.fetch_all()}
        previous = self._snapshot
        self._snapshot = current
        if previous is None:
            return

        for agent_id, agent in current.items():
            before = previous.get(agent_id)
            if before is None:
                self._changes.inserted(agent)
            elif before != agent:
                self._changes.updated(agent)
        for agent_id in previous.keys() - current.keys():
            self._changes.deleted(agent_id)

    async def _poll_loop(self) -> None:
        logger.info("Change feed started for table '%s' (every %.1fs)", self._table, self._poll_interval)
        while self._changes.subscriber_count:
            try:
                await self.poll_once()
            except StoreError as e:
                logger.warning("Change feed poll failed: %s", e)
            await asyncio.sleep(self._poll_interval)
        logger.info("Change feed stopped for table '%s'", self._table)

    async def close(self) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
        self._poll_task = None
