"""
Offline console dashboard — drives the agent queue from the terminal.

Uses the real queue engine, controller, and notification center against
an in-memory store by default. No database, no network calls. Designed
for walkthroughs of the queue rules.

Usage:
    python console_demo.py
    python console_demo.py --scenario shift
    python console_demo.py --scenario reorder
    python console_demo.py --scenario failure
"""

import argparse
import asyncio
import shlex
from typing import Optional

from src.config import settings
from src.dashboard.controller import QueueController
from src.dashboard.notifications import Notification, NotificationType
from src.schemas.agent_schema import Agent, SessionRequest
from src.schemas.queue_schema import CommitOutcome, SortOption
from src.store.base import AgentStore, StoreUnavailable
from src.store.file_store import demo_agents
from src.store.memory_store import InMemoryAgentStore

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

_NOTIFICATION_COLORS = {
    NotificationType.SUCCESS: GREEN,
    NotificationType.ERROR: RED,
    NotificationType.INFO: YELLOW,
}

HELP_TEXT = """Commands:
  add <name> <contact>         add an agent at the end of the line
  edit <id> <field>=<value>    edit name / contact / available
  delete <id>                  remove an agent (asks for confirmation)
  toggle <id>                  pause / resume an agent
  next <client> [contact]      dispatch the next agent in line
  serve <id> <client>          start a session for a specific queued agent
  finish <id>                  finish a session, agent rejoins the line
  move <id> <over_id>          drag an agent onto another's slot
  sort manual|name|status      change the roster ordering
  filter                       show only available agents in the line
  show                         redraw the dashboard
  refresh                      reload from the store
  quit                         exit"""


class _WriteOutageStore(InMemoryAgentStore):
    """In-memory store whose next write fails, to show the resync path."""

    def __init__(self, agents: list[Agent]) -> None:
        super().__init__(agents)
        self.fail_next_write = False

    def _check(self) -> None:
        if self.fail_next_write:
            self.fail_next_write = False
            raise StoreUnavailable("simulated outage")

    async def update(self, agent_id: int, fields: dict) -> Agent:
        self._check()
        return await super().update(agent_id, fields)

    async def upsert_many(self, agents: list[Agent]) -> None:
        self._check()
        await super().upsert_many(agents)


class ConsoleDashboard:
    """Renders the three partitions and turns typed commands into controller calls."""

    # Pre-scripted scenarios for --scenario flag
    SCENARIOS: dict[str, list[str]] = {
        "shift": [
            "add 'Beatriz Lima' 'Ramal 103'",
            "add 'Diego Rocha' 'Ramal 104'",
            "next 'Roberto Dias' '(11) 99999-8888'",
            "toggle 3",
            "next 'Marina Costa'",
            "toggle 3",
            "finish 1",
        ],
        "reorder": [
            "add 'Beatriz Lima' 'Ramal 103'",
            "move 1 3",
            "sort name",
            "move 3 1",
        ],
        "failure": [
            "add 'Beatriz Lima' 'Ramal 103'",
            "!outage",
            "move 1 3",
            "toggle 2",
        ],
    }

    MAX_INPUT_LENGTH = 200

    def __init__(self, store: Optional[AgentStore] = None, assume_yes: bool = False) -> None:
        self.store = store if store is not None else InMemoryAgentStore(demo_agents())
        self.controller = QueueController(self.store)
        self.controller.notifications.subscribe(self._show_notification)
        self.sort_option = SortOption.MANUAL
        self.available_only = False
        self.assume_yes = assume_yes

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _show_notification(self, notification: Notification) -> None:
        color = _NOTIFICATION_COLORS[notification.type]
        print(f"{color}{BOLD}[{notification.type.value}]{RESET} {color}{notification.message}{RESET}")

    def render(self) -> None:
        parts = self.controller.partitions()
        print(f"\n{BOLD}Waiting line{RESET}")
        for agent in self.controller.waiting_line(self.available_only):
            marker = f"{agent.queue_position:>2}." if agent.available else f"{DIM} --{RESET}"
            state = "" if agent.available else f" {DIM}(paused){RESET}"
            print(f"  {marker} {agent.name} [{agent.id}] {DIM}{agent.contact_number}{RESET}{state}")
        print(f"{BOLD}In session{RESET}")
        for agent in parts.busy:
            started = agent.session_started_at.strftime("%H:%M:%S") if agent.session_started_at else "?"
            print(f"      {agent.name} [{agent.id}] -> {agent.client_name} "
                  f"{DIM}{agent.client_contact} since {started}{RESET}")
        if self.sort_option != SortOption.MANUAL:
            names = ", ".join(a.name for a in self.controller.sorted_roster(self.sort_option))
            print(f"{DIM}  sorted by {self.sort_option.value}: {names}{RESET}")

    def _confirm(self, agent: Agent) -> bool:
        if self.assume_yes:
            return True
        answer = input(f"{YELLOW}Remove {agent.name}? [y/N] {RESET}").strip().lower()
        return answer in ("y", "yes")

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {settings.dashboard.name.upper()} - Scenario: {scenario}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

        await self.controller.start()
        self.render()
        for step in steps:
            print(f"\n{BLUE}[Supervisor] {RESET}{step}")
            if step == "!outage":
                self._simulate_outage()
                continue
            await self.process_command(step)
            await asyncio.sleep(0)
            self.render()
        await self.controller.stop()

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def _simulate_outage(self) -> None:
        if isinstance(self.store, _WriteOutageStore):
            self.store.fail_next_write = True
            self.system_log("Store will reject the next write")
        else:
            self.system_log("Outage simulation needs the demo store")

    async def run(self) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {settings.dashboard.name.upper()} - Console Dashboard{RESET}")
        print(f"{BOLD}  Store: {self.store.name}. Type 'help' for commands, 'quit' to exit{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

        await self.controller.start()
        self.render()
        try:
            while True:
                text = (await asyncio.to_thread(input, f"\n{BLUE}[Supervisor] {RESET}")).strip()
                if not text:
                    continue
                if text.lower() in ("quit", "exit", "q"):
                    print(f"\n{DIM}Session ended.{RESET}")
                    return
                if len(text) > self.MAX_INPUT_LENGTH:
                    print(f"{RED}Command too long.{RESET}")
                    continue
                await self.process_command(text)
                self.render()
        finally:
            await self.controller.stop()

    async def process_command(self, text: str) -> Optional[CommitOutcome]:
        try:
            verb, *args = shlex.split(text)
        except ValueError as e:
            print(f"{RED}Could not parse command: {e}{RESET}")
            return None

        verb = verb.lower()
        try:
            if verb == "help":
                print(HELP_TEXT)
                return None
            if verb == "add" and len(args) == 2:
                return await self.controller.add_agent({"name": args[0], "contact_number": args[1]})
            if verb == "edit" and len(args) >= 2:
                return await self.controller.edit_agent(int(args[0]), self._parse_assignments(args[1:]))
            if verb == "delete" and len(args) == 1:
                return await self.controller.delete_agent(int(args[0]), confirm=self._confirm)
            if verb == "toggle" and len(args) == 1:
                return await self.controller.toggle_availability(int(args[0]))
            if verb == "next" and 1 <= len(args) <= 2:
                return await self.controller.call_next(*args)
            if verb == "serve" and len(args) == 2:
                session = SessionRequest(client_name=args[1])
                return await self.controller.toggle_availability(int(args[0]), session)
            if verb == "finish" and len(args) == 1:
                return await self.controller.finish_session(int(args[0]))
            if verb == "move" and len(args) == 2:
                return await self.controller.reorder_queue(int(args[0]), int(args[1]))
            if verb == "sort" and len(args) == 1:
                self.sort_option = SortOption(args[0].lower())
                return None
            if verb == "filter" and not args:
                self.available_only = not self.available_only
                self.system_log(f"Available-only filter {'on' if self.available_only else 'off'}")
                return None
            if verb == "show" and not args:
                return None
            if verb == "refresh" and not args:
                await self.controller.refresh()
                return None
        except ValueError as e:
            print(f"{RED}Invalid argument: {e}{RESET}")
            return None

        print(f"{RED}Unknown command: {text}. Type 'help'.{RESET}")
        return None

    @staticmethod
    def _parse_assignments(pairs: list[str]) -> dict[str, object]:
        aliases = {"contact": "contact_number", "name": "name", "available": "available"}
        fields: dict[str, object] = {}
        for pair in pairs:
            key, sep, value = pair.partition("=")
            if not sep or key not in aliases:
                raise ValueError(f"expected name=, contact= or available=, got {pair!r}")
            if key == "available":
                fields["available"] = value.lower() in ("1", "true", "yes", "on")
            else:
                fields[aliases[key]] = value
        return fields


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console dashboard")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleDashboard.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    if args.scenario:
        store = _WriteOutageStore(demo_agents()) if args.scenario == "failure" else None
        dashboard = ConsoleDashboard(store, assume_yes=True)
        asyncio.run(dashboard.run_scenario(args.scenario))
    else:
        asyncio.run(ConsoleDashboard().run())


if __name__ == "__main__":
    main()
