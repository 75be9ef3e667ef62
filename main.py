"""
Queue dashboard entry point.

Connects the console dashboard to the configured agent store (the hosted
table when SUPABASE_URL / SUPABASE_KEY are set, the local JSON file
otherwise) and follows its change feed while commands are typed.

Usage:
    Configured store:  python main.py
    Offline demo:      python main.py demo [--scenario shift]
"""

import asyncio
import logging
import sys

from src.config import settings

logger = logging.getLogger(__name__)


def _run_dashboard() -> None:
    """Start the interactive dashboard on the configured store."""
    from console_demo import ConsoleDashboard
    from src.store import create_store

    store = create_store(settings.store)
    logger.info("Dashboard starting on '%s' store", store.name)
    asyncio.run(ConsoleDashboard(store).run())


def _run_demo_mode() -> None:
    """Start the offline console demo (no credentials required)."""
    from console_demo import main as demo_main

    sys.argv = [sys.argv[0], *sys.argv[2:]]
    demo_main()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "demo":
        _run_demo_mode()
    else:
        _run_dashboard()
