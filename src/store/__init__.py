import logging

from src.config import StoreConfig
from src.store.base import (
    AgentStore,
    NotFound,
    StoreError,
    StoreUnavailable,
    Subscription,
    ValidationError,
)
from src.store.file_store import LocalFileAgentStore
from src.store.memory_store import InMemoryAgentStore
from src.store.supabase_store import SupabaseAgentStore

logger = logging.getLogger(__name__)


def create_store(config: StoreConfig) -> AgentStore:
    """Build the store selected by configuration.

    ``auto`` uses the hosted table when credentials are present and falls
    back to the local file otherwise.
    """
    backend = config.backend
    if backend == "auto":
        backend = "supabase" if config.supabase_url and config.supabase_key else "local"

    if backend == "supabase":
        logger.info("Using hosted agent table '%s'", config.table)
        return SupabaseAgentStore(
            url=config.supabase_url,
            key=config.supabase_key,
            table=config.table,
            timeout=config.timeout_sec,
            poll_interval=config.poll_interval_sec,
        )
    if backend == "memory":
        logger.info("Using in-memory agent store")
        return InMemoryAgentStore()

    logger.info("Using local agent store at %s", config.local_path)
    return LocalFileAgentStore(config.local_path)


__all__ = [
    "AgentStore",
    "StoreError",
    "StoreUnavailable",
    "NotFound",
    "ValidationError",
    "Subscription",
    "InMemoryAgentStore",
    "LocalFileAgentStore",
    "SupabaseAgentStore",
    "create_store",
]
