"""
Centralized configuration with environment variable overrides.

Store backends, dashboard defaults, and polling intervals are all
configurable here. Nothing is hardcoded in the engine or store logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from src.logging_context import ActionIdFilter

load_dotenv()

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("auto", "supabase", "local", "memory")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class StoreConfig:
    """Where the agent roster is persisted and how it is polled."""

    backend: str = os.getenv("STORE_BACKEND", "auto")
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_key: str = os.getenv("SUPABASE_KEY", "")
    table: str = os.getenv("AGENTS_TABLE", "atendentes")
    local_path: str = os.getenv("LOCAL_STORE_PATH", "data/agents.json")
    timeout_sec: float = _safe_float("STORE_TIMEOUT", "10.0")
    poll_interval_sec: float = _safe_float("CHANGE_POLL_INTERVAL", "2.0")


@dataclass(frozen=True)
class DashboardConfig:
    """Presentation defaults for the queue dashboard."""

    name: str = os.getenv("DASHBOARD_NAME", "Call Center Queue")
    client_area_code: str = os.getenv("CLIENT_AREA_CODE", "11")
    notification_ttl_sec: int = _safe_int("NOTIFICATION_TTL", "3")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    store: StoreConfig = field(default_factory=StoreConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.store.backend not in STORE_BACKENDS:
        raise ValueError(
            f"STORE_BACKEND must be one of {list(STORE_BACKENDS)}, got {config.store.backend!r}"
        )
    if config.store.backend == "supabase" and not (
        config.store.supabase_url and config.store.supabase_key
    ):
        raise ValueError("STORE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_KEY")
    if not config.store.table.strip():
        raise ValueError("AGENTS_TABLE must not be empty")
    if config.store.timeout_sec <= 0:
        raise ValueError(f"STORE_TIMEOUT must be > 0, got {config.store.timeout_sec}")
    if config.store.poll_interval_sec <= 0:
        raise ValueError(
            f"CHANGE_POLL_INTERVAL must be > 0, got {config.store.poll_interval_sec}"
        )
    if not config.dashboard.client_area_code.isdigit():
        raise ValueError(
            f"CLIENT_AREA_CODE must be digits only, got {config.dashboard.client_area_code!r}"
        )
    if config.dashboard.notification_ttl_sec < 1:
        raise ValueError(
            f"NOTIFICATION_TTL must be >= 1, got {config.dashboard.notification_ttl_sec}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(action_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, ActionIdFilter) for f in handler.filters):
            handler.addFilter(ActionIdFilter())
    logger.info("Configuration loaded for '%s' (store: %s)", config.dashboard.name, config.store.backend)
    return config


# Singleton instance
settings = load_config()
