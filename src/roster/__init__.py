from src.roster.engine import QueueEngine
from src.roster.partitions import (
    check_invariants,
    classify,
    next_in_line,
    sort_agents,
    tail_position,
    waiting_view,
)

__all__ = [
    "QueueEngine",
    "classify",
    "next_in_line",
    "tail_position",
    "check_invariants",
    "sort_agents",
    "waiting_view",
]
