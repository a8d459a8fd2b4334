"""
Observability for the Story Mode engine.

Provides structured logging of engine events (rolls, table lookups,
placeholder expansions, consumption changes).
"""

from storymode.observability.run_log import (
    RunLog,
    LogEvent,
    EventType,
    RollEvent,
    TableLookupEvent,
    ExpansionEvent,
    ConsumptionEvent,
    get_run_log,
    reset_run_log,
)

__all__ = [
    "RunLog",
    "LogEvent",
    "EventType",
    "RollEvent",
    "TableLookupEvent",
    "ExpansionEvent",
    "ConsumptionEvent",
    "get_run_log",
    "reset_run_log",
]
