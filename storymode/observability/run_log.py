"""
Run Log system for engine event tracking.

Captures the deterministic events of a resolution session (dice rolls, table
lookups, placeholder expansions, consumption changes) so a session can be
inspected or exported after the fact.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Callable
import json
import logging

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Types of events that can be logged."""

    ROLL = "roll"  # Dice roll or ranged random draw
    TABLE_LOOKUP = "table_lookup"  # Table roll/lookup
    EXPANSION = "expansion"  # Placeholder replaced in text
    CONSUMPTION = "consumption"  # Consumable table state change
    CUSTOM = "custom"  # Custom event


@dataclass
class LogEvent:
    """Base class for all logged events."""

    # event_type has a default so subclass fields can have defaults too;
    # subclasses set the real value in __post_init__.
    event_type: EventType = EventType.CUSTOM
    timestamp: datetime = field(default_factory=datetime.now)
    sequence_number: int = 0
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "sequence_number": self.sequence_number,
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogEvent":
        """Create from dictionary."""
        return cls(
            event_type=EventType(data["event_type"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            sequence_number=data.get("sequence_number", 0),
            context=data.get("context", {}),
        )


@dataclass
class RollEvent(LogEvent):
    """A dice roll event."""

    notation: str = ""  # e.g., "2d6", "1d20+5", "range(1-10)"
    rolls: list[int] = field(default_factory=list)
    modifier: int = 0
    total: int = 0
    reason: str = ""

    def __post_init__(self):
        self.event_type = EventType.ROLL

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "notation": self.notation,
                "rolls": self.rolls,
                "modifier": self.modifier,
                "total": self.total,
                "reason": self.reason,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RollEvent":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            sequence_number=data.get("sequence_number", 0),
            context=data.get("context", {}),
            notation=data.get("notation", ""),
            rolls=data.get("rolls", []),
            modifier=data.get("modifier", 0),
            total=data.get("total", 0),
            reason=data.get("reason", ""),
        )

    def __str__(self) -> str:
        if self.modifier > 0:
            return f"[{self.sequence_number}] ROLL {self.notation}: {self.rolls} + {self.modifier} = {self.total} ({self.reason})"
        elif self.modifier < 0:
            return f"[{self.sequence_number}] ROLL {self.notation}: {self.rolls} - {abs(self.modifier)} = {self.total} ({self.reason})"
        return f"[{self.sequence_number}] ROLL {self.notation}: {self.rolls} = {self.total} ({self.reason})"


@dataclass
class TableLookupEvent(LogEvent):
    """A table lookup/roll event."""

    table_name: str = ""
    roll_total: int = 0
    result_text: str = ""
    dc: Optional[int] = None

    def __post_init__(self):
        self.event_type = EventType.TABLE_LOOKUP

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "table_name": self.table_name,
                "roll_total": self.roll_total,
                "result_text": self.result_text,
                "dc": self.dc,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TableLookupEvent":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            sequence_number=data.get("sequence_number", 0),
            context=data.get("context", {}),
            table_name=data.get("table_name", ""),
            roll_total=data.get("roll_total", 0),
            result_text=data.get("result_text", ""),
            dc=data.get("dc"),
        )

    def __str__(self) -> str:
        dc_str = f" vs DC {self.dc}" if self.dc is not None else ""
        return f"[{self.sequence_number}] TABLE {self.table_name} [{self.roll_total}{dc_str}]: {self.result_text}"


@dataclass
class ExpansionEvent(LogEvent):
    """A placeholder token replaced during resolution."""

    token: str = ""
    replacement: str = ""
    depth: int = 0

    def __post_init__(self):
        self.event_type = EventType.EXPANSION

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "token": self.token,
                "replacement": self.replacement,
                "depth": self.depth,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExpansionEvent":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            sequence_number=data.get("sequence_number", 0),
            context=data.get("context", {}),
            token=data.get("token", ""),
            replacement=data.get("replacement", ""),
            depth=data.get("depth", 0),
        )

    def __str__(self) -> str:
        return f"[{self.sequence_number}] EXPAND {self.token} -> {self.replacement!r} (depth {self.depth})"


@dataclass
class ConsumptionEvent(LogEvent):
    """A consumable table draw or reset."""

    table_name: str = ""
    story_id: str = ""
    action: str = ""  # "consumed", "exhausted" or "reset"
    entry: Optional[str] = None

    def __post_init__(self):
        self.event_type = EventType.CONSUMPTION

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "table_name": self.table_name,
                "story_id": self.story_id,
                "action": self.action,
                "entry": self.entry,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConsumptionEvent":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            sequence_number=data.get("sequence_number", 0),
            context=data.get("context", {}),
            table_name=data.get("table_name", ""),
            story_id=data.get("story_id", ""),
            action=data.get("action", ""),
            entry=data.get("entry"),
        )

    def __str__(self) -> str:
        entry_str = f": {self.entry}" if self.entry is not None else ""
        return f"[{self.sequence_number}] CONSUME {self.table_name}/{self.story_id} {self.action}{entry_str}"


_EVENT_CLASSES: dict[EventType, type] = {
    EventType.ROLL: RollEvent,
    EventType.TABLE_LOOKUP: TableLookupEvent,
    EventType.EXPANSION: ExpansionEvent,
    EventType.CONSUMPTION: ConsumptionEvent,
    EventType.CUSTOM: LogEvent,
}


class RunLog:
    """
    Central run log for all engine events.

    Singleton pattern - use get_run_log() to access.
    """

    _instance: Optional["RunLog"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._initialized = True
        self._events: list[LogEvent] = []
        self._sequence: int = 0
        self._seed: Optional[int] = None
        self._session_start: datetime = datetime.now()
        self._subscribers: list[Callable[[LogEvent], None]] = []
        self._paused: bool = False

    def reset(self) -> None:
        """Reset the log for a new session."""
        self._events = []
        self._sequence = 0
        self._session_start = datetime.now()
        logger.debug("RunLog reset")

    def set_seed(self, seed: int) -> None:
        """Record the RNG seed used for this session."""
        self._seed = seed
        logger.info(f"RunLog seed set: {seed}")

    def get_seed(self) -> Optional[int]:
        return self._seed

    def pause(self) -> None:
        """Pause logging."""
        self._paused = True

    def resume(self) -> None:
        """Resume logging."""
        self._paused = False

    def is_paused(self) -> bool:
        return self._paused

    def subscribe(self, callback: Callable[[LogEvent], None]) -> None:
        """Subscribe to receive events as they are logged."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[LogEvent], None]) -> None:
        """Unsubscribe from events."""
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _log_event(self, event: LogEvent) -> None:
        """Internal method to log an event."""
        if self._paused:
            return

        self._sequence += 1
        event.sequence_number = self._sequence
        self._events.append(event)

        # Subscriber failures must not break the engine call that logged the event
        for subscriber in self._subscribers:
            try:
                subscriber(event)
            except Exception as e:
                logger.warning(f"Subscriber error: {e}")

    def log_roll(
        self,
        notation: str,
        rolls: list[int],
        modifier: int,
        total: int,
        reason: str = "",
        context: Optional[dict[str, Any]] = None,
    ) -> RollEvent:
        """Log a dice roll."""
        event = RollEvent(
            notation=notation,
            rolls=list(rolls),
            modifier=modifier,
            total=total,
            reason=reason,
            context=context or {},
        )
        self._log_event(event)
        return event

    def log_table_lookup(
        self,
        table_name: str,
        roll_total: int,
        result_text: str,
        dc: Optional[int] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> TableLookupEvent:
        """Log a table lookup."""
        event = TableLookupEvent(
            table_name=table_name,
            roll_total=roll_total,
            result_text=result_text,
            dc=dc,
            context=context or {},
        )
        self._log_event(event)
        return event

    def log_expansion(
        self,
        token: str,
        replacement: str,
        depth: int,
        context: Optional[dict[str, Any]] = None,
    ) -> ExpansionEvent:
        """Log a placeholder expansion."""
        event = ExpansionEvent(
            token=token,
            replacement=replacement,
            depth=depth,
            context=context or {},
        )
        self._log_event(event)
        return event

    def log_consumption(
        self,
        table_name: str,
        story_id: str,
        action: str,
        entry: Optional[str] = None,
    ) -> ConsumptionEvent:
        """Log a consumable table state change."""
        event = ConsumptionEvent(
            table_name=table_name,
            story_id=story_id,
            action=action,
            entry=entry,
        )
        self._log_event(event)
        return event

    def log_custom(
        self,
        event_name: str,
        details: dict[str, Any],
    ) -> LogEvent:
        """Log a custom event."""
        event = LogEvent(
            event_type=EventType.CUSTOM,
            context={"event_name": event_name, **details},
        )
        self._log_event(event)
        return event

    def get_events(
        self,
        event_type: Optional[EventType] = None,
        since_sequence: int = 0,
    ) -> list[LogEvent]:
        """
        Get logged events.

        Args:
            event_type: Filter by event type (None = all)
            since_sequence: Only events after this sequence number

        Returns:
            List of events
        """
        events = [e for e in self._events if e.sequence_number > since_sequence]
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        return events

    def get_rolls(self) -> list[RollEvent]:
        return [e for e in self._events if isinstance(e, RollEvent)]

    def get_table_lookups(self) -> list[TableLookupEvent]:
        return [e for e in self._events if isinstance(e, TableLookupEvent)]

    def get_expansions(self) -> list[ExpansionEvent]:
        return [e for e in self._events if isinstance(e, ExpansionEvent)]

    def get_consumption_events(self) -> list[ConsumptionEvent]:
        return [e for e in self._events if isinstance(e, ConsumptionEvent)]

    def get_event_count(self) -> int:
        return len(self._events)

    def get_summary(self) -> dict[str, Any]:
        """Get counts of each event type for the session."""
        return {
            "session_start": self._session_start.isoformat(),
            "seed": self._seed,
            "total_events": len(self._events),
            "rolls": len(self.get_rolls()),
            "table_lookups": len(self.get_table_lookups()),
            "expansions": len(self.get_expansions()),
            "consumption_events": len(self.get_consumption_events()),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_start": self._session_start.isoformat(),
            "seed": self._seed,
            "events": [e.to_dict() for e in self._events],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def save(self, filepath: str) -> None:
        """Save the log to a JSON file."""
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(self.to_json())
        logger.info(f"RunLog saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> "RunLog":
        """Replace the current log contents with a saved session."""
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)

        log = get_run_log()
        log.reset()
        log._seed = data.get("seed")
        if data.get("session_start"):
            log._session_start = datetime.fromisoformat(data["session_start"])
        for event_data in data.get("events", []):
            event_class = _EVENT_CLASSES[EventType(event_data["event_type"])]
            event = event_class.from_dict(event_data)
            log._events.append(event)
            log._sequence = max(log._sequence, event.sequence_number)
        return log

    def format_log(self, event_type: Optional[EventType] = None, limit: Optional[int] = None) -> str:
        """Format events as human-readable lines."""
        events = self.get_events(event_type)
        if limit is not None:
            events = events[-limit:]
        return "\n".join(str(e) if type(e) is not LogEvent else
                         f"[{e.sequence_number}] {e.event_type.value.upper()} {e.context}"
                         for e in events)


_run_log: Optional[RunLog] = None


def get_run_log() -> RunLog:
    """Get the global RunLog instance."""
    global _run_log
    if _run_log is None:
        _run_log = RunLog()
    return _run_log


def reset_run_log() -> RunLog:
    """Reset and return the global RunLog instance."""
    log = get_run_log()
    log.reset()
    return log
