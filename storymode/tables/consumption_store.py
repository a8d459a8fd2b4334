"""
Consumption tracking for draw-without-replacement tables.

A consumable table remembers, per story, which entries it has already
produced. Draws only see the remaining entries until the pool is exhausted,
at which point the table is treated as fresh again.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional, Union
import json
import logging
import threading

from storymode.observability.run_log import get_run_log
from storymode.tables.table_types import RandomTable

logger = logging.getLogger(__name__)

TableRef = Union[RandomTable, str]


def table_name_of(table: TableRef) -> str:
    return table.name if isinstance(table, RandomTable) else table


def consumption_key(table: TableRef, story_id: str) -> str:
    """Storage key for a (table, story) pair."""
    return f"{table_name_of(table).lower()}_{story_id}"


@dataclass
class ConsumedEntry:
    """The entries a table has produced for one story."""
    table_id: str
    story_id: str
    consumed_items: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tableId": self.table_id,
            "storyId": self.story_id,
            "consumedItems": list(self.consumed_items),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConsumedEntry":
        items = data["consumedItems"]
        if not isinstance(items, list):
            raise ValueError("consumedItems must be a list")
        return cls(
            table_id=str(data["tableId"]),
            story_id=str(data["storyId"]),
            consumed_items=[str(item) for item in items],
        )


class ConsumptionStore(ABC):
    """
    Per-(table, story) record of consumed entries.

    Subclasses only provide persistence; filtering, exhaustion reset and
    locking live here. Callers that draw concurrently for one story should
    hold story_lock() across available() -> roll -> mark_consumed().
    The entry map itself is guarded by a store-wide lock, always taken after
    any story lock.
    """

    def __init__(self):
        self._entries: dict[str, ConsumedEntry] = {}
        self._state_lock = threading.RLock()
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # Persistence hooks ---------------------------------------------------------

    @abstractmethod
    def _persist(self) -> None:
        """Write the current state to the backing storage."""

    # Locking ------------------------------------------------------------------

    @contextmanager
    def story_lock(self, story_id: str) -> Iterator[None]:
        """Serialize read-modify-write sequences for one story."""
        with self._locks_guard:
            lock = self._locks.setdefault(story_id, threading.RLock())
        with lock:
            yield

    # Contract -----------------------------------------------------------------

    def available(self, table: RandomTable, story_id: str) -> RandomTable:
        """
        The table restricted to entries not yet consumed for this story.

        When every entry has been consumed the stored state is cleared and the
        full table is returned, so draws never fail because of exhaustion.
        """
        with self.story_lock(story_id), self._state_lock:
            key = consumption_key(table, story_id)
            entry = self._entries.get(key)
            if entry is None or not entry.consumed_items:
                return table

            consumed = set(entry.consumed_items)
            remaining = [row for row in table.rows if row.description.identity not in consumed]
            if not remaining:
                del self._entries[key]
                self._persist()
                logger.debug(f"Consumable table '{table.name}' exhausted for story '{story_id}', resetting")
                get_run_log().log_consumption(table.name, story_id, "exhausted")
                return table

            return table.with_rows(remaining)

    def mark_consumed(self, table: TableRef, story_id: str, entry: str) -> None:
        """Record that a table produced an entry for a story."""
        name = table_name_of(table)
        with self.story_lock(story_id), self._state_lock:
            key = consumption_key(table, story_id)
            record = self._entries.get(key)
            if record is None:
                record = ConsumedEntry(table_id=name, story_id=story_id)
                self._entries[key] = record
            if entry in record.consumed_items:
                return
            record.consumed_items.append(entry)
            self._persist()
        get_run_log().log_consumption(name, story_id, "consumed", entry)

    def reset(self, table: TableRef, story_id: Optional[str] = None) -> None:
        """
        Forget consumed entries for a table.

        Args:
            table: Table or table name
            story_id: Only reset this story; None resets the table for every story
        """
        name = table_name_of(table)
        with self._state_lock:
            if story_id is not None:
                keys = [consumption_key(name, story_id)]
            else:
                keys = [k for k, e in self._entries.items() if e.table_id.lower() == name.lower()]

            removed = [k for k in keys if self._entries.pop(k, None) is not None]
            if removed:
                self._persist()
        get_run_log().log_consumption(name, story_id or "*", "reset")

    def reset_story(self, story_id: str) -> None:
        """Forget consumed entries of every table for one story."""
        with self.story_lock(story_id), self._state_lock:
            keys = [k for k, e in self._entries.items() if e.story_id == story_id]
            for key in keys:
                del self._entries[key]
            if keys:
                self._persist()
        get_run_log().log_consumption("*", story_id, "reset")

    def consumed_items(self, table: TableRef, story_id: str) -> list[str]:
        with self._state_lock:
            entry = self._entries.get(consumption_key(table, story_id))
            return list(entry.consumed_items) if entry else []

    def to_dict(self) -> dict[str, Any]:
        with self._state_lock:
            return {key: entry.to_dict() for key, entry in self._entries.items()}


class InMemoryConsumptionStore(ConsumptionStore):
    """Consumption state that lives as long as the process."""

    def _persist(self) -> None:
        pass


class JsonFileConsumptionStore(ConsumptionStore):
    """
    Consumption state persisted to a JSON file.

    The file maps storage keys to {tableId, storyId, consumedItems}. A file
    that cannot be read or parsed is logged and treated as empty; it is
    overwritten on the next change.
    """

    def __init__(self, file_path: Union[str, Path]):
        super().__init__()
        self.file_path = Path(file_path)
        self.recovered_from_corruption = False
        self._load()

    def _load(self) -> None:
        if not self.file_path.exists():
            return
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("top level must be an object")
            self._entries = {key: ConsumedEntry.from_dict(value) for key, value in data.items()}
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Corrupted consumption state in {self.file_path}, starting empty: {e}")
            self._entries = {}
            self.recovered_from_corruption = True

    def _persist(self) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.file_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
