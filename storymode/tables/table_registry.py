"""
Table lookup and rolling for the Story Mode engine.

Provides centralized access to built-in, custom and spark tables. Names are
resolved with an ordered list of matcher functions so authors can refer to a
table by its key or its display name, in any letter case.
"""

from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional, TypeVar, Union
import json
import logging

from storymode.data_models import DiceNotationError
from storymode.observability.run_log import get_run_log
from storymode.tables.builtin_tables import create_builtin_tables, create_dc_table
from storymode.tables.spark_tables import SparkTableLibrary
from storymode.tables.table_types import (
    RandomTable,
    SparkTable,
    TableDefinitionError,
    TableResult,
    describe_gaps,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", RandomTable, SparkTable)

# A matcher decides whether (requested name, collection key, table) is a hit.
Matcher = Callable[[str, str, Union[RandomTable, SparkTable]], bool]


def _exact_key(name: str, key: str, table) -> bool:
    return key == name


def _exact_name(name: str, key: str, table) -> bool:
    return table.name == name


def _casefold_key(name: str, key: str, table) -> bool:
    return key.casefold() == name.casefold()


def _casefold_name(name: str, key: str, table) -> bool:
    return table.name.casefold() == name.casefold()


TABLE_MATCHERS: list[Matcher] = [_exact_key, _exact_name, _casefold_key, _casefold_name]


def find_in_collections(
    name: str,
    collections: Iterable[Mapping[str, T]],
    matchers: Optional[list[Matcher]] = None,
) -> Optional[T]:
    """
    Look a name up across collections, in order.

    Each collection is tried with every matcher before moving on to the next
    collection; the first hit wins.
    """
    matchers = matchers or TABLE_MATCHERS
    name = name.strip()
    for collection in collections:
        for matcher in matchers:
            for key, table in collection.items():
                if matcher(name, key, table):
                    return table
    return None


class TableRegistry:
    """
    Central registry for all random and spark tables.

    Built-in tables always take precedence over custom tables with a
    matching name.
    """

    def __init__(
        self,
        custom_tables: Optional[Mapping[str, RandomTable]] = None,
        spark_tables: Optional[SparkTableLibrary] = None,
        include_builtins: bool = True,
    ):
        self._builtin: dict[str, RandomTable] = create_builtin_tables() if include_builtins else {}
        self._custom: dict[str, RandomTable] = {}
        self._dc_table: RandomTable = create_dc_table()
        self.spark_tables: SparkTableLibrary = spark_tables or SparkTableLibrary()

        if custom_tables:
            self.register_custom_tables(custom_tables)

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register_table(self, table: RandomTable, key: Optional[str] = None) -> str:
        """
        Register a custom table.

        Tables with uncovered totals are accepted but logged, since rolls that
        land on a gap produce empty text.

        Returns:
            The key the table was stored under
        """
        key = key or table.name
        self._warn_on_gaps(table)
        self._custom[key] = table
        return key

    def register_custom_tables(self, tables: Mapping[str, RandomTable]) -> None:
        for key, table in tables.items():
            self.register_table(table, key)

    def unregister_table(self, key: str) -> bool:
        return self._custom.pop(key, None) is not None

    def _warn_on_gaps(self, table: RandomTable) -> None:
        try:
            gaps = table.coverage_gaps()
        except DiceNotationError as e:
            logger.warning(f"Table '{table.name}' has an invalid dice formula: {e}")
            return
        except TableDefinitionError as e:
            logger.warning(f"Table '{table.name}' has invalid rows: {e}")
            return
        if gaps:
            logger.warning(
                f"Table '{table.name}' has no rows for totals {describe_gaps(gaps)}"
            )

    def set_dc_table(self, table: RandomTable) -> None:
        """Replace the table used for DC checks."""
        self._dc_table = table

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    @property
    def builtin_tables(self) -> dict[str, RandomTable]:
        return dict(self._builtin)

    @property
    def custom_tables(self) -> dict[str, RandomTable]:
        return dict(self._custom)

    @property
    def dc_table(self) -> RandomTable:
        return self._dc_table

    def find_table(self, name: str) -> Optional[RandomTable]:
        """
        Resolve a table name to its definition.

        Returns:
            The table, or None when nothing matches
        """
        return find_in_collections(name, [self._builtin, self._custom])

    def find_spark_table(self, name: str) -> Optional[SparkTable]:
        """Resolve a spark table name with the same matchers as random tables."""
        return find_in_collections(name, [self.spark_tables.tables])

    def list_tables(self) -> list[str]:
        """Names of every random table, built-ins first."""
        return [t.name for t in self._builtin.values()] + [t.name for t in self._custom.values()]

    # -------------------------------------------------------------------------
    # Rolling
    # -------------------------------------------------------------------------

    def roll_table(
        self,
        table: Union[RandomTable, str],
        dc: Optional[int] = None,
        reroll_unmatched: int = 0,
    ) -> Optional[TableResult]:
        """
        Roll on a table.

        Args:
            table: Table object or name to look up
            dc: Difficulty for offset-bounded tables
            reroll_unmatched: Extra attempts when a roll lands on no row

        Returns:
            TableResult, or None when the name does not resolve

        Raises:
            DiceNotationError: If the table's dice formula is malformed
        """
        if isinstance(table, str):
            found = self.find_table(table)
            if found is None:
                logger.warning(f"Table '{table}' not found")
                return None
            table = found

        result = table.roll(dc=dc, reroll_unmatched=reroll_unmatched)

        get_run_log().log_table_lookup(
            table_name=table.name,
            roll_total=result.roll_total,
            result_text=result.description,
            dc=dc,
        )
        return result

    def roll_dc_table(self, dc: int) -> TableResult:
        """Roll on the DC table against the given difficulty."""
        return self.roll_table(self._dc_table, dc=dc)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def load_tables_from_json(self, file_path: Path, strict: bool = False) -> int:
        """
        Load custom tables from a JSON file.

        Accepts a list of tables, an object with a "tables" list, or an object
        mapping keys to tables.

        Args:
            file_path: Path to JSON file containing table definitions
            strict: Raise on invalid tables or uncovered totals instead of
                skipping/logging them

        Returns:
            Number of tables loaded

        Raises:
            TableDefinitionError: In strict mode, for any invalid table
        """
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if isinstance(data, list):
            items = [(None, entry) for entry in data]
        elif isinstance(data, dict) and isinstance(data.get("tables"), list):
            items = [(None, entry) for entry in data["tables"]]
        elif isinstance(data, dict) and "diceFormula" in data:
            items = [(None, data)]
        elif isinstance(data, dict):
            items = list(data.items())
        else:
            raise TableDefinitionError(f"Unrecognised table file layout in {file_path}")

        count = 0
        for key, entry in items:
            try:
                table = RandomTable.from_dict(entry, name=key)
                if strict:
                    gaps = table.coverage_gaps()
                    if gaps:
                        raise TableDefinitionError(
                            f"Table '{table.name}' has no rows for totals {describe_gaps(gaps)}"
                        )
            except (TableDefinitionError, DiceNotationError) as e:
                if strict:
                    raise TableDefinitionError(str(e)) from e
                logger.warning(f"Skipping invalid table in {file_path}: {e}")
                continue
            self.register_table(table, key)
            count += 1

        logger.info(f"Loaded {count} tables from {file_path}")
        return count


# Global table registry instance
_table_registry: Optional[TableRegistry] = None


def get_table_registry() -> TableRegistry:
    """Get the global TableRegistry instance."""
    global _table_registry
    if _table_registry is None:
        _table_registry = TableRegistry()
    return _table_registry


def reset_table_registry() -> TableRegistry:
    """Replace the global registry with a fresh one."""
    global _table_registry
    _table_registry = TableRegistry()
    return _table_registry
