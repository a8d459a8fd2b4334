"""
Spark tables: weighted keyword pools for atmospheric detail.

The library keeps the spark table collection, the selection settings and
per-table usage statistics, and generates keyword samples for the "sparks"
and "oracle" calling contexts.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional
import json
import logging
import time

from storymode.data_models import DiceRoller
from storymode.tables.builtin_tables import DEFAULT_SPARK_TABLE_NAME, create_default_spark_table
from storymode.tables.table_types import SparkTable, TableDefinitionError

logger = logging.getLogger(__name__)


class SparkContext(str, Enum):
    """Calling contexts a spark table can be enabled for."""
    ORACLE = "oracle"
    SPARKS = "sparks"
    BOTH = "both"


@dataclass
class SparkTableSettings:
    """Selection settings shared by every spark draw."""
    default_table_enabled: bool = True
    default_table_count: int = 2
    keyword_count: int = 3
    include_table_names: bool = False
    allow_crossover: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "defaultTableEnabled": self.default_table_enabled,
            "defaultTableCount": self.default_table_count,
            "keywordCount": self.keyword_count,
            "includeTableNames": self.include_table_names,
            "allowCrossover": self.allow_crossover,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SparkTableSettings":
        return cls(
            default_table_enabled=data.get("defaultTableEnabled", True),
            default_table_count=data.get("defaultTableCount", 2),
            keyword_count=data.get("keywordCount", 3),
            include_table_names=data.get("includeTableNames", False),
            allow_crossover=data.get("allowCrossover", True),
        )


@dataclass
class SparkUsage:
    """Usage statistics for one spark table."""
    use_count: int = 0
    last_used: int = 0
    last_generated_keywords: list[str] = field(default_factory=list)


@dataclass
class SparkImportResult:
    """Outcome of importing spark tables."""
    success: bool
    imported: int = 0
    tables: list[SparkTable] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class SparkTableLibrary:
    """
    Collection of spark tables with weighted keyword generation.

    The default table is created automatically when the library is empty and
    cannot be removed.
    """

    MAX_RECENT_KEYWORDS = 10

    def __init__(
        self,
        tables: Optional[dict[str, SparkTable]] = None,
        settings: Optional[SparkTableSettings] = None,
    ):
        self.tables: dict[str, SparkTable] = dict(tables or {})
        self.settings: SparkTableSettings = settings or SparkTableSettings()
        self.usage: dict[str, SparkUsage] = {}

        if not self.tables:
            self._initialize_with_defaults()

    def _initialize_with_defaults(self) -> None:
        default = create_default_spark_table()
        self.tables = {default.name: default}

    # -------------------------------------------------------------------------
    # Collection management
    # -------------------------------------------------------------------------

    def add_table(self, table: SparkTable) -> None:
        self.tables[table.name] = table
        self.usage.setdefault(table.name, SparkUsage())

    def remove_table(self, name: str) -> bool:
        """Remove a table; the default table is never removed."""
        table = self.tables.get(name)
        if table is None or table.is_default:
            return False
        del self.tables[name]
        self.usage.pop(name, None)
        return True

    def update_table(self, name: str, **updates: Any) -> bool:
        table = self.tables.get(name)
        if table is None:
            return False
        for attr, value in updates.items():
            setattr(table, attr, value)
        table.last_modified = int(time.time() * 1000)
        return True

    def reset(self) -> None:
        """Drop every table, statistic and setting, then restore the default table."""
        self.tables = {}
        self.usage = {}
        self.settings = SparkTableSettings()
        self._initialize_with_defaults()

    def get_enabled_tables(self, context: SparkContext = SparkContext.BOTH) -> list[SparkTable]:
        """Tables usable in a calling context."""
        enabled = []
        for table in self.tables.values():
            if not table.enabled and not table.is_default:
                continue
            if table.is_default and not self.settings.default_table_enabled:
                continue
            if context == SparkContext.ORACLE and not table.oracle_enabled:
                continue
            if context == SparkContext.SPARKS and not table.sparks_enabled:
                continue
            if context == SparkContext.BOTH and not (table.oracle_enabled or table.sparks_enabled):
                continue
            enabled.append(table)
        return enabled

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def generate_keywords(
        self,
        count: int = 3,
        context: SparkContext = SparkContext.SPARKS,
        tables: Optional[list[SparkTable]] = None,
    ) -> list[str]:
        """
        Draw up to `count` distinct keywords.

        Each table contributes its entries `weight` times to the sampling pool.
        Draws are without replacement and deduplicated case-insensitively, so
        fewer than `count` keywords come back when the pool runs dry.

        Args:
            count: Number of keywords wanted
            context: Context used to pick tables when none are given
            tables: Explicit tables to draw from (disabled ones are skipped)
        """
        if tables is not None:
            available = [t for t in tables if t.enabled]
        else:
            available = self.get_enabled_tables(context)

        if not available:
            default = self.tables.get(DEFAULT_SPARK_TABLE_NAME)
            if default is None:
                logger.warning("No spark tables available for keyword generation")
                return []
            available = [default]

        pool: list[tuple[str, str]] = []
        for table in available:
            for _ in range(max(table.weight, 1)):
                pool.extend((entry, table.name) for entry in table.entries if entry.strip())

        selected: set[str] = set()
        keywords: list[str] = []
        while len(keywords) < count and pool:
            index = DiceRoller.randint(0, len(pool) - 1, "spark keyword")
            keyword, table_name = pool.pop(index)
            folded = keyword.casefold()
            if folded in selected:
                continue
            selected.add(folded)
            keywords.append(keyword)
            self.record_usage(table_name, keyword)

        return keywords

    def record_usage(self, table_name: str, keyword: str) -> None:
        stats = self.usage.setdefault(table_name, SparkUsage())
        stats.use_count += 1
        stats.last_used = int(time.time() * 1000)
        stats.last_generated_keywords.insert(0, keyword)
        del stats.last_generated_keywords[self.MAX_RECENT_KEYWORDS:]

    def get_usage(self, table_name: str) -> SparkUsage:
        return self.usage.get(table_name, SparkUsage())

    def get_table_stats(self) -> dict[str, dict[str, int]]:
        return {
            name: {
                "entryCount": len(table.entries),
                "lastModified": table.last_modified,
                "useCount": self.get_usage(name).use_count,
            }
            for name, table in self.tables.items()
        }

    @property
    def total_keywords(self) -> int:
        return sum(len(t.entries) for t in self.tables.values())

    # -------------------------------------------------------------------------
    # Import / export
    # -------------------------------------------------------------------------

    def import_from_csv(self, text: str, source: str = "import") -> SparkImportResult:
        """
        Parse a one-table CSV: the first line is the table name, every
        following non-blank line is one keyword. The table is returned, not added.
        """
        lines = text.strip().splitlines()
        if len(lines) < 2:
            return SparkImportResult(
                success=False,
                errors=["CSV must have at least a header and one data row"],
            )

        name = lines[0].strip() or Path(source).stem
        entries = [line.strip() for line in lines[1:] if line.strip()]
        if not entries:
            return SparkImportResult(success=False, errors=["No valid keyword entries found"])

        table = SparkTable(name=name, entries=entries, source=source)
        return SparkImportResult(success=True, imported=1, tables=[table])

    def export_json(self) -> str:
        """Export tables and settings as a JSON document."""
        return json.dumps(
            {
                "tables": {name: table.to_dict() for name, table in self.tables.items()},
                "settings": self.settings.to_dict(),
                "exportedAt": datetime.now().isoformat(),
                "version": "1.0",
            },
            indent=2,
        )

    def import_json(self, json_data: str) -> SparkImportResult:
        """Import tables (and settings, when present) from an export document."""
        try:
            data = json.loads(json_data)
        except json.JSONDecodeError as e:
            return SparkImportResult(success=False, errors=[f"Import failed: {e}"])

        if not isinstance(data, dict):
            return SparkImportResult(success=False, errors=["Invalid export format: not a JSON object"])
        if not isinstance(data.get("tables"), dict):
            return SparkImportResult(success=False, errors=["Invalid export format: missing tables"])

        result = SparkImportResult(success=False)
        for name, table_data in data["tables"].items():
            try:
                table = SparkTable.from_dict(table_data)
            except (TableDefinitionError, TypeError, ValueError) as e:
                result.errors.append(f"Failed to import table \"{name}\": {e}")
                continue
            if not table.entries:
                result.errors.append(f"Invalid table data for \"{name}\"")
                continue
            self.add_table(table)
            result.tables.append(table)
            result.imported += 1

        if isinstance(data.get("settings"), dict):
            self.settings = SparkTableSettings.from_dict(data["settings"])

        result.success = result.imported > 0
        return result

    def save(self, file_path: Path) -> None:
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(self.export_json())

    @classmethod
    def load(cls, file_path: Path) -> "SparkTableLibrary":
        """Load a library from an export document, keeping the default table."""
        library = cls()
        with open(file_path, "r", encoding="utf-8") as f:
            result = library.import_json(f.read())
        for error in result.errors:
            logger.warning(f"{file_path}: {error}")
        return library
