"""
Random and spark tables for the Story Mode engine.

This module provides:
- Table types with tagged row descriptions and open/offset bounds
- Built-in tables, the DC table and the default spark table
- Table lookup and rolling with ordered name matchers
- Per-story consumption tracking for draw-without-replacement tables
- The spark table library with weighted keyword generation
"""

from storymode.tables.table_types import (
    TableDefinitionError,
    LiteralDescription,
    GeneratedDescription,
    RowDescription,
    TableRow,
    TableResult,
    RandomTable,
    SparkTable,
    normalize_bound,
    resolve_bound,
    describe_gaps,
)

from storymode.tables.builtin_tables import (
    DC_TABLE_NAME,
    DEFAULT_SPARK_TABLE_NAME,
    create_builtin_tables,
    create_dc_table,
    create_default_spark_table,
)

from storymode.tables.table_registry import (
    TABLE_MATCHERS,
    TableRegistry,
    find_in_collections,
    get_table_registry,
    reset_table_registry,
)

from storymode.tables.consumption_store import (
    ConsumedEntry,
    ConsumptionStore,
    InMemoryConsumptionStore,
    JsonFileConsumptionStore,
    consumption_key,
)

from storymode.tables.spark_tables import (
    SparkContext,
    SparkTableSettings,
    SparkUsage,
    SparkImportResult,
    SparkTableLibrary,
)

__all__ = [
    # Table types
    "TableDefinitionError",
    "LiteralDescription",
    "GeneratedDescription",
    "RowDescription",
    "TableRow",
    "TableResult",
    "RandomTable",
    "SparkTable",
    "normalize_bound",
    "resolve_bound",
    "describe_gaps",
    # Built-ins
    "DC_TABLE_NAME",
    "DEFAULT_SPARK_TABLE_NAME",
    "create_builtin_tables",
    "create_dc_table",
    "create_default_spark_table",
    # Registry
    "TABLE_MATCHERS",
    "TableRegistry",
    "find_in_collections",
    "get_table_registry",
    "reset_table_registry",
    # Consumption
    "ConsumedEntry",
    "ConsumptionStore",
    "InMemoryConsumptionStore",
    "JsonFileConsumptionStore",
    "consumption_key",
    # Sparks
    "SparkContext",
    "SparkTableSettings",
    "SparkUsage",
    "SparkImportResult",
    "SparkTableLibrary",
]
