"""
Pytest fixtures for the Story Mode engine test suite.

Provides reusable fixtures for dice, tables, consumption stores, resolvers
and repository records.
"""

import pytest

from storymode.data_models import (
    DiceResult,
    DiceRoller,
    PositionContext,
    RepositoryCategory,
    RepositoryItem,
    ScopeContext,
    ScopeLevel,
    Workbook,
)
from storymode.observability.run_log import reset_run_log
from storymode.resolution.placeholder_resolver import PlaceholderResolver, ResolverOptions
from storymode.tables.consumption_store import InMemoryConsumptionStore
from storymode.tables.spark_tables import SparkTableLibrary
from storymode.tables.table_registry import TableRegistry
from storymode.tables.table_types import (
    LiteralDescription,
    RandomTable,
    SparkTable,
    TableRow,
)


# =============================================================================
# DICE FIXTURES
# =============================================================================


@pytest.fixture
def seeded_dice():
    """Provide a seeded DiceRoller for reproducible tests."""
    DiceRoller.clear_roll_log()
    DiceRoller.set_seed(42)
    yield DiceRoller()
    DiceRoller.clear_roll_log()


@pytest.fixture
def clean_dice():
    """Provide a clean DiceRoller without seed."""
    DiceRoller.clear_roll_log()
    yield DiceRoller()
    DiceRoller.clear_roll_log()


@pytest.fixture
def fixed_roll(monkeypatch):
    """
    Force every DiceRoller.roll to return the given total.

    Usage: fixed_roll(5) before the code under test rolls.
    """
    def _fix(total: int) -> None:
        def _roll(cls, dice, reason=""):
            return DiceResult(notation=dice, rolls=[total], modifier=0, total=total, reason=reason)
        monkeypatch.setattr(DiceRoller, "roll", classmethod(_roll))
    return _fix


@pytest.fixture(autouse=True)
def clean_run_log():
    """Start every test with an empty run log."""
    reset_run_log()
    yield
    reset_run_log()


# =============================================================================
# TABLE FIXTURES
# =============================================================================


@pytest.fixture
def fruit_table():
    """Single-entry table so modifier results are predictable."""
    return RandomTable.from_entries("fruit", ["apple"])


@pytest.fixture
def low_high_table():
    """1d6 table split into a low and a high half."""
    return RandomTable(
        name="lowhigh",
        dice_formula="1d6",
        rows=[
            TableRow(min=1, max=3, description=LiteralDescription("low")),
            TableRow(min=4, max=6, description=LiteralDescription("high")),
        ],
    )


@pytest.fixture
def relic_table():
    """Three-entry consumable table."""
    return RandomTable.from_entries("relics", ["crown", "orb", "sceptre"], consumable=True)


@pytest.fixture
def spark_library():
    """Spark library with one custom table next to the default one."""
    library = SparkTableLibrary()
    library.add_table(SparkTable(name="omens", entries=["Raven", "raven", "Comet"]))
    return library


@pytest.fixture
def registry(fruit_table, low_high_table, relic_table, spark_library):
    """Registry with built-ins plus the custom test tables."""
    return TableRegistry(
        custom_tables={
            "fruit": fruit_table,
            "lowhigh": low_high_table,
            "relics": relic_table,
        },
        spark_tables=spark_library,
    )


@pytest.fixture
def memory_store():
    return InMemoryConsumptionStore()


@pytest.fixture
def resolver(registry, memory_store):
    """Resolver over the test registry for story 'story-1'."""
    return PlaceholderResolver(
        registry=registry,
        consumption_store=memory_store,
        options=ResolverOptions(story_id="story-1"),
    )


# =============================================================================
# REPOSITORY FIXTURES
# =============================================================================


@pytest.fixture
def chapter_position():
    """Author positioned in shelf s1, book b1, chapter c1."""
    return PositionContext(shelf_id="s1", book_id="b1", chapter_id="c1")


@pytest.fixture
def book_sword():
    return RepositoryItem(
        name="Family Sword",
        content="The sword has been in the family for generations.",
        keywords=["sword"],
        category=RepositoryCategory.OBJECT,
        scope=ScopeLevel.BOOK,
        scope_context=ScopeContext(shelf_id="s1", book_id="b1"),
    )


@pytest.fixture
def chapter_sword():
    return RepositoryItem(
        name="Broken Sword",
        content="In this chapter the sword lies broken.",
        keywords=["sword"],
        category=RepositoryCategory.OBJECT,
        scope=ScopeLevel.CHAPTER,
        scope_context=ScopeContext(shelf_id="s1", book_id="b1", chapter_id="c1"),
        workbook_tags=["legends"],
    )


@pytest.fixture
def library_hero():
    return RepositoryItem(
        name="Mara",
        content="Mara is a wandering knight.",
        keywords=["Mara", "knight"],
        category=RepositoryCategory.CHARACTER,
        scope=ScopeLevel.LIBRARY,
    )


@pytest.fixture
def legends_workbook():
    """Workbook lifting 'legends' items to library scope everywhere."""
    return Workbook(name="Legends", tags=["legends"], master_scope=ScopeLevel.LIBRARY)
