"""
Table type definitions for the Story Mode engine.

Random tables map a dice total onto rows with (possibly open) numeric bounds.
Spark tables are flat weighted keyword pools. Both have an external dict
shape (camelCase keys) used for import, export and persistence.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional, Union
import logging
import time

from storymode.data_models import DiceRoller, DiceResult

logger = logging.getLogger(__name__)


class TableDefinitionError(ValueError):
    """Raised when a table definition is structurally invalid."""


# =============================================================================
# ROW DESCRIPTIONS
# =============================================================================


@dataclass(frozen=True)
class LiteralDescription:
    """A fixed row description."""
    text: str

    def render(self) -> str:
        return self.text

    @property
    def identity(self) -> str:
        return self.text


@dataclass(frozen=True)
class GeneratedDescription:
    """
    A row description produced by a zero-argument generator at roll time.

    The label identifies the row for consumption tracking, since the
    generated text differs from draw to draw.
    """
    generator: Callable[[], Any]
    label: str = ""

    def render(self) -> str:
        return str(self.generator())

    @property
    def identity(self) -> str:
        return self.label or getattr(self.generator, "__name__", "generated")


RowDescription = Union[LiteralDescription, GeneratedDescription]

# Bounds are absolute ints, or signed offset strings ("-5", "+4") on DC tables.
RowBound = Optional[Union[int, str]]


def normalize_bound(bound: Any) -> RowBound:
    """
    Coerce a bound read from JSON into an int, an offset string or None.

    Whole-number floats ("min": 1.0) become ints.

    Raises:
        TableDefinitionError: For any other kind of value
    """
    if bound is None or isinstance(bound, str):
        return bound
    if isinstance(bound, bool):
        raise TableDefinitionError(f"Invalid row bound: {bound!r}")
    if isinstance(bound, int):
        return bound
    if isinstance(bound, float) and bound.is_integer():
        return int(bound)
    raise TableDefinitionError(f"Invalid row bound: {bound!r}")


def resolve_bound(bound: RowBound, dc: Optional[int] = None) -> Optional[int]:
    """
    Resolve a row bound to an absolute value.

    Offset strings are added to the difficulty when one is supplied; without a
    difficulty they are read as plain integers.
    """
    bound = normalize_bound(bound)
    if bound is None:
        return None
    if isinstance(bound, int):
        return bound
    text = bound.strip()
    try:
        value = int(text)
    except ValueError:
        raise TableDefinitionError(f"Invalid row bound: {bound!r}")
    return dc + value if dc is not None else value


# =============================================================================
# RANDOM TABLES
# =============================================================================


@dataclass
class TableRow:
    """A single row of a random table; bounds are inclusive, None is open."""
    min: RowBound
    max: RowBound
    description: RowDescription

    def matches(self, total: int, dc: Optional[int] = None) -> bool:
        """
        Check if a roll total falls within this row.

        None min matches totals up to max; None max matches totals from min.
        A row with both bounds open matches everything.
        """
        low = resolve_bound(self.min, dc)
        high = resolve_bound(self.max, dc)
        if low is None and high is None:
            return True
        if low is None:
            return total <= high
        if high is None:
            return total >= low
        return low <= total <= high

    def to_dict(self) -> dict[str, Any]:
        # Generators cannot be serialized; their label stands in for them.
        return {
            "min": self.min,
            "max": self.max,
            "description": self.description.identity,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TableRow":
        """
        Raises:
            TableDefinitionError: If a bound is not a number, offset or null
        """
        if not isinstance(data, dict):
            raise TableDefinitionError(f"Invalid table row: {data!r}")
        low = normalize_bound(data.get("min"))
        high = normalize_bound(data.get("max"))
        # Offset strings must parse even before a difficulty is known
        resolve_bound(low)
        resolve_bound(high)
        return cls(
            min=low,
            max=high,
            description=LiteralDescription(str(data.get("description") or "")),
        )


def describe_gaps(gaps: list[tuple[int, int]], limit: int = 5) -> str:
    """Short text for coverage gaps, e.g. "3-4, 7 (+2 more ranges)"."""
    parts = [str(first) if first == last else f"{first}-{last}" for first, last in gaps[:limit]]
    text = ", ".join(parts)
    if len(gaps) > limit:
        text += f" (+{len(gaps) - limit} more ranges)"
    return text


@dataclass
class TableResult:
    """Complete result of a table roll."""
    table_name: str
    roll_total: int
    description: str
    row: Optional[TableRow] = None
    dice: Optional[DiceResult] = None
    dc: Optional[int] = None

    @property
    def matched(self) -> bool:
        return self.row is not None

    @property
    def identity(self) -> Optional[str]:
        """Consumption identity of the drawn row, if any."""
        return self.row.description.identity if self.row else None


@dataclass
class RandomTable:
    """
    A random table rolled with a dice formula.

    Rows should partition the attainable totals of the formula. When rows
    overlap, the last matching row wins.
    """
    name: str
    dice_formula: str
    rows: list[TableRow] = field(default_factory=list)
    description: str = ""
    consumable: bool = False

    def match_row(self, total: int, dc: Optional[int] = None) -> Optional[TableRow]:
        """Find the row for a total, last match wins."""
        matched = None
        for row in self.rows:
            if row.matches(total, dc):
                matched = row
        return matched

    def with_rows(self, rows: list[TableRow]) -> "RandomTable":
        """Copy of this table restricted to the given rows."""
        return replace(self, rows=list(rows))

    def coverage_gaps(self, dc: Optional[int] = None) -> list[tuple[int, int]]:
        """
        Inclusive (first, last) ranges of attainable totals that no row covers.

        Works on row intervals, so the cost depends on the number of rows and
        not on the size of the dice range.

        Raises:
            DiceNotationError: If the dice formula is malformed
            TableDefinitionError: If a row bound is invalid
        """
        low, high = DiceRoller.bounds(self.dice_formula)
        intervals = []
        for row in self.rows:
            start = resolve_bound(row.min, dc)
            end = resolve_bound(row.max, dc)
            start = low if start is None else max(start, low)
            end = high if end is None else min(end, high)
            if start <= end:
                intervals.append((start, end))

        gaps = []
        next_uncovered = low
        for start, end in sorted(intervals):
            if start > next_uncovered:
                gaps.append((next_uncovered, start - 1))
            next_uncovered = max(next_uncovered, end + 1)
        if next_uncovered <= high:
            gaps.append((next_uncovered, high))
        return gaps

    def roll(self, dc: Optional[int] = None, reroll_unmatched: int = 0) -> TableResult:
        """
        Roll on this table and return the result.

        Args:
            dc: Difficulty for tables whose bounds are offsets
            reroll_unmatched: Extra attempts when the total lands on no row.
                When attempts run out and rows exist, one is picked uniformly
                so restricted (consumable) tables never come back empty.

        Raises:
            DiceNotationError: If the dice formula is malformed
        """
        dice = DiceRoller.roll(self.dice_formula, f"table roll: {self.name}")
        row = self.match_row(dice.total, dc)

        attempts = reroll_unmatched
        while row is None and attempts > 0 and self.rows:
            attempts -= 1
            dice = DiceRoller.roll(self.dice_formula, f"table reroll: {self.name}")
            row = self.match_row(dice.total, dc)

        if row is None and reroll_unmatched > 0 and self.rows:
            row = DiceRoller.choice(self.rows, f"fallback row: {self.name}")

        if row is None:
            logger.warning(f"Table '{self.name}' has no row covering roll {dice.total}")
            description = ""
        else:
            description = row.description.render()

        return TableResult(
            table_name=self.name,
            roll_total=dice.total,
            description=description,
            row=row,
            dice=dice,
            dc=dc,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "diceFormula": self.dice_formula,
            "table": [row.to_dict() for row in self.rows],
        }
        if self.consumable:
            data["consumable"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], name: Optional[str] = None) -> "RandomTable":
        """
        Build a table from its external shape.

        Raises:
            TableDefinitionError: If required fields are missing
        """
        if not isinstance(data, dict):
            raise TableDefinitionError(f"Invalid table definition: {data!r}")
        table_name = data.get("name") or name
        if not table_name:
            raise TableDefinitionError("Table definition has no name")
        formula = data.get("diceFormula", data.get("dice_formula"))
        if not formula:
            raise TableDefinitionError(f"Table '{table_name}' has no dice formula")
        rows = data.get("table", data.get("rows"))
        if not isinstance(rows, list):
            raise TableDefinitionError(f"Table '{table_name}' has no row list")

        return cls(
            name=table_name,
            dice_formula=formula,
            rows=[TableRow.from_dict(row) for row in rows],
            description=data.get("description", ""),
            consumable=bool(data.get("consumable", False)),
        )

    @classmethod
    def from_entries(cls, name: str, entries: list[str], **kwargs: Any) -> "RandomTable":
        """Build a 1dN table with one row per entry."""
        rows = [
            TableRow(min=i, max=i, description=LiteralDescription(entry))
            for i, entry in enumerate(entries, start=1)
        ]
        return cls(name=name, dice_formula=f"1d{max(len(entries), 1)}", rows=rows, **kwargs)


# =============================================================================
# SPARK TABLES
# =============================================================================


@dataclass
class SparkTable:
    """A weighted pool of short atmospheric keywords."""
    name: str
    entries: list[str] = field(default_factory=list)
    weight: int = 1
    oracle_enabled: bool = True
    sparks_enabled: bool = True
    categories: list[str] = field(default_factory=list)
    is_default: bool = False
    enabled: bool = True
    source: str = "custom"
    last_modified: int = field(default_factory=lambda: int(time.time() * 1000))

    def __post_init__(self):
        if self.weight < 1:
            self.weight = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "source": self.source,
            "entries": list(self.entries),
            "lastModified": self.last_modified,
            "enabled": self.enabled,
            "weight": self.weight,
            "oracleEnabled": self.oracle_enabled,
            "sparksEnabled": self.sparks_enabled,
            "categories": list(self.categories),
            "isDefault": self.is_default,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SparkTable":
        if not isinstance(data, dict):
            raise TableDefinitionError(f"Invalid spark table: {data!r}")
        if not data.get("name"):
            raise TableDefinitionError("Spark table has no name")
        entries = data.get("entries")
        if not isinstance(entries, list):
            raise TableDefinitionError(f"Spark table '{data['name']}' has no entry list")
        return cls(
            name=data["name"],
            entries=[str(e) for e in entries],
            weight=int(data.get("weight") or 1),
            oracle_enabled=bool(data.get("oracleEnabled", True)),
            sparks_enabled=bool(data.get("sparksEnabled", True)),
            categories=list(data.get("categories", [])),
            is_default=bool(data.get("isDefault", False)),
            enabled=bool(data.get("enabled", True)),
            source=data.get("source", "custom"),
            last_modified=data.get("lastModified", 0),
        )
