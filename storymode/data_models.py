"""
Shared data structures for the Story Mode engine.

Holds the centralized dice roller used by every random decision, plus the
repository records (items, workbooks, position context) that the scope
resolver works on. Random tables live in storymode.tables.table_types.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Sequence
import random
import re
import time

from storymode.observability.run_log import get_run_log


# =============================================================================
# DICE AND RANDOMIZATION
# =============================================================================


class DiceNotationError(ValueError):
    """Raised when a dice notation string cannot be parsed."""


# Upper limits keep adversarial notations like "999999999d6" from stalling a resolve.
MAX_DICE = 1000
MAX_SIDES = 1_000_000

DICE_PATTERN = re.compile(r"^\s*(\d*)\s*d\s*(\d+)\s*(?:([+-])\s*(\d+))?\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class DiceSpec:
    """Parsed form of a dice notation such as '3d6+2'."""
    num_dice: int
    sides: int
    modifier: int = 0

    @property
    def min_total(self) -> int:
        return self.num_dice + self.modifier

    @property
    def max_total(self) -> int:
        return self.num_dice * self.sides + self.modifier


class DiceRoller:
    """
    Centralized randomization interface.
    All dice rolls must go through this class for reproducibility and logging.
    """

    _instance = None
    _seed: Optional[int] = None
    _rng: random.Random = random.Random()
    _roll_log: list = []

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def set_seed(cls, seed: int) -> None:
        """Set random seed for reproducibility."""
        cls._seed = seed
        cls._rng = random.Random(seed)

    @classmethod
    def get_seed(cls) -> Optional[int]:
        return cls._seed

    @classmethod
    def parse(cls, dice: str) -> DiceSpec:
        """
        Parse dice notation ('2d6', '1d20+5', '3d6-2', 'd6').

        Raises:
            DiceNotationError: If the notation is malformed or out of bounds
        """
        match = DICE_PATTERN.match(dice or "")
        if not match:
            raise DiceNotationError(f"Invalid dice notation: {dice!r}")

        count_str, sides_str, sign, mod_str = match.groups()
        num_dice = int(count_str) if count_str else 1
        sides = int(sides_str)
        modifier = int(mod_str) if mod_str else 0
        if sign == "-":
            modifier = -modifier

        if num_dice < 1 or sides < 1:
            raise DiceNotationError(f"Dice count and sides must be positive: {dice!r}")
        if num_dice > MAX_DICE or sides > MAX_SIDES:
            raise DiceNotationError(f"Dice notation exceeds limits: {dice!r}")

        return DiceSpec(num_dice=num_dice, sides=sides, modifier=modifier)

    @classmethod
    def is_valid(cls, dice: str) -> bool:
        try:
            cls.parse(dice)
        except DiceNotationError:
            return False
        return True

    @classmethod
    def bounds(cls, dice: str) -> tuple[int, int]:
        """Return the (minimum, maximum) attainable total for a notation."""
        spec = cls.parse(dice)
        return spec.min_total, spec.max_total

    @classmethod
    def roll(cls, dice: str, reason: str = "") -> "DiceResult":
        """
        Roll dice using standard notation (e.g., '2d6', '1d20+5', '3d6-2').

        Args:
            dice: Dice notation string
            reason: Why this roll is being made (for logging)

        Returns:
            DiceResult with individual rolls and total

        Raises:
            DiceNotationError: If the notation cannot be parsed
        """
        spec = cls.parse(dice)

        rolls = [cls._rng.randint(1, spec.sides) for _ in range(spec.num_dice)]
        total = sum(rolls) + spec.modifier

        result = DiceResult(
            notation=dice.strip(),
            rolls=rolls,
            modifier=spec.modifier,
            total=total,
            reason=reason
        )

        cls._record(result)
        return result

    @classmethod
    def randint(cls, a: int, b: int, reason: str = "") -> int:
        """Return a random integer in [a, b], inclusive, logged like a roll."""
        value = cls._rng.randint(a, b)
        cls._record(DiceResult(
            notation=f"range({a}-{b})",
            rolls=[value],
            modifier=0,
            total=value,
            reason=reason,
        ))
        return value

    @classmethod
    def choice(cls, seq: Sequence[Any], reason: str = "") -> Any:
        """
        Choose a random element from a non-empty sequence.

        Raises:
            IndexError: If sequence is empty
        """
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        index = cls.randint(0, len(seq) - 1, reason or f"choice from {len(seq)} options")
        return seq[index]

    @classmethod
    def _record(cls, result: "DiceResult") -> None:
        cls._roll_log.append(result)
        get_run_log().log_roll(
            notation=result.notation,
            rolls=result.rolls,
            modifier=result.modifier,
            total=result.total,
            reason=result.reason,
        )

    @classmethod
    def get_roll_log(cls) -> list:
        """Get the complete roll log for the session."""
        return cls._roll_log.copy()

    @classmethod
    def clear_roll_log(cls) -> None:
        """Clear the roll log."""
        cls._roll_log = []


@dataclass
class DiceResult:
    """Result of a dice roll with full information."""
    notation: str
    rolls: list[int]
    modifier: int
    total: int
    reason: str
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        if self.modifier > 0:
            return f"{self.notation}: {self.rolls} + {self.modifier} = {self.total}"
        elif self.modifier < 0:
            return f"{self.notation}: {self.rolls} - {abs(self.modifier)} = {self.total}"
        return f"{self.notation}: {self.rolls} = {self.total}"


# =============================================================================
# REPOSITORY ENUMS
# =============================================================================


class ScopeLevel(str, Enum):
    """Hierarchy levels at which a repository item can be visible."""
    LIBRARY = "library"
    SHELF = "shelf"
    BOOK = "book"
    CHAPTER = "chapter"

    @property
    def rank(self) -> int:
        """Precedence rank; more specific scopes rank higher and read later."""
        return _SCOPE_RANKS[self]


_SCOPE_RANKS = {
    ScopeLevel.LIBRARY: 0,
    ScopeLevel.SHELF: 1,
    ScopeLevel.BOOK: 2,
    ScopeLevel.CHAPTER: 3,
}


class RepositoryCategory(str, Enum):
    """Kinds of story elements kept in the repository."""
    CHARACTER = "Character"
    LOCATION = "Location"
    OBJECT = "Object"
    SITUATION = "Situation"


# =============================================================================
# POSITION AND SCOPE CONTEXT
# =============================================================================


@dataclass(frozen=True)
class PositionContext:
    """
    The author's current position in the library.

    Supplied by the host; the library level is implicit. Any id may be None
    when the author is not inside that level.
    """
    shelf_id: Optional[str] = None
    book_id: Optional[str] = None
    chapter_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "shelfId": self.shelf_id,
            "bookId": self.book_id,
            "chapterId": self.chapter_id,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "PositionContext":
        data = data or {}
        return cls(
            shelf_id=data.get("shelfId", data.get("shelf_id")),
            book_id=data.get("bookId", data.get("book_id")),
            chapter_id=data.get("chapterId", data.get("chapter_id")),
        )


# An item's scope context uses the same three ids as the author's position.
ScopeContext = PositionContext


def _now_ms() -> int:
    return int(time.time() * 1000)


# =============================================================================
# REPOSITORY RECORDS
# =============================================================================


@dataclass
class RepositoryItem:
    """
    A story element (character, location, object or situation).

    Created and edited by the author; persists for the document's lifetime.
    """
    name: str
    content: str = ""
    description: str = ""
    keywords: list[str] = field(default_factory=list)
    force_in_context: bool = False
    category: RepositoryCategory = RepositoryCategory.CHARACTER
    scope: ScopeLevel = ScopeLevel.LIBRARY
    scope_context: ScopeContext = field(default_factory=ScopeContext)
    workbook_tags: list[str] = field(default_factory=list)
    created: int = field(default_factory=_now_ms)
    updated: int = field(default_factory=_now_ms)

    @property
    def key(self) -> str:
        """Storage key derived from the name (lowercase, spaces to underscores)."""
        return re.sub(r"\s+", "_", self.name.strip().lower())

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "content": self.content,
            "keywords": list(self.keywords),
            "forceInContext": self.force_in_context,
            "category": self.category.value,
            "scope": self.scope.value,
            "scopeContext": self.scope_context.to_dict(),
            "workbookTags": list(self.workbook_tags),
            "created": self.created,
            "updated": self.updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RepositoryItem":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            content=data.get("content", ""),
            keywords=list(data.get("keywords", [])),
            force_in_context=bool(data.get("forceInContext", False)),
            category=RepositoryCategory(data.get("category", RepositoryCategory.CHARACTER.value)),
            scope=ScopeLevel(data.get("scope", ScopeLevel.LIBRARY.value)),
            scope_context=ScopeContext.from_dict(data.get("scopeContext")),
            workbook_tags=list(data.get("workbookTags", [])),
            created=data.get("created", 0),
            updated=data.get("updated", 0),
        )


@dataclass
class Workbook:
    """
    Tag-based grouping of repository items.

    A workbook with a master scope overrides the effective scope of every
    item sharing one of its tags, for ordering purposes only.
    """
    name: str
    tags: list[str] = field(default_factory=list)
    master_scope: Optional[ScopeLevel] = None
    master_scope_context: Optional[ScopeContext] = None
    id: str = ""
    description: str = ""
    stack_id: str = ""
    created_at: int = field(default_factory=_now_ms)
    updated_at: int = field(default_factory=_now_ms)

    def shares_tag_with(self, item: RepositoryItem) -> bool:
        return any(tag in self.tags for tag in item.workbook_tags)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "stackId": self.stack_id,
            "tags": list(self.tags),
            "masterScope": self.master_scope.value if self.master_scope else None,
            "masterScopeContext": (
                self.master_scope_context.to_dict() if self.master_scope_context else None
            ),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Workbook":
        master_scope = data.get("masterScope")
        master_ctx = data.get("masterScopeContext")
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            description=data.get("description") or "",
            stack_id=data.get("stackId", ""),
            tags=list(data.get("tags", [])),
            master_scope=ScopeLevel(master_scope) if master_scope else None,
            master_scope_context=ScopeContext.from_dict(master_ctx) if master_ctx else None,
            created_at=data.get("createdAt", 0),
            updated_at=data.get("updatedAt", 0),
        )
