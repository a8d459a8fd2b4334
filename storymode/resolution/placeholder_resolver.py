"""
Placeholder Resolution for the Story Mode engine.

Expands placeholder tokens in authored text:

    {names}                      roll on a table
    {creatures.plural.capitalize} roll, then apply modifiers left to right
    {secrets.consumable}         draw without replacement for the story
    {traits.pick 3}              three draws joined with ", "
    {rand 1-10}                  inclusive uniform integer
    {roll 2d6+1}                 dice total
    {dc 12}                      outcome on the DC table against difficulty 12
    {spark:weather}              one weighted keyword from a spark table
    {sparks:moods,omens:3}       three keywords from the named spark tables
    {random_character}           name of a random repository item

Both {token} and {{token}} forms are accepted. Replaced text is scanned
again, so placeholders inside a drawn entry expand too; the only guard
against self-referencing tables is the depth cap.

Resolution never raises. A token that cannot be resolved stays in the text
(or becomes a bracketed diagnostic when mark_unresolved is set) and a
warning is logged.
"""

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Union
import logging
import re

from storymode.data_models import DiceNotationError, DiceRoller, RepositoryCategory, RepositoryItem
from storymode.observability.run_log import get_run_log
from storymode.resolution.text_modifiers import apply_modifiers
from storymode.tables.consumption_store import ConsumptionStore, InMemoryConsumptionStore
from storymode.tables.table_registry import TableRegistry, get_table_registry
from storymode.tables.table_types import RandomTable, TableDefinitionError, TableResult

logger = logging.getLogger(__name__)


# Double braces are tried first; [^{}] makes the innermost token match first.
TOKEN_PATTERN = re.compile(r"\{\{([^{}]+)\}\}|\{([^{}]+)\}")

RAND_PATTERN = re.compile(r"^rand\s+(-?\d+)\s*-\s*(-?\d+)$", re.IGNORECASE)
ROLL_PATTERN = re.compile(r"^roll\s+(.+)$", re.IGNORECASE)
DC_PATTERN = re.compile(r"^dc\s+(.+)$", re.IGNORECASE)
SPARK_PATTERN = re.compile(r"^(sparks?)(?::(.*))?$", re.IGNORECASE)
PICK_PATTERN = re.compile(r"^pick\s+(\d+)$", re.IGNORECASE)
REPOSITORY_PATTERN = re.compile(r"^random_([a-z]+)$", re.IGNORECASE)

CONSUMABLE_MODIFIER = "consumable"
MAX_PICK = 100
CONSUMABLE_REROLLS = 50

DEFAULT_SPARK_COUNTS = {"spark": 1, "sparks": 2}

CATEGORY_ALIASES: dict[str, RepositoryCategory] = {
    "character": RepositoryCategory.CHARACTER,
    "characters": RepositoryCategory.CHARACTER,
    "location": RepositoryCategory.LOCATION,
    "locations": RepositoryCategory.LOCATION,
    "object": RepositoryCategory.OBJECT,
    "objects": RepositoryCategory.OBJECT,
    "item": RepositoryCategory.OBJECT,
    "items": RepositoryCategory.OBJECT,
    "situation": RepositoryCategory.SITUATION,
    "situations": RepositoryCategory.SITUATION,
    "event": RepositoryCategory.SITUATION,
    "events": RepositoryCategory.SITUATION,
}


class PlaceholderError(ValueError):
    """A token that cannot be resolved; carries the diagnostic shown in place of it."""

    def __init__(self, diagnostic: str):
        super().__init__(diagnostic)
        self.diagnostic = diagnostic


@dataclass
class ResolverOptions:
    """
    Options for a PlaceholderResolver.

    story_id: Consumption scope for consumable tables
    max_depth: Maximum nesting depth; each pass expands one level
    expand_all_per_pass: Give every token in the text one attempt per pass.
        When off, the text is rescanned after the first replacement, so each
        top-level token costs a level of depth
    mark_unresolved: Replace unresolvable tokens with a bracketed diagnostic
    """
    story_id: str = "default"
    max_depth: int = 10
    expand_all_per_pass: bool = True
    mark_unresolved: bool = False


class PlaceholderResolver:
    """
    Expands placeholder tokens using tables, dice and spark pools.

    Tables come from the given registry (the global one by default) and
    consumable draws are recorded in the given consumption store.
    """

    def __init__(
        self,
        registry: Optional[TableRegistry] = None,
        consumption_store: Optional[ConsumptionStore] = None,
        options: Optional[ResolverOptions] = None,
        repository_items: Optional[Union[Mapping[str, RepositoryItem], Sequence[RepositoryItem]]] = None,
    ):
        self.registry = registry or get_table_registry()
        self.consumption_store = consumption_store or InMemoryConsumptionStore()
        self.options = options or ResolverOptions()
        if isinstance(repository_items, Mapping):
            repository_items = list(repository_items.values())
        self.repository_items: Optional[list[RepositoryItem]] = (
            list(repository_items) if repository_items is not None else None
        )

    @property
    def story_id(self) -> str:
        return self.options.story_id

    # =========================================================================
    # EXPANSION LOOP
    # =========================================================================

    def resolve(self, text: str, depth: int = 0) -> str:
        """
        Expand every placeholder in text.

        Each pass gives every token one attempt (or, with expand_all_per_pass
        off, replaces only the first) and then rescans the whole text at the
        next depth, so tokens drawn from a table entry expand one level down.
        Expansion stops when a pass replaces nothing or max_depth is reached.

        Args:
            text: Authored text
            depth: Starting depth, for callers continuing a partial expansion

        Returns:
            The expanded text
        """
        unresolved: set[str] = set()

        while True:
            if depth >= self.options.max_depth:
                pending = [m.group(0) for m in TOKEN_PATTERN.finditer(text)
                           if m.group(0) not in unresolved]
                if pending:
                    logger.warning(
                        f"Maximum placeholder resolution depth ({self.options.max_depth}) reached "
                        f"with {len(pending)} placeholder(s) left"
                    )
                return text

            text, replaced = self._expand_pass(text, depth, unresolved)
            if not replaced:
                return text
            depth += 1

    def _expand_pass(self, text: str, depth: int, unresolved: set[str]) -> tuple[str, bool]:
        """Run one pass over the text; returns (new text, whether anything changed)."""
        pieces: list[str] = []
        last_end = 0
        replaced = False

        for match in TOKEN_PATTERN.finditer(text):
            token = match.group(0)
            if token in unresolved:
                continue

            body = (match.group(1) or match.group(2)).strip()
            replacement = self.resolve_token(body)

            if replacement is None:
                unresolved.add(token)
                continue

            get_run_log().log_expansion(token, replacement, depth)
            pieces.append(text[last_end:match.start()])
            pieces.append(replacement)
            last_end = match.end()
            replaced = True

            if not self.options.expand_all_per_pass:
                break

        if not replaced:
            return text, False

        pieces.append(text[last_end:])
        return "".join(pieces), True

    def resolve_token(self, body: str) -> Optional[str]:
        """
        Resolve a single token body (the text between the braces).

        Returns:
            The replacement text, or None when the token stays as it is
        """
        try:
            return self._dispatch(body)
        except PlaceholderError as e:
            logger.warning(f"Could not resolve placeholder '{body}': {e.diagnostic}")
            if self.options.mark_unresolved:
                return e.diagnostic
            return None

    def _dispatch(self, body: str) -> str:
        lowered = body.lower()

        if lowered.startswith("rand ") or lowered == "rand":
            return self._resolve_range(body)

        if lowered.startswith("roll ") or lowered == "roll":
            return self._resolve_dice(body)

        match = DC_PATTERN.match(body)
        if match:
            return self._resolve_dc(match.group(1).strip())

        match = SPARK_PATTERN.match(body)
        if match:
            return self._resolve_sparks(match.group(1).lower(), match.group(2))

        match = REPOSITORY_PATTERN.match(body)
        if match and self.repository_items is not None:
            category = CATEGORY_ALIASES.get(match.group(1).lower())
            if category is not None:
                return self._resolve_repository(category)

        return self._resolve_table(body)

    # =========================================================================
    # EXPRESSIONS
    # =========================================================================

    def _resolve_range(self, body: str) -> str:
        match = RAND_PATTERN.match(body)
        if not match:
            raise PlaceholderError(f"[Invalid range: {body}]")
        low, high = int(match.group(1)), int(match.group(2))
        if low > high:
            raise PlaceholderError(f"[Invalid range: {body}]")
        return str(DiceRoller.randint(low, high, f"placeholder: {body}"))

    def _resolve_dice(self, body: str) -> str:
        match = ROLL_PATTERN.match(body)
        notation = match.group(1).strip() if match else ""
        try:
            return str(DiceRoller.roll(notation, f"placeholder: {body}").total)
        except DiceNotationError:
            raise PlaceholderError(f"[Invalid dice: {notation}]")

    def _resolve_dc(self, value: str) -> str:
        try:
            dc = int(value)
        except ValueError:
            raise PlaceholderError(f"[Invalid DC: {value}]")
        result = self.registry.roll_dc_table(dc)
        return result.description

    def _resolve_sparks(self, prefix: str, spec: Optional[str]) -> str:
        """
        Resolve spark:/sparks: tokens.

        The part after the prefix is colon-separated: table names (themselves
        comma-separated) optionally followed by a count.
        """
        count = DEFAULT_SPARK_COUNTS[prefix]
        parts = [p.strip() for p in (spec or "").split(":")]
        parts = [p for p in parts if p]
        if parts and parts[-1].isdigit():
            count = int(parts.pop())

        names = [name.strip() for part in parts for name in part.split(",") if name.strip()]

        tables = None
        if names:
            tables = []
            for name in names:
                table = self.registry.find_spark_table(name)
                if table is None:
                    logger.warning(f"Spark table '{name}' not found")
                    continue
                tables.append(table)
            if not tables:
                raise PlaceholderError(f"[Unknown spark table: {', '.join(names)}]")

        keywords = self.registry.spark_tables.generate_keywords(count=count, tables=tables)
        if not keywords:
            raise PlaceholderError("[No sparks available]")
        return ", ".join(keywords)

    def _resolve_repository(self, category: RepositoryCategory) -> str:
        candidates = [item for item in self.repository_items if item.category == category]
        if not candidates:
            raise PlaceholderError(f"[No {category.value} items found]")
        return DiceRoller.choice(candidates, f"random {category.value.lower()}").name

    # =========================================================================
    # TABLES
    # =========================================================================

    def _resolve_table(self, body: str) -> str:
        parts = body.split(".")
        name = parts[0].strip()
        table = self.registry.find_table(name)
        if table is None:
            raise PlaceholderError(f"[Unknown table: {name}]")

        consumable = table.consumable
        picks = 1
        modifiers: list[str] = []
        for part in (p.strip() for p in parts[1:]):
            if not part:
                continue
            if part.lower() == CONSUMABLE_MODIFIER:
                consumable = True
                continue
            pick = PICK_PATTERN.match(part)
            if pick:
                picks = min(max(int(pick.group(1)), 1), MAX_PICK)
                continue
            modifiers.append(part)

        results = []
        for _ in range(picks):
            try:
                result = self._draw_consumable(table) if consumable else self.registry.roll_table(table)
            except (DiceNotationError, TableDefinitionError) as e:
                raise PlaceholderError(f"[Invalid table: {table.name}]") from e
            results.append(apply_modifiers(result.description, modifiers))

        return ", ".join(results)

    def _draw_consumable(self, table: RandomTable) -> TableResult:
        """Draw from the entries of a table not yet used in this story."""
        store = self.consumption_store
        with store.story_lock(self.story_id):
            pool = store.available(table, self.story_id)
            result = self.registry.roll_table(pool, reroll_unmatched=CONSUMABLE_REROLLS)
            if result.identity is not None:
                store.mark_consumed(table, self.story_id, result.identity)
        return result

    # =========================================================================
    # CONSUMPTION
    # =========================================================================

    def _canonical_table_name(self, table_name: str) -> str:
        table = self.registry.find_table(table_name)
        return table.name if table else table_name

    def reset_consumption(self, table_name: Optional[str] = None) -> None:
        """
        Forget consumed entries for this resolver's story.

        Args:
            table_name: Only reset this table; None resets every table
        """
        if table_name:
            self.consumption_store.reset(self._canonical_table_name(table_name), self.story_id)
        else:
            self.consumption_store.reset_story(self.story_id)

    def get_consumed_items(self, table_name: str) -> list[str]:
        """Entries already drawn from a table in this story."""
        return self.consumption_store.consumed_items(
            self._canonical_table_name(table_name), self.story_id
        )
