"""
Story Mode Engine - Main Entry Point

Text expansion and repository resolution for interactive-fiction authoring.

This module provides the EngineConfig, the StoryModeEngine facade that wires
tables, consumption state, the placeholder resolver and the repository
resolver together, and the command line interface.
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from storymode.data_models import (
    DiceNotationError,
    DiceResult,
    DiceRoller,
    PositionContext,
    RepositoryItem,
    Workbook,
)
from storymode.observability.run_log import get_run_log
from storymode.repository.repository_resolver import KeywordResolution, RepositoryResolver
from storymode.repository.repository_store import RepositoryItemStore, WorkbookStore
from storymode.resolution.placeholder_resolver import PlaceholderResolver, ResolverOptions
from storymode.resolution.template_engine import TemplateEngine
from storymode.tables.consumption_store import (
    ConsumptionStore,
    InMemoryConsumptionStore,
    JsonFileConsumptionStore,
)
from storymode.tables.spark_tables import SparkTableLibrary
from storymode.tables.table_registry import TableRegistry


# Configure logging
def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class EngineConfig:
    """Configuration for an engine session."""

    data_dir: Path = field(default_factory=lambda: Path("data"))
    story_id: str = "default"

    # Resolver settings
    max_depth: int = 10
    expand_all_per_pass: bool = True
    mark_unresolved: bool = False
    seed: Optional[int] = None

    # Content files (relative paths are read from data_dir)
    tables_file: Optional[Path] = None
    sparks_file: Optional[Path] = None
    templates_file: Optional[Path] = None
    repository_file: Optional[Path] = None
    workbooks_file: Optional[Path] = None

    # Consumption state
    persist_consumption: bool = True
    consumption_file: Path = field(default_factory=lambda: Path("consumed-tables.json"))

    # Runtime options
    verbose: bool = False

    def __post_init__(self):
        """Ensure paths are Path objects."""
        for attr in ("data_dir", "tables_file", "sparks_file", "templates_file",
                     "repository_file", "workbooks_file", "consumption_file"):
            value = getattr(self, attr)
            if isinstance(value, str):
                setattr(self, attr, Path(value))

    def resolve_path(self, path: Path) -> Path:
        return path if path.is_absolute() else self.data_dir / path


# =============================================================================
# ENGINE FACADE
# =============================================================================

class StoryModeEngine:
    """
    Wires the engine's parts together for one story.

    Tables, spark tables, templates and repository records are loaded from
    the files named in the config; anything not configured starts empty (or
    with the built-ins, for tables).
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        logger.info(f"Initializing Story Mode engine for story '{self.config.story_id}'...")

        if self.config.seed is not None:
            DiceRoller.set_seed(self.config.seed)
            get_run_log().set_seed(self.config.seed)

        self.spark_tables = self._load_spark_tables()
        self.registry = TableRegistry(spark_tables=self.spark_tables)
        if self.config.tables_file:
            self.registry.load_tables_from_json(self.config.resolve_path(self.config.tables_file))

        self.consumption_store: ConsumptionStore = self._create_consumption_store()
        self.repository_items: dict[str, RepositoryItem] = self._load_repository_items()
        self.workbooks: list[Workbook] = self._load_workbooks()

        self.resolver = PlaceholderResolver(
            registry=self.registry,
            consumption_store=self.consumption_store,
            options=ResolverOptions(
                story_id=self.config.story_id,
                max_depth=self.config.max_depth,
                expand_all_per_pass=self.config.expand_all_per_pass,
                mark_unresolved=self.config.mark_unresolved,
            ),
            repository_items=self.repository_items,
        )
        self.templates = TemplateEngine(self.resolver)
        if self.config.templates_file:
            self.templates.load_templates(self.config.resolve_path(self.config.templates_file))

        logger.info(f"Engine ready with {len(self.registry.list_tables())} tables")

    def _load_spark_tables(self) -> SparkTableLibrary:
        if self.config.sparks_file:
            return SparkTableLibrary.load(self.config.resolve_path(self.config.sparks_file))
        return SparkTableLibrary()

    def _create_consumption_store(self) -> ConsumptionStore:
        if self.config.persist_consumption:
            return JsonFileConsumptionStore(self.config.resolve_path(self.config.consumption_file))
        return InMemoryConsumptionStore()

    def _load_repository_items(self) -> dict[str, RepositoryItem]:
        if not self.config.repository_file:
            return {}
        return RepositoryItemStore(self.config.resolve_path(self.config.repository_file)).load_all()

    def _load_workbooks(self) -> list[Workbook]:
        if not self.config.workbooks_file:
            return []
        return WorkbookStore(self.config.resolve_path(self.config.workbooks_file)).load_all()

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def resolve(self, text: str) -> str:
        """Expand every placeholder in text."""
        return self.resolver.resolve(text)

    def execute_template(self, key: str) -> str:
        return self.templates.execute(key)

    def roll(self, notation: str) -> DiceResult:
        return DiceRoller.roll(notation, "command line roll")

    def sparks(self, count: int = 3, table_names: Optional[list[str]] = None) -> list[str]:
        """Draw spark keywords from the named tables, or every enabled table."""
        tables = None
        if table_names:
            tables = [t for t in (self.registry.find_spark_table(n) for n in table_names) if t]
        return self.spark_tables.generate_keywords(count=count, tables=tables)

    def repository_resolver(self, position: Optional[PositionContext] = None) -> RepositoryResolver:
        return RepositoryResolver(self.repository_items, self.workbooks, position)

    def resolve_context(
        self, text: str, position: Optional[PositionContext] = None
    ) -> list[KeywordResolution]:
        """Repository items mentioned in text, grouped by keyword."""
        return self.repository_resolver(position).get_matching_keywords(text)

    def reset_consumption(self, table_name: Optional[str] = None) -> None:
        self.resolver.reset_consumption(table_name)


# =============================================================================
# COMMAND LINE
# =============================================================================

def format_resolution(resolution: KeywordResolution) -> str:
    """Format a keyword resolution for the terminal."""
    flag = " (conflict)" if resolution.has_conflicts else ""
    lines = [f"{resolution.keyword}{flag}"]
    for resolved in resolution.items:
        override = f" via workbook '{resolved.overridden_by}'" if resolved.overridden_by else ""
        lines.append(f"  [{resolved.source.value}{override}] {resolved.item.name}")
    return "\n".join(lines)


def parse_arguments(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="storymode",
        description="Story Mode - placeholder expansion and repository resolution",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  storymode resolve "A {traits} {occupations} named {names}"
  storymode resolve --template character_basic --seed 7
  storymode roll 3d6+2
  storymode sparks --count 4
  storymode context "the sword glows" --shelf s1 --book b1 --chapter c1
  storymode reset-consumption --table secrets
        """
    )

    # General options
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path("data"),
        help="Directory for engine data files (default: data)",
    )
    parser.add_argument(
        "--story",
        type=str,
        default="default",
        help="Story id used for consumable tables (default: default)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducible output",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    # Content options
    content_group = parser.add_argument_group("Content Options")
    content_group.add_argument("--tables", type=Path, help="JSON file of custom random tables")
    content_group.add_argument("--sparks-file", type=Path, help="Spark table export to load")
    content_group.add_argument("--templates", type=Path, help="JSON file of templates")
    content_group.add_argument("--repository", type=Path, help="JSON file of repository items")
    content_group.add_argument("--workbooks", type=Path, help="JSON file of workbooks")

    # Resolver options
    resolver_group = parser.add_argument_group("Resolver Options")
    resolver_group.add_argument(
        "--max-depth",
        type=int,
        default=10,
        help="Maximum nesting depth of expansion (default: 10)",
    )
    resolver_group.add_argument(
        "--one-per-pass",
        action="store_true",
        help="Rescan after each replacement instead of expanding every placeholder per pass",
    )
    resolver_group.add_argument(
        "--mark-unresolved",
        action="store_true",
        help="Replace unresolvable placeholders with a bracketed diagnostic",
    )
    resolver_group.add_argument(
        "--no-persist",
        action="store_true",
        help="Keep consumable table state in memory only",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve_parser = subparsers.add_parser("resolve", help="Expand placeholders in text")
    resolve_parser.add_argument("text", nargs="?", help="Text to expand")
    resolve_parser.add_argument("--template", help="Expand a stored template instead")

    roll_parser = subparsers.add_parser("roll", help="Roll dice")
    roll_parser.add_argument("notation", help="Dice notation, e.g. 2d6+1")

    sparks_parser = subparsers.add_parser("sparks", help="Draw spark keywords")
    sparks_parser.add_argument("--count", type=int, default=3, help="Keywords to draw (default: 3)")
    sparks_parser.add_argument("--table", action="append", dest="spark_tables", help="Spark table name")

    context_parser = subparsers.add_parser("context", help="Show repository items matched by text")
    context_parser.add_argument("text", help="Text to match against item keywords")
    context_parser.add_argument("--shelf", help="Current shelf id")
    context_parser.add_argument("--book", help="Current book id")
    context_parser.add_argument("--chapter", help="Current chapter id")

    reset_parser = subparsers.add_parser("reset-consumption", help="Forget consumed table entries")
    reset_parser.add_argument("--table", help="Only reset this table")

    return parser.parse_args(argv)


def create_config_from_args(args: argparse.Namespace) -> EngineConfig:
    """Create EngineConfig from parsed arguments."""
    return EngineConfig(
        data_dir=args.data_dir,
        story_id=args.story,
        max_depth=args.max_depth,
        expand_all_per_pass=not args.one_per_pass,
        mark_unresolved=args.mark_unresolved,
        seed=args.seed,
        tables_file=args.tables,
        sparks_file=args.sparks_file,
        templates_file=args.templates,
        repository_file=args.repository,
        workbooks_file=args.workbooks,
        persist_consumption=not args.no_persist,
        verbose=args.verbose,
    )


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI usage."""
    args = parse_arguments(argv)
    setup_logging(args.verbose)

    config = create_config_from_args(args)
    engine = StoryModeEngine(config)

    if args.command == "resolve":
        if args.template:
            try:
                print(engine.execute_template(args.template))
            except KeyError as e:
                logger.error(str(e))
                return 1
        elif args.text is not None:
            print(engine.resolve(args.text))
        else:
            print(engine.resolve(sys.stdin.read()))

    elif args.command == "roll":
        try:
            print(engine.roll(args.notation))
        except DiceNotationError as e:
            logger.error(str(e))
            return 1

    elif args.command == "sparks":
        print(", ".join(engine.sparks(args.count, args.spark_tables)))

    elif args.command == "context":
        position = PositionContext(shelf_id=args.shelf, book_id=args.book, chapter_id=args.chapter)
        resolutions = engine.resolve_context(args.text, position)
        if not resolutions:
            print("No repository items matched.")
        for resolution in resolutions:
            print(format_resolution(resolution))

    elif args.command == "reset-consumption":
        engine.reset_consumption(args.table)
        print(f"Reset consumption for {args.table or 'all tables'} in story '{config.story_id}'")

    return 0


if __name__ == "__main__":
    sys.exit(main())
