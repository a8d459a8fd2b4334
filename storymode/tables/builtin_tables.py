"""
Built-in tables shipped with the Story Mode engine.

Contains the general-purpose random tables referenced by the default
templates, the DC outcome table, and the default spark keyword pool.
"""

from storymode.data_models import DiceRoller
from storymode.tables.table_types import (
    GeneratedDescription,
    LiteralDescription,
    RandomTable,
    SparkTable,
    TableRow,
)


DC_TABLE_NAME = "dc"
DEFAULT_SPARK_TABLE_NAME = "default"


NAMES = [
    "Aldric", "Brenna", "Corwin", "Dagny", "Elowen", "Fenwick", "Greta", "Hollis",
    "Isolde", "Jory", "Kestrel", "Lorcan", "Maren", "Nyle", "Orla", "Piers",
    "Quilla", "Rowan", "Sable", "Tamsin",
]

OCCUPATIONS = [
    "blacksmith", "innkeeper", "merchant", "scholar", "farmer", "hunter",
    "sailor", "priest", "alchemist", "guard", "thief", "bard",
]

TRAITS = [
    "curious", "stubborn", "generous", "suspicious", "cheerful", "brooding",
    "honest", "cunning", "reckless", "patient", "proud", "timid",
]

MOODS = ["calm", "anxious", "elated", "irritable", "melancholy", "wary"]

LOCATIONS = [
    "the old mill", "a crossroads shrine", "the harbour market", "a ruined watchtower",
    "the king's road", "a flooded cellar", "the salt marsh", "a hillside monastery",
]

LOCATION_TYPES = ["village", "ruin", "forest", "cave", "keep", "town"]

ATMOSPHERES = ["eerie", "bustling", "desolate", "festive", "tense", "serene"]

CREATURES = [
    "wolf", "goblin", "wraith", "giant spider", "bandit", "troll",
    "wyvern", "bog hag",
]

SECRETS = [
    "a hidden trapdoor", "a forged letter", "a buried idol", "an old debt",
    "a stolen crown", "a sealed crypt",
]

COMPLICATIONS = [
    "a rival party", "a sudden storm", "a broken bridge", "a false guide",
    "a plague quarantine", "a local feud",
]

QUEST_TYPES = ["find", "deliver", "defeat", "collect", "investigate", "hunt", "explore"]

WEATHER = [
    "clear skies", "light drizzle", "thick fog", "howling wind", "heavy rain", "a thunderstorm",
]

DEFAULT_SPARK_KEYWORDS = [
    "mysterious", "ancient", "forbidden", "hidden", "sacred", "cursed",
    "powerful", "dangerous", "magical", "divine", "demonic", "ethereal",
    "betrayal", "alliance", "secret", "treasure", "enemy", "friend",
    "journey", "quest", "discovery", "loss", "victory", "defeat",
    "dark", "light", "shadow", "flame", "storm", "calm",
    "broken", "whole", "twisted", "pure", "corrupt", "noble",
]


def _coin_purse() -> str:
    amount = DiceRoller.roll("2d6", "coin purse").total
    return f"{amount} silver coins"


def create_treasure_table() -> RandomTable:
    """Create the 1d6 treasure table; the low result is generated per roll."""
    return RandomTable(
        name="treasures",
        dice_formula="1d6",
        description="Loot found on a body or in a cache",
        rows=[
            TableRow(min=None, max=2, description=GeneratedDescription(_coin_purse, "coin purse")),
            TableRow(min=3, max=4, description=LiteralDescription("a silver ring")),
            TableRow(min=5, max=5, description=LiteralDescription("a jewelled dagger")),
            TableRow(min=6, max=None, description=LiteralDescription("a {creatures} skull carved with runes")),
        ],
    )


def create_weather_table() -> RandomTable:
    """Create the 2d6 weather table, weighted toward mild conditions."""
    return RandomTable(
        name="weather",
        dice_formula="2d6",
        description="Weather for the current scene",
        rows=[
            TableRow(min=None, max=3, description=LiteralDescription(WEATHER[5])),
            TableRow(min=4, max=5, description=LiteralDescription(WEATHER[4])),
            TableRow(min=6, max=6, description=LiteralDescription(WEATHER[3])),
            TableRow(min=7, max=8, description=LiteralDescription(WEATHER[0])),
            TableRow(min=9, max=10, description=LiteralDescription(WEATHER[1])),
            TableRow(min=11, max=None, description=LiteralDescription(WEATHER[2])),
        ],
    )


def create_dc_table() -> RandomTable:
    """
    Create the d20 DC outcome table.

    Bounds are offsets from the difficulty supplied at roll time.
    """
    return RandomTable(
        name=DC_TABLE_NAME,
        dice_formula="1d20",
        description="Outcome of a check against a difficulty class",
        rows=[
            TableRow(min=None, max="-6", description=LiteralDescription("Critical failure")),
            TableRow(min="-5", max="-1", description=LiteralDescription("Failure")),
            TableRow(min="+0", max="+4", description=LiteralDescription("Success")),
            TableRow(min="+5", max=None, description=LiteralDescription("Critical success")),
        ],
    )


def create_builtin_tables() -> dict[str, RandomTable]:
    """Build the full set of built-in random tables, keyed by lookup name."""
    tables = [
        RandomTable.from_entries("names", NAMES, description="Given names"),
        RandomTable.from_entries("occupations", OCCUPATIONS, description="Trades and callings"),
        RandomTable.from_entries("traits", TRAITS, description="Personality traits"),
        RandomTable.from_entries("moods", MOODS, description="Current mood"),
        RandomTable.from_entries("locations", LOCATIONS, description="Named places"),
        RandomTable.from_entries("locationTypes", LOCATION_TYPES, description="Kinds of place"),
        RandomTable.from_entries("atmospheres", ATMOSPHERES, description="Scene atmosphere"),
        RandomTable.from_entries("creatures", CREATURES, description="Creatures and foes"),
        RandomTable.from_entries("secrets", SECRETS, description="Hidden things", consumable=True),
        RandomTable.from_entries("complications", COMPLICATIONS, description="Plot complications"),
        RandomTable.from_entries("questTypes", QUEST_TYPES, description="Quest verbs"),
        create_treasure_table(),
        create_weather_table(),
    ]
    return {table.name: table for table in tables}


def create_default_spark_table() -> SparkTable:
    """Create the built-in default spark table."""
    return SparkTable(
        name=DEFAULT_SPARK_TABLE_NAME,
        entries=list(DEFAULT_SPARK_KEYWORDS),
        weight=1,
        oracle_enabled=True,
        sparks_enabled=True,
        categories=["general"],
        is_default=True,
        enabled=True,
        source="built-in",
    )
