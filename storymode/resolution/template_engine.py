"""
Template execution for the Story Mode engine.

A template is a named block of placeholder text (a character sheet, a
location blurb) expanded through the PlaceholderResolver.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
import json
import logging
import time

from storymode.resolution.placeholder_resolver import PlaceholderResolver

logger = logging.getLogger(__name__)


@dataclass
class Template:
    """A named block of placeholder text."""
    name: str
    content: str
    description: str = ""
    category: str = "General"
    created: int = field(default_factory=lambda: int(time.time() * 1000))
    updated: int = field(default_factory=lambda: int(time.time() * 1000))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "content": self.content,
            "category": self.category,
            "created": self.created,
            "updated": self.updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Template":
        return cls(
            name=data["name"],
            content=data.get("content", ""),
            description=data.get("description", ""),
            category=data.get("category", "General"),
            created=data.get("created", 0),
            updated=data.get("updated", 0),
        )


class TemplateEngine:
    """
    Runs templates through a PlaceholderResolver.

    Keeps a keyed collection of templates, seeded with the defaults.
    """

    def __init__(
        self,
        resolver: Optional[PlaceholderResolver] = None,
        templates: Optional[dict[str, Template]] = None,
    ):
        self.resolver = resolver or PlaceholderResolver()
        self.templates: dict[str, Template] = get_default_templates()
        if templates:
            self.templates.update(templates)

    def execute_template(self, template: Template) -> str:
        return self.resolver.resolve(template.content)

    def execute_template_content(self, content: str) -> str:
        return self.resolver.resolve(content)

    def execute(self, key: str) -> str:
        """
        Execute a stored template by key.

        Raises:
            KeyError: If no template is stored under the key
        """
        template = self.templates.get(key)
        if template is None:
            raise KeyError(f"Unknown template: {key}")
        logger.debug(f"Executing template '{key}'")
        return self.execute_template(template)

    def reset_consumption(self, table_name: Optional[str] = None) -> None:
        self.resolver.reset_consumption(table_name)

    def get_consumed_items(self, table_name: str) -> list[str]:
        return self.resolver.get_consumed_items(table_name)

    def load_templates(self, file_path: Path) -> int:
        """
        Add templates from a JSON object mapping keys to templates.

        Existing templates with the same key are replaced.

        Returns:
            Number of templates loaded
        """
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        for key, entry in data.items():
            self.templates[key] = Template.from_dict(entry)
        logger.info(f"Loaded {len(data)} templates from {file_path}")
        return len(data)


def get_default_templates() -> dict[str, Template]:
    """Templates shipped with the engine; they only use built-in tables."""
    return {
        "character_basic": Template(
            name="Character (Basic)",
            description="A character with name, age, profession and personality",
            content=(
                "Name: {names}\n"
                "Age: {rand 18-65}\n"
                "Profession: {occupations.capitalize}\n"
                "Personality: {traits.pick 2}"
            ),
            category="Character",
        ),
        "location_basic": Template(
            name="Location (Basic)",
            description="A location with name, type and atmosphere",
            content=(
                "Location: {locations}\n"
                "Type: {locationTypes.capitalize}\n"
                "Atmosphere: {atmospheres}\n"
                "Weather: {weather}"
            ),
            category="Location",
        ),
        "location_detailed": Template(
            name="Location (Detailed)",
            description="A location with inhabitants, a secret and treasure",
            content=(
                "Location: {locations}\n"
                "Type: {locationTypes.capitalize}\n"
                "Atmosphere: {atmospheres}\n"
                "Inhabitants: {creatures.plural.pick 2}\n"
                "Secret: {secrets.consumable}\n"
                "Treasure: {treasures} (DC {roll 1d6+10} to find)"
            ),
            category="Location",
        ),
        "quest_basic": Template(
            name="Quest (Basic)",
            description="A quest with objective and reward",
            content=(
                "Objective: {questTypes.capitalize} {creatures.the}\n"
                "Location: {locations}\n"
                "Reward: {roll 2d6+3} gold pieces\n"
                "Deadline: {rand 1-7} days"
            ),
            category="Quest",
        ),
        "encounter_social": Template(
            name="Social Encounter",
            description="An NPC met on the road",
            content=(
                "NPC: {names}, {occupations.article}\n"
                "Mood: {moods}\n"
                "Personality: {traits.pick 2}\n"
                "Complication: {complications}\n"
                "Sparks: {sparks}"
            ),
            category="Encounter",
        ),
    }
