"""
Tests for the RNG determinism contract.

Every random draw must go through DiceRoller so a seeded session replays
exactly. These tests trap the module-level random.* functions while the
engine runs, and check that no engine module imports random besides
data_models.
"""

import ast
import random
import sys
import traceback
from pathlib import Path
from typing import Callable

import pytest

from storymode import data_models
from storymode.data_models import DiceRoller
from storymode.resolution.template_engine import TemplateEngine, get_default_templates


# =============================================================================
# CONFIGURATION
# =============================================================================

PACKAGE_DIR = Path(data_models.__file__).parent

# Modules allowed to import random (DiceRoller is the approved RNG wrapper)
ALLOWED_MODULES = {"storymode.data_models"}

TRAPPED_FUNCTIONS = ["randint", "choice", "random", "uniform", "randrange", "shuffle", "sample", "choices"]


# =============================================================================
# RNG DETECTION INFRASTRUCTURE
# =============================================================================


class RandomUsageCollector:
    """Collects raw random.* calls made from engine modules."""

    def __init__(self):
        self.violations: list[tuple[str, str, str]] = []

    def record(self, function_name: str, caller_module: str, stack: str):
        self.violations.append((function_name, caller_module, stack))

    def has_violations(self) -> bool:
        return len(self.violations) > 0

    def format_report(self) -> str:
        lines = ["RAW RANDOM USAGE DETECTED IN ENGINE MODULES:", ""]
        for func, module, stack in self.violations:
            lines.append(f"  {func}() called from {module}")
            for line in stack.strip().split("\n")[-6:]:
                lines.append(f"    {line.strip()}")
            lines.append("")
        lines.append("FIX: Replace random.* calls with DiceRoller")
        return "\n".join(lines)


def create_random_trap(original_func: Callable, function_name: str, collector: RandomUsageCollector) -> Callable:
    """Wrap a random function so calls from engine modules are recorded."""

    def wrapper(*args, **kwargs):
        caller_module = sys._getframe(1).f_globals.get("__name__", "unknown")
        if caller_module.startswith("storymode") and caller_module not in ALLOWED_MODULES:
            collector.record(function_name, caller_module, "".join(traceback.format_stack()))
        return original_func(*args, **kwargs)

    return wrapper


def _imports_random(path: Path) -> bool:
    tree = ast.parse(path.read_text(encoding="utf-8"))
    for node in ast.walk(tree):
        if isinstance(node, ast.Import) and any(a.name.split(".")[0] == "random" for a in node.names):
            return True
        if isinstance(node, ast.ImportFrom) and (node.module or "").split(".")[0] == "random":
            return True
    return False


def _module_name(path: Path) -> str:
    relative = path.relative_to(PACKAGE_DIR.parent).with_suffix("")
    return ".".join(relative.parts)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def trap_random(monkeypatch):
    """Monkeypatch the random module to detect engine usage."""
    collector = RandomUsageCollector()
    for name in TRAPPED_FUNCTIONS:
        monkeypatch.setattr(random, name, create_random_trap(getattr(random, name), f"random.{name}", collector))
    return collector


# =============================================================================
# TESTS
# =============================================================================


class TestRngDeterminismContract:
    """Engine code draws randomness only through DiceRoller."""

    def test_only_data_models_imports_random(self):
        offenders = [
            _module_name(path)
            for path in sorted(PACKAGE_DIR.rglob("*.py"))
            if _imports_random(path) and _module_name(path) not in ALLOWED_MODULES
        ]
        assert offenders == []

    def test_templates_use_dice_roller(self, resolver, seeded_dice, trap_random):
        engine = TemplateEngine(resolver=resolver)
        for key in get_default_templates():
            engine.execute(key)

        if trap_random.has_violations():
            pytest.fail(trap_random.format_report())

    def test_tokens_use_dice_roller(self, resolver, seeded_dice, trap_random):
        resolver.resolve(
            "{rand 1-6} {roll 2d6} {dc 12} {sparks:3} {spark:omens} "
            "{relics.consumable} {treasures} {weather} {names.pick 3}"
        )

        if trap_random.has_violations():
            pytest.fail(trap_random.format_report())


class TestDiceRollerDeterminism:
    """Same seed, same session."""

    def test_resolution_is_deterministic(self, resolver):
        text = "{names} of {locations} rolls {roll 3d6} and finds {treasures}; sparks: {sparks:4}"

        DiceRoller.set_seed(12345)
        first = resolver.resolve(text)
        resolver.reset_consumption()

        DiceRoller.set_seed(12345)
        second = resolver.resolve(text)

        assert first == second
