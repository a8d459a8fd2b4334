"""
Unit tests for dice rolling system.

Tests the DiceRoller class and DiceResult from storymode/data_models.py.
"""

import pytest
from storymode.data_models import (
    MAX_DICE,
    MAX_SIDES,
    DiceNotationError,
    DiceResult,
    DiceRoller,
)


class TestDiceRoller:
    """Tests for DiceRoller class."""

    def test_singleton_pattern(self):
        """Test that DiceRoller is a singleton."""
        roller1 = DiceRoller()
        roller2 = DiceRoller()
        assert roller1 is roller2

    def test_roll_basic_d6(self, seeded_dice):
        """Test rolling a basic d6."""
        result = seeded_dice.roll("1d6", "test roll")
        assert isinstance(result, DiceResult)
        assert 1 <= result.total <= 6
        assert len(result.rolls) == 1

    def test_roll_multiple_dice(self, seeded_dice):
        """Test rolling multiple dice."""
        result = seeded_dice.roll("3d6", "attribute roll")
        assert len(result.rolls) == 3
        assert all(1 <= r <= 6 for r in result.rolls)
        assert result.total == sum(result.rolls)

    def test_roll_with_positive_modifier(self, seeded_dice):
        """Test rolling with positive modifier."""
        result = seeded_dice.roll("1d20+5", "check")
        assert result.modifier == 5
        assert result.total == result.rolls[0] + 5

    def test_roll_with_negative_modifier(self, seeded_dice):
        """Test rolling with negative modifier."""
        result = seeded_dice.roll("1d8-2", "weak roll")
        assert result.modifier == -2
        assert result.total == result.rolls[0] - 2

    def test_implicit_single_die(self, seeded_dice):
        """'d6' means one die."""
        result = seeded_dice.roll("d6")
        assert len(result.rolls) == 1

    def test_whitespace_and_case_tolerated(self, seeded_dice):
        result = seeded_dice.roll(" 2D1 + 3 ")
        assert result.total == 5
        assert result.notation == "2D1 + 3"

    def test_seeded_reproducibility(self):
        """Test that seeded rolls are reproducible."""
        DiceRoller.set_seed(12345)
        first_results = [DiceRoller.roll("1d6", "test").total for _ in range(5)]

        DiceRoller.set_seed(12345)
        second_results = [DiceRoller.roll("1d6", "test").total for _ in range(5)]

        assert first_results == second_results
        assert DiceRoller.get_seed() == 12345

    def test_roll_log(self, clean_dice):
        """Test that rolls are logged."""
        DiceRoller.roll("1d6", "first")
        DiceRoller.roll("2d6", "second")

        log = DiceRoller.get_roll_log()
        assert len(log) == 2
        assert log[0].reason == "first"
        assert log[1].reason == "second"

    def test_clear_roll_log(self, clean_dice):
        DiceRoller.roll("1d6")
        DiceRoller.clear_roll_log()
        assert DiceRoller.get_roll_log() == []


class TestDiceNotation:
    """Tests for parsing and validating dice notation."""

    @pytest.mark.parametrize("notation", ["", "banana", "2d", "d", "1d6+", "1d6*2", "0d6", "1d0"])
    def test_invalid_notation_raises(self, notation):
        with pytest.raises(DiceNotationError):
            DiceRoller.parse(notation)

    def test_error_is_value_error(self):
        """Callers catching ValueError also catch notation errors."""
        with pytest.raises(ValueError):
            DiceRoller.roll("not dice")

    def test_dice_count_limit(self):
        with pytest.raises(DiceNotationError):
            DiceRoller.parse(f"{MAX_DICE + 1}d6")

    def test_sides_limit(self):
        with pytest.raises(DiceNotationError):
            DiceRoller.parse(f"1d{MAX_SIDES + 1}")

    def test_limits_themselves_allowed(self):
        spec = DiceRoller.parse(f"{MAX_DICE}d{MAX_SIDES}")
        assert spec.num_dice == MAX_DICE
        assert spec.sides == MAX_SIDES

    def test_is_valid(self):
        assert DiceRoller.is_valid("3d6+2")
        assert not DiceRoller.is_valid("3x6")

    def test_bounds(self):
        assert DiceRoller.bounds("2d6") == (2, 12)
        assert DiceRoller.bounds("1d20+5") == (6, 25)
        assert DiceRoller.bounds("3d4-3") == (0, 9)


class TestRandomHelpers:
    """Tests for randint and choice."""

    def test_randint_inclusive(self, seeded_dice):
        values = {DiceRoller.randint(1, 3) for _ in range(200)}
        assert values == {1, 2, 3}

    def test_randint_negative_range(self, seeded_dice):
        value = DiceRoller.randint(-5, -5)
        assert value == -5

    def test_randint_is_logged(self, clean_dice):
        DiceRoller.randint(4, 9, "range check")
        entry = DiceRoller.get_roll_log()[-1]
        assert entry.notation == "range(4-9)"
        assert entry.reason == "range check"

    def test_choice_returns_member(self, seeded_dice):
        options = ["a", "b", "c"]
        assert DiceRoller.choice(options) in options

    def test_choice_empty_raises(self):
        with pytest.raises(IndexError):
            DiceRoller.choice([])


class TestDiceResult:
    """Tests for DiceResult formatting."""

    def test_str_with_positive_modifier(self):
        result = DiceResult(notation="1d6+2", rolls=[4], modifier=2, total=6, reason="")
        assert str(result) == "1d6+2: [4] + 2 = 6"

    def test_str_with_negative_modifier(self):
        result = DiceResult(notation="1d6-1", rolls=[4], modifier=-1, total=3, reason="")
        assert str(result) == "1d6-1: [4] - 1 = 3"

    def test_str_without_modifier(self):
        result = DiceResult(notation="2d6", rolls=[3, 4], modifier=0, total=7, reason="")
        assert str(result) == "2d6: [3, 4] = 7"
