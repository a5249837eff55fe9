"""Dice rolling backed by the d20 library.

Every random draw in the progression engine (hit point rolls, initiative
rolls) goes through ``DiceRoller`` so tests can substitute a scripted
roller and production code can seed for reproducibility.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any

import d20

from dice_mice.core.exceptions import DiceRollError
from dice_mice.core.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class DiceExpression:
    """The outcome of rolling a dice expression.

    Attributes:
        expression: The dice expression that was rolled.
        total: The total result of the roll.
        dice: Individual kept dice results.
        modifier: Static modifier applied.
    """

    expression: str
    total: int
    dice: list[int]
    modifier: int


class DiceRoller:
    """Dice rolling through d20.

    Example:
        >>> roller = DiceRoller(seed=7)
        >>> result = roller.roll("2d6+2")
        >>> print(f"Total: {result.total}")
    """

    def __init__(self, *, seed: int | None = None) -> None:
        """Initialize the dice roller.

        Args:
            seed: Optional random seed for reproducible rolls.
        """
        self._seed = seed
        if seed is not None:
            random.seed(seed)
        logger.debug("DiceRoller initialized", seed=seed)

    def roll(self, expression: str) -> DiceExpression:
        """Roll dice according to the given expression.

        Args:
            expression: Dice expression (e.g., '1d10', '2d6+3', '3d4-1').

        Returns:
            DiceExpression containing roll results.

        Raises:
            DiceRollError: If the expression is empty or invalid.
        """
        if not expression or not expression.strip():
            raise DiceRollError("Empty dice expression", expression=expression)

        try:
            result: d20.RollResult = d20.roll(expression)
        except d20.RollError as exc:
            raise DiceRollError(
                f"Invalid dice expression: {exc}",
                expression=expression,
            ) from exc

        dice_values = self._extract_dice_values(result.expr)
        rolled = DiceExpression(
            expression=expression,
            total=result.total,
            dice=dice_values,
            modifier=result.total - sum(dice_values),
        )
        logger.debug("Dice rolled", expression=expression, total=result.total)
        return rolled

    def roll_die(self, sides: int) -> int:
        """Roll a single die and return its face.

        Raises:
            DiceRollError: If ``sides`` is not positive.
        """
        if sides < 1:
            raise DiceRollError(f"A die needs at least one side, got {sides}", expression=f"1d{sides}")
        return self.roll(f"1d{sides}").total

    def _extract_dice_values(self, expr: Any) -> list[int]:
        values: list[int] = []

        def traverse(node: Any) -> None:
            if isinstance(node, d20.Dice):
                for die in node.values:
                    if die.kept:
                        values.append(die.number)
            elif hasattr(node, "children"):
                for child in node.children:
                    traverse(child)

        traverse(expr)
        return values


# Module-level convenience roller
_default_roller: DiceRoller | None = None


def get_default_roller() -> DiceRoller:
    """Get the shared roller used when callers do not inject one."""
    global _default_roller
    if _default_roller is None:
        _default_roller = DiceRoller()
    return _default_roller


def roll(expression: str) -> DiceExpression:
    """Convenience function to roll dice with the shared roller.

    Example:
        >>> result = roll("1d20+5")
        >>> 6 <= result.total <= 25
        True
    """
    return get_default_roller().roll(expression)


__all__ = [
    "DiceExpression",
    "DiceRoller",
    "get_default_roller",
    "roll",
]
