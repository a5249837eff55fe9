"""Initiative dice derived from dexterity.

Initiative is not a flat d20 roll: each DEX modifier maps to its own dice
expression on the initiative chart, and the modifier itself is added on
top. Modifiers beyond the chart are clamped to its ends before lookup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from dice_mice.core.constants import (
    FALLBACK_INITIATIVE_DIE,
    INITIATIVE_CHART,
    MAX_INITIATIVE_MODIFIER,
    MIN_INITIATIVE_MODIFIER,
)
from dice_mice.core.logging import get_logger
from dice_mice.engine.dice import get_default_roller
from dice_mice.models.character import ability_modifier


if TYPE_CHECKING:
    from dice_mice.engine.dice import DiceExpression, DiceRoller


logger = get_logger(__name__)


@dataclass(frozen=True)
class InitiativeEntry:
    """One row of the initiative chart."""

    modifier: int
    dice: str
    formula: str


def _with_modifier(dice: str, modifier: int) -> str:
    if modifier > 0:
        return f"{dice}+{modifier}"
    if modifier < 0:
        return f"{dice}{modifier}"
    return dice


def get_initiative_dice_from_modifier(dex_modifier: int) -> str | None:
    """Look up the initiative dice for a DEX modifier, clamped to the chart."""
    clamped = max(MIN_INITIATIVE_MODIFIER, min(MAX_INITIATIVE_MODIFIER, dex_modifier))
    return INITIATIVE_CHART.get(clamped)


def get_initiative_dice_from_score(dex_score: int) -> str | None:
    return get_initiative_dice_from_modifier(ability_modifier(dex_score))


def get_initiative_formula(dex_score: int) -> str:
    """Build the initiative formula for a DEX score.

    Args:
        dex_score: Current dexterity score.

    Returns:
        Dice plus signed modifier, e.g. ``"2d6+2"`` or ``"2d4-1"``. A zero
        modifier is omitted (``"1d10"``). If no chart entry exists the
        formula falls back to ``1d20`` with an always-signed modifier.

    Example:
        >>> get_initiative_formula(14)
        '2d6+2'
    """
    dex_modifier = ability_modifier(dex_score)
    dice = get_initiative_dice_from_modifier(dex_modifier)
    if dice is None:
        sign = "+" if dex_modifier >= 0 else ""
        return f"{FALLBACK_INITIATIVE_DIE}{sign}{dex_modifier}"
    return _with_modifier(dice, dex_modifier)


def get_all_initiative_data() -> list[InitiativeEntry]:
    """List every chart row with its formula, lowest modifier first."""
    return [
        InitiativeEntry(
            modifier=modifier,
            dice=INITIATIVE_CHART[modifier],
            formula=_with_modifier(INITIATIVE_CHART[modifier], modifier),
        )
        for modifier in range(MIN_INITIATIVE_MODIFIER, MAX_INITIATIVE_MODIFIER + 1)
    ]


def is_valid_dex_modifier(dex_modifier: int) -> bool:
    return MIN_INITIATIVE_MODIFIER <= dex_modifier <= MAX_INITIATIVE_MODIFIER


def get_initiative_description(dex_score: int) -> str:
    """Human-readable initiative summary, e.g. for a character sheet."""
    dex_modifier = ability_modifier(dex_score)
    sign = "+" if dex_modifier >= 0 else ""
    return (
        f"Initiative: {get_initiative_formula(dex_score)} "
        f"(DEX {dex_score}, modifier {sign}{dex_modifier})"
    )


def roll_initiative(dex_score: int, roller: DiceRoller | None = None) -> DiceExpression:
    """Roll initiative for a DEX score.

    Args:
        dex_score: Current dexterity score.
        roller: Roller to use; defaults to the shared roller.

    Returns:
        The rolled initiative.
    """
    formula = get_initiative_formula(dex_score)
    result = (roller or get_default_roller()).roll(formula)
    logger.info("Initiative rolled", dex_score=dex_score, formula=formula, total=result.total)
    return result


__all__ = [
    "InitiativeEntry",
    "get_initiative_dice_from_modifier",
    "get_initiative_dice_from_score",
    "get_initiative_formula",
    "get_all_initiative_data",
    "is_valid_dex_modifier",
    "get_initiative_description",
    "roll_initiative",
]
