"""Hit point gain rules for a level-up.

In normal mode the gain is one hit die, and any draw at or below the
constitution modifier is rerolled until it beats the modifier or shows
the die's maximum. A manual entry follows the same bounds but only warns
about a low roll instead of rejecting it. Advanced mode accepts any
manual gain from 1 to 50.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from dice_mice.core.constants import MAX_ADVANCED_HP_GAIN
from dice_mice.core.logging import get_logger


if TYPE_CHECKING:
    from dice_mice.engine.dice import DiceRoller


logger = get_logger(__name__)

LOW_ROLL_WARNING = "Low roll - would normally be rerolled"
VALID_GAIN_MESSAGE = "Valid HP gain"


@dataclass(frozen=True)
class HitPointRoll:
    """Result of an automatic hit point roll.

    Attributes:
        result: The HP gain (the final draw).
        rolls: Every draw in order, rerolls included.
        forced_max: True when the CON modifier made rolling pointless.
    """

    result: int
    rolls: tuple[int, ...]
    forced_max: bool = False


@dataclass(frozen=True)
class ManualHitPointEntry:
    """Assessment of a manually entered HP gain.

    Attributes:
        value: The entered value.
        accepted: Whether the value may be used as the gain.
        should_have_rerolled: Normal mode only; the value is at or below the
            CON modifier and would have been rerolled.
        message: Feedback for the user.
    """

    value: int
    accepted: bool
    should_have_rerolled: bool
    message: str


def roll_hit_points(sides: int, con_modifier: int, roller: DiceRoller) -> HitPointRoll:
    """Roll a hit die applying the constitution reroll rule.

    Args:
        sides: Hit die size.
        con_modifier: CON modifier including any pending CON change.
        roller: Source of die draws.

    Returns:
        The final draw and the full roll history. If the modifier is at
        least the die size the result is the maximum and nothing is rolled.
    """
    if con_modifier >= sides:
        logger.info("HP roll forced to maximum", sides=sides, con_modifier=con_modifier)
        return HitPointRoll(result=sides, rolls=(), forced_max=True)

    draw = roller.roll_die(sides)
    rolls = [draw]
    while draw <= con_modifier and draw < sides:
        draw = roller.roll_die(sides)
        rolls.append(draw)

    logger.info("HP rolled", sides=sides, con_modifier=con_modifier, rolls=rolls, result=draw)
    return HitPointRoll(result=draw, rolls=tuple(rolls))


def evaluate_manual_hit_points(
    value: int,
    *,
    sides: int,
    con_modifier: int,
    advanced_mode: bool,
    hit_die: str | None = None,
) -> ManualHitPointEntry:
    """Check a manually entered HP gain.

    Args:
        value: Entered gain.
        sides: Hit die size.
        con_modifier: CON modifier including any pending CON change.
        advanced_mode: Whether the advanced 1-50 range applies.
        hit_die: Hit die text used in the over-maximum message.

    Returns:
        Whether the value is accepted, with a message for the user.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return ManualHitPointEntry(value, False, False, "Enter a whole number")
    if value < 1:
        return ManualHitPointEntry(value, False, False, "Enter a positive number")

    if advanced_mode:
        if value > MAX_ADVANCED_HP_GAIN:
            return ManualHitPointEntry(
                value, False, False, f"Maximum {MAX_ADVANCED_HP_GAIN} HP in advanced mode"
            )
        return ManualHitPointEntry(value, True, False, VALID_GAIN_MESSAGE)

    if value > sides:
        return ManualHitPointEntry(
            value, False, False, f"Maximum {sides} HP for {hit_die or f'1d{sides}'}"
        )
    if value <= con_modifier < sides:
        return ManualHitPointEntry(value, True, True, LOW_ROLL_WARNING)
    return ManualHitPointEntry(value, True, False, VALID_GAIN_MESSAGE)


__all__ = [
    "LOW_ROLL_WARNING",
    "VALID_GAIN_MESSAGE",
    "HitPointRoll",
    "ManualHitPointEntry",
    "roll_hit_points",
    "evaluate_manual_hit_points",
]
