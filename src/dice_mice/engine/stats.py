"""Stat derivation engine.

Turns a level, six attribute scores and a class base-attribute row into
every statistic the character sheet displays. All functions are pure and
never raise for structurally valid input; derived stats are recomputed
on demand and never stored.

Example:
    >>> stats = calculate_all_character_stats(3, attributes, class_row, "EVEN")
    >>> stats.defensive.armor_class
    14
"""

from __future__ import annotations

from dice_mice.engine.initiative import get_initiative_formula
from dice_mice.models.character import (
    AttributeSet,
    CharacterSnapshot,
    ClassBaseAttributes,
    DefensiveStats,
    DerivedStats,
    MiscellaneousStats,
    OffensiveStats,
    ability_modifier,
)
from dice_mice.models.enums import Attribute, WillpowerProgression


def calculate_base_modifiers(attributes: AttributeSet) -> dict[Attribute, int]:
    """Calculate the modifier of every attribute."""
    return {attribute: ability_modifier(score) for attribute, score in attributes.as_dict().items()}


def calculate_offensive_stats(
    attributes: AttributeSet,
    class_attributes: ClassBaseAttributes,
) -> OffensiveStats:
    """Pass class attack values through and derive initiative from DEX."""
    return OffensiveStats(
        attack=class_attributes.attack,
        spell_attack=class_attributes.spell_attack,
        damage_bonus=class_attributes.damage_bonus,
        initiative=get_initiative_formula(attributes.dexterity),
    )


def calculate_defensive_stats(
    attributes: AttributeSet,
    class_attributes: ClassBaseAttributes,
) -> DefensiveStats:
    """Add the better of two attribute modifiers to each class defense.

    AC and reflex use DEX or INT, fortitude uses STR or CON, and will uses
    WIS or CHA.
    """
    mods = calculate_base_modifiers(attributes)
    dex_or_int = max(mods[Attribute.DEX], mods[Attribute.INT])
    return DefensiveStats(
        armor_class=class_attributes.armor_class + dex_or_int,
        fortitude=class_attributes.fortitude + max(mods[Attribute.STR], mods[Attribute.CON]),
        reflex=class_attributes.reflex + dex_or_int,
        will=class_attributes.will + max(mods[Attribute.WIS], mods[Attribute.CHA]),
    )


def _willpower_from_level(level: int, progression: str) -> int:
    normalized = progression.upper()
    if normalized == WillpowerProgression.EVEN:
        return level // 2
    if normalized == WillpowerProgression.EVERY:
        return level
    return 0


def calculate_willpower(
    level: int,
    progression: WillpowerProgression | str,
    attributes: AttributeSet,
) -> int:
    """Calculate willpower for a level and progression mode.

    Args:
        level: Character level.
        progression: ``EVEN`` (half the level, rounded down), ``EVERY``
            (the full level) or ``NONE``. Unknown values count as ``NONE``.
        attributes: Current attribute scores.

    Returns:
        Willpower from level plus the better of the WIS and CHA modifiers.
    """
    return _willpower_from_level(level, str(progression)) + max(
        attributes.get_modifier(Attribute.WIS),
        attributes.get_modifier(Attribute.CHA),
    )


def calculate_miscellaneous_stats(
    level: int,
    attributes: AttributeSet,
    class_attributes: ClassBaseAttributes,
    progression: WillpowerProgression | str,
) -> MiscellaneousStats:
    return MiscellaneousStats(
        willpower=calculate_willpower(level, progression, attributes),
        leadership=class_attributes.leadership,
        skill_ranks=class_attributes.skill_ranks,
        slayer=class_attributes.slayer,
        rage=class_attributes.rage,
        brutal_advantage=class_attributes.brutal_advantage,
    )


def calculate_all_character_stats(
    level: int,
    attributes: AttributeSet,
    class_attributes: ClassBaseAttributes,
    progression: WillpowerProgression | str,
) -> DerivedStats:
    """Derive every displayed statistic at once."""
    return DerivedStats(
        base_modifiers=calculate_base_modifiers(attributes),
        offensive=calculate_offensive_stats(attributes, class_attributes),
        defensive=calculate_defensive_stats(attributes, class_attributes),
        miscellaneous=calculate_miscellaneous_stats(level, attributes, class_attributes, progression),
    )


def derive_character_stats(
    character: CharacterSnapshot,
    class_attributes: ClassBaseAttributes,
) -> DerivedStats:
    """Derive stats for a stored character at its current level."""
    progression = (
        character.character_class.willpower_progression
        if character.character_class
        else WillpowerProgression.NONE
    )
    return calculate_all_character_stats(
        character.level,
        character.attributes,
        class_attributes,
        progression,
    )


# =============================================================================
# Display Helpers
# =============================================================================


def format_modifier(modifier: int) -> str:
    """Format a modifier with an explicit sign ('+2', '-1', '+0')."""
    return f"+{modifier}" if modifier >= 0 else str(modifier)


_WILLPOWER_DESCRIPTIONS: dict[str, str] = {
    WillpowerProgression.EVEN: "Gains willpower on even levels",
    WillpowerProgression.EVERY: "Gains willpower every level",
    WillpowerProgression.NONE: "Does not gain willpower from leveling",
}


def describe_willpower_progression(progression: WillpowerProgression | str) -> str:
    return _WILLPOWER_DESCRIPTIONS.get(str(progression).upper(), "Unknown willpower progression")


def should_display_optional_stat(value: str | int | None) -> bool:
    """Optional class fields are hidden when missing or blank."""
    return value is not None and value != ""


__all__ = [
    "calculate_base_modifiers",
    "calculate_offensive_stats",
    "calculate_defensive_stats",
    "calculate_willpower",
    "calculate_miscellaneous_stats",
    "calculate_all_character_stats",
    "derive_character_stats",
    "format_modifier",
    "describe_willpower_progression",
    "should_display_optional_stat",
]
