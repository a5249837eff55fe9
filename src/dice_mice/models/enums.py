"""Enumeration types for Dice Mice character progression."""

from __future__ import annotations

from enum import StrEnum


class Attribute(StrEnum):
    """The six character attributes.

    Values are the three-letter keys used on the wire, e.g. in the
    ``attributeChanges`` object of a level-up request.
    """

    STR = "STR"
    CON = "CON"
    DEX = "DEX"
    INT = "INT"
    WIS = "WIS"
    CHA = "CHA"

    @property
    def field_name(self) -> str:
        """Name of the matching field on AttributeSet (e.g. 'strength')."""
        return _FIELD_NAMES[self]

    @property
    def full_name(self) -> str:
        return self.field_name.capitalize()


_FIELD_NAMES: dict[Attribute, str] = {
    Attribute.STR: "strength",
    Attribute.CON: "constitution",
    Attribute.DEX: "dexterity",
    Attribute.INT: "intelligence",
    Attribute.WIS: "wisdom",
    Attribute.CHA: "charisma",
}


class WillpowerProgression(StrEnum):
    """How a class gains willpower from leveling."""

    EVEN = "EVEN"
    EVERY = "EVERY"
    NONE = "NONE"


class LevelUpStep(StrEnum):
    """Steps of a single-level level-up session.

    The first four are editable in strict forward order; the last three
    are terminal.
    """

    ATTRIBUTES = "attributes"
    SKILLS = "skills"
    HIT_POINTS = "hit_points"
    CONFIRM = "confirm"
    COMMITTED = "committed"
    CANCELLED = "cancelled"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (LevelUpStep.COMMITTED, LevelUpStep.CANCELLED, LevelUpStep.ABORTED)


class SkillRankName(StrEnum):
    """Skill proficiency ranks, lowest to highest."""

    UNSKILLED = "Unskilled"
    SKILLED = "Skilled"
    TRAINED = "Trained"
    EXPERT = "Expert"
    MASTER = "Master"
    LEGENDARY = "Legendary"


class SequenceStatus(StrEnum):
    """Lifecycle of a multi-level level-up sequence."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ABORTED = "aborted"


__all__ = [
    "Attribute",
    "WillpowerProgression",
    "LevelUpStep",
    "SkillRankName",
    "SequenceStatus",
]
