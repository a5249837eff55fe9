"""Character and class schemas for Dice Mice.

These models describe the authoritative character record as read from
storage and the immutable per-level class reference data. They are
frozen: a committed level-up produces a new snapshot rather than
mutating the old one.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from dice_mice.models.enums import Attribute, WillpowerProgression


def ability_modifier(score: int) -> int:
    """Calculate the modifier for an attribute score.

    Args:
        score: Attribute score.

    Returns:
        ``floor((score - 10) / 2)``, so 9 gives -1 and 11 gives 0.
    """
    return (score - 10) // 2


class AttributeSet(BaseModel):
    """The six attribute scores of a character.

    Attributes:
        strength: Strength score (1-30).
        constitution: Constitution score (1-30).
        dexterity: Dexterity score (1-30).
        intelligence: Intelligence score (1-30).
        wisdom: Wisdom score (1-30).
        charisma: Charisma score (1-30).
    """

    model_config = ConfigDict(
        frozen=True,
        strict=True,
        extra="forbid",
    )

    strength: Annotated[int, Field(ge=1, le=30, description="Strength score")]
    constitution: Annotated[int, Field(ge=1, le=30, description="Constitution score")]
    dexterity: Annotated[int, Field(ge=1, le=30, description="Dexterity score")]
    intelligence: Annotated[int, Field(ge=1, le=30, description="Intelligence score")]
    wisdom: Annotated[int, Field(ge=1, le=30, description="Wisdom score")]
    charisma: Annotated[int, Field(ge=1, le=30, description="Charisma score")]

    def get(self, attribute: Attribute | str) -> int:
        """Get the score for an attribute by enum or three-letter key."""
        return getattr(self, Attribute(attribute).field_name)

    def get_modifier(self, attribute: Attribute | str) -> int:
        return ability_modifier(self.get(attribute))

    def as_dict(self) -> dict[Attribute, int]:
        """Return scores keyed by Attribute, in STR..CHA order."""
        return {attribute: self.get(attribute) for attribute in Attribute}

    def resulting_scores(self, changes: Mapping[Attribute | str, int]) -> dict[Attribute, int]:
        """Apply deltas without validating the resulting range.

        Args:
            changes: Per-attribute deltas. Missing attributes are unchanged.

        Returns:
            New scores keyed by Attribute; values may lie outside 1-30.
        """
        deltas = {Attribute(key): value for key, value in changes.items()}
        return {
            attribute: score + deltas.get(attribute, 0)
            for attribute, score in self.as_dict().items()
        }

    def with_changes(self, changes: Mapping[Attribute | str, int]) -> AttributeSet:
        """Return a new set with the deltas applied.

        Raises:
            pydantic.ValidationError: If a resulting score leaves 1-30.
        """
        scores = self.resulting_scores(changes)
        return AttributeSet(**{attribute.field_name: value for attribute, value in scores.items()})

    @classmethod
    def from_abbreviations(cls, scores: Mapping[Attribute | str, int]) -> AttributeSet:
        """Build a set from a ``{"STR": 12, ...}`` mapping."""
        return cls(**{Attribute(key).field_name: value for key, value in scores.items()})


class CharacterClass(BaseModel):
    """A character class.

    Attributes:
        id: Class identifier.
        name: Display name.
        hit_die: Hit die expression such as ``"1d8"``.
        willpower_progression: ``EVEN``, ``EVERY`` or ``NONE``. Stored as
            text so that unknown values survive a round trip.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1, description="Class identifier")
    name: str = Field(min_length=1, max_length=50, description="Class name")
    hit_die: str = Field(default="1d6", description="Hit die expression")
    willpower_progression: str = Field(
        default=WillpowerProgression.NONE,
        description="Willpower progression",
    )


class ClassBaseAttributes(BaseModel):
    """Per-level class reference data.

    Attributes:
        class_id: Owning class.
        level: Level this row applies to.
        attack: Base attack bonus.
        spell_attack: Base spell attack bonus.
        armor_class: Base armor class.
        fortitude: Base fortitude save.
        reflex: Base reflex save.
        will: Base will save.
        damage_bonus: Damage bonus expression, e.g. ``"+1"`` or ``"1d4"``.
        leadership: Leadership score.
        skill_ranks: Skill points granted at this level.
        slayer: Optional slayer bonus expression.
        rage: Optional rage expression.
        brutal_advantage: Optional brutal advantage bonus.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    class_id: str = Field(description="Class identifier")
    level: Annotated[int, Field(ge=1, description="Class level")]
    attack: int = 0
    spell_attack: int = 0
    armor_class: int = 0
    fortitude: int = 0
    reflex: int = 0
    will: int = 0
    damage_bonus: str = "0"
    leadership: int = 0
    skill_ranks: Annotated[int, Field(ge=0)] = 0
    slayer: str | None = None
    rage: str | None = None
    brutal_advantage: int | None = None


class SkillInvestment(BaseModel):
    """Points a character has invested in one skill.

    Attributes:
        skill_id: Skill identifier.
        name: Skill name.
        attribute: Attribute the skill keys off, if any.
        points_invested: Points already committed.
        is_class_skill: Whether the skill belongs to the character's class.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    skill_id: str
    name: str
    attribute: Attribute | None = None
    points_invested: Annotated[int, Field(ge=0)] = 0
    is_class_skill: bool = False


class CharacterSnapshot(BaseModel):
    """Authoritative state of one character at a point in time.

    Attributes:
        id: Character identifier.
        owner: Identifier of the owning user.
        name: Character name.
        level: Current level.
        experience: Cumulative experience points.
        attributes: Attribute scores.
        current_hp: Current hit points.
        max_hp: Maximum hit points.
        character_class: The character's class, if assigned.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1, description="Character identifier")
    owner: str = Field(min_length=1, description="Owning user")
    name: str = Field(min_length=1, max_length=100, description="Character name")
    level: Annotated[int, Field(ge=1, description="Character level")] = 1
    experience: Annotated[int, Field(ge=0, description="Experience points")] = 0
    attributes: AttributeSet
    current_hp: int = Field(default=0, description="Current HP")
    max_hp: Annotated[int, Field(ge=0, description="Maximum HP")] = 0
    character_class: CharacterClass | None = None

    @property
    def hit_die(self) -> str | None:
        """Hit die expression of the character's class."""
        return self.character_class.hit_die if self.character_class else None


# =============================================================================
# Derived Statistics
# =============================================================================


class OffensiveStats(BaseModel):
    """Attack-side statistics.

    Attributes:
        attack: Class attack bonus.
        spell_attack: Class spell attack bonus.
        damage_bonus: Class damage bonus expression.
        initiative: Initiative formula such as ``"2d6+2"``.
    """

    model_config = ConfigDict(frozen=True)

    attack: int
    spell_attack: int
    damage_bonus: str
    initiative: str


class DefensiveStats(BaseModel):
    """Defense-side statistics after attribute modifiers."""

    model_config = ConfigDict(frozen=True)

    armor_class: int
    fortitude: int
    reflex: int
    will: int


class MiscellaneousStats(BaseModel):
    """Willpower and the pass-through class values."""

    model_config = ConfigDict(frozen=True)

    willpower: int
    leadership: int
    skill_ranks: int
    slayer: str | None = None
    rage: str | None = None
    brutal_advantage: int | None = None


class DerivedStats(BaseModel):
    """Every displayed statistic for a character. Computed, never stored."""

    model_config = ConfigDict(frozen=True)

    base_modifiers: dict[Attribute, int]
    offensive: OffensiveStats
    defensive: DefensiveStats
    miscellaneous: MiscellaneousStats


__all__ = [
    "ability_modifier",
    "AttributeSet",
    "CharacterClass",
    "ClassBaseAttributes",
    "SkillInvestment",
    "CharacterSnapshot",
    "OffensiveStats",
    "DefensiveStats",
    "MiscellaneousStats",
    "DerivedStats",
]
