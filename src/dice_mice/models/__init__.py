"""Pydantic schemas and static rule tables for character progression."""

from __future__ import annotations

from dice_mice.models.character import (
    AttributeSet,
    CharacterClass,
    CharacterSnapshot,
    ClassBaseAttributes,
    DefensiveStats,
    DerivedStats,
    MiscellaneousStats,
    OffensiveStats,
    SkillInvestment,
    ability_modifier,
)
from dice_mice.models.enums import (
    Attribute,
    LevelUpStep,
    SequenceStatus,
    SkillRankName,
    WillpowerProgression,
)
from dice_mice.models.level_up import (
    AbortedState,
    AttributeChanges,
    AttributesState,
    CancelledState,
    CommittedState,
    ConfirmState,
    HitPointsState,
    LevelUpRequest,
    LevelUpState,
    SkillsState,
)

__all__ = [
    # Character
    "AttributeSet",
    "CharacterClass",
    "CharacterSnapshot",
    "ClassBaseAttributes",
    "SkillInvestment",
    "ability_modifier",
    # Derived stats
    "OffensiveStats",
    "DefensiveStats",
    "MiscellaneousStats",
    "DerivedStats",
    # Enums
    "Attribute",
    "LevelUpStep",
    "SequenceStatus",
    "SkillRankName",
    "WillpowerProgression",
    # Level-up
    "AttributeChanges",
    "LevelUpRequest",
    "LevelUpState",
    "AttributesState",
    "SkillsState",
    "HitPointsState",
    "ConfirmState",
    "CommittedState",
    "CancelledState",
    "AbortedState",
]
