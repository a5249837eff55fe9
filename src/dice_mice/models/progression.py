"""Level progression reference data.

This module holds the static rules a level-up is checked against:

- experience needed for each level
- attribute caps by level and mode
- hit die parsing
- skill ranks and the level each one unlocks at

Both the level-up controller and the commit service read from here, so
the client and server apply identical limits.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from dice_mice.core.constants import (
    ADVANCED_ATTRIBUTE_CAP,
    ATTRIBUTE_CAP_THRESHOLDS,
    BASE_ATTRIBUTE_CAP,
    DEFAULT_HIT_DIE,
    EXPERIENCE_CHART,
    MAX_LEVEL,
)
from dice_mice.core.exceptions import ValidationError
from dice_mice.models.character import ability_modifier
from dice_mice.models.enums import SkillRankName


# =============================================================================
# Experience
# =============================================================================


@dataclass(frozen=True)
class ExperienceProgress:
    """Where a character stands between two levels.

    Attributes:
        current_level: Level implied by the experience total.
        next_level: The following level, or None at the maximum.
        experience_to_next: Points still needed (0 at the maximum).
        experience_for_current_level: Threshold of the current level.
        experience_for_next_level: Threshold of the next level, if any.
        progress_percent: Progress through the current level, clamped 0-100.
    """

    current_level: int
    next_level: int | None
    experience_to_next: int
    experience_for_current_level: int
    experience_for_next_level: int | None
    progress_percent: float


def get_level_from_experience(experience: int) -> int:
    """Determine the level a given experience total reaches."""
    level = 1
    for candidate in range(2, MAX_LEVEL + 1):
        if experience < EXPERIENCE_CHART[candidate]:
            break
        level = candidate
    return level


def get_experience_for_level(level: int) -> int:
    """Get the experience threshold for a level.

    Raises:
        ValidationError: If the level is outside 1..MAX_LEVEL.
    """
    if level < 1 or level > MAX_LEVEL:
        raise ValidationError(
            f"Level must be between 1 and {MAX_LEVEL}",
            field_name="level",
            invalid_value=level,
        )
    return EXPERIENCE_CHART[level]


def get_experience_to_next_level(experience: int) -> ExperienceProgress:
    """Summarize progress toward the next level for display."""
    current_level = get_level_from_experience(experience)
    next_level = current_level + 1 if current_level < MAX_LEVEL else None

    current_threshold = get_experience_for_level(current_level)
    next_threshold = get_experience_for_level(next_level) if next_level else None

    if next_threshold is None:
        return ExperienceProgress(
            current_level=current_level,
            next_level=None,
            experience_to_next=0,
            experience_for_current_level=current_threshold,
            experience_for_next_level=None,
            progress_percent=100.0,
        )

    percent = (experience - current_threshold) / (next_threshold - current_threshold) * 100
    return ExperienceProgress(
        current_level=current_level,
        next_level=next_level,
        experience_to_next=next_threshold - experience,
        experience_for_current_level=current_threshold,
        experience_for_next_level=next_threshold,
        progress_percent=min(100.0, max(0.0, percent)),
    )


def should_level_up(current_level: int, experience: int) -> bool:
    """Check whether an experience total outruns the stored level."""
    return get_level_from_experience(experience) > current_level


def get_all_levels_with_experience() -> list[tuple[int, int]]:
    """Get ``(level, experience)`` pairs for the whole chart."""
    return sorted(EXPERIENCE_CHART.items())


# =============================================================================
# Attribute Caps
# =============================================================================


def get_attribute_cap(level: int, advanced_mode: bool = False) -> int:
    """Maximum attribute score allowed at a level.

    Normal mode caps at 18 below level 4, 20 from 4, 22 from 8 and 24 from
    12. Advanced mode uses a flat 30.
    """
    if advanced_mode:
        return ADVANCED_ATTRIBUTE_CAP
    for min_level, cap in ATTRIBUTE_CAP_THRESHOLDS:
        if level >= min_level:
            return cap
    return BASE_ATTRIBUTE_CAP


# =============================================================================
# Hit Dice
# =============================================================================

_HIT_DIE_PATTERN = re.compile(r"1d(\d+)")


def parse_hit_die(hit_die: str | None) -> int:
    """Extract the die size from a hit die such as ``"1d8"``.

    Unparseable or missing values fall back to a d6.
    """
    if not hit_die:
        return DEFAULT_HIT_DIE
    match = _HIT_DIE_PATTERN.search(hit_die)
    if match is None:
        return DEFAULT_HIT_DIE
    sides = int(match.group(1))
    return sides if sides > 0 else DEFAULT_HIT_DIE


# =============================================================================
# Skill Ranks
# =============================================================================

NEVER_AVAILABLE = 999
"""Level requirement marking a rank as unreachable."""


@dataclass(frozen=True)
class SkillRank:
    """A skill rank and the level needed to reach it.

    Attributes:
        name: Rank name.
        bonus: Flat bonus granted.
        points_required: Points invested to reach the rank.
        min_level: Level needed for a class skill.
        min_level_non_class: Level needed for a non-class skill.
    """

    name: SkillRankName
    bonus: int
    points_required: int
    min_level: int
    min_level_non_class: int

    def required_level(self, is_class_skill: bool) -> int:
        return self.min_level if is_class_skill else self.min_level_non_class


SKILL_RANKS: tuple[SkillRank, ...] = (
    SkillRank(SkillRankName.UNSKILLED, 0, 0, 1, 1),
    SkillRank(SkillRankName.SKILLED, 2, 1, 1, 1),
    SkillRank(SkillRankName.TRAINED, 4, 2, 1, 4),
    SkillRank(SkillRankName.EXPERT, 7, 3, 4, 7),
    SkillRank(SkillRankName.MASTER, 10, 4, 7, 10),
    SkillRank(SkillRankName.LEGENDARY, 14, 5, 10, NEVER_AVAILABLE),
)
"""Ranks ordered by points required."""


@dataclass(frozen=True)
class SkillPointSummary:
    """Skill point budget for a level."""

    available: int
    spent: int

    @property
    def remaining(self) -> int:
        return self.available - self.spent


def get_skill_rank(points_invested: int) -> SkillRank:
    """Get the highest rank the invested points reach."""
    for rank in reversed(SKILL_RANKS):
        if points_invested >= rank.points_required:
            return rank
    return SKILL_RANKS[0]


def calculate_skill_bonus(points_invested: int) -> int:
    return get_skill_rank(points_invested).bonus


def calculate_total_skill_bonus(points_invested: int, attribute_score: int) -> int:
    """Rank bonus plus the associated attribute's modifier."""
    return calculate_skill_bonus(points_invested) + ability_modifier(attribute_score)


def can_invest_in_skill_rank(
    current_points: int,
    target_points: int,
    level: int,
    is_class_skill: bool,
) -> bool:
    """Check whether a skill may be raised to ``target_points`` at a level.

    Lowering points is always allowed.
    """
    if target_points <= current_points:
        return True
    return level >= get_skill_rank(target_points).required_level(is_class_skill)


def get_max_skill_points(level: int, is_class_skill: bool) -> int:
    """Most points a skill may hold at a level."""
    max_points = 0
    for rank in SKILL_RANKS:
        required = rank.required_level(is_class_skill)
        if required < NEVER_AVAILABLE and level >= required:
            max_points = rank.points_required
    return max_points


def get_next_skill_rank(
    current_points: int,
    level: int,
    is_class_skill: bool,
) -> SkillRank | None:
    """Get the next rank above ``current_points`` reachable at a level."""
    for rank in SKILL_RANKS:
        if rank.points_required <= current_points:
            continue
        required = rank.required_level(is_class_skill)
        if required < NEVER_AVAILABLE and level >= required:
            return rank
    return None


def calculate_skill_points(skill_ranks_at_level: int, total_spent: int) -> SkillPointSummary:
    return SkillPointSummary(available=skill_ranks_at_level, spent=total_spent)


__all__ = [
    "ExperienceProgress",
    "get_level_from_experience",
    "get_experience_for_level",
    "get_experience_to_next_level",
    "should_level_up",
    "get_all_levels_with_experience",
    "get_attribute_cap",
    "parse_hit_die",
    "NEVER_AVAILABLE",
    "SkillRank",
    "SKILL_RANKS",
    "SkillPointSummary",
    "get_skill_rank",
    "calculate_skill_bonus",
    "calculate_total_skill_bonus",
    "can_invest_in_skill_rank",
    "get_max_skill_points",
    "get_next_skill_rank",
    "calculate_skill_points",
]
