"""Progression engine: stat derivation, dice, and the level-up state machine."""

from __future__ import annotations

from dice_mice.engine.dice import DiceExpression, DiceRoller, roll
from dice_mice.engine.hit_points import (
    HitPointRoll,
    ManualHitPointEntry,
    evaluate_manual_hit_points,
    roll_hit_points,
)
from dice_mice.engine.initiative import get_initiative_formula, roll_initiative
from dice_mice.engine.level_up import (
    CommitOutcome,
    LevelUpGateway,
    LevelUpPreview,
    LevelUpSession,
    ProgressionDataSource,
)
from dice_mice.engine.sequence import LevelUpSequence, QueuedLevelUp, build_level_up_queue
from dice_mice.engine.stats import calculate_all_character_stats, derive_character_stats

__all__ = [
    # Dice
    "DiceExpression",
    "DiceRoller",
    "roll",
    # Hit points
    "HitPointRoll",
    "ManualHitPointEntry",
    "roll_hit_points",
    "evaluate_manual_hit_points",
    # Stats
    "get_initiative_formula",
    "roll_initiative",
    "calculate_all_character_stats",
    "derive_character_stats",
    # Level-up
    "CommitOutcome",
    "LevelUpGateway",
    "LevelUpPreview",
    "LevelUpSession",
    "ProgressionDataSource",
    "LevelUpSequence",
    "QueuedLevelUp",
    "build_level_up_queue",
]
