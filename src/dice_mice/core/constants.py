"""Rule constants for character progression.

Every number the level-up rules depend on lives here so the client-side
controller and the server-side commit validation read the same values.
"""

from __future__ import annotations

# =============================================================================
# Attribute Rules
# =============================================================================

MIN_ATTRIBUTE_SCORE = 1
"""Lowest score any attribute may hold after a level-up."""

BASE_ATTRIBUTE_CAP = 18
"""Attribute cap for levels 1-3 in normal mode."""

ADVANCED_ATTRIBUTE_CAP = 30
"""Flat attribute cap in advanced mode."""

ATTRIBUTE_CAP_THRESHOLDS: tuple[tuple[int, int], ...] = (
    (12, 24),
    (8, 22),
    (4, 20),
)
"""(minimum level, cap) pairs checked from highest level down."""

NORMAL_ATTRIBUTE_POINTS = 2
"""Attribute points granted per level in normal mode."""

NORMAL_MAX_ATTRIBUTES_TOUCHED = 2
"""Distinct attributes that may be raised in one normal level-up."""

NORMAL_MAX_POINTS_PER_ATTRIBUTE = 1
"""Points a single attribute may receive in one normal level-up."""

ADVANCED_ATTRIBUTE_POINTS = 20
"""Attribute points granted per level in advanced mode."""

ADVANCED_MIN_TOTAL_CHANGE = -10
"""Lowest total attribute delta the server accepts in advanced mode."""

# =============================================================================
# Hit Point Rules
# =============================================================================

DEFAULT_HIT_DIE = 6
"""Die size used when a class hit die string cannot be parsed."""

MAX_ADVANCED_HP_GAIN = 50
"""Largest manual HP gain accepted in advanced mode."""

# =============================================================================
# Experience Rules
# =============================================================================

MAX_LEVEL = 14
"""Highest level on the experience chart."""

EXPERIENCE_CHART: dict[int, int] = {
    1: 0,
    2: 200,
    3: 800,
    4: 2000,
    5: 4000,
    6: 7000,
    7: 11200,
    8: 16800,
    9: 24000,
    10: 33000,
    11: 44000,
    12: 57200,
    13: 72800,
    14: 91000,
}
"""Cumulative experience required to reach each level."""

# =============================================================================
# Initiative
# =============================================================================

MIN_INITIATIVE_MODIFIER = -4
MAX_INITIATIVE_MODIFIER = 10

INITIATIVE_CHART: dict[int, str] = {
    -4: "1d4",
    -3: "1d6",
    -2: "1d8",
    -1: "2d4",
    0: "1d10",
    1: "1d12",
    2: "2d6",
    3: "3d4",
    4: "2d8",
    5: "4d4",
    6: "3d6",
    7: "3d8",
    8: "3d10",
    9: "5d6",
    10: "4d8",
}
"""Initiative dice by DEX modifier."""

FALLBACK_INITIATIVE_DIE = "1d20"

__all__ = [
    "MIN_ATTRIBUTE_SCORE",
    "BASE_ATTRIBUTE_CAP",
    "ADVANCED_ATTRIBUTE_CAP",
    "ATTRIBUTE_CAP_THRESHOLDS",
    "NORMAL_ATTRIBUTE_POINTS",
    "NORMAL_MAX_ATTRIBUTES_TOUCHED",
    "NORMAL_MAX_POINTS_PER_ATTRIBUTE",
    "ADVANCED_ATTRIBUTE_POINTS",
    "ADVANCED_MIN_TOTAL_CHANGE",
    "DEFAULT_HIT_DIE",
    "MAX_ADVANCED_HP_GAIN",
    "MAX_LEVEL",
    "EXPERIENCE_CHART",
    "MIN_INITIATIVE_MODIFIER",
    "MAX_INITIATIVE_MODIFIER",
    "INITIATIVE_CHART",
    "FALLBACK_INITIATIVE_DIE",
]
