"""Server-side endpoints for committing level-ups and experience."""

from __future__ import annotations

from dice_mice.services.level_up import (
    ApiResponse,
    ExperienceUpdate,
    LevelUpService,
    LocalLevelUpGateway,
    handle_experience_update,
    handle_level_up,
)

__all__ = [
    "ApiResponse",
    "ExperienceUpdate",
    "LevelUpService",
    "LocalLevelUpGateway",
    "handle_level_up",
    "handle_experience_update",
]
