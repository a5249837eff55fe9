"""Dice Mice - character progression for a small-creature tabletop RPG.

Derives displayed statistics from attributes and class reference data,
and runs the guided level-up workflow from the first attribute point to
the validated, atomic commit.

Example:
    >>> from dice_mice import Database, LevelUpService, LevelUpSequence, LocalLevelUpGateway
    >>>
    >>> db = Database("data/dice_mice.db")
    >>> service = LevelUpService(db)
    >>> hero = db.get_character(character_id)
    >>> gateway = LocalLevelUpGateway(service, hero.id, user=hero.owner)
    >>> sequence = LevelUpSequence(hero, new_xp=3000, gateway=gateway, data_source=db)
    >>> sequence.session.increase_attribute("STR")

Modules:
    core: Configuration, logging, exceptions and rule constants.
    models: Pydantic V2 schemas and the static progression tables.
    engine: Stat derivation, dice, and the level-up state machine.
    storage: SQLite persistence for characters and class data.
    services: Server-side validation of level-up and experience commits.
"""

from __future__ import annotations

# Core
from dice_mice.core.config import Settings, get_settings
from dice_mice.core.exceptions import CommitError, DiceMiceError
from dice_mice.core.logging import configure_logging, get_logger, setup_logging

# Models
from dice_mice.models.character import AttributeSet, CharacterClass, CharacterSnapshot
from dice_mice.models.enums import Attribute, LevelUpStep, SequenceStatus
from dice_mice.models.level_up import AttributeChanges, LevelUpRequest

# Engine
from dice_mice.engine.level_up import LevelUpSession
from dice_mice.engine.sequence import LevelUpSequence
from dice_mice.engine.stats import derive_character_stats

# Storage and services
from dice_mice.storage.database import Database, get_database
from dice_mice.services.level_up import LevelUpService, LocalLevelUpGateway


__version__ = "0.1.0"
__author__ = "Dice Mice Team"
__all__ = [
    # Version info
    "__version__",
    "__author__",
    # Core
    "DiceMiceError",
    "CommitError",
    "Settings",
    "get_settings",
    "configure_logging",
    "setup_logging",
    "get_logger",
    # Models
    "Attribute",
    "AttributeSet",
    "AttributeChanges",
    "CharacterClass",
    "CharacterSnapshot",
    "LevelUpRequest",
    "LevelUpStep",
    "SequenceStatus",
    # Engine
    "LevelUpSession",
    "LevelUpSequence",
    "derive_character_stats",
    # Storage and services
    "Database",
    "get_database",
    "LevelUpService",
    "LocalLevelUpGateway",
]
