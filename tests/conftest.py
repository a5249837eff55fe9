"""Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the Dice Mice test suite.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from dice_mice.core.config import ProgressionSettings
from dice_mice.core.exceptions import CommitError
from dice_mice.engine.dice import DiceRoller
from dice_mice.engine.level_up import LevelUpGateway
from dice_mice.models.character import (
    AttributeSet,
    CharacterClass,
    CharacterSnapshot,
    ClassBaseAttributes,
)
from dice_mice.models.enums import Attribute, WillpowerProgression
from dice_mice.models.level_up import LevelUpRequest
from dice_mice.services.level_up import LevelUpService, LocalLevelUpGateway
from dice_mice.storage.database import Database


if TYPE_CHECKING:
    from collections.abc import Generator


CHARACTER_ID = "char-pip"
OWNER = "alice"


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Reset the settings cache before and after each test."""
    from dice_mice.core.config import clear_settings_cache

    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_logging_config() -> Generator[None, None, None]:
    """Undo any logging configuration a test triggered."""
    from dice_mice.core.logging import reset_logging

    yield
    reset_logging()


@pytest.fixture
def mock_env_vars(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> dict[str, str]:
    """Set up mock environment variables for testing.

    Returns:
        Dictionary of environment variables that were set.
    """
    env_vars = {
        "DICE_MICE_DEBUG": "true",
        "DICE_MICE_LOG_LEVEL": "DEBUG",
        "DICE_MICE_DATABASE_PATH": str(tmp_path / "env.db"),
        "DICE_MICE_PROGRESSION_ALLOW_ADVANCED_MODE": "false",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


@pytest.fixture
def progression_settings() -> ProgressionSettings:
    return ProgressionSettings(allow_advanced_mode=True, heal_on_level_up=True)


# =============================================================================
# Dice Fixtures
# =============================================================================


class ScriptedRoller(DiceRoller):
    """DiceRoller that returns pre-set die faces in order."""

    def __init__(self, faces: Iterable[int]) -> None:
        super().__init__()
        self.faces = list(faces)
        self.calls: list[int] = []

    def roll_die(self, sides: int) -> int:
        self.calls.append(sides)
        if not self.faces:
            raise AssertionError("ScriptedRoller ran out of faces")
        return self.faces.pop(0)


@pytest.fixture
def make_roller() -> type[ScriptedRoller]:
    """Factory for rollers that return the given faces in order."""
    return ScriptedRoller


@pytest.fixture
def dice_roller() -> DiceRoller:
    """Create a DiceRoller with a fixed seed for reproducible tests."""
    return DiceRoller(seed=42)


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def database(tmp_path: Path) -> Database:
    """Create an empty database in a temporary directory."""
    return Database(tmp_path / "dice_mice.db")


@pytest.fixture
def sample_attributes() -> AttributeSet:
    """STR 12, CON 14, DEX 14, INT 10, WIS 13, CHA 8."""
    return AttributeSet(
        strength=12,
        constitution=14,
        dexterity=14,
        intelligence=10,
        wisdom=13,
        charisma=8,
    )


@pytest.fixture
def seeded_database(database: Database) -> Database:
    """Database with a Warrior class, its level table and three skills.

    Skill ranks granted: level 2 gives 2, level 3 gives 1, level 4 gives 2.
    Athletics is a Warrior class skill; Stealth and Lore are not.
    """
    database.add_class(
        CharacterClass(
            id="warrior",
            name="Warrior",
            hit_die="1d8",
            willpower_progression=WillpowerProgression.EVEN,
        )
    )
    skill_ranks = {1: 0, 2: 2, 3: 1, 4: 2, 5: 1, 6: 2}
    for level, ranks in skill_ranks.items():
        database.add_class_base_attributes(
            ClassBaseAttributes(
                class_id="warrior",
                level=level,
                attack=level,
                spell_attack=level // 2,
                armor_class=10 + level // 3,
                fortitude=2 + level // 2,
                reflex=level // 3,
                will=level // 3,
                damage_bonus=f"+{level // 2}",
                leadership=level,
                skill_ranks=ranks,
                rage="1d4" if level >= 3 else None,
            )
        )
    database.add_skill("athletics", "Athletics", Attribute.STR)
    database.add_skill("stealth", "Stealth", Attribute.DEX)
    database.add_skill("lore", "Lore", Attribute.INT)
    database.add_class_skill("warrior", "athletics")
    return database


@pytest.fixture
def character(seeded_database: Database, sample_attributes: AttributeSet) -> CharacterSnapshot:
    """A level 1 Warrior with 150 XP, 7 of 10 HP, owned by alice."""
    return seeded_database.create_character(
        owner=OWNER,
        name="Pip",
        attributes=sample_attributes,
        max_hp=10,
        current_hp=7,
        class_id="warrior",
        experience=150,
        character_id=CHARACTER_ID,
    )


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def service(seeded_database: Database, progression_settings: ProgressionSettings) -> LevelUpService:
    return LevelUpService(seeded_database, progression_settings)


@pytest.fixture
def local_gateway(service: LevelUpService, character: CharacterSnapshot) -> LocalLevelUpGateway:
    return LocalLevelUpGateway(service, character.id, user=OWNER)


class RecordingGateway(LevelUpGateway):
    """Gateway that records calls and fails on demand.

    Attributes:
        requests: Every commit request received.
        reverted: Every experience value reverted to.
        commit_errors: Exceptions to raise on the next commits, in order.
        revert_error: Exception to raise on the next revert, if any.
        restores: Every snapshot, skill map and expected level restored.
        restore_error: Exception to raise on the next restore, if any.
    """

    def __init__(self, character: CharacterSnapshot) -> None:
        self.character = character
        self.requests: list[LevelUpRequest] = []
        self.reverted: list[int] = []
        self.commit_errors: list[Exception] = []
        self.revert_error: CommitError | None = None
        self.restores: list[tuple[CharacterSnapshot, dict[str, int], int]] = []
        self.restore_error: CommitError | None = None

    def commit(self, request: LevelUpRequest) -> CharacterSnapshot:
        self.requests.append(request)
        if self.commit_errors:
            raise self.commit_errors.pop(0)
        attributes = self.character.attributes.with_changes(request.attribute_changes.as_dict())
        self.character = self.character.model_copy(
            update={
                "level": request.new_level,
                "experience": request.new_xp,
                "attributes": attributes,
                "max_hp": self.character.max_hp + request.hp_gain,
                "current_hp": self.character.max_hp + request.hp_gain,
            }
        )
        return self.character

    def revert_experience(self, experience: int) -> None:
        if self.revert_error is not None:
            error, self.revert_error = self.revert_error, None
            raise error
        self.reverted.append(experience)

    def restore_character(
        self,
        snapshot: CharacterSnapshot,
        skill_points: Mapping[str, int],
        *,
        expected_level: int,
    ) -> CharacterSnapshot:
        if self.restore_error is not None:
            error, self.restore_error = self.restore_error, None
            raise error
        self.restores.append((snapshot, dict(skill_points), expected_level))
        self.character = snapshot
        return snapshot


@pytest.fixture
def recording_gateway(character: CharacterSnapshot) -> RecordingGateway:
    return RecordingGateway(character)
