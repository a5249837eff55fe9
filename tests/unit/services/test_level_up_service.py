"""Tests for server-side level-up and experience validation."""

from __future__ import annotations

from typing import Any

import pytest

from dice_mice.core.config import ProgressionSettings
from dice_mice.core.exceptions import (
    AttributeOutOfBoundsError,
    CharacterNotFoundError,
    InternalServerError,
    InvalidAttributeAllocationError,
    InvalidExperienceError,
    InvalidLevelProgressionError,
    InvalidSkillAllocationError,
    MissingFieldError,
    UnauthorizedError,
)
from dice_mice.models.character import AttributeSet, CharacterSnapshot
from dice_mice.models.level_up import LevelUpRequest
from dice_mice.services.level_up import (
    LevelUpService,
    LocalLevelUpGateway,
    handle_experience_update,
    handle_level_up,
)
from dice_mice.storage.database import Database


OWNER = "alice"


@pytest.fixture
def payload() -> dict[str, Any]:
    """A valid level 1 -> 2 request for the sample character."""
    return {
        "newLevel": 2,
        "newXP": 250,
        "attributeChanges": {"STR": 1, "CON": 0, "DEX": 1, "INT": 0, "WIS": 0, "CHA": 0},
        "hpGain": 5,
        "advancedMode": False,
        "skillAllocations": {"athletics": 2},
    }


def _skills(database: Database, character_id: str) -> dict[str, int]:
    return {
        skill.skill_id: skill.points_invested
        for skill in database.get_character_skills(character_id)
    }


class TestLevelUpSuccess:
    """Tests for accepted level-ups."""

    def test_applies_level_up(
        self,
        service: LevelUpService,
        seeded_database: Database,
        character: CharacterSnapshot,
        payload: dict[str, Any],
    ) -> None:
        updated = service.level_up(character.id, payload, user=OWNER)

        assert updated.level == 2
        assert updated.experience == 250
        assert updated.attributes.strength == 13
        assert updated.attributes.dexterity == 15
        assert updated.max_hp == 15
        assert updated.current_hp == 15
        assert seeded_database.get_character(character.id) == updated
        assert _skills(seeded_database, character.id)["athletics"] == 2

    def test_skill_allocations_optional_without_budget(
        self,
        service: LevelUpService,
        seeded_database: Database,
        sample_attributes: AttributeSet,
        payload: dict[str, Any],
    ) -> None:
        classless = seeded_database.create_character(
            owner=OWNER,
            name="Wanderer",
            attributes=sample_attributes,
            max_hp=10,
        )
        del payload["skillAllocations"]

        updated = service.level_up(classless.id, payload, user=OWNER)

        assert updated.level == 2
        assert sum(_skills(seeded_database, classless.id).values()) == 0

    def test_without_heal(
        self,
        seeded_database: Database,
        character: CharacterSnapshot,
        payload: dict[str, Any],
    ) -> None:
        service = LevelUpService(seeded_database, ProgressionSettings(heal_on_level_up=False))

        updated = service.level_up(character.id, payload, user=OWNER)

        assert updated.max_hp == 15
        assert updated.current_hp == 7

    def test_advanced_mode(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        payload: dict[str, Any],
    ) -> None:
        payload["advancedMode"] = True
        payload["attributeChanges"] = {"STR": 10, "CHA": -3}
        payload["hpGain"] = 40

        updated = service.level_up(character.id, payload, user=OWNER)

        assert updated.attributes.strength == 22
        assert updated.attributes.charisma == 5
        assert updated.max_hp == 50


class TestLevelUpRejections:
    """Tests for each rejection and the order checks run in."""

    def test_unauthorized_first(self, service: LevelUpService, character: CharacterSnapshot) -> None:
        with pytest.raises(UnauthorizedError):
            service.level_up(character.id, {}, user=None)

    @pytest.mark.parametrize("missing", ["newLevel", "newXP", "attributeChanges", "hpGain"])
    def test_missing_field(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        payload: dict[str, Any],
        missing: str,
    ) -> None:
        del payload[missing]

        with pytest.raises(MissingFieldError) as exc_info:
            service.level_up(character.id, payload, user=OWNER)

        assert exc_info.value.details["field_name"].startswith(missing)

    @pytest.mark.parametrize(
        "changes",
        [
            {"STR": 1},
            {"STR": 1, "DEX": 1, "CON": 1},
            {"STR": 1, "DEX": 1, "CON": 1, "CHA": -1},
            {"STR": 2, "DEX": 1, "CHA": -1},
        ],
    )
    def test_normal_allocation(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        payload: dict[str, Any],
        changes: dict[str, int],
    ) -> None:
        payload["attributeChanges"] = changes

        with pytest.raises(InvalidAttributeAllocationError):
            service.level_up(character.id, payload, user=OWNER)

    def test_two_points_on_one_attribute_accepted(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        payload: dict[str, Any],
    ) -> None:
        payload["attributeChanges"] = {"WIS": 2}

        assert service.level_up(character.id, payload, user=OWNER).attributes.wisdom == 15

    @pytest.mark.parametrize("changes", [{"STR": 21}, {"CHA": -7, "WIS": -4}])
    def test_advanced_allocation_bounds(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        payload: dict[str, Any],
        changes: dict[str, int],
    ) -> None:
        payload["advancedMode"] = True
        payload["attributeChanges"] = changes

        with pytest.raises(InvalidAttributeAllocationError):
            service.level_up(character.id, payload, user=OWNER)

    def test_advanced_mode_disabled(
        self,
        seeded_database: Database,
        character: CharacterSnapshot,
        payload: dict[str, Any],
    ) -> None:
        service = LevelUpService(seeded_database, ProgressionSettings(allow_advanced_mode=False))
        payload["advancedMode"] = True

        with pytest.raises(InvalidAttributeAllocationError):
            service.level_up(character.id, payload, user=OWNER)

    def test_allocation_checked_before_lookup(
        self,
        service: LevelUpService,
        payload: dict[str, Any],
    ) -> None:
        payload["attributeChanges"] = {"STR": 3}

        with pytest.raises(InvalidAttributeAllocationError):
            service.level_up("nobody", payload, user=OWNER)

    def test_missing_character(self, service: LevelUpService, payload: dict[str, Any]) -> None:
        with pytest.raises(CharacterNotFoundError):
            service.level_up("nobody", payload, user=OWNER)

    def test_other_owner(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        payload: dict[str, Any],
    ) -> None:
        with pytest.raises(CharacterNotFoundError):
            service.level_up(character.id, payload, user="mallory")

    @pytest.mark.parametrize("new_level", [1, 3, 14])
    def test_level_progression(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        payload: dict[str, Any],
        new_level: int,
    ) -> None:
        payload["newLevel"] = new_level

        with pytest.raises(InvalidLevelProgressionError):
            service.level_up(character.id, payload, user=OWNER)

    def test_normal_cap(
        self,
        service: LevelUpService,
        seeded_database: Database,
        sample_attributes: AttributeSet,
        payload: dict[str, Any],
    ) -> None:
        strong = seeded_database.create_character(
            owner=OWNER,
            name="Brawn",
            attributes=sample_attributes.model_copy(update={"strength": 18}),
            max_hp=10,
            class_id="warrior",
        )

        with pytest.raises(AttributeOutOfBoundsError) as exc_info:
            service.level_up(strong.id, payload, user=OWNER)

        assert exc_info.value.message == "Attributes must be between 1 and 18 for level 2"
        assert exc_info.value.details["attribute"] == "STR"

    def test_advanced_cap(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        payload: dict[str, Any],
    ) -> None:
        payload["advancedMode"] = True
        payload["attributeChanges"] = {"STR": 19}

        with pytest.raises(AttributeOutOfBoundsError) as exc_info:
            service.level_up(character.id, payload, user=OWNER)

        assert exc_info.value.message == "Attributes must be between 1 and 30 (Advanced Mode)"

    def test_advanced_floor(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        payload: dict[str, Any],
    ) -> None:
        payload["advancedMode"] = True
        payload["attributeChanges"] = {"CHA": -8}

        with pytest.raises(AttributeOutOfBoundsError):
            service.level_up(character.id, payload, user=OWNER)

    @pytest.mark.parametrize(
        "allocations",
        [
            {"juggling": 2},
            {"athletics": 3, "lore": -1},
            {"stealth": 2},
            {"athletics": 1},
            {"athletics": 2, "lore": 1},
        ],
    )
    def test_skill_allocations(
        self,
        service: LevelUpService,
        seeded_database: Database,
        character: CharacterSnapshot,
        payload: dict[str, Any],
        allocations: dict[str, int],
    ) -> None:
        payload["skillAllocations"] = allocations

        with pytest.raises(InvalidSkillAllocationError):
            service.level_up(character.id, payload, user=OWNER)

        assert seeded_database.get_character(character.id) == character

    def test_skill_allocations_required_with_budget(
        self,
        service: LevelUpService,
        seeded_database: Database,
        character: CharacterSnapshot,
        payload: dict[str, Any],
    ) -> None:
        del payload["skillAllocations"]

        with pytest.raises(InvalidSkillAllocationError) as exc_info:
            service.level_up(character.id, payload, user=OWNER)

        assert exc_info.value.message == "Skill points must total 2, got 0"
        assert exc_info.value.status_code == 400
        assert seeded_database.get_character(character.id) == character

    def test_repeat_commit_rejected(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        payload: dict[str, Any],
    ) -> None:
        service.level_up(character.id, payload, user=OWNER)

        with pytest.raises(InvalidLevelProgressionError):
            service.level_up(character.id, payload, user=OWNER)

    def test_level_changed_during_write(
        self,
        service: LevelUpService,
        seeded_database: Database,
        character: CharacterSnapshot,
        payload: dict[str, Any],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(seeded_database, "apply_level_up", lambda *args, **kwargs: None)

        with pytest.raises(InvalidLevelProgressionError):
            service.level_up(character.id, payload, user=OWNER)

    def test_unexpected_failure(
        self,
        service: LevelUpService,
        seeded_database: Database,
        character: CharacterSnapshot,
        payload: dict[str, Any],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def explode(character_id: str) -> None:
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(seeded_database, "get_character", explode)

        with pytest.raises(InternalServerError) as exc_info:
            service.level_up(character.id, payload, user=OWNER)

        assert exc_info.value.message == "Internal server error"


class TestUpdateExperience:
    """Tests for the experience endpoint."""

    def test_stores_without_leveling(
        self,
        service: LevelUpService,
        seeded_database: Database,
        character: CharacterSnapshot,
    ) -> None:
        update = service.update_experience(character.id, 2000, user=OWNER)

        assert update.experience == 2000
        assert update.current_level == 1
        assert update.available_level == 4
        assert update.level_up_available is True
        stored = seeded_database.get_character(character.id)
        assert stored is not None
        assert stored.level == 1
        assert stored.experience == 2000

    def test_no_level_up_available(self, service: LevelUpService, character: CharacterSnapshot) -> None:
        assert service.update_experience(character.id, 0, user=OWNER).level_up_available is False

    @pytest.mark.parametrize("experience", [-1, "100", 1.5, True, None])
    def test_invalid_values(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        experience: Any,
    ) -> None:
        with pytest.raises(InvalidExperienceError):
            service.update_experience(character.id, experience, user=OWNER)

    def test_unauthorized(self, service: LevelUpService, character: CharacterSnapshot) -> None:
        with pytest.raises(UnauthorizedError):
            service.update_experience(character.id, 10, user="")

    def test_other_owner(self, service: LevelUpService, character: CharacterSnapshot) -> None:
        with pytest.raises(CharacterNotFoundError):
            service.update_experience(character.id, 10, user="mallory")


class TestRestoreCharacter:
    """Tests for rolling committed level-ups back."""

    @pytest.fixture
    def leveled(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        payload: dict[str, Any],
    ) -> CharacterSnapshot:
        return service.level_up(character.id, payload, user=OWNER)

    def test_restores_everything(
        self,
        service: LevelUpService,
        seeded_database: Database,
        character: CharacterSnapshot,
        leveled: CharacterSnapshot,
    ) -> None:
        restored = service.restore_character(
            character.id,
            character,
            {"athletics": 0, "lore": 0, "stealth": 0},
            expected_level=leveled.level,
            user=OWNER,
        )

        assert restored == character
        assert seeded_database.get_character(character.id) == character
        assert _skills(seeded_database, character.id) == {"athletics": 0, "lore": 0, "stealth": 0}

    def test_unauthorized(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        leveled: CharacterSnapshot,
    ) -> None:
        with pytest.raises(UnauthorizedError):
            service.restore_character(character.id, character, {}, expected_level=2, user=None)

    def test_other_owner(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        leveled: CharacterSnapshot,
    ) -> None:
        with pytest.raises(CharacterNotFoundError):
            service.restore_character(character.id, character, {}, expected_level=2, user="mallory")

    def test_cannot_raise_level(
        self,
        service: LevelUpService,
        seeded_database: Database,
        character: CharacterSnapshot,
        leveled: CharacterSnapshot,
    ) -> None:
        higher = leveled.model_copy(update={"level": 3})

        with pytest.raises(InvalidLevelProgressionError):
            service.restore_character(character.id, higher, {}, expected_level=2, user=OWNER)

        assert seeded_database.get_character(character.id) == leveled

    def test_unknown_skill(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        leveled: CharacterSnapshot,
    ) -> None:
        with pytest.raises(InvalidSkillAllocationError):
            service.restore_character(
                character.id, character, {"juggling": 0}, expected_level=2, user=OWNER
            )

    def test_stale_level_writes_nothing(
        self,
        service: LevelUpService,
        seeded_database: Database,
        character: CharacterSnapshot,
        leveled: CharacterSnapshot,
    ) -> None:
        with pytest.raises(InvalidLevelProgressionError):
            service.restore_character(character.id, character, {}, expected_level=3, user=OWNER)

        assert seeded_database.get_character(character.id) == leveled


class TestResponseHandlers:
    """Tests for the HTTP-style response wrappers."""

    def test_level_up_ok(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        payload: dict[str, Any],
    ) -> None:
        response = handle_level_up(service, character.id, payload, user=OWNER)

        assert response.ok
        assert response.status_code == 200
        assert response.body["success"] is True
        assert response.body["character"]["level"] == 2
        assert response.body["character"]["attributes"]["strength"] == 13

    @pytest.mark.parametrize(
        ("user", "character_id", "status_code", "reason"),
        [
            (None, "char-pip", 401, "unauthorized"),
            (OWNER, "nobody", 404, "not-found"),
        ],
    )
    def test_level_up_errors(
        self,
        service: LevelUpService,
        character: CharacterSnapshot,
        payload: dict[str, Any],
        user: str | None,
        character_id: str,
        status_code: int,
        reason: str,
    ) -> None:
        response = handle_level_up(service, character_id, payload, user=user)

        assert not response.ok
        assert response.status_code == status_code
        assert response.body["reason"] == reason
        assert "error" in response.body

    def test_level_up_bad_request(self, service: LevelUpService, character: CharacterSnapshot) -> None:
        response = handle_level_up(service, character.id, {"newLevel": 2}, user=OWNER)

        assert response.status_code == 400
        assert response.body == {"error": "Missing required fields", "reason": "missing-field"}

    def test_experience_ok(self, service: LevelUpService, character: CharacterSnapshot) -> None:
        response = handle_experience_update(service, character.id, {"experience": 900}, user=OWNER)

        assert response.status_code == 200
        assert response.body == {
            "success": True,
            "experience": 900,
            "currentLevel": 1,
            "availableLevel": 3,
            "levelUpAvailable": True,
            "previousLevel": 1,
        }

    def test_experience_invalid(self, service: LevelUpService, character: CharacterSnapshot) -> None:
        response = handle_experience_update(service, character.id, {"experience": -5}, user=OWNER)

        assert response.status_code == 400
        assert response.body["reason"] == "invalid-experience"


class TestLocalGateway:
    """Tests for the in-process gateway."""

    def test_commit_and_revert(
        self,
        local_gateway: LocalLevelUpGateway,
        seeded_database: Database,
        character: CharacterSnapshot,
        payload: dict[str, Any],
    ) -> None:
        updated = local_gateway.commit(LevelUpRequest.model_validate(payload))

        assert updated.level == 2

        local_gateway.revert_experience(42)

        stored = seeded_database.get_character(character.id)
        assert stored is not None
        assert stored.experience == 42
        assert stored.level == 2

    def test_restore(
        self,
        local_gateway: LocalLevelUpGateway,
        seeded_database: Database,
        character: CharacterSnapshot,
        payload: dict[str, Any],
    ) -> None:
        local_gateway.commit(LevelUpRequest.model_validate(payload))

        restored = local_gateway.restore_character(character, {"athletics": 0}, expected_level=2)

        assert restored == character
        assert _skills(seeded_database, character.id)["athletics"] == 0
