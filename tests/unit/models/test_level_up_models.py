"""Tests for character schemas, the level-up request and step states."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import TypeAdapter, ValidationError

from dice_mice.models.character import AttributeSet, CharacterSnapshot, ability_modifier
from dice_mice.models.enums import Attribute, LevelUpStep
from dice_mice.models.level_up import (
    AttributeChanges,
    AttributesState,
    ConfirmState,
    HitPointsState,
    LevelUpRequest,
    LevelUpState,
)


class TestAbilityModifier:
    """Tests for the attribute modifier formula."""

    @pytest.mark.parametrize(
        ("score", "modifier"),
        [(1, -5), (8, -1), (9, -1), (10, 0), (11, 0), (12, 1), (14, 2), (18, 4), (30, 10)],
    )
    def test_modifier(self, score: int, modifier: int) -> None:
        assert ability_modifier(score) == modifier


class TestAttributeSet:
    """Tests for AttributeSet."""

    def test_get_by_key(self, sample_attributes: AttributeSet) -> None:
        assert sample_attributes.get("CON") == 14
        assert sample_attributes.get(Attribute.CHA) == 8
        assert sample_attributes.get_modifier(Attribute.WIS) == 1

    def test_as_dict_order(self, sample_attributes: AttributeSet) -> None:
        assert list(sample_attributes.as_dict()) == list(Attribute)

    def test_with_changes(self, sample_attributes: AttributeSet) -> None:
        changed = sample_attributes.with_changes({"STR": 1, Attribute.CHA: -2})

        assert changed.strength == 13
        assert changed.charisma == 6
        assert sample_attributes.strength == 12

    def test_with_changes_rejects_out_of_range(self, sample_attributes: AttributeSet) -> None:
        with pytest.raises(ValidationError):
            sample_attributes.with_changes({"CHA": -8})

    def test_resulting_scores_unvalidated(self, sample_attributes: AttributeSet) -> None:
        scores = sample_attributes.resulting_scores({"CHA": -8})

        assert scores[Attribute.CHA] == 0

    def test_rejects_strings(self) -> None:
        with pytest.raises(ValidationError):
            AttributeSet.from_abbreviations(
                {"STR": "10", "CON": 10, "DEX": 10, "INT": 10, "WIS": 10, "CHA": 10}
            )


class TestCharacterSnapshot:
    """Tests for CharacterSnapshot."""

    def test_hit_die_from_class(self, character: CharacterSnapshot) -> None:
        assert character.hit_die == "1d8"

    def test_hit_die_without_class(self, sample_attributes: AttributeSet) -> None:
        snapshot = CharacterSnapshot(id="c", owner="o", name="N", attributes=sample_attributes)

        assert snapshot.hit_die is None

    def test_json_round_trip(self, character: CharacterSnapshot) -> None:
        dumped = character.model_dump(mode="json")

        assert dumped["attributes"]["constitution"] == 14
        assert CharacterSnapshot.model_validate(dumped) == character


class TestAttributeChanges:
    """Tests for pending attribute deltas."""

    def test_total_and_touched(self) -> None:
        changes = AttributeChanges(STR=1, DEX=1, CHA=-1)

        assert changes.total == 1
        assert changes.touched == 3

    def test_adjust_returns_copy(self) -> None:
        changes = AttributeChanges()

        adjusted = changes.adjust(Attribute.WIS, 2)

        assert adjusted.WIS == 2
        assert changes.WIS == 0

    def test_rejects_unknown_key(self) -> None:
        with pytest.raises(ValidationError):
            AttributeChanges.model_validate({"LUCK": 1})


class TestLevelUpRequest:
    """Tests for the commit request contract."""

    @pytest.fixture
    def payload(self) -> dict[str, Any]:
        return {
            "newLevel": 2,
            "newXP": 250,
            "attributeChanges": {"STR": 1, "CON": 0, "DEX": 1, "INT": 0, "WIS": 0, "CHA": 0},
            "hpGain": 5,
            "advancedMode": False,
        }

    def test_parse_wire_names(self, payload: dict[str, Any]) -> None:
        request = LevelUpRequest.model_validate(payload)

        assert request.new_level == 2
        assert request.new_xp == 250
        assert request.attribute_changes.total == 2
        assert request.hp_gain == 5
        assert request.skill_allocations is None

    def test_advanced_mode_defaults_false(self, payload: dict[str, Any]) -> None:
        del payload["advancedMode"]

        assert LevelUpRequest.model_validate(payload).advanced_mode is False

    @pytest.mark.parametrize("missing", ["newLevel", "newXP", "attributeChanges", "hpGain"])
    def test_missing_required_field(self, payload: dict[str, Any], missing: str) -> None:
        del payload[missing]

        with pytest.raises(ValidationError):
            LevelUpRequest.model_validate(payload)

    @pytest.mark.parametrize(
        ("key", "value"),
        [("hpGain", 0), ("hpGain", "5"), ("newLevel", 2.5), ("advancedMode", "yes"), ("newXP", -1)],
    )
    def test_rejects_bad_values(self, payload: dict[str, Any], key: str, value: Any) -> None:
        payload[key] = value

        with pytest.raises(ValidationError):
            LevelUpRequest.model_validate(payload)

    def test_to_payload_uses_wire_names(self, payload: dict[str, Any]) -> None:
        request = LevelUpRequest.model_validate(payload)

        assert request.to_payload() == payload


class TestStepStates:
    """Tests for the per-step state union."""

    def test_discriminated_by_step(self) -> None:
        adapter = TypeAdapter(LevelUpState)

        state = adapter.validate_python({"step": "hit_points", "hp_gain": 4})

        assert isinstance(state, HitPointsState)
        assert state.hp_gain == 4

    def test_attributes_state_has_no_hp(self) -> None:
        with pytest.raises(ValidationError):
            AttributesState(hp_gain=3)

    def test_confirm_requires_hp_gain(self) -> None:
        with pytest.raises(ValidationError):
            ConfirmState()

        assert ConfirmState(hp_gain=1).step == LevelUpStep.CONFIRM

    def test_terminal_steps(self) -> None:
        assert LevelUpStep.COMMITTED.is_terminal
        assert LevelUpStep.ABORTED.is_terminal
        assert not LevelUpStep.CONFIRM.is_terminal
