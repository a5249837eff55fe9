"""Level-up request contract and per-step session state.

A level-up session moves through Attributes, Skills, HitPoints and
Confirm before ending in Committed, Cancelled or Aborted. Each step is
its own model carrying only the fields valid in that step, and
``LevelUpState`` is the discriminated union of all of them. A session in
the Attributes step therefore cannot hold an HP gain, and a Confirm
state cannot exist without one.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt

from dice_mice.models.character import CharacterSnapshot
from dice_mice.models.enums import Attribute, LevelUpStep


class AttributeChanges(BaseModel):
    """Pending attribute deltas keyed by three-letter attribute name."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    STR: StrictInt = 0
    CON: StrictInt = 0
    DEX: StrictInt = 0
    INT: StrictInt = 0
    WIS: StrictInt = 0
    CHA: StrictInt = 0

    def get(self, attribute: Attribute | str) -> int:
        return getattr(self, Attribute(attribute).value)

    def as_dict(self) -> dict[Attribute, int]:
        return {attribute: self.get(attribute) for attribute in Attribute}

    @property
    def total(self) -> int:
        """Sum of all deltas."""
        return sum(self.as_dict().values())

    @property
    def touched(self) -> int:
        """Number of attributes with a non-zero delta."""
        return sum(1 for value in self.as_dict().values() if value != 0)

    def adjust(self, attribute: Attribute | str, delta: int) -> AttributeChanges:
        """Return a copy with ``delta`` added to one attribute."""
        key = Attribute(attribute).value
        return self.model_copy(update={key: self.get(key) + delta})


class LevelUpRequest(BaseModel):
    """The single atomic delta sent when a level-up is committed.

    Field aliases match the JSON keys the commit endpoint accepts.

    Attributes:
        new_level: Target level; must be exactly one above the stored level.
        new_xp: Experience total to store with the new level.
        attribute_changes: Per-attribute deltas.
        hp_gain: Hit points gained this level.
        advanced_mode: Whether advanced-mode limits apply.
        skill_allocations: Skill points added this level, keyed by skill id.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    new_level: StrictInt = Field(alias="newLevel")
    new_xp: StrictInt = Field(alias="newXP", ge=0)
    attribute_changes: AttributeChanges = Field(alias="attributeChanges")
    hp_gain: StrictInt = Field(alias="hpGain", ge=1)
    advanced_mode: StrictBool = Field(default=False, alias="advancedMode")
    skill_allocations: dict[str, StrictInt] | None = Field(
        default=None,
        alias="skillAllocations",
    )

    def to_payload(self) -> dict[str, object]:
        """Serialize using the wire field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# Step States
# =============================================================================


class _DraftState(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    advanced_mode: bool = False
    attribute_changes: AttributeChanges = Field(default_factory=AttributeChanges)


class _SkillDraftState(_DraftState):
    skill_allocations: dict[str, int] = Field(default_factory=dict)

    @property
    def skill_points_allocated(self) -> int:
        return sum(self.skill_allocations.values())


class AttributesState(_DraftState):
    """Attribute allocation step."""

    step: Literal[LevelUpStep.ATTRIBUTES] = LevelUpStep.ATTRIBUTES


class SkillsState(_SkillDraftState):
    """Skill allocation step."""

    step: Literal[LevelUpStep.SKILLS] = LevelUpStep.SKILLS


class HitPointsState(_SkillDraftState):
    """Hit point step. ``hp_gain`` stays None until rolled or entered.

    Attributes:
        hp_gain: Chosen HP gain, if any.
        hp_rolls: Every automatic draw in order, including rerolls.
        hp_warning: Advisory note about a manual entry.
    """

    step: Literal[LevelUpStep.HIT_POINTS] = LevelUpStep.HIT_POINTS
    hp_gain: int | None = None
    hp_rolls: tuple[int, ...] = ()
    hp_warning: str | None = None


class ConfirmState(_SkillDraftState):
    """Review step. Holds the last commit rejection, if any."""

    step: Literal[LevelUpStep.CONFIRM] = LevelUpStep.CONFIRM
    hp_gain: int = Field(ge=1)
    hp_rolls: tuple[int, ...] = ()
    hp_warning: str | None = None
    last_error: str | None = None
    last_error_reason: str | None = None


class CommittedState(BaseModel):
    """Terminal: the server accepted the level-up."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    step: Literal[LevelUpStep.COMMITTED] = LevelUpStep.COMMITTED
    character: CharacterSnapshot


class CancelledState(BaseModel):
    """Terminal: the user abandoned the level-up."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    step: Literal[LevelUpStep.CANCELLED] = LevelUpStep.CANCELLED
    reverted_experience: int | None = None


class AbortedState(BaseModel):
    """Terminal: the server refused the character outright (401 or 404)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    step: Literal[LevelUpStep.ABORTED] = LevelUpStep.ABORTED
    error: str
    reason: str
    status_code: int | None = None


LevelUpState = Annotated[
    Union[
        AttributesState,
        SkillsState,
        HitPointsState,
        ConfirmState,
        CommittedState,
        CancelledState,
        AbortedState,
    ],
    Field(discriminator="step"),
]


__all__ = [
    "AttributeChanges",
    "LevelUpRequest",
    "AttributesState",
    "SkillsState",
    "HitPointsState",
    "ConfirmState",
    "CommittedState",
    "CancelledState",
    "AbortedState",
    "LevelUpState",
]
