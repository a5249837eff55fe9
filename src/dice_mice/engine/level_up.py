"""Single-level level-up controller.

A ``LevelUpSession`` walks one character through one level of
advancement:

    Attributes -> Skills -> HitPoints -> Confirm -> Committed

``next()`` moves forward only once the current step is complete and
``back()`` returns to the immediately previous step. ``cancel()`` ends
the session from any non-terminal step and reverts the experience award
that opened it. ``commit()`` sends the whole pending delta as one
``LevelUpRequest`` through a ``LevelUpGateway``.

Two kinds of refusal are distinguished. Asking for an illegal move in
the right step (a third attribute point, ``next()`` before the budget is
spent) returns False and changes nothing. Calling an operation in the
wrong step, or while a commit is in flight, raises ``LevelUpStateError``.

Example:
    >>> session = LevelUpSession(character, new_xp=800, gateway=gateway, data_source=db)
    >>> session.increase_attribute(Attribute.STR)
    True
    >>> session.increase_attribute(Attribute.DEX)
    True
    >>> session.next()
    True
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from dice_mice.core.config import ProgressionSettings, get_settings
from dice_mice.core.constants import (
    ADVANCED_ATTRIBUTE_POINTS,
    MIN_ATTRIBUTE_SCORE,
    NORMAL_ATTRIBUTE_POINTS,
    NORMAL_MAX_ATTRIBUTES_TOUCHED,
    NORMAL_MAX_POINTS_PER_ATTRIBUTE,
)
from dice_mice.core.exceptions import (
    CommitError,
    CommitTransportError,
    LevelUpStateError,
    ValidationError,
)
from dice_mice.core.logging import get_logger
from dice_mice.engine.dice import DiceRoller, get_default_roller
from dice_mice.engine.hit_points import (
    HitPointRoll,
    ManualHitPointEntry,
    evaluate_manual_hit_points,
    roll_hit_points,
)
from dice_mice.models.character import ability_modifier
from dice_mice.models.enums import Attribute, LevelUpStep
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
from dice_mice.models.progression import get_attribute_cap, get_max_skill_points, parse_hit_die


if TYPE_CHECKING:
    from dice_mice.models.character import (
        CharacterSnapshot,
        ClassBaseAttributes,
        SkillInvestment,
    )


logger = get_logger(__name__)

GENERIC_COMMIT_ERROR = "Failed to apply level up changes"


# =============================================================================
# Collaborators
# =============================================================================


class LevelUpGateway(ABC):
    """Where a session sends its commit and its experience rollback."""

    @abstractmethod
    def commit(self, request: LevelUpRequest) -> CharacterSnapshot:
        """Apply a level-up and return the updated character.

        Raises:
            CommitError: If the level-up was rejected or could not be applied.
        """

    @abstractmethod
    def revert_experience(self, experience: int) -> None:
        """Restore the character's experience to ``experience``."""

    @abstractmethod
    def restore_character(
        self,
        snapshot: CharacterSnapshot,
        skill_points: Mapping[str, int],
        *,
        expected_level: int,
    ) -> CharacterSnapshot:
        """Roll the character back to ``snapshot`` in one write.

        Args:
            snapshot: Level, experience, attributes and HP to restore.
            skill_points: Absolute skill investments to restore.
            expected_level: Level the stored character must be at.

        Raises:
            CommitError: If the rollback was refused or could not be applied.
        """


class ProgressionDataSource(ABC):
    """Read access to the class and skill data a level-up needs."""

    @abstractmethod
    def get_class_base_attributes(self, class_id: str, level: int) -> ClassBaseAttributes | None:
        """Get a class's reference row for a level, or None if absent."""

    @abstractmethod
    def get_character_skills(self, character_id: str) -> list[SkillInvestment]:
        """Get every skill available to a character with points invested."""


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class CommitOutcome:
    """What happened when a session tried to commit.

    Attributes:
        success: Whether the level-up was applied.
        character: The updated character on success.
        error: Message to show the user on failure.
        reason: Machine-readable failure reason.
        status_code: HTTP-style status of the failure, if any.
        retryable: Whether the session stays open for another attempt.
    """

    success: bool
    character: CharacterSnapshot | None = None
    error: str | None = None
    reason: str | None = None
    status_code: int | None = None
    retryable: bool = False


@dataclass(frozen=True)
class LevelUpPreview:
    """The full pending delta, as shown before committing."""

    current_level: int
    new_level: int
    new_xp: int
    attributes_before: dict[Attribute, int]
    attributes_after: dict[Attribute, int]
    skill_allocations: dict[str, int] = field(default_factory=dict)
    hp_gain: int | None = None
    new_max_hp: int | None = None


# =============================================================================
# Session
# =============================================================================


_EDITABLE_STEPS = (
    LevelUpStep.ATTRIBUTES,
    LevelUpStep.SKILLS,
    LevelUpStep.HIT_POINTS,
    LevelUpStep.CONFIRM,
)


class LevelUpSession:
    """State machine for advancing a character by exactly one level.

    Attributes:
        character: The character as it stood when the session opened.
        target_level: The level being gained.
        new_xp: Experience total to store with the new level.
        original_xp: Experience to restore if the session is cancelled.
        skill_budget: Skill points to allocate this level.
    """

    def __init__(
        self,
        character: CharacterSnapshot,
        *,
        new_xp: int,
        gateway: LevelUpGateway,
        data_source: ProgressionDataSource,
        original_xp: int | None = None,
        roller: DiceRoller | None = None,
        settings: ProgressionSettings | None = None,
    ) -> None:
        """Open a session at the Attributes step.

        Args:
            character: The character to level up.
            new_xp: Experience total that triggered the level-up.
            gateway: Commit and rollback target.
            data_source: Source of the skill budget and skill investments.
            original_xp: Experience before the triggering award. Defaults to
                the character's stored experience.
            roller: Dice roller for automatic HP rolls.
            settings: Progression settings; defaults to the loaded settings.
        """
        self.character = character
        self.target_level = character.level + 1
        self.new_xp = new_xp
        self.original_xp = character.experience if original_xp is None else original_xp
        self._gateway = gateway
        self._roller = roller or get_default_roller()
        self._settings = settings or get_settings().progression
        self._is_submitting = False

        class_row = None
        if character.character_class is not None:
            class_row = data_source.get_class_base_attributes(
                character.character_class.id, self.target_level
            )
        self.skill_budget = class_row.skill_ranks if class_row else 0
        self._skills = {skill.skill_id: skill for skill in data_source.get_character_skills(character.id)}

        self._state: LevelUpState = AttributesState()
        logger.info(
            "Level-up session opened",
            character_id=character.id,
            current_level=character.level,
            target_level=self.target_level,
            skill_budget=self.skill_budget,
        )

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def state(self) -> LevelUpState:
        return self._state

    @property
    def step(self) -> LevelUpStep:
        return self._state.step

    @property
    def is_submitting(self) -> bool:
        return self._is_submitting

    @property
    def is_finished(self) -> bool:
        return self._state.step.is_terminal

    @property
    def advanced_mode(self) -> bool:
        return getattr(self._state, "advanced_mode", False)

    @property
    def attribute_changes(self) -> AttributeChanges:
        return getattr(self._state, "attribute_changes", AttributeChanges())

    @property
    def skill_allocations(self) -> dict[str, int]:
        return dict(getattr(self._state, "skill_allocations", {}))

    @property
    def attribute_cap(self) -> int:
        return get_attribute_cap(self.target_level, self.advanced_mode)

    @property
    def points_to_spend(self) -> int:
        return ADVANCED_ATTRIBUTE_POINTS if self.advanced_mode else NORMAL_ATTRIBUTE_POINTS

    @property
    def points_spent(self) -> int:
        return self.attribute_changes.total

    @property
    def skill_points_remaining(self) -> int:
        return self.skill_budget - sum(self.skill_allocations.values())

    @property
    def hit_die(self) -> str | None:
        return self.character.hit_die

    @property
    def hit_die_sides(self) -> int:
        return parse_hit_die(self.hit_die)

    @property
    def con_modifier(self) -> int:
        """CON modifier including any pending CON increase."""
        return ability_modifier(
            self.character.attributes.constitution + self.attribute_changes.get(Attribute.CON)
        )

    @property
    def skills(self) -> list[SkillInvestment]:
        return list(self._skills.values())

    def _require(self, *steps: LevelUpStep) -> None:
        if self._is_submitting:
            raise LevelUpStateError(
                "A level-up commit is already in flight",
                current_state=self.step,
                expected_states=[str(step) for step in steps],
            )
        if self._state.step not in steps:
            raise LevelUpStateError(
                f"Operation not allowed in step '{self._state.step}'",
                current_state=self.step,
                expected_states=[str(step) for step in steps],
            )

    def _transition(self, state: LevelUpState) -> None:
        previous = self._state.step
        self._state = state
        logger.info(
            "Level-up step changed",
            character_id=self.character.id,
            target_level=self.target_level,
            from_step=previous,
            to_step=state.step,
        )

    # -------------------------------------------------------------------------
    # Attributes
    # -------------------------------------------------------------------------

    def set_advanced_mode(self, enabled: bool) -> bool:
        """Switch allocation mode, discarding pending attribute changes.

        Returns:
            False if advanced mode is disabled in settings.
        """
        self._require(LevelUpStep.ATTRIBUTES)
        if enabled and not self._settings.allow_advanced_mode:
            logger.warning("Advanced mode is disabled", character_id=self.character.id)
            return False
        self._state = AttributesState(advanced_mode=enabled)
        logger.debug("Advanced mode toggled", character_id=self.character.id, enabled=enabled)
        return True

    def can_increase_attribute(self, attribute: Attribute | str) -> bool:
        self._require(LevelUpStep.ATTRIBUTES)
        attribute = Attribute(attribute)
        changes = self.attribute_changes
        pending = changes.get(attribute)
        new_value = self.character.attributes.get(attribute) + pending + 1

        if new_value > self.attribute_cap or changes.total + 1 > self.points_to_spend:
            return False
        if self.advanced_mode:
            return new_value >= MIN_ATTRIBUTE_SCORE
        return (
            pending + 1 <= NORMAL_MAX_POINTS_PER_ATTRIBUTE
            and changes.touched < NORMAL_MAX_ATTRIBUTES_TOUCHED
        )

    def can_decrease_attribute(self, attribute: Attribute | str) -> bool:
        """Decrements only undo pending increments of this level-up."""
        self._require(LevelUpStep.ATTRIBUTES)
        attribute = Attribute(attribute)
        pending = self.attribute_changes.get(attribute)
        new_value = self.character.attributes.get(attribute) + pending - 1
        return pending > 0 and new_value >= MIN_ATTRIBUTE_SCORE

    def increase_attribute(self, attribute: Attribute | str) -> bool:
        if not self.can_increase_attribute(attribute):
            logger.debug("Attribute increase refused", attribute=str(attribute))
            return False
        self._state = self._state.model_copy(
            update={"attribute_changes": self.attribute_changes.adjust(attribute, 1)}
        )
        return True

    def decrease_attribute(self, attribute: Attribute | str) -> bool:
        if not self.can_decrease_attribute(attribute):
            logger.debug("Attribute decrease refused", attribute=str(attribute))
            return False
        self._state = self._state.model_copy(
            update={"attribute_changes": self.attribute_changes.adjust(attribute, -1)}
        )
        return True

    # -------------------------------------------------------------------------
    # Skills
    # -------------------------------------------------------------------------

    def _get_skill(self, skill_id: str) -> SkillInvestment:
        try:
            return self._skills[skill_id]
        except KeyError:
            raise ValidationError(
                f"Unknown skill '{skill_id}'",
                field_name="skill_id",
                invalid_value=skill_id,
            ) from None

    def max_skill_points(self, skill_id: str) -> int:
        """Most points the skill may hold at the target level."""
        return get_max_skill_points(self.target_level, self._get_skill(skill_id).is_class_skill)

    def can_increase_skill(self, skill_id: str) -> bool:
        self._require(LevelUpStep.SKILLS)
        skill = self._get_skill(skill_id)
        pending = self.skill_allocations.get(skill_id, 0)
        if self.skill_points_remaining <= 0:
            return False
        return skill.points_invested + pending + 1 <= self.max_skill_points(skill_id)

    def can_decrease_skill(self, skill_id: str) -> bool:
        self._require(LevelUpStep.SKILLS)
        self._get_skill(skill_id)
        return self.skill_allocations.get(skill_id, 0) > 0

    def increase_skill(self, skill_id: str) -> bool:
        if not self.can_increase_skill(skill_id):
            logger.debug("Skill increase refused", skill_id=skill_id)
            return False
        allocations = self.skill_allocations
        allocations[skill_id] = allocations.get(skill_id, 0) + 1
        self._state = self._state.model_copy(update={"skill_allocations": allocations})
        return True

    def decrease_skill(self, skill_id: str) -> bool:
        if not self.can_decrease_skill(skill_id):
            logger.debug("Skill decrease refused", skill_id=skill_id)
            return False
        allocations = self.skill_allocations
        allocations[skill_id] -= 1
        if allocations[skill_id] == 0:
            del allocations[skill_id]
        self._state = self._state.model_copy(update={"skill_allocations": allocations})
        return True

    # -------------------------------------------------------------------------
    # Hit Points
    # -------------------------------------------------------------------------

    def roll_hit_points(self) -> HitPointRoll:
        """Roll the hit die, replacing any previous gain."""
        self._require(LevelUpStep.HIT_POINTS)
        rolled = roll_hit_points(self.hit_die_sides, self.con_modifier, self._roller)
        self._state = self._state.model_copy(
            update={"hp_gain": rolled.result, "hp_rolls": rolled.rolls, "hp_warning": None}
        )
        return rolled

    def enter_hit_points(self, value: int) -> ManualHitPointEntry:
        """Set the HP gain manually. Rejected values leave the step unchanged."""
        self._require(LevelUpStep.HIT_POINTS)
        entry = evaluate_manual_hit_points(
            value,
            sides=self.hit_die_sides,
            con_modifier=self.con_modifier,
            advanced_mode=self.advanced_mode,
            hit_die=self.hit_die,
        )
        if entry.accepted:
            self._state = self._state.model_copy(
                update={
                    "hp_gain": value,
                    "hp_rolls": (value,),
                    "hp_warning": entry.message if entry.should_have_rerolled else None,
                }
            )
        else:
            logger.debug("Manual HP entry refused", value=value, message=entry.message)
        return entry

    def change_hit_points(self) -> None:
        """Clear the chosen HP gain without leaving the step."""
        self._require(LevelUpStep.HIT_POINTS)
        self._state = self._state.model_copy(
            update={"hp_gain": None, "hp_rolls": (), "hp_warning": None}
        )

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def can_advance(self) -> bool:
        """Whether ``next()`` would move forward from the current step."""
        state = self._state
        if isinstance(state, AttributesState):
            if state.advanced_mode:
                return state.attribute_changes.total >= 1
            return state.attribute_changes.total == NORMAL_ATTRIBUTE_POINTS
        if isinstance(state, SkillsState):
            return state.skill_points_allocated == self.skill_budget
        if isinstance(state, HitPointsState):
            return state.hp_gain is not None and state.hp_gain > 0
        return False

    def next(self) -> bool:
        """Move to the following step if the current one is complete."""
        self._require(LevelUpStep.ATTRIBUTES, LevelUpStep.SKILLS, LevelUpStep.HIT_POINTS)
        if not self.can_advance():
            logger.debug("Level-up step incomplete", step=self.step)
            return False

        state = self._state
        if isinstance(state, AttributesState):
            self._transition(
                SkillsState(
                    advanced_mode=state.advanced_mode,
                    attribute_changes=state.attribute_changes,
                )
            )
        elif isinstance(state, SkillsState):
            self._transition(
                HitPointsState(
                    advanced_mode=state.advanced_mode,
                    attribute_changes=state.attribute_changes,
                    skill_allocations=state.skill_allocations,
                )
            )
        elif isinstance(state, HitPointsState):
            self._transition(
                ConfirmState(
                    advanced_mode=state.advanced_mode,
                    attribute_changes=state.attribute_changes,
                    skill_allocations=state.skill_allocations,
                    hp_gain=state.hp_gain,
                    hp_rolls=state.hp_rolls,
                    hp_warning=state.hp_warning,
                )
            )
        return True

    def back(self) -> None:
        """Return to the previous step.

        Leaving Skills drops its allocations and leaving HitPoints drops the
        chosen gain. Returning from Confirm keeps the gain.
        """
        self._require(LevelUpStep.SKILLS, LevelUpStep.HIT_POINTS, LevelUpStep.CONFIRM)
        state = self._state
        if isinstance(state, SkillsState):
            self._transition(
                AttributesState(
                    advanced_mode=state.advanced_mode,
                    attribute_changes=state.attribute_changes,
                )
            )
        elif isinstance(state, HitPointsState):
            self._transition(
                SkillsState(
                    advanced_mode=state.advanced_mode,
                    attribute_changes=state.attribute_changes,
                    skill_allocations=state.skill_allocations,
                )
            )
        elif isinstance(state, ConfirmState):
            self._transition(
                HitPointsState(
                    advanced_mode=state.advanced_mode,
                    attribute_changes=state.attribute_changes,
                    skill_allocations=state.skill_allocations,
                    hp_gain=state.hp_gain,
                    hp_rolls=state.hp_rolls,
                    hp_warning=state.hp_warning,
                )
            )

    def cancel(self, *, rollback: Callable[[], object] | None = None) -> CancelledState:
        """Abandon the level-up and restore the pre-award experience.

        Args:
            rollback: Runs instead of the experience revert, for callers
                that have more than experience to restore.

        Raises:
            LevelUpStateError: If the session already ended or is committing.
            CommitError: If the experience could not be restored; the
                session stays open so the cancel can be retried.
        """
        self._require(*_EDITABLE_STEPS)
        if rollback is None:
            self._gateway.revert_experience(self.original_xp)
        else:
            rollback()
        cancelled = CancelledState(reverted_experience=self.original_xp)
        self._transition(cancelled)
        logger.info(
            "Level-up cancelled",
            character_id=self.character.id,
            reverted_experience=self.original_xp,
        )
        return cancelled

    # -------------------------------------------------------------------------
    # Confirm / Commit
    # -------------------------------------------------------------------------

    def preview(self) -> LevelUpPreview:
        """Summarize the pending delta."""
        self._require(*_EDITABLE_STEPS)
        hp_gain = getattr(self._state, "hp_gain", None)
        return LevelUpPreview(
            current_level=self.character.level,
            new_level=self.target_level,
            new_xp=self.new_xp,
            attributes_before=self.character.attributes.as_dict(),
            attributes_after=self.character.attributes.resulting_scores(
                self.attribute_changes.as_dict()
            ),
            skill_allocations=self.skill_allocations,
            hp_gain=hp_gain,
            new_max_hp=self.character.max_hp + hp_gain if hp_gain else None,
        )

    def build_request(self) -> LevelUpRequest:
        self._require(LevelUpStep.CONFIRM)
        state = self._state
        assert isinstance(state, ConfirmState)
        return LevelUpRequest(
            new_level=self.target_level,
            new_xp=self.new_xp,
            attribute_changes=state.attribute_changes,
            hp_gain=state.hp_gain,
            advanced_mode=state.advanced_mode,
            skill_allocations=dict(state.skill_allocations) or None,
        )

    def commit(self) -> CommitOutcome:
        """Send the pending delta as one request.

        A rejected request (400) or a failed transport keeps the session in
        Confirm with ``last_error`` set so it can be resubmitted. An
        unauthorized or not-found response ends the session as Aborted.
        """
        request = self.build_request()
        self._is_submitting = True
        try:
            updated = self._gateway.commit(request)
        except CommitError as exc:
            return self._handle_commit_error(exc)
        except Exception as exc:
            logger.exception(
                "Level-up commit failed",
                character_id=self.character.id,
                target_level=self.target_level,
            )
            return self._handle_commit_error(
                CommitTransportError(GENERIC_COMMIT_ERROR, details={"cause": str(exc)})
            )
        finally:
            self._is_submitting = False

        self._transition(CommittedState(character=updated))
        logger.info(
            "Level-up committed",
            character_id=self.character.id,
            new_level=updated.level,
            max_hp=updated.max_hp,
        )
        return CommitOutcome(success=True, character=updated)

    def _handle_commit_error(self, exc: CommitError) -> CommitOutcome:
        logger.warning(
            "Level-up commit rejected",
            character_id=self.character.id,
            target_level=self.target_level,
            reason=exc.reason,
            status_code=exc.status_code,
            error=exc.message,
        )
        if exc.retryable:
            self._state = self._state.model_copy(
                update={"last_error": exc.message, "last_error_reason": exc.reason}
            )
        else:
            self._transition(
                AbortedState(error=exc.message, reason=exc.reason, status_code=exc.status_code)
            )
        return CommitOutcome(
            success=False,
            error=exc.message,
            reason=exc.reason,
            status_code=exc.status_code,
            retryable=exc.retryable,
        )


__all__ = [
    "GENERIC_COMMIT_ERROR",
    "LevelUpGateway",
    "ProgressionDataSource",
    "CommitOutcome",
    "LevelUpPreview",
    "LevelUpSession",
]
