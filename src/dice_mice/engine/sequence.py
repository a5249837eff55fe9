"""Multi-level level-up sequencing.

An experience award can jump a character several levels at once. The
sequence splits the jump into one queued single-level step per level
and runs a ``LevelUpSession`` for each in order, handing the committed
character from one step to the next. Commits and cancels go through the
sequence so that it can advance, finish, or drop the remaining queue.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dice_mice.core.exceptions import ValidationError
from dice_mice.core.logging import get_logger
from dice_mice.engine.level_up import (
    CommitOutcome,
    LevelUpGateway,
    LevelUpSession,
    ProgressionDataSource,
)
from dice_mice.models.enums import LevelUpStep, SequenceStatus
from dice_mice.models.progression import get_level_from_experience


if TYPE_CHECKING:
    from dice_mice.core.config import ProgressionSettings
    from dice_mice.engine.dice import DiceRoller
    from dice_mice.models.character import CharacterSnapshot
    from dice_mice.models.level_up import CancelledState


logger = get_logger(__name__)


@dataclass(frozen=True)
class QueuedLevelUp:
    """One single-level step of a multi-level jump.

    Attributes:
        from_level: Level before this step.
        to_level: Level after this step.
        total_xp: Cumulative experience of the whole award.
        original_xp: Experience before the award, restored on cancel.
        index: Zero-based position in the queue.
    """

    from_level: int
    to_level: int
    total_xp: int
    original_xp: int
    index: int


def build_level_up_queue(
    current_level: int,
    target_level: int,
    total_xp: int,
    original_xp: int,
) -> tuple[QueuedLevelUp, ...]:
    """Build one queued step per level from ``current_level + 1`` to ``target_level``.

    Example:
        >>> [step.to_level for step in build_level_up_queue(1, 4, 2000, 150)]
        [2, 3, 4]
    """
    return tuple(
        QueuedLevelUp(
            from_level=level - 1,
            to_level=level,
            total_xp=total_xp,
            original_xp=original_xp,
            index=index,
        )
        for index, level in enumerate(range(current_level + 1, target_level + 1))
    )


class LevelUpSequence:
    """Runs one level-up session per queued level.

    Args:
        character: Character before the award.
        new_xp: Experience total after the award.
        gateway: Commit and rollback target shared by every step.
        data_source: Class and skill data source.
        original_xp: Experience before the award; defaults to the
            character's stored experience.
        target_level: Final level; defaults to the level ``new_xp`` reaches.
        roller: Dice roller for HP rolls.
        settings: Progression settings.
        on_complete: Called once with the final character after the last
            step commits.

    Raises:
        ValidationError: If the award does not reach a higher level.
    """

    def __init__(
        self,
        character: CharacterSnapshot,
        *,
        new_xp: int,
        gateway: LevelUpGateway,
        data_source: ProgressionDataSource,
        original_xp: int | None = None,
        target_level: int | None = None,
        roller: DiceRoller | None = None,
        settings: ProgressionSettings | None = None,
        on_complete: Callable[[CharacterSnapshot], None] | None = None,
    ) -> None:
        target = target_level if target_level is not None else get_level_from_experience(new_xp)
        baseline_xp = character.experience if original_xp is None else original_xp
        self._queue = build_level_up_queue(character.level, target, new_xp, baseline_xp)
        if not self._queue:
            raise ValidationError(
                f"No level-up available: level {character.level} already reaches level {target}",
                field_name="target_level",
                invalid_value=target,
            )

        self._gateway = gateway
        self._data_source = data_source
        self._roller = roller
        self._settings = settings
        self._on_complete = on_complete
        self._status = SequenceStatus.IN_PROGRESS
        self._index = 0
        self._character = character
        self._initial_character = character.model_copy(update={"experience": baseline_xp})
        self._initial_skills = {
            skill.skill_id: skill.points_invested
            for skill in data_source.get_character_skills(character.id)
        }
        self._session: LevelUpSession | None = self._open_session(character, self._queue[0])

        logger.info(
            "Level-up sequence started",
            character_id=character.id,
            from_level=character.level,
            target_level=target,
            total_steps=len(self._queue),
        )

    def _open_session(self, character: CharacterSnapshot, entry: QueuedLevelUp) -> LevelUpSession:
        return LevelUpSession(
            character,
            new_xp=entry.total_xp,
            original_xp=entry.original_xp,
            gateway=self._gateway,
            data_source=self._data_source,
            roller=self._roller,
            settings=self._settings,
        )

    @property
    def status(self) -> SequenceStatus:
        return self._status

    @property
    def queue(self) -> tuple[QueuedLevelUp, ...]:
        """Steps still belonging to the sequence; empty once it ends."""
        return self._queue

    @property
    def session(self) -> LevelUpSession | None:
        """The active session, or None once the sequence has ended."""
        return self._session

    @property
    def character(self) -> CharacterSnapshot:
        """The most recently committed character, or the restored one after a cancel."""
        return self._character

    @property
    def current(self) -> QueuedLevelUp | None:
        if self._status != SequenceStatus.IN_PROGRESS:
            return None
        return self._queue[self._index]

    @property
    def step_number(self) -> int:
        return self._index + 1

    @property
    def total_steps(self) -> int:
        return len(self._queue)

    @property
    def target_level(self) -> int | None:
        return self._queue[-1].to_level if self._queue else None

    def _require_session(self) -> LevelUpSession:
        if self._session is None:
            raise ValidationError(
                f"Level-up sequence is {self._status}",
                field_name="status",
                invalid_value=str(self._status),
            )
        return self._session

    def commit(self) -> CommitOutcome:
        """Commit the active step and open the next one on success."""
        session = self._require_session()
        outcome = session.commit()

        if outcome.success and outcome.character is not None:
            self._advance(outcome.character)
        elif session.step == LevelUpStep.ABORTED:
            logger.warning(
                "Level-up sequence aborted",
                character_id=self._character.id,
                step_number=self.step_number,
                reason=outcome.reason,
            )
            self._finish(SequenceStatus.ABORTED)
        return outcome

    def cancel(self) -> CancelledState:
        """Cancel the sequence and drop the queue.

        Before any step has committed only the experience award is
        reverted. Afterwards the character is restored to its state when
        the sequence started, committed steps included, in a single write.
        If the rollback fails the sequence stays open.
        """
        session = self._require_session()
        if self._index == 0:
            cancelled = session.cancel()
        else:
            cancelled = session.cancel(rollback=self._restore_initial_character)
        logger.info(
            "Level-up sequence cancelled",
            character_id=self._character.id,
            step_number=self.step_number,
            discarded_steps=len(self._queue) - self._index - 1,
        )
        self._finish(SequenceStatus.CANCELLED)
        return cancelled

    def _restore_initial_character(self) -> None:
        restored = self._gateway.restore_character(
            self._initial_character,
            self._initial_skills,
            expected_level=self._character.level,
        )
        logger.info(
            "Level-up sequence rolled back",
            character_id=restored.id,
            from_level=self._character.level,
            restored_level=restored.level,
        )
        self._character = restored

    def _advance(self, character: CharacterSnapshot) -> None:
        self._character = character
        if self._index + 1 < len(self._queue):
            self._index += 1
            self._session = self._open_session(character, self._queue[self._index])
            return

        self._finish(SequenceStatus.COMPLETED)
        logger.info(
            "Level-up sequence completed",
            character_id=character.id,
            level=character.level,
        )
        if self._on_complete is not None:
            self._on_complete(character)

    def _finish(self, status: SequenceStatus) -> None:
        self._status = status
        self._session = None
        if status != SequenceStatus.COMPLETED:
            self._queue = ()


__all__ = [
    "QueuedLevelUp",
    "build_level_up_queue",
    "LevelUpSequence",
]
