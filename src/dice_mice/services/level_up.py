"""Level-up and experience endpoints.

``LevelUpService`` is the authoritative side of a level-up. It never
trusts the client's step history: every commit is re-validated against
the stored character before anything is written, in this order:

1. an authenticated user is present (401)
2. the request is well formed (400 missing-field)
3. attribute deltas fit the point budget for the mode (400)
4. the character exists and belongs to the user (404)
5. the new level is exactly one above the stored level (400)
6. every resulting attribute lies within ``[1, cap]`` (400)
7. skill points are submitted whenever the level grants any, and match
   the level's skill budget (400)

Only then is the level-up written, in one transaction.

``restore_character`` rolls a character back to an earlier snapshot when a
multi-level level-up is cancelled after some of its levels committed.

``handle_level_up`` and ``handle_experience_update`` wrap the service in
HTTP-style responses for callers that speak status codes.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from dice_mice.core.config import ProgressionSettings, get_settings
from dice_mice.core.constants import (
    ADVANCED_ATTRIBUTE_POINTS,
    ADVANCED_MIN_TOTAL_CHANGE,
    MIN_ATTRIBUTE_SCORE,
    NORMAL_ATTRIBUTE_POINTS,
    NORMAL_MAX_ATTRIBUTES_TOUCHED,
)
from dice_mice.core.exceptions import (
    AttributeOutOfBoundsError,
    CharacterNotFoundError,
    CommitError,
    InternalServerError,
    InvalidAttributeAllocationError,
    InvalidExperienceError,
    InvalidLevelProgressionError,
    InvalidSkillAllocationError,
    MissingFieldError,
    UnauthorizedError,
)
from dice_mice.core.logging import bind_context, clear_context, get_logger, setup_logging
from dice_mice.engine.level_up import LevelUpGateway
from dice_mice.models.character import AttributeSet, CharacterSnapshot
from dice_mice.models.level_up import LevelUpRequest
from dice_mice.models.progression import (
    get_attribute_cap,
    get_level_from_experience,
    get_max_skill_points,
)
from dice_mice.storage.database import Database, get_database


logger = get_logger(__name__)


# =============================================================================
# Responses
# =============================================================================


@dataclass(frozen=True)
class ApiResponse:
    """An HTTP-style response."""

    status_code: int
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class ExperienceUpdate:
    """Result of storing a new experience total.

    Attributes:
        character_id: Character identifier.
        experience: Stored experience.
        current_level: Stored level (unchanged by this update).
        available_level: Level the experience reaches.
        previous_level: Level before the update.
    """

    character_id: str
    experience: int
    current_level: int
    available_level: int
    previous_level: int

    @property
    def level_up_available(self) -> bool:
        return self.available_level > self.current_level


# =============================================================================
# Service
# =============================================================================


class LevelUpService:
    """Validates and applies level-ups and experience changes.

    Creating a service configures logging from the application settings
    unless it has been configured already.

    Args:
        database: Character store; defaults to the shared database.
        settings: Progression settings; defaults to the loaded settings.
    """

    def __init__(
        self,
        database: Database | None = None,
        settings: ProgressionSettings | None = None,
    ) -> None:
        setup_logging()
        self._database = database or get_database()
        self._settings = settings or get_settings().progression

    @property
    def database(self) -> Database:
        return self._database

    # -------------------------------------------------------------------------
    # Level-up
    # -------------------------------------------------------------------------

    def level_up(
        self,
        character_id: str,
        payload: LevelUpRequest | Mapping[str, Any],
        *,
        user: str | None,
    ) -> CharacterSnapshot:
        """Validate and apply a single-level level-up.

        Args:
            character_id: Character to level up.
            payload: The request, parsed or as received.
            user: Authenticated user, or None.

        Returns:
            The updated character.

        Raises:
            CommitError: A subclass describing why the level-up was refused.
        """
        try:
            return self._level_up(character_id, payload, user=user)
        except CommitError:
            raise
        except Exception as exc:
            logger.exception("Level-up failed unexpectedly", character_id=character_id)
            raise InternalServerError("Internal server error") from exc

    def _level_up(
        self,
        character_id: str,
        payload: LevelUpRequest | Mapping[str, Any],
        *,
        user: str | None,
    ) -> CharacterSnapshot:
        if not user:
            raise UnauthorizedError()

        request = self._parse_request(payload)
        self._check_allocation(request)
        character = self._get_owned_character(character_id, user)

        if request.new_level != character.level + 1:
            raise InvalidLevelProgressionError(
                "Invalid level progression",
                details={"current_level": character.level, "new_level": request.new_level},
            )

        attributes = self._resulting_attributes(character, request)
        skill_points = self._check_skills(character, request)

        updated = self._database.apply_level_up(
            character.id,
            expected_level=character.level,
            new_level=request.new_level,
            new_xp=request.new_xp,
            attributes=attributes,
            hp_gain=request.hp_gain,
            heal=self._settings.heal_on_level_up,
            skill_points=skill_points,
        )
        if updated is None:
            raise InvalidLevelProgressionError(
                "Invalid level progression",
                details={"reason": "character level changed during commit"},
            )

        logger.info(
            "Level-up accepted",
            character_id=character.id,
            new_level=updated.level,
            advanced_mode=request.advanced_mode,
            hp_gain=request.hp_gain,
        )
        return updated

    def _parse_request(self, payload: LevelUpRequest | Mapping[str, Any]) -> LevelUpRequest:
        if isinstance(payload, LevelUpRequest):
            return payload
        try:
            return LevelUpRequest.model_validate(payload)
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            field_name = ".".join(str(part) for part in first["loc"])
            raise MissingFieldError(field_name=field_name) from exc

    def _check_allocation(self, request: LevelUpRequest) -> None:
        changes = request.attribute_changes
        if request.advanced_mode:
            if not self._settings.allow_advanced_mode:
                raise InvalidAttributeAllocationError("Advanced mode is disabled")
            if not ADVANCED_MIN_TOTAL_CHANGE <= changes.total <= ADVANCED_ATTRIBUTE_POINTS:
                raise InvalidAttributeAllocationError(
                    "Attribute point allocation out of reasonable bounds",
                    details={"total": changes.total},
                )
            return

        if changes.total != NORMAL_ATTRIBUTE_POINTS or changes.touched > NORMAL_MAX_ATTRIBUTES_TOUCHED:
            raise InvalidAttributeAllocationError(
                "Invalid attribute point allocation",
                details={"total": changes.total, "touched": changes.touched},
            )

    def _get_owned_character(self, character_id: str, user: str) -> CharacterSnapshot:
        character = self._database.get_character(character_id)
        if character is None or character.owner != user:
            raise CharacterNotFoundError(character_id=character_id)
        return character

    def _resulting_attributes(
        self,
        character: CharacterSnapshot,
        request: LevelUpRequest,
    ) -> AttributeSet:
        cap = get_attribute_cap(request.new_level, request.advanced_mode)
        scores = character.attributes.resulting_scores(request.attribute_changes.as_dict())
        for attribute, value in scores.items():
            if not MIN_ATTRIBUTE_SCORE <= value <= cap:
                suffix = " (Advanced Mode)" if request.advanced_mode else f" for level {request.new_level}"
                raise AttributeOutOfBoundsError(
                    f"Attributes must be between {MIN_ATTRIBUTE_SCORE} and {cap}{suffix}",
                    attribute=str(attribute),
                    value=value,
                    cap=cap,
                )
        return AttributeSet.from_abbreviations(scores)

    def _check_skills(
        self,
        character: CharacterSnapshot,
        request: LevelUpRequest,
    ) -> dict[str, int] | None:
        budget = 0
        if character.character_class is not None:
            row = self._database.get_class_base_attributes(
                character.character_class.id, request.new_level
            )
            budget = row.skill_ranks if row else 0

        if request.skill_allocations is None:
            if budget > 0:
                raise InvalidSkillAllocationError(
                    f"Skill points must total {budget}, got 0",
                    details={"budget": budget, "total": 0},
                )
            return None

        skills = {skill.skill_id: skill for skill in self._database.get_character_skills(character.id)}
        for skill_id, points in request.skill_allocations.items():
            skill = skills.get(skill_id)
            if skill is None:
                raise InvalidSkillAllocationError(f"Unknown skill '{skill_id}'")
            if points < 0:
                raise InvalidSkillAllocationError(
                    "Skill points cannot be negative",
                    details={"skill_id": skill_id, "points": points},
                )
            max_points = get_max_skill_points(request.new_level, skill.is_class_skill)
            if skill.points_invested + points > max_points:
                raise InvalidSkillAllocationError(
                    f"{skill.name} cannot exceed {max_points} points at level {request.new_level}",
                    details={"skill_id": skill_id},
                )

        total = sum(request.skill_allocations.values())
        if total != budget:
            raise InvalidSkillAllocationError(
                f"Skill points must total {budget}, got {total}",
                details={"budget": budget, "total": total},
            )
        return dict(request.skill_allocations)

    # -------------------------------------------------------------------------
    # Experience
    # -------------------------------------------------------------------------

    def update_experience(
        self,
        character_id: str,
        experience: Any,
        *,
        user: str | None,
    ) -> ExperienceUpdate:
        """Store a new experience total. The level is left for a level-up to change.

        Raises:
            CommitError: Unauthorized, invalid experience, or not found.
        """
        if not user:
            raise UnauthorizedError()
        if isinstance(experience, bool) or not isinstance(experience, int) or experience < 0:
            raise InvalidExperienceError(
                "Invalid experience value",
                details={"experience": experience},
            )

        try:
            character = self._get_owned_character(character_id, user)
            self._database.set_experience(character.id, experience)
        except CommitError:
            raise
        except Exception as exc:
            logger.exception("Experience update failed", character_id=character_id)
            raise InternalServerError("Internal server error") from exc

        update = ExperienceUpdate(
            character_id=character.id,
            experience=experience,
            current_level=character.level,
            available_level=get_level_from_experience(experience),
            previous_level=character.level,
        )
        logger.info(
            "Experience stored",
            character_id=character.id,
            experience=experience,
            level_up_available=update.level_up_available,
        )
        return update

    # -------------------------------------------------------------------------
    # Rollback
    # -------------------------------------------------------------------------

    def restore_character(
        self,
        character_id: str,
        snapshot: CharacterSnapshot,
        skill_points: Mapping[str, int],
        *,
        expected_level: int,
        user: str | None,
    ) -> CharacterSnapshot:
        """Undo committed level-ups by restoring an earlier snapshot.

        Only a rollback is accepted: the snapshot must describe the same
        character at or below its stored level, with known, non-negative
        skill investments.

        Raises:
            CommitError: Unauthorized, not found, or an invalid rollback.
        """
        if not user:
            raise UnauthorizedError()

        try:
            character = self._get_owned_character(character_id, user)
            if snapshot.id != character.id:
                raise CharacterNotFoundError(character_id=snapshot.id)
            self._check_restore(character, snapshot, skill_points)

            restored = self._database.restore_character(
                snapshot,
                expected_level=expected_level,
                skill_points=skill_points,
            )
        except CommitError:
            raise
        except Exception as exc:
            logger.exception("Character restore failed", character_id=character_id)
            raise InternalServerError("Internal server error") from exc

        if restored is None:
            raise InvalidLevelProgressionError(
                "Invalid level progression",
                details={"reason": "character level changed before restore"},
            )
        logger.info(
            "Character rollback accepted",
            character_id=character.id,
            from_level=character.level,
            level=restored.level,
        )
        return restored

    def _check_restore(
        self,
        character: CharacterSnapshot,
        snapshot: CharacterSnapshot,
        skill_points: Mapping[str, int],
    ) -> None:
        if snapshot.level > character.level:
            raise InvalidLevelProgressionError(
                "A restore cannot raise the character's level",
                details={"current_level": character.level, "restore_level": snapshot.level},
            )
        known = {skill.skill_id for skill in self._database.get_character_skills(character.id)}
        for skill_id, points in skill_points.items():
            if skill_id not in known or points < 0:
                raise InvalidSkillAllocationError(
                    f"Invalid skill investment for '{skill_id}'",
                    details={"skill_id": skill_id, "points": points},
                )


# =============================================================================
# Response Handlers
# =============================================================================


def _error_response(exc: CommitError) -> ApiResponse:
    return ApiResponse(status_code=exc.status_code or 500, body=exc.to_body())


def handle_level_up(
    service: LevelUpService,
    character_id: str,
    payload: Mapping[str, Any],
    *,
    user: str | None,
) -> ApiResponse:
    """Run a level-up and render the outcome as a response."""
    bind_context(character_id=character_id, user=user)
    try:
        character = service.level_up(character_id, payload, user=user)
    except CommitError as exc:
        return _error_response(exc)
    finally:
        clear_context()
    return ApiResponse(
        status_code=200,
        body={"success": True, "character": character.model_dump(mode="json")},
    )


def handle_experience_update(
    service: LevelUpService,
    character_id: str,
    payload: Mapping[str, Any],
    *,
    user: str | None,
) -> ApiResponse:
    """Store a new experience total and render the outcome as a response."""
    bind_context(character_id=character_id, user=user)
    try:
        update = service.update_experience(character_id, payload.get("experience"), user=user)
    except CommitError as exc:
        return _error_response(exc)
    finally:
        clear_context()
    return ApiResponse(
        status_code=200,
        body={
            "success": True,
            "experience": update.experience,
            "currentLevel": update.current_level,
            "availableLevel": update.available_level,
            "levelUpAvailable": update.level_up_available,
            "previousLevel": update.previous_level,
        },
    )


# =============================================================================
# Gateway
# =============================================================================


class LocalLevelUpGateway(LevelUpGateway):
    """Connects a level-up session directly to the service for one character."""

    def __init__(self, service: LevelUpService, character_id: str, user: str | None) -> None:
        self._service = service
        self._character_id = character_id
        self._user = user

    def commit(self, request: LevelUpRequest) -> CharacterSnapshot:
        return self._service.level_up(self._character_id, request, user=self._user)

    def revert_experience(self, experience: int) -> None:
        self._service.update_experience(self._character_id, experience, user=self._user)

    def restore_character(
        self,
        snapshot: CharacterSnapshot,
        skill_points: Mapping[str, int],
        *,
        expected_level: int,
    ) -> CharacterSnapshot:
        return self._service.restore_character(
            self._character_id,
            snapshot,
            skill_points,
            expected_level=expected_level,
            user=self._user,
        )


__all__ = [
    "ApiResponse",
    "ExperienceUpdate",
    "LevelUpService",
    "LocalLevelUpGateway",
    "handle_level_up",
    "handle_experience_update",
]
