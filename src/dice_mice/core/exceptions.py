"""Custom exception hierarchy for the Dice Mice progression engine.

All exceptions inherit from DiceMiceError so that callers can handle
every application failure at one boundary while still reading the
domain-specific context carried in ``details``.

Commit failures form their own branch (``CommitError``). Each one knows
the HTTP-style status code and machine-readable reason it maps to, and
whether the client may resubmit after correcting its request.

Example:
    >>> from dice_mice.core.exceptions import InvalidLevelProgressionError
    >>> raise InvalidLevelProgressionError("Can only level up one level at a time")
"""

from __future__ import annotations

from typing import Any, ClassVar


class DiceMiceError(Exception):
    """Base exception for all Dice Mice errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        """Initialize the base exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional details.

        Returns:
            Formatted error message including any provided details.
        """
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} [{detail_str}]"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


# =============================================================================
# Configuration and Validation Exceptions
# =============================================================================


class ConfigurationError(DiceMiceError):
    """Raised when application configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration error.

        Args:
            message: Human-readable error description.
            config_key: The configuration key that caused the error.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if config_key:
            combined_details["config_key"] = config_key
        super().__init__(message, details=combined_details)


class ValidationError(DiceMiceError):
    """Raised when a value falls outside the domain a rule accepts."""

    def __init__(
        self,
        message: str,
        *,
        field_name: str | None = None,
        invalid_value: Any = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize validation error.

        Args:
            message: Human-readable error description.
            field_name: Name of the field that failed validation.
            invalid_value: The value that failed validation.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if field_name:
            combined_details["field_name"] = field_name
        if invalid_value is not None:
            combined_details["invalid_value"] = invalid_value
        super().__init__(message, details=combined_details)


class StorageError(DiceMiceError):
    """Raised when the character store cannot complete an operation."""


# =============================================================================
# Progression Exceptions
# =============================================================================


class ProgressionError(DiceMiceError):
    """Base exception for level-up workflow errors."""


class LevelUpStateError(ProgressionError):
    """Raised when a level-up operation is invoked in the wrong step.

    Attributes:
        current_state: The step the session was in.
        expected_states: Steps in which the operation is allowed.
    """

    def __init__(
        self,
        message: str,
        *,
        current_state: str | None = None,
        expected_states: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize level-up state error.

        Args:
            message: Human-readable error description.
            current_state: The step the session was in.
            expected_states: Steps in which the operation is allowed.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if current_state:
            combined_details["current_state"] = current_state
        if expected_states:
            combined_details["expected_states"] = expected_states
        self.current_state = current_state
        self.expected_states = expected_states or []
        super().__init__(message, details=combined_details)


class DiceRollError(ProgressionError):
    """Raised when a dice expression cannot be parsed or rolled."""

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize dice roll error.

        Args:
            message: Human-readable error description.
            expression: The dice expression that failed.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if expression:
            combined_details["expression"] = expression
        super().__init__(message, details=combined_details)


# =============================================================================
# Commit Exceptions
# =============================================================================


class CommitError(DiceMiceError):
    """Base exception for a rejected or failed level-up commit.

    Subclasses pin ``status_code`` and ``reason``. A retryable error leaves
    the level-up session open so the user can correct and resubmit.

    Attributes:
        status_code: HTTP-style status, or None for transport failures.
        reason: Machine-readable rejection reason.
        retryable: Whether resubmitting the same session may succeed.
    """

    status_code: ClassVar[int | None] = 500
    reason: ClassVar[str] = "internal-error"
    retryable: ClassVar[bool] = True

    def to_body(self) -> dict[str, Any]:
        """Render the error as a response body."""
        return {"error": self.message, "reason": self.reason}


class MissingFieldError(CommitError):
    """Raised when a commit request lacks a required field."""

    status_code = 400
    reason = "missing-field"

    def __init__(
        self,
        message: str = "Missing required fields",
        *,
        field_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if field_name:
            combined_details["field_name"] = field_name
        super().__init__(message, details=combined_details)


class InvalidLevelProgressionError(CommitError):
    """Raised when the requested level is not exactly one above the stored level."""

    status_code = 400
    reason = "invalid-level-progression"


class InvalidAttributeAllocationError(CommitError):
    """Raised when attribute deltas break the point-budget rules."""

    status_code = 400
    reason = "invalid-attribute-allocation"


class AttributeOutOfBoundsError(CommitError):
    """Raised when a resulting attribute would leave ``[1, cap]``."""

    status_code = 400
    reason = "attribute-out-of-bounds"

    def __init__(
        self,
        message: str,
        *,
        attribute: str | None = None,
        value: int | None = None,
        cap: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if attribute:
            combined_details["attribute"] = attribute
        if value is not None:
            combined_details["value"] = value
        if cap is not None:
            combined_details["cap"] = cap
        super().__init__(message, details=combined_details)


class InvalidSkillAllocationError(CommitError):
    """Raised when submitted skill points do not match the level's budget."""

    status_code = 400
    reason = "invalid-skill-allocation"


class InvalidExperienceError(CommitError):
    """Raised when an experience update is negative or not an integer."""

    status_code = 400
    reason = "invalid-experience"


class UnauthorizedError(CommitError):
    """Raised when no authenticated user accompanies a request."""

    status_code = 401
    reason = "unauthorized"
    retryable = False

    def __init__(self, message: str = "Unauthorized", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class CharacterNotFoundError(CommitError):
    """Raised when the character is absent or owned by another user."""

    status_code = 404
    reason = "not-found"
    retryable = False

    def __init__(
        self,
        message: str = "Character not found",
        *,
        character_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if character_id:
            combined_details["character_id"] = character_id
        super().__init__(message, details=combined_details)


class InternalServerError(CommitError):
    """Raised when the commit failed for a reason the client cannot fix."""


class CommitTransportError(CommitError):
    """Raised when a commit never reached the server or its reply was lost."""

    status_code = None
    reason = "transport-error"


__all__ = [
    # Base
    "DiceMiceError",
    # Configuration and validation
    "ConfigurationError",
    "ValidationError",
    "StorageError",
    # Progression
    "ProgressionError",
    "LevelUpStateError",
    "DiceRollError",
    # Commit
    "CommitError",
    "MissingFieldError",
    "InvalidLevelProgressionError",
    "InvalidAttributeAllocationError",
    "AttributeOutOfBoundsError",
    "InvalidSkillAllocationError",
    "InvalidExperienceError",
    "UnauthorizedError",
    "CharacterNotFoundError",
    "InternalServerError",
    "CommitTransportError",
]
