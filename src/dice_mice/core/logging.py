"""Structured logging for Dice Mice.

Events are emitted through structlog as key/value pairs (character id,
target level, step) and rendered by the standard library's handlers, so
records from sqlite3 or any other stdlib user share one format and one
destination.

``setup_logging`` reads ``Settings.log_level``, ``json_logs``,
``log_file`` and ``app_version`` and configures everything once;
``configure_logging`` takes the same options explicitly.

Example:
    >>> from dice_mice.core.logging import get_logger, setup_logging
    >>> setup_logging()
    >>> logger = get_logger(__name__)
    >>> logger.info("Level-up committed", character_id="c1", new_level=3)
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import Processor


if TYPE_CHECKING:
    from structlog.types import EventDict, WrappedLogger

    from dice_mice.core.config import Settings


APP_NAME = "dice_mice"


class AppContext:
    """Processor stamping each event with the application name and version.

    Args:
        app: Value of the ``app`` key.
        version: Value of the ``version`` key; omitted when None.
    """

    def __init__(self, app: str = APP_NAME, version: str | None = None) -> None:
        self.app = app
        self.version = version

    def __call__(
        self,
        logger: WrappedLogger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        event_dict.setdefault("app", self.app)
        if self.version is not None:
            event_dict.setdefault("version", self.version)
        return event_dict


def _renderer(json_format: bool) -> list[Processor]:
    if json_format:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def _remove_handlers(root: logging.Logger) -> None:
    """Detach handlers installed by an earlier configuration."""
    for handler in list(root.handlers):
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(handler)
            handler.close()


def configure_logging(
    *,
    level: str = "INFO",
    json_format: bool = False,
    log_file: str | Path | None = None,
    app_version: str | None = None,
) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        level: The logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: Render one JSON object per line instead of console text.
        log_file: Also write every record to this file.
        app_version: Version stamped on every event.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        AppContext(version=app_version),
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *pre_chain,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *_renderer(json_format),
        ],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    root = logging.getLogger()
    _remove_handlers(root)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(numeric_level)


def setup_logging(settings: Settings | None = None, *, force: bool = False) -> bool:
    """Configure logging from application settings.

    Does nothing when logging is already configured unless ``force`` is set.

    Args:
        settings: Settings to read; defaults to the loaded settings.
        force: Reconfigure even if logging was set up before.

    Returns:
        True if logging was (re)configured.
    """
    if structlog.is_configured() and not force:
        return False

    if settings is None:
        from dice_mice.core.config import get_settings

        settings = get_settings()

    configure_logging(
        level=settings.log_level,
        json_format=settings.json_logs,
        log_file=settings.log_file,
        app_version=settings.app_version,
    )
    return True


def reset_logging() -> None:
    """Return structlog to its defaults and drop handlers installed here."""
    structlog.reset_defaults()
    _remove_handlers(logging.getLogger())


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger, typically named after ``__name__``."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind key/value pairs to every event logged in the current context.

    Example:
        >>> bind_context(character_id="c1", user="alice")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


__all__ = [
    "APP_NAME",
    "AppContext",
    "configure_logging",
    "setup_logging",
    "reset_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
