"""Logging helpers used by the personService bootstrap.

This module configures console logging with Rich and an optional in-memory
"flight recorder" that buffers log records and writes them to disk on flush.
Levels are read from the application `Environment`; the other options are
validated by the `LoggingSettings` pydantic-settings model:

- ``logging.level.root`` / ``logging.level.<name>``: logger levels,
- ``debug``: developer formatting (timestamps, logger names, source paths),
- ``logging.color``: colored console output,
- ``logging.file.name`` / ``logging.flight-recorder.*``: flight recorder.

It also provides a filter that annotates third-party log records with a short
prefix used by console formatting.
"""

from __future__ import annotations

import logging
import os
import platform
import sys
from collections.abc import Mapping
from importlib.metadata import PackageNotFoundError, version
from logging.handlers import MemoryHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

from platformdirs import user_log_dir
from pydantic import Field, field_validator
from rich.console import Console
from rich.logging import RichHandler

from personservice.config import ConfigurationError, PersonServiceSettings

if TYPE_CHECKING:
    from logging import Logger

    from personservice.config import ApplicationArguments, Environment

# pylint: disable=too-few-public-methods

PROJECT_PREFIX = "personservice"
ROOT_LOGGER_NAME = "root"
LOGGER_LEVEL_PREFIX = "logging.level."

# Level name accepted in configuration to silence a logger completely.
OFF = logging.CRITICAL + 10

DEFAULT_ROOT_LEVEL = logging.INFO
DEFAULT_FLIGHT_RECORDER_CAPACITY = 2000
DEFAULT_FLIGHT_RECORDER_FILE = "latest.log"

REPORTED_LIBRARIES = (
    "click",
    "click-extra",
    "rich",
    "platformdirs",
    "pydantic-settings",
)


class InvalidLogLevelError(ConfigurationError):
    """Raised when a ``logging.level.*`` property names an unknown level."""

    def __init__(self, logger_name: str, level: str) -> None:
        super().__init__(f"Invalid log level for logger {logger_name!r}: {level!r}")
        self.logger_name = logger_name
        self.level = level


class ThirdPartyPrefixFilter(logging.Filter):
    """Annotate third-party log records with a short prefix.

    For records whose logger name does not start with the project prefix,
    sets `record.prefix` to a short bracketed token like "[urllib3]". For
    project loggers the prefix is set to an empty string. The filter always
    returns True to allow the record to be processed.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Attach a prefix to the record and allow it through.

        Args:
            record: The LogRecord being processed.

        Returns:
            bool: Always True (record is not filtered out).
        """
        if not record.name.startswith(PROJECT_PREFIX):
            # e.g. "urllib3.connectionpool" -> "[urllib3]"
            record.prefix = f"[{record.name.split('.')[0]}]"
        else:
            record.prefix = ""
        return True


def parse_level(logger_name: str, level: str) -> int:
    """Convert a textual level name into its numeric logging level.

    Args:
        logger_name: Logger the level applies to (reported in errors).
        level: Case-insensitive level name, e.g. ``debug`` or ``OFF``.

    Returns:
        int: The numeric level.

    Raises:
        InvalidLogLevelError: If *level* is not a standard level name.
    """
    name = level.strip().upper()
    if name == "OFF":
        return OFF
    if not isinstance(lvl := logging.getLevelName(name), int):
        raise InvalidLogLevelError(logger_name, level)
    return lvl


def parse_logger_levels(environment: Environment) -> dict[str, int]:
    """Collect ``logging.level.<name>`` properties into a name->level dict.

    The ``root`` entry is always present and defaults to INFO.

    Args:
        environment: Environment to read the properties from.

    Returns:
        dict[str, int]: Mapping of logger names to numeric logging levels.

    Raises:
        InvalidLogLevelError: If a property names an unknown level.
    """
    levels = {ROOT_LOGGER_NAME: DEFAULT_ROOT_LEVEL}
    for name, level_str in environment.with_prefix(LOGGER_LEVEL_PREFIX).items():
        levels[name] = parse_level(name, level_str)
    return levels


def config_console_handler(
    level: int = logging.INFO, debug_mode: bool = False, color: bool = True
) -> RichHandler:
    """Configure and return a RichHandler for console output.

    The handler writes to stderr and supports optional color and a debug
    mode. In debug mode the handler is set to DEBUG and includes source
    file/line information; otherwise a short third-party prefix is applied.

    Args:
        level: Minimum level for console output (overridden to DEBUG in debug_mode).
        debug_mode: When True, enable debug formatting (show_path, timestamps).
        color: Enable color output when True.

    Returns:
        RichHandler: Configured handler suitable to attach to the root logger.
    """

    ColorSystem: TypeAlias = Literal["auto", "standard", "256", "truecolor", "windows"]
    color_system: ColorSystem | None = "auto" if color else None

    console = Console(color_system=color_system, stderr=True)

    if debug_mode:
        level = logging.DEBUG

    # In debug mode, show_path is enabled to show file paths in logs
    handler = RichHandler(
        level=level,
        console=console,
        rich_tracebacks=True,
        show_time=False,
        show_path=debug_mode,
        enable_link_path=debug_mode,
    )

    fmt = (
        "%(prefix)s %(message)s"
        if not debug_mode
        else "%(asctime)s %(name)s: %(message)s"
    )
    handler.setFormatter(logging.Formatter(fmt=fmt))

    if not debug_mode:
        handler.addFilter(ThirdPartyPrefixFilter())

    return handler


def config_flight_recorder(
    path: Path,
    capacity: int = DEFAULT_FLIGHT_RECORDER_CAPACITY,
    flush_level: int = logging.WARNING,
    flush_on_close: bool = False,
) -> MemoryHandler:
    """Configure and return an in-memory flight recorder backed by a file.

    The flight recorder buffers up to `capacity` log records and flushes
    them to the provided file handler when a record at `flush_level` or
    higher is emitted (or on close if `flush_on_close` is True).

    Args:
        path: Destination file path for flushed records.
        capacity: Number of records to buffer in memory.
        flush_level: Level at or above which the buffer will be flushed.
        flush_on_close: If True, flush the buffer when the handler is closed.

    Returns:
        MemoryHandler: A memory-backed handler with a FileHandler target.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    # delay=True so the file is only created once something is flushed
    file_handler = logging.FileHandler(path, mode="w", encoding="utf-8", delay=True)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] [%(process)d:%(threadName)s] %(levelname)s %(name)s:%(lineno)d: %(message)s"
        )
    )

    return MemoryHandler(
        capacity=capacity,
        flushLevel=flush_level,
        target=file_handler,
        flushOnClose=flush_on_close,
    )


class LoggingSettings(PersonServiceSettings):
    """Logging options resolved from the application's property sources."""

    debug: bool = Field(
        default=False,
        description="Developer console formatting at DEBUG level",
    )
    logging_color: bool = Field(default=True, description="Colored console output")
    logging_file_name: Path | None = Field(
        default=None, description="Flight recorder file; enables the recorder"
    )
    logging_flight_recorder_enabled: bool = Field(
        default=False,
        description="Enable the flight recorder in the per-user log directory",
    )
    logging_flight_recorder_capacity: int = Field(
        default=DEFAULT_FLIGHT_RECORDER_CAPACITY,
        ge=1,
        description="Number of records buffered before a flush",
    )
    logging_flight_recorder_force_flush: bool = Field(
        default=False, description="Write the buffer on close"
    )

    @field_validator("debug", mode="before")
    @classmethod
    def debug_unless_false(cls, value: Any) -> Any:
        # any value other than "false" turns debug on, e.g. DEBUG=*
        if isinstance(value, str):
            return value.strip().lower() != "false"
        return value

    @property
    def flight_recorder_path(self) -> Path | None:
        """Where the flight recorder writes, or None when it is disabled."""
        if self.logging_file_name is not None:
            return self.logging_file_name.expanduser()
        if self.logging_flight_recorder_enabled:
            return (
                Path(user_log_dir(PROJECT_PREFIX, appauthor=False))
                / DEFAULT_FLIGHT_RECORDER_FILE
            )
        return None

    @property
    def flight_recorder(self) -> bool:
        """Whether the flight recorder is enabled."""
        return self.flight_recorder_path is not None


def resolve_logging_settings(
    environment: Environment,
    arguments: ApplicationArguments,
    environ: Mapping[str, str],
) -> LoggingSettings:
    """Validate the logging settings from the application's sources.

    Raises:
        ConfigurationError: If any logging property has an invalid value.
    """
    return LoggingSettings.load(arguments, environ, environment)


def configure_logging(
    settings: LoggingSettings, console_level: int = DEFAULT_ROOT_LEVEL
) -> list[logging.Handler]:
    """Install console (and flight-recorder) handlers on the root logger.

    Args:
        settings: Resolved logging options.
        console_level: Minimum level printed on the console.

    Returns:
        list[logging.Handler]: The handlers now attached to the root logger.
    """
    handlers: list[logging.Handler] = [
        config_console_handler(
            level=console_level,
            debug_mode=settings.debug,
            color=settings.logging_color,
        )
    ]

    if (path := settings.flight_recorder_path) is not None:
        handlers.append(
            config_flight_recorder(
                path=path,
                capacity=settings.logging_flight_recorder_capacity,
                flush_on_close=settings.logging_flight_recorder_force_flush,
            )
        )

    logging.basicConfig(
        level=logging.DEBUG,  # capture all levels; handlers filter
        handlers=handlers,
        force=True,  # override any existing logging config
    )

    return handlers


def apply_logger_levels(levels: Mapping[str, int]) -> dict[str, int]:
    """Set per-logger levels and return the levels they replaced.

    The returned mapping can be handed to `restore_logger_levels`.
    """
    previous: dict[str, int] = {}
    for name, lvl in levels.items():
        logger = logging.getLogger(name)
        previous[name] = logger.level
        logger.setLevel(lvl)
    return previous


def restore_logger_levels(previous: Mapping[str, int]) -> None:
    """Put back levels recorded by `apply_logger_levels` (``""`` is the root)."""
    for name, lvl in previous.items():
        logging.getLogger(name).setLevel(lvl)


def release_handlers(handlers: list[logging.Handler]) -> None:
    """Close and detach *handlers* from the root logger.

    A flight recorder only writes its buffer here when it was configured to
    flush on close; its file target is closed as well.
    """
    root = logging.getLogger()
    for handler in handlers:
        root.removeHandler(handler)
        target = handler.target if isinstance(handler, MemoryHandler) else None
        handler.close()
        if target is not None:
            target.close()


def _library_version(name: str) -> str:
    try:
        return version(name)
    except PackageNotFoundError:
        return "<not installed>"


def log_startup(
    logger: Logger,
    *,
    app_version: str,
    settings: LoggingSettings,
    console_level: int,
    logger_levels: Mapping[str, int],
    handlers: list[logging.Handler],
) -> None:
    """Log startup diagnostics at DEBUG level.

    Emits a one-line summary describing the application version and whether
    the flight-recorder is enabled, followed by Python and platform versions,
    process id, current working directory, library versions, the active handler
    types, flight-recorder settings and any per-logger overrides.

    Args:
        logger: Logger used to emit startup messages.
        app_version: Application version string to display.
        settings: Logging options in effect.
        console_level: Level of the console handler.
        logger_levels: Per-logger levels applied on top of the root.
        handlers: Active logging handlers attached to the root logger.
    """
    logger.debug(
        "personService %s - console=%s, flight-recorder=%s",
        app_version,
        logging.getLevelName(console_level),
        "ON" if settings.flight_recorder else "OFF",
    )

    logger.debug("Python: %s", sys.version.split()[0])
    logger.debug("Platform: %s %s", platform.system(), platform.release())
    logger.debug("PID: %s", os.getpid())
    logger.debug("CWD: %s", Path.cwd())
    for library in REPORTED_LIBRARIES:
        logger.debug("%s: %s", library, _library_version(library))
    logger.debug("Handlers: %s", [type(h).__name__ for h in handlers])
    if settings.flight_recorder:
        logger.debug(
            "Flight recorder: path=%s, capacity=%s, flush_on_close=%s",
            settings.flight_recorder_path,
            settings.logging_flight_recorder_capacity,
            settings.logging_flight_recorder_force_flush,
        )
    if logger_levels:
        logger.debug(
            "Per-logger overrides: %s",
            {
                name: logging.getLevelName(lvl)
                for name, lvl in logger_levels.items()
            },
        )
    else:
        logger.debug("Per-logger overrides: <none>")
