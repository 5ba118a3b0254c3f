"""Bootstrap the runtime environment and logging into an application container."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from personservice import __version__
from personservice.config import ApplicationArguments, Environment, build_environment
from personservice.logging import (
    ROOT_LOGGER_NAME,
    apply_logger_levels,
    configure_logging,
    log_startup,
    parse_logger_levels,
    release_handlers,
    resolve_logging_settings,
    restore_logger_levels,
)

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


class ContainerState(Enum):
    """Lifecycle states of an application container."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    CLOSED = "closed"


@dataclass
class AppContainer:
    """The running application: its environment and installed logging handlers."""

    environment: Environment
    arguments: ApplicationArguments
    handlers: list[logging.Handler] = field(default_factory=list)
    previous_levels: dict[str, int] = field(default_factory=dict)
    started_at: float | None = None
    state: ContainerState = ContainerState.NOT_STARTED

    def close(self) -> None:
        """Release the logging handlers, restore logger levels, mark it closed.

        Closing a container that is not running does nothing.
        """
        if self.state is not ContainerState.RUNNING:
            return
        logger.debug("Closing application container")
        release_handlers(self.handlers)
        restore_logger_levels(self.previous_levels)
        self.handlers = []
        self.previous_levels = {}
        self.state = ContainerState.CLOSED


def bootstrap(
    args: Sequence[str],
    environ: Mapping[str, str] | None = None,
    search_paths: Sequence[Path] | None = None,
) -> AppContainer:
    """Bootstrap the environment and logging and return a running container.

    Args:
        args: Process arguments, forwarded unparsed.
        environ: Environment variables; defaults to ``os.environ``.
        search_paths: Locations searched for ``application.properties``;
            defaults to ``./config``, ``./`` and the packaged defaults.

    Returns:
        AppContainer: A container in the ``RUNNING`` state.

    Raises:
        ConfigurationError: If the configuration is invalid. Nothing is logged
            and no handlers are installed in that case.
    """
    environ = dict(os.environ if environ is None else environ)
    environment, arguments = build_environment(args, environ, search_paths)
    settings = resolve_logging_settings(environment, arguments, environ)
    logger_levels = parse_logger_levels(environment)
    console_level = logger_levels.pop(ROOT_LOGGER_NAME)

    # "" is the root logger, whose level basicConfig replaces
    previous_levels = {"": logging.getLogger().level}
    handlers = configure_logging(settings, console_level)
    previous_levels.update(apply_logger_levels(logger_levels))
    log_startup(
        logger,
        app_version=__version__,
        settings=settings,
        console_level=console_level,
        logger_levels=logger_levels,
        handlers=handlers,
    )

    return AppContainer(
        environment=environment,
        arguments=arguments,
        handlers=handlers,
        previous_levels=previous_levels,
        started_at=time.time(),
        state=ContainerState.RUNNING,
    )
