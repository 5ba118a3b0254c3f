"""Start-up routine for personService.

Brings the process into a running state through the bootstrap, then creates a
demonstration `Person` and reports both:

    Started: personService
    Created: Build Master
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Sequence

from personservice.bootstrap import AppContainer, bootstrap
from personservice.domain import Person

logger = logging.getLogger(__name__)

APP_NAME_KEY = "info.app.name"  # pragma: no mutate


def start(
    args: Sequence[str],
    bootstrap_fn: Callable[[Sequence[str]], AppContainer] = bootstrap,
) -> AppContainer:
    """Bootstrap the application and log the start-up lines.

    Errors raised by *bootstrap_fn* propagate unchanged and nothing is logged.

    Args:
        args: Process arguments, forwarded unparsed to *bootstrap_fn*.
        bootstrap_fn: Builds the running container from *args*.

    Returns:
        AppContainer: The running container.
    """
    container = bootstrap_fn(args)
    test_person = Person("Build", "Master")
    logger.info("Started: %s", container.environment.get(APP_NAME_KEY))
    logger.info("Created: %s %s", test_person.firstname, test_person.surname)
    return container


def main(args: Sequence[str] | None = None) -> AppContainer:
    """Run the start-up routine with *args* (default: ``sys.argv[1:]``)."""
    return start(sys.argv[1:] if args is None else args)
