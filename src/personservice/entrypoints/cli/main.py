"""personService CLI entry point.

Defines the top-level ``personservice`` command (via Click-Extra). Apart from
``--help`` and ``--version``, every argument is forwarded unparsed to the
start-up routine, which reads ``--name=value`` pairs as configuration.

Examples
    $ personservice --version
    $ personservice --info.app.name=demo --logging.level.root=DEBUG
"""

import click
import click_extra as clickx

from personservice import __version__
from personservice.config import ConfigurationError
from personservice.entrypoints.boot_up import main

HELP = """personService start-up command.

    Bootstraps the service environment from properties files, environment
    variables and --name=value arguments, then logs the application name and
    the demonstration person it creates.
    """


@clickx.extra_command(
    version=__version__,
    help=HELP,
    params=[clickx.ExtraVersionOption()],
    context_settings={"ignore_unknown_options": True, "allow_extra_args": True},
)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@clickx.pass_context
def personservice(ctx: click.Context, args: tuple[str, ...]) -> None:
    """personService start-up command."""
    try:
        container = main(list(args))
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    # release logging handlers after the command returns
    ctx.call_on_close(container.close)
