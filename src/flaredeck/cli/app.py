import logging
from typing import Annotated

import typer

from flaredeck import __version__
from flaredeck.cli.commands import queues, registry
from flaredeck.cli.commands.cert import cert
from flaredeck.cli.commands.deploy import deploy

app = typer.Typer(
    name="flaredeck",
    help="Deploy Cloudflare Workers and run them side by side locally.",
    no_args_is_help=True,
)
app.command()(deploy)
app.command()(cert)
app.add_typer(registry.app, name="registry")
app.add_typer(queues.app, name="queues")


def _version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
    version: Annotated[
        bool | None,
        typer.Option("--version", callback=_version, is_eager=True, help="Show the version and exit"),
    ] = None,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
