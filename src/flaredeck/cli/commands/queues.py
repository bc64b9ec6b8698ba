from typing import Annotated

import typer

from flaredeck.cli.context import get_app_context, run
from flaredeck.client.queues import create_queue
from flaredeck.logger import console

app = typer.Typer(help="Manage queues.", no_args_is_help=True)


async def _create_async(name: str) -> None:
    async with get_app_context() as ctx:
        client, account_id = ctx.require_client()
        console.print(f'Creating queue "{name}".', markup=False)
        await create_queue(client, account_id, name)
    console.print(f'Created queue "{name}".', markup=False)


@app.command()
def create(name: Annotated[str, typer.Argument(help="The name of the queue")]) -> None:
    """Create a queue."""
    run(_create_async(name))
