from typing import Annotated

import typer
from rich.table import Table

from flaredeck.cli.context import get_app_context, run
from flaredeck.logger import console
from flaredeck.paths import registry_path
from flaredeck.registry import WorkerRegistry

app = typer.Typer(help="Inspect the registry of locally running workers.", no_args_is_help=True)


async def _list_async() -> None:
    async with get_app_context() as ctx:
        registry = WorkerRegistry(registry_path(ctx.settings.config_home))
        workers = await registry.refresh()

    if not workers:
        console.print("[yellow]No workers are registered.[/yellow]")
        return

    table = Table("Name", "Mode", "Address", "Durable Objects")
    for name, definition in workers.items():
        address = "-"
        if definition.port is not None:
            address = f"{definition.protocol or 'http'}://{definition.host or 'localhost'}:{definition.port}"
        table.add_row(
            name,
            definition.mode,
            address,
            ", ".join(do.class_name for do in definition.durable_objects) or "-",
        )
    console.print(table)


async def _unregister_async(name: str, strict: bool) -> None:
    async with get_app_context() as ctx:
        registry = WorkerRegistry(registry_path(ctx.settings.config_home))
        await registry.unregister(name, missing_ok=not strict)
    console.print(f"[green]✓[/green] Unregistered [bold]{name}[/bold]")


@app.command("list")
def list_workers() -> None:
    """List registered workers."""
    run(_list_async())


@app.command()
def unregister(
    name: Annotated[str, typer.Argument(help="Worker name")],
    strict: Annotated[
        bool, typer.Option("--strict", help="Fail if the worker is not registered")
    ] = False,
) -> None:
    """Remove a worker from the local registry."""
    run(_unregister_async(name, strict))
