from pathlib import Path
from typing import Annotated

import typer

from flaredeck.cli.context import get_app_context, parse_key_values, run
from flaredeck.deployment import DeployProps, deploy as deploy_worker, drain_reports
from flaredeck.exceptions import UserError
from flaredeck.logger import console
from flaredeck.models.worker import Entry
from flaredeck.models.worker_config import WorkerConfig


def _load_config(path: Path) -> WorkerConfig:
    if not path.exists():
        return WorkerConfig()
    try:
        return WorkerConfig.from_file(path)
    except ValueError as e:
        raise UserError(f"Could not read {path}: {e}") from e


async def _deploy_async(
    script: Path | None,
    config_path: Path,
    props: dict,
) -> None:
    """
    Asynchronous implementation of the deploy command.

    Args:
        script: Entry point given on the command line, if any.
        config_path: Path to flaredeck.toml.
        props: CLI overrides passed straight to DeployProps.

    Raises:
        UserError: If there is no entry point or configuration is incomplete.
    """
    config = _load_config(config_path)
    project_root = config_path.resolve().parent

    entry_file = script or (project_root / config.main if config.main else None)
    if entry_file is None:
        raise UserError(
            "Missing entry-point: The entry-point should be specified via the command line "
            '(e.g. `flaredeck deploy path/to/script`) or the `main` config field.'
        )
    if not entry_file.is_file():
        raise UserError(f"The entry-point file at {entry_file} was not found.")

    async with get_app_context() as ctx:
        try:
            with console.status("Deploying...", spinner="dots"):
                await deploy_worker(
                    DeployProps(
                        config=config,
                        entry=Entry.from_file(entry_file),
                        account_id=ctx.settings.account_id,
                        project_root=project_root,
                        rules=config.rules,
                        await_reports=ctx.settings.await_reports,
                        send_metrics=ctx.settings.send_metrics,
                        **props,
                    ),
                    client=ctx.client,
                )
        finally:
            await drain_reports()


def deploy(
    script: Annotated[Path | None, typer.Argument(help="Path to the worker's entry point")] = None,
    name: Annotated[str | None, typer.Option(help="Name of the worker")] = None,
    compatibility_date: Annotated[
        str | None, typer.Option(help="Date to use for compatibility checks")
    ] = None,
    compatibility_flags: Annotated[
        list[str] | None,
        typer.Option("--compatibility-flag", help="Flags to use for compatibility checks"),
    ] = None,
    var: Annotated[
        list[str] | None, typer.Option(help="A key-value pair to be injected as a variable (KEY:VALUE)")
    ] = None,
    define: Annotated[
        list[str] | None, typer.Option(help="A key-value pair to be substituted in the script")
    ] = None,
    jsx_factory: Annotated[str | None, typer.Option(help="The function called for each JSX element")] = None,
    jsx_fragment: Annotated[str | None, typer.Option(help="The function called for JSX fragments")] = None,
    tsconfig: Annotated[str | None, typer.Option(help="Path to a custom tsconfig.json")] = None,
    minify: Annotated[bool | None, typer.Option("--minify/--no-minify", help="Minify the worker")] = None,
    outdir: Annotated[Path | None, typer.Option(help="Output directory for the bundled worker")] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Don't actually deploy")] = False,
    no_bundle: Annotated[bool, typer.Option("--no-bundle", help="Skip internal build steps")] = False,
    keep_vars: Annotated[
        bool, typer.Option("--keep-vars", help="Keep variables set in the dashboard")
    ] = False,
    upload_source_maps: Annotated[
        bool | None,
        typer.Option(
            "--upload-source-maps/--no-upload-source-maps",
            help="Include source maps in the upload",
        ),
    ] = None,
    config: Annotated[Path, typer.Option("--config", "-c", help="Path to flaredeck.toml")] = Path(
        "flaredeck.toml"
    ),
) -> None:
    """Deploy a worker to Cloudflare."""
    props = {
        "name": name,
        "compatibility_date": compatibility_date,
        "compatibility_flags": compatibility_flags or None,
        "vars": parse_key_values(var, "--var") or None,
        "defines": parse_key_values(define, "--define") or None,
        "jsx_factory": jsx_factory,
        "jsx_fragment": jsx_fragment,
        "tsconfig": tsconfig,
        "minify": minify,
        "out_dir": outdir,
        "dry_run": dry_run,
        "no_bundle": no_bundle,
        "keep_vars": keep_vars,
        "upload_source_maps": upload_source_maps,
    }
    run(_deploy_async(script, config, props))
