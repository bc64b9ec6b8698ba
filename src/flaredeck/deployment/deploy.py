"""The deploy pipeline: validate, build, assemble bindings, upload, report."""

import asyncio
import datetime
import logging
import os
import shutil
import time
from contextlib import ExitStack
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from flaredeck.client.api import CloudflareClient
from flaredeck.client.queues import get_queue
from flaredeck.constants import COMPATIBILITY_DATES_URL, QUEUE_NOT_FOUND_CODE
from flaredeck.deployment.bindings import build_bindings, mask_vars, print_bindings
from flaredeck.deployment.bundle import BundleOptions, Bundler, EsbuildBundler
from flaredeck.deployment.modules import no_bundle_worker
from flaredeck.deployment.reporter import print_bundle_size, start_report
from flaredeck.deployment.upload_form import create_worker_upload_form
from flaredeck.exceptions import ApiError, UserError
from flaredeck.logger import Logger, logger
from flaredeck.models.worker import BundleResult, CfModule, Entry, SourceMap, WorkerUpload
from flaredeck.models.worker_config import Placement, Rule, WorkerConfig
from flaredeck.paths import project_tmp_dir

__all__ = ["DeployProps", "deploy", "ensure_queues_exist", "format_time", "script_url"]

log = logging.getLogger(__name__)


class DeployProps(BaseModel):
    """Inputs to a single deploy. CLI values here override the config file."""

    config: WorkerConfig
    entry: Entry
    account_id: str | None = None
    rules: list[Rule] = Field(default_factory=list)
    name: str | None = None
    env: str | None = None
    compatibility_date: str | None = None
    compatibility_flags: list[str] | None = None
    vars: dict[str, Any] | None = None
    defines: dict[str, str] | None = None
    jsx_factory: str | None = None
    jsx_fragment: str | None = None
    tsconfig: str | None = None
    minify: bool | None = None
    out_dir: Path | None = None
    dry_run: bool = False
    no_bundle: bool = False
    keep_vars: bool | None = None
    upload_source_maps: bool | None = None
    project_root: Path | None = None
    send_metrics: bool | None = None

    await_reports: bool = False
    """Wait for the bundle size report instead of letting it finish in the background."""


def format_time(seconds: float) -> str:
    return f"({seconds:.2f} sec)"


def script_url(account_id: str | None, name: str) -> str:
    return f"/accounts/{account_id}/workflows/{name}"


def _missing_compatibility_date() -> UserError:
    today = datetime.date.today().isoformat()
    return UserError(
        "A compatibility_date is required when publishing. "
        "Add the following to your flaredeck.toml file:\n"
        "    ```\n"
        f'    compatibility_date = "{today}"\n'
        "    ```\n"
        f"    Or you could pass it in your terminal as `--compatibility-date {today}`\n"
        f"See {COMPATIBILITY_DATES_URL} for more information."
    )


def _is_navigator_defined(compatibility_date: str, compatibility_flags: list[str]) -> bool:
    if compatibility_date >= "2022-03-21":
        return "no_global_navigator" not in compatibility_flags
    return "global_navigator" in compatibility_flags


def _write_readme(out_dir: Path, name: str) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    generated_at = datetime.datetime.now(datetime.timezone.utc).isoformat()
    (out_dir / "README.md").write_text(
        f'This folder contains the built output assets for the worker "{name}" '
        f"generated at {generated_at}.",
        encoding="utf-8",
    )


async def ensure_queues_exist(client: CloudflareClient, account_id: str, config: WorkerConfig) -> None:
    """Fail with a remediation hint if a producer or consumer queue does not exist."""
    queue_names = [p.queue for p in config.queues.producers] + [c.queue for c in config.queues.consumers]
    for queue in queue_names:
        try:
            await get_queue(client, account_id, queue)
        except ApiError as e:
            if e.code == QUEUE_NOT_FOUND_CODE:
                raise UserError(
                    f'Queue "{queue}" does not exist. To create it, run: flaredeck queues create {queue}'
                ) from e
            raise


def _copy_entry(entry: Entry, destination: Path) -> None:
    destination.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(entry.file, destination / entry.file.name)


def _load_source_maps(main: CfModule, result: BundleResult) -> list[SourceMap]:
    if result.source_map_path is None or not result.source_map_path.exists():
        return []
    return [
        SourceMap(
            name=f"{main.name}.map",
            content=result.source_map_path.read_text(encoding="utf-8"),
        )
    ]


async def deploy(
    props: DeployProps,
    *,
    client: CloudflareClient | None = None,
    bundler: Bundler | None = None,
    output: Logger | None = None,
) -> str | None:
    """
    Build and upload a worker.

    Returns the new version id, or ``None`` for a dry run. Nothing is sent to the API
    when ``props.dry_run`` is set. A temporary build directory is used unless
    ``props.out_dir`` is given, and it is removed however this function exits.

    Raises:
        UserError: On missing configuration or a queue that does not exist.
        ApiError: When the API rejects a request.
    """
    output = output or logger
    config = props.config

    compatibility_date = props.compatibility_date or config.compatibility_date
    if not compatibility_date:
        raise _missing_compatibility_date()

    jsx_factory = props.jsx_factory or config.jsx_factory
    jsx_fragment = props.jsx_fragment or config.jsx_fragment
    keep_vars = bool(props.keep_vars or config.keep_vars)
    minify = bool(props.minify if props.minify is not None else config.minify)
    compatibility_flags = (
        props.compatibility_flags if props.compatibility_flags is not None else config.compatibility_flags
    )
    nodejs_compat = "nodejs_compat" in compatibility_flags
    upload_source_maps = bool(
        props.upload_source_maps if props.upload_source_maps is not None else config.upload_source_maps
    )

    if props.no_bundle and minify:
        output.warn(
            "`--minify` and `--no-bundle` can't be used together. If you want to minify your "
            "Worker and disable flaredeck's bundling, please minify as part of your own bundling process."
        )

    name = props.name or config.name
    if not name:
        raise UserError(
            "You need to provide a name when publishing a worker. Either pass it as a cli arg "
            'with `--name <name>` or in your config file as `name = "<name>"`'
        )

    if not props.dry_run:
        if client is None:
            raise UserError("An API token is required to deploy. Set FLAREDECK_API_TOKEN.")
        if not props.account_id:
            raise UserError("An account id is required to deploy. Set FLAREDECK_ACCOUNT_ID.")

    if props.out_dir is not None:
        _write_readme(props.out_dir, name)

    start = time.monotonic()
    version_id: str | None = None

    with ExitStack() as stack:
        destination = props.out_dir or stack.enter_context(
            project_tmp_dir(props.project_root, "deploy")
        )

        if props.no_bundle:
            await asyncio.to_thread(_copy_entry, props.entry, destination)
            result = await no_bundle_worker(props.entry, props.rules, props.out_dir)
        else:
            result = await (bundler or EsbuildBundler()).bundle(
                props.entry,
                destination,
                BundleOptions(
                    bundle=True,
                    jsx_factory=jsx_factory,
                    jsx_fragment=jsx_fragment,
                    tsconfig=props.tsconfig or config.tsconfig,
                    minify=minify,
                    sourcemap=upload_source_maps,
                    nodejs_compat=nodejs_compat,
                    define={**config.define, **(props.defines or {})},
                    check_fetch=False,
                    target_consumer="deploy",
                    local=False,
                    project_root=props.project_root,
                    do_bindings=config.durable_objects.bindings,
                    placement=config.placement,
                    define_navigator_user_agent=_is_navigator_defined(
                        compatibility_date, compatibility_flags
                    ),
                ),
            )

        dependencies = dict(result.dependencies)
        for module in result.modules:
            module_path = (
                module.name if module.file_path is None else os.path.relpath(module.file_path)
            )
            dependencies[module_path] = module.size

        content = result.resolved_entry_point_path.read_text(encoding="utf-8")
        bindings = build_bindings(config, props.vars)

        # The upload API only accepts "smart" or no placement at all.
        placement = None
        if config.placement is not None and config.placement.mode == "smart":
            placement = Placement(mode="smart")

        main = CfModule(
            name=result.resolved_entry_point_path.name,
            file_path=result.resolved_entry_point_path,
            content=content,
            type=result.bundle_type,
        )
        worker = WorkerUpload(
            name=name,
            main=main,
            modules=result.modules,
            bindings=bindings,
            migrations=config.migrations or None,
            source_maps=_load_source_maps(main, result) if upload_source_maps else None,
            compatibility_date=compatibility_date,
            compatibility_flags=compatibility_flags,
            usage_model=config.usage_model,
            keep_vars=keep_vars,
            keep_secrets=keep_vars,
            placement=placement,
            tail_consumers=config.tail_consumers,
            limits=config.limits,
        )

        await start_report(
            print_bundle_size(main, result.modules, dependencies, output=output),
            wait=props.await_reports,
        )

        print_bindings(
            bindings.model_copy(
                update={
                    "vars": mask_vars(bindings.vars, config.vars),
                    "text_blobs": config.text_blobs,
                }
            ),
            output=output,
        )

        if client is not None and props.account_id and not props.dry_run:
            await ensure_queues_exist(client, props.account_id, config)

            form = create_worker_upload_form(worker)
            send_metrics = props.send_metrics if props.send_metrics is not None else config.send_metrics
            upload = await client.fetch_result(
                script_url(props.account_id, name),
                "PUT",
                data=form.data,
                files=form.files,
                headers=(
                    {"metricsEnabled": str(send_metrics).lower()} if send_metrics is not None else None
                ),
                params={
                    "include_subdomain_availability": "true",
                    # Keeps the response from echoing the script body.
                    "excludeScript": "true",
                },
            )
            version_id = upload["version"]["id"]
            log.debug("Uploaded %s as version %s", name, version_id)

    if props.dry_run:
        output.log("--dry-run: exiting now.")
        return None

    output.log("Uploaded", name, format_time(time.monotonic() - start))
    output.log("New Version ID:", version_id)
    return version_id
