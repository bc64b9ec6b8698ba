"""
Bundler interface and the default esbuild-backed implementation.

The deploy pipeline only depends on the ``Bundler`` protocol; ``EsbuildBundler``
shells out to ``npx esbuild`` and turns its metafile into a ``BundleResult``.
"""

import asyncio
import json
import logging
import os
import shutil
from pathlib import Path
from typing import Literal, Protocol

from pydantic import BaseModel, Field

from flaredeck.exceptions import UserError
from flaredeck.models.worker import BundleResult, Entry
from flaredeck.models.worker_config import DurableObjectBinding, Placement

__all__ = ["BundleOptions", "Bundler", "EsbuildBundler", "get_bundle_type"]

logger = logging.getLogger(__name__)


class BundleOptions(BaseModel):
    """Everything the deploy pipeline decides before handing the entry to a bundler."""

    bundle: bool = True
    jsx_factory: str | None = None
    jsx_fragment: str | None = None
    tsconfig: str | None = None
    minify: bool = False
    sourcemap: bool = False
    nodejs_compat: bool = False
    define: dict[str, str] = Field(default_factory=dict)
    check_fetch: bool = False
    target_consumer: Literal["dev", "deploy"] = "deploy"
    local: bool = False
    project_root: Path | None = None
    do_bindings: list[DurableObjectBinding] = Field(default_factory=list)
    placement: Placement | None = None
    assets: str | None = None
    define_navigator_user_agent: bool = False


class Bundler(Protocol):
    async def bundle(self, entry: Entry, out_dir: Path, options: BundleOptions) -> BundleResult: ...


def get_bundle_type(entry: Entry) -> Literal["esm", "commonjs"]:
    return "esm" if entry.format == "modules" else "commonjs"


class EsbuildBundler:
    """Bundles the entry with ``npx esbuild`` into ``out_dir``."""

    def __init__(self, command: tuple[str, ...] = ("npx", "-y", "esbuild")) -> None:
        self.command = command

    def build_args(self, entry: Entry, out_dir: Path, options: BundleOptions) -> list[str]:
        args = [
            str(entry.file),
            "--bundle" if options.bundle else "--bundle=false",
            f"--outdir={out_dir}",
            f"--metafile={out_dir / 'metafile.json'}",
            "--format=esm" if get_bundle_type(entry) == "esm" else "--format=iife",
            "--platform=browser",
            "--target=es2022",
            "--conditions=workerd,worker,browser",
            "--log-level=warning",
        ]
        if options.minify:
            args.append("--minify")
        if options.sourcemap:
            args.append("--sourcemap=external")
        if options.jsx_factory:
            args.append(f"--jsx-factory={options.jsx_factory}")
        if options.jsx_fragment:
            args.append(f"--jsx-fragment={options.jsx_fragment}")
        if options.tsconfig:
            args.append(f"--tsconfig={options.tsconfig}")
        if options.nodejs_compat:
            args.append("--external:node:*")

        define = dict(options.define)
        if options.define_navigator_user_agent:
            define.setdefault("navigator.userAgent", json.dumps("Cloudflare-Workers"))
        for key, value in define.items():
            args.append(f"--define:{key}={value}")
        return args

    async def bundle(self, entry: Entry, out_dir: Path, options: BundleOptions) -> BundleResult:
        if shutil.which(self.command[0]) is None:
            raise UserError(
                f"Could not find `{self.command[0]}` on your PATH. "
                "Install Node.js or deploy with --no-bundle."
            )

        out_dir.mkdir(parents=True, exist_ok=True)
        args = self.build_args(entry, out_dir, options)
        logger.debug("Running %s %s", " ".join(self.command), " ".join(args))

        proc = await asyncio.create_subprocess_exec(
            *self.command,
            *args,
            cwd=options.project_root or entry.directory,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise UserError(f"Build failed with exit code {proc.returncode}:\n{stderr.decode().strip()}")

        return self._read_metafile(entry, out_dir, options)

    def _read_metafile(self, entry: Entry, out_dir: Path, options: BundleOptions) -> BundleResult:
        cwd = options.project_root or entry.directory
        metafile = json.loads((out_dir / "metafile.json").read_text(encoding="utf-8"))

        for output_path, output in metafile.get("outputs", {}).items():
            if "entryPoint" not in output:
                continue
            resolved = (cwd / output_path).resolve()
            source_map = resolved.with_name(resolved.name + ".map")
            return BundleResult(
                modules=[],
                dependencies={
                    os.path.normpath(path): info.get("bytesInOutput", 0)
                    for path, info in output.get("inputs", {}).items()
                },
                resolved_entry_point_path=resolved,
                bundle_type=get_bundle_type(entry),
                source_map_path=source_map if source_map.exists() else None,
            )

        raise UserError(f"esbuild did not produce an entry point for {entry.file}")
