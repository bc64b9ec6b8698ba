"""Module collection for ``--no-bundle`` deploys."""

import asyncio
import fnmatch
from pathlib import Path

from flaredeck.constants import ModuleType
from flaredeck.deployment.bundle import get_bundle_type
from flaredeck.models.worker import BundleResult, CfModule, Entry
from flaredeck.models.worker_config import Rule

__all__ = [
    "DEFAULT_MODULE_RULES",
    "find_additional_modules",
    "no_bundle_worker",
    "parse_rules",
    "write_additional_modules",
]

DEFAULT_MODULE_RULES: list[Rule] = [
    Rule(type="esm", globs=["**/*.js", "**/*.mjs"]),
    Rule(type="commonjs", globs=["**/*.cjs"]),
    Rule(type="compiled-wasm", globs=["**/*.wasm"]),
    Rule(type="text", globs=["**/*.txt", "**/*.html"]),
    Rule(type="buffer", globs=["**/*.bin"]),
]

BINARY_TYPES: set[ModuleType] = {"compiled-wasm", "buffer"}
IGNORED_DIRS = {"node_modules", ".git", ".flaredeck"}


def parse_rules(rules: list[Rule] | None) -> list[Rule]:
    """
    User rules first, then the defaults.

    A default rule is dropped when a user rule of the same type does not ask to
    fall through to it.
    """
    rules = list(rules or [])
    overridden = {rule.type for rule in rules if not rule.fallthrough}
    return rules + [rule for rule in DEFAULT_MODULE_RULES if rule.type not in overridden]


def _matches(relative: str, glob: str) -> bool:
    if fnmatch.fnmatchcase(relative, glob):
        return True
    return glob.startswith("**/") and fnmatch.fnmatchcase(relative, glob[3:])


def _match_rule(relative: str, rules: list[Rule]) -> Rule | None:
    for rule in rules:
        if any(_matches(relative, glob) for glob in rule.globs):
            return rule
    return None


def _collect(entry: Entry, rules: list[Rule]) -> list[CfModule]:
    modules: list[CfModule] = []
    for path in sorted(entry.directory.rglob("*")):
        if not path.is_file() or path == entry.file:
            continue
        relative = path.relative_to(entry.directory)
        if IGNORED_DIRS.intersection(relative.parts):
            continue

        rule = _match_rule(relative.as_posix(), rules)
        if rule is None:
            continue

        content: str | bytes
        if rule.type in BINARY_TYPES:
            content = path.read_bytes()
        else:
            content = path.read_text(encoding="utf-8")
        modules.append(
            CfModule(name=relative.as_posix(), content=content, type=rule.type, file_path=path)
        )
    return modules


async def find_additional_modules(entry: Entry, rules: list[Rule] | None) -> list[CfModule]:
    """Every file next to the entry (recursively) that one of the rules claims."""
    return await asyncio.to_thread(_collect, entry, parse_rules(rules))


def write_additional_modules(modules: list[CfModule], destination: Path) -> None:
    for module in modules:
        target = destination / module.name
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(module.content, bytes):
            target.write_bytes(module.content)
        else:
            target.write_text(module.content, encoding="utf-8")


async def no_bundle_worker(entry: Entry, rules: list[Rule] | None, out_dir: Path | None) -> BundleResult:
    modules = await find_additional_modules(entry, rules)
    if out_dir is not None:
        await asyncio.to_thread(write_additional_modules, modules, out_dir)

    return BundleResult(
        modules=modules,
        dependencies={},
        resolved_entry_point_path=entry.file,
        bundle_type=get_bundle_type(entry),
    )
