"""
Local service registry.

Every locally running worker writes a small JSON file describing where it listens
into a shared directory. Each process that needs to call another worker keeps an
in-memory mirror of that directory, rebuilt from scratch whenever anything in it
changes. There is no lock between processes: writers replace files atomically and
readers skip files they cannot parse yet.
"""

import asyncio
import logging
import os
import tempfile
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from types import MappingProxyType

from pydantic import ValidationError
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from flaredeck.exceptions import InvalidWorkerNameError, RegistryParseError, WorkerNotRegisteredError
from flaredeck.models.registry import WorkerDefinition
from flaredeck.models.worker_config import DurableObjects, ServiceBinding
from flaredeck.paths import registry_path

__all__ = ["RegistrySnapshot", "Scanner", "WorkerRegistry", "parse_definition", "scan_registry"]

log = logging.getLogger(__name__)

RegistrySnapshot = Mapping[str, WorkerDefinition]
Scanner = Callable[[Path], dict[str, WorkerDefinition]]

EMPTY_SNAPSHOT: RegistrySnapshot = MappingProxyType({})


def parse_definition(name: str, raw: str | bytes) -> WorkerDefinition:
    try:
        return WorkerDefinition.model_validate_json(raw)
    except ValidationError as e:
        raise RegistryParseError(name, str(e)) from e


def scan_registry(directory: Path) -> dict[str, WorkerDefinition]:
    """
    Read every worker definition in ``directory``.

    Files that vanish, cannot be read or fail to parse are skipped; the next change event
    triggers another scan that picks them up.
    """
    workers: dict[str, WorkerDefinition] = {}
    try:
        entries = sorted(p for p in directory.iterdir() if not p.name.startswith("."))
    except FileNotFoundError:
        return workers

    for path in entries:
        if not path.is_file():
            continue
        try:
            workers[path.name] = parse_definition(path.name, path.read_bytes())
        except FileNotFoundError:
            log.debug("Registry entry %s disappeared during scan", path.name)
        except OSError as e:
            log.warning("Skipping unreadable registry entry %s: %s", path.name, e)
        except RegistryParseError as e:
            log.warning("Skipping registry entry: %s", e)
    return workers


def _check_name(name: str) -> None:
    # Names are file names directly inside the registry directory.
    if not name or name.startswith(".") or "/" in name or os.sep in name:
        raise InvalidWorkerNameError(name)


class _RescanHandler(FileSystemEventHandler):
    """Forwards every watchdog event to the registry's event loop."""

    def __init__(self, registry: "WorkerRegistry", loop: asyncio.AbstractEventLoop) -> None:
        self.registry = registry
        self.loop = loop

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in ("opened", "closed_no_write"):
            return
        self.loop.call_soon_threadsafe(self.registry.schedule_refresh)


class WorkerRegistry:
    """
    Handle on the shared registry directory.

    Construct one per process and pass it to whatever needs to look workers up.
    ``snapshot()`` returns an empty mapping until ``start()`` has completed its first
    scan; wait on ``ready`` if that matters to the caller.
    """

    def __init__(self, directory: Path | None = None, scanner: Scanner = scan_registry) -> None:
        self.directory = directory or registry_path()
        self.ready = asyncio.Event()
        self._scanner = scanner
        self._workers: RegistrySnapshot = EMPTY_SNAPSHOT
        self._observer: Observer | None = None
        self._refresh_lock = asyncio.Lock()
        self._pending: set[asyncio.Task[None]] = set()

    async def __aenter__(self) -> "WorkerRegistry":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def start(self) -> None:
        """Create the directory, load it once and start watching it for changes."""
        if self._observer is not None:
            return

        self.directory.mkdir(parents=True, exist_ok=True)
        await self.refresh()

        observer = Observer()
        observer.schedule(
            _RescanHandler(self, asyncio.get_running_loop()), str(self.directory), recursive=True
        )
        observer.daemon = True
        observer.start()
        self._observer = observer
        log.debug("Watching worker registry at %s", self.directory)

    async def stop(self) -> None:
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            await asyncio.to_thread(observer.join)

        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def schedule_refresh(self) -> None:
        task = asyncio.ensure_future(self.refresh())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def refresh(self) -> RegistrySnapshot:
        """Rescan the directory and replace the in-memory mirror."""
        async with self._refresh_lock:
            workers = await asyncio.to_thread(self._scanner, self.directory)
            self._workers = MappingProxyType(workers)
            self.ready.set()
            return self._workers

    def snapshot(self) -> RegistrySnapshot:
        """The current read-only mirror. Never mutated after it is returned."""
        return self._workers

    async def register(self, name: str, definition: WorkerDefinition) -> None:
        """Write (or overwrite) the entry for ``name`` in one atomic replace."""
        _check_name(name)
        await asyncio.to_thread(self._write_definition, name, definition)

    async def unregister(self, name: str, missing_ok: bool = True) -> None:
        """
        Remove the entry for ``name``.

        Absent entries are ignored unless ``missing_ok`` is False, in which case
        ``WorkerNotRegisteredError`` is raised.
        """
        _check_name(name)
        try:
            await asyncio.to_thread((self.directory / name).unlink)
        except FileNotFoundError as e:
            if not missing_ok:
                raise WorkerNotRegisteredError(name) from e

    def resolve_bound(
        self,
        services: Sequence[ServiceBinding] | None,
        durable_objects: DurableObjects | None,
    ) -> dict[str, WorkerDefinition]:
        """Registered workers referenced by a service binding or a durable object script."""
        names = {service.service for service in services or ()}
        if durable_objects is not None:
            names.update(b.script_name for b in durable_objects.bindings if b.script_name)

        return {key: value for key, value in self.snapshot().items() if key in names}

    def _write_definition(self, name: str, definition: WorkerDefinition) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{name}.", dir=self.directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(definition.to_json())
            os.replace(tmp_name, self.directory / name)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
