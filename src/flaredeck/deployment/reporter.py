"""Bundle size reporting, run as a background task during deploys."""

import asyncio
import gzip
from collections.abc import Coroutine
from typing import Any

from flaredeck.constants import BUNDLE_SIZE_WARNING_BYTES
from flaredeck.logger import Logger, logger
from flaredeck.models.worker import CfModule

__all__ = ["drain_reports", "print_bundle_size", "start_report"]

_background_reports: set[asyncio.Task[Any]] = set()


def _kib(size: int) -> str:
    return f"{size / 1024:.2f} KiB"


def _measure(modules: list[CfModule]) -> tuple[int, int]:
    raw = b"".join(
        m.content.encode("utf-8") if isinstance(m.content, str) else m.content for m in modules
    )
    return len(raw), len(gzip.compress(raw))


async def print_bundle_size(
    main: CfModule,
    modules: list[CfModule],
    dependencies: dict[str, int] | None = None,
    output: Logger | None = None,
) -> None:
    output = output or logger
    total, gzipped = await asyncio.to_thread(_measure, [main, *modules])
    output.log(f"Total Upload: {_kib(total)} / gzip: {_kib(gzipped)}")

    if gzipped > BUNDLE_SIZE_WARNING_BYTES:
        largest = sorted((dependencies or {}).items(), key=lambda item: item[1], reverse=True)[:5]
        notes = []
        if largest:
            listing = "\n".join(f"- {path} - {_kib(size)}" for path, size in largest)
            notes.append(f"Largest dependencies:\n{listing}")
        output.warn(
            "We recommend keeping your script less than 1MiB (1024 KiB) after gzip. "
            "Exceeding past this can affect cold start time.",
            *notes,
        )


async def start_report(report: Coroutine[Any, Any, None], wait: bool) -> None:
    """
    Run ``report`` as a detached task, or wait for it when ``wait`` is set.

    Detached reports may print after the caller's own output.
    """
    task = asyncio.ensure_future(report)
    if wait:
        await task
        return
    _background_reports.add(task)
    task.add_done_callback(_background_reports.discard)


async def drain_reports() -> None:
    """Wait for any detached reports still running."""
    if _background_reports:
        await asyncio.gather(*list(_background_reports), return_exceptions=True)
