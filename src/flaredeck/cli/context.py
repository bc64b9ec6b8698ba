import asyncio
import logging
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

import typer
from pydantic import ValidationError

from flaredeck.client.api import CloudflareClient
from flaredeck.exceptions import FlaredeckError, UserError
from flaredeck.logger import logger
from flaredeck.models.config import Settings

__all__ = ["AppContext", "get_app_context", "parse_key_values", "run"]

T = TypeVar("T")


@dataclass
class AppContext:
    """Shared state for one CLI invocation."""

    settings: Settings
    client: CloudflareClient | None

    def require_client(self) -> tuple[CloudflareClient, str]:
        if self.client is None or not self.settings.account_id:
            raise UserError(
                "This command talks to the Cloudflare API. "
                "Set FLAREDECK_ACCOUNT_ID and FLAREDECK_API_TOKEN in your environment or .env file."
            )
        return self.client, self.settings.account_id


@asynccontextmanager
async def get_app_context() -> AsyncIterator[AppContext]:
    try:
        settings = Settings()
    except ValidationError as e:
        raise UserError(f"Invalid settings: {e}") from e

    client = None
    if settings.api_token is not None:
        client = CloudflareClient(
            settings.api_token.get_secret_value(),
            account_id=settings.account_id,
            base_url=settings.api_base_url,
        )
    try:
        yield AppContext(settings=settings, client=client)
    finally:
        if client is not None:
            await client.aclose()


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a command coroutine, turning flaredeck errors into a message and exit code 1."""
    try:
        return asyncio.run(coro)
    except FlaredeckError as e:
        logging.getLogger(__name__).debug("Command failed", exc_info=True)
        logger.error(str(e))
        raise typer.Exit(code=1) from e


def parse_key_values(values: list[str] | None, option: str) -> dict[str, str]:
    """Parse repeated ``KEY:VALUE`` options."""
    parsed: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition(":")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY:VALUE, got {item!r}", param_hint=option)
        parsed[key.strip()] = value.strip()
    return parsed
