"""Thin async client for the Cloudflare v4 API."""

import logging
from typing import Any

import httpx

from flaredeck import __version__
from flaredeck.constants import API_BASE_URL
from flaredeck.exceptions import ApiError

__all__ = ["CloudflareClient"]

logger = logging.getLogger(__name__)


class CloudflareClient:
    """
    Wraps ``httpx.AsyncClient`` and unwraps Cloudflare's response envelope.

    Every call returns the envelope's ``result`` or raises ``ApiError`` carrying the
    first error code the API reported.
    """

    def __init__(
        self,
        api_token: str,
        account_id: str | None = None,
        base_url: str = API_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.account_id = account_id
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {api_token}",
                "User-Agent": f"flaredeck/{__version__}",
            },
            timeout=httpx.Timeout(60.0),
            transport=transport,
        )

    async def __aenter__(self) -> "CloudflareClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_result(
        self,
        path: str,
        method: str = "GET",
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
        files: list[tuple[str, tuple[str, bytes, str]]] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        logger.debug("%s %s params=%s", method, path, params)
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json,
                data=data,
                files=files,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise ApiError(f"Request to {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise ApiError(
                f"Received a malformed response from the API ({response.status_code})",
                status_code=response.status_code,
            ) from e

        if not response.is_success or not body.get("success", False):
            errors = body.get("errors") or []
            first = errors[0] if errors else {}
            message = "; ".join(err.get("message", "") for err in errors) or (
                f"A request to the Cloudflare API ({path}) failed"
            )
            raise ApiError(message, code=first.get("code", 0), status_code=response.status_code)

        return body.get("result")
