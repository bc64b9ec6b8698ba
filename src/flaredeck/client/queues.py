from typing import Any

from flaredeck.client.api import CloudflareClient

__all__ = ["create_queue", "get_queue", "queues_url"]


def queues_url(account_id: str, queue_name: str | None = None) -> str:
    url = f"/accounts/{account_id}/workers/queues"
    if queue_name is not None:
        url += f"/{queue_name}"
    return url


async def get_queue(client: CloudflareClient, account_id: str, queue_name: str) -> dict[str, Any]:
    """Look a queue up by name. Raises ``ApiError`` (code 11000) if it does not exist."""
    return await client.fetch_result(queues_url(account_id, queue_name))


async def create_queue(client: CloudflareClient, account_id: str, queue_name: str) -> dict[str, Any]:
    return await client.fetch_result(
        queues_url(account_id), "POST", json={"queue_name": queue_name}
    )
