import json

import httpx
import pytest

from flaredeck.client.api import CloudflareClient
from flaredeck.client.queues import create_queue, get_queue
from flaredeck.exceptions import ApiError


def _client(handler) -> CloudflareClient:
    return CloudflareClient(
        "test-token",
        account_id="acc",
        base_url="https://api.test/client/v4",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_fetch_result_unwraps_envelope():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"success": True, "errors": [], "result": {"id": "abc"}})

    async with _client(handler) as client:
        result = await client.fetch_result("/accounts/acc/thing", params={"a": "1"})

    assert result == {"id": "abc"}
    assert requests[0].url.path == "/client/v4/accounts/acc/thing"
    assert requests[0].url.params["a"] == "1"
    assert requests[0].headers["Authorization"] == "Bearer test-token"


@pytest.mark.asyncio
async def test_fetch_result_raises_api_error_with_code():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            404,
            json={"success": False, "errors": [{"code": 11000, "message": "queue_not_found"}]},
        )

    async with _client(handler) as client:
        with pytest.raises(ApiError) as exc_info:
            await client.fetch_result("/accounts/acc/workers/queues/missing")

    assert exc_info.value.code == 11000
    assert exc_info.value.status_code == 404
    assert "queue_not_found" in str(exc_info.value)


@pytest.mark.asyncio
async def test_fetch_result_rejects_unsuccessful_envelope_with_200():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "errors": [{"code": 10000, "message": "auth"}]})

    async with _client(handler) as client:
        with pytest.raises(ApiError) as exc_info:
            await client.fetch_result("/user")

    assert exc_info.value.code == 10000


@pytest.mark.asyncio
async def test_fetch_result_malformed_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>bad gateway</html>")

    async with _client(handler) as client:
        with pytest.raises(ApiError, match="malformed response"):
            await client.fetch_result("/user")


@pytest.mark.asyncio
async def test_queue_helpers_use_queue_endpoints():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"success": True, "result": {"queue_name": "jobs"}})

    async with _client(handler) as client:
        await get_queue(client, "acc", "jobs")
        await create_queue(client, "acc", "jobs")

    assert requests[0].method == "GET"
    assert requests[0].url.path.endswith("/accounts/acc/workers/queues/jobs")
    assert requests[1].method == "POST"
    assert requests[1].url.path.endswith("/accounts/acc/workers/queues")
    assert json.loads(requests[1].content) == {"queue_name": "jobs"}
