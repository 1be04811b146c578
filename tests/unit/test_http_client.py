import httpx
import pytest

from membership.errors import ClientError, TransientError
from membership.http import ApiClient


def _client(handler):
    return ApiClient("http://api.test/api/v1", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_post_sends_bearer_and_json():
    seen = {}

    def handler(request: httpx.Request):
        seen["auth"] = request.headers.get("authorization")
        seen["path"] = request.url.path
        seen["body"] = request.content
        return httpx.Response(200, json={"ok": True})

    async with _client(handler) as api:
        body = await api.post("/promo-codes/validate", json={"code": "X"}, token="tok")
    assert body == {"ok": True}
    assert seen["auth"] == "Bearer tok"
    assert seen["path"] == "/api/v1/promo-codes/validate"
    assert b'"code"' in seen["body"]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 403, 404, 409, 422])
async def test_client_statuses_map_to_client_error(status):
    async with _client(lambda r: httpx.Response(status, json={"message": "nope"})) as api:
        with pytest.raises(ClientError) as e:
            await api.post("/x")
    assert e.value.status_code == status
    assert e.value.message == "nope"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [429, 500, 502, 503])
async def test_server_statuses_map_to_transient_error(status):
    async with _client(lambda r: httpx.Response(status, json={"detail": "busy"})) as api:
        with pytest.raises(TransientError) as e:
            await api.post("/x")
    assert e.value.status_code == status
    assert e.value.message == "busy"


@pytest.mark.asyncio
async def test_network_error_maps_to_transient_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as api:
        with pytest.raises(TransientError):
            await api.get("/health")


@pytest.mark.asyncio
async def test_non_json_success_body_returns_empty_dict():
    async with _client(lambda r: httpx.Response(200, text="ok")) as api:
        assert await api.get("/health") == {}
