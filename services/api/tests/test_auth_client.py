import httpx
import pytest

from app.auth import bearer_token
from app.clients.auth_client import AuthClient
from app.config import settings


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Bearer abc", "abc"),
        ("bearer   abc  ", "abc"),
        ("Basic abc", None),
        ("Bearer", None),
        ("", None),
        (None, None),
    ],
)
def test_bearer_token(header, expected):
    assert bearer_token(header) == expected


async def make_client(handler) -> AuthClient:
    client = AuthClient(transport=httpx.MockTransport(handler))
    await client.start()
    return client


async def test_resolves_user_id(monkeypatch):
    monkeypatch.setattr(settings, "auth_api_key", "anon-key")
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["authorization"] = request.headers.get("authorization")
        seen["apikey"] = request.headers.get("apikey")
        return httpx.Response(200, json={"id": "user-1", "email": "a@example.org"})

    client = await make_client(handler)
    try:
        assert await client.resolve_user_id("tok") == "user-1"
    finally:
        await client.stop()

    assert seen == {"path": "/auth/v1/user", "authorization": "Bearer tok", "apikey": "anon-key"}


async def test_rejected_token_resolves_to_none():
    client = await make_client(lambda request: httpx.Response(401, json={"msg": "invalid JWT"}))
    try:
        assert await client.resolve_user_id("expired") is None
    finally:
        await client.stop()


async def test_user_without_id_resolves_to_none():
    client = await make_client(lambda request: httpx.Response(200, json={"email": "a@example.org"}))
    try:
        assert await client.resolve_user_id("tok") is None
    finally:
        await client.stop()


async def test_provider_outage_resolves_to_none():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = await make_client(handler)
    try:
        assert await client.resolve_user_id("tok") is None
    finally:
        await client.stop()
