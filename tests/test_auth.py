import json

import httpx
import pytest

from bridge.auth import Authenticator
from bridge.errors import AuthenticationError


def transport(status: int, cookies=(), seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        headers = [("set-cookie", c) for c in cookies]
        return httpx.Response(status, headers=headers)
    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_login_extracts_token_from_cookie():
    seen = []
    auth = Authenticator("https://bridge.example.com/", transport=transport(
        200, ["other=1; Path=/", "irisAuthToken=abc123; Path=/; HttpOnly"], seen))

    token = await auth.login("me@example.com", "secret")

    assert token == "abc123"
    assert str(seen[0].url) == "https://bridge.example.com/login"
    assert seen[0].method == "POST"
    assert json.loads(seen[0].content) == {"username": "me@example.com", "password": "secret"}


@pytest.mark.asyncio
async def test_redirect_with_cookie_is_success():
    auth = Authenticator("https://bridge.example.com", transport=transport(302, ["irisAuthToken=t302"]))
    assert await auth.login("u", "p") == "t302"


@pytest.mark.asyncio
async def test_bad_status_fails():
    auth = Authenticator("https://bridge.example.com", transport=transport(401, ["irisAuthToken=x"]))
    with pytest.raises(AuthenticationError) as exc:
        await auth.login("u", "wrong")
    assert exc.value.status == 401


@pytest.mark.asyncio
async def test_missing_cookie_fails():
    auth = Authenticator("https://bridge.example.com", transport=transport(200, ["session=1"]))
    with pytest.raises(AuthenticationError, match="irisAuthToken"):
        await auth.login("u", "p")


@pytest.mark.asyncio
async def test_unreachable_endpoint_fails():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    auth = Authenticator("https://bridge.example.com", transport=httpx.MockTransport(handler))
    with pytest.raises(AuthenticationError):
        await auth.login("u", "p")
