from __future__ import annotations

import re
from typing import Optional

import httpx

from bridge.errors import AuthenticationError
from shared.log import get_logger

logger = get_logger(__name__)

AUTH_COOKIE = "irisAuthToken"
LOGIN_PATH = "/login"

_TOKEN_RE = re.compile(rf'{AUTH_COOKIE}=([^;]+)')


class Authenticator:
    """
    Exchanges credentials for a bearer token with a single POST.

    The token is the value of the ``irisAuthToken`` response cookie. A
    2xx or 3xx status with the cookie present is the only success; there
    is no retry.
    """

    def __init__(self, base_url: str, *, timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def login(self, username: str, password: str) -> str:
        url = f"{self.base_url}{LOGIN_PATH}"
        logger.debug("POST %s (username=%s)", url, username)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=False,
                                         transport=self._transport) as client:
                response = await client.post(url, json={"username": username, "password": password})
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Login request to {url} failed: {e}") from e

        logger.debug("Login response: status=%d", response.status_code)
        if not 200 <= response.status_code < 400:
            raise AuthenticationError(f"Login failed with status {response.status_code}",
                                      status=response.status_code)

        token = extract_token(response)
        if token is None:
            raise AuthenticationError(f"Login response did not contain {AUTH_COOKIE} cookie",
                                      status=response.status_code)
        logger.debug("Got token: %s...", token[:8])
        return token


def extract_token(response: httpx.Response) -> Optional[str]:
    """Find the auth token among the Set-Cookie headers"""
    for cookie in response.headers.get_list("set-cookie"):
        match = _TOKEN_RE.search(cookie)
        if match:
            return match.group(1)
    return None
