"""GitHub OAuth web flow: authorize URL and authorization-code exchange.

``exchange`` performs two requests with no retry: the code-for-token call
against the OAuth endpoint, then ``GET /user`` with the new token. Any
failure surfaces as ``AuthError``. The access token is never logged.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

import httpx

from promptfolio.errors import AuthError
from promptfolio.profile.models import Identity
from promptfolio.providers.github_client import (
    GITHUB_API_URL,
    USER_AGENT,
    github_headers,
)

logger = logging.getLogger(__name__)

GITHUB_OAUTH_URL = "https://github.com/login/oauth"
OAUTH_SCOPES = "public_repo,user:email"


class GitHubOAuthClient:
    """OAuth app client for the GitHub web flow."""

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        oauth_url: str = GITHUB_OAUTH_URL,
        api_url: str = GITHUB_API_URL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._oauth_url = oauth_url.rstrip("/")
        self._api_url = api_url.rstrip("/")
        self._http = http_client

    def authorize_url(self, state: str, redirect_uri: str) -> str:
        params = {
            "client_id": self._client_id,
            "redirect_uri": redirect_uri,
            "scope": OAUTH_SCOPES,
            "state": state,
            "allow_signup": "true",
        }
        return f"{self._oauth_url}/authorize?{urlencode(params)}"

    async def exchange(self, code: str) -> tuple[str, Identity]:
        """Trade an authorization code for ``(access_token, identity)``.

        Raises:
            AuthError: Missing code, rejected code, or identity fetch failure.
        """
        if not code:
            raise AuthError("missing_code", "No authorization code received")

        if self._http is not None:
            return await self._exchange(self._http, code)
        async with httpx.AsyncClient() as client:
            return await self._exchange(client, code)

    async def _exchange(
        self,
        client: httpx.AsyncClient,
        code: str,
    ) -> tuple[str, Identity]:
        token = await self._request_token(client, code)
        identity = await self._fetch_identity(client, token)
        logger.info(
            "GitHub user authenticated: %s",
            identity.login,
            extra={"login": identity.login},
        )
        return token, identity

    async def _request_token(self, client: httpx.AsyncClient, code: str) -> str:
        try:
            resp = await client.post(
                f"{self._oauth_url}/access_token",
                json={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "code": code,
                },
                headers={"Accept": "application/json", "User-Agent": USER_AGENT},
            )
        except httpx.HTTPError as e:
            raise AuthError("token_exchange_failed", f"Network error: {e}") from e

        if resp.status_code >= 400:
            raise AuthError(
                "token_exchange_failed",
                f"GitHub OAuth error: HTTP {resp.status_code}",
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise AuthError("token_exchange_failed", "Invalid token response") from e

        if not isinstance(data, dict):
            raise AuthError("token_exchange_failed", "Invalid token response")

        if data.get("error"):
            raise AuthError(
                "token_exchange_failed",
                data.get("error_description") or data["error"],
            )

        token = data.get("access_token")
        if not token:
            raise AuthError("token_exchange_failed", "No access token received")
        return token

    async def _fetch_identity(self, client: httpx.AsyncClient, token: str) -> Identity:
        try:
            resp = await client.get(
                f"{self._api_url}/user",
                headers=github_headers(token),
            )
        except httpx.HTTPError as e:
            raise AuthError("identity_fetch_failed", f"Network error: {e}") from e

        if resp.status_code >= 400:
            raise AuthError(
                "identity_fetch_failed",
                f"Failed to fetch user data: HTTP {resp.status_code}",
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise AuthError("identity_fetch_failed", "Invalid user response") from e

        login = data.get("login") if isinstance(data, dict) else None
        if not login:
            raise AuthError("identity_fetch_failed", "User response has no login")

        return Identity(
            login=login,
            name=data.get("name") or login,
            avatar_url=data.get("avatar_url") or "",
            html_url=data.get("html_url") or "",
            raw=data,
        )
