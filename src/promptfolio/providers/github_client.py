"""Async HTTP client for the GitHub REST API provisioning calls.

Provides the three calls a Pages deployment needs: create a repository,
upload one file into it, and enable Pages hosting. Each call is a single
request/response exchange with no retry; retry policy belongs to the
caller. Auth uses the user's OAuth token.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from promptfolio.errors import ProvisionError, TargetConflictError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_ACCEPT_HEADER = "application/vnd.github.v3+json"
USER_AGENT = "PromptFolio-App"
DEFAULT_COMMIT_MESSAGE = "Add portfolio website"

CREATE_REPO_FALLBACK = "Failed to create repository"
UPLOAD_FALLBACK = "Failed to upload files"
PAGES_FALLBACK = "Failed to configure GitHub Pages"


@dataclass(frozen=True, slots=True)
class TargetHandle:
    """A created repository."""

    owner: str
    name: str
    html_url: str
    default_branch: str = "main"


# ── Module-level shared client ───────────────────────────────────

_shared_async_client: httpx.AsyncClient | None = None


def _get_shared_async_client() -> httpx.AsyncClient:
    global _shared_async_client
    if _shared_async_client is None:
        _shared_async_client = httpx.AsyncClient()
    return _shared_async_client


async def close_shared_async_client() -> None:
    """Close the shared client; the next provider opens a fresh one."""
    global _shared_async_client
    client, _shared_async_client = _shared_async_client, None
    if client is not None:
        await client.aclose()


def github_headers(credential: str) -> dict[str, str]:
    return {
        "Authorization": f"token {credential}",
        "Accept": GITHUB_ACCEPT_HEADER,
        "User-Agent": USER_AGENT,
    }


def provider_message(resp: httpx.Response, fallback: str) -> str:
    """Extract GitHub's error message, including per-field reasons.

    GitHub reports validation failures as
    ``{"message": "Repository creation failed.", "errors": [{"message": ...}]}``.
    """
    try:
        payload = resp.json()
    except ValueError:
        return fallback
    if not isinstance(payload, dict):
        return fallback

    message = payload.get("message") or fallback
    reasons = [
        err.get("message") or err.get("code")
        for err in payload.get("errors") or ()
        if isinstance(err, dict) and (err.get("message") or err.get("code"))
    ]
    if reasons:
        return f"{message} ({'; '.join(reasons)})"
    return message


# ── Client ───────────────────────────────────────────────────────


class GitHubProvisioningClient:
    """Async client for repository creation, content upload, and Pages setup.

    No explicit timeout is passed for these calls; the transport default
    applies.
    """

    def __init__(
        self,
        *,
        credential: str,
        base_url: str = GITHUB_API_URL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not credential:
            raise ValueError("credential is required")

        self._credential = credential
        self._base_url = base_url.rstrip("/")
        self._client = http_client or _get_shared_async_client()

    def _raise_for_status(
        self,
        resp: httpx.Response,
        fallback: str,
        *,
        conflict_on_422: bool = False,
    ) -> None:
        if resp.status_code < 400:
            return

        body = resp.text
        message = provider_message(resp, fallback)
        if conflict_on_422 and resp.status_code == 422:
            raise TargetConflictError(message, response_body=body)
        raise ProvisionError(resp.status_code, message, response_body=body)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any | None = None,
    ) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            return await self._client.request(
                method,
                url,
                headers=github_headers(self._credential),
                json=json,
            )
        except httpx.HTTPError as e:
            logger.warning("GitHub %s %s transport error: %s", method, path, e)
            raise ProvisionError(0, f"Network error: {e}") from e

    # ── Public API ───────────────────────────────────────────────

    async def create_target(
        self,
        target_name: str,
        description: str,
    ) -> TargetHandle:
        """Create a public, auto-initialized repository.

        Raises:
            TargetConflictError: The name already exists (422).
            ProvisionError: Permission, transport, or response-shape error.
        """
        payload = {
            "name": target_name,
            "description": description,
            "private": False,
            "auto_init": True,
        }
        resp = await self._request("POST", "/user/repos", json=payload)
        self._raise_for_status(resp, CREATE_REPO_FALLBACK, conflict_on_422=True)

        try:
            data = resp.json()
        except ValueError:
            data = None
        if not isinstance(data, dict) or not data.get("name"):
            raise ProvisionError(
                resp.status_code,
                "Unexpected response from repository creation",
                response_body=resp.text,
            )

        owner = (data.get("owner") or {}).get("login", "")
        handle = TargetHandle(
            owner=owner,
            name=data["name"],
            html_url=data.get("html_url", ""),
            default_branch=data.get("default_branch") or "main",
        )
        logger.info(
            "Repository created: %s/%s",
            handle.owner,
            handle.name,
            extra={"target_name": handle.name},
        )
        return handle

    async def upload_content(
        self,
        target_owner: str,
        target_name: str,
        path: str,
        content: bytes,
        *,
        message: str = DEFAULT_COMMIT_MESSAGE,
    ) -> None:
        """Write one file as a single commit.

        Raises:
            ProvisionError: Missing target, permission, or transport error.
        """
        payload = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
        }
        resp = await self._request(
            "PUT",
            f"/repos/{target_owner}/{target_name}/contents/{path}",
            json=payload,
        )
        self._raise_for_status(resp, UPLOAD_FALLBACK)
        logger.info(
            "Content uploaded: %s/%s/%s (%d bytes)",
            target_owner,
            target_name,
            path,
            len(content),
            extra={"target_name": target_name},
        )

    async def enable_publishing(
        self,
        target_owner: str,
        target_name: str,
        branch: str = "main",
        path: str = "/",
    ) -> None:
        """Enable Pages hosting from ``branch``/``path``.

        Raises:
            ProvisionError: Any failure, including "already enabled". Callers
                treat this step as best-effort.
        """
        payload = {"source": {"branch": branch, "path": path}}
        resp = await self._request(
            "POST",
            f"/repos/{target_owner}/{target_name}/pages",
            json=payload,
        )
        self._raise_for_status(resp, PAGES_FALLBACK)
        logger.info(
            "Pages enabled: %s/%s",
            target_owner,
            target_name,
            extra={"target_name": target_name},
        )
