"""In-memory implementations of the provider and store protocols.

``InMemoryKeyValueStore`` backs the server's per-session redirect state.
The provider doubles record their calls and are used by the test suite
and for local runs without GitHub credentials.
"""

from __future__ import annotations

import asyncio

from promptfolio.errors import AuthError, ProbeInconclusive, ProvisionError
from promptfolio.profile.models import Identity
from promptfolio.providers.github_client import TargetHandle


class InMemoryKeyValueStore:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class InMemoryIdentityProvider:
    """Identity provider double that tracks calls."""

    def __init__(
        self,
        *,
        identity: Identity | None = None,
        credential: str = 'gho_test',
        error: AuthError | None = None,
    ) -> None:
        self.identity = identity or Identity(login='octocat', name='The Octocat')
        self.credential = credential
        self.error = error
        self.calls: list[str] = []

    async def exchange(self, code: str) -> tuple[str, Identity]:
        self.calls.append(code)
        if self.error is not None:
            raise self.error
        return self.credential, self.identity


class InMemoryProvisioningProvider:
    """Provisioning double that tracks calls.

    Each ``*_error`` argument, when set, is raised by the matching call.
    ``gate`` (an ``asyncio.Event``) makes ``create_target`` wait until set.
    """

    def __init__(
        self,
        *,
        owner: str = 'octocat',
        create_error: ProvisionError | None = None,
        upload_error: ProvisionError | None = None,
        publish_error: ProvisionError | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.owner = owner
        self.create_error = create_error
        self.upload_error = upload_error
        self.publish_error = publish_error
        self.gate = gate
        self.calls: list[tuple[str, str]] = []
        self.uploads: dict[str, bytes] = {}

    async def create_target(self, target_name: str, description: str) -> TargetHandle:
        self.calls.append(('create_target', target_name))
        if self.gate is not None:
            await self.gate.wait()
        if self.create_error is not None:
            raise self.create_error
        return TargetHandle(
            owner=self.owner,
            name=target_name,
            html_url=f'https://github.com/{self.owner}/{target_name}',
        )

    async def upload_content(
        self,
        target_owner: str,
        target_name: str,
        path: str,
        content: bytes,
    ) -> None:
        self.calls.append(('upload_content', target_name))
        if self.upload_error is not None:
            raise self.upload_error
        self.uploads[f'{target_owner}/{target_name}/{path}'] = content

    async def enable_publishing(
        self,
        target_owner: str,
        target_name: str,
        branch: str = 'main',
        path: str = '/',
    ) -> None:
        self.calls.append(('enable_publishing', target_name))
        if self.publish_error is not None:
            raise self.publish_error


class InMemoryReachabilityProbe:
    """Probe double.

    Answers from ``results`` in order (``True`` reachable, ``False``
    inconclusive), then keeps repeating the last one. ``gate`` holds every
    probe open until set.
    """

    def __init__(
        self,
        results: list[bool] | None = None,
        *,
        gate: asyncio.Event | None = None,
    ) -> None:
        self._results = list(results) if results else [True]
        self.gate = gate
        self.calls: list[str] = []

    async def probe(self, url: str) -> None:
        self.calls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        index = min(len(self.calls), len(self._results)) - 1
        if not self._results[index]:
            raise ProbeInconclusive('site not reachable yet')
