"""Provider and store protocol interfaces for dependency injection.

These protocols define the contracts that concrete implementations (GitHub
clients for the server, InMemory doubles for tests) must satisfy. The
orchestrator and the app factory accept any implementation that matches.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from promptfolio.profile.models import Identity
    from promptfolio.providers.github_client import TargetHandle


@runtime_checkable
class KeyValueStore(Protocol):
    """String store that survives the OAuth redirect for one browser session."""

    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str) -> None: ...
    async def delete(self, key: str) -> None: ...


@runtime_checkable
class IdentityProvider(Protocol):
    """Authorization-code exchange."""

    async def exchange(self, code: str) -> tuple[str, Identity]: ...


@runtime_checkable
class ProvisioningProvider(Protocol):
    """Repository creation, content upload, and publishing."""

    async def create_target(self, target_name: str, description: str) -> TargetHandle: ...

    async def upload_content(
        self,
        target_owner: str,
        target_name: str,
        path: str,
        content: bytes,
    ) -> None: ...

    async def enable_publishing(
        self,
        target_owner: str,
        target_name: str,
        branch: str = 'main',
        path: str = '/',
    ) -> None: ...


@runtime_checkable
class ReachabilityProbe(Protocol):
    async def probe(self, url: str) -> None:
        """Return once ``url`` answered; raise ProbeInconclusive otherwise."""
        ...
