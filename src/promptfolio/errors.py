"""Exception hierarchy for the deployment flow.

Fatal errors (``AuthError``, ``ProvisionError``) halt a deployment and wait
for an explicit user retry. ``ConfigureWarning`` and ``ProbeInconclusive``
never end a deployment: the first is recorded on the state, the second keeps
the orchestrator waiting.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from promptfolio.profile.models import Profile


class PromptfolioError(Exception):
    """Base exception for PromptFolio errors."""


# ── Identity provider ────────────────────────────────────────────────


class AuthError(PromptfolioError):
    """Authorization-code exchange or identity fetch failed.

    ``pending_profile`` carries the profile kept across the redirect when the
    nonce was valid, so the caller can hold on to it for a retry.
    """

    def __init__(
        self,
        code: str,
        detail: str = '',
        *,
        pending_profile: Profile | None = None,
    ) -> None:
        self.code = code
        self.detail = detail
        self.pending_profile = pending_profile
        super().__init__(f'{code}: {detail}' if detail else code)


class StateMismatchError(AuthError):
    """The OAuth ``state`` nonce did not match the stored one."""

    def __init__(
        self,
        detail: str = 'GitHub authorization failed due to security check. '
        'Please try again.',
    ) -> None:
        super().__init__('oauth_state_mismatch', detail)


# ── Provisioning ─────────────────────────────────────────────────────


class ProvisionError(PromptfolioError):
    """A provisioning call against the hosting provider failed.

    ``status_code`` is 0 for transport errors (no HTTP response).
    """

    def __init__(
        self,
        status_code: int,
        message: str = '',
        *,
        response_body: str = '',
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        super().__init__(message or f'HTTP {status_code}')


class TargetConflictError(ProvisionError):
    """The repository name is already taken (HTTP 422)."""

    def __init__(self, message: str = 'name already exists', **kwargs: Any) -> None:
        super().__init__(422, message, **kwargs)


@dataclass(frozen=True, slots=True)
class ConfigureWarning:
    """Non-fatal publish-step failure recorded on the deployment state."""

    message: str
    status_code: int = 0


# ── Reachability ─────────────────────────────────────────────────────


class ProbeInconclusive(PromptfolioError):
    """The reachability probe failed or timed out; keep waiting."""


# ── Orchestrator input ───────────────────────────────────────────────


class ProfileIncomplete(ValueError):
    """Name and email are required before a deployment may begin."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            f'profile is missing required fields: {", ".join(missing)}'
        )
