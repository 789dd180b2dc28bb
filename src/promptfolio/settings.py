"""PromptFolio service configuration settings.

PromptfolioSettings is the single configuration object accepted by create_app().
It is a plain frozen dataclass (not env-coupled) so tests can inject config
without touching os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

_DEFAULT_REDIRECT_URI = "http://localhost:8000/auth/callback"
_DEFAULT_GITHUB_API_URL = "https://api.github.com"
_DEFAULT_GITHUB_OAUTH_URL = "https://github.com/login/oauth"
_DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:3000",
)


@dataclass(frozen=True, slots=True)
class PromptfolioSettings:
    """Configuration for the PromptFolio FastAPI application.

    All fields have defaults suitable for local development.
    Non-local environments must supply real values for the GitHub OAuth
    app credentials and session_secret.
    """

    # ── Environment ────────────────────────────────────────────────
    environment: str = "local"
    """One of: local, staging, production."""

    # ── GitHub OAuth app ───────────────────────────────────────────
    github_client_id: str = ""
    """OAuth app client id (public, embedded in the authorize URL)."""

    github_client_secret: str = ""
    """OAuth app client secret. Never log this."""

    oauth_redirect_uri: str = _DEFAULT_REDIRECT_URI
    """Redirect URI registered for the OAuth app."""

    oauth_success_redirect: str = "/"
    """Where the browser lands after a successful callback."""

    # ── GitHub API ─────────────────────────────────────────────────
    github_api_url: str = _DEFAULT_GITHUB_API_URL
    github_oauth_url: str = _DEFAULT_GITHUB_OAUTH_URL

    # ── Session ────────────────────────────────────────────────────
    session_secret: str = ""
    """Secret used to sign session cookies. Must be >=32 chars in non-local."""

    session_ttl_seconds: int = 3600 * 8

    # ── Deployment polling ─────────────────────────────────────────
    pages_grace_seconds: int = 60
    """No automatic reachability probe before this many waiting seconds."""

    pages_stall_seconds: int = 300
    """Waiting time after which a failed probe marks the deployment stalled."""

    probe_timeout_seconds: float = 10.0

    # ── CORS ───────────────────────────────────────────────────────
    cors_origins: tuple[str, ...] = _DEFAULT_CORS_ORIGINS

    @property
    def is_local(self) -> bool:
        return self.environment == "local"

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if self.pages_grace_seconds < 0:
            errors.append("pages_grace_seconds must be >= 0")
        if self.pages_stall_seconds < self.pages_grace_seconds:
            errors.append("pages_stall_seconds must be >= pages_grace_seconds")
        if self.probe_timeout_seconds <= 0:
            errors.append("probe_timeout_seconds must be > 0")
        if not self.is_local:
            if not self.github_client_id:
                errors.append(f"{self.environment}: github_client_id is required")
            if not self.github_client_secret:
                errors.append(f"{self.environment}: github_client_secret is required")
            if not self.session_secret or len(self.session_secret) < 32:
                errors.append(
                    f"{self.environment}: session_secret must be >= 32 characters"
                )
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> PromptfolioSettings:
        """Build settings from environment variables.

        This is a convenience factory for production use. Tests should
        construct PromptfolioSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        kwargs: dict[str, object] = {}
        for name, cast in _ENV_FIELDS.items():
            raw = env.get(name.upper())
            if raw:
                kwargs[name] = cast(raw)

        cors_raw = env.get("CORS_ORIGINS", "")
        if cors_raw:
            kwargs["cors_origins"] = tuple(
                o.strip() for o in cors_raw.split(",") if o.strip()
            )

        return cls(**kwargs)


# Settings field -> parser; the env var name is the upper-cased field name.
_ENV_FIELDS = {
    "environment": str,
    "github_client_id": str,
    "github_client_secret": str,
    "oauth_redirect_uri": str,
    "oauth_success_redirect": str,
    "github_api_url": str,
    "github_oauth_url": str,
    "session_secret": str,
    "session_ttl_seconds": int,
    "pages_grace_seconds": int,
    "pages_stall_seconds": int,
    "probe_timeout_seconds": float,
}
