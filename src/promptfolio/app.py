"""PromptFolio FastAPI application factory.

The create_app() factory is the single entry point for building the ASGI
application. It wires middleware (request-ID, CORS), the route modules,
and injects provider implementations via dependency injection.

Usage:
    # Local development
    from promptfolio.app import create_app
    app = create_app(PromptfolioSettings())

    # Production
    app = create_app(PromptfolioSettings.from_env())

    # Testing (full DI control)
    app = create_app(settings, provider_factory=lambda cred: fake, probe=fake_probe)
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from functools import partial

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware

from promptfolio.auth import GitHubOAuthClient
from promptfolio.deployment.orchestrator import DeploymentOrchestrator, ProviderFactory
from promptfolio.deployment.probe import HttpReachabilityProbe
from promptfolio.deployment.ticker import TickerFactory, default_ticker_factory
from promptfolio.observability.logging import configure_logging, request_id_ctx
from promptfolio.observability.metrics import render_latest
from promptfolio.protocols import IdentityProvider, ReachabilityProbe
from promptfolio.providers.github_client import (
    GitHubProvisioningClient,
    close_shared_async_client,
)
from promptfolio.sessions import SessionRegistry
from promptfolio.settings import PromptfolioSettings

from .routes.auth import SessionConfig, create_auth_router
from .routes.deployments import create_deployment_router
from .routes.portfolio import create_portfolio_router

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppDependencies:
    """Container for the injected providers.

    Stored on ``app.state.deps`` so route handlers and tests can reach them.
    """

    sessions: SessionRegistry
    oauth_client: GitHubOAuthClient
    identity_provider: IdentityProvider
    provider_factory: ProviderFactory
    probe: ReachabilityProbe
    ticker_factory: TickerFactory


# ── Middleware ──────────────────────────────────────────────────────


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Generate or propagate X-Request-ID on every request."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response


# ── Factory ─────────────────────────────────────────────────────────


def _session_config(settings: PromptfolioSettings) -> SessionConfig:
    if settings.is_local and not settings.session_secret:
        config = SessionConfig.for_local_dev()
    else:
        config = SessionConfig(
            session_secret=settings.session_secret,
            cookie_secure=not settings.is_local,
        )
    config.session_ttl = settings.session_ttl_seconds
    config.redirect_path = settings.oauth_success_redirect
    return config


def create_app(
    settings: PromptfolioSettings | None = None,
    *,
    identity_provider: IdentityProvider | None = None,
    provider_factory: ProviderFactory | None = None,
    probe: ReachabilityProbe | None = None,
    ticker_factory: TickerFactory | None = None,
) -> FastAPI:
    """Create a configured PromptFolio FastAPI application.

    Args:
        settings: Application settings. Defaults to local-dev settings.
        identity_provider..ticker_factory: Overrides for the GitHub-backed
            defaults.

    Returns:
        Configured FastAPI application ready for uvicorn.run().

    Raises:
        ValueError: If settings validation fails.
    """
    if settings is None:
        settings = PromptfolioSettings()

    errors = settings.validate()
    if errors:
        raise ValueError(
            "PromptFolio settings validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    oauth_client = GitHubOAuthClient(
        client_id=settings.github_client_id,
        client_secret=settings.github_client_secret,
        oauth_url=settings.github_oauth_url,
        api_url=settings.github_api_url,
    )
    deps = AppDependencies(
        sessions=SessionRegistry(ttl_seconds=settings.session_ttl_seconds),
        oauth_client=oauth_client,
        identity_provider=identity_provider or oauth_client,
        provider_factory=provider_factory or partial(
            _github_provider, base_url=settings.github_api_url,
        ),
        probe=probe or HttpReachabilityProbe(
            timeout_seconds=settings.probe_timeout_seconds,
        ),
        ticker_factory=ticker_factory or default_ticker_factory,
    )
    session_config = _session_config(settings)

    def orchestrator_factory() -> DeploymentOrchestrator:
        return DeploymentOrchestrator(
            probe=deps.probe,
            provider_factory=deps.provider_factory,
            ticker_factory=deps.ticker_factory,
            grace_seconds=settings.pages_grace_seconds,
            stall_seconds=settings.pages_stall_seconds,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("PromptFolio startup (environment=%s)", settings.environment)
        sweeper = asyncio.create_task(deps.sessions.sweep_periodically())
        yield
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
        await deps.sessions.close_all()
        await close_shared_async_client()
        logger.info("PromptFolio shutdown")

    app = FastAPI(
        title="PromptFolio",
        description="Portfolio generation and GitHub Pages deployment API",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.deps = deps
    app.state.settings = settings

    # ── Middleware stack (applied in reverse order) ──────────────

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    # ── Routes ──────────────────────────────────────────────────

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "environment": settings.environment,
        }

    @app.get("/metrics")
    async def metrics():
        payload, content_type = render_latest()
        return Response(content=payload, media_type=content_type)

    app.include_router(create_portfolio_router())
    app.include_router(
        create_auth_router(
            oauth_client,
            session_config,
            deps.sessions,
            redirect_uri=settings.oauth_redirect_uri,
            identity_provider=deps.identity_provider,
        )
    )
    app.include_router(
        create_deployment_router(session_config, deps.sessions, orchestrator_factory)
    )

    return app


def _github_provider(credential: str, *, base_url: str) -> GitHubProvisioningClient:
    return GitHubProvisioningClient(credential=credential, base_url=base_url)


def create_app_from_env() -> FastAPI:
    """Uvicorn ``--factory`` entry point: env settings plus logging."""
    configure_logging()
    return create_app(PromptfolioSettings.from_env())


# For uvicorn, use --factory flag:
#   uvicorn promptfolio.app:create_app_from_env --factory
# This avoids executing create_app() at import time.
