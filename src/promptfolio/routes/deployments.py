"""Deployment API.

Exposes the deployment orchestrator to the browser front end:
  POST   /api/v1/deployments                → start a deployment
  GET    /api/v1/deployments/{id}           → current state snapshot
  POST   /api/v1/deployments/{id}/check     → probe the site now
  POST   /api/v1/deployments/{id}/reset     → error -> idle
  POST   /api/v1/deployments/{id}/start     → run again after a reset
  DELETE /api/v1/deployments/{id}           → dismiss

The provisioning sequence runs as a background task; clients poll the
snapshot. All endpoints require the session cookie, and a deployment is
only visible to the session that started it.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from promptfolio.deployment import (
    DeploymentOrchestrator,
    DeploymentStatus,
    InvalidStateTransition,
)
from promptfolio.errors import ProfileIncomplete
from promptfolio.profile import Profile, build_profile
from promptfolio.sessions import BrowserSession, SessionRegistry

from .auth import SessionConfig, load_session, no_session_response
from .portfolio import ProfileFormRequest, profile_incomplete_response

OrchestratorFactory = Callable[[], DeploymentOrchestrator]


class StartDeploymentRequest(BaseModel):
    """Optional profile; defaults to the one kept across the OAuth redirect."""

    profile: ProfileFormRequest | None = None


def snapshot(orchestrator: DeploymentOrchestrator) -> dict:
    return {'id': orchestrator.deployment_id, **orchestrator.state.to_dict()}


def _not_found(deployment_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={
            'error': 'deployment_not_found',
            'detail': f'No deployment {deployment_id!r} in this session',
        },
    )


def _invalid_state(exc: InvalidStateTransition) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            'error': 'invalid_state',
            'detail': str(exc),
            'status': exc.from_state,
        },
    )


def _resolve_profile(
    session: BrowserSession,
    body: StartDeploymentRequest | None,
) -> Profile | JSONResponse:
    if body is not None and body.profile is not None:
        try:
            return build_profile(body.profile.to_form())
        except ProfileIncomplete as exc:
            return profile_incomplete_response(exc)

    profile = session.pending_profile
    if profile is None:
        return JSONResponse(
            status_code=400,
            content={
                'error': 'profile_required',
                'detail': 'Submit the profile form before deploying',
            },
        )
    missing = profile.missing_required()
    if missing:
        return profile_incomplete_response(ProfileIncomplete(missing))
    return profile


async def _launch(
    session: BrowserSession,
    orchestrator: DeploymentOrchestrator,
    profile: Profile,
) -> None:
    task = asyncio.get_running_loop().create_task(
        orchestrator.start(profile, session.identity, session.credential),
    )
    session.track(task)
    # Let the sequence run up to its first provider call.
    await asyncio.sleep(0)


def create_deployment_router(
    session_config: SessionConfig,
    sessions: SessionRegistry,
    orchestrator_factory: OrchestratorFactory,
) -> APIRouter:
    router = APIRouter(prefix='/api/v1/deployments', tags=['deployments'])

    def _authenticated(request: Request) -> BrowserSession | JSONResponse:
        session = load_session(request, session_config, sessions)
        if session is None:
            return no_session_response()
        if not session.authenticated:
            return JSONResponse(
                status_code=401,
                content={
                    'error': 'not_authenticated',
                    'detail': 'Connect your GitHub account first',
                },
            )
        return session

    @router.post('', status_code=202)
    async def start_deployment(
        request: Request,
        body: StartDeploymentRequest | None = None,
    ):
        session = _authenticated(request)
        if isinstance(session, JSONResponse):
            return session

        profile = _resolve_profile(session, body)
        if isinstance(profile, JSONResponse):
            return profile

        orchestrator = orchestrator_factory()
        session.deployments[orchestrator.deployment_id] = orchestrator
        await _launch(session, orchestrator, profile)
        return JSONResponse(status_code=202, content=snapshot(orchestrator))

    @router.get('/{deployment_id}')
    async def get_deployment(deployment_id: str, request: Request):
        session = _authenticated(request)
        if isinstance(session, JSONResponse):
            return session
        orchestrator = sessions.find_deployment(session, deployment_id)
        if orchestrator is None:
            return _not_found(deployment_id)
        return snapshot(orchestrator)

    @router.post('/{deployment_id}/check')
    async def check_deployment(deployment_id: str, request: Request):
        session = _authenticated(request)
        if isinstance(session, JSONResponse):
            return session
        orchestrator = sessions.find_deployment(session, deployment_id)
        if orchestrator is None:
            return _not_found(deployment_id)
        await orchestrator.check_status()
        return snapshot(orchestrator)

    @router.post('/{deployment_id}/reset')
    async def reset_deployment(deployment_id: str, request: Request):
        session = _authenticated(request)
        if isinstance(session, JSONResponse):
            return session
        orchestrator = sessions.find_deployment(session, deployment_id)
        if orchestrator is None:
            return _not_found(deployment_id)
        try:
            orchestrator.reset()
        except InvalidStateTransition as exc:
            return _invalid_state(exc)
        return snapshot(orchestrator)

    @router.post('/{deployment_id}/start', status_code=202)
    async def restart_deployment(
        deployment_id: str,
        request: Request,
        body: StartDeploymentRequest | None = None,
    ):
        session = _authenticated(request)
        if isinstance(session, JSONResponse):
            return session
        orchestrator = sessions.find_deployment(session, deployment_id)
        if orchestrator is None:
            return _not_found(deployment_id)
        if orchestrator.state.status is not DeploymentStatus.IDLE:
            return _invalid_state(
                InvalidStateTransition(
                    orchestrator.state.status.value,
                    DeploymentStatus.CREATING.value,
                )
            )

        profile = _resolve_profile(session, body)
        if isinstance(profile, JSONResponse):
            return profile
        await _launch(session, orchestrator, profile)
        return JSONResponse(status_code=202, content=snapshot(orchestrator))

    @router.delete('/{deployment_id}')
    async def dismiss_deployment(deployment_id: str, request: Request):
        session = _authenticated(request)
        if isinstance(session, JSONResponse):
            return session
        orchestrator = session.deployments.pop(deployment_id, None)
        if orchestrator is None:
            return _not_found(deployment_id)
        await orchestrator.close()
        return {'id': deployment_id, 'status': 'dismissed'}

    return router
