"""GitHub login, OAuth callback, and session routes.

Implements:
  - ``POST /auth/github/login``: stores a fresh ``oauth_state`` nonce and
    the pending profile in the browser session, returns the GitHub
    authorize URL.
  - ``GET /auth/callback``: verifies the nonce, exchanges the code, and
    keeps the credential and identity in the server-side session.
  - ``GET /auth/session`` and ``POST /auth/logout``.

Session cookie:
  A signed HS256 JWT carrying only the opaque session id. The credential
  itself never leaves server memory.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass

import jwt
from fastapi import APIRouter, Query, Request
from pydantic import BaseModel
from starlette.responses import JSONResponse, RedirectResponse, Response

from promptfolio.auth import GitHubOAuthClient, OAuthContinuity
from promptfolio.errors import AuthError, ProfileIncomplete, StateMismatchError
from promptfolio.profile import build_profile
from promptfolio.protocols import IdentityProvider
from promptfolio.sessions import BrowserSession, SessionRegistry

from .portfolio import ProfileFormRequest, profile_incomplete_response

# ── Constants ─────────────────────────────────────────────────────────

SESSION_COOKIE_NAME = 'promptfolio_session'
SESSION_TTL_SECONDS = 3600 * 8
DEFAULT_REDIRECT_PATH = '/'

# ── Configuration ────────────────────────────────────────────────────


@dataclass
class SessionConfig:
    """Session cookie configuration.

    Args:
        session_secret: Secret key for signing session JWTs.
        cookie_secure: Whether to set Secure flag (False for local dev).
        cookie_domain: Optional domain for the cookie.
        session_ttl: Session TTL in seconds.
        redirect_path: Where to redirect after a successful callback.
    """

    session_secret: str
    cookie_secure: bool = True
    cookie_domain: str | None = None
    session_ttl: int = SESSION_TTL_SECONDS
    redirect_path: str = DEFAULT_REDIRECT_PATH

    @classmethod
    def for_local_dev(cls, session_secret: str | None = None) -> SessionConfig:
        return cls(
            session_secret=session_secret or secrets.token_urlsafe(32),
            cookie_secure=False,
        )


# ── Session helpers ──────────────────────────────────────────────────


def create_session_token(session_id: str, config: SessionConfig) -> str:
    now = int(time.time())
    payload = {
        'sub': session_id,
        'iat': now,
        'exp': now + config.session_ttl,
        'type': 'session',
    }
    return jwt.encode(payload, config.session_secret, algorithm='HS256')


def verify_session_token(token: str, config: SessionConfig) -> dict:
    """Verify and decode a session JWT.

    Raises:
        jwt.InvalidTokenError: If verification fails.
    """
    return jwt.decode(
        token,
        config.session_secret,
        algorithms=['HS256'],
        options={
            'require': ['sub', 'exp', 'type'],
            'verify_exp': True,
        },
    )


def load_session(
    request: Request,
    config: SessionConfig,
    sessions: SessionRegistry,
) -> BrowserSession | None:
    """Return the session named by the request's cookie, if still valid."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None
    try:
        claims = verify_session_token(token, config)
    except jwt.InvalidTokenError:
        return None
    if claims.get('type') != 'session':
        return None
    return sessions.get(claims['sub'])


def set_session_cookie(
    response: Response,
    session: BrowserSession,
    config: SessionConfig,
    sessions: SessionRegistry,
) -> None:
    sessions.extend(session, time.time() + config.session_ttl)
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=create_session_token(session.session_id, config),
        httponly=True,
        secure=config.cookie_secure,
        samesite='lax',
        max_age=config.session_ttl,
        path='/',
        domain=config.cookie_domain,
    )


def no_session_response() -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={'error': 'no_session', 'detail': 'No valid session cookie present'},
    )


class LoginRequest(BaseModel):
    profile: ProfileFormRequest | None = None


# ── Route factory ────────────────────────────────────────────────────


def create_auth_router(
    oauth_client: GitHubOAuthClient,
    session_config: SessionConfig,
    sessions: SessionRegistry,
    *,
    redirect_uri: str,
    identity_provider: IdentityProvider | None = None,
) -> APIRouter:
    """Create the auth router.

    Args:
        oauth_client: Builds the authorize URL (and exchanges codes unless
            ``identity_provider`` is given).
        session_config: Configuration for session cookies.
        sessions: Server-side session registry.
        redirect_uri: OAuth callback URL registered with GitHub.
        identity_provider: Override for the code exchange.
    """
    router = APIRouter(tags=['auth'])
    exchanger = identity_provider or oauth_client

    @router.post('/auth/github/login')
    async def github_login(request: Request, body: LoginRequest | None = None):
        profile = None
        if body is not None and body.profile is not None:
            try:
                profile = build_profile(body.profile.to_form())
            except ProfileIncomplete as exc:
                return profile_incomplete_response(exc)

        session = load_session(request, session_config, sessions) or await sessions.create()
        state = await OAuthContinuity(session.store, exchanger).begin(profile)

        response = JSONResponse(
            content={'authorize_url': oauth_client.authorize_url(state, redirect_uri)},
        )
        set_session_cookie(response, session, session_config, sessions)
        return response

    @router.get('/auth/callback')
    async def auth_callback(
        request: Request,
        code: str | None = Query(default=None),
        state: str | None = Query(default=None),
        error: str | None = Query(default=None),
        error_description: str | None = Query(default=None),
    ):
        """Handle the GitHub redirect.

        1. Verify the returned ``state`` against the stored nonce.
        2. Exchange the code for a credential and identity.
        3. Keep both in the session and redirect to the app.
        """
        session = load_session(request, session_config, sessions)
        if session is None:
            exc = StateMismatchError()
            return JSONResponse(
                status_code=403,
                content={'error': exc.code, 'detail': exc.detail},
            )

        continuity = OAuthContinuity(session.store, exchanger)
        if error:
            await continuity.abandon()
            session.pending_profile = None
            return JSONResponse(
                status_code=401,
                content={
                    'error': 'auth_callback_failed',
                    'code': error,
                    'detail': error_description or error,
                },
            )

        try:
            result = await continuity.complete(code or '', state)
        except StateMismatchError as exc:
            session.pending_profile = None
            return JSONResponse(
                status_code=403,
                content={'error': exc.code, 'detail': exc.detail},
            )
        except AuthError as exc:
            if exc.pending_profile is not None:
                session.pending_profile = exc.pending_profile
            return JSONResponse(
                status_code=401,
                content={
                    'error': 'auth_callback_failed',
                    'code': exc.code,
                    'detail': exc.detail,
                },
            )

        session.identity = result.identity
        session.credential = result.credential
        if result.pending_profile is not None:
            session.pending_profile = result.pending_profile

        response = RedirectResponse(url=session_config.redirect_path, status_code=302)
        set_session_cookie(response, session, session_config, sessions)
        return response

    @router.get('/auth/session')
    async def get_session(request: Request):
        session = load_session(request, session_config, sessions)
        if session is None:
            return no_session_response()

        identity = session.identity
        return {
            'authenticated': session.authenticated,
            'login': identity.login if identity else None,
            'name': identity.name if identity else None,
            'avatar_url': identity.avatar_url if identity else None,
            'html_url': identity.html_url if identity else None,
            'has_pending_profile': session.pending_profile is not None,
        }

    @router.post('/auth/logout')
    async def logout(request: Request):
        session = load_session(request, session_config, sessions)
        if session is not None:
            await sessions.drop(session.session_id)
        response = JSONResponse(content={'status': 'logged_out'})
        response.delete_cookie(SESSION_COOKIE_NAME, path='/')
        return response

    return router
