"""State that survives the OAuth redirect.

Before redirecting to the identity provider, ``begin`` writes a fresh
``oauth_state`` nonce and a snapshot of the pending profile into the
session's key-value store. On return, ``complete`` reads and clears both
keys exactly once, verifies the nonce with a timing-safe comparison, and
only then exchanges the authorization code.

On a mismatch (or a missing stored nonce) nothing reaches the identity
provider and the pending profile is discarded.
"""

from __future__ import annotations

import hmac
import json
import logging
import secrets
from dataclasses import dataclass, field

from promptfolio.errors import AuthError, StateMismatchError
from promptfolio.profile.models import Identity, Profile
from promptfolio.protocols import IdentityProvider, KeyValueStore

logger = logging.getLogger(__name__)

OAUTH_STATE_KEY = 'oauth_state'
PENDING_PROFILE_KEY = 'pending_profile'
STATE_NONCE_BYTES = 32


@dataclass(frozen=True, slots=True)
class CallbackResult:
    """Outcome of a verified OAuth return."""

    identity: Identity
    credential: str = field(repr=False)
    pending_profile: Profile | None = None


def generate_state_nonce() -> str:
    return secrets.token_urlsafe(STATE_NONCE_BYTES)


class OAuthContinuity:
    def __init__(
        self,
        store: KeyValueStore,
        identity_provider: IdentityProvider,
    ) -> None:
        self._store = store
        self._identity_provider = identity_provider

    async def begin(self, profile: Profile | None = None, *, nonce: str | None = None) -> str:
        """Store a new nonce (and the profile snapshot); return the nonce."""
        state = nonce or generate_state_nonce()
        await self._store.set(OAUTH_STATE_KEY, state)
        if profile is not None:
            await self._store.set(PENDING_PROFILE_KEY, json.dumps(profile.to_dict()))
        else:
            await self._store.delete(PENDING_PROFILE_KEY)
        return state

    async def complete(self, code: str, returned_state: str | None) -> CallbackResult:
        """Verify the returned nonce, then exchange ``code``.

        Raises:
            StateMismatchError: Nonce missing or different. Both keys are
                cleared and the identity provider is not called.
            AuthError: The exchange failed. Its ``pending_profile`` holds the
                stored profile so a retry does not lose it.
        """
        stored_state = await self._store.get(OAUTH_STATE_KEY)
        raw_profile = await self._store.get(PENDING_PROFILE_KEY)
        await self._store.delete(OAUTH_STATE_KEY)
        await self._store.delete(PENDING_PROFILE_KEY)

        if not _nonce_matches(stored_state, returned_state):
            logger.warning(
                'OAuth state mismatch (stored=%s)',
                'present' if stored_state else 'missing',
            )
            raise StateMismatchError()

        pending_profile = _load_profile(raw_profile)
        try:
            credential, identity = await self._identity_provider.exchange(code)
        except AuthError as exc:
            exc.pending_profile = pending_profile
            raise
        return CallbackResult(
            identity=identity,
            credential=credential,
            pending_profile=pending_profile,
        )

    async def abandon(self) -> None:
        """Clear the stored nonce and profile without exchanging anything."""
        await self._store.delete(OAUTH_STATE_KEY)
        await self._store.delete(PENDING_PROFILE_KEY)


def _nonce_matches(stored: str | None, returned: str | None) -> bool:
    if not stored or not returned:
        return False
    return hmac.compare_digest(stored.encode(), returned.encode())


def _load_profile(raw: str | None) -> Profile | None:
    if not raw:
        return None
    try:
        return Profile.from_dict(json.loads(raw))
    except (ValueError, TypeError, AttributeError):
        logger.warning('Discarding unreadable pending profile')
        return None
