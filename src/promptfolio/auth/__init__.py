"""GitHub OAuth flow and the redirect-surviving session state."""

from .continuity import CallbackResult, OAuthContinuity
from .oauth import GitHubOAuthClient

__all__ = ['CallbackResult', 'GitHubOAuthClient', 'OAuthContinuity']
