"""Deployment target naming and the URLs derived from it."""

from __future__ import annotations

import re

TARGET_SUFFIX = '-portfolio'

_WHITESPACE = re.compile(r'\s+')


def derive_target_name(name: str) -> str:
    """Lower-case ``name``, collapse whitespace runs to ``-`` and add the suffix.

    Not unique: two users with the same display name collide (the provider
    answers 422). Re-applying to a derived name returns it unchanged.
    """
    slug = _WHITESPACE.sub('-', name.lower())
    if slug.endswith(TARGET_SUFFIX):
        return slug
    return f'{slug}{TARGET_SUFFIX}'


def hosting_url(login: str, target_name: str) -> str:
    return f'https://{login}.github.io/{target_name}'


def repository_url(login: str, target_name: str) -> str:
    return f'https://github.com/{login}/{target_name}'


def repository_description(name: str) -> str:
    return f'Portfolio website for {name}'
