"""Pytest configuration for PromptFolio tests."""
import sys
from pathlib import Path

# Add src/ to path for src-layout imports
_PROJECT_ROOT = Path(__file__).parent.parent
_SRC = _PROJECT_ROOT / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest

from promptfolio.profile.models import Identity, Profile, Project


class ManualTicker:
    """Ticker double: never runs on its own; tests call ``advance``."""

    def __init__(self, callback) -> None:
        self.callback = callback
        self.started = False
        self.stopped = False

    @property
    def running(self) -> bool:
        return self.started and not self.stopped

    def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    def advance(self, seconds: int = 1) -> None:
        for _ in range(seconds):
            self.callback()


class ManualTickers:
    def __init__(self) -> None:
        self.instances: list[ManualTicker] = []

    def factory(self, callback) -> ManualTicker:
        ticker = ManualTicker(callback)
        self.instances.append(ticker)
        return ticker

    @property
    def last(self) -> ManualTicker:
        return self.instances[-1]


@pytest.fixture
def tickers():
    return ManualTickers()


@pytest.fixture
def ada_profile():
    return Profile(
        name='Ada Lovelace',
        email='a@b.com',
        title='Mathematician',
        bio='First programmer.',
        skills=('Analysis', 'Engines'),
        projects=(
            Project(
                title='Note G',
                description='Bernoulli numbers on the Analytical Engine',
                tech=('Punch cards',),
            ),
        ),
    )


@pytest.fixture
def ada_identity():
    return Identity(
        login='ada',
        name='Ada Lovelace',
        avatar_url='https://avatars.githubusercontent.com/u/1',
        html_url='https://github.com/ada',
    )
