"""Deployment state machine.

Implements the canonical Pages deployment flow:
  idle -> creating -> uploading -> configuring -> waiting
  waiting <-> checking -> success

And deterministic error transitions:
  any active step -> error
  error --(explicit reset)--> idle

``DeploymentState`` values are immutable; every transition returns a new
snapshot. The orchestrator is the only caller.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType

from promptfolio.errors import ConfigureWarning


class DeploymentStatus(str, Enum):
    IDLE = 'idle'
    CREATING = 'creating'
    UPLOADING = 'uploading'
    CONFIGURING = 'configuring'
    WAITING = 'waiting'
    CHECKING = 'checking'
    SUCCESS = 'success'
    ERROR = 'error'


class StepOutcome(str, Enum):
    """Result of a provisioning step.

    ``FAILED_IGNORED`` is only produced by the publish step, whose failure
    does not halt the sequence.
    """

    OK = 'ok'
    FAILED_IGNORED = 'failed_ignored'
    ERROR = 'error'


S = DeploymentStatus

TERMINAL_STATES = frozenset({S.SUCCESS, S.ERROR})
ACTIVE_STATES = frozenset(
    {S.CREATING, S.UPLOADING, S.CONFIGURING, S.WAITING, S.CHECKING}
)
TICKING_STATES = frozenset({S.WAITING, S.CHECKING})

ALLOWED_TRANSITIONS = MappingProxyType(
    {
        S.IDLE: frozenset({S.CREATING}),
        S.CREATING: frozenset({S.UPLOADING, S.ERROR}),
        S.UPLOADING: frozenset({S.CONFIGURING, S.ERROR}),
        S.CONFIGURING: frozenset({S.WAITING, S.ERROR}),
        S.WAITING: frozenset({S.CHECKING, S.ERROR}),
        S.CHECKING: frozenset({S.WAITING, S.SUCCESS, S.ERROR}),
        S.SUCCESS: frozenset(),
        S.ERROR: frozenset({S.IDLE}),
    }
)

# User-visible progress steps. ``checking`` displays as "waiting".
STEP_LABELS = (
    'Creating repository',
    'Uploading files',
    'Configuring GitHub Pages',
    'Waiting for deployment',
    'Site is live!',
)

_STEP_INDEX = MappingProxyType(
    {
        S.IDLE: 0,
        S.CREATING: 0,
        S.UPLOADING: 1,
        S.CONFIGURING: 2,
        S.WAITING: 3,
        S.CHECKING: 3,
        S.SUCCESS: 4,
    }
)


@dataclass(frozen=True, slots=True)
class DeploymentState:
    """State snapshot for one deployment attempt."""

    status: DeploymentStatus = S.IDLE
    attempt: int = 1
    target_name: str | None = None
    repository_url: str | None = None
    hosting_url: str | None = None
    error_message: str | None = None
    configure_outcome: StepOutcome | None = None
    configure_warning: ConfigureWarning | None = None
    waiting_seconds: int = 0
    stalled: bool = False
    duration_seconds: int | None = None

    @property
    def is_checking(self) -> bool:
        return self.status is S.CHECKING

    @property
    def step_index(self) -> int | None:
        """Index into ``STEP_LABELS``; None once the sequence has failed."""
        return _STEP_INDEX.get(self.status)

    def to_dict(self) -> dict:
        return {
            'status': self.status.value,
            'attempt': self.attempt,
            'step_index': self.step_index,
            'target_name': self.target_name,
            'repository_url': self.repository_url,
            'hosting_url': self.hosting_url,
            'error_message': self.error_message,
            'configure_outcome': (
                self.configure_outcome.value if self.configure_outcome else None
            ),
            'configure_warning': (
                self.configure_warning.message if self.configure_warning else None
            ),
            'waiting_seconds': self.waiting_seconds,
            'elapsed': format_elapsed(self.waiting_seconds),
            'is_checking': self.is_checking,
            'stalled': self.stalled,
            'duration_seconds': self.duration_seconds,
        }


class InvalidStateTransition(ValueError):
    """Raised for invalid deployment state transitions."""

    def __init__(self, from_state: str, to_state: str) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f'invalid state transition: {from_state!r} -> {to_state!r}'
        )


def format_elapsed(seconds: int) -> str:
    """Format a second counter as ``m:ss``."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f'{minutes}:{secs:02d}'


# ── Provisioning sequence ───────────────────────────────────────────


def begin_creating(state: DeploymentState, *, target_name: str) -> DeploymentState:
    return _transition(state, to_status=S.CREATING, target_name=target_name)


def record_created(
    state: DeploymentState,
    *,
    repository_url: str,
) -> DeploymentState:
    """``creating -> uploading``; the repository URL is known only now."""
    return _transition(state, to_status=S.UPLOADING, repository_url=repository_url)


def record_uploaded(state: DeploymentState) -> DeploymentState:
    return _transition(state, to_status=S.CONFIGURING)


def record_configured(
    state: DeploymentState,
    *,
    outcome: StepOutcome,
    hosting_url: str,
    warning: ConfigureWarning | None = None,
) -> DeploymentState:
    """``configuring -> waiting`` for both ``ok`` and ``failed_ignored``."""
    if outcome is StepOutcome.ERROR:
        raise InvalidStateTransition(state.status.value, S.WAITING.value)
    return _transition(
        state,
        to_status=S.WAITING,
        hosting_url=hosting_url,
        configure_outcome=outcome,
        configure_warning=warning,
        waiting_seconds=0,
        stalled=False,
    )


# ── Waiting / checking ──────────────────────────────────────────────


def tick(state: DeploymentState) -> DeploymentState:
    """Advance the elapsed counter by one second while waiting or checking."""
    if state.status not in TICKING_STATES:
        return state
    return replace(state, waiting_seconds=state.waiting_seconds + 1)


def begin_check(state: DeploymentState) -> DeploymentState:
    return _transition(state, to_status=S.CHECKING)


def record_reachable(state: DeploymentState) -> DeploymentState:
    return _transition(
        state,
        to_status=S.SUCCESS,
        duration_seconds=state.waiting_seconds,
    )


def record_inconclusive(
    state: DeploymentState,
    *,
    stall_seconds: int,
) -> DeploymentState:
    """``checking -> waiting``; the counter keeps running.

    Sets ``stalled`` once the counter has reached ``stall_seconds``. There is
    no automatic failure from waiting too long.
    """
    return _transition(
        state,
        to_status=S.WAITING,
        stalled=state.stalled or state.waiting_seconds >= stall_seconds,
    )


# ── Error / reset ───────────────────────────────────────────────────


def transition_to_error(state: DeploymentState, *, message: str) -> DeploymentState:
    """Move any active deployment state to terminal ``error``."""
    if state.status not in ACTIVE_STATES:
        raise InvalidStateTransition(state.status.value, S.ERROR.value)
    return _transition(state, to_status=S.ERROR, error_message=message)


def reset_from_error(state: DeploymentState) -> DeploymentState:
    """Explicit retry: ``error -> idle`` with a fresh snapshot."""
    if state.status is not S.ERROR:
        raise InvalidStateTransition(state.status.value, S.IDLE.value)
    return DeploymentState(status=S.IDLE, attempt=state.attempt + 1)


def _transition(
    state: DeploymentState,
    *,
    to_status: DeploymentStatus,
    **changes,
) -> DeploymentState:
    allowed = ALLOWED_TRANSITIONS.get(state.status, frozenset())
    if to_status not in allowed:
        raise InvalidStateTransition(state.status.value, to_status.value)
    return replace(state, status=to_status, **changes)
