"""Pages deployment: target naming, state machine, probe, and orchestrator."""

from .orchestrator import DeploymentOrchestrator
from .state_machine import (
    DeploymentState,
    DeploymentStatus,
    InvalidStateTransition,
    StepOutcome,
    format_elapsed,
)
from .target import derive_target_name

__all__ = [
    'DeploymentOrchestrator',
    'DeploymentState',
    'DeploymentStatus',
    'InvalidStateTransition',
    'StepOutcome',
    'derive_target_name',
    'format_elapsed',
]
