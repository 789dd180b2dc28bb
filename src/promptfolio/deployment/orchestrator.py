"""Deployment orchestrator: drives one Pages deployment attempt.

Orchestrates the flow for a single profile:
  idle -> creating -> uploading -> configuring -> waiting
  -> (checking <-> waiting)* -> success

At each provisioning step the orchestrator:
  1. Performs the step through the injected provisioning provider.
  2. Transitions to ``error`` on failure with a human-readable message,
     except for the publish step, whose failure is recorded and ignored.
  3. Advances the state machine on success.

Once waiting, a 1 s ticker advances the elapsed counter and, past the grace
period, dispatches a reachability probe whenever none is in flight. After
``close()`` no result, late or not, mutates the state.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Callable

from promptfolio.content import CONTENT_PATH, render
from promptfolio.errors import (
    ConfigureWarning,
    ProbeInconclusive,
    ProfileIncomplete,
    ProvisionError,
)
from promptfolio.observability.metrics import (
    DEPLOYMENT_DURATION_SECONDS,
    DEPLOYMENT_OUTCOMES_TOTAL,
    DEPLOYMENT_STEP_FAILURES_TOTAL,
    DEPLOYMENTS_STARTED_TOTAL,
    PROBE_ATTEMPTS_TOTAL,
)
from promptfolio.profile.models import Identity, Profile
from promptfolio.protocols import ProvisioningProvider, ReachabilityProbe
from promptfolio.providers.github_client import (
    CREATE_REPO_FALLBACK,
    PAGES_FALLBACK,
    UPLOAD_FALLBACK,
    GitHubProvisioningClient,
)

from . import state_machine as sm
from .state_machine import DeploymentState, DeploymentStatus, StepOutcome
from .target import (
    derive_target_name,
    hosting_url,
    repository_description,
    repository_url,
)
from .ticker import TickerFactory, TickerLike, default_ticker_factory

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 60
DEFAULT_STALL_SECONDS = 300

Renderer = Callable[[Profile, Identity], bytes]
ProviderFactory = Callable[[str], ProvisioningProvider]
StateListener = Callable[[DeploymentState], None]


def _github_provider(credential: str) -> ProvisioningProvider:
    return GitHubProvisioningClient(credential=credential)


def _step_message(exc: Exception, fallback: str) -> str:
    if isinstance(exc, ProvisionError) and exc.message:
        return exc.message
    return fallback


class DeploymentOrchestrator:
    """Owns the ``DeploymentState`` of one deployment attempt.

    The state is mutated only through the transition functions in
    ``state_machine``; readers get immutable snapshots via ``state`` or
    ``subscribe``.
    """

    def __init__(
        self,
        *,
        probe: ReachabilityProbe,
        provider_factory: ProviderFactory = _github_provider,
        renderer: Renderer = render,
        ticker_factory: TickerFactory = default_ticker_factory,
        grace_seconds: int = DEFAULT_GRACE_SECONDS,
        stall_seconds: int = DEFAULT_STALL_SECONDS,
        deployment_id: str | None = None,
    ) -> None:
        self.deployment_id = deployment_id or f'dep_{uuid.uuid4().hex[:12]}'
        self._probe = probe
        self._provider_factory = provider_factory
        self._render = renderer
        self._ticker_factory = ticker_factory
        self._grace = grace_seconds
        self._stall = stall_seconds

        self._state = DeploymentState()
        self._listeners: list[StateListener] = []
        self._ticker: TickerLike | None = None
        self._probe_task: asyncio.Task | None = None
        self._closed = False

    # ── Read side ────────────────────────────────────────────────

    @property
    def state(self) -> DeploymentState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def ticking(self) -> bool:
        return self._ticker is not None and self._ticker.running

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener`` for every new state; returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ── Triggers ─────────────────────────────────────────────────

    async def start(
        self,
        profile: Profile,
        identity: Identity,
        credential: str,
    ) -> DeploymentState:
        """Run the provisioning sequence and enter ``waiting``.

        Returns the state reached: ``waiting`` on success, ``error`` on a
        fatal step failure. A closed orchestrator returns its frozen state.

        Raises:
            ProfileIncomplete: Name or email is blank; state stays ``idle``.
            InvalidStateTransition: Not in ``idle``.
        """
        if self._state.status is not DeploymentStatus.IDLE or self._closed:
            raise sm.InvalidStateTransition(
                self._state.status.value, DeploymentStatus.CREATING.value,
            )
        missing = profile.missing_required()
        if missing:
            raise ProfileIncomplete(missing)

        login = identity.login
        target = derive_target_name(profile.name)
        content = self._render(profile, identity)
        provider = self._provider_factory(credential)

        self._set(sm.begin_creating(self._state, target_name=target))
        DEPLOYMENTS_STARTED_TOTAL.inc()
        logger.info(
            'Deployment started: %s',
            target,
            extra=self._log_extra(),
        )

        # Step 1: creating -> uploading
        try:
            handle = await provider.create_target(
                target, repository_description(profile.name),
            )
        except Exception as exc:
            return self._fail('create', _step_message(exc, CREATE_REPO_FALLBACK), exc)
        if self._closed:
            return self._state
        self._set(
            sm.record_created(self._state, repository_url=repository_url(login, target))
        )
        owner = handle.owner or login

        # Step 2: uploading -> configuring
        try:
            await provider.upload_content(owner, handle.name, CONTENT_PATH, content)
        except Exception as exc:
            return self._fail('upload', _step_message(exc, UPLOAD_FALLBACK), exc)
        if self._closed:
            return self._state
        self._set(sm.record_uploaded(self._state))

        # Step 3: configuring -> waiting, whatever the publish call says
        outcome, warning = await self._configure(provider, owner, handle.name)
        if self._closed:
            return self._state
        self._set(
            sm.record_configured(
                self._state,
                outcome=outcome,
                hosting_url=hosting_url(login, target),
                warning=warning,
            )
        )
        self._start_ticker()
        logger.info(
            'Waiting for Pages build: %s',
            self._state.hosting_url,
            extra=self._log_extra(),
        )
        return self._state

    async def check_status(self) -> DeploymentState:
        """Probe now, unless not waiting or a probe is already in flight."""
        task = self._dispatch_probe(trigger='manual')
        if task is not None:
            await asyncio.shield(task)
        return self._state

    def reset(self) -> DeploymentState:
        """``error -> idle`` for an explicit retry."""
        if self._closed:
            raise sm.InvalidStateTransition(
                self._state.status.value, DeploymentStatus.IDLE.value,
            )
        self._set(sm.reset_from_error(self._state))
        return self._state

    async def close(self) -> None:
        """Stop ticking and ignore every later result. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._listeners.clear()
        await self._stop_ticker()
        logger.info('Deployment closed', extra=self._log_extra())

    async def join_probe(self) -> None:
        """Wait for the in-flight probe, if any, to finish."""
        task = self._probe_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    # ── Ticker ───────────────────────────────────────────────────

    def tick(self) -> None:
        """One elapsed second. Past the grace period this dispatches a probe."""
        if self._closed or self._state.status not in sm.TICKING_STATES:
            return
        self._set(sm.tick(self._state))
        if self._state.waiting_seconds >= self._grace:
            self._dispatch_probe(trigger='auto')

    def _start_ticker(self) -> None:
        self._ticker = self._ticker_factory(self.tick)
        self._ticker.start()

    async def _stop_ticker(self) -> None:
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            await ticker.stop()

    # ── Internals ────────────────────────────────────────────────

    async def _configure(
        self,
        provider: ProvisioningProvider,
        owner: str,
        name: str,
    ) -> tuple[StepOutcome, ConfigureWarning | None]:
        try:
            await provider.enable_publishing(owner, name)
        except Exception as exc:
            warning = ConfigureWarning(
                message=_step_message(exc, PAGES_FALLBACK),
                status_code=getattr(exc, 'status_code', 0),
            )
            DEPLOYMENT_STEP_FAILURES_TOTAL.labels(
                step='configure', outcome=StepOutcome.FAILED_IGNORED.value,
            ).inc()
            logger.warning(
                'Pages configuration failed, continuing: %s',
                warning.message,
                extra=self._log_extra(status_code=warning.status_code),
            )
            return StepOutcome.FAILED_IGNORED, warning
        return StepOutcome.OK, None

    def _dispatch_probe(self, *, trigger: str) -> asyncio.Task | None:
        if self._closed or self._state.status is not DeploymentStatus.WAITING:
            return None

        # Enter ``checking`` before the task runs so no second probe can start.
        self._set(sm.begin_check(self._state))
        self._probe_task = asyncio.get_running_loop().create_task(
            self._run_probe(self._state.hosting_url or '', trigger)
        )
        return self._probe_task

    async def _run_probe(self, url: str, trigger: str) -> None:
        try:
            await self._probe.probe(url)
        except Exception as exc:
            PROBE_ATTEMPTS_TOTAL.labels(result='inconclusive', trigger=trigger).inc()
            if self._closed:
                return
            if not isinstance(exc, ProbeInconclusive):
                logger.warning('Probe raised %s', type(exc).__name__, exc_info=exc)
            was_stalled = self._state.stalled
            self._set(sm.record_inconclusive(self._state, stall_seconds=self._stall))
            if self._state.stalled and not was_stalled:
                logger.warning(
                    'Pages build stalled after %ds',
                    self._state.waiting_seconds,
                    extra=self._log_extra(),
                )
            return

        PROBE_ATTEMPTS_TOTAL.labels(result='reachable', trigger=trigger).inc()
        if self._closed:
            return
        self._set(sm.record_reachable(self._state))
        await self._stop_ticker()
        DEPLOYMENT_OUTCOMES_TOTAL.labels(status=DeploymentStatus.SUCCESS.value).inc()
        DEPLOYMENT_DURATION_SECONDS.observe(self._state.duration_seconds or 0)
        logger.info(
            'Site is live after %ds: %s',
            self._state.duration_seconds,
            self._state.hosting_url,
            extra=self._log_extra(),
        )

    def _fail(self, step: str, message: str, exc: Exception) -> DeploymentState:
        DEPLOYMENT_STEP_FAILURES_TOTAL.labels(step=step, outcome='error').inc()
        if self._closed:
            return self._state
        self._set(sm.transition_to_error(self._state, message=message))
        DEPLOYMENT_OUTCOMES_TOTAL.labels(status=DeploymentStatus.ERROR.value).inc()
        logger.warning(
            'Deployment failed at %s: %s',
            step,
            message,
            extra=self._log_extra(status_code=getattr(exc, 'status_code', None)),
        )
        return self._state

    def _set(self, new_state: DeploymentState) -> None:
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception('State listener failed')

    def _log_extra(self, **fields) -> dict:
        return {
            'deployment_id': self.deployment_id,
            'target_name': self._state.target_name,
            'status': self._state.status.value,
            **fields,
        }
