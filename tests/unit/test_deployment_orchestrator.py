"""Deployment orchestrator tests: step ordering, failures, polling, close."""

from __future__ import annotations

import asyncio

import pytest

from promptfolio.content import render
from promptfolio.deployment.orchestrator import DeploymentOrchestrator
from promptfolio.deployment.state_machine import (
    DeploymentStatus,
    InvalidStateTransition,
    StepOutcome,
)
from promptfolio.errors import ProfileIncomplete, ProvisionError, TargetConflictError
from promptfolio.inmemory import InMemoryProvisioningProvider, InMemoryReachabilityProbe
from promptfolio.profile.models import Profile

S = DeploymentStatus


def _make_orchestrator(
    tickers,
    *,
    provider: InMemoryProvisioningProvider | None = None,
    probe: InMemoryReachabilityProbe | None = None,
) -> tuple[DeploymentOrchestrator, InMemoryProvisioningProvider, InMemoryReachabilityProbe]:
    provider = provider or InMemoryProvisioningProvider(owner='ada')
    probe = probe or InMemoryReachabilityProbe()
    orchestrator = DeploymentOrchestrator(
        probe=probe,
        provider_factory=lambda credential: provider,
        ticker_factory=tickers.factory,
        deployment_id='dep_test',
    )
    return orchestrator, provider, probe


async def _wait_until_live(orchestrator, ticker, *, max_seconds=400):
    for _ in range(max_seconds):
        ticker.advance()
        await orchestrator.join_probe()
        if orchestrator.state.status is S.SUCCESS:
            return


# ── Sequence ─────────────────────────────────────────────────────────


class TestProvisioningSequence:
    @pytest.mark.asyncio
    async def test_steps_run_strictly_in_order(self, tickers, ada_profile, ada_identity):
        orchestrator, provider, _ = _make_orchestrator(tickers)
        seen = []
        orchestrator.subscribe(lambda state: seen.append(state.status))

        state = await orchestrator.start(ada_profile, ada_identity, 'gho_token')

        assert state.status is S.WAITING
        assert seen == [S.CREATING, S.UPLOADING, S.CONFIGURING, S.WAITING]
        assert provider.calls == [
            ('create_target', 'ada-lovelace-portfolio'),
            ('upload_content', 'ada-lovelace-portfolio'),
            ('enable_publishing', 'ada-lovelace-portfolio'),
        ]

    @pytest.mark.asyncio
    async def test_uploads_rendered_content_to_index(
        self, tickers, ada_profile, ada_identity,
    ):
        orchestrator, provider, _ = _make_orchestrator(tickers)
        await orchestrator.start(ada_profile, ada_identity, 'gho_token')

        uploaded = provider.uploads['ada/ada-lovelace-portfolio/index.html']
        assert uploaded == render(ada_profile, ada_identity)

    @pytest.mark.asyncio
    async def test_later_steps_target_the_created_repository(
        self, tickers, ada_profile, ada_identity,
    ):
        orchestrator, provider, _ = _make_orchestrator(
            tickers, provider=InMemoryProvisioningProvider(owner='Ada'),
        )
        state = await orchestrator.start(ada_profile, ada_identity, 'gho_token')

        assert list(provider.uploads) == ['Ada/ada-lovelace-portfolio/index.html']
        assert state.hosting_url == 'https://ada.github.io/ada-lovelace-portfolio'

    @pytest.mark.asyncio
    async def test_owner_falls_back_to_login(self, tickers, ada_profile, ada_identity):
        orchestrator, provider, _ = _make_orchestrator(
            tickers, provider=InMemoryProvisioningProvider(owner=''),
        )
        await orchestrator.start(ada_profile, ada_identity, 'gho_token')

        assert list(provider.uploads) == ['ada/ada-lovelace-portfolio/index.html']

    @pytest.mark.asyncio
    async def test_rejects_incomplete_profile(self, tickers, ada_identity):
        orchestrator, provider, _ = _make_orchestrator(tickers)

        with pytest.raises(ProfileIncomplete) as exc_info:
            await orchestrator.start(
                Profile(name='Ada Lovelace', email=''), ada_identity, 'gho_token',
            )

        assert exc_info.value.missing == ['email']
        assert orchestrator.state.status is S.IDLE
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_second_start_is_rejected(self, tickers, ada_profile, ada_identity):
        orchestrator, provider, _ = _make_orchestrator(tickers)
        await orchestrator.start(ada_profile, ada_identity, 'gho_token')

        with pytest.raises(InvalidStateTransition):
            await orchestrator.start(ada_profile, ada_identity, 'gho_token')
        assert len(provider.calls) == 3

    @pytest.mark.asyncio
    async def test_credential_reaches_provider_factory(
        self, tickers, ada_profile, ada_identity,
    ):
        received = []
        provider = InMemoryProvisioningProvider(owner='ada')

        def factory(credential):
            received.append(credential)
            return provider

        orchestrator = DeploymentOrchestrator(
            probe=InMemoryReachabilityProbe(),
            provider_factory=factory,
            ticker_factory=tickers.factory,
        )
        await orchestrator.start(ada_profile, ada_identity, 'gho_secret')

        assert received == ['gho_secret']
        assert orchestrator.deployment_id.startswith('dep_')


# ── Step failures ────────────────────────────────────────────────────


class TestStepFailures:
    @pytest.mark.asyncio
    async def test_create_conflict_moves_to_error(
        self, tickers, ada_profile, ada_identity,
    ):
        provider = InMemoryProvisioningProvider(
            owner='ada',
            create_error=TargetConflictError(
                'Repository creation failed. (name already exists on this account)'
            ),
        )
        orchestrator, _, _ = _make_orchestrator(tickers, provider=provider)

        state = await orchestrator.start(ada_profile, ada_identity, 'gho_token')

        assert state.status is S.ERROR
        assert 'name already exists' in state.error_message
        assert state.repository_url is None
        assert state.hosting_url is None
        assert provider.calls == [('create_target', 'ada-lovelace-portfolio')]
        assert tickers.instances == []

    @pytest.mark.asyncio
    async def test_create_failure_without_message_uses_fallback(
        self, tickers, ada_profile, ada_identity,
    ):
        provider = InMemoryProvisioningProvider(create_error=ProvisionError(0))
        orchestrator, _, _ = _make_orchestrator(tickers, provider=provider)

        state = await orchestrator.start(ada_profile, ada_identity, 'gho_token')

        assert state.error_message == 'Failed to create repository'

    @pytest.mark.asyncio
    async def test_upload_failure_keeps_repository_url(
        self, tickers, ada_profile, ada_identity,
    ):
        provider = InMemoryProvisioningProvider(upload_error=ProvisionError(404))
        orchestrator, _, _ = _make_orchestrator(tickers, provider=provider)

        state = await orchestrator.start(ada_profile, ada_identity, 'gho_token')

        assert state.status is S.ERROR
        assert state.error_message == 'Failed to upload files'
        assert state.repository_url == 'https://github.com/ada/ada-lovelace-portfolio'
        assert ('enable_publishing', 'ada-lovelace-portfolio') not in provider.calls

    @pytest.mark.asyncio
    async def test_publish_failure_still_advances_to_waiting(
        self, tickers, ada_profile, ada_identity,
    ):
        provider = InMemoryProvisioningProvider(
            publish_error=ProvisionError(409, 'GitHub Pages is already enabled.'),
        )
        orchestrator, _, _ = _make_orchestrator(tickers, provider=provider)

        state = await orchestrator.start(ada_profile, ada_identity, 'gho_token')

        assert state.status is S.WAITING
        assert state.hosting_url == 'https://ada.github.io/ada-lovelace-portfolio'
        assert state.configure_outcome is StepOutcome.FAILED_IGNORED
        assert state.configure_warning.message == 'GitHub Pages is already enabled.'
        assert state.configure_warning.status_code == 409
        assert tickers.last.running

    @pytest.mark.asyncio
    async def test_reset_allows_a_fresh_attempt(self, tickers, ada_profile, ada_identity):
        provider = InMemoryProvisioningProvider(
            create_error=TargetConflictError(),
        )
        orchestrator, _, _ = _make_orchestrator(tickers, provider=provider)
        await orchestrator.start(ada_profile, ada_identity, 'gho_token')

        state = orchestrator.reset()
        assert state.status is S.IDLE
        assert state.attempt == 2
        assert state.error_message is None

        provider.create_error = None
        state = await orchestrator.start(ada_profile, ada_identity, 'gho_token')
        assert state.status is S.WAITING
        assert state.attempt == 2

    @pytest.mark.asyncio
    async def test_reset_outside_error_is_rejected(
        self, tickers, ada_profile, ada_identity,
    ):
        orchestrator, _, _ = _make_orchestrator(tickers)
        with pytest.raises(InvalidStateTransition):
            orchestrator.reset()

        await orchestrator.start(ada_profile, ada_identity, 'gho_token')
        with pytest.raises(InvalidStateTransition):
            orchestrator.reset()


# ── Polling ──────────────────────────────────────────────────────────


class TestPolling:
    @pytest.mark.asyncio
    async def test_no_automatic_probe_before_grace_period(
        self, tickers, ada_profile, ada_identity,
    ):
        orchestrator, _, probe = _make_orchestrator(tickers)
        await orchestrator.start(ada_profile, ada_identity, 'gho_token')

        tickers.last.advance(59)
        await asyncio.sleep(0)

        assert probe.calls == []
        assert orchestrator.state.status is S.WAITING
        assert orchestrator.state.waiting_seconds == 59

    @pytest.mark.asyncio
    async def test_first_tick_past_grace_dispatches_one_probe(
        self, tickers, ada_profile, ada_identity,
    ):
        orchestrator, _, probe = _make_orchestrator(tickers)
        await orchestrator.start(ada_profile, ada_identity, 'gho_token')

        tickers.last.advance(60)
        assert orchestrator.state.status is S.CHECKING
        await orchestrator.join_probe()

        assert probe.calls == ['https://ada.github.io/ada-lovelace-portfolio']
        assert orchestrator.state.status is S.SUCCESS
        assert orchestrator.state.duration_seconds == 60
        assert tickers.last.stopped

    @pytest.mark.asyncio
    async def test_ticks_do_not_stack_probes_while_one_is_in_flight(
        self, tickers, ada_profile, ada_identity,
    ):
        gate = asyncio.Event()
        probe = InMemoryReachabilityProbe(gate=gate)
        orchestrator, _, _ = _make_orchestrator(tickers, probe=probe)
        await orchestrator.start(ada_profile, ada_identity, 'gho_token')

        tickers.last.advance(60)
        await asyncio.sleep(0)
        tickers.last.advance(5)
        await asyncio.sleep(0)

        assert len(probe.calls) == 1
        assert orchestrator.state.waiting_seconds == 65

        gate.set()
        await orchestrator.join_probe()
        assert orchestrator.state.status is S.SUCCESS
        assert orchestrator.state.duration_seconds == 65

    @pytest.mark.asyncio
    async def test_check_status_is_a_noop_while_checking(
        self, tickers, ada_profile, ada_identity,
    ):
        gate = asyncio.Event()
        probe = InMemoryReachabilityProbe(gate=gate)
        orchestrator, _, _ = _make_orchestrator(tickers, probe=probe)
        await orchestrator.start(ada_profile, ada_identity, 'gho_token')

        first = asyncio.create_task(orchestrator.check_status())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert orchestrator.state.is_checking

        state = await orchestrator.check_status()
        assert state.status is S.CHECKING
        assert len(probe.calls) == 1

        gate.set()
        state = await first
        assert state.status is S.SUCCESS
        assert len(probe.calls) == 1

    @pytest.mark.asyncio
    async def test_check_status_is_a_noop_outside_waiting(self, tickers):
        orchestrator, _, probe = _make_orchestrator(tickers)

        state = await orchestrator.check_status()

        assert state.status is S.IDLE
        assert probe.calls == []

    @pytest.mark.asyncio
    async def test_manual_check_before_grace_period(
        self, tickers, ada_profile, ada_identity,
    ):
        orchestrator, _, probe = _make_orchestrator(tickers)
        await orchestrator.start(ada_profile, ada_identity, 'gho_token')
        tickers.last.advance(12)

        state = await orchestrator.check_status()

        assert state.status is S.SUCCESS
        assert state.duration_seconds == 12
        assert len(probe.calls) == 1

    @pytest.mark.asyncio
    async def test_inconclusive_probe_keeps_waiting_without_resetting_counter(
        self, tickers, ada_profile, ada_identity,
    ):
        probe = InMemoryReachabilityProbe([False, True])
        orchestrator, _, _ = _make_orchestrator(tickers, probe=probe)
        await orchestrator.start(ada_profile, ada_identity, 'gho_token')

        tickers.last.advance(60)
        await orchestrator.join_probe()
        assert orchestrator.state.status is S.WAITING
        assert orchestrator.state.waiting_seconds == 60
        assert not orchestrator.state.stalled

        tickers.last.advance(1)
        await orchestrator.join_probe()
        assert orchestrator.state.status is S.SUCCESS
        assert orchestrator.state.duration_seconds == 61
        assert len(probe.calls) == 2

    @pytest.mark.asyncio
    async def test_marks_stalled_at_300_seconds_but_keeps_waiting(
        self, tickers, ada_profile, ada_identity,
    ):
        probe = InMemoryReachabilityProbe([False])
        orchestrator, _, _ = _make_orchestrator(tickers, probe=probe)
        await orchestrator.start(ada_profile, ada_identity, 'gho_token')
        ticker = tickers.last

        for _ in range(299):
            ticker.advance()
            await orchestrator.join_probe()
        assert not orchestrator.state.stalled

        ticker.advance()
        await orchestrator.join_probe()
        assert orchestrator.state.stalled
        assert orchestrator.state.status is S.WAITING
        assert ticker.running

        ticker.advance()
        await orchestrator.join_probe()
        assert orchestrator.state.stalled
        assert orchestrator.state.status is S.WAITING


# ── Close ────────────────────────────────────────────────────────────


class TestClose:
    @pytest.mark.asyncio
    async def test_late_provider_result_is_ignored(
        self, tickers, ada_profile, ada_identity,
    ):
        gate = asyncio.Event()
        provider = InMemoryProvisioningProvider(gate=gate)
        orchestrator, _, _ = _make_orchestrator(tickers, provider=provider)

        task = asyncio.create_task(
            orchestrator.start(ada_profile, ada_identity, 'gho_token'),
        )
        await asyncio.sleep(0)
        assert orchestrator.state.status is S.CREATING

        await orchestrator.close()
        gate.set()
        state = await task

        assert state.status is S.CREATING
        assert provider.calls == [('create_target', 'ada-lovelace-portfolio')]

    @pytest.mark.asyncio
    async def test_close_stops_ticker_and_drops_probe_result(
        self, tickers, ada_profile, ada_identity,
    ):
        gate = asyncio.Event()
        probe = InMemoryReachabilityProbe(gate=gate)
        orchestrator, _, _ = _make_orchestrator(tickers, probe=probe)
        await orchestrator.start(ada_profile, ada_identity, 'gho_token')
        tickers.last.advance(60)
        await asyncio.sleep(0)

        await orchestrator.close()
        assert tickers.last.stopped
        assert not orchestrator.ticking

        gate.set()
        await orchestrator.join_probe()
        assert orchestrator.state.status is S.CHECKING

        tickers.last.advance(10)
        assert orchestrator.state.waiting_seconds == 60

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, tickers):
        orchestrator, _, _ = _make_orchestrator(tickers)
        await orchestrator.close()
        await orchestrator.close()
        assert orchestrator.closed


# ── Progress reporting ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_unsubscribe_stops_notifications(tickers, ada_profile, ada_identity):
    orchestrator, _, _ = _make_orchestrator(tickers)
    seen = []
    unsubscribe = orchestrator.subscribe(seen.append)
    unsubscribe()

    await orchestrator.start(ada_profile, ada_identity, 'gho_token')

    assert seen == []


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_the_sequence(
    tickers, ada_profile, ada_identity,
):
    orchestrator, _, _ = _make_orchestrator(tickers)

    def broken(state):
        raise RuntimeError('ui went away')

    orchestrator.subscribe(broken)
    state = await orchestrator.start(ada_profile, ada_identity, 'gho_token')

    assert state.status is S.WAITING


# ── End to end ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_ada_lovelace_deploys_and_goes_live(tickers, ada_identity):
    profile = Profile(name='Ada Lovelace', email='a@b.com')
    probe = InMemoryReachabilityProbe([False, False, True])
    orchestrator, provider, _ = _make_orchestrator(tickers, probe=probe)

    state = await orchestrator.start(profile, ada_identity, 'gho_token')
    assert state.status is S.WAITING
    assert state.target_name == 'ada-lovelace-portfolio'
    assert state.hosting_url == 'https://ada.github.io/ada-lovelace-portfolio'
    assert state.repository_url == 'https://github.com/ada/ada-lovelace-portfolio'
    assert state.step_index == 3

    await _wait_until_live(orchestrator, tickers.last)

    state = orchestrator.state
    assert state.status is S.SUCCESS
    assert state.duration_seconds >= 60
    assert state.step_index == 4
    assert len(probe.calls) == 3
    assert not orchestrator.ticking
