"""Prometheus metrics for PromptFolio deployments.

Usage::

    from promptfolio.observability.metrics import DEPLOYMENTS_STARTED_TOTAL

    DEPLOYMENTS_STARTED_TOTAL.inc()
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)

# ---------------------------------------------------------------------------
# Deployment lifecycle
# ---------------------------------------------------------------------------

DEPLOYMENTS_STARTED_TOTAL = Counter(
    "promptfolio_deployments_started_total",
    "Deployment sequences started.",
    registry=REGISTRY,
)

DEPLOYMENT_OUTCOMES_TOTAL = Counter(
    "promptfolio_deployment_outcomes_total",
    "Deployments reaching a terminal state.",
    labelnames=["status"],
    registry=REGISTRY,
)

DEPLOYMENT_STEP_FAILURES_TOTAL = Counter(
    "promptfolio_deployment_step_failures_total",
    "Provisioning step failures by step and outcome (error or failed_ignored).",
    labelnames=["step", "outcome"],
    registry=REGISTRY,
)

DEPLOYMENT_DURATION_SECONDS = Histogram(
    "promptfolio_deployment_wait_seconds",
    "Seconds spent waiting for the published site to become reachable.",
    buckets=(30, 60, 90, 120, 180, 240, 300, 600, 900),
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Reachability probe
# ---------------------------------------------------------------------------

PROBE_ATTEMPTS_TOTAL = Counter(
    "promptfolio_probe_attempts_total",
    "Reachability probes by result (reachable, inconclusive).",
    labelnames=["result", "trigger"],
    registry=REGISTRY,
)


def render_latest() -> tuple[bytes, str]:
    """Return the exposition payload and its content type."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
