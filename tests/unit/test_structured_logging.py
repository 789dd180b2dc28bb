"""Tests for structured logging, request correlation and metrics."""

import io
import json
import logging

import pytest
from prometheus_client import REGISTRY

from promptfolio.observability import metrics
from promptfolio.observability.logging import (
    _reset_for_tests,
    configure_logging,
    request_id_ctx,
)


@pytest.fixture
def json_logs():
    """Configure JSON logging into a buffer; yield a reader for its lines."""
    root = logging.getLogger()
    saved_level = root.level
    buffer = io.StringIO()
    _reset_for_tests()
    handler = configure_logging(level="INFO", json_output=True, stream=buffer)

    def read():
        return [json.loads(line) for line in buffer.getvalue().splitlines() if line]

    read.handler = handler
    yield read

    _reset_for_tests()
    root.setLevel(saved_level)


def test_stdlib_records_render_as_json(json_logs):
    logging.getLogger("promptfolio.test").info(
        "Deployment started", extra={"deployment_id": "dep_1", "target_name": "ada-portfolio"}
    )

    [entry] = json_logs()
    assert entry["event"] == "Deployment started"
    assert entry["level"] == "info"
    assert entry["logger"] == "promptfolio.test"
    assert entry["deployment_id"] == "dep_1"
    assert entry["target_name"] == "ada-portfolio"
    assert "timestamp" in entry


def test_request_id_is_attached(json_logs):
    token = request_id_ctx.set("req-42")
    try:
        logging.getLogger("promptfolio.test").warning("OAuth state mismatch")
    finally:
        request_id_ctx.reset(token)

    [entry] = json_logs()
    assert entry["request_id"] == "req-42"


def test_no_request_id_outside_requests(json_logs):
    logging.getLogger("promptfolio.test").info("startup")

    [entry] = json_logs()
    assert "request_id" not in entry


def test_level_filtering(json_logs):
    logging.getLogger("promptfolio.test").debug("noise")
    assert json_logs() == []


def test_configure_is_idempotent(json_logs):
    assert configure_logging(level="DEBUG", json_output=False) is None

    ours = [h for h in logging.getLogger().handlers if h.get_name() == "promptfolio"]
    assert ours == [json_logs.handler]
    assert logging.getLogger().level == logging.INFO


def test_metrics_render_latest():
    before = REGISTRY.get_sample_value("promptfolio_deployments_started_total") or 0.0
    metrics.DEPLOYMENTS_STARTED_TOTAL.inc()

    payload, content_type = metrics.render_latest()

    assert content_type.startswith("text/plain")
    assert b"promptfolio_deployments_started_total" in payload
    assert REGISTRY.get_sample_value("promptfolio_deployments_started_total") == before + 1
