"""Tests for configuration, errors, decorators and metrics."""

import logging

import pytest

from agent_linking.common.decorators import retry_with_backoff, trace_span
from agent_linking.common.exceptions import (
    InvalidRecord,
    NoMatchingRequest,
    RetryExhaustedError,
    SubstrateUnavailableError,
)
from agent_linking.config import LinkingConfig, ServerConfig
from agent_linking.observability import MetricsCollector, configure_logging


class TestConfig:
    """Test configuration loading."""

    def test_defaults(self):
        config = LinkingConfig()

        assert config.request_ttl.total_seconds() == 600
        assert len(config.pairing_code_alphabet) == 32
        assert not set("01IO") & set(config.pairing_code_alphabet)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("AGENT_LINKING_REQUEST_TTL_SECONDS", "120")
        monkeypatch.setenv("AGENT_LINKING_HOST", "0.0.0.0")
        monkeypatch.setenv("AGENT_LINKING_PORT", "9100")

        assert LinkingConfig.from_env().request_ttl_seconds == 120
        server = ServerConfig.from_env()
        assert (server.host, server.port) == ("0.0.0.0", 9100)

    def test_invalid_ttl(self):
        with pytest.raises(ValueError):
            LinkingConfig(request_ttl_seconds=0)


class TestExceptions:
    """Test error serialization."""

    def test_to_dict(self):
        error = NoMatchingRequest("No matching pending link request found")

        assert error.to_dict() == {
            "error": {
                "code": "NoMatchingRequest",
                "message": "No matching pending link request found",
                "details": {},
                "type": "NoMatchingRequest",
            }
        }
        assert str(error) == "[NoMatchingRequest] No matching pending link request found"

    def test_invalid_record_reasons(self):
        error = InvalidRecord("rejected", reasons=["a", "b"])

        assert error.reasons == ["a", "b"]
        assert error.details == {"reasons": ["a", "b"]}


@pytest.mark.asyncio
class TestDecorators:
    """Test retry and tracing decorators."""

    async def test_retry_until_success(self):
        calls = []

        @retry_with_backoff(max_attempts=3, base_delay=0)
        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise SubstrateUnavailableError("down")
            return "ok"

        assert await flaky() == "ok"
        assert len(calls) == 3

    async def test_retry_exhausted(self):
        @retry_with_backoff(max_attempts=2, base_delay=0)
        async def down():
            raise SubstrateUnavailableError("down")

        with pytest.raises(RetryExhaustedError) as exc_info:
            await down()

        assert exc_info.value.details["last_error"] == "[SubstrateUnavailableError] down"

    async def test_other_errors_not_retried(self):
        calls = []

        @retry_with_backoff(max_attempts=3, base_delay=0)
        async def rejected():
            calls.append(1)
            raise NoMatchingRequest("nope")

        with pytest.raises(NoMatchingRequest):
            await rejected()
        assert len(calls) == 1

    async def test_trace_span_passes_through(self):
        @trace_span("test.operation", tags={"component": "test"})
        async def operation(value):
            return value * 2

        @trace_span()
        async def failing():
            raise NoMatchingRequest("nope")

        assert await operation(21) == 42
        with pytest.raises(NoMatchingRequest):
            await failing()


class TestMetrics:
    """Test the metrics collector."""

    def test_counter_and_gauge(self):
        metrics = MetricsCollector()

        metrics.counter("links_created_total", labels={"path": "direct"}).inc()
        metrics.counter("links_created_total", labels={"path": "direct"}).inc(2)
        metrics.gauge("pending", labels={"agent": "a"}).set(5)
        metrics.gauge("pending", labels={"agent": "a"}).set(4)

        assert metrics.value("links_created_total", {"path": "direct"}) == 3
        assert metrics.value("links_created_total", {"path": "ceremony"}) == 0
        assert metrics.value("pending", {"agent": "a"}) == 4
        assert metrics.value("unknown") == 0

    def test_export_prometheus(self):
        metrics = MetricsCollector()
        metrics.counter("links_revoked_total").inc()
        metrics.histogram("link_operation_duration_ms", labels={"operation": "revoke"}).observe(2.5)
        metrics.histogram("link_operation_duration_ms", labels={"operation": "revoke"}).observe(1.5)

        text = metrics.export_prometheus()

        assert "# TYPE links_revoked_total counter\nlinks_revoked_total 1.0\n" in text
        assert 'link_operation_duration_ms_count{operation="revoke"} 2' in text
        assert 'link_operation_duration_ms_sum{operation="revoke"} 4.0' in text
        assert text.endswith("\n")


class TestLogging:
    """Test logging configuration."""

    def test_configure_json(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        try:
            configure_logging(log_format="json", log_level="debug", force=True)

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
        finally:
            root.handlers[:] = handlers
            root.setLevel(level)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
