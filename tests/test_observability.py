"""
Tests for observability components (metrics and logging).

This module tests:
- Prometheus metrics helpers and export
- JSON log formatting
- Log context management
- Error logging with extra fields
"""

import json
import logging
from io import StringIO

import pytest

from feed_agent.observability.logging import (
    SERVICE_NAME,
    JSONFormatter,
    log_context,
    log_error,
    request_context,
    setup_logging,
)
from feed_agent.observability.metrics import (
    get_content_type,
    get_metrics,
    metrics_registry,
    record_cache_lookup,
    record_fetch_outcome,
    track_fetch_duration,
)


def sample(name, labels):
    return metrics_registry.get_sample_value(name, labels) or 0.0


# ============================================================================
# Metrics Tests
# ============================================================================

class TestPrometheusMetrics:
    """Test Prometheus metrics collection."""

    def test_record_fetch_outcome_counts_items(self):
        before_runs = sample("source_fetch_total", {"source": "test", "outcome": "success"})
        before_items = sample("source_items_returned_total", {"source": "test"})

        record_fetch_outcome("test", "success", item_count=4)

        assert sample("source_fetch_total", {"source": "test", "outcome": "success"}) == before_runs + 1
        assert sample("source_items_returned_total", {"source": "test"}) == before_items + 4

    def test_record_cache_lookup(self):
        before = sample("cache_lookups_total", {"source": "test", "result": "hit"})

        record_cache_lookup("test", hit=True)

        assert sample("cache_lookups_total", {"source": "test", "result": "hit"}) == before + 1

    def test_track_fetch_duration_observes_on_error(self):
        before = sample("source_fetch_duration_seconds_count", {"source": "timed"})

        with pytest.raises(RuntimeError):
            with track_fetch_duration("timed"):
                raise RuntimeError("boom")

        assert sample("source_fetch_duration_seconds_count", {"source": "timed"}) == before + 1

    def test_get_metrics(self):
        output = get_metrics().decode("utf-8")

        assert "feed_requests_total" in output
        assert "rate_limit_rejections_total" in output
        assert get_content_type().startswith("text/plain")


# ============================================================================
# Logging Tests
# ============================================================================

class TestStructuredLogging:
    """Test structured logging."""

    def make_record(self, level=logging.INFO, msg="Test message", exc_info=None, extra=None):
        logger = logging.getLogger("test")
        return logger.makeRecord(
            name="test",
            level=level,
            fn="test.py",
            lno=10,
            msg=msg,
            args=(),
            exc_info=exc_info,
            extra=extra,
        )

    def test_json_formatter(self):
        """Test JSON log formatter."""
        log_data = json.loads(JSONFormatter().format(self.make_record()))

        assert log_data["level"] == "INFO"
        assert log_data["service"] == SERVICE_NAME
        assert log_data["logger"] == "test"
        assert log_data["message"] == "Test message"
        assert log_data["line"] == 10
        assert "timestamp" in log_data
        assert "context" not in log_data

    def test_json_formatter_includes_context(self):
        with log_context(active_tab=3, preferred_language="en-US"):
            log_data = json.loads(JSONFormatter().format(self.make_record()))

        assert log_data["context"] == {"active_tab": 3, "preferred_language": "en-US"}

    def test_json_formatter_with_exception(self):
        try:
            raise ValueError("Test error")
        except ValueError as e:
            record = self.make_record(level=logging.ERROR, exc_info=(type(e), e, e.__traceback__))

        log_data = json.loads(JSONFormatter().format(record))

        assert log_data["exception"]["type"] == "ValueError"
        assert log_data["exception"]["message"] == "Test error"
        assert "Traceback" in log_data["exception"]["traceback"]

    def test_log_context_nests_and_restores(self):
        with log_context(active_tab=1):
            with log_context(preferred_language="fr-FR"):
                assert request_context.get() == {"active_tab": 1, "preferred_language": "fr-FR"}
            assert request_context.get() == {"active_tab": 1}

        assert request_context.get() == {}

    def test_log_error_adds_error_fields(self):
        stream = StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(JSONFormatter())
        logger = logging.getLogger("test.log_error")
        logger.addHandler(handler)
        logger.propagate = False

        try:
            log_error(logger, "Fetch failed", ConnectionError("refused"), source="nostr")
        finally:
            logger.removeHandler(handler)
            logger.propagate = True

        log_data = json.loads(stream.getvalue())
        assert log_data["level"] == "ERROR"
        assert log_data["error_type"] == "ConnectionError"
        assert log_data["error_message"] == "refused"
        assert log_data["source"] == "nostr"

    def test_setup_logging_plain_text(self):
        stream = StringIO()
        setup_logging(level="DEBUG", json_format=False, stream=stream)

        logging.getLogger("feed.test").debug("plain line")

        assert "plain line" in stream.getvalue()
        assert logging.getLogger().level == logging.DEBUG
        setup_logging(level="INFO")

    def test_setup_logging_writes_json_to_log_file(self, tmp_path):
        log_file = tmp_path / "feed.log"
        setup_logging(level="INFO", log_file=str(log_file), stream=StringIO())

        try:
            with log_context(active_tab=2):
                logging.getLogger("feed.test").info("to file")
        finally:
            setup_logging(level="INFO")

        lines = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert lines[-1]["message"] == "to file"
        assert lines[-1]["context"] == {"active_tab": 2}
        assert logging.getLogger("aiohttp").level == logging.WARNING
