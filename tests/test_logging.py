"""Tests for logging configuration and formatters."""

import json
import logging
import re

import structlog

from energy_tracker.config import Config
from energy_tracker.logging import configure_logging, json_processor, splunk_processor


class TestSplunkProcessor:
    """Tests for splunk_processor function."""

    def test_basic_format(self):
        """Basic message formatting."""
        result = splunk_processor(None, "info", {"level": "info", "event": "dashboard.computed"})

        assert re.match(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z INFO  dashboard.computed$", result)

    def test_key_value_pairs_sorted(self):
        event_dict = {
            "level": "warning",
            "event": "competence.fallback",
            "unit_id": 3,
            "expense_id": 7,
        }

        result = splunk_processor(None, "warning", event_dict)

        assert result.endswith("WARNING competence.fallback expense_id=7 unit_id=3")

    def test_quotes_values_with_spaces(self):
        result = splunk_processor(
            None, "info", {"level": "info", "event": "audit", "description": "Plant A expense"}
        )

        assert 'description="Plant A expense"' in result

    def test_skips_private_keys(self):
        result = splunk_processor(None, "info", {"level": "info", "event": "x", "_record": "r"})

        assert "_record" not in result


class TestJsonProcessor:
    """Tests for json_processor function."""

    def test_adds_timestamp_and_level(self):
        result = json_processor(None, "info", {"level": "info", "event": "report.sent"})

        assert result["level"] == "INFO"
        assert "timestamp" in result
        assert json.dumps(result)


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_splunk_to_file(self, tmp_path):
        log_file = tmp_path / "logs" / "app.log"
        config = Config(logging={"level": "DEBUG", "file": str(log_file)})

        configure_logging(config)
        structlog.get_logger("test").info("report.sent", sent=2)
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "report.sent sent=2" in log_file.read_text()

    def test_json_format(self, tmp_path):
        log_file = tmp_path / "app.log"
        config = Config(logging={"format": "json", "file": str(log_file)})

        configure_logging(config)
        structlog.get_logger("test").warning("competence.fallback", expense_id=9)
        for handler in logging.getLogger().handlers:
            handler.flush()

        line = log_file.read_text().strip().splitlines()[-1]
        data = json.loads(line)
        assert data["event"] == "competence.fallback"
        assert data["expense_id"] == 9
        assert data["level"] == "WARNING"
