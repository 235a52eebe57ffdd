"""
Tests for structured logging helpers.
"""

import json

import structlog
from structlog.testing import capture_logs

from circuitguard.core.logging_config import configure_logging, get_logger


class TestGetLogger:
    def test_logs_structured_events(self):
        with capture_logs() as logs:
            get_logger("circuitguard.tests").warning("circuit opened", circuit="content_api", failures=5)

        assert logs == [
            {"event": "circuit opened", "circuit": "content_api", "failures": 5, "log_level": "warning"}
        ]


class TestConfigureLogging:
    def teardown_method(self):
        structlog.reset_defaults()

    def test_json_output(self, capsys):
        configure_logging(level="INFO", json_output=True)

        get_logger("circuitguard.tests").info("circuit closed", circuit="content_api")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "circuit closed"
        assert event["circuit"] == "content_api"
        assert event["level"] == "info"

    def test_level_filters_lower_events(self, capsys):
        configure_logging(level="WARNING", json_output=True)

        get_logger("circuitguard.tests").info("circuit closed", circuit="content_api")

        assert capsys.readouterr().out == ""
