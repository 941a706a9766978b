"""Tests for structured logging processors."""

import json
import structlog

from healthwatch.infrastructure.logging import LogContext, censor_secrets, configure_logging, get_logger


class TestCensorSecrets:

    def test_sensitive_keys_redacted(self):
        event = {
            "event": "Alert channel configured",
            "webhook_url": "https://hooks.slack.com/services/T000/B000/XXX",
            "details_api_key": "k",
            "channel": "slack",
        }

        result = censor_secrets(None, "info", event)

        assert result["webhook_url"] == "[REDACTED]"
        assert result["details_api_key"] == "[REDACTED]"
        assert result["channel"] == "slack"

    def test_nested_values(self):
        event = {"event": "x", "config": {"telegram_bot_token": "123:abc", "chat": "42"}}

        result = censor_secrets(None, "info", event)

        assert result["config"] == {"telegram_bot_token": "[REDACTED]", "chat": "42"}


class TestLogContext:

    def test_binds_and_unbinds(self):
        with LogContext(service="orders"):
            assert structlog.contextvars.get_contextvars()["service"] == "orders"

        assert "service" not in structlog.contextvars.get_contextvars()


class TestConfigureLogging:

    def test_json_output(self, capsys):
        configure_logging("INFO", "json")
        try:
            get_logger("healthwatch.tests").info("Probe evaluated", probe="db", api_key="k")
            line = capsys.readouterr().out.strip().splitlines()[-1]
        finally:
            structlog.reset_defaults()

        entry = json.loads(line)
        assert entry["event"] == "Probe evaluated"
        assert entry["level"] == "info"
        assert entry["timestamp"].endswith("Z")
        assert entry["api_key"] == "[REDACTED]"
