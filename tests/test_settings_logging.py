"""
Tests for configuration and logging helpers.
"""

import json
import logging

import pytest

from signal_relay.components.core.context import RelayContext, sanitize_log_data
from signal_relay.config.logging import StructuredFormatter, get_logger, mask_secret
from signal_relay.config.settings import DEFAULT_PASSWORD, Settings


class TestSettings:
    """Test settings loading and validation."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.port == 8000
        assert settings.relay_max_message_size == 1024 * 1024

    def test_password_from_environment(self, monkeypatch):
        monkeypatch.setenv("SIGNALING_PASSWORD", "from-the-environment")
        monkeypatch.setenv("PORT", "9001")

        settings = Settings(_env_file=None)

        assert settings.signaling_password == "from-the-environment"
        assert settings.port == 9001
        assert settings.password_configured

    def test_default_password_not_configured(self):
        settings = Settings(_env_file=None, signaling_password=DEFAULT_PASSWORD)

        assert not settings.password_configured

    def test_production_rejects_weak_password(self):
        settings = Settings(
            _env_file=None,
            environment="production",
            signaling_password=DEFAULT_PASSWORD,
            debug=True,
        )

        errors = settings.validate_production_secrets()

        assert len(errors) == 2
        assert any("SIGNALING_PASSWORD" in e for e in errors)

    def test_production_accepts_strong_password(self):
        settings = Settings(
            _env_file=None,
            environment="production",
            signaling_password="a-long-and-random-shared-secret",
            debug=False,
        )

        assert settings.validate_production_secrets() == []

    def test_development_never_complains(self):
        assert Settings(_env_file=None, environment="development").validate_production_secrets() == []

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("", ["*"]),
            ("https://a.example, https://b.example", ["https://a.example", "https://b.example"]),
        ],
    )
    def test_origins(self, raw, expected):
        assert Settings(_env_file=None, allowed_origins=raw).origins == expected


class TestLoggingHelpers:

    @pytest.mark.parametrize(
        "secret, masked",
        [
            (None, "NONE"),
            ("", "NONE"),
            ("short", "***"),
            ("change-me-in-production", "cha***ion"),
        ],
    )
    def test_mask_secret(self, secret, masked):
        assert mask_secret(secret) == masked

    def test_sanitize_strips_control_characters(self):
        assert sanitize_log_data('a\x00b\u202ec"d') == 'abc\\"d'

    def test_sanitize_truncates(self):
        assert sanitize_log_data("x" * 150, max_length=10) == "x" * 10 + "..."

    def test_sanitize_summarizes_binary(self):
        assert sanitize_log_data(b"\x00" * 42) == "<42 bytes>"

    def test_structured_logger_keyword_data(self, caplog):
        logger = get_logger("signal_relay.tests")

        with caplog.at_level(logging.INFO, logger="signal_relay.tests"):
            logger.info("Client joined room", room="room-1", room_clients=2)

        record = caplog.records[-1]
        assert record.getMessage() == "Client joined room"
        assert record.extra_data == {"room": "room-1", "room_clients": 2}

    def test_structured_formatter_emits_json(self):
        record = logging.LogRecord("signal_relay", logging.INFO, __file__, 1, "hello", (), None)
        record.extra_data = {"room": "room-1"}

        line = json.loads(StructuredFormatter().format(record))

        assert line["message"] == "hello"
        assert line["data"] == {"room": "room-1"}
        assert line["level"] == "INFO"


class TestRelayContext:

    def test_audit_dict_omits_empty_fields(self):
        ctx = RelayContext(endpoint="/", client="10.0.0.1")

        assert ctx.to_audit_dict("CONNECT") == {
            "event_type": "CONNECT",
            "endpoint": "/",
            "client": "10.0.0.1",
        }

    def test_identifier_prefers_session(self):
        ctx = RelayContext(endpoint="/", client="10.0.0.1", session_id="abc123")

        assert ctx.identifier == "abc123"

    def test_audit_uses_given_logger(self):
        calls = []
        ctx = RelayContext(endpoint="/", session_id="abc123")

        ctx.audit("AUTH_FAILED", logger_func=lambda **kw: calls.append(kw), reason="invalid_password")

        assert calls == [{
            "event_type": "AUTH_FAILED",
            "endpoint": "/",
            "session_id": "abc123",
            "reason": "invalid_password",
        }]

    def test_audit_dict_carries_user_agent(self):
        ctx = RelayContext(endpoint="/", user_agent="Mozilla/5.0")

        assert ctx.to_audit_dict("CONNECT")["user_agent"] == "Mozilla/5.0"
