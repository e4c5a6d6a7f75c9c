"""Tests for Settings loading and JSON logging setup."""
import json
import logging
from unittest.mock import patch

import pytest

from visionlab.core.config import Settings
from visionlab.core.logging import JsonFormatter, configure_logging

KEY_VARS = ("MANAGED_API_KEY", "GEMINI_API_KEY", "API_KEY")


@pytest.fixture
def clean_env(monkeypatch):
    for name in KEY_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    s = Settings(_env_file=None)

    assert s.managed_api_key == ""
    assert s.managed_api_endpoint == "https://generativelanguage.googleapis.com/v1beta"
    assert s.native_model_marker == "gemini"
    assert s.attempt_timeout_seconds == 120.0
    assert s.max_response_bytes == 32 * 1024 * 1024


def test_managed_key_aliases(clean_env):
    clean_env.setenv("GEMINI_API_KEY", "g-key")
    assert Settings(_env_file=None).managed_api_key == "g-key"

    clean_env.setenv("MANAGED_API_KEY", "m-key")
    assert Settings(_env_file=None).managed_api_key == "m-key"


def test_endpoint_and_marker_normalized(clean_env):
    clean_env.setenv("MANAGED_API_ENDPOINT", "https://managed.example/v1beta/ ")
    clean_env.setenv("NATIVE_MODEL_MARKER", " Gemini ")

    s = Settings(_env_file=None)

    assert s.managed_api_endpoint == "https://managed.example/v1beta"
    assert s.native_model_marker == "gemini"


def test_json_formatter_keeps_known_extras():
    record = logging.LogRecord("visionlab.test", logging.INFO, __file__, 1, "cascade_transition", None, None)
    record.adapter = "image_endpoint"
    record.status_code = 404
    record.unrelated = "dropped"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "cascade_transition"
    assert payload["level"] == "INFO"
    assert payload["adapter"] == "image_endpoint"
    assert payload["status_code"] == 404
    assert "unrelated" not in payload


def test_configure_logging_with_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    s = Settings(_env_file=None, log_level="debug", log_file=str(tmp_path / "app.log"))
    try:
        configure_logging(s)

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        assert all(isinstance(h.formatter, JsonFormatter) for h in root.handlers)
    finally:
        for handler in root.handlers:
            if handler not in saved_handlers:
                handler.close()
        root.handlers = saved_handlers
        root.setLevel(saved_level)


def test_configure_logging_uses_module_settings():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    with patch("visionlab.core.logging.default_settings") as mock_settings:
        mock_settings.log_level = "WARNING"
        mock_settings.log_file = ""
        try:
            configure_logging()

            assert root.level == logging.WARNING
            assert len(root.handlers) == 1
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)
