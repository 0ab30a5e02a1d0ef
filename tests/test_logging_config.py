"""Tests for logging setup and secret scrubbing."""

import logging
from unittest.mock import MagicMock

from guidebot.logging_config import LOGGER_PREFIX, SUBSYSTEMS, sanitize_secrets, setup_logging

TOKEN = "123456789:AAAbbbCCCdddEEEfffGGGhhhIIIjjjKKKlll"


def test_sanitize_scrubs_token_in_url():
    """Bot tokens inside API URLs are redacted."""
    event = {"error": f"Cannot connect to https://api.telegram.org/bot{TOKEN}/getUpdates"}
    result = sanitize_secrets(None, "error", event)
    assert TOKEN not in result["error"]
    assert "***REDACTED***" in result["error"]


def test_sanitize_scrubs_nested_values():
    """Tokens nested in lists and dicts are redacted."""
    event = {"args": [TOKEN, 3], "extra": {"token": TOKEN}}
    result = sanitize_secrets(None, "info", event)
    assert result["args"] == ["***REDACTED***", 3]
    assert result["extra"] == {"token": "***REDACTED***"}


def test_sanitize_leaves_ordinary_values():
    """Events without tokens pass through unchanged."""
    event = {"event": "user_authorized", "username": "bob", "chat_id": -100123}
    assert sanitize_secrets(None, "info", dict(event)) == event


def test_setup_logging_creates_subsystem_files(tmp_path):
    """Each subsystem gets its own log file and level."""
    config = MagicMock()
    config.log_dir = tmp_path / "logs"
    config.logging_level = "debug"
    config.logging_subsystem_levels = {"roles": "WARNING"}
    config.logging_max_file_size_mb = 1
    config.logging_backup_count = 1

    setup_logging(config)
    try:
        assert (tmp_path / "logs" / f"{LOGGER_PREFIX}.log").exists()
        for subsystem in SUBSYSTEMS:
            assert (tmp_path / "logs" / f"{subsystem}.log").exists()
        assert logging.getLogger(f"{LOGGER_PREFIX}.roles").level == logging.WARNING
        assert logging.getLogger(f"{LOGGER_PREFIX}.bot").level == logging.DEBUG
    finally:
        for name in (LOGGER_PREFIX, *(f"{LOGGER_PREFIX}.{s}" for s in SUBSYSTEMS)):
            for handler in logging.getLogger(name).handlers:
                handler.close()
            logging.getLogger(name).handlers.clear()
