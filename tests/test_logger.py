"""Tests for log_prefix and logger setup."""

from __future__ import annotations

import json
import os
from unittest.mock import patch

from loguru import logger

from stratum.config import LoggingConfig
from stratum.utils.logger import log_prefix, setup_logger, use_emoji_logs
from stratum.utils.security import register_secret


class TestLogPrefix:
    """Test cases for the log_prefix helper function."""

    def test_emoji_enabled_by_default(self):
        """Emoji logs should be enabled when STRATUM_EMOJI_LOGS is not set."""
        with patch.dict(os.environ, {}, clear=True):
            assert use_emoji_logs()
            assert log_prefix("🔄") == "🔄"

    def test_emoji_disabled(self):
        """ASCII prefixes are used when STRATUM_EMOJI_LOGS=0."""
        with patch.dict(os.environ, {"STRATUM_EMOJI_LOGS": "0"}):
            assert not use_emoji_logs()
            assert log_prefix("🔄") == "[RETRY]"
            assert log_prefix("⏭️") == "[SKIP]"
            assert log_prefix("🛑") == "[CANCEL]"
            assert log_prefix("📋") == "[PLAN]"

    def test_emoji_disabled_false(self):
        """Emoji logs should be disabled when STRATUM_EMOJI_LOGS=false."""
        with patch.dict(os.environ, {"STRATUM_EMOJI_LOGS": "false"}):
            assert not use_emoji_logs()
            assert log_prefix("❌") == "[ERROR]"


class TestSetupLogger:
    """Tests for setup_logger sinks."""

    def test_file_sink_redacts(self, tmp_path):
        """Test the file sink receives redacted messages."""
        config = LoggingConfig(log_dir=tmp_path, compression=None, file_level="debug")
        setup_logger(config=config)
        register_secret("do-not-log-me")

        logger.info("password=do-not-log-me for db")
        logger.complete()
        logger.remove()

        content = (tmp_path / "stratum.log").read_text()
        assert "for db" in content
        assert "do-not-log-me" not in content

    def test_json_logs(self, tmp_path):
        """Test JSON lines output."""
        config = LoggingConfig(log_dir=tmp_path, compression=None, json_logs=True)
        setup_logger(config=config)

        logger.bind(node_id="vpc").warning("apply {done}")
        logger.complete()
        logger.remove()

        line = (tmp_path / "stratum.log").read_text().strip().splitlines()[-1]
        entry = json.loads(line)
        assert entry["level"] == "WARNING"
        assert entry["message"] == "apply {done}"
        assert entry["extra"] == {"node_id": "vpc"}
