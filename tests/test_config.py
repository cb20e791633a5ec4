"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from stratum.config import StratumConfig, load_config
from stratum.core.exceptions import ConfigurationError


class TestDefaults:
    """Tests for default values."""

    def test_defaults(self):
        """Test defaults without a file."""
        config = StratumConfig()
        assert config.engine.max_workers == 4
        assert config.engine.replace_policy == "enforce"
        assert config.retry.max_attempts == 3
        assert config.state.backend == "sqlite"
        assert config.logging.console_level == "warning"

    def test_no_file_uses_defaults(self, tmp_path, monkeypatch):
        """Test load_config without ./stratum.yaml."""
        monkeypatch.chdir(tmp_path)
        config = load_config(environ={})
        assert config == StratumConfig()


class TestLoadConfig:
    """Tests for load_config."""

    def test_fixture_file(self, stratum_config_path):
        """Test the sample config file."""
        config = load_config(stratum_config_path, environ={})
        assert config.engine.call_timeout == 5
        assert config.retry.max_attempts == 2
        assert config.state.backend == "memory"
        lb = config.providers.simulated["aws:lb/LoadBalancer"]
        assert lb.computed == {"dnsName": "{id}.elb.amazonaws.com"}
        assert config.providers.simulated["aws:ec2/Vpc"].protect_replace
        zones = config.providers.simulated["aws:index/getAvailabilityZones"]
        assert zones.data == {"names": ["us-east-1a", "us-east-1b", "us-east-1c"]}
        assert lb.data is None

    def test_env_overrides(self, stratum_config_path):
        """Test environment variables override file values."""
        config = load_config(
            stratum_config_path,
            environ={
                "STRATUM_MAX_WORKERS": "8",
                "STRATUM_STATE_PATH": "/tmp/other.db",
                "STRATUM_STATE_BACKEND": "SQLITE",
                "STRATUM_LOG_LEVEL": "DEBUG",
                "STRATUM_REPLACE_POLICY": "allow",
            },
        )
        assert config.engine.max_workers == 8
        assert config.state.path == Path("/tmp/other.db")
        assert config.state.backend == "sqlite"
        assert config.logging.console_level == "debug"
        assert config.engine.replace_policy == "allow"

    def test_missing_file(self, tmp_path):
        """Test an explicit missing path is an error."""
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "nope.yaml", environ={})

    def test_invalid_yaml(self, tmp_path):
        """Test YAML syntax errors."""
        path = tmp_path / "stratum.yaml"
        path.write_text("engine: [\n")
        with pytest.raises(ConfigurationError):
            load_config(path, environ={})

    def test_not_a_mapping(self, tmp_path):
        """Test documents must be mappings."""
        path = tmp_path / "stratum.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            load_config(path, environ={})

    @pytest.mark.parametrize(
        "content",
        [
            "engine:\n  max_workers: 0\n",
            "engine:\n  replace_policy: sometimes\n",
            "retry:\n  max_attempts: -1\n",
            "state:\n  backend: s3\n",
        ],
    )
    def test_invalid_values(self, tmp_path, content):
        """Test constraint violations raise ConfigurationError."""
        path = tmp_path / "stratum.yaml"
        path.write_text(content)
        with pytest.raises(ConfigurationError):
            load_config(path, environ={})

    def test_invalid_env_value(self):
        """Test invalid override values are rejected."""
        with pytest.raises(ConfigurationError):
            load_config(None, environ={"STRATUM_MAX_WORKERS": "many"})
