"""
Unit tests for configuration loading and validation.

Tests environment parsing, YAML overlay and strict validation.
"""

import os
import shutil
import tempfile

import pytest
import yaml

from ai_gateway.config.loader import (
    ENV_KEYS,
    FailMode,
    GatewayConfig,
    load_config_from_env,
    load_gateway_config,
)


class TestEnvironmentLoading:
    """Test configuration from environment variables."""

    def test_defaults_when_empty(self):
        config = load_config_from_env({})
        assert config == GatewayConfig()
        assert config.rate_limit_rpm == 0
        assert config.daily_token_budget == 0
        assert config.fail_mode == FailMode.OPEN
        assert config.batch_window_start == "22:00"
        assert config.batch_window_end == "06:00"
        assert not config.has_credential

    def test_values_parsed(self):
        config = load_config_from_env({
            "OPENAI_API_KEY": "sk-live",
            "AI_GATEWAY_RATE_LIMIT_RPM": "30",
            "AI_GATEWAY_DAILY_TOKEN_BUDGET": "50000",
            "AI_GATEWAY_FAIL_MODE": "Closed",
            "AI_GATEWAY_THINKING_PRO": "MEDIUM",
            "AI_GATEWAY_ROUTER_TIMEOUT_SECONDS": "2.5",
            "AI_GATEWAY_STABLE_CONTEXT_FILES": "a.md, b.md,,",
        })
        assert config.has_credential
        assert config.rate_limit_rpm == 30
        assert config.daily_token_budget == 50000
        assert config.fail_mode == FailMode.CLOSED
        assert config.thinking_pro == "medium"
        assert config.router_timeout_seconds == 2.5
        assert config.stable_context_files == ("a.md", "b.md")

    def test_empty_values_ignored(self):
        config = load_config_from_env({"AI_GATEWAY_RATE_LIMIT_RPM": "  ", "OPENAI_API_KEY": ""})
        assert config.rate_limit_rpm == 0
        assert config.openai_api_key is None

    def test_env_key_names(self):
        assert ENV_KEYS["openai_api_key"] == "OPENAI_API_KEY"
        assert ENV_KEYS["batch_model"] == "AI_GATEWAY_BATCH_MODEL"

    def test_bad_number(self):
        with pytest.raises(ValueError, match="must be a number"):
            load_config_from_env({"AI_GATEWAY_RATE_LIMIT_RPM": "lots"})

    def test_bad_fail_mode(self):
        with pytest.raises(ValueError, match="fail_mode"):
            load_config_from_env({"AI_GATEWAY_FAIL_MODE": "sometimes"})


class TestValidation:
    """Test GatewayConfig invariants."""

    @pytest.mark.parametrize("field", [
        "rate_limit_rpm", "daily_token_budget", "routine_ttl_seconds", "usage_alert_tokens_hourly",
    ])
    def test_negative_limits_rejected(self, field):
        with pytest.raises(ValueError, match=field):
            GatewayConfig(**{field: -1})

    @pytest.mark.parametrize("field", ["batch_chunk_size", "batch_max_tasks", "max_output_tokens"])
    def test_positive_required(self, field):
        with pytest.raises(ValueError, match=field):
            GatewayConfig(**{field: 0})

    def test_unknown_thinking_level(self):
        with pytest.raises(ValueError, match="thinking_flash"):
            GatewayConfig(thinking_flash="extreme")

    def test_router_timeout(self):
        with pytest.raises(ValueError):
            GatewayConfig(router_timeout_seconds=0)

    def test_blank_key_is_not_a_credential(self):
        assert not GatewayConfig(openai_api_key="   ").has_credential


class TestYamlLoading:
    """Test YAML configuration files."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "gateway.yaml") -> str:
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        path = self._write_config({
            "rate_limit_rpm": 10,
            "batch_chunk_size": 2,
            "batch_window_start": "23:00",
            "fail_mode": "closed",
            "stable_context_files": ["notes.md"],
        })
        config = load_gateway_config(path, environ={})
        assert config.rate_limit_rpm == 10
        assert config.batch_chunk_size == 2
        assert config.batch_window_start == "23:00"
        assert config.fail_mode == FailMode.CLOSED
        assert config.stable_context_files == ("notes.md",)

    def test_file_overrides_environment(self):
        path = self._write_config({"rate_limit_rpm": 10})
        config = load_gateway_config(path, environ={
            "AI_GATEWAY_RATE_LIMIT_RPM": "99",
            "OPENAI_API_KEY": "sk-env",
        })
        assert config.rate_limit_rpm == 10
        assert config.openai_api_key == "sk-env"

    def test_empty_file_uses_defaults(self):
        path = os.path.join(self.temp_dir, "empty.yaml")
        open(path, 'w').close()
        assert load_gateway_config(path, environ={}) == GatewayConfig()

    def test_null_values_skipped(self):
        path = self._write_config({"router_url": None, "rate_limit_rpm": 5})
        config = load_gateway_config(path, environ={})
        assert config.router_url is None
        assert config.rate_limit_rpm == 5

    def test_unknown_keys_rejected(self):
        path = self._write_config({"rate_limt_rpm": 10})
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_gateway_config(path, environ={})

    def test_non_mapping_rejected(self):
        path = self._write_config(["a", "b"])
        with pytest.raises(ValueError, match="mapping"):
            load_gateway_config(path, environ={})

    def test_invalid_yaml(self):
        path = os.path.join(self.temp_dir, "bad.yaml")
        with open(path, 'w', encoding='utf-8') as f:
            f.write("rate_limit_rpm: [1, 2\n")
        with pytest.raises(yaml.YAMLError):
            load_gateway_config(path, environ={})

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            load_gateway_config(os.path.join(self.temp_dir, "nope.yaml"), environ={})

    def test_invalid_value_in_file(self):
        path = self._write_config({"batch_max_tasks": 0})
        with pytest.raises(ValueError, match="batch_max_tasks"):
            load_gateway_config(path, environ={})

    def test_unquoted_window_times(self):
        path = os.path.join(self.temp_dir, "window.yaml")
        with open(path, 'w', encoding='utf-8') as f:
            f.write("batch_window_start: 22:00\nbatch_window_end: 23:30\n")
        config = load_gateway_config(path, environ={})
        assert config.batch_window_start == "22:00"
        assert config.batch_window_end == "23:30"

    def test_leading_zero_window_time(self):
        path = os.path.join(self.temp_dir, "window.yaml")
        with open(path, 'w', encoding='utf-8') as f:
            f.write("batch_window_start: 01:15\nbatch_window_end: 06:00\n")
        config = load_gateway_config(path, environ={})
        assert config.batch_window_start == "01:15"
        assert config.batch_window_end == "06:00"
