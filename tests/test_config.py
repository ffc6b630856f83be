# tests/test_config.py
"""
Tests for the compression configuration models and load_config layering.
"""

import os

import pytest

from contextforge.config.settings import (CompressionSettings,
                                          _convert_env_value, load_config)
from contextforge.exceptions import ConfigError
from contextforge.models import BackendKind


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment out of configuration tests."""
    for key in list(os.environ):
        if key.startswith("CONTEXTFORGE__"):
            monkeypatch.delenv(key)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)


# =============================================================================
# Defaults
# =============================================================================


class TestDefaults:

    def test_thresholds(self):
        config = CompressionSettings()
        assert config.min_tokens == 100
        assert config.min_ratio == 1.2
        assert config.min_quality == 0.6
        assert config.target_ratio == 2.0
        assert config.token_estimator == "approximate"

    def test_packaged_defaults_match_models(self):
        config = load_config()
        assert config.min_ratio == CompressionSettings().min_ratio
        assert config.ollama.host == "http://localhost:11434"
        assert config.local_agent.args == ["-p", "--output-format", "text"]
        assert config.local_agent.timeout == 300.0
        assert config.storage.type == "memory"

    def test_auto_without_key_resolves_to_ollama(self):
        assert load_config().backend_kind is BackendKind.OLLAMA

    def test_auto_with_key_resolves_to_openrouter(self, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")
        config = load_config()
        assert config.backend_kind is BackendKind.OPENROUTER
        assert config.openrouter.api_key.get_secret_value() == "sk-test"

    def test_explicit_backend_is_kept_with_key(self):
        config = CompressionSettings(backend="local-agent", openrouter={"api_key": "sk-test"})
        assert config.backend == "local_agent"


# =============================================================================
# Layering
# =============================================================================


class TestLoadConfig:

    def test_toml_file(self, tmp_path):
        path = tmp_path / "contextforge.toml"
        path.write_text('backend = "local_agent"\nmin_ratio = 1.5\n\n[local_agent]\ntimeout = 60.0\n')

        config = load_config(config_path=path)

        assert config.backend == "local_agent"
        assert config.min_ratio == 1.5
        assert config.local_agent.timeout == 60.0
        assert config.local_agent.max_output_bytes == 10485760

    def test_dict_overrides_file_and_overrides_win(self, tmp_path):
        path = tmp_path / "contextforge.toml"
        path.write_text("min_tokens = 50\n")

        config = load_config(
            config_path=path,
            config_dict={"min_tokens": 60, "ollama": {"model": "qwen2.5:7b"}},
            overrides={"min_tokens": 70},
        )

        assert config.min_tokens == 70
        assert config.ollama.model == "qwen2.5:7b"
        assert config.ollama.host == "http://localhost:11434"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CONTEXTFORGE__BACKEND", "local_agent")
        monkeypatch.setenv("CONTEXTFORGE__LOCAL_AGENT__TIMEOUT", "45")
        monkeypatch.setenv("CONTEXTFORGE__LOCAL_AGENT__ARGS", '["--print"]')
        monkeypatch.setenv("CONTEXTFORGE__LOG_RAW_PAYLOADS", "true")

        config = load_config()

        assert config.backend == "local_agent"
        assert config.local_agent.timeout == 45.0
        assert config.local_agent.args == ["--print"]
        assert config.log_raw_payloads is True

    def test_environment_can_be_ignored(self, monkeypatch):
        monkeypatch.setenv("CONTEXTFORGE__MIN_TOKENS", "5")
        assert load_config(use_env=False).min_tokens == 100

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(config_path=tmp_path / "nope.toml")

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("min_ratio = = 2\n")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(config_path=path)

    @pytest.mark.parametrize("bad", [
        {"backend": "pigeon"},
        {"min_quality": 1.5},
        {"target_ratio": 1.0},
        {"storage": {"type": "redis"}},
        {"ollama": {"timeout": 0}},
    ])
    def test_invalid_values(self, bad):
        with pytest.raises(ConfigError):
            load_config(config_dict=bad)


class TestConvertEnvValue:

    @pytest.mark.parametrize("raw,expected", [
        ("true", True),
        ("Off", False),
        ("42", 42),
        ("1.5", 1.5),
        ('["a", "b"]', ["a", "b"]),
        ("[not json", "[not json"),
        ("http://gpu-box:11434", "http://gpu-box:11434"),
    ])
    def test_conversion(self, raw, expected):
        assert _convert_env_value(raw) == expected
