# tests/backends/test_manager.py
"""
Tests for backend name resolution and the lazily populated BackendManager.
"""

import pytest

from contextforge.backends.local_agent_backend import LocalAgentBackend
from contextforge.backends import manager as backend_manager
from contextforge.backends.manager import (BackendManager, create_backend,
                                           resolve_backend_kind)
from contextforge.backends.ollama_backend import OllamaBackend
from contextforge.backends.openrouter_backend import OpenRouterBackend
from contextforge.config.settings import CompressionSettings
from contextforge.exceptions import ConfigError
from contextforge.models import BackendKind
from helpers import FakeBackend


class FailingCloseBackend(FakeBackend):

    async def close(self):
        raise RuntimeError("close failed")


class ConfiguredFakeBackend(FakeBackend):

    @classmethod
    def from_config(cls, config):
        backend = cls(response=f"built at temperature {config.temperature}")
        backend.default_timeout = config.ollama.timeout
        return backend


class TestResolveBackendKind:

    @pytest.mark.parametrize("name,expected", [
        ("ollama", BackendKind.OLLAMA),
        ("OpenRouter", BackendKind.OPENROUTER),
        ("local-agent", BackendKind.LOCAL_AGENT),
        (BackendKind.LOCAL_AGENT, BackendKind.LOCAL_AGENT),
    ])
    def test_known_names(self, name, expected):
        assert resolve_backend_kind(name) is expected

    def test_unknown_name(self):
        with pytest.raises(ConfigError, match="Unknown backend 'telnet'"):
            resolve_backend_kind("telnet")


class TestCreateBackend:

    def test_builds_each_kind(self):
        config = CompressionSettings(backend="ollama", openrouter={"api_key": "sk-test"})
        assert isinstance(create_backend("ollama", config), OllamaBackend)
        assert isinstance(create_backend("openrouter", config), OpenRouterBackend)
        assert isinstance(create_backend("local_agent", config), LocalAgentBackend)

    def test_sampling_settings_are_forwarded(self):
        config = CompressionSettings(backend="ollama", temperature=0.0, top_p=0.5)
        backend = create_backend(BackendKind.OLLAMA, config)
        assert backend.options == {"temperature": 0.0, "top_p": 0.5}
        assert backend.default_model == config.ollama.model

    def test_openrouter_without_key(self):
        config = CompressionSettings(backend="ollama")
        with pytest.raises(ConfigError):
            create_backend("openrouter", config)

    def test_dispatches_through_backend_map(self, monkeypatch):
        monkeypatch.setitem(backend_manager.BACKEND_MAP, BackendKind.OLLAMA, ConfiguredFakeBackend)
        config = CompressionSettings(backend="ollama", temperature=0.1, ollama={"timeout": 7.0})

        backend = create_backend("ollama", config)

        assert isinstance(backend, ConfiguredFakeBackend)
        assert backend.response == "built at temperature 0.1"
        assert backend.default_timeout == 7.0

    def test_backend_without_config_support(self, monkeypatch):
        monkeypatch.setitem(backend_manager.BACKEND_MAP, BackendKind.OLLAMA, FakeBackend)
        with pytest.raises(NotImplementedError):
            create_backend("ollama", CompressionSettings(backend="ollama"))


class TestBackendManager:

    def test_default_kind_follows_config(self):
        manager = BackendManager(CompressionSettings(backend="local_agent"))
        assert manager.default_kind is BackendKind.LOCAL_AGENT
        assert isinstance(manager.get_backend(), LocalAgentBackend)

    def test_prebuilt_instances_take_precedence(self, config):
        fake = FakeBackend()
        manager = BackendManager(config, backends={"ollama": fake})
        assert manager.get_backend() is fake
        assert manager.get_backend(BackendKind.OLLAMA) is fake

    def test_instances_are_created_lazily_and_cached(self, config):
        manager = BackendManager(config)
        assert manager.get_loaded_backends() == []

        first = manager.get_backend("local_agent")
        assert manager.get_backend("local_agent") is first
        assert manager.get_loaded_backends() == ["local_agent"]

    def test_unknown_kind(self, config):
        with pytest.raises(ConfigError):
            BackendManager(config).get_backend("gopher")

    @pytest.mark.asyncio
    async def test_close_all_logs_failures_and_clears(self, config, caplog):
        healthy = FakeBackend()
        manager = BackendManager(config, backends={"ollama": FailingCloseBackend(), "local_agent": healthy})

        await manager.close_all()

        assert healthy.closed is True
        assert manager.get_loaded_backends() == []
        assert "Error closing backend 'ollama'" in caplog.text
