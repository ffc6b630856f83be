# src/contextforge/config/__init__.py
"""
Configuration package for the ContextForge compression engine.

Configuration files:
    - default_config.toml: Packaged defaults
    - Custom config: load_config(config_path=...)

Environment variables:
    - Prefix: CONTEXTFORGE__
    - Nested keys use double underscores: CONTEXTFORGE__OLLAMA__MODEL
"""

from .settings import (
    CompressionSettings,
    LocalAgentSettings,
    LoggingSettings,
    OllamaSettings,
    OpenRouterSettings,
    StorageSettings,
    load_config,
    load_default_config,
)

__all__ = [
    "CompressionSettings",
    "LocalAgentSettings",
    "LoggingSettings",
    "OllamaSettings",
    "OpenRouterSettings",
    "StorageSettings",
    "load_config",
    "load_default_config",
]
