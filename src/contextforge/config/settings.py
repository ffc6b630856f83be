# src/contextforge/config/settings.py
"""
Compression engine configuration models.

The configuration hierarchy:
    CompressionSettings (root)
    ├── OllamaSettings      - Local inference server backend
    ├── OpenRouterSettings  - Hosted gateway backend (bearer auth)
    ├── LocalAgentSettings  - Subprocess agent backend
    ├── StorageSettings     - Block store selection
    └── LoggingSettings     - Console/file logging

A ``CompressionSettings`` instance is passed explicitly to the orchestrator;
nothing in the engine reads ambient global configuration.

Usage:
    >>> from contextforge.config import CompressionSettings, load_config
    >>> config = CompressionSettings()  # All defaults
    >>> config.min_ratio
    1.2

    >>> config = load_config(config_dict={"backend": "ollama", "ollama": {"model": "qwen2.5:7b"}})
    >>> config.ollama.model
    'qwen2.5:7b'
"""

from __future__ import annotations

import importlib.resources
import json
import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import (BaseModel, ConfigDict, Field, SecretStr, field_validator,
                      model_validator)
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ConfigError
from ..models import BackendKind

logger = logging.getLogger(__name__)

ENV_PREFIX = "CONTEXTFORGE__"
AUTO_BACKEND = "auto"


# =============================================================================
# BACKEND SETTINGS
# =============================================================================


class OllamaSettings(BaseModel):
    """Local Ollama server used as the ``ollama`` backend."""

    host: str = Field(default="http://localhost:11434", description="Ollama server URL")
    model: str = Field(default="llama3.2:latest", description="Model used for compression")
    timeout: float = Field(default=120.0, gt=0, description="Deadline for one compression call (seconds)")


class OpenRouterSettings(BaseModel):
    """Hosted OpenAI-compatible gateway used as the ``openrouter`` backend."""

    base_url: str = Field(default="https://openrouter.ai/api/v1", description="Gateway base URL")
    model: str = Field(default="anthropic/claude-sonnet-4", description="Model used for compression")
    api_key: Optional[SecretStr] = Field(default=None, description="Bearer credential (never logged)")
    timeout: float = Field(default=120.0, gt=0, description="Deadline for one compression call (seconds)")

    @field_validator("api_key", mode="before")
    @classmethod
    def empty_key_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def is_configured(self) -> bool:
        return self.api_key is not None


class LocalAgentSettings(BaseModel):
    """Command-line agent spawned per compression (``local_agent`` backend)."""

    model_config = ConfigDict(protected_namespaces=())

    executable: str = Field(default="", description="Agent executable; discovered when empty")
    args: List[str] = Field(
        default_factory=lambda: ["-p", "--output-format", "text"],
        description="Arguments passed after the executable; the prompt goes to stdin",
    )
    model: str = Field(default="", description="Model passed via model_flag; omitted when empty")
    model_flag: str = Field(default="--model", description="CLI flag carrying the model hint")
    timeout: float = Field(default=300.0, gt=0, description="Hard wall-clock limit (seconds)")
    max_output_bytes: int = Field(default=10 * 1024 * 1024, ge=1, description="Stdout capture ceiling")


class StorageSettings(BaseModel):
    """Block store selection."""

    type: str = Field(default="memory", description="'memory' or 'sqlite'")
    path: str = Field(default="~/.local/share/contextforge/blocks.db", description="SQLite database file")
    table_name: str = Field(default="blocks", description="SQLite table holding blocks")

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        v = v.lower()
        if v not in ("memory", "sqlite"):
            raise ValueError(f"Unsupported storage type '{v}'. Use 'memory' or 'sqlite'.")
        return v


class LoggingSettings(BaseModel):
    """Console and file logging (see ``contextforge.logging_config``)."""

    console_enabled: bool = False
    console_level: str = "WARNING"
    display_min_level: str = "INFO"
    file_enabled: bool = False
    file_level: str = "DEBUG"
    file_path: str = "~/.local/share/contextforge/logs/contextforge.log"
    rotation_max_bytes: int = 10 * 1024 * 1024
    rotation_backup_count: int = 5
    components: Dict[str, str] = Field(default_factory=dict)


# =============================================================================
# ROOT
# =============================================================================


class CompressionSettings(BaseModel):
    """
    Root configuration for the compression engine.

    Thresholds:
        min_tokens: Blocks below this token count are not compressed.
        min_ratio: Compression must reach this original/compressed ratio.
        min_quality: Fraction of important words that must survive.
    """

    backend: str = Field(default=AUTO_BACKEND, description="Default backend name or 'auto'")
    token_estimator: str = Field(default="approximate", description="'approximate' or 'tiktoken'")
    tiktoken_encoding: str = Field(default="cl100k_base")
    min_tokens: int = Field(default=100, ge=0)
    min_ratio: float = Field(default=1.2, gt=0)
    min_quality: float = Field(default=0.6, ge=0.0, le=1.0)
    target_ratio: float = Field(default=2.0, gt=1.0)
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    top_p: float = Field(default=0.95, gt=0.0, le=1.0)
    log_raw_payloads: bool = False

    ollama: OllamaSettings = Field(default_factory=OllamaSettings)
    openrouter: OpenRouterSettings = Field(default_factory=OpenRouterSettings)
    local_agent: LocalAgentSettings = Field(default_factory=LocalAgentSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v.lower() == AUTO_BACKEND:
            return AUTO_BACKEND
        try:
            return BackendKind(v).value
        except ValueError:
            raise ValueError(
                f"Unknown backend '{v}'. Use 'auto' or one of {[k.value for k in BackendKind]}."
            )

    @model_validator(mode="after")
    def resolve_auto_backend(self) -> "CompressionSettings":
        """Pick the backend once: the gateway when a key is configured, else Ollama."""
        if self.backend == AUTO_BACKEND:
            kind = BackendKind.OPENROUTER if self.openrouter.is_configured() else BackendKind.OLLAMA
            self.backend = kind.value
            logger.debug(f"Backend 'auto' resolved to '{self.backend}'.")
        return self

    @property
    def backend_kind(self) -> BackendKind:
        return BackendKind(self.backend)


# =============================================================================
# CONFIG LOADING
# =============================================================================


def load_default_config() -> Dict[str, Any]:
    """Read the packaged ``default_config.toml``."""
    resource = importlib.resources.files("contextforge.config").joinpath("default_config.toml")
    with resource.open("rb") as f:
        return tomllib.load(f)


def load_config(
    config_path: Optional[Path | str] = None,
    config_dict: Optional[Dict[str, Any]] = None,
    overrides: Optional[Dict[str, Any]] = None,
    use_env: bool = True,
) -> CompressionSettings:
    """
    Load the compression configuration.

    Configuration is loaded and merged in order:
        1. Packaged defaults (default_config.toml)
        2. TOML config file (if provided)
        3. Config dictionary (if provided)
        4. Environment variables (CONTEXTFORGE__*, plus OPENROUTER_API_KEY)
        5. Runtime overrides (if provided)

    Args:
        config_path: Optional path to a TOML config file.
        config_dict: Optional config dictionary.
        overrides: Optional runtime overrides.
        use_env: Whether environment variables are applied.

    Raises:
        ConfigError: If a file cannot be read or the merged config is invalid.
    """
    merged_config = load_default_config()

    if config_path is not None:
        path = Path(config_path).expanduser()
        try:
            with open(path, "rb") as f:
                merged_config = _deep_merge(merged_config, tomllib.load(f))
            logger.debug(f"Loaded compression config from {path}")
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {path}")
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}")

    if config_dict is not None:
        merged_config = _deep_merge(merged_config, config_dict)

    if use_env:
        merged_config = _apply_env_overrides(merged_config)

    if overrides is not None:
        merged_config = _deep_merge(merged_config, overrides)

    try:
        return CompressionSettings(**merged_config)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid compression configuration: {e}")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides.

    Environment variables follow the pattern:
        CONTEXTFORGE__<KEY>=value
        CONTEXTFORGE__<SECTION>__<KEY>=value

    Examples:
        CONTEXTFORGE__BACKEND=local_agent
        CONTEXTFORGE__OLLAMA__HOST=http://gpu-box:11434
        CONTEXTFORGE__LOCAL_AGENT__TIMEOUT=120
    """
    config = _deep_merge({}, config)

    api_key = os.environ.get("OPENROUTER_API_KEY")
    if api_key:
        config.setdefault("openrouter", {})["api_key"] = api_key

    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        path_parts = key[len(ENV_PREFIX):].lower().split("__")
        if not all(path_parts):
            continue

        current = config
        for part in path_parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[path_parts[-1]] = _convert_env_value(value)

    return config


def _convert_env_value(value: str) -> Any:
    """Convert an environment variable string to bool, int, float, JSON list or str."""
    lowered = value.lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    if value.startswith("["):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            pass
    return value
