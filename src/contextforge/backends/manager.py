# src/contextforge/backends/manager.py
"""
Backend Manager for ContextForge.

Maps backend names to adapter classes and lazily creates one instance per
backend from the compression configuration. Instances are created on first
use so that, for example, a missing OpenRouter key only matters when the
gateway is actually selected.
"""

import asyncio
import logging
from typing import Dict, List, Mapping, Optional, Type, Union

from ..config.settings import CompressionSettings
from ..exceptions import ConfigError
from ..models import BackendKind
from .base import BaseBackend
from .local_agent_backend import LocalAgentBackend
from .ollama_backend import OllamaBackend
from .openrouter_backend import OpenRouterBackend

logger = logging.getLogger(__name__)

# --- Mapping from backend kind to class ---
BACKEND_MAP: Dict[BackendKind, Type[BaseBackend]] = {
    BackendKind.OLLAMA: OllamaBackend,
    BackendKind.OPENROUTER: OpenRouterBackend,
    BackendKind.LOCAL_AGENT: LocalAgentBackend,
}


def resolve_backend_kind(kind: Union[BackendKind, str]) -> BackendKind:
    """Parse a backend name, raising ConfigError for unknown names."""
    try:
        return BackendKind(kind)
    except ValueError:
        raise ConfigError(f"Unknown backend '{kind}'. Available: {[k.value for k in BACKEND_MAP]}")


def create_backend(kind: Union[BackendKind, str], config: CompressionSettings) -> BaseBackend:
    """
    Instantiate the adapter for ``kind`` from its configuration section.

    Raises:
        ConfigError: If the kind is unknown or its section is unusable.
    """
    backend_kind = resolve_backend_kind(kind)
    backend_cls = BACKEND_MAP[backend_kind]
    logger.debug(f"Creating backend '{backend_kind.value}' ({backend_cls.__name__}).")
    return backend_cls.from_config(config)


class BackendManager:
    """
    Provides access to backend instances by kind.

    Pre-built instances (custom adapters, test doubles) can be supplied at
    construction; they take precedence over instances created from config.
    """
    _backends: Dict[BackendKind, BaseBackend]

    def __init__(
        self,
        config: CompressionSettings,
        backends: Optional[Mapping[Union[BackendKind, str], BaseBackend]] = None,
    ):
        self._config = config
        self._backends = {}
        self._default_kind = config.backend_kind
        for kind, instance in (backends or {}).items():
            self._backends[BackendKind(kind)] = instance
        logger.debug(f"BackendManager initialized. Default backend: '{self._default_kind.value}'.")

    @property
    def default_kind(self) -> BackendKind:
        return self._default_kind

    def get_backend(self, kind: Optional[Union[BackendKind, str]] = None) -> BaseBackend:
        """
        Get the backend for ``kind``, or the configured default when None.

        Raises:
            ConfigError: If the kind is unknown or cannot be initialized.
        """
        target = resolve_backend_kind(kind) if kind is not None else self._default_kind

        backend = self._backends.get(target)
        if backend is None:
            backend = create_backend(target, self._config)
            self._backends[target] = backend
            logger.info(f"Backend '{target.value}' initialized.")
        return backend

    def get_loaded_backends(self) -> List[str]:
        return [kind.value for kind in self._backends]

    async def close_all(self) -> None:
        """Closes every instantiated backend, logging (not raising) close failures."""
        if not self._backends:
            return
        names = list(self._backends)
        results = await asyncio.gather(
            *(self._backends[name].close() for name in names), return_exceptions=True
        )
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.error(f"Error closing backend '{name.value}': {result}", exc_info=result)
        self._backends.clear()
        logger.debug("All backends closed.")
