# src/contextforge/backends/__init__.py
"""
Summarization backends for the compression engine.

Each backend hides one transport (local HTTP server, hosted gateway,
subprocess) behind ``BaseBackend.compress()``.
"""

from .base import BaseBackend
from .local_agent_backend import LocalAgentBackend, find_agent_executable
from .manager import (BACKEND_MAP, BackendManager, create_backend,
                      resolve_backend_kind)
from .ollama_backend import OllamaBackend
from .openrouter_backend import OpenRouterBackend

__all__ = [
    "BACKEND_MAP",
    "BaseBackend",
    "BackendManager",
    "LocalAgentBackend",
    "OllamaBackend",
    "OpenRouterBackend",
    "create_backend",
    "find_agent_executable",
    "resolve_backend_kind",
]
