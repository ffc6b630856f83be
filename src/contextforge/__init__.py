# src/contextforge/__init__.py
"""
ContextForge - block compression and merging for bounded LLM context windows.

Content lives in blocks spread over three priority zones. The engine
shrinks a block in place, or merges several blocks into one, by asking a
summarization backend (local Ollama server, OpenRouter gateway or a local
command-line agent) for a shorter rendition and accepting it only when it
is small enough and keeps enough of the important names and numbers.
"""

from importlib.metadata import PackageNotFoundError, version

from .backends import (BackendManager, BaseBackend, LocalAgentBackend,
                       OllamaBackend, OpenRouterBackend)
from .compression import (CompressionOrchestrator, CompressionOutcome,
                          CompressionState, MergeCoordinator, MergeResult,
                          RejectionReason)
from .config import CompressionSettings, load_config
from .engine import CompressionEngine
from .exceptions import (BackendTimeoutError, BackendTransportError,
                         BlockNotFoundError, CompressionError, ConfigError,
                         ContextForgeError, IneffectiveCompressionError,
                         LowQualityError, StorageError, StorageForbiddenError,
                         ValidationError)
from .models import (BackendKind, Block, BlockFilter, CompressionStrategy,
                     Zone)
from .storage import BaseBlockStore, InMemoryBlockStore, SqliteBlockStore
from .tokens import ApproximateEstimator, TiktokenEstimator, get_estimator

try:
    __version__ = version("contextforge")
except PackageNotFoundError:
    __version__ = "0.0.0"


__all__ = [
    # Core API
    "CompressionEngine",
    "CompressionSettings",
    "load_config",

    # Models
    "BackendKind",
    "Block",
    "BlockFilter",
    "CompressionStrategy",
    "Zone",

    # Compression
    "CompressionOrchestrator",
    "CompressionOutcome",
    "CompressionState",
    "MergeCoordinator",
    "MergeResult",
    "RejectionReason",

    # Backends
    "BackendManager",
    "BaseBackend",
    "LocalAgentBackend",
    "OllamaBackend",
    "OpenRouterBackend",

    # Storage
    "BaseBlockStore",
    "InMemoryBlockStore",
    "SqliteBlockStore",

    # Tokens
    "ApproximateEstimator",
    "TiktokenEstimator",
    "get_estimator",

    # Exceptions
    "BackendTimeoutError",
    "BackendTransportError",
    "BlockNotFoundError",
    "CompressionError",
    "ConfigError",
    "ContextForgeError",
    "IneffectiveCompressionError",
    "LowQualityError",
    "StorageError",
    "StorageForbiddenError",
    "ValidationError",

    "__version__",
]
