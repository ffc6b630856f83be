# tests/conftest.py
"""
Shared fixtures for ContextForge tests.

Provides a default configuration with the Ollama backend selected, an
in-memory store, a scriptable fake backend and an engine wired to them.
"""

import sys
from pathlib import Path

import pytest

# Ensure source and test helpers are importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from contextforge.config.settings import CompressionSettings  # noqa: E402
from contextforge.engine import CompressionEngine  # noqa: E402
from contextforge.storage.memory import InMemoryBlockStore  # noqa: E402
from contextforge.tokens import ApproximateEstimator  # noqa: E402
from helpers import FakeBackend  # noqa: E402


@pytest.fixture
def config() -> CompressionSettings:
    """Default thresholds with the Ollama backend selected."""
    return CompressionSettings(backend="ollama")


@pytest.fixture
def estimator() -> ApproximateEstimator:
    return ApproximateEstimator()


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def store() -> InMemoryBlockStore:
    return InMemoryBlockStore()


@pytest.fixture
def engine(store, config, estimator, fake_backend) -> CompressionEngine:
    """Engine over the in-memory store with the fake backend registered as 'ollama'."""
    return CompressionEngine(store, config=config, estimator=estimator, backends={"ollama": fake_backend})
