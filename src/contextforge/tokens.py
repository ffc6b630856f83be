# src/contextforge/tokens.py
"""
Token estimators.

Two interchangeable implementations of the ``TokenEstimator`` protocol:

- ``ApproximateEstimator``: ``ceil(len(text) / 4)``, constant time.
- ``TiktokenEstimator``: exact sub-word count with a tiktoken encoding.

Both are monotonic in input length for a fixed content style, which the
ratio check relies on. Neither has side effects or failure modes once
constructed.
"""

import logging
import math
from typing import Dict, Protocol

import tiktoken

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"
CHARS_PER_TOKEN = 4

# Encodings are cached per name.
_encoding_cache: Dict[str, "tiktoken.Encoding"] = {}


class TokenEstimator(Protocol):
    """Protocol for counting tokens in text."""

    name: str

    def count(self, text: str) -> int: ...


class ApproximateEstimator:
    """Fast length-based approximation (4 characters per token, rounded up)."""

    name = "approximate"

    def __init__(self, chars_per_token: int = CHARS_PER_TOKEN) -> None:
        if chars_per_token < 1:
            raise ConfigError("chars_per_token must be at least 1.")
        self.chars_per_token = chars_per_token

    def count(self, text: str) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / self.chars_per_token)

    def __call__(self, text: str) -> int:
        return self.count(text)


class TiktokenEstimator:
    """Exact token count using a tiktoken encoding (``cl100k_base`` by default)."""

    name = "tiktoken"

    def __init__(self, encoding_name: str = DEFAULT_ENCODING) -> None:
        self.encoding_name = encoding_name
        self._encoding = _get_encoding(encoding_name)

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(self._encoding.encode(text, disallowed_special=()))

    def __call__(self, text: str) -> int:
        return self.count(text)


def _get_encoding(encoding_name: str) -> "tiktoken.Encoding":
    encoding = _encoding_cache.get(encoding_name)
    if encoding is None:
        try:
            encoding = tiktoken.get_encoding(encoding_name)
        except ValueError as e:
            raise ConfigError(f"Unknown tiktoken encoding '{encoding_name}': {e}")
        _encoding_cache[encoding_name] = encoding
        logger.debug(f"Loaded tiktoken encoding '{encoding_name}'.")
    return encoding


def get_estimator(name: str = "approximate", encoding_name: str = DEFAULT_ENCODING) -> TokenEstimator:
    """
    Resolve an estimator by its configured name.

    Args:
        name: ``"approximate"`` or ``"tiktoken"``.
        encoding_name: tiktoken encoding used when ``name == "tiktoken"``.

    Raises:
        ConfigError: If the name is unknown.
    """
    key = name.lower()
    if key == ApproximateEstimator.name:
        return ApproximateEstimator()
    if key == TiktokenEstimator.name:
        return TiktokenEstimator(encoding_name)
    raise ConfigError(f"Unknown token estimator '{name}'. Use 'approximate' or 'tiktoken'.")
