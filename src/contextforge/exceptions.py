# src/contextforge/exceptions.py
"""
Custom exceptions for the ContextForge library.

This module defines the exception hierarchy used by the compression engine.
Compression failures fall in three families:

- ``ValidationError``: the input is not eligible (too small, empty, ...).
- ``BackendTransportError``: the summarization backend failed (network,
  HTTP status, malformed or empty response, process failure, timeout).
- Business-rule rejections (``IneffectiveCompressionError``,
  ``LowQualityError``) that carry the computed numeric values so the caller
  can decide what to do next.

Storage errors are kept separate: they are not compression outcomes and are
propagated to the caller as-is.
"""

from typing import Optional


class ContextForgeError(Exception):
    """Base class for all ContextForge specific errors."""
    def __init__(self, message: str = "An unspecified error occurred in ContextForge."):
        super().__init__(message)


class ConfigError(ContextForgeError):
    """Raised for errors related to configuration loading or validation."""
    def __init__(self, message: str = "Configuration error."):
        super().__init__(message)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

class StorageError(ContextForgeError):
    """Raised for transport or database failures in the block store."""
    def __init__(self, message: str = "Storage error."):
        super().__init__(message)


class BlockNotFoundError(StorageError):
    """Raised when a block ID does not exist in the store."""
    def __init__(self, block_id: str, message: str = "Block not found."):
        self.block_id = block_id
        super().__init__(f"{message} Block ID: '{block_id}'")


class StorageForbiddenError(StorageError):
    """Raised when the store refuses access to a block."""
    def __init__(self, block_id: str, message: str = "Access to block forbidden."):
        self.block_id = block_id
        super().__init__(f"{message} Block ID: '{block_id}'")


# ---------------------------------------------------------------------------
# Compression
# ---------------------------------------------------------------------------

class CompressionError(ContextForgeError):
    """Base class for every reason a compression attempt can be rejected."""
    reason: str = "compression_error"

    def __init__(self, message: str = "Compression failed.", reason: Optional[str] = None):
        if reason is not None:
            self.reason = reason
        super().__init__(message)


class ValidationError(CompressionError):
    """
    Raised when content is not eligible for compression.

    Never retried; reported verbatim to the caller.
    """
    def __init__(self, message: str = "Content is not eligible for compression.", reason: str = "invalid"):
        super().__init__(message, reason=reason)


class BackendTransportError(CompressionError):
    """
    Raised when a summarization backend fails to produce a usable response.

    Attributes:
        backend: Name of the backend that failed.
        status_code: HTTP status code when the failure was a non-2xx response.
    """
    def __init__(
        self,
        backend: str = "unknown",
        message: str = "Backend error.",
        reason: str = "transport",
        status_code: Optional[int] = None,
    ):
        self.backend = backend
        self.status_code = status_code
        super().__init__(f"Error with backend '{backend}': {message}", reason=reason)


class BackendTimeoutError(BackendTransportError):
    """Raised when a backend call exceeds its deadline."""
    def __init__(self, backend: str = "unknown", timeout: Optional[float] = None):
        self.timeout = timeout
        detail = f"timed out after {timeout:g}s" if timeout is not None else "timed out"
        super().__init__(backend, detail, reason="timeout")


class IneffectiveCompressionError(CompressionError):
    """Raised when the compression ratio is below the configured floor."""
    def __init__(self, ratio: float, min_ratio: float, original_tokens: int, compressed_tokens: int):
        self.ratio = ratio
        self.min_ratio = min_ratio
        self.original_tokens = original_tokens
        self.compressed_tokens = compressed_tokens
        super().__init__(
            f"Compression ratio {ratio:.2f}x is below minimum {min_ratio}x "
            f"({original_tokens} -> {compressed_tokens} tokens)",
            reason="ineffective",
        )


class LowQualityError(CompressionError):
    """Raised when too few important words survive compression."""
    def __init__(self, quality: float, min_quality: float):
        self.quality = quality
        self.min_quality = min_quality
        super().__init__(
            f"Compression quality {quality * 100:.0f}% is below minimum {min_quality * 100:.0f}%",
            reason="low_quality",
        )
