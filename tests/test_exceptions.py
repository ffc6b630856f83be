# tests/test_exceptions.py
"""
Tests for the ContextForge exception hierarchy and the details each
exception carries.
"""

import pytest

from contextforge.exceptions import (BackendTimeoutError,
                                     BackendTransportError,
                                     BlockNotFoundError, CompressionError,
                                     ConfigError, ContextForgeError,
                                     IneffectiveCompressionError,
                                     LowQualityError, StorageError,
                                     StorageForbiddenError, ValidationError)


class TestHierarchy:

    @pytest.mark.parametrize("exc_class", [
        ConfigError, StorageError, CompressionError,
    ])
    def test_top_level_errors_derive_from_base(self, exc_class):
        assert issubclass(exc_class, ContextForgeError)

    def test_storage_errors(self):
        assert issubclass(BlockNotFoundError, StorageError)
        assert issubclass(StorageForbiddenError, StorageError)
        assert not issubclass(StorageError, CompressionError)

    def test_compression_errors(self):
        for exc_class in (ValidationError, BackendTransportError, IneffectiveCompressionError, LowQualityError):
            assert issubclass(exc_class, CompressionError)
        assert issubclass(BackendTimeoutError, BackendTransportError)

    def test_default_messages(self):
        assert str(ContextForgeError()) == "An unspecified error occurred in ContextForge."
        assert str(ConfigError()) == "Configuration error."


class TestDetails:

    def test_block_not_found(self):
        error = BlockNotFoundError("b-42")
        assert error.block_id == "b-42"
        assert "b-42" in str(error)

    def test_validation_reason(self):
        assert ValidationError("x").reason == "invalid"
        assert ValidationError("x", reason="too_small").reason == "too_small"

    def test_backend_transport_error(self):
        error = BackendTransportError("openrouter", "HTTP 503", reason="http_status", status_code=503)
        assert str(error) == "Error with backend 'openrouter': HTTP 503"
        assert error.backend == "openrouter"
        assert error.reason == "http_status"
        assert error.status_code == 503

    def test_backend_timeout(self):
        error = BackendTimeoutError("local_agent", 300.0)
        assert error.reason == "timeout"
        assert error.timeout == 300.0
        assert "timed out after 300s" in str(error)

    def test_ineffective_compression_carries_numbers(self):
        error = IneffectiveCompressionError(ratio=1.1, min_ratio=1.2, original_tokens=110, compressed_tokens=100)
        assert error.reason == "ineffective"
        assert (error.ratio, error.min_ratio, error.original_tokens, error.compressed_tokens) == (1.1, 1.2, 110, 100)
        assert "1.10x is below minimum 1.2x" in str(error)

    def test_low_quality_carries_numbers(self):
        error = LowQualityError(quality=0.5, min_quality=0.6)
        assert error.reason == "low_quality"
        assert error.quality == 0.5
        assert "50% is below minimum 60%" in str(error)
