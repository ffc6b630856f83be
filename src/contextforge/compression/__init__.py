# src/contextforge/compression/__init__.py
"""
Compression pipeline: importance scoring, prompt rendering, orchestration
of a single attempt and merging of several blocks.
"""

from .importance import estimate_quality, extract_important_words
from .merge import MergeCoordinator
from .orchestrator import CompressionOrchestrator
from .outcome import (CompressionOutcome, CompressionState, CompressionUnit,
                      MergeResult, RejectionReason)
from .prompts import build_compression_prompt

__all__ = [
    "CompressionOrchestrator",
    "CompressionOutcome",
    "CompressionState",
    "CompressionUnit",
    "MergeCoordinator",
    "MergeResult",
    "RejectionReason",
    "build_compression_prompt",
    "estimate_quality",
    "extract_important_words",
]
