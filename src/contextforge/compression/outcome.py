# src/contextforge/compression/outcome.py
"""
Ephemeral value types produced by a compression attempt.

None of these are persisted: the engine copies the relevant fields onto the
block (single-block path) or onto the merged block (merge path).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..exceptions import (BackendTransportError, CompressionError,
                          IneffectiveCompressionError, LowQualityError,
                          ValidationError)


# =============================================================================
# Enums
# =============================================================================


class CompressionState(str, Enum):
    """States of one orchestrated compression attempt."""

    IDLE = "idle"
    VALIDATING = "validating"
    PROMPTING = "prompting"
    INVOKING = "invoking"
    SCORING_RATIO = "scoring_ratio"
    SCORING_QUALITY = "scoring_quality"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class RejectionReason(str, Enum):
    """Why an attempt ended in ``REJECTED``."""

    VALIDATION = "validation"
    BACKEND_FAILURE = "backend_failure"
    INEFFECTIVE = "ineffective"
    LOW_QUALITY = "low_quality"

    @classmethod
    def from_error(cls, error: CompressionError) -> "RejectionReason":
        if isinstance(error, ValidationError):
            return cls.VALIDATION
        if isinstance(error, BackendTransportError):
            return cls.BACKEND_FAILURE
        if isinstance(error, IneffectiveCompressionError):
            return cls.INEFFECTIVE
        if isinstance(error, LowQualityError):
            return cls.LOW_QUALITY
        raise TypeError(f"No rejection reason for {type(error).__name__}")


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class CompressionUnit:
    """
    Content handed to the orchestrator in one attempt.

    Attributes:
        content: Text of a single block, or the header-delimited concatenation
            of several blocks.
        original_tokens: Sum of the constituents' current token counts.
        provenance_tokens: Sum of the constituents' pre-compression token
            counts (their ``original_token_count`` where set).
        source_ids: IDs of the blocks the content came from.
        content_type: Value substituted into the prompt's content-type slot.
        scoring_text: Source text the summary is scored against; the block
            contents without merge headers. Falls back to ``content`` when None.
    """

    content: str
    original_tokens: int
    provenance_tokens: int
    source_ids: List[str] = field(default_factory=list)
    content_type: str = "text"
    scoring_text: Optional[str] = None


@dataclass
class CompressionOutcome:
    """
    Result of one compression attempt, accepted or rejected.

    ``quality_score`` is None when the attempt never reached quality scoring.
    On rejection ``rejection`` names the category and ``error`` holds the
    typed exception with its details.
    """

    success: bool
    compressed_text: Optional[str] = None
    original_tokens: int = 0
    compressed_tokens: int = 0
    ratio: float = 1.0
    quality_score: Optional[float] = None
    rejection: Optional[RejectionReason] = None
    error: Optional[CompressionError] = None
    strategy: str = "semantic"
    backend: Optional[str] = None
    model: Optional[str] = None
    duration_ms: float = 0.0
    final_state: CompressionState = CompressionState.IDLE

    @property
    def tokens_saved(self) -> int:
        """Tokens removed by an accepted compression; 0 otherwise."""
        if not self.success:
            return 0
        return max(0, self.original_tokens - self.compressed_tokens)

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None


@dataclass
class MergeResult:
    """Outcome of a merge; ``new_block_id`` is set only when it was accepted."""

    new_block_id: Optional[str]
    outcome: CompressionOutcome

    @property
    def success(self) -> bool:
        return self.outcome.success
