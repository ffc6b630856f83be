# src/contextforge/compression/orchestrator.py
"""
Compression Orchestrator.

Drives one compression attempt through its states::

    IDLE -> VALIDATING -> PROMPTING -> INVOKING -> SCORING_RATIO
         -> SCORING_QUALITY -> ACCEPTED | REJECTED

Every ``CompressionError`` raised along the way (validation, backend,
ineffective ratio, low quality) is captured into the returned
``CompressionOutcome``. Anything else (configuration or programming
errors) propagates to the caller. The orchestrator never touches the store.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Mapping, Optional, Union

from ..backends.base import BaseBackend
from ..backends.manager import BackendManager, resolve_backend_kind
from ..config.settings import CompressionSettings
from ..exceptions import (CompressionError, IneffectiveCompressionError,
                          LowQualityError, ValidationError)
from ..models import BackendKind, Block, CompressionStrategy
from ..tokens import TokenEstimator, get_estimator
from .importance import estimate_quality
from .outcome import CompressionOutcome, CompressionState, RejectionReason
from .prompts import build_compression_prompt

logger = logging.getLogger(__name__)


class CompressionOrchestrator:
    """
    Validates, prompts, invokes and scores a single compression.

    Args:
        config: Thresholds and backend configuration.
        estimator: Token estimator; built from ``config.token_estimator``
            when omitted. The same estimator scores both sides of the ratio.
        backends: A ``BackendManager`` or a mapping of backend kind to
            pre-built backend instances.
    """

    def __init__(
        self,
        config: CompressionSettings,
        estimator: Optional[TokenEstimator] = None,
        backends: Optional[Union[BackendManager, Mapping[Union[BackendKind, str], BaseBackend]]] = None,
    ):
        self.config = config
        self.estimator = estimator or get_estimator(config.token_estimator, config.tiktoken_encoding)
        if isinstance(backends, BackendManager):
            self.backends = backends
        else:
            self.backends = BackendManager(config, backends=backends)

    def count_tokens(self, text: str) -> int:
        return self.estimator.count(text)

    async def compress(
        self,
        content: str,
        *,
        original_tokens: Optional[int] = None,
        content_type: str = "text",
        strategy: Union[CompressionStrategy, str] = CompressionStrategy.SEMANTIC,
        backend: Optional[Union[BackendKind, str]] = None,
        model: Optional[str] = None,
        deadline: Optional[float] = None,
        scoring_text: Optional[str] = None,
    ) -> CompressionOutcome:
        """
        Run one compression attempt.

        Args:
            content: Text to compress.
            original_tokens: Known token count of ``content``; estimated when None.
            content_type: Tag substituted into the prompt.
            strategy: Compression strategy; only ``semantic`` is implemented.
            backend: Backend kind for this attempt; the configured default when None.
            model: Optional model hint for the backend.
            deadline: Optional per-attempt deadline in seconds.
            scoring_text: Text the summary's quality is scored against; defaults
                to ``content``.

        Returns:
            A ``CompressionOutcome``. ``success`` is False on any rejection.

        Raises:
            ConfigError: If the requested backend is unknown or unusable.
        """
        backend_kind = resolve_backend_kind(backend) if backend is not None else self.backends.default_kind
        outcome = CompressionOutcome(
            success=False,
            strategy=strategy.value if isinstance(strategy, CompressionStrategy) else str(strategy),
            backend=backend_kind.value,
            model=model,
        )
        start_time = time.monotonic()

        try:
            self._transition(outcome, CompressionState.VALIDATING)
            outcome.original_tokens = self._validate(content, original_tokens, strategy)

            self._transition(outcome, CompressionState.PROMPTING)
            selected = self.backends.get_backend(backend_kind)
            outcome.model = model or selected.default_model
            prompt = build_compression_prompt(
                content,
                outcome.original_tokens,
                target_ratio=self.config.target_ratio,
                content_type=content_type,
            )

            self._transition(outcome, CompressionState.INVOKING)
            compressed_text = await selected.compress(prompt, model=model, deadline=deadline)
            outcome.compressed_text = compressed_text

            self._transition(outcome, CompressionState.SCORING_RATIO)
            outcome.compressed_tokens = self.count_tokens(compressed_text)
            outcome.ratio = self._ratio(outcome.original_tokens, outcome.compressed_tokens)
            if outcome.ratio < self.config.min_ratio:
                raise IneffectiveCompressionError(
                    outcome.ratio, self.config.min_ratio, outcome.original_tokens, outcome.compressed_tokens
                )

            self._transition(outcome, CompressionState.SCORING_QUALITY)
            reference = content if scoring_text is None else scoring_text
            outcome.quality_score = estimate_quality(reference, compressed_text)
            if outcome.quality_score < self.config.min_quality:
                raise LowQualityError(outcome.quality_score, self.config.min_quality)

            outcome.success = True
            self._transition(outcome, CompressionState.ACCEPTED)
            logger.info(
                f"Compression accepted via '{outcome.backend}': {outcome.original_tokens} -> "
                f"{outcome.compressed_tokens} tokens ({outcome.ratio:.2f}x, quality {outcome.quality_score:.0%})."
            )
        except CompressionError as e:
            outcome.success = False
            outcome.error = e
            outcome.rejection = RejectionReason.from_error(e)
            self._transition(outcome, CompressionState.REJECTED)
            logger.warning(f"Compression rejected ({outcome.rejection.value}): {e}")
        finally:
            outcome.duration_ms = (time.monotonic() - start_time) * 1000

        return outcome

    async def compress_block(
        self,
        block: Block,
        strategy: Union[CompressionStrategy, str] = CompressionStrategy.SEMANTIC,
        backend: Optional[Union[BackendKind, str]] = None,
        model: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> CompressionOutcome:
        """Compress one block's content using its cached token count when present."""
        original_tokens = block.token_count if block.token_count is not None else self.count_tokens(block.content)
        return await self.compress(
            block.content,
            original_tokens=original_tokens,
            content_type=block.type,
            strategy=strategy,
            backend=backend,
            model=model,
            deadline=deadline,
        )

    def _validate(
        self, content: str, original_tokens: Optional[int], strategy: Union[CompressionStrategy, str]
    ) -> int:
        try:
            resolved = CompressionStrategy(strategy)
        except ValueError:
            raise ValidationError(f"Unknown compression strategy '{strategy}'.", reason="unsupported_strategy")
        if resolved is not CompressionStrategy.SEMANTIC:
            raise ValidationError(
                f"Compression strategy '{resolved.value}' is not implemented.", reason="unsupported_strategy"
            )

        if not content or not content.strip():
            raise ValidationError("Block content is empty.", reason="empty_content")

        tokens = original_tokens if original_tokens is not None else self.count_tokens(content)
        if tokens < self.config.min_tokens:
            raise ValidationError(
                f"Block has only {tokens} tokens (minimum: {self.config.min_tokens})", reason="too_small"
            )
        return tokens

    @staticmethod
    def _ratio(original_tokens: int, compressed_tokens: int) -> float:
        if compressed_tokens <= 0:
            return math.inf
        return original_tokens / compressed_tokens

    @staticmethod
    def _transition(outcome: CompressionOutcome, state: CompressionState) -> None:
        logger.debug(f"Compression state: {outcome.final_state.value} -> {state.value}")
        outcome.final_state = state
