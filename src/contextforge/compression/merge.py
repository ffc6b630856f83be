# src/contextforge/compression/merge.py
"""
Merge Coordinator.

Concatenates several blocks into one compression unit, compresses it via
the orchestrator and, on acceptance, replaces the sources with exactly one
merged block. A rejected merge leaves every source block untouched.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence, Union

from ..exceptions import ValidationError
from ..models import BackendKind, Block, CompressionStrategy, Zone
from ..storage.base import BaseBlockStore
from .orchestrator import CompressionOrchestrator
from .outcome import (CompressionOutcome, CompressionState, CompressionUnit,
                      MergeResult, RejectionReason)

logger = logging.getLogger(__name__)

MERGED_CONTENT_TYPE = "merged_blocks"
BLOCK_SEPARATOR = "\n\n---\n\n"


def format_block_section(index: int, block: Block) -> str:
    """Header plus content of one block inside a merged unit (``index`` is 1-based)."""
    return f"## Block {index} ({block.type})\n\n{block.content}"


class MergeCoordinator:
    """Builds merged compression units and persists accepted merges."""

    def __init__(self, store: BaseBlockStore, orchestrator: CompressionOrchestrator):
        self.store = store
        self.orchestrator = orchestrator

    def build_unit(self, blocks: Sequence[Block]) -> CompressionUnit:
        """
        Build the compression unit for ``blocks``.

        The unit's token count is the sum of the blocks' cached counts (estimated
        where absent), not a count of the concatenated text. Its provenance count
        sums each block's pre-compression size. Quality is scored against the
        plain block contents so the section headers do not count as facts.
        """
        original_tokens = 0
        provenance_tokens = 0
        for block in blocks:
            current = block.token_count if block.token_count is not None else self.orchestrator.count_tokens(block.content)
            original_tokens += current
            provenance_tokens += block.original_token_count if block.original_token_count is not None else current

        content = BLOCK_SEPARATOR.join(format_block_section(i, b) for i, b in enumerate(blocks, start=1))
        return CompressionUnit(
            content=content,
            original_tokens=original_tokens,
            provenance_tokens=provenance_tokens,
            source_ids=[b.id for b in blocks],
            content_type=MERGED_CONTENT_TYPE,
            scoring_text=BLOCK_SEPARATOR.join(b.content for b in blocks),
        )

    async def merge(
        self,
        blocks: Sequence[Block],
        target_zone: Union[Zone, str],
        target_type: str,
        strategy: Union[CompressionStrategy, str] = CompressionStrategy.SEMANTIC,
        backend: Optional[Union[BackendKind, str]] = None,
        model: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> MergeResult:
        """
        Merge ``blocks`` into one compressed block in ``target_zone``.

        ``deadline`` bounds the backend call in seconds; the backend's
        configured timeout applies when None.

        Returns:
            A ``MergeResult``; ``new_block_id`` is None when the merge was rejected.

        Raises:
            StorageError: If persisting the accepted merge fails. Nothing is
                deleted when the insert fails.
        """
        precheck = self._precheck(blocks, strategy, backend, model)
        if precheck is not None:
            return MergeResult(new_block_id=None, outcome=precheck)

        unit = self.build_unit(blocks)
        logger.info(f"Merging {len(blocks)} blocks ({unit.original_tokens} tokens) into zone {Zone(target_zone).value}.")

        outcome = await self.orchestrator.compress(
            unit.content,
            original_tokens=unit.original_tokens,
            content_type=unit.content_type,
            strategy=strategy,
            backend=backend,
            model=model,
            deadline=deadline,
            scoring_text=unit.scoring_text,
        )
        if not outcome.success:
            logger.info(f"Merge of {len(blocks)} blocks rejected; sources left untouched.")
            return MergeResult(new_block_id=None, outcome=outcome)

        fields = self._merged_fields(unit, outcome, target_zone, target_type)
        new_block_id = await self.store.replace_blocks(fields, unit.source_ids)
        logger.info(f"Merged {len(unit.source_ids)} blocks into '{new_block_id}' "
                    f"({outcome.original_tokens} -> {outcome.compressed_tokens} tokens).")
        return MergeResult(new_block_id=new_block_id, outcome=outcome)

    def _precheck(
        self,
        blocks: Sequence[Block],
        strategy: Union[CompressionStrategy, str],
        backend: Optional[Union[BackendKind, str]],
        model: Optional[str],
    ) -> Optional[CompressionOutcome]:
        error: Optional[ValidationError] = None
        if not blocks:
            error = ValidationError("No blocks to merge.", reason="no_blocks")
        else:
            ids = [b.id for b in blocks]
            duplicates = sorted({i for i in ids if ids.count(i) > 1})
            if duplicates:
                error = ValidationError(f"Duplicate block IDs in merge: {duplicates}", reason="duplicate_blocks")
        if error is None:
            return None

        logger.warning(f"Merge rejected (validation): {error}")
        return CompressionOutcome(
            success=False,
            rejection=RejectionReason.VALIDATION,
            error=error,
            strategy=strategy.value if isinstance(strategy, CompressionStrategy) else str(strategy),
            backend=backend.value if isinstance(backend, BackendKind) else backend,
            model=model,
            final_state=CompressionState.REJECTED,
        )

    @staticmethod
    def _merged_fields(
        unit: CompressionUnit, outcome: CompressionOutcome, target_zone: Union[Zone, str], target_type: str
    ) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        return {
            "content": outcome.compressed_text,
            "zone": Zone(target_zone),
            "type": target_type,
            "token_count": outcome.compressed_tokens,
            "is_compressed": True,
            "compression_ratio": outcome.ratio,
            "compression_strategy": outcome.strategy,
            "original_token_count": unit.provenance_tokens,
            "compressed_at": now,
            "merged_from_count": len(unit.source_ids),
            "created_at": now,
            "updated_at": now,
            "metadata": {"merged_from": list(unit.source_ids)},
        }
