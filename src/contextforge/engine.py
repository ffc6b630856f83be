# src/contextforge/engine.py
"""
Main entry point of the ContextForge compression engine.

``CompressionEngine`` ties a block store to the compression orchestrator
and the merge coordinator and exposes the request/response operations
used by host applications::

    engine = await CompressionEngine.create(config_overrides={"backend": "ollama"})
    block = await engine.add_block(long_text, zone=Zone.WORKING, type="note")
    outcome = await engine.compress_single(block.id)
    result = await engine.compress_and_merge([a.id, b.id], target_zone=Zone.STABLE, target_type="summary")
    await engine.close()
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .backends.base import BaseBackend
from .backends.manager import BackendManager
from .compression.merge import MergeCoordinator
from .compression.orchestrator import CompressionOrchestrator
from .compression.outcome import CompressionOutcome, MergeResult
from .config.settings import CompressionSettings, load_config
from .exceptions import BlockNotFoundError
from .logging_config import configure_logging
from .models import (BackendKind, Block, BlockFilter, CompressionStrategy,
                     Zone)
from .storage.base import BaseBlockStore
from .storage.manager import create_block_store
from .tokens import TokenEstimator

logger = logging.getLogger(__name__)


class CompressionEngine:
    """
    Compresses and merges blocks held in a block store.

    Compression errors never raise: they come back inside the returned
    ``CompressionOutcome``. Storage errors (including ``BlockNotFoundError``)
    and configuration errors propagate.
    """

    def __init__(
        self,
        store: BaseBlockStore,
        config: Optional[CompressionSettings] = None,
        estimator: Optional[TokenEstimator] = None,
        backends: Optional[Union[BackendManager, Mapping[Union[BackendKind, str], BaseBackend]]] = None,
        orchestrator: Optional[CompressionOrchestrator] = None,
    ):
        """
        Args:
            store: Block store the engine reads from and writes to.
            config: Compression configuration; loaded from defaults and the
                environment when omitted.
            estimator: Optional token estimator shared by every attempt.
            backends: Optional ``BackendManager`` or pre-built backends by kind.
            orchestrator: Optional pre-built orchestrator (overrides the three
                arguments above).
        """
        self.config = config or load_config()
        self.store = store
        self.orchestrator = orchestrator or CompressionOrchestrator(self.config, estimator=estimator, backends=backends)
        self.merger = MergeCoordinator(store, self.orchestrator)

    @classmethod
    async def create(
        cls,
        config_overrides: Optional[Dict[str, Any]] = None,
        config_file_path: Optional[Union[str, Path]] = None,
        backends: Optional[Mapping[Union[BackendKind, str], BaseBackend]] = None,
        setup_logging: bool = False,
    ) -> "CompressionEngine":
        """
        Load configuration, build the configured block store and return an engine.

        Args:
            config_overrides: Runtime overrides applied last.
            config_file_path: Optional TOML configuration file.
            backends: Optional pre-built backends by kind.
            setup_logging: Whether to install handlers from the ``[logging]`` section.
        """
        config = load_config(config_path=config_file_path, overrides=config_overrides)
        if setup_logging:
            configure_logging(config.logging)
        store = await create_block_store(config.storage)
        logger.info(f"CompressionEngine created (backend: '{config.backend}', store: '{config.storage.type}').")
        return cls(store, config=config, backends=backends)

    # --- Blocks ---

    async def add_block(
        self,
        content: str,
        zone: Union[Zone, str] = Zone.WORKING,
        type: str = "note",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Block:
        """Create a block with its token count cached."""
        block_id = await self.store.insert({
            "content": content,
            "zone": Zone(zone),
            "type": type,
            "token_count": self.orchestrator.count_tokens(content),
            "metadata": metadata or {},
        })
        return await self._require(block_id)

    async def get_block(self, block_id: str) -> Optional[Block]:
        return await self.store.get(block_id)

    async def list_blocks(self, zone: Optional[Union[Zone, str]] = None) -> List[Block]:
        return await self.store.list_by_filter(BlockFilter(zone=Zone(zone) if zone is not None else None))

    # --- Compression ---

    async def compress_single(
        self,
        block_id: str,
        strategy: Union[CompressionStrategy, str] = CompressionStrategy.SEMANTIC,
        backend: Optional[Union[BackendKind, str]] = None,
        model: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> CompressionOutcome:
        """
        Compress one block in place.

        On success the block's content, token count and compression metadata
        are patched. ``original_token_count`` keeps the value from the block's
        first compression. On rejection the block is not touched. ``deadline``
        bounds the backend call in seconds.

        Raises:
            BlockNotFoundError: If the block does not exist.
        """
        block = await self._require(block_id)
        outcome = await self.orchestrator.compress_block(
            block, strategy=strategy, backend=backend, model=model, deadline=deadline
        )
        if not outcome.success:
            return outcome

        now = datetime.now(timezone.utc)
        original_token_count = (
            block.original_token_count if block.original_token_count is not None else outcome.original_tokens
        )
        await self.store.patch(block_id, {
            "content": outcome.compressed_text,
            "token_count": outcome.compressed_tokens,
            "is_compressed": True,
            "compression_ratio": outcome.ratio,
            "compression_strategy": outcome.strategy,
            "original_token_count": original_token_count,
            "compressed_at": now,
            "updated_at": now,
        })
        logger.info(f"Block '{block_id}' compressed: {outcome.original_tokens} -> {outcome.compressed_tokens} tokens "
                    f"({outcome.tokens_saved} saved).")
        return outcome

    async def compress_and_merge(
        self,
        block_ids: Sequence[str],
        strategy: Union[CompressionStrategy, str] = CompressionStrategy.SEMANTIC,
        target_zone: Union[Zone, str] = Zone.WORKING,
        target_type: str = "summary",
        backend: Optional[Union[BackendKind, str]] = None,
        model: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> MergeResult:
        """
        Merge the given blocks (in the given order) into one compressed block.
        ``deadline`` bounds the backend call in seconds.

        Raises:
            BlockNotFoundError: If any block does not exist. Nothing is changed.
        """
        fetched: Dict[str, Block] = {}
        for block_id in dict.fromkeys(block_ids):
            fetched[block_id] = await self._require(block_id)
        blocks = [fetched[block_id] for block_id in block_ids]
        return await self.merger.merge(
            blocks, target_zone=target_zone, target_type=target_type,
            strategy=strategy, backend=backend, model=model, deadline=deadline,
        )

    async def compress_zone(
        self,
        zone: Union[Zone, str],
        strategy: Union[CompressionStrategy, str] = CompressionStrategy.SEMANTIC,
        target_type: str = "summary",
        backend: Optional[Union[BackendKind, str]] = None,
        model: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> MergeResult:
        """Merge every block of ``zone`` (oldest first) into one block in the same zone."""
        blocks = await self.store.list_by_filter(BlockFilter(zone=Zone(zone)))
        logger.debug(f"Compressing zone {Zone(zone).value}: {len(blocks)} blocks.")
        return await self.merger.merge(
            blocks, target_zone=zone, target_type=target_type,
            strategy=strategy, backend=backend, model=model, deadline=deadline,
        )

    # --- Lifecycle ---

    async def close(self) -> None:
        """Closes backend clients and the block store."""
        logger.info("Closing CompressionEngine resources...")
        results = await asyncio.gather(
            self.orchestrator.backends.close_all(),
            self.store.close(),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Error during engine cleanup: {result}", exc_info=result)
        logger.info("CompressionEngine resources cleanup complete.")

    async def _require(self, block_id: str) -> Block:
        block = await self.store.get(block_id)
        if block is None:
            raise BlockNotFoundError(block_id)
        return block

    async def __aenter__(self) -> "CompressionEngine":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
