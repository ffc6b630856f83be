# src/contextforge/storage/memory.py
"""
In-memory block store.

Keeps blocks in a dict guarded by an ``asyncio.Lock``. ``replace_blocks``
runs entirely under the lock, so a merge's insert and deletes are observed
as one step by other coroutines.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import BlockNotFoundError, StorageError
from ..models import Block, BlockFilter
from .base import BaseBlockStore

logger = logging.getLogger(__name__)


class InMemoryBlockStore(BaseBlockStore):
    """Non-persistent block store, mainly for tests and short-lived sessions."""
    _blocks: Dict[str, Block]

    def __init__(self) -> None:
        self._blocks = {}
        self._lock = asyncio.Lock()

    async def get(self, block_id: str) -> Optional[Block]:
        block = self._blocks.get(block_id)
        return block.model_copy(deep=True) if block is not None else None

    async def patch(self, block_id: str, fields: Dict[str, Any]) -> Block:
        async with self._lock:
            current = self._blocks.get(block_id)
            if current is None:
                raise BlockNotFoundError(block_id)
            data = current.model_dump()
            data.update(fields)
            data["id"] = block_id
            if "updated_at" not in fields:
                data["updated_at"] = datetime.now(timezone.utc)
            updated = self._build(data)
            self._blocks[block_id] = updated
            logger.debug(f"Block '{block_id}' patched: {sorted(fields)}")
            return updated.model_copy(deep=True)

    async def insert(self, fields: Dict[str, Any]) -> str:
        async with self._lock:
            return self._insert_unlocked(fields)

    async def delete(self, block_id: str) -> None:
        async with self._lock:
            self._delete_unlocked(block_id)

    async def list_by_filter(self, block_filter: BlockFilter) -> List[Block]:
        matches = [b for b in self._blocks.values() if block_filter.matches(b)]
        matches.sort(key=lambda b: b.created_at)
        return [b.model_copy(deep=True) for b in matches]

    async def replace_blocks(self, fields: Dict[str, Any], delete_ids: Sequence[str]) -> str:
        async with self._lock:
            missing = [block_id for block_id in delete_ids if block_id not in self._blocks]
            if missing:
                raise BlockNotFoundError(missing[0])
            new_id = self._insert_unlocked(fields)
            for block_id in delete_ids:
                self._delete_unlocked(block_id)
            logger.debug(f"Replaced {len(delete_ids)} blocks with '{new_id}'.")
            return new_id

    def _insert_unlocked(self, fields: Dict[str, Any]) -> str:
        block = self._build(dict(fields))
        if block.id in self._blocks:
            raise StorageError(f"Block ID '{block.id}' already exists.")
        self._blocks[block.id] = block
        logger.debug(f"Block '{block.id}' inserted into zone {block.zone}.")
        return block.id

    def _delete_unlocked(self, block_id: str) -> None:
        if self._blocks.pop(block_id, None) is None:
            raise BlockNotFoundError(block_id)
        logger.debug(f"Block '{block_id}' deleted.")

    @staticmethod
    def _build(data: Dict[str, Any]) -> Block:
        try:
            return Block.model_validate(data)
        except PydanticValidationError as e:
            raise StorageError(f"Invalid block fields: {e}")

    def __len__(self) -> int:
        return len(self._blocks)
