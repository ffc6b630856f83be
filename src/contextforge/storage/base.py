# src/contextforge/storage/base.py
"""
Abstract Base Class for block store backends.

The compression engine never owns block persistence; it talks to the host
application's store through this interface. Field dictionaries passed to
``patch`` / ``insert`` use ``Block`` attribute names.
"""

import abc
from typing import Any, Dict, List, Optional, Sequence

from ..models import Block, BlockFilter


class BaseBlockStore(abc.ABC):
    """
    Abstract Base Class for block persistence.

    Raises (all implementations):
        BlockNotFoundError: When a referenced block does not exist.
        StorageForbiddenError: When access to a block is refused.
        StorageError: For transport or database failures.
    """

    async def initialize(self, config: Dict[str, Any]) -> None:
        """
        Set up resources (connections, tables). Stores without any keep
        this default no-op.

        Args:
            config: Backend-specific configuration dictionary (``[storage]`` section).
        """
        pass

    @abc.abstractmethod
    async def get(self, block_id: str) -> Optional[Block]:
        """Return the block, or None if it does not exist."""
        pass

    @abc.abstractmethod
    async def patch(self, block_id: str, fields: Dict[str, Any]) -> Block:
        """
        Update the given fields of an existing block.

        Returns:
            The updated block.

        Raises:
            BlockNotFoundError: If the block does not exist.
        """
        pass

    @abc.abstractmethod
    async def insert(self, fields: Dict[str, Any]) -> str:
        """
        Create a block from ``fields``; an ``id`` is generated when absent.

        Returns:
            The new block's ID.
        """
        pass

    @abc.abstractmethod
    async def delete(self, block_id: str) -> None:
        """
        Delete a block.

        Raises:
            BlockNotFoundError: If the block does not exist.
        """
        pass

    @abc.abstractmethod
    async def list_by_filter(self, block_filter: BlockFilter) -> List[Block]:
        """Return all blocks matching ``block_filter``, oldest first."""
        pass

    async def replace_blocks(self, fields: Dict[str, Any], delete_ids: Sequence[str]) -> str:
        """
        Insert one block, then delete ``delete_ids``.

        The insert always happens first; if it fails nothing is deleted.
        This default is not atomic with respect to other writers.
        Implementations that can do it in one transaction override it.

        Returns:
            The new block's ID.
        """
        new_id = await self.insert(fields)
        for block_id in delete_ids:
            await self.delete(block_id)
        return new_id

    async def close(self) -> None:
        """Release resources held by the store."""
        pass
