# src/contextforge/storage/__init__.py
"""
Block storage for the ContextForge library.

The compression engine reads and writes blocks only through
``BaseBlockStore``; host applications may supply their own implementation.
"""

from .base import BaseBlockStore
from .manager import BLOCK_STORE_MAP, create_block_store
from .memory import InMemoryBlockStore
from .sqlite_store import SqliteBlockStore

__all__ = [
    "BLOCK_STORE_MAP",
    "BaseBlockStore",
    "InMemoryBlockStore",
    "SqliteBlockStore",
    "create_block_store",
]
