# src/contextforge/storage/manager.py
"""
Block store factory.

Maps the ``[storage] type`` setting to a store class and initializes it.
"""

import logging
from typing import Dict, Type

from ..config.settings import StorageSettings
from ..exceptions import ConfigError
from .base import BaseBlockStore
from .memory import InMemoryBlockStore
from .sqlite_store import SqliteBlockStore

logger = logging.getLogger(__name__)

# --- Mapping from config type string to class ---
BLOCK_STORE_MAP: Dict[str, Type[BaseBlockStore]] = {
    "memory": InMemoryBlockStore,
    "sqlite": SqliteBlockStore,
}


async def create_block_store(settings: StorageSettings) -> BaseBlockStore:
    """
    Instantiate and initialize the configured block store.

    Raises:
        ConfigError: If the storage type is unknown.
        StorageError: If the store fails to initialize.
    """
    store_cls = BLOCK_STORE_MAP.get(settings.type)
    if store_cls is None:
        raise ConfigError(f"Unsupported block store type: '{settings.type}'. "
                          f"Available types: {list(BLOCK_STORE_MAP.keys())}")
    store = store_cls()
    await store.initialize(settings.model_dump())
    logger.info(f"Block store '{settings.type}' initialized.")
    return store
