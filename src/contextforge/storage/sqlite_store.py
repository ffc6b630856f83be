# src/contextforge/storage/sqlite_store.py
"""
SQLite block store using aiosqlite.

All blocks live in one table. ``replace_blocks`` runs the merge's insert
and deletes inside a single transaction, so either the merged block
replaces every source or nothing changes.
"""

import asyncio
import json
import logging
import pathlib
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiosqlite
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import BlockNotFoundError, ConfigError, StorageError
from ..models import Block, BlockFilter, Zone
from .base import BaseBlockStore

logger = logging.getLogger(__name__)

DEFAULT_BLOCKS_TABLE = "blocks"
_TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_COLUMNS = (
    "id", "content", "zone", "type", "token_count", "is_compressed",
    "compression_ratio", "compression_strategy", "original_token_count",
    "compressed_at", "merged_from_count", "created_at", "updated_at", "metadata",
)


class SqliteBlockStore(BaseBlockStore):
    """
    Persists blocks in a SQLite database file using aiosqlite.
    """
    _db_path: pathlib.Path
    _conn: Optional[aiosqlite.Connection] = None
    _table: str

    def __init__(self) -> None:
        self._write_lock = asyncio.Lock()

    async def initialize(self, config: Dict[str, Any]) -> None:
        """
        Open the database and create the blocks table if needed.

        Args:
            config: Configuration dictionary. Expected keys:
                    'path': The database file (``~`` is expanded; ``:memory:`` allowed).
                    'table_name' (optional)

        Raises:
            ConfigError: If 'path' is missing or the table name is invalid.
            StorageError: If the database cannot be initialized.
        """
        db_path_str = config.get("path")
        if not db_path_str:
            raise ConfigError("SQLite block storage 'path' not specified in configuration.")

        self._table = config.get("table_name") or DEFAULT_BLOCKS_TABLE
        if not _TABLE_NAME_RE.match(self._table):
            raise ConfigError(f"Invalid SQLite table name '{self._table}'.")

        try:
            if db_path_str == ":memory:":
                self._conn = await aiosqlite.connect(":memory:")
            else:
                self._db_path = pathlib.Path(db_path_str).expanduser()
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                self._conn = await aiosqlite.connect(self._db_path)
            self._conn.row_factory = aiosqlite.Row

            await self._conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    id TEXT PRIMARY KEY, content TEXT NOT NULL, zone TEXT NOT NULL,
                    type TEXT NOT NULL, token_count INTEGER, is_compressed INTEGER DEFAULT 0,
                    compression_ratio REAL, compression_strategy TEXT, original_token_count INTEGER,
                    compressed_at TEXT, merged_from_count INTEGER, created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL, metadata TEXT
                )
            """)
            await self._conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{self._table}_zone ON {self._table} (zone);")
            await self._conn.commit()
            logger.info(f"SQLite block storage initialized at: {db_path_str} (table: {self._table})")
        except (aiosqlite.Error, OSError) as e:
            logger.error(f"Failed to initialize SQLite block storage at {db_path_str}: {e}")
            if self._conn:
                await self._conn.close()
                self._conn = None
            raise StorageError(f"Could not initialize SQLite database: {e}")

    async def get(self, block_id: str) -> Optional[Block]:
        conn = self._connection()
        try:
            async with conn.execute(f"SELECT * FROM {self._table} WHERE id = ?", (block_id,)) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            logger.error(f"aiosqlite error retrieving block '{block_id}': {e}")
            raise StorageError(f"Database error retrieving block '{block_id}': {e}")
        if row is None:
            logger.debug(f"Block '{block_id}' not found in SQLite.")
            return None
        return self._row_to_block(row)

    async def patch(self, block_id: str, fields: Dict[str, Any]) -> Block:
        conn = self._connection()
        async with self._write_lock:
            current = await self.get(block_id)
            if current is None:
                raise BlockNotFoundError(block_id)
            data = current.model_dump()
            data.update(fields)
            data["id"] = block_id
            if "updated_at" not in fields:
                data["updated_at"] = datetime.now(timezone.utc)
            updated = self._build(data)

            row = self._block_to_row(updated)
            assignments = ", ".join(f"{col} = ?" for col in _COLUMNS[1:])
            try:
                await conn.execute(f"UPDATE {self._table} SET {assignments} WHERE id = ?", row[1:] + (block_id,))
                await conn.commit()
            except aiosqlite.Error as e:
                logger.error(f"aiosqlite error patching block '{block_id}': {e}")
                await self._rollback()
                raise StorageError(f"Database error patching block '{block_id}': {e}")
            logger.debug(f"Block '{block_id}' patched in SQLite: {sorted(fields)}")
            return updated

    async def insert(self, fields: Dict[str, Any]) -> str:
        conn = self._connection()
        block = self._build(dict(fields))
        async with self._write_lock:
            try:
                await self._insert_row(conn, block)
                await conn.commit()
            except StorageError:
                await self._rollback()
                raise
            except aiosqlite.Error as e:
                logger.error(f"aiosqlite error inserting block '{block.id}': {e}")
                await self._rollback()
                raise StorageError(f"Database error inserting block '{block.id}': {e}")
        logger.debug(f"Block '{block.id}' inserted into SQLite.")
        return block.id

    async def delete(self, block_id: str) -> None:
        conn = self._connection()
        async with self._write_lock:
            try:
                cursor = await conn.execute(f"DELETE FROM {self._table} WHERE id = ?", (block_id,))
                deleted = cursor.rowcount
                await conn.commit()
            except aiosqlite.Error as e:
                logger.error(f"aiosqlite error deleting block '{block_id}': {e}")
                await self._rollback()
                raise StorageError(f"Database error deleting block '{block_id}': {e}")
        if deleted == 0:
            raise BlockNotFoundError(block_id)
        logger.debug(f"Block '{block_id}' deleted from SQLite.")

    async def list_by_filter(self, block_filter: BlockFilter) -> List[Block]:
        conn = self._connection()
        clauses: List[str] = []
        params: List[Any] = []
        if block_filter.block_ids is not None:
            ids = list(block_filter.block_ids)
            if not ids:
                return []
            clauses.append(f"id IN ({', '.join('?' for _ in ids)})")
            params.extend(ids)
        if block_filter.zone is not None:
            clauses.append("zone = ?")
            params.append(Zone(block_filter.zone).value)
        if block_filter.type is not None:
            clauses.append("type = ?")
            params.append(block_filter.type)
        if block_filter.is_compressed is not None:
            clauses.append("is_compressed = ?")
            params.append(1 if block_filter.is_compressed else 0)

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        try:
            async with conn.execute(f"SELECT * FROM {self._table}{where} ORDER BY created_at ASC", params) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            logger.error(f"aiosqlite error listing blocks: {e}")
            raise StorageError(f"Database error listing blocks: {e}")
        return [self._row_to_block(row) for row in rows]

    async def replace_blocks(self, fields: Dict[str, Any], delete_ids: Sequence[str]) -> str:
        conn = self._connection()
        block = self._build(dict(fields))
        async with self._write_lock:
            try:
                await conn.execute("BEGIN;")
                await self._insert_row(conn, block)
                for block_id in delete_ids:
                    cursor = await conn.execute(f"DELETE FROM {self._table} WHERE id = ?", (block_id,))
                    if cursor.rowcount == 0:
                        raise BlockNotFoundError(block_id)
                await conn.commit()
            except StorageError:
                await self._rollback()
                raise
            except aiosqlite.Error as e:
                logger.error(f"aiosqlite error replacing blocks {list(delete_ids)}: {e}")
                await self._rollback()
                raise StorageError(f"Database error replacing blocks: {e}")
        logger.debug(f"Replaced {len(delete_ids)} blocks with '{block.id}' in SQLite.")
        return block.id

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            try:
                await self._conn.close()
                logger.info("aiosqlite block storage connection closed.")
            except aiosqlite.Error as e:
                logger.error(f"Error closing aiosqlite connection: {e}")
            finally:
                self._conn = None

    # --- Helpers ---

    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StorageError("Database connection not initialized.")
        return self._conn

    async def _rollback(self) -> None:
        try:
            await self._connection().rollback()
        except aiosqlite.Error as rb_e:
            logger.error(f"Rollback failed: {rb_e}")

    async def _insert_row(self, conn: aiosqlite.Connection, block: Block) -> None:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        try:
            await conn.execute(
                f"INSERT INTO {self._table} ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                self._block_to_row(block),
            )
        except aiosqlite.IntegrityError as e:
            raise StorageError(f"Block ID '{block.id}' already exists: {e}")

    @staticmethod
    def _build(data: Dict[str, Any]) -> Block:
        try:
            return Block.model_validate(data)
        except PydanticValidationError as e:
            raise StorageError(f"Invalid block fields: {e}")

    @staticmethod
    def _block_to_row(block: Block) -> Tuple[Any, ...]:
        return (
            block.id,
            block.content,
            Zone(block.zone).value,
            block.type,
            block.token_count,
            1 if block.is_compressed else 0,
            block.compression_ratio,
            block.compression_strategy,
            block.original_token_count,
            block.compressed_at.isoformat() if block.compressed_at else None,
            block.merged_from_count,
            block.created_at.isoformat(),
            block.updated_at.isoformat(),
            json.dumps(block.metadata or {}),
        )

    @staticmethod
    def _row_to_block(row: aiosqlite.Row) -> Block:
        data = dict(row)
        try:
            data["metadata"] = json.loads(data.get("metadata") or "{}")
        except json.JSONDecodeError:
            logger.warning(f"Invalid metadata JSON for block '{data.get('id')}'; using empty metadata.")
            data["metadata"] = {}
        data["is_compressed"] = bool(data.get("is_compressed", 0))
        return Block.model_validate(data)
