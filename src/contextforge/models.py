# src/contextforge/models.py
"""
Core data models for the ContextForge library.

Defines the persisted ``Block`` model (the unit of content placed in one of
the three priority zones), the zone and strategy enumerations, and the
``BlockFilter`` used to query the block store.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Collection, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Zone(str, Enum):
    """
    Priority buckets of the context window.

    The zone governs the budget bucket and eviction order of a block. The
    compression engine reads it but never owns the budget arithmetic.
    """
    PERMANENT = "PERMANENT"
    STABLE = "STABLE"
    WORKING = "WORKING"

    @classmethod
    def _missing_(cls, value: object):  # type: ignore[misc]
        """Accept zone names in any case ("working" -> WORKING)."""
        if isinstance(value, str):
            upper_value = value.upper()
            for member in cls:
                if member.value == upper_value:
                    return member
        return None


class CompressionStrategy(str, Enum):
    """Available compression strategies."""

    SEMANTIC = "semantic"
    """LLM summarization that preserves names, numbers and decisions."""

    STRUCTURAL = "structural"
    """Reserved; not implemented."""

    STATISTICAL = "statistical"
    """Reserved; not implemented."""

    @classmethod
    def _missing_(cls, value: object):  # type: ignore[misc]
        if isinstance(value, str):
            lower_value = value.lower()
            for member in cls:
                if member.value == lower_value:
                    return member
        return None


class BackendKind(str, Enum):
    """Closed set of summarization backends."""

    OLLAMA = "ollama"
    """Local inference server over HTTP, no authentication."""

    OPENROUTER = "openrouter"
    """Hosted OpenAI-compatible gateway with bearer-token auth."""

    LOCAL_AGENT = "local_agent"
    """Command-line agent spawned as a subprocess."""

    @classmethod
    def _missing_(cls, value: object):  # type: ignore[misc]
        if isinstance(value, str):
            normalized = value.lower().replace("-", "_")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class Block(BaseModel):
    """
    Represents a single content block of the context window.

    Attributes:
        id: Unique, opaque identifier assigned at creation.
        content: The block's text.
        zone: Priority zone the block lives in.
        type: Free-form semantic tag (note, code, message, ...).
        token_count: Cached token count, or None when it must be estimated.
        is_compressed: Whether the block carries compression metadata.
        compression_ratio: original / compressed tokens of the last compression.
        compression_strategy: Strategy used by the last compression.
        original_token_count: Token count before the *first* compression.
            Never decreased once set.
        compressed_at: Time of the last successful compression (UTC).
        merged_from_count: Number of source blocks merged into this one.
        created_at: Creation time (UTC).
        updated_at: Last modification time (UTC).
        metadata: Free-form extra data owned by the host application.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique identifier for the block.")
    content: str = Field(description="Textual content of the block.")
    zone: Zone = Field(default=Zone.WORKING, description="Priority zone (PERMANENT, STABLE or WORKING).")
    type: str = Field(default="note", description="Semantic tag used for the prompt's content type.")
    token_count: Optional[int] = Field(default=None, ge=0, description="Cached token count for the content.")
    is_compressed: bool = Field(default=False, description="Whether the block was produced by compression.")
    compression_ratio: Optional[float] = Field(default=None, description="Ratio of the last compression.")
    compression_strategy: Optional[str] = Field(default=None, description="Strategy of the last compression.")
    original_token_count: Optional[int] = Field(default=None, ge=0, description="Token count before the first compression.")
    compressed_at: Optional[datetime] = Field(default=None, description="Timestamp of the last compression (UTC).")
    merged_from_count: Optional[int] = Field(default=None, ge=1, description="Number of blocks merged into this one.")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)

    @field_validator("created_at", "updated_at", "compressed_at", mode="before")
    @classmethod
    def ensure_utc_timestamp(cls, v: Any) -> Any:
        """Ensure timestamps are timezone-aware and in UTC."""
        if isinstance(v, str):
            v = datetime.fromisoformat(v[:-1] + "+00:00" if v.endswith("Z") else v)
        if isinstance(v, datetime):
            if v.tzinfo is None:
                return v.replace(tzinfo=timezone.utc)
            return v.astimezone(timezone.utc)
        return v


@dataclass(frozen=True)
class BlockFilter:
    """
    Equality filter for ``BaseBlockStore.list_by_filter``.

    Every field left as ``None`` matches any block.
    """
    block_ids: Optional[Collection[str]] = None
    zone: Optional[Zone] = None
    type: Optional[str] = None
    is_compressed: Optional[bool] = None

    def matches(self, block: Block) -> bool:
        if self.block_ids is not None and block.id not in self.block_ids:
            return False
        if self.zone is not None and block.zone != Zone(self.zone):
            return False
        if self.type is not None and block.type != self.type:
            return False
        if self.is_compressed is not None and block.is_compressed != self.is_compressed:
            return False
        return True
