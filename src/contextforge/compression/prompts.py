# src/contextforge/compression/prompts.py
"""Compression prompt template and renderer."""

import math

DEFAULT_TARGET_RATIO = 2.0

SEMANTIC_PROMPT_TEMPLATE = """You are a compression specialist. Compress the following {content_type} content from {original_tokens} tokens to approximately {target_tokens} tokens ({target_ratio:g}x compression ratio) while preserving all critical information.

CRITICAL RULES:
- Keep ALL specific names, numbers, dates, and decisions
- Maintain chronological order
- Preserve technical terms and key concepts
- Remove redundant explanations and examples
- Keep conclusions and results
- If the same phrase is repeated, keep only the first occurrence
- Output ONLY the compressed content (no meta-commentary, no "Here is the compressed version")

CONTENT TO COMPRESS:
{content}

COMPRESSED VERSION:"""


def target_token_count(original_tokens: int, target_ratio: float) -> int:
    """Number of tokens the backend is asked to aim for."""
    if target_ratio <= 0:
        raise ValueError("target_ratio must be positive.")
    return math.ceil(original_tokens / target_ratio)


def build_compression_prompt(
    content: str,
    original_tokens: int,
    target_ratio: float = DEFAULT_TARGET_RATIO,
    content_type: str = "text",
) -> str:
    """
    Render the compression prompt.

    Args:
        content: Text to compress (a single block or a merged unit).
        original_tokens: Token count of ``content``.
        target_ratio: Desired original/compressed ratio, e.g. 2.0 for half size.
        content_type: Block type substituted into the instructions.
    """
    return SEMANTIC_PROMPT_TEMPLATE.format(
        content_type=content_type or "text",
        original_tokens=original_tokens,
        target_tokens=target_token_count(original_tokens, target_ratio),
        target_ratio=target_ratio,
        content=content,
    )
