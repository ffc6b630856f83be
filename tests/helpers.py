# tests/helpers.py
"""Test doubles and text builders shared across the test suite."""

from typing import Callable, List, Optional, Union

from contextforge.backends.base import BaseBackend


# =============================================================================
# Fake Backend
# =============================================================================


class FakeBackend(BaseBackend):
    """
    Scriptable backend for tests.

    Attributes:
        response: Text returned by every call, or a callable receiving the
            prompt and returning the text.
        error: If set, raised instead of returning a response.
        prompts: Every prompt received, in order.
        models: Every model hint received, in order.
    """

    default_model = "fake-model"

    def __init__(
        self,
        response: Union[str, Callable[[str], str]] = "",
        error: Optional[Exception] = None,
    ):
        super().__init__(log_raw_payloads=False)
        self.response = response
        self.error = error
        self.prompts: List[str] = []
        self.models: List[Optional[str]] = []
        self.closed = False

    def get_name(self) -> str:
        return "fake"

    async def _complete(self, prompt: str, model: Optional[str]) -> str:
        self.prompts.append(prompt)
        self.models.append(model)
        if self.error is not None:
            raise self.error
        if callable(self.response):
            return self.response(prompt)
        return self.response

    @property
    def call_count(self) -> int:
        return len(self.prompts)

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# Content Helpers
# =============================================================================


def make_text(chars: int, word: str = "lorem ") -> str:
    """Lowercase filler text of exactly ``chars`` characters (no important words)."""
    return (word * (chars // len(word) + 1))[:chars]


def make_summary(chars: int, keep: str = "") -> str:
    """
    Summary text of exactly ``chars`` characters that starts with ``keep``.

    The result never has surrounding whitespace, so the backend's strip()
    leaves its length unchanged.
    """
    body = keep + " " if keep else ""
    text = (body + make_text(chars))[:chars]
    return text[:-1] + "x" if text.endswith(" ") else text
