# src/contextforge/backends/base.py
"""
Abstract Base Class for compression backends.

Every backend wraps one external summarization transport behind the same
contract::

    text = await backend.compress(prompt, model=None, deadline=None)

Implementations only provide ``_complete()``, which must fully drain the
transport (stream, pipe) and return the accumulated text. The base class
enforces the deadline, strips the output, rejects empty responses and logs
timing, so scoring in the orchestrator always sees a complete response.
"""

import abc
import asyncio
import logging
import time
from typing import TYPE_CHECKING, Optional

from ..exceptions import BackendTimeoutError, BackendTransportError

if TYPE_CHECKING:
    from ..config.settings import CompressionSettings

logger = logging.getLogger(__name__)


class BaseBackend(abc.ABC):
    """
    Abstract Base Class for compression backend adapters.

    Attributes:
        default_model: Model used when the caller gives no hint.
        default_timeout: Deadline in seconds applied when the caller gives none.
        log_raw_payloads_enabled: Whether prompts and responses are logged at DEBUG.
    """
    default_model: Optional[str] = None
    default_timeout: float = 120.0
    log_raw_payloads_enabled: bool

    def __init__(self, log_raw_payloads: bool = False):
        self.log_raw_payloads_enabled = log_raw_payloads

    @classmethod
    def from_config(cls, config: "CompressionSettings") -> "BaseBackend":
        """Build the backend from the compression configuration (its own section plus shared options)."""
        raise NotImplementedError(f"{cls.__name__} cannot be built from configuration.")

    @abc.abstractmethod
    def get_name(self) -> str:
        """Return the backend's identifier ("ollama", "openrouter", "local_agent")."""

    @abc.abstractmethod
    async def _complete(self, prompt: str, model: Optional[str]) -> str:
        """
        Send ``prompt`` and return the complete generated text.

        Raises:
            BackendTransportError: For transport, status or format failures.
        """

    async def compress(self, prompt: str, model: Optional[str] = None, deadline: Optional[float] = None) -> str:
        """
        Run one compression request against this backend.

        Args:
            prompt: Fully rendered compression prompt.
            model: Optional model hint; defaults to the backend's configured model.
            deadline: Seconds before the attempt is abandoned; defaults to
                ``default_timeout``.

        Returns:
            The generated text, stripped of surrounding whitespace.

        Raises:
            BackendTimeoutError: If the deadline passes first.
            BackendTransportError: For any other backend failure, including
                an empty response.
        """
        model_name = model or self.default_model
        timeout = deadline if deadline is not None else self.default_timeout

        if self.log_raw_payloads_enabled and logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"RAW COMPRESSION PROMPT ({self.get_name()} @ {model_name}):\n{prompt}")

        logger.debug(f"Sending compression request to '{self.get_name()}': model='{model_name}', "
                     f"prompt_chars={len(prompt)}, timeout={timeout}s")
        start_time = time.monotonic()
        try:
            text = await asyncio.wait_for(self._complete(prompt, model_name), timeout=timeout)
        except TimeoutError:
            logger.error(f"Compression request to '{self.get_name()}' timed out after {timeout}s.")
            raise BackendTimeoutError(self.get_name(), timeout)

        duration = time.monotonic() - start_time
        text = text.strip()
        if not text:
            raise BackendTransportError(self.get_name(), "Backend returned an empty response.", reason="empty_response")

        if self.log_raw_payloads_enabled and logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"RAW COMPRESSION RESPONSE ({self.get_name()} @ {model_name}):\n{text}")
        logger.debug(f"Backend '{self.get_name()}' returned {len(text)} chars in {duration:.2f}s.")
        return text

    async def close(self) -> None:
        """
        Release resources held by the backend (HTTP clients, ...).
        Backends without resources keep this default no-op.
        """
        pass
