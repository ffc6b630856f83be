# src/contextforge/backends/ollama_backend.py
"""
Ollama backend for the compression engine, using the official ollama library.

Streams a chat completion from a local Ollama instance and accumulates the
``message.content`` deltas until the fragment marked ``done``. No
authentication is involved.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from ollama import AsyncClient, ResponseError

from ..config.settings import CompressionSettings, OllamaSettings
from ..exceptions import BackendTransportError, ConfigError
from .base import BaseBackend

logger = logging.getLogger(__name__)


class OllamaBackend(BaseBackend):
    """Compression backend talking to a local Ollama server."""

    def __init__(
        self,
        settings: OllamaSettings,
        temperature: float = 0.2,
        top_p: float = 0.95,
        log_raw_payloads: bool = False,
        client: Optional[Any] = None,
    ):
        """
        Args:
            settings: ``[ollama]`` configuration section.
            temperature: Sampling temperature (low for deterministic output).
            top_p: Nucleus sampling parameter.
            log_raw_payloads: Whether to log prompts and responses at DEBUG.
            client: Optional pre-built ``ollama.AsyncClient``.
        """
        super().__init__(log_raw_payloads)
        self.host = settings.host
        self.default_model = settings.model
        self.default_timeout = settings.timeout
        self.options: Dict[str, float] = {"temperature": temperature, "top_p": top_p}

        if client is not None:
            self._client = client
        else:
            try:
                self._client = AsyncClient(host=self.host)
                logger.debug(f"Ollama AsyncClient initialized (Host: {self.host})")
            except Exception as e:
                logger.error(f"Failed to initialize Ollama AsyncClient: {e}", exc_info=True)
                raise ConfigError(f"Ollama client initialization failed: {e}")

    @classmethod
    def from_config(cls, config: CompressionSettings) -> "OllamaBackend":
        return cls(
            config.ollama, temperature=config.temperature, top_p=config.top_p,
            log_raw_payloads=config.log_raw_payloads,
        )

    def get_name(self) -> str:
        return "ollama"

    async def _complete(self, prompt: str, model: Optional[str]) -> str:
        messages: List[Dict[str, str]] = [{"role": "user", "content": prompt}]
        fragments: List[str] = []
        finished = False

        try:
            stream = await self._client.chat(
                model=model,
                messages=messages,
                stream=True,
                options=self.options,
            )
            async for chunk in stream:
                fragments.append(self._chunk_text(chunk))
                if self._chunk_done(chunk):
                    finished = True
                    break
        except ResponseError as e:
            error_detail = getattr(e, "error", None) or str(e)
            logger.error(f"Ollama API error: HTTP {e.status_code} - {error_detail}")
            if e.status_code == 404 and "not found" in error_detail.lower():
                raise BackendTransportError(
                    self.get_name(),
                    f"Model '{model}' not found by Ollama. Ensure it is pulled: `ollama pull {model}`.",
                    reason="http_status",
                    status_code=e.status_code,
                )
            raise BackendTransportError(
                self.get_name(),
                f"Ollama API Error (HTTP {e.status_code}): {error_detail}",
                reason="http_status",
                status_code=e.status_code,
            )
        except (httpx.HTTPError, OSError) as e:
            logger.error(f"Could not reach Ollama server at {self.host}: {e}", exc_info=True)
            raise BackendTransportError(
                self.get_name(),
                f"Could not connect to Ollama server at {self.host}. Is Ollama running? Details: {e}",
                reason="transport",
            )
        except ValueError as e:
            logger.error(f"Malformed response from Ollama: {e!r}")
            raise BackendTransportError(
                self.get_name(), f"Malformed response from Ollama: {e}", reason="malformed_response"
            )

        if not finished:
            raise BackendTransportError(
                self.get_name(), "Stream ended before a fragment marked done.", reason="malformed_response"
            )
        return "".join(fragments)

    def _chunk_text(self, chunk: Any) -> str:
        """Content delta of one stream fragment (dicts and ollama ChatResponse objects)."""
        if self.log_raw_payloads_enabled and logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"RAW STREAM CHUNK ({self.get_name()}): {chunk!r}")
        try:
            content = chunk["message"]["content"]
        except (KeyError, TypeError) as e:
            raise BackendTransportError(
                self.get_name(), f"Malformed stream fragment: {e!r}", reason="malformed_response"
            )
        if content is None:
            return ""
        if not isinstance(content, str):
            raise BackendTransportError(
                self.get_name(), f"Unexpected content type {type(content).__name__} in stream fragment.",
                reason="malformed_response",
            )
        return content

    @staticmethod
    def _chunk_done(chunk: Any) -> bool:
        try:
            return bool(chunk["done"])
        except (KeyError, TypeError):
            return False

    async def close(self) -> None:
        """Closes the underlying httpx client of the ollama AsyncClient, if any."""
        inner = getattr(self._client, "_client", None)
        if isinstance(inner, httpx.AsyncClient):
            await inner.aclose()
            logger.debug("Ollama backend client closed.")
