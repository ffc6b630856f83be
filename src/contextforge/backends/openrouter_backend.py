# src/contextforge/backends/openrouter_backend.py
"""
OpenRouter backend for the compression engine.

OpenRouter exposes an OpenAI-compatible chat completions endpoint, so this
backend drives it with the official ``openai`` SDK pointed at the gateway's
base URL. Responses are streamed and the ``choices[0].delta.content``
fragments accumulated into the final summary.

The API key is sent as a bearer token by the SDK and is never logged.
"""

import logging
from typing import Any, Dict, List, Optional

from openai import (APIConnectionError, APIResponseValidationError,
                    APIStatusError, APITimeoutError, AsyncOpenAI,
                    OpenAIError)

from ..config.settings import CompressionSettings, OpenRouterSettings
from ..exceptions import (BackendTimeoutError, BackendTransportError,
                          ConfigError)
from .base import BaseBackend

logger = logging.getLogger(__name__)


class OpenRouterBackend(BaseBackend):
    """Compression backend for the OpenRouter hosted gateway."""
    _client: Optional[AsyncOpenAI] = None

    def __init__(
        self,
        settings: OpenRouterSettings,
        temperature: float = 0.2,
        top_p: float = 0.95,
        log_raw_payloads: bool = False,
        client: Optional[Any] = None,
    ):
        """
        Args:
            settings: ``[openrouter]`` configuration section. Must carry an API key.
            temperature: Sampling temperature.
            top_p: Nucleus sampling parameter.
            log_raw_payloads: Whether to log prompts and responses at DEBUG.
            client: Optional pre-built ``AsyncOpenAI`` client.

        Raises:
            ConfigError: If no API key is configured.
        """
        super().__init__(log_raw_payloads)
        self.base_url = settings.base_url
        self.default_model = settings.model
        self.default_timeout = settings.timeout
        self.temperature = temperature
        self.top_p = top_p

        if client is not None:
            self._client = client
            return

        if settings.api_key is None:
            raise ConfigError(
                "OpenRouter API key not found. Set CONTEXTFORGE__OPENROUTER__API_KEY or OPENROUTER_API_KEY."
            )
        try:
            # Retries are disabled: a failed compression is reported, not repeated.
            self._client = AsyncOpenAI(
                api_key=settings.api_key.get_secret_value(),
                base_url=self.base_url,
                timeout=self.default_timeout,
                max_retries=0,
            )
            logger.debug(f"OpenRouter client initialized (Base URL: {self.base_url})")
        except Exception as e:
            logger.error(f"Failed to initialize OpenRouter client: {e}", exc_info=True)
            raise ConfigError(f"OpenRouter client initialization failed: {e}")

    @classmethod
    def from_config(cls, config: CompressionSettings) -> "OpenRouterBackend":
        return cls(
            config.openrouter, temperature=config.temperature, top_p=config.top_p,
            log_raw_payloads=config.log_raw_payloads,
        )

    def get_name(self) -> str:
        return "openrouter"

    async def _complete(self, prompt: str, model: Optional[str]) -> str:
        if self._client is None:
            raise BackendTransportError(self.get_name(), "OpenRouter client not initialized.")

        messages: List[Dict[str, str]] = [{"role": "user", "content": prompt}]
        fragments: List[str] = []

        try:
            stream = await self._client.chat.completions.create(
                model=model,
                messages=messages,
                stream=True,
                temperature=self.temperature,
                top_p=self.top_p,
            )
            async for chunk in stream:
                if self.log_raw_payloads_enabled and logger.isEnabledFor(logging.DEBUG):
                    logger.debug(f"RAW STREAM CHUNK ({self.get_name()}): {chunk!r}")
                if not chunk.choices:
                    continue
                delta_content = chunk.choices[0].delta.content
                if delta_content:
                    fragments.append(delta_content)
        except APITimeoutError:
            logger.error(f"OpenRouter request timed out after {self.default_timeout}s.")
            raise BackendTimeoutError(self.get_name(), self.default_timeout)
        except APIStatusError as e:
            logger.error(f"OpenRouter API error: HTTP {e.status_code} - {e.message}")
            if e.status_code == 401:
                detail = f"Authentication failed (Invalid API Key? Status 401): {e.message}"
            elif e.status_code == 429:
                detail = f"Rate limit exceeded (Status 429): {e.message}"
            else:
                detail = f"OpenRouter API Error (Status {e.status_code}): {e.message}"
            raise BackendTransportError(self.get_name(), detail, reason="http_status", status_code=e.status_code)
        except APIConnectionError as e:
            logger.error(f"Could not reach OpenRouter at {self.base_url}: {e}")
            raise BackendTransportError(self.get_name(), f"Connection error: {e}", reason="transport")
        except APIResponseValidationError as e:
            logger.error(f"OpenRouter returned an invalid response: {e}")
            raise BackendTransportError(self.get_name(), f"Invalid response body: {e}", reason="malformed_response")
        except OpenAIError as e:
            logger.error(f"OpenRouter client error: {e}")
            raise BackendTransportError(self.get_name(), str(e), reason="transport")
        except (AttributeError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Malformed OpenRouter stream fragment: {e!r}")
            raise BackendTransportError(
                self.get_name(), f"Malformed stream fragment: {e!r}", reason="malformed_response"
            )

        return "".join(fragments)

    async def close(self) -> None:
        """Closes the underlying OpenAI client."""
        if self._client is not None:
            await self._client.close()
            logger.debug("OpenRouter backend client closed.")
        self._client = None
