"""LiteLLM adapter implementing the GenerationSource interface.

Routes single-shot and streaming completions through litellm.acompletion()
with the configured model, credential and content-safety thresholds.
Every upstream failure surfaces as GenerationError; nothing is retried here.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import litellm

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from storyswap.errors import GenerationError
from storyswap.keys import require_api_key
from storyswap.providers.base import GenerationSource
from storyswap.schemas.config import ModelConfig, Settings

logger = logging.getLogger(__name__)


def _short_error_reason(error: Exception) -> str:
    """Extract a short, user-friendly reason from a LiteLLM error.

    Maps error types and status codes to concise descriptions instead
    of dumping full JSON error payloads.
    """
    if isinstance(error, litellm.AuthenticationError):
        return "authentication failed, check the API key"
    if isinstance(error, litellm.ContentPolicyViolationError):
        return "blocked by content policy"
    error_str = str(error).lower()
    if "rate" in error_str or "429" in error_str or "quota" in error_str:
        return "rate limit or quota exceeded"
    if "timeout" in error_str or isinstance(error, TimeoutError):
        return "timeout"
    if "503" in error_str or "unavailable" in error_str:
        return "service unavailable"
    if "safety" in error_str or "blocked" in error_str:
        return "blocked by content safety filters"
    if "connection" in error_str:
        return "connection error"
    # Fallback: first 120 chars of the error
    return str(error)[:120]


class LiteLLMSource(GenerationSource):
    """Generation source backed by LiteLLM (Gemini by default)."""

    def __init__(self, config: ModelConfig, api_key: str = "") -> None:
        super().__init__(config)
        self._api_key = api_key

    @classmethod
    def from_settings(cls, settings: Settings) -> LiteLLMSource:
        """Build a source from process settings, resolving the credential now.

        Raises:
            ConfigurationError: If the configured API key variable is unset.
        """
        api_key = require_api_key(settings.model.api_key_env)
        return cls(settings.model, api_key=api_key)

    async def generate_once(self, prompt: str) -> str:
        """Send a single completion request and return its text."""
        kwargs = self._build_completion_kwargs(prompt)
        try:
            response = await litellm.acompletion(**kwargs)
        except Exception as e:
            raise self._generation_error(e) from e

        content = self._extract_content(response)
        if not content:
            raise GenerationError(
                f"{self.display_name} returned no text (the response may have been blocked)"
            )
        return content

    async def generate_stream(self, prompt: str) -> AsyncIterator[str]:
        """Stream a completion, yielding each non-empty text delta."""
        kwargs = self._build_completion_kwargs(prompt)
        kwargs["stream"] = True

        try:
            response = await litellm.acompletion(**kwargs)
            async for chunk in response:
                delta = ""
                if chunk.choices and chunk.choices[0].delta:
                    delta = chunk.choices[0].delta.content or ""
                if delta:
                    yield delta
        except GenerationError:
            raise
        except Exception as e:
            raise self._generation_error(e) from e

    def _build_completion_kwargs(self, prompt: str) -> dict:
        """Build the kwargs dict for litellm.acompletion."""
        kwargs: dict = {
            "model": self._config.model,
            "messages": [{"role": "user", "content": prompt}],
            "timeout": float(self._config.timeout),
        }

        if self._api_key:
            kwargs["api_key"] = self._api_key

        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base

        if self._config.safety:
            kwargs["safety_settings"] = [
                {"category": str(s.category), "threshold": str(s.threshold)}
                for s in self._config.safety
            ]

        return kwargs

    def _generation_error(self, error: Exception) -> GenerationError:
        reason = _short_error_reason(error)
        logger.warning("Generation failed for %s: %s", self.display_name, reason)
        return GenerationError(f"{self.display_name}: {reason}")

    @staticmethod
    def _extract_content(response) -> str:
        """Extract text content from a LiteLLM response."""
        if not response.choices:
            return ""
        message = response.choices[0].message
        return (message.content or "") if message else ""
