"""Abstract base class for generation sources.

Defines the GenerationSource interface that the stream relay and the
fallback path call. Neither ever calls a provider SDK directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from storyswap.schemas.config import ModelConfig


class GenerationSource(ABC):
    """A model that can rewrite a prompt in one shot or incrementally.

    Initialized from the [model] section of settings.toml. Exposes identity
    plus the two operations the pipeline needs.
    """

    def __init__(self, config: ModelConfig) -> None:
        self._config = config

    # ── Identity ──────────────────────────────────────────────

    @property
    def model_id(self) -> str:
        """LiteLLM model identifier used for routing."""
        return self._config.model

    @property
    def display_name(self) -> str:
        """Human-friendly model name for CLI output."""
        return self._config.display_name

    @property
    def config(self) -> ModelConfig:
        """The full ModelConfig backing this source."""
        return self._config

    # ── Core interface ────────────────────────────────────────

    @abstractmethod
    async def generate_once(self, prompt: str) -> str:
        """Return the complete generated text for ``prompt``.

        Raises:
            GenerationError: On any upstream failure (auth, quota,
                content-safety block, network).
        """

    @abstractmethod
    def generate_stream(self, prompt: str) -> AsyncIterator[str]:
        """Yield the generated text for ``prompt`` as non-empty deltas.

        The sequence is lazy, finite and not restartable. It may raise
        GenerationError at any point, including before the first delta.
        """
