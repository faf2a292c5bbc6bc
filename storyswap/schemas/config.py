"""Configuration schemas for the generation source, server and client.

Loaded from settings.toml by storyswap.settings. Values here are the
defaults used when a section or key is missing from the file.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class HarmCategory(StrEnum):
    """Content-safety categories understood by the Gemini API."""

    HARASSMENT = "HARM_CATEGORY_HARASSMENT"
    HATE_SPEECH = "HARM_CATEGORY_HATE_SPEECH"
    SEXUALLY_EXPLICIT = "HARM_CATEGORY_SEXUALLY_EXPLICIT"
    DANGEROUS_CONTENT = "HARM_CATEGORY_DANGEROUS_CONTENT"


class SafetyThreshold(StrEnum):
    """How permissive the provider is for one harm category."""

    BLOCK_NONE = "BLOCK_NONE"
    BLOCK_ONLY_HIGH = "BLOCK_ONLY_HIGH"
    BLOCK_MEDIUM_AND_ABOVE = "BLOCK_MEDIUM_AND_ABOVE"
    BLOCK_LOW_AND_ABOVE = "BLOCK_LOW_AND_ABOVE"


class SafetySetting(BaseModel):
    """Threshold for a single harm category, passed through to the provider."""

    category: HarmCategory
    threshold: SafetyThreshold = SafetyThreshold.BLOCK_NONE


class ModelConfig(BaseModel):
    """Generation source configuration.

    The pipeline never inspects the safety values; they are forwarded
    verbatim to LiteLLM.
    """

    provider: str = Field(default="google", description="Provider identifier")
    model: str = Field(
        default="gemini/gemini-2.0-flash-thinking-exp-01-21",
        description="LiteLLM model identifier",
    )
    display_name: str = Field(default="Gemini 2.0 Flash Thinking", description="Name for CLI output")
    api_key_env: str = Field(
        default="GOOGLE_AI_API_KEY", description="Environment variable holding the API key"
    )
    api_base: str = Field(default="", description="Custom API base URL (empty = provider default)")
    timeout: int = Field(default=120, gt=0, description="Timeout in seconds per model call")
    safety: list[SafetySetting] = Field(
        default_factory=list, description="Per-category content-safety thresholds"
    )


class ServerConfig(BaseModel):
    """Where `storyswap serve` listens."""

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, gt=0, lt=65536)


class ClientConfig(BaseModel):
    """How the stream consumer reaches the relay."""

    base_url: str = Field(default="http://127.0.0.1:8000", description="Relay base URL")
    timeout: float = Field(default=120.0, gt=0, description="Read timeout in seconds")
    connect_timeout: float = Field(default=5.0, gt=0, description="Connect timeout in seconds")
    transform_path: str = Field(default="/api/transform-story")
    stream_path: str = Field(default="/api/transform-story-stream")


class Settings(BaseModel):
    """Top-level process configuration."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
