"""Error taxonomy shared by the server, the stream consumer and the CLI.

Each class maps to one handling policy:

- ValidationError: the request is rejected before any generation call.
- GenerationError: the upstream model failed; surfaced verbatim, never retried.
- FramingError: a stream record could not be parsed; fatal to one attempt.
- TransportError: the stream could not be opened or broke; may trigger the
  single non-streaming fallback hop.
"""

from __future__ import annotations


class StorySwapError(Exception):
    """Base class for all StorySwap errors."""


class ValidationError(StorySwapError):
    """The transform request is missing text or has nothing to replace."""


class GenerationError(StorySwapError):
    """The generation source failed (auth, quota, safety block, network)."""


class FramingError(StorySwapError):
    """A wire record violated the event framing."""


class TransportError(StorySwapError):
    """The connection to the stream relay failed."""


class ConfigurationError(StorySwapError):
    """Settings file is invalid or a required credential is missing."""


class ExtractionError(StorySwapError):
    """A source document could not be turned into text."""
