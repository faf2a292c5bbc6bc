"""StorySwap provider layer.

All model calls go through a GenerationSource; LiteLLMSource is the
production implementation.
"""

from storyswap.providers.base import GenerationSource
from storyswap.providers.litellm_provider import LiteLLMSource

__all__ = [
    "GenerationSource",
    "LiteLLMSource",
]
