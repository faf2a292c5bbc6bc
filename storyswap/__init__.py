"""StorySwap — character-substitution story rewriting over a streaming LLM pipeline."""

__version__ = "0.1.0"
